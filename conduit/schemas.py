from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Field constraints here are structural only (types, upper bounds).  Domain
# rules such as "title must not be blank" live in the services, which raise
# ``conduit.exceptions.ValidationError`` whoever the caller is.


class CamelModel(BaseModel):
    """Accepts and emits camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- User ---

class UserRegister(CamelModel):
    username: str = Field(max_length=100)
    email: str = Field(max_length=255)
    password: str


class UserLogin(CamelModel):
    email: str
    password: str


class UserSettingsUpdate(CamelModel):
    email: str | None = Field(None, max_length=255)
    username: str | None = Field(None, max_length=100)
    password: str | None = None
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


class UserResponse(CamelModel):
    email: str
    username: str
    bio: str | None = None
    image: str | None = None
    token: str


class UserRegisterEnvelope(CamelModel):
    user: UserRegister


class UserLoginEnvelope(CamelModel):
    user: UserLogin


class UserSettingsEnvelope(CamelModel):
    user: UserSettingsUpdate


class UserEnvelope(CamelModel):
    user: UserResponse


# --- Profile ---

class ProfileResponse(CamelModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileEnvelope(CamelModel):
    profile: ProfileResponse


# --- Article ---

class ArticleCreate(CamelModel):
    title: str = Field(max_length=300)
    description: str
    body: str
    tag_list: list[str] = []


class ArticleUpdate(CamelModel):
    title: str | None = Field(None, max_length=300)
    description: str | None = None
    body: str | None = None
    tag_list: list[str] | None = None


class ArticleResponse(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = []
    created_at: datetime
    updated_at: datetime
    favorited: bool = False
    favorites_count: int = 0
    author: ProfileResponse


class ArticleCreateEnvelope(CamelModel):
    article: ArticleCreate


class ArticleUpdateEnvelope(CamelModel):
    article: ArticleUpdate


class ArticleEnvelope(CamelModel):
    article: ArticleResponse


class ArticleListResponse(CamelModel):
    articles: list[ArticleResponse]
    articles_count: int


# --- Comment ---

class CommentCreate(CamelModel):
    body: str


class CommentResponse(CamelModel):
    id: int
    body: str
    created_at: datetime
    updated_at: datetime
    author: ProfileResponse


class CommentCreateEnvelope(CamelModel):
    comment: CommentCreate


class CommentEnvelope(CamelModel):
    comment: CommentResponse


class CommentListResponse(CamelModel):
    comments: list[CommentResponse]


# --- Tag ---

class TagListResponse(CamelModel):
    tags: list[str]
