"""Seed a development database with users, follows, articles and comments.

Everything goes through the service layer, so the data obeys the same
rules as data created over the API (hashed passwords, unique slugs,
upserted tags).
"""
import argparse
import asyncio
import random
import time

from conduit.config import settings
from conduit.database import Database
from conduit.schemas import ArticleCreate, CommentCreate, UserRegister
from conduit.security import decode_access_token
from conduit.services import article_service, comment_service, profile_service, user_service

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "testing",
        "performance", "security", "devops", "writing", "career", "design"]

SEED_PASSWORD = "password123"


async def seed(small: bool = False):
    num_users = 5 if small else 25
    articles_per_user = 3 if small else 10

    print(f"Seeding: {num_users} users, {num_users * articles_per_user} articles")
    start = time.perf_counter()

    database = Database(settings.DATABASE_URL)
    await database.drop_all()
    await database.create_all()

    async with database.session() as db:
        users: list[tuple[int, str]] = []
        for i in range(num_users):
            registered = await user_service.register(
                db,
                UserRegister(
                    username=f"user_{i:03d}",
                    email=f"user_{i:03d}@example.com",
                    password=SEED_PASSWORD,
                ),
            )
            users.append((decode_access_token(registered["token"]), registered["username"]))
        print(f"  Created {len(users)} users")

        for user_id, _ in users:
            others = [name for other_id, name in users if other_id != user_id]
            for name in random.sample(others, k=min(3, len(others))):
                await profile_service.follow(db, name, user_id)

        slugs: list[str] = []
        for user_id, username in users:
            for n in range(articles_per_user):
                topic = random.choice(TAGS)
                article = await article_service.create_article(
                    db,
                    user_id,
                    ArticleCreate(
                        title=f"Notes on {topic} #{n}",
                        description=f"{username} writes about {topic}.",
                        body=f"This is article {n} by {username}. " * 10,
                        tag_list=random.sample(TAGS, k=random.randint(1, 3)),
                    ),
                )
                slugs.append(article["slug"])
        print(f"  Created {len(slugs)} articles")

        comments = 0
        for slug in slugs:
            for user_id, _ in random.sample(users, k=min(2, len(users))):
                if random.random() < 0.5:
                    await article_service.favorite_article(db, slug, user_id)
                await comment_service.add_comment(
                    db, slug, user_id, CommentCreate(body="Thanks for writing this up.")
                )
                comments += 1
        print(f"  Created {comments} comments")

    await database.dispose()
    print(f"\nSeeding complete in {time.perf_counter() - start:.1f}s")
    print(f"  Every user's password is {SEED_PASSWORD!r}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
