"""Profile endpoint tests: profile projection and follow/unfollow."""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_get_profile_anonymous(async_client: AsyncClient, auth_headers):
    await auth_headers("jake")
    resp = await async_client.get("/api/profiles/jake")
    assert resp.status_code == 200
    assert resp.json()["profile"] == {
        "username": "jake",
        "bio": None,
        "image": None,
        "following": False,
    }


@pytest.mark.asyncio
async def test_get_unknown_profile_returns_404(async_client: AsyncClient):
    resp = await async_client.get("/api/profiles/ghost")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_follow_then_unfollow(async_client: AsyncClient, auth_headers):
    await auth_headers("jake")
    amy = await auth_headers("amy")

    for _ in range(2):
        resp = await async_client.post("/api/profiles/jake/follow", headers=amy)
        assert resp.status_code == 200
        assert resp.json()["profile"]["following"] is True

    resp = await async_client.get("/api/profiles/jake", headers=amy)
    assert resp.json()["profile"]["following"] is True

    resp = await async_client.delete("/api/profiles/jake/follow", headers=amy)
    assert resp.status_code == 200
    assert resp.json()["profile"]["following"] is False

    resp = await async_client.get("/api/profiles/jake", headers=amy)
    assert resp.json()["profile"]["following"] is False


@pytest.mark.asyncio
async def test_follow_self_returns_422(async_client: AsyncClient, auth_headers):
    jake = await auth_headers("jake")
    resp = await async_client.post("/api/profiles/jake/follow", headers=jake)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_follow_anonymous_returns_401(async_client: AsyncClient, auth_headers):
    await auth_headers("jake")
    resp = await async_client.post("/api/profiles/jake/follow")
    assert resp.status_code == 401
