"""
Cache-aside tests for the public article detail.

The suite normally runs with the cache disabled; here an in-memory stand-in
with the three Redis calls the CacheManager uses is plugged in so hits and
invalidation can be observed.
"""
import pytest
from httpx import AsyncClient

from app.cache import article_key, cache
from app.enums import UserRole


class InMemoryRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


@pytest.fixture
def redis_store(monkeypatch):
    fake = InMemoryRedis()
    monkeypatch.setattr(cache, "_redis", fake)
    return fake.store


@pytest.mark.asyncio
async def test_detail_is_cached_by_slug(async_client: AsyncClient, make_user, make_article, redis_store):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)

    first = await async_client.get(f"/api/v1/articles/{article.slug}")
    assert article_key(article.slug) in redis_store

    second = await async_client.get(f"/api/v1/articles/{article.slug}")
    assert second.json()["data"] == first.json()["data"]
    # Served from the cache: no SQL at all.
    assert second.headers["x-query-count"] == "0"


@pytest.mark.asyncio
async def test_reaction_invalidates_detail(async_client: AsyncClient, make_user, make_article, redis_store):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)
    await async_client.get(f"/api/v1/articles/{article.slug}")

    await async_client.post(f"/api/v1/articles/{article.slug}/like")
    assert article_key(article.slug) not in redis_store

    data = (await async_client.get(f"/api/v1/articles/{article.slug}")).json()["data"]
    assert data["reactions"]["like"] == 1


@pytest.mark.asyncio
async def test_slug_change_drops_both_keys(
    async_client: AsyncClient, make_user, make_article, auth_headers, redis_store
):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)
    await async_client.get(f"/api/v1/articles/{article.slug}")

    resp = await async_client.put(
        f"/api/v1/admin/articles/{article.id}", json={"slug": "renamed"}, headers=await auth_headers(author)
    )
    assert resp.status_code == 200
    assert article_key(article.slug) not in redis_store
    assert (await async_client.get(f"/api/v1/articles/{article.slug}")).status_code == 404
    assert (await async_client.get("/api/v1/articles/renamed")).status_code == 200


@pytest.mark.asyncio
async def test_stats_report_cache_counters(async_client: AsyncClient, make_user, auth_headers, redis_store):
    admin = await make_user(UserRole.ADMINISTRATOR)
    resp = await async_client.get("/api/v1/admin/stats", headers=await auth_headers(admin))
    info = resp.json()["data"]["cache_info"]
    assert info["connected"] is True
    assert set(info) == {"connected", "hits", "misses", "hit_rate"}
