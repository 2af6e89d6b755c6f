"""
CommentService tests: cached comment pages, bounded invalidation on
writes, ownership checks and sanitisation.
"""
import pytest

from board.errors import ForbiddenError, NotFoundError, StoreUnavailableError
from board.schemas import CommentCreate, CommentUpdate, PostCreate
from board.services.comment_service import comment_page_keys


async def _post(post_service, author_id: int) -> dict:
    return await post_service.create_post(PostCreate(title="Thread", content="Body"), author_id)


async def _comment(comment_service, post_id: int, author_id: int, text: str = "Nice") -> dict:
    return await comment_service.create_comment(post_id, CommentCreate(content=text), author_id)


def test_comment_page_keys_cover_first_five_default_pages():
    assert comment_page_keys(3) == [
        "comments:post:3:1:10",
        "comments:post:3:2:10",
        "comments:post:3:3:10",
        "comments:post:3:4:10",
        "comments:post:3:5:10",
    ]


@pytest.mark.asyncio
async def test_get_comments_paginates_newest_first(post_service, comment_service, make_user):
    user = await make_user()
    post = await _post(post_service, user["id"])
    for i in range(12):
        await _comment(comment_service, post["id"], user["id"], f"c{i}")

    first = await comment_service.get_comments(post["id"], page=1, limit=10)
    second = await comment_service.get_comments(post["id"], page=2, limit=10)

    assert first["total"] == 12
    assert first["totalPages"] == 2
    assert first["data"][0]["content"] == "c11"
    assert [c["content"] for c in second["data"]] == ["c1", "c0"]
    assert first["data"][0]["author"]["username"] == "alice"


@pytest.mark.asyncio
async def test_get_comments_is_cached(post_service, comment_service, make_user, store, backend, monkeypatch):
    user = await make_user()
    post = await _post(post_service, user["id"])
    await _comment(comment_service, post["id"], user["id"])

    calls = []
    original = store.find_comments

    async def spy(*args, **kwargs):
        calls.append(args)
        return await original(*args, **kwargs)

    monkeypatch.setattr(store, "find_comments", spy)

    await comment_service.get_comments(post["id"], 1, 10)
    await comment_service.get_comments(post["id"], 1, 10)

    assert len(calls) == 1
    assert f"comments:post:{post['id']}:1:10" in backend


@pytest.mark.asyncio
async def test_comment_page_expires_after_ttl(post_service, comment_service, make_user, backend, clock):
    user = await make_user()
    post = await _post(post_service, user["id"])
    await comment_service.get_comments(post["id"], 1, 10)

    clock.advance(180)

    assert f"comments:post:{post['id']}:1:10" not in backend


@pytest.mark.asyncio
async def test_create_comment_refreshes_default_pages(post_service, comment_service, make_user):
    user = await make_user()
    post = await _post(post_service, user["id"])
    assert (await comment_service.get_comments(post["id"], 1, 10))["total"] == 0

    await _comment(comment_service, post["id"], user["id"])

    assert (await comment_service.get_comments(post["id"], 1, 10))["total"] == 1


@pytest.mark.asyncio
async def test_non_default_limit_stays_stale_until_ttl(post_service, comment_service, make_user, clock):
    """Only the default-size pages are purged on write; others wait for the TTL."""
    user = await make_user()
    post = await _post(post_service, user["id"])
    assert (await comment_service.get_comments(post["id"], 1, 50))["total"] == 0

    await _comment(comment_service, post["id"], user["id"])

    assert (await comment_service.get_comments(post["id"], 1, 50))["total"] == 0
    clock.advance(180)
    assert (await comment_service.get_comments(post["id"], 1, 50))["total"] == 1


@pytest.mark.asyncio
async def test_comment_on_missing_post_raises_not_found(comment_service, make_user):
    user = await make_user()
    with pytest.raises(NotFoundError):
        await _comment(comment_service, 4242, user["id"])


@pytest.mark.asyncio
async def test_comment_content_is_plain_text(post_service, comment_service, make_user):
    user = await make_user()
    post = await _post(post_service, user["id"])

    comment = await _comment(comment_service, post["id"], user["id"], "<b>hi</b><script>x</script>")

    assert comment["content"] == "hi"


@pytest.mark.asyncio
async def test_update_comment_by_author(post_service, comment_service, make_user):
    user = await make_user()
    post = await _post(post_service, user["id"])
    comment = await _comment(comment_service, post["id"], user["id"])
    await comment_service.get_comments(post["id"], 1, 10)

    updated = await comment_service.update_comment(comment["id"], CommentUpdate(content="Edited"), user["id"])

    assert updated["content"] == "Edited"
    page = await comment_service.get_comments(post["id"], 1, 10)
    assert page["data"][0]["content"] == "Edited"


@pytest.mark.asyncio
async def test_update_comment_by_other_user_is_forbidden(post_service, comment_service, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    post = await _post(post_service, alice["id"])
    comment = await _comment(comment_service, post["id"], alice["id"])

    with pytest.raises(ForbiddenError):
        await comment_service.update_comment(comment["id"], CommentUpdate(content="x"), bob["id"])

    assert (await comment_service.get_comment(comment["id"]))["content"] == "Nice"


@pytest.mark.asyncio
async def test_delete_comment(post_service, comment_service, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    post = await _post(post_service, alice["id"])
    comment = await _comment(comment_service, post["id"], alice["id"])

    with pytest.raises(ForbiddenError):
        await comment_service.delete_comment(comment["id"], bob["id"])

    await comment_service.delete_comment(comment["id"], alice["id"])

    with pytest.raises(NotFoundError):
        await comment_service.get_comment(comment["id"])
    assert await comment_service.count_comments(post["id"]) == 0


@pytest.mark.asyncio
async def test_get_comments_rejects_zero_limit(comment_service):
    with pytest.raises(ValueError):
        await comment_service.get_comments(1, page=1, limit=0)
    with pytest.raises(ValueError):
        await comment_service.get_comments(1, page=0, limit=10)


@pytest.mark.asyncio
async def test_get_comments_uses_default_limit(post_service, comment_service, make_user):
    user = await make_user()
    post = await _post(post_service, user["id"])

    assert (await comment_service.get_comments(post["id"]))["limit"] == 10


@pytest.mark.asyncio
async def test_get_comments_falls_back_to_store_when_cache_reads_fail(
    post_service, comment_service, make_user, backend
):
    user = await make_user()
    post = await _post(post_service, user["id"])
    await _comment(comment_service, post["id"], user["id"])
    backend.failing.update({"get", "set"})

    page = await comment_service.get_comments(post["id"], 1, 10)

    assert page["total"] == 1
    assert page["data"][0]["content"] == "Nice"


# ---------------------------------------------------------------------------
# Failed invalidation aborts the write
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_failed_invalidation_aborts_create_comment(post_service, comment_service, make_user, store, backend):
    user = await make_user()
    post = await _post(post_service, user["id"])
    backend.failing.add("delete")

    with pytest.raises(StoreUnavailableError):
        await _comment(comment_service, post["id"], user["id"])

    assert await store.count_comments(post["id"]) == 0


@pytest.mark.asyncio
async def test_failed_invalidation_aborts_update_comment(post_service, comment_service, make_user, store, backend):
    user = await make_user()
    post = await _post(post_service, user["id"])
    comment = await _comment(comment_service, post["id"], user["id"])
    backend.failing.add("delete")

    with pytest.raises(StoreUnavailableError):
        await comment_service.update_comment(comment["id"], CommentUpdate(content="Edited"), user["id"])

    assert (await store.find_comment_by_id(comment["id"]))["content"] == "Nice"


@pytest.mark.asyncio
async def test_failed_invalidation_aborts_delete_comment(post_service, comment_service, make_user, store, backend):
    user = await make_user()
    post = await _post(post_service, user["id"])
    comment = await _comment(comment_service, post["id"], user["id"])
    backend.failing.add("delete")

    with pytest.raises(StoreUnavailableError):
        await comment_service.delete_comment(comment["id"], user["id"])

    assert await store.find_comment_by_id(comment["id"]) is not None


# ---------------------------------------------------------------------------
# Plain-text content is stored as typed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comment_of_ampersands_stays_within_limit(post_service, comment_service, make_user, store):
    user = await make_user()
    post = await _post(post_service, user["id"])

    comment = await _comment(comment_service, post["id"], user["id"], "&" * 1000)

    assert comment["content"] == "&" * 1000
    assert len((await store.find_comment_by_id(comment["id"]))["content"]) == 1000


@pytest.mark.asyncio
async def test_comment_keeps_comparison_operators(post_service, comment_service, make_user):
    user = await make_user()
    post = await _post(post_service, user["id"])

    comment = await _comment(comment_service, post["id"], user["id"], "a < b && c > d")

    assert comment["content"] == "a < b && c > d"
