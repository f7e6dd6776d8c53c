"""
Tests for the gated services.

Repositories are replaced by a recorder so these tests only see the
policy decisions and what reaches the repository.
"""

import pytest

from conftest import (
    ADMIN_ID,
    AUTHOR_ID,
    COMMENTER_ID,
    EDITOR_ID,
    OTHER_AUTHOR_ID,
)
from inkwell.auth.gate import AccessGate
from inkwell.auth.roles import RoleAuthority
from inkwell.core.errors import ForbiddenError, NotFoundError, UnauthorizedError
from inkwell.core.models import Post, SearchResult
from inkwell.services import CategoryService, PostService, UserService


class RecordingRepository:
    """Answers every repository call and remembers it."""

    def __init__(self, records=None):
        self.calls = []
        self.records = records or {}

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    async def search(self, filters=None, **options):
        self.calls.append(("search", filters, options))
        return SearchResult[Post](items=[], total_count=0)

    async def find_one_by_id(self, record_id, **options):
        self.calls.append(("find_one_by_id", record_id, options))
        if record_id not in self.records:
            raise NotFoundError()
        return self.records[record_id]

    async def create(self, payload):
        self.calls.append(("create", payload))
        return payload

    async def update(self, record_id, payload):
        self.calls.append(("update", record_id, payload))
        return True

    async def soft_delete(self, record_id):
        self.calls.append(("soft_delete", record_id))
        return True

    async def register(self, payload):
        self.calls.append(("register", payload))
        return "token"

    async def login(self, email, password):
        self.calls.append(("login", email))
        return "token"

    async def change_password(self, user_id, current_password, new_password):
        self.calls.append(("change_password", user_id))
        return True

    async def change_email(self, user_id, password, email):
        self.calls.append(("change_email", user_id, email))
        return True

    async def revoke_tokens(self, user_id):
        self.calls.append(("revoke_tokens", user_id))
        return True


@pytest.fixture
def gate(lookup):
    return AccessGate(RoleAuthority(lookup))


def make_post(post_id, author):
    return Post(id=post_id, author=author, title="t", content="c", slug=f"post-{post_id}")


# =============================================================================
# Users
# =============================================================================


class TestUserService:
    @pytest.fixture
    def repo(self):
        return RecordingRepository()

    @pytest.fixture
    def users(self, repo, gate):
        return UserService(repo, gate)

    @pytest.mark.asyncio
    async def test_create_is_admin_only(self, users, repo):
        await users.create(ADMIN_ID, {"email": "x@x.com", "password": "pw"})

        with pytest.raises(ForbiddenError):
            await users.create(EDITOR_ID, {"email": "y@x.com", "password": "pw"})
        with pytest.raises(UnauthorizedError):
            await users.create(None, {"email": "z@x.com", "password": "pw"})

        assert len(repo.called("create")) == 1

    @pytest.mark.asyncio
    async def test_register_and_login_are_open(self, users, repo):
        assert await users.register({"email": "x@x.com", "password": "pw"}) == "token"
        assert await users.login("x@x.com", "pw") == "token"

    @pytest.mark.asyncio
    async def test_user_updates_own_profile(self, users, repo):
        assert await users.update(COMMENTER_ID, COMMENTER_ID, {"first_name": "Cy"})
        assert repo.called("update") == [("update", COMMENTER_ID, {"first_name": "Cy"})]

    @pytest.mark.asyncio
    async def test_user_cannot_update_others(self, users, repo):
        with pytest.raises(ForbiddenError):
            await users.update(EDITOR_ID, AUTHOR_ID, {"first_name": "X"})
        assert repo.called("update") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["role", "email", "password"])
    async def test_user_cannot_change_protected_fields(self, users, repo, field):
        with pytest.raises(ForbiddenError):
            await users.update(AUTHOR_ID, AUTHOR_ID, {field: "Admin"})
        assert repo.called("update") == []

    @pytest.mark.asyncio
    async def test_admin_updates_anyone(self, users, repo):
        assert await users.update(ADMIN_ID, AUTHOR_ID, {"role": "Editor"})

    @pytest.mark.asyncio
    async def test_update_needs_a_caller(self, users):
        with pytest.raises(UnauthorizedError):
            await users.update(None, AUTHOR_ID, {"first_name": "X"})

    @pytest.mark.asyncio
    async def test_delete_is_admin_only(self, users, repo):
        with pytest.raises(ForbiddenError):
            await users.delete(EDITOR_ID, AUTHOR_ID)
        assert await users.delete(ADMIN_ID, AUTHOR_ID)
        assert repo.called("soft_delete") == [("soft_delete", AUTHOR_ID)]

    @pytest.mark.asyncio
    async def test_self_service_acts_on_caller(self, users, repo):
        repo.records[AUTHOR_ID] = "me"

        assert await users.whoami(AUTHOR_ID) == "me"
        await users.change_password(AUTHOR_ID, "old", "new")
        await users.change_email(AUTHOR_ID, "pw", "new@x.com")
        await users.logout(AUTHOR_ID)

        assert repo.called("change_password") == [("change_password", AUTHOR_ID)]
        assert repo.called("change_email") == [("change_email", AUTHOR_ID, "new@x.com")]
        assert repo.called("revoke_tokens") == [("revoke_tokens", AUTHOR_ID)]

    @pytest.mark.asyncio
    async def test_self_service_needs_a_caller(self, users):
        with pytest.raises(UnauthorizedError):
            await users.whoami(None)
        with pytest.raises(UnauthorizedError):
            await users.logout(None)

    @pytest.mark.asyncio
    async def test_reads_are_public(self, users, repo):
        await users.search(None, {"search_text": "ann"}, limit=2)

        _, filters, options = repo.called("search")[0]
        assert filters == {"search_text": "ann"}
        assert options["paranoid"] is True
        assert options["limit"] == 2

    @pytest.mark.asyncio
    async def test_deleted_records_for_admins_only(self, users, repo):
        with pytest.raises(ForbiddenError):
            await users.search(EDITOR_ID, include_deleted=True)

        await users.search(ADMIN_ID, include_deleted=True)
        assert repo.called("search")[0][2]["paranoid"] is False


# =============================================================================
# Categories
# =============================================================================


class TestCategoryService:
    @pytest.fixture
    def repo(self):
        return RecordingRepository()

    @pytest.fixture
    def categories(self, repo, gate):
        return CategoryService(repo, gate)

    @pytest.mark.asyncio
    async def test_writes_are_admin_only(self, categories, repo):
        with pytest.raises(ForbiddenError):
            await categories.create(EDITOR_ID, {"name": "News"})
        with pytest.raises(ForbiddenError):
            await categories.update(AUTHOR_ID, 1, {"name": "News"})
        with pytest.raises(UnauthorizedError):
            await categories.delete(None, 1)

        await categories.create(ADMIN_ID, {"name": "News"})
        await categories.update(ADMIN_ID, 1, {"description": "d"})
        await categories.delete(ADMIN_ID, 1)
        assert [call[0] for call in repo.calls] == ["create", "update", "soft_delete"]

    @pytest.mark.asyncio
    async def test_find_is_public(self, categories, repo):
        repo.records[1] = "news"
        assert await categories.find(None, 1) == "news"


# =============================================================================
# Posts
# =============================================================================


class TestPostService:
    @pytest.fixture
    def repo(self):
        return RecordingRepository({
            1: make_post(1, AUTHOR_ID),
            2: make_post(2, OTHER_AUTHOR_ID),
        })

    @pytest.fixture
    def posts(self, repo, gate):
        return PostService(repo, gate)

    @pytest.mark.asyncio
    async def test_readers_only_see_published(self, posts, repo):
        await posts.search(None, {"published": False})
        await posts.search(COMMENTER_ID, {"published": None})

        assert [call[1]["published"] for call in repo.called("search")] == [True, True]

    @pytest.mark.asyncio
    async def test_authors_may_see_unpublished(self, posts, repo):
        await posts.search(AUTHOR_ID, {"published": False})
        await posts.search(EDITOR_ID, {"published": None})
        await posts.search(AUTHOR_ID)

        filters = [call[1] for call in repo.called("search")]
        assert filters[0]["published"] is False
        assert filters[1]["published"] is None
        assert "published" not in filters[2]

    @pytest.mark.asyncio
    async def test_find_visibility(self, posts, repo):
        await posts.find(None, 1)
        await posts.find(AUTHOR_ID, 1)

        published_only = [call[2]["published_only"] for call in repo.called("find_one_by_id")]
        assert published_only == [True, False]

    @pytest.mark.asyncio
    async def test_author_always_writes_as_self(self, posts, repo):
        await posts.create(AUTHOR_ID, {"title": "t", "author": OTHER_AUTHOR_ID})
        await posts.create(AUTHOR_ID, {"title": "t"})

        assert [call[1]["author"] for call in repo.called("create")] == [AUTHOR_ID, AUTHOR_ID]

    @pytest.mark.asyncio
    async def test_editor_may_attribute(self, posts, repo):
        await posts.create(EDITOR_ID, {"title": "t", "author": OTHER_AUTHOR_ID})
        await posts.create(EDITOR_ID, {"title": "t"})

        assert [call[1]["author"] for call in repo.called("create")] == [OTHER_AUTHOR_ID, EDITOR_ID]

    @pytest.mark.asyncio
    async def test_commenter_cannot_create(self, posts, repo):
        with pytest.raises(ForbiddenError):
            await posts.create(COMMENTER_ID, {"title": "t"})
        assert repo.called("create") == []

    @pytest.mark.asyncio
    async def test_author_edits_own_posts_only(self, posts, repo):
        assert await posts.update(AUTHOR_ID, 1, {"title": "new"})

        with pytest.raises(ForbiddenError):
            await posts.update(AUTHOR_ID, 2, {"title": "new"})
        with pytest.raises(ForbiddenError):
            await posts.update(AUTHOR_ID, 1, {"author": OTHER_AUTHOR_ID})

        assert repo.called("update") == [("update", 1, {"title": "new"})]

    @pytest.mark.asyncio
    async def test_editor_edits_any_post(self, posts, repo):
        assert await posts.update(EDITOR_ID, 2, {"author": AUTHOR_ID})
        assert repo.called("find_one_by_id") == []

    @pytest.mark.asyncio
    async def test_delete_is_admin_only(self, posts, repo):
        with pytest.raises(ForbiddenError):
            await posts.delete(EDITOR_ID, 1)
        assert await posts.delete(ADMIN_ID, 1)
