"""
tests/test_guards.py -- Unit tests for wordbank/guards.py.

Guards run against a real ListStore so membership lookups go through SQL,
but identities are plain auth.models.User objects (no tokens involved).
"""

from __future__ import annotations

import pytest

from auth.models import User
from core.errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from wordbank.guards import (
    duplicate_word_message,
    is_owned_by,
    membership_role,
    require_list_member,
    require_list_owner,
    require_list_visible,
    require_pending,
    require_quota,
    require_unique_word,
    require_word_owner,
    word_owner,
)
from wordbank.models import (
    STATUS_APPROVED,
    JoinRequest,
    ListMember,
    OwnerById,
    OwnerByLegacyName,
    Word,
    WordList,
)
from wordbank.store import ListStore

_DB_URL = "sqlite:///file:test_guards_unit?mode=memory&cache=shared&uri=true"

OWNER = User(id=1, name="Olive", name_lower="olive")
MEMBER = User(id=2, name="Max", name_lower="max")
STRANGER = User(id=3, name="Sam", name_lower="sam")


@pytest.fixture(scope="module")
def store():
    s = ListStore(db_url=_DB_URL)
    yield s
    s.close()


@pytest.fixture(scope="module")
def private_list(store) -> WordList:
    list_id = store.create_list(WordList(name="Private", owner_id=OWNER.id, is_public=False)).value
    store.add_member(ListMember(list_id=list_id, user_id=MEMBER.id))
    return store.get_list(list_id)


@pytest.fixture(scope="module")
def public_list(store) -> WordList:
    list_id = store.create_list(WordList(name="Public", owner_id=OWNER.id)).value
    return store.get_list(list_id)


def _word(text: str, owner_id=None, name: str = "olive", list_id=None) -> Word:
    return Word(word=text, word_lower=text.lower(), name=name, name_lower=name.lower(), owner_id=owner_id, list_id=list_id)


class TestMembershipRole:
    def test_roles(self, store, private_list):
        assert membership_role(store, private_list, OWNER) == "owner"
        assert membership_role(store, private_list, MEMBER) == "member"
        assert membership_role(store, private_list, STRANGER) is None
        assert membership_role(store, private_list, None) is None


class TestListVisibility:
    def test_public_list_visible_to_anyone(self, store, public_list):
        assert require_list_visible(store, public_list, None) is None
        assert require_list_visible(store, public_list, STRANGER) is None
        assert require_list_visible(store, public_list, OWNER) == "owner"

    def test_private_list_anonymous_is_401(self, store, private_list):
        with pytest.raises(AuthenticationError):
            require_list_visible(store, private_list, None)

    def test_private_list_stranger_is_403(self, store, private_list):
        with pytest.raises(AuthorizationError) as exc:
            require_list_visible(store, private_list, STRANGER)
        assert exc.value.message == "Access denied to this list"

    def test_private_list_member_sees_role(self, store, private_list):
        assert require_list_visible(store, private_list, MEMBER) == "member"


class TestOwnerAndMember:
    def test_require_list_owner(self, private_list):
        require_list_owner(private_list, OWNER, "nope")
        with pytest.raises(AuthorizationError) as exc:
            require_list_owner(private_list, MEMBER, "Only the list owner can do that")
        assert exc.value.message == "Only the list owner can do that"

    def test_require_list_member(self, store, private_list, public_list):
        assert require_list_member(store, private_list, MEMBER) == "member"
        assert require_list_member(store, private_list, OWNER) == "owner"
        # being public does not make someone a member
        with pytest.raises(AuthorizationError):
            require_list_member(store, public_list, STRANGER)


class TestPending:
    def test_pending_passes(self):
        require_pending(JoinRequest(list_id=1, user_id=2))

    def test_decided_request_rejected(self):
        with pytest.raises(ValidationError) as exc:
            require_pending(JoinRequest(list_id=1, user_id=2, status=STATUS_APPROVED))
        assert exc.value.message == "Request has already been processed"


class TestWordOwnership:
    def test_owner_by_id(self):
        owner = word_owner(_word("a", owner_id=1, name="someone-else"))
        assert owner == OwnerById(1)
        assert is_owned_by(owner, OWNER)
        assert not is_owned_by(owner, User(id=9, name="someone-else", name_lower="someone-else"))

    def test_legacy_name_ownership(self):
        owner = word_owner(_word("a", owner_id=None, name="Olive"))
        assert owner == OwnerByLegacyName("olive")
        assert is_owned_by(owner, OWNER)
        assert not is_owned_by(owner, MEMBER)

    def test_require_word_owner(self):
        require_word_owner(_word("a", owner_id=MEMBER.id), MEMBER)
        with pytest.raises(AuthorizationError) as exc:
            require_word_owner(_word("a", owner_id=MEMBER.id), STRANGER)
        assert exc.value.message == "You can only modify your own words"
        with pytest.raises(AuthorizationError) as exc:
            require_word_owner(_word("a", owner_id=MEMBER.id), STRANGER, "You can only delete your own words")
        assert exc.value.message == "You can only delete your own words"


class TestSubmissionRules:
    def test_quota_counts_only_this_users_words_in_scope(self, store):
        store.create_word(_word("q1", owner_id=STRANGER.id, name="Sam", list_id=50))
        store.create_word(_word("q2", owner_id=None, name="sam", list_id=50))
        store.create_word(_word("q3", owner_id=MEMBER.id, name="Max", list_id=50))

        require_quota(store, STRANGER, 50, limit=3)
        with pytest.raises(AuthorizationError) as exc:
            require_quota(store, STRANGER, 50, limit=2)
        assert exc.value.message == "Submission limit reached (2) for this user in this list"

    def test_quota_global_message(self, store):
        store.create_word(_word("g1", owner_id=STRANGER.id, name="Sam", list_id=None))
        with pytest.raises(AuthorizationError) as exc:
            require_quota(store, STRANGER, None, limit=1)
        assert exc.value.message == "Submission limit reached (1) for this user in the global list"

    def test_unique_word(self, store):
        wid = store.create_word(_word("Unique", owner_id=1, list_id=60)).value
        with pytest.raises(ConflictError) as exc:
            require_unique_word(store, "unique", 60)
        assert exc.value.message == "Word already exists in this list"
        require_unique_word(store, "unique", 61)
        require_unique_word(store, "unique", 60, exclude_id=wid)

    def test_duplicate_word_message(self):
        assert duplicate_word_message(5) == "Word already exists in this list"
        assert duplicate_word_message(None) == "Word already exists"
