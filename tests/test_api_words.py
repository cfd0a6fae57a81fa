"""
tests/test_api_words.py -- Integration tests for /api/v1/words/*.

Covers:
  - submission: membership required, word validation, global scope
  - quota: the 21st canonical word in a scope is 403 and writes nothing
  - duplicates: case-insensitive per scope -> 409, other scopes unaffected;
    a write that loses the race past the pre-check gets the same 409
  - deleting a list takes its words along; a new list never inherits them
  - browsing: list feed, member feed, global feed, filters, limit cap
  - visibility of private-list words for anonymous and non-members
  - editing and deleting: own words only
  - body credentials in place of a token, and the strict/lenient token policy
"""

from __future__ import annotations

import pytest

from core.config import get_settings
from wordbank.models import Word


@pytest.fixture(scope="module")
def owner(make_user):
    return make_user("Wordsmith")


@pytest.fixture(scope="module")
def member(make_user):
    return make_user("Helper")


@pytest.fixture(scope="module")
def outsider(make_user):
    return make_user("Passerby")


def _create_list(client, user, name: str, **fields) -> int:
    resp = client.post("/api/v1/lists", json={"name": name, **fields}, headers=user.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["list"]["id"]


def _submit(client, user, word: str, list_id=None, **extra):
    payload = {"word": word, **extra}
    if list_id is not None:
        payload["list_id"] = list_id
    return client.post("/api/v1/words", json=payload, headers=user.headers if user else None)


class TestSubmit:
    def test_owner_submits_word(self, client, owner):
        list_id = _create_list(client, owner, "Submissions")
        resp = _submit(client, owner, "  Banana ", list_id)
        assert resp.status_code == 201
        item = resp.json()["item"]
        assert item["word"] == "Banana"
        assert item["name"] == "Wordsmith"
        assert item["owner_id"] == owner.id
        assert item["list_id"] == list_id

    def test_non_member_cannot_submit(self, client, owner, outsider):
        list_id = _create_list(client, owner, "Members only")
        resp = _submit(client, outsider, "intruder", list_id)
        assert resp.status_code == 403
        assert resp.json()["error"]["message"] == "Access denied to this list"

    def test_member_can_submit(self, client, owner, member):
        list_id = _create_list(client, owner, "Team words")
        client.post(f"/api/v1/lists/{list_id}/join", headers=member.headers)
        assert _submit(client, member, "teamwork", list_id).status_code == 201

    def test_unknown_list_is_404(self, client, owner):
        resp = _submit(client, owner, "lost", 999999)
        assert resp.status_code == 404

    def test_anonymous_is_401(self, client, owner):
        list_id = _create_list(client, owner, "No anon")
        resp = _submit(client, None, "anon", list_id)
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Authentication required"

    @pytest.mark.parametrize(
        "word, message",
        [
            ("   ", "Empty word"),
            ("a" * 21, "Word must be 20 characters or fewer"),
            ("two words", "Only letters, numbers, hyphen and underscore allowed"),
            ("semi;colon", "Only letters, numbers, hyphen and underscore allowed"),
        ],
    )
    def test_invalid_words_rejected(self, client, owner, word, message):
        resp = _submit(client, owner, word)
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == message

    def test_hyphen_underscore_and_unicode_allowed(self, client, owner):
        list_id = _create_list(client, owner, "Charset")
        for word in ("well-known", "snake_case", "café"):
            assert _submit(client, owner, word, list_id).status_code == 201

    def test_global_scope_when_list_id_omitted(self, client, make_user):
        user = make_user("Globetrotter")
        resp = _submit(client, user, "worldwide")
        assert resp.status_code == 201
        assert resp.json()["item"]["list_id"] is None


class TestQuota:
    def test_twenty_first_word_is_403_and_not_stored(self, client, stores, make_user):
        _, list_store = stores
        user = make_user("Prolific")
        list_id = _create_list(client, user, "Quota")
        limit = get_settings().word_submission_limit

        for i in range(limit):
            assert _submit(client, user, f"word{i}", list_id).status_code == 201

        resp = _submit(client, user, "overflow", list_id)
        assert resp.status_code == 403
        assert resp.json()["error"]["message"] == f"Submission limit reached ({limit}) for this user in this list"
        assert list_store.count_list_words(list_id) == limit
        assert list_store.find_canonical_word("overflow", list_id) is None

    def test_quota_is_per_scope(self, client, make_user, monkeypatch):
        monkeypatch.setattr(get_settings(), "word_submission_limit", 1)
        user = make_user("Scoped")
        first = _create_list(client, user, "Scope one")
        second = _create_list(client, user, "Scope two")

        assert _submit(client, user, "only", first).status_code == 201
        assert _submit(client, user, "again", first).status_code == 403
        assert _submit(client, user, "only", second).status_code == 201


class TestDuplicates:
    def test_case_insensitive_duplicate_is_409(self, client, owner, member):
        list_id = _create_list(client, owner, "Apples")
        client.post(f"/api/v1/lists/{list_id}/join", headers=member.headers)

        assert _submit(client, owner, "Apple", list_id).status_code == 201
        resp = _submit(client, member, "apple", list_id)
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Word already exists in this list"

    def test_same_word_in_another_list(self, client, owner):
        a = _create_list(client, owner, "Orchard A")
        b = _create_list(client, owner, "Orchard B")
        assert _submit(client, owner, "Cherry", a).status_code == 201
        assert _submit(client, owner, "cherry", b).status_code == 201

    def test_global_duplicate_message(self, client, make_user):
        first = make_user("EarlyBird")
        second = make_user("LateBird")
        assert _submit(client, first, "Sunrise").status_code == 201
        resp = _submit(client, second, "SUNRISE")
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Word already exists"

    def test_submit_race_loser_gets_same_409(self, client, stores, owner, monkeypatch):
        _, list_store = stores
        list_id = _create_list(client, owner, "Racing pears")
        assert _submit(client, owner, "Pear", list_id).status_code == 201

        monkeypatch.setattr(list_store, "find_canonical_word", lambda *args, **kwargs: None)
        resp = _submit(client, owner, "PEAR", list_id)
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Word already exists in this list"
        assert list_store.count_list_words(list_id) == 1

    def test_edit_race_loser_gets_same_409(self, client, stores, owner, monkeypatch):
        _, list_store = stores
        list_id = _create_list(client, owner, "Racing edits")
        _submit(client, owner, "taken", list_id)
        word_id = _submit(client, owner, "free", list_id).json()["item"]["id"]

        monkeypatch.setattr(list_store, "find_canonical_word", lambda *args, **kwargs: None)
        resp = client.patch(f"/api/v1/words/{word_id}", json={"word": "Taken"}, headers=owner.headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Word already exists in this list"
        assert list_store.get_word(word_id).word == "free"


class TestBrowse:
    @pytest.fixture(scope="class")
    def feed(self, api_client, make_user):
        """A public list with three words by two users."""
        alice = make_user("FeedAlice")
        bob = make_user("FeedBob")
        list_id = _create_list(api_client, alice, "Feed")
        api_client.post(f"/api/v1/lists/{list_id}/join", headers=bob.headers)
        for user, word in [(alice, "alpha"), (bob, "beta"), (alice, "alps")]:
            assert _submit(api_client, user, word, list_id).status_code == 201
        return list_id, alice, bob

    def test_list_feed_newest_first(self, client, feed):
        list_id, _, _ = feed
        items = client.get("/api/v1/words", params={"list_id": list_id}).json()["items"]
        assert [w["word"] for w in items] == ["alps", "beta", "alpha"]

    def test_filters(self, client, feed):
        list_id, _, _ = feed
        by_name = client.get("/api/v1/words", params={"list_id": list_id, "name": "feedbob"}).json()["items"]
        assert [w["word"] for w in by_name] == ["beta"]
        by_text = client.get("/api/v1/words", params={"list_id": list_id, "q": "AL"}).json()["items"]
        assert [w["word"] for w in by_text] == ["alps", "alpha"]

    def test_pagination(self, client, feed):
        list_id, _, _ = feed
        page = client.get("/api/v1/words", params={"list_id": list_id, "limit": 1, "offset": 1}).json()["items"]
        assert [w["word"] for w in page] == ["beta"]

    def test_limit_above_cap_is_clamped(self, client, feed):
        list_id, _, _ = feed
        resp = client.get("/api/v1/words", params={"list_id": list_id, "limit": 5000})
        assert resp.status_code == 200
        assert len(resp.json()["items"]) == 3

    def test_zero_limit_is_400(self, client, feed):
        list_id, _, _ = feed
        assert client.get("/api/v1/words", params={"list_id": list_id, "limit": 0}).status_code == 400

    def test_member_feed(self, client, feed):
        list_id, _, bob = feed
        items = client.get("/api/v1/words", headers=bob.headers).json()["items"]
        assert {w["word"] for w in items} >= {"alpha", "beta", "alps"}
        assert all(w["list_id"] is not None for w in items)

    def test_anonymous_default_feed_is_empty(self, client, feed):
        assert client.get("/api/v1/words").json()["items"] == []

    def test_global_feed(self, client, make_user):
        user = make_user("GlobalFeeder")
        _submit(client, user, "everywhere")
        items = client.get("/api/v1/words", params={"global": "true"}).json()["items"]
        assert "everywhere" in [w["word"] for w in items]
        assert all(w["list_id"] is None for w in items)


class TestPrivateWords:
    @pytest.fixture(scope="class")
    def secret_word(self, api_client, make_user):
        keeper = make_user("Keeper")
        list_id = _create_list(api_client, keeper, "Vault", is_public=False)
        word_id = _submit(api_client, keeper, "hidden", list_id).json()["item"]["id"]
        return list_id, word_id, keeper

    def test_anonymous_gets_401(self, client, secret_word):
        list_id, word_id, _ = secret_word
        assert client.get("/api/v1/words", params={"list_id": list_id}).status_code == 401
        assert client.get(f"/api/v1/words/{word_id}").status_code == 401

    def test_non_member_gets_403(self, client, outsider, secret_word):
        list_id, word_id, _ = secret_word
        assert client.get("/api/v1/words", params={"list_id": list_id}, headers=outsider.headers).status_code == 403
        assert client.get(f"/api/v1/words/{word_id}", headers=outsider.headers).status_code == 403

    def test_owner_reads(self, client, secret_word):
        _, word_id, keeper = secret_word
        resp = client.get(f"/api/v1/words/{word_id}", headers=keeper.headers)
        assert resp.status_code == 200
        assert resp.json()["item"]["word"] == "hidden"

    def test_unknown_word_is_404(self, client):
        assert client.get("/api/v1/words/999999").status_code == 404


class TestDeletedList:
    def test_new_list_starts_empty_after_delete(self, client, make_user):
        first_owner = make_user("Departing")
        newcomer = make_user("Newcomer")
        old_id = _create_list(client, first_owner, "Short lived")
        old_word = _submit(client, first_owner, "secretword", old_id).json()["item"]["id"]
        assert client.delete(f"/api/v1/lists/{old_id}", headers=first_owner.headers).status_code == 204

        new_id = _create_list(client, newcomer, "Fresh", is_public=False)
        assert new_id != old_id
        feed = client.get("/api/v1/words", params={"list_id": new_id}, headers=newcomer.headers).json()["items"]
        assert feed == []
        detail = client.get(f"/api/v1/lists/{new_id}", headers=newcomer.headers).json()["list"]
        assert detail["word_count"] == 0
        assert _submit(client, newcomer, "secretword", new_id).status_code == 201
        assert client.get(f"/api/v1/words/{old_word}").status_code == 404

    def test_word_without_its_list_is_404(self, client, stores):
        _, list_store = stores
        orphan = list_store.create_word(
            Word(word="stray", word_lower="stray", name="Nobody", name_lower="nobody", owner_id=None, list_id=987654)
        ).value
        assert client.get(f"/api/v1/words/{orphan}").status_code == 404


class TestEditDelete:
    def test_edit_own_word(self, client, owner):
        list_id = _create_list(client, owner, "Editable")
        word_id = _submit(client, owner, "colour", list_id).json()["item"]["id"]

        resp = client.patch(f"/api/v1/words/{word_id}", json={"word": "color"}, headers=owner.headers)
        assert resp.status_code == 200
        assert resp.json()["item"]["word"] == "color"

    def test_case_only_change_is_allowed(self, client, owner):
        list_id = _create_list(client, owner, "Casing")
        word_id = _submit(client, owner, "paris", list_id).json()["item"]["id"]
        resp = client.patch(f"/api/v1/words/{word_id}", json={"word": "Paris"}, headers=owner.headers)
        assert resp.status_code == 200

    def test_edit_into_duplicate_is_409(self, client, owner):
        list_id = _create_list(client, owner, "Collide")
        _submit(client, owner, "first", list_id)
        word_id = _submit(client, owner, "second", list_id).json()["item"]["id"]
        resp = client.patch(f"/api/v1/words/{word_id}", json={"word": "FIRST"}, headers=owner.headers)
        assert resp.status_code == 409

    def test_cannot_edit_or_delete_others_words(self, client, owner, member):
        list_id = _create_list(client, owner, "Hands off")
        client.post(f"/api/v1/lists/{list_id}/join", headers=member.headers)
        word_id = _submit(client, owner, "mine", list_id).json()["item"]["id"]

        edit = client.patch(f"/api/v1/words/{word_id}", json={"word": "yours"}, headers=member.headers)
        assert edit.status_code == 403
        assert edit.json()["error"]["message"] == "You can only modify your own words"
        assert client.delete(f"/api/v1/words/{word_id}", headers=member.headers).status_code == 403

    def test_delete_own_word(self, client, owner):
        list_id = _create_list(client, owner, "Deletable")
        word_id = _submit(client, owner, "ephemeral", list_id).json()["item"]["id"]

        assert client.delete(f"/api/v1/words/{word_id}", headers=owner.headers).status_code == 204
        assert client.get(f"/api/v1/words/{word_id}").status_code == 404

    def test_delete_requires_auth(self, client, owner):
        word_id = _submit(client, owner, "sticky").json()["item"]["id"]
        assert client.delete(f"/api/v1/words/{word_id}").status_code == 401


class TestBodyCredentials:
    def test_submit_with_credentials_instead_of_token(self, client, make_user):
        user = make_user("NoToken", "pass1234")
        resp = client.post("/api/v1/words", json={"word": "credentialed", **user.credentials})
        assert resp.status_code == 201
        assert resp.json()["item"]["owner_id"] == user.id

    def test_wrong_credentials_are_401(self, client, make_user):
        user = make_user("BadPair", "pass1234")
        resp = client.post("/api/v1/words", json={"word": "nope", "name": user.name, "password": "wrong-pw"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid credentials"

    def test_search_own_words(self, client, make_user):
        user = make_user("Searcher", "pass1234")
        list_id = _create_list(client, user, "Search mine")
        _submit(client, user, "findme", list_id)
        _submit(client, user, "globalfind")

        by_token = client.post("/api/v1/words/search", headers=user.headers).json()["items"]
        assert {w["word"] for w in by_token} == {"findme", "globalfind"}

        by_body = client.post("/api/v1/words/search", json=user.credentials).json()["items"]
        assert {w["word"] for w in by_body} == {"findme", "globalfind"}

    def test_search_anonymous_is_401(self, client):
        assert client.post("/api/v1/words/search").status_code == 401

    def test_rejected_token_does_not_fall_back_by_default(self, client, make_user):
        user = make_user("Strict", "pass1234")
        resp = client.post(
            "/api/v1/words",
            json={"word": "strictly", **user.credentials},
            headers={"Authorization": "Bearer garbage"},
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid or expired token"

    def test_rejected_token_falls_back_when_lenient(self, client, make_user, monkeypatch):
        monkeypatch.setattr(get_settings(), "credential_fallback_on_invalid_token", True)
        user = make_user("Lenient", "pass1234")
        resp = client.post(
            "/api/v1/words",
            json={"word": "leniently", **user.credentials},
            headers={"Authorization": "Bearer garbage"},
        )
        assert resp.status_code == 201
        assert resp.json()["item"]["owner_id"] == user.id

    def test_revoked_token_with_credentials_is_401(self, client, make_user):
        user = make_user("Revoked", "pass1234")
        client.post("/api/v1/auth/logout", headers=user.headers)
        resp = client.post("/api/v1/words", json={"word": "afterlogout", **user.credentials}, headers=user.headers)
        assert resp.status_code == 401
