"""
api/routes/v1/words.py -- Word submission, browsing and editing.

Routes:
  GET    /api/v1/words          -- ?list_id= feed, member feed, or ?global=true
  POST   /api/v1/words          -- submit a word (membership, quota, duplicate checks)
  POST   /api/v1/words/search   -- the caller's own canonical words
  GET    /api/v1/words/{id}     -- one word (list visibility applies)
  PATCH  /api/v1/words/{id}     -- edit own word
  DELETE /api/v1/words/{id}     -- delete own word

Scopes: a word belongs to one list, or to the global scope when list_id is
null. Within a scope the canonical rows (duplicate_of null) are unique by
lower-cased text, and each user holds at most WORD_SUBMISSION_LIMIT of them.

Submission order of checks: identity -> list exists -> membership -> quota ->
duplicate pre-check -> insert. The unique index decides a race that slips
past the pre-check; the loser sees the same 409.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import MAX_PAGE_SIZE, WordCreate, WordResponse, WordRow, WordSearch, WordsResponse, WordUpdate
from auth.dependencies import get_current_user, resolve_identity, try_get_current_user
from auth.models import User
from core.config import get_settings
from core.errors import NotFoundError
from wordbank.guards import (
    duplicate_word_message,
    require_list_member,
    require_list_visible,
    require_quota,
    require_unique_word,
    require_word_owner,
)
from wordbank.models import Word
from wordbank.store import ListStore

logger = logging.getLogger("wordlists.api")

# Auth policy:
# - GET    /words, /words/{id}:             optional auth; private lists need membership
# - POST   /words, /words/search,
#   PATCH  /words/{id}:                     token or body credentials (resolve_identity)
# - DELETE /words/{id}:                     requires auth (get_current_user)
router = APIRouter()


def _word_or_404(store: ListStore, word_id: int) -> Word:
    word = store.get_word(word_id)
    if word is None:
        raise NotFoundError("Word not found")
    return word


@router.get("/words", response_model=WordsResponse)
def list_words(
    request: Request,
    list_id: Optional[int] = None,
    global_scope: bool = Query(default=False, alias="global"),
    name: Optional[str] = Query(default=None, max_length=50),
    q: Optional[str] = Query(default=None, max_length=20),
    limit: int = Query(default=100, ge=1),
    offset: int = Query(default=0, ge=0),
    current_user: Optional[User] = Depends(try_get_current_user),
) -> WordsResponse:
    """Canonical words, newest first.

    ?list_id=N     -- that list's words (private lists need membership)
    ?global=true   -- words in the global scope
    neither        -- words from every list the caller belongs to; empty when anonymous

    limit is capped at 1000.
    """
    store: ListStore = request.app.state.list_store
    filters = dict(name=name or None, q=q or None, limit=min(limit, MAX_PAGE_SIZE), offset=offset)

    if list_id is not None:
        wl = store.get_list(list_id)
        if wl is None:
            raise NotFoundError("List not found")
        require_list_visible(store, wl, current_user)
        words = store.list_words(list_ids=[list_id], **filters)
    elif global_scope:
        words = store.list_words(global_scope=True, **filters)
    elif current_user is not None:
        words = store.list_words(list_ids=store.member_list_ids(current_user.id), **filters)
    else:
        words = []
    return WordsResponse(items=[WordRow.from_word(w) for w in words])


@router.post("/words", response_model=WordResponse, status_code=201)
def create_word(request: Request, body: WordCreate) -> WordResponse:
    """Submit a word into a list, or into the global scope when list_id is omitted."""
    user = resolve_identity(request, body.credentials(), require_auth=True)
    store: ListStore = request.app.state.list_store

    if body.list_id is not None:
        wl = store.get_list(body.list_id)
        if wl is None:
            raise NotFoundError("List not found")
        require_list_member(store, wl, user)

    require_quota(store, user, body.list_id, get_settings().word_submission_limit)

    word_lower = body.word.lower()
    require_unique_word(store, word_lower, body.list_id)

    result = store.create_word(
        Word(
            word=body.word,
            word_lower=word_lower,
            name=user.name,
            name_lower=user.name_lower,
            owner_id=user.id,
            list_id=body.list_id,
        )
    )
    if not result.ok:
        raise result.as_error(duplicate_word_message(body.list_id), "Insert failed")

    logger.info("Word %s added to list %s by user_id=%s", result.value, body.list_id, user.id)
    return WordResponse(item=WordRow.from_word(store.get_word(result.value)))


@router.post("/words/search", response_model=WordsResponse)
def search_own_words(request: Request, body: Optional[WordSearch] = None) -> WordsResponse:
    """Return every canonical word the caller owns, across all scopes."""
    body = body or WordSearch()
    user = resolve_identity(request, body.credentials(), require_auth=True)
    store: ListStore = request.app.state.list_store
    words = store.words_by_owner(user.id, user.name_lower)
    return WordsResponse(items=[WordRow.from_word(w) for w in words])


@router.get("/words/{word_id}", response_model=WordResponse)
def get_word(
    request: Request,
    word_id: int,
    current_user: Optional[User] = Depends(try_get_current_user),
) -> WordResponse:
    store: ListStore = request.app.state.list_store
    word = _word_or_404(store, word_id)
    if word.list_id is not None:
        wl = store.get_list(word.list_id)
        # A word whose list is gone has no visibility to check against.
        if wl is None:
            raise NotFoundError("Word not found")
        require_list_visible(store, wl, current_user)
    return WordResponse(item=WordRow.from_word(word))


@router.patch("/words/{word_id}", response_model=WordResponse)
def update_word(request: Request, word_id: int, body: WordUpdate) -> WordResponse:
    """Change the text of one of your own words.

    Changing only the letter case never collides with the word itself.
    """
    user = resolve_identity(request, body.credentials(), require_auth=True)
    store: ListStore = request.app.state.list_store
    word = _word_or_404(store, word_id)
    require_word_owner(word, user)

    word_lower = body.word.lower()
    require_unique_word(store, word_lower, word.list_id, exclude_id=word.id)

    result = store.update_word_text(word.id, body.word, word_lower)
    if not result.ok:
        raise result.as_error(duplicate_word_message(word.list_id), "Update failed")
    return WordResponse(item=WordRow.from_word(store.get_word(word.id)))


@router.delete("/words/{word_id}", status_code=204)
def delete_word(
    request: Request,
    word_id: int,
    current_user: User = Depends(get_current_user),
) -> Response:
    store: ListStore = request.app.state.list_store
    word = _word_or_404(store, word_id)
    require_word_owner(word, current_user)
    store.delete_word(word.id)
    return Response(status_code=204)
