"""
api/routes/v1/lists.py -- Word lists, membership and join requests.

Routes:
  POST   /api/v1/lists                           -- create a list (caller becomes owner)
  GET    /api/v1/lists                           -- mine / ?public=true / ?discover=true&search=
  GET    /api/v1/lists/{id}                      -- detail, counts and the caller's role
  PATCH  /api/v1/lists/{id}                      -- update (owner only)
  DELETE /api/v1/lists/{id}                      -- delete with members and requests (owner only)
  POST   /api/v1/lists/{id}/join                 -- join, password join, or request to join
  POST   /api/v1/lists/{id}/leave                -- leave (the owner cannot)
  GET    /api/v1/lists/{id}/members              -- members (visibility guard)
  POST   /api/v1/lists/{id}/members              -- add a member (owner only)
  GET    /api/v1/lists/{id}/requests             -- join requests, newest first (owner only)
  PATCH  /api/v1/lists/{id}/requests/{rid}       -- approve or reject once (owner only)

An unknown list id is a 404 before any ownership or visibility check.

Private lists:
  A private list with a join password admits anyone who supplies it. Without
  a password (or when the list has none) POST /join files a join request the
  owner decides on. A wrong password is 403 and files nothing.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import (
    DiscoverResponse,
    JoinBody,
    JoinRequestDecision,
    JoinRequestRow,
    JoinRequestsResponse,
    JoinResponse,
    ListCreate,
    ListDetail,
    ListDetailResponse,
    ListOut,
    ListResponse,
    ListsResponse,
    ListSummary,
    ListUpdate,
    MemberAdd,
    MemberRow,
    MembersResponse,
    MessageResponse,
)
from auth.dependencies import get_current_user, resolve_identity, try_get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password, verify_password
from core.config import get_settings
from core.errors import AuthenticationError, AuthorizationError, NotFoundError, StoreResult, ValidationError
from wordbank.guards import require_list_owner, require_list_visible, require_pending
from wordbank.models import ROLE_MEMBER, JoinRequest, ListMember, WordList
from wordbank.store import ListStore

logger = logging.getLogger("wordlists.api")

# Auth policy:
# - POST   /lists, PATCH/DELETE /lists/{id}, join, leave, POST members,
#   GET requests:                      requires auth (get_current_user)
# - PATCH  /lists/{id}/requests/{rid}: token or body credentials (resolve_identity)
# - GET    /lists, /lists/{id}, /lists/{id}/members: optional auth
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _list_or_404(store: ListStore, list_id: int) -> WordList:
    wl = store.get_list(list_id)
    if wl is None:
        raise NotFoundError("List not found")
    return wl


def _add_membership(store: ListStore, list_id: int, user_id: int, already_message: str) -> None:
    """Insert a member row; a concurrent duplicate gets the same 400 as the pre-check."""
    result = store.add_member(ListMember(list_id=list_id, user_id=user_id, role=ROLE_MEMBER))
    if result.is_conflict:
        raise ValidationError(already_message)
    if not result.ok:
        raise result.as_error(already_message, "Failed to join list")


def _raise_on_failure(result: StoreResult, upstream_message: str) -> None:
    if not result.ok:
        raise result.as_error(upstream_message, upstream_message)


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


@router.post("/lists", response_model=ListResponse, status_code=201)
def create_list(
    request: Request,
    body: ListCreate,
    current_user: User = Depends(get_current_user),
) -> ListResponse:
    """Create a list. The creator becomes its owner and first member."""
    store: ListStore = request.app.state.list_store

    password_hash = None
    if body.password:
        password_hash = hash_password(body.password, get_settings().list_password_rounds)

    wl = WordList(
        name=body.name,
        owner_id=current_user.id,
        description=body.description,
        is_public=body.is_public,
        password_hash=password_hash,
        custom_title=body.custom_title,
        custom_subtitle=body.custom_subtitle,
    )
    result = store.create_list(wl)
    _raise_on_failure(result, "Failed to create list")

    logger.info("List %s created by user_id=%s", result.value, current_user.id)
    return ListResponse(list=ListOut.from_list(store.get_list(result.value)))


@router.get("/lists", response_model=Union[ListsResponse, DiscoverResponse])
def list_lists(
    request: Request,
    public: bool = False,
    discover: bool = False,
    search: Optional[str] = Query(default=None, max_length=100),
    current_user: Optional[User] = Depends(try_get_current_user),
) -> Union[ListsResponse, DiscoverResponse]:
    """Three views of the list catalogue.

    default          -- lists the caller owns or belongs to (public lists when anonymous)
    ?public=true     -- every public list, optionally filtered by ?search=
    ?discover=true   -- lists the caller could join; summary fields only
    """
    store: ListStore = request.app.state.list_store
    search = (search or "").strip() or None

    if discover:
        if current_user is None:
            raise AuthenticationError("Authentication required")
        candidates = store.discoverable_lists(current_user.id, search)
        return DiscoverResponse(lists=[ListSummary.from_list(wl) for wl in candidates])

    if public or current_user is None:
        lists = store.public_lists(search)
    else:
        lists = store.lists_for_user(current_user.id)
    return ListsResponse(lists=[ListOut.from_list(wl) for wl in lists])


@router.get("/lists/{list_id}", response_model=ListDetailResponse)
def get_list(
    request: Request,
    list_id: int,
    current_user: Optional[User] = Depends(try_get_current_user),
) -> ListDetailResponse:
    """List detail. Private lists: 401 anonymous, 403 for non-members."""
    store: ListStore = request.app.state.list_store
    wl = _list_or_404(store, list_id)
    role = require_list_visible(store, wl, current_user)

    detail = ListDetail(
        **ListOut.from_list(wl).model_dump(),
        member_count=store.count_members(wl.id),
        word_count=store.count_list_words(wl.id),
        is_owner=current_user is not None and wl.owner_id == current_user.id,
        is_member=role is not None,
        membership_role=role,
    )
    return ListDetailResponse(list=detail)


@router.patch("/lists/{list_id}", response_model=ListResponse)
def update_list(
    request: Request,
    list_id: int,
    body: ListUpdate,
    current_user: User = Depends(get_current_user),
) -> ListResponse:
    """Update the fields present in the body. Owner only."""
    store: ListStore = request.app.state.list_store
    wl = _list_or_404(store, list_id)
    require_list_owner(wl, current_user, "Only owner can update list")

    updates = body.model_dump(exclude_unset=True)
    if "name" in updates and updates["name"] is None:
        raise ValidationError("List name is required")
    if updates.get("is_public", False) is None:
        del updates["is_public"]
    if "password" in updates:
        password = updates.pop("password")
        updates["password_hash"] = (
            hash_password(password, get_settings().list_password_rounds) if password else None
        )
    if not updates:
        raise ValidationError("No fields to update")

    result = store.update_list(list_id, **updates)
    _raise_on_failure(result, "Failed to update list")
    return ListResponse(list=ListOut.from_list(store.get_list(list_id)))


@router.delete("/lists/{list_id}", status_code=204)
def delete_list(
    request: Request,
    list_id: int,
    current_user: User = Depends(get_current_user),
) -> Response:
    """Delete a list together with its memberships and join requests. Owner only."""
    store: ListStore = request.app.state.list_store
    wl = _list_or_404(store, list_id)
    require_list_owner(wl, current_user, "Only owner can delete list")

    result = store.delete_list(list_id)
    _raise_on_failure(result, "Failed to delete list")
    logger.info("List %s deleted by user_id=%s", list_id, current_user.id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@router.post("/lists/{list_id}/join", response_model=JoinResponse)
def join_list(
    request: Request,
    list_id: int,
    body: Optional[JoinBody] = None,
    current_user: User = Depends(get_current_user),
) -> JoinResponse:
    """Join a public list, join a private list by password, or file a join request."""
    store: ListStore = request.app.state.list_store
    body = body or JoinBody()
    wl = _list_or_404(store, list_id)

    if wl.owner_id == current_user.id or store.get_membership(list_id, current_user.id) is not None:
        raise ValidationError("Already a member of this list")
    if store.get_pending_request(list_id, current_user.id) is not None:
        raise ValidationError("Join request already pending")

    if not wl.is_public:
        if not (body.password and wl.password_hash):
            result = store.create_join_request(
                JoinRequest(list_id=list_id, user_id=current_user.id, message=body.message)
            )
            if result.is_conflict:
                raise ValidationError("Join request already pending")
            _raise_on_failure(result, "Failed to create join request")
            return JoinResponse(status="requested", message="Join request sent to list owner")
        if not verify_password(body.password, wl.password_hash):
            raise AuthorizationError("Invalid password")

    _add_membership(store, list_id, current_user.id, "Already a member of this list")
    return JoinResponse(status="joined", message="Successfully joined the list")


@router.post("/lists/{list_id}/leave", response_model=MessageResponse)
def leave_list(
    request: Request,
    list_id: int,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    store: ListStore = request.app.state.list_store
    wl = _list_or_404(store, list_id)

    if store.get_membership(list_id, current_user.id) is None:
        raise ValidationError("Not a member of this list")
    if wl.owner_id == current_user.id:
        raise ValidationError("Owner cannot leave the list. Delete it instead.")

    store.remove_member(list_id, current_user.id)
    return MessageResponse(message="Successfully left the list")


@router.get("/lists/{list_id}/members", response_model=MembersResponse)
def list_members(
    request: Request,
    list_id: int,
    current_user: Optional[User] = Depends(try_get_current_user),
) -> MembersResponse:
    store: ListStore = request.app.state.list_store
    user_store: UserStore = request.app.state.user_store
    wl = _list_or_404(store, list_id)
    require_list_visible(store, wl, current_user)

    members = store.list_members(list_id)
    names = user_store.get_names([m.user_id for m in members])
    return MembersResponse(members=[MemberRow.from_member(m, names) for m in members])


@router.post("/lists/{list_id}/members", response_model=MessageResponse)
def add_member(
    request: Request,
    list_id: int,
    body: MemberAdd,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Add a registered user to the list directly. Owner only."""
    store: ListStore = request.app.state.list_store
    user_store: UserStore = request.app.state.user_store
    wl = _list_or_404(store, list_id)
    require_list_owner(wl, current_user, "Only owner can add members")

    if user_store.get_by_id(body.user_id) is None:
        raise NotFoundError("User not found")
    if store.get_membership(list_id, body.user_id) is not None:
        raise ValidationError("User is already a member")

    _add_membership(store, list_id, body.user_id, "User is already a member")
    return MessageResponse(message="Member added successfully")


# ---------------------------------------------------------------------------
# Join requests
# ---------------------------------------------------------------------------


@router.get("/lists/{list_id}/requests", response_model=JoinRequestsResponse)
def list_join_requests(
    request: Request,
    list_id: int,
    current_user: User = Depends(get_current_user),
) -> JoinRequestsResponse:
    store: ListStore = request.app.state.list_store
    user_store: UserStore = request.app.state.user_store
    wl = _list_or_404(store, list_id)
    require_list_owner(wl, current_user, "Only owner can view join requests")

    requests = store.list_join_requests(list_id)
    names = user_store.get_names([r.user_id for r in requests])
    return JoinRequestsResponse(requests=[JoinRequestRow.from_request(r, names) for r in requests])


@router.patch("/lists/{list_id}/requests/{request_id}", response_model=MessageResponse)
def decide_join_request(
    request: Request,
    list_id: int,
    request_id: int,
    body: JoinRequestDecision,
) -> MessageResponse:
    """Approve or reject a pending join request. Owner only; each request is decided once.

    Approval marks the request and creates the membership in one transaction.
    Both paths update conditionally on status = 'pending', so a request that
    another call decided first comes back as 400 here.
    """
    current_user = resolve_identity(request, body.credentials(), require_auth=True)
    store: ListStore = request.app.state.list_store
    wl = _list_or_404(store, list_id)
    require_list_owner(wl, current_user, "Only owner can manage join requests")

    join_request = store.get_join_request(request_id, list_id)
    if join_request is None:
        raise NotFoundError("Join request not found")
    require_pending(join_request)

    if body.action == "approve":
        result = store.approve_join_request(request_id)
        if result.is_conflict:
            raise ValidationError("Request has already been processed")
        _raise_on_failure(result, "Failed to approve request")
    elif not store.reject_join_request(request_id):
        raise ValidationError("Request has already been processed")

    logger.info("Join request %s %sd by user_id=%s", request_id, body.action, current_user.id)
    return MessageResponse(message=f"Request {body.action}d successfully")
