"""
api/routes/v1/records.py -- Posts and parking history for JSON clients.

Routes:
  GET  /api/v1/history        -- caller's reservations, most recent first
  POST /api/v1/reservations   -- record a reservation (structured body)
  GET  /api/v1/posts          -- caller's posts, newest first
  GET  /api/v1/posts/{id}     -- one of the caller's posts
  POST /api/v1/posts          -- create a post

Every route requires authentication (router-level dependency). The owner of
each new row is the identity resolved from the session token; request bodies
have no owner field to set.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import ErrorDetail, HistoryEntryResponse, PostCreate, PostResponse, ReservationCreate
from auth.dependencies import get_current_user
from auth.models import Identity
from core.sanitize import clean_text
from records.models import Reservation
from records.store import RecordStore

router = APIRouter(dependencies=[Depends(get_current_user)])


def _empty_field(field: str) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=ErrorDetail(
            code="validation_error",
            message=f"You must provide a {field}.",
        ).model_dump(),
    )


@router.get("/history", response_model=list[HistoryEntryResponse])
def list_history(request: Request, identity: Identity = Depends(get_current_user)) -> list[HistoryEntryResponse]:
    records: RecordStore = request.app.state.records
    return [HistoryEntryResponse.from_entry(e) for e in records.get_user_history(identity)]


@router.post("/reservations", response_model=HistoryEntryResponse, status_code=201)
def create_reservation(
    request: Request,
    body: ReservationCreate,
    identity: Identity = Depends(get_current_user),
) -> HistoryEntryResponse:
    """Record a reservation for the caller."""
    place = clean_text(body.place)
    if not place:
        raise _empty_field("place")
    records: RecordStore = request.app.state.records
    entry = records.add_reservation(
        identity,
        Reservation(
            place=place,
            parking_spot=body.parking_spot,
            spots_left=body.spots_left,
            rating=body.rating,
        ),
    )
    return HistoryEntryResponse.from_entry(entry)


@router.get("/posts", response_model=list[PostResponse])
def list_posts(request: Request, identity: Identity = Depends(get_current_user)) -> list[PostResponse]:
    records: RecordStore = request.app.state.records
    return [PostResponse.from_post(p) for p in records.list_posts(identity)]


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    body: PostCreate,
    identity: Identity = Depends(get_current_user),
) -> PostResponse:
    """Create a post authored by the caller. Markup is stripped first."""
    title = clean_text(body.title)
    if not title:
        raise _empty_field("title")
    text = clean_text(body.body)
    if not text:
        raise _empty_field("body")
    records: RecordStore = request.app.state.records
    return PostResponse.from_post(records.create_post(identity, title, text))


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(request: Request, post_id: int, identity: Identity = Depends(get_current_user)) -> PostResponse:
    """Return one of the caller's posts.

    Another user's post answers 404, the same as a missing one, so post ids reveal
    nothing about other accounts.
    """
    records: RecordStore = request.app.state.records
    post = records.get_post(post_id)
    if post is None or post.author_id != identity.user_id:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="post_not_found",
                message=f"Post {post_id} not found.",
            ).model_dump(),
        )
    return PostResponse.from_post(post)
