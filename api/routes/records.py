"""
Record endpoints: /api/v1/records/{collection}.

GET lists one region's records with the text/date/number filters applied
in memory, then paginates.  The weak ETag tracks the listing version, so an
unchanged listing answers If-None-Match with 304.

Writes validate against the collection catalog; a status change appends one
history entry and overwrites the status in a single document update.
"""

from fastapi import APIRouter, Depends, Query, Request, Response, status

from api.auth import Actor, get_actor
from api.models import RecordIn, RecordListResponse, RecordOut, StatusChangeIn
from api.service import RecordService, get_service
from utils.filters import ListFilters

router = APIRouter(prefix="/records", tags=["records"])


@router.get(
    "/{collection}",
    response_model=RecordListResponse,
    summary="List records of a collection",
    responses={304: {"description": "Listing unchanged since the given ETag"}},
)
def list_records(
    collection: str,
    request: Request,
    response: Response,
    region: str | None = Query(None, description="Region code (scoped users may omit it)"),
    q: str | None = Query(None, description="Text contained in any text field"),
    date: str | None = Query(None, description="Exact date, YYYY-MM-DD"),
    number: str | None = Query(None, description="Text contained in the reference number"),
    limit: int | None = Query(None, ge=1, le=500, description="Max items per page (default APP_PAGE_SIZE)"),
    offset: int = Query(0, ge=0, description="Pagination offset"),
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
):
    """Return a filtered, paginated listing, newest first."""
    filters = ListFilters.from_params(q=q, date=date, number=number)
    spec = service.spec(collection)
    region, matched = service.list_records(spec.key, actor, region, filters)
    limit = limit or service.cfg.page_size

    etag = service.listings.etag(spec.key, region)
    if request.headers.get("If-None-Match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    response.headers["ETag"] = etag
    response.headers["X-Total-Count"] = str(len(matched))

    page = matched[offset:offset + limit]
    return RecordListResponse(
        collection=spec.key,
        region=region,
        total=len(matched),
        limit=limit,
        offset=offset,
        filters=filters.to_params(),
        items=[RecordOut.from_record(spec, r) for r in page],
    )


@router.post(
    "/{collection}",
    response_model=RecordOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a record",
    responses={400: {"description": "Validation error"}},
)
def create_record(
    collection: str,
    body: RecordIn,
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
) -> RecordOut:
    """Create a record in the given (or the actor's) region."""
    spec = service.spec(collection)
    record = service.create_record(spec.key, body.fields, actor, region=body.region)
    return RecordOut.from_record(spec, record)


@router.get("/{collection}/{record_id}", response_model=RecordOut, summary="Get a record")
def get_record(
    collection: str,
    record_id: str,
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
) -> RecordOut:
    spec = service.spec(collection)
    return RecordOut.from_record(spec, service.get_record(spec.key, record_id, actor))


@router.patch("/{collection}/{record_id}", response_model=RecordOut, summary="Update a record")
def update_record(
    collection: str,
    record_id: str,
    body: RecordIn,
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
) -> RecordOut:
    """Overwrite the given fields; the region cannot change."""
    spec = service.spec(collection)
    values = dict(body.fields)
    if body.region:
        values["region"] = body.region
    return RecordOut.from_record(
        spec, service.update_record(spec.key, record_id, values, actor)
    )


@router.delete(
    "/{collection}/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a record",
)
def delete_record(
    collection: str,
    record_id: str,
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
) -> Response:
    service.delete_record(collection, record_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{collection}/{record_id}/status",
    response_model=RecordOut,
    summary="Change the status of a record",
    responses={400: {"description": "Unknown status or collection without status"}},
)
def change_status(
    collection: str,
    record_id: str,
    body: StatusChangeIn,
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
) -> RecordOut:
    """Set a new status and append it, with the comment, to the history log."""
    spec = service.spec(collection)
    record = service.change_status(spec.key, record_id, body.status, body.comment, actor)
    return RecordOut.from_record(spec, record)
