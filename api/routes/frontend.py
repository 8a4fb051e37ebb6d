"""
Console HTML routes.

Serves the Jinja2 templates for the dashboard, the per-collection list
views and the HTMX partials they swap in.

Routes:
    GET  /                                   → dashboard.html
    GET  /records/{collection}               → records.html (filter bar + results)
    GET  /partials/{collection}/results      → partials/results.html (HTMX swap target)
    GET  /partials/{collection}/form         → partials/form.html (new/edit, in the modal)
    GET  /partials/{collection}/{id}/status  → partials/status.html (history + change form)
    POST /records/{collection}               → create
    POST /records/{collection}/{id}          → update
    POST /records/{collection}/{id}/delete   → delete
    POST /records/{collection}/{id}/status   → status change

Write handlers answer with an empty body plus HX-Trigger events
(``showToast``, ``closeModal``, ``recordsChanged``); the results partial
listens for ``recordsChanged`` and re-fetches itself with the current
filters.  Failures are logged and reported as an error toast, except
validation errors, which re-render the form in the modal with messages.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from api.auth import Actor, get_page_actor
from api.service import AccessDenied, RecordNotFound, RecordService, get_service, paginate
from api.store import StoreError
from utils.catalog import COLLECTIONS, CollectionSpec, RecordValidationError
from utils.filters import ListFilters
from utils.status import STATUS_LABELS, STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["frontend"])

# Templates instance is set by create_app() after mounting.
_templates: Jinja2Templates | None = None


def set_templates(t: Jinja2Templates | None) -> None:
    global _templates
    _templates = t


def has_templates() -> bool:
    return _templates is not None


def _tmpl() -> Jinja2Templates:
    if _templates is None:
        raise RuntimeError("Templates not initialised, call set_templates() first")
    return _templates


def render(
    request: Request,
    name: str,
    context: dict[str, Any] | None = None,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> HTMLResponse:
    """Render *name* with the navigation context every page needs."""
    ctx = {"collections": list(COLLECTIONS.values()), **(context or {})}
    return _tmpl().TemplateResponse(
        request, name, ctx, status_code=status_code, headers=headers
    )


def render_error(request: Request, status_code: int, error: str, detail: str) -> HTMLResponse:
    """Error page; HTMX requests get the bare message block."""
    return render(
        request,
        "error.html",
        {
            "status_code": status_code,
            "error": error,
            "detail": detail,
            "partial": bool(request.headers.get("HX-Request")),
        },
        status_code=status_code,
    )


def _toast_headers(
    message: str,
    level: str = "success",
    close: bool = False,
    changed: bool = False,
) -> dict[str, str]:
    """HX-Trigger header for a toast, optionally closing the modal and
    telling list views to refresh."""
    events: dict[str, Any] = {"showToast": {"message": message, "level": level}}
    if close:
        events["closeModal"] = True
    if changed:
        events["recordsChanged"] = True
    return {"HX-Trigger": json.dumps(events), "HX-Reswap": "none"}


def _failure(exc: Exception, action: str, spec: CollectionSpec) -> Response:
    """Log a failed write and report it as an error toast."""
    if isinstance(exc, StoreError):
        logger.exception("%s failed collection=%s", action, spec.key)
        message = "The record could not be saved, please try again."
    else:
        logger.warning("%s rejected collection=%s: %s", action, spec.key, exc)
        message = str(exc)
    return Response(status_code=200, headers=_toast_headers(message, level="error"))


def _form_values(form: Any, spec: CollectionSpec) -> dict[str, Any]:
    return {f.name: form.get(f.name, "") for f in spec.fields if f.name in form}


def _page_context(
    actor: Actor,
    service: RecordService,
    region: str,
    spec: CollectionSpec | None = None,
) -> dict[str, Any]:
    return {
        "actor": actor,
        "region": region,
        "region_name": service.cfg.region_name(region),
        "regions": service.cfg.regions if not actor.region else {},
        "spec": spec,
    }


# ── Pages ─────────────────────────────────────────────────────────────────────

@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def dashboard_page(
    request: Request,
    region: str | None = Query(None),
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> HTMLResponse:
    """Overview: record totals per collection and the status breakdown."""
    summary = service.dashboard(actor, region)
    return render(
        request,
        "dashboard.html",
        {
            **_page_context(actor, service, summary["region"]),
            "summary": summary,
            "status_labels": STATUS_LABELS,
        },
    )


@router.get("/records/{collection}", response_class=HTMLResponse, include_in_schema=False)
def records_page(
    collection: str,
    request: Request,
    region: str | None = Query(None),
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> HTMLResponse:
    """List view: filter bar, results container (loaded by HTMX) and modal."""
    spec = service.spec(collection)
    region = service.resolve_region(actor, region)
    params = request.query_params
    return render(
        request,
        "records.html",
        {
            **_page_context(actor, service, region, spec),
            "filters": {
                "q": params.get("q", ""),
                "date": params.get("date", ""),
                "number": params.get("number", ""),
            },
        },
    )


# ── Partials ──────────────────────────────────────────────────────────────────

@router.get("/partials/{collection}/results", response_class=HTMLResponse,
            include_in_schema=False)
def results_partial(
    collection: str,
    request: Request,
    region: str | None = Query(None),
    q: str | None = Query(None),
    date: str | None = Query(None),
    number: str | None = Query(None),
    page: int = Query(1),
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> Response:
    """HTMX partial: filtered, paginated results table."""
    spec = service.spec(collection)
    try:
        filters = ListFilters.from_params(q=q, date=date, number=number)
    except ValueError:
        return render(request, "partials/results.html", {
            "spec": spec, "items": [], "total": 0, "page": 1, "total_pages": 1,
            "filter_error": "Date must be in the form YYYY-MM-DD",
        })

    region, matched = service.list_records(spec.key, actor, region, filters)
    etag = service.listings.etag(spec.key, region)
    if request.headers.get("If-None-Match") == etag:
        return Response(status_code=304, headers={"ETag": etag})

    items, page, total_pages = paginate(matched, page, service.cfg.page_size)
    return render(
        request,
        "partials/results.html",
        {
            "spec": spec,
            "region": region,
            "items": items,
            "total": len(matched),
            "page": page,
            "total_pages": total_pages,
            "filtered": filters.active,
            "export_query": {**filters.to_params(), "region": region},
        },
        headers={"ETag": etag},
    )


@router.get("/partials/{collection}/form", response_class=HTMLResponse,
            include_in_schema=False)
def form_partial(
    collection: str,
    request: Request,
    record_id: str | None = Query(None),
    region: str | None = Query(None),
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> HTMLResponse:
    """HTMX partial: empty form for a new record, pre-filled form for an edit."""
    spec = service.spec(collection)
    record = service.get_record(spec.key, record_id, actor) if record_id else None
    region = record["region"] if record else service.resolve_region(actor, region)
    return render(
        request,
        "partials/form.html",
        {"spec": spec, "record": record, "values": record or {}, "region": region,
         "errors": {}},
    )


@router.get("/partials/{collection}/{record_id}/status", response_class=HTMLResponse,
            include_in_schema=False)
def status_partial(
    collection: str,
    record_id: str,
    request: Request,
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> HTMLResponse:
    """HTMX partial: status history (oldest first) and the change form."""
    spec = service.spec(collection)
    record = service.get_record(spec.key, record_id, actor)
    return render(
        request,
        "partials/status.html",
        {"spec": spec, "record": record, "statuses": STATUSES,
         "status_labels": STATUS_LABELS},
    )


# ── Writes ────────────────────────────────────────────────────────────────────

def _form_error(request: Request, spec: CollectionSpec, values: dict[str, Any],
                exc: RecordValidationError, record: dict[str, Any] | None,
                region: str | None) -> HTMLResponse:
    """Re-render the modal form with per-field messages."""
    return render(
        request,
        "partials/form.html",
        {"spec": spec, "record": record, "values": values, "region": region,
         "errors": exc.errors},
        headers={"HX-Retarget": "#modal-body", "HX-Reswap": "innerHTML"},
    )


@router.post("/records/{collection}", include_in_schema=False)
async def create_record_form(
    collection: str,
    request: Request,
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> Response:
    spec = service.spec(collection)
    form = await request.form()
    values = _form_values(form, spec)
    region = form.get("region") or None
    try:
        await run_in_threadpool(service.create_record, spec.key, values, actor, region)
    except RecordValidationError as exc:
        return _form_error(request, spec, values, exc, None, region)
    except (StoreError, ValueError, AccessDenied) as exc:
        return _failure(exc, "create", spec)
    return Response(
        status_code=200,
        headers=_toast_headers(f"{spec.title}: record added", close=True, changed=True),
    )


@router.post("/records/{collection}/{record_id}", include_in_schema=False)
async def update_record_form(
    collection: str,
    record_id: str,
    request: Request,
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> Response:
    spec = service.spec(collection)
    form = await request.form()
    values = _form_values(form, spec)
    try:
        await run_in_threadpool(service.update_record, spec.key, record_id, values, actor)
    except RecordValidationError as exc:
        record = {"id": record_id}
        return _form_error(request, spec, values, exc, record, form.get("region") or None)
    except (StoreError, ValueError, AccessDenied, RecordNotFound) as exc:
        return _failure(exc, "update", spec)
    return Response(
        status_code=200,
        headers=_toast_headers(f"{spec.title}: record saved", close=True, changed=True),
    )


@router.post("/records/{collection}/{record_id}/delete", include_in_schema=False)
async def delete_record_form(
    collection: str,
    record_id: str,
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> Response:
    spec = service.spec(collection)
    try:
        await run_in_threadpool(service.delete_record, spec.key, record_id, actor)
    except (StoreError, AccessDenied, RecordNotFound) as exc:
        return _failure(exc, "delete", spec)
    return Response(
        status_code=200,
        headers=_toast_headers(f"{spec.title}: record deleted", changed=True),
    )


@router.post("/records/{collection}/{record_id}/status", include_in_schema=False)
async def change_status_form(
    collection: str,
    record_id: str,
    request: Request,
    actor: Actor = Depends(get_page_actor),
    service: RecordService = Depends(get_service),
) -> Response:
    spec = service.spec(collection)
    form = await request.form()
    try:
        await run_in_threadpool(
            service.change_status,
            spec.key, record_id, form.get("status", ""), form.get("comment"), actor,
        )
    except (StoreError, ValueError, AccessDenied, RecordNotFound) as exc:
        return _failure(exc, "status change", spec)
    label = STATUS_LABELS.get(form.get("status", ""), form.get("status", ""))
    return Response(
        status_code=200,
        headers=_toast_headers(f"Status set to {label}", close=True, changed=True),
    )
