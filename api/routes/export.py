"""
GET /api/v1/records/{collection}/export endpoint.

Exports a filtered listing as CSV or Excel.  Accepts the same region and
filter parameters as the list endpoint, so the console's "Export" link can
reuse the current filter bar.

- CSV starts with "# " attribution rows (source, export date, region,
  filters, total), then a header row.
- Excel (openpyxl write_only) puts the attribution on a Metadata sheet.
- X-Total-Count carries the number of exported records.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from api.auth import Actor, get_actor
from api.service import RecordService, get_service
from utils.catalog import CollectionSpec
from utils.filters import ListFilters
from utils.formatting import export_cell

router = APIRouter(prefix="/records", tags=["export"])

_SOURCE = "Governorate Console"


def export_columns(spec: CollectionSpec) -> list[str]:
    """Column order of an export: id, region, catalog fields, system fields."""
    cols = ["id", "region", *spec.field_names]
    if spec.has_status:
        cols.append("status")
    cols += ["created_at", "created_by", "updated_at"]
    return cols


def _rows(records: list[dict[str, Any]], cols: list[str]):
    for record in records:
        yield [export_cell(record.get(c)) for c in cols]


@router.get("/{collection}/export", summary="Download a listing as CSV or Excel")
def export_records(
    collection: str,
    fmt: str = Query("csv", pattern="^(csv|xlsx)$", description="Output format"),
    region: str | None = Query(None),
    q: str | None = Query(None),
    date: str | None = Query(None),
    number: str | None = Query(None),
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
) -> StreamingResponse:
    """Stream the filtered listing of one region."""
    filters = ListFilters.from_params(q=q, date=date, number=number)
    spec = service.spec(collection)
    region, records = service.list_records(spec.key, actor, region, filters)
    cols = export_columns(spec)

    export_date = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    active = filters.to_params()
    filter_summary = "; ".join(f"{k}={v}" for k, v in active.items()) if active else "none"
    total = len(records)
    filename = f"{spec.key}_{region}"
    extra_headers = {"X-Total-Count": str(total)}

    if fmt == "csv":
        def csv_stream():
            buf = io.StringIO()
            writer = csv.writer(buf)
            writer.writerow([f"# Source: {_SOURCE}"])
            writer.writerow([f"# Export Date: {export_date}"])
            writer.writerow([f"# Collection: {spec.title}"])
            writer.writerow([f"# Region: {service.cfg.region_name(region)}"])
            writer.writerow([f"# Filters: {filter_summary}"])
            writer.writerow([f"# Total Records: {total}"])
            writer.writerow(cols)
            yield buf.getvalue()
            for row in _rows(records, cols):
                buf.seek(0)
                buf.truncate()
                writer.writerow(row)
                yield buf.getvalue()

        return StreamingResponse(
            csv_stream(),
            media_type="text/csv; charset=utf-8",
            headers={
                "Content-Disposition": f"attachment; filename={filename}.csv",
                **extra_headers,
            },
        )

    import openpyxl

    def xlsx_bytes() -> bytes:
        wb = openpyxl.Workbook(write_only=True)
        meta_ws = wb.create_sheet("Metadata")
        meta_ws.append(["Source", _SOURCE])
        meta_ws.append(["Export Date", export_date])
        meta_ws.append(["Collection", spec.title])
        meta_ws.append(["Region", service.cfg.region_name(region)])
        meta_ws.append(["Filters", filter_summary])
        meta_ws.append(["Total Records", total])
        ws = wb.create_sheet(spec.title[:31])
        ws.append(cols)
        for row in _rows(records, cols):
            ws.append(row)
        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()

    content = xlsx_bytes()
    return StreamingResponse(
        iter([content]),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f"attachment; filename={filename}.xlsx",
            "Content-Length": str(len(content)),
            **extra_headers,
        },
    )
