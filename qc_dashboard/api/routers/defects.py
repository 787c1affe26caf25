"""
Defect routes.
Defect reports: create (single, multipart with optional image, or bulk JSON),
filtered listing, statistics, updates and resolution.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session, selectinload

from ...db.models import Defect, Inspection, User
from ...models.enums import DefectSeverity, DefectStatus, DefectType, DetectionSource, RootCause
from ..dependencies import get_current_user, get_db, get_storage, require_manager
from ..errors import APIError, InvalidRequestError, ResourceNotFoundError
from ..schemas.common import Envelope, PagedEnvelope
from ..schemas.defect import (
    BulkDefectRequest,
    DefectCreate,
    DefectResponse,
    ResolveDefectRequest,
    parse_measurements,
)
from ..services.analytics import AnalyticsService, parse_date_param
from ..services.defects import record_defect
from ..services.storage import ImageStorage, StoredImage
from ..services.uploads import read_image_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/defects", tags=["Defects"])

DEFECT_IMAGE_FOLDER = "defects"

SORT_FIELDS = {
    "created_at": Defect.created_at,
    "severity": Defect.severity,
    "type": Defect.type,
    "status": Defect.status,
}


def get_defect_or_404(db: Session, defect_id: UUID) -> Defect:
    defect = db.query(Defect).filter(Defect.id == defect_id).first()
    if not defect:
        raise ResourceNotFoundError("Defect", defect_id)
    return defect


def sort_clause(sort: str):
    """``field`` ascending or ``-field`` descending."""
    descending = sort.startswith("-")
    column = SORT_FIELDS.get(sort.lstrip("-"))
    if column is None:
        raise InvalidRequestError(
            f"Cannot sort by {sort!r}", details={"allowed": sorted(SORT_FIELDS)}
        )
    return column.desc() if descending else column.asc()


async def _store_optional_image(image: Optional[UploadFile], storage: ImageStorage) -> Optional[StoredImage]:
    if image is None or not image.filename:
        return None
    upload = await read_image_upload(image)
    return storage.upload(upload.data, upload.filename, upload.content_type, DEFECT_IMAGE_FOLDER)


@router.post("", response_model=Envelope[DefectResponse], status_code=status.HTTP_201_CREATED)
async def create_defect(
    inspection: UUID = Form(...),
    product: UUID = Form(...),
    type: DefectType = Form(...),
    severity: DefectSeverity = Form(...),
    description: str = Form(..., min_length=1),
    location: Optional[str] = Form(None),
    measurements: Optional[str] = Form(None, description="JSON: {expected, actual, unit}"),
    root_cause: RootCause = Form(RootCause.UNKNOWN),
    defect_status: DefectStatus = Form(DefectStatus.OPEN, alias="status"),
    detected_by: DetectionSource = Form(DetectionSource.MANUAL),
    ai_confidence: float = Form(0.0, ge=0, le=100),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    """Report a defect (multipart form, optional ``image``)."""
    parsed_measurements = parse_measurements(measurements)
    if measurements and parsed_measurements is None:
        logger.warning(f"Ignoring malformed measurements: {measurements!r}")

    payload = DefectCreate(
        inspection=inspection,
        product=product,
        type=type,
        severity=severity,
        description=description,
        location=location,
        measurements=parsed_measurements,
        root_cause=root_cause,
        status=defect_status,
        detected_by=detected_by,
        ai_confidence=ai_confidence,
    )

    # Check references before touching storage
    if not db.query(Inspection.id).filter(Inspection.id == payload.inspection).first():
        raise ResourceNotFoundError("Inspection", payload.inspection)

    stored = await _store_optional_image(image, storage)
    try:
        defect = record_defect(db, payload, current_user, stored)
    except APIError:
        if stored:
            storage.delete(stored.key)
        raise

    return {"success": True, "data": DefectResponse.model_validate(defect)}


@router.get("", response_model=PagedEnvelope[DefectResponse])
async def list_defects(
    product: Optional[UUID] = Query(None),
    type: Optional[DefectType] = Query(None),
    severity: Optional[DefectSeverity] = Query(None),
    inspection: Optional[UUID] = Query(None),
    status_filter: Optional[DefectStatus] = Query(None, alias="status"),
    root_cause: Optional[RootCause] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    sort: str = Query("-created_at"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Defect)
    if product:
        query = query.filter(Defect.product_id == product)
    if type:
        query = query.filter(Defect.type == type)
    if severity:
        query = query.filter(Defect.severity == severity)
    if inspection:
        query = query.filter(Defect.inspection_id == inspection)
    if status_filter:
        query = query.filter(Defect.status == status_filter)
    if root_cause:
        query = query.filter(Defect.root_cause == root_cause)
    if start_date:
        query = query.filter(Defect.created_at >= parse_date_param(start_date, "start_date"))
    if end_date:
        query = query.filter(Defect.created_at <= parse_date_param(end_date, "end_date", end_of_day=True))

    order = sort_clause(sort)
    total = query.count()
    start_index = (page - 1) * limit
    defects = (
        query.options(
            selectinload(Defect.inspection),
            selectinload(Defect.product),
            selectinload(Defect.reported_by),
            selectinload(Defect.resolved_by),
        )
        .order_by(order, Defect.id)
        .offset(start_index)
        .limit(limit)
        .all()
    )

    pagination = {}
    if page * limit < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start_index > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}

    return {
        "success": True,
        "count": len(defects),
        "total": total,
        "pagination": pagination,
        "data": [DefectResponse.model_validate(d) for d in defects],
    }


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def bulk_create_defects(
    request: BulkDefectRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create many defects from a JSON list.

    Items are independent: a bad item is reported in ``errors`` with its
    index and the rest are still created.
    """
    if not request.defects:
        raise InvalidRequestError("Please provide an array of defects")

    created = []
    errors = []
    for index, item in enumerate(request.defects):
        if not isinstance(item, dict):
            errors.append({"index": index, "error": "Defect must be an object"})
            continue
        try:
            payload = DefectCreate.model_validate(item)
            created.append(record_defect(db, payload, current_user))
        except ValidationError as e:
            errors.append({"index": index, "error": "; ".join(err["msg"] for err in e.errors())})
        except ResourceNotFoundError as e:
            errors.append({"index": index, "error": f"{e.message} for defect at index {index}"})

    if errors:
        logger.warning(f"Bulk defect upload by {current_user.name}: {len(errors)} of {len(request.defects)} failed")

    return {
        "success": True,
        "created_count": len(created),
        "error_count": len(errors),
        "errors": errors,
        "data": [DefectResponse.model_validate(d).model_dump(mode="json") for d in created],
    }


@router.get("/stats", response_model=Envelope[dict])
async def defect_stats(
    product: Optional[UUID] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Counts by type/severity/root cause/status and a daily per-severity trend."""
    start = parse_date_param(start_date, "start_date") if start_date else None
    end = parse_date_param(end_date, "end_date", end_of_day=True) if end_date else None
    return {"success": True, "data": AnalyticsService(db).defect_stats(product, start, end)}


@router.get("/{defect_id}", response_model=Envelope[DefectResponse])
async def get_defect(
    defect_id: UUID,
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": DefectResponse.model_validate(get_defect_or_404(db, defect_id))}


@router.put("/{defect_id}", response_model=Envelope[DefectResponse])
async def update_defect(
    defect_id: UUID,
    type: Optional[DefectType] = Form(None),
    severity: Optional[DefectSeverity] = Form(None),
    description: Optional[str] = Form(None, min_length=1),
    location: Optional[str] = Form(None),
    measurements: Optional[str] = Form(None),
    root_cause: Optional[RootCause] = Form(None),
    defect_status: Optional[DefectStatus] = Form(None, alias="status"),
    resolution_notes: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    """Partial update (multipart form); a new ``image`` replaces the stored one."""
    defect = get_defect_or_404(db, defect_id)

    changes = {
        "type": type,
        "severity": severity,
        "description": description,
        "location": location,
        "root_cause": root_cause,
        "resolution_notes": resolution_notes,
    }
    for field, value in changes.items():
        if value is not None:
            setattr(defect, field, value)

    if measurements:
        parsed = parse_measurements(measurements)
        if parsed is None:
            logger.warning(f"Ignoring malformed measurements for defect {defect.id}: {measurements!r}")
        else:
            defect.measurements = parsed

    if defect_status is not None:
        if defect_status == DefectStatus.RESOLVED and defect.status != DefectStatus.RESOLVED:
            defect.resolved_at = datetime.utcnow()
            defect.resolved_by_id = current_user.id
        defect.status = defect_status

    stored = await _store_optional_image(image, storage)
    if stored:
        storage.delete(defect.image_key)
        defect.image_url = stored.url
        defect.image_key = stored.key

    db.commit()
    db.refresh(defect)

    return {"success": True, "data": DefectResponse.model_validate(defect)}


@router.delete("/{defect_id}", response_model=Envelope[dict])
async def delete_defect(
    defect_id: UUID,
    current_user: User = Depends(require_manager),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    defect = get_defect_or_404(db, defect_id)
    image_key = defect.image_key

    inspection = defect.inspection
    if inspection is not None:
        inspection.defects_found = max((inspection.defects_found or 0) - 1, 0)

    db.delete(defect)
    db.commit()
    storage.delete(image_key)

    logger.info(f"Defect {defect_id} deleted by {current_user.name}")
    return {"success": True, "data": {}}


@router.put("/{defect_id}/resolve", response_model=Envelope[DefectResponse])
async def resolve_defect(
    defect_id: UUID,
    request: Optional[ResolveDefectRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    defect = get_defect_or_404(db, defect_id)

    defect.status = DefectStatus.RESOLVED
    defect.resolved_at = datetime.utcnow()
    defect.resolved_by_id = current_user.id
    if request is not None and request.resolution_notes:
        defect.resolution_notes = request.resolution_notes
    db.commit()
    db.refresh(defect)

    logger.info(f"Defect {defect.id} resolved by {current_user.name}")
    return {"success": True, "data": DefectResponse.model_validate(defect)}
