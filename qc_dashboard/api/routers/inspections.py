"""
Inspection routes.
Batch inspections: CRUD, image upload and completion (which runs the alert rules).
"""

import logging
from datetime import date as date_type, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session, selectinload

from ...db.models import Defect, Inspection, InspectionImage, Product, User
from ...models.enums import InspectionStatus
from ..dependencies import get_current_user, get_db, get_storage, require_manager
from ..errors import ResourceNotFoundError
from ..schemas.common import Envelope, PagedEnvelope, page_count
from ..schemas.defect import DefectResponse
from ..schemas.inspection import InspectionCreate, InspectionResponse, InspectionUpdate
from ..services.alerting import AlertService
from ..services.storage import ImageStorage
from ..services.uploads import read_image_uploads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inspections", tags=["Inspections"])

INSPECTION_IMAGE_FOLDER = "inspections"
MAX_INSPECTION_IMAGES = 5


def get_inspection_or_404(db: Session, inspection_id: UUID) -> Inspection:
    inspection = (
        db.query(Inspection)
        .options(selectinload(Inspection.images))
        .filter(Inspection.id == inspection_id)
        .first()
    )
    if not inspection:
        raise ResourceNotFoundError("Inspection", inspection_id)
    return inspection


@router.post("", response_model=Envelope[InspectionResponse], status_code=status.HTTP_201_CREATED)
async def create_inspection(
    request: InspectionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Schedule an inspection; the caller is recorded as inspector."""
    product = db.query(Product).filter(Product.id == request.product).first()
    if not product:
        raise ResourceNotFoundError("Product", request.product)

    inspection = Inspection(
        product_id=product.id,
        inspector_id=current_user.id,
        batch_number=request.batch_number,
        notes=request.notes,
        total_inspected=request.total_inspected,
        status=InspectionStatus.PENDING,
        defects_found=0,
    )
    if request.date is not None:
        inspection.date = request.date

    db.add(inspection)
    db.commit()
    db.refresh(inspection)

    logger.info(f"Inspection for batch {inspection.batch_number} created by {current_user.name}")
    return {"success": True, "data": InspectionResponse.model_validate(inspection)}


@router.get("", response_model=PagedEnvelope[InspectionResponse])
async def list_inspections(
    product: Optional[UUID] = Query(None),
    status_filter: Optional[InspectionStatus] = Query(None, alias="status"),
    inspector: Optional[UUID] = Query(None),
    date: Optional[date_type] = Query(None, description="Calendar day, YYYY-MM-DD"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Inspection)
    if product:
        query = query.filter(Inspection.product_id == product)
    if status_filter:
        query = query.filter(Inspection.status == status_filter)
    if inspector:
        query = query.filter(Inspection.inspector_id == inspector)
    if date:
        day_start = datetime.combine(date, time.min)
        query = query.filter(Inspection.date >= day_start, Inspection.date < day_start + timedelta(days=1))

    total = query.count()
    inspections = (
        query.options(
            selectinload(Inspection.product),
            selectinload(Inspection.inspector),
            selectinload(Inspection.images),
        )
        .order_by(Inspection.date.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "success": True,
        "count": len(inspections),
        "total": total,
        "pagination": {"total": total, "page": page, "pages": page_count(total, limit)},
        "data": [InspectionResponse.model_validate(i) for i in inspections],
    }


@router.get("/{inspection_id}", response_model=Envelope[dict])
async def get_inspection(
    inspection_id: UUID,
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """An inspection together with its defects."""
    inspection = get_inspection_or_404(db, inspection_id)
    defects = (
        db.query(Defect)
        .filter(Defect.inspection_id == inspection.id)
        .order_by(Defect.created_at.desc())
        .all()
    )
    return {
        "success": True,
        "data": {
            "inspection": InspectionResponse.model_validate(inspection),
            "defects": [DefectResponse.model_validate(d) for d in defects],
        },
    }


@router.put("/{inspection_id}", response_model=Envelope[InspectionResponse])
async def update_inspection(
    inspection_id: UUID,
    request: InspectionUpdate,
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    inspection = get_inspection_or_404(db, inspection_id)
    for field, value in request.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(inspection, field, value)
    db.commit()
    db.refresh(inspection)

    return {"success": True, "data": InspectionResponse.model_validate(inspection)}


@router.delete("/{inspection_id}", response_model=Envelope[dict])
async def delete_inspection(
    inspection_id: UUID,
    current_user: User = Depends(require_manager),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    """Delete an inspection with its defects and stored images."""
    inspection = get_inspection_or_404(db, inspection_id)
    image_keys = [image.storage_key for image in inspection.images]
    image_keys += [defect.image_key for defect in inspection.defects]

    db.delete(inspection)
    db.commit()

    for key in filter(None, image_keys):
        storage.delete(key)

    logger.info(f"Inspection {inspection_id} deleted by {current_user.name}")
    return {"success": True, "data": {}}


@router.post("/{inspection_id}/images", response_model=Envelope[InspectionResponse])
async def upload_inspection_images(
    inspection_id: UUID,
    images: Optional[List[UploadFile]] = File(None),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    """Attach 1-5 images to an inspection."""
    inspection = get_inspection_or_404(db, inspection_id)
    uploads = await read_image_uploads(images, MAX_INSPECTION_IMAGES)

    for upload in uploads:
        stored = storage.upload(upload.data, upload.filename, upload.content_type, INSPECTION_IMAGE_FOLDER)
        inspection.images.append(
            InspectionImage(url=stored.url, storage_key=stored.key, defects_detected=False, ai_confidence=0.0)
        )
    db.commit()
    db.refresh(inspection)

    return {"success": True, "data": InspectionResponse.model_validate(inspection)}


@router.put("/{inspection_id}/complete", response_model=Envelope[InspectionResponse])
async def complete_inspection(
    inspection_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Close an inspection: ``failed`` when it has any defects, else ``completed``.

    ``defects_found`` is recounted from the defect records, then the
    defect-rate and failed-inspection alert rules run.
    """
    inspection = get_inspection_or_404(db, inspection_id)
    defect_count = db.query(Defect).filter(Defect.inspection_id == inspection.id).count()

    inspection.defects_found = defect_count
    inspection.status = InspectionStatus.FAILED if defect_count > 0 else InspectionStatus.COMPLETED
    db.commit()
    db.refresh(inspection)

    logger.info(
        f"Inspection {inspection.batch_number} {inspection.status.value} by {current_user.name} "
        f"({defect_count} defects, {inspection.defect_rate:.2f}%)"
    )

    AlertService(db).on_inspection_completed(inspection)
    db.refresh(inspection)

    return {"success": True, "data": InspectionResponse.model_validate(inspection)}
