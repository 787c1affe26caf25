"""
AI detection routes.
Classify product images with the defect CNN and turn detections into defect records.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ...db.models import Inspection, InspectionImage, User
from ...ml import DetectionResult
from ...models.enums import DefectType, DetectionSource
from ...models.quality import SeverityClassifier
from ..dependencies import get_current_user, get_db, get_detector, get_storage
from ..errors import APIError, InvalidRequestError, ModelUnavailableError, ResourceNotFoundError, StorageError
from ..schemas.ai import BulkAnalyzeItem, BulkAnalyzeResponse, DetectionOut, DetectResponse
from ..schemas.common import Envelope
from ..schemas.defect import DefectCreate
from ..services.analytics import AnalyticsService
from ..services.defects import record_defect
from ..services.detection import DefectDetectionService
from ..services.storage import ImageStorage, StoredImage
from ..services.uploads import ImageUpload, read_image_upload, read_image_uploads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI Detection"])

AI_IMAGE_FOLDER = "ai-detection"
MAX_BULK_IMAGES = 10


def _get_inspection(db: Session, inspection_id: UUID) -> Inspection:
    inspection = db.query(Inspection).filter(Inspection.id == inspection_id).first()
    if not inspection:
        raise ResourceNotFoundError("Inspection", inspection_id)
    return inspection


def _apply_detection(
    db: Session,
    inspection: Inspection,
    upload: ImageUpload,
    detection: DetectionResult,
    reporter: User,
    storage: ImageStorage,
) -> Tuple[Optional[StoredImage], Optional[UUID], Optional[str]]:
    """
    Store the image on the inspection and record a defect when one was detected.

    Returns:
        (stored image or None, created defect id or None, storage failure message or None)
    """
    stored = None
    message = None
    try:
        stored = storage.upload(upload.data, upload.filename, upload.content_type, AI_IMAGE_FOLDER)
    except StorageError as e:
        logger.warning(f"Image storage failed for {upload.filename}: {e.message}")
        message = "Image upload failed - AI detection completed successfully"

    if stored:
        inspection.images.append(
            InspectionImage(
                url=stored.url,
                storage_key=stored.key,
                defects_detected=detection.has_defect,
                ai_confidence=detection.confidence,
            )
        )

    defect_id = None
    if detection.has_defect:
        payload = DefectCreate(
            inspection=inspection.id,
            product=inspection.product_id,
            type=DefectType.VISUAL,
            severity=SeverityClassifier.from_confidence(detection.confidence),
            description=f"AI detected {detection.defect_type} defect",
            location="unknown",
            detected_by=DetectionSource.AI,
            ai_confidence=detection.confidence,
        )
        # record_defect commits the pending image record as well
        defect_id = record_defect(db, payload, reporter, stored).id
    else:
        db.commit()

    return stored, defect_id, message


@router.post("/detect", response_model=Envelope[DetectResponse])
async def detect_defects(
    image: Optional[UploadFile] = File(None),
    inspection_id: Optional[UUID] = Form(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
    detector: DefectDetectionService = Depends(get_detector),
):
    """
    Classify one image.

    With ``inspection_id`` the image is stored on the inspection and a
    detected defect becomes a defect record.
    """
    if image is None or not image.filename:
        raise InvalidRequestError("No image file provided")
    upload = await read_image_upload(image)

    inspection = _get_inspection(db, inspection_id) if inspection_id else None
    detection = detector.detect(upload.data)

    image_url = None
    defect_id = None
    message = None
    if inspection is not None:
        stored, defect_id, message = _apply_detection(db, inspection, upload, detection, current_user, storage)
        image_url = stored.url if stored else None

    return {
        "success": True,
        "data": DetectResponse(
            image_url=image_url,
            detection=DetectionOut(**detection.to_dict()),
            defect_id=defect_id,
            message=message,
        ),
    }


@router.post("/bulk-analyze", response_model=Envelope[BulkAnalyzeResponse])
async def bulk_analyze(
    inspection_id: UUID = Form(...),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
    detector: DefectDetectionService = Depends(get_detector),
):
    """Classify up to 10 images for one inspection; failures are reported per file."""
    inspection = _get_inspection(db, inspection_id)

    files = [f for f in images or [] if f is not None and f.filename]
    if not files:
        raise InvalidRequestError("Please upload at least one image file")
    if len(files) > MAX_BULK_IMAGES:
        raise InvalidRequestError(f"At most {MAX_BULK_IMAGES} images can be analyzed at once")
    if not detector.is_available():
        raise ModelUnavailableError("AI model not available")

    results: List[BulkAnalyzeItem] = []
    for file in files:
        try:
            upload = await read_image_upload(file)
            detection = detector.detect(upload.data)
            stored, defect_id, message = _apply_detection(
                db, inspection, upload, detection, current_user, storage
            )
        except APIError as e:
            db.rollback()
            logger.warning(f"Bulk analysis failed for {file.filename}: {e.message}")
            results.append(BulkAnalyzeItem(filename=file.filename, error=e.message))
            continue

        results.append(
            BulkAnalyzeItem(
                filename=file.filename,
                image_url=stored.url if stored else None,
                detection=DetectionOut(**detection.to_dict()),
                defect_id=defect_id,
                error=message,
            )
        )

    return {
        "success": True,
        "data": BulkAnalyzeResponse(
            inspection_id=inspection.id,
            processed=sum(1 for r in results if r.detection is not None),
            defects_found=sum(1 for r in results if r.defect_id is not None),
            results=results,
        ),
    }


@router.get("/stats", response_model=Envelope[dict])
async def ai_stats(
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """AI detection totals, confidence range, types and a 30-day daily series."""
    return {"success": True, "data": AnalyticsService(db).ai_stats()}


@router.get("/model-status")
async def model_status(detector: DefectDetectionService = Depends(get_detector)):
    status_info = detector.status()
    model = status_info["model"]
    if status_info["available"]:
        message = "Defect classifier loaded"
    else:
        message = model.get("error") or "Defect classifier not loaded"

    return {
        "success": True,
        "data": {
            "model_loaded": model["is_loaded"],
            "status": status_info["status"],
            "message": message,
            **model,
        },
    }


@router.get("/data")
async def latest_ai_data(db: Session = Depends(get_db)):
    """Most recent AI-detected defect, for the dashboard detection card."""
    return {"success": True, "data": AnalyticsService(db).latest_ai_defect()}
