"""
Defect recording.
Shared by the defect routes (single and bulk) and AI detection.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...db.models import Defect, Inspection, Product, User
from ..errors import ResourceNotFoundError
from ..schemas.defect import DefectCreate
from .alerting import AlertService
from .storage import StoredImage

logger = logging.getLogger(__name__)


def record_defect(
    db: Session,
    payload: DefectCreate,
    reporter: User,
    image: Optional[StoredImage] = None,
) -> Defect:
    """
    Store a defect and bump its inspection's ``defects_found``.

    Critical defects then go through the critical-defect alert rule.

    Raises:
        ResourceNotFoundError: inspection or product does not exist
    """
    inspection = db.query(Inspection).filter(Inspection.id == payload.inspection).first()
    if not inspection:
        raise ResourceNotFoundError("Inspection", payload.inspection)
    product = db.query(Product).filter(Product.id == payload.product).first()
    if not product:
        raise ResourceNotFoundError("Product", payload.product)

    fields = payload.model_dump(exclude={"inspection", "product"})
    defect = Defect(
        inspection_id=inspection.id,
        product_id=product.id,
        reported_by_id=reporter.id,
        image_url=image.url if image else None,
        image_key=image.key if image else None,
        **fields,
    )
    db.add(defect)
    inspection.defects_found = (inspection.defects_found or 0) + 1
    db.commit()
    db.refresh(defect)

    logger.info(
        f"{defect.severity.value} {defect.type.value} defect recorded for batch "
        f"{inspection.batch_number} by {reporter.name} ({defect.detected_by.value})"
    )

    AlertService(db).on_defect_created(defect, inspection.batch_number)
    return defect
