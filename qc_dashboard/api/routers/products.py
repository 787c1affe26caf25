"""
Product routes.
Product catalogue CRUD plus product image upload.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from ...db.models import Product, User
from ..dependencies import get_current_user, get_db, get_storage, require_staff
from ..errors import ConflictError, InvalidRequestError, ResourceNotFoundError
from ..schemas.common import Envelope, ListEnvelope
from ..schemas.product import ProductCreate, ProductResponse, ProductUpdate
from ..services.storage import ImageStorage
from ..services.uploads import read_image_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])

PRODUCT_IMAGE_FOLDER = "products"


def like_pattern(text: str) -> str:
    """Substring pattern for LIKE with the wildcard characters escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def get_product_or_404(db: Session, product_id: UUID) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ResourceNotFoundError("Product", product_id)
    return product


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[UUID] = None) -> None:
    query = db.query(Product).filter(Product.name == name)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product with this name already exists", details={"name": name})


@router.post("", response_model=Envelope[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(
    request: ProductCreate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    _ensure_unique_name(db, request.name)

    product = Product(**request.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)

    logger.info(f"Product {product.name!r} created by {current_user.name}")
    return {"success": True, "data": ProductResponse.model_validate(product)}


@router.get("", response_model=ListEnvelope[ProductResponse])
async def list_products(
    category: Optional[str] = Query(None, description="Exact category"),
    search: Optional[str] = Query(None, description="Case-insensitive name substring"),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Product)
    if category:
        query = query.filter(Product.category == category)
    if search:
        query = query.filter(Product.name.ilike(like_pattern(search), escape="\\"))

    products = query.order_by(Product.name).all()
    return {
        "success": True,
        "count": len(products),
        "data": [ProductResponse.model_validate(p) for p in products],
    }


@router.get("/{product_id}", response_model=Envelope[ProductResponse])
async def get_product(
    product_id: UUID,
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": ProductResponse.model_validate(get_product_or_404(db, product_id))}


@router.put("/{product_id}", response_model=Envelope[ProductResponse])
async def update_product(
    product_id: UUID,
    request: ProductUpdate,
    _user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    product = get_product_or_404(db, product_id)
    changes = request.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in changes:
        _ensure_unique_name(db, changes["name"], exclude_id=product.id)

    for field, value in changes.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)

    return {"success": True, "data": ProductResponse.model_validate(product)}


@router.delete("/{product_id}", response_model=Envelope[dict])
async def delete_product(
    product_id: UUID,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    """Delete a product, its stored image, and its inspections and defects."""
    product = get_product_or_404(db, product_id)
    image_key = product.image_key

    db.delete(product)
    db.commit()
    storage.delete(image_key)

    logger.info(f"Product {product.name!r} deleted by {current_user.name}")
    return {"success": True, "data": {}}


@router.post("/{product_id}/image", response_model=Envelope[ProductResponse])
async def upload_product_image(
    product_id: UUID,
    image: Optional[UploadFile] = File(None),
    _user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    """Replace the product image."""
    product = get_product_or_404(db, product_id)
    if image is None or not image.filename:
        raise InvalidRequestError("Please upload an image file")

    upload = await read_image_upload(image)

    if product.image_key:
        storage.delete(product.image_key)

    stored = storage.upload(upload.data, upload.filename, upload.content_type, PRODUCT_IMAGE_FOLDER)
    product.image_url = stored.url
    product.image_key = stored.key
    db.commit()
    db.refresh(product)

    return {"success": True, "data": ProductResponse.model_validate(product)}
