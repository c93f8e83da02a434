from decimal import Decimal
from typing import Optional, Sequence
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.core.logging_config import get_logger
from storefront.domain.models import Category, OrderItem, Product
from storefront.infrastructure.db import atomic
from storefront.infrastructure.storage import MediaStore, MediaStoreError, Upload
from .errors import NotFound, ValidationError
from .query import Page, PageRequest, QueryEngine
from .schemas import ProductCreate, ProductRead, ProductUpdate

logger = get_logger(__name__)

class ProductService:
    """Products of the catalog. Also the product lookup used by the order service."""

    def __init__(self, db: Session, media: MediaStore):
        self.db = db
        self.media = media
        self.query = QueryEngine(
            db, Product, search_field="name", sort_field="name",
            options=(selectinload(Product.category),)
        )

    def _present(self, product: Product) -> ProductRead:
        data = ProductRead.model_validate(product)
        data.image_urls = [self.media.url_for(image) for image in product.images or []]
        return data

    def _present_page(self, page: Page[Product]) -> Page[ProductRead]:
        return Page(items=[self._present(p) for p in page.items], pagination=page.pagination)

    def _get_or_404(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    def _ensure_category(self, category_id: int):
        if self.db.get(Category, category_id) is None:
            raise NotFound("Category not found")

    def find(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def get(self, product_id: int) -> ProductRead:
        return self._present(self._get_or_404(product_id))

    def list_products(self, request: PageRequest) -> Page[ProductRead]:
        return self._present_page(self.query.paginate(request))

    def list_by_category(self, category_id: int, request: PageRequest) -> Page[ProductRead]:
        self._ensure_category(category_id)
        return self._present_page(self.query.paginate(request, filters={"category_id": category_id}))

    def _upload_all(self, images: Sequence[Upload]) -> list[str]:
        return [self.media.upload(image) for image in images]

    def _remove_all(self, filenames: Sequence[str]):
        for filename in filenames:
            try:
                self.media.remove(filename)
            except MediaStoreError as e:
                logger.warning(f"Image cleanup failed: {e}", extra={'extra_fields': {'filename': filename}})

    @staticmethod
    def _validate_numbers(price: Optional[Decimal], stock: Optional[int]):
        if price is not None and price < 0:
            raise ValidationError("Product price can not be negative")
        if stock is not None and stock < 0:
            raise ValidationError("Product stock can not be negative")

    def create(self, data: ProductCreate, images: Sequence[Upload]) -> ProductRead:
        name = (data.name or "").strip()
        description = (data.description or "").strip()
        if not name or not description or data.price is None or data.category_id is None:
            raise ValidationError("Name, description, price and category are required")
        self._validate_numbers(data.price, data.stock)
        self._ensure_category(data.category_id)
        if not images:
            raise ValidationError("At least one product image is required")

        filenames = self._upload_all(images)

        product = Product(
            name=name,
            description=description,
            price=data.price,
            stock=data.stock,
            category_id=data.category_id,
            images=filenames,
        )
        with atomic(self.db):
            self.db.add(product)
        self.db.refresh(product)
        logger.info(
            f"Product created: {product.id}",
            extra={'extra_fields': {'product_id': product.id, 'images': len(filenames)}}
        )
        return self._present(product)

    def update(self, product_id: int, data: ProductUpdate, images: Optional[Sequence[Upload]] = None) -> ProductRead:
        product = self._get_or_404(product_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        for field in ("name", "description"):
            if field in changes:
                changes[field] = changes[field].strip()
                if not changes[field]:
                    raise ValidationError(f"Product {field} can not be empty")
        self._validate_numbers(changes.get("price"), changes.get("stock"))
        if "category_id" in changes:
            self._ensure_category(changes["category_id"])

        previous_images = list(product.images or [])
        if images:
            changes["images"] = self._upload_all(images)

        with atomic(self.db):
            for key, value in changes.items():
                setattr(product, key, value)

        # Replaced blobs are dropped only after the new list is committed
        if images:
            self._remove_all(previous_images)

        self.db.refresh(product)
        logger.info(
            f"Product updated: {product_id}",
            extra={'extra_fields': {'product_id': product_id, 'fields': sorted(changes)}}
        )
        return self._present(product)

    def delete(self, product_id: int) -> ProductRead:
        product = self._get_or_404(product_id)
        ordered = self.db.scalar(select(OrderItem.id).where(OrderItem.product_id == product_id).limit(1))
        if ordered is not None:
            raise ValidationError("Product is part of existing orders and can not be deleted")
        deleted = self._present(product)

        with atomic(self.db):
            self.db.delete(product)

        self._remove_all(deleted.images)
        logger.info(f"Product deleted: {product_id}", extra={'extra_fields': {'product_id': product_id}})
        return deleted
