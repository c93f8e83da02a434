from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.logging_config import get_logger
from storefront.domain.models import Category, Product
from storefront.infrastructure.db import atomic
from storefront.infrastructure.storage import MediaStore, MediaStoreError, Upload
from .errors import NotFound, ValidationError
from .query import Page, PageRequest, QueryEngine
from .schemas import CategoryCreate, CategoryName, CategoryRead, CategoryUpdate

logger = get_logger(__name__)

class CategoryService:
    def __init__(self, db: Session, media: MediaStore):
        self.db = db
        self.media = media
        self.query = QueryEngine(db, Category, search_field="name", sort_field="name")

    def _present(self, category: Category) -> CategoryRead:
        data = CategoryRead.model_validate(category)
        data.image_url = self.media.url_for(category.image)
        return data

    def _get_or_404(self, category_id: int, message: str = "Category not found") -> Category:
        category = self.db.get(Category, category_id)
        if not category:
            raise NotFound(message)
        return category

    def _ensure_unique_slug(self, slug: str, exclude_id: Optional[int] = None):
        stmt = select(Category.id).where(Category.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.db.scalar(stmt) is not None:
            raise ValidationError(f"Category slug '{slug}' is already in use")

    def _ensure_not_descendant(self, category_id: int, parent_id: int):
        """Walk up from the proposed parent; meeting the category itself means a cycle."""
        current = parent_id
        while current is not None:
            if current == category_id:
                raise ValidationError("A category can not be moved under itself or its descendants")
            current = self.db.scalar(
                select(Category.parent_category_id).where(Category.id == current)
            )

    def get(self, category_id: int) -> CategoryRead:
        return self._present(self._get_or_404(category_id))

    def list_categories(self, request: PageRequest, parent_id: Optional[int] = None) -> Page[CategoryRead]:
        """List one level of the tree; without ``parent_id`` the root categories are listed."""
        page = self.query.paginate(request, filters={"parent_category_id": parent_id})
        return Page(items=[self._present(c) for c in page.items], pagination=page.pagination)

    def names(self) -> list[CategoryName]:
        categories = self.db.scalars(select(Category).order_by(Category.name, Category.id)).all()
        return [CategoryName.model_validate(c) for c in categories]

    def create(self, data: CategoryCreate, image: Optional[Upload], created_by: Optional[int] = None) -> CategoryRead:
        name = (data.name or "").strip()
        slug = (data.slug or "").strip()
        if not name:
            raise ValidationError("Category name is required")
        if not slug:
            raise ValidationError("Category slug is required")
        if image is None:
            raise ValidationError("Category image is required")
        self._ensure_unique_slug(slug)
        if data.parent_category_id is not None:
            self._get_or_404(data.parent_category_id, "Parent category not found")

        filename = self.media.upload(image)

        category = Category(
            name=name,
            slug=slug,
            description=data.description,
            image=filename,
            parent_category_id=data.parent_category_id,
            created_by_id=created_by,
        )
        try:
            with atomic(self.db):
                self.db.add(category)
        except IntegrityError as e:
            self._remove_image(filename)
            raise ValidationError(f"Category slug '{slug}' is already in use") from e
        self.db.refresh(category)
        logger.info(
            f"Category created: {category.id}",
            extra={'extra_fields': {'category_id': category.id, 'slug': slug}}
        )
        return self._present(category)

    def update(self, category_id: int, data: CategoryUpdate, image: Optional[Upload] = None) -> CategoryRead:
        category = self._get_or_404(category_id)
        changes = data.model_dump(exclude_unset=True)

        for field in ("name", "slug"):
            if field in changes:
                value = (changes[field] or "").strip()
                if not value:
                    raise ValidationError(f"Category {field} can not be empty")
                changes[field] = value
        if "slug" in changes:
            self._ensure_unique_slug(changes["slug"], exclude_id=category_id)
        if changes.get("parent_category_id") is not None:
            self._get_or_404(changes["parent_category_id"], "Parent category not found")
            self._ensure_not_descendant(category_id, changes["parent_category_id"])

        previous_image = category.image
        if image is not None:
            changes["image"] = self.media.upload(image)

        try:
            with atomic(self.db):
                for key, value in changes.items():
                    setattr(category, key, value)
        except IntegrityError as e:
            if image is not None:
                self._remove_image(changes["image"])
            raise ValidationError("Category slug is already in use") from e

        # The old blob goes only once the new one is committed on the row
        if image is not None:
            self._remove_image(previous_image)

        self.db.refresh(category)
        logger.info(
            f"Category updated: {category_id}",
            extra={'extra_fields': {'category_id': category_id, 'fields': sorted(changes)}}
        )
        return self._present(category)

    def delete(self, category_id: int) -> CategoryRead:
        category = self._get_or_404(category_id)
        in_use = self.db.scalar(select(Product.id).where(Product.category_id == category_id).limit(1))
        if in_use is not None:
            raise ValidationError("Category still has products; move or delete them first")
        deleted = self._present(category)

        with atomic(self.db):
            self.db.execute(
                update(Category)
                .where(Category.parent_category_id == category_id)
                .values(parent_category_id=None)
                .execution_options(synchronize_session="fetch")
            )
            self.db.delete(category)

        self._remove_image(deleted.image)
        logger.info(f"Category deleted: {category_id}", extra={'extra_fields': {'category_id': category_id}})
        return deleted

    def _remove_image(self, filename: Optional[str]):
        try:
            self.media.remove(filename)
        except MediaStoreError as e:
            logger.warning(f"Image cleanup failed: {e}", extra={'extra_fields': {'filename': filename}})
