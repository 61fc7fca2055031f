"""
Product service: CRUD for the Product aggregate, including its image set.

Image rules
-----------
- A product always has at least one image; an empty set is replaced by
  ``DEFAULT_PRODUCT_IMAGE`` and the placeholder is dropped as soon as a
  real image is present.
- On create the image set is the uploaded files (``product_image`` first,
  then ``images``) followed by any references passed in the ``images``
  field, de-duplicated in first-seen order.
- On update the set is the current images, plus new uploads, plus the
  explicit ``images`` list.  The explicit list augments rather than
  replaces; sending ``images`` as null or "" clears the current images
  first.  Images that fall out of the set are deleted from disk after the
  update has been flushed.

Every failure before the write completes deletes this request's uploads.
"""
import logging
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from shop_admin.cache import Cache, entity_key, invalidate_entity, invalidate_lists, list_key
from shop_admin.config import settings
from shop_admin.exceptions import NotFoundError, ValidationError, translate_repository_error
from shop_admin.models import Product
from shop_admin.repositories import ProductRepository, RepositoryError, product_repository
from shop_admin.schemas import ProductCreate, ProductUpdate, decode
from shop_admin.storage import PRODUCTS, LocalBlobStore
from shop_admin.uploads import PendingUploads, discard_on_error

logger = logging.getLogger(__name__)

ENTITY = "product"
COLLECTION = "products"
IMAGE_FIELDS = ("product_image", "images")


def _product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "discount_price": product.discount_price,
        "stock": product.stock,
        "category": product.category,
        "brand": product.brand,
        "images": list(product.images),
        "created_at": product.created_at.isoformat() if product.created_at else None,
        "updated_at": product.updated_at.isoformat() if product.updated_at else None,
    }


def merge_images(*sources: Iterable[str]) -> list[str]:
    """
    Union *sources* in order, skipping blanks and duplicates.

    The placeholder is only kept when nothing else remains.
    """
    merged: list[str] = []
    for source in sources:
        for image in source:
            if image and image not in merged:
                merged.append(image)
    real = [image for image in merged if image != settings.DEFAULT_PRODUCT_IMAGE]
    return real or [settings.DEFAULT_PRODUCT_IMAGE]


def _check_discount(price: float | None, discount_price: float | None) -> None:
    if price is not None and discount_price is not None and discount_price > price:
        raise ValidationError.for_field(
            "discount_price", "Discount price cannot be greater than the original price."
        )


class ProductService:
    def __init__(
        self,
        cache: Cache,
        blobs: LocalBlobStore,
        repository: ProductRepository = product_repository,
    ) -> None:
        self._cache = cache
        self._blobs = blobs
        self._repository = repository

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_products(self, db: AsyncSession, search: str | None = None) -> list[dict]:
        """Return products newest first, optionally filtered by name."""
        term = (search or "").strip().lower()
        query_filter = {"search": term} if term else {}
        cache_key = list_key(COLLECTION, query_filter)
        cached = await self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Serving %s from cache", cache_key)
            return cached

        products = await self._repository.find_all(db, term or None)
        data = [_product_to_dict(p) for p in products]
        await self._cache.set(cache_key, data, ttl=settings.CACHE_TTL)
        return data

    async def get_product(self, db: AsyncSession, product_id: int) -> dict:
        cache_key = entity_key(ENTITY, product_id)
        cached = await self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Serving %s from cache", cache_key)
            return cached

        product = await self._repository.find_by_id(db, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID: {product_id} not found.")

        data = _product_to_dict(product)
        await self._cache.set(cache_key, data, ttl=settings.CACHE_TTL)
        return data

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_product(
        self, db: AsyncSession, fields: dict[str, Any], uploads: PendingUploads
    ) -> dict:
        async with discard_on_error(uploads, self._blobs):
            data = decode(ProductCreate, fields)
            _check_discount(data.price, data.discount_price)

            values = data.model_dump(exclude={"images"})
            values["images"] = merge_images(uploads.filenames(*IMAGE_FIELDS), data.images or [])
            try:
                product = await self._repository.insert(db, values)
            except RepositoryError as exc:
                raise translate_repository_error(exc) from exc

        await invalidate_lists(self._cache, COLLECTION)
        logger.info("Created product id=%s with %d image(s)", product.id, len(product.images))
        return _product_to_dict(product)

    async def update_product(
        self,
        db: AsyncSession,
        product_id: int,
        fields: dict[str, Any],
        uploads: PendingUploads,
    ) -> dict:
        """
        Partially update a product and reconcile its image set.

        Raises ``NotFoundError``, ``ValidationError`` (bad field, bad
        ``images`` JSON, discount above price) or ``ConflictError``
        (duplicate name).
        """
        async with discard_on_error(uploads, self._blobs):
            product = await self._repository.find_by_id(db, product_id)
            if product is None:
                raise NotFoundError(f"Product with ID: {product_id} not found.")

            data = decode(ProductUpdate, fields)
            values = data.model_dump(exclude_unset=True, exclude={"images"})

            effective_price = data.price if data.price is not None else product.price
            if "discount_price" in values:
                _check_discount(effective_price, data.discount_price)
            elif "price" in values:
                _check_discount(effective_price, product.discount_price)

            stored_images = list(product.images)
            clearing = "images" in data.model_fields_set and data.images is None
            current = [] if clearing else stored_images
            final_images = merge_images(
                current, uploads.filenames(*IMAGE_FIELDS), data.images or []
            )
            values["images"] = final_images

            try:
                product = await self._repository.update_by_id(db, product_id, values)
            except RepositoryError as exc:
                raise translate_repository_error(exc) from exc

        dropped = [image for image in stored_images if image not in final_images]
        await self._delete_images(dropped)
        await invalidate_entity(self._cache, ENTITY, COLLECTION, product_id)
        return _product_to_dict(product)

    async def delete_product(self, db: AsyncSession, product_id: int) -> None:
        product = await self._repository.find_by_id(db, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID: {product_id} not found.")

        await self._delete_images(product.images)
        try:
            await self._repository.delete_by_id(db, product_id)
        except RepositoryError as exc:
            raise translate_repository_error(exc) from exc
        await invalidate_entity(self._cache, ENTITY, COLLECTION, product_id)
        logger.info("Deleted product id=%s", product_id)

    async def count(self, db: AsyncSession) -> int:
        return await self._repository.count(db)

    async def _delete_images(self, images: Iterable[str]) -> None:
        """Delete non-placeholder images one at a time."""
        for image in images:
            if image and image != settings.DEFAULT_PRODUCT_IMAGE:
                await self._blobs.delete(self._blobs.path_for(PRODUCTS, image))
