from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shop_admin.database import get_db
from shop_admin.dependencies import get_current_user, get_product_service
from shop_admin.schemas import ProductResponse
from shop_admin.storage import PRODUCTS
from shop_admin.uploads import FormPayload, UploadReceiver

router = APIRouter(
    prefix="/api/admin/products",
    tags=["products"],
    dependencies=[Depends(get_current_user)],
)

receive_images = UploadReceiver(PRODUCTS, {"product_image": 1, "images": 10})


@router.get("", response_model=list[ProductResponse])
async def list_products(
    search: str | None = Query(None, description="Case-insensitive match on product name."),
    db: AsyncSession = Depends(get_db),
    service=Depends(get_product_service),
):
    return await service.get_products(db, search)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int, db: AsyncSession = Depends(get_db), service=Depends(get_product_service)
):
    return await service.get_product(db, product_id)


@router.post("", status_code=201, response_model=ProductResponse)
async def create_product(
    payload: FormPayload = Depends(receive_images),
    db: AsyncSession = Depends(get_db),
    service=Depends(get_product_service),
):
    return await service.create_product(db, payload.fields, payload.uploads)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    payload: FormPayload = Depends(receive_images),
    db: AsyncSession = Depends(get_db),
    service=Depends(get_product_service),
):
    return await service.update_product(db, product_id, payload.fields, payload.uploads)


@router.delete("/{product_id}")
async def delete_product(
    product_id: int, db: AsyncSession = Depends(get_db), service=Depends(get_product_service)
):
    await service.delete_product(db, product_id)
    return {"message": "Product deleted successfully"}
