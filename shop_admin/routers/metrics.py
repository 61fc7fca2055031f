from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shop_admin.cache import Cache
from shop_admin.database import get_db
from shop_admin.dependencies import get_cache, get_current_user, get_product_service, get_user_service
from shop_admin.schemas import MetricsResponse

router = APIRouter(
    prefix="/api/admin/metrics",
    tags=["metrics"],
    dependencies=[Depends(get_current_user)],
)


@router.get("", response_model=MetricsResponse)
async def get_metrics(
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    users=Depends(get_user_service),
    products=Depends(get_product_service),
):
    return MetricsResponse(
        total_users=await users.count(db),
        total_products=await products.count(db),
        cache_info=getattr(cache, "stats", {}),
    )
