from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shop_admin.database import get_db
from shop_admin.dependencies import get_current_user, get_user_service
from shop_admin.schemas import UserResponse
from shop_admin.storage import AVATARS
from shop_admin.uploads import FormPayload, UploadReceiver

# Token check runs before the body is parsed, so unauthenticated requests
# never write uploads to disk.
router = APIRouter(
    prefix="/api/admin/users",
    tags=["users"],
    dependencies=[Depends(get_current_user)],
)

receive_avatar = UploadReceiver(AVATARS, {"profile_picture": 1})


@router.get("", response_model=list[UserResponse])
async def list_users(
    search: str | None = Query(None, description="Case-insensitive match on username, name or email."),
    db: AsyncSession = Depends(get_db),
    service=Depends(get_user_service),
):
    return await service.get_users(db, search)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db), service=Depends(get_user_service)):
    return await service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: FormPayload = Depends(receive_avatar),
    db: AsyncSession = Depends(get_db),
    service=Depends(get_user_service),
):
    return await service.update_user(db, user_id, payload.fields, payload.uploads)


@router.delete("/{user_id}")
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db), service=Depends(get_user_service)):
    await service.delete_user(db, user_id)
    return {"message": "User deleted successfully"}
