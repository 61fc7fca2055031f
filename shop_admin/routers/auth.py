from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shop_admin.database import get_db
from shop_admin.dependencies import get_user_service
from shop_admin.schemas import LoginResponse, UserResponse
from shop_admin.storage import AVATARS
from shop_admin.uploads import FormPayload, UploadReceiver

router = APIRouter(prefix="/api", tags=["auth"])

receive_avatar = UploadReceiver(AVATARS, {"profile_picture": 1})
# Login accepts no files; any file part is rejected.
receive_credentials = UploadReceiver(AVATARS, {})


@router.post("/register", status_code=201, response_model=UserResponse)
async def register(
    payload: FormPayload = Depends(receive_avatar),
    db: AsyncSession = Depends(get_db),
    service=Depends(get_user_service),
):
    return await service.register(db, payload.fields, payload.uploads)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: FormPayload = Depends(receive_credentials),
    db: AsyncSession = Depends(get_db),
    service=Depends(get_user_service),
):
    return await service.login(db, payload.fields)
