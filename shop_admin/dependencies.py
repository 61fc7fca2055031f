"""
FastAPI dependencies: injected infrastructure handles, services and the
bearer-token guard for admin routes.

The cache and blob store are created once in the application lifespan and
kept on ``app.state``; tests replace them through
``app.dependency_overrides``.
"""
from typing import Any

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shop_admin.cache import Cache
from shop_admin.exceptions import UnauthorizedError
from shop_admin.security import decode_token
from shop_admin.storage import LocalBlobStore

bearer = HTTPBearer(auto_error=False)


def get_cache(request: Request) -> Cache:
    return request.app.state.cache


def get_blob_store(request: Request) -> LocalBlobStore:
    return request.app.state.blobs


def get_user_service(
    cache: Cache = Depends(get_cache),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    from shop_admin.services.user_service import UserService

    return UserService(cache, blobs)


def get_product_service(
    cache: Cache = Depends(get_cache),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    from shop_admin.services.product_service import ProductService

    return ProductService(cache, blobs)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> dict[str, Any]:
    """
    Return the verified token payload (``id``, ``role``) for the request.

    Raises ``UnauthorizedError`` when the header is missing or the token is
    invalid or expired.
    """
    if credentials is None:
        raise UnauthorizedError("Access denied. No token provided.")
    try:
        return decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired.")
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token.")
