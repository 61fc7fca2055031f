"""
User service: registration, login and admin CRUD for the User aggregate.

Design notes
------------
- Reads go through the cache-aside pattern: ``user:<id>`` for a single
  record, ``users:<filter>`` for lists.  Every write drops the record's own
  entry and all ``users:*`` list entries.
- The service owns the avatar lifecycle.  An uploaded ``profile_picture``
  is promoted only once the write has been flushed; any failure before
  that deletes it.  The avatar it replaces is deleted after the write
  succeeds, never before.
- Service methods flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from shop_admin.cache import Cache, entity_key, invalidate_entity, invalidate_lists, list_key
from shop_admin.config import settings
from shop_admin.exceptions import NotFoundError, UnauthorizedError, translate_repository_error
from shop_admin.models import User
from shop_admin.repositories import RepositoryError, UserRepository, user_repository
from shop_admin.schemas import LoginRequest, UserCreate, UserUpdate, decode
from shop_admin.security import create_access_token, hash_password, verify_password
from shop_admin.storage import AVATARS, LocalBlobStore
from shop_admin.uploads import PendingUploads, discard_on_error

logger = logging.getLogger(__name__)

ENTITY = "user"
COLLECTION = "users"
AVATAR_FIELD = "profile_picture"


def _user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a plain dict; the hash is omitted."""
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "phone_number": user.phone_number,
        "address": user.address,
        "profile_picture": user.profile_picture,
        "role": user.role,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


def _search_filter(search: str | None) -> dict:
    term = (search or "").strip().lower()
    return {"search": term} if term else {}


class UserService:
    def __init__(
        self,
        cache: Cache,
        blobs: LocalBlobStore,
        repository: UserRepository = user_repository,
    ) -> None:
        self._cache = cache
        self._blobs = blobs
        self._repository = repository

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_users(self, db: AsyncSession, search: str | None = None) -> list[dict]:
        """
        Return users newest first, optionally filtered by a case-insensitive
        substring of username, name or email.
        """
        query_filter = _search_filter(search)
        cache_key = list_key(COLLECTION, query_filter)
        cached = await self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Serving %s from cache", cache_key)
            return cached

        users = await self._repository.find_all(db, query_filter.get("search"))
        data = [_user_to_dict(u) for u in users]
        await self._cache.set(cache_key, data, ttl=settings.CACHE_TTL)
        return data

    async def get_user(self, db: AsyncSession, user_id: int) -> dict:
        cache_key = entity_key(ENTITY, user_id)
        cached = await self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Serving %s from cache", cache_key)
            return cached

        user = await self._repository.find_by_id(db, user_id)
        if user is None:
            raise NotFoundError(f"User with ID: {user_id} not found.")

        data = _user_to_dict(user)
        await self._cache.set(cache_key, data, ttl=settings.CACHE_TTL)
        return data

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def register(
        self, db: AsyncSession, fields: dict[str, Any], uploads: PendingUploads
    ) -> dict:
        """
        Create a user from form *fields* and an optional avatar upload.

        Raises ``ValidationError`` for malformed input (including an
        undecodable ``address``) and ``ConflictError`` when the username or
        email is taken; the upload is deleted in both cases.
        """
        async with discard_on_error(uploads, self._blobs):
            data = decode(UserCreate, fields)
            avatar = uploads.first(AVATAR_FIELD)
            values = data.model_dump(exclude={"password"})
            values["password"] = hash_password(data.password)
            values["profile_picture"] = avatar.filename if avatar else settings.DEFAULT_AVATAR
            try:
                user = await self._repository.insert(db, values)
            except RepositoryError as exc:
                raise translate_repository_error(exc) from exc

        await invalidate_lists(self._cache, COLLECTION)
        logger.info("Registered user id=%s username=%s", user.id, user.username)
        return _user_to_dict(user)

    async def login(self, db: AsyncSession, fields: dict[str, Any]) -> dict:
        """Return ``{"user": ..., "token": ...}`` for valid credentials."""
        data = decode(LoginRequest, fields)
        user = await self._repository.find_one(db, email=data.email.lower())
        if user is None or not verify_password(data.password, user.password):
            raise UnauthorizedError("Invalid credentials. Email or password incorrect.")
        return {"user": _user_to_dict(user), "token": create_access_token(user.id, user.role)}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_user(
        self,
        db: AsyncSession,
        user_id: int,
        fields: dict[str, Any],
        uploads: PendingUploads,
    ) -> dict:
        """
        Partially update a user.

        Only fields present in the request are changed.  A new avatar upload
        replaces the stored one; ``profile_picture`` sent as null or an empty
        string resets it to the default.  A supplied password is rehashed
        only when it differs from the current one.
        """
        async with discard_on_error(uploads, self._blobs):
            user = await self._repository.find_by_id(db, user_id)
            if user is None:
                raise NotFoundError(f"User with ID: {user_id} not found.")

            data = decode(UserUpdate, fields)
            values = data.model_dump(exclude_unset=True, exclude={"password", AVATAR_FIELD})

            if data.password and not verify_password(data.password, user.password):
                values["password"] = hash_password(data.password)

            previous_avatar = user.profile_picture
            avatar = uploads.first(AVATAR_FIELD)
            if avatar is not None:
                values["profile_picture"] = avatar.filename
            elif AVATAR_FIELD in data.model_fields_set and data.profile_picture is None:
                values["profile_picture"] = settings.DEFAULT_AVATAR

            try:
                user = await self._repository.update_by_id(db, user_id, values)
            except RepositoryError as exc:
                raise translate_repository_error(exc) from exc

        if previous_avatar != user.profile_picture:
            await self._delete_avatar(previous_avatar)
        await invalidate_entity(self._cache, ENTITY, COLLECTION, user_id)
        return _user_to_dict(user)

    async def delete_user(self, db: AsyncSession, user_id: int) -> None:
        user = await self._repository.find_by_id(db, user_id)
        if user is None:
            raise NotFoundError(f"User with ID: {user_id} not found.")

        await self._delete_avatar(user.profile_picture)
        try:
            await self._repository.delete_by_id(db, user_id)
        except RepositoryError as exc:
            raise translate_repository_error(exc) from exc
        await invalidate_entity(self._cache, ENTITY, COLLECTION, user_id)
        logger.info("Deleted user id=%s", user_id)

    async def count(self, db: AsyncSession) -> int:
        return await self._repository.count(db)

    async def _delete_avatar(self, filename: str | None) -> None:
        if filename and filename != settings.DEFAULT_AVATAR:
            await self._blobs.delete(self._blobs.path_for(AVATARS, filename))
