from shop_admin.repositories.errors import (
    ConstraintViolation,
    DuplicateKeyError,
    RecordNotFound,
    RepositoryError,
)
from shop_admin.repositories.product_repository import ProductRepository, product_repository
from shop_admin.repositories.user_repository import UserRepository, user_repository

__all__ = [
    "ConstraintViolation",
    "DuplicateKeyError",
    "ProductRepository",
    "RecordNotFound",
    "RepositoryError",
    "UserRepository",
    "product_repository",
    "user_repository",
]
