from shop_admin.models import Product
from shop_admin.repositories.base import BaseRepository


class ProductRepository(BaseRepository[Product]):
    """Persistence for the products table."""

    search_fields = ("name",)
    check_messages = {
        "ck_products_price": ("price", "Price cannot be negative."),
        "ck_products_stock": ("stock", "Stock cannot be negative."),
        "ck_products_discount_price": (
            "discount_price",
            "Discount price cannot be greater than the original price.",
        ),
    }

    def __init__(self) -> None:
        super().__init__(Product)


product_repository = ProductRepository()
