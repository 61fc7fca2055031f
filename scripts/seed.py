"""Database seeder: an admin account plus a sample product catalogue."""
import argparse
import asyncio
import random
import time

from shop_admin.config import settings
from shop_admin.database import Base, async_session, engine
from shop_admin.models import Product, User
from shop_admin.security import hash_password

CATEGORIES = {
    "shoes": ["Running Shoe", "Trail Runner", "Canvas Sneaker", "Leather Boot"],
    "bags": ["Tote Bag", "Laptop Backpack", "Sling Bag", "Duffel"],
    "home": ["Ceramic Mug", "Desk Lamp", "Linen Cushion", "Wall Clock"],
    "electronics": ["Wireless Earbuds", "Power Bank", "Smart Watch", "Bluetooth Speaker"],
}
BRANDS = ["Nusantara", "Kaya", "Lumen", "Arunika", None]


async def seed(admin_email: str, admin_password: str, variants: int, reset: bool) -> None:
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        session.add(
            User(
                username="admin",
                name="Administrator",
                email=admin_email.lower(),
                password=hash_password(admin_password),
                role="admin",
                profile_picture=settings.DEFAULT_AVATAR,
            )
        )

        count = 0
        for category, names in CATEGORIES.items():
            for name in names:
                for variant in range(1, variants + 1):
                    price = round(random.uniform(5, 500), 2)
                    on_sale = random.random() < 0.3
                    session.add(
                        Product(
                            name=f"{name} {variant}" if variants > 1 else name,
                            description=f"{name} from our {category} range.",
                            price=price,
                            discount_price=round(price * 0.8, 2) if on_sale else None,
                            stock=random.randint(0, 200),
                            category=category,
                            brand=random.choice(BRANDS),
                            images=[settings.DEFAULT_PRODUCT_IMAGE],
                        )
                    )
                    count += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"Seeded 1 admin ({admin_email}) and {count} products in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the shop admin database")
    parser.add_argument("--admin-email", default="admin@example.com")
    parser.add_argument("--admin-password", default="admin123")
    parser.add_argument("--variants", type=int, default=1, help="Copies of each sample product")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(seed(args.admin_email, args.admin_password, args.variants, args.reset))


if __name__ == "__main__":
    main()
