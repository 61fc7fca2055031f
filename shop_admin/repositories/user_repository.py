from shop_admin.models import User
from shop_admin.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence for the users table."""

    search_fields = ("username", "name", "email")
    check_messages = {
        "ck_users_role": ("role", "Role must be either 'user' or 'admin'."),
    }

    def __init__(self) -> None:
        super().__init__(User)


user_repository = UserRepository()
