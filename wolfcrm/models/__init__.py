from .base import Base
from .contacts import Contact
from .login_codes import LoginCode
from .user_sessions import UserSession
from .users import User

__all__ = [
    "Base",
    "Contact",
    "LoginCode",
    "User",
    "UserSession",
]
