"""Services package exports."""

from src.services.auth_service import AuthService
from src.services.logging_service import configure_logging, get_logger
from src.services.password_service import PasswordService
from src.services.token_service import TokenService, get_token_service
from src.services.user_service import UserService

__all__ = [
    "AuthService",
    "PasswordService",
    "TokenService",
    "UserService",
    "configure_logging",
    "get_logger",
    "get_token_service",
]
