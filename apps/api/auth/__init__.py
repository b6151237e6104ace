"""Authentication helpers for the API layer."""

from .jwt import (
    authenticate_user,
    create_access_token,
    get_current_user,
    hash_password,
    optional_user,
    register_user,
    verify_password,
    verify_token,
)

__all__ = [
    "authenticate_user",
    "create_access_token",
    "get_current_user",
    "hash_password",
    "optional_user",
    "register_user",
    "verify_password",
    "verify_token",
]
