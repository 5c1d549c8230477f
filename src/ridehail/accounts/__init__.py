"""Accounts, credentials and role profiles."""

from .models import AccountView, AuthResult, Role
from .passwords import hash_password, verify_password
from .service import AccountService
from .tokens import Principal, TokenService

__all__ = [
    "AccountService",
    "AccountView",
    "AuthResult",
    "Principal",
    "Role",
    "TokenService",
    "hash_password",
    "verify_password",
]
