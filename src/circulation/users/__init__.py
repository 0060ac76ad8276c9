"""User registry module."""

from .manager import UserManager, hash_password

__all__ = ["UserManager", "hash_password"]
