"""Database model exports."""

from .account_state import AccountStateRecord

__all__ = ["AccountStateRecord"]
