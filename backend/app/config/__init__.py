"""Configuration package for the margin ledger service."""

from .settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]
