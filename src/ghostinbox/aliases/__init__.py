"""Alias storage and administration."""

from .store import AliasStore, create_alias_store, normalize_alias_name

__all__ = ["AliasStore", "create_alias_store", "normalize_alias_name"]
