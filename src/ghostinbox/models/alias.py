"""Alias and Setting models.

SSOT: aliases{name, enabled, notes, last_sender, created_at, last_used_at}
and settings{key, value}.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, Text, true

from .base import AliasBase


WILDCARD_SETTING_KEY = "wildcard_enabled"


class Alias(AliasBase):
    """A domain-local alias relayed to the destination mailbox.

    `name` is the lower-cased local part only. `last_sender` is the most
    recent external correspondent and is only ever written by inbound
    external messages; replies are routed to it.
    """
    __tablename__ = "aliases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, unique=True, nullable=False, index=True)
    enabled = Column(Boolean, nullable=False, default=True, server_default=true())
    notes = Column(Text, nullable=True)
    last_sender = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self):
        """Convert alias to dictionary representation"""
        return {
            "alias": self.name,
            "enabled": self.enabled,
            "notes": self.notes,
            "last_sender": self.last_sender,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }

    def __repr__(self):
        return f"<Alias(name={self.name}, enabled={self.enabled})>"


class Setting(AliasBase):
    """Global key/value operator settings (currently the wildcard flag)."""
    __tablename__ = "settings"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=True)
