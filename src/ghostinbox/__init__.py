"""GhostInbox - per-contact email aliases relayed to one real mailbox."""

__version__ = "0.3.0"
