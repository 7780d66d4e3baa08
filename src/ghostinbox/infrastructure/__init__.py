"""Infrastructure adapters: message parsing, MTA submission, packet filter, clock."""
