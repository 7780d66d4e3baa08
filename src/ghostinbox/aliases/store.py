"""AliasStore - persistent alias routing state and the wildcard policy.

Sole owner of the `aliases` and `settings` tables. Every operation is keyed
on the lower-cased local part of the address (anything from `@` on is
dropped), and a missing alias is reported as a None/False result rather
than an exception.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..database import create_db_engine, create_session_factory, init_schema, session_scope
from ..domain.ports.clock_port import ClockPort
from ..models.alias import Alias, Setting, WILDCARD_SETTING_KEY
from ..models.base import AliasBase

logger = logging.getLogger(__name__)


def normalize_alias_name(name: Optional[str]) -> str:
    """Reduce an alias or full address to its lower-cased local part.

    Examples:
        'Shop@Example.com' -> 'shop'
        ' news ' -> 'news'
    """
    if not name:
        return ""
    return name.strip().split("@", 1)[0].strip().lower()


class AliasStore:
    """Alias CRUD, last-sender bookkeeping and the global wildcard flag."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: ClockPort,
        default_wildcard_enabled: bool = True,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.default_wildcard_enabled = default_wildcard_enabled

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock.now(), tz=timezone.utc)

    def ensure_defaults(self) -> None:
        """Seed the wildcard flag if it has never been set."""
        with session_scope(self.session_factory) as session:
            if session.get(Setting, WILDCARD_SETTING_KEY) is None:
                session.add(Setting(
                    key=WILDCARD_SETTING_KEY,
                    value=_flag(self.default_wildcard_enabled),
                ))

    def get(self, name: str) -> Optional[Alias]:
        key = normalize_alias_name(name)
        if not key:
            return None
        with session_scope(self.session_factory) as session:
            return session.query(Alias).filter(Alias.name == key).first()

    def list_all(self) -> List[Alias]:
        """All aliases, newest first."""
        with session_scope(self.session_factory) as session:
            return (
                session.query(Alias)
                .order_by(Alias.created_at.desc(), Alias.id.desc())
                .all()
            )

    def create_if_absent(
        self,
        name: str,
        last_sender: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Create an alias unless it already exists.

        Idempotent: concurrent creators of the same name race on the unique
        constraint, and the loser simply reports False.

        Returns:
            bool: True if this call created the alias
        """
        key = normalize_alias_name(name)
        if not key:
            logger.warning("Refusing to create alias with empty name")
            return False

        try:
            with session_scope(self.session_factory) as session:
                if session.query(Alias.id).filter(Alias.name == key).first():
                    return False
                session.add(Alias(
                    name=key,
                    enabled=True,
                    notes=notes,
                    last_sender=last_sender or None,
                    created_at=self._now(),
                ))
        except IntegrityError:
            logger.info(f"Alias {key} was created concurrently")
            return False

        logger.info(f"Created alias {key}", extra={"alias": key})
        return True

    def create(self, name: str, notes: str = "") -> bool:
        """Explicit admin creation (no last sender yet)."""
        return self.create_if_absent(name, last_sender=None, notes=notes)

    def set_enabled(self, name: str, enabled: bool) -> bool:
        """Enable or block an alias.

        Returns:
            bool: False if the alias does not exist
        """
        return self._update(name, enabled=bool(enabled))

    def block(self, name: str) -> bool:
        return self.set_enabled(name, False)

    def unblock(self, name: str) -> bool:
        return self.set_enabled(name, True)

    def update_notes(self, name: str, notes: str) -> bool:
        return self._update(name, notes=notes)

    def update_last_sender(self, name: str, sender: str) -> bool:
        """Record the external correspondent of an inbound message."""
        return self._update(name, last_sender=sender or None, last_used_at=self._now())

    def delete(self, name: str) -> bool:
        key = normalize_alias_name(name)
        if not key:
            return False
        with session_scope(self.session_factory) as session:
            deleted = session.query(Alias).filter(Alias.name == key).delete()
        if deleted:
            logger.info(f"Deleted alias {key}", extra={"alias": key})
        return deleted > 0

    def get_wildcard_policy(self) -> bool:
        with session_scope(self.session_factory) as session:
            setting = session.get(Setting, WILDCARD_SETTING_KEY)
            if setting is None:
                return self.default_wildcard_enabled
            return setting.value == "true"

    def set_wildcard_policy(self, enabled: bool) -> None:
        with session_scope(self.session_factory) as session:
            session.merge(Setting(key=WILDCARD_SETTING_KEY, value=_flag(enabled)))
        logger.info(f"Wildcard aliases {'enabled' if enabled else 'disabled'}")

    def toggle_wildcard_policy(self) -> bool:
        """Flip the wildcard flag and return the new value."""
        with session_scope(self.session_factory) as session:
            setting = session.get(Setting, WILDCARD_SETTING_KEY)
            current = (
                self.default_wildcard_enabled if setting is None
                else setting.value == "true"
            )
            session.merge(Setting(key=WILDCARD_SETTING_KEY, value=_flag(not current)))
        logger.info(f"Wildcard aliases {'enabled' if not current else 'disabled'}")
        return not current

    def _update(self, name: str, **values) -> bool:
        key = normalize_alias_name(name)
        if not key:
            return False
        with session_scope(self.session_factory) as session:
            alias = session.query(Alias).filter(Alias.name == key).first()
            if alias is None:
                return False
            for field_name, value in values.items():
                setattr(alias, field_name, value)
        return True


def _flag(value: bool) -> str:
    return "true" if value else "false"


def create_alias_store(settings, clock: ClockPort) -> AliasStore:
    """Open the alias database, create its tables and seed the wildcard flag.

    Raises:
        OSError: If the SQLite database directory cannot be created
        SQLAlchemyError: If the database cannot be opened
    """
    engine = create_db_engine(settings.ALIAS_DATABASE_URL)
    init_schema(engine, AliasBase)
    store = AliasStore(
        create_session_factory(engine),
        clock,
        default_wildcard_enabled=settings.DEFAULT_WILDCARD_ENABLED,
    )
    store.ensure_defaults()
    return store
