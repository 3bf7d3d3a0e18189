"""Bootstrap logic for wiring the review engine to its database."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from studydeck.app.settings import AppSettings
from studydeck.db import get_session_factory, run_migrations_if_needed
from studydeck.review import ReviewSession, SqlAlchemyCardStore


LOGGER = logging.getLogger(__name__)


def _configure_logging(log_level: str) -> None:
    """Set up project-wide logging configuration."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=log_level,
    )


@dataclass
class ReviewRuntime:
    """A configured card store plus the settings sessions are built with."""

    settings: AppSettings
    store: SqlAlchemyCardStore

    def new_session(self, owner_id: str, deck_id: Optional[str] = None) -> ReviewSession:
        """Create an unstarted review session for ``owner_id``."""
        return ReviewSession(
            self.store,
            owner_id,
            deck_id=deck_id,
            commit_timeout=self.settings.commit_timeout_seconds,
        )


def bootstrap(settings: AppSettings) -> ReviewRuntime:
    """Prepare logging, the schema and the card store."""
    _configure_logging(settings.log_level)

    try:
        run_migrations_if_needed()
    except Exception:
        LOGGER.exception("Database migrations failed. Aborting startup.")
        raise

    store = SqlAlchemyCardStore(get_session_factory())
    LOGGER.info("%s review engine ready in %s mode.", settings.app_name, settings.app_env)
    return ReviewRuntime(settings=settings, store=store)
