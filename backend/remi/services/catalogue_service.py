from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.orm import Session

from remi.db import lock_show
from remi.domain.catalogue import sequence
from remi.repositories import EntryRepository

from .access import require_secretary, require_show


@dataclass(slots=True)
class CatalogueAssignment:
    show_id: str
    numbers: list[tuple[str, str]] = field(default_factory=list)

    @property
    def assigned(self) -> int:
        return len(self.numbers)


class CatalogueService:
    """Number a show's confirmed entries 1..N in catalogue order."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._entries = EntryRepository(session)

    def assign_numbers(self, show_id: str, user_id: str | None = None) -> CatalogueAssignment:
        """Rewrite every catalogue number for the show in one transaction.

        Pass ``user_id`` to require that the caller is one of the show's
        secretaries; the CLI runs without it.
        """

        if user_id is None:
            require_show(self._session, show_id)
        else:
            require_secretary(self._session, show_id, user_id)

        try:
            lock_show(self._session, show_id)
            numbers = sequence(self._entries.catalogue_candidates(show_id))
            self._entries.clear_catalogue_numbers(show_id)
            self._session.flush()
            self._entries.write_catalogue_numbers(numbers)
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.exception("Catalogue numbering failed for show {}", show_id)
            raise

        logger.info("Assigned {} catalogue numbers for show {}", len(numbers), show_id)
        return CatalogueAssignment(show_id=show_id, numbers=numbers)


__all__ = ["CatalogueAssignment", "CatalogueService"]
