"""Ownership and secretary checks shared by the services."""

from __future__ import annotations

from sqlalchemy.orm import Session

from remi.errors import ForbiddenError, NotFoundError
from remi.models import Show
from remi.repositories import ShowRepository


def require_show(session: Session, show_id: str) -> Show:
    show = ShowRepository(session).get(show_id)
    if show is None:
        raise NotFoundError("show_not_found", f"Show {show_id} does not exist", details={"show_id": show_id})
    return show


def require_secretary(session: Session, show_id: str, user_id: str) -> Show:
    """Return the show if ``user_id`` belongs to the organisation running it."""

    show = require_show(session, show_id)
    if not ShowRepository(session).is_secretary(show, user_id):
        raise ForbiddenError(
            "not_show_secretary",
            "Only the organising society's secretaries can manage this show",
            details={"show_id": show_id},
        )
    return show


__all__ = ["require_secretary", "require_show"]
