"""Subjects and bodies for transactional email."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Any, Callable, Mapping

JUDGE_OFFER = "judge_offer"
JUDGE_OFFER_ACCEPTED = "judge_offer_accepted"
JUDGE_OFFER_DECLINED = "judge_offer_declined"
JUDGE_CONFIRMATION = "judge_confirmation"
ENTRY_CONFIRMATION = "entry_confirmation"


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    subject: str
    html: str


class UnknownTemplateError(LookupError):
    pass


def _field(context: Mapping[str, Any], key: str, default: str = "") -> str:
    value = context.get(key)
    return escape(str(value)) if value is not None else default


def _judge_offer(context: Mapping[str, Any]) -> RenderedMessage:
    show = _field(context, "show_name", "the show")
    return RenderedMessage(
        subject=f"Judging appointment offer: {context.get('show_name', 'show')}",
        html=(
            f"<p>Dear {_field(context, 'judge_name', 'Judge')},</p>"
            f"<p>You are invited to judge at {show} on {_field(context, 'show_date')}.</p>"
            f"<p><a href=\"{_field(context, 'accept_url')}\">Accept</a> | "
            f"<a href=\"{_field(context, 'decline_url')}\">Decline</a></p>"
            f"<p>This link expires on {_field(context, 'expires_at')}.</p>"
        ),
    )


def _judge_response(accepted: bool) -> Callable[[Mapping[str, Any]], RenderedMessage]:
    verb = "accepted" if accepted else "declined"

    def render(context: Mapping[str, Any]) -> RenderedMessage:
        return RenderedMessage(
            subject=f"{context.get('judge_name', 'Judge')} {verb} the offer for {context.get('show_name', 'your show')}",
            html=(
                f"<p>{_field(context, 'judge_name', 'The judge')} has {verb} the judging "
                f"appointment for {_field(context, 'show_name', 'your show')}.</p>"
            ),
        )

    return render


def _judge_confirmation(context: Mapping[str, Any]) -> RenderedMessage:
    return RenderedMessage(
        subject=f"Judging appointment confirmed: {context.get('show_name', 'show')}",
        html=(
            f"<p>Dear {_field(context, 'judge_name', 'Judge')},</p>"
            f"<p>This confirms your appointment to judge at {_field(context, 'show_name')} "
            f"on {_field(context, 'show_date')}.</p>"
        ),
    )


def _entry_confirmation(context: Mapping[str, Any]) -> RenderedMessage:
    return RenderedMessage(
        subject=f"Entry confirmed: {context.get('show_name', 'show')}",
        html=(
            f"<p>Your order {_field(context, 'order_id')} for {_field(context, 'show_name')} "
            f"is paid. {_field(context, 'entry_count', '0')} entr(ies) confirmed.</p>"
        ),
    )


TEMPLATES: dict[str, Callable[[Mapping[str, Any]], RenderedMessage]] = {
    JUDGE_OFFER: _judge_offer,
    JUDGE_OFFER_ACCEPTED: _judge_response(True),
    JUDGE_OFFER_DECLINED: _judge_response(False),
    JUDGE_CONFIRMATION: _judge_confirmation,
    ENTRY_CONFIRMATION: _entry_confirmation,
}


def render(template_key: str, context: Mapping[str, Any]) -> RenderedMessage:
    try:
        renderer = TEMPLATES[template_key]
    except KeyError as exc:
        raise UnknownTemplateError(f"email template '{template_key}' is not registered") from exc
    return renderer(context)


__all__ = [
    "ENTRY_CONFIRMATION",
    "JUDGE_CONFIRMATION",
    "JUDGE_OFFER",
    "JUDGE_OFFER_ACCEPTED",
    "JUDGE_OFFER_DECLINED",
    "RenderedMessage",
    "TEMPLATES",
    "UnknownTemplateError",
    "render",
]
