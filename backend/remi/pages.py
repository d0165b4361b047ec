"""HTML pages for the public judge-offer link."""

from __future__ import annotations

from html import escape

from fastapi.responses import HTMLResponse

from .domain.enums import ContractStage
from .models import JudgeContract

_STYLE = """
body { font-family: Georgia, 'Times New Roman', serif; background: #f6f3ee; color: #2b2a28; margin: 0; }
main { max-width: 36rem; margin: 4rem auto; background: #fff; padding: 2rem 2.5rem; border-top: 6px solid #5b3a29; }
h1 { font-size: 1.6rem; margin-top: 0; }
dl { display: grid; grid-template-columns: max-content 1fr; gap: .4rem 1rem; }
dt { font-weight: bold; }
form { display: inline-block; margin-right: .75rem; }
button { font: inherit; padding: .5rem 1.4rem; border: 0; cursor: pointer; }
button.accept { background: #2f6b3a; color: #fff; }
button.decline { background: #8a2d2d; color: #fff; }
.muted { color: #6b665e; font-size: .9rem; }
"""


def page(title: str, body: str, *, status_code: int = 200) -> HTMLResponse:
    html = (
        "<!doctype html><html lang=\"en\"><head><meta charset=\"utf-8\">"
        f"<title>{escape(title)}</title><style>{_STYLE}</style></head>"
        f"<body><main><h1>{escape(title)}</h1>{body}</main></body></html>"
    )
    return HTMLResponse(content=html, status_code=status_code)


def message_page(title: str, message: str, *, status_code: int) -> HTMLResponse:
    return page(title, f"<p>{escape(message)}</p>", status_code=status_code)


def _details(contract: JudgeContract) -> str:
    show = contract.show
    rows = [
        ("Show", show.name),
        ("Date", show.start_date.strftime("%d %B %Y")),
        ("Venue", show.venue or "To be confirmed"),
        ("Judge", contract.judge.name if contract.judge else ""),
        ("Hospitality", contract.hospitality or "None specified"),
        ("Travel expenses", contract.travel_expenses or "None specified"),
    ]
    if contract.notes:
        rows.append(("Notes", contract.notes))
    items = "".join(f"<dt>{escape(label)}</dt><dd>{escape(str(value))}</dd>" for label, value in rows)
    return f"<dl>{items}</dl>"


def _action_form(token: str, action: str, label: str) -> str:
    return (
        f"<form method=\"post\" action=\"/judge-contract/{escape(token)}\">"
        f"<input type=\"hidden\" name=\"action\" value=\"{action}\">"
        f"<button class=\"{action}\" type=\"submit\">{label}</button></form>"
    )


def offer_page(contract: JudgeContract, *, action: str | None = None) -> HTMLResponse:
    """Full appointment detail with accept/decline buttons.

    ``action`` narrows the page to the one button the email link pointed at;
    nothing changes until the form is posted.
    """

    token = contract.offer_token
    buttons = []
    if action in (None, "accept"):
        buttons.append(_action_form(token, "accept", "Accept appointment"))
    if action in (None, "decline"):
        buttons.append(_action_form(token, "decline", "Decline appointment"))
    expiry = contract.token_expires_at.strftime("%d %B %Y")
    body = (
        "<p>You have been invited to judge at the show below.</p>"
        f"{_details(contract)}{''.join(buttons)}"
        f"<p class=\"muted\">This link is valid until {escape(expiry)}.</p>"
    )
    return page("Judging appointment offer", body)


def responded_page(contract: JudgeContract, *, status_code: int = 200) -> HTMLResponse:
    stage = contract.stage.replace("_", " ")
    body = (
        f"<p>This offer has already been responded to (current status: {escape(stage)}).</p>"
        f"{_details(contract)}"
        "<p class=\"muted\">Contact the show secretary if this is not what you expected.</p>"
    )
    return page("Already responded", body, status_code=status_code)


def outcome_page(contract: JudgeContract) -> HTMLResponse:
    if contract.stage == ContractStage.OFFER_ACCEPTED.value:
        title = "Appointment accepted"
        message = "Thank you. The show secretary has been told and will send formal confirmation."
    else:
        title = "Appointment declined"
        message = "Thank you for letting us know. The show secretary has been told."
    return page(title, f"<p>{escape(message)}</p>{_details(contract)}")


__all__ = ["message_page", "offer_page", "outcome_page", "page", "responded_page"]
