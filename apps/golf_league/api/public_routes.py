"""
Public RSVP routes - no authentication required.

Players answer an invite by following the link in their email or text
message. The token in the link identifies the event player; answering twice
does not change anything.
"""

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import limiter
from golf_league.database.db import get_db_session
from golf_league.models.schemas import PublicRsvpRequest
from golf_league.services import rsvp_service

logger = logging.getLogger(__name__)

public_router = APIRouter(tags=["public"])

RESULT_STATUS_CODES = {
    rsvp_service.RESULT_SUCCESS: 200,
    rsvp_service.RESULT_ALREADY_RESPONDED: 200,
    rsvp_service.RESULT_INVALID: 404,
    rsvp_service.RESULT_ERROR: 400,
}

PAGE_STYLE = """
body { font-family: sans-serif; background: #f4f4f5; margin: 0; padding: 40px 16px; }
.card { max-width: 420px; margin: 0 auto; background: #fff; border-radius: 8px; overflow: hidden; }
.header { padding: 24px; color: #fff; text-align: center; }
.body { padding: 24px; }
.yes { background: #16a34a; } .no { background: #dc2626; } .warn { background: #f59e0b; }
.details { font-size: 14px; color: #52525b; }
.choices a { display: inline-block; margin: 8px; padding: 10px 24px; border-radius: 6px; color: #fff; text-decoration: none; }
"""


def _page_title(result: dict) -> str:
    if result["result"] == rsvp_service.RESULT_ALREADY_RESPONDED:
        return "Already Responded"
    if result["result"] != rsvp_service.RESULT_SUCCESS:
        return "Something Went Wrong"
    if result.get("status") == "yes":
        return "You're In!"
    return "Maybe Next Time"


def _header_class(result: dict) -> str:
    if result["result"] not in (rsvp_service.RESULT_SUCCESS, rsvp_service.RESULT_ALREADY_RESPONDED):
        return "warn"
    return "yes" if result.get("status") == "yes" else "no"


def _details_html(details: Optional[dict]) -> str:
    if not details:
        return ""
    rows = [
        ("Course", details.get("course") or "TBD"),
        ("Date", details.get("date")),
        ("Tee time", details.get("teeTime")),
        ("Holes", details.get("holes")),
    ]
    items = "".join(f"<li><strong>{label}:</strong> {html.escape(str(value))}</li>" for label, value in rows)
    return f'<ul class="details">{items}</ul>'


def render_rsvp_page(title: str, header_class: str, message: str, extra: str = "") -> str:
    """Minimal standalone HTML page; all dynamic text must be escaped by the caller or here."""
    return f"""<!DOCTYPE html>
<html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1">
        <title>{html.escape(title)}</title>
        <style>{PAGE_STYLE}</style>
    </head>
    <body>
        <div class="card">
            <div class="header {header_class}"><h1>{html.escape(title)}</h1></div>
            <div class="body">
                <p>{html.escape(message)}</p>
                {extra}
            </div>
        </div>
    </body>
</html>"""


def _choice_page(token: str) -> str:
    safe_token = html.escape(token, quote=True)
    links = (
        '<div class="choices">'
        f'<a class="yes" href="/rsvp/{safe_token}?response=yes">Yes, I\'m in</a>'
        f'<a class="no" href="/rsvp/{safe_token}?response=no">No, can\'t make it</a>'
        "</div>"
    )
    return render_rsvp_page("Golf Event RSVP", "yes", "Will you be playing?", links)


@public_router.get("/rsvp/{token}", response_class=HTMLResponse)
@limiter.limit("30/minute")
async def rsvp_page(
    request: Request,
    token: str,
    response: Optional[str] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """
    RSVP link target.

    Without a response the page offers Yes/No links; with one the answer is
    recorded and the outcome shown.
    """
    if not response:
        return HTMLResponse(content=_choice_page(token))

    try:
        result = await rsvp_service.resolve_rsvp(session, token, response.strip().lower())
    except Exception:
        logger.error("Error processing RSVP link", exc_info=True)
        result = {
            "result": rsvp_service.RESULT_ERROR,
            "message": "An error occurred processing your response. Please try again or contact the event organizer.",
        }
        return HTMLResponse(
            content=render_rsvp_page(_page_title(result), _header_class(result), result["message"]),
            status_code=500,
        )

    page = render_rsvp_page(
        _page_title(result),
        _header_class(result),
        result["message"],
        _details_html(result.get("eventDetails")),
    )
    return HTMLResponse(content=page, status_code=RESULT_STATUS_CODES[result["result"]])


@public_router.post("/api/public/rsvp")
@limiter.limit("30/minute")
async def submit_rsvp(
    request: Request,
    body: PublicRsvpRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Record an RSVP answer.

    Returns {result, status?, playerName?, message, eventDetails?}.
    success and already_responded are 200, invalid is 404, error is 400.
    """
    try:
        result = await rsvp_service.resolve_rsvp(session, body.token, body.response.strip().lower())
    except Exception:
        logger.error("Error processing RSVP submission", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"result": rsvp_service.RESULT_ERROR, "message": "Failed to process RSVP"},
        )
    return JSONResponse(status_code=RESULT_STATUS_CODES[result["result"]], content=result)
