"""
Public tracking endpoints.

These endpoints are unauthenticated because they are embedded in outgoing
emails. The token only identifies offer and campaign; the recipient address
is the literal text after ``=`` in the raw request path.

Routes:
    GET /rd/{token}={email}    1x1 transparent pixel (records open)
    GET /ct/{token}={email}    click redirect
    GET /us/{token}={email}    unsubscribe redirect
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from affitrack.middleware.rate_limit import limiter
from affitrack.services.token_codec import EventKind, extract_email_suffix
from affitrack.services.tracking_pipeline import OutcomeState, TrackingPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tracking"])

# Transparent 1x1 GIF pixel (43 bytes)
TRACKING_PIXEL = (
    b"\x47\x49\x46\x38\x39\x61\x01\x00\x01\x00\x80\x00\x00"
    b"\xff\xff\xff\x00\x00\x00\x21\xf9\x04\x01\x00\x00\x00"
    b"\x00\x2c\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02"
    b"\x44\x01\x00\x3b"
)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

ACCESS_DENIED_HTML = "<html><body><h1>Access Denied</h1></body></html>"


def get_pipeline(request: Request) -> Optional[TrackingPipeline]:
    """The pipeline built at startup, None if startup failed to build it."""
    return getattr(request.app.state, "pipeline", None)


def _request_email(request: Request) -> str:
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    return extract_email_suffix(path.split("?", 1)[0])


def _pixel() -> Response:
    return Response(content=TRACKING_PIXEL, media_type="image/gif", headers=NO_CACHE_HEADERS)


async def _run(pipeline: Optional[TrackingPipeline], kind: EventKind, segment: str, request: Request):
    if pipeline is None:
        raise RuntimeError("Tracking pipeline is not initialized")
    return await pipeline.handle(
        kind,
        segment,
        _request_email(request),
        request.headers,
        client_host=request.client.host if request.client else None,
        referer=request.headers.get("referer"),
    )


async def _redirect_hit(
    kind: EventKind,
    segment: str,
    request: Request,
    pipeline: TrackingPipeline,
    not_found_detail: str,
    invalid_detail: str,
):
    try:
        outcome = await _run(pipeline, kind, segment, request)
    except Exception:
        logger.exception("Error handling %s hit", kind.value)
        return RedirectResponse(url="/", status_code=302)

    if outcome.state == OutcomeState.TOKEN_INVALID:
        raise HTTPException(status_code=400, detail=invalid_detail)

    if outcome.state == OutcomeState.CAMPAIGN_NOT_FOUND:
        raise HTTPException(status_code=404, detail=not_found_detail)

    if outcome.state == OutcomeState.FRAUD_BLOCKED:
        return HTMLResponse(content=ACCESS_DENIED_HTML, status_code=403)

    return RedirectResponse(url=outcome.redirect_url, status_code=302)


@router.get("/rd/{segment}")
async def track_open(
    segment: str,
    request: Request,
    pipeline: TrackingPipeline = Depends(get_pipeline),
):
    """Record an email open and return a 1x1 transparent pixel.

    The pixel is returned on every path so email rendering never breaks.
    """
    try:
        await _run(pipeline, EventKind.OPEN, segment, request)
    except Exception:
        logger.exception("Error recording open")
    return _pixel()


@router.get("/ct/{segment}")
async def track_click(
    segment: str,
    request: Request,
    pipeline: TrackingPipeline = Depends(get_pipeline),
):
    """Record a click and redirect to the campaign's click target."""
    return await _redirect_hit(
        EventKind.CLICK,
        segment,
        request,
        pipeline,
        not_found_detail="Campaign or redirect target not found",
        invalid_detail="Invalid tracking link",
    )


@router.get("/us/{segment}")
async def track_unsubscribe(
    segment: str,
    request: Request,
    pipeline: TrackingPipeline = Depends(get_pipeline),
):
    """Record an unsubscribe and redirect to the campaign's unsubscribe target."""
    return await _redirect_hit(
        EventKind.UNSUBSCRIBE,
        segment,
        request,
        pipeline,
        not_found_detail="Invalid campaign",
        invalid_detail="Invalid unsubscribe link",
    )


# No default request limit on links embedded in mail
for _endpoint in (track_open, track_click, track_unsubscribe):
    limiter.exempt(_endpoint)
