"""
Tracking token encoding and decoding.

A token is the query string ``e=<kind>&offerID=<id>&campaignID=<id>&to=<email>``
encoded as unpadded URL-safe base64. It is an obfuscation layer, not a
security boundary: there is no key and no signature.

Tracking URLs have the shape ``/{prefix}/{token}={email}``. Links are generated
once per campaign with the literal ``%EMAIL%`` placeholder and the mail sender
substitutes the real address per send, so the suffix after ``=`` is the only
trustworthy source of the recipient address.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs, unquote, urlencode

logger = logging.getLogger(__name__)

EMAIL_PLACEHOLDER = "%EMAIL%"


class EventKind(str, Enum):
    OPEN = "open"
    CLICK = "click"
    UNSUBSCRIBE = "unsubscribe"


# URL prefix per event kind
ROUTE_PREFIXES = {
    EventKind.OPEN: "rd",
    EventKind.CLICK: "ct",
    EventKind.UNSUBSCRIBE: "us",
}


@dataclass(frozen=True)
class TrackingToken:
    """Fields carried by a decoded tracking token."""
    event_kind: EventKind
    offer_id: str
    campaign_id: str
    email: str = ""


@dataclass(frozen=True)
class TrackingLinks:
    """The three tracking links generated for a campaign."""
    pixel: str
    click: str
    unsubscribe: str


def encode_tracking_token(
    event_kind: EventKind | str,
    offer_id: str,
    campaign_id: str,
    email: str = EMAIL_PLACEHOLDER,
) -> str:
    """Serialize the token fields and encode them as unpadded base64url."""
    query = urlencode({
        "e": EventKind(event_kind).value,
        "offerID": str(offer_id),
        "campaignID": str(campaign_id),
        "to": email,
    })
    return base64.urlsafe_b64encode(query.encode("utf-8")).decode("ascii").rstrip("=")


def decode_tracking_token(segment: str) -> Optional[TrackingToken]:
    """Decode a token path segment.

    Everything from the first ``=`` on (the email or placeholder suffix) is
    ignored. Returns None for any malformed input; never raises.
    """
    if not segment:
        return None

    encoded = segment.split("=", 1)[0].strip()
    if not encoded:
        return None

    try:
        # Standard-alphabet tokens decode too
        normalized = encoded.replace("+", "-").replace("/", "_")
        padded = normalized + "=" * (-len(normalized) % 4)
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        params = parse_qs(raw.decode("utf-8"), keep_blank_values=True)
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        logger.debug("Undecodable tracking token %r: %s", encoded[:64], exc)
        return None

    def _first(name: str) -> str:
        values = params.get(name) or [""]
        return values[0]

    event = _first("e")
    offer_id = _first("offerID")
    campaign_id = _first("campaignID")

    if not event.strip() or not offer_id.strip() or not campaign_id.strip():
        return None

    try:
        kind = EventKind(event)
    except ValueError:
        return None

    return TrackingToken(
        event_kind=kind,
        offer_id=offer_id,
        campaign_id=campaign_id,
        email=_first("to"),
    )


def extract_email_suffix(path: str) -> str:
    """Return the recipient address carried after the first ``=`` of a raw path.

    The value is percent-decoded, trimmed and lower-cased. An unsubstituted
    ``%EMAIL%`` placeholder comes back as ``"%email%"``.
    """
    _, sep, suffix = path.partition("=")
    if not sep:
        return ""
    return unquote(suffix).strip().lower()


def hash_email(email: str) -> str:
    """One-way digest stored on tracking events instead of the address."""
    return hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()


def build_tracking_links(base_url: str, offer_id: str, campaign_id: str) -> TrackingLinks:
    """Generate the per-campaign links handed to the mail sender."""
    base = base_url.rstrip("/")

    def _link(kind: EventKind) -> str:
        token = encode_tracking_token(kind, offer_id, campaign_id, EMAIL_PLACEHOLDER)
        return f"{base}/{ROUTE_PREFIXES[kind]}/{token}={EMAIL_PLACEHOLDER}"

    return TrackingLinks(
        pixel=_link(EventKind.OPEN),
        click=_link(EventKind.CLICK),
        unsubscribe=_link(EventKind.UNSUBSCRIBE),
    )
