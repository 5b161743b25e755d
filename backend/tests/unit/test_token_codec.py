"""
Tracking token tests.
"""

import base64
import hashlib

import pytest

from affitrack.services.token_codec import (
    EMAIL_PLACEHOLDER,
    EventKind,
    build_tracking_links,
    decode_tracking_token,
    encode_tracking_token,
    extract_email_suffix,
    hash_email,
)

OFFER = "0b9d8c7a-6e5f-4a3b-8c2d-1e0f9a8b7c6d"
CAMPAIGN = "6f1c2a7e-8a51-4c1b-9a57-0c1d2e3f4a5b"


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


class TestTokenEncoding:
    """Test cases for token encoding."""

    def test_encoded_token_is_unpadded_urlsafe(self):
        """Test the token never carries padding or non-url characters."""
        token = encode_tracking_token(EventKind.CLICK, OFFER, CAMPAIGN)

        assert "=" not in token
        assert "+" not in token
        assert "/" not in token

    def test_decode_reads_back_fields(self):
        """Test the decoded token carries kind, offer and campaign."""
        token = encode_tracking_token("unsubscribe", OFFER, CAMPAIGN, "someone@example.com")

        decoded = decode_tracking_token(token)

        assert decoded.event_kind == EventKind.UNSUBSCRIBE
        assert decoded.offer_id == OFFER
        assert decoded.campaign_id == CAMPAIGN
        assert decoded.email == "someone@example.com"

    def test_decode_ignores_email_suffix(self):
        """Test everything after the first '=' is dropped before decoding."""
        token = encode_tracking_token(EventKind.OPEN, OFFER, CAMPAIGN)

        decoded = decode_tracking_token(f"{token}=reader@example.com")

        assert decoded is not None
        assert decoded.campaign_id == CAMPAIGN

    def test_decode_accepts_handwritten_query(self):
        """Test a token built by hand from the documented query format."""
        segment = _b64(f"e=click&offerID={OFFER}&campaignID={CAMPAIGN}&to=%EMAIL%")

        decoded = decode_tracking_token(segment)

        assert decoded.event_kind == EventKind.CLICK
        assert decoded.email == EMAIL_PLACEHOLDER

    def test_decode_accepts_standard_alphabet(self):
        """Test '+' and '/' from plain base64 decode like their url-safe forms."""
        query = f"e=click&offerID={OFFER}&campaignID={CAMPAIGN}&to=x~~~???"
        segment = base64.b64encode(query.encode()).decode().rstrip("=")
        assert "+" in segment and "/" in segment

        decoded = decode_tracking_token(segment)

        assert decoded.event_kind == EventKind.CLICK
        assert decoded.email == "x~~~???"


class TestTokenRejection:
    """Test cases for malformed tokens."""

    @pytest.mark.parametrize("segment", [
        "",
        "=user@example.com",
        "not base64 at all!",
        "%%%%",
    ])
    def test_garbage_is_rejected(self, segment):
        """Test undecodable segments return None instead of raising."""
        assert decode_tracking_token(segment) is None

    def test_missing_campaign_is_rejected(self):
        """Test a token without campaignID is invalid."""
        assert decode_tracking_token(_b64(f"e=open&offerID={OFFER}")) is None

    def test_blank_offer_is_rejected(self):
        """Test a whitespace-only offerID is invalid."""
        assert decode_tracking_token(_b64(f"e=open&offerID=%20&campaignID={CAMPAIGN}")) is None

    def test_trailing_separator_is_tolerated(self):
        """Test an empty trailing pair does not invalidate the token."""
        decoded = decode_tracking_token(_b64(f"e=open&offerID={OFFER}&campaignID={CAMPAIGN}&"))

        assert decoded is not None
        assert decoded.event_kind == EventKind.OPEN

    def test_unknown_event_kind_is_rejected(self):
        """Test an event kind outside open/click/unsubscribe is invalid."""
        assert decode_tracking_token(_b64(f"e=bounce&offerID={OFFER}&campaignID={CAMPAIGN}")) is None


class TestEmailSuffix:
    """Test cases for recipient extraction from the raw path."""

    def test_suffix_is_lowercased_and_trimmed(self):
        """Test the address after '=' is normalized."""
        assert extract_email_suffix("/api/ct/abc= User@Example.COM ") == "user@example.com"

    def test_suffix_is_percent_decoded(self):
        """Test encoded characters are decoded."""
        assert extract_email_suffix("/api/rd/abc=first%2Blast%40example.com") == "first+last@example.com"

    def test_no_separator_gives_empty_email(self):
        """Test a path without '=' yields an empty address."""
        assert extract_email_suffix("/api/rd/abc") == ""

    def test_unsubstituted_placeholder_passes_through(self):
        """Test the raw placeholder is kept, lower-cased."""
        assert extract_email_suffix("/api/rd/abc=%EMAIL%") == "%email%"

    def test_hash_email_normalizes(self):
        """Test the digest is taken over the lower-cased address."""
        expected = hashlib.sha256(b"user@example.com").hexdigest()

        assert hash_email(" User@Example.com ") == expected


class TestTrackingLinks:
    """Test cases for campaign link generation."""

    def test_links_have_route_prefix_and_placeholder(self):
        """Test the three links use rd/ct/us and end in the placeholder."""
        links = build_tracking_links("https://track.example.com/api/", OFFER, CAMPAIGN)

        assert links.pixel.startswith("https://track.example.com/api/rd/")
        assert links.click.startswith("https://track.example.com/api/ct/")
        assert links.unsubscribe.startswith("https://track.example.com/api/us/")
        for link in (links.pixel, links.click, links.unsubscribe):
            assert link.endswith(f"={EMAIL_PLACEHOLDER}")

    def test_link_tokens_decode_to_their_kind(self):
        """Test each generated token decodes to the matching event kind."""
        links = build_tracking_links("https://track.example.com/api", OFFER, CAMPAIGN)

        for link, kind in (
            (links.pixel, EventKind.OPEN),
            (links.click, EventKind.CLICK),
            (links.unsubscribe, EventKind.UNSUBSCRIBE),
        ):
            segment = link.rsplit("/", 1)[1]
            decoded = decode_tracking_token(segment)
            assert decoded.event_kind == kind
            assert decoded.offer_id == OFFER
            assert decoded.campaign_id == CAMPAIGN
