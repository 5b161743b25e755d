"""
Client IP resolution tests.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from affitrack.services.client_ip import (
    UNKNOWN_IP,
    ClientIPResolver,
    ip_from_headers,
    is_local_or_private,
    strip_ipv4_mapping,
)


def _client(status_code=200, payload=None, error=None):
    client = MagicMock()
    if error is not None:
        client.get = AsyncMock(side_effect=error)
    else:
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = payload if payload is not None else {"ip": "198.51.100.77"}
        client.get = AsyncMock(return_value=response)
    client.aclose = AsyncMock()
    return client


class TestHeaderPrecedence:
    """Test cases for picking the client address from headers."""

    def test_cloudflare_header_wins(self):
        """Test CF-Connecting-IP beats every other source."""
        headers = {
            "cf-connecting-ip": "203.0.113.1",
            "x-real-ip": "203.0.113.2",
            "x-forwarded-for": "203.0.113.3, 10.0.0.1",
        }

        assert ip_from_headers(headers, "203.0.113.4") == "203.0.113.1"

    def test_real_ip_before_forwarded_for(self):
        """Test X-Real-IP beats X-Forwarded-For."""
        headers = {"x-real-ip": "203.0.113.2", "x-forwarded-for": "203.0.113.3"}

        assert ip_from_headers(headers) == "203.0.113.2"

    def test_first_forwarded_hop(self):
        """Test only the first X-Forwarded-For entry is used."""
        headers = {"x-forwarded-for": " 203.0.113.3 , 10.0.0.1"}

        assert ip_from_headers(headers) == "203.0.113.3"

    def test_socket_peer_last(self):
        """Test the socket peer is used when no header is present."""
        assert ip_from_headers({}, "::ffff:203.0.113.4") == "203.0.113.4"

    def test_ipv4_mapping_is_stripped(self):
        """Test IPv4-mapped IPv6 is unwrapped."""
        assert strip_ipv4_mapping("::FFFF:1.2.3.4") == "1.2.3.4"
        assert strip_ipv4_mapping("2001:db8::1") == "2001:db8::1"

    @pytest.mark.parametrize("ip,expected", [
        ("", True),
        ("127.0.0.1", True),
        ("::1", True),
        ("0.0.0.0", True),
        ("10.1.2.3", True),
        ("192.168.1.10", True),
        ("8.8.8.8", False),
        ("172.16.0.1", False),
        ("garbage", False),
    ])
    def test_local_or_private(self, ip, expected):
        """Test which addresses trigger the public IP fallback."""
        assert is_local_or_private(ip) is expected


class TestClientIPResolver:
    """Test cases for the resolver and its public IP fallback."""

    @pytest.mark.asyncio
    async def test_public_address_used_directly(self):
        """Test a public header address needs no lookup."""
        client = _client()
        resolver = ClientIPResolver(client=client, use_test_ip=False)

        ip = await resolver.resolve({"x-forwarded-for": "81.2.69.142"})

        assert ip == "81.2.69.142"
        client.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_private_address_uses_public_lookup(self):
        """Test a NAT address is replaced by the host's public address."""
        client = _client(payload={"ip": "198.51.100.77"})
        resolver = ClientIPResolver(client=client, use_test_ip=False)

        ip = await resolver.resolve({}, "192.168.0.12")

        assert ip == "198.51.100.77"
        client.get.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lookup_timeout_gives_unknown(self):
        """Test a failing lookup yields 'unknown'."""
        client = _client(error=httpx.ConnectTimeout("timed out"))
        resolver = ClientIPResolver(client=client, use_test_ip=False)

        assert await resolver.resolve({}, "127.0.0.1") == UNKNOWN_IP

    @pytest.mark.asyncio
    async def test_lookup_bad_status_gives_unknown(self):
        """Test a non-200 lookup yields 'unknown'."""
        resolver = ClientIPResolver(client=_client(status_code=503), use_test_ip=False)

        assert await resolver.fetch_public_ip() == UNKNOWN_IP

    @pytest.mark.asyncio
    async def test_lookup_without_ip_gives_unknown(self):
        """Test a body without an ip field yields 'unknown'."""
        resolver = ClientIPResolver(client=_client(payload={}), use_test_ip=False)

        assert await resolver.fetch_public_ip() == UNKNOWN_IP

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [["198.51.100.77"], "198.51.100.77", 42])
    async def test_non_object_body_gives_unknown(self, payload):
        """Test a JSON body that is not an object yields 'unknown'."""
        resolver = ClientIPResolver(client=_client(payload=payload), use_test_ip=False)

        assert await resolver.resolve({}, "10.0.0.1") == UNKNOWN_IP

    @pytest.mark.asyncio
    async def test_test_ip_override(self):
        """Test the configured test address short-circuits resolution."""
        client = _client()
        resolver = ClientIPResolver(client=client, use_test_ip=True, test_ip="81.2.69.142")

        ip = await resolver.resolve({"x-forwarded-for": "8.8.8.8"}, "127.0.0.1")

        assert ip == "81.2.69.142"
        client.get.assert_not_called()
