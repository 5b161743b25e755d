"""
User-agent classification tests.
"""

import pytest

from affitrack.services.device_classifier import (
    DeviceInfo,
    HeuristicDeviceClassifier,
    refine_device_type,
)

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)
IPAD_UA = (
    "Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)
ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/116.0.0.0 Mobile Safari/537.36"
)
WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
GOOGLEBOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


class TestRefineDeviceType:
    """Test cases for the OS-specific subtype heuristic."""

    @pytest.mark.parametrize("hint,ua,os_name,expected", [
        ("mobile", "", "Android", "android"),
        ("mobile", "iphone", None, "ios"),
        ("mobile", "", "Symbian", "mobile"),
        ("tablet", "", "Android", "android-tablet"),
        ("tablet", "ipad", "iOS", "ios-tablet"),
        ("tablet", "", None, "tablet"),
        ("bot", "", None, "bot"),
        (None, "some android phone", None, "android"),
        (None, "mozilla ipad", None, "ios-tablet"),
        (None, "generic tablet browser", None, "tablet"),
        (None, "example-crawler/1.0", None, "bot"),
        (None, "mozilla/5.0 (x11; linux)", "Linux", "desktop"),
    ])
    def test_refine(self, hint, ua, os_name, expected):
        """Test hint and OS combine into the stored device type."""
        assert refine_device_type(hint, ua, os_name) == expected


class TestHeuristicDeviceClassifier:
    """Test cases for full user-agent parsing."""

    @pytest.fixture
    def classifier(self):
        return HeuristicDeviceClassifier()

    def test_empty_user_agent(self, classifier):
        """Test a missing header falls back to desktop with no details."""
        assert classifier.classify("") == DeviceInfo()

    def test_iphone(self, classifier):
        """Test an iPhone is an iOS phone on Mobile Safari."""
        info = classifier.classify(IPHONE_UA)

        assert info.device_type == "ios"
        assert info.os == "iOS"
        assert info.browser == "Mobile Safari"

    def test_ipad(self, classifier):
        """Test an iPad is an iOS tablet."""
        assert classifier.classify(IPAD_UA).device_type == "ios-tablet"

    def test_android_phone(self, classifier):
        """Test an Android phone."""
        info = classifier.classify(ANDROID_UA)

        assert info.device_type == "android"
        assert info.os == "Android"

    def test_windows_desktop(self, classifier):
        """Test desktop Chrome reports browser and version."""
        info = classifier.classify(WINDOWS_UA)

        assert info.device_type == "desktop"
        assert info.os == "Windows"
        assert info.browser == "Chrome"
        assert info.browser_version.startswith("120")

    def test_bot(self, classifier):
        """Test crawlers are tagged as bots."""
        assert classifier.classify(GOOGLEBOT_UA).device_type == "bot"

    @pytest.mark.asyncio
    async def test_classify_async(self, classifier):
        """Test the executor variant returns the same result."""
        assert await classifier.classify_async(WINDOWS_UA) == classifier.classify(WINDOWS_UA)
