"""
User-agent classification into device type, OS and browser.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from user_agents import parse

logger = logging.getLogger(__name__)

BOT_MARKERS = ("bot", "crawler", "spider")


@dataclass(frozen=True)
class DeviceInfo:
    device_type: str = "desktop"
    os: Optional[str] = None
    browser: Optional[str] = None
    browser_version: Optional[str] = None


class DeviceClassifier(ABC):
    """Abstract user-agent classifier."""

    @abstractmethod
    def classify(self, user_agent: str) -> DeviceInfo:
        """Classify a raw User-Agent header. Must not raise."""

    async def classify_async(self, user_agent: str) -> DeviceInfo:
        """Run ``classify`` on the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.classify, user_agent)


def refine_device_type(
    hint: Optional[str],
    user_agent: str,
    os_name: Optional[str],
) -> str:
    """Turn a parser hint plus OS into the stored device type.

    ``hint`` is ``"mobile"``, ``"tablet"``, ``"bot"`` or None. Phones become
    ``android``/``ios``/``mobile``, tablets ``android-tablet``/``ios-tablet``/
    ``tablet``.
    """
    ua = (user_agent or "").lower()
    os_lower = (os_name or "").lower()

    is_android = "android" in os_lower or "android" in ua
    is_ios = "ios" in os_lower or "iphone" in ua or "ipad" in ua
    is_ipad = "ipad" in ua

    def _phone() -> str:
        if is_android:
            return "android"
        if is_ios:
            return "ios"
        return "mobile"

    def _tablet() -> str:
        if is_android:
            return "android-tablet"
        if is_ios:
            return "ios-tablet"
        return "tablet"

    if hint == "mobile":
        return _phone()
    if hint == "tablet":
        return _tablet()
    if hint == "bot":
        return "bot"

    if "mobile" in ua or is_android or (is_ios and not is_ipad):
        return _phone()
    if "tablet" in ua or is_ipad:
        return _tablet()
    if any(marker in ua for marker in BOT_MARKERS):
        return "bot"
    return "desktop"


class HeuristicDeviceClassifier(DeviceClassifier):
    """``user-agents`` parsing plus the OS-specific subtype heuristic."""

    def classify(self, user_agent: str) -> DeviceInfo:
        if not user_agent:
            return DeviceInfo()

        try:
            ua = parse(user_agent)
        except Exception:
            logger.warning("Unparseable user agent %r", user_agent[:200])
            return DeviceInfo(device_type=refine_device_type(None, user_agent, None))

        if ua.is_bot:
            hint = "bot"
        elif ua.is_tablet:
            hint = "tablet"
        elif ua.is_mobile:
            hint = "mobile"
        else:
            hint = None

        os_name = ua.os.family if ua.os.family and ua.os.family != "Other" else None
        browser = ua.browser.family if ua.browser.family and ua.browser.family != "Other" else None
        browser_version = ua.browser.version_string or None

        return DeviceInfo(
            device_type=refine_device_type(hint, user_agent, os_name),
            os=os_name,
            browser=browser,
            browser_version=browser_version if browser else None,
        )
