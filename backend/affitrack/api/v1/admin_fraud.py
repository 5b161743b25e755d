"""
Fraud blocklist administration.

Changes apply to the running process immediately and are not persisted;
permanent entries belong in ``EXTRA_BLOCKED_IPS``.
"""

from __future__ import annotations

import ipaddress
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, field_validator

from affitrack.core.security import TokenData, require_admin
from affitrack.services.fraud_detector import Blocklists, FraudDetector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/fraud", tags=["Admin - Fraud"])


class IPRequest(BaseModel):
    ip: str

    @field_validator("ip")
    @classmethod
    def validate_ip(cls, value: str) -> str:
        value = value.strip()
        try:
            ipaddress.ip_address(value)
        except ValueError:
            raise ValueError("Invalid IP address")
        return value


def get_blocklists(request: Request) -> Blocklists:
    blocklists = getattr(request.app.state, "blocklists", None)
    if blocklists is None:
        raise HTTPException(status_code=503, detail="Blocklists not initialized")
    return blocklists


@router.get("/stats")
async def fraud_stats(
    blocklists: Blocklists = Depends(get_blocklists),
    user: TokenData = Depends(require_admin),
):
    return blocklists.stats()


@router.get("/check")
async def check_ip(
    ip: str = Query(..., min_length=1),
    blocklists: Blocklists = Depends(get_blocklists),
    user: TokenData = Depends(require_admin),
):
    """Run the IP part of the fraud checks for one address."""
    verdict = FraudDetector(blocklists).check(ip.strip())
    return {
        "ip": ip.strip(),
        "is_blocked": verdict.is_fraud,
        "reason": verdict.reason,
        "category": verdict.category,
    }


@router.post("/block")
async def block_ip(
    body: IPRequest,
    blocklists: Blocklists = Depends(get_blocklists),
    user: TokenData = Depends(require_admin),
):
    added = blocklists.add(body.ip)
    logger.warning("Admin %s blocked IP %s (new=%s)", user.email, body.ip, added)
    return {"ip": body.ip, "blocked": True, "added": added}


@router.post("/unblock")
async def unblock_ip(
    body: IPRequest,
    blocklists: Blocklists = Depends(get_blocklists),
    user: TokenData = Depends(require_admin),
):
    removed = blocklists.remove(body.ip)
    if removed:
        logger.warning("Admin %s unblocked IP %s", user.email, body.ip)
    return {"ip": body.ip, "blocked": blocklists.contains(body.ip), "removed": removed}
