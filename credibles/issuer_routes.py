# credibles/issuer_routes.py
"""
Issuer verification status. Requests and approvals are wallet transactions
against the registry; these endpoints only validate input and report state.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .db import get_db
from .registry import SkillRegistry
from .util import email_domain, to_address

logger = logging.getLogger(__name__)
router = APIRouter(tags=["issuers"])


class VerifyIssuerRequest(BaseModel):
    email: str = ""
    issuerAddress: str = ""


def _issuer(address: str) -> str:
    if not address:
        raise HTTPException(400, "Issuer address is required")
    try:
        return to_address(address)
    except ValueError:
        raise HTTPException(400, "Invalid issuer address format")


@router.get("/api/issuer-status")
def issuer_status(issuer: str = "", db: Session = Depends(get_db)):
    address = _issuer(issuer)
    registry = SkillRegistry(db)
    return {
        "isVerified": registry.is_verified_issuer(address),
        "pendingDomain": registry.pending_verification(address),
        "status": registry.issuer_status(address),
    }


@router.post("/api/verify-issuer")
def verify_issuer_request(req: VerifyIssuerRequest):
    if not req.email or not req.issuerAddress:
        raise HTTPException(400, "Email and issuer address are required")
    _issuer(req.issuerAddress)
    domain = email_domain(req.email)
    if not domain:
        raise HTTPException(400, "Invalid email format")
    return {
        "success": True,
        "domain": domain,
        "message": "Verification request should be submitted via wallet transaction",
    }


@router.get("/api/verify-issuer")
def verify_issuer_status(issuer: str = "", db: Session = Depends(get_db)):
    address = _issuer(issuer)
    return {
        "isVerified": SkillRegistry(db).is_verified_issuer(address),
        "issuerAddress": address,
    }
