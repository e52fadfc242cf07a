# credibles/talent_routes.py
"""
Payment-gated talent discovery.

GET /api/talent?skill=dev
  no X-Transaction-Hash   -> 402 with an x402 envelope for payForAccess(top candidate)
  valid payment tx hash   -> 200 with the candidate's contact details
  invalid payment tx hash -> 403
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import ACCESS_PRICE, PAYMENT_GATEWAY_ADDRESS
from .db import get_db
from .errors import CrediblesError
from .payments import PaymentVerifier, ReceiptSource, pay_for_access_calldata
from .registry import SkillRegistry
from .skills import CATEGORIES

logger = logging.getLogger(__name__)
router = APIRouter(tags=["talent"])

PAYMENT_NETWORK = "base-sepolia"


@dataclass
class Candidate:
    address: str
    has_attestation: bool
    xp: int
    token_id: Optional[int] = None


def get_receipt_source() -> ReceiptSource:
    from .chain.receipts import Web3ReceiptSource
    return Web3ReceiptSource()


def _attested_owners(db: Session, category: str) -> Set[str]:
    """Holders vouched for by a verified issuer in this category."""
    eas = db.execute(
        text(
            "SELECT DISTINCT s.owner FROM attestation a "
            "JOIN subject s ON s.subject_id = a.subject_id "
            "JOIN verified_issuer v ON v.issuer = a.attester "
            "WHERE a.category = :c AND a.revoked = :r"
        ),
        {"c": category, "r": False},
    ).fetchall()
    credentials = db.execute(
        text(
            "SELECT DISTINCT c.recipient FROM credential c "
            "JOIN verified_issuer v ON v.issuer = c.issuer "
            "WHERE c.category = :c"
        ),
        {"c": category},
    ).fetchall()
    return {r[0] for r in eas} | {r[0] for r in credentials}


def discover_candidates(db: Session, category: str) -> List[Candidate]:
    """
    One candidate per holder; a holder with several tokens counts its best one.
    Credential recipients without a profile join with zero XP.
    """
    registry = SkillRegistry(db)
    subjects = registry.all_subjects()
    stats = registry.stats_many(subjects.keys())
    attested = _attested_owners(db, category)

    by_owner: Dict[str, Candidate] = {}
    for sid, owner in subjects.items():
        xp = stats[sid].get(category) if sid in stats else 0
        current = by_owner.get(owner)
        if current is None or xp > current.xp:
            by_owner[owner] = Candidate(owner, owner in attested, xp, sid)
    for address in sorted(attested - set(by_owner)):
        by_owner[address] = Candidate(address, True, 0)
    return list(by_owner.values())


def select_top_candidate(candidates: List[Candidate]) -> Optional[Candidate]:
    """Attested holders first, then highest XP."""
    if not candidates:
        return None
    ranked = sorted(candidates, key=lambda c: (not c.has_attestation, -c.xp, c.address.lower()))
    return ranked[0]


def _payment_required(candidate: Candidate, gateway: str):
    return JSONResponse(
        {
            "status": 402,
            "accepts": [
                {
                    "type": "application/x402+json",
                    "target": gateway,
                    "amount": str(ACCESS_PRICE),
                    "currency": "USDC",
                    "network": PAYMENT_NETWORK,
                    "function": "payForAccess(address)",
                    "data": pay_for_access_calldata(candidate.address),
                }
            ],
        },
        status_code=402,
    )


@router.get("/api/talent")
def talent(
    skill: str = "",
    x_transaction_hash: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    source: ReceiptSource = Depends(get_receipt_source),
):
    skill = skill.lower()
    if skill not in CATEGORIES:
        raise HTTPException(400, "Valid skill parameter required (dev, defi, gov, or social)")
    if not PAYMENT_GATEWAY_ADDRESS:
        raise HTTPException(500, "Contract addresses not configured")

    try:
        top = select_top_candidate(discover_candidates(db, skill))
        if top is None:
            raise HTTPException(404, "No candidates found for this skill")

        if not x_transaction_hash:
            return _payment_required(top, PAYMENT_GATEWAY_ADDRESS)

        verifier = PaymentVerifier(source, PAYMENT_GATEWAY_ADDRESS)
        if not verifier.verify(x_transaction_hash, top.address):
            raise HTTPException(403, "Invalid payment transaction")

        logger.info("Talent contact released: %s (tx=%s)", top.address, x_transaction_hash)
        return {
            "candidate": {
                "address": top.address,
                "email": f"talent-{top.address[2:8].lower()}@credibles.io",
                "discord": f"@talent-{top.address[2:10].lower()}",
                "hasAttestation": top.has_attestation,
                "xp": str(top.xp),
                "skill": skill,
            }
        }
    except (HTTPException, CrediblesError):
        raise
    except Exception as e:
        logger.exception("Talent lookup failed")
        raise HTTPException(500, str(e))
