# credibles/subject_views.py
"""
Read-only endpoints for skill profiles.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .db import get_db
from .registry import SkillRegistry
from .util import to_address

router = APIRouter(prefix="/api/subjects", tags=["subjects"])


@router.get("")
def subjects_of(owner: str, db: Session = Depends(get_db)):
    try:
        owner = to_address(owner)
    except ValueError:
        raise HTTPException(400, "Invalid owner address")
    registry = SkillRegistry(db)
    wallet = registry.resume_wallet(owner)
    holders = [owner] if wallet in (None, owner) else [owner, wallet]
    tokens = sorted(sid for h in holders for sid in registry.tokens_of(h))
    stats = registry.stats_many(tokens)
    return {
        "owner": owner,
        "resumeWallet": wallet,
        "credentials": [
            {"id": c.id, "issuer": c.issuer, "category": c.category,
             "title": c.title, "issuerInfo": c.issuer_info}
            for h in holders for c in registry.credentials_of(h)
        ],
        "subjects": [
            {"subject_id": sid, "stats": stats[sid].as_dict(), "levels": stats[sid].levels()}
            for sid in tokens
            if sid in stats
        ],
    }


@router.get("/{subject_id}")
def subject_summary(subject_id: int, db: Session = Depends(get_db)):
    registry = SkillRegistry(db)
    stats = registry.character_stats(subject_id)
    return {
        "subject_id": subject_id,
        "owner": registry.owner_of(subject_id),
        "stats": stats.as_dict(),
        "levels": stats.levels(),
        "level_ups": [
            {"category": e.category, "new_level": e.new_level}
            for e in registry.level_ups(subject_id)
        ],
    }
