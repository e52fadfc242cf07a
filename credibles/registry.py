"""
SkillRegistry: soulbound identity tokens with per-category XP.

All state lives in the ledger database. Each mutating method runs inside a
single transaction, so a failed call leaves nothing behind. Privileged
methods take the caller's address explicitly and check it against the role
stored in the ledger (owner, admin, attestation gate).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from .db import atomic
from .errors import AlreadyExists, NotFound, SoulboundViolation, Unauthorized, XPOverflow
from .skills import CATEGORIES, MAX_XP, LevelUp, SkillStats, level_for, parse_category
from .util import ZERO_ADDRESS, to_address

logger = logging.getLogger(__name__)

_OWNER_KEY = "owner"
_GATE_KEY = "attestation_gate"

MAX_SUBJECT_ID = 2**63 - 1


def _valid_id(subject_id) -> bool:
    return isinstance(subject_id, int) and 0 <= subject_id <= MAX_SUBJECT_ID


@dataclass(frozen=True)
class Credential:
    id: int
    recipient: str
    issuer: str
    category: str
    title: str
    issuer_info: str = ""


class SkillRegistry:
    def __init__(self, db: Session):
        self.db = db

    # ────────────────────────────────────────────────────────────
    # Settings
    # ────────────────────────────────────────────────────────────

    def _get_setting(self, key: str) -> Optional[str]:
        row = self.db.execute(
            text("SELECT value FROM ledger_setting WHERE key = :k"), {"k": key}
        ).fetchone()
        return row[0] if row else None

    def _set_setting(self, key: str, value: str):
        updated = self.db.execute(
            text("UPDATE ledger_setting SET value = :v WHERE key = :k"),
            {"k": key, "v": value},
        ).rowcount
        if not updated:
            self.db.execute(
                text("INSERT INTO ledger_setting (key, value) VALUES (:k, :v)"),
                {"k": key, "v": value},
            )

    def owner(self) -> Optional[str]:
        return self._get_setting(_OWNER_KEY)

    def attestation_gate(self) -> str:
        return self._get_setting(_GATE_KEY) or ZERO_ADDRESS

    def initialize(self, owner: str):
        """Record the ledger owner. Repeating with the same owner is a no-op."""
        owner = to_address(owner)
        if owner == ZERO_ADDRESS:
            raise ValueError("Owner cannot be the zero address")
        current = self.owner()
        if current is not None:
            if current != owner:
                raise Unauthorized(f"Registry already owned by {current}")
            return
        with atomic(self.db):
            self._set_setting(_OWNER_KEY, owner)
            self._set_setting(_GATE_KEY, ZERO_ADDRESS)
        logger.info("Registry initialized: owner=%s", owner)

    # ────────────────────────────────────────────────────────────
    # Roles
    # ────────────────────────────────────────────────────────────

    def _require_owner(self, caller: str):
        caller = to_address(caller)
        if caller != self.owner():
            raise Unauthorized(f"OwnableUnauthorizedAccount: {caller}")
        return caller

    def is_admin(self, address: str) -> bool:
        row = self.db.execute(
            text("SELECT 1 FROM admin WHERE address = :a"), {"a": to_address(address)}
        ).fetchone()
        return row is not None

    def _require_owner_or_admin(self, caller: str):
        caller = to_address(caller)
        if caller != self.owner() and not self.is_admin(caller):
            raise Unauthorized(f"Not owner or admin: {caller}")
        return caller

    def add_admin(self, caller: str, address: str):
        self._require_owner(caller)
        address = to_address(address)
        if self.is_admin(address):
            return
        with atomic(self.db):
            self.db.execute(text("INSERT INTO admin (address) VALUES (:a)"), {"a": address})
        logger.info("Admin added: %s", address)

    def remove_admin(self, caller: str, address: str):
        self._require_owner(caller)
        with atomic(self.db):
            self.db.execute(
                text("DELETE FROM admin WHERE address = :a"), {"a": to_address(address)}
            )
        logger.info("Admin removed: %s", address)

    def set_attestation_gate(self, caller: str, gate: str):
        """Replace the single address allowed to add XP. Zero disables XP writes."""
        self._require_owner(caller)
        gate = to_address(gate)
        with atomic(self.db):
            self._set_setting(_GATE_KEY, gate)
        logger.info("Attestation gate set: %s", gate)

    # ────────────────────────────────────────────────────────────
    # Tokens
    # ────────────────────────────────────────────────────────────

    def exists(self, subject_id: int) -> bool:
        if not _valid_id(subject_id):
            return False
        row = self.db.execute(
            text("SELECT 1 FROM subject WHERE subject_id = :id"), {"id": subject_id}
        ).fetchone()
        return row is not None

    def owner_of(self, subject_id: int) -> str:
        if not _valid_id(subject_id):
            raise NotFound(f"Token does not exist: {subject_id}")
        row = self.db.execute(
            text("SELECT owner FROM subject WHERE subject_id = :id"), {"id": subject_id}
        ).fetchone()
        if not row:
            raise NotFound(f"Token does not exist: {subject_id}")
        return row[0]

    def balance_of(self, owner: str) -> int:
        row = self.db.execute(
            text("SELECT COUNT(*) FROM subject WHERE owner = :o"), {"o": to_address(owner)}
        ).fetchone()
        return int(row[0])

    def tokens_of(self, owner: str) -> List[int]:
        rows = self.db.execute(
            text("SELECT subject_id FROM subject WHERE owner = :o ORDER BY subject_id"),
            {"o": to_address(owner)},
        ).fetchall()
        return [int(r[0]) for r in rows]

    def all_subjects(self) -> Dict[int, str]:
        rows = self.db.execute(text("SELECT subject_id, owner FROM subject")).fetchall()
        return {int(r[0]): r[1] for r in rows}

    def mint(self, caller: str, owner: str, subject_id: int):
        self._require_owner(caller)
        owner = to_address(owner)
        if owner == ZERO_ADDRESS:
            raise ValueError("Cannot mint to the zero address")
        if not _valid_id(subject_id):
            raise ValueError(f"subject_id must be within 0..{MAX_SUBJECT_ID}")
        if self.exists(subject_id):
            raise AlreadyExists(f"Token already minted: {subject_id}")

        with atomic(self.db):
            self.db.execute(
                text("INSERT INTO subject (subject_id, owner) VALUES (:id, :o)"),
                {"id": subject_id, "o": owner},
            )
            for category in CATEGORIES:
                self.db.execute(
                    text(
                        "INSERT INTO skill_stats (subject_id, category, xp) "
                        "VALUES (:id, :c, 0)"
                    ),
                    {"id": subject_id, "c": category},
                )
        logger.info("Minted subject %d to %s", subject_id, owner)

    def transfer(self, caller: str, subject_id: int, from_addr: str, to_addr: str):
        """
        Ownership moves only by mint (from zero) or burn (to zero).
        Anything between two real holders is rejected.
        """
        caller = to_address(caller)
        from_addr = to_address(from_addr)
        to_addr = to_address(to_addr)

        if from_addr != ZERO_ADDRESS and to_addr != ZERO_ADDRESS:
            raise SoulboundViolation("Credibles: Soulbound token - transfers not allowed")
        if from_addr == ZERO_ADDRESS:
            raise ValueError("Minting goes through mint()")

        holder = self.owner_of(subject_id)
        if holder != from_addr:
            raise Unauthorized(f"{from_addr} does not hold token {subject_id}")
        if caller not in (holder, self.owner()):
            raise Unauthorized(f"{caller} may not burn token {subject_id}")

        with atomic(self.db):
            self.db.execute(
                text("DELETE FROM skill_stats WHERE subject_id = :id"), {"id": subject_id}
            )
            self.db.execute(
                text("DELETE FROM subject WHERE subject_id = :id"), {"id": subject_id}
            )
        logger.info("Burned subject %d (holder %s)", subject_id, holder)

    # ────────────────────────────────────────────────────────────
    # XP
    # ────────────────────────────────────────────────────────────

    def add_xp(self, caller: str, subject_id: int, category, amount: int) -> Optional[LevelUp]:
        """
        Add XP to one category. Only the configured attestation gate may call.

        Returns the LevelUp record when the category's level increased. A
        single call that jumps several levels reports only the final one.
        """
        caller = to_address(caller)
        gate = self.attestation_gate()
        if gate == ZERO_ADDRESS or caller != gate:
            raise Unauthorized("Only AttestationResolver can add XP")
        if not self.exists(subject_id):
            raise NotFound(f"Token does not exist: {subject_id}")
        cat = parse_category(category).value
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError(f"XP amount must be a non-negative integer, got {amount!r}")
        if amount > MAX_XP:
            raise XPOverflow(f"XP amount too large: {amount}")

        event = None
        with atomic(self.db):
            old_xp = self._xp(subject_id, cat)
            new_xp = old_xp + amount
            if new_xp > MAX_XP:
                raise XPOverflow(f"{cat} XP for subject {subject_id} would exceed {MAX_XP}")
            self.db.execute(
                text(
                    "UPDATE skill_stats SET xp = :xp "
                    "WHERE subject_id = :id AND category = :c"
                ),
                {"xp": new_xp, "id": subject_id, "c": cat},
            )
            old_level, new_level = level_for(old_xp), level_for(new_xp)
            if new_level > old_level:
                self.db.execute(
                    text(
                        "INSERT INTO level_up (subject_id, category, new_level) "
                        "VALUES (:id, :c, :lvl)"
                    ),
                    {"id": subject_id, "c": cat, "lvl": new_level},
                )
                event = LevelUp(subject_id=subject_id, category=cat, new_level=new_level)

        logger.info("XP +%d %s for subject %d", amount, cat, subject_id)
        if event:
            logger.info("LevelUp: subject=%d %s -> %d", subject_id, cat, event.new_level)
        return event

    def _xp(self, subject_id: int, category: str) -> int:
        row = self.db.execute(
            text("SELECT xp FROM skill_stats WHERE subject_id = :id AND category = :c"),
            {"id": subject_id, "c": category},
        ).fetchone()
        return int(row[0]) if row else 0

    def character_stats(self, subject_id: int) -> SkillStats:
        if not self.exists(subject_id):
            raise NotFound(f"Token does not exist: {subject_id}")
        return self.stats_many([subject_id])[subject_id]

    def levels(self, subject_id: int) -> Dict[str, int]:
        return self.character_stats(subject_id).levels()

    def stats_many(self, subject_ids: Iterable[int]) -> Dict[int, SkillStats]:
        """Stats for many subjects in one query. Unknown ids are omitted."""
        ids = [sid for sid in set(subject_ids) if _valid_id(sid)]
        if not ids:
            return {}
        rows = self.db.execute(
            text(
                "SELECT subject_id, category, xp FROM skill_stats "
                "WHERE subject_id IN :ids"
            ).bindparams(bindparam("ids", expanding=True)),
            {"ids": ids},
        ).fetchall()

        raw: Dict[int, Dict[str, int]] = {}
        for sid, cat, xp in rows:
            raw.setdefault(int(sid), {})[cat] = int(xp)
        return {sid: SkillStats(**values) for sid, values in raw.items()}

    def level_ups(self, subject_id: int) -> List[LevelUp]:
        if not _valid_id(subject_id):
            return []
        rows = self.db.execute(
            text(
                "SELECT subject_id, category, new_level FROM level_up "
                "WHERE subject_id = :id ORDER BY id"
            ),
            {"id": subject_id},
        ).fetchall()
        return [LevelUp(int(r[0]), r[1], int(r[2])) for r in rows]

    # ────────────────────────────────────────────────────────────
    # Issuer verification
    # ────────────────────────────────────────────────────────────

    def request_issuer_verification(self, caller: str, email_domain: str):
        caller = to_address(caller)
        domain = (email_domain or "").strip().lower()
        if not domain:
            raise ValueError("Email domain required")
        with atomic(self.db):
            self.db.execute(text("DELETE FROM issuer_request WHERE issuer = :i"), {"i": caller})
            self.db.execute(
                text("INSERT INTO issuer_request (issuer, domain) VALUES (:i, :d)"),
                {"i": caller, "d": domain},
            )
        logger.info("IssuerVerificationRequested: %s domain=%s", caller, domain)

    def verify_issuer(self, caller: str, issuer: str, email_domain: str):
        caller = self._require_owner_or_admin(caller)
        issuer = to_address(issuer)
        domain = (email_domain or "").strip().lower()
        if not domain:
            raise ValueError("Email domain required")
        with atomic(self.db):
            self.db.execute(text("DELETE FROM issuer_request WHERE issuer = :i"), {"i": issuer})
            self.db.execute(text("DELETE FROM verified_issuer WHERE issuer = :i"), {"i": issuer})
            self.db.execute(
                text(
                    "INSERT INTO verified_issuer (issuer, domain, verified_by) "
                    "VALUES (:i, :d, :by)"
                ),
                {"i": issuer, "d": domain, "by": caller},
            )
        logger.info("IssuerVerified: %s domain=%s by=%s", issuer, domain, caller)

    def is_verified_issuer(self, address: str) -> bool:
        row = self.db.execute(
            text("SELECT 1 FROM verified_issuer WHERE issuer = :i"), {"i": to_address(address)}
        ).fetchone()
        return row is not None

    def pending_verification(self, address: str) -> Optional[str]:
        row = self.db.execute(
            text("SELECT domain FROM issuer_request WHERE issuer = :i"),
            {"i": to_address(address)},
        ).fetchone()
        return row[0] if row else None

    def issuer_status(self, address: str) -> str:
        if self.is_verified_issuer(address):
            return "verified"
        if self.pending_verification(address):
            return "pending"
        return "not_verified"

    # ────────────────────────────────────────────────────────────
    # Resume wallets
    # ────────────────────────────────────────────────────────────

    def register_resume_wallet(self, caller: str, wallet: str):
        """Link the caller's main account to the wallet that holds its profile."""
        caller = to_address(caller)
        wallet = to_address(wallet)
        if wallet == ZERO_ADDRESS:
            raise ValueError("Resume wallet cannot be the zero address")
        with atomic(self.db):
            self.db.execute(text("DELETE FROM resume_wallet WHERE owner = :o"), {"o": caller})
            self.db.execute(
                text("INSERT INTO resume_wallet (owner, wallet) VALUES (:o, :w)"),
                {"o": caller, "w": wallet},
            )
        logger.info("Resume wallet registered: %s -> %s", caller, wallet)

    def resume_wallet(self, owner: str) -> Optional[str]:
        row = self.db.execute(
            text("SELECT wallet FROM resume_wallet WHERE owner = :o"), {"o": to_address(owner)}
        ).fetchone()
        return row[0] if row else None

    # ────────────────────────────────────────────────────────────
    # Issuer credentials
    # ────────────────────────────────────────────────────────────

    def issue_credential(
        self, caller: str, recipient: str, category, title: str, issuer_info: str = ""
    ) -> int:
        """Record a static credential. Only verified issuers may issue."""
        issuer = to_address(caller)
        if not self.is_verified_issuer(issuer):
            raise Unauthorized(f"Not a verified issuer: {issuer}")
        recipient = to_address(recipient)
        if recipient == ZERO_ADDRESS:
            raise ValueError("Recipient cannot be the zero address")
        cat = parse_category(category).value
        title = (title or "").strip()
        if not title:
            raise ValueError("Credential title required")
        if len(title) > 255 or len(issuer_info or "") > 255:
            raise ValueError("Credential title and issuer info are limited to 255 characters")

        with atomic(self.db):
            credential_id = self.db.execute(
                text(
                    "INSERT INTO credential (recipient, issuer, category, title, issuer_info) "
                    "VALUES (:r, :i, :c, :t, :info) RETURNING id"
                ),
                {"r": recipient, "i": issuer, "c": cat, "t": title, "info": issuer_info or ""},
            ).scalar_one()
        logger.info("Credential %d issued: %s -> %s (%s)", credential_id, issuer, recipient, cat)
        return int(credential_id)

    def credentials_of(self, recipient: str) -> List[Credential]:
        rows = self.db.execute(
            text(
                "SELECT id, recipient, issuer, category, title, issuer_info FROM credential "
                "WHERE recipient = :r ORDER BY id"
            ),
            {"r": to_address(recipient)},
        ).fetchall()
        return [Credential(int(r[0]), r[1], r[2], r[3], r[4], r[5] or "") for r in rows]

