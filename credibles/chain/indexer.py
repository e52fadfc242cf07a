"""
Background indexer for EAS attestations.
Polls Attested/Revoked logs for the gate's schema and feeds them through
the AttestationGate. Each uid is applied at most once: the attestation row
and the XP write commit together, and re-polling skips known uids.
"""

import asyncio
import logging

from sqlalchemy import text as sql_text
from sqlalchemy.exc import DataError

from ..attestation import decode_payload
from ..config import INDEXER_START_BLOCK, POLL_INTERVAL
from ..db import atomic
from ..errors import CrediblesError, NotFound, Unauthorized, XPOverflow
from ..registry import MAX_SUBJECT_ID
from ..skills import MAX_XP, parse_category
from ..util import to_address

logger = logging.getLogger(__name__)

LAST_BLOCK_KEY = "last_block"
BLOCK_CHUNK = 2000


def _get_last_block(db):
    row = db.execute(sql_text(
        "SELECT value FROM indexer_state WHERE key = :k"
    ), {"k": LAST_BLOCK_KEY}).fetchone()
    return int(row[0]) if row else INDEXER_START_BLOCK - 1


def _set_last_block(db, block):
    with atomic(db):
        updated = db.execute(sql_text(
            "UPDATE indexer_state SET value = :v WHERE key = :k"
        ), {"k": LAST_BLOCK_KEY, "v": block}).rowcount
        if not updated:
            db.execute(sql_text(
                "INSERT INTO indexer_state (key, value) VALUES (:k, :v)"
            ), {"k": LAST_BLOCK_KEY, "v": block})


def _seen(db, uid_hex):
    row = db.execute(sql_text(
        "SELECT revoked FROM attestation WHERE uid = :u"
    ), {"u": uid_hex}).fetchone()
    return row


def _checked_payload(payload):
    """Decode and range-check a payload before anything is written."""
    subject_id, category, xp = decode_payload(payload)
    parse_category(category)
    if subject_id > MAX_SUBJECT_ID:
        raise NotFound(f"Token does not exist: {subject_id}")
    if xp > MAX_XP:
        raise XPOverflow(f"XP amount too large: {xp}")
    return subject_id, category, xp


def _address_or_raw(value):
    try:
        return to_address(value)
    except ValueError:
        return value


def apply_event(gate, db, event):
    """Apply one attestation event. Returns True if it changed the ledger."""
    uid_hex = "0x" + event.uid.hex()
    if event.schema != gate.schema_uid:
        return False

    seen = _seen(db, uid_hex)

    if event.kind == "revoked":
        gate.on_revoke(event.uid, event.schema, event.recipient, event.data)
        if seen is None or seen[0]:
            return False
        with atomic(db):
            db.execute(sql_text(
                "UPDATE attestation SET revoked = :r WHERE uid = :u"
            ), {"u": uid_hex, "r": True})
        return True

    if seen is not None:
        return False

    try:
        subject_id, category, xp = _checked_payload(event.data)
        with atomic(db):
            db.execute(sql_text(
                "INSERT INTO attestation (uid, subject_id, category, xp, attester, revoked) "
                "VALUES (:u, :s, :c, :x, :a, :r)"
            ), {"u": uid_hex, "s": subject_id, "c": category, "x": xp,
                "a": _address_or_raw(event.attester), "r": False})
            gate.on_attest(event.uid, event.schema, event.recipient, event.data)
    except Unauthorized:
        # Gate misconfiguration, not a bad attestation: stop so the block is retried.
        logger.error("Gate %s is not authorized to add XP; attestation %s held back", gate.address, uid_hex)
        raise
    except CrediblesError as e:
        logger.warning("Rejected attestation %s: %s", uid_hex, e)
        return False
    except (DataError, OverflowError) as e:
        logger.warning("Rejected attestation %s: unstorable payload: %s", uid_hex, e)
        return False
    return True


def sync_attestations(source, gate, db):
    """Pull new blocks from source and apply them. Returns events applied."""
    last = _get_last_block(db)
    latest = source.latest_block()
    if latest <= last:
        return 0

    applied = 0
    start = last + 1
    while start <= latest:
        end = min(start + BLOCK_CHUNK - 1, latest)
        for event in source.fetch(start, end):
            if apply_event(gate, db, event):
                applied += 1
        _set_last_block(db, end)
        start = end + 1

    if applied:
        logger.info("Applied %d attestation events (blocks %d..%d)", applied, last + 1, latest)
    return applied


async def run_indexer():
    from ..config import ATTESTATION_GATE_ADDRESS, DATABASE_URL, EAS_ADDRESS
    from ..attestation import AttestationGate
    from ..db import get_session_factory
    from ..registry import SkillRegistry
    from .eas import EasAttestationSource, Web3SchemaRegistry

    if not (ATTESTATION_GATE_ADDRESS and EAS_ADDRESS and DATABASE_URL):
        logger.warning("Indexer disabled: gate, EAS or DATABASE_URL not configured")
        return

    SessionLocal = get_session_factory()
    db = SessionLocal()

    try:
        gate = AttestationGate(SkillRegistry(db), ATTESTATION_GATE_ADDRESS, Web3SchemaRegistry())
        source = EasAttestationSource(gate.schema_uid)
        logger.info("Indexer running (polling EAS every %ds)", POLL_INTERVAL)

        while True:
            try:
                sync_attestations(source, gate, db)
            except Exception as e:
                db.rollback()
                logger.exception("Indexer error: %s", e)
            await asyncio.sleep(POLL_INTERVAL)
    finally:
        db.close()
