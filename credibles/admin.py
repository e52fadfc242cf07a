import logging
import sys

from .config import OWNER_ADDRESS
from .db import get_session_factory
from .errors import CrediblesError
from .payments import AccessPaymentGate
from .registry import SkillRegistry

logger = logging.getLogger(__name__)

USAGE = """\
Usage (acts as OWNER_ADDRESS unless the command names the acting account):
  python -m credibles.admin init
  python -m credibles.admin mint <owner> <subject_id>
  python -m credibles.admin set-gate <address>
  python -m credibles.admin add-admin <address>
  python -m credibles.admin remove-admin <address>
  python -m credibles.admin verify-issuer <issuer> <domain>
  python -m credibles.admin stats <subject_id>
  python -m credibles.admin resume-wallet <account> <wallet>
  python -m credibles.admin credential <issuer> <recipient> <category> <title> [issuer_info]
  python -m credibles.admin pay <payer> <target> <amount>
  python -m credibles.admin balance <student>
  python -m credibles.admin withdraw <student>
  python -m credibles.admin tx-status <tx_hash>"""


def run(registry: SkillRegistry, caller: str, args):
    cmd, rest = args[0], args[1:]
    if cmd == "init":
        registry.initialize(caller)
    elif cmd == "mint":
        registry.mint(caller, rest[0], int(rest[1]))
    elif cmd == "set-gate":
        registry.set_attestation_gate(caller, rest[0])
    elif cmd == "add-admin":
        registry.add_admin(caller, rest[0])
    elif cmd == "remove-admin":
        registry.remove_admin(caller, rest[0])
    elif cmd == "verify-issuer":
        registry.verify_issuer(caller, rest[0], rest[1])
    elif cmd == "stats":
        sid = int(rest[0])
        return {"stats": registry.character_stats(sid).as_dict(), "levels": registry.levels(sid)}
    elif cmd == "resume-wallet":
        registry.register_resume_wallet(rest[0], rest[1])
    elif cmd == "credential":
        info = rest[4] if len(rest) > 4 else ""
        return {"credential_id": registry.issue_credential(rest[0], rest[1], rest[2], rest[3], info)}
    elif cmd in ("pay", "balance", "withdraw"):
        return _payments(AccessPaymentGate(registry.db, registry), cmd, rest)
    elif cmd == "tx-status":
        from .chain.tx import check_status
        from .chain.wallet import get_w3
        result = check_status(get_w3(), rest[0])
        return {"tx_hash": result.tx_hash, "status": result.status.value}
    else:
        raise ValueError(f"Unknown command: {cmd}")
    return None


def _payments(gate: AccessPaymentGate, cmd: str, rest):
    if cmd == "pay":
        paid = gate.pay_for_access(rest[0], rest[1], int(rest[2]))
        return {"student": paid.student, "amount": paid.amount, "platform_fee": paid.platform_fee}
    if cmd == "withdraw":
        return {"withdrawn": gate.withdraw_student(rest[0])}
    return {"balance": gate.student_balance(rest[0])}


def main():
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) < 2:
        raise SystemExit(USAGE)
    if not OWNER_ADDRESS:
        raise SystemExit("OWNER_ADDRESS is not set")

    db = get_session_factory()()
    try:
        result = run(SkillRegistry(db), OWNER_ADDRESS, sys.argv[1:])
    except (IndexError, ValueError) as e:
        raise SystemExit(f"{e}\n\n{USAGE}")
    except CrediblesError as e:
        raise SystemExit(f"{e.code}: {e.message}")
    finally:
        db.close()
    if result is not None:
        print(result)


if __name__ == "__main__":
    main()
