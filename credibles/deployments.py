"""
Append-only deployment log.

Tooling appends one record per deployment; nothing is ever rewritten. The
service only reads it to find the latest contract addresses.

Record shape:
    {"network": "baseSepolia", "timestamp": "2025-01-01T00:00:00+00:00",
     "contracts": {"Credibles": "0x..."}, "deployer": "0x...",
     "schemaUID": "0x..."}   # schemaUID optional
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .config import DEPLOYMENTS_PATH, NETWORK

logger = logging.getLogger(__name__)

EXPLORER_URL = "https://sepolia.basescan.org/address/"


def load_deployments(path: Path = DEPLOYMENTS_PATH) -> List[dict]:
    if not path.exists():
        return []
    with path.open() as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Deployment log {path} must hold a JSON list")
    return data


def append_deployment(
    contracts: Dict[str, str],
    deployer: str,
    network: str = NETWORK,
    schema_uid: Optional[str] = None,
    path: Path = DEPLOYMENTS_PATH,
) -> dict:
    record = {
        "network": network,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "contracts": dict(contracts),
        "deployer": deployer,
    }
    if schema_uid:
        record["schemaUID"] = schema_uid

    records = load_deployments(path)
    records.append(record)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        json.dump(records, f, indent=2)
    logger.info("Recorded deployment on %s (%d contracts)", network, len(contracts))
    return record


def latest_deployment(network: Optional[str] = None, path: Path = DEPLOYMENTS_PATH) -> Optional[dict]:
    records = load_deployments(path)
    if network:
        records = [r for r in records if r.get("network") == network]
    if not records:
        return None
    return max(records, key=lambda r: r.get("timestamp", ""))


def contract_address(name: str, network: Optional[str] = None, path: Path = DEPLOYMENTS_PATH) -> Optional[str]:
    latest = latest_deployment(network, path)
    if not latest:
        return None
    return latest.get("contracts", {}).get(name)


def format_history(records: List[dict]) -> str:
    if not records:
        return "No deployment history found."

    lines = ["Deployment History", "=" * 80]
    ordered = sorted(records, key=lambda r: r.get("timestamp", ""), reverse=True)
    for i, rec in enumerate(ordered, 1):
        lines.append(f"{i}. {rec.get('network', '?').upper()} - {rec.get('timestamp', '?')}")
        lines.append(f"   Deployer: {rec.get('deployer', '?')}")
        for name, addr in rec.get("contracts", {}).items():
            lines.append(f"   {name}: {addr}  ({EXPLORER_URL}{addr})")
        if rec.get("schemaUID"):
            lines.append(f"   Schema UID: {rec['schemaUID']}")

    latest = ordered[0]
    contracts = latest.get("contracts", {})
    lines += ["=" * 80, "Environment for most recent deployment:"]
    if contracts.get("Credibles"):
        lines.append(f"   CREDIBLES_ADDRESS={contracts['Credibles']}")
    if contracts.get("AttestationResolver"):
        lines.append(f"   ATTESTATION_GATE_ADDRESS={contracts['AttestationResolver']}")
    if contracts.get("TalentPaymentGateway"):
        lines.append(f"   PAYMENT_GATEWAY_ADDRESS={contracts['TalentPaymentGateway']}")
    if latest.get("schemaUID"):
        lines.append(f"   SCHEMA_UID={latest['schemaUID']}")
    return "\n".join(lines)


def run(args, path: Path = DEPLOYMENTS_PATH) -> str:
    if not args or args[0] == "history":
        return format_history(load_deployments(path))
    cmd, rest = args[0], args[1:]
    if cmd == "address":
        return contract_address(rest[0], NETWORK, path) or f"{rest[0]}: not deployed on {NETWORK}"
    if cmd == "record":
        schema = None
        contracts = {}
        for item in rest[1:]:
            key, sep, value = item.partition("=")
            if not sep or not value:
                raise ValueError(f"Expected Name=0x..., got {item!r}")
            if key == "schemaUID":
                schema = value
            else:
                contracts[key] = value
        if not contracts:
            raise ValueError("At least one Name=0x... contract is required")
        record = append_deployment(contracts, rest[0], NETWORK, schema_uid=schema, path=path)
        return f"Recorded {len(contracts)} contracts on {record['network']} at {record['timestamp']}"
    raise ValueError(f"Unknown command: {cmd}")


def main():
    """
    Usage:
      python -m credibles.deployments [history]                          # print deployment history
      python -m credibles.deployments address <Name>                     # latest address on NETWORK
      python -m credibles.deployments record <deployer> Name=0x... [schemaUID=0x...]
    """
    logging.basicConfig(level=logging.INFO)
    try:
        print(run(sys.argv[1:]))
    except (IndexError, ValueError) as e:
        raise SystemExit(f"{e}\n{main.__doc__}")


if __name__ == "__main__":
    main()
