# credibles/config.py
from dotenv import load_dotenv
from pathlib import Path
import json
import logging
import os

load_dotenv()

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# Deployment records (append-only log written by tooling)
# ------------------------------------------------------------
DEPLOYMENTS_PATH = Path(os.getenv("DEPLOYMENTS_PATH", "deployments.json"))
NETWORK = os.getenv("NETWORK", "baseSepolia")


def load_deployed():
    """Name -> address map from the newest deployment record for NETWORK."""
    if not DEPLOYMENTS_PATH.exists():
        logger.info("deployment log missing: %s", DEPLOYMENTS_PATH)
        return {}

    try:
        with DEPLOYMENTS_PATH.open() as f:
            records = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("failed to load deployment log %s: %s", DEPLOYMENTS_PATH, e)
        return {}

    if not isinstance(records, list):
        logger.warning("deployment log %s is not a list; ignoring", DEPLOYMENTS_PATH)
        return {}
    records = [r for r in records if r.get("network") == NETWORK]
    if not records:
        return {}
    latest = max(records, key=lambda r: r.get("timestamp", ""))
    return dict(latest.get("contracts", {}))


DEPLOYED = load_deployed()

# ------------------------------------------------------------
# Chain / contracts
# ------------------------------------------------------------
CHAIN_ID = int(os.getenv("CHAIN_ID", "84532"))  # Base Sepolia

RPC_URL = os.getenv("RPC_URL", "https://sepolia.base.org")

EAS_ADDRESS = os.getenv("EAS_ADDRESS", "0x4200000000000000000000000000000000000021")
SCHEMA_REGISTRY_ADDRESS = os.getenv(
    "SCHEMA_REGISTRY_ADDRESS", "0x4200000000000000000000000000000000000020"
)

USDC_ADDRESS = (
    os.getenv("USDC_ADDRESS")
    or DEPLOYED.get("USDC")
    or "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
)

CREDIBLES_ADDRESS = os.getenv("CREDIBLES_ADDRESS") or DEPLOYED.get("Credibles", "")
ATTESTATION_GATE_ADDRESS = (
    os.getenv("ATTESTATION_GATE_ADDRESS") or DEPLOYED.get("AttestationResolver", "")
)
PAYMENT_GATEWAY_ADDRESS = (
    os.getenv("PAYMENT_GATEWAY_ADDRESS") or DEPLOYED.get("TalentPaymentGateway", "")
)

OWNER_ADDRESS = os.getenv("OWNER_ADDRESS", "")
SIGNER_PRIVATE_KEY = os.getenv("SIGNER_PRIVATE_KEY", "")

# ------------------------------------------------------------
# Payments
# ------------------------------------------------------------
ACCESS_PRICE = int(os.getenv("ACCESS_PRICE", "5000000"))  # 5 USDC, 6 decimals
PLATFORM_FEE_BPS = int(os.getenv("PLATFORM_FEE_BPS", "2000"))

# ------------------------------------------------------------
# App / DB / polling
# ------------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "")

RECEIPT_TIMEOUT = int(os.getenv("RECEIPT_TIMEOUT", "30"))
POLL_INTERVAL = int(os.getenv("POLL_INTERVAL", "12"))
INDEXER_START_BLOCK = int(os.getenv("INDEXER_START_BLOCK", "0"))

logger.info(
    "Config loaded: chain_id=%s network=%s gate=%s gateway=%s rpc=%s",
    CHAIN_ID,
    NETWORK,
    ATTESTATION_GATE_ADDRESS or "<unset>",
    PAYMENT_GATEWAY_ADDRESS or "<unset>",
    RPC_URL[:48],
)
