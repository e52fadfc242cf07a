"""
Ledger schema. Dialect-neutral so the same definitions serve PostgreSQL in
production and SQLite in tests.
"""
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    func,
)

metadata = MetaData()

ledger_setting = Table(
    "ledger_setting",
    metadata,
    Column("key", String(64), primary_key=True),
    Column("value", String(128), nullable=False),
)

subject = Table(
    "subject",
    metadata,
    Column("subject_id", BigInteger, primary_key=True, autoincrement=False),
    Column("owner", String(42), nullable=False, index=True),
    Column("minted_at", DateTime(timezone=True), server_default=func.now()),
)

skill_stats = Table(
    "skill_stats",
    metadata,
    Column("subject_id", BigInteger, primary_key=True, autoincrement=False),
    Column("category", String(16), primary_key=True),
    Column("xp", BigInteger, nullable=False, server_default="0"),
)

level_up = Table(
    "level_up",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("subject_id", BigInteger, nullable=False, index=True),
    Column("category", String(16), nullable=False),
    Column("new_level", BigInteger, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

admin = Table(
    "admin",
    metadata,
    Column("address", String(42), primary_key=True),
)

issuer_request = Table(
    "issuer_request",
    metadata,
    Column("issuer", String(42), primary_key=True),
    Column("domain", String(255), nullable=False),
    Column("requested_at", DateTime(timezone=True), server_default=func.now()),
)

verified_issuer = Table(
    "verified_issuer",
    metadata,
    Column("issuer", String(42), primary_key=True),
    Column("domain", String(255), nullable=False),
    Column("verified_by", String(42), nullable=False),
    Column("verified_at", DateTime(timezone=True), server_default=func.now()),
)

access_payment = Table(
    "access_payment",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("payer", String(42), nullable=False),
    Column("student", String(42), nullable=False, index=True),
    Column("amount", BigInteger, nullable=False),
    Column("platform_fee", BigInteger, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

student_balance = Table(
    "student_balance",
    metadata,
    Column("student", String(42), primary_key=True),
    Column("balance", BigInteger, nullable=False, server_default="0"),
)

attestation = Table(
    "attestation",
    metadata,
    Column("uid", String(66), primary_key=True),
    Column("subject_id", BigInteger, nullable=False, index=True),
    Column("category", String(16), nullable=False),
    Column("xp", BigInteger, nullable=False),
    Column("attester", String(42), nullable=True),
    Column("revoked", Boolean, nullable=False, server_default="0"),
)

indexer_state = Table(
    "indexer_state",
    metadata,
    Column("key", String(64), primary_key=True),
    Column("value", BigInteger, nullable=False, server_default="0"),
)

resume_wallet = Table(
    "resume_wallet",
    metadata,
    Column("owner", String(42), primary_key=True),
    Column("wallet", String(42), nullable=False),
)

credential = Table(
    "credential",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("recipient", String(42), nullable=False, index=True),
    Column("issuer", String(42), nullable=False),
    Column("category", String(16), nullable=False),
    Column("title", String(255), nullable=False),
    Column("issuer_info", String(255), nullable=False, server_default=""),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)
