import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from credibles.attestation import AttestationGate, LocalSchemaRegistry
from credibles.migrate import run_migrations
from credibles.registry import SkillRegistry

from addresses import GATE, OWNER, USER1


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    run_migrations(engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def registry(db):
    """Owner set, subject 1 minted to USER1, GATE authorized to add XP."""
    r = SkillRegistry(db)
    r.initialize(OWNER)
    r.mint(OWNER, USER1, 1)
    r.set_attestation_gate(OWNER, GATE)
    return r


@pytest.fixture
def schemas():
    return LocalSchemaRegistry()


@pytest.fixture
def gate(registry, schemas):
    return AttestationGate(registry, GATE, schemas)
