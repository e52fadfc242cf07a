# tests/test_registry.py
"""
SkillRegistry behaviour: roles, soulbound tokens, XP accumulation and
level-up signalling.
"""
import pytest

from credibles.errors import (
    AlreadyExists,
    InvalidCategory,
    NotFound,
    SoulboundViolation,
    Unauthorized,
    XPOverflow,
)
from credibles.registry import SkillRegistry
from credibles.skills import MAX_XP, LevelUp, SkillStats
from credibles.util import ZERO_ADDRESS

from addresses import ADMIN, GATE, NEW_GATE, OWNER, USER1, USER2


# ────────────────────────────────────────────────────────────
# Ownership and minting
# ────────────────────────────────────────────────────────────

class TestDeployment:
    def test_owner_recorded(self, registry):
        assert registry.owner() == OWNER

    def test_gate_starts_at_zero(self, db):
        r = SkillRegistry(db)
        r.initialize(OWNER)
        assert r.attestation_gate() == ZERO_ADDRESS

    def test_reinitialize_same_owner_is_noop(self, registry):
        registry.initialize(OWNER)
        assert registry.owner() == OWNER

    def test_reinitialize_other_owner_rejected(self, registry):
        with pytest.raises(Unauthorized):
            registry.initialize(USER1)


class TestMinting:
    def test_owner_can_mint(self, registry):
        assert registry.owner_of(1) == USER1
        assert registry.character_stats(1) == SkillStats()

    def test_non_owner_cannot_mint(self, registry):
        with pytest.raises(Unauthorized):
            registry.mint(USER1, USER1, 2)
        assert not registry.exists(2)

    def test_duplicate_id_rejected(self, registry):
        with pytest.raises(AlreadyExists):
            registry.mint(OWNER, USER2, 1)
        assert registry.owner_of(1) == USER1

    def test_multiple_tokens(self, registry):
        registry.mint(OWNER, USER1, 2)
        registry.mint(OWNER, USER2, 3)
        assert registry.tokens_of(USER1) == [1, 2]
        assert registry.balance_of(USER2) == 1

    def test_cannot_mint_to_zero(self, registry):
        with pytest.raises(ValueError):
            registry.mint(OWNER, ZERO_ADDRESS, 9)

    def test_owner_of_unknown(self, registry):
        with pytest.raises(NotFound):
            registry.owner_of(999)


# ────────────────────────────────────────────────────────────
# Soulbound transfers
# ────────────────────────────────────────────────────────────

class TestSoulbound:
    def test_transfer_between_holders_rejected(self, registry):
        with pytest.raises(SoulboundViolation):
            registry.transfer(USER1, 1, USER1, USER2)
        assert registry.owner_of(1) == USER1

    def test_owner_cannot_force_transfer(self, registry):
        with pytest.raises(SoulboundViolation):
            registry.transfer(OWNER, 1, USER1, USER2)
        assert registry.owner_of(1) == USER1

    def test_holder_can_burn(self, registry):
        registry.transfer(USER1, 1, USER1, ZERO_ADDRESS)
        assert not registry.exists(1)
        assert registry.stats_many([1]) == {}

    def test_stranger_cannot_burn(self, registry):
        with pytest.raises(Unauthorized):
            registry.transfer(USER2, 1, USER1, ZERO_ADDRESS)
        assert registry.exists(1)


# ────────────────────────────────────────────────────────────
# Gate management
# ────────────────────────────────────────────────────────────

class TestGate:
    def test_only_owner_sets_gate(self, registry):
        with pytest.raises(Unauthorized):
            registry.set_attestation_gate(USER1, NEW_GATE)
        assert registry.attestation_gate() == GATE

    def test_replacing_gate_moves_authority(self, registry):
        registry.set_attestation_gate(OWNER, NEW_GATE)
        with pytest.raises(Unauthorized):
            registry.add_xp(GATE, 1, "dev", 10)
        registry.add_xp(NEW_GATE, 1, "dev", 10)
        assert registry.character_stats(1).dev == 10

    def test_zero_gate_disables_xp(self, registry):
        registry.set_attestation_gate(OWNER, ZERO_ADDRESS)
        with pytest.raises(Unauthorized):
            registry.add_xp(ZERO_ADDRESS, 1, "dev", 10)
        with pytest.raises(Unauthorized):
            registry.add_xp(GATE, 1, "dev", 10)


# ────────────────────────────────────────────────────────────
# XP
# ────────────────────────────────────────────────────────────

class TestAddXP:
    @pytest.mark.parametrize("caller", [USER1, OWNER, ADMIN])
    def test_non_gate_rejected(self, registry, caller):
        with pytest.raises(Unauthorized):
            registry.add_xp(caller, 1, "dev", 50)

    def test_unknown_subject(self, registry):
        with pytest.raises(NotFound):
            registry.add_xp(GATE, 999, "dev", 50)

    @pytest.mark.parametrize("category", ["Dev", "invalid", "DEV", "dev ", ""])
    def test_invalid_category(self, registry, category):
        with pytest.raises(InvalidCategory):
            registry.add_xp(GATE, 1, category, 50)
        assert registry.character_stats(1) == SkillStats()

    def test_accumulates(self, registry):
        for amount in (30, 20, 10):
            registry.add_xp(GATE, 1, "dev", amount)
        assert registry.character_stats(1).dev == 60

    def test_categories_independent(self, registry):
        registry.add_xp(GATE, 1, "dev", 50)
        registry.add_xp(GATE, 1, "defi", 25)
        registry.add_xp(GATE, 1, "gov", 75)
        registry.add_xp(GATE, 1, "social", 10)
        assert registry.character_stats(1) == SkillStats(dev=50, defi=25, gov=75, social=10)

    def test_subjects_independent(self, registry):
        registry.mint(OWNER, USER2, 2)
        registry.add_xp(GATE, 1, "dev", 50)
        registry.add_xp(GATE, 2, "dev", 75)
        assert registry.character_stats(1).dev == 50
        assert registry.character_stats(2).dev == 75

    def test_zero_is_noop(self, registry):
        assert registry.add_xp(GATE, 1, "dev", 0) is None
        assert registry.character_stats(1).dev == 0

    def test_large_values(self, registry):
        registry.add_xp(GATE, 1, "dev", 1_000_000)
        assert registry.character_stats(1).dev == 1_000_000
        assert registry.levels(1)["dev"] == 10_000

    @pytest.mark.parametrize("amount", [-1, 1.5, "10", True])
    def test_bad_amount(self, registry, amount):
        with pytest.raises(ValueError):
            registry.add_xp(GATE, 1, "dev", amount)


class TestLevelUp:
    def test_single_crossing(self, registry):
        assert registry.add_xp(GATE, 1, "dev", 50) is None
        event = registry.add_xp(GATE, 1, "dev", 60)
        assert event == LevelUp(subject_id=1, category="dev", new_level=1)
        assert registry.level_ups(1) == [event]

    def test_multi_threshold_jump_reports_final_level_once(self, registry):
        event = registry.add_xp(GATE, 1, "dev", 250)
        assert event.new_level == 2
        assert registry.level_ups(1) == [LevelUp(1, "dev", 2)]

    def test_from_40_to_290(self, registry):
        registry.add_xp(GATE, 1, "dev", 40)
        registry.add_xp(GATE, 1, "dev", 250)
        assert registry.level_ups(1) == [LevelUp(1, "dev", 2)]

    def test_no_crossing_no_event(self, registry):
        registry.add_xp(GATE, 1, "dev", 50)
        registry.add_xp(GATE, 1, "dev", 30)
        assert registry.level_ups(1) == []

    def test_exact_threshold(self, registry):
        assert registry.add_xp(GATE, 1, "gov", 100) == LevelUp(1, "gov", 1)

    def test_categories_level_independently(self, registry):
        registry.add_xp(GATE, 1, "dev", 150)
        registry.add_xp(GATE, 1, "defi", 200)
        assert registry.level_ups(1) == [LevelUp(1, "dev", 1), LevelUp(1, "defi", 2)]


class TestBatchReads:
    def test_stats_many_skips_unknown(self, registry):
        registry.mint(OWNER, USER2, 2)
        registry.add_xp(GATE, 2, "social", 5)
        stats = registry.stats_many([1, 2, 999, 2])
        assert set(stats) == {1, 2}
        assert stats[2].social == 5

    def test_stats_many_empty(self, registry):
        assert registry.stats_many([]) == {}


# ────────────────────────────────────────────────────────────
# Admins and issuer verification
# ────────────────────────────────────────────────────────────

class TestIssuers:
    def test_request_then_verify_by_admin(self, registry):
        registry.add_admin(OWNER, ADMIN)
        registry.request_issuer_verification(USER2, "Uni.EDU")
        assert registry.pending_verification(USER2) == "uni.edu"
        assert registry.issuer_status(USER2) == "pending"

        registry.verify_issuer(ADMIN, USER2, "uni.edu")
        assert registry.is_verified_issuer(USER2)
        assert registry.pending_verification(USER2) is None
        assert registry.issuer_status(USER2) == "verified"

    def test_owner_can_verify_without_request(self, registry):
        registry.verify_issuer(OWNER, USER2, "example.org")
        assert registry.is_verified_issuer(USER2)

    def test_stranger_cannot_verify(self, registry):
        registry.request_issuer_verification(USER2, "uni.edu")
        with pytest.raises(Unauthorized):
            registry.verify_issuer(USER1, USER2, "uni.edu")
        assert registry.issuer_status(USER2) == "pending"

    def test_removed_admin_loses_rights(self, registry):
        registry.add_admin(OWNER, ADMIN)
        registry.remove_admin(OWNER, ADMIN)
        assert not registry.is_admin(ADMIN)
        with pytest.raises(Unauthorized):
            registry.verify_issuer(ADMIN, USER2, "uni.edu")

    def test_only_owner_manages_admins(self, registry):
        with pytest.raises(Unauthorized):
            registry.add_admin(USER1, ADMIN)

    def test_empty_domain_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.request_issuer_verification(USER2, "  ")

    def test_unknown_issuer(self, registry):
        assert registry.issuer_status(USER1) == "not_verified"


class TestBounds:
    def test_amount_beyond_counter(self, registry):
        with pytest.raises(XPOverflow):
            registry.add_xp(GATE, 1, "dev", 2**64)
        assert registry.character_stats(1).dev == 0

    def test_running_total_beyond_counter(self, registry):
        registry.add_xp(GATE, 1, "dev", MAX_XP)
        with pytest.raises(XPOverflow):
            registry.add_xp(GATE, 1, "dev", 1)
        assert registry.character_stats(1).dev == MAX_XP

    def test_huge_subject_id_is_unknown(self, registry):
        assert not registry.exists(2**70)
        with pytest.raises(NotFound):
            registry.owner_of(2**70)
        with pytest.raises(NotFound):
            registry.add_xp(GATE, 2**70, "dev", 1)
        assert registry.stats_many([1, 2**70]).keys() == {1}
        with pytest.raises(ValueError):
            registry.mint(OWNER, USER2, 2**70)


class TestResumeWallet:
    def test_register_and_replace(self, registry):
        assert registry.resume_wallet(USER1) is None
        registry.register_resume_wallet(USER1, USER2)
        assert registry.resume_wallet(USER1) == USER2
        registry.register_resume_wallet(USER1, ADMIN)
        assert registry.resume_wallet(USER1) == ADMIN

    def test_zero_wallet_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register_resume_wallet(USER1, ZERO_ADDRESS)


class TestCredentials:
    def test_verified_issuer_can_issue(self, registry):
        registry.verify_issuer(OWNER, ADMIN, "uni.edu")
        cid = registry.issue_credential(ADMIN, USER1, "defi", "Course completed", "Uni")
        [cred] = registry.credentials_of(USER1)
        assert cred.id == cid
        assert (cred.issuer, cred.category, cred.title, cred.issuer_info) == (ADMIN, "defi", "Course completed", "Uni")

    def test_unverified_issuer_rejected(self, registry):
        registry.request_issuer_verification(ADMIN, "uni.edu")
        with pytest.raises(Unauthorized):
            registry.issue_credential(ADMIN, USER1, "dev", "Hackathon")
        assert registry.credentials_of(USER1) == []

    def test_credential_category_checked(self, registry):
        registry.verify_issuer(OWNER, ADMIN, "uni.edu")
        with pytest.raises(InvalidCategory):
            registry.issue_credential(ADMIN, USER1, "Dev", "Hackathon")
        with pytest.raises(ValueError):
            registry.issue_credential(ADMIN, USER1, "dev", "  ")
