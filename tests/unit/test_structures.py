"""Unit tests for the Contract Structure Registry."""

import pytest

from contract_composer.composition.structures import (
    SEED_STRUCTURES,
    StructureRegistry,
    build_seed_slots,
    validate_slots,
)
from contract_composer.errors import NotFoundError, ValidationError
from contract_composer.models.structure import SectionSlot


class TestSeedSlots:

    def test_kr_required_slots(self):
        slots = build_seed_slots(SEED_STRUCTURES["KR"])
        required = [s.key for s in slots if s.required]
        assert required == ["basic", "payment", "service", "delivery", "termination"]

    def test_other_jurisdictions_require_three_slots(self):
        for jurisdiction in ("US", "JP", "DE", "FR", "DEFAULT"):
            slots = build_seed_slots(SEED_STRUCTURES[jurisdiction])
            assert [s.key for s in slots if s.required] == ["basic", "payment", "service"]

    def test_each_category_accepted_by_at_most_one_slot(self):
        for definitions in SEED_STRUCTURES.values():
            accepted = [c for s in build_seed_slots(definitions) for c in s.accepted_categories]
            assert len(accepted) == len(set(accepted))

    def test_dedicated_slots_take_their_categories(self):
        slots = {s.key: s for s in build_seed_slots(SEED_STRUCTURES["US"])}
        assert slots["indemnification"].accepts("책임 분담")
        assert not slots["liability"].accepts("책임 분담")
        assert slots["governing_law"].accepts("준거법 및 관할")

    def test_single_catch_all(self):
        slots = build_seed_slots(SEED_STRUCTURES["KR"])
        assert [s.key for s in slots if s.catch_all] == ["other"]


class TestValidateSlots:

    def test_empty(self):
        with pytest.raises(ValidationError):
            validate_slots([])

    def test_duplicate_keys(self):
        slots = [SectionSlot("a", "A", catch_all=True), SectionSlot("a", "A2")]
        with pytest.raises(ValidationError):
            validate_slots(slots)

    def test_catch_all_required(self):
        with pytest.raises(ValidationError):
            validate_slots([SectionSlot("a", "A")])


class TestRegistry:
    """Tests for publishing and reading structures."""

    def test_seeded_jurisdictions(self, structure_registry):
        assert structure_registry.list_jurisdictions() == ["DE", "DEFAULT", "FR", "JP", "KR", "US"]

    def test_seeding_is_idempotent(self, structure_registry):
        assert structure_registry.seed_defaults() == []

    def test_get_active_is_case_insensitive(self, structure_registry):
        structure = structure_registry.get_active("kr")
        assert structure.jurisdiction == "KR"
        assert structure.version == 1

    def test_unknown_jurisdiction_falls_back_to_default(self, structure_registry):
        assert structure_registry.get_active("BR").jurisdiction == "DEFAULT"

    def test_publish_deactivates_previous_version(self, structure_registry):
        slots = [
            SectionSlot("basic", "기본", ("계약의 목적",), required=True),
            SectionSlot("other", "기타", ("기타 조항",), catch_all=True),
        ]
        published = structure_registry.publish("KR", slots, user_id="admin")

        assert published.version == 2
        active = structure_registry.get_active("KR")
        assert active.version == 2
        assert [s.key for s in active.slots] == ["basic", "other"]
        assert len(structure_registry.get_version("KR", 1).slots) == 11

    def test_publish_invalid_slots_leaves_active_version(self, structure_registry):
        with pytest.raises(ValidationError):
            structure_registry.publish("KR", [SectionSlot("basic", "기본")])
        assert structure_registry.get_active("KR").version == 1

    def test_missing_version(self, structure_registry):
        with pytest.raises(NotFoundError):
            structure_registry.get_version("KR", 7)

    def test_no_structures_at_all(self, db_manager, audit_logger):
        with pytest.raises(NotFoundError):
            StructureRegistry(db_manager, audit_logger).get_active("KR")

    def test_extend_slot_skips_structures_without_slot(self, structure_registry):
        published = structure_registry.extend_slot("compliance", "규제 준수", user_id="admin")

        assert [s.jurisdiction for s in published] == ["US"]
        assert structure_registry.get_active("US").slot_for("규제 준수").key == "compliance"
        assert structure_registry.get_active("KR").version == 1
