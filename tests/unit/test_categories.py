"""Unit tests for the Category Registry."""

import threading

import pytest

from contract_composer.errors import ValidationError
from contract_composer.interfaces.audit import AuditEventType
from contract_composer.models.categories import CLAUSE_CATEGORIES, CONTRACT_CATEGORIES
from contract_composer.models.enums import CategoryKind
from contract_composer.templates.categories import extract_keywords, jaccard


class TestSeeding:

    def test_seeded_vocabularies(self, category_registry):
        snapshot = category_registry.snapshot()

        assert snapshot.contract_categories == CONTRACT_CATEGORIES
        assert snapshot.clause_categories == CLAUSE_CATEGORIES
        assert len(snapshot.clause_categories) == 19
        assert snapshot.version == 0

    def test_seeding_is_idempotent(self, category_registry):
        assert category_registry.seed_defaults() == 0

    def test_is_valid(self, category_registry):
        assert category_registry.is_valid("clause", "대금 지급 조건")
        assert not category_registry.is_valid(CategoryKind.CONTRACT, "대금 지급 조건")
        assert not category_registry.is_valid(CategoryKind.CLAUSE, None)


class TestAddCategory:
    """Tests for registry mutation."""

    def test_add_bumps_version_and_snapshots(self, category_registry, audit_logger):
        snapshot = category_registry.add_category("clause", "데이터 보호", "admin")

        assert snapshot.version == 1
        assert snapshot.clause_categories[-1] == "데이터 보호"
        assert audit_logger.get_version("category_registry", "registry", 1)["version"] == 1
        events = audit_logger.get_events(event_type=AuditEventType.CATEGORY_ADDED)
        assert events[0].entity_id == "데이터 보호"
        assert events[0].user_id == "admin"

    def test_duplicate_name_rejected(self, category_registry):
        with pytest.raises(ValidationError):
            category_registry.add_category(CategoryKind.CONTRACT, "용역/프로젝트", "admin")

    def test_empty_name_rejected(self, category_registry):
        with pytest.raises(ValidationError):
            category_registry.add_category(CategoryKind.CLAUSE, "   ", "admin")

    def test_unknown_kind_rejected(self, category_registry):
        with pytest.raises(ValidationError) as exc_info:
            category_registry.add_category("section", "x", "admin")
        assert exc_info.value.field_name == "kind"

    def test_slot_key_only_for_clause_categories(self, category_registry):
        with pytest.raises(ValidationError):
            category_registry.add_category("contract", "임대차", "admin", slot_key="payment")

    def test_slot_key_extends_structures(self, category_registry, structure_registry):
        category_registry.add_category("clause", "데이터 보호", "admin", slot_key="confidentiality")

        kr = structure_registry.get_active("KR")
        assert kr.version == 2
        assert kr.slot_for("데이터 보호").key == "confidentiality"
        assert structure_registry.get_version("KR", 1).slot_for("데이터 보호").key == "other"

    def test_concurrent_additions_are_serialized(self, category_registry):
        names = [f"신규 조항 {i}" for i in range(5)]
        threads = [
            threading.Thread(target=category_registry.add_category, args=("clause", name, "admin"))
            for name in names
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = category_registry.snapshot()
        assert snapshot.version == 5
        assert set(names) <= set(snapshot.clause_categories)


class TestSimilarity:

    def test_extract_keywords(self):
        assert extract_keywords("비밀유지 의무 (NDA)") == ["비밀유지", "의무", "nda"]

    def test_jaccard(self):
        assert jaccard(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)
        assert jaccard([], []) == 0.0

    def test_find_similar(self, category_registry):
        assert category_registry.find_similar("계약 해지 조건") == "계약 해지 조건"
        assert category_registry.find_similar("완전히 다른") is None
        assert category_registry.find_similar("") is None

    def test_usage_counts(self, category_registry, db_manager):
        with db_manager.get_session() as session:
            category_registry.record_usage(session, "clause", "대금 지급 조건")
            category_registry.record_usage(session, "clause", "대금 지급 조건")

        counts = category_registry.usage_counts()
        assert counts["대금 지급 조건"] == 2
        assert counts["계약의 목적"] == 0
