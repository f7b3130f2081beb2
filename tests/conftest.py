"""Shared fixtures: a file-backed SQLite database with seeded registries."""

import pytest

from contract_composer.audit.audit_logger import AuditLogger
from contract_composer.audit.database import DatabaseManager
from contract_composer.candidates.promotion import PromotionWorkflow
from contract_composer.candidates.store import CandidateStore
from contract_composer.composition.contract_store import ContractStore
from contract_composer.composition.structures import StructureRegistry
from contract_composer.config.models import EngineConfiguration
from contract_composer.pipeline import ContractEngine, PipelineConfig
from contract_composer.templates.categories import CategoryRegistry
from contract_composer.templates.library import TemplateLibrary


@pytest.fixture
def db_manager(tmp_path):
    """Database manager on a fresh SQLite file with all tables created."""
    manager = DatabaseManager(database_url=f"sqlite:///{tmp_path / 'test.db'}")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def audit_logger(db_manager):
    return AuditLogger(db_manager=db_manager)


@pytest.fixture
def engine_config():
    return EngineConfiguration()


@pytest.fixture
def structure_registry(db_manager, audit_logger):
    registry = StructureRegistry(db_manager, audit_logger)
    registry.seed_defaults()
    return registry


@pytest.fixture
def category_registry(db_manager, audit_logger, structure_registry):
    registry = CategoryRegistry(db_manager, audit_logger, structure_registry)
    registry.seed_defaults()
    return registry


@pytest.fixture
def library(db_manager, audit_logger, category_registry):
    return TemplateLibrary(db_manager, audit_logger, category_registry)


@pytest.fixture
def candidate_store(db_manager, audit_logger, engine_config):
    return CandidateStore(db_manager, audit_logger, engine_config)


@pytest.fixture
def workflow(db_manager, audit_logger, candidate_store, library, category_registry, engine_config):
    return PromotionWorkflow(
        db_manager, audit_logger, candidate_store, library, category_registry, config=engine_config
    )


@pytest.fixture
def contract_store(db_manager, audit_logger):
    return ContractStore(db_manager, audit_logger)


@pytest.fixture
def engine(tmp_path, db_manager):
    """Fully wired engine with batch delays disabled."""
    contract_engine = ContractEngine(
        config=PipelineConfig(output_dir=str(tmp_path / "contracts")),
        db_manager=db_manager,
        sleep=lambda seconds: None,
    )
    contract_engine.initialize()
    yield contract_engine
    contract_engine.close()


@pytest.fixture
def parties():
    return {
        "client": {
            "name": "김철수",
            "company": "한빛상사",
            "email": "client@example.com",
            "phone": "010-1234-5678",
        },
        "provider": {
            "name": "이영희",
            "company": "새벽스튜디오",
            "email": "provider@example.com",
        },
    }
