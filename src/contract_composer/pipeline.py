"""End-to-end orchestration of the clause triage and composition engine.

Wires the candidate store, promotion workflow, template library, matcher,
structure registry, composer and contract store together:

    raw text / extracted clauses -> candidates -> promotion -> templates
    quote -> criteria -> matched templates -> composed contract
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .audit.audit_logger import AuditLogger
from .audit.database import DatabaseManager
from .candidates.normalizer import ContractNormalizer, NormalizationReport
from .candidates.promotion import PromotionWorkflow
from .candidates.store import CandidateStore
from .composition.composer import ClauseInput, ContractComposer
from .composition.contract_store import ContractStore
from .composition.exporter import ContractExporter
from .composition.renderer import ContractRenderer
from .composition.structures import StructureRegistry
from .composition.variable_resolver import VariableResolver, suggest_payment_schedule
from .config.config_manager import ConfigurationManager
from .config.models import ConfigurationError, EngineConfiguration
from .errors import ExternalCollaboratorError, ValidationError
from .interfaces.collaborator import IClauseAdvisor, IClauseExtractor
from .matching.criteria import QuoteCriteria, derive_criteria, quote_amount, quote_metadata, quote_services
from .matching.template_matcher import TemplateMatcher
from .models.candidate import (
    BulkActionResult,
    CandidatePage,
    CandidateQuery,
    IngestResult,
    PromotionReport,
)
from .models.contract import Contract
from .models.enums import CategoryKind, ContractSource
from .models.template import MatchResult
from .parsers.document_reader import read_text
from .performance import PerformanceMonitor
from .review.batch_runner import BatchRunner
from .review.risk_review import ContractReview, ContractReviewer
from .templates.categories import CategoryRegistry, CategorySnapshot
from .templates.library import TemplateLibrary

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Configuration for the engine instance."""

    # Database configuration
    database_url: Optional[str] = None

    # Configuration files (engine.json, classification_rules.json)
    config_dir: Optional[str] = None

    # Output directory for .docx exports
    output_dir: str = "data/contracts"

    # Operations slower than this are logged
    max_processing_time: float = 60

    # Seed categories and structures on initialize()
    seed_defaults: bool = True


@dataclass
class IngestionOutcome:
    """Result of ingesting a batch, plus the auto-promotion it triggered."""
    ingest: IngestResult
    promotion: Optional[PromotionReport] = None
    normalization: Optional[NormalizationReport] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ingest": self.ingest.to_dict()}
        if self.promotion is not None:
            data["promotion"] = self.promotion.to_dict()
        if self.normalization is not None:
            data["normalization"] = {
                "is_valid": self.normalization.is_valid,
                "issues": list(self.normalization.issues),
                "warnings": list(self.normalization.warnings),
                "score": self.normalization.score,
                "clause_count": self.normalization.clause_count,
            }
        return data


@dataclass
class GenerationResult:
    """A contract generated for a quote and how its clauses were chosen."""
    contract: Contract
    criteria: Optional[QuoteCriteria] = None
    matches: List[MatchResult] = field(default_factory=list)
    selected: List[MatchResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract": self.contract.to_dict(),
            "criteria": self.criteria.to_dict() if self.criteria else None,
            "matches": [m.to_dict() for m in self.matches],
            "selected_template_ids": [m.template_id for m in self.selected],
        }


class UnavailableAdvisor(IClauseAdvisor):
    """Advisor used when no collaborator is configured; every call fails."""

    def analyze_risk(self, title: str, content: str) -> Dict[str, Any]:
        raise ExternalCollaboratorError("No clause advisor configured", operation="analyze_risk")

    def suggest_improvements(self, title: str, content: str) -> Dict[str, Any]:
        raise ExternalCollaboratorError(
            "No clause advisor configured", operation="suggest_improvements"
        )


class ContractEngine:
    """
    Facade over the whole engine.

    Owns one database manager and builds every component on it. The AI
    collaborator is optional: without an extractor only normalized text and
    explicit candidates can be ingested, without an advisor reviews degrade
    to neutral annotations.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        db_manager: Optional[DatabaseManager] = None,
        config_manager: Optional[ConfigurationManager] = None,
        extractor: Optional[IClauseExtractor] = None,
        advisor: Optional[IClauseAdvisor] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        """
        Args:
            config: Engine instance configuration.
            db_manager: Database manager; created from `config.database_url` when omitted.
            config_manager: Configuration manager; loaded from `config.config_dir` when given.
            extractor: AI clause extraction collaborator.
            advisor: AI clause risk and improvement collaborator.
            sleep: Pause function used between collaborator batches.
        """
        self.config = config or PipelineConfig()
        self.performance_monitor = PerformanceMonitor(
            max_processing_time=self.config.max_processing_time
        )

        self._config_manager = config_manager or ConfigurationManager(
            config_dir=self.config.config_dir
        )
        if self.config.config_dir and not self._config_manager.is_loaded:
            try:
                self._config_manager.load_from_directory(self.config.config_dir)
                logger.info(f"Loaded configuration from {self.config.config_dir}")
            except ConfigurationError as e:
                logger.warning(f"Failed to load configuration, using defaults: {e}")

        settings = self.settings
        self._db_manager = db_manager or DatabaseManager(database_url=self.config.database_url)
        self._owns_db_manager = db_manager is None

        self.audit_logger = AuditLogger(db_manager=self._db_manager)
        self.structures = StructureRegistry(self._db_manager, self.audit_logger)
        self.categories = CategoryRegistry(self._db_manager, self.audit_logger, self.structures)
        self.library = TemplateLibrary(
            self._db_manager,
            self.audit_logger,
            self.categories,
            duplicate_threshold=settings.duplicate_similarity_threshold,
        )
        self.candidates = CandidateStore(self._db_manager, self.audit_logger, settings)
        self.workflow = PromotionWorkflow(
            self._db_manager,
            self.audit_logger,
            self.candidates,
            self.library,
            self.categories,
            config=settings,
            custom_rules=self._config_manager.configuration.get_rules_by_priority(),
        )
        self.matcher = TemplateMatcher(settings.matcher_weights)
        self.composer = ContractComposer(self.structures)
        self.contracts = ContractStore(self._db_manager, self.audit_logger)
        self.normalizer = ContractNormalizer()
        self.renderer = ContractRenderer()
        self.exporter = ContractExporter(output_dir=self.config.output_dir)

        self._extractor = extractor
        self._runner = BatchRunner(
            batch_size=settings.batch_size,
            delay_seconds=settings.batch_delay_seconds,
            timeout_seconds=settings.batch_timeout_seconds,
            sleep=sleep,
        )
        self.reviewer = ContractReviewer(advisor or UnavailableAdvisor(), self._runner)

        logger.info("Contract engine initialized")

    @property
    def settings(self) -> EngineConfiguration:
        return self._config_manager.engine

    @property
    def db_manager(self) -> DatabaseManager:
        return self._db_manager

    def initialize(self) -> None:
        """Create tables and seed the category registry and contract structures."""
        self._db_manager.init_database()
        if self.config.seed_defaults:
            self.categories.seed_defaults()
            self.structures.seed_defaults()

    def close(self) -> None:
        self.audit_logger.close()
        if self._owns_db_manager:
            self._db_manager.close()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_candidates(
        self,
        items: Sequence[Dict[str, Any]],
        user_id: Optional[str] = None,
        auto_promote: Optional[bool] = None,
    ) -> IngestionOutcome:
        """
        Ingest candidates and, unless disabled, auto-promote afterwards.

        Args:
            items: Candidate dicts, see `CandidateStore.ingest`.
            user_id: Acting user.
            auto_promote: Overrides the configured `auto_promote_on_ingest`.
        """
        with self.performance_monitor.track("ingest_candidates", count=len(items)):
            result = self.candidates.ingest(items, user_id=user_id)
            promote = self.settings.auto_promote_on_ingest if auto_promote is None else auto_promote
            promotion = None
            if promote and result.created_ids:
                promotion = self.workflow.auto_promote(user_id=user_id or "system")
        return IngestionOutcome(ingest=result, promotion=promotion)

    def ingest_text(
        self,
        text: str,
        source_contract: Optional[str] = None,
        contract_category: Optional[str] = None,
        user_id: Optional[str] = None,
        auto_promote: Optional[bool] = None,
    ) -> IngestionOutcome:
        """
        Normalize raw contract text into candidates and ingest them.

        Raises:
            ValidationError: The text is empty.
        """
        if not text or not text.strip():
            raise ValidationError("Contract text must not be empty", field_name="text")

        clauses = self.normalizer.normalize(text)
        report = self.normalizer.validate(clauses)
        for warning in report.warnings:
            logger.warning(f"Normalization of {source_contract or 'text'}: {warning}")

        outcome = self.ingest_candidates(
            [c.to_candidate_data(source_contract, contract_category) for c in clauses],
            user_id=user_id,
            auto_promote=auto_promote,
        )
        outcome.normalization = report
        return outcome

    def ingest_file(
        self,
        file_path: str,
        contract_category: Optional[str] = None,
        user_id: Optional[str] = None,
        source_contract: Optional[str] = None,
    ) -> IngestionOutcome:
        """
        Read an uploaded .docx, .pdf or .txt contract and ingest its clauses.

        Raises:
            DocumentReadError: The file is missing, unreadable or empty.
            UnsupportedFormatError: The file type is not supported.
        """
        text = read_text(file_path)
        return self.ingest_text(
            text, source_contract or Path(file_path).name, contract_category, user_id
        )

    def extract_and_ingest(
        self,
        text: str,
        source_contract: Optional[str] = None,
        contract_category: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> IngestionOutcome:
        """
        Extract clauses with the AI collaborator and ingest them.

        Raises:
            ExternalCollaboratorError: No extractor is configured, the call
                failed or it returned something other than a list.
        """
        if self._extractor is None:
            raise ExternalCollaboratorError("No clause extractor configured", operation="extract_clauses")

        with self.performance_monitor.track("extract_clauses"):
            try:
                extracted = self._extractor.extract_clauses(text)
            except ExternalCollaboratorError:
                raise
            except Exception as e:
                logger.exception("Clause extraction failed")
                raise ExternalCollaboratorError(
                    f"Clause extraction failed: {e}", operation="extract_clauses"
                ) from e

        if not isinstance(extracted, list):
            raise ExternalCollaboratorError(
                "Extraction result is not a list", operation="extract_clauses"
            )

        items = []
        for clause in extracted:
            if not isinstance(clause, dict):
                items.append(clause)
                continue
            items.append({
                **clause,
                "source_contract": clause.get("source_contract") or source_contract,
                "contract_category": clause.get("contract_category") or contract_category,
            })
        return self.ingest_candidates(items, user_id=user_id)

    # ------------------------------------------------------------------
    # Review queue
    # ------------------------------------------------------------------

    def query_candidates(self, query: Optional[CandidateQuery] = None) -> CandidatePage:
        return self.candidates.query(query)

    def candidate_stats(self) -> Dict[str, Any]:
        return self.candidates.stats()

    def auto_promote(self, threshold: Optional[float] = None, user_id: str = "system") -> PromotionReport:
        with self.performance_monitor.track("auto_promote"):
            return self.workflow.auto_promote(threshold=threshold, user_id=user_id)

    def approve(
        self,
        ids: Sequence[str],
        overrides: Optional[Dict[str, str]] = None,
        user_id: Optional[str] = None,
    ) -> BulkActionResult:
        return self.workflow.bulk_approve(ids, overrides, user_id=user_id)

    def reject(self, ids: Sequence[str], reason: str, user_id: Optional[str] = None) -> BulkActionResult:
        return self.workflow.reject(ids, reason, user_id=user_id)

    def add_category(
        self,
        kind: str,
        name: str,
        user_id: str,
        keywords: Optional[List[str]] = None,
        slot_key: Optional[str] = None,
    ) -> CategorySnapshot:
        return self.categories.add_category(kind, name, user_id, keywords=keywords, slot_key=slot_key)

    def list_categories(self) -> Dict[str, Any]:
        snapshot = self.categories.snapshot()
        return {
            "contract": list(snapshot.names(CategoryKind.CONTRACT)),
            "clause": list(snapshot.names(CategoryKind.CLAUSE)),
            "version": snapshot.version,
        }

    # ------------------------------------------------------------------
    # Matching and composition
    # ------------------------------------------------------------------

    def match_templates(
        self,
        quote: Dict[str, Any],
        top_n: Optional[int] = None,
    ) -> Tuple[QuoteCriteria, List[MatchResult]]:
        """Derive criteria from a quote and rank the library's templates."""
        with self.performance_monitor.track("match_templates"):
            criteria = derive_criteria(quote)
            templates = self.library.list(contract_category=criteria.contract_category)
            return criteria, self.matcher.match(templates, criteria, top_n=top_n)

    def generate_for_quote(
        self,
        quote: Dict[str, Any],
        parties: Dict[str, Dict[str, Any]],
        jurisdiction: Optional[str] = None,
        reference_date: Optional[date] = None,
        generated_at: Optional[str] = None,
        user_id: Optional[str] = None,
        persist: bool = True,
    ) -> GenerationResult:
        """
        Compose a contract for a quote from the best template per clause category.

        An empty match is not an error: the contract is composed without
        clauses and carries a warning per required section.

        Raises:
            ValidationError: The quote is malformed.
            MissingPartyFieldError: A required party field is missing.
            UnresolvedVariableError: A template references an unknown variable.
        """
        with self.performance_monitor.track("generate_for_quote"):
            criteria, matches = self.match_templates(quote)
            selected = self.matcher.best_per_category(matches)
            if not matches:
                logger.warning(
                    f"No templates matched quote {quote.get('id', '')} "
                    f"({criteria.contract_category})"
                )

            contract = self.compose_contract(
                [m.template for m in selected if m.template is not None],
                parties=parties,
                project_data=self.project_data_from_quote(quote),
                jurisdiction=jurisdiction,
                source=ContractSource.TEMPLATE,
                title=quote.get("title"),
                reference_date=reference_date,
                generated_at=generated_at,
                user_id=user_id,
                persist=persist,
                metadata={"quote_id": quote.get("id"), "criteria": criteria.to_dict()},
            )
        return GenerationResult(contract=contract, criteria=criteria, matches=matches, selected=selected)

    def compose_from_candidates(
        self,
        candidate_ids: Sequence[str],
        parties: Dict[str, Dict[str, Any]],
        project_data: Optional[Dict[str, Any]] = None,
        jurisdiction: Optional[str] = None,
        reference_date: Optional[date] = None,
        generated_at: Optional[str] = None,
        user_id: Optional[str] = None,
        persist: bool = True,
    ) -> Contract:
        """
        Compose a contract directly from a user-curated candidate list.

        Raises:
            NotFoundError: A candidate id does not exist.
        """
        clauses = [self.candidates.get(candidate_id) for candidate_id in candidate_ids]
        return self.compose_contract(
            clauses,
            parties=parties,
            project_data=project_data,
            jurisdiction=jurisdiction,
            source=ContractSource.UPLOAD,
            reference_date=reference_date,
            generated_at=generated_at,
            user_id=user_id,
            persist=persist,
        )

    def compose_contract(
        self,
        clauses: Sequence[ClauseInput],
        parties: Dict[str, Dict[str, Any]],
        project_data: Optional[Dict[str, Any]] = None,
        jurisdiction: Optional[str] = None,
        source: ContractSource = ContractSource.TEMPLATE,
        title: Optional[str] = None,
        reference_date: Optional[date] = None,
        generated_at: Optional[str] = None,
        user_id: Optional[str] = None,
        persist: bool = True,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Contract:
        """
        Resolve variables, compose and (unless previewing) persist a contract.

        Persisting also increments the usage counters of the templates in
        the contract, in the same transaction; a contract that was already
        stored is not counted twice.
        """
        jurisdiction = (jurisdiction or self.settings.default_jurisdiction).upper()
        with self.performance_monitor.track("compose_contract", jurisdiction=jurisdiction):
            structure = self.structures.get_active(jurisdiction)
            variables = VariableResolver(structure.jurisdiction).resolve(
                project_data, parties, reference_date
            )
            contract = self.composer.compose(
                clauses,
                jurisdiction,
                variables,
                title=title,
                source=source,
                generated_at=generated_at,
                structure=structure,
                metadata=metadata,
            )
            if persist:
                self._persist(contract, user_id)
        return contract

    def _persist(self, contract: Contract, user_id: Optional[str]) -> None:
        with self._db_manager.get_session() as session:
            if self.contracts.contains(contract.id, session):
                logger.info(f"Contract {contract.id} already stored")
                return
            self.contracts.save(contract, user_id=user_id, session=session)
            self.library.increment_usage(
                contract.template_ids, user_id=user_id, session=session, contract_id=contract.id
            )

    def revise_contract(
        self,
        contract_id: str,
        clauses: Sequence[ClauseInput],
        parties: Dict[str, Dict[str, Any]],
        project_data: Optional[Dict[str, Any]] = None,
        reference_date: Optional[date] = None,
        generated_at: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Contract:
        """Compose a new version of a stored contract; the original is left untouched."""
        previous = self.contracts.get(contract_id)
        revised = self.compose_contract(
            clauses,
            parties=parties,
            project_data=project_data,
            jurisdiction=previous.jurisdiction,
            source=previous.source,
            title=previous.header.title,
            reference_date=reference_date,
            generated_at=generated_at,
            persist=False,
            metadata=previous.metadata,
        )
        return self.contracts.revise(contract_id, revised, user_id=user_id)

    @staticmethod
    def project_data_from_quote(quote: Dict[str, Any]) -> Dict[str, Any]:
        """Variable resolver input built from a quote."""
        metadata = quote_metadata(quote)
        amount = quote_amount(quote)
        project = {
            "amount": amount or None,
            "duration": metadata.get("duration") or quote.get("duration"),
            "services": quote_services(quote),
            "payment_terms": quote.get("payment_terms") or suggest_payment_schedule(amount),
            "inspection_period": metadata.get("inspection_period"),
            "variables": quote.get("variables") or {},
        }
        if metadata.get("delivery_days") is not None:
            project["delivery_days"] = metadata["delivery_days"]
        return project

    # ------------------------------------------------------------------
    # Stored contracts
    # ------------------------------------------------------------------

    def get_contract(self, contract_id: str) -> Contract:
        return self.contracts.get(contract_id)

    def contract_history(self, contract_id: str) -> List[Contract]:
        return self.contracts.history(contract_id)

    def render_contract(self, contract_id: str, show_warnings: bool = False) -> str:
        return self.renderer.render_html(self.contracts.get(contract_id), show_warnings=show_warnings)

    def export_contract(self, contract_id: str, output_path: Optional[str] = None) -> str:
        return self.exporter.export(self.contracts.get(contract_id), output_path)

    def review_contract(self, contract_id: str) -> ContractReview:
        """Advisory risk review of a stored contract's sections."""
        contract = self.contracts.get(contract_id)
        with self.performance_monitor.track("review_contract", sections=contract.section_count):
            return self.reviewer.review(contract.sections)
