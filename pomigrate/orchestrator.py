"""Import orchestrator - coordinates a complete project import."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional

from .exceptions import ConfigurationError, MigrationError, describe_error
from .models.migration import (
    ImportConfig,
    ImportResult,
    ImportStage,
    SourceValidation,
    StageProgress,
    StageStatus,
)
from .models.record import ProjectImportData, RecordIssue
from .models.target import ReferenceContext
from .services.progress import ProgressReporter, ProgressSink
from .services.reference_data import DEPARTMENT_SET, ReferenceDataManager, discover_values
from .services.resilience import ResiliencePolicy
from .extractors.base import BaseExtractor
from .extractors.json_extractor import JSONExtractor
from .extractors.odata_extractor import ODataExtractor, is_guid
from .loaders.base import BaseLoader
from .loaders.memory_loader import InMemoryLoader
from .loaders.smartsheet_loader import SmartsheetLoader
from .transformers.base import TransformResult
from .transformers.project import ProjectTables, ProjectTransformer
from .transformers.task import TaskTransformer
from .transformers.resource import ResourceTransformer
from .transformers.assignment import AssignmentTransformer

logger = logging.getLogger(__name__)

# Stages that count towards progress, in execution order
PIPELINE = [
    ImportStage.REFERENCE_SETUP,
    ImportStage.CONTAINER_CREATION,
    ImportStage.SUMMARY_CONFIG,
    ImportStage.TASK_IMPORT,
    ImportStage.TASK_CONFIG,
    ImportStage.RESOURCE_IMPORT,
    ImportStage.ASSIGNMENT_CONFIG,
]


class ImportOrchestrator:
    """
    Orchestrates the import of one Project Online project.

    Handles:
    - Extraction and validation of the source project
    - Reference value set setup
    - Workspace and sheet creation
    - Summary, task, resource and assignment import
    - Progress reporting and the run report

    Every stage is idempotent, so a failed run is recovered by running it
    again rather than by rolling back.
    """

    def __init__(
        self,
        config: ImportConfig,
        loader: Optional[BaseLoader] = None,
        extractor: Optional[BaseExtractor] = None,
        progress: Optional[ProgressSink] = None,
        policy: Optional[ResiliencePolicy] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Import configuration
            loader: Destination loader; built from config when omitted
            extractor: Source extractor; chosen per source when omitted
            progress: Sink for stage transitions
            policy: Resilience policy shared by every external call
        """
        self.config = config
        self.policy = policy or ResiliencePolicy.from_config(config)
        self.progress = progress or ProgressReporter()
        self._loader = loader
        self._extractor = extractor

        # Runtime state
        self.result: Optional[ImportResult] = None
        self._units_done = 0

    def _create_loader(self, dry_run: bool) -> BaseLoader:
        """Create the destination loader."""
        if self._loader is not None:
            return self._loader
        if dry_run:
            logger.info("Dry run: writing to an in-memory sandbox")
            return InMemoryLoader(dry_run=True, policy=self.policy)
        return SmartsheetLoader(
            api_token=self.config.smartsheet_api_token,
            base_url=self.config.smartsheet_base_url,
            policy=self.policy,
            timeout=self.config.request_timeout,
        )

    def _create_extractor(self, source_ref: str) -> BaseExtractor:
        """Create the extractor for a source reference."""
        if self._extractor is not None:
            return self._extractor
        if JSONExtractor.handles(source_ref):
            return JSONExtractor(hours_per_day=self.config.hours_per_day)
        return ODataExtractor(
            base_url=self.config.project_online_url,
            access_token=self.config.project_online_access_token,
            policy=self.policy,
            timeout=self.config.request_timeout,
            hours_per_day=self.config.hours_per_day,
        )

    def run_import(
        self,
        source_ref: str,
        destination_ref: Optional[int] = None,
        dry_run: Optional[bool] = None,
    ) -> ImportResult:
        """
        Extract a project and import it.

        Args:
            source_ref: Project GUID or path to a JSON export
            destination_ref: Existing workspace id to import into
            dry_run: Write to an in-memory sandbox (defaults to config)

        Returns:
            ImportResult with counts, stages, errors and warnings

        Raises:
            ConfigurationError: On unusable configuration or source
        """
        dry_run = self.config.dry_run if dry_run is None else dry_run
        extractor = self._create_extractor(source_ref)

        try:
            extraction = extractor.extract_project(source_ref)
        except ConfigurationError:
            raise
        except MigrationError as e:
            logger.error(f"Extraction failed: {describe_error(e)}")
            return self._failed_before_start(dry_run, [describe_error(e)])

        if extraction.data is None:
            return self._failed_before_start(dry_run, [str(issue) for issue in extraction.errors])

        return self.import_project(
            extraction.data,
            destination_ref=destination_ref,
            dry_run=dry_run,
            record_errors=extraction.errors,
            record_warnings=extraction.warnings,
        )

    def _failed_before_start(self, dry_run: bool, errors: List[str]) -> ImportResult:
        now = datetime.utcnow()
        self.result = ImportResult(
            success=False,
            dry_run=dry_run,
            stage=ImportStage.FAILED,
            started_at=now,
            completed_at=now,
            errors=errors,
        )
        self._report(ImportStage.FAILED)
        self._save_report()
        return self.result

    def import_project(
        self,
        data: ProjectImportData,
        destination_ref: Optional[int] = None,
        dry_run: bool = False,
        loader: Optional[BaseLoader] = None,
        record_errors: Optional[List[RecordIssue]] = None,
        record_warnings: Optional[List[RecordIssue]] = None,
    ) -> ImportResult:
        """
        Import already validated project data.

        Args:
            data: Typed project data
            destination_ref: Existing workspace id to import into
            dry_run: Write to an in-memory sandbox
            loader: Destination loader override
            record_errors: Rejected records from extraction
            record_warnings: Record warnings from extraction

        Returns:
            ImportResult

        Raises:
            ConfigurationError: If reference setup or workspace creation
                hits a configuration problem
        """
        self.result = ImportResult(
            project_name=data.project.name,
            dry_run=dry_run,
            started_at=datetime.utcnow(),
        )
        self.result.errors.extend(str(issue) for issue in record_errors or [])
        self.result.warnings.extend(str(issue) for issue in record_warnings or [])
        self._units_done = 0
        self._report(ImportStage.INIT)

        sandboxed = dry_run and loader is None and self._loader is None
        loader = loader or self._create_loader(dry_run)
        if sandboxed and (destination_ref or self.config.pmo_standards_workspace_id):
            logger.info("Dry run: configured workspace ids are ignored by the sandbox")
        reference_id = None if sandboxed else self.config.pmo_standards_workspace_id
        template_id = None if sandboxed else self.config.template_workspace_id
        destination_id = None if sandboxed else destination_ref

        logger.info(f"Importing project '{data.project.name}' ({data.project.id})")
        counts = data.counts()
        has_tasks = counts["tasks"] > 0
        has_resources = counts["resources"] > 0
        has_assignments = counts["assignments"] > 0 and has_resources

        try:
            logger.info("=== STAGE: REFERENCE SETUP ===")
            references = self._run_stage(
                ImportStage.REFERENCE_SETUP,
                lambda: self._setup_references(loader, data, reference_id),
            )
            logger.info("=== STAGE: CONTAINER CREATION ===")
            tables = self._run_stage(
                ImportStage.CONTAINER_CREATION,
                lambda: ProjectTransformer(loader, self.config.hours_per_day).prepare_container(
                    data.project, destination_id, template_id, references
                ),
            )
        except ConfigurationError as e:
            self._fail(e)
            self._finish()
            raise
        except Exception as e:
            self._fail(e)
            return self._finish()

        self.result.container_id = tables.container.id
        self.result.container_name = tables.container.name

        try:
            self._import_entities(loader, data, tables, references, has_tasks, has_resources, has_assignments)
            self.result.success = True
            self.result.stage = ImportStage.DONE
            self._report(ImportStage.DONE)
            logger.info("=== IMPORT COMPLETED ===")
        except Exception as e:
            self._fail(e)
        return self._finish()

    def _import_entities(
        self,
        loader: BaseLoader,
        data: ProjectImportData,
        tables: ProjectTables,
        references: ReferenceContext,
        has_tasks: bool,
        has_resources: bool,
        has_assignments: bool,
    ) -> None:
        hours_per_day = self.config.hours_per_day
        tasks = TaskTransformer(loader, hours_per_day, self.config.max_indent)

        logger.info("=== STAGE: SUMMARY ===")
        self._run_stage(
            ImportStage.SUMMARY_CONFIG,
            lambda: ProjectTransformer(loader, hours_per_day).transform(
                [data.project], tables.summary, references
            ),
        )

        logger.info("=== STAGE: TASKS ===")
        task_result = self._run_stage(
            ImportStage.TASK_IMPORT,
            lambda: tasks.transform(data.tasks, tables.tasks, references),
            skip=not has_tasks,
        )
        if task_result is not None:
            self.result.tasks_imported = task_result.rows_created
        self._run_stage(
            ImportStage.TASK_CONFIG,
            lambda: tasks.configure(tables.tasks, references),
            skip=not has_tasks,
        )

        logger.info("=== STAGE: RESOURCES ===")
        resource_result = self._run_stage(
            ImportStage.RESOURCE_IMPORT,
            lambda: ResourceTransformer(loader, hours_per_day).transform(
                data.resources, tables.resources, references
            ),
            skip=not has_resources,
        )
        if resource_result is not None:
            self.result.resources_imported = resource_result.rows_created

        logger.info("=== STAGE: ASSIGNMENTS ===")
        assignment_result = self._run_stage(
            ImportStage.ASSIGNMENT_CONFIG,
            lambda: AssignmentTransformer(
                loader, data.resources, tables.resources, hours_per_day
            ).transform(data.assignments, tables.tasks, references),
            skip=not has_assignments,
        )
        if assignment_result is not None:
            self.result.assignments_imported = assignment_result.records_mapped

    def _setup_references(
        self,
        loader: BaseLoader,
        data: ProjectImportData,
        reference_id: Optional[int],
    ) -> ReferenceContext:
        departments = discover_values(data.resources, lambda r: r.department)
        manager = ReferenceDataManager(loader)
        return manager.setup_reference_container(
            existing_id=reference_id,
            discovered={DEPARTMENT_SET: departments},
        )

    def _run_stage(self, stage: ImportStage, func: Callable[[], Any], skip: bool = False) -> Any:
        """
        Run one stage, recording its status and reporting progress.

        Args:
            stage: Stage being run
            func: Stage body
            skip: Record the stage as skipped without running it

        Returns:
            Whatever func returns, None when skipped
        """
        record = self.result.add_stage(stage)
        self.result.stage = stage

        if skip:
            record.status = StageStatus.SKIPPED
            logger.info(f"{stage.value}: nothing to import, skipped")
            self._units_done += 1
            self._report(stage)
            return None

        record.status = StageStatus.RUNNING
        record.started_at = datetime.utcnow()
        try:
            outcome = func()
        except Exception as e:
            record.status = StageStatus.FAILED
            record.errors.append(describe_error(e))
            raise
        finally:
            record.completed_at = datetime.utcnow()

        if isinstance(outcome, TransformResult):
            record.rows_created = outcome.rows_created
            record.rows_skipped = outcome.rows_skipped
            record.rows_updated = outcome.rows_updated
            record.errors.extend(outcome.errors)
            record.warnings.extend(outcome.warnings)
            self.result.errors.extend(outcome.errors)
            self.result.warnings.extend(outcome.warnings)
        record.status = StageStatus.COMPLETED
        self._units_done += 1
        self._report(stage)
        return outcome

    def _report(self, stage: ImportStage) -> None:
        self.progress(StageProgress(
            stage_name=stage.value,
            units_done=self._units_done,
            units_total=len(PIPELINE),
        ))

    def _fail(self, error: BaseException) -> None:
        failed_in = self.result.stage
        message = describe_error(error)
        logger.error(f"Import failed during {failed_in.value}: {message}")
        self.result.success = False
        self.result.errors.append(f"{failed_in.value}: {message}")
        self.result.stage = ImportStage.FAILED
        self._report(ImportStage.FAILED)

    def _finish(self) -> ImportResult:
        self.result.completed_at = datetime.utcnow()
        logger.info(
            f"Imported {self.result.tasks_imported} tasks, {self.result.resources_imported} resources, "
            f"{self.result.assignments_imported} assignments "
            f"({len(self.result.errors)} errors, {len(self.result.warnings)} warnings)"
        )
        self._save_report()
        return self.result

    def validate_source(self, source_ref: str) -> SourceValidation:
        """
        Pre-flight check of a source before importing.

        Args:
            source_ref: Project GUID or path to a JSON export

        Returns:
            SourceValidation listing every problem found
        """
        errors: List[str] = []

        if JSONExtractor.handles(source_ref):
            if not Path(source_ref).is_file():
                errors.append(f"Export file not found: {source_ref}")
        elif is_guid(source_ref):
            problems = self.config.validate(require_source=True)
            errors.extend(p for p in problems if p.startswith("PROJECT_ONLINE"))
            if not errors:
                extractor = self._create_extractor(source_ref)
                if not extractor.test_connection():
                    errors.append("Could not connect to Project Online")
        else:
            errors.append(
                f"Invalid source {source_ref!r}: expected a project GUID or a .json export file"
            )

        if not self.config.dry_run:
            if not self.config.smartsheet_api_token and self._loader is None:
                errors.append("SMARTSHEET_API_TOKEN is not set")

        for error in errors:
            logger.warning(f"Source check: {error}")
        return SourceValidation(valid=not errors, errors=errors)

    def _save_report(self) -> None:
        """Save the run report when an output directory is configured."""
        if not self.config.output_dir or self.result is None:
            return
        logs_dir = Path(self.config.output_dir) / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
        filepath = logs_dir / f"import_report_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.json"
        with open(filepath, "w") as f:
            json.dump(self.result.to_dict(), f, indent=2, default=str)
        logger.info(f"Saved import report to {filepath}")
