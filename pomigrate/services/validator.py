"""Parse-and-validate boundary turning raw OData records into typed records."""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .conversions import (
    DEFAULT_HOURS_PER_DAY,
    PRIORITY_MAX,
    PRIORITY_MIN,
    parse_datetime,
    parse_duration_hours,
    to_checkbox,
)
from .resource_families import classify
from ..models.record import (
    AssignmentRecord,
    DependencyType,
    ParseResult,
    PredecessorLink,
    ProjectImportData,
    ProjectRecord,
    RecordIssue,
    ResourceFamily,
    ResourceRecord,
    TaskRecord,
)

logger = logging.getLogger(__name__)

# Project Online numeric link types
DEPENDENCY_TYPE_CODES = {
    0: DependencyType.FF,
    1: DependencyType.FS,
    2: DependencyType.SF,
    3: DependencyType.SS,
}
DEPENDENCY_TYPE_NAMES = {
    "FF": DependencyType.FF,
    "FS": DependencyType.FS,
    "SF": DependencyType.SF,
    "SS": DependencyType.SS,
    "FINISHTOFINISH": DependencyType.FF,
    "FINISHTOSTART": DependencyType.FS,
    "STARTTOFINISH": DependencyType.SF,
    "STARTTOSTART": DependencyType.SS,
}

# Project Online numeric constraint types
CONSTRAINT_TYPE_CODES = {
    0: "ASAP",
    1: "ALAP",
    2: "MSO",
    3: "MFO",
    4: "SNET",
    5: "SNLT",
    6: "FNET",
    7: "FNLT",
}
CONSTRAINT_TYPE_NAMES = {
    "ASSOONASPOSSIBLE": "ASAP",
    "ASLATEASPOSSIBLE": "ALAP",
    "MUSTSTARTON": "MSO",
    "MUSTFINISHON": "MFO",
    "STARTNOEARLIERTHAN": "SNET",
    "STARTNOLATERTHAN": "SNLT",
    "FINISHNOEARLIERTHAN": "FNET",
    "FINISHNOLATERTHAN": "FNLT",
}

RESOURCE_TYPE_CODES = {1: "Work", 2: "Material", 3: "Cost"}


class _RecordParser:
    """Collects issues while reading fields from one raw record."""

    def __init__(self, entity: str, raw: Dict[str, Any], hours_per_day: float):
        self.entity = entity
        self.raw = raw
        self.hours_per_day = hours_per_day
        self.record_id: Optional[str] = None
        self.errors: List[RecordIssue] = []
        self.warnings: List[RecordIssue] = []

    def first(self, *keys: str) -> Any:
        for key in keys:
            value = self.raw.get(key)
            if value is not None and value != "":
                return value
        return None

    def error(self, field: str, message: str, value: Any = None) -> None:
        self.errors.append(RecordIssue(
            field=field,
            message=message,
            record_id=self.record_id,
            entity=self.entity,
            value=value,
        ))

    def warn(self, field: str, message: str, value: Any = None) -> None:
        self.warnings.append(RecordIssue(
            field=field,
            message=message,
            record_id=self.record_id,
            entity=self.entity,
            severity="warning",
            value=value,
        ))

    def text(self, *keys: str) -> Optional[str]:
        value = self.first(*keys)
        if value is None:
            return None
        return str(value).strip() or None

    def required_text(self, field: str, *keys: str) -> Optional[str]:
        value = self.text(*keys)
        if value is None:
            self.error(field, f"{field} is required")
        return value

    def _convert(self, field: str, keys: Tuple[str, ...], func: Callable[[Any], Any]) -> Any:
        value = self.first(*keys)
        if value is None:
            return None
        try:
            return func(value)
        except (TypeError, ValueError, OverflowError) as e:
            self.error(field, f"invalid value: {e}", value)
            return None

    def date(self, field: str, *keys: str):
        return self._convert(field, keys, parse_datetime)

    def hours(self, field: str, *keys: str) -> Optional[float]:
        return self._convert(field, keys, lambda v: parse_duration_hours(v, self.hours_per_day))

    def number(self, field: str, *keys: str) -> Optional[float]:
        return self._convert(field, keys, float)

    def integer(self, field: str, *keys: str) -> Optional[int]:
        return self._convert(field, keys, lambda v: int(float(v)))

    def flag(self, default: bool, *keys: str) -> bool:
        value = self.first(*keys)
        return default if value is None else to_checkbox(value)

    def result(self, record: Any) -> ParseResult:
        if self.errors:
            # Report the first problem; the rest are kept as warnings
            return ParseResult(error=self.errors[0], warnings=self.errors[1:] + self.warnings)
        return ParseResult(record=record, warnings=self.warnings)


class RecordValidator:
    """
    Validates raw Project Online records once, at the extraction boundary.

    Each parse method returns a ParseResult holding either a typed record
    or the error that rejected it, plus non-fatal warnings. Malformed
    records never reach the transformers.
    """

    def __init__(self, hours_per_day: float = DEFAULT_HOURS_PER_DAY):
        self.hours_per_day = hours_per_day

    def _parser(self, entity: str, raw: Dict[str, Any]) -> _RecordParser:
        parser = _RecordParser(entity, raw if isinstance(raw, dict) else {}, self.hours_per_day)
        if not isinstance(raw, dict):
            parser.error("record", "record is not an object", raw)
        return parser

    def _check_priority(self, parser: _RecordParser, priority: Optional[int]) -> None:
        if priority is not None and not PRIORITY_MIN <= priority <= PRIORITY_MAX:
            parser.warn("priority", f"priority {priority} outside {PRIORITY_MIN}-{PRIORITY_MAX}, clamped", priority)

    def _check_percent(self, parser: _RecordParser, field: str, value: Optional[float]) -> None:
        if value is not None and not 0 <= value <= 100:
            parser.warn(field, f"{field} {value} outside 0-100", value)

    def parse_project(self, raw: Dict[str, Any]) -> ParseResult:
        """
        Parse a raw project.

        Args:
            raw: Project as returned by the OData feed or an export file

        Returns:
            ParseResult with a ProjectRecord
        """
        p = self._parser("project", raw)
        p.record_id = p.text("Id", "ProjectId")
        if p.record_id is None:
            p.error("id", "id is required")
        name = p.required_text("name", "Name", "ProjectName")

        record = ProjectRecord(
            id=p.record_id or "",
            name=name or "",
            description=p.text("Description", "ProjectDescription"),
            owner=p.text("Owner", "ProjectOwnerName"),
            owner_email=p.text("OwnerEmail", "ProjectOwnerEmail"),
            start_date=p.date("start_date", "StartDate", "ProjectStartDate"),
            finish_date=p.date("finish_date", "FinishDate", "ProjectFinishDate"),
            created_date=p.date("created_date", "CreatedDate", "ProjectCreatedDate"),
            modified_date=p.date("modified_date", "ModifiedDate", "ProjectModifiedDate"),
            status=p.text("ProjectStatus", "Status"),
            project_type=p.integer("project_type", "ProjectType"),
            priority=p.integer("priority", "Priority", "ProjectPriority"),
            percent_complete=p.number("percent_complete", "PercentComplete", "ProjectPercentCompleted"),
        )
        self._check_priority(p, record.priority)
        self._check_percent(p, "percent_complete", record.percent_complete)
        if not record.owner and not record.owner_email:
            p.warn("owner", "project has no owner")
        if record.start_date is None:
            p.warn("start_date", "project has no start date")
        if record.finish_date is None:
            p.warn("finish_date", "project has no finish date")
        return p.result(record)

    def _parse_dependency_type(self, p: _RecordParser, value: Any) -> DependencyType:
        if value is None or value == "":
            return DependencyType.FS
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if int(value) in DEPENDENCY_TYPE_CODES:
                return DEPENDENCY_TYPE_CODES[int(value)]
        else:
            key = str(value).replace("_", "").replace(" ", "").upper()
            if key.isdigit() and int(key) in DEPENDENCY_TYPE_CODES:
                return DEPENDENCY_TYPE_CODES[int(key)]
            if key in DEPENDENCY_TYPE_NAMES:
                return DEPENDENCY_TYPE_NAMES[key]
        p.warn("predecessors", f"unknown dependency type {value!r}, using FS", value)
        return DependencyType.FS

    def _parse_lag_days(self, p: _RecordParser, link: Dict[str, Any]) -> float:
        if link.get("LagDays") not in (None, ""):
            try:
                return float(link["LagDays"])
            except (TypeError, ValueError):
                p.warn("predecessors", "invalid LagDays, lag ignored", link["LagDays"])
                return 0.0
        duration = link.get("LinkLagDuration")
        if not duration:
            return 0.0
        try:
            hours = parse_duration_hours(duration, self.hours_per_day) or 0.0
        except ValueError:
            p.warn("predecessors", "invalid LinkLagDuration, lag ignored", duration)
            return 0.0
        days = round(hours / self.hours_per_day, 2)
        sign = link.get("LinkLag")
        if isinstance(sign, (int, float)) and sign < 0:
            days = -abs(days)
        return days

    def _parse_predecessors(self, p: _RecordParser) -> List[PredecessorLink]:
        raw_links = p.first("Predecessors", "TaskLinks")
        if raw_links is None:
            return []
        if isinstance(raw_links, dict):
            raw_links = raw_links.get("results", raw_links.get("value", []))
        if isinstance(raw_links, str):
            raw_links = [{"PredecessorTaskId": part.strip()} for part in raw_links.split(",") if part.strip()]
        if not isinstance(raw_links, list):
            p.warn("predecessors", "predecessors ignored, unrecognised format", raw_links)
            return []

        links = []
        for link in raw_links:
            if isinstance(link, str):
                link = {"PredecessorTaskId": link}
            if not isinstance(link, dict):
                p.warn("predecessors", "predecessor entry ignored, unrecognised format", link)
                continue
            predecessor_id = link.get("PredecessorTaskId") or link.get("TaskId")
            if not predecessor_id:
                p.warn("predecessors", "predecessor without task id ignored", link)
                continue
            links.append(PredecessorLink(
                predecessor_id=str(predecessor_id),
                dependency_type=self._parse_dependency_type(
                    p, link.get("DependencyType", link.get("LinkType"))
                ),
                lag_days=self._parse_lag_days(p, link),
            ))
        return links

    def _parse_constraint_type(self, p: _RecordParser) -> Optional[str]:
        value = p.first("ConstraintType", "TaskConstraintType")
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            code = CONSTRAINT_TYPE_CODES.get(int(value))
        else:
            text = str(value).strip()
            if text.isdigit():
                code = CONSTRAINT_TYPE_CODES.get(int(text))
            elif text.upper() in CONSTRAINT_TYPE_CODES.values():
                code = text.upper()
            else:
                code = CONSTRAINT_TYPE_NAMES.get(text.replace(" ", "").upper())
        if code is None:
            p.warn("constraint_type", f"unknown constraint type {value!r} ignored", value)
        return code

    def parse_task(self, raw: Dict[str, Any]) -> ParseResult:
        """
        Parse a raw task.

        Args:
            raw: Task as returned by the OData feed or an export file

        Returns:
            ParseResult with a TaskRecord
        """
        p = self._parser("task", raw)
        p.record_id = p.text("Id", "TaskId")
        if p.record_id is None:
            p.error("id", "id is required")
        name = p.required_text("name", "TaskName", "Name")

        outline_level = p.integer("outline_level", "OutlineLevel", "TaskOutlineLevel")
        record = TaskRecord(
            id=p.record_id or "",
            name=name or "",
            outline_level=outline_level if outline_level is not None else 1,
            start=p.date("start", "Start", "TaskStartDate"),
            finish=p.date("finish", "Finish", "TaskFinishDate"),
            duration_hours=p.hours("duration", "DurationTimeSpan", "Duration", "TaskDuration"),
            work_hours=p.hours("work", "Work", "TaskWork"),
            actual_work_hours=p.hours("actual_work", "ActualWork", "TaskActualWork"),
            percent_complete=p.number("percent_complete", "PercentComplete", "TaskPercentCompleted"),
            priority=p.integer("priority", "Priority", "TaskPriority"),
            is_milestone=p.flag(False, "IsMilestone", "TaskIsMilestone"),
            notes=p.text("TaskNotes", "Notes"),
            predecessors=self._parse_predecessors(p),
            constraint_type=self._parse_constraint_type(p),
            constraint_date=p.date("constraint_date", "ConstraintDate", "TaskConstraintDate"),
            deadline=p.date("deadline", "Deadline", "TaskDeadline"),
            late_start=p.date("late_start", "LateStart", "TaskLateStart"),
            late_finish=p.date("late_finish", "LateFinish", "TaskLateFinish"),
            total_slack_hours=p.hours("total_slack", "TotalSlack", "TaskTotalSlack"),
            free_slack_hours=p.hours("free_slack", "FreeSlack", "TaskFreeSlack"),
            created_date=p.date("created_date", "CreatedDate", "TaskCreatedDate"),
            modified_date=p.date("modified_date", "ModifiedDate", "TaskModifiedDate"),
        )
        self._check_priority(p, record.priority)
        self._check_percent(p, "percent_complete", record.percent_complete)
        return p.result(record)

    def parse_resource(self, raw: Dict[str, Any]) -> ParseResult:
        """
        Parse a raw resource.

        Args:
            raw: Resource as returned by the OData feed or an export file

        Returns:
            ParseResult with a ResourceRecord
        """
        p = self._parser("resource", raw)
        p.record_id = p.text("Id", "ResourceId")
        if p.record_id is None:
            p.error("id", "id is required")
        name = p.required_text("name", "Name", "ResourceName")

        resource_type = p.first("ResourceType")
        if isinstance(resource_type, (int, float)) and not isinstance(resource_type, bool):
            resource_type = RESOURCE_TYPE_CODES.get(int(resource_type))
        elif resource_type is not None:
            resource_type = str(resource_type).strip() or None

        record = ResourceRecord(
            id=p.record_id or "",
            name=name or "",
            email=p.text("Email", "ResourceEmailAddress"),
            resource_type=resource_type,
            max_units=p.number("max_units", "MaxUnits", "ResourceMaxUnits"),
            standard_rate=p.number("standard_rate", "StandardRate", "ResourceStandardRate"),
            overtime_rate=p.number("overtime_rate", "OvertimeRate", "ResourceOvertimeRate"),
            cost_per_use=p.number("cost_per_use", "CostPerUse", "ResourceCostPerUse"),
            department=p.text("Department", "ResourceDepartments"),
            code=p.text("Code", "ResourceCode"),
            is_active=p.flag(True, "IsActive", "ResourceIsActive"),
            is_generic=p.flag(False, "IsGeneric", "ResourceIsGeneric"),
            created_date=p.date("created_date", "CreatedDate", "ResourceCreatedDate"),
            modified_date=p.date("modified_date", "ModifiedDate", "ResourceModifiedDate"),
        )
        if classify(record) == ResourceFamily.PEOPLE and not record.email:
            p.warn("email", "work resource has no email, stored as name only")
        if record.max_units is not None and record.max_units > 1.0:
            p.warn("max_units", f"max units {record.max_units} above 100%", record.max_units)
        for field_name in ("standard_rate", "overtime_rate", "cost_per_use"):
            value = getattr(record, field_name)
            if value is not None and value < 0:
                p.warn(field_name, f"{field_name} is negative", value)
        return p.result(record)

    def parse_assignment(self, raw: Dict[str, Any]) -> ParseResult:
        """Parse a raw assignment."""
        p = self._parser("assignment", raw)
        p.record_id = p.text("Id", "AssignmentId")
        if p.record_id is None:
            p.error("id", "id is required")
        task_id = p.required_text("task_id", "TaskId")
        resource_id = p.required_text("resource_id", "ResourceId")

        record = AssignmentRecord(
            id=p.record_id or "",
            task_id=task_id or "",
            resource_id=resource_id or "",
            start=p.date("start", "Start", "AssignmentStartDate"),
            finish=p.date("finish", "Finish", "AssignmentFinishDate"),
            work_hours=p.hours("work", "Work", "AssignmentWork"),
            actual_work_hours=p.hours("actual_work", "ActualWork", "AssignmentActualWork"),
            remaining_work_hours=p.hours("remaining_work", "RemainingWork", "AssignmentRemainingWork"),
            percent_work_complete=p.number(
                "percent_work_complete", "PercentWorkComplete", "AssignmentPercentWorkCompleted"
            ),
            units=p.number("units", "Units", "AssignmentUnits"),
            cost=p.number("cost", "Cost", "AssignmentCost"),
            notes=p.text("AssignmentNotes", "Notes"),
        )
        self._check_percent(p, "percent_work_complete", record.percent_work_complete)
        return p.result(record)

    def parse_batch(
        self,
        parse: Callable[[Dict[str, Any]], ParseResult],
        raws: List[Dict[str, Any]],
    ) -> Tuple[List[Any], List[RecordIssue], List[RecordIssue]]:
        """
        Parse many records with one parse method.

        Args:
            parse: One of the parse_* methods
            raws: Raw records

        Returns:
            Tuple of (valid records, errors, warnings)
        """
        records, errors, warnings = [], [], []
        for raw in raws or []:
            result = parse(raw)
            if result.ok:
                records.append(result.record)
            else:
                errors.append(result.error)
            warnings.extend(result.warnings)
        return records, errors, warnings

    def parse_import_data(
        self,
        raw_project: Dict[str, Any],
        raw_tasks: List[Dict[str, Any]],
        raw_resources: List[Dict[str, Any]],
        raw_assignments: List[Dict[str, Any]],
    ) -> Tuple[Optional[ProjectImportData], List[RecordIssue], List[RecordIssue]]:
        """
        Parse a whole project export.

        A project that fails validation yields no import data; invalid
        tasks, resources and assignments are left out individually.

        Returns:
            Tuple of (import data or None, errors, warnings)
        """
        project_result = self.parse_project(raw_project)
        errors: List[RecordIssue] = []
        warnings: List[RecordIssue] = list(project_result.warnings)
        if not project_result.ok:
            errors.append(project_result.error)
            return None, errors, warnings

        tasks, task_errors, task_warnings = self.parse_batch(self.parse_task, raw_tasks)
        resources, resource_errors, resource_warnings = self.parse_batch(self.parse_resource, raw_resources)
        assignments, assignment_errors, assignment_warnings = self.parse_batch(
            self.parse_assignment, raw_assignments
        )
        errors.extend(task_errors + resource_errors + assignment_errors)
        warnings.extend(task_warnings + resource_warnings + assignment_warnings)

        for issue in errors:
            logger.warning(f"Rejected record: {issue}")

        data = ProjectImportData(
            project=project_result.record,
            tasks=tasks,
            resources=resources,
            assignments=assignments,
        )
        return data, errors, warnings
