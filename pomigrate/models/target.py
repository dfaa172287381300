"""Destination-side models: workspaces, sheets, columns and rows."""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


MAX_CONTAINER_NAME_LENGTH = 100
MAX_TABLE_NAME_LENGTH = 50

_INVALID_NAME_CHARS = re.compile(r'[/\\:*?"<>|]')
_DASH_RUNS = re.compile(r"-{2,}")


class ColumnType:
    """Smartsheet column types used by the migration."""
    TEXT_NUMBER = "TEXT_NUMBER"
    DATE = "DATE"
    CHECKBOX = "CHECKBOX"
    PICKLIST = "PICKLIST"
    MULTI_PICKLIST = "MULTI_PICKLIST"
    CONTACT_LIST = "CONTACT_LIST"
    MULTI_CONTACT_LIST = "MULTI_CONTACT_LIST"
    PREDECESSOR = "PREDECESSOR"
    DURATION = "DURATION"


@dataclass(frozen=True)
class Contact:
    """A person reference stored in a contact cell."""
    name: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"objectType": "CONTACT"}
        if self.email:
            data["email"] = self.email
        if self.name:
            data["name"] = self.name
        return data

    @property
    def display(self) -> str:
        return self.name or self.email or ""


@dataclass(frozen=True)
class MultiValue:
    """A multi-select cell value: contacts or plain strings."""
    values: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        if self.values and all(isinstance(v, Contact) for v in self.values):
            return {
                "objectType": "MULTI_CONTACT",
                "values": [v.to_dict() for v in self.values],
            }
        return {"objectType": "MULTI_PICKLIST", "values": [str(v) for v in self.values]}

    @property
    def display(self) -> str:
        return ", ".join(v.display if isinstance(v, Contact) else str(v) for v in self.values)


@dataclass(frozen=True)
class ColumnLink:
    """Points a column at another sheet's column as its value source."""
    table_id: int
    column_id: int


@dataclass
class ColumnSpec:
    """Definition of a column to create."""
    title: str
    type: str = ColumnType.TEXT_NUMBER
    primary: bool = False
    hidden: bool = False
    locked: bool = False
    width: Optional[int] = None
    options: List[str] = field(default_factory=list)
    value_set: Optional[str] = None  # Name of a reference value set
    source_link: Optional[ColumnLink] = None


@dataclass
class Column:
    """A column that exists on a sheet."""
    id: int
    title: str
    type: str = ColumnType.TEXT_NUMBER
    index: int = 0
    primary: bool = False
    hidden: bool = False
    locked: bool = False
    options: List[str] = field(default_factory=list)
    source_link: Optional[ColumnLink] = None


@dataclass
class Row:
    """A row that exists on a sheet. Cells are keyed by column id."""
    id: int
    row_number: int = 0
    parent_id: Optional[int] = None
    cells: Dict[int, Any] = field(default_factory=dict)

    def get(self, column_id: Optional[int], default: Any = None) -> Any:
        if column_id is None:
            return default
        return self.cells.get(column_id, default)


@dataclass(frozen=True)
class RowPlacement:
    """Where a new row goes: bottom of the sheet or last child of a parent."""
    parent_id: Optional[int] = None
    to_bottom: bool = True


@dataclass
class RowSpec:
    """A row to create."""
    cells: Dict[int, Any]
    placement: RowPlacement = field(default_factory=RowPlacement)


@dataclass
class RowUpdate:
    """Cell changes for an existing row."""
    row_id: int
    cells: Dict[int, Any]


@dataclass
class Table:
    """A sheet with its columns and (optionally) rows."""
    id: int
    name: str
    columns: List[Column] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    dependencies_enabled: bool = False

    def find_column(self, title: str) -> Optional[Column]:
        for column in self.columns:
            if column.title == title:
                return column
        return None

    def column_map(self) -> Dict[str, int]:
        """Title -> column id."""
        return {c.title: c.id for c in self.columns}

    @property
    def primary_column(self) -> Optional[Column]:
        for column in self.columns:
            if column.primary:
                return column
        return None


@dataclass
class Container:
    """A workspace."""
    id: int
    name: str
    permalink: Optional[str] = None


@dataclass
class ValueSetHandle:
    """A reference value set: a sheet with a primary Name column."""
    name: str
    table_id: int
    column_id: int
    values: List[str] = field(default_factory=list)

    @property
    def link(self) -> ColumnLink:
        return ColumnLink(table_id=self.table_id, column_id=self.column_id)


class ReferenceContext:
    """
    Handles to the shared reference workspace and its value sets.

    Built once per run and passed explicitly to every component that
    needs it. Read-only after construction.
    """

    def __init__(self, container: Container, value_sets: Dict[str, ValueSetHandle]):
        self._container = container
        self._value_sets = MappingProxyType(dict(value_sets))

    @property
    def container(self) -> Container:
        return self._container

    @property
    def value_sets(self) -> Mapping[str, ValueSetHandle]:
        return self._value_sets

    def get(self, name: str) -> Optional[ValueSetHandle]:
        return self._value_sets.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._value_sets


def sanitize_container_name(name: str) -> str:
    """
    Make a project name safe to use as a workspace name.

    Args:
        name: Raw project name

    Returns:
        Sanitised name, at most 100 characters
    """
    sanitized = _INVALID_NAME_CHARS.sub("-", name or "")
    sanitized = _DASH_RUNS.sub("-", sanitized)
    sanitized = sanitized.strip(" -")
    if len(sanitized) > MAX_CONTAINER_NAME_LENGTH:
        sanitized = sanitized[:MAX_CONTAINER_NAME_LENGTH - 3] + "..."
    return sanitized


def table_name(container_name: str, suffix: str) -> str:
    """Build "{container} - {suffix}", shortening the container part to fit."""
    tail = f" - {suffix}"
    room = MAX_TABLE_NAME_LENGTH - len(tail)
    head = container_name if len(container_name) <= room else container_name[:room].rstrip()
    return f"{head}{tail}"
