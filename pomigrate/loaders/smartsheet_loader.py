"""Smartsheet REST API loader."""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import BaseLoader
from ..exceptions import (
    AuthorizationError,
    ConfigurationError,
    ConnectivityError,
    RateLimitError,
)
from ..models.target import (
    Column,
    ColumnLink,
    ColumnSpec,
    ColumnType,
    Contact,
    Container,
    MultiValue,
    Row,
    RowSpec,
    RowUpdate,
    Table,
)
from ..services.resilience import ResiliencePolicy

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.smartsheet.com/2.0"

# Everything a template copy should carry over
COPY_INCLUDE = "data,cellLinks,filters,forms,rules,ruleRecipients,shares"


class SmartsheetLoader(BaseLoader):
    """
    Loader for the Smartsheet API.

    Every call goes through the resilience policy. HTTP failures are
    mapped onto the error taxonomy: 401/403 are authorization errors,
    429 is a rate-limit error, 5xx and network failures are retryable
    connectivity errors. A 404 on a read means "not found".
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        dry_run: bool = False,
        batch_size: int = 100,
        policy: Optional[ResiliencePolicy] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Smartsheet loader.

        Args:
            api_token: Smartsheet API access token
            base_url: API base URL
            dry_run: Kept for interface parity; dry runs use the sandbox loader
            batch_size: Maximum rows per request
            policy: Resilience policy
            timeout: Per-request timeout in seconds
            session: Pre-configured session (tests)
        """
        if not api_token:
            raise ConfigurationError(
                "Smartsheet API token is missing",
                actionable="Set SMARTSHEET_API_TOKEN",
            )
        super().__init__("smartsheet", dry_run, batch_size, policy)
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with auth and transport retries."""
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {self.api_token}"
        session.headers["Content-Type"] = "application/json"

        # Transport-level retries for idempotent reads only; the policy
        # handles everything else.
        retry = Retry(
            total=2,
            backoff_factor=0.5,
            status_forcelist=[502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _raise_for_status(self, response: requests.Response, description: str) -> None:
        status = response.status_code
        if status < 400:
            return
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        if not isinstance(body, dict):
            body = {}
        message = f"{description}: HTTP {status} {body.get('message', '')}".strip()
        details = {"status_code": status, "error_code": body.get("errorCode")}

        if status in (401, 403):
            raise AuthorizationError(message, details=details, status_code=status)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                message,
                retry_after=float(retry_after) if retry_after else None,
                details=details,
            )
        if status >= 500:
            raise ConnectivityError(message, details=details, status_code=status)
        raise ConnectivityError(message, details=details, retryable=False, status_code=status)

    def _request(
        self,
        method: str,
        path: str,
        description: str,
        allow_missing: bool = False,
        **kwargs: Any,
    ) -> Optional[Any]:
        """
        Perform one API call under the resilience policy.

        Args:
            method: HTTP method
            path: Path below the base URL
            description: Label for logs and errors
            allow_missing: Return None instead of raising on 404
            **kwargs: Passed to requests

        Returns:
            Decoded JSON body, or None for an allowed 404
        """
        url = f"{self.base_url}{path}"

        def send():
            try:
                response = self._session.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                raise ConnectivityError(f"{description}: {e}")
            if allow_missing and response.status_code == 404:
                return None
            self._raise_for_status(response, description)
            return response.json() if response.content else {}

        return self.policy.call(send, description=description)

    @staticmethod
    def _result(body: Optional[Dict[str, Any]]) -> Any:
        if body is None:
            return None
        return body.get("result", body)

    # Conversions

    @staticmethod
    def _column_to_api(spec: ColumnSpec, index: Optional[int] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": spec.title, "type": spec.type}
        if spec.primary:
            data["primary"] = True
        if spec.hidden:
            data["hidden"] = True
        if spec.locked:
            data["locked"] = True
        if spec.width:
            data["width"] = spec.width
        if index is not None:
            data["index"] = index
        if spec.options:
            data["options"] = list(spec.options)
            data["validation"] = True
        elif spec.source_link is not None:
            link = {"sheetId": spec.source_link.table_id, "columnId": spec.source_link.column_id}
            if spec.type in (ColumnType.CONTACT_LIST, ColumnType.MULTI_CONTACT_LIST):
                data["contactOptions"] = [link]
            else:
                data["options"] = [{"value": dict(link, objectType="CELL_LINK")}]
        return data

    @staticmethod
    def _column_from_api(data: Dict[str, Any]) -> Column:
        options = data.get("options") or []
        link = None
        plain_options = []
        for option in options:
            if isinstance(option, dict):
                value = option.get("value", {})
                link = ColumnLink(table_id=value.get("sheetId"), column_id=value.get("columnId"))
            else:
                plain_options.append(option)
        contact_options = data.get("contactOptions") or []
        if contact_options:
            first = contact_options[0]
            link = ColumnLink(table_id=first.get("sheetId"), column_id=first.get("columnId"))
        return Column(
            id=data["id"],
            title=data.get("title", ""),
            type=data.get("type", ColumnType.TEXT_NUMBER),
            index=data.get("index", 0),
            primary=data.get("primary", False),
            hidden=data.get("hidden", False),
            locked=data.get("locked", False),
            options=plain_options,
            source_link=link,
        )

    @staticmethod
    def _cell_to_api(column_id: int, value: Any) -> Dict[str, Any]:
        if isinstance(value, (Contact, MultiValue)):
            return {"columnId": column_id, "objectValue": value.to_dict()}
        return {"columnId": column_id, "value": value}

    @staticmethod
    def _cell_from_api(cell: Dict[str, Any]) -> Any:
        obj = cell.get("objectValue")
        if isinstance(obj, dict):
            kind = obj.get("objectType")
            if kind == "CONTACT":
                return Contact(name=obj.get("name"), email=obj.get("email"))
            if kind == "MULTI_CONTACT":
                return MultiValue(tuple(
                    Contact(name=v.get("name"), email=v.get("email")) for v in obj.get("values", [])
                ))
            if kind == "MULTI_PICKLIST":
                return MultiValue(tuple(obj.get("values", [])))
        if "value" in cell:
            return cell["value"]
        return cell.get("displayValue")

    def _row_from_api(self, data: Dict[str, Any]) -> Row:
        cells = {}
        for cell in data.get("cells", []):
            value = self._cell_from_api(cell)
            if value not in (None, ""):
                cells[cell["columnId"]] = value
        return Row(
            id=data["id"],
            row_number=data.get("rowNumber", 0),
            parent_id=data.get("parentId"),
            cells=cells,
        )

    def _table_from_api(self, data: Dict[str, Any]) -> Table:
        return Table(
            id=data["id"],
            name=data.get("name", ""),
            columns=[self._column_from_api(c) for c in data.get("columns", [])],
            rows=[self._row_from_api(r) for r in data.get("rows", [])],
            dependencies_enabled=data.get("dependenciesEnabled", False),
        )

    @staticmethod
    def _container_from_api(data: Dict[str, Any]) -> Container:
        return Container(id=data["id"], name=data.get("name", ""), permalink=data.get("permalink"))

    # Containers

    def get_container(self, container_id: int) -> Optional[Container]:
        body = self._request(
            "GET", f"/workspaces/{container_id}", f"Get workspace {container_id}", allow_missing=True
        )
        return self._container_from_api(body) if body else None

    def find_container(self, name: str) -> Optional[Container]:
        body = self._request("GET", "/workspaces", "List workspaces", params={"includeAll": "true"})
        for data in body.get("data", []):
            if data.get("name") == name:
                return self._container_from_api(data)
        return None

    def create_container(self, name: str) -> Container:
        body = self._request("POST", "/workspaces", f"Create workspace '{name}'", json={"name": name})
        container = self._container_from_api(self._result(body))
        logger.info(f"Created workspace '{name}' ({container.id})")
        return container

    def copy_container(self, source_id: int, name: str) -> Container:
        body = self._request(
            "POST",
            f"/workspaces/{source_id}/copy",
            f"Copy workspace {source_id}",
            params={"include": COPY_INCLUDE},
            json={"newName": name},
        )
        container = self._container_from_api(self._result(body))
        logger.info(f"Copied workspace {source_id} to '{name}' ({container.id})")
        return container

    # Tables

    def list_tables(self, container_id: int) -> List[Table]:
        body = self._request("GET", f"/workspaces/{container_id}", f"Get workspace {container_id}")
        return [Table(id=s["id"], name=s.get("name", "")) for s in body.get("sheets", [])]

    def get_table(self, table_id: int) -> Optional[Table]:
        body = self._request("GET", f"/sheets/{table_id}", f"Get sheet {table_id}", allow_missing=True)
        return self._table_from_api(body) if body else None

    def create_table(self, container_id: int, name: str, columns: List[ColumnSpec]) -> Table:
        titles = [c.title for c in columns]
        if len(titles) != len(set(titles)):
            raise ValueError(f"Duplicate column titles in sheet '{name}'")
        body = self._request(
            "POST",
            f"/workspaces/{container_id}/sheets",
            f"Create sheet '{name}'",
            json={"name": name, "columns": [self._column_to_api(c) for c in columns]},
        )
        table = self._table_from_api(self._result(body))
        logger.info(f"Created sheet '{name}' ({table.id})")
        return table

    def rename_table(self, table_id: int, name: str) -> Table:
        body = self._request("PUT", f"/sheets/{table_id}", f"Rename sheet {table_id}", json={"name": name})
        return self._table_from_api(self._result(body))

    def enable_dependencies(self, table_id: int) -> None:
        self._request(
            "PUT",
            f"/sheets/{table_id}",
            f"Enable dependencies on sheet {table_id}",
            json={"dependenciesEnabled": True},
        )

    # Columns

    def add_column(self, table_id: int, spec: ColumnSpec, index: Optional[int] = None) -> Column:
        if index is None:
            table = self.get_table(table_id)
            index = len(table.columns) if table else 0
        body = self._request(
            "POST",
            f"/sheets/{table_id}/columns",
            f"Add column '{spec.title}'",
            json=[self._column_to_api(spec, index)],
        )
        result = self._result(body)
        data = result[0] if isinstance(result, list) else result
        return self._column_from_api(data)

    def update_column(self, table_id: int, column_id: int, spec: ColumnSpec) -> Column:
        data = self._column_to_api(spec)
        # Primary flag cannot be sent on update
        data.pop("primary", None)
        body = self._request(
            "PUT",
            f"/sheets/{table_id}/columns/{column_id}",
            f"Update column '{spec.title}'",
            json=data,
        )
        return self._column_from_api(self._result(body))

    # Rows

    def add_rows(self, table_id: int, rows: List[RowSpec]) -> List[Row]:
        if not rows:
            return []
        payload = []
        for spec in rows:
            data: Dict[str, Any] = {
                "toBottom": spec.placement.to_bottom,
                "cells": [
                    self._cell_to_api(column_id, value)
                    for column_id, value in spec.cells.items()
                    if value is not None
                ],
            }
            if spec.placement.parent_id is not None:
                data["parentId"] = spec.placement.parent_id
            payload.append(data)
        body = self._request("POST", f"/sheets/{table_id}/rows", f"Add {len(rows)} rows", json=payload)
        return [self._row_from_api(r) for r in self._result(body) or []]

    def update_rows(self, table_id: int, updates: List[RowUpdate]) -> List[Row]:
        if not updates:
            return []
        payload = [
            {
                "id": update.row_id,
                "cells": [
                    self._cell_to_api(column_id, "" if value is None else value)
                    for column_id, value in update.cells.items()
                ],
            }
            for update in updates
        ]
        body = self._request("PUT", f"/sheets/{table_id}/rows", f"Update {len(updates)} rows", json=payload)
        return [self._row_from_api(r) for r in self._result(body) or []]

    def delete_rows(self, table_id: int, row_ids: List[int]) -> int:
        deleted = 0
        for start in range(0, len(row_ids), self.batch_size):
            chunk = row_ids[start:start + self.batch_size]
            body = self._request(
                "DELETE",
                f"/sheets/{table_id}/rows",
                f"Delete {len(chunk)} rows",
                params={"ids": ",".join(str(i) for i in chunk), "ignoreRowsNotFound": "true"},
            )
            deleted += len(self._result(body) or [])
        return deleted

    def test_connection(self) -> bool:
        """Test that the API token is accepted."""
        try:
            self._request("GET", "/users/me", "Test connection")
            return True
        except ConnectivityError as e:
            logger.error(f"Smartsheet connection test failed: {e}")
            return False
