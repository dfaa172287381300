"""Project Online OData (ProjectData) extractor."""

import logging
import re
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import BaseExtractor
from ..exceptions import (
    AuthorizationError,
    ConfigurationError,
    ConnectivityError,
    RateLimitError,
)
from ..services.resilience import ResiliencePolicy, NO_RETRY

logger = logging.getLogger(__name__)

GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_guid(value: str) -> bool:
    return bool(GUID_PATTERN.match(str(value or "")))


class ODataExtractor(BaseExtractor):
    """
    Extractor for the Project Online reporting feed.

    Pages through collections with @odata.nextLink (or the verbose
    __next) and unwraps both JSON light and verbose responses. A bearer
    token must be supplied; acquiring it is outside this class.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        policy: Optional[ResiliencePolicy] = None,
        timeout: float = 30.0,
        page_size: Optional[int] = None,
        session: Optional[requests.Session] = None,
        **kwargs,
    ):
        """
        Initialize the OData extractor.

        Args:
            base_url: PWA site URL, e.g. https://contoso.sharepoint.com/sites/pwa
            access_token: OAuth bearer token for the PWA site
            policy: Resilience policy
            timeout: Per-request timeout in seconds
            page_size: Optional $top per page
            session: Pre-configured session (tests)
        """
        super().__init__(**kwargs)
        if not base_url:
            raise ConfigurationError("Project Online URL is missing", actionable="Set PROJECT_ONLINE_URL")
        if not access_token:
            raise ConfigurationError(
                "Project Online access token is missing",
                actionable="Set PROJECT_ONLINE_ACCESS_TOKEN",
            )
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.policy = policy or NO_RETRY
        self.timeout = timeout
        self.page_size = page_size
        self._session = session or self._create_session()

    @property
    def feed_url(self) -> str:
        if self.base_url.endswith("/_api/ProjectData"):
            return self.base_url
        return f"{self.base_url}/_api/ProjectData"

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic."""
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {self.access_token}"
        session.headers["Accept"] = "application/json"

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

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        def send():
            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                raise ConnectivityError(f"GET {url}: {e}")

            status = response.status_code
            if status in (401, 403):
                raise AuthorizationError(
                    f"Project Online rejected the request (HTTP {status})",
                    actionable="Check PROJECT_ONLINE_ACCESS_TOKEN and the account's PWA permissions",
                    status_code=status,
                )
            if status == 429:
                retry_after = response.headers.get("Retry-After")
                raise RateLimitError(
                    "Project Online throttled the request",
                    retry_after=float(retry_after) if retry_after else None,
                )
            if status == 404:
                raise ConfigurationError(f"Project Online resource not found: {url}")
            if status >= 500:
                raise ConnectivityError(f"Project Online error (HTTP {status})", status_code=status)
            if status >= 400:
                raise ConnectivityError(
                    f"Project Online request failed (HTTP {status}): {response.text[:200]}",
                    retryable=False,
                    status_code=status,
                )
            return response.json()

        return self.policy.call(send, description=f"GET {url}")

    @staticmethod
    def _unwrap_entity(body: Dict[str, Any]) -> Dict[str, Any]:
        if "d" in body and isinstance(body["d"], dict):
            return body["d"]
        return body

    def _get_collection(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch every page of a collection."""
        url: Optional[str] = f"{self.feed_url}{path}"
        params = dict(params or {})
        if self.page_size:
            params["$top"] = self.page_size
        items: List[Dict[str, Any]] = []

        while url:
            body = self._get(url, params=params)
            params = None  # nextLink already carries the query
            if "d" in body:
                data = body["d"]
                page = data.get("results", []) if isinstance(data, dict) else data
                url = data.get("__next") if isinstance(data, dict) else None
            else:
                page = body.get("value", [])
                url = body.get("@odata.nextLink") or body.get("odata.nextLink")
            items.extend(page)
            if url and not url.startswith("http"):
                url = f"{self.feed_url}/{url.lstrip('/')}"

        return items

    def fetch_raw(self, source_ref: str) -> Dict[str, Any]:
        """
        Fetch a project with its tasks, resources and assignments.

        Args:
            source_ref: Project GUID

        Returns:
            Raw records
        """
        if not is_guid(source_ref):
            raise ConfigurationError(
                f"Invalid project id {source_ref!r}",
                actionable="Pass the project GUID, e.g. 12345678-1234-1234-1234-123456789abc",
            )
        logger.info(f"Extracting project {source_ref} from {self.base_url}")
        project_filter = {"$filter": f"ProjectId eq guid'{source_ref}'"}

        project = self._unwrap_entity(self._get(f"{self.feed_url}/Projects(guid'{source_ref}')"))
        tasks = self._get_collection("/Tasks", project_filter)
        assignments = self._get_collection("/Assignments", project_filter)
        resources = self._get_collection("/Resources")

        logger.debug(
            f"Fetched {len(tasks)} tasks, {len(resources)} resources, {len(assignments)} assignments"
        )
        return {
            "project": project,
            "tasks": tasks,
            "resources": resources,
            "assignments": assignments,
        }

    def test_connection(self) -> bool:
        """Test connection by fetching a single project."""
        try:
            self._get(f"{self.feed_url}/Projects", params={"$top": 1})
            return True
        except (ConnectivityError, ConfigurationError) as e:
            logger.error(f"Project Online connection test failed: {e}")
            return False
