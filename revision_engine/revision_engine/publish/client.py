"""HTTP client for the revision server's project API."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from revision_engine.errors import RevisionConflictError, ServerRejectedError, TransportError
from revision_engine.publish.models import (
    ARCHIVE_MEDIA_TYPE,
    DIGEST_HEADER,
    ActiveProjectRecord,
    RevisionRecord,
)

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    detail = response.text
    try:
        body = response.json()
    except ValueError:
        return detail
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return detail


class RevisionClient:
    """Synchronous client for publishing and querying project revisions.

    Parameters
    ----------
    endpoint:
        Base URL of the revision server, e.g. ``http://127.0.0.1:65432``.
    timeout:
        Per-request timeout in seconds.
    http_client:
        Pre-configured ``httpx.Client`` to use instead of creating one.  Its
        ``base_url`` is used and the caller keeps ownership of it.
    """

    def __init__(
        self,
        endpoint: str = "http://127.0.0.1:65432",
        *,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(base_url=self.endpoint, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> RevisionClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise TransportError(f"Cannot reach revision server at {self.endpoint}: {exc}") from exc

        if response.status_code == 409:
            raise RevisionConflictError(409, _error_detail(response))
        if response.is_error:
            raise ServerRejectedError(response.status_code, _error_detail(response))
        return response

    def put_project_revision(
        self,
        project_name: str,
        revision: str,
        archive: Path | bytes,
        schedule_from: datetime | None = None,
    ) -> tuple[RevisionRecord, bool]:
        """Upload *archive* as *revision* of *project_name*.

        Returns
        -------
        tuple[RevisionRecord, bool]
            The server's record and whether the revision was newly created
            (``False`` when an identical revision already existed).

        Raises
        ------
        TransportError
            If the server cannot be reached.
        RevisionConflictError
            If the revision name is already bound to different content.
        ServerRejectedError
            For any other error status.
        """
        data = archive.read_bytes() if isinstance(archive, Path) else archive
        params = {"schedule_from": schedule_from.isoformat()} if schedule_from is not None else None
        headers = {
            "Content-Type": ARCHIVE_MEDIA_TYPE,
            DIGEST_HEADER: hashlib.sha256(data).hexdigest(),
        }
        logger.debug("PUT revision %s of '%s' (%d bytes) to %s", revision, project_name, len(data), self.endpoint)
        response = self._request(
            "PUT",
            f"/api/projects/{quote(project_name, safe='')}/revisions/{quote(revision, safe='')}",
            content=data,
            headers=headers,
            params=params,
        )
        return RevisionRecord.model_validate(response.json()), response.status_code == 201

    def list_revisions(self, project_name: str) -> list[RevisionRecord]:
        response = self._request("GET", f"/api/projects/{quote(project_name, safe='')}/revisions")
        return [RevisionRecord.model_validate(item) for item in response.json()]

    def get_active_project(self) -> list[ActiveProjectRecord]:
        """Return the revisions currently active on the server."""
        response = self._request("GET", "/api/projects/active")
        return [ActiveProjectRecord.model_validate(item) for item in response.json()]

    def download_archive(self, project_name: str, revision: str) -> bytes:
        response = self._request(
            "GET",
            f"/api/projects/{quote(project_name, safe='')}/revisions/{quote(revision, safe='')}/archive",
        )
        return response.content
