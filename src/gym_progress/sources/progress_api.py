"""Cliente REST para el historial de progreso de un miembro."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import requests

from gym_progress.model import SubjectProgress
from gym_progress.sources.progress_json import decode_progress

logger = logging.getLogger(__name__)


class ProgressFetchError(RuntimeError):
    """Upstream progress request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProgressApiClient:
    """Fetches ``GET /api/members/<id>/progress`` and decodes the payload."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10,
        session: requests.Session | None = None,
    ) -> None:
        """Create a client.

        Args:
            base_url: Backend root, e.g. ``https://gym.example.com``.
            token: Bearer token of the logged-in user, if any.
            timeout: Per-request timeout in seconds.
            session: Optional session (tests inject a fake).
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._session = session or requests.Session()
        self._seq = itertools.count(1)
        self._latest_seq = 0

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_json(self, url: str) -> tuple[int, dict[str, Any]]:
        try:
            response = self._session.get(
                url, headers=self._headers(), timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise ProgressFetchError(f"Request to {url} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        message = body.get("message") if isinstance(body, dict) else None
        if not response.ok:
            raise ProgressFetchError(
                message or f"HTTP {response.status_code} from {url}",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise ProgressFetchError(
                f"Non-JSON response from {url}", status_code=response.status_code
            )
        if body.get("success") is False:
            raise ProgressFetchError(
                message or "Request was not successful",
                status_code=response.status_code,
            )
        return response.status_code, body

    def fetch_progress(self, member_id: str) -> SubjectProgress:
        """Fetch and decode all progress metrics of a member.

        Raises:
            ProgressFetchError: On transport errors, non-2xx responses or
                ``success: false`` bodies, and when ``progressMetrics`` is
                not an object.
        """
        url = f"{self._base_url}/api/members/{member_id}/progress"
        logger.info("Fetching progress for member %s", member_id)
        status_code, body = self._get_json(url)
        try:
            return decode_progress(body, member_id=member_id)
        except ValueError as exc:
            raise ProgressFetchError(
                f"Malformed progress payload from {url}: {exc}",
                status_code=status_code,
            ) from exc

    def fetch_latest(self, member_id: str) -> SubjectProgress | None:
        """Fetch progress, dropping the result if a newer request was issued.

        Returns None when another ``fetch_latest`` call started after this one,
        so a slow response for a previously selected member never overwrites
        the current selection.
        """
        seq = next(self._seq)
        self._latest_seq = seq
        progress = self.fetch_progress(member_id)
        if seq != self._latest_seq:
            logger.info("Dropping stale progress response for member %s", member_id)
            return None
        return progress
