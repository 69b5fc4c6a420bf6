"""
WaniKani API v2 client.

Only the endpoints a review session needs: the user, assignments, subjects,
study materials, and review submission. Collection endpoints are paginated
and every page is accumulated into one list.
"""

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import requests

from .errors import AuthError, FetchError, ReportingError

logger = logging.getLogger(__name__)

API_URL: str = os.environ.get("WANIKANI_API_URL", "https://api.wanikani.com/v2")
API_REVISION = "20170710"
REQUEST_TIMEOUT = float(os.environ.get("WK_REVIEW_TIMEOUT", "30"))
SUBJECT_BATCH_SIZE = 200


class WaniKaniClient:
    """Thin wrapper around a requests.Session carrying the API token."""

    def __init__(self, token: str, base_url: str = API_URL,
                 session: Optional[requests.Session] = None,
                 timeout: float = REQUEST_TIMEOUT) -> None:
        if not token:
            raise AuthError("An API token is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update({
            "Authorization": f"Bearer {token}",
            "Wanikani-Revision": API_REVISION,
        })

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    def _get(self, path_or_url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(path_or_url)
        try:
            response = self.http.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request to {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(f"API token rejected ({response.status_code})")
        if not response.ok:
            raise FetchError(f"API request failed: {response.status_code} {url}")
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {url}") from e

    def _collection(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Follow pages.next_url until exhausted, concatenating each page's data."""
        records: List[Dict[str, Any]] = []
        body = self._get(path, params)
        while True:
            records.extend(body.get("data") or [])
            next_url = (body.get("pages") or {}).get("next_url")
            if not next_url:
                return records
            logger.debug("Fetching next page %s", next_url)
            # next_url already carries the query string
            body = self._get(next_url)

    def fetch_user(self) -> Dict[str, Any]:
        return self._get("/user").get("data", {})

    def fetch_assignments(self) -> List[Dict[str, Any]]:
        return self._collection("/assignments", {"unlocked": "true", "hidden": "false"})

    def fetch_subjects(self, ids: Iterable[int], batch_size: int = SUBJECT_BATCH_SIZE) -> List[Dict[str, Any]]:
        """Fetch subjects by id, at most batch_size ids per request, one batch at a time."""
        unique_ids = sorted(set(ids))
        subjects: List[Dict[str, Any]] = []
        for start in range(0, len(unique_ids), batch_size):
            batch = unique_ids[start:start + batch_size]
            logger.debug("Fetching subjects batch of %d", len(batch))
            subjects.extend(self._collection("/subjects", {"ids": ",".join(str(i) for i in batch)}))
        return subjects

    def fetch_study_materials(self) -> List[Dict[str, Any]]:
        return self._collection("/study_materials")

    def submit_review(self, subject_id: int, meaning_incorrect: int, reading_incorrect: int) -> None:
        """POST a review result. Raises ReportingError on any failure."""
        payload = {
            "review": {
                "subject_id": subject_id,
                "incorrect_meaning_answers": meaning_incorrect,
                "incorrect_reading_answers": reading_incorrect,
            }
        }
        url = self._url("/reviews")
        try:
            response = self.http.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ReportingError(f"Submitting review for subject {subject_id} failed: {e}") from e
        if not response.ok:
            raise ReportingError(
                f"Submitting review for subject {subject_id} failed: {response.status_code}"
            )
