from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from posthog_client._version import LIBRARY_NAME, __version__
from posthog_client.errors import PostHogApiError
from posthog_client.schemas import BatchRequest, CaptureEvent, DecideRequest, DecideResponse, FeatureFlagsResponse

USER_AGENT = f"{LIBRARY_NAME}/{__version__}"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"


class PostHogApiClient:
    """
    Thin HTTP client for the PostHog public API.

    Responsibilities:
    - send_batch (event ingestion)
    - decide (remote feature flag evaluation)
    - load_feature_flags (flag definitions for local evaluation)

    Note: This client performs single requests only. Queueing, retries and
    error tolerance live in `PostHogClient`.
    """

    def __init__(
        self,
        endpoint: str,
        project_api_key: str,
        *,
        personal_api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.project_api_key = project_api_key
        self.personal_api_key = personal_api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    def _headers(self, *, json_body: bool = False) -> dict[str, str]:
        headers: dict[str, str] = {"User-Agent": USER_AGENT}
        if json_body:
            headers["Content-Type"] = JSON_CONTENT_TYPE
        return headers

    def send_batch(self, events: Sequence[CaptureEvent], *, timeout: Optional[float] = None) -> None:
        payload = BatchRequest(api_key=self.project_api_key, batch=list(events))
        self._logger.debug("PostHogApiClient.send_batch: POST %s/batch events=%d", self.endpoint, len(events))
        r = self._client.post(
            f"{self.endpoint}/batch",
            headers=self._headers(json_body=True),
            json=payload.to_body(),
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
        if r.status_code != 200:
            raise PostHogApiError(
                f"unexpected response from /batch ({r.status_code})",
                status_code=r.status_code,
                details=r.text,
            )

    def decide(self, request: DecideRequest, *, timeout: Optional[float] = None) -> DecideResponse:
        self._logger.debug("PostHogApiClient.decide: POST %s/decide?v=3 distinct_id=%s", self.endpoint, request.distinct_id)
        r = self._client.post(
            f"{self.endpoint}/decide",
            params={"v": "3"},
            headers=self._headers(json_body=True),
            json=request.to_body(),
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
        if r.status_code != 200:
            raise PostHogApiError(
                f"unexpected response from /decide ({r.status_code})",
                status_code=r.status_code,
                details=r.text,
            )
        data = r.json()
        if not isinstance(data, dict):
            raise PostHogApiError("Unexpected response shape from /decide", status_code=r.status_code, details=data)
        return DecideResponse.model_validate(data)

    def load_feature_flags(self, *, timeout: Optional[float] = None) -> FeatureFlagsResponse:
        if not self.personal_api_key:
            raise PostHogApiError("A personal API key is required to load feature flag definitions")
        headers = self._headers()
        headers["Authorization"] = f"Bearer {self.personal_api_key}"
        self._logger.debug("PostHogApiClient.load_feature_flags: GET %s/api/feature_flag/local_evaluation", self.endpoint)
        r = self._client.get(
            f"{self.endpoint}/api/feature_flag/local_evaluation",
            headers=headers,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
        if r.status_code != 200:
            raise PostHogApiError(
                f"unexpected response from /api/feature_flag/local_evaluation ({r.status_code})",
                status_code=r.status_code,
                details=r.text,
            )
        data: Dict[str, Any] = r.json()
        response = FeatureFlagsResponse.model_validate(data)
        self._logger.debug("PostHogApiClient.load_feature_flags: got %d flags", len(response.flags))
        return response

    def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            self._client.close()
