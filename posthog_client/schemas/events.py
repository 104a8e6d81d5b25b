"""Capture event DTOs for the ``/batch`` ingestion endpoint."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import Field

from .base import BaseSchema


class CaptureEvent(BaseSchema):
    """A single analytics event as accepted by PostHog ingestion.

    Examples:
        {
            'uuid': '6f1c2a0e-...',
            'timestamp': '2024-05-01T12:00:00.000000+00:00',
            'distinct_id': 'user-123',
            'event': 'signed_up',
            'properties': {'$lib': 'unofficial-posthog-client', 'plan': 'pro'}
        }
    """

    uuid: str = Field(
        ...,
        description="Unique event id. PostHog uses it to deduplicate events server side.",
    )
    timestamp: str = Field(
        ...,
        description="ISO-8601 timestamp of when the event happened.",
    )
    distinct_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the person (or group) the event belongs to.",
        examples=["user-123"],
    )
    event: str = Field(
        ...,
        min_length=1,
        description="Event name. Names starting with '$' have special meaning.",
        examples=["signed_up", "$identify"],
    )
    properties: Dict[str, Any] = Field(
        default_factory=dict,
        description="JSON object of event properties, merged with client defaults.",
    )


class BatchRequest(BaseSchema):
    """Body of ``POST /batch``."""

    api_key: str = Field(..., min_length=1, description="Project API key.")
    batch: List[CaptureEvent] = Field(default_factory=list, description="Events to ingest.")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
