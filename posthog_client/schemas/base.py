"""Pydantic base schema shared by the PostHog wire models.

PostHog speaks snake_case JSON on most endpoints, so no alias generator is
applied; the few camelCase fields declare explicit aliases.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Shared base for all Pydantic models in posthog_client.

    - Ignores unknown fields so server-side additions never break parsing
    - Enables populate_by_name so aliased fields accept either spelling
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )
