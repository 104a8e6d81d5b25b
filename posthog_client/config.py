"""
Configuration Settings.

This module defines the client configuration using Pydantic's BaseSettings.
Values are read from keyword arguments first, then environment variables and
a ``.env`` file, so the same model backs both programmatic setup and
twelve-factor style deployments.
"""

from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINT = "https://app.posthog.com"


class PostHogSettings(BaseSettings):
    """
    Client settings model.

    Environment variables use the ``POSTHOG_`` aliases below; Python code can
    pass either the alias or the field name (``PostHogSettings(project_api_key="phc_...")``).
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # API
    # =====================================================================
    project_api_key: str = Field(
        ...,
        min_length=1,
        description="Project API key used to ingest events and call /decide",
        alias="POSTHOG_PROJECT_API_KEY",
    )
    endpoint: str = Field(
        default=DEFAULT_ENDPOINT,
        min_length=1,
        description="PostHog instance base URL (e.g. https://us.i.posthog.com)",
        alias="POSTHOG_HOST",
    )
    personal_api_key: Optional[str] = Field(
        default=None,
        description="Personal API key; enables local feature flag evaluation when set",
        alias="POSTHOG_PERSONAL_API_KEY",
    )

    # =====================================================================
    # Events
    # =====================================================================
    flush_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Maximum time an event waits in the queue before being sent",
        alias="POSTHOG_FLUSH_INTERVAL_SECONDS",
    )
    max_batch_size: int = Field(
        default=250,
        gt=0,
        description="Maximum number of events per /batch request; reaching it triggers a flush",
        alias="POSTHOG_MAX_BATCH_SIZE",
    )
    default_event_properties: Dict[str, Any] = Field(
        default_factory=dict,
        description="Properties added to every captured event (JSON object when read from env)",
        alias="POSTHOG_DEFAULT_EVENT_PROPERTIES",
    )
    event_batch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout for /batch calls",
        alias="POSTHOG_EVENT_BATCH_TIMEOUT_SECONDS",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for /batch calls failing with transport errors, 429 or 5xx",
        alias="POSTHOG_MAX_RETRIES",
    )
    backoff_initial_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Delay before the first /batch retry",
        alias="POSTHOG_BACKOFF_INITIAL_SECONDS",
    )
    backoff_factor: float = Field(
        default=2.0,
        ge=1,
        description="Multiplier applied to the delay after each retry",
        alias="POSTHOG_BACKOFF_FACTOR",
    )
    backoff_max_seconds: float = Field(
        default=8.0,
        gt=0,
        description="Upper bound for a single retry delay",
        alias="POSTHOG_BACKOFF_MAX_SECONDS",
    )

    # =====================================================================
    # Feature flags
    # =====================================================================
    allow_remote_feature_flag_evaluation: bool = Field(
        default=True,
        description="Fall back to /decide when a flag cannot be evaluated locally",
        alias="POSTHOG_ALLOW_REMOTE_FEATURE_FLAG_EVALUATION",
    )
    send_feature_flag_events: bool = Field(
        default=False,
        description="Capture $feature_flag_called events on flag lookups",
        alias="POSTHOG_SEND_FEATURE_FLAG_EVENTS",
    )
    feature_flags_polling_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How often local flag definitions are reloaded",
        alias="POSTHOG_FEATURE_FLAGS_POLLING_INTERVAL_SECONDS",
    )
    feature_flags_request_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Request timeout for /decide and local evaluation calls",
        alias="POSTHOG_FEATURE_FLAGS_REQUEST_TIMEOUT_SECONDS",
    )

    # =====================================================================
    # Logging
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Level used by setup_logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="POSTHOG_LOG_LEVEL",
    )

    @field_validator("endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def local_evaluation_enabled(self) -> bool:
        """Local evaluation is always on when a personal API key is configured."""
        return bool(self.personal_api_key)

    @classmethod
    def from_options(cls, project_api_key: str, **options: Any) -> "PostHogSettings":
        """
        Build settings from keyword options, rejecting names that are not settings.

        Only keyword options are checked; unknown ``.env`` entries are still ignored.

        Raises:
            ValueError: If an option matches neither a field name nor its alias.
        """
        known = set(cls.model_fields)
        known.update(f.alias for f in cls.model_fields.values() if f.alias)
        # pydantic-settings init options such as ``_env_file``
        unknown = sorted(name for name in options if name not in known and not name.startswith("_"))
        if unknown:
            raise ValueError(f"Unknown PostHog settings: {', '.join(unknown)}")
        return cls(project_api_key=project_api_key, **options)
