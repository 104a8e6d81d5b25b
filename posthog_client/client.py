"""PostHog client implementation.

``PostHogClient`` queues events and sends them to ``/batch`` from a background
thread, evaluates feature flags locally when a personal API key is configured,
and falls back to ``/decide`` for anything local evaluation cannot decide.

Usage:
    client = PostHogClient.create("phc_...", personal_api_key="phx_...")
    client.capture("user-123", "signed_up", {"plan": "pro"})
    if client.is_feature_enabled("new-dashboard", "user-123"):
        ...
    client.shutdown(timeout=5)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple
from uuid import uuid4

import httpx

from . import names
from ._version import LIBRARY_NAME, __version__
from .api import PostHogApiClient
from .base import BaseClient
from .config import PostHogSettings
from .errors import LocalEvaluationNotEnabledError, PostHogApiError
from .event_queue import EventQueue
from .exception_capture import build_exception_list, exception_message
from .feature_flags import FeatureFlagContext, FeatureFlagState, FeatureFlagStates, evaluate_feature_flag
from .schemas import CaptureEvent, DecideRequest, DecideResponse, Flag
from .serialization import JsonDefault, to_json_object
from .timer import PeriodicTask

logger = logging.getLogger(__name__)

# Upper bound for the $feature_flag_called dedupe cache before it is reset.
MAX_RECENT_FLAG_CALLS = 50_000


@dataclass(frozen=True)
class _FlagDefinitions:
    """Snapshot of the last successful local evaluation response."""

    flags: Dict[str, Flag] = field(default_factory=dict)
    group_type_mapping: Dict[str, str] = field(default_factory=dict)
    cohorts: Dict[str, Any] = field(default_factory=dict)


class PostHogClient(BaseClient):
    """PostHog client backed by a background event queue and flag poller."""

    def __init__(
        self,
        settings: PostHogSettings,
        *,
        http_client: Optional[httpx.Client] = None,
        json_default: Optional[JsonDefault] = None,
    ) -> None:
        """
        Initialize the client and start its background threads.

        Args:
            settings: Client configuration.
            http_client: Optional httpx client to send requests with (tests, proxies,
                custom transports). It is not closed on shutdown.
            json_default: Serializer for property values pydantic-core cannot handle.

        Raises:
            ValueError: If no personal API key is set and remote evaluation is disabled,
                since flags could then never be evaluated.
        """
        if not settings.local_evaluation_enabled and not settings.allow_remote_feature_flag_evaluation:
            raise ValueError("Personal API key is required when remote feature flag evaluation is disabled")

        self.settings = settings
        self._json_default = json_default
        self._api = PostHogApiClient(
            settings.endpoint,
            settings.project_api_key,
            personal_api_key=settings.personal_api_key,
            timeout=settings.event_batch_timeout_seconds,
            client=http_client,
        )

        self._default_properties = to_json_object(
            settings.default_event_properties, json_default, what="Default event properties"
        )
        self._default_properties[names.LIB] = LIBRARY_NAME
        self._default_properties[names.LIB_VERSION] = __version__

        self._flag_definitions: Optional[_FlagDefinitions] = None  # None until the first load
        self._flags_loaded = threading.Event()
        self._recent_flag_calls: Set[Tuple[str, str]] = set()
        self._recent_flag_calls_lock = threading.Lock()

        self._queue: EventQueue[CaptureEvent] = EventQueue(
            self._send_event_batch,
            settings.flush_interval_seconds,
            settings.max_batch_size,
        )
        self._poller: Optional[PeriodicTask] = None
        if settings.local_evaluation_enabled:
            self._poller = PeriodicTask(
                self._load_feature_flags,
                settings.feature_flags_polling_interval_seconds,
                name="posthog-feature-flag-poller",
            )
        logger.debug(
            "PostHogClient started: endpoint=%s local_evaluation=%s",
            settings.endpoint,
            settings.local_evaluation_enabled,
        )

    @classmethod
    def create(
        cls,
        project_api_key: str,
        *,
        http_client: Optional[httpx.Client] = None,
        json_default: Optional[JsonDefault] = None,
        **options: Any,
    ) -> "PostHogClient":
        """Create a client from keyword options named like the `PostHogSettings` fields."""
        settings = PostHogSettings.from_options(project_api_key, **options)
        return cls(settings, http_client=http_client, json_default=json_default)

    @classmethod
    def from_env(
        cls,
        *,
        http_client: Optional[httpx.Client] = None,
        json_default: Optional[JsonDefault] = None,
    ) -> "PostHogClient":
        """Create a client from ``POSTHOG_*`` environment variables (and ``.env``)."""
        settings = PostHogSettings()  # type: ignore[call-arg]
        return cls(settings, http_client=http_client, json_default=json_default)

    # =====================================================================
    # Lifecycle
    # =====================================================================

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self._queue.close(timeout)
        if self._poller is not None:
            self._poller.close()
        self._api.close()
        logger.debug("PostHogClient shut down")

    def flush(self) -> None:
        self._queue.flush()

    # =====================================================================
    # Events
    # =====================================================================

    def capture(
        self,
        distinct_id: str,
        event: str,
        properties: Any = None,
        *,
        timestamp: Optional[Any] = None,
        uuid: Optional[str] = None,
    ) -> None:
        distinct_id = names.require_non_empty("distinct_id", distinct_id)
        event = names.require_non_empty("event", event)

        event_properties = dict(self._default_properties)
        if properties is not None:
            event_properties.update(to_json_object(properties, self._json_default, what="Event properties"))

        # The uuid is used by PostHog to deduplicate events, so it must be unique.
        capture_event = CaptureEvent(
            uuid=uuid or str(uuid4()),
            timestamp=_format_timestamp(timestamp),
            distinct_id=distinct_id,
            event=event,
            properties=event_properties,
        )
        logger.debug("Queueing event %s for %s", event, distinct_id)
        self._queue.enqueue(capture_event)

    def _send_event_batch(self, batch: List[CaptureEvent]) -> None:
        """Send one batch, retrying transport errors, 429 and 5xx with exponential backoff.

        Never raises: the queue thread has to keep running whatever happens here.
        """
        settings = self.settings
        retries = 0
        while True:
            try:
                self._api.send_batch(batch, timeout=settings.event_batch_timeout_seconds)
                logger.debug("Sent batch of %d events", len(batch))
                return
            except (httpx.TransportError, PostHogApiError) as e:
                retryable = isinstance(e, httpx.TransportError) or (
                    isinstance(e, PostHogApiError) and e.retryable
                )
                if retryable and retries < settings.max_retries:
                    sleep_s = min(
                        settings.backoff_initial_seconds * (settings.backoff_factor**retries),
                        settings.backoff_max_seconds,
                    )
                    logger.info(
                        "/batch request failed (%s); retrying in %ss (attempt %s/%s)",
                        e,
                        sleep_s,
                        retries + 1,
                        settings.max_retries,
                    )
                    time.sleep(sleep_s)
                    retries += 1
                    continue

                if isinstance(e, httpx.TimeoutException):
                    logger.warning("timed out making /batch request; dropped %d events", len(batch))
                else:
                    logger.error("failed to make /batch request; dropped %d events: %s", len(batch), e)
                return
            except Exception:
                logger.exception("failed to make /batch request; dropped %d events", len(batch))
                return

    # =====================================================================
    # Feature flags
    # =====================================================================

    def get_feature_flag(
        self, key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None
    ) -> FeatureFlagState:
        key = names.require_non_empty("key", key)
        distinct_id = names.require_non_empty("distinct_id", distinct_id)
        context = context or FeatureFlagContext.EMPTY

        # Local evaluation always wins when the flag can be decided locally.
        result = FeatureFlagState.REMOTE_EVAL_NOT_ALLOWED
        definitions = self._flag_definitions
        if definitions is not None:
            flag = definitions.flags.get(key)
            if flag is not None:
                result = self._evaluate_locally(flag, distinct_id, context, definitions)

        if self._allow_remote(context) and result.is_inconclusive:
            response = self._decide(distinct_id, context)
            result = FeatureFlagState.from_decide(response.feature_flags, response.feature_flag_payloads, key)

        send_called_event = (
            context.send_feature_flag_events
            if context.send_feature_flag_events is not None
            else self.settings.send_feature_flag_events
        )
        if send_called_event and self._track_feature_flag_call(distinct_id, key):
            self.capture(
                distinct_id,
                names.FEATURE_FLAG_CALLED,
                {
                    names.FEATURE_FLAG: key,
                    names.FEATURE_FLAG_RESPONSE: result.variant or ("true" if result.enabled else "false"),
                    names.FEATURE_FLAG_ERRORED: result.is_inconclusive,
                },
            )

        return result

    def get_all_feature_flags(
        self, distinct_id: str, context: Optional[FeatureFlagContext] = None
    ) -> FeatureFlagStates:
        distinct_id = names.require_non_empty("distinct_id", distinct_id)
        context = context or FeatureFlagContext.EMPTY
        allow_remote = self._allow_remote(context)

        definitions = self._flag_definitions
        needs_remote = definitions is None
        states: Dict[str, FeatureFlagState] = {}
        if definitions is not None:
            for flag in definitions.flags.values():
                state = self._evaluate_locally(flag, distinct_id, context, definitions)
                states[flag.key] = state
                # One undecidable flag means asking /decide for all of them.
                if allow_remote and state.is_inconclusive:
                    needs_remote = True
                    break

        if not allow_remote or not needs_remote:
            return FeatureFlagStates(states)

        response = self._decide(distinct_id, context)
        return FeatureFlagStates(
            {
                flag_key: FeatureFlagState.from_decide(response.feature_flags, response.feature_flag_payloads, flag_key)
                for flag_key in response.feature_flags
            }
        )

    def reload_feature_flags(self) -> None:
        if self._poller is None:
            raise LocalEvaluationNotEnabledError()
        self._poller.wakeup()

    def wait_for_feature_flags(self, timeout: Optional[float] = None) -> bool:
        """Block until local flag definitions have been loaded once.

        Returns:
            bool: True if definitions are available, False on timeout or when local
            evaluation is not enabled.
        """
        if self._poller is None:
            return False
        return self._flags_loaded.wait(timeout)

    def _allow_remote(self, context: FeatureFlagContext) -> bool:
        if context.allow_remote_evaluation is not None:
            return context.allow_remote_evaluation
        return self.settings.allow_remote_feature_flag_evaluation

    def _evaluate_locally(
        self,
        flag: Flag,
        distinct_id: str,
        context: FeatureFlagContext,
        definitions: _FlagDefinitions,
    ) -> FeatureFlagState:
        state = evaluate_feature_flag(
            flag,
            distinct_id,
            context,
            group_type_mapping=definitions.group_type_mapping,
            cohorts=definitions.cohorts,
            json_default=self._json_default,
        )
        if state.is_inconclusive:
            logger.debug("Flag %s is inconclusive for %s: %s", flag.key, distinct_id, state.inconclusive_reason)
        return state

    def _load_feature_flags(self) -> None:
        """Fetch local evaluation definitions; failures keep the previous definitions."""
        try:
            response = self._api.load_feature_flags(timeout=self.settings.feature_flags_request_timeout_seconds)
        except Exception as e:
            # The poller thread must keep running.
            if self._poller is not None and self._poller.closed:
                logger.debug("feature flag load interrupted by shutdown: %s", e)
            elif isinstance(e, httpx.TimeoutException):
                logger.warning("timed out making /api/feature_flag/local_evaluation request")
            elif isinstance(e, PostHogApiError):
                logger.error("%s: %s", e, e.details)
            else:
                logger.exception("failed to make /api/feature_flag/local_evaluation request")
            return

        self._flag_definitions = _FlagDefinitions(
            flags={flag.key: flag for flag in response.flags},
            group_type_mapping=dict(response.group_type_mapping or {}),
            cohorts=dict(response.cohorts),
        )
        self._flags_loaded.set()
        logger.debug("Loaded %d feature flag definitions", len(response.flags))

    def _decide(self, distinct_id: str, context: FeatureFlagContext) -> DecideResponse:
        """Call /decide. Network and API failures are logged and produce an empty response."""
        request = DecideRequest(
            api_key=self.settings.project_api_key,
            distinct_id=distinct_id,
            groups=self._optional_json_object(context.groups, "Groups"),
            person_properties=self._optional_json_object(context.person_properties, "Person properties"),
            group_properties=self._optional_json_object(context.group_properties, "Group properties"),
        )
        try:
            return self._api.decide(request, timeout=self.settings.feature_flags_request_timeout_seconds)
        except httpx.TimeoutException:
            logger.warning("timed out making /decide request")
        except PostHogApiError as e:
            logger.error("%s: %s", e, e.details)
        except Exception:
            logger.exception("failed to make /decide request")
        return DecideResponse()

    def _optional_json_object(self, value: Any, what: str) -> Optional[Dict[str, Any]]:
        if value is None:
            return None
        return to_json_object(value, self._json_default, what=what)

    def _track_feature_flag_call(self, distinct_id: str, key: str) -> bool:
        """Return True when this (distinct id, flag) pair has not been reported recently.

        The cache is simply reset once it grows too large, so a pair may be
        reported again after that.
        """
        cache_key = (distinct_id, key)
        with self._recent_flag_calls_lock:
            if len(self._recent_flag_calls) > MAX_RECENT_FLAG_CALLS:
                self._recent_flag_calls.clear()
            if cache_key in self._recent_flag_calls:
                return False
            self._recent_flag_calls.add(cache_key)
            return True

    # =====================================================================
    # Exceptions
    # =====================================================================

    def capture_exception(
        self,
        exc: BaseException,
        distinct_id: Optional[str] = None,
        properties: Any = None,
    ) -> None:
        # Must never raise into the caller's own error handling.
        try:
            event_properties: Dict[str, Any] = {}
            if properties is not None:
                event_properties = to_json_object(properties, self._json_default, what="Exception properties")

            if distinct_id is None:
                event_properties[names.PROCESS_PERSON_PROFILE] = False
                distinct_id = str(uuid4())
            event_properties[names.GEOIP_DISABLE] = True

            event_properties[names.EXCEPTION_TYPE] = type(exc).__name__
            event_properties[names.EXCEPTION_MESSAGE] = exception_message(exc)
            event_properties[names.EXCEPTION_LIST] = build_exception_list(exc)
            event_properties[names.EXCEPTION_PERSON_URL] = (
                f"{self.settings.endpoint}/project/{self.settings.project_api_key}/person/{distinct_id}"
            )

            self.capture(distinct_id, names.EXCEPTION, event_properties)
        except Exception:
            logger.exception("failed to capture exception")


def _format_timestamp(timestamp: Optional[Any]) -> str:
    if timestamp is None:
        return datetime.now(timezone.utc).isoformat()
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.isoformat()
    return str(timestamp)

