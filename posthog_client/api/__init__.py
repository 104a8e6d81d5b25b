"""PostHog HTTP API layer.

Exports:
- PostHogApiClient: httpx-based client for /batch, /decide and local flag definitions.
"""

from .client import USER_AGENT, PostHogApiClient

__all__ = [
    "PostHogApiClient",
    "USER_AGENT",
]
