"""Event and property names with special meaning in PostHog."""

from __future__ import annotations

from typing import Optional

IDENTIFY = "$identify"
CREATE_ALIAS = "$create_alias"
SET = "$set"
SET_ONCE = "$set_once"
UNSET = "$unset"
PROCESS_PERSON_PROFILE = "$process_person_profile"

GROUP = "$group"
GROUPS = "$groups"
GROUP_IDENTIFY = "$groupidentify"
GROUP_TYPE = "$group_type"
GROUP_KEY = "$groupkey"
GROUP_SET = "$group_set"

LIB = "$lib"
LIB_VERSION = "$lib_version"
GEOIP_DISABLE = "$geoip_disable"

# Usually autocaptured by the browser/mobile SDKs, see
# https://posthog.com/docs/product-analytics/autocapture
AUTO_CAPTURE = "$autocapture"
PAGE_VIEW = "$pageview"
PAGE_LEAVE = "$pageleave"
RAGE_CLICK = "$rageclick"
SCREEN = "$screen"

# Feature flags
FEATURE_FLAG_CALLED = "$feature_flag_called"
FEATURE_FLAG = "$feature_flag"
FEATURE_FLAG_RESPONSE = "$feature_flag_response"
FEATURE_FLAG_ERRORED = "$feature_flag_errored"

# Exceptions
EXCEPTION = "$exception"
EXCEPTION_TYPE = "$exception_type"
EXCEPTION_MESSAGE = "$exception_message"
EXCEPTION_LIST = "$exception_list"
EXCEPTION_PERSON_URL = "$exception_personURL"


def require_non_empty(name: str, value: Optional[str]) -> str:
    """Return ``value`` unchanged, or raise ``ValueError`` if it is None or empty."""
    if value is None or value == "":
        raise ValueError(f"{name} may not be null or empty")
    return value
