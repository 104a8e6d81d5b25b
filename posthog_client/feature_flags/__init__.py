from .context import FeatureFlagContext
from .evaluator import evaluate_feature_flag, match_property
from .state import FeatureFlagState, FeatureFlagStates

__all__ = [
    "FeatureFlagContext",
    "FeatureFlagState",
    "FeatureFlagStates",
    "evaluate_feature_flag",
    "match_property",
]
