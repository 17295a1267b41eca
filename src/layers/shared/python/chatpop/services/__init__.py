"""Service classes for business logic."""

from chatpop.services.attribution_resolver import AttributionResolver
from chatpop.services.attribution_scorer import (
    confidence_bucket,
    derive_attribution_type,
    score_candidate,
)
from chatpop.services.proactive_session import ProactiveSessionRuntime
from chatpop.services.reporting import ReportingService
from chatpop.services.suggestion_dispatcher import SuggestionDispatcher
from chatpop.services.ticker import PeriodicTicker
from chatpop.services.trigger_evaluator import (
    EvaluatorState,
    SessionState,
    TriggerEvaluator,
    TriggerFiring,
)

__all__ = [
    "AttributionResolver",
    "EvaluatorState",
    "PeriodicTicker",
    "ProactiveSessionRuntime",
    "ReportingService",
    "SessionState",
    "SuggestionDispatcher",
    "TriggerEvaluator",
    "TriggerFiring",
    "confidence_bucket",
    "derive_attribution_type",
    "score_candidate",
]
