"""Engine settings read from the Lambda environment."""

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class EngineSettings:
    """Tunable constants of the attribution and proactive engines."""

    # Attribution scoring window and candidate pre-filter (independent)
    temporal_window_minutes: float = 30.0
    candidate_lookback_days: float = 7.0
    candidate_lookahead_days: float = 1.0

    # Proactive confidence gates
    custom_time_confidence_gate: float = 0.3
    default_confidence_gate: float = 0.7

    poll_interval_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            temporal_window_minutes=_env_float(
                "ATTRIBUTION_TEMPORAL_WINDOW_MINUTES", defaults.temporal_window_minutes
            ),
            candidate_lookback_days=_env_float(
                "ATTRIBUTION_LOOKBACK_DAYS", defaults.candidate_lookback_days
            ),
            candidate_lookahead_days=_env_float(
                "ATTRIBUTION_LOOKAHEAD_DAYS", defaults.candidate_lookahead_days
            ),
            custom_time_confidence_gate=_env_float(
                "PROACTIVE_CUSTOM_TIME_CONFIDENCE_GATE", defaults.custom_time_confidence_gate
            ),
            default_confidence_gate=_env_float(
                "PROACTIVE_DEFAULT_CONFIDENCE_GATE", defaults.default_confidence_gate
            ),
            poll_interval_seconds=_env_float(
                "PROACTIVE_POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds
            ),
        )
