"""Proactive trigger definitions and per-agent proactive configuration.

Trigger definitions are a tagged union keyed by ``trigger_type``. Each
variant owns exactly the parameters it needs; a definition carrying a
parameter that belongs to another variant is rejected at validation time.

Custom triggers are authored by the tenant. Implicit triggers are the
built-in heuristics (pricing concern, feature exploration, high engagement)
whose thresholds and messages the tenant can edit.

DynamoDB keys (ProactiveConfig):
    PK: AGENT#{agent_id}
    SK: PROACTIVE_CONFIG
"""

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from chatpop.models.base import BaseModel
from chatpop.utils.exceptions import ConfigurationError

CUSTOM_TRIGGER_CONFIDENCE = 1.0

# Baseline confidence of each implicit heuristic
IMPLICIT_TRIGGER_CONFIDENCE = {
    "pricing_concern": 0.85,
    "high_engagement": 0.8,
    "feature_exploration": 0.75,
}
DEFAULT_IMPLICIT_CONFIDENCE = 0.75

DEFAULT_ELEMENT_DWELL_SECONDS = 5.0


class TriggerType(str, Enum):
    """Trigger variants."""

    TIME_BASED = "time_based"
    SCROLL_BASED = "scroll_based"
    ELEMENT_INTERACTION = "element_interaction"
    PAGE_VIEWS = "page_views"


class TriggerSource(str, Enum):
    """Who authored a trigger definition."""

    CUSTOM = "custom"
    IMPLICIT = "implicit"


# Parameter keys (including stored-JSON aliases) each variant may carry
_VARIANT_PARAMETERS: dict[str, frozenset[str]] = {
    TriggerType.TIME_BASED.value: frozenset({"time_threshold_seconds", "time_threshold"}),
    TriggerType.SCROLL_BASED.value: frozenset({"scroll_depth_percent", "scroll_depth"}),
    TriggerType.ELEMENT_INTERACTION.value: frozenset(
        {"element_selector", "time_threshold_seconds", "time_threshold"}
    ),
    TriggerType.PAGE_VIEWS.value: frozenset({"page_views_threshold", "page_threshold"}),
}
_ALL_PARAMETERS = frozenset().union(*_VARIANT_PARAMETERS.values())


class BaseTriggerDefinition(PydanticBaseModel):
    """Fields shared by every trigger variant."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, frozen=True)

    variant: ClassVar[TriggerType]

    id: str = Field(..., min_length=1)
    name: str = ""
    source: TriggerSource = TriggerSource.CUSTOM
    enabled: bool = True
    url_patterns: list[str] = Field(default_factory=list)
    message: str = Field(..., min_length=1)
    suggestion_type: str | None = None

    @model_validator(mode="before")
    @classmethod
    def reject_foreign_parameters(cls, data: Any) -> Any:
        """Drop null parameters and reject parameters owned by other variants."""
        if not isinstance(data, dict):
            return data

        data = {
            key: value
            for key, value in data.items()
            if not (key in _ALL_PARAMETERS and value is None)
        }
        owned = _VARIANT_PARAMETERS[cls.variant.value]
        foreign = sorted(key for key in data if key in _ALL_PARAMETERS and key not in owned)
        if foreign:
            raise ValueError(
                f"{cls.variant.value} trigger cannot carry parameters: {', '.join(foreign)}"
            )
        return data

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        """Messages must contain visible text."""
        v = v.strip()
        if not v:
            raise ValueError("message cannot be blank")
        return v

    @field_validator("url_patterns")
    @classmethod
    def clean_url_patterns(cls, v: list[str]) -> list[str]:
        """Strip patterns and drop empty ones."""
        return [pattern.strip() for pattern in v if pattern and pattern.strip()]

    @property
    def confidence(self) -> float:
        """Fixed confidence of this definition."""
        if self.source == TriggerSource.CUSTOM:
            return CUSTOM_TRIGGER_CONFIDENCE
        return IMPLICIT_TRIGGER_CONFIDENCE.get(self.id, DEFAULT_IMPLICIT_CONFIDENCE)

    @property
    def threshold(self) -> float:
        """Threshold the observed measure is compared against."""
        raise NotImplementedError

    @property
    def label(self) -> str:
        """Suggestion type recorded when this definition fires."""
        if self.suggestion_type:
            return self.suggestion_type
        if self.source == TriggerSource.IMPLICIT:
            return self.id
        return self.variant.value


class TimeBasedTrigger(BaseTriggerDefinition):
    """Fires once the visitor has spent long enough in the session."""

    variant: ClassVar[TriggerType] = TriggerType.TIME_BASED

    trigger_type: Literal["time_based"] = "time_based"
    time_threshold_seconds: float = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("time_threshold_seconds", "time_threshold"),
    )

    @property
    def threshold(self) -> float:
        return self.time_threshold_seconds


class ScrollBasedTrigger(BaseTriggerDefinition):
    """Fires once the visitor has scrolled deep enough."""

    variant: ClassVar[TriggerType] = TriggerType.SCROLL_BASED

    trigger_type: Literal["scroll_based"] = "scroll_based"
    scroll_depth_percent: float = Field(
        ...,
        gt=0,
        le=100,
        validation_alias=AliasChoices("scroll_depth_percent", "scroll_depth"),
    )

    @property
    def threshold(self) -> float:
        return self.scroll_depth_percent


class ElementInteractionTrigger(BaseTriggerDefinition):
    """Fires once a page element has been visible for long enough."""

    variant: ClassVar[TriggerType] = TriggerType.ELEMENT_INTERACTION

    trigger_type: Literal["element_interaction"] = "element_interaction"
    element_selector: str = Field(..., min_length=1)
    time_threshold_seconds: float = Field(
        default=DEFAULT_ELEMENT_DWELL_SECONDS,
        gt=0,
        validation_alias=AliasChoices("time_threshold_seconds", "time_threshold"),
    )

    @field_validator("element_selector")
    @classmethod
    def selector_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("element_selector cannot be blank")
        return v

    @property
    def threshold(self) -> float:
        return self.time_threshold_seconds


class PageViewsTrigger(BaseTriggerDefinition):
    """Fires once the session has viewed enough pages."""

    variant: ClassVar[TriggerType] = TriggerType.PAGE_VIEWS

    trigger_type: Literal["page_views"] = "page_views"
    page_views_threshold: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("page_views_threshold", "page_threshold"),
    )

    @property
    def threshold(self) -> float:
        return float(self.page_views_threshold)


TriggerDefinition = Annotated[
    Union[TimeBasedTrigger, ScrollBasedTrigger, ElementInteractionTrigger, PageViewsTrigger],
    Field(discriminator="trigger_type"),
]

_trigger_adapter: TypeAdapter = TypeAdapter(TriggerDefinition)


def parse_trigger_definition(raw: Any) -> BaseTriggerDefinition:
    """Validate one raw trigger definition.

    Args:
        raw: Stored definition (dict) or an already-parsed definition.

    Returns:
        The matching trigger variant.

    Raises:
        ConfigurationError: If the definition is malformed, has an unknown
            trigger_type, or mixes parameters of different variants.
    """
    if isinstance(raw, BaseTriggerDefinition):
        return raw

    entry_id = raw.get("id") if isinstance(raw, dict) else None
    try:
        return _trigger_adapter.validate_python(raw)
    except PydanticValidationError as e:
        raise ConfigurationError.from_pydantic(e, entry_id=entry_id) from e


class ImplicitTriggerSettings(PydanticBaseModel):
    """Tenant-editable settings of one built-in heuristic."""

    enabled: bool = True
    message: str = ""
    time_threshold: int | None = Field(default=None, gt=0)
    page_views_threshold: int | None = Field(default=None, gt=0)
    page_threshold: int | None = Field(default=None, gt=0)
    url_patterns: list[str] = Field(default_factory=list)

    @field_validator("time_threshold", "page_views_threshold", "page_threshold", mode="before")
    @classmethod
    def unusable_threshold_uses_default(cls, v: Any) -> int | None:
        """Missing, non-positive or non-numeric thresholds fall back to the default."""
        if isinstance(v, bool):
            return None
        try:
            v = int(float(v))
        except (TypeError, ValueError, OverflowError):
            return None
        return v if v > 0 else None


def _pricing_concern_defaults() -> ImplicitTriggerSettings:
    return ImplicitTriggerSettings(
        time_threshold=30,
        message=(
            "Hi! I noticed you're looking at our pricing. "
            "I'd be happy to help you find the perfect plan for your needs!"
        ),
        url_patterns=["pricing", "plans", "cost", "#pricing"],
    )


def _high_engagement_defaults() -> ImplicitTriggerSettings:
    return ImplicitTriggerSettings(
        time_threshold=120,
        page_views_threshold=5,
        message=(
            "You seem really interested in what we offer! "
            "Would you like to chat about how we can help you?"
        ),
    )


def _feature_exploration_defaults() -> ImplicitTriggerSettings:
    return ImplicitTriggerSettings(
        page_threshold=3,
        message=(
            "I see you're exploring our features. "
            "Want to learn more about how they can benefit you?"
        ),
        url_patterns=["features", "product", "demo", "#features"],
    )


class ImplicitTriggers(PydanticBaseModel):
    """The three built-in heuristics."""

    pricing_concern: ImplicitTriggerSettings = Field(default_factory=_pricing_concern_defaults)
    high_engagement: ImplicitTriggerSettings = Field(default_factory=_high_engagement_defaults)
    feature_exploration: ImplicitTriggerSettings = Field(
        default_factory=_feature_exploration_defaults
    )

    @field_validator("pricing_concern", "high_engagement", "feature_exploration", mode="wrap")
    @classmethod
    def disable_malformed(
        cls, v: Any, handler: ValidatorFunctionWrapHandler
    ) -> ImplicitTriggerSettings:
        """A malformed heuristic is switched off without affecting the others."""
        try:
            return handler(v)
        except PydanticValidationError:
            return ImplicitTriggerSettings(enabled=False)


class UrlRestrictions(PydanticBaseModel):
    """Agent-wide allow-list of pages where suggestions may appear."""

    enabled: bool = False
    restrict_to_specific_urls: bool = False
    allowed_urls: list[str] = Field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.enabled and self.restrict_to_specific_urls


class ProactiveConfig(BaseModel):
    """Per-agent proactive engagement configuration."""

    agent_id: str
    enabled: bool = False

    # Tenant override of the gate for implicit and non-time custom triggers
    confidence_threshold: float | None = Field(default=None, ge=0, le=1)
    message_display_duration_ms: int = Field(
        default=15000,
        gt=0,
        validation_alias=AliasChoices("message_display_duration_ms", "message_display_duration"),
    )
    url_restrictions: UrlRestrictions = Field(default_factory=UrlRestrictions)
    triggers: ImplicitTriggers = Field(default_factory=ImplicitTriggers)

    # Kept raw so one malformed entry never invalidates the rest
    custom_triggers: list[Any] = Field(default_factory=list)

    @field_validator("custom_triggers", mode="before")
    @classmethod
    def custom_triggers_list(cls, v: Any) -> list[Any]:
        return v if isinstance(v, list) else []

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"AGENT#{self.agent_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return "PROACTIVE_CONFIG"

    def implicit_definitions(self) -> list[BaseTriggerDefinition]:
        """Build trigger definitions for the enabled built-in heuristics.

        Order is pricing_concern, feature_exploration, high_engagement.
        Heuristics that require URL patterns are omitted when they have none.
        """
        definitions: list[BaseTriggerDefinition] = []

        pricing = self.triggers.pricing_concern
        if pricing.enabled and pricing.message.strip() and pricing.url_patterns:
            definitions.append(
                TimeBasedTrigger(
                    id="pricing_concern",
                    name="Pricing concern",
                    source=TriggerSource.IMPLICIT,
                    message=pricing.message,
                    url_patterns=pricing.url_patterns,
                    time_threshold_seconds=pricing.time_threshold or 30,
                )
            )

        features = self.triggers.feature_exploration
        if features.enabled and features.message.strip() and features.url_patterns:
            definitions.append(
                PageViewsTrigger(
                    id="feature_exploration",
                    name="Feature exploration",
                    source=TriggerSource.IMPLICIT,
                    message=features.message,
                    url_patterns=features.url_patterns,
                    page_views_threshold=features.page_threshold or 3,
                )
            )

        engagement = self.triggers.high_engagement
        if engagement.enabled and engagement.message.strip():
            definitions.append(
                TimeBasedTrigger(
                    id="high_engagement",
                    name="High engagement",
                    source=TriggerSource.IMPLICIT,
                    message=engagement.message,
                    url_patterns=engagement.url_patterns,
                    time_threshold_seconds=engagement.time_threshold or 120,
                )
            )

        return definitions
