"""Tests for Pydantic models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from chatpop.models.base import ensure_utc, generate_ulid
from chatpop.models.conversation import ChatMessage, Conversation
from chatpop.models.order import AttributedOrder, Order
from chatpop.models.suggestion import ProactiveSuggestion
from chatpop.models.trigger import (
    ElementInteractionTrigger,
    PageViewsTrigger,
    ProactiveConfig,
    ScrollBasedTrigger,
    TimeBasedTrigger,
    TriggerSource,
    parse_trigger_definition,
)
from chatpop.models.visitor_session import (
    BehaviorEvent,
    BehaviorEventType,
    TrackBehaviorRequest,
    VisitorSession,
)
from chatpop.utils.exceptions import ConfigurationError


class TestBaseModel:
    """Tests for BaseModel."""

    def test_generate_ulid(self):
        """Test ULID generation."""
        ulid1 = generate_ulid()
        ulid2 = generate_ulid()

        assert len(ulid1) == 26
        assert ulid1 != ulid2

    def test_ensure_utc_treats_naive_as_utc(self):
        """Naive datetimes are interpreted as UTC."""
        naive = datetime(2026, 1, 1, 12, 0)

        assert ensure_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_model_serialization(self, sample_order):
        """Floats become Decimals and datetimes ISO strings."""
        db_item = sample_order.to_dynamodb()

        assert db_item["order_id"] == "order-1001"
        assert db_item["total_price"] == Decimal("50.0")
        assert db_item["line_items"][0]["price"] == Decimal("25.0")
        assert isinstance(db_item["order_created_at"], str)
        assert "customer_name" in db_item

    def test_model_deserialization(self):
        """Timestamp fields are parsed and text fields keep their stored value."""
        db_item = {
            "id": "order-row",
            "agent_id": "agent-1",
            "order_id": "1001",
            "order_number": "2026",
            "customer_email": "a@b.com",
            "total_price": Decimal("19.99"),
            "order_created_at": "2026-03-10T15:00:00+00:00",
            "created_at": "2026-03-10T15:00:00+00:00",
            "updated_at": "2026-03-10T15:00:00+00:00",
            "PK": "AGENT#agent-1",
            "SK": "ORDER#1001",
        }

        order = Order.from_dynamodb(db_item)

        assert order.order_number == "2026"
        assert order.total_price == 19.99
        assert order.order_created_at == datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class TestOrder:
    """Tests for Order and AttributedOrder."""

    def test_order_keys(self, sample_order):
        """Test order DynamoDB keys."""
        assert sample_order.get_pk() == "AGENT#test-agent-123"
        assert sample_order.get_sk() == "ORDER#order-1001"

    def test_customer_email_trimmed(self):
        """Blank emails are treated as absent."""
        assert Order(agent_id="a", order_id="1", customer_email="  ").customer_email is None
        assert Order(agent_id="a", order_id="1", customer_email=" x@y.com ").customer_email == "x@y.com"

    def test_naive_order_time_is_utc(self):
        """Order times without a zone are UTC."""
        order = Order(agent_id="a", order_id="1", order_created_at=datetime(2026, 1, 1, 9, 0))

        assert order.order_created_at.tzinfo == timezone.utc

    def test_from_shopify_payload(self):
        """Shopify webhook payloads are normalized."""
        payload = {
            "id": 820982911946154508,
            "name": "#9999",
            "email": "fallback@example.com",
            "created_at": "2026-03-10T10:00:00-05:00",
            "total_price": "199.00",
            "currency": "EUR",
            "customer": {
                "email": "jon@example.com",
                "first_name": "Jon",
                "last_name": "Snow",
            },
            "line_items": [
                {
                    "id": 466157049,
                    "title": "IPod Nano - 8gb",
                    "quantity": 1,
                    "price": "199.00",
                    "sku": "IPOD2008GREEN",
                    "variant_id": 39072856,
                    "variant_title": "green",
                    "product_id": 632910392,
                },
            ],
        }

        order = Order.from_shopify_payload("agent-1", payload)

        assert order.order_id == "820982911946154508"
        assert order.order_number == "#9999"
        assert order.customer_email == "jon@example.com"
        assert order.customer_name == "Jon Snow"
        assert order.total_price == 199.0
        assert order.currency == "EUR"
        assert order.order_created_at == datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)
        assert order.line_items[0].product_id == "632910392"
        assert order.line_item_titles == ["IPod Nano - 8gb"]

    def test_from_shopify_payload_falls_back_to_order_email(self):
        """Guest checkouts carry the email on the order itself."""
        order = Order.from_shopify_payload(
            "agent-1",
            {"id": 1, "email": "guest@example.com", "total_price": "5.00"},
        )

        assert order.customer_email == "guest@example.com"
        assert order.customer_name is None
        assert order.currency == "USD"

    def test_attributed_order_gsi_keys(self):
        """Attributions are indexed by conversation."""
        attributed = AttributedOrder(
            agent_id="agent-1",
            order_id="1001",
            conversation_id="conv-9",
            attribution_type="email_match",
            attribution_confidence=0.6,
            order_created_at=datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc),
        )

        assert attributed.get_sk() == "ATTRIBUTION#1001"
        assert attributed.get_gsi1_keys() == {
            "GSI1PK": "CONV#conv-9",
            "GSI1SK": "ORDER#2026-03-10T15:00:00+00:00",
        }

    def test_attribution_confidence_bounds(self):
        """Confidence must stay within [0, 1]."""
        with pytest.raises(PydanticValidationError):
            AttributedOrder(
                agent_id="agent-1",
                order_id="1001",
                conversation_id="conv-9",
                attribution_type="email_match",
                attribution_confidence=1.2,
                order_created_at=datetime(2026, 3, 10, tzinfo=timezone.utc),
            )


class TestConversation:
    """Tests for Conversation and ChatMessage."""

    def test_conversation_keys(self, sample_conversation):
        """Conversations are indexed by last activity."""
        assert sample_conversation.get_sk() == "CONV#conv-001"
        assert sample_conversation.get_gsi1_keys() == {
            "GSI1PK": "AGENT#test-agent-123#CONV_ACTIVITY",
            "GSI1SK": "2026-03-10T14:50:00+00:00",
        }

    def test_last_activity_falls_back_to_created_at(self):
        """Conversations without messages use their creation time."""
        created = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
        conversation = Conversation(agent_id="a", created_at=created)

        assert conversation.last_activity_at == created

    def test_blank_lead_email(self):
        """Blank lead emails are stored as None."""
        assert Conversation(agent_id="a", lead_email="   ").lead_email is None

    def test_message_keys(self):
        """Messages sort chronologically within their conversation."""
        message = ChatMessage(
            id="m1",
            conversation_id="conv-1",
            agent_id="a",
            content="hi",
            created_at=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
        )

        assert message.get_pk() == "CONV#conv-1"
        assert message.get_sk() == "MSG#2026-01-01T12:00:00+00:00#m1"

    def test_timestamp_shaped_content_stays_text(self):
        """Message content that looks like a timestamp loads as text."""
        message = ChatMessage.from_dynamodb(
            {
                "id": "m2",
                "conversation_id": "conv-1",
                "agent_id": "a",
                "content": "2026-01-01T10:00",
                "created_at": "2026-01-01T12:00:00+00:00",
                "updated_at": "2026-01-01T12:00:00+00:00",
                "PK": "CONV#conv-1",
                "SK": "MSG#2026-01-01T12:00:00+00:00#m2",
            }
        )

        assert message.content == "2026-01-01T10:00"
        assert message.created_at == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestVisitorSession:
    """Tests for visitor session models."""

    def test_session_keys(self):
        """Sessions live under their agent."""
        session = VisitorSession(session_id="s1", agent_id="a1")

        assert session.get_pk() == "AGENT#a1"
        assert session.get_sk() == "SESSION#s1"

    def test_scroll_depth_bounds(self):
        """Scroll depth is a percentage."""
        with pytest.raises(PydanticValidationError):
            BehaviorEvent(
                session_id="s1",
                agent_id="a1",
                event_type=BehaviorEventType.SCROLL,
                scroll_depth=120,
            )

    def test_track_request_to_event(self):
        """Tracking requests become behavior events."""
        request = TrackBehaviorRequest(
            agent_id="a1",
            session_id="s1",
            event_type="element_visible",
            page_url="https://shop.test/product",
            element_selector="#buy-now",
        )

        event = request.to_event()

        assert event.event_type == BehaviorEventType.ELEMENT_VISIBLE
        assert event.element_selector == "#buy-now"
        assert event.get_pk() == "SESSION#s1"
        assert event.get_sk().startswith("EVENT#")

    def test_track_request_rejects_unknown_event_type(self):
        """Unknown event types are rejected."""
        with pytest.raises(PydanticValidationError):
            TrackBehaviorRequest(agent_id="a1", session_id="s1", event_type="hover")


class TestTriggerDefinitions:
    """Tests for the trigger definition union."""

    def test_parse_each_variant(self):
        """Each trigger_type parses into its own variant."""
        assert isinstance(
            parse_trigger_definition(
                {"id": "t", "trigger_type": "time_based", "time_threshold": 30, "message": "m"}
            ),
            TimeBasedTrigger,
        )
        assert isinstance(
            parse_trigger_definition(
                {"id": "s", "trigger_type": "scroll_based", "scroll_depth": 50, "message": "m"}
            ),
            ScrollBasedTrigger,
        )
        assert isinstance(
            parse_trigger_definition(
                {
                    "id": "e",
                    "trigger_type": "element_interaction",
                    "element_selector": "#pricing",
                    "message": "m",
                }
            ),
            ElementInteractionTrigger,
        )
        assert isinstance(
            parse_trigger_definition(
                {"id": "p", "trigger_type": "page_views", "page_threshold": 3, "message": "m"}
            ),
            PageViewsTrigger,
        )

    def test_stored_aliases(self):
        """Stored JSON field names map onto the variant parameters."""
        definition = parse_trigger_definition(
            {"id": "t", "trigger_type": "time_based", "time_threshold": 45, "message": "m"}
        )

        assert definition.threshold == 45
        assert definition.confidence == 1.0
        assert definition.source == TriggerSource.CUSTOM

    def test_null_foreign_parameters_are_ignored(self):
        """Unset parameters of other variants are dropped."""
        definition = parse_trigger_definition(
            {
                "id": "t",
                "trigger_type": "time_based",
                "time_threshold_seconds": 10,
                "scroll_depth": None,
                "element_selector": None,
                "message": "m",
            }
        )

        assert definition.threshold == 10

    def test_foreign_parameters_are_rejected(self):
        """A definition cannot carry another variant's parameters."""
        with pytest.raises(ConfigurationError) as exc_info:
            parse_trigger_definition(
                {
                    "id": "bad-1",
                    "trigger_type": "time_based",
                    "time_threshold_seconds": 10,
                    "scroll_depth": 50,
                    "message": "m",
                }
            )

        assert exc_info.value.entry_id == "bad-1"
        assert exc_info.value.errors

    @pytest.mark.parametrize(
        "raw",
        [
            {"id": "x", "trigger_type": "exit_intent", "message": "m"},
            {"id": "x", "message": "m", "time_threshold": 10},
            {"id": "x", "trigger_type": "time_based", "message": "m"},
            {"id": "x", "trigger_type": "time_based", "time_threshold": 10, "message": "  "},
            {"id": "x", "trigger_type": "scroll_based", "scroll_depth": 150, "message": "m"},
        ],
    )
    def test_malformed_definitions(self, raw):
        """Malformed definitions raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            parse_trigger_definition(raw)

    def test_element_interaction_default_dwell(self):
        """Element triggers default to a five second dwell."""
        definition = parse_trigger_definition(
            {
                "id": "e",
                "trigger_type": "element_interaction",
                "element_selector": ".cta",
                "message": "m",
            }
        )

        assert definition.threshold == 5.0

    def test_label(self):
        """Suggestion type falls back to the variant name for custom triggers."""
        custom = TimeBasedTrigger(id="c", message="m", time_threshold_seconds=5)
        labelled = TimeBasedTrigger(
            id="c", message="m", time_threshold_seconds=5, suggestion_type="help_offer"
        )

        assert custom.label == "time_based"
        assert labelled.label == "help_offer"


class TestProactiveConfig:
    """Tests for ProactiveConfig."""

    def test_defaults(self):
        """Engagement is off until the tenant enables it."""
        config = ProactiveConfig(agent_id="a1")

        assert config.enabled is False
        assert config.message_display_duration_ms == 15000
        assert config.get_sk() == "PROACTIVE_CONFIG"

    def test_implicit_definitions_order(self):
        """Built-in heuristics are evaluated in a fixed order."""
        definitions = ProactiveConfig(agent_id="a1").implicit_definitions()

        assert [d.id for d in definitions] == [
            "pricing_concern",
            "feature_exploration",
            "high_engagement",
        ]
        assert all(d.source == TriggerSource.IMPLICIT for d in definitions)
        assert [d.confidence for d in definitions] == [0.85, 0.75, 0.8]

    def test_heuristics_without_patterns_are_omitted(self):
        """Pricing and feature heuristics need URL patterns."""
        config = ProactiveConfig.model_validate(
            {
                "agent_id": "a1",
                "triggers": {
                    "pricing_concern": {"message": "Pricing?", "url_patterns": []},
                    "feature_exploration": {"enabled": False, "message": "Features?"},
                    "high_engagement": {"message": "Hello!", "time_threshold": 60},
                },
            }
        )

        definitions = config.implicit_definitions()

        assert [d.id for d in definitions] == ["high_engagement"]
        assert definitions[0].threshold == 60

    def test_unusable_thresholds_use_defaults(self):
        """Zero or unparseable heuristic thresholds fall back to the defaults."""
        config = ProactiveConfig.model_validate(
            {
                "agent_id": "a1",
                "triggers": {
                    "pricing_concern": {
                        "message": "Pricing?",
                        "url_patterns": ["pricing"],
                        "time_threshold": 0,
                    },
                    "feature_exploration": {
                        "message": "Features?",
                        "url_patterns": ["features"],
                        "page_threshold": "lots",
                    },
                    "high_engagement": {"message": "Hello!", "time_threshold": -5},
                },
            }
        )

        assert [d.threshold for d in config.implicit_definitions()] == [30, 3, 120]

    def test_malformed_heuristic_is_disabled_alone(self):
        """One broken heuristic never invalidates the rest of the config."""
        config = ProactiveConfig.model_validate(
            {
                "agent_id": "a1",
                "triggers": {
                    "pricing_concern": {"message": "Pricing?", "url_patterns": "pricing"},
                    "high_engagement": None,
                },
            }
        )

        assert config.triggers.pricing_concern.enabled is False
        assert config.triggers.high_engagement.enabled is False
        assert [d.id for d in config.implicit_definitions()] == ["feature_exploration"]

    def test_custom_triggers_kept_raw(self):
        """Malformed custom entries are left for the evaluator to skip."""
        config = ProactiveConfig.from_dynamodb(
            {
                "agent_id": "a1",
                "enabled": True,
                "custom_triggers": [{"id": "t1", "trigger_type": "time_based"}, None, "oops"],
            }
        )

        assert config.custom_triggers == [{"id": "t1", "trigger_type": "time_based"}, None, "oops"]

    def test_stored_display_duration_alias(self):
        """Stored configs use message_display_duration."""
        config = ProactiveConfig.model_validate(
            {"agent_id": "a1", "message_display_duration": 8000}
        )

        assert config.message_display_duration_ms == 8000


class TestProactiveSuggestion:
    """Tests for ProactiveSuggestion."""

    def test_keys(self):
        """One suggestion per session."""
        suggestion = ProactiveSuggestion(
            session_id="s1",
            agent_id="a1",
            trigger_id="t1",
            suggestion_type="time_based",
            suggested_message="Hi",
            confidence=1.0,
        )

        assert suggestion.get_pk() == "AGENT#a1"
        assert suggestion.get_sk() == "SUGGESTION#s1"
        assert suggestion.was_shown is False
