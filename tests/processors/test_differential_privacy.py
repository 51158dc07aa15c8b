"""
Tests for the differential privacy processor
"""

import logging
from decimal import Decimal

import pytest

from clinical_anonymize.constants import MAX_PERTURBED_MAGNITUDE
from clinical_anonymize.differential_privacy import DifferentialPrivacySetting
from clinical_anonymize.document import ElementNode
from clinical_anonymize.errors import (
    BudgetContextNotInitializedError,
    PrivacyBudgetExhaustedError,
    PrivacyParameterError,
)
from clinical_anonymize.models import AnonymizationOperation, ProcessContext
from clinical_anonymize.processors.differential_privacy import (
    DifferentialPrivacyProcessor,
    get_value_node,
    is_numeric_type,
    parse_numeric,
    perturb_value,
)
from tests.shared import BUDGET_CONTEXT, make_observation, make_patient, make_tracker

_LOGGER = logging.getLogger(__name__)


def _setting(epsilon=0.1, **kwargs):
    return DifferentialPrivacySetting(BUDGET_CONTEXT, epsilon=epsilon, logger=_LOGGER, **kwargs)


class TestHelpers:
    """
    Tests for numeric helpers.
    """

    @pytest.mark.parametrize(
        "instance_type, expected",
        [
            ("decimal", True),
            ("integer", True),
            ("positiveInt", True),
            ("unsignedInt", True),
            ("integer64", True),
            ("string", False),
            ("Quantity", False),
        ],
    )
    def test_is_numeric_type(self, instance_type, expected):
        assert is_numeric_type(instance_type) is expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            (72, Decimal(72)),
            ("72.5", Decimal("72.5")),
            (" 3 ", Decimal(3)),
            ("abc", None),
            ("NaN", None),
            ("Infinity", None),
            (True, None),
            (None, None),
        ],
    )
    def test_parse_numeric(self, value, expected):
        assert parse_numeric(value) == expected

    def test_get_value_node(self):
        observation = make_observation()
        quantity = observation.child("valueQuantity")
        assert get_value_node(quantity) is quantity.child("value")
        assert get_value_node(quantity.child("value")) is quantity.child("value")
        assert get_value_node(observation.child("status")) is None


class TestPerturbValue:
    """
    Tests for fitting perturbed values to their field type.
    """

    def test_decimal(self):
        actual = perturb_value(Decimal("72.5"), 1.25, "decimal")
        assert isinstance(actual, float)
        assert actual == pytest.approx(73.75)

    @pytest.mark.parametrize(
        "noise, expected",
        [(0.5, 72), (1.5, 74), (-0.4, 72), (2.6, 75)],
    )
    def test_integer_rounds_half_even(self, noise, expected):
        actual = perturb_value(Decimal(72), noise, "integer")
        assert isinstance(actual, int)
        assert actual == expected

    def test_integer_negative(self):
        assert perturb_value(Decimal(3), -10.0, "integer") == -7

    def test_positive_int_floor(self):
        assert perturb_value(Decimal(3), -1e6, "positiveInt") == 1

    def test_unsigned_int_floor(self):
        assert perturb_value(Decimal(3), -1e6, "unsignedInt") == 0

    def test_overflow_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger=__name__):
            actual = perturb_value(Decimal(1), float("inf"), "decimal", logger=_LOGGER)
        assert actual == float(MAX_PERTURBED_MAGNITUDE)
        assert "Overflow" in caplog.text

    def test_negative_overflow_clamped(self):
        actual = perturb_value(Decimal(1), float("-inf"), "decimal", logger=_LOGGER)
        assert actual == -float(MAX_PERTURBED_MAGNITUDE)


class TestDifferentialPrivacyProcessor:
    """
    Tests for DifferentialPrivacyProcessor.
    """

    def test_quantity_value(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        observation = make_observation(value=72)
        quantity = observation.child("valueQuantity")
        context = ProcessContext()

        result = processor.process(quantity, context, _setting(0.1))

        value = quantity.child("value").value
        assert isinstance(value, float)
        assert context.is_visited(quantity)
        assert context.is_visited(quantity.child("value"))
        assert context.is_visited(quantity.child("unit"))
        assert quantity.child("unit").value == "beats/minute"
        assert tracker.get_consumed(BUDGET_CONTEXT) == pytest.approx(0.1)
        assert [record.operation for record in result.records] == [
            AnonymizationOperation.PERTURB,
            AnonymizationOperation.DIFFERENTIAL_PRIVACY,
        ]
        assert result.is_differentially_private
        assert result.privacy_metrics["epsilon-consumed"] == 0.1
        assert result.privacy_metrics["delta"] == 1e-5
        assert result.privacy_metrics["mechanism"] == "laplace"
        assert result.privacy_metrics["budget-context"] == BUDGET_CONTEXT
        assert result.privacy_metrics["total-epsilon-consumed"] == pytest.approx(0.1)
        assert result.privacy_metrics["remaining-budget"] == pytest.approx(0.9)

    def test_value_changes(self):
        """With epsilon 0.1 the Laplace noise is continuous, so the value always moves."""
        tracker = make_tracker(10.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        observation = make_observation(value=72.0)
        value_node = observation.child("valueQuantity").child("value")
        processor.process(value_node, ProcessContext(), _setting(0.1))
        assert value_node.value != 72.0

    def test_integer_field(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        node = ElementNode("positiveInt", "valuePositiveInt", value=5)
        processor.process(node, ProcessContext(), _setting(0.5))
        assert isinstance(node.value, int)
        assert node.value >= 1

    @pytest.mark.parametrize("instance_type, floor", [("positiveInt", 1), ("unsignedInt", 0)])
    def test_integer_floor_over_repeated_trials(self, instance_type, floor):
        """Heavy noise near the floor never pushes a constrained integer below it."""
        tracker = make_tracker(1000.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        values = []
        for _ in range(500):
            node = ElementNode(instance_type, "value", value=floor)
            processor.process(node, ProcessContext(), _setting(0.01))
            values.append(node.value)
        assert all(isinstance(value, int) for value in values)
        assert min(values) == floor
        assert tracker.get_consumed(BUDGET_CONTEXT) == pytest.approx(5.0)

    def test_budget_exhausted(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        processor.process(make_observation().child("valueQuantity"), None, _setting(0.6))

        observation = make_observation(value=80)
        quantity = observation.child("valueQuantity")
        context = ProcessContext()
        with pytest.raises(PrivacyBudgetExhaustedError) as exc_info:
            processor.process(quantity, context, _setting(0.6))

        assert exc_info.value.context == BUDGET_CONTEXT
        assert exc_info.value.epsilon == 0.6
        assert exc_info.value.remaining == pytest.approx(0.4)
        assert quantity.child("value").value == 80
        assert not context.is_visited(quantity.child("value"))
        assert tracker.get_consumed(BUDGET_CONTEXT) == pytest.approx(0.6)

    def test_non_numeric_value_consumes_no_budget(self, caplog):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        node = ElementNode("decimal", "valueDecimal", value="not-a-number")
        with caplog.at_level(logging.WARNING, logger=__name__):
            result = processor.process(node, ProcessContext(), _setting(0.1))
        assert result.records == []
        assert node.value == "not-a-number"
        assert tracker.get_consumed(BUDGET_CONTEXT) == 0.0
        assert "non-numeric" in caplog.text

    def test_non_numeric_node(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        patient = make_patient()
        result = processor.process(patient.child("gender"), ProcessContext(), _setting(0.1))
        assert result.records == []
        assert patient.child("gender").value == "female"
        assert tracker.get_consumed(BUDGET_CONTEXT) == 0.0

    def test_none_inputs(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        assert processor.process(None, settings=_setting()).records == []
        assert processor.process(make_observation(), settings=None).records == []
        assert tracker.get_consumed(BUDGET_CONTEXT) == 0.0

    def test_raw_settings(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        node = ElementNode("decimal", "valueDecimal", value=10.0)
        result = processor.process(
            node,
            ProcessContext(),
            {"epsilon": "0.2", "mechanism": "gaussian", "budgetContext": BUDGET_CONTEXT},
        )
        assert result.privacy_metrics["mechanism"] == "gaussian"
        assert tracker.get_consumed(BUDGET_CONTEXT) == pytest.approx(0.2)

    def test_invalid_raw_settings_consume_no_budget(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        node = ElementNode("decimal", "valueDecimal", value=10.0)
        with pytest.raises(PrivacyParameterError):
            processor.process(
                node, ProcessContext(), {"epsilon": -0.5, "budgetContext": BUDGET_CONTEXT}
            )
        assert node.value == 10.0
        assert tracker.get_consumed(BUDGET_CONTEXT) == 0.0

    def test_out_of_range_delta_consumes_no_budget(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        node = ElementNode("decimal", "valueDecimal", value=10.0)
        with pytest.raises(PrivacyParameterError, match="Delta"):
            processor.process(
                node,
                ProcessContext(),
                {
                    "epsilon": 0.5,
                    "delta": 2.0,
                    "mechanism": "gaussian",
                    "budgetContext": BUDGET_CONTEXT,
                },
            )
        assert node.value == 10.0
        assert tracker.get_consumed(BUDGET_CONTEXT) == 0.0

    def test_max_epsilon_for_raw_settings(self):
        tracker = make_tracker(10.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER, max_epsilon=1.0)
        node = ElementNode("decimal", "valueDecimal", value=10.0)
        with pytest.raises(PrivacyParameterError):
            processor.process(
                node, ProcessContext(), {"epsilon": 2.0, "budgetContext": BUDGET_CONTEXT}
            )

    def test_uninitialized_context(self):
        tracker = make_tracker(1.0)
        processor = DifferentialPrivacyProcessor(tracker, logger=_LOGGER)
        node = ElementNode("decimal", "valueDecimal", value=10.0)
        setting = DifferentialPrivacySetting("other-cohort:heart-rate:20240101", logger=_LOGGER)
        with pytest.raises(BudgetContextNotInitializedError):
            processor.process(node, ProcessContext(), setting)
        assert node.value == 10.0
