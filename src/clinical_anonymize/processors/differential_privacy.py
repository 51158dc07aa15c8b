"""
Differentially private perturbation of numeric fields.
"""

import logging
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, Overflow
from typing import Any, Optional, Union

from clinical_anonymize.constants import MAX_PERTURBED_MAGNITUDE, VALUE_ELEMENT_NAME
from clinical_anonymize.differential_privacy.budget import PrivacyBudgetTracker
from clinical_anonymize.differential_privacy.mechanisms import generate_noise
from clinical_anonymize.differential_privacy.settings import DifferentialPrivacySetting
from clinical_anonymize.document import ElementNode
from clinical_anonymize.errors import PrivacyBudgetExhaustedError
from clinical_anonymize.models import AnonymizationOperation, ProcessContext, ProcessResult
from clinical_anonymize.processors.base import AnonymizerProcessor

INTEGER_TYPE_NAMES = frozenset(["integer", "positiveint", "unsignedint", "integer64"])
NUMERIC_TYPE_NAMES = INTEGER_TYPE_NAMES | frozenset(["decimal"])
POSITIVE_INT_TYPE_NAME = "positiveint"
UNSIGNED_INT_TYPE_NAME = "unsignedint"


def is_numeric_type(instance_type: str) -> bool:
    return instance_type.lower() in NUMERIC_TYPE_NAMES


def get_value_node(node: ElementNode) -> Optional[ElementNode]:
    """The node itself when numeric, else its numeric ``value`` child (``Quantity.value``)."""
    if is_numeric_type(node.instance_type):
        return node
    value_child = node.child(VALUE_ELEMENT_NAME)
    if value_child is not None and is_numeric_type(value_child.instance_type):
        return value_child
    return None


def parse_numeric(value: Any) -> Optional[Decimal]:
    """Parse a scalar as a finite Decimal, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def perturb_value(
    original: Decimal,
    noise: float,
    instance_type: str,
    logger: Optional[logging.Logger] = None,
) -> Union[int, float]:
    """
    Add noise to a value and fit the result to the field's type.

    Results beyond ``MAX_PERTURBED_MAGNITUDE`` (or non-finite noise) are clamped
    to it with a warning. Integer types are rounded half-to-even; ``positiveInt``
    is floored at 1 and ``unsignedInt`` at 0.

    Parameters
    ----------
    original : Decimal
        Parsed original value.
    noise : float
        Noise sample.
    instance_type : str
        Type of the field, e.g. ``decimal`` or ``positiveInt``.
    logger : logging.Logger, optional
        Logger for clamping warnings.

    Returns
    -------
    int or float
        ``int`` for integer types, ``float`` otherwise.
    """
    logger = logger if logger is not None else logging.getLogger(__name__)
    try:
        noisy = original + Decimal(noise)
    except (InvalidOperation, Overflow):
        noisy = Decimal("Infinity") if noise > 0 else Decimal("-Infinity")
    if not noisy.is_finite() or abs(noisy) > MAX_PERTURBED_MAGNITUDE:
        clamped = -MAX_PERTURBED_MAGNITUDE if noisy.is_signed() else MAX_PERTURBED_MAGNITUDE
        logger.warning("Overflow when applying noise; clamped to %s", clamped)
        noisy = clamped
    type_name = instance_type.lower()
    if type_name not in INTEGER_TYPE_NAMES:
        return float(noisy)
    noisy = noisy.to_integral_value(rounding=ROUND_HALF_EVEN)
    if type_name == POSITIVE_INT_TYPE_NAME:
        noisy = max(Decimal(1), noisy)
    elif type_name == UNSIGNED_INT_TYPE_NAME:
        noisy = max(Decimal(0), noisy)
    return int(noisy)


class DifferentialPrivacyProcessor(AnonymizerProcessor):
    """
    Perturbs numeric fields with calibrated noise, drawing epsilon from a budget.

    Parameters
    ----------
    budget_tracker : PrivacyBudgetTracker
        Tracker every perturbation consumes epsilon from.
    logger : logging.Logger, optional
        Logger; defaults to this module's logger.
    max_epsilon : float, optional
        Policy upper bound for epsilon when settings arrive as raw mappings.
    """

    def __init__(
        self,
        budget_tracker: PrivacyBudgetTracker,
        logger: Optional[logging.Logger] = None,
        max_epsilon: Optional[float] = None,
    ) -> None:
        self.budget_tracker = budget_tracker
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.max_epsilon = max_epsilon

    def process(
        self,
        node: Optional[ElementNode],
        context: Optional[ProcessContext] = None,
        settings: Any = None,
    ) -> ProcessResult:
        """
        Perturb ``node`` (or its numeric ``value`` child) and claim its subtree.

        Raises
        ------
        PrivacyParameterError
            If raw ``settings`` are invalid; raised before any budget is consumed.
        PrivacyBudgetExhaustedError
            If the budget context cannot cover epsilon; the node is left unchanged.
        BudgetContextNotInitializedError
            If the budget context was never initialized.
        """
        result = ProcessResult()
        if node is None or settings is None:
            return result
        if isinstance(settings, DifferentialPrivacySetting):
            setting = settings
        else:
            setting = DifferentialPrivacySetting.from_rule_settings(
                settings, max_epsilon=self.max_epsilon, logger=self.logger
            )

        value_node = get_value_node(node)
        if value_node is None or value_node.value is None:
            return result
        original = parse_numeric(value_node.value)
        if original is None:
            self.logger.warning(
                "Cannot apply differential privacy to non-numeric value at %s", value_node.location
            )
            return result

        context_name = setting.budget_context
        if not self.budget_tracker.consume(context_name, setting.epsilon):
            remaining = self.budget_tracker.get_remaining(context_name)
            self.logger.error(
                "Privacy budget exceeded for context '%s'; operation on %s aborted",
                context_name,
                node.location,
            )
            raise PrivacyBudgetExhaustedError(context_name, setting.epsilon, remaining)
        if self.budget_tracker.is_approaching_limit(context_name):
            self.logger.warning(
                "Privacy budget approaching limit for context '%s': consumed %s, remaining %s",
                context_name,
                self.budget_tracker.get_consumed(context_name),
                self.budget_tracker.get_remaining(context_name),
            )

        value_node.value = perturb_value(
            original, generate_noise(setting), value_node.instance_type, logger=self.logger
        )
        if context is not None:
            context.mark_subtree_visited(node)

        result.add_process_record(AnonymizationOperation.PERTURB, node)
        result.add_process_record(AnonymizationOperation.DIFFERENTIAL_PRIVACY, node)
        result.add_privacy_metric("epsilon-consumed", setting.epsilon)
        result.add_privacy_metric("delta", setting.delta)
        result.add_privacy_metric("mechanism", setting.mechanism.value)
        result.add_privacy_metric("budget-context", context_name)
        result.add_privacy_metric(
            "total-epsilon-consumed", self.budget_tracker.get_consumed(context_name)
        )
        result.add_privacy_metric(
            "remaining-budget", self.budget_tracker.get_remaining(context_name)
        )
        result.set_differentially_private()
        return result
