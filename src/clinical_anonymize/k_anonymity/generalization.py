"""
Local (single value) generalization for k-anonymity.

These functions only prepare one quasi-identifier value; whether the released
batch is k-anonymous is decided by the equivalence class validator.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any, Optional

from clinical_anonymize.constants import GENERALIZATION_MASK
from clinical_anonymize.gtrees import GTree
from clinical_anonymize.k_anonymity.settings import GeneralizationStrategy, SuppressionStrategy

_DECADE_UPPER_BOUND = 90
_MAX_MASK_LENGTH = 3
_TRUNCATE_LENGTH = 3
_NUMERIC_CODE_MIN_LENGTH = 5


def _parse_int(value_str: str) -> Optional[int]:
    try:
        return int(value_str)
    except ValueError:
        return None


def _parse_decimal(value_str: str) -> Optional[Decimal]:
    try:
        parsed = Decimal(value_str.strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def generalize_to_range(value: Any) -> Any:
    """
    Generalize a value to a range.

    Integers map to decade bands (``0-9`` ... ``80-89``, ``90+``; negative values
    fall in ``0-9``), decimals round to the nearest multiple of 10 (half-even) and
    other strings longer than 3 characters keep their first 3 characters plus a
    mask. Anything else is returned unchanged.

    Examples
    --------
    >>> generalize_to_range(42)
    '40-49'
    >>> generalize_to_range("37.5")
    '40'
    >>> generalize_to_range("Seattle")
    'Sea**'
    """
    if value is None or isinstance(value, bool):
        return value
    value_str = str(value)
    int_value = _parse_int(value_str)
    if int_value is not None:
        if int_value >= _DECADE_UPPER_BOUND:
            return f"{_DECADE_UPPER_BOUND}+"
        lower = max(int_value, 0) // 10 * 10
        return f"{lower}-{lower + 9}"
    decimal_value = _parse_decimal(value_str)
    if decimal_value is not None:
        rounded = (decimal_value / 10).quantize(Decimal(1), rounding=ROUND_HALF_EVEN) * 10
        return str(int(rounded))
    if len(value_str) > _TRUNCATE_LENGTH:
        return value_str[:_TRUNCATE_LENGTH] + GENERALIZATION_MASK
    return value


def generalize_by_hierarchy(
    value: Any, hierarchy: Optional[GTree] = None, levels: int = 1
) -> Any:
    """
    Generalize a value one or more steps up a hierarchy.

    When ``hierarchy`` contains the value, its ancestor ``levels`` steps up is
    returned. Otherwise built-in rules apply: numeric codes of 5+ characters
    (digits and hyphens) keep their first 3 digits plus a mask, multi-word
    strings keep their first word, and other strings keep their first character
    followed by up to 3 ``*``.

    Examples
    --------
    >>> generalize_by_hierarchy("98101")
    '981**'
    >>> generalize_by_hierarchy("General Hospital")
    'General'
    >>> generalize_by_hierarchy("female")
    'f***'
    """
    if value is None or isinstance(value, bool):
        return value
    if hierarchy is not None:
        generalized = hierarchy.generalize(value, levels=levels)
        if generalized is not None:
            return generalized
    value_str = str(value)
    if len(value_str) >= _NUMERIC_CODE_MIN_LENGTH and all(
        c.isdigit() or c == "-" for c in value_str
    ):
        digits = "".join(c for c in value_str if c.isdigit())
        if len(digits) >= 3:
            return digits[:3] + GENERALIZATION_MASK
    if " " in value_str:
        return value_str.split(" ")[0]
    if len(value_str) > 1:
        return value_str[0] + "*" * min(len(value_str) - 1, _MAX_MASK_LENGTH)
    return value


def suppress_value(
    value: Any, suppression_strategy: SuppressionStrategy = SuppressionStrategy.REDACT
) -> None:
    """Suppress a value; every suppression strategy removes it entirely."""
    return None


def generalize_value(
    value: Any,
    strategy: GeneralizationStrategy,
    suppression_strategy: SuppressionStrategy = SuppressionStrategy.REDACT,
    hierarchy: Optional[GTree] = None,
    levels: int = 1,
) -> Any:
    """
    Apply a generalization strategy to a single value.

    Parameters
    ----------
    value : Any
        Value to generalize.
    strategy : GeneralizationStrategy
        Strategy to apply.
    suppression_strategy : SuppressionStrategy, optional
        Sub-strategy for suppression.
    hierarchy : GTree, optional
        Generalization tree for the hierarchy strategy.
    levels : int, default=1
        Hierarchy levels to generalize by.

    Returns
    -------
    Any
        The generalized value; None when suppressed.
    """
    if strategy is GeneralizationStrategy.RANGE:
        return generalize_to_range(value)
    if strategy is GeneralizationStrategy.HIERARCHY:
        return generalize_by_hierarchy(value, hierarchy=hierarchy, levels=levels)
    return suppress_value(value, suppression_strategy)
