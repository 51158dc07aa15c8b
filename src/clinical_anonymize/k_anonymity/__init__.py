"""
Local k-anonymity generalization of quasi-identifier values.

Modules:
- settings: validated k, quasi-identifiers, strategies and optional hierarchy
- generalization: range, hierarchy and suppression of single values
"""

from .generalization import (
    generalize_by_hierarchy,
    generalize_to_range,
    generalize_value,
    suppress_value,
)
from .settings import GeneralizationStrategy, KAnonymitySetting, SuppressionStrategy

__all__ = [
    "generalize_by_hierarchy",
    "generalize_to_range",
    "generalize_value",
    "suppress_value",
    "GeneralizationStrategy",
    "KAnonymitySetting",
    "SuppressionStrategy",
]
