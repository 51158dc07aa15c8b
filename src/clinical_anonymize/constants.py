"""
Shared constants for clinical document anonymization.

This module defines constants used across the anonymization components for
consistency in operations like floating point comparisons of privacy budgets,
noise generation, generalization masks and risk classification.
"""

import math
import sys
from decimal import Decimal

# Used to determine equality of accumulated epsilon values
MAXIMUM_PRECISION_DIGITS: int = 8
FLOAT_TOLERANCE: float = math.pow(10, -MAXIMUM_PRECISION_DIGITS)

# Perturbed values are clamped to this magnitude so they stay representable as floats
MAX_PERTURBED_MAGNITUDE: Decimal = Decimal(sys.float_info.max)

# Box-Muller guard against ln(0)
GAUSSIAN_UNIFORM_FLOOR: float = 1e-10

DEFAULT_BUDGET_WARNING_THRESHOLD: float = 0.8
DEFAULT_EPSILON_WARNING_THRESHOLD: float = 1.0

HIGH_RISK_THRESHOLD: float = 0.20
MEDIUM_RISK_THRESHOLD: float = 0.10

GTREE_ROOT_TAG: str = "*"
GENERALIZATION_MASK: str = "**"
REDACTED_VALUE: str = "[REDACTED]"

META_ELEMENT_NAME: str = "meta"
SECURITY_ELEMENT_NAME: str = "security"
VALUE_ELEMENT_NAME: str = "value"
SECURITY_LABEL_SYSTEM: str = "http://terminology.hl7.org/CodeSystem/v3-ObservationValue"
