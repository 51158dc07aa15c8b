"""
Differential privacy for numeric document fields.

Modules:
- settings: validated (epsilon, delta, sensitivity, mechanism, budget context) parameters
- mechanisms: Laplace and Gaussian noise drawn from a CSPRNG
- budget: thread-safe per-context privacy budget tracker with an audit trail
"""

from .budget import BudgetAuditEntry, PrivacyBudgetTracker, validate_budget_context
from .mechanisms import (
    gaussian_stddev,
    generate_noise,
    laplace_scale,
    sample_gaussian,
    sample_laplace,
    sample_noise,
)
from .settings import DifferentialPrivacySetting, DPMechanism

__all__ = [
    "BudgetAuditEntry",
    "PrivacyBudgetTracker",
    "validate_budget_context",
    "gaussian_stddev",
    "generate_noise",
    "laplace_scale",
    "sample_gaussian",
    "sample_laplace",
    "sample_noise",
    "DifferentialPrivacySetting",
    "DPMechanism",
]
