"""
Clinical Anonymize - Privacy-preserving anonymization of clinical documents.

This package applies path-addressed anonymization rules to hierarchical clinical
documents (FHIR-style resources), perturbs numeric fields with differential
privacy under an audited privacy budget, and generalizes quasi-identifiers for
k-anonymity with batch validation and re-identification risk assessment.
"""

from clinical_anonymize._version import __version__
from clinical_anonymize.differential_privacy import (
    DifferentialPrivacySetting,
    DPMechanism,
    PrivacyBudgetTracker,
)
from clinical_anonymize.disclosure_risk_metrics import (
    KAnonymityValidator,
    ReidentificationRiskAssessor,
    RiskLevel,
)
from clinical_anonymize.document import ElementNode
from clinical_anonymize.engine import AnonymizerEngine, BatchOutcome, default_processors
from clinical_anonymize.errors import (
    AnonymizationError,
    BudgetContextNotInitializedError,
    PrivacyBudgetExhaustedError,
    PrivacyParameterError,
)
from clinical_anonymize.k_anonymity import KAnonymitySetting
from clinical_anonymize.models import (
    AnonymizationOperation,
    AnonymizationRule,
    AnonymizerMethod,
    ProcessContext,
    ProcessResult,
)

__all__ = [
    "__version__",
    "AnonymizerEngine",
    "BatchOutcome",
    "default_processors",
    "ElementNode",
    "AnonymizationOperation",
    "AnonymizationRule",
    "AnonymizerMethod",
    "ProcessContext",
    "ProcessResult",
    "DifferentialPrivacySetting",
    "DPMechanism",
    "PrivacyBudgetTracker",
    "KAnonymitySetting",
    "KAnonymityValidator",
    "ReidentificationRiskAssessor",
    "RiskLevel",
    "AnonymizationError",
    "BudgetContextNotInitializedError",
    "PrivacyBudgetExhaustedError",
    "PrivacyParameterError",
]
