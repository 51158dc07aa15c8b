"""
Disclosure risk metrics for batches of anonymized documents.

Per-field generalization never certifies k-anonymity by itself; these functions
measure the released batch as a whole.

1. **Equivalence classes**: group documents by their quasi-identifier values.

2. **K-anonymity validation**: check that every equivalence class holds at least
   k records, and report violations and class size statistics.

3. **Re-identification risk**: prosecutor, journalist and marketer risk over the
   equivalence classes, classified into Low / Medium / High bands.

Key Insight: a batch that validates as k-anonymous has prosecutor risk of at most 1/k.
"""

from .equivalence_classes import (
    EquivalenceClass,
    build_equivalence_classes,
    extract_quasi_identifier,
)
from .k_anonymity_validation import (
    KAnonymityValidationReport,
    KAnonymityValidator,
    KAnonymityViolation,
)
from .reidentification_risk import (
    ReidentificationRiskAssessor,
    ReidentificationRiskReport,
    RiskLevel,
    classify_risk,
)

__all__ = [
    "EquivalenceClass",
    "build_equivalence_classes",
    "extract_quasi_identifier",
    "KAnonymityValidationReport",
    "KAnonymityValidator",
    "KAnonymityViolation",
    "ReidentificationRiskAssessor",
    "ReidentificationRiskReport",
    "RiskLevel",
    "classify_risk",
]
