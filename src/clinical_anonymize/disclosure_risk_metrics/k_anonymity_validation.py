"""
Batch validation of k-anonymity.

k-anonymity is a property of a whole released dataset: every equivalence class
over the quasi-identifiers must hold at least k records. The validator checks
this after all documents have been locally generalized.
"""

import logging
from collections import namedtuple
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from clinical_anonymize.disclosure_risk_metrics.equivalence_classes import (
    Document,
    EquivalenceClass,
    build_equivalence_classes,
    equivalence_classes_from_groups,
)
from clinical_anonymize.errors import PrivacyParameterError
from clinical_anonymize.k_anonymity.settings import MINIMUM_K

KAnonymityViolation = namedtuple(
    "KAnonymityViolation", ["key", "size", "required_size", "shortfall"]
)


class KAnonymityValidationReport:
    """
    Outcome of a k-anonymity validation.

    Attributes
    ----------
    is_k_anonymized : bool
        Whether every equivalence class holds at least ``required_k`` records
    required_k : int
        The k validated against
    minimum_class_size : int
        Smallest class size, i.e. the achieved k (0 for an empty batch)
    maximum_class_size : int
        Largest class size
    average_class_size : float
        Mean class size
    median_class_size : float
        Median class size
    class_size_distribution : dict
        Class size -> number of classes of that size, in ascending size order
    violations : list of KAnonymityViolation
        Classes smaller than ``required_k``
    equivalence_class_count : int
        Number of classes
    total_records : int
        Number of records
    suppression_rate : float
        Fraction of records in violating classes, i.e. what would have to be
        suppressed to reach ``required_k``
    message : str
        Human readable summary
    """

    def __init__(self, required_k: int) -> None:
        self.is_k_anonymized = True
        self.required_k = required_k
        self.minimum_class_size = 0
        self.maximum_class_size = 0
        self.average_class_size = 0.0
        self.median_class_size = 0.0
        self.class_size_distribution: dict[int, int] = {}
        self.violations: list[KAnonymityViolation] = []
        self.equivalence_class_count = 0
        self.total_records = 0
        self.suppression_rate = 0.0
        self.message = ""

    @property
    def achieved_k(self) -> int:
        return self.minimum_class_size

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    def __repr__(self) -> str:
        return (
            f"KAnonymityValidationReport(is_k_anonymized={self.is_k_anonymized}, "
            f"required_k={self.required_k}, achieved_k={self.minimum_class_size}, "
            f"classes={self.equivalence_class_count}, violations={len(self.violations)})"
        )


class KAnonymityValidator:
    """
    Validates k-anonymity over a batch of anonymized documents.

    Parameters
    ----------
    logger : logging.Logger, optional
        Logger; defaults to this module's logger.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def validate(
        self, documents: Iterable[Document], quasi_identifiers: Sequence[str], k: int
    ) -> KAnonymityValidationReport:
        """
        Validate that ``documents`` are k-anonymous over ``quasi_identifiers``.

        Parameters
        ----------
        documents : iterable of ElementNode or Mapping
            The complete batch, after local generalization.
        quasi_identifiers : Sequence[str]
            The quasi-identifier paths used during generalization.
        k : int
            Required minimum class size; must be >= 2.

        Returns
        -------
        KAnonymityValidationReport
            The validation report; an empty batch is valid.

        Raises
        ------
        PrivacyParameterError
            If k < 2 or ``quasi_identifiers`` is empty.
        """
        _check_k(k)
        equivalence_classes = build_equivalence_classes(
            documents, quasi_identifiers, logger=self.logger
        )
        return self._validate(equivalence_classes, k)

    def validate_from_groups(
        self, groups: Union[Mapping[Any, int], Iterable[EquivalenceClass]], k: int
    ) -> KAnonymityValidationReport:
        """Validate precomputed equivalence classes (key -> size mapping or classes)."""
        _check_k(k)
        return self._validate(equivalence_classes_from_groups(groups), k)

    def _validate(
        self, equivalence_classes: list[EquivalenceClass], k: int
    ) -> KAnonymityValidationReport:
        report = KAnonymityValidationReport(k)
        if not equivalence_classes:
            report.message = "No records to validate."
            return report

        sizes = np.array([eq_class.size for eq_class in equivalence_classes], dtype=np.int64)
        report.equivalence_class_count = len(equivalence_classes)
        report.total_records = int(sizes.sum())
        report.minimum_class_size = int(sizes.min())
        report.maximum_class_size = int(sizes.max())
        report.average_class_size = float(np.mean(sizes))
        report.median_class_size = float(np.median(sizes))
        uniq_sizes, counts = np.unique(sizes, return_counts=True)
        report.class_size_distribution = {
            int(size): int(count) for size, count in zip(uniq_sizes, counts)
        }
        report.violations = [
            KAnonymityViolation(eq_class.key, eq_class.size, k, k - eq_class.size)
            for eq_class in equivalence_classes
            if eq_class.size < k
        ]
        records_in_violations = sum(violation.size for violation in report.violations)
        report.suppression_rate = records_in_violations / report.total_records
        report.is_k_anonymized = not report.violations

        if report.is_k_anonymized:
            report.message = (
                f"Dataset satisfies {k}-anonymity. All {report.equivalence_class_count} "
                f"equivalence classes have at least {k} records."
            )
        else:
            report.message = (
                f"Dataset does NOT satisfy {k}-anonymity. Found {len(report.violations)} "
                f"equivalence classes with fewer than {k} records; "
                f"{100.0 * (1.0 - report.suppression_rate):.1f}% of records are in valid "
                "equivalence classes."
            )
            self.logger.warning(report.message)
        return report


def _check_k(k: int) -> None:
    if k < MINIMUM_K:
        raise PrivacyParameterError(
            f"k must be at least {MINIMUM_K} for meaningful privacy protection, got {k}"
        )
