"""
Re-identification risk of a released batch.

Risks are computed from equivalence class sizes under three attacker models:

- prosecutor: the attacker knows a specific person is in the data; the risk is
  that of the most exposed record, ``max(1 / size)``.
- journalist: the attacker targets any record; the risk is the mean of
  ``1 / size`` over records, which equals classes / records.
- marketer: the attacker re-identifies as many records as possible; the risk is
  the fraction of records in classes whose ``1 / size`` reaches the high band.

Every risk is classified into Low / Medium / High bands with fixed thresholds.
"""

import logging
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import numba
import numpy as np

from clinical_anonymize.constants import HIGH_RISK_THRESHOLD, MEDIUM_RISK_THRESHOLD
from clinical_anonymize.disclosure_risk_metrics.equivalence_classes import (
    Document,
    EquivalenceClass,
    build_equivalence_classes,
    equivalence_classes_from_groups,
)


class RiskLevel(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def classify_risk(risk: float) -> RiskLevel:
    if risk >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if risk >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


@numba.jit(nopython=True)
def class_size_risks(
    sizes: np.ndarray, high_risk_threshold: float
) -> tuple[float, float, float, int, int]:
    """
    Compute risk statistics from equivalence class sizes in a single pass.

    Parameters
    ----------
    sizes : np.ndarray
        Positive int64 class sizes; must not be empty.
    high_risk_threshold : float
        Per-record risk at or above which a record counts towards marketer risk.

    Returns
    -------
    tuple[float, float, float, int, int]
        Prosecutor risk, journalist risk, marketer risk, number of size-1 classes
        and total number of records.
    """
    total_records = 0
    high_risk_records = 0
    unique_classes = 0
    prosecutor = 0.0
    for size in sizes:
        total_records += size
        record_risk = 1.0 / size
        if record_risk > prosecutor:
            prosecutor = record_risk
        if record_risk >= high_risk_threshold:
            high_risk_records += size
        if size == 1:
            unique_classes += 1
    journalist = len(sizes) / total_records
    marketer = high_risk_records / total_records
    return prosecutor, journalist, marketer, unique_classes, total_records


class ReidentificationRiskReport:
    """
    Re-identification risk of a batch.

    ``uniqueness_ratio`` is the number of size-1 classes over the number of
    records; ``unique_record_percentage`` is the same as a percentage.
    """

    def __init__(self) -> None:
        self.risk_level = RiskLevel.LOW
        self.total_records = 0
        self.equivalence_class_count = 0
        self.prosecutor_risk = 0.0
        self.prosecutor_risk_level = RiskLevel.LOW
        self.journalist_risk = 0.0
        self.journalist_risk_level = RiskLevel.LOW
        self.marketer_risk = 0.0
        self.marketer_risk_level = RiskLevel.LOW
        self.uniqueness_ratio = 0.0
        self.unique_record_count = 0
        self.unique_record_percentage = 0.0
        self.summary = ""
        self.recommendations: list[str] = []

    def __repr__(self) -> str:
        return (
            f"ReidentificationRiskReport(risk_level={self.risk_level.value}, "
            f"prosecutor={self.prosecutor_risk:.4f}, journalist={self.journalist_risk:.4f}, "
            f"marketer={self.marketer_risk:.4f}, records={self.total_records})"
        )


class ReidentificationRiskAssessor:
    """
    Assesses re-identification risk over a batch of anonymized documents.

    Parameters
    ----------
    logger : logging.Logger, optional
        Logger; defaults to this module's logger.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def assess_risk(
        self, documents: Iterable[Document], quasi_identifiers: Sequence[str]
    ) -> ReidentificationRiskReport:
        """
        Assess risk for ``documents`` grouped by ``quasi_identifiers``.

        Raises
        ------
        PrivacyParameterError
            If ``quasi_identifiers`` is empty.
        """
        equivalence_classes = build_equivalence_classes(
            documents, quasi_identifiers, logger=self.logger
        )
        return self._assess(equivalence_classes)

    def assess_risk_from_groups(
        self, groups: Union[Mapping[Any, int], Iterable[EquivalenceClass]]
    ) -> ReidentificationRiskReport:
        """Assess risk for precomputed equivalence classes (key -> size mapping or classes)."""
        return self._assess(equivalence_classes_from_groups(groups))

    def _assess(self, equivalence_classes: list[EquivalenceClass]) -> ReidentificationRiskReport:
        report = ReidentificationRiskReport()
        if not equivalence_classes:
            report.summary = "No records to assess."
            return report

        sizes = np.array([eq_class.size for eq_class in equivalence_classes], dtype=np.int64)
        prosecutor, journalist, marketer, unique_classes, total_records = class_size_risks(
            sizes, HIGH_RISK_THRESHOLD
        )
        report.total_records = int(total_records)
        report.equivalence_class_count = len(equivalence_classes)
        report.prosecutor_risk = float(prosecutor)
        report.journalist_risk = float(journalist)
        report.marketer_risk = float(marketer)
        report.unique_record_count = int(unique_classes)
        report.uniqueness_ratio = unique_classes / total_records
        report.unique_record_percentage = 100.0 * report.uniqueness_ratio

        report.prosecutor_risk_level = classify_risk(report.prosecutor_risk)
        report.journalist_risk_level = classify_risk(report.journalist_risk)
        report.marketer_risk_level = classify_risk(report.marketer_risk)
        report.risk_level = classify_risk(
            max(report.prosecutor_risk, report.journalist_risk, report.marketer_risk)
        )
        report.summary = self._summary(report)
        report.recommendations = self._recommendations(report, int(sizes.min()))
        if report.risk_level is RiskLevel.HIGH:
            self.logger.warning(report.summary)
        return report

    @staticmethod
    def _summary(report: ReidentificationRiskReport) -> str:
        summary = f"Overall re-identification risk: {report.risk_level.value}. "
        if report.risk_level is RiskLevel.HIGH:
            summary += "The dataset has significant re-identification risk. "
            if report.unique_record_count > 0:
                summary += (
                    f"Found {report.unique_record_count} unique records "
                    f"({report.unique_record_percentage:.1f}% of records). "
                )
        elif report.risk_level is RiskLevel.MEDIUM:
            summary += "The dataset has moderate re-identification risk. "
        else:
            return summary + (
                f"The dataset has low re-identification risk; all metrics are below "
                f"{MEDIUM_RISK_THRESHOLD:.0%}."
            )
        return summary + (
            f"Prosecutor risk: {report.prosecutor_risk:.1%}, "
            f"journalist risk: {report.journalist_risk:.1%}, "
            f"marketer risk: {report.marketer_risk:.1%}."
        )

    @staticmethod
    def _recommendations(report: ReidentificationRiskReport, minimum_class_size: int) -> list[str]:
        recommendations = []
        if report.risk_level is RiskLevel.HIGH:
            if report.unique_record_count > 0:
                recommendations.append(
                    f"Suppress or further generalize {report.unique_record_count} unique "
                    "equivalence classes."
                )
            if report.prosecutor_risk >= HIGH_RISK_THRESHOLD:
                recommendations.append(
                    f"Increase k from {minimum_class_size} to at least "
                    f"{int(round(1.0 / MEDIUM_RISK_THRESHOLD))} to reduce prosecutor risk."
                )
            recommendations.append(
                "Generalize quasi-identifiers further to increase equivalence class sizes."
            )
        elif report.risk_level is RiskLevel.MEDIUM:
            recommendations.append(
                "Consider increasing k or applying additional generalization for higher privacy."
            )
            if report.unique_record_count > 0:
                recommendations.append(
                    f"Review {report.unique_record_count} unique equivalence classes for "
                    "potential suppression."
                )
        else:
            recommendations.append("Current anonymization provides good privacy protection.")
            recommendations.append(
                "Monitor risk metrics if the dataset is updated or combined with other data."
            )
        return recommendations
