"""
Privacy budget accounting.

``PrivacyBudgetTracker`` keeps one epsilon ledger per caller-chosen context.
Contexts must be initialized explicitly; consumption is additive (sequential
composition) and every state change is appended to an in-memory audit log and
logged with a ``[PRIVACY AUDIT]`` prefix.

The tracker is a plain object: create one per pipeline and hand it to every
differential privacy processor that should draw from it.
"""

import logging
import re
import threading
from collections import namedtuple
from datetime import datetime, timezone
from typing import Optional

from clinical_anonymize.constants import DEFAULT_BUDGET_WARNING_THRESHOLD, FLOAT_TOLERANCE
from clinical_anonymize.errors import BudgetContextNotInitializedError, PrivacyParameterError

BudgetAuditEntry = namedtuple(
    "BudgetAuditEntry",
    [
        "timestamp",
        "operation",
        "context",
        "epsilon",
        "total_consumed",
        "remaining",
        "total_budget",
        "success",
    ],
)

# Recommended form is dataset-id:operation-id:timestamp
CONTEXT_NAMING_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_:\-]*[a-zA-Z0-9]$")
GENERIC_CONTEXT_NAMES = frozenset(["default", "global", "shared"])
_PATH_TRAVERSAL_SUBSTRINGS = ("../", "..\\")


def validate_budget_context(
    context: Optional[str], strict: bool = False, logger: Optional[logging.Logger] = None
) -> bool:
    """
    Check a budget context name against the recommended naming convention.

    Parameters
    ----------
    context : str
        Context name.
    strict : bool, default False
        Raise on convention violations instead of logging a warning.
    logger : logging.Logger, optional
        Logger for warnings.

    Returns
    -------
    bool
        True if the name follows the convention, False if it was only warned about.

    Raises
    ------
    PrivacyParameterError
        If the name is blank, or in strict mode if it is generic, contains a path
        traversal sequence or does not match ``CONTEXT_NAMING_PATTERN``.
    """
    logger = logger if logger is not None else logging.getLogger(__name__)
    if context is None or not context.strip():
        raise PrivacyParameterError("Budget context cannot be empty")
    problems = []
    if context.strip().lower() in GENERIC_CONTEXT_NAMES:
        problems.append("is a generic name shared across datasets")
    if any(substring in context for substring in _PATH_TRAVERSAL_SUBSTRINGS):
        problems.append("contains a path traversal sequence")
    if not CONTEXT_NAMING_PATTERN.match(context):
        problems.append(
            "does not follow the 'dataset-id:operation-id:timestamp' convention "
            "(alphanumerics, hyphens, underscores and colons)"
        )
    if not problems:
        return True
    message = f"Budget context '{context}' " + "; ".join(problems)
    if strict:
        logger.error("[PRIVACY AUDIT SECURITY] %s", message)
        raise PrivacyParameterError(message)
    logger.warning("[PRIVACY AUDIT WARNING] %s", message)
    return False


class _BudgetLedger:
    __slots__ = ("total", "consumed", "initialized_at", "audit_log")

    def __init__(self, total: float, initialized_at: datetime) -> None:
        self.total = total
        self.consumed = 0.0
        self.initialized_at = initialized_at
        self.audit_log: list[BudgetAuditEntry] = []


class PrivacyBudgetTracker:
    """
    Thread-safe per-context epsilon ledger with an audit trail.

    Parameters
    ----------
    logger : logging.Logger, optional
        Audit logger; defaults to this module's logger.
    warning_threshold : float, default=0.8
        Fraction of the total budget at which a context counts as approaching its limit.
    enforce_context_naming_convention : bool, default False
        Reject context names that break the naming convention at initialization
        instead of only warning.

    Raises
    ------
    ValueError
        If ``warning_threshold`` is not in (0, 1].
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        warning_threshold: float = DEFAULT_BUDGET_WARNING_THRESHOLD,
        enforce_context_naming_convention: bool = False,
    ) -> None:
        if not 0 < warning_threshold <= 1:
            raise ValueError(f"warning_threshold must be in (0, 1], got {warning_threshold}")
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.warning_threshold = warning_threshold
        self.enforce_context_naming_convention = enforce_context_naming_convention
        self._ledgers: dict[str, _BudgetLedger] = {}
        self._lock = threading.Lock()

    def _ledger(self, context: str) -> _BudgetLedger:
        ledger = self._ledgers.get(context)
        if ledger is None:
            raise BudgetContextNotInitializedError(context)
        return ledger

    @staticmethod
    def _entry(
        ledger: _BudgetLedger,
        timestamp: datetime,
        operation: str,
        context: str,
        epsilon: float,
        success: bool,
    ) -> BudgetAuditEntry:
        return BudgetAuditEntry(
            timestamp=timestamp,
            operation=operation,
            context=context,
            epsilon=epsilon,
            total_consumed=ledger.consumed,
            remaining=max(0.0, ledger.total - ledger.consumed),
            total_budget=ledger.total,
            success=success,
        )

    def initialize(self, context: str, total_budget: float) -> None:
        """
        Create (or re-create) a context with ``total_budget`` epsilon and nothing consumed.

        Raises
        ------
        PrivacyParameterError
            If ``total_budget`` is not > 0 or the context name is rejected.
        """
        validate_budget_context(
            context, strict=self.enforce_context_naming_convention, logger=self.logger
        )
        if not total_budget > 0:
            raise PrivacyParameterError(f"Total budget must be greater than 0, got {total_budget}")
        timestamp = datetime.now(timezone.utc)
        ledger = _BudgetLedger(float(total_budget), timestamp)
        ledger.audit_log.append(self._entry(ledger, timestamp, "initialize", context, 0.0, True))
        with self._lock:
            self._ledgers[context] = ledger
        self.logger.info(
            "[PRIVACY AUDIT] Budget initialized for context '%s': total=%s", context, total_budget
        )

    def consume(self, context: str, epsilon: float) -> bool:
        """
        Atomically consume ``epsilon`` from ``context``.

        Parameters
        ----------
        context : str
            Initialized budget context.
        epsilon : float
            Amount to consume; must be > 0.

        Returns
        -------
        bool
            True if committed, False if it would exceed the total (nothing is consumed).

        Raises
        ------
        PrivacyParameterError
            If ``epsilon`` is not > 0.
        BudgetContextNotInitializedError
            If ``context`` was never initialized.
        """
        if not epsilon > 0:
            raise PrivacyParameterError(f"Epsilon to consume must be greater than 0, got {epsilon}")
        with self._lock:
            ledger = self._ledgers.get(context)
            if ledger is None:
                self.logger.error(
                    "[PRIVACY AUDIT] Attempted to consume budget for uninitialized context '%s'",
                    context,
                )
                raise BudgetContextNotInitializedError(context)
            timestamp = datetime.now(timezone.utc)
            new_consumed = ledger.consumed + epsilon
            success = new_consumed <= ledger.total + FLOAT_TOLERANCE
            if success:
                ledger.consumed = min(new_consumed, ledger.total)
            entry = self._entry(ledger, timestamp, "consume", context, epsilon, success)
            ledger.audit_log.append(entry)
        if success:
            self.logger.info(
                "[PRIVACY AUDIT] Budget consumed for context '%s': epsilon=%.6f, total=%.6f/%.6f, "
                "remaining=%.6f",
                context,
                epsilon,
                entry.total_consumed,
                entry.total_budget,
                entry.remaining,
            )
            if self.is_approaching_limit(context):
                self.logger.warning(
                    "[PRIVACY AUDIT WARNING] Budget approaching limit for context '%s': "
                    "consumed=%.6f/%.6f (%.1f%%)",
                    context,
                    entry.total_consumed,
                    entry.total_budget,
                    100.0 * entry.total_consumed / entry.total_budget,
                )
        else:
            self.logger.error(
                "[PRIVACY AUDIT DENIED] Budget exceeded for context '%s': attempted=%.6f, "
                "would total=%.6f, limit=%.6f, remaining=%.6f",
                context,
                epsilon,
                new_consumed,
                entry.total_budget,
                entry.remaining,
            )
        return success

    def get_remaining(self, context: str) -> float:
        ledger = self._ledger(context)
        return max(0.0, ledger.total - ledger.consumed)

    def get_consumed(self, context: str) -> float:
        return self._ledger(context).consumed

    def get_total(self, context: str) -> float:
        return self._ledger(context).total

    def get_utilization(self, context: str) -> float:
        """Consumed fraction of the total in [0, 1]; 0.0 for uninitialized contexts."""
        ledger = self._ledgers.get(context)
        if ledger is None:
            return 0.0
        return min(1.0, ledger.consumed / ledger.total)

    def is_initialized(self, context: str) -> bool:
        return context in self._ledgers

    def is_approaching_limit(self, context: str) -> bool:
        ledger = self._ledgers.get(context)
        if ledger is None:
            return False
        return ledger.consumed >= self.warning_threshold * ledger.total - FLOAT_TOLERANCE

    def reset(self, context: str) -> None:
        """
        Zero the consumption of one context, keeping its audit history.

        Raises
        ------
        BudgetContextNotInitializedError
            If ``context`` was never initialized.
        """
        with self._lock:
            ledger = self._ledger(context)
            ledger.consumed = 0.0
            timestamp = datetime.now(timezone.utc)
            ledger.audit_log.append(self._entry(ledger, timestamp, "reset", context, 0.0, True))
        self.logger.info("[PRIVACY AUDIT] Budget reset for context '%s'", context)

    def reset_all(self) -> None:
        """
        Zero the consumption of every context.

        This is the only operation that discards audit history: each context's log
        is replaced by a single ``reset_all`` entry.
        """
        timestamp = datetime.now(timezone.utc)
        with self._lock:
            for context, ledger in self._ledgers.items():
                ledger.consumed = 0.0
                ledger.audit_log = [
                    self._entry(ledger, timestamp, "reset_all", context, 0.0, True)
                ]
            context_count = len(self._ledgers)
        self.logger.warning("[PRIVACY AUDIT] All budgets reset (%d contexts)", context_count)

    def get_audit_log(self, context: str) -> tuple[BudgetAuditEntry, ...]:
        """Audit entries of ``context`` in order; empty for uninitialized contexts."""
        ledger = self._ledgers.get(context)
        if ledger is None:
            return ()
        with self._lock:
            return tuple(ledger.audit_log)

    def get_initialization_timestamp(self, context: str) -> Optional[datetime]:
        ledger = self._ledgers.get(context)
        return ledger.initialized_at if ledger is not None else None

    def contexts(self) -> list[str]:
        return list(self._ledgers)
