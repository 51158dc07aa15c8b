"""
Error taxonomy for clinical document anonymization.

Configuration and parameter problems are ``ValueError`` subclasses raised before
any node is touched. Budget exhaustion is a recoverable ``RuntimeError`` that
aborts a single operation. Consuming from a budget context that was never
initialized is a usage error and is never defaulted.
"""


class AnonymizationError(Exception):
    """Base class for all errors raised by this package."""


class PrivacyParameterError(AnonymizationError, ValueError):
    """Invalid privacy parameter (epsilon, delta, sensitivity, k, quasi-identifiers, ...)."""


class PrivacyBudgetExhaustedError(AnonymizationError, RuntimeError):
    """
    A differential privacy operation was denied because it would exceed the budget.

    Parameters
    ----------
    context : str
        Budget context the consumption was attempted against.
    epsilon : float
        Epsilon that was requested.
    remaining : float
        Budget remaining in the context when the request was denied.
    """

    def __init__(self, context: str, epsilon: float, remaining: float) -> None:
        super().__init__(
            f"Privacy budget exceeded for context '{context}': "
            f"requested epsilon {epsilon}, remaining budget {remaining}"
        )
        self.context = context
        self.epsilon = epsilon
        self.remaining = remaining


class BudgetContextNotInitializedError(AnonymizationError, KeyError):
    """A budget context was used before ``PrivacyBudgetTracker.initialize`` was called for it."""

    def __init__(self, context: str) -> None:
        super().__init__(context)
        self.context = context

    def __str__(self) -> str:
        return (
            f"Privacy budget not initialized for context '{self.context}'. "
            "Call initialize() before consuming or inspecting the budget."
        )
