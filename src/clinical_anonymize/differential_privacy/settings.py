"""
Validated differential privacy parameters.

Settings are built once from the loosely typed rule configuration at the
configuration boundary and validated before any randomness is drawn or any
budget is touched. Invalid values are rejected, never clamped.
"""

import logging
import math
from enum import Enum
from typing import Any, Mapping, Optional, Union

from clinical_anonymize.constants import DEFAULT_EPSILON_WARNING_THRESHOLD
from clinical_anonymize.errors import PrivacyParameterError

# rule setting keys
EPSILON_KEY = "epsilon"
DELTA_KEY = "delta"
SENSITIVITY_KEY = "sensitivity"
MECHANISM_KEY = "mechanism"
BUDGET_CONTEXT_KEY = "budgetContext"

DEFAULT_EPSILON = 0.1
DEFAULT_DELTA = 1e-5
DEFAULT_SENSITIVITY = 1.0


class DPMechanism(Enum):
    """Noise mechanisms for numeric fields."""

    LAPLACE = "laplace"
    GAUSSIAN = "gaussian"
    # Numeric fields fall back to the Laplace formula for this mechanism
    EXPONENTIAL = "exponential"

    @classmethod
    def parse(cls, value: Union[str, "DPMechanism"]) -> "DPMechanism":
        if isinstance(value, DPMechanism):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(mechanism.value for mechanism in cls)
            raise PrivacyParameterError(
                f"Unknown differential privacy mechanism '{value}'; expected one of: {allowed}"
            ) from None


def _parse_float(settings: Mapping[str, Any], key: str, default: float) -> float:
    value = settings.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise PrivacyParameterError(f"{key} must be numeric, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise PrivacyParameterError(f"{key} must be numeric, got {value!r}") from None


class DifferentialPrivacySetting:
    """
    Parameters for one differentially private rule.

    Parameters
    ----------
    budget_context : str
        Privacy budget context to consume epsilon from. Mandatory: there is no
        implicit default context, so unrelated datasets never share a budget by accident.
    epsilon : float, default=0.1
        Privacy loss parameter; must be > 0. Smaller values add more noise.
    delta : float, default=1e-5
        Failure probability for (epsilon, delta)-DP; must be in [0, 1), and > 0
        for the Gaussian mechanism.
    sensitivity : float, default=1.0
        Maximum change of the value caused by one record; must be > 0.
    mechanism : DPMechanism or str, default=DPMechanism.LAPLACE
        Noise mechanism.
    max_epsilon : float, optional
        Policy upper bound for epsilon; None means no upper bound.
    epsilon_warning_threshold : float, default=1.0
        Epsilon above which a weak-privacy warning is logged.
    logger : logging.Logger, optional
        Logger for the weak-privacy warning.

    Raises
    ------
    PrivacyParameterError
        If any parameter is invalid.
    """

    def __init__(
        self,
        budget_context: Optional[str],
        epsilon: float = DEFAULT_EPSILON,
        delta: float = DEFAULT_DELTA,
        sensitivity: float = DEFAULT_SENSITIVITY,
        mechanism: Union[DPMechanism, str] = DPMechanism.LAPLACE,
        max_epsilon: Optional[float] = None,
        epsilon_warning_threshold: float = DEFAULT_EPSILON_WARNING_THRESHOLD,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        logger = logger if logger is not None else logging.getLogger(__name__)
        mechanism = DPMechanism.parse(mechanism)
        if not math.isfinite(epsilon) or epsilon <= 0:
            raise PrivacyParameterError(
                f"Epsilon must be a finite value greater than 0, got {epsilon}. "
                "Smaller epsilon values provide stronger privacy but add more noise."
            )
        if max_epsilon is not None and epsilon > max_epsilon:
            raise PrivacyParameterError(
                f"Epsilon {epsilon} exceeds the configured maximum of {max_epsilon}"
            )
        if not math.isfinite(sensitivity) or sensitivity <= 0:
            raise PrivacyParameterError(
                f"Sensitivity must be a finite value greater than 0, got {sensitivity}"
            )
        if math.isnan(delta) or not 0 <= delta < 1:
            raise PrivacyParameterError(f"Delta must be >= 0 and < 1, got {delta}")
        if mechanism is DPMechanism.GAUSSIAN and delta <= 0:
            raise PrivacyParameterError("Delta must be greater than 0 for the Gaussian mechanism")
        if budget_context is None or not str(budget_context).strip():
            raise PrivacyParameterError(
                f"'{BUDGET_CONTEXT_KEY}' is required for differential privacy so that "
                "unrelated datasets never share a privacy budget"
            )
        if epsilon > epsilon_warning_threshold:
            logger.warning(
                "Epsilon %s is above %s and provides weak privacy protection",
                epsilon,
                epsilon_warning_threshold,
            )
        self.budget_context = str(budget_context)
        self.epsilon = float(epsilon)
        self.delta = float(delta)
        self.sensitivity = float(sensitivity)
        self.mechanism = mechanism

    def __repr__(self) -> str:
        return (
            f"DifferentialPrivacySetting(epsilon={self.epsilon}, delta={self.delta}, "
            f"sensitivity={self.sensitivity}, mechanism={self.mechanism.value}, "
            f"budget_context={self.budget_context!r})"
        )

    @classmethod
    def from_rule_settings(
        cls,
        settings: Mapping[str, Any],
        max_epsilon: Optional[float] = None,
        epsilon_warning_threshold: float = DEFAULT_EPSILON_WARNING_THRESHOLD,
        logger: Optional[logging.Logger] = None,
    ) -> "DifferentialPrivacySetting":
        """
        Build and validate a setting from a rule's settings map.

        Parameters
        ----------
        settings : Mapping[str, Any]
            Loosely typed rule settings using the keys ``epsilon``, ``delta``,
            ``sensitivity``, ``mechanism`` and ``budgetContext``. Numbers may be
            given as strings.
        max_epsilon : float, optional
            Policy upper bound for epsilon; None means unbounded.
        epsilon_warning_threshold : float, default=1.0
            Epsilon above which a warning is logged.
        logger : logging.Logger, optional
            Logger for warnings.

        Returns
        -------
        DifferentialPrivacySetting
            The validated setting.

        Raises
        ------
        PrivacyParameterError
            If any value is missing, unparseable or out of range.
        """
        mechanism = settings.get(MECHANISM_KEY)
        budget_context = settings.get(BUDGET_CONTEXT_KEY)
        return cls(
            budget_context=None if budget_context is None else str(budget_context),
            epsilon=_parse_float(settings, EPSILON_KEY, DEFAULT_EPSILON),
            delta=_parse_float(settings, DELTA_KEY, DEFAULT_DELTA),
            sensitivity=_parse_float(settings, SENSITIVITY_KEY, DEFAULT_SENSITIVITY),
            mechanism=DPMechanism.LAPLACE if mechanism is None else mechanism,
            max_epsilon=max_epsilon,
            epsilon_warning_threshold=epsilon_warning_threshold,
            logger=logger,
        )
