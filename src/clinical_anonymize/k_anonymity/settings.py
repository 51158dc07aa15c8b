"""
Validated k-anonymity rule parameters.
"""

from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

from clinical_anonymize.errors import PrivacyParameterError
from clinical_anonymize.gtrees import GTree, make_hierarchy_gtree

# rule setting keys
K_KEY = "k"
QUASI_IDENTIFIERS_KEY = "quasiIdentifiers"
GENERALIZATION_STRATEGY_KEY = "generalizationStrategy"
SUPPRESSION_STRATEGY_KEY = "suppressionStrategy"
GENERALIZATION_HIERARCHY_KEY = "generalizationHierarchy"
GENERALIZATION_LEVEL_KEY = "generalizationLevel"

DEFAULT_K = 5
MINIMUM_K = 2


class GeneralizationStrategy(Enum):
    RANGE = "range"
    HIERARCHY = "hierarchy"
    SUPPRESSION = "suppression"


class SuppressionStrategy(Enum):
    # Both currently remove the value
    REDACT = "redact"
    REMOVE = "remove"


def _parse_enum(enum_cls: Any, value: Any, key: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise PrivacyParameterError(
            f"Unknown {key} '{value}'; expected one of: {allowed}"
        ) from None


def _parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise PrivacyParameterError(f"{key} must be an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise PrivacyParameterError(f"{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise PrivacyParameterError(f"{key} must be an integer, got {value!r}") from None


def _parse_quasi_identifiers(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        candidates: Sequence[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        candidates = value
    else:
        raise PrivacyParameterError(
            f"{QUASI_IDENTIFIERS_KEY} must be a list or a comma-separated string, got {value!r}"
        )
    return [str(candidate).strip() for candidate in candidates if str(candidate).strip()]


class KAnonymitySetting:
    """
    Parameters for one k-anonymity rule.

    Parameters
    ----------
    quasi_identifiers : sequence of str
        Quasi-identifier paths (``Patient.address.postalCode``); must not be empty.
    k : int, default=5
        Minimum equivalence class size; must be >= 2.
    generalization_strategy : GeneralizationStrategy or str, default="range"
        How matched values are generalized.
    suppression_strategy : SuppressionStrategy or str, default="redact"
        How the suppression strategy removes values.
    generalization_hierarchy : Mapping[Any, Sequence[Any]] or GTree, optional
        Value -> ancestors (specific to general) for the hierarchy strategy.
    generalization_level : int, default=1
        Number of hierarchy levels to generalize by.

    Raises
    ------
    PrivacyParameterError
        If any parameter is invalid.
    """

    def __init__(
        self,
        quasi_identifiers: Sequence[str],
        k: int = DEFAULT_K,
        generalization_strategy: Union[GeneralizationStrategy, str] = GeneralizationStrategy.RANGE,
        suppression_strategy: Union[SuppressionStrategy, str] = SuppressionStrategy.REDACT,
        generalization_hierarchy: Optional[Union[Mapping[Any, Sequence[Any]], GTree]] = None,
        generalization_level: int = 1,
    ) -> None:
        if k < MINIMUM_K:
            raise PrivacyParameterError(
                f"k must be at least {MINIMUM_K} for meaningful privacy protection, got {k}"
            )
        if not quasi_identifiers:
            raise PrivacyParameterError("At least one quasi-identifier is required for k-anonymity")
        if generalization_level < 1:
            raise PrivacyParameterError(
                f"{GENERALIZATION_LEVEL_KEY} must be >= 1, got {generalization_level}"
            )
        self.k = k
        self.quasi_identifiers = list(quasi_identifiers)
        self.generalization_strategy = _parse_enum(
            GeneralizationStrategy, generalization_strategy, GENERALIZATION_STRATEGY_KEY
        )
        self.suppression_strategy = _parse_enum(
            SuppressionStrategy, suppression_strategy, SUPPRESSION_STRATEGY_KEY
        )
        self.generalization_level = generalization_level
        self.generalization_hierarchy: Optional[GTree] = None
        if isinstance(generalization_hierarchy, GTree):
            self.generalization_hierarchy = generalization_hierarchy
        elif generalization_hierarchy:
            try:
                self.generalization_hierarchy = make_hierarchy_gtree(generalization_hierarchy)
            except (TypeError, ValueError) as exc:
                raise PrivacyParameterError(
                    f"Invalid {GENERALIZATION_HIERARCHY_KEY}: {exc}"
                ) from exc

    def __repr__(self) -> str:
        return (
            f"KAnonymitySetting(k={self.k}, quasi_identifiers={self.quasi_identifiers}, "
            f"generalization_strategy={self.generalization_strategy.value}, "
            f"suppression_strategy={self.suppression_strategy.value})"
        )

    @classmethod
    def from_rule_settings(cls, settings: Mapping[str, Any]) -> "KAnonymitySetting":
        """
        Build and validate a setting from a rule's settings map.

        ``k`` may be given as a number or numeric string; ``quasiIdentifiers`` as a
        list or a comma-separated string.
        """
        hierarchy = settings.get(GENERALIZATION_HIERARCHY_KEY)
        if hierarchy is not None and not isinstance(hierarchy, (Mapping, GTree)):
            raise PrivacyParameterError(
                f"{GENERALIZATION_HIERARCHY_KEY} must map values to lists of ancestors"
            )
        if isinstance(hierarchy, Mapping):
            hierarchy = {
                value: [ancestors] if isinstance(ancestors, str) else list(ancestors or [])
                for value, ancestors in hierarchy.items()
            }
        strategy = settings.get(GENERALIZATION_STRATEGY_KEY)
        suppression = settings.get(SUPPRESSION_STRATEGY_KEY)
        return cls(
            quasi_identifiers=_parse_quasi_identifiers(settings.get(QUASI_IDENTIFIERS_KEY)),
            k=_parse_int(settings.get(K_KEY, DEFAULT_K), K_KEY),
            generalization_strategy=GeneralizationStrategy.RANGE if strategy is None else strategy,
            suppression_strategy=SuppressionStrategy.REDACT if suppression is None else suppression,
            generalization_hierarchy=hierarchy,
            generalization_level=_parse_int(
                settings.get(GENERALIZATION_LEVEL_KEY, 1), GENERALIZATION_LEVEL_KEY
            ),
        )
