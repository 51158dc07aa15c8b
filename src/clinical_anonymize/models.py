"""
Core value types shared by the engine and processors.

- ``AnonymizerMethod``: the configurable rule methods, used as dispatch keys.
- ``AnonymizationOperation``: the operation kinds a processor reports having applied.
- ``ProcessResult``: what one or more processor invocations did.
- ``ProcessContext``: per-run traversal state (visited node locations, rules).
- ``AnonymizationRule``: a resolved rule whose typed settings are built once.
"""

import logging
from collections import OrderedDict, namedtuple
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union

from clinical_anonymize.differential_privacy.settings import DifferentialPrivacySetting
from clinical_anonymize.document import ElementNode
from clinical_anonymize.k_anonymity.settings import KAnonymitySetting
from clinical_anonymize.node_lookup import PathPattern, parse_path_pattern


class AnonymizerMethod(Enum):
    """Rule methods, case-insensitive in configuration (``k-anonymity``, ``K_ANONYMITY``, ...)."""

    DATESHIFT = "dateshift"
    REDACT = "redact"
    CRYPTOHASH = "cryptohash"
    ENCRYPT = "encrypt"
    SUBSTITUTE = "substitute"
    PERTURB = "perturb"
    KEEP = "keep"
    GENERALIZE = "generalize"
    K_ANONYMITY = "kanonymity"
    DIFFERENTIAL_PRIVACY = "differentialprivacy"

    @classmethod
    def parse(cls, value: Union[str, "AnonymizerMethod"]) -> "AnonymizerMethod":
        if isinstance(value, AnonymizerMethod):
            return value
        normalized = str(value).strip().lower().replace("-", "").replace("_", "")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown anonymization method '{value}'") from None


class AnonymizationOperation(Enum):
    REDACT = "REDACT"
    ABSTRACT = "ABSTRACT"
    CRYPTOHASH = "CRYPTOHASH"
    ENCRYPT = "ENCRYPT"
    PERTURB = "PERTURB"
    SUBSTITUTE = "SUBSTITUTE"
    GENERALIZE = "GENERALIZE"
    K_ANONYMITY = "K-ANONYMITY"
    DIFFERENTIAL_PRIVACY = "DIFFERENTIAL-PRIVACY"


ProcessRecord = namedtuple("ProcessRecord", ["operation", "location"])


class ProcessResult:
    """
    Accumulated outcome of processor invocations.

    Records are kept in order. Privacy metrics are a flat name -> value mapping
    where later writes win. The ``is_k_anonymized`` and ``is_differentially_private``
    flags are only ever switched on.
    """

    def __init__(self) -> None:
        self.records: list[ProcessRecord] = []
        self.privacy_metrics: dict[str, Any] = {}
        self.is_k_anonymized = False
        self.is_differentially_private = False

    def add_process_record(
        self, operation: AnonymizationOperation, node: Optional[ElementNode] = None
    ) -> None:
        self.records.append(ProcessRecord(operation, node.location if node is not None else None))

    def add_privacy_metric(self, name: str, value: Any) -> None:
        self.privacy_metrics[name] = value

    def set_k_anonymized(self) -> None:
        self.is_k_anonymized = True

    def set_differentially_private(self) -> None:
        self.is_differentially_private = True

    def update(self, other: Optional["ProcessResult"]) -> "ProcessResult":
        """Merge ``other`` into this result and return this result."""
        if other is None:
            return self
        self.records.extend(other.records)
        self.privacy_metrics.update(other.privacy_metrics)
        self.is_k_anonymized = self.is_k_anonymized or other.is_k_anonymized
        self.is_differentially_private = (
            self.is_differentially_private or other.is_differentially_private
        )
        return self

    def operations(self) -> set[AnonymizationOperation]:
        return {record.operation for record in self.records}

    def has_operation(self, operation: AnonymizationOperation) -> bool:
        return any(record.operation is operation for record in self.records)

    @property
    def is_redacted(self) -> bool:
        return self.has_operation(AnonymizationOperation.REDACT)

    @property
    def is_abstracted(self) -> bool:
        return self.has_operation(AnonymizationOperation.ABSTRACT)

    @property
    def is_cryptohashed(self) -> bool:
        return self.has_operation(AnonymizationOperation.CRYPTOHASH)

    @property
    def is_encrypted(self) -> bool:
        return self.has_operation(AnonymizationOperation.ENCRYPT)

    @property
    def is_perturbed(self) -> bool:
        return self.has_operation(AnonymizationOperation.PERTURB)

    @property
    def is_substituted(self) -> bool:
        return self.has_operation(AnonymizationOperation.SUBSTITUTE)

    @property
    def is_generalized(self) -> bool:
        return self.has_operation(AnonymizationOperation.GENERALIZE)

    def process_record_map(self) -> "OrderedDict[AnonymizationOperation, list[Optional[str]]]":
        """Node locations grouped by operation, in first-seen operation order."""
        record_map: "OrderedDict[AnonymizationOperation, list[Optional[str]]]" = OrderedDict()
        for record in self.records:
            record_map.setdefault(record.operation, []).append(record.location)
        return record_map

    def __str__(self) -> str:
        lines = [
            f"ProcessResult(k_anonymized={self.is_k_anonymized}, "
            f"differentially_private={self.is_differentially_private})"
        ]
        for operation, locations in self.process_record_map().items():
            lines.append(f"  {operation.value}: {', '.join(str(loc) for loc in locations)}")
        for name, value in self.privacy_metrics.items():
            lines.append(f"  {name} = {value}")
        return "\n".join(lines)


class ProcessContext:
    """
    Traversal state for one anonymization run over one document.

    Parameters
    ----------
    rules : iterable of AnonymizationRule
        Rules to apply, in priority order.
    """

    def __init__(self, rules: Iterable["AnonymizationRule"] = ()) -> None:
        self.rules: list["AnonymizationRule"] = list(rules)
        self.visited_nodes: set[str] = set()

    def is_visited(self, node: ElementNode) -> bool:
        return node.location in self.visited_nodes

    def mark_visited(self, node: ElementNode) -> None:
        self.visited_nodes.add(node.location)

    def mark_subtree_visited(self, node: ElementNode) -> None:
        """Mark ``node`` and all its descendants visited."""
        self.mark_visited(node)
        for descendant in node.descendants():
            self.mark_visited(descendant)


class AnonymizationRule:
    """
    A resolved anonymization rule.

    Parameters
    ----------
    path : str
        Rule path in resource-scoped, type-scoped or name-scoped form.
    method : AnonymizerMethod or str
        Method to apply to matched nodes.
    settings : Any, optional
        Typed settings for privacy-certifying methods, a plain mapping otherwise.

    Raises
    ------
    ValueError
        If the path uses an unsupported relative expression or the method is unknown.
    """

    def __init__(
        self,
        path: str,
        method: Union[AnonymizerMethod, str],
        settings: Any = None,
    ) -> None:
        self.path = path
        self.method = AnonymizerMethod.parse(method)
        self.settings = settings
        self.pattern: Optional[PathPattern] = parse_path_pattern(path)

    def __repr__(self) -> str:
        return f"AnonymizationRule(path={self.path!r}, method={self.method.name})"

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        max_epsilon: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "AnonymizationRule":
        """
        Build a rule from a loose configuration mapping.

        The mapping holds ``path`` and ``method``; every other key is a setting.
        Settings for k-anonymity and differential privacy rules are validated and
        converted to ``KAnonymitySetting`` / ``DifferentialPrivacySetting`` here,
        so a misconfigured rule fails before any document is processed.

        Parameters
        ----------
        config : Mapping[str, Any]
            Rule configuration.
        max_epsilon : float, optional
            Policy upper bound for differential privacy epsilon.
        logger : logging.Logger, optional
            Logger for setting warnings.

        Raises
        ------
        ValueError
            If ``path`` or ``method`` is missing or invalid.
        PrivacyParameterError
            If privacy settings are invalid.
        """
        if "path" not in config or "method" not in config:
            raise ValueError(f"Rule configuration requires 'path' and 'method': {dict(config)}")
        method = AnonymizerMethod.parse(config["method"])
        raw_settings = {
            key: value for key, value in config.items() if key not in ("path", "method")
        }
        settings: Any = raw_settings
        if method is AnonymizerMethod.K_ANONYMITY:
            settings = KAnonymitySetting.from_rule_settings(raw_settings)
        elif method is AnonymizerMethod.DIFFERENTIAL_PRIVACY:
            settings = DifferentialPrivacySetting.from_rule_settings(
                raw_settings, max_epsilon=max_epsilon, logger=logger
            )
        return cls(str(config["path"]), method, settings)
