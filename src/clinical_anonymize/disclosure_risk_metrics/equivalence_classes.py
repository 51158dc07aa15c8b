"""
Grouping of anonymized documents into equivalence classes.

An equivalence class is the set of documents sharing identical values for all
quasi-identifiers. Quasi-identifier paths are dotted element paths such as
``Patient.address.postalCode``; a leading resource type is skipped and the first
item of every repeated element is used. Missing values group under ``[REDACTED]``.
"""

import json
import logging
from collections import namedtuple
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import pandas as pd

from clinical_anonymize.constants import REDACTED_VALUE
from clinical_anonymize.document import ElementNode
from clinical_anonymize.errors import PrivacyParameterError

EquivalenceClass = namedtuple("EquivalenceClass", ["key", "size"])

Document = Union[ElementNode, Mapping[str, Any]]


def _path_parts(path: str, resource_type: Optional[str]) -> list[str]:
    parts = path.split(".")
    if len(parts) > 1 and resource_type is not None and parts[0] == resource_type:
        return parts[1:]
    return parts


def _extract_from_node(root: ElementNode, path: str) -> Any:
    node: Optional[ElementNode] = root
    for part in _path_parts(path, root.instance_type):
        node = node.child(part) if node is not None else None
    if node is None:
        return None
    if node.children:
        return json.dumps(node.to_json(), sort_keys=True, default=str)
    return node.value


def _extract_from_json(root: Mapping[str, Any], path: str) -> Any:
    current: Any = root
    for part in _path_parts(path, root.get("resourceType")):
        if isinstance(current, list):
            current = current[0] if current else None
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    if isinstance(current, list):
        current = current[0] if current else None
    if isinstance(current, (Mapping, list)):
        return json.dumps(current, sort_keys=True, default=str)
    return current


def extract_quasi_identifier(document: Document, path: str) -> Any:
    """
    Value of one quasi-identifier in a document.

    Parameters
    ----------
    document : ElementNode or Mapping
        Document tree or its JSON representation.
    path : str
        Dotted quasi-identifier path.

    Returns
    -------
    Any
        The scalar value, a canonical JSON string for complex elements, or
        ``[REDACTED]`` when the element is missing or empty.
    """
    if isinstance(document, ElementNode):
        value = _extract_from_node(document, path)
    else:
        value = _extract_from_json(document, path)
    return REDACTED_VALUE if value is None else value


def quasi_identifier_frame(
    documents: Iterable[Document], quasi_identifiers: Sequence[str]
) -> pd.DataFrame:
    """One row per document, one column per (distinct) quasi-identifier path."""
    qids = list(dict.fromkeys(quasi_identifiers))
    rows = [[extract_quasi_identifier(document, qid) for qid in qids] for document in documents]
    return pd.DataFrame(rows, columns=qids, dtype=object)


def build_equivalence_classes(
    documents: Iterable[Document],
    quasi_identifiers: Sequence[str],
    logger: Optional[logging.Logger] = None,
) -> list[EquivalenceClass]:
    """
    Group documents into equivalence classes by their quasi-identifier values.

    Parameters
    ----------
    documents : iterable of ElementNode or Mapping
        Anonymized documents.
    quasi_identifiers : Sequence[str]
        Quasi-identifier paths; must not be empty.
    logger : logging.Logger, optional
        Logger for debug output.

    Returns
    -------
    list of EquivalenceClass
        One entry per distinct key tuple (in order of first appearance); empty
        when there are no documents.

    Raises
    ------
    PrivacyParameterError
        If ``quasi_identifiers`` is empty.
    """
    if not quasi_identifiers:
        raise PrivacyParameterError("At least one quasi-identifier path must be specified")
    logger = logger if logger is not None else logging.getLogger(__name__)
    qid_df = quasi_identifier_frame(documents, quasi_identifiers)
    if len(qid_df) == 0:
        return []
    sizes = qid_df.groupby(list(qid_df.columns), dropna=False, sort=False).size()
    equivalence_classes = [
        EquivalenceClass(key if isinstance(key, tuple) else (key,), int(size))
        for key, size in sizes.items()
    ]
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Built %d equivalence classes from %d documents over %s",
            len(equivalence_classes),
            len(qid_df),
            list(qid_df.columns),
        )
    return equivalence_classes


def equivalence_classes_from_groups(
    groups: Union[Mapping[Any, int], Iterable[EquivalenceClass]],
) -> list[EquivalenceClass]:
    """
    Normalize precomputed groups (key -> size mapping or EquivalenceClass items).

    Raises
    ------
    ValueError
        If a class size is negative.
    """
    items = groups.items() if isinstance(groups, Mapping) else groups
    equivalence_classes = []
    for key, size in items:
        if size < 0:
            raise ValueError(f"Equivalence class {key!r} has negative size {size}")
        if size > 0:
            equivalence_classes.append(EquivalenceClass(key, int(size)))
    return equivalence_classes
