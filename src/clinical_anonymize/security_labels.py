"""
Security labels describing the anonymization applied to a document.

After a run, one ``Coding`` per executed operation kind is merged into the
document's ``meta.security`` list, using codes from the HL7 v3 ObservationValue
code system.
"""

from collections import namedtuple
from typing import Optional

from clinical_anonymize.constants import (
    META_ELEMENT_NAME,
    SECURITY_ELEMENT_NAME,
    SECURITY_LABEL_SYSTEM,
)
from clinical_anonymize.document import ElementNode
from clinical_anonymize.models import AnonymizationOperation, ProcessResult

SecurityLabel = namedtuple("SecurityLabel", ["code", "display"])

# Ordered as they are added to meta.security
SECURITY_LABELS: dict[AnonymizationOperation, SecurityLabel] = {
    AnonymizationOperation.REDACT: SecurityLabel("REDACTED", "redacted"),
    AnonymizationOperation.ABSTRACT: SecurityLabel("ABSTRED", "abstracted"),
    AnonymizationOperation.CRYPTOHASH: SecurityLabel("CRYTOHASH", "cryptographic hash function"),
    AnonymizationOperation.ENCRYPT: SecurityLabel("MASKED", "masked"),
    AnonymizationOperation.PERTURB: SecurityLabel(
        "PERTURBED", "exact value is replaced with another exact value"
    ),
    AnonymizationOperation.SUBSTITUTE: SecurityLabel("SUBSTITUTED", "substituted"),
    AnonymizationOperation.GENERALIZE: SecurityLabel(
        "GENERALIZED", "exact value is replaced with a range"
    ),
}


def _coding_node(label: SecurityLabel) -> ElementNode:
    return ElementNode(
        "Coding",
        SECURITY_ELEMENT_NAME,
        repeated=True,
        children=[
            ElementNode("uri", "system", value=SECURITY_LABEL_SYSTEM),
            ElementNode("code", "code", value=label.code),
            ElementNode("string", "display", value=label.display),
        ],
    )


def _existing_codes(meta: ElementNode) -> set[str]:
    codes = set()
    for coding in meta.children_named(SECURITY_ELEMENT_NAME):
        code = coding.child("code")
        if code is not None and code.value is not None:
            codes.add(str(code.value).lower())
    return codes


def add_security_labels(root: ElementNode, result: Optional[ProcessResult]) -> list[str]:
    """
    Merge security labels for the operations in ``result`` into ``root``'s metadata.

    Parameters
    ----------
    root : ElementNode
        Document root; a ``meta`` element is created when missing.
    result : ProcessResult
        Accumulated result of the run. Nothing changes when it holds no records.

    Returns
    -------
    list of str
        Codes that were added; codes already present (compared case-insensitively)
        are not duplicated.
    """
    if result is None or not result.records:
        return []
    operations = result.operations()
    labels = [label for operation, label in SECURITY_LABELS.items() if operation in operations]
    if not labels:
        return []
    meta = root.child(META_ELEMENT_NAME)
    existing_codes = _existing_codes(meta) if meta is not None else set()
    added = []
    for label in labels:
        if label.code.lower() in existing_codes:
            continue
        if meta is None:
            meta = root.add_child(ElementNode("Meta", META_ELEMENT_NAME))
        meta.add_child(_coding_node(label))
        existing_codes.add(label.code.lower())
        added.append(label.code)
    return added
