"""
Tests for security_labels
"""

from clinical_anonymize.constants import SECURITY_LABEL_SYSTEM
from clinical_anonymize.document import ElementNode
from clinical_anonymize.models import AnonymizationOperation, ProcessResult
from clinical_anonymize.security_labels import SECURITY_LABELS, add_security_labels
from tests.shared import make_patient, security_codes


def _result(*operations):
    result = ProcessResult()
    for operation in operations:
        result.add_process_record(operation)
    return result


class TestAddSecurityLabels:
    """
    Tests for add_security_labels.
    """

    def test_label_codes(self):
        assert {operation: label.code for operation, label in SECURITY_LABELS.items()} == {
            AnonymizationOperation.REDACT: "REDACTED",
            AnonymizationOperation.ABSTRACT: "ABSTRED",
            AnonymizationOperation.CRYPTOHASH: "CRYTOHASH",
            AnonymizationOperation.ENCRYPT: "MASKED",
            AnonymizationOperation.PERTURB: "PERTURBED",
            AnonymizationOperation.SUBSTITUTE: "SUBSTITUTED",
            AnonymizationOperation.GENERALIZE: "GENERALIZED",
        }

    def test_empty_result(self):
        root = make_patient()
        assert add_security_labels(root, ProcessResult()) == []
        assert add_security_labels(root, None) == []
        assert root.child("meta") is None

    def test_creates_meta(self):
        root = make_patient()
        added = add_security_labels(
            root,
            _result(AnonymizationOperation.PERTURB, AnonymizationOperation.REDACT),
        )
        assert added == ["REDACTED", "PERTURBED"]
        assert security_codes(root) == ["REDACTED", "PERTURBED"]
        coding = root.child("meta").child("security")
        assert coding.child("system").value == SECURITY_LABEL_SYSTEM
        assert coding.child("display").value == "redacted"
        assert root.to_json()["meta"]["security"][0]["code"] == "REDACTED"

    def test_only_certifying_operations(self):
        """Operations without a label code add nothing."""
        root = make_patient()
        added = add_security_labels(
            root,
            _result(
                AnonymizationOperation.K_ANONYMITY,
                AnonymizationOperation.DIFFERENTIAL_PRIVACY,
            ),
        )
        assert added == []
        assert root.child("meta") is None

    def test_no_duplicates(self):
        root = make_patient()
        add_security_labels(root, _result(AnonymizationOperation.ABSTRACT))
        added = add_security_labels(
            root, _result(AnonymizationOperation.ABSTRACT, AnonymizationOperation.ABSTRACT)
        )
        assert added == []
        assert security_codes(root) == ["ABSTRED"]

    def test_existing_labels_case_insensitive(self):
        root = ElementNode.from_json(
            {
                "resourceType": "Patient",
                "meta": {"security": [{"system": SECURITY_LABEL_SYSTEM, "code": "redacted"}]},
            }
        )
        added = add_security_labels(
            root, _result(AnonymizationOperation.REDACT, AnonymizationOperation.PERTURB)
        )
        assert added == ["PERTURBED"]
        assert security_codes(root) == ["redacted", "PERTURBED"]
