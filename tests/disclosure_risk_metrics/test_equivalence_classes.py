"""
Tests for equivalence class construction
"""

import json

import pytest

from clinical_anonymize.constants import REDACTED_VALUE
from clinical_anonymize.disclosure_risk_metrics.equivalence_classes import (
    EquivalenceClass,
    build_equivalence_classes,
    equivalence_classes_from_groups,
    extract_quasi_identifier,
    quasi_identifier_frame,
)
from clinical_anonymize.errors import PrivacyParameterError
from tests.shared import make_patient, make_patient_json

_QIDS = ["Patient.address.postalCode", "Patient.gender"]


class TestExtractQuasiIdentifier:
    """
    Tests for extract_quasi_identifier.
    """

    @pytest.mark.parametrize("as_node", [True, False])
    def test_scalar(self, as_node):
        document = make_patient() if as_node else make_patient_json()
        assert extract_quasi_identifier(document, "Patient.address.postalCode") == "98101"
        assert extract_quasi_identifier(document, "gender") == "female"

    @pytest.mark.parametrize("as_node", [True, False])
    def test_missing(self, as_node):
        document = make_patient(gender=None) if as_node else make_patient_json(gender=None)
        assert extract_quasi_identifier(document, "Patient.gender") == REDACTED_VALUE
        assert extract_quasi_identifier(document, "Patient.telecom.value") == REDACTED_VALUE

    def test_first_repeated_item(self):
        document = make_patient_json()
        document["address"].append({"postalCode": "10001"})
        assert extract_quasi_identifier(document, "Patient.address.postalCode") == "98101"

    @pytest.mark.parametrize("as_node", [True, False])
    def test_complex_value(self, as_node):
        document = make_patient() if as_node else make_patient_json()
        value = extract_quasi_identifier(document, "Patient.address")
        assert json.loads(value) == {"city": "Seattle", "postalCode": "98101"}

    def test_quasi_identifier_frame(self):
        documents = [make_patient(), make_patient(postal_code="98102")]
        frame = quasi_identifier_frame(documents, _QIDS + ["Patient.gender"])
        assert list(frame.columns) == _QIDS
        assert frame["Patient.address.postalCode"].tolist() == ["98101", "98102"]


class TestBuildEquivalenceClasses:
    """
    Tests for build_equivalence_classes.
    """

    def test_groups(self):
        documents = [
            make_patient(postal_code="981**", gender="f***"),
            make_patient(postal_code="981**", gender="f***"),
            make_patient(postal_code="982**", gender="m***"),
        ]
        classes = build_equivalence_classes(documents, _QIDS)
        assert classes == [
            EquivalenceClass(("981**", "f***"), 2),
            EquivalenceClass(("982**", "m***"), 1),
        ]

    def test_single_quasi_identifier(self):
        documents = [make_patient_json(gender="female"), make_patient_json(gender="male")]
        classes = build_equivalence_classes(documents, ["Patient.gender"])
        assert sorted(classes) == [
            EquivalenceClass(("female",), 1),
            EquivalenceClass(("male",), 1),
        ]

    def test_missing_values_group_together(self):
        documents = [
            make_patient(postal_code=None),
            make_patient(postal_code=None),
            make_patient(postal_code="98101"),
        ]
        classes = build_equivalence_classes(documents, ["Patient.address.postalCode"])
        assert EquivalenceClass((REDACTED_VALUE,), 2) in classes
        assert sum(eq_class.size for eq_class in classes) == 3

    def test_mixed_value_types(self):
        documents = [make_patient(multiple_birth=1), make_patient(multiple_birth=1)]
        classes = build_equivalence_classes(documents, ["Patient.multipleBirthInteger"])
        assert classes == [EquivalenceClass((1,), 2)]

    def test_empty_batch(self):
        assert build_equivalence_classes([], _QIDS) == []

    def test_no_quasi_identifiers(self):
        with pytest.raises(PrivacyParameterError):
            build_equivalence_classes([make_patient()], [])


class TestEquivalenceClassesFromGroups:
    """
    Tests for equivalence_classes_from_groups.
    """

    def test_mapping(self):
        classes = equivalence_classes_from_groups({("a",): 3, ("b",): 0})
        assert classes == [EquivalenceClass(("a",), 3)]

    def test_iterable(self):
        classes = equivalence_classes_from_groups([EquivalenceClass("a", 2), ("b", 5)])
        assert classes == [EquivalenceClass("a", 2), EquivalenceClass("b", 5)]

    def test_negative_size(self):
        with pytest.raises(ValueError, match="negative size"):
            equivalence_classes_from_groups({"a": -1})
