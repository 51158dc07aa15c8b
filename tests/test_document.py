"""
Tests for document
"""

import pytest

from clinical_anonymize.document import ElementNode, is_supported_expression
from tests.shared import make_observation, make_patient, make_patient_json


class TestElementNodeFromJson:
    """
    Tests for building node trees from JSON.
    """

    def test_resource_root(self):
        root = make_patient()
        assert root.instance_type == "Patient"
        assert root.is_resource
        assert root.name is None
        assert root.location == "Patient"

    def test_element_types(self):
        root = make_patient()
        assert root.child("id").instance_type == "id"
        assert root.child("gender").instance_type == "code"
        assert root.child("birthDate").instance_type == "date"
        address = root.child("address")
        assert address.instance_type == "Address"
        assert address.repeated
        assert address.child("postalCode").instance_type == "string"
        assert address.child("postalCode").value == "98101"

    def test_scalar_types_from_json(self):
        """Unlisted scalars are typed from their JSON representation."""
        root = ElementNode.from_json(
            {"resourceType": "Basic", "flag": True, "count": 3, "ratio": 0.5, "note": "x"}
        )
        assert root.child("flag").instance_type == "boolean"
        assert root.child("count").instance_type == "integer"
        assert root.child("ratio").instance_type == "decimal"
        assert root.child("note").instance_type == "string"

    def test_qualified_element_type(self):
        """Quantity.value is typed as decimal even when the JSON holds an integer."""
        root = make_observation(value=72)
        value_node = root.child("valueQuantity").child("value")
        assert value_node.instance_type == "decimal"
        assert value_node.value == 72

    def test_custom_element_types(self):
        root = ElementNode.from_json(
            {"resourceType": "Patient", "extra": {"score": 4}},
            complex_element_types={"extra": "Score"},
            primitive_element_types={"Score.score": "positiveInt"},
        )
        assert root.child("extra").instance_type == "Score"
        assert root.child("extra").child("score").instance_type == "positiveInt"

    def test_round_trip(self):
        patient_json = make_patient_json()
        assert ElementNode.from_json(patient_json).to_json() == patient_json

    def test_to_json_omits_suppressed_values(self):
        root = make_patient()
        root.child("address").child("postalCode").value = None
        patient_json = root.to_json()
        assert "postalCode" not in patient_json["address"][0]
        assert patient_json["address"][0]["city"] == "Seattle"


class TestElementNodeNavigation:
    """
    Tests for locations, children and relative path expressions.
    """

    def test_locations(self):
        root = ElementNode.from_json(
            {
                "resourceType": "Patient",
                "address": [{"postalCode": "98101"}, {"postalCode": "98102"}],
            }
        )
        postal_codes = root.select("address.postalCode")
        assert [node.location for node in postal_codes] == [
            "Patient.address[0].postalCode[0]",
            "Patient.address[1].postalCode[0]",
        ]

    def test_locations_are_unique(self):
        root = make_observation()
        locations = [root.location] + [node.location for node in root.descendants()]
        assert len(locations) == len(set(locations))

    def test_descendants_pre_order(self):
        root = make_patient(gender=None, birth_date=None, city="Seattle", postal_code="98101")
        assert [node.name for node in root.descendants()] == [
            "id",
            "address",
            "city",
            "postalCode",
        ]

    def test_add_and_remove_child(self):
        root = make_patient()
        child = root.add_child(ElementNode("string", "note", value="x"), index=0)
        assert root.children[0] is child
        assert child.parent is root
        root.remove_child(child)
        assert child.parent is None
        assert root.child("note") is None

    def test_children_is_a_copy(self):
        root = make_patient()
        children = root.children
        children.clear()
        assert root.children

    def test_select_empty_expression(self):
        root = make_patient()
        assert root.select("") == [root]

    def test_select_no_match(self):
        assert make_patient().select("telecom.value") == []

    def test_select_unsupported_expression(self):
        with pytest.raises(ValueError, match="Unsupported path expression"):
            make_patient().select("address.where(use='home')")

    def test_is_supported_expression(self):
        assert is_supported_expression("")
        assert is_supported_expression("address.postalCode")
        assert not is_supported_expression("address[0]")
        assert not is_supported_expression("name.first()")

    def test_repr(self):
        root = make_patient()
        assert repr(root.child("gender")) == "ElementNode(Patient.gender[0]: code = 'female')"
        assert repr(root) == "ElementNode(Patient: Patient)"
