"""
Document node model for hierarchical clinical documents.

An ``ElementNode`` is a read/write handle to one element of a parsed document:
its instance type (``Patient``, ``Address``, ``string``, ``positiveInt``, ...),
its element name within the parent, an optional scalar value and its ordered
children. Parsing and serialization of the wire format belong to external
collaborators; ``ElementNode.from_json`` and ``ElementNode.to_json`` only cover
the FHIR-style JSON shape needed to hand documents to and from the engine.
"""

import re
from collections import deque
from typing import Any, Generator, Mapping, Optional

from first import first  # type: ignore[import-untyped]

# Element name -> instance type for JSON objects. Keys may be qualified with the
# parent's instance type ("Quantity.value") to disambiguate.
DEFAULT_COMPLEX_ELEMENT_TYPES: dict[str, str] = {
    "address": "Address",
    "name": "HumanName",
    "telecom": "ContactPoint",
    "identifier": "Identifier",
    "meta": "Meta",
    "security": "Coding",
    "tag": "Coding",
    "coding": "Coding",
    "code": "CodeableConcept",
    "valueCodeableConcept": "CodeableConcept",
    "valueQuantity": "Quantity",
    "quantity": "Quantity",
    "low": "Quantity",
    "high": "Quantity",
    "subject": "Reference",
    "patient": "Reference",
    "period": "Period",
    "extension": "Extension",
    "contact": "BackboneElement",
    "component": "BackboneElement",
    "referenceRange": "BackboneElement",
}

# Element name -> primitive type for JSON scalars; unlisted scalars are typed from
# their JSON representation.
DEFAULT_PRIMITIVE_ELEMENT_TYPES: dict[str, str] = {
    "id": "id",
    "gender": "code",
    "status": "code",
    "code": "code",
    "system": "uri",
    "birthDate": "date",
    "deceasedDateTime": "dateTime",
    "effectiveDateTime": "dateTime",
    "issued": "instant",
    "lastUpdated": "instant",
    "postalCode": "string",
    "valueInteger": "integer",
    "valueDecimal": "decimal",
    "valuePositiveInt": "positiveInt",
    "valueUnsignedInt": "unsignedInt",
    "multipleBirthInteger": "integer",
    "Quantity.value": "decimal",
}

_RELATIVE_EXPRESSION_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


def is_supported_expression(expression: str) -> bool:
    """
    Check whether a relative path expression can be evaluated by ``ElementNode.select``.

    Only empty expressions and dot-separated element names (``address.postalCode``)
    are supported.
    """
    return expression == "" or _RELATIVE_EXPRESSION_PATTERN.match(expression) is not None


class ElementNode:
    """
    One element of a hierarchical document.

    Parameters
    ----------
    instance_type : str
        Type name of the element, e.g. ``Patient`` or ``positiveInt``.
    name : str, optional
        Element name within the parent; ``None`` for a root resource.
    value : Any, optional
        Scalar value for primitive elements.
    children : list of ElementNode, optional
        Ordered children; each is re-parented to this node.
    repeated : bool, default False
        Whether the element is one item of a repeating (JSON array) element.
    is_resource : bool, default False
        Whether the element is a resource carrying a ``resourceType``.
    """

    def __init__(
        self,
        instance_type: str,
        name: Optional[str] = None,
        value: Any = None,
        children: Optional[list["ElementNode"]] = None,
        repeated: bool = False,
        is_resource: bool = False,
    ) -> None:
        self.instance_type = instance_type
        self.name = name
        self.value = value
        self.repeated = repeated
        self.is_resource = is_resource
        self.parent: Optional["ElementNode"] = None
        self._children: list["ElementNode"] = []
        for child in children or []:
            self.add_child(child)

    def __repr__(self) -> str:
        if self.value is not None:
            return f"ElementNode({self.location}: {self.instance_type} = {self.value!r})"
        return f"ElementNode({self.location}: {self.instance_type})"

    @property
    def children(self) -> list["ElementNode"]:
        """Ordered children; a copy, so callers may mutate the tree while iterating."""
        return list(self._children)

    def add_child(self, child: "ElementNode", index: Optional[int] = None) -> "ElementNode":
        """Attach ``child`` (at ``index`` if given, otherwise last) and return it."""
        child.parent = self
        if index is None:
            self._children.append(child)
        else:
            self._children.insert(index, child)
        return child

    def remove_child(self, child: "ElementNode") -> None:
        self._children.remove(child)
        child.parent = None

    def child(self, name: str) -> Optional["ElementNode"]:
        """First child with element name ``name``, if any."""
        return first(self._children, key=lambda node: node.name == name)

    def children_named(self, name: str) -> list["ElementNode"]:
        return [node for node in self._children if node.name == name]

    @property
    def location(self) -> str:
        """
        Stable location of this node within its document.

        The root's location is its instance type; every other node appends
        ``.name[i]`` where ``i`` is its index among same-named siblings, e.g.
        ``Patient.address[0].postalCode[0]``.
        """
        if self.parent is None:
            return self.instance_type if self.name is None else self.name
        index = 0
        for sibling in self.parent._children:
            if sibling is self:
                break
            if sibling.name == self.name:
                index += 1
        return f"{self.parent.location}.{self.name}[{index}]"

    def descendants(self) -> Generator["ElementNode", None, None]:
        """Yield every descendant in pre-order, excluding this node."""
        stack = deque(reversed(self._children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node._children))

    def select(self, expression: str) -> list["ElementNode"]:
        """
        Evaluate a relative path expression against this node.

        Parameters
        ----------
        expression : str
            Dot-separated element names; repeated elements fan out. An empty
            expression selects this node.

        Returns
        -------
        list of ElementNode
            Matching nodes in document order.

        Raises
        ------
        ValueError
            If the expression uses syntax beyond dotted element names.
        """
        if not is_supported_expression(expression):
            raise ValueError(f"Unsupported path expression: '{expression}'")
        if expression == "":
            return [self]
        nodes = [self]
        for step in expression.split("."):
            nodes = [child for node in nodes for child in node._children if child.name == step]
        return nodes

    @classmethod
    def from_json(
        cls,
        json_obj: Mapping[str, Any],
        complex_element_types: Optional[Mapping[str, str]] = None,
        primitive_element_types: Optional[Mapping[str, str]] = None,
    ) -> "ElementNode":
        """
        Build a node tree from a FHIR-style JSON object.

        Objects with a ``resourceType`` become resources of that type. Other
        objects and scalars are typed by element name using the given maps
        (defaulting to ``DEFAULT_COMPLEX_ELEMENT_TYPES`` and
        ``DEFAULT_PRIMITIVE_ELEMENT_TYPES``); unlisted scalars are typed from
        their JSON representation (boolean, integer, decimal, string).
        """
        complex_types = (
            DEFAULT_COMPLEX_ELEMENT_TYPES
            if complex_element_types is None
            else complex_element_types
        )
        primitive_types = (
            DEFAULT_PRIMITIVE_ELEMENT_TYPES
            if primitive_element_types is None
            else primitive_element_types
        )
        return _node_from_json(json_obj, None, None, False, complex_types, primitive_types)

    def to_json(self) -> Any:
        """
        Convert the node back to its JSON representation.

        Primitive elements whose value is ``None`` and that have no children are
        omitted from their parent, so suppressed values disappear from the output.
        """
        if not self._children:
            return self.value
        json_obj: dict[str, Any] = {}
        if self.is_resource:
            json_obj["resourceType"] = self.instance_type
        for child in self._children:
            if child.value is None and not child._children:
                continue
            child_json = child.to_json()
            if child.repeated:
                json_obj.setdefault(child.name, []).append(child_json)
            else:
                json_obj[child.name] = child_json
        return json_obj


def _lookup_type(
    element_types: Mapping[str, str], parent_type: Optional[str], name: Optional[str]
) -> Optional[str]:
    if name is None:
        return None
    if parent_type is not None and f"{parent_type}.{name}" in element_types:
        return element_types[f"{parent_type}.{name}"]
    return element_types.get(name)


def _primitive_type_from_value(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "decimal"
    return "string"


def _node_from_json(
    json_value: Any,
    name: Optional[str],
    parent_type: Optional[str],
    repeated: bool,
    complex_types: Mapping[str, str],
    primitive_types: Mapping[str, str],
) -> ElementNode:
    if isinstance(json_value, Mapping):
        resource_type = json_value.get("resourceType")
        if resource_type is not None:
            node = ElementNode(resource_type, name, repeated=repeated, is_resource=True)
        else:
            instance_type = _lookup_type(complex_types, parent_type, name) or "Element"
            node = ElementNode(instance_type, name, repeated=repeated)
        for child_name, child_value in json_value.items():
            if child_name == "resourceType":
                continue
            if isinstance(child_value, list):
                for item in child_value:
                    node.add_child(
                        _node_from_json(
                            item,
                            child_name,
                            node.instance_type,
                            True,
                            complex_types,
                            primitive_types,
                        )
                    )
            else:
                node.add_child(
                    _node_from_json(
                        child_value,
                        child_name,
                        node.instance_type,
                        False,
                        complex_types,
                        primitive_types,
                    )
                )
        return node
    instance_type = _lookup_type(primitive_types, parent_type, name) or _primitive_type_from_value(
        json_value
    )
    return ElementNode(instance_type, name, value=json_value, repeated=repeated)
