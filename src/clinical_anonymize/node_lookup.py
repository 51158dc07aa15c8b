"""
Node lookup index and rule path patterns.

The index is built once per top-level document with a full pre-order traversal
and maps instance types and element names to the nodes carrying them. Rule
paths come in three forms, tried in this order:

- resource-scoped ``Patient.address.postalCode``
- type-scoped ``Address::postalCode`` (type names start upper-case)
- name-scoped ``address::postalCode`` (element names start lower-case)

The expression after the scope is evaluated relative to the scoped node(s) with
``ElementNode.select``.
"""

import re
from collections import defaultdict, deque, namedtuple
from enum import Enum
from typing import Optional

from clinical_anonymize.document import ElementNode, is_supported_expression

PathPatternKind = Enum("PathPatternKind", ["RESOURCE", "TYPE", "NAME"])

PathPattern = namedtuple("PathPattern", ["kind", "key", "expression"])

_RESOURCE_PATTERN = re.compile(r"^(?P<key>[A-Z][a-zA-Z]+)\.(?P<expression>.+)$")
_TYPE_PATTERN = re.compile(r"^(?P<key>[A-Z][a-zA-Z]+)::(?P<expression>.*)$")
_NAME_PATTERN = re.compile(r"^(?P<key>[a-z][a-zA-Z]+)::(?P<expression>.*)$")

_PATTERNS = (
    (PathPatternKind.RESOURCE, _RESOURCE_PATTERN),
    (PathPatternKind.TYPE, _TYPE_PATTERN),
    (PathPatternKind.NAME, _NAME_PATTERN),
)


def parse_path_pattern(path: str) -> Optional[PathPattern]:
    """
    Parse a rule path into its scoped form.

    Parameters
    ----------
    path : str
        Rule path, e.g. ``Patient.address.postalCode`` or ``Quantity::value``.

    Returns
    -------
    PathPattern or None
        The first matching form, or None when the path matches none of them
        (such a rule matches no nodes).

    Raises
    ------
    ValueError
        If the path matches a form but its relative expression is unsupported.
    """
    for kind, pattern in _PATTERNS:
        match = pattern.match(path)
        if match is not None:
            expression = match.group("expression")
            if not is_supported_expression(expression):
                raise ValueError(f"Unsupported expression '{expression}' in rule path '{path}'")
            return PathPattern(kind, match.group("key"), expression)
    return None


class NodeLookupIndex:
    """
    Instance-type and element-name indexes over one document.

    Parameters
    ----------
    root : ElementNode
        Root of the document; it is indexed together with all its descendants.
    """

    def __init__(self, root: ElementNode) -> None:
        self.type_to_nodes: dict[str, list[ElementNode]] = defaultdict(list)
        self.name_to_nodes: dict[str, list[ElementNode]] = defaultdict(list)
        self._traverse(root)

    def _traverse(self, root: ElementNode) -> None:
        stack = deque([root])
        while stack:
            node = stack.pop()
            self.type_to_nodes[node.instance_type].append(node)
            if node.name:
                self.name_to_nodes[node.name].append(node)
            stack.extend(reversed(node.children))

    def nodes_by_type(self, instance_type: str) -> list[ElementNode]:
        return list(self.type_to_nodes.get(instance_type, []))

    def nodes_by_name(self, name: str) -> list[ElementNode]:
        return list(self.name_to_nodes.get(name, []))

    def match(self, pattern: Optional[PathPattern], root: ElementNode) -> list[ElementNode]:
        """
        Resolve a parsed path pattern to matching nodes.

        Parameters
        ----------
        pattern : PathPattern or None
            Parsed rule path; None matches nothing.
        root : ElementNode
            Root of the indexed document, used for resource-scoped patterns.

        Returns
        -------
        list of ElementNode
            Matched nodes, possibly empty.
        """
        if pattern is None:
            return []
        if pattern.kind is PathPatternKind.RESOURCE:
            if root.instance_type.lower() != pattern.key.lower():
                return []
            return root.select(pattern.expression)
        if pattern.kind is PathPatternKind.TYPE:
            scoped_nodes = self.nodes_by_type(pattern.key)
        else:
            scoped_nodes = self.nodes_by_name(pattern.key)
        if not pattern.expression:
            return scoped_nodes
        return [matched for node in scoped_nodes for matched in node.select(pattern.expression)]
