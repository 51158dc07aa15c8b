"""
Classes and functions to represent and use generalization trees.

A generalization tree places specific values at the leaves and increasingly
general values towards the root ("*"). The hierarchy generalization strategy
replaces a quasi-identifier value with one of its ancestors, e.g. ``98101`` ->
``981**`` -> ``98***`` -> ``*``.
"""

from collections import deque
from typing import Any, Mapping, Optional, Sequence

from treelib import (
    Node,  # type: ignore[reportPrivateImportUsage]  # Node is publicly exported from treelib
    Tree,  # type: ignore[reportPrivateImportUsage]  # Tree is publicly exported from treelib
)

from clinical_anonymize.constants import GTREE_ROOT_TAG


class GTree(Tree):
    """
    Generalization tree for hierarchical value generalization.

    This class extends treelib.Tree with value-based lookups: node tags hold the
    values, and each value maps to the lowest node carrying it.

    Attributes
    ----------
    value_to_lowest_node_nid : dict
        Maps values to the identifier of the deepest node with that value
    """

    def __init__(
        self,
        tree: Optional["GTree"] = None,
        identifier: Optional[str] = None,
        deep: bool = True,
    ) -> None:
        super().__init__(tree=tree, deep=deep, identifier=identifier)
        self.value_to_lowest_node_nid: dict[Any, str] = {}
        if tree is not None:
            self.value_to_lowest_node_nid = dict(tree.value_to_lowest_node_nid)

    def pprint(self) -> str:
        """Return a pretty (multi-line) string representation of the tree."""
        result = self.show(stdout=False)
        return str(result) if result is not None else ""

    def create_node(  # type: ignore[override]
        self,
        value: Any,
        parent: Optional[Node] = None,
        identifier: Optional[str] = None,
    ) -> Node:  # pylint: disable=arguments-differ,arguments-renamed
        """
        Create a new node in the generalization tree.

        Parameters
        ----------
        value : Any
            Value of the node. Must be hashable since it's used as a dictionary key.
        parent : Node, optional
            Parent node to which this node will be attached, by default None
        identifier : str, optional
            Unique identifier for the node, by default None

        Returns
        -------
        Node
            The newly created Node object

        Notes
        -----
        The value lookup is rebuilt lazily since the tree structure has changed.
        """
        self.value_to_lowest_node_nid = {}
        return super().create_node(tag=value, identifier=identifier, parent=parent)

    def remove_node(self, identifier: str) -> None:  # type: ignore[override]
        self.value_to_lowest_node_nid = {}
        super().remove_node(identifier)

    def update_lowest_node_with_value_if(self) -> bool:
        """
        Build the value -> lowest node mapping if it is not populated.

        Returns
        -------
        bool
            True if the mapping was updated, False if it was already populated
        """
        if not self.value_to_lowest_node_nid:
            queue = deque([self.root] if self.root is not None else [])
            while queue:
                nid = queue.popleft()
                node = self.get_node(nid)
                assert node is not None
                # breadth first, so deeper nodes overwrite shallower ones
                self.value_to_lowest_node_nid[self.get_value(node)] = node.identifier
                queue.extend([child.identifier for child in self.children(nid)])
            return True
        return False

    def get_lowest_node_with_value(self, value: Any) -> Optional[Node]:
        """
        Get the deepest node in the tree with a given value.

        Parameters
        ----------
        value : Any
            The value to search for; also looked up as ``str(value)`` so numeric
            document values match string keyed hierarchies

        Returns
        -------
        Node or None
            The deepest node with the specified value, or None if not found
        """
        self.update_lowest_node_with_value_if()
        nid = self.value_to_lowest_node_nid.get(value)
        if nid is None and not isinstance(value, str):
            nid = self.value_to_lowest_node_nid.get(str(value))
        return self.get_node(nid) if nid is not None else None

    def get_value(self, node: Node) -> Any:
        return node.tag

    def ancestor_values(self, value: Any) -> list[Any]:
        """Values from the parent of ``value`` up to the root; empty if ``value`` is unknown."""
        node = self.get_lowest_node_with_value(value)
        if node is None:
            return []
        return [
            self.get_value(self.get_node(nid)) for nid in self.rsearch(node.identifier)
        ][1:]

    def generalize(self, value: Any, levels: int = 1) -> Optional[Any]:
        """
        Generalize a value by walking up the tree.

        Parameters
        ----------
        value : Any
            Value to generalize
        levels : int, optional
            Number of levels to walk up, by default 1; the walk stops at the root

        Returns
        -------
        Any or None
            The ancestor value, or None if ``value`` is not in the tree

        Raises
        ------
        ValueError
            If levels is less than 1
        """
        if levels < 1:
            raise ValueError(f"levels must be >= 1, got {levels}")
        node = self.get_lowest_node_with_value(value)
        if node is None:
            return None
        for _ in range(levels):
            parent = self.parent(node.identifier)
            if parent is None:
                break
            node = parent
        return self.get_value(node)


def make_hierarchy_gtree(hierarchy: Mapping[Any, Sequence[Any]]) -> GTree:
    """
    Create a generalization tree from a value -> ancestors mapping.

    Parameters
    ----------
    hierarchy : Mapping[Any, Sequence[Any]]
        For each specific value, its ancestors ordered from most specific to most
        general, e.g. ``{"98101": ["981**", "98***"]}``. Every chain hangs below a
        "*" root.

    Returns
    -------
    GTree
        The generalization tree

    Raises
    ------
    ValueError
        If a chain names a parent for a value that already hangs below a different one
    """
    gtree = GTree()
    root = gtree.create_node(GTREE_ROOT_TAG)  # the root should always be '*'
    value_to_node: dict[Any, Node] = {GTREE_ROOT_TAG: root}
    for value, ancestors in hierarchy.items():
        chain = [value] + [ancestor for ancestor in ancestors if ancestor != GTREE_ROOT_TAG]
        parent = root
        for position, chain_value in enumerate(reversed(chain)):
            node = value_to_node.get(chain_value)
            if node is None:
                node = gtree.create_node(chain_value, parent=parent)
                value_to_node[chain_value] = node
            # the most general value of a chain keeps whatever ancestry it already has
            elif (
                position > 0
                and getattr(gtree.parent(node.identifier), "identifier", None) != parent.identifier
            ):
                raise ValueError(
                    f"Value {chain_value!r} has conflicting parents in the generalization hierarchy"
                )
            parent = node
    gtree.update_lowest_node_with_value_if()
    return gtree
