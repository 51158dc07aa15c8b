"""
Rule matching and traversal over one document.

``DocumentProcessor`` resolves every rule's path against a lookup index of the
document, hands each matched node (and, recursively, its not yet visited
descendants) to the processor bound to the rule's method, and finally merges
security labels for the operations that ran. The first rule to visit a node
wins; later rules skip it.
"""

import logging
from typing import Any, Iterable, Mapping, Optional

from clinical_anonymize.document import ElementNode
from clinical_anonymize.models import (
    AnonymizationRule,
    AnonymizerMethod,
    ProcessContext,
    ProcessResult,
)
from clinical_anonymize.node_lookup import NodeLookupIndex
from clinical_anonymize.processors.base import AnonymizerProcessor
from clinical_anonymize.security_labels import add_security_labels


class DocumentProcessor:
    """
    Applies anonymization rules to a document tree.

    Parameters
    ----------
    logger : logging.Logger
        Logger for per-rule debug output.
    processors : Mapping[AnonymizerMethod, AnonymizerProcessor]
        Static dispatch table from rule method to processor.
    rules : iterable of AnonymizationRule, optional
        When given, every rule method must have a processor in ``processors``.

    Raises
    ------
    ValueError
        If ``rules`` uses a method without a processor.
    """

    def __init__(
        self,
        logger: logging.Logger,
        processors: Mapping[AnonymizerMethod, AnonymizerProcessor],
        rules: Optional[Iterable[AnonymizationRule]] = None,
    ) -> None:
        self.logger = logger
        self.processors: dict[AnonymizerMethod, AnonymizerProcessor] = dict(processors)
        if rules is not None:
            self.check_rules(rules)

    def check_rules(self, rules: Iterable[AnonymizationRule]) -> None:
        """Raise ValueError unless every rule's method has a processor."""
        missing = sorted(
            {rule.method.name for rule in rules if rule.method not in self.processors}
        )
        if missing:
            raise ValueError(f"No processor registered for anonymization methods: {missing}")

    def process(self, root: ElementNode, context: Optional[ProcessContext] = None) -> ProcessResult:
        """
        Apply ``context.rules`` to the document rooted at ``root``.

        Parameters
        ----------
        root : ElementNode
            Document root; mutated in place.
        context : ProcessContext, optional
            Rules and visited-node state for this run; a fresh empty context when None.

        Returns
        -------
        ProcessResult
            Merged result of all rules.
        """
        if context is None:
            context = ProcessContext()
        self.check_rules(context.rules)
        result = ProcessResult()
        if not context.rules:
            return result
        lookup = NodeLookupIndex(root)
        for rule in context.rules:
            processor = self.processors[rule.method]
            rule_result = ProcessResult()
            for match_node in self.get_match_nodes(rule, root, lookup):
                if context.is_visited(match_node):
                    continue
                context.mark_visited(match_node)
                rule_result.update(
                    self.process_node_recursive(match_node, processor, context, rule.settings)
                )
            self._log_process_result(root, rule, rule_result)
            result.update(rule_result)
        add_security_labels(root, result)
        return result

    def get_match_nodes(
        self, rule: AnonymizationRule, root: ElementNode, lookup: NodeLookupIndex
    ) -> list[ElementNode]:
        return lookup.match(rule.pattern, root)

    def process_node_recursive(
        self,
        node: ElementNode,
        processor: AnonymizerProcessor,
        context: ProcessContext,
        settings: Any,
    ) -> ProcessResult:
        """
        Apply ``processor`` to ``node`` and then to every descendant not yet visited.

        ``node`` must already be marked visited. Descendants are marked as they are
        entered, and a processor may mark a whole subtree to claim it.
        """
        result = ProcessResult()
        result.update(processor.process(node, context, settings))
        for child in node.children:
            if context.is_visited(child):
                continue
            context.mark_visited(child)
            result.update(self.process_node_recursive(child, processor, context, settings))
        return result

    def _log_process_result(
        self, root: ElementNode, rule: AnonymizationRule, rule_result: ProcessResult
    ) -> None:
        if not rule_result.records or not self.logger.isEnabledFor(logging.DEBUG):
            return
        id_node = root.child("id")
        resource_id = id_node.value if id_node is not None else root.instance_type
        for operation, locations in rule_result.process_record_map().items():
            for location in locations:
                self.logger.debug(
                    "[%s]: Rule '%s' matches '%s' and performs operation '%s'",
                    resource_id,
                    rule.path,
                    location,
                    operation.value,
                )
