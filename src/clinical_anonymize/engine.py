"""
Anonymization engine facade.

``AnonymizerEngine`` binds a rule list to a static processor dispatch table and
runs it over single documents or, concurrently, over batches of documents that
share one privacy budget tracker.
"""

import logging
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Mapping, Optional, Union

from clinical_anonymize.differential_privacy.budget import PrivacyBudgetTracker
from clinical_anonymize.document import ElementNode
from clinical_anonymize.errors import PrivacyBudgetExhaustedError
from clinical_anonymize.futures import gather, make_future
from clinical_anonymize.models import (
    AnonymizationRule,
    AnonymizerMethod,
    ProcessContext,
    ProcessResult,
)
from clinical_anonymize.processors.base import AnonymizerProcessor
from clinical_anonymize.processors.differential_privacy import DifferentialPrivacyProcessor
from clinical_anonymize.processors.k_anonymity import KAnonymityProcessor
from clinical_anonymize.processors.resource import DocumentProcessor
from clinical_anonymize.utils import AnonymizeCallbacks

BatchOutcome = namedtuple("BatchOutcome", ["document", "result", "error"])

Document = Union[ElementNode, Mapping[str, Any]]


def default_processors(
    budget_tracker: PrivacyBudgetTracker,
    logger: Optional[logging.Logger] = None,
    max_epsilon: Optional[float] = None,
) -> dict[AnonymizerMethod, AnonymizerProcessor]:
    """
    Return the processors for the privacy-certifying methods.

    The stateless transforms (redact, substitute, crypto-hash, ...) are supplied
    by the caller through ``AnonymizerEngine(processors=...)``.
    """
    return {
        AnonymizerMethod.K_ANONYMITY: KAnonymityProcessor(logger=logger),
        AnonymizerMethod.DIFFERENTIAL_PRIVACY: DifferentialPrivacyProcessor(
            budget_tracker, logger=logger, max_epsilon=max_epsilon
        ),
    }


class AnonymizerEngine:
    """
    Applies a fixed rule list to documents.

    Parameters
    ----------
    logger : logging.Logger
        Logger shared with the processors.
    rules : iterable of AnonymizationRule or Mapping
        Rules in priority order; mappings are converted with
        ``AnonymizationRule.from_config``.
    budget_tracker : PrivacyBudgetTracker, optional
        Tracker for differential privacy; a new one is created when None.
    processors : Mapping[AnonymizerMethod, AnonymizerProcessor], optional
        Processors added to (or overriding) ``default_processors``.
    max_epsilon : float, optional
        Policy upper bound for differential privacy epsilon.

    Raises
    ------
    ValueError
        If a rule is invalid or uses a method without a processor.
    PrivacyParameterError
        If privacy settings of a rule are invalid.
    """

    def __init__(
        self,
        logger: logging.Logger,
        rules: Iterable[Union[AnonymizationRule, Mapping[str, Any]]],
        budget_tracker: Optional[PrivacyBudgetTracker] = None,
        processors: Optional[Mapping[AnonymizerMethod, AnonymizerProcessor]] = None,
        max_epsilon: Optional[float] = None,
    ) -> None:
        self.logger = logger
        self.budget_tracker = (
            budget_tracker if budget_tracker is not None else PrivacyBudgetTracker(logger=logger)
        )
        self.rules = [
            rule
            if isinstance(rule, AnonymizationRule)
            else AnonymizationRule.from_config(rule, max_epsilon=max_epsilon, logger=logger)
            for rule in rules
        ]
        dispatch = default_processors(self.budget_tracker, logger=logger, max_epsilon=max_epsilon)
        dispatch.update(processors or {})
        self.document_processor = DocumentProcessor(logger, dispatch, rules=self.rules)
        logger.debug("AnonymizerEngine initialized with %d rules", len(self.rules))

    def anonymize(self, document: Document) -> tuple[ElementNode, ProcessResult]:
        """
        Anonymize one document.

        Parameters
        ----------
        document : ElementNode or Mapping
            Document tree (mutated in place) or its JSON representation.

        Returns
        -------
        tuple[ElementNode, ProcessResult]
            The anonymized tree and what was applied to it.

        Raises
        ------
        PrivacyBudgetExhaustedError
            If a differential privacy rule cannot be covered by its budget; rules
            applied before it have already mutated the tree.
        """
        root = document if isinstance(document, ElementNode) else ElementNode.from_json(document)
        context = ProcessContext(self.rules)
        result = self.document_processor.process(root, context)
        return root, result

    def _anonymize_batch_document(
        self, index: int, document: Document, anonymize_callbacks: AnonymizeCallbacks
    ) -> BatchOutcome:
        anonymize_callbacks.anonymize_document_bm(index)
        root = document if isinstance(document, ElementNode) else ElementNode.from_json(document)
        try:
            _, result = self.anonymize(root)
            return BatchOutcome(root, result, None)
        except PrivacyBudgetExhaustedError as exc:
            self.logger.error("Document %d not anonymized: %s", index, exc)
            return BatchOutcome(root, None, exc)
        finally:
            anonymize_callbacks.anonymize_document_am(index)

    def anonymize_batch(
        self,
        documents: Iterable[Document],
        parallelism: Optional[int] = None,
        anonymize_callbacks: Optional[AnonymizeCallbacks] = None,
    ) -> list[BatchOutcome]:
        """
        Anonymize a batch of documents.

        Parameters
        ----------
        documents : iterable of ElementNode or Mapping
            Documents to anonymize.
        parallelism : int, optional
            Number of worker threads; documents are processed one by one in the
            calling thread when None.
        anonymize_callbacks : AnonymizeCallbacks, optional
            Timing callbacks.

        Returns
        -------
        list of BatchOutcome
            One ``(document, result, error)`` per input document, in input order.
            Budget exhaustion is reported in ``error`` (with ``result`` None and the
            document not fit for release); every other exception propagates.
        """
        if anonymize_callbacks is None:
            anonymize_callbacks = AnonymizeCallbacks()
        anonymize_callbacks.anonymize_batch_bm()
        executor = ThreadPoolExecutor(max_workers=parallelism) if parallelism is not None else None
        try:
            outcomes = gather(
                [
                    make_future(
                        executor,
                        self._anonymize_batch_document,
                        index,
                        document,
                        anonymize_callbacks,
                    )
                    for index, document in enumerate(documents)
                ]
            )
        finally:
            if executor is not None:
                executor.shutdown()
        anonymize_callbacks.anonymize_batch_am()
        failures = sum(1 for outcome in outcomes if outcome.error is not None)
        if failures:
            self.logger.warning(
                "%d of %d documents could not be anonymized within the privacy budget",
                failures,
                len(outcomes),
            )
        return outcomes
