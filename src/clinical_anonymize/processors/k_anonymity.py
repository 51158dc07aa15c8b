"""
Local generalization of quasi-identifier fields.
"""

import logging
from typing import Any, Optional

from clinical_anonymize.document import ElementNode
from clinical_anonymize.k_anonymity.generalization import generalize_value
from clinical_anonymize.k_anonymity.settings import GeneralizationStrategy, KAnonymitySetting
from clinical_anonymize.models import AnonymizationOperation, ProcessContext, ProcessResult
from clinical_anonymize.processors.base import AnonymizerProcessor


class KAnonymityProcessor(AnonymizerProcessor):
    """
    Generalizes or suppresses single quasi-identifier values.

    This only prepares values: the result never certifies k-anonymity, it flags
    that the batch must be checked with ``KAnonymityValidator``.

    Parameters
    ----------
    logger : logging.Logger, optional
        Logger; defaults to this module's logger.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._warned_batch_validation = False

    def _warn_batch_validation_once(self) -> None:
        if not self._warned_batch_validation:
            self._warned_batch_validation = True
            self.logger.warning(
                "K-anonymity generalization is applied per field only and does not guarantee "
                "k-anonymity; validate the complete batch with KAnonymityValidator"
            )

    def process(
        self,
        node: Optional[ElementNode],
        context: Optional[ProcessContext] = None,
        settings: Any = None,
    ) -> ProcessResult:
        result = ProcessResult()
        if node is None or settings is None:
            return result
        setting = (
            settings
            if isinstance(settings, KAnonymitySetting)
            else KAnonymitySetting.from_rule_settings(settings)
        )
        self._warn_batch_validation_once()

        # value-less nodes have nothing to generalize but still count toward the batch
        if node.value is not None:
            node.value = generalize_value(
                node.value,
                setting.generalization_strategy,
                suppression_strategy=setting.suppression_strategy,
                hierarchy=setting.generalization_hierarchy,
                levels=setting.generalization_level,
            )
            if context is not None:
                context.mark_subtree_visited(node)
            if setting.generalization_strategy is GeneralizationStrategy.SUPPRESSION:
                result.add_process_record(AnonymizationOperation.REDACT, node)
            else:
                result.add_process_record(AnonymizationOperation.ABSTRACT, node)
        result.add_process_record(AnonymizationOperation.K_ANONYMITY, node)
        result.add_privacy_metric("k-value", setting.k)
        result.add_privacy_metric("generalization-strategy", setting.generalization_strategy.value)
        result.add_privacy_metric("requires-batch-validation", True)
        return result
