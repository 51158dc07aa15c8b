"""
Processor contract.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from clinical_anonymize.document import ElementNode
from clinical_anonymize.models import ProcessContext, ProcessResult


class AnonymizerProcessor(ABC):
    """
    Transforms a single matched node.

    Implementations return an empty ``ProcessResult`` without side effects when
    ``node`` or ``settings`` is None. ``settings`` is either the processor's typed
    setting object or a raw mapping to be validated into one. A processor is never
    invoked twice for the same node location within one run, and must not assume
    any order between nodes.
    """

    @abstractmethod
    def process(
        self,
        node: Optional[ElementNode],
        context: Optional[ProcessContext] = None,
        settings: Any = None,
    ) -> ProcessResult:
        raise NotImplementedError
