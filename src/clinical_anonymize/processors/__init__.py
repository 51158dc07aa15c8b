"""
Processors applied to matched document nodes.

Modules:
- base: the processor contract
- resource: rule matching and traversal over a document
- differential_privacy: calibrated noise on numeric fields
- k_anonymity: local generalization of quasi-identifiers
"""

from .base import AnonymizerProcessor
from .differential_privacy import DifferentialPrivacyProcessor
from .k_anonymity import KAnonymityProcessor
from .resource import DocumentProcessor

__all__ = [
    "AnonymizerProcessor",
    "DifferentialPrivacyProcessor",
    "KAnonymityProcessor",
    "DocumentProcessor",
]
