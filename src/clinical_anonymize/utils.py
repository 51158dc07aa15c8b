"""
Shared utilities for anonymization runs.
"""

import threading
import time


class AnonymizeCallbacks:
    """
    Callback mechanism for tracking and instrumentation of batch anonymization.

    Records timestamps at key points of ``AnonymizerEngine.anonymize_batch``; 'bm'
    stands for "before method" and 'am' for "after method". Users can extend this
    class to add custom tracking by overriding the callback methods. Document
    callbacks may be invoked concurrently from worker threads.

    Attributes
    ----------
    timestamps : dict
        Batch level timestamps, keys 'anonymize_batch_bm' and 'anonymize_batch_am'.
    document_timestamps : dict
        Document index -> timestamps with keys 'anonymize_document_bm' and
        'anonymize_document_am'.

    Examples
    --------
    >>> class CustomCallbacks(AnonymizeCallbacks):
    ...     def anonymize_batch_am(self):
    ...         super().anonymize_batch_am()
    ...         started = self.timestamps["anonymize_batch_bm"]
    ...         print(f"Batch completed in {time.time() - started:.2f} seconds")
    """

    def __init__(self) -> None:
        self.timestamps: dict[str, float] = {}
        self.document_timestamps: dict[int, dict[str, float]] = {}
        self._lock = threading.Lock()

    def anonymize_batch_bm(self) -> None:
        self.timestamps["anonymize_batch_bm"] = time.time()

    def anonymize_batch_am(self) -> None:
        self.timestamps["anonymize_batch_am"] = time.time()

    def anonymize_document_bm(self, index: int) -> None:
        with self._lock:
            self.document_timestamps.setdefault(index, {})["anonymize_document_bm"] = time.time()

    def anonymize_document_am(self, index: int) -> None:
        with self._lock:
            self.document_timestamps.setdefault(index, {})["anonymize_document_am"] = time.time()
