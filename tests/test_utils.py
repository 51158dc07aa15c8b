"""
Tests for utils
"""

from concurrent.futures import ThreadPoolExecutor

from clinical_anonymize.utils import AnonymizeCallbacks


class TestAnonymizeCallbacks:
    """
    Tests for AnonymizeCallbacks.
    """

    def test_batch_timestamps(self):
        callbacks = AnonymizeCallbacks()
        assert callbacks.timestamps == {}
        callbacks.anonymize_batch_bm()
        callbacks.anonymize_batch_am()
        assert set(callbacks.timestamps) == {"anonymize_batch_bm", "anonymize_batch_am"}
        timestamps = callbacks.timestamps
        assert timestamps["anonymize_batch_bm"] <= timestamps["anonymize_batch_am"]

    def test_document_timestamps(self):
        callbacks = AnonymizeCallbacks()
        callbacks.anonymize_document_bm(0)
        callbacks.anonymize_document_am(0)
        callbacks.anonymize_document_bm(1)
        assert set(callbacks.document_timestamps) == {0, 1}
        assert set(callbacks.document_timestamps[0]) == {
            "anonymize_document_bm",
            "anonymize_document_am",
        }
        assert set(callbacks.document_timestamps[1]) == {"anonymize_document_bm"}

    def test_document_timestamps_concurrent(self):
        callbacks = AnonymizeCallbacks()

        def _document(index):
            callbacks.anonymize_document_bm(index)
            callbacks.anonymize_document_am(index)

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(_document, range(100)))
        assert sorted(callbacks.document_timestamps) == list(range(100))
        assert all(len(timestamps) == 2 for timestamps in callbacks.document_timestamps.values())

    def test_subclass(self):
        """Custom callbacks can extend the recorded timestamps."""

        class CountingCallbacks(AnonymizeCallbacks):
            def __init__(self):
                super().__init__()
                self.documents = 0

            def anonymize_document_am(self, index):
                super().anonymize_document_am(index)
                self.documents += 1

        callbacks = CountingCallbacks()
        callbacks.anonymize_document_am(3)
        assert callbacks.documents == 1
        assert "anonymize_document_am" in callbacks.document_timestamps[3]
