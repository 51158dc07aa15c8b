"""Version information for clinical_anonymize."""

try:
    from clinical_anonymize._version_info import __version__, __version_tuple__
except ImportError:
    __version__ = "unknown"
    __version_tuple__ = (0, 0, 0, "unknown", "unknown")
