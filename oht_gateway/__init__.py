"""Gateway between a local translation job store and the OneHourTranslation API."""

__version__ = "0.1.0"
