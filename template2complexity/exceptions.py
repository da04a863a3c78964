class ExtractionError(Exception):
    """Base class for errors raised while extracting text from a template."""

    def __init__(self, message: str = None, *, cause: Exception = None):
        if message is None:
            message = "Text extraction failed"
        super().__init__(message)
        self.__cause__ = cause


class ExtractionFailedError(ExtractionError):
    """Raised when a format-specific extractor cannot produce any text."""


class ExtractionZipBombError(ExtractionError):
    """Raised when a ZIP container exceeds the configured safety limits."""


class ConfigurationError(ValueError):
    """Raised when a ComplexityConfig carries inconsistent values."""

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        super().__init__(f"Invalid configuration value for '{field_name}': {message}")
