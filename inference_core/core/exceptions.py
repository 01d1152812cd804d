"""Exception hierarchy for the inference layer."""


class InferenceError(Exception):
    """Base exception for the inference layer."""


class EngineError(InferenceError):
    """Raised when the underlying engine fails to load or run a network."""


class TranslateError(InferenceError):
    """Raised when converting between domain objects and NDLists fails."""


class IllegalStateError(InferenceError):
    """Raised when a closed resource is used."""


class RepositoryError(InferenceError):
    """Raised when model artifacts cannot be fetched."""


class ModelNotFoundError(InferenceError, FileNotFoundError):
    """Raised when a model directory or its files are missing."""
