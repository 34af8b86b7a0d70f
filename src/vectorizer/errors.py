"""Exception hierarchy for vectorizer."""


class VectorizerError(Exception):
    """Base class for all vectorizer errors."""

    pass


class ConfigurationError(VectorizerError):
    """Raised when a required setting is missing or invalid."""

    pass


class PatternError(VectorizerError):
    """Raised when an ignore rule cannot be compiled."""

    def __init__(self, rule: str, reason: str):
        self.rule = rule
        self.reason = reason
        super().__init__(f"Invalid ignore rule {rule!r}: {reason}")


class TraversalError(VectorizerError):
    """A directory entry that could not be read during a walk.

    Never raised by the walker: instances are logged and collected.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ModelLoadError(VectorizerError):
    """Raised when the embedding model cannot be loaded."""

    pass


class EmbeddingError(VectorizerError):
    """Raised when a fragment cannot be embedded. Fails the whole request."""

    pass


class UpsertError(VectorizerError):
    """Raised when the vector store rejects a request."""

    pass
