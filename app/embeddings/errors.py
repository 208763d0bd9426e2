"""
Exceptions raised by the embedding store.
"""


class EmbeddingStoreError(Exception):
    """Base class for embedding store failures."""


class ProvisioningError(EmbeddingStoreError):
    """A capability tier could not be provisioned. The schema manager falls to the next tier."""

    def __init__(self, tier, message: str):
        self.tier = tier
        super().__init__(f"{tier.value}: {message}" if tier is not None else message)


class StoreUnavailableError(EmbeddingStoreError):
    """The relational store cannot be reached at all."""


class EmbeddingGenerationError(EmbeddingStoreError):
    """The embedding provider failed for a whole call."""


class ValidationError(EmbeddingStoreError):
    """An embedding does not have the configured number of dimensions."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding has {actual} dimensions, expected {expected}")
