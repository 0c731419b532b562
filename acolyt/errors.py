"""Error taxonomy shared by the retrieval and conversation components."""


class AcolytError(Exception):
    """Base class for all bot errors."""
    pass


class StoreUnavailable(AcolytError):
    """Persisted chunk data is missing or corrupt. Callers fall back to an empty context."""
    pass


class EmbeddingError(AcolytError):
    """The embedding service failed (network, quota, timeout or empty response)."""
    pass


class CompletionError(AcolytError):
    """The completion service failed to produce a reply."""
    pass


class ConcurrentRefreshSkipped(AcolytError):
    """A refresh was requested while another one was running. Not a failure."""
    pass
