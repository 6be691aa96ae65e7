"""Errors raised by the aggregate cache."""


class AggregateError(Exception):
    """Base class for aggregate cache failures."""


class UnknownScope(AggregateError):
    def __init__(self, scope: str):
        super().__init__(f"No producer registered for scope '{scope}'")
        self.scope = scope


class ProducerFailed(AggregateError):
    """A producer raised while recomputing an aggregate. Nothing was cached."""

    def __init__(self, scope: str, key: str, error: Exception):
        super().__init__(f"Producer for '{scope}' failed (key={key}): {error}")
        self.scope = scope
        self.key = key
        self.error = error
