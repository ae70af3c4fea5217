"""Error taxonomy for the search core.

Only input errors can reach a caller, and then as a typed field on the
response rather than an exception. Provider, analytics and clustering
errors are raised by collaborators and absorbed at the service boundary.
"""


class EventSearchError(Exception):
    """Base class for search core errors."""


class InputError(EventSearchError):
    """Query or cursor input that cannot be served as given."""


class ProviderError(EventSearchError):
    """Embedding provider unavailable, timed out, or returned garbage."""


class AnalyticsError(EventSearchError):
    """Analytics store read/write failure."""


class ClusteringError(EventSearchError):
    """Query clustering run could not complete."""
