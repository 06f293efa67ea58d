class DbpingException(Exception):
    """Base Exception Class"""
    pass

class ConfigurationError(DbpingException):
    """Configuration Error (no databases configured, malformed file, ...)"""
    pass

class ConnectionError(DbpingException):
    """Connection Failure"""
    pass

class ProbeTimeoutError(DbpingException):
    """A guarded probe step exceeded its budget"""
    def __init__(self, message: str = "Operation timed out"):
        super().__init__(message)

class QueryError(DbpingException):
    """Query rejected by the database (missing table, bad SQL, ...)"""
    pass

class CleanupError(DbpingException):
    """Closing a connection failed. Logged, never raised past a probe."""
    pass

class OrchestrationError(DbpingException):
    """Unexpected failure in the aggregator itself"""
    pass
