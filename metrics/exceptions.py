"""Reporter exceptions"""


class ReporterError(Exception):
    """Base class for reporter errors"""


class ReporterStateError(ReporterError):
    """Lifecycle method called in a state that does not allow it"""


class SinkError(ReporterError):
    """Bulk write could not be completed"""


class SinkTransportError(SinkError):
    """No configured host accepted the request"""


class SinkRequestError(SinkError):
    """Elasticsearch rejected the request as a whole"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
