"""Error types raised by the dashboard builder"""
from typing import Optional


class DashboardError(Exception):
    """Base class for all dashboard builder errors"""


class QueryValidationError(DashboardError):
    """The form selections cannot produce a query"""


class MissingJoinPathError(QueryValidationError):
    """A metric source was selected but no relation joins it to the data source"""

    def __init__(self, data_source: str, metric_source: str):
        self.data_source = data_source
        self.metric_source = metric_source
        super().__init__(f"No join path from '{data_source}' to metric source '{metric_source}'")


class ReportingError(DashboardError):
    """Base class for failures talking to the reporting service"""


class ReportingServerError(ReportingError):
    """The reporting service answered with an error status"""

    def __init__(self, status_code: Optional[int], server_message: str = ""):
        self.status_code = status_code
        self.server_message = server_message
        super().__init__(f"Server error: {status_code}. {server_message}".strip())


class MalformedResponseError(ReportingServerError):
    """The reporting service answered, but not with the expected shape"""

    def __init__(self, reason: str = "Invalid response format from server"):
        self.status_code = None
        self.server_message = reason
        ReportingError.__init__(self, reason)


class ReportingUnavailableError(ReportingError):
    """The request was sent but no response came back"""


class WidgetNotFoundError(DashboardError, KeyError):
    """No widget with the given id exists in the store"""

    def __init__(self, widget_id: str):
        self.widget_id = widget_id
        super().__init__(f"Widget {widget_id} not found")

    def __str__(self) -> str:
        return f"Widget {self.widget_id} not found"


def describe_failure(exc: BaseException, prefix: str = "Failed to create widget.") -> str:
    """Render a user-facing message for a failed query execution"""
    match exc:
        case MalformedResponseError():
            detail = f"Server error: invalid response. {exc.server_message}"
        case ReportingServerError():
            detail = f"Server error: {exc.status_code}."
            if exc.server_message:
                detail += f" {exc.server_message}"
        case ReportingUnavailableError():
            detail = "No response received from server."
        case _:
            detail = str(exc) or "Unknown error occurred."
    return f"{prefix} {detail}"
