"""
Report Error Types
Typed failures raised while resolving and building feeder reports.
"""


class ReportError(Exception):
    """Base class for report generation failures."""


class NotFoundError(ReportError):
    """A named region or business hub does not exist."""


class NoDataError(ReportError):
    """The request matched no feeders."""


class InvalidRequestError(ReportError, ValueError):
    """The report request is missing a required input."""


class InvalidRangeError(InvalidRequestError):
    """The requested reporting window is malformed or inverted."""


class UpstreamError(ReportError):
    """The feeder/reading store failed to respond or returned garbage."""
