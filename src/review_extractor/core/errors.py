"""
Purpose: Failure taxonomy shared by the viewer driver, matcher and workflow.
Constraints: Exception types only; no logging or I/O.
"""


class ViewerError(Exception):
    """Base class for failures raised by a page driver."""


class ImageNameUnavailable(ViewerError):
    """The current image is shown but its name could not be read."""


class NavigationError(ViewerError):
    """Moving to the next image failed."""


class EndOfViewer(NavigationError):
    """The viewer has no image after the current one."""


class ViewerUnavailable(ViewerError):
    """The viewer itself is unusable (closed tab, lost browser session)."""


class ExtractionError(Exception):
    """The extraction workflow could not produce a payload."""
