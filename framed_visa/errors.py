"""
Exception taxonomy for instrument sessions and the classifier that maps VISA
status codes onto it
"""

from .constants import STATUS_DESCRIPTION_LIMIT
from .constants import VI_ERROR_INV_RSRC_NAME
from .constants import VI_ERROR_NSUP_ATTR
from .constants import VI_ERROR_RSRC_NFOUND
from .constants import VI_ERROR_TMO


class VisaSessionError(Exception):
    """
    Base class of every error raised by a session, transport adapter or
    resource manager

    Attributes:
        resource_name (str): Resource the failing operation addressed
        operation (str): Short label of the failing operation
        status (int, optional): VISA status code, if the failure had one
    """

    def __init__(self, resource_name, operation, message, status=None):
        self.resource_name = resource_name
        self.operation = operation
        self.status = status
        super().__init__("{}: {} - {}".format(resource_name, operation, message))


class VisaTimeoutError(VisaSessionError):
    """The transport did not complete the operation within the session timeout"""


class ResourceNotFoundError(VisaSessionError):
    """The resource does not exist or could not be reached"""


class InvalidResourceNameError(VisaSessionError):
    """The resource name is malformed or not accepted by the transport"""


class UnsupportedAttributeError(VisaSessionError):
    """The transport does not implement the requested attribute"""


class TransportFailure(VisaSessionError):
    """Any other failure of the transport or of the framing layer"""


_STATUS_CLASSES = {
    VI_ERROR_TMO: VisaTimeoutError,
    VI_ERROR_RSRC_NFOUND: ResourceNotFoundError,
    VI_ERROR_INV_RSRC_NAME: InvalidResourceNameError,
    VI_ERROR_NSUP_ATTR: UnsupportedAttributeError,
}


def classify_status(status):
    """Return the exception class matching a negative VISA status code"""
    return _STATUS_CLASSES.get(int(status), TransportFailure)


def error_for_status(status, resource_name, operation, description=None, timeout=None):
    """Build the classified error for a failed VISA call

    Args:
        status (int): Status code returned by the transport. Non-negative codes
            (success and warnings) are ignored.
        resource_name (str): Resource the call addressed
        operation (str): Short label of the call, used in the message
        description (str, optional): Human-readable text provided by the
            transport for this status
        timeout (int, optional): Currently configured timeout in ms, reported
            for timeouts

    Returns:
        VisaSessionError: Instance of the subclass chosen by
        :func:`classify_status`, or None for non-negative codes
    """
    status = int(status)
    if status >= 0:
        return None

    error_class = classify_status(status)

    if error_class is VisaTimeoutError:
        message = "Timeout occurred. VISA timeout is set to {} ms".format(timeout)
    elif error_class is ResourceNotFoundError:
        message = "Given Resource Name is invalid or does not exist."
    elif error_class is InvalidResourceNameError:
        message = "Resource name '{}' is invalid.".format(resource_name)
    else:
        description = (description or "").rstrip("\0")[:STATUS_DESCRIPTION_LIMIT]
        message = "VISA Error 0x{:X}: {}".format(status & 0xFFFFFFFF, description)

    return error_class(resource_name, operation, message, status=status)


def raise_for_status(status, resource_name, operation, description=None, timeout=None):
    """Raise the error built by :func:`error_for_status`, if there is one"""
    error = error_for_status(status, resource_name, operation, description, timeout)
    if error is not None:
        raise error
