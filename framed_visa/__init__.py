"""framed_visa - Framed, thread-safe I/O sessions with SCPI instruments over VISA or raw TCP sockets."""

from .constants import SessionKind
from .constants import StatusByte
from .errors import InvalidResourceNameError
from .errors import ResourceNotFoundError
from .errors import TransportFailure
from .errors import UnsupportedAttributeError
from .errors import VisaSessionError
from .errors import VisaTimeoutError
from .events import ServiceRequestEvent
from .reader import ReadResult
from .resource_manager import get_com_port_by_hwid
from .resource_manager import get_hwid_from_com_port
from .resource_manager import ResourceManager
from .serial_session import SerialVISASession
from .settings import Settings
from .socket_transport import SocketTransport
from .transport import Transport
from .transport import VISALibraryTransport
from .visa_session import StringReadResult
from .visa_session import VISASession

__author__ = "Charles Baynham <charles.baynham@npl.co.uk>"

__all__ = [
    "InvalidResourceNameError",
    "ReadResult",
    "ResourceManager",
    "ResourceNotFoundError",
    "SerialVISASession",
    "ServiceRequestEvent",
    "SessionKind",
    "Settings",
    "SocketTransport",
    "StatusByte",
    "StringReadResult",
    "Transport",
    "TransportFailure",
    "UnsupportedAttributeError",
    "VISALibraryTransport",
    "VISASession",
    "VisaSessionError",
    "VisaTimeoutError",
    "get_com_port_by_hwid",
    "get_hwid_from_com_port",
]
__version__ = "0.1.0"
