"""
Status codes, attribute IDs and enumerations shared by sessions and transports

The VISA codes themselves come from :mod:`pyvisa.constants` so that both the
VISA library transport and the direct socket transport speak the same
numbers.
"""

import enum

# Re-exported for the rest of the package
from pyvisa.constants import VI_ASRL_END_NONE
from pyvisa.constants import VI_ATTR_ASRL_BAUD
from pyvisa.constants import VI_ATTR_ASRL_DATA_BITS
from pyvisa.constants import VI_ATTR_ASRL_END_IN
from pyvisa.constants import VI_ATTR_ASRL_END_OUT
from pyvisa.constants import VI_ATTR_ASRL_FLOW_CNTRL
from pyvisa.constants import VI_ATTR_ASRL_PARITY
from pyvisa.constants import VI_ATTR_ASRL_STOP_BITS
from pyvisa.constants import VI_ATTR_INTF_TYPE
from pyvisa.constants import VI_ATTR_RSRC_CLASS
from pyvisa.constants import VI_ATTR_RSRC_MANF_NAME
from pyvisa.constants import VI_ATTR_SEND_END_EN
from pyvisa.constants import VI_ATTR_TCPIP_IS_HISLIP
from pyvisa.constants import VI_ATTR_TERMCHAR
from pyvisa.constants import VI_ATTR_TERMCHAR_EN
from pyvisa.constants import VI_ATTR_TMO_VALUE
from pyvisa.constants import VI_ERROR_CONN_LOST
from pyvisa.constants import VI_ERROR_INV_OBJECT
from pyvisa.constants import VI_ERROR_INV_RSRC_NAME
from pyvisa.constants import VI_ERROR_IO
from pyvisa.constants import VI_ERROR_NSUP_ATTR
from pyvisa.constants import VI_ERROR_NSUP_OPER
from pyvisa.constants import VI_ERROR_RSRC_NFOUND
from pyvisa.constants import VI_ERROR_TMO
from pyvisa.constants import VI_EVENT_SERVICE_REQ
from pyvisa.constants import VI_HNDLR
from pyvisa.constants import VI_INTF_ASRL
from pyvisa.constants import VI_INTF_GPIB
from pyvisa.constants import VI_INTF_GPIB_VXI
from pyvisa.constants import VI_INTF_TCPIP
from pyvisa.constants import VI_INTF_USB
from pyvisa.constants import VI_QUEUE
from pyvisa.constants import VI_SUCCESS
from pyvisa.constants import VI_SUCCESS_MAX_CNT
from pyvisa.constants import VI_SUCCESS_TERM_CHAR
from pyvisa.constants import VI_TMO_INFINITE

# Resource class reported for raw socket resources
SOCKET_RESOURCE_CLASS = "SOCKET"

FIRST_READ_CHUNK = 1024
NEXT_READ_CHUNK = 65536

STATUS_DESCRIPTION_LIMIT = 256

# Upper bound on SYST:ERR? reads while draining the error queue
MAX_ERROR_QUEUE_READS = 50


class StatusByte(enum.IntFlag):
    """Flags of an instrument's IEEE 488.2 status byte"""

    NONE = 0
    ERROR_QUEUE_NOT_EMPTY = 4
    QUESTIONABLE_STATUS_REG = 8
    MESSAGE_AVAILABLE = 16
    EVENT_STATUS_BYTE = 32
    REQUEST_SERVICE = 64
    OPERATION_STATUS_REG = 128


class SessionKind(enum.Enum):
    """Physical interface behind a session, as reported by the transport"""

    UNSUPPORTED = 0
    GPIB = 1
    SERIAL = 2
    VXI11 = 3
    HISLIP = 4
    SOCKET = 5
    USB = 6
