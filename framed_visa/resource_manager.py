import logging
import re
from dataclasses import replace

from pyvisa.errors import VisaIOError
from serial.tools.list_ports import grep as grep_serial_ports

from .constants import VI_ATTR_RSRC_MANF_NAME
from .constants import VI_ERROR_RSRC_NFOUND
from .errors import classify_status
from .errors import error_for_status
from .errors import ResourceNotFoundError
from .errors import TransportFailure
from .serial_session import SerialVISASession
from .settings import Settings
from .transport import VISALibraryTransport
from .visa_session import VISASession

logger = logging.getLogger(__name__)

RESOURCE_MANAGER_NAME = "ResourceManager"


def _single_port_match(pattern):
    matches = list(grep_serial_ports(pattern))
    if not matches:
        raise ResourceNotFoundError(
            pattern, "Serial port lookup", "Device {} not found".format(pattern)
        )
    if len(matches) > 1:
        raise ResourceNotFoundError(
            pattern, "Serial port lookup", "Multiple matches for device {}".format(pattern)
        )
    return matches[0]


def get_hwid_from_com_port(com_port):
    """Get a uniquely identifying HWID from a device attached to a COM port

    The HWID of a device is (/ should be) a unique string that identifies it. Unlike the COM port,
    this string is intrinsic to the device and will never change. Referring to devices by these
    strings is therefore a robust way of doing things.

    Args:
        com_port (str): COM port e.g. "COM11"

    Raises:
        ResourceNotFoundError: Raised if the device is not found or multiple matches are found

    Returns:
        str: HWID of the device on the given COM port
    """
    return _single_port_match(com_port).hwid


def get_com_port_by_hwid(hwid):
    """Get the current COM port based on a uniquely identifying hardware ID of a device

    Args:
        hwid (str): Hardware ID string to match, e.g. 'USB VID:PID=0403:6001 SER=A6003SX4A'.
                    This is matched using serial.tools.list_ports.grep so can be less specific
                    if desired. The search should result in a single match otherwise an exception will
                    be raised.

    Raises:
        ResourceNotFoundError: Raised if the device is not found or multiple matches are found

    Returns:
        str: current port of the device (e.g. "COM11")
    """
    return _single_port_match(hwid).device


def serial_resource_name(port):
    """VISA resource name for a serial port

    "COM11" becomes "ASRL11::INSTR". Other device paths, e.g. "/dev/ttyUSB0", are
    wrapped as "ASRL/dev/ttyUSB0::INSTR", which is what pyvisa-py lists them as.
    """
    regex_match = re.match(r"^com(\d{1,3})$", port.lower())
    if regex_match:
        return "ASRL{}::INSTR".format(regex_match[1])
    return "ASRL{}::INSTR".format(port)


class ResourceManager:
    """
    Entry point for finding and opening instruments

    Args:
        transport (Transport, optional): Backend to talk through. Defaults to
            :class:`VISALibraryTransport` on the pyvisa-py backend.
    """

    def __init__(self, transport=None):
        self.transport = transport if transport is not None else VISALibraryTransport()
        self.handle = None
        try:
            self.handle = self.transport.open_default_resource_manager()
        except VisaIOError as exc:
            raise self._error_from(exc, "Opening resource manager") from exc
        logger.debug("Opened resource manager on %s", self.transport)
        self._log_manufacturer()

    def _error_from(self, exc, operation, handle=None):
        status = exc.error_code
        description = None
        if classify_status(status) is TransportFailure:
            if handle is None:
                handle = self.handle
            description = self._describe(status, exc, handle)
        return error_for_status(status, RESOURCE_MANAGER_NAME, operation, description)

    def _describe(self, status, exc, handle):
        if handle is None:
            return exc.description
        try:
            return self.transport.status_description(handle, status)
        except VisaIOError:
            logger.debug("No status description available for %s", status)
            return exc.description

    def _log_manufacturer(self):
        try:
            manufacturer = self.transport.get_attribute(self.handle, VI_ATTR_RSRC_MANF_NAME)
        except VisaIOError:
            logger.debug("Resource manager did not report a manufacturer")
            return
        logger.debug("VISA manufacturer: %s", manufacturer)

    def __repr__(self):
        return "<ResourceManager {}>".format(self.transport)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def find_resources(self, query="?*"):
        """Find the resources matching a VISA search expression

        Args:
            query (str, optional): e.g. ``"GPIB?*INSTR"``. Defaults to all resources.

        Returns:
            list: Resource names, each once, in the order the transport listed them.
            Empty if nothing matched.
        """
        try:
            resources = self.transport.list_resources(self.handle, query)
        except VisaIOError as exc:
            if exc.error_code == VI_ERROR_RSRC_NFOUND:
                logger.debug("No resources match %s", query)
                return []
            raise self._error_from(exc, "Finding resources") from exc
        return list(dict.fromkeys(resources))

    def open_session(self, resource_name, settings=None, session_class=VISASession, **overrides):
        """Open a session to an instrument

        Keyword arguments not named here override fields of ``settings``, e.g.
        ``rm.open_session(name, visa_timeout=2000)``.

        Args:
            resource_name (str): VISA resource name
            settings (Settings, optional): Defaults to ``Settings()``
            session_class (type, optional): Session class to instantiate

        Returns:
            VISASession: Open session, ready for I/O
        """
        settings = settings if settings is not None else Settings()
        if overrides:
            settings = replace(settings, **overrides)
        return session_class(resource_name, self, settings)

    def open_serial_session(self, port_or_hwid, settings=None, **overrides):
        """Open a session to an instrument on a serial port

        Args:
            port_or_hwid (str): HWID of the device, or its port (e.g. "COM11").
                HWIDs survive the device being plugged into another port, so
                prefer them.

        Returns:
            SerialVISASession: Open session
        """
        port = get_com_port_by_hwid(port_or_hwid)

        if port.lower() == port_or_hwid.lower():
            logger.warning(
                (
                    "Initiated device from COM port: it would be more "
                    'robust to use the HWID instead. For "%s", that\'s "%s"'
                ),
                port_or_hwid,
                get_hwid_from_com_port(port),
            )

        logger.debug("Found device %s on port %s", port_or_hwid, port)
        return self.open_session(
            serial_resource_name(port),
            settings,
            session_class=SerialVISASession,
            **overrides
        )

    def close(self):
        """Close the resource manager. Calling this again does nothing."""
        if self.handle is None:
            return
        handle, self.handle = self.handle, None
        logger.debug("Closing resource manager")
        try:
            self.transport.close(handle)
        except VisaIOError as exc:
            raise self._error_from(exc, "Closing resource manager", handle) from exc
