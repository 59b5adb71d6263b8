import logging

from pyvisa.constants import AccessModes
from pyvisa.highlevel import open_visa_library

logger = logging.getLogger(__name__)


class Transport:
    """
    The byte-level capability a Session is built on

    A Transport performs the primitive VISA operations against opaque integer
    handles. Subclasses implement these for a particular backend: you don't
    need a new Transport unless your instruments are reached through something
    that neither a VISA library nor a raw TCP socket can talk to.

    Calls that fail raise :class:`pyvisa.errors.VisaIOError` carrying the
    negative VISA status code. Calls that move data also return the
    non-negative status so that callers can tell ``VI_SUCCESS_MAX_CNT`` (more
    data pending) from ``VI_SUCCESS_TERM_CHAR`` / ``VI_SUCCESS``.
    """

    def open_default_resource_manager(self):
        """
        Open a resource manager and return its handle
        """
        raise NotImplementedError

    def list_resources(self, rm_handle, query="?*"):
        """
        Return a tuple of resource names matching the query. May contain
        duplicates.
        """
        raise NotImplementedError

    def open(self, rm_handle, resource_name, open_timeout=0):
        """
        Open a resource and return the new session handle
        """
        raise NotImplementedError

    def close(self, handle):
        """
        Close a session or resource manager handle
        """
        raise NotImplementedError

    def clear(self, handle):
        """
        Clear the device behind a session
        """
        raise NotImplementedError

    def read(self, handle, count):
        """
        Read up to ``count`` bytes. Returns a ``(data, status)`` tuple.
        """
        raise NotImplementedError

    def write(self, handle, data):
        """
        Write bytes. Returns a ``(written, status)`` tuple.
        """
        raise NotImplementedError

    def get_attribute(self, handle, attribute):
        raise NotImplementedError

    def set_attribute(self, handle, attribute, value):
        raise NotImplementedError

    def read_stb(self, handle):
        """
        Read the device's status byte and return it as an int
        """
        raise NotImplementedError

    def status_description(self, handle, status):
        """
        Return a human-readable description of a status code
        """
        raise NotImplementedError

    def enable_event(self, handle, event_type, mechanism):
        raise NotImplementedError

    def disable_event(self, handle, event_type, mechanism):
        raise NotImplementedError

    def discard_events(self, handle, event_type, mechanism):
        raise NotImplementedError

    def wait_on_event(self, handle, event_type, timeout):
        """
        Block until an event of ``event_type`` is queued or ``timeout`` ms pass.
        A timeout raises VisaIOError with ``VI_ERROR_TMO``.
        """
        raise NotImplementedError

    def install_handler(self, handle, event_type, handler):
        """
        Register ``handler(handle, event_type, context, user_handle)`` to be
        called, possibly from a foreign thread, when an event arrives
        """
        raise NotImplementedError

    def uninstall_handler(self, handle, event_type, handler):
        raise NotImplementedError


class VISALibraryTransport(Transport):
    """
    Transport backed by a VISA library loaded through pyvisa

    Args:
        backend (str): Which VISA library pyvisa loads. ``"@py"`` (the default)
            selects the pure-python pyvisa-py backend, ``""`` the system's
            IVI VISA library, or pass a path to a specific shared library.
    """

    def __init__(self, backend="@py"):
        logger.debug("Loading VISA library '%s'", backend)
        self.visalib = open_visa_library(backend)

    def __repr__(self):
        return "<VISALibraryTransport {}>".format(self.visalib)

    def open_default_resource_manager(self):
        handle, _ = self.visalib.open_default_resource_manager()
        return handle

    def list_resources(self, rm_handle, query="?*"):
        return tuple(self.visalib.list_resources(rm_handle, query))

    def open(self, rm_handle, resource_name, open_timeout=0):
        handle, _ = self.visalib.open(
            rm_handle, resource_name, AccessModes.no_lock, open_timeout
        )
        return handle

    def close(self, handle):
        return self.visalib.close(handle)

    def clear(self, handle):
        return self.visalib.clear(handle)

    def read(self, handle, count):
        return self.visalib.read(handle, count)

    def write(self, handle, data):
        return self.visalib.write(handle, data)

    def get_attribute(self, handle, attribute):
        value, _ = self.visalib.get_attribute(handle, attribute)
        return value

    def set_attribute(self, handle, attribute, value):
        return self.visalib.set_attribute(handle, attribute, value)

    def read_stb(self, handle):
        value, _ = self.visalib.read_stb(handle)
        return int(value)

    def status_description(self, handle, status):
        description, _ = self.visalib.status_description(handle, status)
        return description

    def enable_event(self, handle, event_type, mechanism):
        return self.visalib.enable_event(handle, event_type, mechanism)

    def disable_event(self, handle, event_type, mechanism):
        return self.visalib.disable_event(handle, event_type, mechanism)

    def discard_events(self, handle, event_type, mechanism):
        return self.visalib.discard_events(handle, event_type, mechanism)

    def wait_on_event(self, handle, event_type, timeout):
        return self.visalib.wait_on_event(handle, event_type, timeout)

    def install_handler(self, handle, event_type, handler):
        return self.visalib.install_visa_handler(handle, event_type, handler)

    def uninstall_handler(self, handle, event_type, handler):
        return self.visalib.uninstall_visa_handler(handle, event_type, handler)
