import logging
import time
from collections import namedtuple
from dataclasses import replace
from functools import wraps

from pyvisa.errors import VisaIOError

from .constants import FIRST_READ_CHUNK
from .constants import MAX_ERROR_QUEUE_READS
from .constants import NEXT_READ_CHUNK
from .constants import SessionKind
from .constants import SOCKET_RESOURCE_CLASS
from .constants import VI_ASRL_END_NONE
from .constants import VI_ATTR_ASRL_END_IN
from .constants import VI_ATTR_ASRL_END_OUT
from .constants import VI_ATTR_INTF_TYPE
from .constants import VI_ATTR_RSRC_CLASS
from .constants import VI_ATTR_SEND_END_EN
from .constants import VI_ATTR_TCPIP_IS_HISLIP
from .constants import VI_ATTR_TERMCHAR
from .constants import VI_ATTR_TERMCHAR_EN
from .constants import VI_ATTR_TMO_VALUE
from .constants import VI_INTF_ASRL
from .constants import VI_INTF_GPIB
from .constants import VI_INTF_GPIB_VXI
from .constants import VI_INTF_TCPIP
from .constants import VI_INTF_USB
from .errors import classify_status
from .errors import error_for_status
from .errors import TransportFailure
from .errors import UnsupportedAttributeError
from .events import ServiceRequestMixin
from .reader import FramedReader
from .reader import trim_termination
from .settings import Settings

logger = logging.getLogger(__name__)

StringReadResult = namedtuple("StringReadResult", ["text", "more_available", "count"])


def with_read_lock(f):
    """
    Decorator to hold the session's read lock while a method runs

    Queries use this so that the write and the read of the response are not
    interleaved with a read from another thread on the same session.
    """

    @wraps(f)
    def wrapped(self: "VISASession", *args, **kw):
        with self._reader.lock:
            return f(self, *args, **kw)

    return wrapped


class VISASession(ServiceRequestMixin):
    """
    A session with one instrument

    Opening the session classifies the interface behind it, applies the
    defaults for that interface and the given :class:`Settings`, then clears the
    device and its status (``*CLS``). If any of that fails the handle is closed
    again before the error propagates.

    Writes are sent as given: append whatever terminator your instrument
    expects. Reads are framed by the termination character.

    Args:
        resource_name (str): VISA resource name, e.g. ``"GPIB0::29::INSTR"`` or
            ``"TCPIP::192.168.1.10::5025::SOCKET"``
        resource_manager (ResourceManager): Manager whose transport and handle
            the session is opened with
        settings (Settings, optional): Configuration, copied into the session.
            Defaults to ``Settings()``.
    """

    def __init__(self, resource_name, resource_manager, settings=None):
        self.resource_name = resource_name
        self.resource_manager = resource_manager
        self.settings = replace(settings) if settings is not None else Settings()
        self._transport = resource_manager.transport
        self._handle = None
        self._cached_timeout = None
        self._opc_timeout = self.settings.opc_timeout
        self._term_char = self.settings.term_char
        self._init_service_requests()

        logger.debug("Opening session to %s", resource_name)
        self._handle = self._call(
            "Error when opening new VISA Session",
            self._transport.open,
            resource_manager.handle,
            resource_name,
        )

        try:
            self._reader = FramedReader(
                self._transport,
                self._handle,
                resource_name,
                self._call,
                lambda: ord(self._term_char),
                self.settings.read_buffer_size,
            )
            self.interface_type = int(self._get_attribute(VI_ATTR_INTF_TYPE))
            self.resource_class = str(self._get_attribute(VI_ATTR_RSRC_CLASS))
            self.session_kind = self._detect_session_kind()
            logger.debug(
                "%s: interface type %s, resource class %s -> %s",
                resource_name,
                self.interface_type,
                self.resource_class,
                self.session_kind.name,
            )
            self._configure()
            self.clear()
            self.write(self._command("*CLS"))
        except Exception:
            self.close()
            raise

        logger.info("Session %s opened (%s)", resource_name, self.session_kind.name)

    def __repr__(self):
        return "<{} {}>".format(self.__class__.__name__, self.resource_name)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # Construction

    def _detect_session_kind(self):
        if self.interface_type in (VI_INTF_GPIB, VI_INTF_GPIB_VXI):
            return SessionKind.GPIB
        if self.interface_type == VI_INTF_ASRL:
            return SessionKind.SERIAL
        if self.interface_type == VI_INTF_TCPIP:
            if self.resource_class == SOCKET_RESOURCE_CLASS:
                return SessionKind.SOCKET
            return SessionKind.HISLIP if self.is_hislip else SessionKind.VXI11
        if self.interface_type == VI_INTF_USB:
            return SessionKind.USB
        return SessionKind.UNSUPPORTED

    def _configure(self):
        settings = self.settings
        self.vxi_capable = settings.vxi_capable

        if self.session_kind is SessionKind.SERIAL:
            self.term_char = settings.term_char
            self.read_term_char_enabled = True
            self._set_attribute(VI_ATTR_ASRL_END_IN, VI_ASRL_END_NONE)
            self._set_attribute(VI_ATTR_ASRL_END_OUT, VI_ASRL_END_NONE)
            self.vxi_capable = False
        elif self.session_kind is SessionKind.SOCKET:
            self.term_char = settings.term_char
            self.read_term_char_enabled = True
            self.vxi_capable = False

        self.write_delay = settings.write_delay
        self.read_delay = settings.read_delay
        self.io_segment_size = settings.io_segment_size
        self.assure_response_end_with_tc = settings.assure_response_end_with_tc
        self.timeout = settings.visa_timeout
        self.opc_timeout = settings.opc_timeout
        self.read_stb_timeout = settings.read_stb_timeout

    def _command(self, command):
        """A command generated by the session itself, terminated for sending"""
        return command + self.settings.term_char

    # Transport calls and error reporting

    def _call(self, operation, func, *args):
        try:
            return func(*args)
        except VisaIOError as exc:
            raise self._error_from(exc, operation) from exc

    def _error_from(self, exc, operation):
        status = exc.error_code
        description = None
        if classify_status(status) is TransportFailure:
            description = self._describe(status, exc)
        return error_for_status(
            status,
            self.resource_name,
            operation,
            description=description,
            timeout=self._cached_timeout,
        )

    def _describe(self, status, exc):
        handle = self._handle if self._handle is not None else self.resource_manager.handle
        try:
            return self._transport.status_description(handle, status)
        except VisaIOError:
            logger.debug("No status description available for %s", status)
            return exc.description

    def _get_attribute(self, attribute):
        return self._call(
            "Get Attribute", self._transport.get_attribute, self._handle, attribute
        )

    def _set_attribute(self, attribute, value):
        self._call(
            "Set Attribute", self._transport.set_attribute, self._handle, attribute, value
        )

    # Configuration

    @property
    def is_open(self):
        return self._handle is not None

    @property
    def timeout(self):
        """I/O timeout in ms

        Read from the device the first time and cached afterwards. Setting the
        value it already has does not talk to the device.
        """
        if self._cached_timeout is None:
            self._cached_timeout = int(self._get_attribute(VI_ATTR_TMO_VALUE))
        return self._cached_timeout

    @timeout.setter
    def timeout(self, value):
        if value < 1:
            raise ValueError("Timeout must be at least 1 ms, got {}".format(value))
        if value != self._cached_timeout:
            self._set_attribute(VI_ATTR_TMO_VALUE, value)
        self._cached_timeout = value

    @property
    def opc_timeout(self):
        """Timeout in ms for operations synchronised with *OPC"""
        return self._opc_timeout

    @opc_timeout.setter
    def opc_timeout(self, value):
        if value < 1:
            raise ValueError("OPC timeout must be at least 1 ms, got {}".format(value))
        self._opc_timeout = value

    @property
    def term_char(self):
        """Termination character for reads"""
        return chr(int(self._get_attribute(VI_ATTR_TERMCHAR)))

    @term_char.setter
    def term_char(self, value):
        self._set_attribute(VI_ATTR_TERMCHAR, ord(value))
        self._term_char = value

    @property
    def read_term_char_enabled(self):
        return bool(self._get_attribute(VI_ATTR_TERMCHAR_EN))

    @read_term_char_enabled.setter
    def read_term_char_enabled(self, value):
        self._set_attribute(VI_ATTR_TERMCHAR_EN, 1 if value else 0)

    @property
    def send_end_enabled(self):
        return bool(self._get_attribute(VI_ATTR_SEND_END_EN))

    @send_end_enabled.setter
    def send_end_enabled(self, value):
        self._set_attribute(VI_ATTR_SEND_END_EN, 1 if value else 0)

    @property
    def is_hislip(self):
        """True for HiSLIP sessions. Transports without the attribute report False."""
        try:
            return int(self._get_attribute(VI_ATTR_TCPIP_IS_HISLIP)) == 1
        except UnsupportedAttributeError:
            return False

    @property
    def read_buffer_size(self):
        return self._reader.buffer_size

    @property
    def _first_read_len(self):
        return min(self.io_segment_size, FIRST_READ_CHUNK)

    @property
    def _next_read_len(self):
        return min(self.io_segment_size, NEXT_READ_CHUNK)

    # I/O

    def clear(self):
        self._call("Calling viClear", self._transport.clear, self._handle)

    def write(self, data):
        """
        Send a string or bytes to the device. Nothing is appended.
        """
        if isinstance(data, str):
            data = data.encode(self.settings.encoding)
        if self.write_delay > 0:
            time.sleep(self.write_delay / 1000)
        self._call("VISA Write", self._transport.write, self._handle, data)

    def _decode(self, data):
        return data.decode(self.settings.encoding, errors="replace")

    def read_bytes(self, max_length=None, assure_terminated=None):
        """Read at most ``max_length`` bytes

        Args:
            max_length (int, optional): Defaults to the read buffer size, which
                is also the largest value accepted
            assure_terminated (bool, optional): Defaults to the session's
                ``assure_response_end_with_tc``

        Returns:
            ReadResult: ``(data, more_available)``
        """
        if max_length is None:
            max_length = self._reader.buffer_size
        if assure_terminated is None:
            assure_terminated = self.assure_response_end_with_tc
        if self.read_delay > 0:
            time.sleep(self.read_delay / 1000)
        return self._reader.read_bounded(max_length, assure_terminated)

    def read_string(self, max_length=None, assure_terminated=None):
        """Like :meth:`read_bytes` but decoded. Termination characters are kept.

        Returns:
            StringReadResult: ``(text, more_available, count)``
        """
        data, more_available = self.read_bytes(max_length, assure_terminated)
        return StringReadResult(self._decode(data), more_available, len(data))

    def _read_unknown_length(self):
        if self.read_delay > 0:
            time.sleep(self.read_delay / 1000)
        return self._reader.read_unbounded(
            self._first_read_len, self._next_read_len, self.assure_response_end_with_tc
        )

    def read_string_unknown_length(self):
        """
        Read a whole response, however long, with trailing termination
        characters stripped

        The first read is limited to 1 kB, the rest is read in 64 kB chunks (or
        the I/O segment size, if smaller).
        """
        text = self._decode(self._read_unknown_length())
        return trim_termination(text, self._term_char)

    def read_bytes_unknown_length(self):
        """Read a whole binary response, however long

        Raises:
            TransportFailure: If the session is not VXI-capable and ends reads
                on the termination character, which binary data may contain
        """
        if not self.vxi_capable and self.read_term_char_enabled:
            raise TransportFailure(
                self.resource_name,
                "Read Binary Data",
                "{} interface does not support reading binary data of unknown "
                "length.".format(self.session_kind.name),
            )
        return self._read_unknown_length()

    @with_read_lock
    def query(self, command):
        """Write ``command`` and return the complete response as a string"""
        self.write(command)
        return self.read_string_unknown_length()

    @with_read_lock
    def query_bytes(self, command):
        """Write ``command`` and return the complete response as bytes"""
        self.write(command)
        return self._read_unknown_length()

    @with_read_lock
    def query_short(self, command, limit=64):
        """Query a response that must fit in ``limit`` bytes

        Raises:
            TransportFailure: If the response is longer than ``limit``
        """
        self.write(command)
        text, more_available, _ = self.read_string(limit)
        if more_available:
            raise TransportFailure(
                self.resource_name,
                "Query Short",
                "More than {} bytes of data was returned for {!r}".format(limit, command),
            )
        return trim_termination(text, self._term_char)

    @with_read_lock
    def query_system_error(self):
        """
        Return one entry of the instrument's error queue, or None if the
        instrument reports no error (a response starting with ``0,`` or ``+0,``)
        """
        response = self.query(self._command("SYST:ERR?"))
        if response.startswith("0,") or response.startswith("+0,"):
            return None
        return response

    @with_read_lock
    def query_system_error_all(self):
        """
        Drain the instrument's error queue

        Stops at the first "no error" response or after 50 entries, whichever
        comes first.
        """
        errors = []
        for _ in range(MAX_ERROR_QUEUE_READS):
            error = self.query_system_error()
            if not error:
                break
            errors.append(error)
        return errors

    def close(self):
        """
        Close the session. Calling this again does nothing.
        """
        if self._handle is None:
            return
        with self._srq_lock:
            if self._srq_handler is not None:
                try:
                    self._remove_srq_handler()
                except (UnsupportedAttributeError, TransportFailure) as exc:
                    logger.debug(
                        "%s: could not remove service request handler: %s",
                        self.resource_name,
                        exc,
                    )
            self._srq_handler = None
            self._srq_generation += 1
        handle, self._handle = self._handle, None
        logger.debug("Closing session %s", self.resource_name)
        self._call("Closing VISA Session", self._transport.close, handle)
