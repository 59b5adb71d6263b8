"""
A Transport that talks to ``TCPIP::<host>::<port>::SOCKET`` resources directly

This needs no VISA library at all: sessions are plain TCP connections and the
VISA read semantics (stop at the termination character or after ``count``
bytes, report ``VI_SUCCESS_MAX_CNT`` when more data may follow) are emulated
here. Status byte polling and service request events have no meaning on a raw
socket and are reported as unsupported operations.
"""

import itertools
import logging
import re
import socket
import threading

from pyvisa.errors import completion_and_error_messages
from pyvisa.errors import VisaIOError

from .constants import SOCKET_RESOURCE_CLASS
from .constants import VI_ATTR_INTF_TYPE
from .constants import VI_ATTR_RSRC_CLASS
from .constants import VI_ATTR_RSRC_MANF_NAME
from .constants import VI_ATTR_SEND_END_EN
from .constants import VI_ATTR_TERMCHAR
from .constants import VI_ATTR_TERMCHAR_EN
from .constants import VI_ATTR_TMO_VALUE
from .constants import VI_ERROR_CONN_LOST
from .constants import VI_ERROR_INV_OBJECT
from .constants import VI_ERROR_INV_RSRC_NAME
from .constants import VI_ERROR_IO
from .constants import VI_ERROR_NSUP_ATTR
from .constants import VI_ERROR_NSUP_OPER
from .constants import VI_ERROR_RSRC_NFOUND
from .constants import VI_ERROR_TMO
from .constants import VI_INTF_TCPIP
from .constants import VI_SUCCESS
from .constants import VI_SUCCESS_MAX_CNT
from .constants import VI_SUCCESS_TERM_CHAR
from .constants import VI_TMO_INFINITE
from .transport import Transport

logger = logging.getLogger(__name__)

RESOURCE_PATTERN = re.compile(r"^TCPIP\d*::([^:]+)::(\d+)::SOCKET$", re.IGNORECASE)

RECEIVE_CHUNK = 4096


class SocketChannelError(Exception):
    """A socket operation failed. ``status`` is the VISA code it maps to."""

    def __init__(self, message, status):
        super().__init__(message)
        self.status = status


class SocketChannel:
    """
    One TCP connection to an instrument

    Bytes received past the termination character are kept for the next read
    rather than dropped.

    Args:
        host (str): Host name or IP address
        port (int): TCP port
        term_char (int): Termination character as a byte value
        timeout (int): Connect, send and receive timeout in ms
    """

    def __init__(self, host, port, term_char=0x0A, timeout=5000):
        self.host = host
        self.port = port
        self.term_char = term_char
        self.term_char_enabled = True
        self._timeout = timeout
        self._sock = None
        self._pending = bytearray()

    def __repr__(self):
        return "<SocketChannel {}:{} ({})>".format(
            self.host, self.port, "connected" if self.connected else "not connected"
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def connected(self):
        return self._sock is not None

    @property
    def timeout(self):
        return self._timeout

    @timeout.setter
    def timeout(self, value):
        self._timeout = int(value)
        if self._sock is not None:
            self._sock.settimeout(self._timeout_seconds())

    def _timeout_seconds(self):
        if self._timeout >= VI_TMO_INFINITE:
            return None
        return self._timeout / 1000

    def _error(self, message, status):
        return SocketChannelError(
            "SocketIO {} port {}: {}".format(self.host, self.port, message), status
        )

    def connect(self):
        try:
            self._sock = socket.create_connection(
                (self.host, self.port), timeout=self._timeout_seconds()
            )
        except OSError as exc:
            raise self._error(
                "Establishing the connection to the instrument failed ({})".format(exc),
                VI_ERROR_RSRC_NFOUND,
            ) from exc
        self._sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    def close(self):
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        self._pending.clear()
        sock.close()

    def discard_input(self):
        self._pending.clear()

    def _check_connected(self):
        if self._sock is None:
            raise self._error("Connection is not valid", VI_ERROR_CONN_LOST)

    def write(self, data):
        self._check_connected()
        try:
            self._sock.sendall(data)
        except socket.timeout as exc:
            raise self._error(
                "Write timeout, timeout is set to {} ms".format(self._timeout),
                VI_ERROR_TMO,
            ) from exc
        except OSError as exc:
            raise self._error(
                "Error during writing. Details: {}".format(exc), VI_ERROR_IO
            ) from exc
        return len(data)

    def read(self, count):
        """Read up to ``count`` bytes

        With the termination character enabled, the read stops after the
        first termination character. Otherwise it waits for ``count`` bytes.

        Returns:
            tuple: ``(data, terminated)`` where ``terminated`` tells whether
            the data ends with the termination character that stopped the read
        """
        self._check_connected()
        term = bytes([self.term_char])
        while True:
            if self.term_char_enabled:
                index = self._pending.find(term, 0, count)
                if index >= 0:
                    return self._take(index + 1), True
            if len(self._pending) >= count:
                return self._take(count), False
            self._pending += self._receive()

    def _take(self, count):
        data = bytes(self._pending[:count])
        del self._pending[:count]
        return data

    def _receive(self):
        try:
            chunk = self._sock.recv(RECEIVE_CHUNK)
        except socket.timeout as exc:
            raise self._error(
                "Read timeout, timeout is set to {} ms".format(self._timeout),
                VI_ERROR_TMO,
            ) from exc
        except OSError as exc:
            raise self._error(
                "Error during reading. Details: {}".format(exc), VI_ERROR_IO
            ) from exc
        if not chunk:
            raise self._error("Connection closed by the instrument", VI_ERROR_CONN_LOST)
        return chunk


class SocketTransport(Transport):
    """
    Transport emulating the VISA primitives on raw TCP sockets

    Handles are allocated from a counter that only ever increases, so a closed
    handle is never reused. Resource manager handles map to no channel.

    Args:
        term_char (str): Termination character new channels start with
        connect_timeout (int): Timeout in ms for establishing connections
    """

    manufacturer = "framed_visa (Socket IO)"

    def __init__(self, term_char="\n", connect_timeout=5000):
        self.term_char = term_char
        self.connect_timeout = connect_timeout
        self._channels = {}
        self._last_errors = {}
        self._handles = itertools.count(1)
        self._lock = threading.Lock()

    def __repr__(self):
        return "<SocketTransport with {} open handles>".format(len(self._channels))

    # Handle table

    def _allocate(self, channel):
        with self._lock:
            handle = next(self._handles)
            self._channels[handle] = channel
        return handle

    def _lookup(self, handle):
        with self._lock:
            try:
                return self._channels[handle]
            except KeyError:
                raise VisaIOError(VI_ERROR_INV_OBJECT) from None

    def _channel(self, handle, operation):
        channel = self._lookup(handle)
        if channel is None:
            raise self._fail(
                handle,
                "{} is not possible on a resource manager handle".format(operation),
                VI_ERROR_NSUP_OPER,
            )
        return channel

    def _fail(self, handle, message, status, record=True):
        logger.debug("Socket handle %s: %s", handle, message)
        if record:
            with self._lock:
                self._last_errors[handle] = message
        return VisaIOError(status)

    def _unsupported(self, handle, operation):
        return self._fail(
            handle,
            "{} is not supported by the direct socket transport".format(operation),
            VI_ERROR_NSUP_OPER,
        )

    # Resource manager

    def open_default_resource_manager(self):
        return self._allocate(None)

    def list_resources(self, rm_handle, query="?*"):
        self._lookup(rm_handle)
        return ()

    def open(self, rm_handle, resource_name, open_timeout=0):
        self._lookup(rm_handle)
        # Open failures are reported with fixed messages, so their detail is only logged

        match = RESOURCE_PATTERN.match(resource_name)
        if not match:
            raise self._fail(
                rm_handle,
                "ResourceName '{}' is invalid for the direct socket session. "
                "Supported format: 'TCPIP::192.168.1.1::5025::SOCKET'".format(
                    resource_name
                ),
                VI_ERROR_INV_RSRC_NAME,
                record=False,
            )

        channel = SocketChannel(
            match.group(1),
            int(match.group(2)),
            term_char=ord(self.term_char),
            timeout=open_timeout or self.connect_timeout,
        )
        try:
            channel.connect()
        except SocketChannelError as exc:
            raise self._fail(rm_handle, str(exc), exc.status, record=False) from exc

        handle = self._allocate(channel)
        logger.debug("Opened %s as handle %s", channel, handle)
        return handle

    def close(self, handle):
        with self._lock:
            channel = self._channels.pop(handle, None)
            self._last_errors.pop(handle, None)
        if channel is not None:
            logger.debug("Closing %s (handle %s)", channel, handle)
            channel.close()
        return VI_SUCCESS

    # Session I/O

    def clear(self, handle):
        self._channel(handle, "Clear").discard_input()
        return VI_SUCCESS

    def write(self, handle, data):
        channel = self._channel(handle, "Write")
        try:
            written = channel.write(bytes(data))
        except SocketChannelError as exc:
            raise self._fail(handle, str(exc), exc.status) from exc
        return written, VI_SUCCESS

    def read(self, handle, count):
        channel = self._channel(handle, "Read")
        try:
            data, terminated = channel.read(count)
        except SocketChannelError as exc:
            raise self._fail(handle, str(exc), exc.status) from exc
        if terminated:
            return data, VI_SUCCESS_TERM_CHAR
        if len(data) >= count:
            return data, VI_SUCCESS_MAX_CNT
        return data, VI_SUCCESS

    # Attributes

    _getters = {
        VI_ATTR_SEND_END_EN: lambda channel: True,
        VI_ATTR_TERMCHAR: lambda channel: channel.term_char,
        VI_ATTR_TMO_VALUE: lambda channel: channel.timeout,
        VI_ATTR_TERMCHAR_EN: lambda channel: channel.term_char_enabled,
        VI_ATTR_INTF_TYPE: lambda channel: VI_INTF_TCPIP,
        VI_ATTR_RSRC_CLASS: lambda channel: SOCKET_RESOURCE_CLASS,
    }

    def get_attribute(self, handle, attribute):
        channel = self._lookup(handle)
        if attribute == VI_ATTR_RSRC_MANF_NAME:
            return self.manufacturer
        if channel is not None and attribute in self._getters:
            return self._getters[attribute](channel)
        raise self._fail(
            handle, "Attribute {} is not supported".format(attribute), VI_ERROR_NSUP_ATTR
        )

    def set_attribute(self, handle, attribute, value):
        channel = self._lookup(handle)
        if channel is not None:
            if attribute == VI_ATTR_SEND_END_EN:
                return VI_SUCCESS
            if attribute == VI_ATTR_TERMCHAR:
                channel.term_char = int(value)
                return VI_SUCCESS
            if attribute == VI_ATTR_TMO_VALUE:
                channel.timeout = int(value)
                return VI_SUCCESS
            if attribute == VI_ATTR_TERMCHAR_EN:
                channel.term_char_enabled = bool(value)
                return VI_SUCCESS
        raise self._fail(
            handle, "Attribute {} is not supported".format(attribute), VI_ERROR_NSUP_ATTR
        )

    def status_description(self, handle, status):
        with self._lock:
            message = self._last_errors.pop(handle, None)
        if message:
            return message
        _, description = completion_and_error_messages.get(
            status, ("?", "Unknown error 0x{:X}".format(status & 0xFFFFFFFF))
        )
        return description

    # Status byte and events

    def read_stb(self, handle):
        raise self._unsupported(handle, "Reading the status byte")

    def enable_event(self, handle, event_type, mechanism):
        raise self._unsupported(handle, "Enabling events")

    def disable_event(self, handle, event_type, mechanism):
        raise self._unsupported(handle, "Disabling events")

    def discard_events(self, handle, event_type, mechanism):
        raise self._unsupported(handle, "Discarding events")

    def wait_on_event(self, handle, event_type, timeout):
        raise self._unsupported(handle, "Waiting on events")

    def install_handler(self, handle, event_type, handler):
        raise self._unsupported(handle, "Installing event handlers")

    def uninstall_handler(self, handle, event_type, handler):
        raise self._unsupported(handle, "Uninstalling event handlers")
