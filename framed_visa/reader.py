"""
Framing of instrument responses read in bounded chunks

A transport read stops at the termination character, after the requested
number of bytes, or whenever the backend decides to hand back what it has. The
:class:`FramedReader` turns such reads into complete messages.
"""

import logging
from collections import namedtuple
from threading import RLock

from .constants import VI_SUCCESS_MAX_CNT
from .errors import TransportFailure

logger = logging.getLogger(__name__)

ReadResult = namedtuple("ReadResult", ["data", "more_available"])


def trim_termination(text, term_char):
    """Strip every trailing termination character from ``text``"""
    return text.rstrip(term_char)


class FramedReader:
    """
    Reads messages for one session through a working buffer of fixed capacity

    Only one read can use the buffer at a time: every read holds the reader's
    lock, so concurrent reads on the same session are serialised.

    Args:
        transport (Transport): Transport to read from
        handle (int): Session handle on that transport
        resource_name (str): Used in error messages
        call (callable): ``call(operation, func, *args)`` invokes a transport
            function and converts its failures into session errors
        get_term_char (callable): Returns the current termination character as
            a byte value
        buffer_size (int): Capacity of the working buffer in bytes
    """

    def __init__(self, transport, handle, resource_name, call, get_term_char, buffer_size):
        self._transport = transport
        self._handle = handle
        self._resource_name = resource_name
        self._call = call
        self._get_term_char = get_term_char
        self._buffer = bytearray(buffer_size)
        self.lock = RLock()

    @property
    def buffer_size(self):
        return len(self._buffer)

    def _receive(self, count, operation):
        data, status = self._call(
            operation, self._transport.read, self._handle, count
        )
        return data, status == VI_SUCCESS_MAX_CNT

    def read_bounded(self, max_length, assure_terminated=False):
        """Read at most ``max_length`` bytes

        If ``assure_terminated`` is set and the read stopped short of
        ``max_length`` without ending on the termination character, exactly one
        more read is issued for the remaining capacity. This covers backends
        that hand back a response at a packet boundary before its terminator
        has arrived. It is not a loop: use :meth:`read_unbounded` for complete
        messages of arbitrary length.

        Args:
            max_length (int): Maximum number of bytes to read
            assure_terminated (bool): Allow the corrective second read

        Raises:
            TransportFailure: If ``max_length`` exceeds the working buffer.
                Nothing is read in that case.

        Returns:
            ReadResult: The bytes read and whether more data is pending
        """
        if max_length > len(self._buffer):
            raise TransportFailure(
                self._resource_name,
                "VISA Read",
                "Attempting to read data from instrument with maximum count bigger "
                "than the read buffer size: {} > {}".format(max_length, len(self._buffer)),
            )

        with self.lock:
            data, more_available = self._receive(max_length, "VISA Read")
            count = len(data)
            self._buffer[:count] = data

            if assure_terminated and 0 < count < max_length:
                term_char = self._get_term_char()
                if self._buffer[count - 1] != term_char:
                    logger.debug(
                        "%s: read of %s bytes ended without the termination "
                        "character, reading again",
                        self._resource_name,
                        count,
                    )
                    extra, more_available = self._receive(max_length - count, "VISA Read2")
                    self._buffer[count : count + len(extra)] = extra
                    count += len(extra)
                    if not more_available and self._buffer[count - 1] != term_char:
                        more_available = True

            return ReadResult(bytes(self._buffer[:count]), more_available)

    def read_unbounded(self, first_chunk_len, next_chunk_len, assure_terminated=False):
        """Read a complete message of unknown length

        The first read is small so that short responses never touch a larger
        buffer. When more data is pending, the rest is read in chunks of
        ``next_chunk_len`` until a chunk comes back short or the transport
        reports that the message is complete.

        Returns:
            bytes: The whole message, termination character included
        """
        with self.lock:
            data, more_available = self.read_bounded(first_chunk_len, assure_terminated)
            if not more_available:
                return data

            message = bytearray(data)
            while True:
                chunk, more_available = self._receive(next_chunk_len, "VISA Read Chunk")
                message += chunk
                if not more_available or len(chunk) < next_chunk_len:
                    break

            logger.debug(
                "%s: read %s bytes of unknown length", self._resource_name, len(message)
            )
            return bytes(message)
