"""
Status byte polling and service requests

These methods are mixed into :class:`~framed_visa.visa_session.VISASession`.
They rely on the session's ``_call`` wrapper, its transport handle and its
``timeout`` property.
"""

import logging
import time
from dataclasses import dataclass
from dataclasses import field
from threading import Lock

from pyvisa.errors import VisaIOError

from .constants import StatusByte
from .constants import VI_ERROR_TMO
from .constants import VI_EVENT_SERVICE_REQ
from .constants import VI_HNDLR
from .constants import VI_QUEUE
from .constants import VI_SUCCESS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceRequestEvent:
    """A service request delivered to an installed handler

    Attributes:
        resource_name: Session that received the request
        status_byte: Status byte read when the request was delivered
        timestamp: ``time.time()`` at delivery
    """

    resource_name: str
    status_byte: StatusByte
    timestamp: float = field(default_factory=time.time)


class ServiceRequestMixin:
    def _init_service_requests(self):
        self._srq_lock = Lock()
        self._srq_handler = None
        self._srq_generation = 0

    def _read_stb(self):
        value = self._call("viReadSTB()", self._transport.read_stb, self._handle)
        return StatusByte(int(value) & 0xFF)

    def poll_status_byte(self, keep_timeout=False):
        """Read the device's status byte

        If ``read_stb_timeout`` is configured (> 0) the session timeout is
        swapped for it while polling and restored afterwards, even if the poll
        fails.

        Args:
            keep_timeout (bool, optional): Poll with the session timeout as it
                is, ignoring ``read_stb_timeout``. Defaults to False.

        Returns:
            StatusByte: Snapshot of the status byte
        """
        if keep_timeout or self.read_stb_timeout <= 0:
            return self._read_stb()

        previous = self.timeout
        self.timeout = self.read_stb_timeout
        try:
            return self._read_stb()
        finally:
            self.timeout = previous

    def _query_stb(self):
        if self.settings.disable_stb_query:
            return StatusByte.NONE
        return StatusByte(int(self.query_short(self._command("*STB?"))) & 0xFF)

    def error_queue_is_not_empty(self):
        """
        Return True if the status byte reports entries in the error queue

        Always False, without talking to the device, when the session's
        settings have ``disable_stb_query`` set.
        """
        return bool(self._query_stb() & StatusByte.ERROR_QUEUE_NOT_EMPTY)

    # Service request events

    def enable_service_request_event(self, mechanism=VI_QUEUE):
        self._call(
            "Enable SRQ event",
            self._transport.enable_event,
            self._handle,
            VI_EVENT_SERVICE_REQ,
            mechanism,
        )

    def disable_service_request_event(self, mechanism=VI_QUEUE):
        self._call(
            "Disable SRQ event",
            self._transport.disable_event,
            self._handle,
            VI_EVENT_SERVICE_REQ,
            mechanism,
        )

    def discard_service_request_events(self, mechanism=VI_QUEUE):
        self._call(
            "Discard all SRQ events",
            self._transport.discard_events,
            self._handle,
            VI_EVENT_SERVICE_REQ,
            mechanism,
        )

    def wait_for_service_request(self, timeout_ms, disable_afterward=False):
        """Block until the device requests service

        Args:
            timeout_ms (int): How long to wait, in ms
            disable_afterward (bool, optional): Disable the queued SRQ event
                once the wait is over, however it ended. Defaults to False.

        Returns:
            bool: True if the wait timed out, False if a request arrived
        """
        self.enable_service_request_event(VI_QUEUE)
        try:
            self._transport.wait_on_event(self._handle, VI_EVENT_SERVICE_REQ, timeout_ms)
        except VisaIOError as exc:
            if exc.error_code == VI_ERROR_TMO:
                logger.debug(
                    "%s: no service request within %s ms", self.resource_name, timeout_ms
                )
                return True
            raise self._error_from(exc, "Waiting on SRQ Event") from exc
        finally:
            if disable_afterward:
                self.disable_service_request_event(VI_QUEUE)
        return False

    def install_service_request_handler(self, callback):
        """Call ``callback`` whenever the device requests service

        Only one handler is installed at a time: installing a new one removes
        the previous one first. ``callback`` receives a
        :class:`ServiceRequestEvent` and may run on a thread owned by the
        transport.
        """
        with self._srq_lock:
            if self._srq_handler is not None:
                self._remove_srq_handler()

            self._srq_generation += 1
            generation = self._srq_generation

            def srq_handler(handle, event_type, context, user_handle):
                if generation != self._srq_generation:
                    logger.debug(
                        "%s: dropping service request for a removed handler",
                        self.resource_name,
                    )
                    return VI_SUCCESS
                event = ServiceRequestEvent(
                    self.resource_name, self.poll_status_byte(keep_timeout=True)
                )
                callback(event)
                return VI_SUCCESS

            logger.debug("%s: installing service request handler", self.resource_name)
            self._call(
                "Adding srq event handler for service request",
                self._transport.install_handler,
                self._handle,
                VI_EVENT_SERVICE_REQ,
                srq_handler,
            )
            self._srq_handler = srq_handler
            self.enable_service_request_event(VI_HNDLR)

    def uninstall_service_request_handler(self):
        """Remove the handler installed by :meth:`install_service_request_handler`"""
        with self._srq_lock:
            if self._srq_handler is None:
                return
            self._remove_srq_handler()
            self.disable_service_request_event(VI_HNDLR)

    def _remove_srq_handler(self):
        handler, self._srq_handler = self._srq_handler, None
        self._srq_generation += 1
        logger.debug("%s: removing service request handler", self.resource_name)
        self._call(
            "Removing event handler for service request",
            self._transport.uninstall_handler,
            self._handle,
            VI_EVENT_SERVICE_REQ,
            handler,
        )
