import itertools
from collections import deque

import pytest
from pyvisa.errors import VisaIOError

from framed_visa import ResourceManager
from framed_visa import Transport
from framed_visa.constants import VI_ATTR_INTF_TYPE
from framed_visa.constants import VI_ATTR_RSRC_CLASS
from framed_visa.constants import VI_ATTR_RSRC_MANF_NAME
from framed_visa.constants import VI_ATTR_SEND_END_EN
from framed_visa.constants import VI_ATTR_TERMCHAR
from framed_visa.constants import VI_ATTR_TERMCHAR_EN
from framed_visa.constants import VI_ATTR_TMO_VALUE
from framed_visa.constants import VI_ERROR_NSUP_ATTR
from framed_visa.constants import VI_ERROR_TMO
from framed_visa.constants import VI_INTF_GPIB
from framed_visa.constants import VI_SUCCESS
from framed_visa.constants import VI_SUCCESS_MAX_CNT
from framed_visa.constants import VI_SUCCESS_TERM_CHAR

RM_HANDLE = 1


class FakeTransport(Transport):
    """
    Scripted in-memory transport

    Reads are answered from ``reads``, a queue of ``(data, status)`` tuples or
    exceptions to raise. Once it is empty, reads are served from ``stream``
    the way a device would: up to and including the termination character, or
    ``count`` bytes with ``VI_SUCCESS_MAX_CNT``. Nothing left at all is a
    timeout.
    """

    def __init__(self, attributes=None):
        self.attributes = {
            VI_ATTR_INTF_TYPE: VI_INTF_GPIB,
            VI_ATTR_RSRC_CLASS: "INSTR",
            VI_ATTR_TMO_VALUE: 2000,
            VI_ATTR_TERMCHAR: 0x0A,
            VI_ATTR_TERMCHAR_EN: 0,
            VI_ATTR_SEND_END_EN: 1,
            VI_ATTR_RSRC_MANF_NAME: "Fake VISA",
        }
        self.attributes.update(attributes or {})
        self.reads = deque()
        self.stream = bytearray()
        self.writes = []
        self.write_errors = deque()
        self.calls = []
        self.opened = []
        self.closed = []
        self.open_error = None
        self.list_error = None
        self.resources = ()
        self.stb = 0
        self.stb_error = None
        self.event_results = deque()
        self.handlers = []
        self.descriptions = {}
        self._handles = itertools.count(100)

    def reply(self, text, status=VI_SUCCESS_TERM_CHAR):
        if isinstance(text, str):
            text = text.encode("ascii")
        self.reads.append((text, status))

    def set_calls(self, attribute):
        return [
            args[2]
            for name, *args in self.calls
            if name == "set_attribute" and args[1] == attribute
        ]

    def read_calls(self):
        return [args[1] for name, *args in self.calls if name == "read"]

    def open_default_resource_manager(self):
        return RM_HANDLE

    def list_resources(self, rm_handle, query="?*"):
        self.calls.append(("list_resources", rm_handle, query))
        if self.list_error is not None:
            raise self.list_error
        return self.resources

    def open(self, rm_handle, resource_name, open_timeout=0):
        self.calls.append(("open", rm_handle, resource_name))
        if self.open_error is not None:
            raise self.open_error
        handle = next(self._handles)
        self.opened.append(resource_name)
        return handle

    def close(self, handle):
        self.calls.append(("close", handle))
        self.closed.append(handle)
        return VI_SUCCESS

    def clear(self, handle):
        self.calls.append(("clear", handle))
        return VI_SUCCESS

    def read(self, handle, count):
        self.calls.append(("read", handle, count))
        if self.reads:
            response = self.reads.popleft()
            if isinstance(response, Exception):
                raise response
            return response
        if self.stream:
            return self._read_stream(count)
        raise VisaIOError(VI_ERROR_TMO)

    def _read_stream(self, count):
        term = self.attributes[VI_ATTR_TERMCHAR]
        index = self.stream.find(bytes([term]), 0, count)
        if index >= 0:
            data = bytes(self.stream[: index + 1])
            del self.stream[: index + 1]
            return data, VI_SUCCESS_TERM_CHAR
        data = bytes(self.stream[:count])
        del self.stream[:count]
        return data, VI_SUCCESS_MAX_CNT if len(data) == count else VI_SUCCESS

    def write(self, handle, data):
        self.calls.append(("write", handle, data))
        if self.write_errors:
            raise self.write_errors.popleft()
        self.writes.append(bytes(data))
        return len(data), VI_SUCCESS

    def get_attribute(self, handle, attribute):
        self.calls.append(("get_attribute", handle, attribute))
        try:
            return self.attributes[attribute]
        except KeyError:
            raise VisaIOError(VI_ERROR_NSUP_ATTR) from None

    def set_attribute(self, handle, attribute, value):
        self.calls.append(("set_attribute", handle, attribute, value))
        self.attributes[attribute] = value
        return VI_SUCCESS

    def read_stb(self, handle):
        self.calls.append(("read_stb", handle))
        if self.stb_error is not None:
            raise self.stb_error
        return self.stb

    def status_description(self, handle, status):
        return self.descriptions.get(status, "Fake description of {}".format(status))

    def enable_event(self, handle, event_type, mechanism):
        self.calls.append(("enable_event", handle, event_type, mechanism))
        return VI_SUCCESS

    def disable_event(self, handle, event_type, mechanism):
        self.calls.append(("disable_event", handle, event_type, mechanism))
        return VI_SUCCESS

    def discard_events(self, handle, event_type, mechanism):
        self.calls.append(("discard_events", handle, event_type, mechanism))
        return VI_SUCCESS

    def wait_on_event(self, handle, event_type, timeout):
        self.calls.append(("wait_on_event", handle, event_type, timeout))
        if self.event_results:
            result = self.event_results.popleft()
            if isinstance(result, Exception):
                raise result
            return result
        raise VisaIOError(VI_ERROR_TMO)

    def install_handler(self, handle, event_type, handler):
        self.calls.append(("install_handler", handle, event_type, handler))
        self.handlers.append(handler)
        return VI_SUCCESS

    def uninstall_handler(self, handle, event_type, handler):
        self.calls.append(("uninstall_handler", handle, event_type, handler))
        self.handlers.remove(handler)
        return VI_SUCCESS


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def rm(transport):
    return ResourceManager(transport)


@pytest.fixture
def session(rm, transport):
    """An open GPIB session with the construction traffic forgotten"""
    inst = rm.open_session("GPIB0::29::INSTR")
    transport.calls.clear()
    transport.writes.clear()
    return inst
