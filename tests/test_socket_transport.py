import logging
import socket

import pytest
from pyvisa.errors import VisaIOError

from framed_visa import InvalidResourceNameError
from framed_visa import ResourceManager
from framed_visa import SessionKind
from framed_visa import SocketTransport
from framed_visa import VisaTimeoutError
from framed_visa.constants import VI_ATTR_ASRL_BAUD
from framed_visa.constants import VI_ATTR_INTF_TYPE
from framed_visa.constants import VI_ATTR_RSRC_CLASS
from framed_visa.constants import VI_ATTR_RSRC_MANF_NAME
from framed_visa.constants import VI_ATTR_TERMCHAR_EN
from framed_visa.constants import VI_ATTR_TMO_VALUE
from framed_visa.constants import VI_ERROR_CONN_LOST
from framed_visa.constants import VI_ERROR_INV_OBJECT
from framed_visa.constants import VI_ERROR_INV_RSRC_NAME
from framed_visa.constants import VI_ERROR_IO
from framed_visa.constants import VI_ERROR_NSUP_ATTR
from framed_visa.constants import VI_ERROR_NSUP_OPER
from framed_visa.constants import VI_ERROR_RSRC_NFOUND
from framed_visa.constants import VI_ERROR_TMO
from framed_visa.constants import VI_INTF_TCPIP
from framed_visa.constants import VI_SUCCESS
from framed_visa.constants import VI_SUCCESS_MAX_CNT
from framed_visa.constants import VI_SUCCESS_TERM_CHAR


@pytest.fixture
def listener():
    """A local TCP server standing in for an instrument"""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(4)
    server.settimeout(5)
    yield server
    server.close()


@pytest.fixture
def resource_name(listener):
    return "TCPIP::127.0.0.1::{}::SOCKET".format(listener.getsockname()[1])


@pytest.fixture
def transport():
    return SocketTransport()


@pytest.fixture
def rm_handle(transport):
    return transport.open_default_resource_manager()


@pytest.fixture
def connection(transport, rm_handle, resource_name, listener):
    handle = transport.open(rm_handle, resource_name)
    conn, _ = listener.accept()
    conn.settimeout(5)
    yield handle, conn
    conn.close()
    transport.close(handle)


def recv_exactly(conn, count):
    data = b""
    while len(data) < count:
        chunk = conn.recv(count - len(data))
        assert chunk
        data += chunk
    return data


def test_read_stops_at_term_char_and_keeps_the_rest(transport, connection):
    handle, conn = connection
    conn.sendall(b"first\nsecond\n")

    assert transport.read(handle, 100) == (b"first\n", VI_SUCCESS_TERM_CHAR)
    assert transport.read(handle, 100) == (b"second\n", VI_SUCCESS_TERM_CHAR)


def test_read_stops_at_count(transport, connection):
    handle, conn = connection
    conn.sendall(b"abcdef\n")

    assert transport.read(handle, 4) == (b"abcd", VI_SUCCESS_MAX_CNT)
    assert transport.read(handle, 100) == (b"ef\n", VI_SUCCESS_TERM_CHAR)


def test_read_without_term_char(transport, connection):
    handle, conn = connection
    transport.set_attribute(handle, VI_ATTR_TERMCHAR_EN, 0)
    conn.sendall(b"ab\ncd")

    assert transport.read(handle, 5) == (b"ab\ncd", VI_SUCCESS_MAX_CNT)


def test_write(transport, connection):
    handle, conn = connection

    assert transport.write(handle, b"*IDN?\n") == (6, VI_SUCCESS)
    assert recv_exactly(conn, 6) == b"*IDN?\n"


def test_read_timeout(transport, connection):
    handle, _ = connection
    transport.set_attribute(handle, VI_ATTR_TMO_VALUE, 100)

    with pytest.raises(VisaIOError) as exc_info:
        transport.read(handle, 10)

    assert exc_info.value.error_code == VI_ERROR_TMO


def test_connection_lost(transport, connection):
    handle, conn = connection
    conn.close()

    with pytest.raises(VisaIOError) as exc_info:
        transport.read(handle, 10)

    assert exc_info.value.error_code == VI_ERROR_CONN_LOST
    assert "closed" in transport.status_description(handle, VI_ERROR_CONN_LOST)


def test_clear_discards_received_data(transport, connection):
    handle, conn = connection
    conn.sendall(b"stale\nfresh\n")
    assert transport.read(handle, 100) == (b"stale\n", VI_SUCCESS_TERM_CHAR)

    transport.clear(handle)
    conn.sendall(b"new\n")

    # "fresh\n" may not have been received before the clear
    assert transport.read(handle, 100)[0] in (b"fresh\n", b"new\n")


def test_invalid_resource_name(transport, rm_handle, caplog):
    with caplog.at_level(logging.DEBUG, logger="framed_visa.socket_transport"):
        with pytest.raises(VisaIOError) as exc_info:
            transport.open(rm_handle, "GPIB0::1::INSTR")

    assert exc_info.value.error_code == VI_ERROR_INV_RSRC_NAME
    assert "Supported format" in caplog.text


def test_connection_refused(transport, rm_handle):
    unused = socket.socket()
    unused.bind(("127.0.0.1", 0))
    port = unused.getsockname()[1]
    unused.close()

    with pytest.raises(VisaIOError) as exc_info:
        transport.open(rm_handle, "TCPIP0::127.0.0.1::{}::SOCKET".format(port))

    assert exc_info.value.error_code == VI_ERROR_RSRC_NFOUND
    assert "Establishing" not in transport.status_description(rm_handle, VI_ERROR_IO)


def test_handles_are_not_reused(transport, rm_handle, resource_name, listener):
    first = transport.open(rm_handle, resource_name)
    second = transport.open(rm_handle, resource_name)
    transport.close(first)
    third = transport.open(rm_handle, resource_name)

    assert len({rm_handle, first, second, third}) == 4
    assert third > second

    transport.close(second)
    transport.close(third)


def test_close_is_idempotent(transport, rm_handle, resource_name, listener):
    handle = transport.open(rm_handle, resource_name)
    transport.close(handle)
    transport.close(handle)

    with pytest.raises(VisaIOError) as exc_info:
        transport.read(handle, 10)

    assert exc_info.value.error_code == VI_ERROR_INV_OBJECT


def test_attributes(transport, connection, rm_handle):
    handle, _ = connection

    assert transport.get_attribute(handle, VI_ATTR_INTF_TYPE) == VI_INTF_TCPIP
    assert transport.get_attribute(handle, VI_ATTR_RSRC_CLASS) == "SOCKET"
    assert transport.get_attribute(rm_handle, VI_ATTR_RSRC_MANF_NAME) == transport.manufacturer

    with pytest.raises(VisaIOError) as exc_info:
        transport.get_attribute(handle, VI_ATTR_ASRL_BAUD)
    assert exc_info.value.error_code == VI_ERROR_NSUP_ATTR


def test_status_byte_is_not_supported(transport, connection):
    handle, _ = connection

    with pytest.raises(VisaIOError) as exc_info:
        transport.read_stb(handle)

    assert exc_info.value.error_code == VI_ERROR_NSUP_OPER


def test_no_resources_listed(transport, rm_handle):
    assert transport.list_resources(rm_handle) == ()


def test_session_over_socket(listener, resource_name):
    rm = ResourceManager(SocketTransport())
    inst = rm.open_session(resource_name)
    conn, _ = listener.accept()
    conn.settimeout(5)

    with conn, inst:
        assert inst.session_kind is SessionKind.SOCKET
        assert recv_exactly(conn, 5) == b"*CLS\n"

        conn.sendall(b"FAKE,INSTRUMENT,0,1.0\n")
        assert inst.query("*IDN?\n") == "FAKE,INSTRUMENT,0,1.0"
        assert recv_exactly(conn, 6) == b"*IDN?\n"

        inst.timeout = 200
        with pytest.raises(VisaTimeoutError, match="200 ms"):
            inst.read_string_unknown_length()


def test_session_rejects_instr_resource():
    rm = ResourceManager(SocketTransport())

    with pytest.raises(InvalidResourceNameError):
        rm.open_session("TCPIP::127.0.0.1::INSTR")
