from dataclasses import dataclass


@dataclass
class Settings:
    """
    Per-session configuration

    A Session copies the Settings it is given, so one instance can be reused to
    open several sessions without them sharing state.

    Attributes:
        assure_response_end_with_tc: If True, a bounded read that stops short
            without the termination character is followed by one corrective read
        write_delay: Delay in ms before each write
        read_delay: Delay in ms before each bounded read or the first chunk of
            an unbounded read
        io_segment_size: Maximum chunk size in bytes used for reads
        opc_timeout: Timeout in ms for operations synchronised with *OPC
        visa_timeout: I/O timeout in ms applied when the session is opened
        read_stb_timeout: If > 0, the I/O timeout used while polling the status
            byte. Some sensors answer status polls slowly, this keeps them from
            blocking for the full I/O timeout.
        term_char: Termination character for reads
        vxi_capable: Whether the session may use VXI-only optimisations.
            Coerced to False for serial and socket sessions.
        disable_stb_query: If True, *STB? queries are never sent and report an
            empty status byte
        encoding: Codec used for text reads and writes
        read_buffer_size: Capacity in bytes of the session's read buffer
    """

    assure_response_end_with_tc: bool = False
    write_delay: int = 0
    read_delay: int = 0
    io_segment_size: int = 10000000
    opc_timeout: int = 30000
    visa_timeout: int = 10000
    read_stb_timeout: int = -1
    term_char: str = "\n"
    vxi_capable: bool = False
    disable_stb_query: bool = False
    encoding: str = "ascii"
    read_buffer_size: int = 1000000
