import logging

from pyvisa.constants import ControlFlow
from pyvisa.constants import Parity
from pyvisa.constants import StopBits

from .constants import VI_ATTR_ASRL_BAUD
from .constants import VI_ATTR_ASRL_DATA_BITS
from .constants import VI_ATTR_ASRL_FLOW_CNTRL
from .constants import VI_ATTR_ASRL_PARITY
from .constants import VI_ATTR_ASRL_STOP_BITS
from .visa_session import VISASession

logger = logging.getLogger(__name__)


class SerialVISASession(VISASession):
    """
    A session with an instrument on a serial port

    Adds the serial line parameters to :class:`VISASession`. The resource
    manager's :meth:`~framed_visa.ResourceManager.open_serial_session` opens
    these from a COM port or, more robustly, from a device's HWID.
    """

    @property
    def baud_rate(self) -> int:
        return int(self._get_attribute(VI_ATTR_ASRL_BAUD))

    @baud_rate.setter
    def baud_rate(self, value: int) -> None:
        logger.debug("%s: baud rate %s", self.resource_name, value)
        self._set_attribute(VI_ATTR_ASRL_BAUD, value)

    @property
    def data_bits(self) -> int:
        return int(self._get_attribute(VI_ATTR_ASRL_DATA_BITS))

    @data_bits.setter
    def data_bits(self, value: int) -> None:
        if not 5 <= value <= 8:
            raise ValueError("Data bits must be between 5 and 8, got {}".format(value))
        self._set_attribute(VI_ATTR_ASRL_DATA_BITS, value)

    @property
    def parity(self) -> Parity:
        return Parity(self._get_attribute(VI_ATTR_ASRL_PARITY))

    @parity.setter
    def parity(self, value: Parity) -> None:
        self._set_attribute(VI_ATTR_ASRL_PARITY, Parity(value))

    @property
    def stop_bits(self) -> StopBits:
        return StopBits(self._get_attribute(VI_ATTR_ASRL_STOP_BITS))

    @stop_bits.setter
    def stop_bits(self, value: StopBits) -> None:
        self._set_attribute(VI_ATTR_ASRL_STOP_BITS, StopBits(value))

    @property
    def flow_control(self) -> ControlFlow:
        return ControlFlow(self._get_attribute(VI_ATTR_ASRL_FLOW_CNTRL))

    @flow_control.setter
    def flow_control(self, value: ControlFlow) -> None:
        self._set_attribute(VI_ATTR_ASRL_FLOW_CNTRL, ControlFlow(value))
