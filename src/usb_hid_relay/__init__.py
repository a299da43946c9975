"""
USB HID继电器控制库

通过64字节HID命令/状态数据包控制USB HID继电器板（VID 0x0416, PID 0x5020），
支持读取、设置单个或全部开关，以及用名称代替编号操作开关。
"""

__version__ = "1.0.0"
__author__ = "USB HID Relay Team"
__description__ = "Control USB HID relay boards through their command/status packet protocol"

from .exceptions import (
    HIDRelayException,
    HIDRelayInvalidArgumentException,
    HIDRelayDeviceNotFoundException,
    HIDRelayAcquisitionException,
    HIDRelayTransportException,
    HIDRelayProtocolException,
)
from .relay_size import RelaySize
from .hid_protocol import HIDRelayChecksum, HIDRelayCommand, HIDRelayProtocol
from .usb_transport import RelayTransport, UsbHidTransport, SimulatedRelayTransport
from .device_controller import UsbHidRelayController, DeviceManager, RelaySequence
from .enumerated_relay import EnumeratedUsbHidRelay
