"""
USB传输模块

继电器控制器只依赖一个简单的传输接口（写一个数据包、读一个数据包、关闭）。
本模块提供：
- 基于pyusb的真实设备传输，每次传输前打开管道、传输后关闭管道
- 内存模拟传输，用于测试和无硬件演示
"""

import logging
from contextlib import contextmanager
from typing import List, Optional

import usb.core
import usb.util

from .exceptions import (
    HIDRelayAcquisitionException,
    HIDRelayDeviceNotFoundException,
    HIDRelayTransportException,
)
from .hid_protocol import HIDRelayProtocol
from .utils import bytes_to_hex_string

logger = logging.getLogger(__name__)

VENDOR_ID = 0x0416
PRODUCT_ID = 0x5020
USB_CONFIGURATION = 1
USB_INTERFACE = 0
ENDPOINT_IN_ADDRESS = 0x84
ENDPOINT_OUT_ADDRESS = 0x05
DEFAULT_TIMEOUT_MS = 1000


class RelayTransport:
    """继电器传输接口"""

    def write_packet(self, data: bytes) -> None:
        raise NotImplementedError

    def read_packet(self) -> bytes:
        raise NotImplementedError

    def close(self) -> None:
        pass


class UsbPipe:
    """单个端点上的管道，只在一次传输期间有效"""

    def __init__(self, device, endpoint_address: int, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.device = device
        self.endpoint_address = endpoint_address
        self.timeout_ms = timeout_ms
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def is_in(self) -> bool:
        return usb.util.endpoint_direction(self.endpoint_address) == usb.util.ENDPOINT_IN

    def transfer(self, buffer: bytearray) -> int:
        """
        同步传输一个缓冲区

        IN端点读取数据填充buffer，OUT端点写出buffer。传输字节数必须等于缓冲区长度。

        Args:
            buffer: 数据缓冲区

        Returns:
            int: 实际传输的字节数
        """
        if not self._open:
            raise HIDRelayTransportException(f"管道已关闭: 端点0x{self.endpoint_address:02X}")

        try:
            if self.is_in:
                data = self.device.read(self.endpoint_address, len(buffer), timeout=self.timeout_ms)
                transferred = len(data)
                buffer[:transferred] = bytes(data)
            else:
                transferred = self.device.write(self.endpoint_address, bytes(buffer), timeout=self.timeout_ms)
        except usb.core.USBError as e:
            raise HIDRelayTransportException(
                f"端点0x{self.endpoint_address:02X}传输失败: {e}"
            ) from e

        if transferred != len(buffer):
            raise HIDRelayTransportException(
                f"读写数据失败: 期望传输{len(buffer)}字节, 实际传输{transferred}字节"
            )

        return transferred

    def close(self) -> None:
        self._open = False


class UsbHidTransport(RelayTransport):
    """基于pyusb的继电器传输"""

    def __init__(
        self,
        device,
        interface: int = USB_INTERFACE,
        endpoint_in: int = ENDPOINT_IN_ADDRESS,
        endpoint_out: int = ENDPOINT_OUT_ADDRESS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        """
        包装一个已经占用接口的设备

        Args:
            device: pyusb设备对象
            interface: 已占用的接口号
            endpoint_in: 读取端点地址（设备到主机）
            endpoint_out: 写入端点地址（主机到设备）
            timeout_ms: 单次传输超时时间（毫秒）
        """
        self.device = device
        self.interface = interface
        self.endpoint_in = endpoint_in
        self.endpoint_out = endpoint_out
        self.timeout_ms = timeout_ms
        self._claimed = True

    @staticmethod
    def find_device(vendor_id: int = VENDOR_ID, product_id: int = PRODUCT_ID):
        """
        查找第一个匹配的USB设备（遍历所有总线和集线器）

        Returns:
            设备对象，如果未找到则返回None
        """
        try:
            return usb.core.find(idVendor=vendor_id, idProduct=product_id)
        except (usb.core.USBError, usb.core.NoBackendError) as e:
            raise HIDRelayTransportException(f"无法枚举USB设备: {e}") from e

    @staticmethod
    def claim_interface(device, configuration: int = USB_CONFIGURATION, interface: int = USB_INTERFACE) -> None:
        """以独占方式占用设备的配置和接口"""
        detached = False
        try:
            if device.is_kernel_driver_active(interface):
                device.detach_kernel_driver(interface)
                detached = True
                logger.debug("已分离接口%d上的内核驱动", interface)
        except NotImplementedError:
            # 部分平台的后端不支持内核驱动操作
            pass
        except usb.core.USBError as e:
            raise HIDRelayAcquisitionException(f"无法分离内核驱动: {e}") from e

        try:
            device.set_configuration(configuration)
            usb.util.claim_interface(device, interface)
        except usb.core.USBError as e:
            usb.util.dispose_resources(device)
            if detached:
                try:
                    device.attach_kernel_driver(interface)
                except usb.core.USBError as attach_error:
                    logger.warning("无法恢复接口%d上的内核驱动: %s", interface, attach_error)
            raise HIDRelayAcquisitionException(f"无法占用继电器USB接口: {e}") from e

    @classmethod
    def acquire(
        cls,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        configuration: int = USB_CONFIGURATION,
        interface: int = USB_INTERFACE,
        endpoint_in: int = ENDPOINT_IN_ADDRESS,
        endpoint_out: int = ENDPOINT_OUT_ADDRESS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> "UsbHidTransport":
        """
        查找并占用第一个继电器设备

        Returns:
            UsbHidTransport: 已占用接口的传输对象
        """
        device = cls.find_device(vendor_id, product_id)
        if device is None:
            raise HIDRelayDeviceNotFoundException(
                f"未找到继电器USB设备 ({vendor_id:#06x}:{product_id:#06x})"
            )

        cls.claim_interface(device, configuration, interface)
        logger.info("已占用继电器设备 %04x:%04x 接口%d", vendor_id, product_id, interface)

        return cls(device, interface, endpoint_in, endpoint_out, timeout_ms)

    @contextmanager
    def open_pipe(self, endpoint_address: int):
        """打开端点管道，退出时（包括传输失败）保证关闭"""
        if not self._claimed:
            raise HIDRelayTransportException("USB接口已释放")

        pipe = UsbPipe(self.device, endpoint_address, self.timeout_ms)
        try:
            yield pipe
        finally:
            pipe.close()

    def write_packet(self, data: bytes) -> None:
        logger.debug("发送: %s", bytes_to_hex_string(data[:HIDRelayProtocol.CMD_DATA_LEN + 4]))
        with self.open_pipe(self.endpoint_out) as pipe:
            pipe.transfer(bytearray(data))

    def read_packet(self) -> bytes:
        buffer = bytearray(HIDRelayProtocol.PACKET_LENGTH)
        with self.open_pipe(self.endpoint_in) as pipe:
            pipe.transfer(buffer)
        logger.debug("接收: %s", bytes_to_hex_string(buffer[:HIDRelayProtocol.MIN_RESPONSE_LENGTH]))
        return bytes(buffer)

    def close(self) -> None:
        """释放USB接口"""
        if not self._claimed:
            return

        self._claimed = False
        try:
            usb.util.release_interface(self.device, self.interface)
            usb.util.dispose_resources(self.device)
        except usb.core.USBError as e:
            raise HIDRelayTransportException(f"释放USB接口失败: {e}") from e
        logger.info("已释放继电器设备接口%d", self.interface)


class SimulatedRelayTransport(RelayTransport):
    """
    模拟继电器传输

    记录写入的命令；收到写入命令时保存掩码，收到读取命令后按位权表
    返回与最近一次写入一致的状态数据包。
    """

    def __init__(self, size: int = 16, initial_states: Optional[List[bool]] = None):
        self.size = size
        self.states = list(initial_states) if initial_states is not None else [False] * size
        self.sent_packets: List[bytes] = []
        self.closed = False
        self._pending_read = False

    def write_packet(self, data: bytes) -> None:
        if self.closed:
            raise HIDRelayTransportException("模拟设备已关闭")

        command = HIDRelayProtocol.parse_command(data)
        self.sent_packets.append(bytes(data))
        logger.debug("模拟设备收到命令: %r", command)

        if command.opcode == HIDRelayProtocol.CMD_WRITE:
            mask = command.data[0]
            self.states = [(mask >> i) & 1 == 1 for i in range(self.size)]
        elif command.opcode == HIDRelayProtocol.CMD_READ:
            self._pending_read = True

    def read_packet(self) -> bytes:
        if self.closed:
            raise HIDRelayTransportException("模拟设备已关闭")
        if not self._pending_read:
            raise HIDRelayTransportException("模拟设备没有待读取的状态数据")

        self._pending_read = False
        return HIDRelayProtocol.build_status_response(self.states)

    def close(self) -> None:
        self.closed = True
