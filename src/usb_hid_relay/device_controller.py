"""
设备控制模块

提供USB HID继电器的高级控制接口，包括：
- 开关状态读取与设置
- 设备查找与占用
- 定时开关序列
"""

import logging
import time
from typing import List, Sequence, Tuple
from dataclasses import dataclass

import usb.core
import usb.util

from .exceptions import HIDRelayInvalidArgumentException, HIDRelayTransportException
from .hid_protocol import HIDRelayProtocol
from .relay_size import RelaySize
from .usb_transport import (
    RelayTransport,
    UsbHidTransport,
    VENDOR_ID,
    PRODUCT_ID,
    USB_CONFIGURATION,
    USB_INTERFACE,
    ENDPOINT_IN_ADDRESS,
    ENDPOINT_OUT_ADDRESS,
    DEFAULT_TIMEOUT_MS,
)

logger = logging.getLogger(__name__)


@dataclass
class DeviceInfo:
    """设备信息数据类"""
    bus: int
    address: int
    vendor_id: str
    product_id: str
    manufacturer: str
    product: str
    serial_number: str

    def __str__(self):
        return f"Bus {self.bus:03d} Device {self.address:03d} - {self.product}"


class UsbHidRelayController:
    """USB HID继电器控制器类"""

    def __init__(self, transport: RelayTransport, relay_size: RelaySize):
        """
        初始化继电器控制器

        Args:
            transport: 已打开并占用的传输对象，由控制器独占
            relay_size: 继电器开关数量
        """
        if not isinstance(relay_size, RelaySize):
            raise HIDRelayInvalidArgumentException(f"relay_size必须是RelaySize, 实际为: {relay_size!r}")

        self.transport = transport
        self._relay_size = relay_size
        self._closed = False

    @classmethod
    def create(cls, transport: RelayTransport, relay_size: RelaySize) -> "UsbHidRelayController":
        """包装一个已经打开的传输对象"""
        return cls(transport, relay_size)

    @classmethod
    def find_and_acquire_first_relay(
        cls,
        relay_size: RelaySize,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        configuration: int = USB_CONFIGURATION,
        interface: int = USB_INTERFACE,
        endpoint_in: int = ENDPOINT_IN_ADDRESS,
        endpoint_out: int = ENDPOINT_OUT_ADDRESS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> "UsbHidRelayController":
        """
        查找并占用第一个继电器设备

        Args:
            relay_size: 继电器开关数量

        Returns:
            UsbHidRelayController: 控制器实例

        Raises:
            HIDRelayDeviceNotFoundException: 未找到设备
            HIDRelayAcquisitionException: 设备接口占用失败
        """
        transport = UsbHidTransport.acquire(
            vendor_id=vendor_id,
            product_id=product_id,
            configuration=configuration,
            interface=interface,
            endpoint_in=endpoint_in,
            endpoint_out=endpoint_out,
            timeout_ms=timeout_ms,
        )
        return cls(transport, relay_size)

    @property
    def relay_size(self) -> RelaySize:
        return self._relay_size

    @property
    def switch_count(self) -> int:
        return self._relay_size.as_int()

    def _check_switch_id(self, switch_id: int) -> None:
        if isinstance(switch_id, bool) or not isinstance(switch_id, int) \
                or not 0 <= switch_id < self.switch_count:
            raise HIDRelayInvalidArgumentException(
                f"开关编号必须在0到{self.switch_count - 1}范围内, 实际为: {switch_id!r}"
            )

    def _send_command(self, command: bytes) -> None:
        if self._closed:
            raise HIDRelayTransportException("继电器已关闭")
        self.transport.write_packet(command)

    def _read_response(self) -> bytes:
        response = self.transport.read_packet()
        if len(response) != HIDRelayProtocol.PACKET_LENGTH:
            raise HIDRelayTransportException(
                f"状态数据包长度错误: 期望{HIDRelayProtocol.PACKET_LENGTH}字节, 实际{len(response)}字节"
            )
        return response

    def get_switch_states(self) -> List[bool]:
        """
        获取所有开关状态（每次都重新读取硬件）

        Returns:
            List[bool]: 按开关编号排列的状态列表，True表示开启（电路闭合）
        """
        self._send_command(HIDRelayProtocol.build_read_command())
        response = self._read_response()
        return HIDRelayProtocol.decode_switch_states(response, self.switch_count)

    def get_switch_state(self, switch_id: int) -> bool:
        """
        获取单个开关状态

        Args:
            switch_id: 开关编号（从0开始）
        """
        self._check_switch_id(switch_id)
        return self.get_switch_states()[switch_id]

    def set_switch_states(self, states: Sequence[bool]) -> None:
        """
        一次性设置所有开关状态（完整覆盖，不先读取当前状态）

        Args:
            states: 按开关编号排列的目标状态，长度必须等于继电器大小
        """
        states = list(states)
        if len(states) != self.switch_count:
            raise HIDRelayInvalidArgumentException(
                f"开关状态数量必须与继电器大小一致: 期望{self.switch_count}, 实际{len(states)}"
            )

        mask = HIDRelayProtocol.encode_write_mask(states)
        logger.debug("写入开关掩码: 0x%04X", mask)
        self._send_command(HIDRelayProtocol.build_write_command(mask))

    def set_switch_state(self, switch_id: int, state: bool) -> None:
        """
        设置单个开关状态（读取-修改-写回，其他开关保持不变）

        并发调用不安全：读取与写回之间其他调用方的修改可能被覆盖。

        Args:
            switch_id: 开关编号（从0开始）
            state: 目标状态（True=开启, False=关闭）
        """
        self._check_switch_id(switch_id)

        states = self.get_switch_states()
        states[switch_id] = bool(state)
        self.set_switch_states(states)

    def set_switch_on(self, switch_id: int) -> None:
        self.set_switch_state(switch_id, True)

    def set_switch_off(self, switch_id: int) -> None:
        self.set_switch_state(switch_id, False)

    def toggle_switch(self, switch_id: int) -> bool:
        """
        切换开关状态

        Returns:
            bool: 切换后的状态
        """
        self._check_switch_id(switch_id)

        states = self.get_switch_states()
        states[switch_id] = not states[switch_id]
        self.set_switch_states(states)
        return states[switch_id]

    def set_all_switches_on(self) -> None:
        self.set_switch_states([True] * self.switch_count)

    def set_all_switches_off(self) -> None:
        self.set_switch_states([False] * self.switch_count)

    def reset(self) -> None:
        """复位HID接口（不保证改变任何开关状态）"""
        self._send_command(HIDRelayProtocol.build_reset_command())

    def close(self) -> None:
        """释放传输对象"""
        if self._closed:
            return
        self._closed = True
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class DeviceManager:
    """设备管理器类"""

    @staticmethod
    def _get_string(device, index: int) -> str:
        if not index:
            return "Unknown"
        try:
            return usb.util.get_string(device, index) or "Unknown"
        except (usb.core.USBError, ValueError, NotImplementedError) as e:
            # 没有访问权限时无法读取字符串描述符
            logger.debug("读取字符串描述符失败: %s", e)
            return "Unknown"

    @staticmethod
    def list_relay_devices(vendor_id: int = VENDOR_ID, product_id: int = PRODUCT_ID) -> List[DeviceInfo]:
        """
        列出所有已连接的继电器设备

        Returns:
            List[DeviceInfo]: 设备信息列表
        """
        try:
            devices = list(usb.core.find(find_all=True, idVendor=vendor_id, idProduct=product_id))
        except (usb.core.USBError, usb.core.NoBackendError) as e:
            raise HIDRelayTransportException(f"无法枚举USB设备: {e}") from e

        return [
            DeviceInfo(
                bus=device.bus,
                address=device.address,
                vendor_id=f"{device.idVendor:04x}",
                product_id=f"{device.idProduct:04x}",
                manufacturer=DeviceManager._get_string(device, device.iManufacturer),
                product=DeviceManager._get_string(device, device.iProduct),
                serial_number=DeviceManager._get_string(device, device.iSerialNumber),
            )
            for device in devices
        ]


class RelaySequence:
    """继电器序列控制类"""

    def __init__(self, controller: UsbHidRelayController):
        """
        初始化继电器序列控制

        Args:
            controller: 继电器控制器实例
        """
        self.controller = controller

    def pulse_switch(self, switch_id: int, duration: float = 1.0) -> None:
        """
        开关脉冲控制（打开->等待->关闭）

        Args:
            switch_id: 开关编号
            duration: 脉冲持续时间（秒）
        """
        self.controller.set_switch_on(switch_id)
        time.sleep(duration)
        self.controller.set_switch_off(switch_id)

    def sequence_control(self, sequence: Sequence[Tuple[int, bool, float]]) -> None:
        """
        按序列控制多个开关

        Args:
            sequence: 控制序列，每个元素为(开关编号, 状态, 延时时间)
        """
        for switch_id, state, delay in sequence:
            self.controller.set_switch_state(switch_id, state)

            if delay > 0:
                time.sleep(delay)
