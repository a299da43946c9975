"""
USB HID继电器协议实现模块

实现继电器板的命令/状态数据包编解码，包括：
- 校验和计算与验证
- 命令数据包封装（读取、写入、复位）
- 状态数据包解析

命令数据包格式（64字节，小端序）::

    +--------+--------+-------------------+-----------+----------+---------+
    | 命令码  | 长度=14 | 4个16位数据字       | "HIDC"    | 校验和    | 填充     |
    | 1 byte | 1 byte | 8 bytes           | 4 bytes   | 4 bytes  | 46 bytes|
    +--------+--------+-------------------+-----------+----------+---------+

校验和为前14个字节的无符号累加和（模2^32）。状态数据包只使用第2~5字节，
按厂商定义的位权表解析各开关状态；写入命令则使用连续的 ``1 << 开关编号`` 掩码。
"""

import struct
from typing import List, Sequence

from .exceptions import HIDRelayInvalidArgumentException, HIDRelayProtocolException, HIDRelayTransportException


class HIDRelayChecksum:
    """命令数据包校验和计算类"""

    # 参与校验的字节数：命令码 + 长度 + 数据字 + 签名
    CHECKSUM_SPAN = 14

    @classmethod
    def calculate(cls, data: bytes) -> int:
        """
        计算校验和

        Args:
            data: 数据包（只累加前14个字节）

        Returns:
            int: 32位无符号校验和
        """
        return sum(data[:cls.CHECKSUM_SPAN]) & 0xFFFFFFFF

    @classmethod
    def verify(cls, packet: bytes) -> bool:
        """
        验证命令数据包中的校验和

        Args:
            packet: 完整的命令数据包

        Returns:
            bool: 校验是否正确
        """
        if len(packet) < cls.CHECKSUM_SPAN + 4:
            return False

        received = struct.unpack_from('<I', packet, cls.CHECKSUM_SPAN)[0]
        return received == cls.calculate(packet)


class HIDRelayCommand:
    """解析后的命令数据包"""

    def __init__(self, opcode: int, data: Sequence[int], raw_data: bytes):
        self.opcode = opcode
        self.data = tuple(data)
        self.raw_data = raw_data

    @property
    def name(self) -> str:
        return HIDRelayProtocol.COMMAND_NAMES.get(self.opcode, "UNKNOWN")

    def __repr__(self):
        words = ", ".join(f"0x{word:04X}" for word in self.data)
        return f"HIDRelayCommand(opcode=0x{self.opcode:02X}({self.name}), data=[{words}])"


class HIDRelayProtocol:
    """继电器协议编解码类（无副作用）"""

    # 命令码常量
    CMD_READ = 0xD2
    CMD_WRITE = 0xC3
    CMD_RESET = 0x71

    COMMAND_NAMES = {
        CMD_READ: "READ",
        CMD_WRITE: "WRITE",
        CMD_RESET: "RESET",
    }

    PACKET_LENGTH = 64
    CMD_DATA_LEN = 14
    SIGNATURE = b"HIDC"

    READ_DATA = (0x1111, 0x1111, 0x1111, 0x1111)
    RESET_DATA = (CMD_RESET, 0x0000, 0x1111, 0x0000)

    # 状态掩码位权表：开关编号 -> 状态掩码中的位值（厂商定义，不连续）
    SWITCH_BIT_WEIGHTS = (
        128, 256, 64, 512, 32, 1024, 16, 2048,
        8, 4096, 4, 8192, 2, 16384, 1, 32768,
    )

    # 状态数据包中掩码的位置
    STATUS_MASK_OFFSET = 2
    MIN_RESPONSE_LENGTH = STATUS_MASK_OFFSET + 4

    @classmethod
    def build_command(cls, opcode: int, *data: int) -> bytes:
        """
        构建64字节命令数据包

        Args:
            opcode: 命令码
            *data: 恰好4个数据字，每个只取低16位

        Returns:
            bytes: 可直接写入设备的数据包
        """
        if len(data) != 4:
            raise HIDRelayInvalidArgumentException(f"命令需要恰好4个数据字, 实际为{len(data)}个")

        packet = bytearray(cls.PACKET_LENGTH)
        struct.pack_into('<BB4H', packet, 0, opcode & 0xFF, cls.CMD_DATA_LEN,
                         *(word & 0xFFFF for word in data))
        packet[10:14] = cls.SIGNATURE
        struct.pack_into('<I', packet, cls.CMD_DATA_LEN, HIDRelayChecksum.calculate(packet))
        return bytes(packet)

    @classmethod
    def build_read_command(cls) -> bytes:
        """构建读取开关状态命令"""
        return cls.build_command(cls.CMD_READ, *cls.READ_DATA)

    @classmethod
    def build_write_command(cls, mask: int) -> bytes:
        """
        构建写入开关状态命令

        Args:
            mask: 连续的开关掩码（第i位对应开关i）
        """
        return cls.build_command(cls.CMD_WRITE, mask & 0xFFFF, 0x0000, 0x0000, 0x0000)

    @classmethod
    def build_reset_command(cls) -> bytes:
        """构建复位命令"""
        return cls.build_command(cls.CMD_RESET, *cls.RESET_DATA)

    @classmethod
    def parse_command(cls, packet: bytes) -> HIDRelayCommand:
        """
        解析并校验命令数据包

        Args:
            packet: 命令数据包

        Returns:
            HIDRelayCommand: 命令对象
        """
        if len(packet) != cls.PACKET_LENGTH:
            raise HIDRelayProtocolException(f"命令数据包长度错误: 期望{cls.PACKET_LENGTH}, 实际{len(packet)}")

        opcode, data_len, *data = struct.unpack_from('<BB4H', packet, 0)

        if data_len != cls.CMD_DATA_LEN:
            raise HIDRelayProtocolException(f"命令数据长度错误: 期望{cls.CMD_DATA_LEN}, 实际{data_len}")

        if bytes(packet[10:14]) != cls.SIGNATURE:
            raise HIDRelayProtocolException(f"命令签名错误: {bytes(packet[10:14])!r}")

        if not HIDRelayChecksum.verify(packet):
            raise HIDRelayProtocolException("命令校验和错误")

        return HIDRelayCommand(opcode, data, bytes(packet))

    @classmethod
    def encode_write_mask(cls, states: Sequence[bool]) -> int:
        """将开关状态列表编码为写入掩码（1 << 开关编号）"""
        mask = 0
        for switch_id, state in enumerate(states):
            if state:
                mask |= 1 << switch_id
        return mask

    @classmethod
    def encode_status_mask(cls, states: Sequence[bool]) -> int:
        """将开关状态列表按位权表编码为状态掩码"""
        mask = 0
        for switch_id, state in enumerate(states):
            if state:
                mask |= cls.SWITCH_BIT_WEIGHTS[switch_id]
        return mask

    @classmethod
    def build_status_response(cls, states: Sequence[bool]) -> bytes:
        """构建设备返回的64字节状态数据包"""
        packet = bytearray(cls.PACKET_LENGTH)
        struct.pack_into('<I', packet, cls.STATUS_MASK_OFFSET, cls.encode_status_mask(states))
        return bytes(packet)

    @classmethod
    def decode_status_mask(cls, response: bytes) -> int:
        """读取状态数据包中的32位掩码"""
        if len(response) < cls.MIN_RESPONSE_LENGTH:
            raise HIDRelayTransportException(
                f"状态数据包长度不足: 至少需要{cls.MIN_RESPONSE_LENGTH}字节, 实际{len(response)}字节"
            )
        return struct.unpack_from('<I', response, cls.STATUS_MASK_OFFSET)[0]

    @classmethod
    def decode_switch_states(cls, response: bytes, count: int) -> List[bool]:
        """
        解析状态数据包

        Args:
            response: 设备返回的数据包
            count: 开关数量（只使用位权表的前count项）

        Returns:
            List[bool]: 开关状态列表，True表示闭合（开启）
        """
        mask = cls.decode_status_mask(response)
        return [(mask & cls.SWITCH_BIT_WEIGHTS[i]) != 0 for i in range(count)]
