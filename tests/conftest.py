"""
测试公共夹具
"""

import sys
from pathlib import Path

import pytest

# 未安装时也能直接运行测试
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from usb_hid_relay.hid_protocol import HIDRelayProtocol
from usb_hid_relay.usb_transport import RelayTransport


class RecordingTransport(RelayTransport):
    """记录写入的数据包，按顺序返回预设的状态数据包"""

    def __init__(self, responses=None):
        self.written = []
        self.responses = list(responses or [])
        self.reads = 0
        self.closed = False

    def write_packet(self, data: bytes) -> None:
        self.written.append(bytes(data))

    def read_packet(self) -> bytes:
        self.reads += 1
        return self.responses.pop(0)

    def close(self) -> None:
        self.closed = True


def status_packet(states):
    """按位权表构建状态数据包"""
    return HIDRelayProtocol.build_status_response(states)


def write_mask(packet: bytes) -> int:
    """从写入命令中取出掩码"""
    assert packet[0] == HIDRelayProtocol.CMD_WRITE
    return int.from_bytes(packet[2:4], "little")


@pytest.fixture
def recording_transport():
    return RecordingTransport()
