"""
继电器规格模块

表示继电器板上的开关数量，只允许1到16之间的2的幂。
"""

from dataclasses import dataclass

from .exceptions import HIDRelayInvalidArgumentException


MAX_RELAY_SIZE = 16


@dataclass(frozen=True)
class RelaySize:
    """继电器开关数量（不可变）"""
    size: int

    def __post_init__(self):
        size = self.size
        if (isinstance(size, bool) or not isinstance(size, int)
                or size <= 0 or size > MAX_RELAY_SIZE or (size & (size - 1)) != 0):
            raise HIDRelayInvalidArgumentException(
                f"继电器大小必须是1到{MAX_RELAY_SIZE}之间（含）的2的幂, 实际为: {size!r}"
            )

    def as_int(self) -> int:
        """返回开关数量"""
        return self.size

    def __int__(self) -> int:
        return self.size

    def __str__(self):
        return str(self.size)


RelaySize.TWO = RelaySize(2)
RelaySize.FOUR = RelaySize(4)
RelaySize.EIGHT = RelaySize(8)
RelaySize.SIXTEEN = RelaySize(16)
