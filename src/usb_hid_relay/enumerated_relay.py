"""
命名开关模块

用调用方定义的名称（映射或枚举）代替整数编号操作继电器开关。
"""

import enum
from collections import abc
from types import MappingProxyType
from typing import Any, Dict, Hashable, List, Mapping, Union

from .device_controller import UsbHidRelayController
from .exceptions import HIDRelayInvalidArgumentException
from .relay_size import RelaySize


SwitchIds = Union[Mapping[Hashable, int], type]


def _enum_switch_id(member: enum.Enum) -> Any:
    # 枚举成员可以通过id属性、id()方法或直接用值表示开关编号
    switch_id = getattr(member, "id", member.value)
    if callable(switch_id):
        switch_id = switch_id()
    return switch_id


def _collect_switch_ids(switch_ids: SwitchIds) -> List[tuple]:
    """把映射或枚举类统一为 [(名称, 编号), ...]"""
    if isinstance(switch_ids, type) and issubclass(switch_ids, enum.Enum):
        entries = []
        for name, member in switch_ids.__members__.items():
            if member.name != name:
                # 值相同的枚举成员会成为别名
                raise HIDRelayInvalidArgumentException(
                    f"{switch_ids.__name__}.{name} 与 {member} 使用了相同的开关编号"
                )
            entries.append((member, _enum_switch_id(member)))
        return entries

    if isinstance(switch_ids, abc.Mapping):
        return list(switch_ids.items())

    raise HIDRelayInvalidArgumentException(
        f"开关名称必须是映射或枚举类, 实际为: {type(switch_ids).__name__}"
    )


class EnumeratedUsbHidRelay:
    """使用命名开关的继电器包装类（不拥有被包装的控制器）"""

    def __init__(self, relay: UsbHidRelayController, switch_ids: SwitchIds):
        """
        初始化命名开关继电器

        Args:
            relay: 继电器控制器
            switch_ids: 名称到开关编号的映射，或成员带有开关编号的枚举类

        Raises:
            HIDRelayInvalidArgumentException: 编号重复、数量超过继电器大小或编号超出范围
        """
        self.relay = relay
        size = relay.relay_size.as_int()

        entries = _collect_switch_ids(switch_ids)

        id_by_name: Dict[Hashable, int] = {}
        name_by_id: Dict[int, Hashable] = {}
        for name, switch_id in entries:
            if isinstance(switch_id, bool) or not isinstance(switch_id, int):
                raise HIDRelayInvalidArgumentException(
                    f"开关编号必须是整数, {name!r} 的编号为: {switch_id!r}"
                )
            if switch_id in name_by_id:
                raise HIDRelayInvalidArgumentException(
                    f"{name!r} 与 {name_by_id[switch_id]!r} 使用了相同的开关编号{switch_id}"
                )
            id_by_name[name] = switch_id
            name_by_id[switch_id] = name

        if len(id_by_name) > size:
            raise HIDRelayInvalidArgumentException(
                f"开关名称数量不能超过继电器大小{size}, 实际有{len(id_by_name)}个"
            )

        for name, switch_id in id_by_name.items():
            if not 0 <= switch_id < size:
                raise HIDRelayInvalidArgumentException(
                    f"开关编号必须大于等于0且小于{size}, {name!r} 的编号为{switch_id}"
                )

        self._id_by_name = MappingProxyType(id_by_name)
        self._name_by_id = MappingProxyType(name_by_id)

    @classmethod
    def create(cls, relay: UsbHidRelayController, switch_ids: SwitchIds) -> "EnumeratedUsbHidRelay":
        return cls(relay, switch_ids)

    @classmethod
    def find_and_acquire_first_relay(cls, relay_size: RelaySize, switch_ids: SwitchIds, **usb_options) -> "EnumeratedUsbHidRelay":
        """查找并占用第一个继电器设备，然后用命名开关包装"""
        return cls(UsbHidRelayController.find_and_acquire_first_relay(relay_size, **usb_options), switch_ids)

    @property
    def relay_size(self) -> RelaySize:
        return self.relay.relay_size

    @property
    def switch_ids(self) -> List[Hashable]:
        """声明的开关名称（按声明顺序）"""
        return list(self._id_by_name)

    def switch_id(self, name: Hashable) -> int:
        """名称对应的开关编号"""
        try:
            return self._id_by_name[name]
        except KeyError:
            raise HIDRelayInvalidArgumentException(f"未知的开关名称: {name!r}") from None

    def switch_name(self, switch_id: int) -> Hashable:
        """开关编号对应的名称，未命名时返回None"""
        return self._name_by_id.get(switch_id)

    def get_switch_states(self) -> Dict[Hashable, bool]:
        """
        获取所有命名开关的状态

        Returns:
            Dict: 名称到状态的映射，只包含声明的名称
        """
        states = self.relay.get_switch_states()
        return {name: states[switch_id] for name, switch_id in self._id_by_name.items()}

    def get_switch_state(self, name: Hashable) -> bool:
        switch_id = self.switch_id(name)
        return self.relay.get_switch_states()[switch_id]

    def reset(self) -> None:
        self.relay.reset()

    def set_switch_states(self, switch_states: Mapping[Hashable, bool]) -> None:
        """
        同时设置多个命名开关

        只修改映射中给出的开关，其他开关（包括未命名的开关）保持当前硬件状态。

        Args:
            switch_states: 名称到目标状态的映射
        """
        updates = {self.switch_id(name): bool(state) for name, state in switch_states.items()}

        states = self.relay.get_switch_states()
        for switch_id, state in updates.items():
            states[switch_id] = state

        self.relay.set_switch_states(states)

    def set_switch_state(self, name: Hashable, state: bool) -> None:
        self.relay.set_switch_state(self.switch_id(name), state)

    def set_switch_on(self, name: Hashable) -> None:
        self.set_switch_state(name, True)

    def set_switch_off(self, name: Hashable) -> None:
        self.set_switch_state(name, False)

    def set_all_switches_on(self) -> None:
        """打开所有命名开关，未命名的开关不变"""
        self.set_switch_states({name: True for name in self._id_by_name})

    def set_all_switches_off(self) -> None:
        """关闭所有命名开关，未命名的开关不变"""
        self.set_switch_states({name: False for name in self._id_by_name})
