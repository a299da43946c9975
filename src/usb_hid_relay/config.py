"""
配置管理模块

提供系统配置管理功能，包括：
- USB设备参数
- 继电器规格与开关命名
- 界面偏好设置
"""

import os
import json
import logging
import yaml
from typing import Dict, Any, Optional
from pathlib import Path
from dataclasses import dataclass, asdict, field

from .exceptions import HIDRelayInvalidArgumentException
from .relay_size import RelaySize
from .usb_transport import (
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
class UsbConfig:
    """USB设备配置"""
    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    configuration: int = USB_CONFIGURATION
    interface: int = USB_INTERFACE
    endpoint_in: int = ENDPOINT_IN_ADDRESS
    endpoint_out: int = ENDPOINT_OUT_ADDRESS
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def as_options(self) -> Dict[str, int]:
        """转换为查找设备时使用的关键字参数"""
        return asdict(self)


@dataclass
class RelayConfig:
    """继电器配置"""
    size: int = 8
    switch_names: Dict[str, int] = field(default_factory=dict)

    def relay_size(self) -> RelaySize:
        return RelaySize(self.size)


@dataclass
class UIConfig:
    """界面配置"""
    colored_output: bool = True
    confirm_all_on: bool = True


@dataclass
class AppConfig:
    """应用程序配置"""
    usb: UsbConfig
    relay: RelayConfig
    ui: UIConfig

    def __init__(self):
        self.usb = UsbConfig()
        self.relay = RelayConfig()
        self.ui = UIConfig()


class ConfigManager:
    """配置管理器"""

    DEFAULT_CONFIG_NAME = "usb_hid_relay_config"
    SUPPORTED_FORMATS = ["json", "yaml", "yml"]

    def __init__(self, config_dir: Optional[str] = None):
        """
        初始化配置管理器

        Args:
            config_dir: 配置文件目录，如果为None则使用默认目录
        """
        self.config_dir = Path(config_dir) if config_dir else self._get_default_config_dir()
        self.config = AppConfig()

    def _get_default_config_dir(self) -> Path:
        """获取默认配置目录"""
        if os.name == "nt":  # Windows
            config_dir = Path(os.environ.get("APPDATA", "")) / "UsbHidRelay"
        else:  # Linux/macOS
            config_dir = Path.home() / ".config" / "usb_hid_relay"

        return config_dir

    def _get_config_file_path(self, format: str = "yaml") -> Path:
        """获取配置文件路径"""
        if format not in self.SUPPORTED_FORMATS:
            format = "yaml"

        return self.config_dir / f"{self.DEFAULT_CONFIG_NAME}.{format}"

    def load_config(self, format: str = "yaml") -> bool:
        """
        加载配置文件

        Args:
            format: 配置文件格式 (json, yaml, yml)

        Returns:
            bool: 是否找到并加载了配置文件
        """
        config_file = self._get_config_file_path(format)

        if not config_file.exists():
            # 尝试其他格式
            for fmt in self.SUPPORTED_FORMATS:
                test_file = self._get_config_file_path(fmt)
                if test_file.exists():
                    config_file = test_file
                    format = fmt
                    break
            else:
                # 没有找到配置文件，使用默认配置
                logger.debug("未找到配置文件, 使用默认配置: %s", self.config_dir)
                return False

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                if format == "json":
                    data = json.load(f)
                else:  # yaml
                    data = yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise HIDRelayInvalidArgumentException(f"无法解析配置文件 {config_file}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise HIDRelayInvalidArgumentException(f"配置文件顶层必须是映射: {config_file}")

        self._update_config_from_dict(data or {})
        logger.info("已加载配置文件: %s", config_file)
        return True

    def save_config(self, format: str = "yaml") -> Path:
        """
        保存配置文件

        Args:
            format: 配置文件格式 (json, yaml, yml)

        Returns:
            Path: 写入的配置文件路径
        """
        config_file = self._get_config_file_path(format)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        config_dict = self._config_to_dict()

        with open(config_file, 'w', encoding='utf-8') as f:
            if format == "json":
                json.dump(config_dict, f, indent=2, ensure_ascii=False)
            else:  # yaml
                yaml.dump(config_dict, f, default_flow_style=False,
                          allow_unicode=True, indent=2)

        logger.info("已保存配置文件: %s", config_file)
        return config_file

    def _config_to_dict(self) -> Dict[str, Any]:
        """将配置对象转换为字典"""
        return {
            "usb": asdict(self.config.usb),
            "relay": asdict(self.config.relay),
            "ui": asdict(self.config.ui)
        }

    def _update_config_from_dict(self, data: Dict[str, Any]) -> None:
        """从字典更新配置对象"""
        try:
            if "usb" in data:
                self.config.usb = UsbConfig(**data["usb"])

            if "relay" in data:
                relay = RelayConfig(**data["relay"])
                relay.relay_size()
                self.config.relay = relay

            if "ui" in data:
                self.config.ui = UIConfig(**data["ui"])
        except TypeError as e:
            raise HIDRelayInvalidArgumentException(f"配置文件格式错误: {e}") from e

    def get_usb_config(self) -> UsbConfig:
        """获取USB配置"""
        return self.config.usb

    def get_relay_config(self) -> RelayConfig:
        """获取继电器配置"""
        return self.config.relay

    def get_ui_config(self) -> UIConfig:
        """获取界面配置"""
        return self.config.ui

    def update_usb_config(self, **kwargs) -> None:
        """更新USB配置"""
        for key, value in kwargs.items():
            if hasattr(self.config.usb, key):
                setattr(self.config.usb, key, value)

    def update_relay_config(self, **kwargs) -> None:
        """更新继电器配置"""
        if "size" in kwargs:
            RelaySize(kwargs["size"])

        for key, value in kwargs.items():
            if hasattr(self.config.relay, key):
                setattr(self.config.relay, key, value)

    def update_ui_config(self, **kwargs) -> None:
        """更新界面配置"""
        for key, value in kwargs.items():
            if hasattr(self.config.ui, key):
                setattr(self.config.ui, key, value)

    def reset_to_defaults(self) -> None:
        """重置为默认配置"""
        self.config = AppConfig()

    def get_config_file_path(self, format: str = "yaml") -> str:
        """获取配置文件路径字符串"""
        return str(self._get_config_file_path(format))

    def config_exists(self, format: str = "yaml") -> bool:
        """检查配置文件是否存在"""
        return self._get_config_file_path(format).exists()


# 全局配置管理器实例
_config_manager = None


def get_config_manager(config_dir: Optional[str] = None) -> ConfigManager:
    """获取全局配置管理器实例（指定目录时重新加载）"""
    global _config_manager
    if _config_manager is None or config_dir is not None:
        config_manager = ConfigManager(config_dir)
        config_manager.load_config()
        _config_manager = config_manager
    return _config_manager
