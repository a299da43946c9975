"""
工具函数模块

提供常用的工具函数，包括：
- 日志记录工具
- 数据转换工具
- 开关编号解析与校验
"""

import sys
import logging
import re
from typing import List, Optional, Sequence
from pathlib import Path


LOGGER_NAME = "usb_hid_relay"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    设置日志记录

    Args:
        log_level: 日志级别 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: 日志文件路径，如果为None则只输出到控制台

    Returns:
        logging.Logger: 配置好的日志记录器
    """
    logger = logging.getLogger(LOGGER_NAME)

    # 清除现有的处理器
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # 日志输出到stderr，避免与命令输出混在一起
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def bytes_to_hex_string(data: bytes, separator: str = " ") -> str:
    """
    将字节数据转换为十六进制字符串

    Args:
        data: 字节数据
        separator: 分隔符

    Returns:
        str: 十六进制字符串
    """
    return separator.join(f"{byte:02X}" for byte in data)


def hex_string_to_bytes(hex_str: str) -> bytes:
    """
    将十六进制字符串转换为字节数据

    Args:
        hex_str: 十六进制字符串，可以包含空格、逗号等分隔符

    Returns:
        bytes: 字节数据
    """
    # 去掉0x前缀，只保留十六进制字符
    cleaned = re.sub(r'0[xX]', '', hex_str)
    cleaned = re.sub(r'[^0-9A-Fa-f]', '', cleaned)

    if len(cleaned) % 2 != 0:
        cleaned = '0' + cleaned

    return bytes.fromhex(cleaned)


def parse_switch_list(switch_str: str) -> List[int]:
    """
    解析开关编号列表字符串（编号从0开始）

    Args:
        switch_str: 例如："0,2,3" 或 "0-3" 或 "0,2-4,7"

    Returns:
        List[int]: 去重并排序后的开关编号列表
    """
    switches = []

    for part in switch_str.split(','):
        part = part.strip()
        if not part:
            continue

        if '-' in part:
            start, end = part.split('-', 1)
            switches.extend(range(int(start.strip()), int(end.strip()) + 1))
        else:
            switches.append(int(part))

    return sorted(set(switches))


def validate_switch_id(switch_id: int, relay_size: int) -> bool:
    """开关编号是否在 [0, relay_size) 范围内"""
    return 0 <= switch_id < relay_size


def format_switch_states(states: Sequence[bool], on: str = "●", off: str = "○") -> str:
    """将开关状态格式化为紧凑的单行显示，例如 "S0● S1○" """
    return " ".join(f"S{i}{on if state else off}" for i, state in enumerate(states))
