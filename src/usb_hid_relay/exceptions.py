"""
异常定义模块

继电器库对外只抛出本模块定义的异常，底层USB栈的异常在传输层统一包装。
"""


class HIDRelayException(Exception):
    """USB HID继电器异常基类"""
    pass


class HIDRelayInvalidArgumentException(HIDRelayException, ValueError):
    """参数无效（继电器大小、开关编号、状态数量、开关名称映射等）"""
    pass


class HIDRelayDeviceNotFoundException(HIDRelayException):
    """未找到匹配的USB继电器设备"""
    pass


class HIDRelayAcquisitionException(HIDRelayException):
    """找到设备但无法占用其接口"""
    pass


class HIDRelayTransportException(HIDRelayException):
    """传输层故障（设备断开、传输长度不足、平台USB异常）"""
    pass


class HIDRelayProtocolException(HIDRelayTransportException):
    """数据包格式错误（签名、长度或校验和不正确）"""
    pass
