"""
命令行接口模块

提供用户友好的命令行界面，包括：
- 设备管理命令
- 继电器开关控制命令（按编号）
- 命名开关控制命令（按配置中的名称）
- 协议调试命令
"""

import click
import sys
from functools import wraps
from typing import List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm

from . import __version__
from .config import get_config_manager
from .device_controller import UsbHidRelayController, DeviceManager, RelaySequence
from .enumerated_relay import EnumeratedUsbHidRelay
from .exceptions import HIDRelayException, HIDRelayInvalidArgumentException
from .hid_protocol import HIDRelayProtocol
from .relay_size import RelaySize
from .usb_transport import SimulatedRelayTransport
from .utils import (
    setup_logging,
    bytes_to_hex_string,
    hex_string_to_bytes,
    parse_switch_list,
    validate_switch_id,
    format_switch_states,
)


console = Console()


def handle_exceptions(func):
    """异常处理装饰器"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HIDRelayException as e:
            console.print(f"[red]错误: {e}[/red]")
            sys.exit(1)
    return wrapper


def open_relay(ctx: click.Context) -> UsbHidRelayController:
    """根据命令行选项打开继电器（真实设备或模拟设备）"""
    options = ctx.obj
    relay_size = RelaySize(options["size"])

    if options["simulate"]:
        return UsbHidRelayController.create(SimulatedRelayTransport(relay_size.as_int()), relay_size)

    return UsbHidRelayController.find_and_acquire_first_relay(relay_size, **options["usb"].as_options())


def state_text(state: bool) -> str:
    return "[green]开启[/green]" if state else "[red]关闭[/red]"


def apply_switch_states(controller: UsbHidRelayController, switch_ids: List[int], state: bool) -> None:
    """设置一组开关，只读取和写回一次"""
    if len(switch_ids) == 1:
        controller.set_switch_state(switch_ids[0], state)
        return

    size = controller.relay_size.as_int()
    for switch_id in switch_ids:
        if not validate_switch_id(switch_id, size):
            raise HIDRelayInvalidArgumentException(f"开关编号必须在0到{size - 1}范围内, 实际为: {switch_id}")

    states = controller.get_switch_states()
    for switch_id in switch_ids:
        states[switch_id] = state
    controller.set_switch_states(states)


def parse_switch_option(value: str) -> List[int]:
    try:
        switch_ids = parse_switch_list(value)
    except ValueError:
        raise HIDRelayInvalidArgumentException(f"无法解析开关编号: {value}") from None

    if not switch_ids:
        raise HIDRelayInvalidArgumentException("至少需要指定一个开关编号")
    return switch_ids


@click.group()
@click.version_option(version=__version__, prog_name="USB HID继电器控制软件")
@click.option("--size", "-n", type=int, default=None, help="继电器开关数量（1/2/4/8/16），默认使用配置")
@click.option("--simulate", is_flag=True, help="使用模拟设备，不访问USB硬件")
@click.option("--log-level", default="WARNING", help="日志级别 (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-file", default=None, help="日志文件路径")
@click.option("--config-dir", default=None, help="配置文件目录")
@click.pass_context
def cli(ctx, size: Optional[int], simulate: bool, log_level: str, log_file: Optional[str], config_dir: Optional[str]):
    """USB HID继电器控制软件

    通过HID命令数据包控制USB继电器板。
    支持开关状态读取、单个/批量控制和命名开关。
    """
    setup_logging(log_level, log_file)

    try:
        config_manager = get_config_manager(config_dir)
    except HIDRelayException as e:
        console.print(f"[red]配置加载失败: {e}[/red]")
        sys.exit(1)

    relay_config = config_manager.get_relay_config()

    if not config_manager.get_ui_config().colored_output:
        console.no_color = True

    ctx.obj = {
        "size": size if size is not None else relay_config.size,
        "simulate": simulate,
        "usb": config_manager.get_usb_config(),
        "switch_names": dict(relay_config.switch_names),
        "confirm_all_on": config_manager.get_ui_config().confirm_all_on,
    }


@cli.group()
def device():
    """设备管理命令"""
    pass


@device.command("list")
@click.pass_context
@handle_exceptions
def list_devices(ctx):
    """列出所有已连接的继电器设备"""
    usb_config = ctx.obj["usb"]

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("正在扫描USB设备...", total=None)
        devices = DeviceManager.list_relay_devices(usb_config.vendor_id, usb_config.product_id)
        progress.update(task, completed=True)

    if not devices:
        console.print("[yellow]未找到任何继电器设备[/yellow]")
        return

    table = Table(title="可用继电器设备")
    table.add_column("总线", style="cyan", no_wrap=True)
    table.add_column("地址", style="cyan")
    table.add_column("VID:PID", style="yellow")
    table.add_column("制造商", style="green")
    table.add_column("产品", style="magenta")
    table.add_column("序列号", style="blue")

    for info in devices:
        table.add_row(
            f"{info.bus:03d}",
            f"{info.address:03d}",
            f"{info.vendor_id}:{info.product_id}",
            info.manufacturer,
            info.product,
            info.serial_number
        )

    console.print(table)


@cli.group()
def relay():
    """继电器开关控制命令（开关编号从0开始）"""
    pass


@relay.command("status")
@click.option("--switch", "-r", "switch_id", type=int, help="开关编号，不指定则显示所有")
@click.pass_context
@handle_exceptions
def relay_status(ctx, switch_id: Optional[int]):
    """查看开关状态"""
    with open_relay(ctx) as controller:
        if switch_id is not None:
            state = controller.get_switch_state(switch_id)
            console.print(f"开关 {switch_id}: {state_text(state)}")
            return

        states = controller.get_switch_states()

    names = {switch_id: name for name, switch_id in ctx.obj["switch_names"].items()}

    table = Table(title="开关状态")
    table.add_column("开关", justify="center", style="cyan")
    table.add_column("名称", justify="center", style="magenta")
    table.add_column("状态", justify="center")

    for index, state in enumerate(states):
        table.add_row(str(index), names.get(index, "-"), state_text(state))

    console.print(table)


@relay.command("on")
@click.option("--switch", "-r", "switches", required=True, help="开关编号，例如 0 或 0,2-3")
@click.pass_context
@handle_exceptions
def relay_on(ctx, switches: str):
    """打开开关"""
    switch_ids = parse_switch_option(switches)

    with open_relay(ctx) as controller:
        apply_switch_states(controller, switch_ids, True)

    console.print(f"[green]✓ 开关 {', '.join(map(str, switch_ids))} 已打开[/green]")


@relay.command("off")
@click.option("--switch", "-r", "switches", required=True, help="开关编号，例如 0 或 0,2-3")
@click.pass_context
@handle_exceptions
def relay_off(ctx, switches: str):
    """关闭开关"""
    switch_ids = parse_switch_option(switches)

    with open_relay(ctx) as controller:
        apply_switch_states(controller, switch_ids, False)

    console.print(f"[green]✓ 开关 {', '.join(map(str, switch_ids))} 已关闭[/green]")


@relay.command("toggle")
@click.option("--switch", "-r", "switch_id", required=True, type=int, help="开关编号")
@click.pass_context
@handle_exceptions
def relay_toggle(ctx, switch_id: int):
    """切换开关状态"""
    with open_relay(ctx) as controller:
        new_state = controller.toggle_switch(switch_id)

    console.print(f"[green]✓ 开关 {switch_id} 已切换为[/green] {state_text(new_state)}")


@relay.command("all-on")
@click.option("--yes", "-y", is_flag=True, help="不再确认")
@click.pass_context
@handle_exceptions
def relay_all_on(ctx, yes: bool):
    """打开所有开关"""
    size = ctx.obj["size"]
    if ctx.obj["confirm_all_on"] and not yes:
        if not Confirm.ask(f"确定要打开所有 {size} 个开关吗？", console=console):
            console.print("[yellow]操作已取消[/yellow]")
            return

    with open_relay(ctx) as controller:
        controller.set_all_switches_on()

    console.print("[green]✓ 所有开关已打开[/green]")


@relay.command("all-off")
@click.pass_context
@handle_exceptions
def relay_all_off(ctx):
    """关闭所有开关"""
    with open_relay(ctx) as controller:
        controller.set_all_switches_off()

    console.print("[green]✓ 所有开关已关闭[/green]")


@relay.command("pulse")
@click.option("--switch", "-r", "switch_id", required=True, type=int, help="开关编号")
@click.option("--duration", "-d", default=1.0, type=float, help="脉冲持续时间（秒）")
@click.pass_context
@handle_exceptions
def relay_pulse(ctx, switch_id: int, duration: float):
    """开关脉冲控制"""
    with open_relay(ctx) as controller:
        console.print(f"[cyan]执行开关 {switch_id} 脉冲控制，持续 {duration} 秒...[/cyan]")
        RelaySequence(controller).pulse_switch(switch_id, duration)

    console.print(f"[green]✓ 开关 {switch_id} 脉冲控制完成[/green]")


@relay.command("reset")
@click.pass_context
@handle_exceptions
def relay_reset(ctx):
    """复位HID接口"""
    with open_relay(ctx) as controller:
        controller.reset()

    console.print("[green]✓ 已发送复位命令[/green]")


@cli.group()
def switch():
    """命名开关控制命令（名称在配置文件 relay.switch_names 中定义）"""
    pass


def open_named_relay(ctx: click.Context) -> Optional[EnumeratedUsbHidRelay]:
    switch_names = ctx.obj["switch_names"]
    if not switch_names:
        console.print("[yellow]配置中没有定义开关名称 (relay.switch_names)[/yellow]")
        return None

    controller = open_relay(ctx)
    try:
        return EnumeratedUsbHidRelay(controller, switch_names)
    except HIDRelayException:
        controller.close()
        raise


@switch.command("status")
@click.pass_context
@handle_exceptions
def switch_status(ctx):
    """查看命名开关状态"""
    named = open_named_relay(ctx)
    if named is None:
        return

    with named.relay:
        states = named.get_switch_states()

    table = Table(title="命名开关状态")
    table.add_column("名称", justify="center", style="magenta")
    table.add_column("开关", justify="center", style="cyan")
    table.add_column("状态", justify="center")

    for name, state in states.items():
        table.add_row(str(name), str(named.switch_id(name)), state_text(state))

    console.print(table)


@switch.command("on")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
@handle_exceptions
def switch_on(ctx, names):
    """打开命名开关（其他开关保持不变）"""
    named = open_named_relay(ctx)
    if named is None:
        return

    with named.relay:
        named.set_switch_states({name: True for name in names})

    console.print(f"[green]✓ {', '.join(names)} 已打开[/green]")


@switch.command("off")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
@handle_exceptions
def switch_off(ctx, names):
    """关闭命名开关（其他开关保持不变）"""
    named = open_named_relay(ctx)
    if named is None:
        return

    with named.relay:
        named.set_switch_states({name: False for name in names})

    console.print(f"[green]✓ {', '.join(names)} 已关闭[/green]")


@cli.group()
def protocol():
    """协议调试命令（不访问设备）"""
    pass


@protocol.command("build")
@click.argument("command", type=click.Choice(["read", "write", "reset"], case_sensitive=False))
@click.option("--mask", "-m", default="0", help="写入掩码（write命令），例如 0x0F")
@handle_exceptions
def protocol_build(command: str, mask: str):
    """构建命令数据包并以十六进制显示"""
    command = command.lower()
    if command == "read":
        packet = HIDRelayProtocol.build_read_command()
    elif command == "reset":
        packet = HIDRelayProtocol.build_reset_command()
    else:
        try:
            mask_value = int(mask, 0)
        except ValueError:
            raise HIDRelayInvalidArgumentException(f"无法解析写入掩码: {mask}") from None
        packet = HIDRelayProtocol.build_write_command(mask_value)

    parsed = HIDRelayProtocol.parse_command(packet)
    console.print(Panel.fit(
        f"[cyan]命令:[/cyan] {parsed.name} (0x{parsed.opcode:02X})\n"
        f"[cyan]数据字:[/cyan] {', '.join(f'0x{word:04X}' for word in parsed.data)}\n"
        f"[cyan]校验和:[/cyan] 0x{int.from_bytes(packet[14:18], 'little'):08X}",
        title="命令数据包",
        border_style="blue"
    ))
    click.echo(bytes_to_hex_string(packet))


@protocol.command("decode")
@click.argument("hex_data")
@click.option("--size", "-n", default=16, type=int, help="开关数量")
@handle_exceptions
def protocol_decode(hex_data: str, size: int):
    """解析状态数据包（十六进制）"""
    relay_size = RelaySize(size)
    try:
        response = hex_string_to_bytes(hex_data)
    except ValueError:
        raise HIDRelayInvalidArgumentException(f"无法解析十六进制数据: {hex_data}") from None

    mask = HIDRelayProtocol.decode_status_mask(response)
    states = HIDRelayProtocol.decode_switch_states(response, relay_size.as_int())

    click.echo(f"mask=0x{mask:08X}")
    click.echo(format_switch_states(states))


if __name__ == "__main__":
    cli()
