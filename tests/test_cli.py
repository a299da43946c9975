"""
命令行接口测试（使用模拟设备）
"""

import pytest
import usb.core
import yaml
from click.testing import CliRunner

from usb_hid_relay.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path):
    return str(tmp_path)


def invoke(runner, config_dir, *args, **kwargs):
    return runner.invoke(cli, ["--config-dir", config_dir, *args], **kwargs)


class TestRelayCommands:
    """测试按编号控制开关"""

    def test_status_table(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "4", "relay", "status")

        assert result.exit_code == 0, result.output
        assert "开关状态" in result.output

    def test_status_single(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "4", "relay", "status", "-r", "2")

        assert result.exit_code == 0, result.output
        assert "开关 2" in result.output
        assert "关闭" in result.output

    def test_on_multiple(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "8", "relay", "on", "-r", "0,2-3")

        assert result.exit_code == 0, result.output
        assert "开关 0, 2, 3 已打开" in result.output

    def test_off(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "8", "relay", "off", "-r", "1")

        assert result.exit_code == 0, result.output
        assert "开关 1 已关闭" in result.output

    def test_out_of_range(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "4", "relay", "on", "-r", "7")

        assert result.exit_code == 1
        assert "开关编号必须在0到3范围内" in result.output

    def test_out_of_range_in_batch(self, runner, config_dir):
        """批量设置时任何越界编号都不会写入"""
        result = invoke(runner, config_dir, "--simulate", "-n", "4", "relay", "off", "-r", "1,9")

        assert result.exit_code == 1
        assert "开关编号必须在0到3范围内" in result.output

    def test_invalid_size(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "3", "relay", "status")

        assert result.exit_code == 1
        assert "继电器大小" in result.output

    def test_toggle(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "4", "relay", "toggle", "-r", "1")

        assert result.exit_code == 0, result.output
        assert "开启" in result.output

    def test_all_on_confirm_declined(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "4", "relay", "all-on", input="n\n")

        assert result.exit_code == 0, result.output
        assert "操作已取消" in result.output

    def test_all_on_yes(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "-n", "4", "relay", "all-on", "--yes")

        assert result.exit_code == 0, result.output
        assert "所有开关已打开" in result.output

    def test_all_off(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "relay", "all-off")

        assert result.exit_code == 0, result.output
        assert "所有开关已关闭" in result.output

    def test_pulse(self, runner, config_dir, monkeypatch):
        monkeypatch.setattr("usb_hid_relay.device_controller.time.sleep", lambda seconds: None)
        result = invoke(runner, config_dir, "--simulate", "-n", "2", "relay", "pulse", "-r", "1", "-d", "0.5")

        assert result.exit_code == 0, result.output
        assert "脉冲控制完成" in result.output

    def test_reset(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "relay", "reset")

        assert result.exit_code == 0, result.output
        assert "复位命令" in result.output

    def test_device_not_found(self, runner, config_dir, monkeypatch):
        monkeypatch.setattr(usb.core, "find", lambda **kwargs: None)
        result = invoke(runner, config_dir, "relay", "status")

        assert result.exit_code == 1
        assert "未找到继电器USB设备" in result.output


class TestConfigErrors:
    """测试配置文件错误的处理"""

    @pytest.mark.parametrize("content", ["relay:\n  size: 3\n", "relay: [\n", "- relay\n"])
    def test_bad_config_reported(self, runner, tmp_path, content):
        (tmp_path / "usb_hid_relay_config.yaml").write_text(content, encoding="utf-8")
        result = invoke(runner, str(tmp_path), "protocol", "build", "read")

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "配置加载失败" in result.output


class TestSwitchCommands:
    """测试命名开关命令"""

    @pytest.fixture
    def named_config(self, tmp_path):
        (tmp_path / "usb_hid_relay_config.yaml").write_text(
            yaml.dump({"relay": {"size": 4, "switch_names": {"pump": 0, "lamp": 3}}}),
            encoding="utf-8",
        )
        return str(tmp_path)

    def test_status(self, runner, named_config):
        result = invoke(runner, named_config, "--simulate", "switch", "status")

        assert result.exit_code == 0, result.output
        assert "pump" in result.output
        assert "lamp" in result.output

    def test_on(self, runner, named_config):
        result = invoke(runner, named_config, "--simulate", "switch", "on", "lamp")

        assert result.exit_code == 0, result.output
        assert "lamp 已打开" in result.output

    def test_unknown_name(self, runner, named_config):
        result = invoke(runner, named_config, "--simulate", "switch", "off", "heater")

        assert result.exit_code == 1
        assert "未知的开关名称" in result.output

    def test_no_names_configured(self, runner, config_dir):
        result = invoke(runner, config_dir, "--simulate", "switch", "status")

        assert result.exit_code == 0
        assert "没有定义开关名称" in result.output


class TestProtocolCommands:
    """测试协议调试命令"""

    def test_build_read(self, runner, config_dir):
        result = invoke(runner, config_dir, "protocol", "build", "read")

        assert result.exit_code == 0, result.output
        assert "D2 0E 11 11 11 11 11 11 11 11 48 49 44 43 80 02 00 00" in result.output

    def test_build_write(self, runner, config_dir):
        result = invoke(runner, config_dir, "protocol", "build", "write", "--mask", "0x0F")

        assert result.exit_code == 0, result.output
        assert "C3 0E 0F 00 00 00 00 00 00 00 48 49 44 43 F8 01 00 00" in result.output

    def test_build_write_bad_mask(self, runner, config_dir):
        result = invoke(runner, config_dir, "protocol", "build", "write", "--mask", "zz")

        assert result.exit_code == 1

    def test_decode(self, runner, config_dir):
        result = invoke(runner, config_dir, "protocol", "decode", "00 00 80 00 00 00", "--size", "4")

        assert result.exit_code == 0, result.output
        assert "mask=0x00000080" in result.output
        assert "S0● S1○ S2○ S3○" in result.output

    def test_decode_short(self, runner, config_dir):
        result = invoke(runner, config_dir, "protocol", "decode", "00 00 80")

        assert result.exit_code == 1


class TestDeviceCommands:
    """测试设备管理命令"""

    def test_list_empty(self, runner, config_dir, monkeypatch):
        monkeypatch.setattr(usb.core, "find", lambda **kwargs: iter([]))
        result = invoke(runner, config_dir, "device", "list")

        assert result.exit_code == 0, result.output
        assert "未找到任何继电器设备" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output
