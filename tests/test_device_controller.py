"""
继电器控制器测试
"""

import pytest
import usb.core

from conftest import RecordingTransport, status_packet, write_mask
from usb_hid_relay.device_controller import UsbHidRelayController, DeviceManager, RelaySequence
from usb_hid_relay.exceptions import (
    HIDRelayDeviceNotFoundException,
    HIDRelayInvalidArgumentException,
    HIDRelayTransportException,
)
from usb_hid_relay.hid_protocol import HIDRelayProtocol
from usb_hid_relay.relay_size import RelaySize
from usb_hid_relay.usb_transport import SimulatedRelayTransport


def make_controller(size=8, responses=None):
    transport = RecordingTransport(responses)
    return UsbHidRelayController.create(transport, RelaySize(size)), transport


class TestReadStates:
    """测试开关状态读取"""

    def test_get_switch_states(self):
        states = [True, False, False, True]
        controller, transport = make_controller(4, [status_packet(states)])

        assert controller.get_switch_states() == states
        assert transport.written == [HIDRelayProtocol.build_read_command()]
        assert transport.reads == 1

    def test_each_query_rereads(self):
        controller, transport = make_controller(2, [status_packet([True, False]), status_packet([False, True])])

        assert controller.get_switch_states() == [True, False]
        assert controller.get_switch_states() == [False, True]
        assert transport.reads == 2

    def test_get_switch_state(self):
        controller, _ = make_controller(4, [status_packet([False, False, True, False])])
        assert controller.get_switch_state(2) is True

    @pytest.mark.parametrize("switch_id", [-1, 4, 100])
    def test_get_switch_state_out_of_range(self, switch_id):
        controller, transport = make_controller(4)

        with pytest.raises(HIDRelayInvalidArgumentException):
            controller.get_switch_state(switch_id)
        assert transport.written == []

    def test_short_response(self):
        controller, _ = make_controller(4, [bytes(5)])
        with pytest.raises(HIDRelayTransportException):
            controller.get_switch_states()

    def test_relay_size_accessor(self):
        controller, transport = make_controller(16)
        assert controller.relay_size == RelaySize.SIXTEEN
        assert transport.written == []


class TestWriteStates:
    """测试开关状态设置"""

    def test_set_switch_states_overwrites_without_reading(self):
        controller, transport = make_controller(4)

        controller.set_switch_states([True, False, True, False])

        assert transport.reads == 0
        assert len(transport.written) == 1
        assert write_mask(transport.written[0]) == 0b0101

    @pytest.mark.parametrize("states", [[], [True] * 3, [True] * 5])
    def test_set_switch_states_size_mismatch(self, states):
        controller, transport = make_controller(4)

        with pytest.raises(HIDRelayInvalidArgumentException):
            controller.set_switch_states(states)
        assert transport.written == []

    def test_set_all_switches_on(self):
        controller, transport = make_controller(4)

        controller.set_all_switches_on()

        assert write_mask(transport.written[0]) == 0x0F

    def test_set_all_switches_off(self):
        controller, transport = make_controller(16)

        controller.set_all_switches_off()

        assert write_mask(transport.written[0]) == 0x0000

    def test_set_switch_state_preserves_other_switches(self):
        """读取-修改-写回只改变目标开关"""
        current = [True] * 8
        current[3] = False
        controller, transport = make_controller(8, [status_packet(current)])

        controller.set_switch_state(3, True)

        existing_without_id = 0xFF & ~(1 << 3)
        assert transport.written[0] == HIDRelayProtocol.build_read_command()
        assert write_mask(transport.written[1]) == (1 << 3) | existing_without_id

    def test_set_switch_off(self):
        controller, transport = make_controller(4, [status_packet([True, True, False, True])])

        controller.set_switch_off(0)

        assert write_mask(transport.written[1]) == 0b1010

    def test_set_switch_on(self):
        controller, transport = make_controller(4, [status_packet([False] * 4)])

        controller.set_switch_on(2)

        assert write_mask(transport.written[1]) == 0b0100

    @pytest.mark.parametrize("switch_id", [-1, 8, True])
    def test_set_switch_state_out_of_range(self, switch_id):
        controller, transport = make_controller(8)

        with pytest.raises(HIDRelayInvalidArgumentException, match="0到7"):
            controller.set_switch_state(switch_id, True)
        assert transport.written == []

    def test_toggle_switch(self):
        controller, transport = make_controller(4, [status_packet([False, True, False, False])])

        assert controller.toggle_switch(1) is False
        assert write_mask(transport.written[1]) == 0

    def test_reset(self):
        controller, transport = make_controller(4)

        controller.reset()

        assert transport.written == [HIDRelayProtocol.build_reset_command()]
        assert transport.reads == 0


class TestSimulatedRoundTrip:
    """测试写入后读取得到相同状态"""

    @pytest.mark.parametrize("size", [1, 2, 4, 8, 16])
    def test_set_then_get(self, size):
        controller = UsbHidRelayController.create(SimulatedRelayTransport(size), RelaySize(size))
        states = [i % 3 == 0 for i in range(size)]

        controller.set_switch_states(states)

        assert controller.get_switch_states() == states

    def test_single_switch_changes(self):
        controller = UsbHidRelayController.create(SimulatedRelayTransport(8), RelaySize.EIGHT)

        controller.set_switch_on(5)
        controller.set_switch_on(0)
        controller.set_switch_off(5)

        assert controller.get_switch_states() == [True] + [False] * 7


class TestLifecycle:
    """测试控制器生命周期"""

    def test_requires_relay_size(self):
        with pytest.raises(HIDRelayInvalidArgumentException):
            UsbHidRelayController(RecordingTransport(), 8)

    def test_context_manager_closes_transport(self):
        transport = RecordingTransport()
        with UsbHidRelayController.create(transport, RelaySize.FOUR) as controller:
            controller.set_all_switches_off()

        assert transport.closed

    def test_closed_controller_rejects_commands(self):
        controller, _ = make_controller(4)
        controller.close()
        controller.close()

        with pytest.raises(HIDRelayTransportException):
            controller.reset()

    def test_find_and_acquire_no_device(self, monkeypatch):
        monkeypatch.setattr(usb.core, "find", lambda **kwargs: None)

        with pytest.raises(HIDRelayDeviceNotFoundException):
            UsbHidRelayController.find_and_acquire_first_relay(RelaySize.EIGHT)


class FakeDescriptorDevice:
    def __init__(self, bus, address):
        self.bus = bus
        self.address = address
        self.idVendor = 0x0416
        self.idProduct = 0x5020
        self.iManufacturer = 0
        self.iProduct = 0
        self.iSerialNumber = 0


class TestDeviceManager:
    """测试设备列表"""

    def test_list_relay_devices(self, monkeypatch):
        found = {}

        def fake_find(**kwargs):
            found.update(kwargs)
            return iter([FakeDescriptorDevice(1, 4), FakeDescriptorDevice(2, 7)])

        monkeypatch.setattr(usb.core, "find", fake_find)

        devices = DeviceManager.list_relay_devices()

        assert found == {"find_all": True, "idVendor": 0x0416, "idProduct": 0x5020}
        assert [(d.bus, d.address) for d in devices] == [(1, 4), (2, 7)]
        assert devices[0].vendor_id == "0416"
        assert devices[0].product_id == "5020"
        assert devices[0].manufacturer == "Unknown"

    def test_enumeration_failure(self, monkeypatch):
        def fake_find(**kwargs):
            raise usb.core.USBError("Access denied")

        monkeypatch.setattr(usb.core, "find", fake_find)

        with pytest.raises(HIDRelayTransportException):
            DeviceManager.list_relay_devices()


class TestRelaySequence:
    """测试定时开关序列"""

    def test_pulse_switch(self, monkeypatch):
        delays = []
        monkeypatch.setattr("usb_hid_relay.device_controller.time.sleep", delays.append)
        controller = UsbHidRelayController.create(SimulatedRelayTransport(4), RelaySize.FOUR)

        RelaySequence(controller).pulse_switch(2, 0.25)

        assert delays == [0.25]
        assert controller.get_switch_states() == [False] * 4

    def test_sequence_control(self, monkeypatch):
        delays = []
        monkeypatch.setattr("usb_hid_relay.device_controller.time.sleep", delays.append)
        controller = UsbHidRelayController.create(SimulatedRelayTransport(4), RelaySize.FOUR)

        RelaySequence(controller).sequence_control([(0, True, 0.1), (3, True, 0), (0, False, 0.2)])

        assert delays == [0.1, 0.2]
        assert controller.get_switch_states() == [False, False, False, True]
