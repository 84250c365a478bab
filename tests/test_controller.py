import asyncio

import pytest

from wlbright.backends.brightness import (
    Backend,
    BackendCommands,
    ControllerState,
    MonitorController,
    round_percent,
)

from .mocks import DELL, LAPTOP, STUDIO, FakeRunner, probe

DEBOUNCE = 0.05


def make_controller(display=LAPTOP, backend=Backend.BACKLIGHT, bus=None, runner=None):
    controller = MonitorController(display, runner or FakeRunner(), debounce=DEBOUNCE)
    controller.backend = backend
    controller.bus_number = bus
    if backend != Backend.DDC:
        controller.vcp_max = 100
    return controller


class TestBackendCommands:
    def test_probe_commands(self):
        commands = BackendCommands()
        assert commands.probe(Backend.APPLE) == ['asdbctl', 'get']
        assert commands.probe(Backend.DDC, '3') == ['ddcutil', '-b', '3', 'getvcp', '10', '--brief']
        assert commands.probe(Backend.BACKLIGHT)[:2] == ['sh', '-c']

    def test_write_commands(self):
        commands = BackendCommands()
        assert commands.write(Backend.APPLE, 0.42) == ['asdbctl', 'set', '42']
        assert commands.write(Backend.DDC, 0.5, '3', 250) == ['ddcutil', '-b', '3', 'setvcp', '10', '125']
        assert commands.write(Backend.BACKLIGHT, 0.306) == ['brightnessctl', 's', '31%']

    def test_custom_executables(self):
        commands = BackendCommands(brightnessctl='/usr/local/bin/brightnessctl')
        assert commands.write(Backend.BACKLIGHT, 1)[0] == '/usr/local/bin/brightnessctl'

    def test_backlight_probe_quotes_executable(self):
        commands = BackendCommands(brightnessctl='/opt/my tools/brightnessctl')
        assert commands.probe(Backend.BACKLIGHT)[2] == (
            "echo $('/opt/my tools/brightnessctl' g) $('/opt/my tools/brightnessctl' m)"
        )
        assert BackendCommands().probe(Backend.BACKLIGHT)[2] == 'echo $(brightnessctl g) $(brightnessctl m)'


class TestApplyProbe:
    def test_apple_divides_by_101(self):
        controller = make_controller(STUDIO, Backend.APPLE)
        controller.apply_probe('asdbctl 1.0\nbrightness: 50\n')
        assert controller.brightness == pytest.approx(50 / 101)
        assert controller.vcp_max == 100

    def test_ddc(self):
        controller = make_controller(DELL, Backend.DDC, '3')
        controller.apply_probe('VCP 10 C 60 250\n')
        assert controller.brightness == pytest.approx(0.24)
        assert controller.vcp_max == 250

    def test_ddc_malformed_keeps_state(self):
        controller = make_controller(DELL, Backend.DDC, '3')
        controller.brightness = 0.7
        controller.apply_probe('Display not found')
        controller.apply_probe('')
        assert controller.brightness == 0.7

    def test_ddc_zero_max(self):
        controller = make_controller(DELL, Backend.DDC, '3')
        controller.brightness = 0.7
        controller.apply_probe('VCP 10 C 0 0')
        assert controller.brightness == 0

    def test_backlight_takes_last_two_integers(self):
        controller = make_controller()
        controller.apply_probe('a b c 300 1200\n')
        assert controller.brightness == pytest.approx(0.25)

    def test_backlight_zero_max(self):
        controller = make_controller()
        controller.apply_probe('5 0')
        assert controller.brightness == 0

    def test_backlight_malformed(self):
        controller = make_controller()
        controller.brightness = 0.3
        controller.apply_probe('brightnessctl: not found')
        assert controller.brightness == 0.3


class TestAssign:
    def test_assign_reads_brightness(self):
        runner = FakeRunner({probe(Backend.DDC, '3'): 'VCP 10 C 30 100\n'})
        controller = MonitorController(DELL, runner)
        assert controller.vcp_max == 250

        assert asyncio.run(controller.assign(Backend.DDC, '3')) is True
        assert controller.brightness == pytest.approx(0.3)
        assert controller.vcp_max == 100
        assert len(runner.runs) == 1

    def test_same_assignment_does_not_reprobe(self):
        runner = FakeRunner({probe(Backend.DDC, '3'): 'VCP 10 C 30 100\n'})
        controller = MonitorController(DELL, runner)

        async def scenario():
            await controller.assign(Backend.DDC, '3')
            return await controller.assign(Backend.DDC, '3')

        assert asyncio.run(scenario()) is False
        assert len(runner.runs) == 1

    def test_bus_change_reprobes(self):
        runner = FakeRunner({
            probe(Backend.DDC, '3'): 'VCP 10 C 30 100\n',
            probe(Backend.DDC, '4'): 'VCP 10 C 80 100\n',
        })
        controller = MonitorController(DELL, runner)

        async def scenario():
            await controller.assign(Backend.DDC, '3')
            await controller.assign(Backend.DDC, '4')

        asyncio.run(scenario())
        assert controller.brightness == pytest.approx(0.8)
        assert len(runner.runs) == 2


class TestSetBrightness:
    @pytest.mark.parametrize('value,percent', [
        (0.123, 12),
        (0.125, 13),
        (0.005, 1),
        (0.335, 34),
        (0.5, 50),
        (0.77, 77),
        (0.999, 100),
        (1.0, 100),
    ])
    def test_reads_back_written_percent(self, value, percent):
        controller = make_controller()
        controller.set_brightness(value)
        assert controller.runner.dispatched == [['brightnessctl', 's', f'{percent}%']]
        assert round_percent(controller.brightness) == percent

    def test_zero_from_zero_is_noop(self):
        controller = make_controller()
        controller.set_brightness(0.0)
        assert controller.runner.dispatched == []
        assert round_percent(controller.brightness) == 0

    def test_backlight_dispatch(self):
        controller = make_controller()
        controller.set_brightness(0.4)
        assert controller.runner.dispatched == [['brightnessctl', 's', '40%']]
        assert controller.brightness == 0.4
        assert controller.state == ControllerState.IDLE

    def test_apple_dispatch(self):
        controller = make_controller(STUDIO, Backend.APPLE)
        controller.set_brightness(0.3)
        assert controller.runner.dispatched == [['asdbctl', 'set', '30']]

    def test_clamps(self):
        controller = make_controller()
        controller.set_brightness(1.5)
        assert controller.brightness == 1.0
        controller.set_brightness(-3)
        assert controller.brightness == 0.0
        assert controller.runner.dispatched == [
            ['brightnessctl', 's', '100%'],
            ['brightnessctl', 's', '0%'],
        ]

    def test_same_percent_is_noop(self):
        controller = make_controller()
        controller.set_brightness(0.4)
        controller.set_brightness(0.401)
        controller.set_brightness(0.3951)
        assert len(controller.runner.dispatched) == 1
        assert controller.brightness == 0.4

    def test_non_ddc_is_not_debounced(self):
        controller = make_controller()
        controller.set_brightness(0.2)
        controller.set_brightness(0.3)
        assert len(controller.runner.dispatched) == 2
        assert controller.brightness == 0.3

    def test_without_backend_nothing_is_written(self):
        controller = MonitorController(LAPTOP, FakeRunner())
        controller.set_brightness(0.5)
        assert controller.runner.dispatched == []
        assert controller.brightness == 0

    def test_writable(self):
        assert make_controller().writable is True
        assert make_controller(DELL, Backend.DDC, '3').writable is True
        assert make_controller(DELL, Backend.DDC, None).writable is False
        assert MonitorController(LAPTOP, FakeRunner()).writable is False

    def test_ddc_without_bus_nothing_is_written(self):
        controller = make_controller(DELL, Backend.DDC, None)
        controller.set_brightness(0.5)
        assert controller.runner.dispatched == []
        assert controller.brightness == 0


class TestDdcDebounce:
    def test_ddc_write_uses_vcp_max(self):
        controller = make_controller(DELL, Backend.DDC, '3')

        async def scenario():
            controller.set_brightness(0.5)
            controller.close()

        asyncio.run(scenario())
        assert controller.runner.dispatched == [['ddcutil', '-b', '3', 'setvcp', '10', '125']]

    def test_second_write_waits_for_window(self):
        controller = make_controller(DELL, Backend.DDC, '3')
        dispatched = controller.runner.dispatched

        async def scenario():
            controller.set_brightness(0.2)
            controller.set_brightness(0.6)
            assert len(dispatched) == 1
            assert controller.state == ControllerState.DEBOUNCE_WINDOW_OPEN
            assert controller.queued_brightness == 0.6
            assert controller.brightness == 0.2

            await asyncio.sleep(DEBOUNCE * 1.5)
            assert len(dispatched) == 2
            assert controller.brightness == 0.6
            assert controller.queued_brightness is None

            await asyncio.sleep(DEBOUNCE * 1.5)
            assert controller.state == ControllerState.IDLE

        asyncio.run(scenario())
        assert dispatched == [
            ['ddcutil', '-b', '3', 'setvcp', '10', '50'],
            ['ddcutil', '-b', '3', 'setvcp', '10', '150'],
        ]

    def test_burst_is_coalesced_to_last_value(self):
        controller = make_controller(DELL, Backend.DDC, '3')

        async def scenario():
            for value in (0.2, 0.3, 0.35, 0.4):
                controller.set_brightness(value)
            await asyncio.sleep(DEBOUNCE * 3)

        asyncio.run(scenario())
        assert controller.runner.dispatched == [
            ['ddcutil', '-b', '3', 'setvcp', '10', '50'],
            ['ddcutil', '-b', '3', 'setvcp', '10', '100'],
        ]
        assert controller.brightness == 0.4

    def test_queued_value_equal_to_current_is_dropped(self):
        controller = make_controller(DELL, Backend.DDC, '3')

        async def scenario():
            controller.set_brightness(0.2)
            controller.set_brightness(0.5)
            controller.set_brightness(0.2)
            await asyncio.sleep(DEBOUNCE * 2)

        asyncio.run(scenario())
        # 0.2 equals the current brightness, so it is ignored and 0.5 stays queued
        assert len(controller.runner.dispatched) == 2
        assert controller.brightness == 0.5

    def test_close_cancels_pending_write(self):
        controller = make_controller(DELL, Backend.DDC, '3')

        async def scenario():
            controller.set_brightness(0.2)
            controller.set_brightness(0.6)
            controller.close()
            await asyncio.sleep(DEBOUNCE * 2)

        asyncio.run(scenario())
        assert len(controller.runner.dispatched) == 1
        assert controller.state == ControllerState.IDLE
        assert controller.queued_brightness is None
