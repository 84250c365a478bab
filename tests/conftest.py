import os

import pytest

from wlbright.backends.brightness import Backend

from .mocks import DDCUTIL_DETECT, HYPRCTL_MONITORS, WLR_RANDR, FakeRunner, FakeWindowManager, probe


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner({
        ('wlr-randr',): WLR_RANDR,
        ('ddcutil', 'detect', '--sleep-multiplier', '0.5'): DDCUTIL_DETECT,
        ('hyprctl', '-j', 'monitors'): HYPRCTL_MONITORS,
        probe(Backend.BACKLIGHT): '120 400\n',
        probe(Backend.DDC, '3'): 'VCP 10 C 50 100\n',
        probe(Backend.APPLE): 'brightness 50\n',
    })


@pytest.fixture
def window_manager() -> FakeWindowManager:
    return FakeWindowManager(focused='DP-2', ids={'eDP-1': 0, 'DP-2': 1})


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    '''Keep user config files and WLBRIGHT_ variables out of the tests'''
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr('wlbright.config.CONFIG_DIR', tmp_path / 'no-config')
    for key in list(os.environ):
        if key.startswith('WLBRIGHT_'):
            monkeypatch.delenv(key)
