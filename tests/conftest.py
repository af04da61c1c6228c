"""
Pytest configuration and fixtures for the buffer ABR tests.
"""

import os
import sys
import pytest

# Add the src directory to the path for importing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from buffer_abr.engine import BufferAbrManager
from buffer_abr.utils.config import AbrConfiguration
from buffer_abr.variants import Variant


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class SwitchRecorder:
    """Switch callback that records every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, variant, safe_margin_switch, clear_buffer_switch):
        self.calls.append((variant, safe_margin_switch, clear_buffer_switch))

    @property
    def bandwidths(self):
        return [call[0].bandwidth for call in self.calls]


class BufferSource:
    """Host buffer-fullness getter with a settable level."""

    def __init__(self, level=0.5):
        self.level = level
        self.reads = 0

    def __call__(self):
        self.reads += 1
        return self.level


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def variants():
    """Three variants, deliberately out of order."""
    return [Variant(1000, variant_id='high'), Variant(100, variant_id='low'), Variant(500, variant_id='mid')]


@pytest.fixture
def abr_config():
    return AbrConfiguration()


@pytest.fixture
def recorder():
    return SwitchRecorder()


@pytest.fixture
def buffer_source():
    return BufferSource()


@pytest.fixture
def manager(buffer_source, abr_config, clock, recorder, variants):
    """A configured manager with three variants at index 0."""
    abr = BufferAbrManager(buffer_source, config=abr_config, clock=clock)
    abr.init(recorder)
    abr.set_variants(variants)
    yield abr
    abr.stop()
