"""
Buffer ABR Package

A buffer-based adaptive bitrate decision engine for streaming video players.
"""

__version__ = '0.1.0'
__author__ = 'Buffer ABR Team'

# Import main components for easier access
from buffer_abr.engine import BufferAbrManager
from buffer_abr.exceptions import AbrError, PreconditionError, InvariantError, ConfigurationError
from buffer_abr.monitor import PeriodicMonitor
from buffer_abr.telemetry import (
    ContentType, SegmentRequest, SegmentRecord, FailedSegmentRecord, TelemetryStore
)
from buffer_abr.utils.config import AbrConfiguration, Restrictions
from buffer_abr.variants import Variant, VariantCatalog

# Define package-level constants
DEFAULT_LOW_BUFFER_THRESHOLD = 0.3
DEFAULT_HIGH_BUFFER_THRESHOLD = 0.8
DEFAULT_MONITOR_INTERVAL_MS = 1000
