"""
Buffer-Based ABR Decision Engine

This module provides the adaptive bitrate manager that steps the stream
quality up or down one variant at a time from buffer-fullness samples,
caps the host's bandwidth restriction to the chosen variant, and hands
every decision to the host player through a switch callback.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional, Union

from buffer_abr.exceptions import InvariantError, PreconditionError, ConfigurationError
from buffer_abr.monitor import (
    PeriodicMonitor, ReportSink, DEFAULT_MONITOR_INTERVAL_MS, DEFAULT_RECENT_WINDOW_MS
)
from buffer_abr.telemetry import TelemetryStore, SegmentRequest, current_time_ms, DEFAULT_MAX_RECORDS
from buffer_abr.utils.config import AbrConfiguration
from buffer_abr.utils.statistics import round_decimal
from buffer_abr.variants import Variant, VariantCatalog

# Default buffer thresholds
DEFAULT_LOW_BUFFER_THRESHOLD = 0.3
DEFAULT_HIGH_BUFFER_THRESHOLD = 0.8

SwitchCallback = Callable[[Variant, bool, bool], None]

logger = logging.getLogger('buffer_abr.engine')


class BufferAbrManager:
    """Buffer-based adaptive bitrate manager.

    The quality index moves by at most one rank per evaluation: down when
    the buffer level is below the low threshold, up when it is above the
    high threshold, and not at all in between. All state changes and
    switch callbacks run under a re-entrant lock, so segment-completion
    evaluations and monitor ticks never interleave.
    """

    def __init__(self,
                 get_buffer_fullness: Callable[[], float],
                 config: Optional[AbrConfiguration] = None,
                 initial_quality_index: int = 0,
                 clock: Callable[[], float] = current_time_ms,
                 telemetry: Optional[TelemetryStore] = None):
        """Initialize the ABR manager.

        Args:
            get_buffer_fullness: Host function returning the current buffer fullness
            config: Shared configuration (may also be supplied later via configure())
            initial_quality_index: Starting rank in the variant catalog
            clock: Function returning the current time in milliseconds
            telemetry: Telemetry store (created from the configuration if None)
        """
        if initial_quality_index < 0:
            raise ValueError(f"initial_quality_index must be non-negative, got {initial_quality_index}")

        self.get_buffer_fullness = get_buffer_fullness
        self.clock = clock
        self.switch_callback: Optional[SwitchCallback] = None

        self.catalog = VariantCatalog()
        self.telemetry = telemetry if telemetry is not None else TelemetryStore(
            clock=clock,
            max_records=config.max_records if config is not None else DEFAULT_MAX_RECORDS
        )

        # Quality state
        self.current_quality_index = initial_quality_index
        self.buffer_level = 0.0
        self.low_buffer_threshold = DEFAULT_LOW_BUFFER_THRESHOLD
        self.high_buffer_threshold = DEFAULT_HIGH_BUFFER_THRESHOLD

        self.playback_rate = 1.0
        self.enabled = True
        self.last_quality_change_time = None
        self.monitor: Optional[PeriodicMonitor] = None

        self._config: Optional[AbrConfiguration] = None
        self._lock = threading.RLock()

        # Statistics
        self.stats = {
            'evaluations': 0,
            'adaptations': 0,
            'increases': 0,
            'decreases': 0,
            'history': []
        }

        if config is not None:
            self.configure(config)

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding the quality state."""
        return self._lock

    @property
    def config(self) -> Optional[AbrConfiguration]:
        return self._config

    def init(self, switch_callback: SwitchCallback) -> None:
        """Register the host's switch callback.

        Args:
            switch_callback: Called as switch_callback(variant, safe_margin_switch,
                clear_buffer_switch) for every decision
        """
        with self._lock:
            self.switch_callback = switch_callback

    def configure(self, config: AbrConfiguration) -> None:
        """Attach the shared configuration.

        The engine keeps a reference to the object and writes the chosen
        bandwidth cap back into config.restrictions.max_bandwidth.

        Args:
            config: Shared configuration

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))

        with self._lock:
            self._config = config
            self.low_buffer_threshold = config.low_buffer_threshold
            self.high_buffer_threshold = config.high_buffer_threshold

        logger.debug(f"Configured with {config!r}")

    def set_variants(self, variants: Iterable[Variant]) -> None:
        """Replace the variant catalog.

        The current quality index is clamped to the new catalog.

        Args:
            variants: Available variants, in any order
        """
        with self._lock:
            self.catalog.set_variants(variants)
            if self.current_quality_index > self.catalog.max_index:
                self.current_quality_index = max(0, self.catalog.max_index)

        logger.debug(f"Variants set: {self.catalog.bandwidths()}")

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def playback_rate_changed(self, rate: float) -> None:
        self.playback_rate = rate

    @property
    def max_quality_index(self) -> int:
        return self.catalog.max_index

    def _variant_at(self, index: int) -> Variant:
        if index < 0 or index > self.catalog.max_index:
            raise InvariantError(
                f"Quality index {index} outside catalog of {len(self.catalog)} variants"
            )
        return self.catalog.variant_at_rank(index)

    def _require_config(self) -> AbrConfiguration:
        if self._config is None:
            raise PreconditionError("ABR manager used before configure() was called")
        return self._config

    def _record_change(self, old_index: int) -> None:
        now = self.clock()
        new_index = self.current_quality_index

        self.stats['adaptations'] += 1
        if new_index > old_index:
            self.stats['increases'] += 1
        else:
            self.stats['decreases'] += 1

        self.stats['history'].append({
            'timestamp': now,
            'old_index': old_index,
            'new_index': new_index,
            'bandwidth': self.catalog.variant_at_rank(new_index).bandwidth,
            'buffer_level': self.buffer_level
        })
        self.last_quality_change_time = now

    def decrease_quality(self) -> bool:
        """Step down one rank unless already at the lowest.

        Returns:
            True if the quality index changed
        """
        with self._lock:
            config = self._require_config()
            if self.catalog.is_empty() or self.current_quality_index <= 0:
                return False

            old_index = self.current_quality_index
            variant = self._variant_at(old_index - 1)
            self.current_quality_index = old_index - 1
            config.restrictions.max_bandwidth = variant.bandwidth
            self._record_change(old_index)

        logger.info(f"Decreasing quality to: {self.current_quality_index}")
        return True

    def increase_quality(self) -> bool:
        """Step up one rank unless already at the highest.

        Returns:
            True if the quality index changed
        """
        with self._lock:
            config = self._require_config()
            if self.catalog.is_empty() or self.current_quality_index >= self.max_quality_index:
                return False

            old_index = self.current_quality_index
            variant = self._variant_at(old_index + 1)
            self.current_quality_index = old_index + 1
            config.restrictions.max_bandwidth = variant.bandwidth
            config.restrict_to_screen_size = True
            self._record_change(old_index)

        logger.info(f"Increasing quality to: {self.current_quality_index}")
        return True

    def choose_variant(self) -> Optional[Variant]:
        """Apply one threshold transition and return the selected variant.

        Returns:
            Variant at the (possibly updated) quality index, or None if
            the catalog is empty
        """
        with self._lock:
            if self.buffer_level < self.low_buffer_threshold:
                self.decrease_quality()
            elif self.buffer_level > self.high_buffer_threshold:
                self.increase_quality()

            if self.catalog.is_empty():
                return None
            return self._variant_at(self.current_quality_index)

    def evaluate_buffer(self, buffer_fullness: float) -> Optional[Variant]:
        """Evaluate a buffer-fullness sample and emit a switch decision.

        Args:
            buffer_fullness: Buffer fullness reported by the host

        Returns:
            The variant handed to the switch callback, or None if no
            variant was selected

        Raises:
            PreconditionError: If no configuration is set, or a variant was
                selected with no switch callback registered
        """
        with self._lock:
            config = self._require_config()
            self.buffer_level = round_decimal(buffer_fullness, 1)

            if not self.enabled:
                return None

            self.stats['evaluations'] += 1
            variant = self.choose_variant()
            if variant is None:
                return None

            if self.switch_callback is None:
                raise PreconditionError("Variant selected before init() registered a switch callback")

            self.switch_callback(variant, config.safe_margin_switch, config.clear_buffer_switch)
            return variant

    def reevaluate(self) -> Optional[Variant]:
        """Evaluate the buffer using the host's current buffer fullness."""
        return self.evaluate_buffer(self.get_buffer_fullness())

    def on_segment_downloaded(self,
                              delta_time: float,
                              num_bytes: int,
                              allow_switch: bool,
                              request: Optional[Union[SegmentRequest, Dict[str, Any]]] = None) -> Optional[Variant]:
        """Handle the completion of a segment download.

        Telemetry is always recorded. A switch-eligible download also
        triggers one buffer evaluation.

        Args:
            delta_time: Time the request took to complete, in milliseconds
            num_bytes: Total number of bytes transferred
            allow_switch: Whether the segment allows switching to another stream
            request: Request details (SegmentRequest or dictionary)

        Returns:
            The variant chosen by the triggered evaluation, if any
        """
        if request is None:
            request = SegmentRequest()
        elif isinstance(request, dict):
            request = SegmentRequest.from_dict(request)

        self.telemetry.record_download(
            delta_time,
            num_bytes,
            content_type=request.content_type,
            time_to_first_byte=request.time_to_first_byte,
            request_start_time=request.request_start_time
        )

        if allow_switch:
            return self.reevaluate()
        return None

    def on_response_failure(self, uri: str, status_code: int) -> bool:
        """Record a failed segment response.

        Returns:
            True if the failure was recorded (status 400 and above)
        """
        return self.telemetry.record_failure(uri, status_code)

    def start_monitoring(self,
                         report_sink: Optional[ReportSink] = None,
                         interval_ms: Optional[float] = None) -> PeriodicMonitor:
        """Start the periodic monitor owned by this manager.

        Args:
            report_sink: Called with each tick's report (None when there is no data)
            interval_ms: Tick interval (defaults to the configured interval)

        Returns:
            The running monitor
        """
        config = self._config
        if interval_ms is None:
            interval_ms = config.monitor_interval if config is not None else DEFAULT_MONITOR_INTERVAL_MS
        recent_window = config.recent_window if config is not None else DEFAULT_RECENT_WINDOW_MS

        with self._lock:
            previous = self.monitor
            self.monitor = None

        if previous is not None:
            previous.stop()

        with self._lock:
            self.monitor = PeriodicMonitor(
                self,
                report_sink=report_sink,
                interval_ms=interval_ms,
                recent_window_ms=recent_window
            )
            self.monitor.start()
            return self.monitor

    def stop(self) -> None:
        """Tear down the session.

        Stops the monitor and clears the switch callback and the variant
        catalog. Telemetry is kept. Safe to call more than once, including
        from inside a switch callback or report sink.
        """
        with self._lock:
            monitor = self.monitor
            self.monitor = None
            self.switch_callback = None
            self.catalog.clear()
            self.current_quality_index = 0
            self.playback_rate = 1.0
            self.last_quality_change_time = None

        if monitor is not None:
            monitor.stop()

    def reset_telemetry(self) -> None:
        self.telemetry.reset()

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the adaptation process.

        Returns:
            Dictionary containing adaptation and telemetry statistics
        """
        with self._lock:
            return {
                'current_quality_index': self.current_quality_index,
                'buffer_level': self.buffer_level,
                'evaluations': self.stats['evaluations'],
                'adaptations': self.stats['adaptations'],
                'increases': self.stats['increases'],
                'decreases': self.stats['decreases'],
                'history': list(self.stats['history']),
                'telemetry': self.telemetry.get_stats()
            }
