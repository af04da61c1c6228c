"""
Periodic Monitor

This module runs the fixed-cadence loop that summarizes segment
telemetry for a reporting sink and re-evaluates the buffer.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from buffer_abr.utils.statistics import format_latency_report

# Default monitor settings
DEFAULT_MONITOR_INTERVAL_MS = 1000
DEFAULT_RECENT_WINDOW_MS = 5000

Report = Dict[str, Any]
ReportSink = Callable[[Optional[Report]], None]

logger = logging.getLogger('buffer_abr.monitor')


class PeriodicMonitor:
    """Timer loop that reports telemetry and re-evaluates the buffer.

    The monitor shares the engine's lock: a tick runs entirely under it,
    and stop() flips the stopped flag under it, so once stop() returns
    no tick and no callback will run again.
    """

    def __init__(self,
                 engine,
                 report_sink: Optional[ReportSink] = None,
                 interval_ms: float = DEFAULT_MONITOR_INTERVAL_MS,
                 recent_window_ms: float = DEFAULT_RECENT_WINDOW_MS,
                 evaluate_buffer: bool = True):
        """Initialize the monitor.

        Args:
            engine: The BufferAbrManager to monitor
            report_sink: Called with each tick's report (None when there is no data)
            interval_ms: Interval between ticks in milliseconds
            recent_window_ms: Window for the recent segment count in milliseconds
            evaluate_buffer: Whether each tick re-evaluates the buffer
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        self.engine = engine
        self.report_sink = report_sink
        self.interval_ms = interval_ms
        self.recent_window_ms = recent_window_ms
        self.evaluate_buffer = evaluate_buffer

        self.last_recent_count = 0
        self.last_report: Optional[Report] = None
        self.tick_count = 0

        self.running = False
        self.monitor_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()
        self._stopped = False

    def start(self) -> None:
        """Start the monitor thread."""
        with self.engine.lock:
            if self.running:
                return

            self.running = True
            self._stopped = False
            self.stop_event.clear()
            self.monitor_thread = threading.Thread(
                target=self._monitor_loop,
                name='buffer-abr-monitor'
            )
            self.monitor_thread.daemon = True
            self.monitor_thread.start()

        logger.debug(f"Monitor started with {self.interval_ms} ms interval")

    def stop(self) -> None:
        """Stop the monitor.

        Idempotent and safe to call from within a tick.
        """
        with self.engine.lock:
            self._stopped = True
            self.running = False
            self.stop_event.set()
            thread = self.monitor_thread
            self.monitor_thread = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def build_report(self) -> Optional[Report]:
        """Summarize the telemetry.

        Returns:
            Report dictionary, or None if no segment has been recorded
        """
        telemetry = self.engine.telemetry
        self.last_recent_count = telemetry.recent_count(self.recent_window_ms)

        latency = telemetry.latency_statistics()
        if latency is None:
            return None

        return {
            'averageLatency': latency['average'],
            'minLatency': latency['min'],
            'maxLatency': latency['max'],
            'recentCount': self.last_recent_count,
            'jitter': telemetry.jitter(),
            'crossTrackDelay': telemetry.cross_track_delay(),
            'failures': len(telemetry.failures)
        }

    def tick(self) -> Optional[Report]:
        """Run one monitor cycle.

        Returns:
            The report handed to the sink (None when there is no data
            or the monitor has been stopped)
        """
        with self.engine.lock:
            if self._stopped:
                return None

            report = self.build_report()
            self.last_report = report
            self.tick_count += 1
            logger.debug(format_latency_report(report))

            if self.report_sink is not None:
                self.report_sink(report)

            # The sink may have stopped the monitor
            if self.evaluate_buffer and not self._stopped:
                self.engine.reevaluate()

            return report

    def _monitor_loop(self) -> None:
        """Main monitor loop."""
        interval = self.interval_ms / 1000.0
        while not self.stop_event.wait(interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Monitor tick failed")
