"""
Trace Simulation

This module replays a recorded or hand-written playback trace through the
ABR manager with a simulated clock, so decisions can be inspected without
a real player.

A trace is a dictionary (usually loaded from JSON or YAML) of the form::

    variants:
      - {bandwidth: 400000, height: 360}
      - {bandwidth: 1500000, height: 720}
    config:                 # optional overrides of DEFAULT_CONFIG
      abr: {low_buffer_threshold: 0.3}
    events:
      - {at: 0, type: buffer, level: 0.9}
      - {at: 1000, type: download, delta_time: 120, bytes: 50000,
         allow_switch: true, buffer: 0.85, content_type: video,
         time_to_first_byte: 20, request_start: 850}
      - {at: 1500, type: failure, uri: seg-3.m4s, status: 404}
      - {at: 2000, type: tick}
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from buffer_abr.engine import BufferAbrManager
from buffer_abr.monitor import PeriodicMonitor
from buffer_abr.telemetry import SegmentRequest
from buffer_abr.utils.config import (
    AbrConfiguration, ConfigDict, load_config_file, merge_configs, get_config_value
)
from buffer_abr.utils.statistics import summarize_decisions
from buffer_abr.variants import Variant

EVENT_TYPES = ('buffer', 'download', 'failure', 'tick')

# Fields each event type must carry
REQUIRED_EVENT_FIELDS = {
    'buffer': ('level',),
    'failure': ('status',),
}

logger = logging.getLogger('buffer_abr.simulation')


class SimulatedClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: float = 0.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance_to(self, time_ms: float) -> None:
        if time_ms < self.now:
            raise ValueError(f"Trace time went backwards: {time_ms} < {self.now}")
        self.now = time_ms


class TraceSimulator:
    """Replays trace events through a BufferAbrManager."""

    def __init__(self, trace: Dict[str, Any], config: Optional[ConfigDict] = None):
        """Initialize the simulator.

        Args:
            trace: Trace dictionary with 'variants' and 'events'
            config: Base configuration dictionary (trace 'config' overrides it)

        Raises:
            ValueError: If the trace has no variants, an unknown event type, or
                an event without its required fields
        """
        variants = trace.get('variants') or []
        if not variants:
            raise ValueError("Trace must list at least one variant")

        self.events = list(trace.get('events') or [])
        for event in self.events:
            if event.get('type') not in EVENT_TYPES:
                raise ValueError(f"Unknown trace event type: {event.get('type')!r}")
            missing = [k for k in REQUIRED_EVENT_FIELDS.get(event['type'], ()) if k not in event]
            if missing:
                raise ValueError(f"Trace {event['type']} event is missing {', '.join(missing)}: {event!r}")

        merged = merge_configs(config or {}, trace.get('config') or {})
        self.config = AbrConfiguration.from_dict(merged)
        self.clock = SimulatedClock()
        self.buffer_fullness = 0.0
        self.decisions: List[Dict[str, Any]] = []
        self.reports: List[Optional[Dict[str, Any]]] = []

        self.manager = BufferAbrManager(
            lambda: self.buffer_fullness,
            config=self.config,
            initial_quality_index=get_config_value(merged, 'abr.initial_quality_index', 0),
            clock=self.clock
        )
        self.manager.init(self._on_switch)
        self.manager.set_variants(Variant.from_dict(v) for v in variants)

        # Ticks are driven by trace events, not by a thread
        self.monitor = PeriodicMonitor(
            self.manager,
            report_sink=self.reports.append,
            interval_ms=self.config.monitor_interval,
            recent_window_ms=self.config.recent_window
        )

    def _on_switch(self, variant: Variant, safe_margin_switch: bool, clear_buffer_switch: bool) -> None:
        self.decisions.append({
            'time': self.clock(),
            'quality_index': self.manager.current_quality_index,
            'bandwidth': variant.bandwidth,
            'max_bandwidth': self.config.restrictions.max_bandwidth,
            'safe_margin_switch': safe_margin_switch,
            'clear_buffer_switch': clear_buffer_switch,
        })

    def _apply(self, event: Dict[str, Any]) -> None:
        if 'at' in event:
            self.clock.advance_to(event['at'])

        event_type = event['type']
        if event_type == 'buffer':
            self.buffer_fullness = event['level']
            self.manager.evaluate_buffer(self.buffer_fullness)
        elif event_type == 'download':
            if 'buffer' in event:
                self.buffer_fullness = event['buffer']
            request = SegmentRequest(
                content_type=event.get('content_type', 'video'),
                time_to_first_byte=event.get('time_to_first_byte'),
                request_start_time=event.get('request_start'),
                uri=event.get('uri')
            )
            self.manager.on_segment_downloaded(
                event.get('delta_time', 0),
                event.get('bytes', 0),
                event.get('allow_switch', True),
                request
            )
        elif event_type == 'failure':
            self.manager.on_response_failure(event.get('uri', ''), event['status'])
        else:
            self.monitor.tick()

    def run(self) -> Dict[str, Any]:
        """Replay every event.

        Returns:
            Dictionary with the decisions, monitor reports and summary
        """
        for event in self.events:
            self._apply(event)

        stats = self.manager.get_stats()
        summary = summarize_decisions(stats['history'])
        logger.info(
            f"Replayed {len(self.events)} events: {summary['increases']} increases, "
            f"{summary['decreases']} decreases"
        )

        return {
            'decisions': self.decisions,
            'reports': self.reports,
            'final_quality_index': stats['current_quality_index'],
            'max_bandwidth': self.config.restrictions.max_bandwidth,
            'restrict_to_screen_size': self.config.restrict_to_screen_size,
            'summary': summary,
            'telemetry': stats['telemetry'],
        }


def load_trace(trace_path: Union[str, Path]) -> Dict[str, Any]:
    """Load a trace from a JSON or YAML file.

    Raises:
        FileNotFoundError: If the trace file does not exist
        ValueError: If the file format is not supported
    """
    return load_config_file(trace_path)


def simulate_trace(trace: Dict[str, Any], config: Optional[ConfigDict] = None) -> Dict[str, Any]:
    """Replay a trace and return the result of TraceSimulator.run()."""
    return TraceSimulator(trace, config).run()
