"""
Segment Telemetry

This module records segment-download events and HTTP failures, and
derives latency, jitter and cross-track delay statistics from them.
"""

import time
import logging
import threading
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from buffer_abr.utils.statistics import (
    latency_statistics, calculate_jitter, calculate_track_delay
)

# Default telemetry settings
DEFAULT_MAX_RECORDS = 10000
DEFAULT_RECENT_WINDOW_MS = 5000
MIN_FAILURE_STATUS = 400

logger = logging.getLogger('buffer_abr.telemetry')


def current_time_ms() -> float:
    """Wall-clock time in milliseconds since the epoch."""
    return time.time() * 1000.0


class ContentType(Enum):
    """Content type of a downloaded segment."""
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, value) -> 'ContentType':
        """Convert a host value into a content type.

        Unknown values map to OTHER.
        """
        if isinstance(value, ContentType):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OTHER


class SegmentRequest:
    """Request details reported by the host with a completed download."""

    def __init__(self,
                 content_type=ContentType.OTHER,
                 time_to_first_byte: Optional[float] = None,
                 request_start_time: Optional[float] = None,
                 uri: Optional[str] = None):
        """Initialize a segment request.

        Args:
            content_type: Segment content type (ContentType or string)
            time_to_first_byte: Time to first byte in milliseconds (0 if unknown)
            request_start_time: Request start time in ms since the epoch
                (None means the request started when it was recorded)
            uri: Segment URI
        """
        self.content_type = ContentType.parse(content_type)
        self.time_to_first_byte = time_to_first_byte or 0
        self.request_start_time = request_start_time
        self.uri = uri

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SegmentRequest':
        return cls(
            content_type=data.get('content_type', data.get('contentType', ContentType.OTHER)),
            time_to_first_byte=data.get('time_to_first_byte', data.get('timeToFirstByte')),
            request_start_time=data.get('request_start_time', data.get('requestStartTime')),
            uri=data.get('uri'),
        )

    def __repr__(self):
        return (f"SegmentRequest(content_type={self.content_type}, "
                f"time_to_first_byte={self.time_to_first_byte}, "
                f"request_start_time={self.request_start_time})")


class SegmentRecord:
    """A completed segment download."""

    __slots__ = ('content_type', 'timestamp', 'latency', 'delay')

    def __init__(self, content_type: ContentType, timestamp: float,
                 latency: float, delay: float):
        self.content_type = content_type
        self.timestamp = timestamp
        self.latency = latency
        self.delay = delay

    def to_dict(self) -> Dict[str, Any]:
        return {
            'content_type': str(self.content_type),
            'timestamp': self.timestamp,
            'latency': self.latency,
            'delay': self.delay,
        }

    def __repr__(self):
        return (f"SegmentRecord({self.content_type}, timestamp={self.timestamp}, "
                f"latency={self.latency}, delay={self.delay})")


class FailedSegmentRecord:
    """A segment response with an HTTP error status."""

    __slots__ = ('uri', 'timestamp', 'status_code')

    def __init__(self, uri: str, timestamp: float, status_code: int):
        self.uri = uri
        self.timestamp = timestamp
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            'uri': self.uri,
            'timestamp': self.timestamp,
            'status_code': self.status_code,
        }

    def __repr__(self):
        return f"FailedSegmentRecord({self.uri!r}, status_code={self.status_code})"


class TelemetryStore:
    """Append-only store of segment download telemetry.

    Records are kept in arrival order. With max_records set, the oldest
    records are evicted first; statistics cover every retained record.
    Reductions work on a snapshot taken under the store lock.
    """

    def __init__(self,
                 clock: Callable[[], float] = current_time_ms,
                 max_records: Optional[int] = DEFAULT_MAX_RECORDS):
        """Initialize the telemetry store.

        Args:
            clock: Function returning the current time in milliseconds
            max_records: Maximum retained records per kind (None for unbounded)
        """
        if max_records is not None and max_records < 1:
            raise ValueError(f"max_records must be positive or None, got {max_records}")

        self.clock = clock
        self.max_records = max_records
        self._segments: Deque[SegmentRecord] = deque(maxlen=max_records)
        self._failures: Deque[FailedSegmentRecord] = deque(maxlen=max_records)
        self._bytes_transferred = 0
        self._lock = threading.Lock()

    def record_download(self,
                        delta_time: float,
                        bytes_transferred: int,
                        content_type=ContentType.OTHER,
                        time_to_first_byte: Optional[float] = 0,
                        request_start_time: Optional[float] = None) -> SegmentRecord:
        """Record a completed segment download.

        Args:
            delta_time: Download duration in milliseconds
            bytes_transferred: Number of bytes transferred
            content_type: Segment content type
            time_to_first_byte: Time to first byte in milliseconds
            request_start_time: Request start time in ms (defaults to now)

        Returns:
            The appended record
        """
        now = self.clock()
        ttfb = time_to_first_byte or 0
        if request_start_time is None:
            request_start_time = now

        record = SegmentRecord(
            content_type=ContentType.parse(content_type),
            timestamp=now,
            latency=delta_time + ttfb,
            delay=now - request_start_time + ttfb,
        )

        with self._lock:
            self._segments.append(record)
            self._bytes_transferred += bytes_transferred or 0

        return record

    def record_failure(self, uri: str, status_code: int) -> bool:
        """Record a failed segment response.

        Only HTTP statuses of 400 and above are recorded.

        Args:
            uri: Segment URI
            status_code: HTTP status code

        Returns:
            True if the failure was recorded
        """
        if status_code < MIN_FAILURE_STATUS:
            return False

        record = FailedSegmentRecord(uri, self.clock(), status_code)
        with self._lock:
            self._failures.append(record)

        logger.warning(f"Segment request failed with status {status_code}: {uri}")
        return True

    def snapshot(self) -> Tuple[SegmentRecord, ...]:
        """Copy of the retained segment records, in arrival order."""
        with self._lock:
            return tuple(self._segments)

    @property
    def segments(self) -> List[SegmentRecord]:
        return list(self.snapshot())

    @property
    def failures(self) -> List[FailedSegmentRecord]:
        with self._lock:
            return list(self._failures)

    @property
    def bytes_transferred(self) -> int:
        return self._bytes_transferred

    def latency_statistics(self) -> Optional[Dict[str, float]]:
        """Latency statistics over all retained records.

        Returns:
            Dictionary with 'average', 'min' and 'max' in milliseconds,
            or None if nothing has been recorded
        """
        return latency_statistics([s.latency for s in self.snapshot()])

    def jitter(self) -> float:
        """Jitter of segment delays in seconds (0 for fewer than two)."""
        return calculate_jitter([s.delay for s in self.snapshot()])

    def cross_track_delay(self) -> Optional[float]:
        """Distance between the last-seen video and audio segment timestamps.

        Records are scanned in arrival order and a later record of the
        same type replaces the earlier one.

        Returns:
            Delay in milliseconds, or None if either track was never seen
        """
        video_timestamp = None
        audio_timestamp = None
        for record in self.snapshot():
            if record.content_type is ContentType.VIDEO:
                video_timestamp = record.timestamp
            elif record.content_type is ContentType.AUDIO:
                audio_timestamp = record.timestamp
        return calculate_track_delay(video_timestamp, audio_timestamp)

    def recent_count(self,
                     window_ms: float = DEFAULT_RECENT_WINDOW_MS,
                     now: Optional[float] = None) -> int:
        """Count records within a time window ending now.

        Args:
            window_ms: Window length in milliseconds
            now: Reference time in ms (defaults to the store clock)

        Returns:
            Number of records with now - timestamp <= window_ms
        """
        if now is None:
            now = self.clock()
        return sum(1 for s in self.snapshot() if now - s.timestamp <= window_ms)

    def reset(self) -> None:
        """Discard all recorded telemetry."""
        with self._lock:
            self._segments.clear()
            self._failures.clear()
            self._bytes_transferred = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get a summary of the recorded telemetry.

        Returns:
            Dictionary with counts and derived statistics
        """
        return {
            'segment_count': len(self._segments),
            'failure_count': len(self._failures),
            'bytes_transferred': self._bytes_transferred,
            'latency': self.latency_statistics(),
            'jitter': self.jitter(),
            'cross_track_delay': self.cross_track_delay(),
        }

    def __len__(self) -> int:
        return len(self._segments)
