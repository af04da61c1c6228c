"""
Unit tests for the buffer-based ABR manager
"""

import random
import threading

import pytest

from buffer_abr.engine import BufferAbrManager
from buffer_abr.exceptions import PreconditionError, InvariantError, ConfigurationError
from buffer_abr.telemetry import SegmentRequest
from buffer_abr.utils.config import AbrConfiguration
from buffer_abr.variants import Variant


class TestQualitySteps:
    """Test suite for threshold transitions"""

    def test_steps_up_one_rank_at_a_time(self, manager, abr_config, recorder):
        manager.evaluate_buffer(0.9)
        assert manager.current_quality_index == 1
        assert abr_config.restrictions.max_bandwidth == 500

        manager.evaluate_buffer(0.9)
        assert manager.current_quality_index == 2
        assert abr_config.restrictions.max_bandwidth == 1000

        manager.evaluate_buffer(0.9)
        assert manager.current_quality_index == 2
        assert abr_config.restrictions.max_bandwidth == 1000

        assert recorder.bandwidths == [500, 1000, 1000]

    def test_increase_sets_restrict_to_screen_size(self, manager, abr_config):
        assert abr_config.restrict_to_screen_size is False
        manager.evaluate_buffer(0.9)
        assert abr_config.restrict_to_screen_size is True

    def test_steps_down_one_rank(self, manager, abr_config, recorder):
        manager.evaluate_buffer(0.9)
        manager.evaluate_buffer(0.9)
        assert manager.current_quality_index == 2

        manager.evaluate_buffer(0.1)
        assert manager.current_quality_index == 1
        assert abr_config.restrictions.max_bandwidth == 500

    def test_single_step_regardless_of_depth(self, manager):
        manager.evaluate_buffer(0.9)
        manager.evaluate_buffer(0.9)

        manager.evaluate_buffer(0.0)
        assert manager.current_quality_index == 1

    def test_lowest_rank_is_a_floor(self, manager, abr_config, recorder):
        manager.evaluate_buffer(0.1)

        assert manager.current_quality_index == 0
        assert abr_config.restrictions.max_bandwidth is None
        assert recorder.bandwidths == [100]

    def test_dead_zone_holds(self, manager, recorder):
        manager.evaluate_buffer(0.9)
        for level in (0.3, 0.5, 0.8, 0.4, 0.7):
            manager.evaluate_buffer(level)
            assert manager.current_quality_index == 1

        assert manager.get_stats()['adaptations'] == 1
        assert len(recorder.calls) == 6

    def test_sample_rounded_to_one_decimal(self, manager):
        # 0.84 rounds to 0.8, which is not above the high threshold
        manager.evaluate_buffer(0.84)
        assert manager.buffer_level == 0.8
        assert manager.current_quality_index == 0

        manager.evaluate_buffer(0.86)
        assert manager.buffer_level == 0.9
        assert manager.current_quality_index == 1

    def test_exact_half_sample_rounds_up(self, manager, recorder):
        manager.evaluate_buffer(0.9)
        assert manager.current_quality_index == 1

        # 0.25 rounds to 0.3, which sits on the low threshold
        manager.evaluate_buffer(0.25)
        assert manager.buffer_level == 0.3
        assert manager.current_quality_index == 1

        manager.evaluate_buffer(0.95)
        assert manager.buffer_level == 0.9
        assert manager.current_quality_index == 2

    def test_switch_flags_come_from_configuration(self, buffer_source, clock, recorder, variants):
        config = AbrConfiguration(safe_margin_switch=True, clear_buffer_switch=True)
        abr = BufferAbrManager(buffer_source, config=config, clock=clock)
        abr.init(recorder)
        abr.set_variants(variants)

        abr.evaluate_buffer(0.5)
        assert recorder.calls == [(Variant(100, variant_id='low'), True, True)]

    def test_custom_thresholds(self, buffer_source, clock, recorder, variants):
        config = AbrConfiguration(low_buffer_threshold=0.1, high_buffer_threshold=0.5)
        abr = BufferAbrManager(buffer_source, config=config, clock=clock)
        abr.init(recorder)
        abr.set_variants(variants)

        abr.evaluate_buffer(0.6)
        assert abr.current_quality_index == 1
        abr.evaluate_buffer(0.2)
        assert abr.current_quality_index == 1

    def test_random_walk_stays_in_bounds(self, manager):
        rng = random.Random(7)
        previous = manager.current_quality_index
        for _ in range(500):
            manager.evaluate_buffer(rng.random())
            index = manager.current_quality_index
            assert abs(index - previous) <= 1
            assert 0 <= index <= 2
            previous = index

    def test_history_records_changes(self, manager, clock):
        manager.evaluate_buffer(0.9)
        clock.advance(1000)
        manager.evaluate_buffer(0.1)

        stats = manager.get_stats()
        assert stats['increases'] == 1
        assert stats['decreases'] == 1
        assert stats['evaluations'] == 2
        assert [(h['old_index'], h['new_index']) for h in stats['history']] == [(0, 1), (1, 0)]
        assert manager.last_quality_change_time == clock()


class TestCatalogHandling:
    """Test suite for catalog interaction"""

    def test_empty_catalog_skips_switch(self, buffer_source, abr_config, clock, recorder):
        abr = BufferAbrManager(buffer_source, config=abr_config, clock=clock)
        abr.init(recorder)

        assert abr.evaluate_buffer(0.9) is None
        assert abr.evaluate_buffer(0.1) is None
        assert recorder.calls == []
        assert abr.current_quality_index == 0

    def test_empty_catalog_needs_no_callback(self, buffer_source, abr_config, clock):
        abr = BufferAbrManager(buffer_source, config=abr_config, clock=clock)
        assert abr.evaluate_buffer(0.5) is None

    def test_shrinking_catalog_clamps_index(self, manager):
        manager.evaluate_buffer(0.9)
        manager.evaluate_buffer(0.9)

        manager.set_variants([Variant(100)])
        assert manager.current_quality_index == 0
        assert manager.evaluate_buffer(0.5) == Variant(100)

    def test_corrupted_index_is_an_invariant_error(self, manager):
        manager.current_quality_index = 7
        with pytest.raises(InvariantError):
            manager.choose_variant()

    def test_empty_catalog_with_initial_index(self, buffer_source, abr_config, clock, recorder):
        abr = BufferAbrManager(buffer_source, config=abr_config, initial_quality_index=2, clock=clock)
        abr.init(recorder)

        assert abr.evaluate_buffer(0.1) is None
        assert abr.evaluate_buffer(0.9) is None
        assert abr.current_quality_index == 2
        assert abr_config.restrictions.max_bandwidth is None
        assert abr.get_stats()['adaptations'] == 0
        assert recorder.calls == []


class TestPreconditions:
    """Test suite for precondition violations"""

    def test_evaluate_without_configuration(self, buffer_source, clock, recorder, variants):
        abr = BufferAbrManager(buffer_source, clock=clock)
        abr.init(recorder)
        abr.set_variants(variants)

        with pytest.raises(PreconditionError):
            abr.evaluate_buffer(0.5)

    def test_decision_without_switch_callback(self, buffer_source, abr_config, clock, variants):
        abr = BufferAbrManager(buffer_source, config=abr_config, clock=clock)
        abr.set_variants(variants)

        with pytest.raises(PreconditionError):
            abr.evaluate_buffer(0.5)

    def test_invalid_configuration_rejected(self):
        with pytest.raises(ConfigurationError):
            AbrConfiguration(low_buffer_threshold=0.8, high_buffer_threshold=0.3)

    def test_configure_rejects_mutated_thresholds(self, buffer_source, abr_config):
        abr_config.low_buffer_threshold = 0.9
        abr = BufferAbrManager(buffer_source)
        with pytest.raises(ConfigurationError):
            abr.configure(abr_config)

    def test_negative_initial_index(self, buffer_source):
        with pytest.raises(ValueError):
            BufferAbrManager(buffer_source, initial_quality_index=-1)

    def test_step_without_configuration_keeps_index(self, buffer_source, clock, variants):
        abr = BufferAbrManager(buffer_source, initial_quality_index=1, clock=clock)
        abr.set_variants(variants)

        with pytest.raises(PreconditionError):
            abr.decrease_quality()
        with pytest.raises(PreconditionError):
            abr.increase_quality()
        assert abr.current_quality_index == 1
        assert abr.get_stats()['adaptations'] == 0


class TestSegmentDownloads:
    """Test suite for segment download handling"""

    def test_allow_switch_triggers_one_evaluation(self, manager, buffer_source, recorder):
        buffer_source.level = 0.9
        request = SegmentRequest('video', time_to_first_byte=20)

        chosen = manager.on_segment_downloaded(100, 4000, True, request)

        assert buffer_source.reads == 1
        assert len(recorder.calls) == 1
        assert chosen.bandwidth == 500
        assert manager.get_stats()['evaluations'] == 1

    def test_disallowed_switch_does_not_evaluate(self, manager, buffer_source, recorder):
        assert manager.on_segment_downloaded(100, 4000, False, SegmentRequest('video')) is None

        assert buffer_source.reads == 0
        assert recorder.calls == []
        assert manager.current_quality_index == 0

    def test_telemetry_always_recorded(self, manager, clock):
        manager.on_segment_downloaded(100, 4000, False, {'contentType': 'audio', 'timeToFirstByte': 10,
                                                         'requestStartTime': clock() - 150})
        manager.on_segment_downloaded(50, 2000, True, None)

        segments = manager.telemetry.segments
        assert [s.latency for s in segments] == [110, 50]
        assert segments[0].delay == 160

    def test_response_failure(self, manager):
        assert manager.on_response_failure('seg.m4s', 404) is True
        assert manager.on_response_failure('seg.m4s', 304) is False
        assert len(manager.telemetry.failures) == 1


class TestLifecycle:
    """Test suite for enable, disable and stop"""

    def test_disabled_manager_makes_no_decisions(self, manager, recorder):
        manager.disable()
        assert manager.evaluate_buffer(0.9) is None
        assert manager.current_quality_index == 0
        assert recorder.calls == []

        manager.enable()
        manager.evaluate_buffer(0.9)
        assert manager.current_quality_index == 1

    def test_stop_clears_session(self, manager, recorder):
        manager.on_segment_downloaded(10, 100, False)
        manager.evaluate_buffer(0.9)
        manager.stop()

        assert manager.switch_callback is None
        assert len(manager.catalog) == 0
        assert manager.evaluate_buffer(0.9) is None
        assert len(recorder.calls) == 1
        # Telemetry survives stop()
        assert len(manager.telemetry) == 1

    def test_stop_is_idempotent(self, manager):
        manager.start_monitoring(interval_ms=10)
        manager.stop()
        manager.stop()
        assert manager.monitor is None

    def test_reset_telemetry(self, manager):
        manager.on_segment_downloaded(10, 100, False)
        manager.reset_telemetry()
        assert len(manager.telemetry) == 0

    def test_playback_rate(self, manager):
        manager.playback_rate_changed(1.5)
        assert manager.playback_rate == 1.5


class TestConcurrency:
    """Test suite for concurrent evaluations"""

    def test_parallel_evaluations_never_skip_levels(self, buffer_source, abr_config, clock, variants):
        seen = []
        abr = BufferAbrManager(buffer_source, config=abr_config, clock=clock)
        abr.set_variants([Variant(bw) for bw in range(100, 2100, 100)])
        abr.init(lambda variant, safe, clear: seen.append(abr.current_quality_index))

        def worker():
            for _ in range(50):
                abr.evaluate_buffer(0.9)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert abr.current_quality_index == 19
        steps = [b - a for a, b in zip(seen, seen[1:])]
        assert all(step in (0, 1) for step in steps)
        assert abr.get_stats()['increases'] == 19
