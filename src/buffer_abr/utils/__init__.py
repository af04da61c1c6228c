"""
Utility Modules for the ABR engine

This package provides configuration, logging and statistics helpers.
"""

from buffer_abr.utils.config import (
    AbrConfiguration,
    Restrictions,
    get_default_config,
    load_config_file,
    merge_configs,
    save_config,
    get_config_schema,
    validate_config,
    get_config_value,
    set_config_value
)

from buffer_abr.utils.logging import (
    setup_logger,
    setup_json_logger,
    JsonFormatter
)

from buffer_abr.utils.statistics import (
    latency_statistics,
    sample_stddev,
    calculate_jitter,
    calculate_track_delay,
    format_latency_report
)
