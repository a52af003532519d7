"""Persisted user options.

Options live in a YAML file (default `~/.config/studio-export/config.yml`,
overridable with `STUDIO_EXPORT_CONFIG`):

    extraction_mode: xhr        # or dom
    include_user: true
    include_model: true
    include_thinking: true
    collapsible_thinking: true
    scroll:
      scroll_delay_ms: 50
"""

from studio_export.config.loader import default_config_path, load_config, migrate_legacy_config, save_config
from studio_export.config.schema import ExportConfig, ScrollTuning

__all__ = [
    "ExportConfig",
    "ScrollTuning",
    "default_config_path",
    "load_config",
    "migrate_legacy_config",
    "save_config",
]
