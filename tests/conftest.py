"""Pytest configuration for studio-export tests."""

import pytest
import structlog

import studio_export.logging_config


def _noop_setup_logging(*_args, **_kwargs):  # type: ignore[no-untyped-def]
    return None


# Route structlog through stdlib logging so pytest captures it off stdout,
# and keep the CLI from reconfiguring global logging handlers mid-run.
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.dev.ConsoleRenderer(colors=False),
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
)
studio_export.logging_config.setup_logging = _noop_setup_logging  # type: ignore[assignment]


def pytest_collection_modifyitems(config, items):
    """Set per-marker timeouts: unit=1s, integration=5s."""
    for item in items:
        if "unit" in item.keywords:
            item.add_marker(pytest.mark.timeout(1))
        elif "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(5))
