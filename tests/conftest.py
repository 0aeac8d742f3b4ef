"""Pytest configuration for headgear tests."""

from typing import Any

import pytest

from headgear._compat import HAS_CAIROSVG


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "render: mark test as requiring render dependencies (cairosvg, cairo)",
    )


# Marker to skip tests that require render dependencies
skip_without_render = pytest.mark.skipif(
    not HAS_CAIROSVG,
    reason="Requires render dependencies: pip install 'headgear[render]'",
)
