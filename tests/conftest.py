"""Pytest configuration for litematch tests."""

import pytest


def pytest_addoption(parser):
    """Add custom command-line options to pytest."""
    parser.addoption(
        "--run-extra",
        action="store_true",
        default=False,
        help="also run slow tests, such as large randomized matchups",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "extra: slow test, skipped unless --run-extra is given")


def pytest_collection_modifyitems(config, items):
    """Skip tests marked with 'extra' unless --run-extra is passed."""
    if config.getoption("--run-extra"):
        return

    skip_extra = pytest.mark.skip(reason="need --run-extra option to run")
    for item in items:
        if "extra" in item.keywords:
            item.add_marker(skip_extra)
