import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Selects the config environment and keeps the review store and messaging
    provider in-process, so no test reaches for MongoDB or a broker by accident.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("REVIEW_STORE", "memory")
    os.environ.setdefault("MESSAGING_PROVIDER", "fake")

    from reviews.config import get_settings

    get_settings.cache_clear()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically reset the shared messaging provider after every test"""
    yield

    from reviews.messaging import set_provider

    set_provider(None)
