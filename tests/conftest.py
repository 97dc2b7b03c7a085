"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import time

import pytest

# Make the project root importable when pytest runs without the pythonpath option
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app import create_app  # noqa: E402


class RecordingMailer:
    """Stands in for SnailMailSender; records deliveries and can be told to fail."""

    mode = 'console'

    def __init__(self, error=None):
        self.error = error
        self.delivered = []

    async def deliver(self, job):
        if self.error is not None:
            raise self.error
        self.delivered.append(job.id)


def wait_for(predicate, timeout=5.0, interval=0.02):
    """Poll until predicate() is truthy or the timeout elapses."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def app():
    app = create_app('testing')
    yield app
    app.job_tracker.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()
