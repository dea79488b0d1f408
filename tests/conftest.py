"""Pytest configuration and shared fixtures."""

import pytest
from botocore.credentials import Credentials


@pytest.fixture
def credentials():
    """Static credentials so signing never looks at the environment."""
    return Credentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff sleeps instead of waiting."""
    recorded = []
    monkeypatch.setattr("gaws.services.retry.time.sleep", recorded.append)
    return recorded
