"""Tests for the region catalog."""

import pytest

from gaws import regions
from gaws.config import AWS_REGION
from gaws.errors import UnknownRegionError
from gaws.regions import AWSRegion, get_endpoint, get_region, register_region


@pytest.fixture
def region_table(monkeypatch):
    """Isolate registrations made by a test."""
    monkeypatch.setattr(regions, "REGIONS", dict(regions.REGIONS))
    return regions.REGIONS


def test_kinesis_endpoint_in_us_east_1():
    assert get_endpoint("kinesis", "us-east-1") == "https://kinesis.us-east-1.amazonaws.com"


def test_every_service_has_an_endpoint():
    region = get_region("eu-west-1")
    assert region.endpoint("cloudformation") == "https://cloudformation.eu-west-1.amazonaws.com"
    assert region.endpoint("sqs") == "https://sqs.eu-west-1.amazonaws.com"


def test_bogus_region_raises():
    with pytest.raises(UnknownRegionError) as exc_info:
        get_endpoint("kinesis", "zork-east-1")
    assert "zork-east-1" in str(exc_info.value)
    assert exc_info.value.hint


def test_default_region_is_used_without_a_name():
    assert get_endpoint("kinesis") == get_endpoint("kinesis", AWS_REGION)


def test_unknown_service_raises():
    with pytest.raises(UnknownRegionError):
        get_endpoint("dynamodb", "us-east-1")


def test_register_custom_region(region_table):
    register_region(AWSRegion(name="test-east-1", endpoints={"kinesis": "http://localhost:4567"}))
    assert get_endpoint("kinesis", "test-east-1") == "http://localhost:4567"
    assert "test-east-1" in region_table
