"""AWS region catalog and endpoint lookup."""

import threading
from dataclasses import dataclass, field

from gaws.config import AWS_REGION, get_logger
from gaws.errors import UnknownRegionError

logger = get_logger(__name__)

SERVICES = ("kinesis", "cloudformation", "sqs")


@dataclass(frozen=True)
class AWSRegion:
    """A region and the endpoint of each supported service in it."""
    name: str
    endpoints: dict[str, str] = field(default_factory=dict)

    def endpoint(self, service: str) -> str:
        try:
            return self.endpoints[service]
        except KeyError:
            raise UnknownRegionError(
                f"No {service} endpoint known for region {self.name}"
            ) from None


def _standard_region(name: str) -> AWSRegion:
    return AWSRegion(
        name=name,
        endpoints={service: f"https://{service}.{name}.amazonaws.com" for service in SERVICES},
    )


# Commercial regions with the standard <service>.<region>.amazonaws.com hostnames
_REGION_NAMES = (
    "us-east-1", "us-east-2", "us-west-1", "us-west-2",
    "ca-central-1",
    "eu-west-1", "eu-west-2", "eu-west-3", "eu-central-1", "eu-north-1",
    "ap-northeast-1", "ap-northeast-2", "ap-southeast-1", "ap-southeast-2",
    "ap-south-1",
    "sa-east-1",
)

REGIONS: dict[str, AWSRegion] = {name: _standard_region(name) for name in _REGION_NAMES}

_lock = threading.Lock()


def register_region(region: AWSRegion) -> None:
    """Add or replace a region, e.g. to point a service at a local endpoint."""
    with _lock:
        REGIONS[region.name] = region
    logger.debug(f"[REGIONS] Registered region {region.name}: {region.endpoints}")


def get_region(name: str | None = None) -> AWSRegion:
    """Return the catalog entry for a region, defaulting to AWS_REGION."""
    name = name or AWS_REGION
    try:
        return REGIONS[name]
    except KeyError:
        raise UnknownRegionError(
            f"Unknown region: {name}",
            hint=f"Known regions: {', '.join(sorted(REGIONS))}",
        ) from None


def get_endpoint(service: str, region: str | None = None) -> str:
    """Resolve the endpoint URL of a service in a region."""
    return get_region(region).endpoint(service)
