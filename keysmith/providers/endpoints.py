"""STS endpoint validation.

A connection may point its token service calls at a regional STS endpoint.
Only known endpoints are accepted: either an explicit whitelist from the
settings, or every region where boto3 knows STS is available plus the global
endpoint.
"""

from collections.abc import Sequence

import boto3

from keysmith.config.parameters import STS_ENDPOINT_DEFAULT

REGION_TO_STS_ENDPOINT_FORMAT = "https://sts.{region}.amazonaws.com"
CHINA_REGION_TO_STS_ENDPOINT_FORMAT = "https://sts.{region}.amazonaws.com.cn"

_PARTITIONS = ("aws", "aws-cn", "aws-us-gov")


def is_china_region(region: str) -> bool:
    return region.startswith("cn-")


def sts_endpoint_for_region(region: str) -> str:
    """Regional STS endpoint URL for ``region``."""
    if is_china_region(region):
        return CHINA_REGION_TO_STS_ENDPOINT_FORMAT.format(region=region)
    return REGION_TO_STS_ENDPOINT_FORMAT.format(region=region)


def get_sts_endpoints(whitelisted: Sequence[str] | None = None) -> list[str]:
    """List the STS endpoints a connection may use.

    Args:
        whitelisted: Explicit allow-list. When non-empty it replaces the
            region-derived list entirely.
    """
    if whitelisted:
        return [endpoint.strip() for endpoint in whitelisted if endpoint.strip()]

    session = boto3.Session()
    endpoints = []
    for partition in _PARTITIONS:
        for region in session.get_available_regions("sts", partition_name=partition):
            endpoints.append(sts_endpoint_for_region(region))
    endpoints.append(STS_ENDPOINT_DEFAULT)
    return endpoints


def is_valid_sts_endpoint(url: str | None, whitelisted: Sequence[str] | None = None) -> bool:
    """Check ``url`` against the allowed STS endpoints."""
    if not url:
        return False
    return url in get_sts_endpoints(whitelisted)
