# SPDX-License-Identifier: MIT
"""
Cloud storage bucket URL parsing.

Extracts the provider, bucket (or container) name, region and object path
from S3, Google Cloud Storage and Azure Blob URLs, and checks the bucket
name against the provider's naming rules. Parsing is purely local; nothing
here contacts the bucket.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .context import ValidationContext

MAX_URL_LENGTH = 2048
PROVIDERS = ("aws", "gcp", "azure")

_NAME = r"[a-z0-9][a-z0-9\-.]{1,61}[a-z0-9]"
_GCS_NAME = r"[a-z0-9][a-z0-9\-_.]{1,61}[a-z0-9]"

_AWS_FORMS = [
    # s3://bucket/path
    ("protocol", re.compile(rf"^s3://(?P<bucket>{_NAME})(?:/(?P<path>.*))?$", re.I)),
    # https://bucket.s3-website-region.amazonaws.com/path
    (
        "website",
        re.compile(
            rf"^https?://(?P<bucket>{_NAME})\.s3-website(?:[.\-](?P<region>[a-z0-9\-]+))?"
            r"\.amazonaws\.com(?:/(?P<path>.*))?$",
            re.I,
        ),
    ),
    # https://bucket.s3.region.amazonaws.com/path
    (
        "virtual-hosted",
        re.compile(
            rf"^https?://(?P<bucket>{_NAME})\.s3(?:[.\-](?P<region>[a-z0-9\-]+))?"
            r"\.amazonaws\.com(?:/(?P<path>.*))?$",
            re.I,
        ),
    ),
    # https://s3.region.amazonaws.com/bucket/path
    (
        "path",
        re.compile(
            r"^https?://s3(?:[.\-](?P<region>[a-z0-9\-]+))?\.amazonaws\.com/"
            rf"(?P<bucket>{_NAME})(?:/(?P<path>.*))?$",
            re.I,
        ),
    ),
]

_GCP_FORMS = [
    ("protocol", re.compile(rf"^gs://(?P<bucket>{_GCS_NAME})(?:/(?P<path>.*))?$", re.I)),
    (
        "api",
        re.compile(
            rf"^https?://storage\.googleapis\.com/(?P<bucket>{_GCS_NAME})(?:/(?P<path>.*))?$",
            re.I,
        ),
    ),
    (
        "download",
        re.compile(
            rf"^https?://storage\.cloud\.google\.com/(?P<bucket>{_GCS_NAME})(?:/(?P<path>.*))?$",
            re.I,
        ),
    ),
]

_AZURE_URL = re.compile(
    r"^https?://(?P<account>[a-z0-9]{3,24})\.blob\.core\."
    r"(?P<cloud>windows\.net|chinacloudapi\.cn|usgovcloudapi\.net)/"
    r"(?P<bucket>[a-z0-9][a-z0-9\-]{1,61}[a-z0-9])(?:/(?P<path>.*))?$",
    re.I,
)
_AZURE_REGIONS = {
    "windows.net": "global",
    "chinacloudapi.cn": "china",
    "usgovcloudapi.net": "usgov",
}

_BUCKET_NAME = re.compile(r"^[a-z0-9](?:[a-z0-9\-._]*[a-z0-9])?$")
_GCS_BUCKET_NAME = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9\-._]*[a-zA-Z0-9])?$")
_SUSPICIOUS = re.compile(r"javascript:|data:|vbscript:|<script|\.\./\.\./|%2e%2e%2f", re.I)


@dataclass(frozen=True)
class BucketInfo:
    """A parsed cloud storage URL."""

    provider: str
    bucket: str
    url: str
    region: Optional[str] = None
    path: str = ""
    account: Optional[str] = None
    style: str = ""

    @property
    def is_website(self) -> bool:
        return self.style == "website"


def normalize_bucket_url(url: str) -> str:
    """Trim, drop trailing slashes and add ``https://`` to bare hosts."""
    normalized = url.strip().rstrip("/")
    if not normalized:
        return ""
    if not re.match(r"^(?:https?|s3|gs)://", normalized, re.I):
        if "." in normalized or "/" in normalized:
            normalized = "https://" + normalized
    return normalized


def is_valid_bucket_name(name: str, provider: str) -> bool:
    """Check a bucket (or container) name against the provider's naming rules."""
    if not 3 <= len(name) <= 63:
        return False
    if provider == "gcp":
        return bool(_GCS_BUCKET_NAME.match(name))
    return bool(_BUCKET_NAME.match(name)) and ".." not in name


def _parse_aws(url: str) -> Optional[BucketInfo]:
    for style, pattern in _AWS_FORMS:
        match = pattern.match(url)
        if match:
            return BucketInfo(
                provider="aws",
                bucket=match.group("bucket"),
                url=url,
                region=match.groupdict().get("region") or "us-east-1",
                path=match.group("path") or "",
                style=style,
            )
    return None


def _parse_gcp(url: str) -> Optional[BucketInfo]:
    for style, pattern in _GCP_FORMS:
        match = pattern.match(url)
        if match:
            return BucketInfo(
                provider="gcp",
                bucket=match.group("bucket"),
                url=url,
                path=match.group("path") or "",
                style=style,
            )
    return None


def _parse_azure(url: str) -> Optional[BucketInfo]:
    match = _AZURE_URL.match(url)
    if not match:
        return None
    return BucketInfo(
        provider="azure",
        bucket=match.group("bucket"),
        url=url,
        region=_AZURE_REGIONS[match.group("cloud").lower()],
        path=match.group("path") or "",
        account=match.group("account"),
        style="blob",
    )


_PARSERS = {"aws": _parse_aws, "gcp": _parse_gcp, "azure": _parse_azure}


def parse_bucket_url(url: str, provider: Optional[str] = None) -> Optional[BucketInfo]:
    """
    Parse a cloud storage URL.

    Args:
        url: Detected bucket URL
        provider: ``aws``, ``gcp`` or ``azure``; all are tried when omitted

    Returns:
        BucketInfo, or None if the URL is not a well-formed bucket URL

    Raises:
        ValueError: unsupported provider
    """
    if provider is not None and provider.lower() not in _PARSERS:
        raise ValueError(f"Unsupported provider: {provider}. Supported: {', '.join(PROVIDERS)}")
    if not url or len(url) > MAX_URL_LENGTH:
        return None

    normalized = normalize_bucket_url(url)
    if not normalized or _SUSPICIOUS.search(normalized):
        return None
    if " " in normalized:
        return None

    providers = [provider.lower()] if provider else list(PROVIDERS)
    for name in providers:
        info = _PARSERS[name](normalized)
        if info is not None and is_valid_bucket_name(info.bucket, info.provider):
            return info
    return None


def cloud_bucket(value: str, context: ValidationContext, provider: Optional[str] = None) -> bool:
    """The value parses as a bucket URL with a valid bucket name."""
    return parse_bucket_url(value, provider) is not None
