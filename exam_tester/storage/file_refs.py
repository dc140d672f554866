"""
Stored file references.

A reference column holds either an external URL (files uploaded before blob
storage existed) or a blob store key. The string is classified once, here,
into ExternalUrl or BlobKey; callers branch on the type instead of
re-inspecting prefixes.
"""
import re
from dataclasses import dataclass
from typing import Union

# <scheme>:// as in RFC 3986 section 3.1
URL_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")

# uuid4().hex
BLOB_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}$")


@dataclass(frozen=True)
class ExternalUrl:
    url: str

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class BlobKey:
    key: str

    @property
    def is_well_formed(self) -> bool:
        return is_valid_blob_key(self.key)

    def __str__(self) -> str:
        return self.key


FileRef = Union[ExternalUrl, BlobKey]


def is_external_url(raw: str) -> bool:
    return bool(raw) and URL_SCHEME_PATTERN.match(raw) is not None


def is_valid_blob_key(raw: str) -> bool:
    return bool(raw) and BLOB_KEY_PATTERN.match(raw) is not None


def parse_file_ref(raw: str) -> FileRef:
    """Classify a stored reference string."""
    raw = (raw or "").strip()
    if is_external_url(raw):
        return ExternalUrl(raw)
    return BlobKey(raw)
