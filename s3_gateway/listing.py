"""ListObjectsV2 response transcoding.

The backend answers a delimiter listing with a flat XML document::

    <ListBucketResult>
      <Prefix>docs/</Prefix>
      <IsTruncated>false</IsTruncated>
      <Contents><Key>docs/a.pdf</Key><LastModified>...</LastModified><Size>12</Size>...</Contents>
      <CommonPrefixes><Prefix>docs/old/</Prefix></CommonPrefixes>
    </ListBucketResult>

Rather than pulling in an XML parser, a small tokenizer scans for a closed
set of tag names and slices out their inner text. This is only valid for the
shape above: tags without attributes, and no element of the set nested in
another element of the same name. The list-objects API never produces
anything else for these tags. Unknown tags (Owner, ETag, StorageClass, ...)
are skipped.
"""

import html
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator

import structlog

from s3_gateway.models.responses import FileEntry

logger = structlog.get_logger(__name__)

# Container blocks
COMMON_PREFIXES = "CommonPrefixes"
CONTENTS = "Contents"

# Leaf fields
PREFIX = "Prefix"
KEY = "Key"
SIZE = "Size"
LAST_MODIFIED = "LastModified"
IS_TRUNCATED = "IsTruncated"
NEXT_CONTINUATION_TOKEN = "NextContinuationToken"

BLOCK_TAGS = frozenset({COMMON_PREFIXES, CONTENTS})
FIELD_TAGS = frozenset({PREFIX, KEY, SIZE, LAST_MODIFIED, IS_TRUNCATED, NEXT_CONTINUATION_TOKEN})

_TAG_RE = re.compile(
    r"<(/?)(" + "|".join(sorted(BLOCK_TAGS | FIELD_TAGS)) + r")>"
)

FOLDER_UPLOADED = "-"


@dataclass
class Listing:
    """Raw rows extracted from one listing page."""

    folders: list[str] = field(default_factory=list)
    objects: list[dict[str, str]] = field(default_factory=list)
    is_truncated: bool = False
    next_continuation_token: str | None = None


def iter_tags(xml: str) -> Iterator[tuple[str, bool, int, int]]:
    """Yield ``(name, is_closing, start, end)`` for every known tag in order."""
    for match in _TAG_RE.finditer(xml):
        yield match.group(2), match.group(1) == "/", match.start(), match.end()


def parse_listing(xml: str) -> Listing:
    """Extract folder prefixes, object rows and pagination markers."""
    listing = Listing()
    top_level: dict[str, str] = {}
    block: dict[str, str] | None = None
    block_name: str | None = None
    open_fields: dict[str, int] = {}

    for name, closing, start, end in iter_tags(xml):
        if name in BLOCK_TAGS:
            if not closing:
                block, block_name = {}, name
                open_fields.clear()
            elif block is not None and block_name == name:
                if name == COMMON_PREFIXES:
                    if block.get(PREFIX):
                        listing.folders.append(block[PREFIX])
                else:
                    listing.objects.append(block)
                block, block_name = None, None
            continue

        if not closing:
            open_fields[name] = end
            continue

        text_start = open_fields.pop(name, None)
        if text_start is None:
            # Closing tag without an opening one; not a shape the API emits
            continue
        text = html.unescape(xml[text_start:start])
        if block is not None:
            block[name] = text
        else:
            top_level[name] = text

    listing.is_truncated = top_level.get(IS_TRUNCATED, "").strip().lower() == "true"
    listing.next_continuation_token = top_level.get(NEXT_CONTINUATION_TOKEN) or None
    return listing


def _parse_size(raw: str | None) -> int:
    if raw is None:
        return 0
    try:
        return int(raw.strip())
    except ValueError:
        return 0


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_access_url(key: str, public_domain: str | None, proxy_base: str) -> str:
    """Return the public CDN URL for ``key`` if a domain is set, else the proxy URL."""
    if public_domain:
        return f"{public_domain}/{key}"
    return f"{proxy_base}/{key}"


def transcode_listing(
    xml: str,
    prefix: str,
    url_for: Callable[[str], str],
) -> list[FileEntry]:
    """
    Turn a ListObjectsV2 body into folder entries followed by file entries.

    Args:
        xml: Raw response body of the listing request
        prefix: The prefix the listing was queried with
        url_for: Builds the access URL of a file from its raw key

    Returns:
        Folders (in backend order) followed by files (in backend order).
        The zero-byte marker object whose key equals ``prefix`` is dropped.
    """
    listing = parse_listing(xml)

    folders = [
        FileEntry(key=folder, is_folder=True, size=0, uploaded=FOLDER_UPLOADED)
        for folder in listing.folders
    ]

    files: list[FileEntry] = []
    for row in listing.objects:
        key = row.get(KEY)
        if not key or key == prefix:
            continue
        uploaded = row.get(LAST_MODIFIED)
        if not uploaded:
            logger.debug("listing_missing_last_modified", key=key)
            uploaded = _utc_now_iso()
        files.append(
            FileEntry(
                key=key,
                is_folder=False,
                uploaded=uploaded,
                size=_parse_size(row.get(SIZE)),
                url=url_for(key),
            )
        )

    if listing.is_truncated:
        logger.warning(
            "listing_truncated",
            prefix=prefix,
            returned=len(folders) + len(files),
            next_continuation_token=listing.next_continuation_token,
        )

    return folders + files
