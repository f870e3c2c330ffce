"""Tests for ListObjectsV2 transcoding."""

from datetime import datetime

from s3_gateway.listing import (
    build_access_url,
    iter_tags,
    parse_listing,
    transcode_listing,
)


def proxy_url(key: str) -> str:
    return f"/api/file/{key}"


class TestTokenizer:
    """Test the closed-tag-set scanner."""

    def test_only_known_tags_are_reported(self):
        xml = "<Contents><Key>a</Key><ETag>x</ETag><Owner><ID>1</ID></Owner></Contents>"

        tags = [(name, closing) for name, closing, _, _ in iter_tags(xml)]

        assert tags == [
            ("Contents", False),
            ("Key", False),
            ("Key", True),
            ("Contents", True),
        ]

    def test_tags_with_attributes_are_ignored(self):
        """Test that the scanner only matches the attribute-free form."""
        assert list(iter_tags('<Key id="1">a</Key>')) == [("Key", True, 13, 19)]


class TestParseListing:
    """Test raw row extraction."""

    def test_top_level_prefix_is_not_a_folder(self, listing_xml):
        listing = parse_listing(listing_xml(prefix="docs/").decode())

        assert listing.folders == []
        assert listing.objects == []

    def test_pagination_markers(self, listing_xml):
        listing = parse_listing(listing_xml(truncated=True, token="1ueGcxLPRx1Tr/XYExHnhbYLgveDs2J/wm36Hy4vbOwM=").decode())

        assert listing.is_truncated is True
        assert listing.next_continuation_token == "1ueGcxLPRx1Tr/XYExHnhbYLgveDs2J/wm36Hy4vbOwM="

    def test_not_truncated(self, listing_xml):
        listing = parse_listing(listing_xml().decode())

        assert listing.is_truncated is False
        assert listing.next_continuation_token is None

    def test_empty_common_prefix_skipped(self):
        listing = parse_listing("<CommonPrefixes><Prefix></Prefix></CommonPrefixes>")

        assert listing.folders == []

    def test_entities_unescaped(self):
        xml = (
            "<Contents><Key>tom &amp; jerry/&lt;1&gt; &quot;x&quot; it&apos;s.txt</Key></Contents>"
            "<CommonPrefixes><Prefix>r&amp;d/</Prefix></CommonPrefixes>"
        )

        listing = parse_listing(xml)

        assert listing.objects[0]["Key"] == "tom & jerry/<1> \"x\" it's.txt"
        assert listing.folders == ["r&d/"]

    def test_multiline_document(self):
        """Test pretty-printed responses as some S3-compatible stores send them."""
        xml = """<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult>
  <Contents>
    <Key>notes.txt</Key>
    <Size>5</Size>
  </Contents>
</ListBucketResult>
"""
        listing = parse_listing(xml)

        assert listing.objects == [{"Key": "notes.txt", "Size": "5"}]


class TestTranscodeListing:
    """Test conversion into FileEntry sequences."""

    def test_folder_and_file(self, listing_xml):
        """Test one common prefix and one object, folder first."""
        xml = listing_xml(
            folders=["images/"],
            objects=[("images/cat.png", 1024, "2024-01-01T00:00:00Z")],
        ).decode()

        entries = transcode_listing(xml, "", proxy_url)

        assert [e.model_dump(by_alias=True, exclude_none=True) for e in entries] == [
            {"key": "images/", "isFolder": True, "size": 0, "uploaded": "-"},
            {
                "key": "images/cat.png",
                "isFolder": False,
                "size": 1024,
                "uploaded": "2024-01-01T00:00:00Z",
                "url": "/api/file/images/cat.png",
            },
        ]

    def test_empty_listing(self, listing_xml):
        assert transcode_listing(listing_xml(prefix="none/").decode(), "none/", proxy_url) == []

    def test_prefix_marker_excluded(self, listing_xml):
        """Test that the content block whose key equals the prefix is dropped."""
        xml = listing_xml(
            prefix="docs/",
            objects=[("docs/", 0, "2024-01-01T00:00:00Z"), ("docs/a.txt", 3, "2024-01-01T00:00:00Z")],
        ).decode()

        entries = transcode_listing(xml, "docs/", proxy_url)

        assert [e.key for e in entries] == ["docs/a.txt"]

    def test_marker_kept_when_prefix_differs(self, listing_xml):
        """Test that only an exact prefix match is suppressed."""
        xml = listing_xml(prefix="docs", objects=[("docs/", 0, "2024-01-01T00:00:00Z")]).decode()

        entries = transcode_listing(xml, "docs", proxy_url)

        assert [e.key for e in entries] == ["docs/"]

    def test_folders_precede_files_in_backend_order(self, listing_xml):
        """Test grouping without re-sorting."""
        xml = listing_xml(
            folders=["zeta/", "alpha/"],
            objects=[
                ("z.txt", 1, "2024-01-01T00:00:00Z"),
                ("a.txt", 1, "2024-01-01T00:00:00Z"),
            ],
        ).decode()

        entries = transcode_listing(xml, "", proxy_url)

        assert [e.key for e in entries] == ["zeta/", "alpha/", "z.txt", "a.txt"]
        assert [e.is_folder for e in entries] == [True, True, False, False]

    def test_missing_size_defaults_to_zero(self):
        xml = "<Contents><Key>a.txt</Key><LastModified>2024-01-01T00:00:00Z</LastModified></Contents>"

        entries = transcode_listing(xml, "", proxy_url)

        assert entries[0].size == 0

    def test_malformed_size_defaults_to_zero(self):
        xml = "<Contents><Key>a.txt</Key><Size>lots</Size></Contents>"

        entries = transcode_listing(xml, "", proxy_url)

        assert entries[0].size == 0

    def test_missing_last_modified_defaults_to_now(self):
        xml = "<Contents><Key>a.txt</Key><Size>4</Size></Contents>"

        entries = transcode_listing(xml, "", proxy_url)

        uploaded = entries[0].uploaded
        assert uploaded.endswith("Z")
        parsed = datetime.fromisoformat(uploaded.replace("Z", "+00:00"))
        assert parsed.tzinfo is not None

    def test_content_without_key_skipped(self):
        xml = "<Contents><Size>4</Size></Contents>"

        assert transcode_listing(xml, "", proxy_url) == []

    def test_url_builder_receives_raw_key(self):
        seen = []

        def url_for(key):
            seen.append(key)
            return key

        transcode_listing("<Contents><Key>a b/c&amp;d.txt</Key></Contents>", "", url_for)

        assert seen == ["a b/c&d.txt"]

    def test_truncated_listing_still_returned(self, listing_xml):
        xml = listing_xml(objects=[("a.txt", 1, "2024-01-01T00:00:00Z")], truncated=True, token="t").decode()

        entries = transcode_listing(xml, "", proxy_url)

        assert [e.key for e in entries] == ["a.txt"]


class TestBuildAccessUrl:
    """Test file access URL selection."""

    def test_public_domain(self):
        assert build_access_url("a/b.png", "https://cdn.example.com", "/api/file") == "https://cdn.example.com/a/b.png"

    def test_proxy_fallback(self):
        assert build_access_url("a/b.png", None, "/api/file") == "/api/file/a/b.png"
