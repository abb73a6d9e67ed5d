"""
Unit tests — properties.py

Covers the Java properties syntax read from and written to bld.cache.
"""
from __future__ import annotations

import pytest

from bldkit import properties


class TestLoads:

    def test_separators(self):
        text = "a=1\nb: 2\nc 3\nd\t=\t4\n"
        assert properties.loads(text) == {"a": "1", "b": "2", "c": "3", "d": "4"}

    def test_comments_and_blank_lines_skipped(self):
        text = "#Mon Jan 01 00:00:00 UTC 2024\n! bang comment\n\n  key=value\n"
        assert properties.loads(text) == {"key": "value"}

    def test_escaped_newlines_in_value(self):
        text = "bld.extensions.local=\\n1700000000000\\:/tmp/a.jar\\n1700000000001\\:/tmp/b.jar\n"
        assert properties.loads(text) == {
            "bld.extensions.local": "\n1700000000000:/tmp/a.jar\n1700000000001:/tmp/b.jar"
        }

    def test_line_continuation(self):
        text = "key=first \\\n    second\n"
        assert properties.loads(text) == {"key": "first second"}

    def test_unicode_escape(self):
        assert properties.loads("name=caf\\u00e9\n") == {"name": "café"}

    def test_malformed_unicode_escape_raises(self):
        with pytest.raises(ValueError):
            properties.loads("name=\\u00\n")

    def test_empty_value(self):
        assert properties.loads("empty=\n") == {"empty": ""}


class TestDumps:

    def test_escapes_special_characters(self):
        text = properties.dumps({"key with space": "a=b:c\n#d"})
        assert text == "key\\ with\\ space=a\\=b\\:c\\n\\#d\n"

    def test_non_ascii_written_as_unicode_escape(self):
        assert properties.dumps({"k": "café"}) == "k=caf\\u00E9\n"

    def test_comment_header(self):
        assert properties.dumps({"k": "v"}, comment="generated").startswith("#generated\n")

    def test_preserves_mapping_order(self):
        text = properties.dumps({"b": "1", "a": "2"})
        assert text.splitlines() == ["b=1", "a=2"]

    def test_loads_reads_back_dumps(self):
        record = {
            "bld.extensions.hash": "0123abcd",
            "bld.extensions.local": "1:/tmp/a b.jar\n2:C:\\libs\\c.jar",
            "odd": " leading space and 😀",
        }
        assert properties.loads(properties.dumps(record)) == record
