"""Tests for frontmatter parsing and rendering."""

from __future__ import annotations

import datetime as dt

import pytest

from notectl.domain.content import (
    order_frontmatter,
    parse_frontmatter,
    parse_record,
    render_frontmatter,
)
from notectl.domain.errors import FrontmatterError


class TestParse:
    def test_basic(self) -> None:
        fm, body = parse_frontmatter("---\ntype: idea\ntitle: Alpha\n---\nBody text.\n")
        assert fm == {"type": "idea", "title": "Alpha"}
        assert body == "Body text.\n"

    def test_crlf(self) -> None:
        fm, body = parse_frontmatter("---\r\ntype: idea\r\n---\r\nBody\r\n")
        assert fm == {"type": "idea"}
        assert body == "Body\n"

    def test_typed_scalars(self) -> None:
        fm, _body = parse_frontmatter("---\ndue: 2025-03-01\ndone: true\ncount: 3\ntags: [a, b]\n---\n")
        assert fm["due"] == dt.date(2025, 3, 1)
        assert fm["done"] is True
        assert fm["count"] == 3
        assert list(fm["tags"]) == ["a", "b"]

    def test_no_frontmatter(self) -> None:
        record = parse_record("Just a body.\n")
        assert record.frontmatter == {}
        assert record.body == "Just a body.\n"
        assert record.has_frontmatter is False

    def test_unclosed_block_is_body(self) -> None:
        record = parse_record("---\ntype: idea\n")
        assert record.has_frontmatter is False

    def test_empty_block(self) -> None:
        record = parse_record("---\n---\nBody\n")
        assert record.frontmatter == {}
        assert record.has_frontmatter is True

    def test_invalid_yaml_raises(self) -> None:
        with pytest.raises(FrontmatterError, match="Invalid YAML"):
            parse_frontmatter("---\ntitle: [unclosed\n---\n")

    def test_non_mapping_raises(self) -> None:
        with pytest.raises(FrontmatterError, match="must be a mapping"):
            parse_frontmatter("---\n- a\n- b\n---\n")


class TestRender:
    def test_round_trip_keeps_body_and_order(self) -> None:
        text = "---\ntype: idea\ntitle: Alpha\nstatus: raw\n---\n\nBody with [[link]].\n"
        fm, body = parse_frontmatter(text)
        assert render_frontmatter(fm, body) == text

    def test_quotes_preserved(self) -> None:
        text = '---\nideas: ["[[seed]]"]\n---\nBody\n'
        fm, body = parse_frontmatter(text)
        rendered = render_frontmatter(fm, body)
        assert '"[[seed]]"' in rendered

    def test_order(self) -> None:
        rendered = render_frontmatter({"b": 1, "a": 2, "type": "idea"}, "", order=["type", "a"])
        assert rendered == "---\ntype: idea\na: 2\nb: 1\n---\n"

    def test_empty_frontmatter(self) -> None:
        assert render_frontmatter({}, "Body\n") == "---\n---\nBody\n"


class TestOrderFrontmatter:
    def test_ordered_keys_first(self) -> None:
        result = order_frontmatter({"c": 1, "a": 2, "b": 3}, ["b", "missing"])
        assert list(result) == ["b", "c", "a"]

    def test_without_order(self) -> None:
        assert list(order_frontmatter({"c": 1, "a": 2})) == ["c", "a"]
