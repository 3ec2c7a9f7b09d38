"""Tests for selector resolution and the selection gate."""

from __future__ import annotations

from pathlib import Path

import pytest

from notectl.domain.schema import Schema
from notectl.domain.where import EXPRESSION_FIELD
from notectl.services.targeting import (
    NO_TARGETING_MESSAGE,
    SelectorSet,
    has_any_targeting,
    matches_path_glob,
    resolve_targets,
    targeting_failure,
)
from tests.conftest import ALL_RECORDS, write_record


def _paths(selectors: SelectorSet, schema: Schema, root: Path) -> list[str]:
    result = resolve_targets(selectors, schema, root)
    assert result.ok, result.error
    return [r.path for r in result.files]


class TestSelectionGate:
    def test_empty_selector_set(self) -> None:
        assert has_any_targeting(SelectorSet()) is False
        assert has_any_targeting(SelectorSet(execute=True)) is False

    @pytest.mark.parametrize(
        "selectors",
        [
            SelectorSet(type_path="idea"),
            SelectorSet(path_glob="Ideas"),
            SelectorSet(where=("status = active",)),
            SelectorSet(record_id="alpha"),
            SelectorSet(body_query="retro"),
            SelectorSet(select_all=True),
        ],
    )
    def test_any_selector_counts(self, selectors: SelectorSet) -> None:
        assert has_any_targeting(selectors) is True

    def test_no_targeting_error(self, vault_root: Path, schema: Schema) -> None:
        result = resolve_targets(SelectorSet(execute=True), schema, vault_root)
        assert not result.ok
        assert result.kind == "targeting"
        assert result.error == NO_TARGETING_MESSAGE
        assert result.files == []

    def test_dry_run_is_default(self) -> None:
        assert SelectorSet().dry_run is True
        assert SelectorSet(execute=True).dry_run is False


class TestTypeSelector:
    def test_pooled_type(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(type_path="idea"), schema, vault_root) == [
            "Ideas/alpha.md",
            "Ideas/beta.md",
            "Ideas/loose.md",
        ]

    def test_parent_type_includes_subtypes(self, vault_root: Path, schema: Schema) -> None:
        result = resolve_targets(SelectorSet(type_path="objective"), schema, vault_root)
        assert [r.type_path for r in result.files] == [
            "objective/milestone",
            "objective/task",
            "objective/task",
        ]

    def test_leaf_type(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(type_path="/objective/task/"), schema, vault_root) == [
            "Objectives/Tasks/ship.md",
            "Objectives/Tasks/write-tests.md",
        ]

    def test_unknown_type_suggests(self, vault_root: Path, schema: Schema) -> None:
        result = resolve_targets(SelectorSet(type_path="task"), schema, vault_root)
        assert result.kind == "type"
        assert result.suggestions[0] == "objective/task"
        assert "Did you mean: objective/task" in (result.error or "")

    def test_record_of_other_type_in_folder_is_skipped(self, vault_root: Path, schema: Schema) -> None:
        write_record(vault_root, "Ideas/stray.md", "---\ntype: draft\n---\n")
        assert "Ideas/stray.md" not in _paths(SelectorSet(type_path="idea"), schema, vault_root)

    def test_unresolvable_record_stays_selected(self, vault_root: Path, schema: Schema) -> None:
        write_record(vault_root, "Ideas/untyped.md", "---\ntitle: Untyped\n---\n")
        assert "Ideas/untyped.md" in _paths(SelectorSet(type_path="idea"), schema, vault_root)


class TestOtherSelectors:
    def test_all(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(select_all=True), schema, vault_root) == ALL_RECORDS

    def test_all_skips_gitignored_records(self, vault_root: Path, schema: Schema) -> None:
        write_record(vault_root, ".gitignore", "Archive/\n")
        write_record(vault_root, "Archive/old.md", "---\ntype: idea\n---\n")
        assert _paths(SelectorSet(select_all=True), schema, vault_root) == ALL_RECORDS

    def test_path_character_class(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(path_glob="Ideas/[ab]*.md"), schema, vault_root) == [
            "Ideas/alpha.md",
            "Ideas/beta.md",
        ]

    def test_path_prefix(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(path_glob="Drafts/essay"), schema, vault_root) == [
            "Drafts/essay/essay.md",
            "Drafts/essay/idea/seed.md",
        ]

    def test_path_glob(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(path_glob="Objectives/**/*.md"), schema, vault_root) == [
            "Objectives/Milestones/v1.md",
            "Objectives/Tasks/ship.md",
            "Objectives/Tasks/write-tests.md",
        ]

    def test_id_matches_stem(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(record_id="v1"), schema, vault_root) == ["Objectives/Milestones/v1.md"]

    def test_id_matches_frontmatter(self, vault_root: Path, schema: Schema) -> None:
        write_record(vault_root, "Ideas/gamma.md", "---\ntype: idea\nid: ID-7\n---\n")
        assert _paths(SelectorSet(record_id="ID-7"), schema, vault_root) == ["Ideas/gamma.md"]

    def test_body_is_case_insensitive(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(body_query="RETRO"), schema, vault_root) == ["Ideas/alpha.md"]

    def test_selectors_combine(self, vault_root: Path, schema: Schema) -> None:
        selectors = SelectorSet(type_path="objective", where=("status = active",))
        assert _paths(selectors, schema, vault_root) == [
            "Objectives/Milestones/v1.md",
            "Objectives/Tasks/write-tests.md",
        ]

    def test_unparsable_record_is_a_warning(self, vault_root: Path, schema: Schema) -> None:
        write_record(vault_root, "Ideas/broken.md", "---\ntitle: [unclosed\n---\n")
        result = resolve_targets(SelectorSet(type_path="idea"), schema, vault_root)
        assert result.ok
        assert len(result.files) == 3
        assert result.warnings[0].startswith("Skipped Ideas/broken.md")


class TestWhereSelector:
    def test_filters(self, vault_root: Path, schema: Schema) -> None:
        selectors = SelectorSet(type_path="objective/task", where=("due < 2025-06-01",))
        assert _paths(selectors, schema, vault_root) == ["Objectives/Tasks/write-tests.md"]

    def test_multiple_where_are_anded(self, vault_root: Path, schema: Schema) -> None:
        selectors = SelectorSet(type_path="objective", where=("status = active", "priority = high"))
        assert _paths(selectors, schema, vault_root) == ["Objectives/Tasks/write-tests.md"]

    def test_unknown_field(self, vault_root: Path, schema: Schema) -> None:
        result = resolve_targets(
            SelectorSet(type_path="idea", where=("stauts = active",)), schema, vault_root
        )
        assert result.kind == "where"
        assert result.where_errors[0].field == "stauts"
        assert "status" in result.where_errors[0].suggestions

    def test_syntax_error(self, vault_root: Path, schema: Schema) -> None:
        result = resolve_targets(SelectorSet(where=("status",)), schema, vault_root)
        assert result.kind == "where"
        assert result.where_errors[0].field == EXPRESSION_FIELD

    def test_untyped_where_is_not_validated(self, vault_root: Path, schema: Schema) -> None:
        assert _paths(SelectorSet(where=("nothing = here",)), schema, vault_root) == []


class TestTargetingFailure:
    def test_codes(self, vault_root: Path, schema: Schema) -> None:
        cases = {
            "NO_TARGETING": SelectorSet(),
            "UNKNOWN_TYPE": SelectorSet(type_path="nope"),
            "WHERE_INVALID": SelectorSet(type_path="idea", where=("bogus = 1",)),
        }
        for code, selectors in cases.items():
            result = targeting_failure("bulk", resolve_targets(selectors, schema, vault_root))
            assert result.ok is False
            assert result.error is not None
            assert result.error.code == code

    def test_where_detail(self, vault_root: Path, schema: Schema) -> None:
        targeting = resolve_targets(SelectorSet(type_path="idea", where=("bogus = 1",)), schema, vault_root)
        result = targeting_failure("list", targeting)
        assert result.error is not None
        assert result.error.detail["errors"][0]["field"] == "bogus"


class TestPathGlob:
    @pytest.mark.parametrize(
        ("relative", "pattern", "expected"),
        [
            ("Ideas/a.md", "Ideas", True),
            ("Ideas/a.md", "Ideas/", True),
            ("Ideasx/a.md", "Ideas", False),
            ("Ideas/a.md", "Ideas/*.md", True),
            ("Ideas/sub/a.md", "Ideas/*.md", False),
            ("Ideas/sub/a.md", "Ideas/**/*.md", True),
            ("Ideas/a.md", "Ideas/**/*.md", True),
            ("Ideas/ab.md", "Ideas/a?.md", True),
            ("Ideas/a.md", "", True),
            ("Ideas/alpha.md", "Ideas/[ab]*.md", True),
            ("Ideas/gamma.md", "Ideas/[ab]*.md", False),
            ("Ideas/alpha.md", "/Ideas/*.md", True),
        ],
    )
    def test_matches(self, relative: str, pattern: str, expected: bool) -> None:
        assert matches_path_glob(relative, pattern) is expected

    def test_glob_is_anchored_at_vault_root(self) -> None:
        assert matches_path_glob("top.md", "*.md")
        assert not matches_path_glob("Ideas/a.md", "*.md")
