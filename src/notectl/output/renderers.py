"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console backed by StringIO; the caller
gets the rendered text from :func:`render_result`. Renderers are
dispatched by ``result.op``; unknown ops fall through to a generic
key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from notectl.output.console import create_console, get_output

if TYPE_CHECKING:
    from rich.console import Console

    from notectl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False, max_preview: int = 50) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal, which is
    the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose, max_preview=max_preview)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode: one record path per line."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    rows = result.data.get("items") or result.data.get("records")
    if rows and isinstance(rows, list):
        return "\n".join(str(row["path"]) for row in rows if isinstance(row, dict) and "path" in row)
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def format_value(value: Any) -> str:
    """Compact display form of a frontmatter value."""
    if value is None:
        return "(empty)"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    return str(value)


def _status_line(console: Console, result: ServiceResult, *, dry_run: bool = False) -> None:
    line = Text.assemble(("OK", "nc.ok"), (f"  {result.op}", "nc.op"))
    if dry_run:
        line.append("  (dry run)", style="nc.dry")
    console.print(line)


def _field(console: Console, key: str, value: Any) -> None:
    style = "nc.path" if key.endswith("path") else ""
    console.print(Text.assemble((f"  {key}: ", "nc.key"), (format_value(value), style)))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block including the telemetry span tree (verbose only)."""
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = Text.assemble(prefix, (f"{duration:>8.2f}ms", style), f"  {name}")
    annotations = span_data.get("annotations") or {}
    if annotations:
        line.append("  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")")
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _truncation_note(console: Console, shown: int, total: int) -> None:
    if total > shown:
        console.print(Text(f"  ... and {total - shown} more (use --json for all)", style="dim"))


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(Text.assemble(("ERROR", "nc.error"), (f"  {result.op}{code}", "nc.op")))
    for line in msg.splitlines():
        console.print(f"  {line}")

    if err and err.detail:
        violations = err.detail.get("violations")
        if violations:
            for violation in violations:
                console.print(f"    - {violation['message']}")
        if verbose:
            console.print(Text("  detail:", style="dim"))
            for k, v in err.detail.items():
                console.print(f"    {k}: {json.dumps(v, default=str)}")


# ── Query renderers ───────────────────────────────────────────────────


def _record_table(items: list[dict[str, Any]], columns: list[str]) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Path", style="nc.path", no_wrap=True)
    table.add_column("Type", style="nc.type")
    for col in columns:
        table.add_column(col)
    for item in items:
        fields = item.get("fields", {})
        row = [str(item.get("path", "")), str(item.get("type") or "?")]
        row.extend(format_value(fields.get(col)) for col in columns)
        table.add_row(*row)
    return table


def _requested_columns(result: ServiceResult) -> list[str]:
    requested = result.data.get("fields_requested")
    if requested:
        return list(requested)
    columns: list[str] = []
    for item in result.data.get("items", []):
        for key in item.get("fields", {}):
            if key not in columns:
                columns.append(key)
    return columns


def _render_records(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    """Render list and dashboard results as a table (or a path list)."""
    d = result.data
    items = d.get("items", [])
    if result.op == "dashboard":
        console.print(Text(f"Dashboard: {d.get('name')}", style="bold"))
    if d.get("output") == "list":
        for item in items:
            console.print(Text(f"  {item['path']}", style="nc.path"))
    elif items:
        columns = _requested_columns(result) if any(i.get("fields") for i in items) else []
        console.print(_record_table(items, columns))
    console.print(f"\n{d.get('count', len(items))} records")
    if verbose:
        _render_meta(console, result)


# ── Mutation renderers ────────────────────────────────────────────────


def _render_bulk(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    d = result.data
    dry_run = bool(d.get("dry_run"))
    _status_line(console, result, dry_run=dry_run)
    _field(console, "operations", ", ".join(d.get("operations", [])))
    _field(console, "matched", d.get("total_files", 0))
    _field(console, "affected", d.get("affected_files", 0))
    _field(console, "changes", d.get("change_count", 0))
    if d.get("backup_path"):
        _field(console, "backup_path", d["backup_path"])

    records = d.get("records", [])
    if records:
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Path", style="nc.path", no_wrap=True)
        table.add_column("Field")
        table.add_column("Before", style="nc.old")
        table.add_column("After", style="nc.new")
        shown = records[:max_preview]
        for record in shown:
            if record.get("error"):
                table.add_row(record["path"], "", Text(record["error"], style="nc.error"), "")
                continue
            for change in record.get("changes", []):
                field = change["field"]
                if change.get("new_field"):
                    field = f"{field} -> {change['new_field']}"
                after = "(deleted)" if change["operation"] == "delete" else format_value(change.get("new_value"))
                table.add_row(record["path"], field, format_value(change.get("old_value")), after)
        console.print()
        console.print(table)
        _truncation_note(console, len(shown), len(records))

    for error in d.get("errors", []):
        console.print(Text.assemble(("  error: ", "nc.error"), error))
    if dry_run and records:
        console.print(Text("\nNo files were modified. Re-run with --execute to apply.", style="nc.dry"))
    if verbose:
        _render_meta(console, result)


def _render_delete(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    d = result.data
    dry_run = bool(d.get("dry_run"))
    _status_line(console, result, dry_run=dry_run)
    _field(console, "count", d.get("count", 0))
    if d.get("backup_path"):
        _field(console, "backup_path", d["backup_path"])
    records = d.get("records", [])
    shown = records[:max_preview]
    for record in shown:
        marker = "would delete" if dry_run else "deleted"
        if record.get("error"):
            console.print(Text.assemble(("  failed ", "nc.error"), f"{record['path']}: {record['error']}"))
            continue
        console.print(Text.assemble(f"  {marker} ", (record["path"], "nc.path")))
        for child in record.get("orphaned_children", []):
            console.print(Text(f"      leaves owned record {child}", style="nc.warning"))
    _truncation_note(console, len(shown), len(records))
    if dry_run and records:
        console.print(Text("\nNo files were deleted. Re-run with --execute to apply.", style="nc.dry"))
    if verbose:
        _render_meta(console, result)


# ── Ownership renderers ───────────────────────────────────────────────


def _render_ownership_index(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "owned_records", d.get("count", 0))
    owned = {item["record_path"]: item for item in d.get("owned", [])}
    for owner, children in d.get("owners", {}).items():
        tree = Tree(Text(owner, style="nc.path"))
        for child in children:
            info = owned.get(child, {})
            label = Text(child)
            if info.get("field_name"):
                label.append(f"  via {info['field_name']}", style="nc.key")
            tree.add(label)
        console.print(tree)
    if verbose:
        _render_meta(console, result)


def _render_ownership_check(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "path", d.get("path"))
    _field(console, "valid", d.get("valid"))
    if d.get("owned_by"):
        _field(console, "owned_by", d["owned_by"])
    if verbose:
        _render_meta(console, result)


# ── Schema renderers ──────────────────────────────────────────────────


def _add_type_nodes(parent: Tree, nodes: list[dict[str, Any]]) -> None:
    for node in nodes:
        label = Text(node["name"], style="nc.type")
        if node.get("output_dir"):
            label.append(f"  {node['output_dir']} ({node['dir_mode']})", style="nc.key")
        if node.get("owns"):
            label.append(f"  owns {', '.join(node['owns'])}", style="nc.key")
        branch = parent.add(label)
        _add_type_nodes(branch, node.get("subtypes", []))


def _render_schema_show(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    d = result.data
    detail = d.get("type")
    if detail is None:
        tree = Tree(Text(f"schema v{d.get('schema_version', '?')}", style="bold"))
        _add_type_nodes(tree, d.get("types", []))
        console.print(tree)
        if d.get("shared_fields"):
            console.print(f"\nshared fields: {', '.join(d['shared_fields'])}")
        return

    console.print(Text(detail["path"], style="bold"))
    _field(console, "discriminator", detail.get("discriminator"))
    _field(console, "lineage", " > ".join(detail.get("lineage", [])))
    if detail.get("subtypes"):
        _field(console, "subtypes", ", ".join(detail["subtypes"]))
    if detail.get("output_dir"):
        _field(console, "output_dir", f"{detail['output_dir']} ({detail['dir_mode']})")
    for owned_by in detail.get("owned_by", []):
        _field(console, "owned_by", f"{owned_by['owner_type']}.{owned_by['field']}")

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Field")
    table.add_column("Prompt")
    table.add_column("Required")
    table.add_column("Value / default")
    table.add_column("Choices")
    fields = detail.get("fields", {})
    for name in detail.get("field_order", list(fields)):
        field_info = fields[name]
        fixed = field_info.get("value", field_info.get("default"))
        table.add_row(
            name,
            field_info["prompt"],
            "yes" if field_info.get("required") else "",
            format_value(fixed) if fixed is not None else "",
            ", ".join(field_info.get("choices") or []),
        )
    console.print(table)


def _render_schema_validate(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "schema_file", d.get("schema_file"))
    _field(console, "types", d.get("type_count", 0))
    _field(console, "records_checked", d.get("records_checked", 0))
    issues = d.get("issues", [])
    if not issues:
        console.print(Text("  no issues found", style="nc.ok"))
    shown = issues[:max_preview]
    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in shown:
        by_category.setdefault(str(issue.get("category", "other")), []).append(issue)
    for category, grouped in by_category.items():
        console.print(Text(f"  {category}", style="bold"))
        for issue in grouped:
            style = "nc.error" if issue["severity"] == "error" else "nc.warning"
            console.print(
                Text.assemble((f"    {issue['severity']:<8}", style), f"{issue['path']}: {issue['message']}")
            )
            if verbose and issue.get("suggestion"):
                console.print(Text(f"      did you mean: {issue['suggestion']}", style="nc.key"))
    _truncation_note(console, len(shown), len(issues))
    if verbose:
        _render_meta(console, result)


def _render_schema_status(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    d = result.data
    _status_line(console, result)
    if not d.get("has_snapshot"):
        console.print("  no snapshot recorded; run 'notectl schema snapshot'")
        return
    _field(console, "applied_version", d.get("from_version"))
    _field(console, "current_version", d.get("to_version"))
    _field(console, "snapshot_at", d.get("snapshot_at"))
    if d.get("pending"):
        console.print(Text("  schema changed since last snapshot", style="nc.warning"))


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(
    result: ServiceResult,
    console: Console,
    *,
    verbose: bool = False,
    max_preview: int = 50,
) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, json.dumps(value, separators=(",", ":"), default=str))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "list": _render_records,
    "dashboard": _render_records,
    "bulk": _render_bulk,
    "delete": _render_delete,
    "ownership_show": _render_ownership_index,
    "ownership_check": _render_ownership_check,
    "ownership_can_own": _render_ownership_check,
    "schema_show": _render_schema_show,
    "schema_validate": _render_schema_validate,
    "schema_status": _render_schema_status,
    "schema_snapshot": _render_generic,
}
