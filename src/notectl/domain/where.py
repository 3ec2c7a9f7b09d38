"""Schema-aware validation of ``--where`` expressions.

When the target type is known, every attribute an expression mentions
must be a field of that type or one of its descendants; ``file.*``
attributes are always allowed. Without a type, validation is a no-op.
"""

from __future__ import annotations

import difflib
from collections.abc import Sequence
from dataclasses import dataclass, field

from notectl.domain.errors import ExpressionSyntaxError, SchemaResolutionError
from notectl.domain.expression import FILE_FIELDS, FILE_PREFIX, referenced_fields
from notectl.domain.resolver import TypeResolver
from notectl.domain.schema import Schema

EXPRESSION_FIELD = "<expression>"


@dataclass(frozen=True)
class WhereError:
    field: str
    message: str
    expression: str | None = None
    suggestions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "field": self.field,
            "message": self.message,
            "expression": self.expression,
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class WhereValidation:
    ok: bool
    errors: list[WhereError] = field(default_factory=list)


def validate(
    expressions: Sequence[str],
    schema: Schema,
    type_path: str | None = None,
) -> WhereValidation:
    """Check *expressions* against the fields of *type_path*."""
    if not type_path or not expressions:
        return WhereValidation(ok=True)

    resolver = TypeResolver(schema)
    if resolver.definition(type_path) is None:
        error = WhereError(
            field=type_path,
            message=f"Unknown type '{type_path}'",
            suggestions=tuple(resolver.close_type_matches(type_path)),
        )
        return WhereValidation(ok=False, errors=[error])

    try:
        known = resolver.all_fields_for(type_path)
    except SchemaResolutionError as exc:
        return WhereValidation(ok=False, errors=[WhereError(field=type_path, message=str(exc))])

    errors: list[WhereError] = []
    for text in expressions:
        try:
            names = referenced_fields(text)
        except ExpressionSyntaxError as exc:
            errors.append(WhereError(field=EXPRESSION_FIELD, message=str(exc), expression=text))
            continue
        for name in names:
            if _is_file_field(name) or name in known:
                continue
            errors.append(
                WhereError(
                    field=name,
                    message=f"Unknown field '{name}' for type '{type_path}'",
                    expression=text,
                    suggestions=tuple(difflib.get_close_matches(name, known, n=3, cutoff=0.6)),
                )
            )
    return WhereValidation(ok=not errors, errors=errors)


def _is_file_field(name: str) -> bool:
    return name.startswith(FILE_PREFIX) and name[len(FILE_PREFIX) :] in FILE_FIELDS


def format_errors(errors: Sequence[WhereError]) -> str:
    """Render errors grouped by field, fields sorted, one block per field."""
    grouped: dict[str, list[WhereError]] = {}
    for error in errors:
        grouped.setdefault(error.field, []).append(error)

    lines: list[str] = []
    for name in sorted(grouped):
        bucket = grouped[name]
        messages = list(dict.fromkeys(e.message for e in bucket))
        lines.extend(messages)
        suggestions = list(dict.fromkeys(s for e in bucket for s in e.suggestions))
        if suggestions:
            lines.append(f"  Did you mean: {', '.join(suggestions)}?")
    return "\n".join(lines)
