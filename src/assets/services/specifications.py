"""Validation of asset specifications against their type's schema.

Specification values are limited to strings, numbers and booleans.
Fields declared in the AssetType schema are coerced to their declared
type; undeclared keys are kept as long as their value is a scalar.
"""

import datetime
import re

from django.utils.dateparse import parse_date

from ..exceptions import ValidationError

TRUE_VALUES = {"true", "yes", "y", "1"}
FALSE_VALUES = {"false", "no", "n", "0"}
INTEGER_RE = re.compile(r"^[+-]?\d+$")


def _coerce_number(name, value):
    if isinstance(value, bool):
        raise ValidationError(f"'{name}' must be a number.", field=name)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip().replace(",", "")
    if INTEGER_RE.match(text):
        return int(text)
    try:
        return float(text)
    except ValueError:
        raise ValidationError(
            f"'{name}' must be a number, got '{value}'.", field=name
        )


def _coerce_boolean(name, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationError(
        f"'{name}' must be yes/no, got '{value}'.", field=name
    )


def _coerce_date(name, value):
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    try:
        parsed = parse_date(str(value).strip())
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(
            f"'{name}' must be a date (YYYY-MM-DD), got '{value}'.",
            field=name,
        )
    return parsed.isoformat()


def _coerce_select(name, value, options):
    text = str(value).strip()
    for option in options or []:
        if str(option).casefold() == text.casefold():
            return option
    raise ValidationError(
        f"'{name}' must be one of: {', '.join(map(str, options or []))}.",
        field=name,
    )


def coerce_value(field: dict, value):
    """Coerce ``value`` to the type declared by schema ``field``."""
    name = str(field.get("name"))
    ftype = field.get("type", "text")
    if ftype == "number":
        return _coerce_number(name, value)
    if ftype == "boolean":
        return _coerce_boolean(name, value)
    if ftype == "date":
        return _coerce_date(name, value)
    if ftype == "select":
        return _coerce_select(name, value, field.get("options"))
    return str(value).strip()


def _is_missing(value):
    return value is None or (isinstance(value, str) and not value.strip())


def clean_specifications(asset_type, raw, require_all: bool = True) -> dict:
    """Return ``raw`` validated and coerced against ``asset_type.schema``.

    Keys are canonicalised to the schema's spelling. With
    ``require_all`` every ``required`` schema field must be present.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValidationError(
            "Specifications must be an object.", field="specifications"
        )

    by_name = {
        str(f["name"]).casefold(): f
        for f in asset_type.schema or []
        if isinstance(f, dict) and f.get("name")
    }
    cleaned = {}
    for key, value in raw.items():
        if _is_missing(value):
            continue
        field = by_name.get(str(key).strip().casefold())
        if field is not None:
            cleaned[str(field["name"])] = coerce_value(field, value)
        elif isinstance(value, (str, int, float, bool)):
            cleaned[str(key).strip()] = (
                value.strip() if isinstance(value, str) else value
            )
        else:
            raise ValidationError(
                f"'{key}' must be text, a number or yes/no.", field=str(key)
            )

    if require_all:
        for field in by_name.values():
            if field.get("required") and str(field["name"]) not in cleaned:
                raise ValidationError(
                    f"'{field['name']}' is required for "
                    f"{asset_type.name} assets.",
                    field=str(field["name"]),
                )
    return cleaned


def specifications_from_row(row: dict, asset_type, explicit=None) -> dict:
    """Gather specification values for ``asset_type`` from a loose row.

    Values come from the explicit ``specifications`` mapping plus any
    top-level keys named like a schema field (case-insensitive).
    """
    specs = dict(explicit or {})
    names = {
        str(f["name"]).casefold(): str(f["name"])
        for f in asset_type.schema or []
        if isinstance(f, dict) and f.get("name")
    }
    taken = {str(k).strip().casefold() for k in specs}
    for key, value in row.items():
        folded = str(key).strip().casefold()
        if folded in names and folded not in taken and not _is_missing(value):
            specs[names[folded]] = value
            taken.add(folded)
    return specs
