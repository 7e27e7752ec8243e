"""
Typed values for tenant-defined product attributes.

Every stored attribute is a tagged value: {"type": <field type>, "value": ...}.
Input is coerced against its FieldDefinition at write time; reads only ever
unwrap the stored value. Each field type has exactly one coercer in
_COERCERS; a stored definition with a type outside FieldType (legacy data)
is handled as plain text.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from ..errors import ValidationError
from ..validation import is_empty, parse_decimal, parse_int


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    MULTISELECT = "multiselect"
    DATE = "date"
    BOOLEAN = "boolean"


OPTION_TYPES = {FieldType.SELECT, FieldType.MULTISELECT}
RULE_KEYS_BY_TYPE = {
    FieldType.NUMBER: {"min", "max"},
    FieldType.TEXT: {"min_length", "max_length"},
}
MAX_OPTIONS = 200
DATE_FORMAT = "%m/%d/%Y"

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off"}
_DATE_INPUT_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")


def field_type_of(raw: str | None) -> FieldType | None:
    """FieldType for a stored type tag, or None for unknown legacy tags."""
    try:
        return FieldType(raw)
    except ValueError:
        return None


def parse_field_type(raw: Any) -> FieldType:
    """Strict variant for new definitions: unknown types are rejected."""
    if isinstance(raw, str):
        ftype = field_type_of(raw.strip().lower())
        if ftype is not None:
            return ftype
    allowed = ", ".join(t.value for t in FieldType)
    raise ValidationError(f"field_type must be one of: {allowed}")


def default_for_type(field_type: str | None) -> Any:
    """Value a form shows for a field the product has no value for."""
    ftype = field_type_of(field_type)
    if ftype is FieldType.BOOLEAN:
        return False
    if ftype is FieldType.NUMBER:
        return None
    if ftype is FieldType.MULTISELECT:
        return []
    return ""


def has_value(value: Any) -> bool:
    """False/empty values do not count as data for table visibility."""
    if value is False:
        return False
    return not is_empty(value)


# =============================================================================
# DEFINITION RULES
# =============================================================================

def _json_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


def clean_options(field_type: FieldType, options: Any) -> list[str]:
    if options is None:
        return []
    if not isinstance(options, (list, tuple)):
        raise ValidationError("options must be a list of strings")
    if options and field_type not in OPTION_TYPES:
        raise ValidationError("options are only allowed for select and multiselect fields")
    if len(options) > MAX_OPTIONS:
        raise ValidationError(f"at most {MAX_OPTIONS} options are allowed")

    cleaned: list[str] = []
    for option in options:
        if not isinstance(option, str) or not option.strip():
            raise ValidationError("options must be non-empty strings")
        option = option.strip()
        if option in cleaned:
            raise ValidationError(f"duplicate option: {option}")
        cleaned.append(option)
    return cleaned


def clean_validation_rules(field_type: FieldType, rules: Any) -> dict:
    if rules is None:
        return {}
    if not isinstance(rules, dict):
        raise ValidationError("validation_rules must be an object")

    allowed = RULE_KEYS_BY_TYPE.get(field_type, set())
    cleaned: dict = {}
    for key, raw in rules.items():
        if key not in allowed:
            raise ValidationError(f"validation rule {key!r} does not apply to {field_type.value} fields")
        if raw is None:
            continue
        if key in ("min", "max"):
            cleaned[key] = _json_number(parse_decimal(raw, key))
        else:
            length = parse_int(raw, key)
            if length < 0:
                raise ValidationError(f"{key} must be >= 0")
            cleaned[key] = length

    if "min" in cleaned and "max" in cleaned and cleaned["min"] > cleaned["max"]:
        raise ValidationError("min cannot exceed max")
    if "min_length" in cleaned and "max_length" in cleaned and cleaned["min_length"] > cleaned["max_length"]:
        raise ValidationError("min_length cannot exceed max_length")
    return cleaned


# =============================================================================
# VALUE COERCION
# =============================================================================

def _coerce_text(definition, raw: Any) -> str:
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float, Decimal)):
        raise ValidationError(f"{definition.label} must be text")
    value = str(raw).strip()
    rules = definition.validation_rules or {}
    min_length = rules.get("min_length")
    max_length = rules.get("max_length")
    if min_length is not None and len(value) < min_length:
        raise ValidationError(f"{definition.label} must be at least {min_length} characters")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{definition.label} must be at most {max_length} characters")
    return value


def _coerce_number(definition, raw: Any) -> int | float:
    number = parse_decimal(raw, definition.label)
    rules = definition.validation_rules or {}
    minimum = rules.get("min")
    maximum = rules.get("max")
    if minimum is not None and number < Decimal(str(minimum)):
        raise ValidationError(f"{definition.label} must be at least {minimum}")
    if maximum is not None and number > Decimal(str(maximum)):
        raise ValidationError(f"{definition.label} must be at most {maximum}")
    return _json_number(number)


def _option_text(definition, raw: Any) -> str:
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
        raise ValidationError(f"{definition.label} must be text")
    value = str(raw).strip()
    options = definition.options or []
    # No options configured: the field degrades to free text
    if options and value not in options:
        raise ValidationError(
            f"{definition.label} must be one of: {', '.join(options)}",
            details={"field_key": definition.field_key, "options": list(options)},
        )
    return value


def _coerce_select(definition, raw: Any) -> str:
    return _option_text(definition, raw)


def _coerce_multiselect(definition, raw: Any) -> list[str]:
    items = raw if isinstance(raw, (list, tuple)) else [raw]
    values: list[str] = []
    for item in items:
        if is_empty(item):
            continue
        value = _option_text(definition, item)
        if value not in values:
            values.append(value)
    return values


def _coerce_date(definition, raw: Any) -> str:
    if isinstance(raw, datetime):
        return raw.strftime(DATE_FORMAT)
    if isinstance(raw, date):
        return raw.strftime(DATE_FORMAT)
    if not isinstance(raw, str):
        raise ValidationError(f"{definition.label} must be a date")

    text = raw.strip()
    for fmt in _DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime(DATE_FORMAT)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    except ValueError:
        raise ValidationError(f"{definition.label} must be a date (MM/DD/YYYY or YYYY-MM-DD)")
    return parsed.strftime(DATE_FORMAT)


def _coerce_boolean(definition, raw: Any) -> bool:
    if is_empty(raw):
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValidationError(f"{definition.label} must be true or false")


def _coerce_legacy(definition, raw: Any) -> str:
    if isinstance(raw, (list, tuple)):
        return ", ".join(str(item).strip() for item in raw)
    return str(raw).strip()


_COERCERS = {
    FieldType.TEXT: _coerce_text,
    FieldType.NUMBER: _coerce_number,
    FieldType.SELECT: _coerce_select,
    FieldType.MULTISELECT: _coerce_multiselect,
    FieldType.DATE: _coerce_date,
    FieldType.BOOLEAN: _coerce_boolean,
}


def coerce_field_value(definition, raw: Any) -> dict | None:
    """
    Coerce raw input for one field into its tagged stored form.

    Returns None when the field has no value (and is allowed to be empty).
    Booleans never come back empty: missing means False.

    Raises:
        ValidationError if the value cannot be coerced, or a required
        active field is left empty
    """
    ftype = field_type_of(definition.field_type)
    tag = ftype.value if ftype else str(definition.field_type)

    if ftype is FieldType.BOOLEAN:
        return {"type": tag, "value": _coerce_boolean(definition, raw)}

    value = None
    if not is_empty(raw):
        coercer = _COERCERS[ftype] if ftype else _coerce_legacy
        value = coercer(definition, raw)

    if is_empty(value):
        if definition.is_required and definition.is_active:
            raise ValidationError(
                f"{definition.label} is required",
                details={"field_key": definition.field_key},
            )
        return None
    return {"type": tag, "value": value}
