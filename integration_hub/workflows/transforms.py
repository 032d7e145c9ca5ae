"""Pure data transformations used by ``data_transform`` steps.

Every function accepts either a single mapping or a list of mappings and never
mutates its input.
"""

import csv
import io
import json
import re
from typing import Any, Dict, List, Mapping, Optional

from .conditions import evaluate_conditions, get_nested_value
from .errors import TransformError
from .models import AggregateTransform, FilterTransform, FormatTransform, MapTransform

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")

AGGREGATE_OPERATIONS = ("sum", "average", "count", "min", "max")


def apply_mapping(data: Any, mapping: Mapping[str, str]) -> Dict[str, Any]:
    """Build a new object whose target fields are read from source paths."""
    return {target: get_nested_value(data, source) for target, source in mapping.items()}


def transform_map(data: Any, mapping: Mapping[str, str]) -> Any:
    if isinstance(data, list):
        return [apply_mapping(item, mapping) for item in data]
    return apply_mapping(data, mapping)


def transform_filter(data: Any, conditions: List[Any]) -> Any:
    if isinstance(data, list):
        return [item for item in data if evaluate_conditions(conditions, item)]
    return data if evaluate_conditions(conditions, data) else None


def transform_aggregate(data: Any, field: str, operation: str) -> Any:
    """Aggregate a numeric field across a list.

    Elements where the field is missing or ``None`` are ignored. On an empty
    set ``sum`` and ``count`` are 0; ``average``, ``min`` and ``max`` are None.
    Non-list input is returned unchanged.
    """
    if operation not in AGGREGATE_OPERATIONS:
        raise TransformError(f"Unknown aggregation operation: {operation}")
    if not isinstance(data, list):
        return data

    values = [
        value for value in (get_nested_value(item, field) for item in data)
        if value is not None
    ]

    if operation == "count":
        return len(values)
    if not values:
        return 0 if operation == "sum" else None

    try:
        if operation == "sum":
            return sum(values, 0)
        if operation == "average":
            return sum(values, 0) / len(values)
        if operation == "min":
            return min(values)
        return max(values)
    except TypeError:
        raise TransformError(f"Field {field} is not numeric") from None


def convert_to_csv(data: Any) -> str:
    """Render rows as CSV; the header comes from the first row's keys."""
    if isinstance(data, Mapping):
        data = [data]
    if not isinstance(data, list) or not data or not isinstance(data[0], Mapping):
        return ""

    headers = list(data[0].keys())
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=headers,
        extrasaction="ignore",
        lineterminator="\n"
    )
    writer.writeheader()
    for row in data:
        writer.writerow({key: _csv_value(row.get(key)) for key in headers})
    return buffer.getvalue().rstrip("\n")


def _csv_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


def apply_template(data: Any, template: str) -> str:
    """Replace ``{{path}}`` placeholders; unresolved placeholders stay verbatim."""

    def _replace(match: "re.Match[str]") -> str:
        value = get_nested_value(data, match.group(1))
        return match.group(0) if value is None else str(value)

    return TEMPLATE_PATTERN.sub(_replace, template)


def transform_format(data: Any, format: str, template: Optional[str] = None) -> Any:
    if format == "json":
        return json.dumps(data, indent=2, default=str)
    if format == "csv":
        return convert_to_csv(data)
    if format == "template":
        if template is None:
            raise TransformError("Template format requires a template")
        return apply_template(data, template)
    raise TransformError(f"Unknown format: {format}")


def run_transform(data: Any, transform: Any) -> Any:
    """Dispatch a typed transform config."""
    if isinstance(transform, MapTransform):
        return transform_map(data, transform.mapping)
    if isinstance(transform, FilterTransform):
        return transform_filter(data, transform.conditions)
    if isinstance(transform, AggregateTransform):
        return transform_aggregate(data, transform.field, transform.operation)
    if isinstance(transform, FormatTransform):
        return transform_format(data, transform.format, transform.template)
    raise TransformError(f"Unknown transformation type: {getattr(transform, 'type', transform)}")
