"""
Declarative extraction of request fields.

    data = extract_json_fields(
        RequestField('graph', required=True, validator=is_dict,
                     error_message="No workflow graph provided"),
    )

Every failure surfaces as ``ValueError`` so ``handle_route_errors`` answers 400.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
from flask import request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestField:
    """One expected field: whether it must be present, its default and checks."""

    name: str
    required: bool = False
    default: Any = None
    transform: Optional[Callable[[Any], Any]] = None
    validator: Optional[Callable[[Any], bool]] = None
    error_message: Optional[str] = None

    def read(self, source: Mapping[str, Any]) -> Any:
        value = source.get(self.name, self.default)

        if self.required and _is_blank(value):
            raise ValueError(self.error_message or f"No {self.name} provided")
        if value is None:
            return None

        if self.transform is not None:
            try:
                value = self.transform(value)
            except (TypeError, ValueError) as e:
                logger.warning("Cannot convert request field '%s': %s", self.name, e)
                raise ValueError(f"Invalid format for {self.name}") from e

        if self.validator is not None and not self.validator(value):
            raise ValueError(f"Invalid {self.name}")
        return value


def _is_blank(value: Any) -> bool:
    return value is None or value == '' or (isinstance(value, (list, dict)) and not value)


def extract_json_fields(*fields: RequestField) -> Dict[str, Any]:
    """Read fields from the JSON body, which must be an object when present."""
    body = request.get_json(silent=True)
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return {f.name: f.read(body) for f in fields}


def extract_query_params(*fields: RequestField) -> Dict[str, Any]:
    return {f.name: f.read(request.args) for f in fields}


def is_dict(value: Any) -> bool:
    return isinstance(value, dict)


def positive_int(value: Any) -> bool:
    try:
        return int(value) > 0
    except (TypeError, ValueError):
        return False
