"""
Value normalization: typed field value -> canonical, JSON-storable value.

Dispatch goes through a registry keyed by type kind. Kinds without an entry
use the fallback converter, which delegates to the field's own storable
conversion. New scalar kinds are added with ``ValueNormalizer.register``.
"""

import base64
import enum
import uuid
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from entity_audit.domain.exceptions import UnsupportedTypeError
from entity_audit.domain.models.change import NormalizedValue
from entity_audit.domain.models.mapping import FieldMapping

Converter = Callable[[Any, FieldMapping], NormalizedValue]

DECIMAL = "decimal"
BIGINT = "bigint"
INTEGER = "integer"
SMALLINT = "smallint"
FLOAT = "float"
BOOLEAN = "boolean"
BLOB = "blob"

_JSON_PRIMITIVES = (str, int, float, bool)


def _bigint(value: Any, mapping: FieldMapping) -> str:
    return str(value)


def _decimal(value: Any, mapping: FieldMapping) -> str:
    scale = mapping.options.get("scale")
    if scale is None:
        return _bigint(value, mapping)
    quantum = Decimal(1).scaleb(-int(scale))
    return format(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP), "f")


def _integer(value: Any, mapping: FieldMapping) -> int:
    return int(value)


def _float(value: Any, mapping: FieldMapping) -> float:
    return float(value)


def _boolean(value: Any, mapping: FieldMapping) -> bool:
    return bool(value)


def _blob(value: Any, mapping: FieldMapping) -> str:
    if hasattr(value, "read"):
        if not (hasattr(value, "seekable") and value.seekable()):
            raise UnsupportedTypeError(
                f"Field '{mapping.name}': binary stream is not seekable and cannot be restored after reading"
            )
        position = value.tell()
        content = value.read()
        value.seek(position)
    elif isinstance(value, str):
        content = value.encode("utf-8")
    else:
        content = bytes(value)
    return base64.b64encode(content).decode("ascii")


def _opaque(value: Any) -> NormalizedValue:
    """Storable value that is not a JSON primitive -> opaque string."""
    if value is None or isinstance(value, _JSON_PRIMITIVES):
        return value
    if isinstance(value, enum.Enum):
        return _opaque(value.value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value.total_seconds())
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (dict, list)):
        return value
    return str(value)


def delegate_to_storable(value: Any, mapping: FieldMapping) -> NormalizedValue:
    """Fallback: the field type's own storable-value conversion."""
    if mapping.to_storable is None:
        raise UnsupportedTypeError(
            f"Field '{mapping.name}': no converter registered for type '{mapping.type_kind}'"
        )
    return _opaque(mapping.to_storable(value))


DEFAULT_CONVERTERS: Mapping[str, Converter] = {
    DECIMAL: _decimal,
    BIGINT: _bigint,
    INTEGER: _integer,
    SMALLINT: _integer,
    FLOAT: _float,
    BOOLEAN: _boolean,
    BLOB: _blob,
}


class ValueNormalizer:
    """Registry-based normalizer. One instance may be shared; registration is not thread-safe."""

    def __init__(
        self,
        converters: Optional[Mapping[str, Converter]] = None,
        fallback: Optional[Converter] = delegate_to_storable,
    ) -> None:
        self._converters: Dict[str, Converter] = dict(
            DEFAULT_CONVERTERS if converters is None else converters
        )
        self._fallback = fallback

    def register(self, type_kind: str, converter: Converter) -> None:
        self._converters[type_kind] = converter

    def supports(self, type_kind: str) -> bool:
        return type_kind in self._converters or self._fallback is not None

    def normalize(
        self,
        type_kind: str,
        value: Any,
        mapping: Optional[FieldMapping] = None,
    ) -> NormalizedValue:
        if value is None:
            return None
        if mapping is None:
            mapping = FieldMapping(name="<value>", type_kind=type_kind)
        converter = self._converters.get(type_kind, self._fallback)
        if converter is None:
            raise UnsupportedTypeError(
                f"Field '{mapping.name}': no converter registered for type '{type_kind}'"
            )
        return converter(value, mapping)

    def normalize_field(self, mapping: FieldMapping, value: Any) -> NormalizedValue:
        return self.normalize(mapping.type_kind, value, mapping)
