"""Translation of loose tool arguments into the ReportPortal filter grammar.

ReportPortal list endpoints take filters as query parameters of the form
``filter.<operator>.<field>=<value>`` and sorting as repeated
``page.sort=<field>,<ASC|DESC>`` parameters. This module turns the optional,
loosely typed arguments an agent sends into an ordered, reproducible sequence
of such parameters.

Everything here is pure: the same inputs always produce the same tokens in the
same order, which is what makes generated queries testable byte for byte.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import ValidationFailed
from .pagination import PageRequest

QueryParams = List[Tuple[str, str]]


class Operator(str, Enum):
    """Filter operators understood by the backend."""

    EQ = "eq"
    CNT = "cnt"
    GTE = "gte"
    LTE = "lte"
    HAS = "has"
    BTW = "btw"
    IN = "in"
    ANY = "any"
    EX = "ex"


class Direction(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class FieldKind(Enum):
    """How a raw argument is interpreted before it becomes a token."""

    TEXT = "text"
    ENUM = "enum"
    ID = "id"
    NUMBER = "number"
    FLAG = "flag"
    LIST = "list"
    TIME = "time"
    ATTRIBUTE = "attribute"
    ATTRIBUTE_KEY = "attribute_key"


DEFAULT_OPERATORS: Dict[FieldKind, Operator] = {
    FieldKind.TEXT: Operator.CNT,
    FieldKind.ENUM: Operator.EQ,
    FieldKind.ID: Operator.EQ,
    FieldKind.NUMBER: Operator.EQ,
    FieldKind.FLAG: Operator.EQ,
    FieldKind.LIST: Operator.IN,
    FieldKind.ATTRIBUTE: Operator.HAS,
    FieldKind.ATTRIBUTE_KEY: Operator.HAS,
}

ATTRIBUTE_FIELD = "compositeAttribute"

# Token order of a query. Attribute values and attribute keys share one backend
# field, so they are ranked by pseudo names.
FIELD_PRECEDENCE: Tuple[str, ...] = (
    "parentId",
    "number",
    "status",
    "hasRetries",
    "autoAnalyzed",
    "ignoreAnalyzer",
    "level",
    "binaryContent",
    "name",
    "description",
    "message",
    "issueComment",
    "ticketId",
    "patternName",
    "user",
    "startTime",
    "attributes",
    "attributeKeys",
)

ITEM_STATUSES: Tuple[str, ...] = (
    "PASSED",
    "FAILED",
    "SKIPPED",
    "STOPPED",
    "INTERRUPTED",
    "CANCELLED",
    "IN_PROGRESS",
    "WARN",
    "INFO",
)

LOG_LEVELS: Tuple[str, ...] = ("TRACE", "DEBUG", "INFO", "WARN", "ERROR", "FATAL", "UNKNOWN")

# Roughly the year 3000 in seconds. Epoch values below 1e10 are seconds, larger ones milliseconds.
_MAX_EPOCH = 32503680000
_SECONDS_LIMIT = 10000000000

_NAIVE_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d")

_SORT_EXPRESSION = re.compile(r"\s*(asc|desc)\s*\(\s*([A-Za-z][\w.]*)\s*\)\s*", re.IGNORECASE)

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}
_UNSET_VALUES = {"", "--"}


@dataclass(frozen=True)
class FilterToken:
    """One atomic ``field operator value`` unit of a backend query."""

    field: str
    operator: Operator
    value: str

    @property
    def param(self) -> str:
        return f"filter.{self.operator.value}.{self.field}"

    def as_pair(self) -> Tuple[str, str]:
        return (self.param, self.value)

    @classmethod
    def from_pair(cls, param: str, value: str) -> "FilterToken":
        """Parse a ``filter.<op>.<field>`` query parameter back into a token."""
        parts = param.split(".", 2)
        if len(parts) != 3 or parts[0] != "filter":
            raise ValueError(f"not a filter parameter: {param!r}")
        return cls(field=parts[2], operator=Operator(parts[1]), value=value)


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: Direction = Direction.DESC

    def as_pair(self) -> Tuple[str, str]:
        return ("page.sort", f"{self.field},{self.direction.value}")

    def expression(self) -> str:
        return f"{self.direction.value.lower()}({self.field})"

    @classmethod
    def from_pair(cls, value: str) -> "SortSpec":
        name, _, direction = value.rpartition(",")
        return cls(field=name, direction=Direction(direction.upper()))


def parse_sort(
    expression: Optional[str],
    allowed: Sequence[str],
    default: Sequence[SortSpec],
    argument: str = "sort",
) -> Tuple[SortSpec, ...]:
    """Parse ``direction(field)[,direction(field)...]`` into sort specs."""
    if expression is None or not str(expression).strip():
        return tuple(default)

    specs: List[SortSpec] = []
    seen = set()
    for piece in str(expression).split(","):
        if not piece.strip():
            continue
        match = _SORT_EXPRESSION.fullmatch(piece)
        if match is None:
            raise ValidationFailed(
                argument, f"malformed sort expression {piece.strip()!r}, expected e.g. desc(startTime)"
            )
        direction, name = match.group(1), match.group(2)
        if name not in allowed:
            raise ValidationFailed(
                argument,
                f"unknown sort field {name!r}, expected one of: {', '.join(allowed)}",
            )
        if name in seen:
            raise ValidationFailed(argument, f"sort field {name!r} given more than once")
        seen.add(name)
        specs.append(SortSpec(field=name, direction=Direction(direction.upper())))
    if not specs:
        return tuple(default)
    return tuple(specs)


def parse_timestamp(raw: Any, argument: str) -> int:
    """Return a timestamp as Unix epoch milliseconds."""
    text = str(raw).strip()
    if isinstance(raw, bool):
        raise ValidationFailed(argument, f"unable to parse timestamp {text!r}")
    if text.isdigit():
        epoch = int(text)
        if 0 < epoch < _SECONDS_LIMIT:
            return epoch * 1000
        if _SECONDS_LIMIT <= epoch < _MAX_EPOCH * 1000:
            return epoch
        raise ValidationFailed(argument, f"timestamp {text} is out of range")

    for fmt in _NAIVE_FORMATS:
        try:
            moment = datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        return int(moment.timestamp() * 1000)

    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00").replace("z", "+00:00"))
    except ValueError:
        raise ValidationFailed(argument, f"unable to parse timestamp {text!r}") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


@dataclass(frozen=True)
class FilterField:
    """Declares how one tool argument maps onto a backend filter field.

    ``TIME`` fields read two arguments, ``<argument>_from`` and
    ``<argument>_to``.
    """

    argument: str
    field: str
    kind: FieldKind
    operator: Optional[Operator] = None
    choices: Tuple[str, ...] = ()

    @property
    def rank(self) -> int:
        if self.kind is FieldKind.ATTRIBUTE:
            name = "attributes"
        elif self.kind is FieldKind.ATTRIBUTE_KEY:
            name = "attributeKeys"
        else:
            name = self.field
        try:
            return FIELD_PRECEDENCE.index(name)
        except ValueError:
            return len(FIELD_PRECEDENCE)

    @property
    def arguments(self) -> Tuple[str, ...]:
        if self.kind is FieldKind.TIME:
            return (f"{self.argument}_from", f"{self.argument}_to")
        return (self.argument,)

    def tokens(self, inputs: Mapping[str, Any]) -> List[FilterToken]:
        if self.kind is FieldKind.TIME:
            return self._time_tokens(inputs)

        raw = inputs.get(self.argument)
        if _is_unset(raw):
            return []

        if self.kind is FieldKind.TEXT:
            return [self._token(self._default_operator(), str(raw).strip())]
        if self.kind is FieldKind.ENUM:
            return self._enum_tokens(raw)
        if self.kind is FieldKind.ID:
            return [self._token(self._default_operator(), self._identifier(raw))]
        if self.kind is FieldKind.NUMBER:
            return [self._token(self._default_operator(), str(self._number(raw)))]
        if self.kind is FieldKind.FLAG:
            flag = self._flag(raw)
            if flag is None:
                return []
            return [self._token(self._default_operator(), "true" if flag else "false")]
        if self.kind is FieldKind.LIST:
            values = _split(raw)
            if not values:
                return []
            return [self._token(self._default_operator(), ",".join(values))]
        if self.kind is FieldKind.ATTRIBUTE:
            return [self._token(Operator.HAS, pair) for pair in self._attribute_pairs(raw)]
        if self.kind is FieldKind.ATTRIBUTE_KEY:
            return [self._token(Operator.HAS, key) for key in self._attribute_keys(raw)]
        raise ValueError(f"unsupported field kind {self.kind}")  # pragma: no cover

    def _default_operator(self) -> Operator:
        return self.operator or DEFAULT_OPERATORS[self.kind]

    def _token(self, operator: Operator, value: str) -> FilterToken:
        return FilterToken(field=self.field, operator=operator, value=value)

    def _enum_tokens(self, raw: Any) -> List[FilterToken]:
        values = [value.upper() for value in _split(raw)]
        if not values:
            return []
        if self.choices:
            for value in values:
                if value not in self.choices:
                    raise ValidationFailed(
                        self.argument,
                        f"unsupported value {value!r}, expected one of: {', '.join(self.choices)}",
                    )
        if self.operator is not None:
            if len(values) > 1:
                raise ValidationFailed(self.argument, "accepts a single value")
            return [self._token(self.operator, values[0])]
        if len(values) == 1:
            return [self._token(Operator.EQ, values[0])]
        return [self._token(Operator.IN, ",".join(values))]

    def _identifier(self, raw: Any) -> str:
        text = str(raw).strip()
        if isinstance(raw, bool) or not text.isdigit():
            raise ValidationFailed(self.argument, f"invalid identifier {text!r}, must be a non-negative integer")
        return str(int(text))

    def _number(self, raw: Any) -> int:
        if isinstance(raw, bool):
            raise ValidationFailed(self.argument, "must be an integer")
        if isinstance(raw, float):
            if not raw.is_integer():
                raise ValidationFailed(self.argument, "must be an integer")
            return int(raw)
        try:
            return int(str(raw).strip())
        except ValueError:
            raise ValidationFailed(self.argument, "must be an integer") from None

    def _flag(self, raw: Any) -> Optional[bool]:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        if text in _UNSET_VALUES:
            return None
        raise ValidationFailed(self.argument, f"expected true or false, got {raw!r}")

    def _attribute_pairs(self, raw: Any) -> List[str]:
        pairs = []
        for piece in _split(raw):
            key, sep, value = piece.partition(":")
            key, value = key.strip(), value.strip()
            if not sep or not key or not value:
                raise ValidationFailed(
                    self.argument, f"malformed attribute {piece!r}, expected key:value"
                )
            pairs.append(f"{key}:{value}")
        return pairs

    def _attribute_keys(self, raw: Any) -> List[str]:
        keys = []
        for piece in _split(raw):
            if piece == ":":
                raise ValidationFailed(self.argument, "attribute key must not be empty")
            keys.append(piece if ":" in piece else f"{piece}:")
        return keys

    def _time_tokens(self, inputs: Mapping[str, Any]) -> List[FilterToken]:
        lower_arg, upper_arg = self.arguments
        lower_raw, upper_raw = inputs.get(lower_arg), inputs.get(upper_arg)
        lower = None if _is_unset(lower_raw) else parse_timestamp(lower_raw, lower_arg)
        upper = None if _is_unset(upper_raw) else parse_timestamp(upper_raw, upper_arg)

        if lower is not None and upper is not None:
            if lower >= upper:
                raise ValidationFailed(lower_arg, f"must be earlier than {upper_arg}")
            return [self._token(Operator.BTW, f"{lower},{upper}")]
        if lower is not None:
            return [self._token(Operator.GTE, str(lower))]
        if upper is not None:
            return [self._token(Operator.LTE, str(upper))]
        return []


@dataclass(frozen=True)
class FilterSpec:
    """The filters and sort fields one operation accepts."""

    fields: Tuple[FilterField, ...]
    sort_fields: Tuple[str, ...]
    default_sort: Tuple[SortSpec, ...]
    sort_argument: str = "sort"

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.fields, key=lambda item: item.rank))
        object.__setattr__(self, "fields", ordered)

    @property
    def arguments(self) -> Tuple[str, ...]:
        names: List[str] = []
        for item in self.fields:
            names.extend(item.arguments)
        return tuple(names)

    def build(self, inputs: Mapping[str, Any]) -> Tuple[Tuple[FilterToken, ...], Tuple[SortSpec, ...]]:
        """Return the filter tokens and sort specs for ``inputs``."""
        tokens: List[FilterToken] = []
        for item in self.fields:
            tokens.extend(item.tokens(inputs))
        sort = parse_sort(
            inputs.get(self.sort_argument),
            self.sort_fields,
            self.default_sort,
            self.sort_argument,
        )
        return tuple(tokens), sort


@dataclass(frozen=True)
class BackendQuery:
    """A complete list query: fixed parameters, filters, page cursor and sort."""

    filters: Tuple[FilterToken, ...] = ()
    sort: Tuple[SortSpec, ...] = ()
    page: Optional[PageRequest] = None
    base: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def to_params(self) -> QueryParams:
        params: QueryParams = list(self.base)
        params.extend(token.as_pair() for token in self.filters)
        if self.page is not None:
            params.extend(self.page.to_params())
        params.extend(spec.as_pair() for spec in self.sort)
        return params


def build_query(
    spec: FilterSpec,
    inputs: Mapping[str, Any],
    page: Optional[PageRequest] = None,
    base: Iterable[Tuple[str, str]] = (),
) -> BackendQuery:
    tokens, sort = spec.build(inputs)
    return BackendQuery(filters=tokens, sort=sort, page=page, base=tuple(base))


def _is_unset(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not value
    return False


def _split(raw: Any) -> List[str]:
    if isinstance(raw, (list, tuple)):
        pieces = [str(item) for item in raw]
    else:
        pieces = str(raw).split(",")
    return [piece.strip() for piece in pieces if piece.strip()]
