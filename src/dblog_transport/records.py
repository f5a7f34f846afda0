"""Log record normalization and record-to-row translation."""

import json
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import PrivateAttr
from pydantic import StrictStr
from pydantic import ValidationError

from dblog_transport.errors import TranslationError
from dblog_transport.fields import FieldScheme

ColumnRow = Dict[str, Any]


class RequestMeta(BaseModel):
    """HTTP request/response details attached to an access log record."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    req: Any = None
    res: Any = None
    response_time: Any = Field(default=None, alias="responseTime")


class LogRecord(BaseModel):
    """
    A structured log event as handed over by the logging front end.

    ``level`` and ``message`` are required; every other key is kept as an
    extra field. ``meta`` and ``timestamp`` are the extras the row mapping
    reads directly, and both may be absent.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    level: StrictStr
    message: StrictStr
    meta: Optional[RequestMeta] = None
    timestamp: Any = None

    # Fields exactly as handed in, when normalized from a mapping
    _source: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @classmethod
    def from_record(cls, record: Any) -> "LogRecord":
        """
        Normalize a mapping (or an existing LogRecord) into a LogRecord.

        Raises:
            TranslationError: record is not a mapping, lacks a string level/message,
                or carries a ``meta`` that is not a mapping
        """
        if isinstance(record, LogRecord):
            return record
        if not isinstance(record, Mapping):
            raise TranslationError(f"Log record must be a mapping, got {type(record).__name__}")
        try:
            entry = cls.model_validate(dict(record))
        except ValidationError as e:
            problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            raise TranslationError(f"Malformed log record: {problems}") from e
        entry._source = dict(record)
        return entry

    def extra_fields(self) -> Dict[str, Any]:
        """
        Everything in the record besides ``level`` and ``message``.

        For a record normalized from a mapping these are the input values and keys
        untouched. A LogRecord built directly reports its provided fields, with
        nested models keyed by alias (``responseTime``).
        """
        fields = dict(self._source) if self._source is not None else _given(self)
        fields.pop("level", None)
        fields.pop("message", None)
        return fields


def _given(model: BaseModel) -> Dict[str, Any]:
    """Explicitly provided values of a model (nested models included), keyed by alias."""
    values: Dict[str, Any] = {}
    for name, field in type(model).model_fields.items():
        if name in model.model_fields_set:
            value = getattr(model, name)
            values[field.alias or name] = _given(value) if isinstance(value, BaseModel) else value
    values.update(model.model_extra or {})
    return values


def _to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


def _token(tokens: List[str], index: int) -> Optional[str]:
    return tokens[index] if len(tokens) > index else None


# (logical field, extractor) in row order; extractors get the record, its meta and the message tokens
_Extractor = Callable[[LogRecord, RequestMeta, List[str]], Any]
ROW_EXTRACTORS: Tuple[Tuple[str, _Extractor], ...] = (
    ("level", lambda entry, meta, tokens: entry.level),
    ("meta", lambda entry, meta, tokens: json.dumps(entry.extra_fields(), default=str)),
    ("method", lambda entry, meta, tokens: _token(tokens, 0)),
    ("endpoint", lambda entry, meta, tokens: _token(tokens, 1)),
    ("req", lambda entry, meta, tokens: _to_json(meta.req)),
    ("responseCode", lambda entry, meta, tokens: _token(tokens, 2)),
    ("res", lambda entry, meta, tokens: _to_json(meta.res)),
    ("timestamp", lambda entry, meta, tokens: entry.timestamp),
    ("responseTime", lambda entry, meta, tokens: meta.response_time),
)


def translate(record: Any, scheme: FieldScheme) -> ColumnRow:
    """
    Convert a log record into a flat column -> value mapping.

    The message is split on single spaces: token 0 is the HTTP method, token 1
    the endpoint and token 2 the response code. Missing tokens, and a missing
    ``meta`` or missing entries inside it, become ``None``.

    Args:
        record: LogRecord or mapping with at least ``level`` and ``message``
        scheme: column names to write to

    Returns:
        A new dict keyed by physical column name, in field scheme order

    Raises:
        TranslationError: the record cannot be normalized
    """
    entry = LogRecord.from_record(record)
    meta = entry.meta if entry.meta is not None else RequestMeta()
    tokens = entry.message.split(" ")

    row: ColumnRow = {}
    for logical, extract in ROW_EXTRACTORS:
        row[scheme.column(logical)] = extract(entry, meta, tokens)
    return row
