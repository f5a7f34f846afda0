"""Field scheme: logical log attributes mapped to physical table column names."""

from typing import Any
from typing import Mapping
from typing import Optional
from typing import Tuple

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator
from pydantic import model_validator

from dblog_transport.errors import ConfigurationError

# Logical field names in row order
LOGICAL_FIELDS: Tuple[str, ...] = (
    "level",
    "meta",
    "method",
    "endpoint",
    "req",
    "responseCode",
    "res",
    "timestamp",
    "responseTime",
)


class FieldScheme(BaseModel):
    """
    Column names for each logical field of a log record.

    Built once when the transport is constructed and never modified afterwards.
    Keys may be given in camelCase (``responseCode``) or snake_case
    (``response_code``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    level: str = "level"
    meta: str = "metadata"
    method: str = "method"
    endpoint: str = "endpoint"
    req: str = "req"
    response_code: str = Field(default="responsecode", alias="responseCode")
    res: str = "res"
    timestamp: str = "timestamp"
    response_time: str = Field(default="responsetime", alias="responseTime")

    @field_validator("*")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("column name must not be empty")
        return value

    @model_validator(mode="after")
    def _distinct(self) -> "FieldScheme":
        names = [getattr(self, name) for name in type(self).model_fields]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"column names must be distinct, repeated: {', '.join(duplicates)}")
        return self

    @classmethod
    def from_options(cls, fields: Optional[Mapping[str, Any]] = None) -> "FieldScheme":
        """
        Resolve the scheme from the ``fields`` construction option.

        A partial mapping is merged over the defaults, so every logical field
        always resolves to a usable column name.

        Raises:
            ConfigurationError: unknown logical field, or an empty / non-string column name
        """
        if fields is None:
            return cls()
        if not isinstance(fields, Mapping):
            raise ConfigurationError("The fields option must be a mapping", option="fields")
        try:
            return cls.model_validate(dict(fields))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'fields'}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid fields option: {problems}", option="fields") from e

    def column(self, logical: str) -> str:
        """Physical column name for a logical field name (camelCase as in LOGICAL_FIELDS)."""
        if logical == "responseCode":
            return self.response_code
        if logical == "responseTime":
            return self.response_time
        return getattr(self, logical)

    def columns(self) -> Tuple[Tuple[str, str], ...]:
        """Ordered ``(logical, column)`` pairs."""
        return tuple((logical, self.column(logical)) for logical in LOGICAL_FIELDS)
