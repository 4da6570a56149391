"""FHIR R4 Primitive Types.

Each FHIR primitive is a thin subclass of the Python builtin that carries it
(``str``, ``int`` or ``Decimal``). Construction validates the literal against
the R4 lexical grammar and raises ``FormatError`` on mismatch; a valid
instance always reproduces its input literal exactly through ``str()``.

The classes plug into pydantic through ``__get_pydantic_core_schema__`` so
they can be used directly as model field annotations.
"""

import calendar
import re
from datetime import date as _date
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Pattern

from pydantic import GetCoreSchemaHandler, StrictBool
from pydantic_core import core_schema

from clinical_fhir.core.exceptions import FormatError

_YEAR = r"([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)"
_MONTH = r"(0[1-9]|1[0-2])"
_DAY = r"(0[1-9]|[1-2][0-9]|3[0-1])"
_TIME = r"([01][0-9]|2[0-3]):[0-5][0-9]:([0-5][0-9]|60)(\.[0-9]+)?"
_ZONE = r"(Z|(\+|-)((0[0-9]|1[0-3]):[0-5][0-9]|14:00))"

DATE_PATTERN = re.compile(rf"{_YEAR}(-{_MONTH}(-{_DAY})?)?")
DATETIME_PATTERN = re.compile(rf"{_YEAR}(-{_MONTH}(-{_DAY}(T{_TIME}{_ZONE})?)?)?")
INSTANT_PATTERN = re.compile(rf"{_YEAR}-{_MONTH}-{_DAY}T{_TIME}{_ZONE}")
TIME_PATTERN = re.compile(_TIME)
CODE_PATTERN = re.compile(r"[^\s]+(\s[^\s]+)*")
URI_PATTERN = re.compile(r"\S+")
ID_PATTERN = re.compile(r"[A-Za-z0-9\-.]{1,64}")
STRING_PATTERN = re.compile(r"[ \r\n\t\S]+")
BASE64_PATTERN = re.compile(r"(\s*([0-9a-zA-Z+/=]){4}\s*)+")
DECIMAL_PATTERN = re.compile(r"-?(0|[1-9][0-9]*)(\.[0-9]+)?([eE][+-]?[0-9]+)?")
INTEGER_PATTERN = re.compile(r"[+-]?(0|[1-9][0-9]*)")

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

# FHIR booleans are JSON true/false only
FhirBoolean = StrictBool


class FhirString(str):
    """FHIR ``string``: a non-empty sequence of Unicode characters."""

    kind: ClassVar[str] = "string"
    pattern: ClassVar[Pattern[str]] = STRING_PATTERN

    def __new__(cls, value: Any) -> "FhirString":
        """Validate ``value`` against the primitive grammar."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise FormatError(cls.kind, value, message=f"{cls.kind} must be a string, got {type(value).__name__}")
        if not cls.pattern.fullmatch(value) or not value.strip():
            raise FormatError(cls.kind, value)
        cls._check_semantics(value)
        return super().__new__(cls, value)

    @classmethod
    def _check_semantics(cls, value: str) -> None:
        """Hook for checks the regular expression cannot express."""

    @classmethod
    def _pydantic_validate(cls, value: Any) -> "FhirString":
        return cls(value)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Validate through the class constructor."""
        return core_schema.no_info_plain_validator_function(cls._pydantic_validate)

    def __repr__(self) -> str:
        """Show the primitive kind alongside the literal."""
        return f"{type(self).__name__}({str.__repr__(self)})"


class FhirMarkdown(FhirString):
    """FHIR ``markdown``."""

    kind = "markdown"


class FhirCode(FhirString):
    """FHIR ``code``: no leading or trailing whitespace, single inner spaces."""

    kind = "code"
    pattern = CODE_PATTERN


class FhirUri(FhirString):
    """FHIR ``uri``."""

    kind = "uri"
    pattern = URI_PATTERN


class FhirUrl(FhirUri):
    """FHIR ``url``."""

    kind = "url"


class FhirCanonical(FhirUri):
    """FHIR ``canonical``: a uri with an optional ``|version`` suffix."""

    kind = "canonical"

    @property
    def url(self) -> str:
        """Canonical URL without version."""
        return self.split("|", 1)[0]

    @property
    def version(self) -> Any:
        """Version suffix, or None."""
        parts = self.split("|", 1)
        return parts[1] if len(parts) == 2 else None

    @classmethod
    def _check_semantics(cls, value: str) -> None:
        if value.count("|") > 1 or value.endswith("|"):
            raise FormatError(cls.kind, value)


class FhirId(FhirString):
    """FHIR ``id``: 1-64 characters from ``[A-Za-z0-9-.]``."""

    kind = "id"
    pattern = ID_PATTERN


class FhirBase64Binary(FhirString):
    """FHIR ``base64Binary``."""

    kind = "base64Binary"
    pattern = BASE64_PATTERN


class _TemporalMixin:
    """Bounds of the interval a possibly partial temporal literal denotes."""

    def _components(self) -> Any:
        text = str(self)
        date_part, _, time_part = text.partition("T")
        pieces = [int(p) for p in date_part.split("-")]
        return pieces, time_part

    def earliest(self) -> datetime:
        """Earliest instant covered by this value, timezone aware."""
        pieces, time_part = self._components()
        if time_part:
            return _parse_full_datetime(str(self))
        year = pieces[0]
        month = pieces[1] if len(pieces) > 1 else 1
        day = pieces[2] if len(pieces) > 2 else 1
        return datetime(year, month, day, tzinfo=timezone.utc)

    def latest(self) -> datetime:
        """Latest instant covered by this value, timezone aware."""
        pieces, time_part = self._components()
        if time_part:
            return _parse_full_datetime(str(self))
        year = pieces[0]
        month = pieces[1] if len(pieces) > 1 else 12
        day = pieces[2] if len(pieces) > 2 else calendar.monthrange(year, month)[1]
        return datetime(year, month, day, 23, 59, 59, 999999, tzinfo=timezone.utc)

    @property
    def precision(self) -> str:
        """One of ``year``, ``month``, ``day`` or ``time``."""
        pieces, time_part = self._components()
        if time_part:
            return "time"
        return ("year", "month", "day")[len(pieces) - 1]


def _check_calendar(kind: str, value: str) -> None:
    pieces = value.partition("T")[0].split("-")
    if len(pieces) == 3:
        try:
            _date(int(pieces[0]), int(pieces[1]), int(pieces[2]))
        except ValueError:
            raise FormatError(kind, value, message=f"{value!r} is not a real calendar date") from None


def _parse_full_datetime(value: str) -> datetime:
    date_part, _, rest = value.partition("T")
    match = re.fullmatch(rf"({_TIME})({_ZONE})", rest)
    clock, zone = match.group(1), match.group(5)
    hms, _, fraction = clock.partition(".")
    hour, minute, second = (int(p) for p in hms.split(":"))
    # leap seconds collapse onto the last representable second
    second = min(second, 59)
    micro = int((fraction + "000000")[:6]) if fraction else 0
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        zh, zm = (int(p) for p in zone[1:].split(":"))
        tz = timezone(sign * timedelta(hours=zh, minutes=zm))
    year, month, day = (int(p) for p in date_part.split("-"))
    return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)


class FhirDate(_TemporalMixin, FhirString):
    """FHIR ``date``: ``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``."""

    kind = "date"
    pattern = DATE_PATTERN

    @classmethod
    def _check_semantics(cls, value: str) -> None:
        _check_calendar(cls.kind, value)

    @classmethod
    def from_date(cls, value: _date) -> "FhirDate":
        """Build from a ``datetime.date``."""
        return cls(value.isoformat())

    def to_date(self) -> _date:
        """Convert a full-precision date to ``datetime.date``."""
        if self.precision != "day":
            raise FormatError(self.kind, str(self), message=f"{str(self)!r} is not a full date")
        return _date.fromisoformat(str(self))


class FhirDateTime(_TemporalMixin, FhirString):
    """FHIR ``dateTime``: a partial date, or a full date-time with timezone."""

    kind = "dateTime"
    pattern = DATETIME_PATTERN

    @classmethod
    def _check_semantics(cls, value: str) -> None:
        _check_calendar(cls.kind, value)

    @classmethod
    def from_datetime(cls, value: datetime) -> "FhirDateTime":
        """Build from an aware ``datetime``; naive values are taken as UTC."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return cls(_format_datetime(value))


class FhirInstant(_TemporalMixin, FhirString):
    """FHIR ``instant``: a full date-time that always carries a timezone."""

    kind = "instant"
    pattern = INSTANT_PATTERN

    @classmethod
    def _check_semantics(cls, value: str) -> None:
        _check_calendar(cls.kind, value)

    @classmethod
    def from_datetime(cls, value: datetime) -> "FhirInstant":
        """Build from an aware ``datetime``; naive values are taken as UTC."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return cls(_format_datetime(value))

    def to_datetime(self) -> datetime:
        """Convert to an aware ``datetime``."""
        return _parse_full_datetime(str(self))


def _format_datetime(value: datetime) -> str:
    text = value.isoformat(timespec="microseconds" if value.microsecond else "seconds")
    return text.replace("+00:00", "Z")


class FhirTime(FhirString):
    """FHIR ``time``: ``hh:mm:ss`` with optional fraction."""

    kind = "time"
    pattern = TIME_PATTERN

    def to_time(self) -> time:
        """Convert to ``datetime.time``."""
        hms, _, fraction = str(self).partition(".")
        hour, minute, second = (int(p) for p in hms.split(":"))
        micro = int((fraction + "000000")[:6]) if fraction else 0
        return time(hour, minute, min(second, 59), micro)


class FhirDecimal(Decimal):
    """FHIR ``decimal`` that remembers its original literal.

    ``FhirDecimal("1.50").literal`` is ``"1.50"`` and the JSON codec writes
    that literal back unchanged, so significant trailing zeros survive a
    round trip. Arithmetic results are plain ``Decimal`` values.
    """

    kind: ClassVar[str] = "decimal"

    def __new__(cls, value: Any = "0") -> "FhirDecimal":
        """Validate and store the literal."""
        if isinstance(value, FhirDecimal):
            return value
        if isinstance(value, bool):
            raise FormatError(cls.kind, value, message="decimal must be a number, got bool")
        if isinstance(value, int):
            literal = str(value)
        elif isinstance(value, float):
            literal = repr(value)
        elif isinstance(value, Decimal):
            if not value.is_finite():
                raise FormatError(cls.kind, value)
            literal = str(value)
        elif isinstance(value, str):
            literal = value
        else:
            raise FormatError(cls.kind, value, message=f"decimal must be a number, got {type(value).__name__}")
        if not DECIMAL_PATTERN.fullmatch(literal):
            raise FormatError(cls.kind, value)
        try:
            instance = super().__new__(cls, literal)
        except InvalidOperation:
            raise FormatError(cls.kind, value) from None
        instance._literal = literal
        return instance

    @property
    def literal(self) -> str:
        """Exact text this decimal was built from."""
        return self._literal

    def __str__(self) -> str:
        """Return the original literal."""
        return self._literal

    def __repr__(self) -> str:
        """Show the original literal."""
        return f"FhirDecimal({self._literal!r})"

    def __reduce__(self) -> Any:
        """Pickle through the literal."""
        return (type(self), (self._literal,))

    @classmethod
    def _pydantic_validate(cls, value: Any) -> "FhirDecimal":
        # A JSON string is never a decimal
        if isinstance(value, str):
            raise FormatError(cls.kind, value, message="decimal must be a JSON number, got string")
        return cls(value)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Validate through the class constructor."""
        return core_schema.no_info_plain_validator_function(cls._pydantic_validate)


class FhirInteger(int):
    """FHIR ``integer``: signed 32-bit."""

    kind: ClassVar[str] = "integer"
    minimum: ClassVar[int] = INT32_MIN
    maximum: ClassVar[int] = INT32_MAX

    def __new__(cls, value: Any) -> "FhirInteger":
        """Validate range; accepts an ``int`` or an integer literal string."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise FormatError(cls.kind, value, message=f"{cls.kind} must be a number, got bool")
        if isinstance(value, str):
            if not INTEGER_PATTERN.fullmatch(value):
                raise FormatError(cls.kind, value)
            number = int(value)
        elif isinstance(value, int):
            number = value
        else:
            raise FormatError(cls.kind, value, message=f"{cls.kind} must be an integer, got {type(value).__name__}")
        if not cls.minimum <= number <= cls.maximum:
            raise FormatError(
                cls.kind, value, message=f"{cls.kind} {value!r} outside [{cls.minimum}, {cls.maximum}]"
            )
        return super().__new__(cls, number)

    @classmethod
    def _pydantic_validate(cls, value: Any) -> "FhirInteger":
        if isinstance(value, str):
            raise FormatError(cls.kind, value, message=f"{cls.kind} must be a JSON number, got string")
        return cls(value)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Validate through the class constructor."""
        return core_schema.no_info_plain_validator_function(cls._pydantic_validate)

    def __repr__(self) -> str:
        """Show the primitive kind alongside the value."""
        return f"{type(self).__name__}({int(self)})"


class FhirPositiveInt(FhirInteger):
    """FHIR ``positiveInt``: 1 .. 2^31-1."""

    kind = "positiveInt"
    minimum = 1


class FhirUnsignedInt(FhirInteger):
    """FHIR ``unsignedInt``: 0 .. 2^31-1."""

    kind = "unsignedInt"
    minimum = 0


PRIMITIVE_TYPES = {
    cls.kind: cls
    for cls in (
        FhirString,
        FhirMarkdown,
        FhirCode,
        FhirUri,
        FhirUrl,
        FhirCanonical,
        FhirId,
        FhirBase64Binary,
        FhirDate,
        FhirDateTime,
        FhirInstant,
        FhirTime,
        FhirDecimal,
        FhirInteger,
        FhirPositiveInt,
        FhirUnsignedInt,
    )
}


def parse_primitive(kind: str, literal: Any) -> Any:
    """Parse ``literal`` as the FHIR primitive named ``kind``."""
    try:
        cls = PRIMITIVE_TYPES[kind]
    except KeyError:
        raise FormatError(kind, literal, message=f"unknown primitive kind {kind!r}") from None
    return cls(literal)
