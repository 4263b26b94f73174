"""Coercion between wire primitives and concrete Python types."""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import decimal
import enum
import fractions
import math
import pathlib
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from graph_io.errors import UnknownEnumConstantError, UnsupportedConversionError

_NUMBER_TYPES = (int, float, decimal.Decimal, fractions.Fraction)


@dataclass(frozen=True)
class ConverterOptions:
    """Injected settings for coercion.

    Attributes:
        date_patterns: ``strptime`` patterns tried in order after ISO-8601.
        timezone: Attached to naive datetimes when set; never assumed otherwise.
        decimal_context: Context used for ``Decimal`` conversions.
    """

    date_patterns: tuple[str, ...] = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d", "%d/%m/%Y")
    timezone: dt.tzinfo | None = None
    decimal_context: decimal.Context | None = None


class Converter:
    """Converts a value to a target type.

    Conversions are looked up by ``(source kind, target)`` where the target is
    walked through its MRO, so ``IntEnum`` subclasses hit the ``IntEnum`` rule
    and plain enums hit the ``Enum`` rule.
    """

    def __init__(self, options: ConverterOptions | None = None) -> None:
        self.options = options or ConverterOptions()
        self._targets: dict[type, Callable[[Any, type], Any]] = {
            int: self._to_int,
            float: self._to_float,
            bool: self._to_bool,
            str: self._to_str,
            decimal.Decimal: self._to_decimal,
            fractions.Fraction: self._to_fraction,
            complex: self._to_complex,
            dt.datetime: self._to_datetime,
            dt.date: self._to_date,
            dt.time: self._to_time,
            dt.timedelta: self._to_timedelta,
            uuid.UUID: self._to_uuid,
            bytes: self._to_bytes,
            bytearray: self._to_bytearray,
            pathlib.PurePath: self._to_path,
        }

    def convert(self, value: Any, target: type) -> Any:
        """Return ``value`` coerced to ``target``.

        Raises:
            UnsupportedConversionError: No rule covers the pair.
            UnknownEnumConstantError: A string names no member of an enum target.
        """
        if type(value) is target or target is object:
            return value
        if value is None:
            return None
        if isinstance(target, enum.EnumMeta):
            return self._to_enum(value, target)
        for klass in target.__mro__:
            rule = self._targets.get(klass)
            if rule is not None:
                try:
                    return rule(value, target)
                except (ArithmeticError, ValueError) as exc:
                    # Out of range for the target (huge ints to float, day overflow).
                    raise UnsupportedConversionError(value, target) from exc
        if isinstance(value, target):
            return value
        raise UnsupportedConversionError(value, target)

    def can_convert(self, value: Any, target: type) -> bool:
        if type(value) is target or target is object or value is None:
            return True
        if isinstance(target, enum.EnumMeta):
            return True
        return any(klass in self._targets for klass in target.__mro__) or isinstance(value, target)

    # --- Numbers ---------------------------------------------------------

    def _to_int(self, value: Any, target: type) -> int:
        if isinstance(value, bool):
            return target(int(value))
        if isinstance(value, int):
            return target(value)
        if isinstance(value, (float, decimal.Decimal, fractions.Fraction)):
            if isinstance(value, float) and not math.isfinite(value):
                raise UnsupportedConversionError(value, target)
            return target(math.trunc(value))
        if isinstance(value, str):
            text = value.strip()
            try:
                return target(int(text))
            except ValueError:
                pass
            try:
                return target(math.trunc(decimal.Decimal(text)))
            except (decimal.InvalidOperation, ValueError, OverflowError) as exc:
                raise UnsupportedConversionError(value, target) from exc
        if isinstance(value, enum.Enum) and isinstance(value.value, int):
            return target(value.value)
        raise UnsupportedConversionError(value, target)

    def _to_float(self, value: Any, target: type) -> float:
        if isinstance(value, (_NUMBER_TYPES, bool)):
            return target(value)
        if isinstance(value, str):
            try:
                return target(value.strip())
            except ValueError as exc:
                raise UnsupportedConversionError(value, target) from exc
        raise UnsupportedConversionError(value, target)

    def _to_bool(self, value: Any, target: type) -> bool:
        if isinstance(value, _NUMBER_TYPES):
            return value != 0
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("true", "1", "yes"):
                return True
            if text in ("false", "0", "no", ""):
                return False
        raise UnsupportedConversionError(value, target)

    def _to_str(self, value: Any, target: type) -> str:
        if isinstance(value, enum.Enum):
            return target(value.name)
        if isinstance(value, (dt.date, dt.time)):
            return target(value.isoformat())
        if isinstance(value, (bytes, bytearray)):
            return target(base64.b64encode(value).decode("ascii"))
        if isinstance(value, (str, bool, uuid.UUID, pathlib.PurePath, complex) + _NUMBER_TYPES):
            return target(value)
        raise UnsupportedConversionError(value, target)

    def _to_decimal(self, value: Any, target: type) -> decimal.Decimal:
        ctx = self.options.decimal_context
        try:
            if isinstance(value, fractions.Fraction):
                number = decimal.Decimal(value.numerator) / decimal.Decimal(value.denominator)
            elif isinstance(value, (int, float, decimal.Decimal)):
                number = decimal.Decimal(value) if not isinstance(value, float) else decimal.Decimal(repr(value))
            elif isinstance(value, str):
                number = decimal.Decimal(value.strip())
            else:
                raise UnsupportedConversionError(value, target)
        except decimal.InvalidOperation as exc:
            raise UnsupportedConversionError(value, target) from exc
        if ctx is not None:
            number = ctx.create_decimal(number)
        return target(number)

    def _to_fraction(self, value: Any, target: type) -> fractions.Fraction:
        if isinstance(value, (_NUMBER_TYPES, str)) and not isinstance(value, bool):
            try:
                return target(value.strip() if isinstance(value, str) else value)
            except (ValueError, ZeroDivisionError) as exc:
                raise UnsupportedConversionError(value, target) from exc
        raise UnsupportedConversionError(value, target)

    def _to_complex(self, value: Any, target: type) -> complex:
        if isinstance(value, (int, float)):
            return target(value)
        if isinstance(value, str):
            try:
                return target(value.strip().replace(" ", ""))
            except ValueError as exc:
                raise UnsupportedConversionError(value, target) from exc
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return target(value[0], value[1])
        raise UnsupportedConversionError(value, target)

    # --- Enums -----------------------------------------------------------

    def _to_enum(self, value: Any, target: type) -> enum.Enum:
        if isinstance(value, target):
            return value
        if isinstance(value, str):
            member = target.__members__.get(value)
            if member is None:
                raise UnknownEnumConstantError(value, target)
            return member
        if isinstance(value, int) and not isinstance(value, bool) and issubclass(target, (int, enum.Flag)):
            try:
                return target(value)
            except ValueError as exc:
                raise UnknownEnumConstantError(value, target) from exc
        raise UnsupportedConversionError(value, target)

    # --- Temporal --------------------------------------------------------

    def _attach_zone(self, value: dt.datetime) -> dt.datetime:
        zone = self.options.timezone
        if zone is not None and value.tzinfo is None:
            return value.replace(tzinfo=zone)
        return value

    def _parse_datetime(self, text: str, target: type) -> dt.datetime:
        text = text.strip()
        try:
            return dt.datetime.fromisoformat(text)
        except ValueError:
            pass
        for pattern in self.options.date_patterns:
            try:
                return dt.datetime.strptime(text, pattern)
            except ValueError:
                continue
        raise UnsupportedConversionError(text, target)

    def _to_datetime(self, value: Any, target: type) -> dt.datetime:
        if isinstance(value, str):
            parsed = self._attach_zone(self._parse_datetime(value, target))
        elif isinstance(value, dt.datetime):
            parsed = value
        elif isinstance(value, dt.date):
            parsed = self._attach_zone(dt.datetime(value.year, value.month, value.day))
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            # Epoch milliseconds always denote an instant.
            zone = self.options.timezone or dt.timezone.utc
            parsed = dt.datetime.fromtimestamp(value / 1000.0, tz=zone)
        else:
            raise UnsupportedConversionError(value, target)
        if target is not dt.datetime:
            parsed = target.fromisoformat(parsed.isoformat())
        return parsed

    def _to_date(self, value: Any, target: type) -> dt.date:
        if isinstance(value, str):
            text = value.strip()
            try:
                return target.fromisoformat(text)
            except ValueError:
                parsed = self._parse_datetime(text, target)
                return target(parsed.year, parsed.month, parsed.day)
        if isinstance(value, dt.datetime):
            return target(value.year, value.month, value.day)
        if isinstance(value, dt.date):
            return target(value.year, value.month, value.day)
        raise UnsupportedConversionError(value, target)

    def _to_time(self, value: Any, target: type) -> dt.time:
        if isinstance(value, str):
            try:
                return target.fromisoformat(value.strip())
            except ValueError as exc:
                raise UnsupportedConversionError(value, target) from exc
        if isinstance(value, dt.datetime):
            return value.timetz()
        raise UnsupportedConversionError(value, target)

    def _to_timedelta(self, value: Any, target: type) -> dt.timedelta:
        if isinstance(value, int) and not isinstance(value, bool):
            return target(seconds=value)
        if isinstance(value, (float, decimal.Decimal)):
            return target(seconds=float(value))
        if isinstance(value, str):
            # "[-]N day[s], H:MM:SS[.ffffff]" as printed by str(timedelta): only
            # the day count carries a sign. A bare "-H:MM:SS" negates the whole.
            text = value.strip()
            days = 0
            if " day" in text:
                day_part, _, text = text.partition(", ")
                try:
                    days = int(day_part.split(" ")[0])
                except ValueError as exc:
                    raise UnsupportedConversionError(value, target) from exc
            negative = text.startswith("-")
            if negative:
                text = text[1:]
            try:
                hours, minutes, seconds = text.split(":")
                clock = target(hours=int(hours), minutes=int(minutes), seconds=float(seconds))
            except ValueError:
                try:
                    clock = target(seconds=float(text))
                except ValueError as exc:
                    raise UnsupportedConversionError(value, target) from exc
            return target(days=days) + (-clock if negative else clock)
        raise UnsupportedConversionError(value, target)

    # --- Misc ------------------------------------------------------------

    def _to_uuid(self, value: Any, target: type) -> uuid.UUID:
        if isinstance(value, str):
            try:
                return target(value.strip())
            except ValueError as exc:
                raise UnsupportedConversionError(value, target) from exc
        if isinstance(value, int) and not isinstance(value, bool):
            return target(int=value)
        raise UnsupportedConversionError(value, target)

    def _decode_base64(self, value: Any, target: type) -> bytes:
        try:
            return base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise UnsupportedConversionError(value, target) from exc

    def _to_bytes(self, value: Any, target: type) -> bytes:
        if isinstance(value, str):
            return target(self._decode_base64(value, target))
        if isinstance(value, (bytearray, memoryview)):
            return target(value)
        if isinstance(value, list) and all(isinstance(b, int) for b in value):
            return target(value)
        raise UnsupportedConversionError(value, target)

    def _to_bytearray(self, value: Any, target: type) -> bytearray:
        return target(self._to_bytes(value, bytes))

    def _to_path(self, value: Any, target: type) -> pathlib.PurePath:
        if isinstance(value, (str, pathlib.PurePath)):
            return target(value)
        raise UnsupportedConversionError(value, target)
