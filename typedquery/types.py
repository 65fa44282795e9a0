"""
typedquery/types.py

Type witnesses for column values.

Responsibilities:
- Describe each semantic column type once: its Python type, its SQL storage type,
  and the encoder/decoder pair used to move values to and from the backend.
- Keep the witnesses in an explicit registry that columns resolve against when
  they are defined, so call sites never look up conversions on their own.

Supported types (default registry):
    INTEGER, TEXT, REAL, BOOLEAN, DATE, DATETIME, DECIMAL, BLOB, UUID

Design notes:
- None is SQL NULL for every witness and passes through encode/decode untouched.
- Encoding checks the Python type of the value (a wrong type is a QueryError).
- Decoding failures are DecodeError: the backend returned data the engine did not write.
- Text storage is canonical, so backend equality is Python equality. Aware
  datetimes are stored in UTC. DECIMAL text does not sort numerically, so the
  DECIMAL witness is not orderable.
"""

from __future__ import annotations

import datetime as dt
import decimal
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

from .errors import DecodeError, QueryError, SchemaError

T = TypeVar("T")


@dataclass(frozen=True)
class TypeWitness(Generic[T]):
    """
    Encoder/decoder pair for one semantic type.

    Attributes:
        name: Uppercased type name, e.g. "INTEGER".
        python_type: Type of decoded values.
        sql_type: Column type used in DDL.
        encode: Python value -> backend value.
        decode: Backend value -> Python value.
        integral: Whether the backend can auto-increment columns of this type.
        orderable: Whether backend ordering of encoded values matches Python ordering.
                   Ordering predicates and MIN / MAX are rejected when False.
        accepts: Extra Python types accepted when encoding (e.g. int for REAL).
        rejects: Subclasses of python_type that must not be accepted (e.g. bool for INTEGER).
    """
    name: str
    python_type: type
    sql_type: str
    encode: Callable[[Any], Any] = field(repr=False)
    decode: Callable[[Any], Any] = field(repr=False)
    integral: bool = False
    orderable: bool = True
    accepts: tuple[type, ...] = ()
    rejects: tuple[type, ...] = ()

    def check(self, value: Any) -> bool:
        """Return True if `value` can be written through this witness."""
        if value is None:
            return True
        if isinstance(value, self.rejects):
            return False
        return isinstance(value, (self.python_type, *self.accepts))

    def encode_value(self, value: Any) -> Any:
        """
        Encode a Python value for the backend.

        Raises:
            QueryError: if the value has the wrong Python type or cannot be encoded.
        """
        if value is None:
            return None
        if not self.check(value):
            raise QueryError(
                f"Type error: {self.name} expects {self.python_type.__name__}, got {type(value).__name__}"
            )
        try:
            return self.encode(value)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise QueryError(f"Cannot encode {value!r} as {self.name}: {e}") from e

    def decode_value(self, raw: Any) -> Any:
        """
        Decode a backend value.

        Raises:
            DecodeError: if the backend value cannot be interpreted.
        """
        if raw is None:
            return None
        try:
            return self.decode(raw)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise DecodeError(f"Cannot decode {raw!r} as {self.name}: {e}") from e


# ---------- decoders ----------
# Decoders are strict about the backend representation: a value of the wrong
# storage class means the column was written by something other than its witness.

def _decode_int(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise TypeError(f"expected integer storage, got {type(raw).__name__}")
    return raw


def _decode_text(raw: Any) -> str:
    if not isinstance(raw, str):
        raise TypeError(f"expected text storage, got {type(raw).__name__}")
    return raw


def _decode_real(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise TypeError(f"expected real storage, got {type(raw).__name__}")
    return float(raw)


def _decode_bool(raw: Any) -> bool:
    if raw in (0, 1) and not isinstance(raw, float):
        return bool(raw)
    raise ValueError("expected 0 or 1")


def _decode_date(raw: Any) -> dt.date:
    return dt.date.fromisoformat(_decode_text(raw))


def _decode_datetime(raw: Any) -> dt.datetime:
    return dt.datetime.fromisoformat(_decode_text(raw))


def _decode_decimal(raw: Any) -> decimal.Decimal:
    if isinstance(raw, (str, int)) and not isinstance(raw, bool):
        return decimal.Decimal(raw)
    raise TypeError(f"expected text storage, got {type(raw).__name__}")


def _decode_blob(raw: Any) -> bytes:
    if not isinstance(raw, (bytes, bytearray, memoryview)):
        raise TypeError(f"expected blob storage, got {type(raw).__name__}")
    return bytes(raw)


def _decode_uuid(raw: Any) -> uuid.UUID:
    return uuid.UUID(_decode_text(raw))


# ---------- encoders ----------
# Text encodings must be canonical (one string per value) so that equality in
# the backend matches Python equality.

def _encode_datetime(value: dt.datetime) -> str:
    # Aware values are stored in UTC so text order follows time order.
    if value.tzinfo is not None and value.utcoffset() is not None:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat(timespec="microseconds")


def _encode_decimal(value: decimal.Decimal) -> str:
    if not value.is_finite():
        raise ValueError("only finite decimals can be stored")
    if value.is_zero():
        return "0"
    digits = len(value.as_tuple().digits)
    return format(value.normalize(decimal.Context(prec=digits)), "f")


INTEGER: TypeWitness[int] = TypeWitness(
    name="INTEGER",
    python_type=int,
    sql_type="INTEGER",
    encode=int,
    decode=_decode_int,
    integral=True,
    rejects=(bool,),
)

TEXT: TypeWitness[str] = TypeWitness(
    name="TEXT",
    python_type=str,
    sql_type="TEXT",
    encode=str,
    decode=_decode_text,
)

REAL: TypeWitness[float] = TypeWitness(
    name="REAL",
    python_type=float,
    sql_type="REAL",
    encode=float,
    decode=_decode_real,
    accepts=(int,),
    rejects=(bool,),
)

BOOLEAN: TypeWitness[bool] = TypeWitness(
    name="BOOLEAN",
    python_type=bool,
    sql_type="INTEGER",
    encode=int,
    decode=_decode_bool,
)

DATE: TypeWitness[dt.date] = TypeWitness(
    name="DATE",
    python_type=dt.date,
    sql_type="TEXT",
    encode=lambda v: v.isoformat(),
    decode=_decode_date,
    rejects=(dt.datetime,),
)

DATETIME: TypeWitness[dt.datetime] = TypeWitness(
    name="DATETIME",
    python_type=dt.datetime,
    sql_type="TEXT",
    encode=_encode_datetime,
    decode=_decode_datetime,
)

DECIMAL: TypeWitness[decimal.Decimal] = TypeWitness(
    name="DECIMAL",
    python_type=decimal.Decimal,
    sql_type="TEXT",
    encode=_encode_decimal,
    decode=_decode_decimal,
    orderable=False,
)

BLOB: TypeWitness[bytes] = TypeWitness(
    name="BLOB",
    python_type=bytes,
    sql_type="BLOB",
    encode=bytes,
    decode=_decode_blob,
    accepts=(bytearray,),
)

UUID: TypeWitness[uuid.UUID] = TypeWitness(
    name="UUID",
    python_type=uuid.UUID,
    sql_type="TEXT",
    encode=str,
    decode=_decode_uuid,
)

BUILTIN_TYPES: tuple[TypeWitness, ...] = (
    INTEGER,
    TEXT,
    REAL,
    BOOLEAN,
    DATE,
    DATETIME,
    DECIMAL,
    BLOB,
    UUID,
)


class TypeRegistry:
    """
    Registry of type witnesses, keyed by name and by Python type.

    A column resolves its witness here once, when it is defined.
    """

    def __init__(self, witnesses: tuple[TypeWitness, ...] = ()):
        self._by_name: dict[str, TypeWitness] = {}
        self._by_type: dict[type, TypeWitness] = {}
        for w in witnesses:
            self.register(w)

    def register(self, witness: TypeWitness) -> TypeWitness:
        """
        Register a witness.

        Raises:
            SchemaError: if a witness with the same name is already registered.
        """
        key = witness.name.upper()
        if key in self._by_name:
            raise SchemaError(f"Type already registered: {witness.name}")
        self._by_name[key] = witness
        self._by_type.setdefault(witness.python_type, witness)
        return witness

    def resolve(self, typ: TypeWitness | str | type) -> TypeWitness:
        """
        Resolve a witness from a witness, a type name, or a Python type.

        Raises:
            SchemaError: if nothing matches.
        """
        if isinstance(typ, TypeWitness):
            if self._by_name.get(typ.name.upper()) is not typ:
                raise SchemaError(f"Type not registered: {typ.name}")
            return typ
        if isinstance(typ, str):
            w = self._by_name.get(typ.upper())
        elif isinstance(typ, type):
            w = self._by_type.get(typ)
        else:
            w = None
        if w is None:
            raise SchemaError(f"Unsupported type: {typ!r}")
        return w

    def names(self) -> list[str]:
        """Return registered type names in registration order."""
        return list(self._by_name)

    def __contains__(self, name: str) -> bool:
        return name.upper() in self._by_name


def default_registry() -> TypeRegistry:
    """Create a registry holding the built-in witnesses."""
    return TypeRegistry(BUILTIN_TYPES)


DEFAULT_REGISTRY = default_registry()
