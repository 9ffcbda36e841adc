"""
Field type system.

A field type is a stateless codec shared by every instance of a struct
class. It converts between wire bytes and the Python value stored for a
field, given the field's FieldDef and the owning struct instance:

    decode(data, fdef, owner) -> (value, consumed)
    encode(value, fdef, owner) -> bytes
    size(value, fdef, owner)   -> int

Per-field parameters (default, optionality, enum table, length source,
element counter) live on the FieldDef, not on the type, so a single
``Int16`` or ``String`` instance serves every field declared with it.
"""

from __future__ import annotations

import inspect
import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping

from pktcraft.core.errors import InvalidFieldValueError, TruncatedInputError

if TYPE_CHECKING:
    from pktcraft.core.struct import Struct


def _call_with_owner(func: Callable, owner: Struct) -> Any:
    """Call a zero- or one-argument callable, passing owner if it takes one."""
    try:
        params = inspect.signature(func).parameters
    except (TypeError, ValueError):
        return func(owner)
    if not params:
        return func()
    return func(owner)


def _is_struct(value: Any) -> bool:
    return hasattr(type(value), '_schema')


def _need(data, needed: int, fdef: FieldDef) -> None:
    if len(data) < needed:
        raise TruncatedInputError(fdef.name, needed, len(data))


@dataclass(frozen=True)
class FieldDef:
    """
    Declaration of one field in a struct schema.

    Attributes:
        name: Field name (also the attribute name on instances)
        type: Field type codec
        default: Static value, or callable evaluated against the owner
        optional: Predicate on the owner; field is absent when it is false
        enum: Name -> integer table for integer fields
        length_from: Length source: None (rest of buffer), int (fixed),
            str (sibling field name) or callable on the owner
        counter: Sibling field holding an element count (arrays)
    """
    name: str
    type: FieldType
    default: Any = None
    optional: Callable[[Struct], bool] | None = None
    enum: Mapping[str, int] | None = None
    length_from: int | str | Callable[[Struct], int] | None = None
    counter: str | None = None

    def is_present(self, owner: Struct) -> bool:
        return self.optional is None or bool(self.optional(owner))

    def length(self, owner: Struct) -> int | None:
        """Resolve the length source against owner. None means 'rest'."""
        source = self.length_from
        if source is None:
            return None
        if isinstance(source, int):
            length = source
        elif isinstance(source, str):
            length = int(owner[source])
        else:
            length = int(source(owner))
        return max(length, 0)

    def count(self, owner: Struct) -> int | None:
        if self.counter is None:
            return None
        return int(owner[self.counter])

    def initial_value(self, owner: Struct) -> Any:
        default = self.default
        if callable(default) and not isinstance(default, type):
            default = _call_with_owner(default, owner)
        if default is None:
            return self.type.default_value(self)
        return self.type.coerce(default, self)


@dataclass(frozen=True)
class BitField:
    """
    Named sub-field packed in an integer field.

    A 1-bit field reads as a bool; wider fields read as unsigned integers.
    Writes only touch this field's bits and mask excess value bits.
    """
    name: str
    parent: str
    width: int
    shift: int

    @property
    def mask(self) -> int:
        return ((1 << self.width) - 1) << self.shift

    def get(self, parent_value: int) -> int | bool:
        value = (int(parent_value) >> self.shift) & ((1 << self.width) - 1)
        if self.width == 1:
            return value != 0
        return value

    def set(self, parent_value: int, value: int | bool) -> int:
        if self.width == 1:
            bits = 1 if value else 0
        else:
            bits = int(value) & ((1 << self.width) - 1)
        return (int(parent_value) & ~self.mask) | (bits << self.shift)


class FieldType:
    """Base class for field type codecs."""

    def default_value(self, fdef: FieldDef) -> Any:
        return None

    def decode(self, data, fdef: FieldDef, owner: Struct) -> tuple[Any, int]:
        raise NotImplementedError

    def encode(self, value: Any, fdef: FieldDef, owner: Struct) -> bytes:
        raise NotImplementedError

    def size(self, value: Any, fdef: FieldDef, owner: Struct) -> int:
        return len(self.encode(value, fdef, owner))

    def coerce(self, value: Any, fdef: FieldDef) -> Any:
        """Convert an assigned value to the stored representation."""
        return value

    def get(self, value: Any, fdef: FieldDef) -> Any:
        """Value returned by attribute access on the owner."""
        return value

    def to_human(self, value: Any, fdef: FieldDef) -> Any:
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IntType(FieldType):
    """Fixed-width integer, big or little endian, signed or not."""

    _FORMATS = {8: 'B', 16: 'H', 32: 'I', 64: 'Q'}

    def __init__(self, bits: int, endian: str = 'big', signed: bool = False):
        if bits not in (8, 16, 24, 32, 64):
            raise ValueError(f"unsupported integer width: {bits}")
        if endian not in ('big', 'little'):
            raise ValueError(f"unknown endianness: {endian!r}")
        self.bits = bits
        self.width = bits // 8
        self.endian = endian
        self.signed = signed
        self.mask = (1 << bits) - 1
        fmt = self._FORMATS.get(bits)
        if fmt is not None:
            prefix = '>' if endian == 'big' else '<'
            self._struct = struct.Struct(prefix + (fmt.lower() if signed else fmt))
        else:
            self._struct = None

    def default_value(self, fdef: FieldDef) -> int:
        if fdef.enum:
            return next(iter(fdef.enum.values()))
        return 0

    def decode(self, data, fdef: FieldDef, owner: Struct) -> tuple[int, int]:
        _need(data, self.width, fdef)
        if self._struct is not None:
            return self._struct.unpack_from(data)[0], self.width
        value = int.from_bytes(bytes(data[:self.width]), self.endian, signed=self.signed)
        return value, self.width

    def encode(self, value: int, fdef: FieldDef, owner: Struct) -> bytes:
        value = int(value) & self.mask
        if self.signed and value > self.mask >> 1:
            value -= 1 << self.bits
        if self._struct is not None:
            return self._struct.pack(value)
        return value.to_bytes(self.width, self.endian, signed=self.signed)

    def size(self, value: int, fdef: FieldDef, owner: Struct) -> int:
        return self.width

    def coerce(self, value: Any, fdef: FieldDef) -> int:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            if fdef.enum is None:
                raise InvalidFieldValueError(
                    f"field {fdef.name!r} expects an integer, got {value!r}")
            try:
                return fdef.enum[value]
            except KeyError:
                raise InvalidFieldValueError(
                    f"{value!r} not in enumeration of field {fdef.name!r}") from None
        if isinstance(value, (bytes, bytearray, memoryview)):
            return self.decode(memoryview(value), fdef, None)[0]
        raise InvalidFieldValueError(
            f"field {fdef.name!r} expects an integer, got {type(value).__name__}")

    def to_human(self, value: int, fdef: FieldDef) -> int | str:
        if fdef.enum is None:
            return value
        for name, enum_value in fdef.enum.items():
            if enum_value == value:
                return name
        return value

    def __repr__(self) -> str:
        sign = 'S' if self.signed else ''
        suffix = 'le' if self.endian == 'little' and self.width > 1 else ''
        return f"{sign}Int{self.bits}{suffix}"


def _to_bytes(value: Any, fdef: FieldDef) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode('utf-8')
    raise InvalidFieldValueError(
        f"field {fdef.name!r} expects bytes, got {type(value).__name__}")


class ByteString(FieldType):
    """
    Raw byte string.

    Length comes from the FieldDef: fixed, sibling field, callback, or the
    rest of the buffer when no length source is declared.
    """

    def default_value(self, fdef: FieldDef) -> bytes:
        if isinstance(fdef.length_from, int):
            return bytes(fdef.length_from)
        return b''

    def decode(self, data, fdef: FieldDef, owner: Struct) -> tuple[bytes, int]:
        length = fdef.length(owner)
        if length is None:
            return bytes(data), len(data)
        _need(data, length, fdef)
        return bytes(data[:length]), length

    def encode(self, value: bytes, fdef: FieldDef, owner: Struct) -> bytes:
        if isinstance(fdef.length_from, int):
            return value[:fdef.length_from].ljust(fdef.length_from, b'\x00')
        return value

    def size(self, value: bytes, fdef: FieldDef, owner: Struct) -> int:
        if isinstance(fdef.length_from, int):
            return fdef.length_from
        return len(value)

    def coerce(self, value: Any, fdef: FieldDef) -> bytes:
        return _to_bytes(value, fdef)

    def __repr__(self) -> str:
        return "String"


class NulTerminatedString(FieldType):
    """NUL-terminated string, optionally padded to a fixed length."""

    def default_value(self, fdef: FieldDef) -> bytes:
        return b''

    def decode(self, data, fdef: FieldDef, owner: Struct) -> tuple[bytes, int]:
        length = fdef.length(owner)
        if length is not None:
            _need(data, length, fdef)
            return bytes(data[:length]).split(b'\x00', 1)[0], length
        raw = bytes(data)
        idx = raw.find(b'\x00')
        if idx < 0:
            raise TruncatedInputError(fdef.name, len(raw) + 1, len(raw))
        return raw[:idx], idx + 1

    def encode(self, value: bytes, fdef: FieldDef, owner: Struct) -> bytes:
        if isinstance(fdef.length_from, int):
            length = fdef.length_from
            return (value[:length - 1] + b'\x00').ljust(length, b'\x00')
        return value + b'\x00'

    def size(self, value: bytes, fdef: FieldDef, owner: Struct) -> int:
        if isinstance(fdef.length_from, int):
            return fdef.length_from
        return len(value) + 1

    def coerce(self, value: Any, fdef: FieldDef) -> bytes:
        return _to_bytes(value, fdef).split(b'\x00', 1)[0]

    def to_human(self, value: bytes, fdef: FieldDef) -> str:
        return value.decode('utf-8', errors='replace')

    def __repr__(self) -> str:
        return "CString"


class StructType(FieldType):
    """A struct class embedded as a field (addresses, options, ...)."""

    def __init__(self, klass: type[Struct]):
        self.klass = klass

    @property
    def _human(self) -> bool:
        return (callable(getattr(self.klass, 'from_human', None))
                and callable(getattr(self.klass, 'to_human', None)))

    def default_value(self, fdef: FieldDef) -> Struct:
        return self.klass()

    def decode(self, data, fdef: FieldDef, owner: Struct) -> tuple[Struct, int]:
        return self.klass.deserialize(data)

    def encode(self, value: Struct, fdef: FieldDef, owner: Struct) -> bytes:
        return value.to_bytes()

    def size(self, value: Struct, fdef: FieldDef, owner: Struct) -> int:
        return value.size()

    def coerce(self, value: Any, fdef: FieldDef) -> Struct:
        if isinstance(value, self.klass):
            return value
        if isinstance(value, str) and self._human:
            return self.klass.from_human(value)
        if isinstance(value, dict):
            return self.klass(**value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return self.klass.deserialize(value)[0]
        raise InvalidFieldValueError(
            f"field {fdef.name!r} expects {self.klass.__name__}, got {type(value).__name__}")

    def get(self, value: Struct, fdef: FieldDef) -> Any:
        if self._human:
            return value.to_human()
        return value

    def to_human(self, value: Struct, fdef: FieldDef) -> Any:
        if self._human:
            return value.to_human()
        return value.to_dict()

    def __repr__(self) -> str:
        return f"StructType({self.klass.__name__})"


class ArrayOf(FieldType):
    """
    Repeated elements.

    The element count comes from the FieldDef's ``counter`` field, the byte
    budget from its ``length_from``; without either, elements are read until
    the buffer is exhausted.
    """

    def __init__(self, element: FieldType | type[Struct]):
        if not isinstance(element, FieldType):
            element = StructType(element)
        self.element = element
        self._item = FieldDef('item', element)

    def default_value(self, fdef: FieldDef) -> list:
        return []

    def decode(self, data, fdef: FieldDef, owner: Struct) -> tuple[list, int]:
        length = fdef.length(owner)
        if length is not None:
            _need(data, length, fdef)
            data = data[:length]
        count = fdef.count(owner)

        items = []
        offset = 0
        while offset < len(data):
            if count is not None and len(items) >= count:
                break
            item, used = self.element.decode(data[offset:], self._item, owner)
            if used == 0:
                break
            items.append(item)
            offset += used

        if count is not None and len(items) < count:
            raise TruncatedInputError(fdef.name, offset + 1, len(data))
        return items, offset

    def encode(self, value: list, fdef: FieldDef, owner: Struct) -> bytes:
        return b''.join(self.element.encode(item, self._item, owner) for item in value)

    def size(self, value: list, fdef: FieldDef, owner: Struct) -> int:
        return sum(self.element.size(item, self._item, owner) for item in value)

    def coerce(self, value: Any, fdef: FieldDef) -> list:
        if not isinstance(value, (list, tuple)):
            raise InvalidFieldValueError(
                f"field {fdef.name!r} expects a list, got {type(value).__name__}")
        return [self.element.coerce(item, self._item) for item in value]

    def to_human(self, value: list, fdef: FieldDef) -> list:
        return [self.element.to_human(item, self._item) for item in value]

    def __repr__(self) -> str:
        return f"ArrayOf({self.element!r})"


class BodyType(FieldType):
    """Header body: raw trailing bytes or a nested header."""

    def default_value(self, fdef: FieldDef) -> bytes:
        return b''

    def decode(self, data, fdef: FieldDef, owner: Struct) -> tuple[bytes, int]:
        return bytes(data), len(data)

    def encode(self, value: Any, fdef: FieldDef, owner: Struct) -> bytes:
        if _is_struct(value):
            return value.to_bytes()
        return value

    def size(self, value: Any, fdef: FieldDef, owner: Struct) -> int:
        if _is_struct(value):
            return value.size()
        return len(value)

    def coerce(self, value: Any, fdef: FieldDef) -> Any:
        if _is_struct(value):
            return value
        return _to_bytes(value, fdef)

    def to_human(self, value: Any, fdef: FieldDef) -> Any:
        if _is_struct(value):
            return value.to_dict()
        return value

    def __repr__(self) -> str:
        return "Body"


Int8 = IntType(8)
Int16 = IntType(16)
Int16le = IntType(16, 'little')
Int24 = IntType(24)
Int24le = IntType(24, 'little')
Int32 = IntType(32)
Int32le = IntType(32, 'little')
Int64 = IntType(64)
Int64le = IntType(64, 'little')
SInt8 = IntType(8, signed=True)
SInt16 = IntType(16, signed=True)
SInt16le = IntType(16, 'little', signed=True)
SInt32 = IntType(32, signed=True)
SInt32le = IntType(32, 'little', signed=True)
SInt64 = IntType(64, signed=True)

String = ByteString()
CString = NulTerminatedString()
Body = BodyType()
