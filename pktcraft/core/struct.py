"""
Struct engine.

A Struct subclass declares its wire layout once, in a ``describe``
classmethod that receives a Schema builder:

    class Option(Struct):
        @classmethod
        def describe(cls, schema):
            schema.define_field('type', Int8)
            schema.define_field('length', Int8, default=2)
            schema.define_field('data', String,
                                length_from=lambda opt: opt.length - 2)

The schema is built when the class is created and is shared, read-only,
by every instance. Subclasses start from a copy of their parent's schema.
Instances are serialized and deserialized by walking the schema in
declaration order.
"""

from __future__ import annotations

import copy
import dataclasses
from typing import Any, Iterable

from pktcraft.core.types import BitField, FieldDef, FieldType, IntType, StructType


def as_field_type(ftype: FieldType | type) -> FieldType:
    """Accept a field type instance or a Struct subclass."""
    if isinstance(ftype, FieldType):
        return ftype
    if isinstance(ftype, type) and issubclass(ftype, Struct):
        return StructType(ftype)
    raise TypeError(f"not a field type: {ftype!r}")


class Schema:
    """Ordered field declarations and bit-field groups of a struct class."""

    def __init__(self):
        self._fields: dict[str, FieldDef] = {}
        self._bit_fields: dict[str, BitField] = {}

    def copy(self) -> Schema:
        schema = Schema()
        schema._fields = dict(self._fields)
        schema._bit_fields = dict(self._bit_fields)
        return schema

    @property
    def fields(self) -> tuple[FieldDef, ...]:
        return tuple(self._fields.values())

    @property
    def bit_fields(self) -> tuple[BitField, ...]:
        return tuple(self._bit_fields.values())

    def names(self) -> list[str]:
        return list(self._fields)

    def get(self, name: str) -> FieldDef | None:
        return self._fields.get(name)

    def bit_field(self, name: str) -> BitField | None:
        return self._bit_fields.get(name)

    def bit_fields_on(self, parent: str) -> list[BitField]:
        return [bf for bf in self._bit_fields.values() if bf.parent == parent]

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __getitem__(self, name: str) -> FieldDef:
        return self._fields[name]

    def __len__(self) -> int:
        return len(self._fields)

    def define_field(self, name: str, ftype: FieldType | type, **options) -> FieldDef:
        """
        Append a field.

        Args:
            name: Field name
            ftype: Field type instance, or a Struct subclass to embed
            **options: default, optional, enum, length_from, counter
        """
        if name in self._fields or name in self._bit_fields:
            raise ValueError(f"field {name!r} already defined")
        fdef = FieldDef(name, as_field_type(ftype), **options)
        self._fields[name] = fdef
        return fdef

    def define_field_before(self, other: str, name: str, ftype, **options) -> FieldDef:
        self._check_existence(other)
        fdef = self.define_field(name, ftype, **options)
        self._move(name, self.names().index(other))
        return fdef

    def define_field_after(self, other: str, name: str, ftype, **options) -> FieldDef:
        self._check_existence(other)
        fdef = self.define_field(name, ftype, **options)
        self._move(name, self.names().index(other) + 1)
        return fdef

    def update_field(self, name: str, **options) -> FieldDef:
        """Change declaration options (default, optional, ...) of a field."""
        self._check_existence(name)
        fdef = dataclasses.replace(self._fields[name], **options)
        self._fields[name] = fdef
        return fdef

    def remove_field(self, name: str) -> None:
        self._check_existence(name)
        del self._fields[name]
        self.remove_bit_group(name)

    def define_bit_group(self, parent: str, specs: Iterable) -> list[BitField]:
        """
        Split an integer field into named bit-fields, most significant first.

        Each spec is a name (1 bit) or a ``(name, width)`` pair. A name of
        ``None`` or ``'_'`` reserves bits without defining an accessor.
        Widths must add up to the parent field's width.
        """
        self._check_existence(parent)
        ftype = self._fields[parent].type
        if not isinstance(ftype, IntType):
            raise TypeError(f"{parent!r} is not an integer field")
        if self.bit_fields_on(parent):
            raise ValueError(f"bit-fields already defined on {parent!r}")

        parsed = []
        for spec in specs:
            if isinstance(spec, tuple):
                name, width = spec
            else:
                name, width = spec, 1
            if width < 1:
                raise ValueError(f"bit-field {name!r} must be at least 1 bit wide")
            parsed.append((name, width))

        total = sum(width for _, width in parsed)
        if total != ftype.bits:
            raise ValueError(
                f"bit-fields on {parent!r} cover {total} bits, field has {ftype.bits}")

        defined = []
        idx = ftype.bits
        for name, width in parsed:
            idx -= width
            if name is None or name == '_':
                continue
            if name in self._fields or name in self._bit_fields:
                raise ValueError(f"field {name!r} already defined")
            bit = BitField(name, parent, width, idx)
            self._bit_fields[name] = bit
            defined.append(bit)
        return defined

    def remove_bit_group(self, parent: str) -> None:
        for bit in self.bit_fields_on(parent):
            del self._bit_fields[bit.name]

    def _check_existence(self, name: str) -> None:
        if name not in self._fields:
            raise ValueError(f"unknown field {name!r}")

    def _move(self, name: str, index: int) -> None:
        items = [(k, v) for k, v in self._fields.items() if k != name]
        items.insert(index, (name, self._fields[name]))
        self._fields = dict(items)


class Struct:
    """
    Base class for binary records.

    Field values are reached three ways:
      - ``obj['name']`` returns the stored value (e.g. an address struct),
      - ``obj.name`` returns the human view (e.g. ``'10.0.0.1'``) for types
        that have one, the stored value otherwise; bit-fields are attributes,
      - assignment through either path coerces the value to the field type.
    """

    _schema = Schema()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        schema = cls._schema.copy()
        if 'describe' in cls.__dict__:
            cls.describe(schema)
        names = schema.names() + [bit.name for bit in schema.bit_fields]
        for name in names:
            if hasattr(cls, name):
                raise TypeError(f"field {name!r} of {cls.__name__} shadows a class attribute")
        cls._schema = schema

    @classmethod
    def describe(cls, schema: Schema) -> None:
        """Declare fields on schema. Overridden by subclasses."""

    def __init__(self, **options):
        object.__setattr__(self, '_values', {})
        schema = self._schema
        for fdef in schema.fields:
            value = options.pop(fdef.name, None)
            if value is None:
                value = fdef.initial_value(self)
            else:
                value = fdef.type.coerce(value, fdef)
            self._values[fdef.name] = value

        for name, value in options.items():
            bit = schema.bit_field(name)
            if bit is None:
                raise TypeError(f"{type(self).__name__} has no field {name!r}")
            if value is not None:
                self._values[bit.parent] = bit.set(self._values[bit.parent], value)

    # -- schema access --

    @classmethod
    def fields(cls) -> list[str]:
        """Field names in wire order."""
        return cls._schema.names()

    @classmethod
    def bit_fields_on(cls, name: str) -> list[str]:
        return [bit.name for bit in cls._schema.bit_fields_on(name)]

    def present(self, name: str) -> bool:
        """Whether an optional field is currently part of the wire layout."""
        return self._schema[name].is_present(self)

    # -- deserialize --

    @classmethod
    def deserialize(cls, data) -> tuple[Struct, int]:
        """Build an instance from data. Returns (instance, bytes consumed)."""
        obj = cls()
        consumed = obj._decode(data)
        return obj, consumed

    def read(self, data) -> Struct:
        """Populate this instance from data."""
        self._decode(data)
        return self

    def _decode(self, data) -> int:
        view = data if isinstance(data, memoryview) else memoryview(bytes(data))
        offset = 0
        for fdef in self._schema.fields:
            if not fdef.is_present(self):
                continue
            value, consumed = fdef.type.decode(view[offset:], fdef, self)
            self._values[fdef.name] = value
            offset += consumed
        return offset

    # -- serialize --

    def to_bytes(self) -> bytes:
        values = self._values
        return b''.join(
            fdef.type.encode(values[fdef.name], fdef, self)
            for fdef in self._schema.fields
            if fdef.is_present(self)
        )

    serialize = to_bytes

    def __bytes__(self) -> bytes:
        return self.to_bytes()

    def size(self) -> int:
        """Serialized length, computed without serializing."""
        values = self._values
        return sum(
            fdef.type.size(values[fdef.name], fdef, self)
            for fdef in self._schema.fields
            if fdef.is_present(self)
        )

    def offset_of(self, name: str) -> int:
        """Byte offset of a field in the serialized struct."""
        if name not in self._schema:
            raise ValueError(f"{name!r} is an unknown field of {type(self).__name__}")
        offset = 0
        for fdef in self._schema.fields:
            if fdef.name == name:
                break
            if fdef.is_present(self):
                offset += fdef.type.size(self._values[fdef.name], fdef, self)
        return offset

    # -- value access --

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        fdef = self._schema[name]
        self._values[name] = fdef.type.coerce(value, fdef)

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        schema = type(self)._schema
        values = self._values
        fdef = schema.get(name)
        if fdef is not None and name in values:
            return fdef.type.get(values[name], fdef)
        bit = schema.bit_field(name)
        if bit is not None and bit.parent in values:
            return bit.get(values[bit.parent])
        if fdef is not None or bit is not None:
            # only reachable from defaults of fields declared earlier
            raise AttributeError(f"{type(self).__name__} field {name!r} is not set yet")
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        schema = type(self)._schema
        fdef = schema.get(name)
        if fdef is not None:
            self._values[name] = fdef.type.coerce(value, fdef)
            return
        bit = schema.bit_field(name)
        if bit is not None:
            self._values[bit.parent] = bit.set(self._values[bit.parent], value)
            return
        object.__setattr__(self, name, value)

    def to_dict(self) -> dict[str, Any]:
        """Human view of present fields, with bit-fields after their parent."""
        schema = self._schema
        result = {}
        for fdef in schema.fields:
            if not fdef.is_present(self):
                continue
            value = self._values[fdef.name]
            result[fdef.name] = fdef.type.to_human(value, fdef)
            for bit in schema.bit_fields_on(fdef.name):
                result[bit.name] = bit.get(value)
        return result

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of field values, for restore()."""
        return dict(self._values)

    def restore(self, values: dict[str, Any]) -> None:
        self._values.clear()
        self._values.update(values)

    def copy(self) -> Struct:
        return copy.deepcopy(self)

    def __deepcopy__(self, memo):
        clone = object.__new__(type(self))
        memo[id(self)] = clone
        for key, value in self.__dict__.items():
            object.__setattr__(clone, key, copy.deepcopy(value, memo))
        return clone

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._values == other._values

    __hash__ = None

    def __repr__(self) -> str:
        parts = ', '.join(f"{name}={value!r}" for name, value in self._values.items())
        return f"{type(self).__name__}({parts})"
