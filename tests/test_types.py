"""Test field types."""

import pytest

from pktcraft.core.errors import InvalidFieldValueError, TruncatedInputError
from pktcraft.core.struct import Struct
from pktcraft.core.types import (
    ArrayOf,
    BitField,
    CString,
    FieldDef,
    Int8,
    Int16,
    Int16le,
    Int24,
    Int24le,
    Int32le,
    Int64,
    IntType,
    SInt8,
    SInt16,
    String,
)


def _decode(ftype, data, **options):
    return ftype.decode(memoryview(data), FieldDef('f', ftype, **options), None)


def _encode(ftype, value, **options):
    return ftype.encode(value, FieldDef('f', ftype, **options), None)


class TestIntegers:
    """Test fixed-width integers."""

    def test_decode_widths(self):
        assert _decode(Int8, b'\xff') == (255, 1)
        assert _decode(Int16, b'\x01\x02') == (0x0102, 2)
        assert _decode(Int16le, b'\x01\x02') == (0x0201, 2)
        assert _decode(Int24, b'\x01\x02\x03') == (0x010203, 3)
        assert _decode(Int24le, b'\x01\x02\x03') == (0x030201, 3)
        assert _decode(Int32le, b'\x01\x00\x00\x00') == (1, 4)
        assert _decode(Int64, b'\x00' * 7 + b'\x2a') == (42, 8)

    def test_decode_ignores_trailing_bytes(self):
        assert _decode(Int16, b'\x00\x05\xff\xff') == (5, 2)

    def test_signed(self):
        assert _decode(SInt8, b'\xff') == (-1, 1)
        assert _decode(SInt16, b'\x80\x00') == (-32768, 2)
        assert _encode(SInt16, -2) == b'\xff\xfe'

    def test_encode_masks_to_width(self):
        assert _encode(Int8, 0x1ff) == b'\xff'
        assert _encode(Int16, 0x12345) == b'\x23\x45'
        assert _encode(Int24, 0x01020304) == b'\x02\x03\x04'

    def test_truncated(self):
        with pytest.raises(TruncatedInputError) as exc_info:
            _decode(Int32le, b'\x00\x01')
        assert exc_info.value.field == 'f'
        assert exc_info.value.needed == 4
        assert exc_info.value.available == 2

    def test_unsupported_width(self):
        with pytest.raises(ValueError):
            IntType(12)
        with pytest.raises(ValueError):
            IntType(16, endian='middle')

    def test_repr(self):
        assert repr(Int16le) == 'Int16le'
        assert repr(SInt8) == 'SInt8'


class TestEnum:
    """Test integer enumerations."""

    TABLE = {'request': 1, 'reply': 2}

    def test_default_is_first_value(self):
        fdef = FieldDef('op', Int16, enum=self.TABLE)
        assert Int16.default_value(fdef) == 1

    def test_name_is_coerced(self):
        fdef = FieldDef('op', Int16, enum=self.TABLE)
        assert Int16.coerce('reply', fdef) == 2

    def test_unknown_name_rejected(self):
        fdef = FieldDef('op', Int16, enum=self.TABLE)
        with pytest.raises(InvalidFieldValueError):
            Int16.coerce('bogus', fdef)

    def test_unknown_value_passes_through(self):
        fdef = FieldDef('op', Int16, enum=self.TABLE)
        assert Int16.coerce(99, fdef) == 99
        assert Int16.to_human(99, fdef) == 99
        assert Int16.to_human(2, fdef) == 'reply'

    def test_string_without_enum_rejected(self):
        with pytest.raises(InvalidFieldValueError):
            Int8.coerce('1', FieldDef('x', Int8))

    def test_bool_and_bytes_coerced(self):
        fdef = FieldDef('x', Int16)
        assert Int16.coerce(True, fdef) == 1
        assert Int16.coerce(b'\x01\x00', fdef) == 256


class TestBitField:
    """Test bit-field helper."""

    def test_mask_and_shift(self):
        bit = BitField('vid', 'tci', 12, 0)
        assert bit.mask == 0x0fff
        assert bit.get(0xb064) == 100

    def test_single_bit_is_bool(self):
        bit = BitField('dei', 'tci', 1, 12)
        assert bit.get(0x1000) is True
        assert bit.get(0x0fff) is False
        assert bit.set(0, True) == 0x1000

    def test_set_keeps_other_bits(self):
        bit = BitField('pcp', 'tci', 3, 13)
        assert bit.set(0x1fff, 5) == 0xbfff

    def test_set_masks_excess_bits(self):
        bit = BitField('pcp', 'tci', 3, 13)
        assert bit.set(0, 0xff) == 0xe000


class TestByteString:
    """Test byte strings."""

    def test_rest_of_buffer(self):
        assert _decode(String, b'abc') == (b'abc', 3)

    def test_fixed_length(self):
        assert _decode(String, b'abcdef', length_from=4) == (b'abcd', 4)
        assert _encode(String, b'ab', length_from=4) == b'ab\x00\x00'
        assert _encode(String, b'abcdef', length_from=4) == b'abcd'
        assert String.default_value(FieldDef('s', String, length_from=3)) == b'\x00\x00\x00'

    def test_fixed_length_truncated(self):
        with pytest.raises(TruncatedInputError):
            _decode(String, b'ab', length_from=4)

    def test_str_coerced_to_utf8(self):
        assert String.coerce('hé', FieldDef('s', String)) == 'hé'.encode('utf-8')

    def test_int_rejected(self):
        with pytest.raises(InvalidFieldValueError):
            String.coerce(5, FieldDef('s', String))


class TestCString:
    """Test NUL-terminated strings."""

    def test_decode(self):
        assert _decode(CString, b'hi\x00rest') == (b'hi', 3)

    def test_missing_terminator(self):
        with pytest.raises(TruncatedInputError):
            _decode(CString, b'hi')

    def test_encode(self):
        assert _encode(CString, b'hi') == b'hi\x00'

    def test_fixed_length(self):
        assert _encode(CString, b'hi', length_from=6) == b'hi\x00\x00\x00\x00'
        assert _encode(CString, b'abcdefgh', length_from=4) == b'abc\x00'
        assert _decode(CString, b'hi\x00\x00\x00\x00', length_from=6) == (b'hi', 6)

    def test_human(self):
        assert CString.to_human(b'eth0', FieldDef('s', CString)) == 'eth0'


class Counted(Struct):
    @classmethod
    def describe(cls, schema):
        schema.define_field('n', Int8)
        schema.define_field('items', ArrayOf(Int16), counter='n')


class Budgeted(Struct):
    @classmethod
    def describe(cls, schema):
        schema.define_field('n', Int8)
        schema.define_field('items', ArrayOf(Int8), length_from='n')
        schema.define_field('rest', String)


class Nothing(Struct):
    pass


class HoldsNothing(Struct):
    @classmethod
    def describe(cls, schema):
        schema.define_field('items', ArrayOf(Nothing))


class TestArrayOf:
    """Test repeated elements."""

    def test_counter(self):
        obj, consumed = Counted.deserialize(b'\x02\x00\x01\x00\x02\xff')
        assert obj.items == [1, 2]
        assert consumed == 5

    def test_counter_truncated(self):
        with pytest.raises(TruncatedInputError):
            Counted.deserialize(b'\x03\x00\x01\x00\x02')

    def test_byte_budget(self):
        obj, consumed = Budgeted.deserialize(b'\x02\x05\x06\x07')
        assert obj.items == [5, 6]
        assert obj.rest == b'\x07'
        assert consumed == 4

    def test_serialize(self):
        obj = Counted(n=3, items=[1, 2, 3])
        assert obj.to_bytes() == b'\x03\x00\x01\x00\x02\x00\x03'
        assert obj.size() == 7

    def test_zero_consumption_element_stops(self):
        obj, consumed = HoldsNothing.deserialize(b'abc')
        assert obj.items == []
        assert consumed == 0

    def test_coerce_requires_list(self):
        with pytest.raises(InvalidFieldValueError):
            Counted(items=5)
