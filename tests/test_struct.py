"""Test the struct engine and schema builder."""

import pytest

from pktcraft.core.errors import InvalidFieldValueError, TruncatedInputError
from pktcraft.core.struct import Schema, Struct
from pktcraft.core.types import Int8, Int16, Int32le, String


class Sample(Struct):
    @classmethod
    def describe(cls, schema):
        schema.define_field('kind', Int8, enum={'hello': 1, 'bye': 2})
        schema.define_field('count', Int16)
        schema.define_field('flags', Int8)
        schema.define_bit_group('flags', [('level', 3), 'urgent', None, ('code', 3)])
        schema.define_field('length', Int8)
        schema.define_field('name', String, length_from='length')
        schema.define_field('tail', Int32le, optional=lambda s: s.kind == 2)


SAMPLE_BYE = b'\x02\x01\x2c\xb3\x03abc\x07\x00\x00\x00'


def make_bye():
    return Sample(kind='bye', count=300, level=5, urgent=True, code=3,
                  length=3, name=b'abc', tail=7)


class TestSerialize:
    """Test serialization and deserialization."""

    def test_defaults(self):
        obj = Sample()
        assert obj.kind == 1
        assert obj.count == 0
        assert obj.name == b''
        assert obj.to_bytes() == b'\x01\x00\x00\x00\x00'

    def test_to_bytes(self):
        obj = make_bye()
        assert obj.to_bytes() == SAMPLE_BYE
        assert bytes(obj) == SAMPLE_BYE
        assert obj.serialize() == SAMPLE_BYE

    def test_size_matches_serialized_length(self):
        for obj in (Sample(), make_bye()):
            assert obj.size() == len(obj.to_bytes())

    def test_round_trip(self):
        obj = make_bye()
        parsed, consumed = Sample.deserialize(obj.to_bytes())
        assert parsed == obj
        assert consumed == len(SAMPLE_BYE)

    def test_optional_field_skipped(self):
        data = b'\x01\x00\x05\x00\x02hi'
        obj, consumed = Sample.deserialize(data + b'junk')
        assert consumed == len(data)
        assert obj.name == b'hi'
        assert not obj.present('tail')
        assert obj.to_bytes() == data

    def test_read_in_place(self):
        obj = Sample()
        assert obj.read(SAMPLE_BYE) is obj
        assert obj.count == 300
        assert obj.tail == 7

    def test_truncated(self):
        with pytest.raises(TruncatedInputError) as exc_info:
            Sample.deserialize(b'\x01\x00')
        assert exc_info.value.field == 'count'

    def test_sibling_length_truncated(self):
        with pytest.raises(TruncatedInputError):
            Sample.deserialize(b'\x01\x00\x00\x00\x05ab')

    def test_offset_of(self):
        obj = make_bye()
        assert obj.offset_of('kind') == 0
        assert obj.offset_of('length') == 4
        assert obj.offset_of('tail') == 8
        with pytest.raises(ValueError):
            obj.offset_of('bogus')


class TestAccess:
    """Test field access."""

    def test_bit_fields(self):
        obj = make_bye()
        assert obj.flags == 0xb3
        assert obj.level == 5
        assert obj.urgent is True
        assert obj.code == 3

    def test_bit_field_write_leaves_others(self):
        obj = make_bye()
        obj.code = 6
        assert obj.level == 5
        assert obj.urgent is True
        obj.urgent = False
        assert obj.level == 5
        assert obj.code == 6
        assert obj.flags == (5 << 5) | 6

    def test_parent_write_updates_bits(self):
        obj = Sample()
        obj.flags = 0xff
        assert obj.level == 7
        assert obj.urgent is True
        assert obj.code == 7

    def test_bit_field_masks_excess(self):
        obj = Sample()
        obj.code = 0xff
        assert obj.code == 7
        assert obj.level == 0

    def test_item_access(self):
        obj = Sample()
        obj['count'] = 12
        assert obj['count'] == 12
        assert obj.count == 12

    def test_enum_assignment(self):
        obj = Sample()
        obj.kind = 'bye'
        assert obj.kind == 2
        assert obj.to_dict()['kind'] == 'bye'
        obj.kind = 77
        assert obj.to_dict()['kind'] == 77
        with pytest.raises(InvalidFieldValueError):
            obj.kind = 'nope'

    def test_unknown_option(self):
        with pytest.raises(TypeError):
            Sample(bogus=1)

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            Sample().bogus

    def test_to_dict(self):
        assert make_bye().to_dict() == {
            'kind': 'bye',
            'count': 300,
            'flags': 0xb3,
            'level': 5,
            'urgent': True,
            'code': 3,
            'length': 3,
            'name': b'abc',
            'tail': 7,
        }

    def test_fields(self):
        assert Sample.fields() == ['kind', 'count', 'flags', 'length', 'name', 'tail']
        assert Sample.bit_fields_on('flags') == ['level', 'urgent', 'code']

    def test_copy_is_independent(self):
        obj = make_bye()
        clone = obj.copy()
        clone.count = 1
        assert obj.count == 300
        assert clone != obj

    def test_snapshot_restore(self):
        obj = make_bye()
        saved = obj.snapshot()
        obj.count = 1
        obj.restore(saved)
        assert obj.count == 300


class TestSchema:
    """Test schema builder."""

    def test_subclass_extends_copy(self):
        class Extended(Sample):
            @classmethod
            def describe(cls, schema):
                schema.define_field_before('kind', 'first', Int8)
                schema.define_field_after('kind', 'extra', Int8)
                schema.update_field('count', default=7)
                schema.remove_field('tail')

        assert Extended.fields() == ['first', 'kind', 'extra', 'count', 'flags', 'length', 'name']
        assert Extended().count == 7
        assert Sample.fields() == ['kind', 'count', 'flags', 'length', 'name', 'tail']
        assert Sample().count == 0

    def test_subclass_without_describe_inherits(self):
        class Same(Sample):
            pass

        assert Same.fields() == Sample.fields()
        assert Same(kind='bye').kind == 2

    def test_remove_field_drops_bit_group(self):
        schema = Sample._schema.copy()
        schema.remove_field('flags')
        assert schema.bit_field('level') is None
        assert 'flags' not in schema

    def test_duplicate_field(self):
        schema = Schema()
        schema.define_field('a', Int8)
        with pytest.raises(ValueError):
            schema.define_field('a', Int16)

    def test_unknown_reference(self):
        schema = Schema()
        with pytest.raises(ValueError):
            schema.define_field_after('missing', 'a', Int8)
        with pytest.raises(ValueError):
            schema.update_field('missing', default=1)

    def test_bit_group_width_mismatch(self):
        schema = Schema()
        schema.define_field('a', Int8)
        with pytest.raises(ValueError):
            schema.define_bit_group('a', [('x', 4), ('y', 3)])

    def test_bit_group_on_non_integer(self):
        schema = Schema()
        schema.define_field('s', String)
        with pytest.raises(TypeError):
            schema.define_bit_group('s', ['x'])

    def test_bit_group_reserved_names(self):
        schema = Schema()
        schema.define_field('a', Int8)
        bits = schema.define_bit_group('a', [('x', 2), '_', None, ('y', 4)])
        assert [(b.name, b.width, b.shift) for b in bits] == [('x', 2, 6), ('y', 4, 0)]

    def test_invalid_type(self):
        schema = Schema()
        with pytest.raises(TypeError):
            schema.define_field('a', int)

    def test_field_shadowing_method(self):
        with pytest.raises(TypeError):
            class Broken(Struct):
                @classmethod
                def describe(cls, schema):
                    schema.define_field('size', Int8)

    def test_callable_default_gets_owner(self):
        class Defaults(Struct):
            @classmethod
            def describe(cls, schema):
                schema.define_field('a', Int8, default=4)
                schema.define_field('b', Int8, default=lambda obj: obj.a * 2)
                schema.define_field('c', Int8, default=lambda: 9)

        obj = Defaults()
        assert (obj.a, obj.b, obj.c) == (4, 8, 9)

    def test_default_reading_later_field(self):
        class Forward(Struct):
            @classmethod
            def describe(cls, schema):
                schema.define_field('a', Int8, default=lambda obj: getattr(obj, 'b', 3))
                schema.define_field('b', Int8, default=9)
                schema.define_field('flags', Int8)
                schema.define_bit_group('flags', [('hi', 4), ('lo', 4)])

        obj = Forward()
        assert (obj.a, obj.b) == (3, 9)

        class Early(Struct):
            @classmethod
            def describe(cls, schema):
                schema.define_field('a', Int8, default=lambda obj: obj.lo)
                schema.define_field('flags', Int8)
                schema.define_bit_group('flags', [('hi', 4), ('lo', 4)])

        with pytest.raises(AttributeError):
            Early()

    def test_negative_length_is_empty(self):
        class Negative(Struct):
            @classmethod
            def describe(cls, schema):
                schema.define_field('n', Int8)
                schema.define_field('data', String, length_from=lambda obj: obj.n - 10)

        obj, consumed = Negative.deserialize(b'\x02abc')
        assert obj.data == b''
        assert consumed == 1
