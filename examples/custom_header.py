"""
Custom header example.

Demonstrates:
- Declaring a header with enums and bit-fields
- Registering it by name
- Binding it over UDP so that dissection finds it
"""

from pktcraft import Header, Layer, Packet, UDP, register_header
from pktcraft.core.types import Body, Int8, Int16


@register_header('Ping', Layer.APPLICATION)
class Ping(Header):
    """Toy request/response header carried over UDP port 7777."""

    OPS = {'ping': 1, 'pong': 2}

    @classmethod
    def describe(cls, schema):
        schema.define_field('op', Int8, enum=cls.OPS)
        schema.define_field('flags', Int8)
        schema.define_bit_group('flags', ['urgent', 'ack', ('_', 6)])
        schema.define_field('seq', Int16)
        schema.define_field('body', Body)


# Either port announces a Ping header; adding Ping after UDP sets dport
UDP.bind(Ping, dport=7777)
UDP.bind(Ping, sport=7777)

pkt = Packet.gen('Eth').add('IP').add('UDP', sport=5000).add('Ping', op='ping', urgent=True, seq=1)
pkt.body = b'hello'
pkt.calc()

parsed = Packet.parse(pkt.to_bytes())
print(parsed)
print(parsed.to_dict()[-1])
print(f"urgent={parsed.ping.urgent} seq={parsed.ping.seq} payload={parsed.body!r}")
