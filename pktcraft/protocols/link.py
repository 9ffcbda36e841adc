"""
Link layer headers (Ethernet, 802.1Q).
"""

from __future__ import annotations

from pktcraft.core.struct import Schema, Struct
from pktcraft.core.types import Body, Int8, Int16
from pktcraft.protocols.base import Header, Layer
from pktcraft.protocols.registry import register_header

# Common EtherTypes
ETHERTYPE_IP = 0x0800
ETHERTYPE_ARP = 0x0806
ETHERTYPE_VLAN = 0x8100
ETHERTYPE_IP6 = 0x86DD


class MacAddr(Struct):
    """Ethernet MAC address, readable as ``'00:01:02:03:04:05'``."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        for idx in range(6):
            schema.define_field(f'a{idx}', Int8)

    @classmethod
    def from_human(cls, text: str) -> MacAddr:
        parts = text.split(':')
        if len(parts) != 6:
            raise ValueError(f"not a MAC address: {text!r}")
        return cls(**{f'a{idx}': int(part, 16) for idx, part in enumerate(parts)})

    def to_human(self) -> str:
        return ':'.join(f'{self[f"a{idx}"]:02x}' for idx in range(6))


@register_header('Eth', Layer.DATA_LINK)
class Eth(Header):
    """Ethernet II header."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('dst', MacAddr, default='00:00:00:00:00:00')
        schema.define_field('src', MacAddr, default='00:00:00:00:00:00')
        schema.define_field('ethertype', Int16)
        schema.define_field('body', Body)


@register_header('Dot1q', Layer.DATA_LINK)
class Dot1q(Header):
    """IEEE 802.1Q VLAN tag."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('tci', Int16)
        schema.define_bit_group('tci', [('pcp', 3), 'dei', ('vid', 12)])
        schema.define_field('ethertype', Int16)
        schema.define_field('body', Body)


Eth.bind(Dot1q, ethertype=ETHERTYPE_VLAN)
