"""
Transport layer headers (TCP, UDP).
"""

from __future__ import annotations

import random

from pktcraft.core.checksum import checksum16
from pktcraft.core.struct import Schema
from pktcraft.core.types import Body, Int16, Int32, String
from pktcraft.protocols.base import Header, Layer
from pktcraft.protocols.network import IP, IPv6, IPPROTO_TCP, IPPROTO_UDP
from pktcraft.protocols.registry import register_header


def _upper_layer_checksum(header: Header, protocol: int) -> int:
    """Checksum of header over the pseudo-header of its enclosing IP header."""
    ip = header.previous_header(IP, IPv6)
    total = ip.pseudo_header_checksum() + protocol + header.size()
    return checksum16(header.to_bytes(), total)


@register_header('TCP', Layer.TRANSPORT)
class TCP(Header):
    """TCP header. Options are kept as raw bytes."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('sport', Int16)
        schema.define_field('dport', Int16)
        schema.define_field('seqnum', Int32, default=lambda: random.randrange(1 << 32))
        schema.define_field('acknum', Int32)
        schema.define_field('u16', Int16, default=0x5000)
        schema.define_bit_group('u16', [
            ('hlen', 4), ('reserved', 3),
            'flag_ns', 'flag_cwr', 'flag_ece', 'flag_urg',
            'flag_ack', 'flag_psh', 'flag_rst', 'flag_syn', 'flag_fin',
        ])
        schema.define_field('window', Int16)
        schema.define_field('checksum', Int16)
        schema.define_field('urg_pointer', Int16)
        schema.define_field('options', String, length_from=lambda tcp: (tcp.hlen - 5) * 4)
        schema.define_field('body', Body)

    def parse_ok(self) -> bool:
        return self.hlen >= 5

    def calc_length(self) -> None:
        """Set hlen from the options."""
        self.hlen = 5 + (len(self['options']) + 3) // 4

    def calc_checksum(self) -> None:
        self.checksum = 0
        self.checksum = _upper_layer_checksum(self, IPPROTO_TCP)


@register_header('UDP', Layer.TRANSPORT)
class UDP(Header):
    """UDP header."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('sport', Int16)
        schema.define_field('dport', Int16)
        schema.define_field('length', Int16, default=8)
        schema.define_field('checksum', Int16)
        schema.define_field('body', Body)

    def calc_length(self) -> None:
        self.length = self.size()

    def calc_checksum(self) -> None:
        self.checksum = 0
        # zero means "no checksum" in UDP
        self.checksum = _upper_layer_checksum(self, IPPROTO_UDP) or 0xffff


IP.bind(TCP, protocol=IPPROTO_TCP)
IP.bind(UDP, protocol=IPPROTO_UDP)
IPv6.bind(TCP, next=IPPROTO_TCP)
IPv6.bind(UDP, next=IPPROTO_UDP)
