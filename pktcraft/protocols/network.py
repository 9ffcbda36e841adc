"""
Network layer headers (IPv4, IPv6, ARP, ICMP, ICMPv6, IGMP).
"""

from __future__ import annotations

import ipaddress
import random

from pktcraft.core.checksum import checksum16, sum16
from pktcraft.core.struct import Schema, Struct
from pktcraft.core.types import ArrayOf, Body, Int8, Int16, Int32, String
from pktcraft.protocols.base import Header, Layer
from pktcraft.protocols.link import (
    Dot1q,
    Eth,
    ETHERTYPE_ARP,
    ETHERTYPE_IP,
    ETHERTYPE_IP6,
    MacAddr,
)
from pktcraft.protocols.registry import register_header

# IP protocol numbers
IPPROTO_IPIP = 4
IPPROTO_ICMP = 1
IPPROTO_IGMP = 2
IPPROTO_TCP = 6
IPPROTO_UDP = 17
IPPROTO_IPV6 = 41
IPPROTO_ICMPV6 = 58


class IPAddr(Struct):
    """IPv4 address, readable as ``'10.0.0.1'``."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        for idx in range(4):
            schema.define_field(f'a{idx}', Int8)

    @classmethod
    def from_human(cls, text: str) -> IPAddr:
        packed = ipaddress.IPv4Address(text).packed
        return cls.deserialize(packed)[0]

    def to_human(self) -> str:
        return str(ipaddress.IPv4Address(self.to_bytes()))


class IPv6Addr(Struct):
    """IPv6 address, readable as ``'2001:db8::1'``."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        for idx in range(8):
            schema.define_field(f'a{idx}', Int16)

    @classmethod
    def from_human(cls, text: str) -> IPv6Addr:
        packed = ipaddress.IPv6Address(text).packed
        return cls.deserialize(packed)[0]

    def to_human(self) -> str:
        return str(ipaddress.IPv6Address(self.to_bytes()))


class IPOption(Struct):
    """
    IPv4 option.

    End-of-list (0) and no-op (1) options are a single type byte; other
    options carry a length byte covering the whole option.
    """

    TYPES = {
        'EOL': 0,
        'NOP': 1,
        'RR': 7,
        'TS': 68,
        'LSRR': 131,
        'SSRR': 137,
        'RA': 148,
    }

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('type', Int8, enum=cls.TYPES)
        schema.define_field('length', Int8, default=2,
                            optional=lambda opt: opt['type'] > 1)
        schema.define_field('data', String,
                            length_from=lambda opt: opt['length'] - 2,
                            optional=lambda opt: opt['type'] > 1)


@register_header('IP', Layer.NETWORK)
class IP(Header):
    """IPv4 header."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('u8', Int8, default=0x45)
        schema.define_bit_group('u8', [('version', 4), ('ihl', 4)])
        schema.define_field('tos', Int8)
        schema.define_field('length', Int16, default=20)
        schema.define_field('id', Int16, default=lambda: random.randrange(0x10000))
        schema.define_field('frag', Int16)
        schema.define_bit_group('frag', ['flag_rsv', 'flag_df', 'flag_mf', ('fragment_offset', 13)])
        schema.define_field('ttl', Int8, default=64)
        schema.define_field('protocol', Int8)
        schema.define_field('checksum', Int16)
        schema.define_field('src', IPAddr, default='127.0.0.1')
        schema.define_field('dst', IPAddr, default='127.0.0.1')
        schema.define_field('options', ArrayOf(IPOption),
                            optional=lambda ip: ip.ihl > 5,
                            length_from=lambda ip: (ip.ihl - 5) * 4)
        schema.define_field('body', Body)

    def parse_ok(self) -> bool:
        return self.version == 4 and self.ihl >= 5

    def _options_ihl(self) -> int:
        options_size = sum(opt.size() for opt in self['options'])
        return 5 + (options_size + 3) // 4

    def _sync_ihl(self) -> None:
        # options set on a header with the default ihl would not be serialized
        if self.ihl == 5 and self['options']:
            self.ihl = self._options_ihl()

    def to_bytes(self) -> bytes:
        self._sync_ihl()
        return super().to_bytes()

    serialize = to_bytes

    def size(self) -> int:
        self._sync_ihl()
        return super().size()

    def calc_length(self) -> None:
        """Set ihl from the options and length from the whole datagram."""
        self.ihl = self._options_ihl()
        self.length = self.size()

    def calc_checksum(self) -> None:
        self.checksum = 0
        self.checksum = checksum16(self.to_bytes()[:self.header_size()])

    def pseudo_header_checksum(self) -> int:
        """Unfolded sum of the addresses, for upper layer checksums."""
        return sum16(self['src'].to_bytes() + self['dst'].to_bytes())


@register_header('IPv6', Layer.NETWORK)
class IPv6(Header):
    """IPv6 fixed header (extension headers are left in the body)."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('u32', Int32, default=0x60000000)
        schema.define_bit_group('u32', [('version', 4), ('traffic_class', 8),
                                        ('flow_label', 20)])
        schema.define_field('length', Int16)
        schema.define_field('next', Int8)
        schema.define_field('hop', Int8, default=64)
        schema.define_field('src', IPv6Addr, default='::1')
        schema.define_field('dst', IPv6Addr, default='::1')
        schema.define_field('body', Body)

    def parse_ok(self) -> bool:
        return self.version == 6

    def calc_length(self) -> None:
        """Set payload length from the body."""
        self.length = self.size() - self.header_size()

    def pseudo_header_checksum(self) -> int:
        """Unfolded sum of the addresses, for upper layer checksums."""
        return sum16(self['src'].to_bytes() + self['dst'].to_bytes())


@register_header('ICMP', Layer.NETWORK)
class ICMP(Header):
    """ICMP header. Type-specific data stays in the body."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('type', Int8)
        schema.define_field('code', Int8)
        schema.define_field('checksum', Int16)
        schema.define_field('body', Body)

    def calc_checksum(self) -> None:
        self.checksum = 0
        self.checksum = checksum16(self.to_bytes())


@register_header('ICMPv6', Layer.NETWORK)
class ICMPv6(Header):
    """ICMPv6 header. Its checksum covers the IPv6 pseudo-header."""

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('type', Int8)
        schema.define_field('code', Int8)
        schema.define_field('checksum', Int16)
        schema.define_field('body', Body)

    def calc_checksum(self) -> None:
        ip = self.previous_header(IPv6)
        self.checksum = 0
        total = ip.pseudo_header_checksum() + IPPROTO_ICMPV6 + self.size()
        self.checksum = checksum16(self.to_bytes(), total)


@register_header('IGMP', Layer.NETWORK)
class IGMP(Header):
    """IGMPv2 message."""

    TYPES = {
        'MembershipQuery': 0x11,
        'MembershipReportv1': 0x12,
        'MembershipReportv2': 0x16,
        'LeaveGroup': 0x17,
    }

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('type', Int8, enum=cls.TYPES)
        schema.define_field('max_resp_time', Int8)
        schema.define_field('checksum', Int16)
        schema.define_field('group_addr', IPAddr, default='0.0.0.0')
        schema.define_field('body', Body)

    def calc_checksum(self) -> None:
        self.checksum = 0
        self.checksum = checksum16(self.to_bytes())


@register_header('ARP', Layer.NETWORK)
class ARP(Header):
    """ARP for IPv4 over Ethernet."""

    OPERATIONS = {
        'request': 1,
        'reply': 2,
    }

    @classmethod
    def describe(cls, schema: Schema) -> None:
        schema.define_field('hrd', Int16, default=1)
        schema.define_field('pro', Int16, default=ETHERTYPE_IP)
        schema.define_field('hln', Int8, default=6)
        schema.define_field('pln', Int8, default=4)
        schema.define_field('op', Int16, enum=cls.OPERATIONS)
        schema.define_field('sha', MacAddr, default='00:00:00:00:00:00')
        schema.define_field('spa', IPAddr, default='0.0.0.0')
        schema.define_field('tha', MacAddr, default='00:00:00:00:00:00')
        schema.define_field('tpa', IPAddr, default='0.0.0.0')
        schema.define_field('body', Body)


for _link in (Eth, Dot1q):
    _link.bind(IP, ethertype=ETHERTYPE_IP)
    _link.bind(IPv6, ethertype=ETHERTYPE_IP6)
    _link.bind(ARP, ethertype=ETHERTYPE_ARP)

IP.bind(IP, protocol=IPPROTO_IPIP)
IP.bind(IPv6, protocol=IPPROTO_IPV6)
IP.bind(ICMP, protocol=IPPROTO_ICMP)
# IGMP messages are only sent with a TTL of 1
IP.bind(IGMP, protocol=IPPROTO_IGMP, frag=0, ttl=1)
IPv6.bind(ICMPv6, next=IPPROTO_ICMPV6)
