"""
Header base class and types.
"""

from __future__ import annotations

import re
import weakref
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from pktcraft.core.binding import get_global_registry as get_binding_registry
from pktcraft.core.errors import UnattachedHeaderError
from pktcraft.core.struct import Struct

if TYPE_CHECKING:
    from pktcraft.core.binding import BindingGroup, BindingGroupSet
    from pktcraft.core.packet import Packet


class Layer(IntEnum):
    """Protocol layer enumeration."""
    PHYSICAL = 1
    DATA_LINK = 2
    NETWORK = 3
    TRANSPORT = 4
    SESSION = 5
    PRESENTATION = 6
    APPLICATION = 7


class Header(Struct):
    """
    Base class for protocol headers.

    A header is a Struct whose last field, ``body``, holds either the raw
    bytes that follow the header or the next header itself. Once added to a
    Packet, a header keeps a weak reference to it, used to reach sibling
    headers (e.g. TCP needs the enclosing IP header for its checksum).
    """

    # Protocol name, set by @register_header
    name: str = ""

    # Layer this header belongs to
    layer: Layer = Layer.APPLICATION

    def __init__(self, **options):
        object.__setattr__(self, '_packet_ref', None)
        super().__init__(**options)

    @classmethod
    def protocol_name(cls) -> str:
        return cls.name or cls.__name__

    @classmethod
    def method_name(cls) -> str:
        """Lowercase name used for attribute lookup on packets (``pkt.ipv6``)."""
        return re.sub(r'\W+', '_', cls.protocol_name()).lower()

    # -- bindings --

    @classmethod
    def bind(cls, other: type[Header], *rules, procs=None, **fields) -> BindingGroup:
        """
        Declare how this header announces other as its next header.

        Example:
            IP.bind(TCP, protocol=6)
            IP.bind(IGMP, protocol=2, frag=0, ttl=1)
        """
        return get_binding_registry().bind(cls, other, *rules, procs=procs, **fields)

    @classmethod
    def known_headers(cls) -> dict[type, BindingGroupSet]:
        return get_binding_registry().known_headers(cls)

    def parse_ok(self) -> bool:
        """Sanity check after dissection. False keeps the bytes opaque."""
        return True

    # -- packet attachment --

    @property
    def packet(self) -> Packet | None:
        ref = self._packet_ref
        return ref() if ref is not None else None

    @packet.setter
    def packet(self, packet: Packet | None) -> None:
        ref = weakref.ref(packet) if packet is not None else None
        object.__setattr__(self, '_packet_ref', ref)

    def _attached_packet(self) -> Packet:
        packet = self.packet
        if packet is None:
            raise UnattachedHeaderError(
                f"{self.protocol_name()} header is not attached to a packet")
        return packet

    def header_index(self) -> int:
        """Position of this header in its packet."""
        packet = self._attached_packet()
        for idx, header in enumerate(packet.headers):
            if header is self:
                return idx
        raise UnattachedHeaderError(
            f"{self.protocol_name()} header is not in its packet anymore")

    def previous_header(self, *classes: type[Header]) -> Header:
        """
        Nearest header before this one that is an instance of classes.

        Raises:
            UnattachedHeaderError: not in a packet, or no such header
        """
        packet = self._attached_packet()
        for header in reversed(packet.headers[:self.header_index()]):
            if isinstance(header, classes):
                return header
        names = '/'.join(klass.protocol_name() for klass in classes)
        raise UnattachedHeaderError(f"no {names} header before {self.protocol_name()}")

    # -- body --

    def header_size(self) -> int:
        """Size of the header fields alone, body excluded."""
        if 'body' not in self._schema:
            return self.size()
        fdef = self._schema['body']
        return self.size() - fdef.type.size(self['body'], fdef, self)

    def replace_body_with(self, body: Any) -> None:
        """
        Replace body with bytes, a header, or the headers of a packet.

        When attached, the packet's header list follows: headers after this
        one are dropped and the new headers are appended.
        """
        packet = self.packet
        if packet is not None:
            packet._replace_body(self, body)
            return

        from pktcraft.core.packet import Packet

        if isinstance(body, Packet):
            body = body.headers[0] if body.headers else body.body
        self.body = body

    def __deepcopy__(self, memo):
        clone = super().__deepcopy__(memo)
        object.__setattr__(clone, '_packet_ref', None)
        return clone
