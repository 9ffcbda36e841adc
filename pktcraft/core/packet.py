"""
Packet assembly and dissection.

A Packet is an ordered list of headers, outermost first. Each header's
``body`` holds the next header, or raw bytes for the last one.

Dissection walks a byte buffer: the current header class deserializes the
remaining bytes, its body becomes the new remaining bytes, and the binding
registry picks the class of the next header from the fields just read.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator

from pktcraft.core.binding import BindingRegistry, get_global_registry as get_binding_registry
from pktcraft.core.errors import ParseError, TruncatedInputError
from pktcraft.core.reader import headers_for_linktype
from pktcraft.protocols.base import Header
from pktcraft.protocols.registry import get_global_registry as get_header_registry

if TYPE_CHECKING:
    from pktcraft.protocols.registry import HeaderRegistry


@dataclass
class DissectorConfig:
    """Configuration for packet dissection."""
    # Maximum number of headers per packet, None for no limit
    max_headers: int | None = 64


_default_config = DissectorConfig()


def get_default_config() -> DissectorConfig:
    """Get the configuration used when none is given."""
    return _default_config


def set_default_config(config: DissectorConfig) -> None:
    """Replace the configuration used when none is given."""
    global _default_config
    _default_config = config


class Dissector:
    """
    Builds the header list of a packet from raw bytes.

    Dissection stops when the last header announces no known header, when a
    header rejects its bytes (``parse_ok()`` is false), when a header has no
    bytes of its own, or when ``config.max_headers`` is reached. In every
    case the bytes not turned into headers stay in the last header's body,
    or in the packet itself when no header was accepted.
    """

    def __init__(
        self,
        config: DissectorConfig | None = None,
        bindings: BindingRegistry | None = None,
    ):
        self.config = config or get_default_config()
        self.bindings = bindings or get_binding_registry()

    def dissect(self, packet: Packet, first_class: type[Header], data: bytes) -> Packet:
        remaining = bytes(data)
        klass = first_class
        max_headers = self.config.max_headers

        while klass is not None:
            if max_headers is not None and len(packet.headers) >= max_headers:
                warnings.warn(
                    f"Header limit ({max_headers}) reached, "
                    f"keeping {len(remaining)} byte(s) undissected",
                    RuntimeWarning,
                    stacklevel=2,
                )
                break

            header, _ = klass.deserialize(remaining)
            if not header.parse_ok():
                break

            packet._add_header(header, parsing=True)
            remaining = header['body']

            if header.header_size() == 0:
                warnings.warn(
                    f"{klass.protocol_name()} header consumed no bytes, stopping dissection",
                    RuntimeWarning,
                    stacklevel=2,
                )
                break

            klass = self.bindings.resolve_next_class(header)

        if not packet.headers:
            packet._opaque = remaining
        return packet


class Packet:
    """
    Ordered list of headers.

    Example:
        pkt = Packet.gen('Eth', src='00:01:02:03:04:05').add('IP').add('TCP', dport=80)
        pkt.calc()
        data = pkt.to_bytes()

        pkt = Packet.parse(data)
        pkt.tcp.dport  # 80
    """

    def __init__(self, config: DissectorConfig | None = None):
        self.headers: list[Header] = []
        self.config = config
        self._opaque = b''
        self._bindings = get_binding_registry()
        self._registry: HeaderRegistry = get_header_registry()

    # -- creation --

    @classmethod
    def gen(cls, protocol: str | type[Header], **options) -> Packet:
        """Create a packet with a first header."""
        return cls().add(protocol, **options)

    @classmethod
    def parse(
        cls,
        data: bytes,
        first_header: str | type[Header] | None = None,
        linktype: int | None = None,
        config: DissectorConfig | None = None,
    ) -> Packet:
        """
        Dissect data into a packet.

        Args:
            data: Raw packet bytes
            first_header: Class or name of the first header. Guessed when
                neither this nor linktype is given.
            linktype: Capture link-layer type (DLT) selecting the first header
            config: Dissection settings (defaults to get_default_config())

        Raises:
            ParseError: first header cannot be identified
            TruncatedInputError: data ends inside a header
        """
        packet = cls(config)
        data = bytes(data)
        if first_header is not None:
            first = packet._check_protocol(first_header)
        elif linktype is not None:
            first = packet._first_class_for_linktype(linktype, data)
        else:
            first = packet._guess_first_header(data)
        return Dissector(config, packet._bindings).dissect(packet, first, data)

    def _first_class_for_linktype(self, linktype: int, data: bytes) -> type[Header]:
        names = headers_for_linktype(linktype)
        if not names:
            raise ParseError(f"Unsupported link layer type: {linktype}")
        classes = [self._check_protocol(name) for name in names]
        for klass in classes:
            try:
                header, _ = klass.deserialize(data)
            except TruncatedInputError:
                continue
            if header.parse_ok():
                return klass
        return classes[0]

    def _guess_first_header(self, data: bytes) -> type[Header]:
        """First registered class that reads data sanely and announces a next header."""
        for klass in self._registry.header_classes():
            try:
                header, _ = klass.deserialize(data)
            except TruncatedInputError:
                continue
            if header.parse_ok() and self._bindings.resolve_next_class(header) is not None:
                return klass
        raise ParseError("Cannot identify first header")

    # -- construction --

    def add(self, protocol: str | type[Header], **options) -> Packet:
        """
        Add a header on top of the last one.

        The last header's fields are set so that it announces the new one
        (e.g. adding TCP after IP sets ``protocol = 6``).

        Raises:
            UnknownBindingError: last header knows no binding to protocol
        """
        klass = self._check_protocol(protocol)
        self._add_header(klass(**options))
        return self

    def insert(self, prev: Header, protocol: str | type[Header], **options) -> Packet:
        """Insert a header right after prev."""
        klass = self._check_protocol(protocol)
        idx = self._index_of(prev)
        nxt = prev['body']
        header = klass(**options)
        self._add_header(header, previous=prev)
        self.headers.insert(idx + 1, header)
        if isinstance(nxt, Header) and self._bindings.bindings_for(klass, type(nxt)) is not None:
            self._bindings.apply_defaults(header, type(nxt))
        header.body = nxt
        return self

    def encapsulate(self, other: Packet, parsing: bool = False) -> Packet:
        """
        Append other's headers after the last header.

        Only the link between the last header and other's first header is
        configured through bindings, and not even that when parsing is true.
        """
        if not other.headers:
            self.body = other.body
            return self
        for idx, header in enumerate(list(other.headers)):
            self._add_header(header, parsing=parsing or idx > 0)
        return self

    def decapsulate(self, *headers: Header) -> Packet:
        """
        Remove headers, linking each removed header's neighbours together.

        Raises:
            ValueError: a header is not in this packet
            UnknownBindingError: neighbours know no binding to each other
        """
        for header in headers:
            idx = self._index_of(header)
            prev = self.headers[idx - 1] if idx > 0 else None
            nxt = self.headers[idx + 1] if idx + 1 < len(self.headers) else None
            del self.headers[idx]
            header.packet = None
            if prev is None:
                continue
            if nxt is not None:
                self._add_header(nxt, previous=prev)
            else:
                body = header['body']
                prev.body = body if not isinstance(body, Header) else b''
        return self

    def _add_header(self, header: Header, previous: Header | None = None,
                    parsing: bool = False) -> None:
        prev = previous
        if prev is None and self.headers:
            prev = self.headers[-1]
        if prev is not None:
            if not parsing:
                self._bindings.apply_defaults(prev, type(header))
            prev.body = header
        header.packet = self
        if previous is None:
            self.headers.append(header)

    def _replace_body(self, header: Header, body: Any) -> None:
        idx = self._index_of(header)
        for removed in self.headers[idx + 1:]:
            removed.packet = None
        del self.headers[idx + 1:]

        if isinstance(body, Packet):
            if not body.headers:
                header.body = body.body
                return
            body = body.headers[0]

        if isinstance(body, Header):
            current = body
            while isinstance(current, Header):
                self._add_header(current, parsing=True)
                current = current['body']
        else:
            header.body = body

    def _index_of(self, header: Header) -> int:
        for idx, candidate in enumerate(self.headers):
            if candidate is header:
                return idx
        raise ValueError(f"{type(header).__name__} header is not in this packet")

    # -- access --

    def _check_protocol(self, protocol: str | type[Header]) -> type[Header]:
        if isinstance(protocol, type) and issubclass(protocol, Header):
            return protocol
        klass = self._registry.get(protocol)
        if klass is None:
            raise ValueError(f"Unknown protocol: {protocol!r}")
        return klass

    def header(self, protocol: str | type[Header], index: int = 0) -> Header | None:
        """index-th header of the given protocol, or None."""
        klass = self._check_protocol(protocol)
        matches = [h for h in self.headers if isinstance(h, klass)]
        if index < len(matches):
            return matches[index]
        return None

    def has(self, protocol: str | type[Header]) -> bool:
        return self.header(protocol) is not None

    def __getattr__(self, name: str) -> Header | None:
        if name.startswith('_'):
            raise AttributeError(name)
        for klass in self._registry.header_classes():
            if klass.method_name() == name:
                return self.header(klass)
        raise AttributeError(f"'Packet' object has no attribute {name!r}")

    @property
    def body(self) -> Any:
        """Last header's body, or the whole data when no header was dissected."""
        if self.headers:
            return self.headers[-1]['body']
        return self._opaque

    @body.setter
    def body(self, value: Any) -> None:
        if self.headers:
            self.headers[-1].body = value
        else:
            self._opaque = bytes(value)

    def __iter__(self) -> Iterator[Header]:
        return iter(self.headers)

    # -- serialization --

    def to_bytes(self) -> bytes:
        if self.headers:
            return self.headers[0].to_bytes()
        return self._opaque

    def __bytes__(self) -> bytes:
        return self.to_bytes()

    def size(self) -> int:
        if self.headers:
            return self.headers[0].size()
        return len(self._opaque)

    def calc_length(self) -> None:
        """Recompute length fields, innermost header first."""
        for header in reversed(self.headers):
            if hasattr(header, 'calc_length'):
                header.calc_length()

    def calc_checksum(self) -> None:
        """Recompute checksums, innermost header first."""
        for header in reversed(self.headers):
            if hasattr(header, 'calc_checksum'):
                header.calc_checksum()

    def calc(self) -> None:
        """Recompute lengths, then checksums."""
        self.calc_length()
        self.calc_checksum()

    def to_dict(self) -> list[dict[str, Any]]:
        """Human view of each header, without nested bodies."""
        result = []
        for header in self.headers:
            fields = header.to_dict()
            if isinstance(header['body'], Header):
                fields.pop('body', None)
            result.append({'protocol': header.protocol_name(), 'fields': fields})
        return result

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Packet):
            return self.to_bytes() == other.to_bytes()
        if isinstance(other, (bytes, bytearray)):
            return self.to_bytes() == bytes(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        names = '/'.join(h.protocol_name() for h in self.headers) or 'opaque'
        return f"Packet({names}, {self.size()} bytes)"
