"""
Pcap file reading and writing.

The link-layer type of a capture selects the first header class used to
dissect its packets. dpkt does the file format work; it is imported when a
file is opened, so the rest of pktcraft works without it.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator

if TYPE_CHECKING:
    from pktcraft.core.packet import DissectorConfig, Packet


# DLT (Data Link Type) constants
DLT_EN10MB = 1         # Ethernet
DLT_RAW = 101          # Raw IP
DLT_LINUX_SLL = 113    # Linux cooked capture
DLT_IPV4 = 228         # Raw IPv4
DLT_IPV6 = 229         # Raw IPv6


class LinkLayerType:
    """Link layer type support."""
    ETHERNET = "ethernet"
    RAW_IP = "raw_ip"
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    UNKNOWN = "unknown"


def get_link_layer_type(dlt: int) -> str:
    """Get link layer type name from DLT value."""
    mapping = {
        DLT_EN10MB: LinkLayerType.ETHERNET,
        DLT_RAW: LinkLayerType.RAW_IP,
        DLT_IPV4: LinkLayerType.IPV4,
        DLT_IPV6: LinkLayerType.IPV6,
    }
    return mapping.get(dlt, LinkLayerType.UNKNOWN)


# First header candidates per link layer, tried in order
_LINKTYPE_HEADERS = {
    DLT_EN10MB: ('Eth',),
    DLT_RAW: ('IP', 'IPv6'),
    DLT_IPV4: ('IP',),
    DLT_IPV6: ('IPv6',),
}


def headers_for_linktype(dlt: int) -> tuple[str, ...]:
    """Names of the header classes a capture of this DLT may start with."""
    return _LINKTYPE_HEADERS.get(dlt, ())


class PcapReader:
    """
    PCAP file reader.

    Iterating yields ``(timestamp, bytes)`` pairs; ``packets()`` yields
    ``(timestamp, Packet)`` pairs dissected from the capture's link layer.

    Example:
        with PcapReader('capture.pcap') as reader:
            for ts, pkt in reader.packets():
                print(ts, pkt)
    """

    def __init__(self, pcap_path: str | Path, config: DissectorConfig | None = None):
        self.pcap_path = Path(pcap_path)
        self.config = config
        self._reader: Any | None = None
        self._file = None
        self._link_layer_type: int | None = None
        self._link_layer_name: str = LinkLayerType.UNKNOWN

    def open(self) -> None:
        """Open the PCAP file and initialize reader."""
        import dpkt

        if not self.pcap_path.exists():
            raise FileNotFoundError(f"PCAP file not found: {self.pcap_path}")

        f = open(self.pcap_path, 'rb')
        try:
            self._reader = dpkt.pcap.UniversalReader(f)
            self._file = f
            self._link_layer_type = self._reader.datalink()
        except ValueError as e:
            f.close()
            raise ValueError(f"Unknown PCAP format: {e}")

        self._link_layer_name = get_link_layer_type(self._link_layer_type)

    def close(self) -> None:
        """Close the PCAP file."""
        self._reader = None
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> PcapReader:
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def link_layer_type(self) -> int:
        """Get the DLT link layer type."""
        if self._link_layer_type is None:
            raise RuntimeError("Reader not opened")
        return self._link_layer_type

    @property
    def link_layer_name(self) -> str:
        """Get the link layer type name."""
        return self._link_layer_name

    def __iter__(self) -> Iterator[tuple[float, bytes]]:
        """Iterate over raw packets in the PCAP file."""
        if self._reader is None:
            raise RuntimeError("Reader not opened. Call open() first.")

        for ts, buf in self._reader:
            yield ts, buf

    def packets(self) -> Iterator[tuple[float, Packet]]:
        """
        Iterate over dissected packets.

        Yields:
            (timestamp, packet)
        """
        from pktcraft.core.packet import Packet

        linktype = self.link_layer_type
        for ts, buf in self:
            yield ts, Packet.parse(buf, linktype=linktype, config=self.config)


def write_pcap(
    pcap_path: str | Path,
    packets: Iterable[Packet | bytes | tuple[float, Packet | bytes]],
    linktype: int = DLT_EN10MB,
) -> int:
    """
    Write packets to a pcap file.

    Args:
        pcap_path: Output file path
        packets: Packets or raw bytes, optionally as (timestamp, packet) pairs
        linktype: DLT of the capture

    Returns:
        Number of packets written
    """
    import dpkt

    count = 0
    with open(pcap_path, 'wb') as f:
        writer = dpkt.pcap.Writer(f, linktype=linktype)
        for item in packets:
            if isinstance(item, tuple):
                ts, pkt = item
            else:
                ts, pkt = None, item
            writer.writepkt(bytes(pkt), ts=ts)
            count += 1
    return count
