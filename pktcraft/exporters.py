"""
Export functionality for packets.

Provides methods to export dissected packets to various formats including
DataFrame, CSV, JSON, and dict. Byte strings are exported as hex strings.

Examples:
    Export to pandas DataFrame:
        >>> from pktcraft import PcapReader, to_dataframe
        >>> with PcapReader('traffic.pcap') as reader:
        ...     packets = [pkt for _, pkt in reader.packets()]
        >>> df = to_dataframe(packets)
        >>> print(df[['protocols', 'ip.src', 'ip.dst']])

    Export to JSON:
        >>> from pktcraft import to_json
        >>> to_json(packets, 'output.json')

    Using PacketExporter class:
        >>> from pktcraft import PacketExporter
        >>> exporter = PacketExporter(include_payload=False)
        >>> exporter.save(packets, 'output.csv')
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any
import json

if TYPE_CHECKING:
    from pktcraft.core.packet import Packet


def _plain(value: Any) -> Any:
    """Make a header value JSON and DataFrame friendly."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, dict):
        return {key: _plain(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_plain(val) for val in value]
    return value


def _payload(packet: Packet) -> str:
    return bytes(packet.body).hex()


def packet_to_dict(packet: Packet, include_payload: bool = True) -> dict[str, Any]:
    """
    Convert one packet to a dictionary.

    Returns:
        Dict with 'protocols' ('Eth/IP/TCP'), 'size', 'headers' (list of
        {'protocol', 'fields'}) and, optionally, 'payload' (hex)
    """
    headers = []
    for entry in packet.to_dict():
        fields = {name: _plain(value) for name, value in entry['fields'].items()
                  if name != 'body'}
        headers.append({'protocol': entry['protocol'], 'fields': fields})

    result = {
        'protocols': '/'.join(h['protocol'] for h in headers),
        'size': packet.size(),
        'headers': headers,
    }
    if include_payload:
        result['payload'] = _payload(packet)
    return result


def packet_to_row(packet: Packet, include_payload: bool = True) -> dict[str, Any]:
    """
    Convert one packet to a flat dictionary.

    Header fields become '<protocol>.<field>' columns (e.g. 'ip.src').
    Repeated protocols (IP in IP) are numbered from the second one on:
    'ip.src', 'ip2.src'.
    """
    row = {
        'protocols': '/'.join(h.protocol_name() for h in packet.headers),
        'size': packet.size(),
    }
    seen: dict[str, int] = {}
    for header, entry in zip(packet.headers, packet.to_dict()):
        prefix = header.method_name()
        seen[prefix] = seen.get(prefix, 0) + 1
        if seen[prefix] > 1:
            prefix = f'{prefix}{seen[prefix]}'
        for name, value in entry['fields'].items():
            if name == 'body':
                continue
            row[f'{prefix}.{name}'] = _plain(value)
    if include_payload:
        row['payload'] = _payload(packet)
    return row


def to_dataframe(packets: list[Packet], include_payload: bool = True) -> object:
    """
    Convert packets to pandas DataFrame.

    Creates a pandas DataFrame with one row per packet. Header fields are
    flattened into '<protocol>.<field>' columns; a column is empty (NaN)
    for packets without that header.

    Args:
        packets: List of Packet objects
        include_payload: Whether to add a hex 'payload' column (default: True)

    Returns:
        pandas DataFrame with header fields as columns

    Raises:
        ImportError: If pandas is not installed
    """
    try:
        import pandas as pd
    except ImportError:
        raise ImportError("pandas is required for DataFrame export. Install with: pip install pktcraft[pandas]")

    return pd.DataFrame([packet_to_row(pkt, include_payload) for pkt in packets])


def to_dict(packets: list[Packet], include_payload: bool = True) -> list[dict]:
    """
    Convert packets to list of dictionaries.

    Args:
        packets: List of Packet objects
        include_payload: Whether to include the undissected payload (default: True)

    Returns:
        List of dictionaries representing packets

    Examples:
        >>> for pkt_dict in to_dict(packets):
        ...     print(pkt_dict['protocols'], pkt_dict['size'])
    """
    return [packet_to_dict(pkt, include_payload) for pkt in packets]


def to_json(
    packets: list[Packet],
    path: str | Path,
    include_payload: bool = True,
    indent: int = 2
) -> None:
    """
    Export packets to JSON file.

    Args:
        packets: List of Packet objects
        path: Output JSON file path
        include_payload: Whether to include the undissected payload (default: True)
        indent: JSON indentation level (default: 2)
    """
    path = Path(path)

    data = to_dict(packets, include_payload=include_payload)

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, default=str)


def to_csv(
    packets: list[Packet],
    path: str | Path,
    include_payload: bool = True
) -> None:
    """
    Export packets to CSV file.

    Raises:
        ImportError: If pandas is not installed
    """
    df = to_dataframe(packets, include_payload=include_payload)
    df.to_csv(path, index=False)


class PacketExporter:
    """
    Helper class for exporting packets in various formats.

    Attributes:
        include_payload: Whether to include the undissected payload
        flatten: Whether dict/JSON exports use flat '<protocol>.<field>' rows
    """

    def __init__(self, include_payload: bool = True, flatten: bool = False):
        self.include_payload = include_payload
        self.flatten = flatten

    def to_dataframe(self, packets: list[Packet]) -> object:
        """Convert packets to pandas DataFrame."""
        return to_dataframe(packets, include_payload=self.include_payload)

    def to_dict(self, packets: list[Packet]) -> list[dict]:
        """Convert packets to list of dictionaries."""
        if self.flatten:
            return [packet_to_row(pkt, self.include_payload) for pkt in packets]
        return to_dict(packets, include_payload=self.include_payload)

    def to_json(self, packets: list[Packet], path: str | Path, indent: int = 2) -> None:
        """Export packets to JSON file."""
        data = self.to_dict(packets)
        path = Path(path)

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=indent, default=str)

    def to_csv(self, packets: list[Packet], path: str | Path) -> None:
        """Export packets to CSV file."""
        df = self.to_dataframe(packets)
        df.to_csv(Path(path), index=False)

    def save(self, packets: list[Packet], path: str | Path) -> None:
        """
        Save packets to file based on extension.

        Automatically detects the output format from the file extension:
        - .json: JSON format
        - .csv: CSV format (requires pandas)
        - .parquet: Parquet format (requires pyarrow, in the pandas extra)

        Raises:
            ValueError: If file extension is not supported
        """
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix == '.json':
            self.to_json(packets, path)
        elif suffix == '.csv':
            self.to_csv(packets, path)
        elif suffix == '.parquet':
            df = self.to_dataframe(packets)
            df.to_parquet(path, index=False)
        else:
            raise ValueError(f"Unsupported file extension: {suffix}")
