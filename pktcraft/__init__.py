"""
pktcraft - Python Packet Crafting and Dissection Library

Protocol headers are declared as typed binary records; packets are built
by stacking headers and dissected by following declarative bindings from
one header to the next.

Example usage:
    from pktcraft import Packet

    pkt = Packet.gen('Eth', src='00:01:02:03:04:05', dst='00:0a:0b:0c:0d:0e')
    pkt.add('IP', src='10.0.0.1', dst='10.0.0.2').add('TCP', sport=1234, dport=80)
    pkt.body = b'GET / HTTP/1.0\\r\\n\\r\\n'
    pkt.calc()

    parsed = Packet.parse(pkt.to_bytes())
    print(parsed)                # Packet(Eth/IP/TCP, 72 bytes)
    print(parsed.ip.dst)         # 10.0.0.2
    print(parsed.tcp.flag_syn)   # False
"""

from pktcraft.core.errors import (
    PktcraftError,
    TruncatedInputError,
    UnattachedHeaderError,
    InvalidFieldValueError,
    UnknownBindingError,
    ParseError
)
from pktcraft.core.struct import Schema, Struct
from pktcraft.core.binding import (
    Binding,
    ProcBinding,
    BindingRegistry,
    get_global_registry as get_binding_registry
)
from pktcraft.core.packet import (
    Packet,
    Dissector,
    DissectorConfig,
    get_default_config,
    set_default_config
)
from pktcraft.core.reader import PcapReader, LinkLayerType, write_pcap
from pktcraft.protocols.base import Header, Layer
from pktcraft.protocols.registry import register_header, get_global_registry as get_header_registry
from pktcraft.protocols.link import MacAddr, Eth, Dot1q
from pktcraft.protocols.network import IPAddr, IPv6Addr, IPOption, IP, IPv6, ICMP, ICMPv6, IGMP, ARP
from pktcraft.protocols.transport import TCP, UDP
from pktcraft.exporters import (
    to_dataframe,
    to_dict,
    to_json,
    to_csv,
    PacketExporter
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    'PktcraftError',
    'TruncatedInputError',
    'UnattachedHeaderError',
    'InvalidFieldValueError',
    'UnknownBindingError',
    'ParseError',

    # Core classes
    'Schema',
    'Struct',
    'Header',
    'Layer',
    'Packet',
    'Dissector',
    'DissectorConfig',
    'get_default_config',
    'set_default_config',
    'PcapReader',
    'LinkLayerType',
    'write_pcap',

    # Bindings and registration
    'Binding',
    'ProcBinding',
    'BindingRegistry',
    'get_binding_registry',
    'register_header',
    'get_header_registry',

    # Headers
    'MacAddr',
    'Eth',
    'Dot1q',
    'IPAddr',
    'IPv6Addr',
    'IPOption',
    'IP',
    'IPv6',
    'ICMP',
    'ICMPv6',
    'IGMP',
    'ARP',
    'TCP',
    'UDP',

    # Exporters
    'to_dataframe',
    'to_dict',
    'to_json',
    'to_csv',
    'PacketExporter',
]
