"""Protocol header modules."""

from pktcraft.protocols.base import Header, Layer
from pktcraft.protocols.registry import (
    register_header,
    unregister_header,
    get_global_registry as get_header_registry,
    HeaderRegistry
)

# Header modules register bindings against each other at import time and
# are imported by the top-level package; they are reachable here by name.
_HEADER_NAMES = {
    'MacAddr': 'pktcraft.protocols.link',
    'Eth': 'pktcraft.protocols.link',
    'Dot1q': 'pktcraft.protocols.link',
    'IPAddr': 'pktcraft.protocols.network',
    'IPv6Addr': 'pktcraft.protocols.network',
    'IPOption': 'pktcraft.protocols.network',
    'IP': 'pktcraft.protocols.network',
    'IPv6': 'pktcraft.protocols.network',
    'ICMP': 'pktcraft.protocols.network',
    'ICMPv6': 'pktcraft.protocols.network',
    'IGMP': 'pktcraft.protocols.network',
    'ARP': 'pktcraft.protocols.network',
    'TCP': 'pktcraft.protocols.transport',
    'UDP': 'pktcraft.protocols.transport',
}


def __getattr__(name):
    if name in _HEADER_NAMES:
        import importlib
        mod = importlib.import_module(_HEADER_NAMES[name])
        return getattr(mod, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'Header',
    'Layer',
    'register_header',
    'unregister_header',
    'get_header_registry',
    'HeaderRegistry',
    *_HEADER_NAMES,
]
