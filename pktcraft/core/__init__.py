"""Core pktcraft modules."""

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
    BindingGroup,
    BindingGroupSet,
    BindingRegistry
)
from pktcraft.core.packet import Packet, Dissector, DissectorConfig
from pktcraft.core.reader import PcapReader, LinkLayerType, write_pcap

__all__ = [
    'PktcraftError',
    'TruncatedInputError',
    'UnattachedHeaderError',
    'InvalidFieldValueError',
    'UnknownBindingError',
    'ParseError',
    'Schema',
    'Struct',
    'Binding',
    'ProcBinding',
    'BindingGroup',
    'BindingGroupSet',
    'BindingRegistry',
    'Packet',
    'Dissector',
    'DissectorConfig',
    'PcapReader',
    'LinkLayerType',
    'write_pcap',
]
