"""Configuration and fixtures for pytest tests."""

import pytest
import struct
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def build_ipv4(protocol, payload, ttl=64, src=b'\x0a\x00\x00\x01', dst=b'\x0a\x00\x00\x02'):
    """Raw 20-byte IPv4 header followed by payload."""
    header = struct.pack(
        '>BBHHHBBH4s4s',
        0x45, 0, 20 + len(payload), 0x1234, 0, ttl, protocol, 0, src, dst
    )
    return header + payload


def build_tcp(sport=1234, dport=80, flags=0x02, payload=b''):
    """Raw 20-byte TCP header (no options) followed by payload."""
    header = struct.pack('>HHIIHHHH', sport, dport, 1, 0, 0x5000 | flags, 8192, 0, 0)
    return header + payload


@pytest.fixture
def eth_ip_tcp_bytes():
    """Ethernet/IPv4/TCP frame carrying 4 bytes of data."""
    tcp = build_tcp(payload=b'DATA')
    ip = build_ipv4(6, tcp)
    eth = b'\xaa' * 6 + b'\xbb' * 6 + b'\x08\x00'
    return eth + ip


@pytest.fixture
def ipv6_udp_bytes():
    """IPv6/UDP datagram carrying 3 bytes of data."""
    udp = struct.pack('>HHHH', 5353, 5353, 11, 0) + b'abc'
    src = bytes.fromhex('fe800000000000000000000000000001')
    dst = bytes.fromhex('ff0200000000000000000000000000fb')
    header = struct.pack('>IHBB', 0x60000000, len(udp), 17, 255) + src + dst
    return header + udp


@pytest.fixture
def binding_registry():
    """Provide an empty BindingRegistry for testing."""
    from pktcraft.core.binding import BindingRegistry
    return BindingRegistry()


@pytest.fixture
def restore_default_config():
    """Restore the module default DissectorConfig after a test."""
    from pktcraft.core.packet import get_default_config, set_default_config
    saved = get_default_config()
    yield
    set_default_config(saved)
