"""Test Internet checksum and length helpers."""

from pktcraft.core.checksum import checksum16, reduce_checksum, set_length, sum16
from pktcraft.core.packet import Packet
from pktcraft.protocols.transport import UDP

RFC1071_SAMPLE = bytes.fromhex('0001f203f4f5f6f7')


def test_sum16_keeps_carries():
    assert sum16(RFC1071_SAMPLE) == 0x2ddf0


def test_sum16_initial():
    assert sum16(b'\x00\x01', initial=0x10) == 0x11


def test_odd_length_is_padded():
    assert sum16(b'\x01') == 0x0100
    assert sum16(b'\x01\x02\x03') == 0x0102 + 0x0300


def test_empty():
    assert sum16(b'') == 0
    assert checksum16(b'') == 0xffff


def test_rfc1071_sample():
    assert reduce_checksum(0x2ddf0) == 0x220d
    assert checksum16(RFC1071_SAMPLE) == 0x220d


def test_ipv4_header_checksum():
    header = bytes.fromhex('450000730000400040110000c0a80001c0a800c7')
    assert checksum16(header) == 0xb861

    patched = header[:10] + b'\xb8\x61' + header[12:]
    assert checksum16(patched) == 0


def test_ip_calc_checksum_matches():
    pkt = Packet.gen('IP', src='192.168.0.1', dst='192.168.0.199', id=0, flag_df=True,
                     ttl=64, protocol=17)
    pkt.ip.length = 0x73
    pkt.calc_checksum()
    assert pkt.ip.checksum == 0xb861


def test_set_length():
    udp = UDP()
    udp.body = b'abcd'
    assert set_length(udp) == 12
    assert udp.length == 12
    assert set_length(udp, header_in_size=False) == 4
    assert udp.length == 4


def test_set_length_other_field():
    udp = UDP(body=b'xy')
    assert set_length(udp, field='checksum') == 10
    assert udp.checksum == 10
