"""
Basic pktcraft usage example.

Demonstrates:
- Building a packet header by header
- Computing lengths and checksums
- Dissecting raw bytes back into headers
- Writing and reading a pcap file
"""

from pktcraft import Packet, PcapReader, write_pcap

# Build Ethernet/IPv4/TCP; each add() sets the field announcing the next header
pkt = Packet.gen('Eth', src='00:01:02:03:04:05', dst='00:0a:0b:0c:0d:0e')
pkt.add('IP', src='10.0.0.1', dst='10.0.0.2')
pkt.add('TCP', sport=40000, dport=80, flag_syn=True)
pkt.body = b'GET / HTTP/1.0\r\n\r\n'
pkt.calc()

print(pkt)
print(f"  ethertype: {pkt.eth.ethertype:#06x}")
print(f"  ip length: {pkt.ip.length}, checksum: {pkt.ip.checksum:#06x}")
print(f"  tcp checksum: {pkt.tcp.checksum:#06x}")
print()

# Dissect the wire bytes; the first header is guessed
parsed = Packet.parse(pkt.to_bytes())
for header in parsed:
    print(f"{header.protocol_name()}: {header.header_size()} bytes")
print(f"Payload: {parsed.body!r}")
print()

# Round trip through a pcap file (requires dpkt)
write_pcap('basic_usage.pcap', [pkt])
with PcapReader('basic_usage.pcap') as reader:
    print(f"Link layer: {reader.link_layer_name}")
    for ts, packet in reader.packets():
        print(f"{ts:.6f} {packet} {packet.ip.src} -> {packet.ip.dst}")
