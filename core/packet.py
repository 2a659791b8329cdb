"""
flood-lab/core/packet.py

Simulated Packet
================
One in-flight particle. Created by a traffic source, mutated in place by
the Orchestrator as it passes the proxy and server checkpoints, discarded
once terminal.
"""

from enum import Enum
from typing import Optional


class PacketType(str, Enum):
    HTTP_GET = "HTTP_GET"
    UDP = "UDP"
    ICMP = "ICMP"
    TCP_SYN = "TCP_SYN"


class Protocol(str, Enum):
    TCP = "TCP"
    UDP = "UDP"
    ICMP = "ICMP"


PROTOCOL_BY_TYPE = {
    PacketType.HTTP_GET: Protocol.TCP,
    PacketType.TCP_SYN: Protocol.TCP,
    PacketType.UDP: Protocol.UDP,
    PacketType.ICMP: Protocol.ICMP,
}

VOLUMETRIC_TYPES = frozenset({PacketType.UDP, PacketType.ICMP})


def protocol_for(packet_type: PacketType) -> Protocol:
    return PROTOCOL_BY_TYPE[PacketType(packet_type)]


class Packet:
    def __init__(
        self,
        type: PacketType = PacketType.HTTP_GET,
        is_malicious: Optional[bool] = None,
        source_ip: str = "0.0.0.0",
        destination_ip: str = "0.0.0.0",
        client_ip: Optional[str] = None,
        payload_size: int = 0,
        traffic_weight: float = 1,
        speed: float = 0,
        x: float = 0.0,
        y: float = 0.0,
    ):
        self.type = PacketType(type)
        # Only plain web requests are legitimate unless told otherwise
        if is_malicious is None:
            is_malicious = self.type is not PacketType.HTTP_GET
        self.is_malicious = is_malicious
        self.source_ip = source_ip
        self.destination_ip = destination_ip
        self.client_ip = client_ip
        self.payload_size = payload_size
        self.traffic_weight = max(0.0, traffic_weight)

        self.speed = speed
        self.x = x
        self.y = y
        self.vx = 0.0
        self.vy = 0.0

        self.has_passed_proxy = False
        self.is_forwarded = False
        self.blocked_by_firewall = False
        self.missed_target = False
        self.dropped_by_collision = False
        self.has_arrived = False

    @property
    def protocol(self) -> Protocol:
        return protocol_for(self.type)

    @property
    def inspection_ip(self) -> str:
        """Original client address when a proxy rewrote the source."""
        return self.client_ip or self.source_ip

    @property
    def is_terminal(self) -> bool:
        return (
            self.blocked_by_firewall
            or self.missed_target
            or self.dropped_by_collision
            or self.has_arrived
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "is_malicious": self.is_malicious,
            "source_ip": self.source_ip,
            "destination_ip": self.destination_ip,
            "client_ip": self.client_ip,
            "payload_size": self.payload_size,
            "traffic_weight": self.traffic_weight,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "has_passed_proxy": self.has_passed_proxy,
            "is_forwarded": self.is_forwarded,
            "blocked_by_firewall": self.blocked_by_firewall,
            "missed_target": self.missed_target,
            "dropped_by_collision": self.dropped_by_collision,
        }

    def __repr__(self):
        return (
            f"Packet(type={self.type.value}, src={self.source_ip}, "
            f"dst={self.destination_ip}, weight={self.traffic_weight:.2f})"
        )
