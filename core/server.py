"""
flood-lab/core/server.py

Victim Server Resource Model
============================

Two gauges in [0, 100]:
  - bandwidth_usage: raised by volumetric floods (UDP / ICMP)
  - cpu_load:        raised by half-open TCP connections (SYN floods)

Status is derived from max(bandwidth, cpu):
  ONLINE   → load below SERVER_DEGRADED_THRESHOLD
  DEGRADED → load at or above SERVER_DEGRADED_THRESHOLD
  CRASHED  → load at or above SERVER_CRASHED_THRESHOLD, and held there
             until load falls below SERVER_RECOVERY_THRESHOLD

Happiness is a decaying liability: every dropped legitimate packet is
remembered for DROPPED_PACKET_TTL_SECONDS and costs
HAPPINESS_PENALTY_PER_DROP while it is remembered.
"""

import logging

from core.packet import Packet, PacketType, VOLUMETRIC_TYPES
from core.utils import clamp
from config import (
    BANDWIDTH_DECAY_RATE,
    CPU_DECAY_RATE,
    DROPPED_PACKET_TTL_SECONDS,
    HAPPINESS_PENALTY_PER_DROP,
    MAX_ACTIVE_CONNECTIONS,
    MIN_CAPACITY_MULTIPLIER,
    PROXY_PUBLIC_IP,
    SERVER_CRASHED_THRESHOLD,
    SERVER_DEGRADED_THRESHOLD,
    SERVER_RECOVERY_THRESHOLD,
    SYN_CONNECTION_TTL_SECONDS,
    VICTIM_ORIGIN_IP,
    VICTIM_PUBLIC_IP,
)

logger = logging.getLogger("floodlab.server")

ONLINE = "ONLINE"
DEGRADED = "DEGRADED"
CRASHED = "CRASHED"

LOAD_PER_PACKET = 1


class Server:
    def __init__(self):
        self.bandwidth_usage = 0.0
        self.cpu_load = 0.0
        self.active_connections: list = []      # half-open: {ttl, weight}
        self.dropped_packet_events: list = []   # {ttl}
        self.dropped_packets = 0                # lifetime total, for stats
        self.happiness_score = 100.0
        self._status = ONLINE
        self._capacity_multiplier = 1.0

        self.origin_ip = VICTIM_ORIGIN_IP
        self.public_ip = VICTIM_PUBLIC_IP
        self.reverse_proxy_enabled = False

    @property
    def status(self) -> str:
        return self._status

    @property
    def bandwidth_capacity_multiplier(self) -> float:
        return self._capacity_multiplier

    @bandwidth_capacity_multiplier.setter
    def bandwidth_capacity_multiplier(self, value: float):
        self._capacity_multiplier = max(MIN_CAPACITY_MULTIPLIER, float(value))

    def get_current_load(self) -> float:
        return max(self.bandwidth_usage, self.cpu_load)

    def update_status(self):
        load = self.get_current_load()
        previous = self._status

        if previous == CRASHED and load >= SERVER_RECOVERY_THRESHOLD:
            status = CRASHED
        elif load >= SERVER_CRASHED_THRESHOLD:
            status = CRASHED
        elif load >= SERVER_DEGRADED_THRESHOLD:
            status = DEGRADED
        else:
            status = ONLINE

        if status != previous:
            log = logger.warning if status == CRASHED else logger.info
            log(f"[STATUS] {previous} → {status} (load={load:.1f}%)")
        self._status = status

    def update_happiness(self):
        self.happiness_score = clamp(
            100 - len(self.dropped_packet_events) * HAPPINESS_PENALTY_PER_DROP,
            0,
            100,
        )

    def record_dropped_packet(self):
        """Remember one dropped legitimate packet for the happiness window."""
        self.dropped_packet_events.append({"ttl": DROPPED_PACKET_TTL_SECONDS})
        self.dropped_packets += 1
        self.update_happiness()

    def receive(self, packet: Packet) -> dict:
        """
        Apply one packet to the server.

        HTTP GETs are a pass/fail probe of current capacity and never add
        load. Volumetric packets raise bandwidth; SYNs occupy a half-open
        slot (silently ignored once every slot is taken).
        """
        weight = packet.traffic_weight or 1
        packet_type = packet.type

        if packet_type is PacketType.HTTP_GET:
            if self._status == CRASHED or self.get_current_load() >= SERVER_CRASHED_THRESHOLD:
                self.record_dropped_packet()
                return {"allowed": False, "reason": "CRASHED"}
            return {"allowed": True, "reason": "OK"}

        if packet_type in VOLUMETRIC_TYPES:
            effective = weight * LOAD_PER_PACKET / self.bandwidth_capacity_multiplier
            self.bandwidth_usage = clamp(self.bandwidth_usage + effective, 0, 100)
        elif packet_type is PacketType.TCP_SYN:
            if len(self.active_connections) < MAX_ACTIVE_CONNECTIONS:
                self.active_connections.append(
                    {"ttl": SYN_CONNECTION_TTL_SECONDS, "weight": weight}
                )
                self.cpu_load = clamp(self.cpu_load + weight * LOAD_PER_PACKET, 0, 100)
        else:
            raise ValueError(f"Unhandled packet type: {packet_type}")

        self.update_status()
        return {"allowed": True, "reason": "ACCEPTED"}

    def update(self, dt: float = 1):
        """Decay gauges and age half-open connections and dropped-packet events."""
        self.bandwidth_usage = clamp(self.bandwidth_usage - BANDWIDTH_DECAY_RATE * dt, 0, 100)
        self.cpu_load = clamp(self.cpu_load - CPU_DECAY_RATE * dt, 0, 100)

        remaining = []
        for conn in self.active_connections:
            ttl = conn["ttl"] - dt
            if ttl > 0:
                remaining.append({**conn, "ttl": ttl})
            else:
                self.cpu_load = clamp(self.cpu_load - conn["weight"] * LOAD_PER_PACKET, 0, 100)
        self.active_connections = remaining

        self.dropped_packet_events = [
            {"ttl": event["ttl"] - dt}
            for event in self.dropped_packet_events
            if event["ttl"] - dt > 0
        ]

        self.update_status()
        self.update_happiness()

    def set_reverse_proxy_enabled(self, enabled: bool):
        enabled = bool(enabled)
        if enabled == self.reverse_proxy_enabled:
            return
        self.reverse_proxy_enabled = enabled
        self.public_ip = PROXY_PUBLIC_IP if enabled else VICTIM_PUBLIC_IP
        logger.info(
            f"[PROXY] reverse proxy {'enabled' if enabled else 'disabled'} "
            f"— public IP now {self.public_ip} (origin {self.origin_ip})"
        )

    def get_half_open_weight(self) -> float:
        return sum(conn["weight"] for conn in self.active_connections)

    def get_stats(self) -> dict:
        return {
            "bandwidth_usage": self.bandwidth_usage,
            "cpu_load": self.cpu_load,
            "status": self.status,
            "happiness_score": self.happiness_score,
            "dropped_packets": self.dropped_packets,
            "recent_drops": len(self.dropped_packet_events),
            "active_connections": len(self.active_connections),
            "half_open_weight": self.get_half_open_weight(),
            "bandwidth_capacity_multiplier": self.bandwidth_capacity_multiplier,
            "reverse_proxy_enabled": self.reverse_proxy_enabled,
            "public_ip": self.public_ip,
            "origin_ip": self.origin_ip,
        }
