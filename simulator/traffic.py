"""
flood-lab/simulator/traffic.py

Traffic Sources
===============
Produce packets at a configured rate for the Orchestrator.

  - GenuineTraffic: a fixed pool of sequential client addresses sending
                    HTTP GETs at a steady per-user rate
  - Attacker:       a botnet spread over random /24 ranges flooding with
                    UDP, ICMP or TCP SYN packets

Both use a fractional accumulator so non-integer packets-per-tick add up
correctly across frames.
"""

import logging
import math
import random
from typing import Optional

from core.packet import Packet, PacketType
from core.utils import (
    extract_subnet,
    generate_sequential_ips,
    random_choice,
    random_ip,
    random_octet,
)
from config import (
    ATTACK_RATE_ICMP,
    ATTACK_RATE_TCP_SYN,
    ATTACK_RATE_UDP,
    BANDWIDTH_MULTIPLIER_MIN,
    DEVICE_COUNT_MIN,
    DEVICES_PER_SUBNET,
    GENUINE_IP_PREFIX,
    GENUINE_PACKETS_PER_USER_PER_SEC,
    GENUINE_USER_COUNT,
    PACKET_VISUAL_SCALE,
    SPEED_LEGITIMATE,
    SPEED_MALICIOUS,
    VICTIM_IP,
    VISUAL_SPAWN_CAP_PER_SECOND,
)

logger = logging.getLogger("floodlab.traffic")

ATTACK_TYPES = (PacketType.UDP, PacketType.ICMP, PacketType.TCP_SYN)

BASE_RATES = {
    PacketType.UDP: ATTACK_RATE_UDP,
    PacketType.ICMP: ATTACK_RATE_ICMP,
    PacketType.TCP_SYN: ATTACK_RATE_TCP_SYN,
}


def parse_attack_type(value) -> PacketType:
    """Map user input to an attack type, falling back to UDP."""
    try:
        attack_type = PacketType(str(getattr(value, "value", value)).strip().upper())
    except ValueError:
        attack_type = None
    if attack_type not in BASE_RATES:
        logger.warning(f"Invalid attack type {value!r}, falling back to UDP")
        return PacketType.UDP
    return attack_type


class GenuineTraffic:
    """Legitimate users: HTTP GETs from a stable pool of addresses."""

    def __init__(
        self,
        user_count: int = GENUINE_USER_COUNT,
        ip_prefix: str = GENUINE_IP_PREFIX,
        packets_per_user_per_sec: float = GENUINE_PACKETS_PER_USER_PER_SEC,
        rng: Optional[random.Random] = None,
    ):
        self.user_count = user_count
        self.ip_prefix = ip_prefix
        self.packets_per_user_per_sec = packets_per_user_per_sec
        self.rng = rng or random.Random()
        self.user_ips = generate_sequential_ips(ip_prefix, user_count, 1)
        self.accumulator = 0.0

    def spawn_packet(self) -> Packet:
        return Packet(
            type=PacketType.HTTP_GET,
            is_malicious=False,
            source_ip=random_choice(self.rng, self.user_ips),
            payload_size=1,
            speed=SPEED_LEGITIMATE,
            traffic_weight=PACKET_VISUAL_SCALE,
        )

    def spawn_packets(self, dt: float = 1) -> list:
        desired = self.user_count * self.packets_per_user_per_sec * dt + self.accumulator
        count = math.floor(desired)
        self.accumulator = desired - count
        return [self.spawn_packet() for _ in range(count)]


class Attacker:
    """
    Botnet model. The on-screen spawn rate is capped; each particle then
    carries a traffic weight so server load still reflects the full rate.
    """

    def __init__(
        self,
        device_count: int = DEVICE_COUNT_MIN,
        attack_type: PacketType = PacketType.UDP,
        target_ip: str = VICTIM_IP,
        bandwidth_multiplier: float = BANDWIDTH_MULTIPLIER_MIN,
        is_attacking: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.rng = rng or random.Random()
        self.device_count = device_count
        self.attack_type = attack_type
        self.target_ip = target_ip
        self.bandwidth_multiplier = bandwidth_multiplier
        self.is_attacking = is_attacking
        self.botnet_ranges: list = []
        self.accumulator = 0.0

    @property
    def attack_type(self) -> PacketType:
        return self._attack_type

    @attack_type.setter
    def attack_type(self, value):
        self._attack_type = parse_attack_type(value)

    def generate_botnet_ranges(self) -> list:
        """
        Pick ceil(devices / DEVICES_PER_SUBNET) distinct /24 ranges, never the
        genuine users' prefix. Random attempts are bounded; any shortfall is
        filled with sequential 10.<n>.0 ranges so a degenerate random source
        cannot loop forever.
        """
        subnet_count = max(1, math.ceil(self.device_count / DEVICES_PER_SUBNET))
        ranges: dict = {}
        attempts = 0
        while len(ranges) < subnet_count and attempts < subnet_count * 20:
            attempts += 1
            subnet = extract_subnet(random_ip(self.rng))
            if subnet == GENUINE_IP_PREFIX:
                continue
            ranges[subnet] = None

        filler = 1
        while len(ranges) < subnet_count:
            subnet = f"10.{filler}.0"
            if subnet != GENUINE_IP_PREFIX:
                ranges[subnet] = None
            filler += 1

        self.botnet_ranges = list(ranges)
        logger.info(
            f"[BOTNET] {self.device_count} devices across {len(self.botnet_ranges)} ranges"
        )
        return self.botnet_ranges

    def get_base_rate(self) -> float:
        return BASE_RATES[self.attack_type]

    def compute_desired_pps(self) -> float:
        return self.device_count * self.get_base_rate() * self.bandwidth_multiplier

    def spawn_packet(self) -> Packet:
        if not self.botnet_ranges:
            self.generate_botnet_ranges()
        subnet = random_choice(self.rng, self.botnet_ranges)
        return Packet(
            type=self.attack_type,
            is_malicious=True,
            source_ip=f"{subnet}.{random_octet(self.rng)}",
            payload_size=1,
            speed=SPEED_MALICIOUS,
        )

    def spawn_packets(self, dt: float = 1) -> dict:
        desired_pps = self.compute_desired_pps()
        visual_pps = min(desired_pps, VISUAL_SPAWN_CAP_PER_SECOND)
        weight = 1.0 if visual_pps == 0 else desired_pps / visual_pps * PACKET_VISUAL_SCALE

        desired_count = visual_pps * dt + self.accumulator
        count = math.floor(desired_count)
        self.accumulator = desired_count - count

        packets = []
        for _ in range(count):
            packet = self.spawn_packet()
            packet.traffic_weight = weight
            packets.append(packet)

        return {
            "packets": packets,
            "desired_pps": desired_pps,
            "visual_pps": visual_pps,
            "traffic_weight": weight,
        }

    def get_config(self) -> dict:
        return {
            "device_count": self.device_count,
            "attack_type": self.attack_type.value,
            "target_ip": self.target_ip,
            "bandwidth_multiplier": self.bandwidth_multiplier,
            "is_attacking": self.is_attacking,
            "botnet_ranges": list(self.botnet_ranges),
            "desired_pps": self.compute_desired_pps(),
        }
