import math
import random

import pytest

from config import (
    ATTACK_RATE_ICMP,
    ATTACK_RATE_TCP_SYN,
    ATTACK_RATE_UDP,
    DEVICES_PER_SUBNET,
    GENUINE_IP_PREFIX,
    GENUINE_PACKETS_PER_USER_PER_SEC,
    GENUINE_USER_COUNT,
    VISUAL_SPAWN_CAP_PER_SECOND,
)
from core.packet import PacketType
from simulator.traffic import Attacker, GenuineTraffic, parse_attack_type
from tests.helpers import ScriptedRandom


class TestGenuineTraffic:
    def test_spawn_packet(self, rng):
        packet = GenuineTraffic(rng=rng).spawn_packet()
        assert packet.type is PacketType.HTTP_GET
        assert packet.is_malicious is False
        octets = [int(o) for o in packet.source_ip.split(".")]
        assert octets[:3] == [172, 16, 0]
        assert 1 <= octets[3] <= GENUINE_USER_COUNT

    def test_one_second_spawns_every_user(self, rng):
        packets = GenuineTraffic(rng=rng).spawn_packets(1)
        assert len(packets) == GENUINE_USER_COUNT * GENUINE_PACKETS_PER_USER_PER_SEC
        assert all(p.source_ip.startswith(f"{GENUINE_IP_PREFIX}.") for p in packets)

    def test_accumulator_carries_fractions(self, rng):
        traffic = GenuineTraffic(user_count=3, packets_per_user_per_sec=1, rng=rng)
        first = traffic.spawn_packets(0.5)
        second = traffic.spawn_packets(0.5)
        assert len(first) == 1
        assert len(second) == 2

    def test_half_second_steps(self, rng):
        traffic = GenuineTraffic(rng=rng)
        assert len(traffic.spawn_packets(0.5)) == 25
        assert len(traffic.spawn_packets(0.5)) == 25


class TestBotnetRanges:
    def test_range_count_and_genuine_prefix_excluded(self):
        attacker = Attacker(device_count=45, rng=ScriptedRandom([0.1, 0.2, 0.3, 0.4]))
        ranges = attacker.generate_botnet_ranges()
        assert len(ranges) == math.ceil(45 / DEVICES_PER_SUBNET)
        assert len(set(ranges)) == len(ranges)
        for subnet in ranges:
            assert subnet != GENUINE_IP_PREFIX
            assert len(subnet.split(".")) == 3

    def test_degenerate_random_source_falls_back_to_filler(self):
        attacker = Attacker(device_count=100, rng=ScriptedRandom([0.0]))
        ranges = attacker.generate_botnet_ranges()
        assert len(ranges) == 5
        assert ranges[0] == "0.0.0"
        assert ranges[1:] == ["10.1.0", "10.2.0", "10.3.0", "10.4.0"]

    def test_at_least_one_range(self, rng):
        assert len(Attacker(device_count=0, rng=rng).generate_botnet_ranges()) == 1

    def test_real_randomness_yields_distinct_ranges(self):
        ranges = Attacker(device_count=400, rng=random.Random(3)).generate_botnet_ranges()
        assert len(ranges) == 20
        assert len(set(ranges)) == 20


class TestAttacker:
    def test_base_rate_per_attack_type(self, rng):
        assert Attacker(attack_type=PacketType.UDP, rng=rng).get_base_rate() == ATTACK_RATE_UDP
        assert Attacker(attack_type=PacketType.ICMP, rng=rng).get_base_rate() == ATTACK_RATE_ICMP
        assert Attacker(attack_type=PacketType.TCP_SYN, rng=rng).get_base_rate() == ATTACK_RATE_TCP_SYN

    @pytest.mark.parametrize("bad", ["SMURF", "HTTP_GET", None, 42])
    def test_invalid_attack_type_falls_back_to_udp(self, rng, bad):
        attacker = Attacker(attack_type=PacketType.ICMP, rng=rng)
        attacker.attack_type = bad
        assert attacker.attack_type is PacketType.UDP

    def test_attack_type_accepts_names(self):
        assert parse_attack_type("tcp_syn") is PacketType.TCP_SYN
        assert parse_attack_type(" icmp ") is PacketType.ICMP

    def test_desired_vs_visual_pps_and_weight(self, rng):
        attacker = Attacker(device_count=100, attack_type=PacketType.UDP, bandwidth_multiplier=2, rng=rng)
        result = attacker.spawn_packets(1)
        expected_desired = 100 * ATTACK_RATE_UDP * 2
        expected_visual = min(expected_desired, VISUAL_SPAWN_CAP_PER_SECOND)
        assert result["desired_pps"] == expected_desired
        assert result["visual_pps"] == expected_visual
        assert result["traffic_weight"] == pytest.approx(expected_desired / expected_visual)
        assert len(result["packets"]) == expected_visual
        for packet in result["packets"]:
            assert packet.traffic_weight == pytest.approx(result["traffic_weight"])
            assert packet.is_malicious

    def test_visual_weight_conservation(self, rng):
        attacker = Attacker(device_count=1000, attack_type=PacketType.UDP, bandwidth_multiplier=2, rng=rng)
        result = attacker.spawn_packets(1)
        assert result["desired_pps"] == 20000
        assert result["visual_pps"] == VISUAL_SPAWN_CAP_PER_SECOND
        assert result["visual_pps"] * result["traffic_weight"] == pytest.approx(result["desired_pps"])
        assert len(result["packets"]) == VISUAL_SPAWN_CAP_PER_SECOND

    def test_below_cap_weight_is_one(self, rng):
        result = Attacker(device_count=10, rng=rng).spawn_packets(1)
        assert result["traffic_weight"] == pytest.approx(1.0)
        assert len(result["packets"]) == 10 * ATTACK_RATE_UDP

    def test_idle_botnet_spawns_nothing(self, rng):
        result = Attacker(device_count=0, rng=rng).spawn_packets(1)
        assert result["packets"] == []
        assert result["traffic_weight"] == 1.0

    def test_accumulator_and_sources_come_from_botnet_ranges(self):
        attacker = Attacker(
            device_count=20,
            attack_type=PacketType.ICMP,
            bandwidth_multiplier=1,
            rng=ScriptedRandom([0.01, 0.02, 0.03, 0.04, 0.05]),
        )
        attacker.generate_botnet_ranges()
        first = attacker.spawn_packets(0.5)
        second = attacker.spawn_packets(0.5)
        visual_per_sec = min(20 * ATTACK_RATE_ICMP, VISUAL_SPAWN_CAP_PER_SECOND)
        assert len(first["packets"]) + len(second["packets"]) == visual_per_sec
        for packet in first["packets"] + second["packets"]:
            assert packet.source_ip.startswith(f"{attacker.botnet_ranges[0]}.")
            assert packet.type is PacketType.ICMP

    def test_ranges_generated_lazily(self, rng):
        attacker = Attacker(device_count=30, rng=rng)
        assert attacker.botnet_ranges == []
        attacker.spawn_packet()
        assert len(attacker.botnet_ranges) == 2
