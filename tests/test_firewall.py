import pytest

from core.packet import Packet, PacketType, Protocol
from network.firewall import SCOPE_ALL, Firewall, parse_scope


def udp(ip, client_ip=None):
    return Packet(type=PacketType.UDP, source_ip=ip, client_ip=client_ip)


def http(ip, client_ip=None):
    return Packet(type=PacketType.HTTP_GET, source_ip=ip, client_ip=client_ip)


@pytest.fixture
def limiter():
    """Firewall with an active rate limit of 2 packets per second."""
    return Firewall(rate_limit_threshold=2, rate_limit_enabled=True, dashboard_open=True)


class TestInspectionOrder:
    def test_default_firewall_allows(self):
        result = Firewall().inspect(udp("45.33.12.7"), now=0)
        assert result == {"allowed": True, "reason": "ALLOWED"}

    def test_blocked_protocol(self):
        firewall = Firewall()
        firewall.block_protocol("UDP")
        assert firewall.inspect(udp("45.33.12.7"), now=0)["reason"] == "BLOCK_PROTOCOL"
        assert firewall.inspect(http("172.16.0.1"), now=0)["allowed"]

    def test_blocked_subnet(self):
        firewall = Firewall()
        firewall.block_subnet("45.33.12")
        assert firewall.inspect(udp("45.33.12.200"), now=0) == {"allowed": False, "reason": "BLOCK_IP"}
        assert firewall.inspect(udp("45.33.13.1"), now=0)["allowed"]

    def test_protocol_checked_before_subnet(self):
        firewall = Firewall()
        firewall.block_subnet("45.33.12")
        firewall.block_protocol(Protocol.UDP)
        assert firewall.inspect(udp("45.33.12.1"), now=0)["reason"] == "BLOCK_PROTOCOL"

    def test_subnet_checked_before_rate_limit(self, limiter):
        limiter.block_subnet("45.33.12")
        for _ in range(5):
            assert limiter.inspect(udp("45.33.12.1"), now=0)["reason"] == "BLOCK_IP"

    def test_detected_subnets_recorded_even_when_blocked(self):
        firewall = Firewall()
        firewall.block_protocol("ICMP")
        firewall.inspect(Packet(type=PacketType.ICMP, source_ip="8.8.4.4"), now=0)
        firewall.inspect(udp("1.2.3.4"), now=0)
        firewall.inspect(udp("8.8.4.9"), now=0)
        assert firewall.get_detected_subnets() == ["8.8.4", "1.2.3"]

    def test_client_ip_drives_inspection(self):
        firewall = Firewall()
        firewall.block_subnet("45.33.12")
        packet = http("198.51.100.150", client_ip="45.33.12.9")
        assert firewall.inspect(packet, now=0)["reason"] == "BLOCK_IP"
        assert "45.33.12" in firewall.get_detected_subnets()
        assert "198.51.100" not in firewall.get_detected_subnets()


class TestRateLimit:
    def test_lazy_window(self, limiter):
        results = [
            limiter.inspect(udp("10.0.0.1"), now=t)["allowed"]
            for t in (1000, 1000.2, 1000.3, 1001.2)
        ]
        assert results == [True, True, False, True]

    def test_rejection_reason(self, limiter):
        for _ in range(2):
            limiter.inspect(udp("10.0.0.1"), now=5)
        assert limiter.inspect(udp("10.0.0.1"), now=5) == {"allowed": False, "reason": "RATE_LIMIT"}

    def test_separate_counters_per_address(self, limiter):
        for _ in range(3):
            limiter.inspect(udp("10.0.0.1"), now=0)
        assert limiter.inspect(udp("10.0.0.2"), now=0)["allowed"]

    def test_keyed_by_client_behind_shared_egress(self, limiter):
        egress = "198.51.100.100"
        first = [limiter.inspect(http(egress, client_ip="172.16.0.1"), now=0)["allowed"] for _ in range(3)]
        second = [limiter.inspect(http(egress, client_ip="172.16.0.2"), now=0)["allowed"] for _ in range(3)]
        assert first == [True, True, False]
        assert second == [True, True, False]

    def test_inactive_unless_dashboard_open(self):
        firewall = Firewall(rate_limit_threshold=1, rate_limit_enabled=True, dashboard_open=False)
        assert all(firewall.inspect(udp("10.0.0.1"), now=0)["allowed"] for _ in range(10))
        assert not firewall.is_rate_limit_active()

    def test_inactive_unless_enabled(self):
        firewall = Firewall(rate_limit_threshold=1, rate_limit_enabled=False, dashboard_open=True)
        assert all(firewall.inspect(udp("10.0.0.1"), now=0)["allowed"] for _ in range(10))

    def test_scope_limits_only_matching_protocol(self):
        firewall = Firewall(
            rate_limit_threshold=1,
            rate_limit_scope="UDP",
            rate_limit_enabled=True,
            dashboard_open=True,
        )
        assert all(firewall.inspect(http("10.0.0.1"), now=0)["allowed"] for _ in range(5))
        assert firewall.inspect(udp("10.0.0.1"), now=0)["allowed"]
        assert not firewall.inspect(udp("10.0.0.1"), now=0)["allowed"]

    def test_scope_all_shares_one_counter_across_protocols(self):
        firewall = Firewall(rate_limit_threshold=2, rate_limit_enabled=True, dashboard_open=True)
        assert firewall.inspect(udp("10.0.0.1"), now=0)["allowed"]
        assert firewall.inspect(http("10.0.0.1"), now=0)["allowed"]
        assert firewall.inspect(Packet(type=PacketType.ICMP, source_ip="10.0.0.1"), now=0)["reason"] == "RATE_LIMIT"


class TestConfiguration:
    @pytest.mark.parametrize("bad", ["SMTP", "", None, "HTTP_GET"])
    def test_invalid_scope_falls_back_to_all(self, bad):
        firewall = Firewall()
        firewall.rate_limit_scope = bad
        assert firewall.rate_limit_scope == SCOPE_ALL

    def test_scope_is_normalized(self):
        assert parse_scope("icmp") == "ICMP"
        assert parse_scope(Protocol.TCP) == "TCP"
        assert parse_scope("all") == SCOPE_ALL

    def test_unknown_protocol_ignored(self):
        firewall = Firewall()
        firewall.block_protocol("GOPHER")
        assert firewall.blocked_protocols == set()

    def test_unblock(self):
        firewall = Firewall()
        firewall.block_protocol("TCP")
        firewall.block_subnet("45.33.12")
        firewall.unblock_protocol("TCP")
        firewall.unblock_subnet("45.33.12")
        assert firewall.inspect(http("45.33.12.1"), now=0)["allowed"]

    def test_block_subnet_accepts_full_address(self):
        firewall = Firewall()
        firewall.block_subnet("45.33.12.77")
        assert firewall.blocked_ips == {"45.33.12"}

    def test_subnet_list_flags_blocked(self):
        firewall = Firewall()
        firewall.inspect(udp("1.2.3.4"), now=0)
        firewall.inspect(udp("5.6.7.8"), now=0)
        firewall.block_subnet("5.6.7")
        assert firewall.get_subnet_list() == [
            {"subnet": "1.2.3", "blocked": False},
            {"subnet": "5.6.7", "blocked": True},
        ]

    def test_get_config(self, limiter):
        limiter.block_protocol("ICMP")
        config = limiter.get_config()
        assert config["blocked_protocols"] == ["ICMP"]
        assert config["rate_limit_active"] is True
        assert config["rate_limit_scope"] == SCOPE_ALL
        assert config["rate_limit_threshold"] == 2
