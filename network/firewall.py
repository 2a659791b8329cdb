"""
flood-lab/network/firewall.py

Simulated Firewall
==================
Stateful inspector sitting in front of the server (or the reverse proxy).

Checks, in order, each short-circuiting on rejection:
  1. Resolve the inspection address (original client behind a proxy)
  2. Record its /24 in the detected-subnets set (always)
  3. Blocked protocol           → BLOCK_PROTOCOL
  4. Blocked /24 subnet         → BLOCK_IP
  5. Per-address rate limit     → RATE_LIMIT
  6. Otherwise                  → ALLOWED

Rate-limit windows are lazy: a counter only rolls over when the next
packet for its key arrives after the window has expired.
"""

import logging
import time
from typing import Optional

from core.packet import Packet, Protocol
from core.utils import extract_subnet
from config import RATE_LIMIT_DEFAULT, RATE_LIMIT_WINDOW_SECONDS

logger = logging.getLogger("floodlab.firewall")

SCOPE_ALL = "ALL"


def parse_scope(value) -> str:
    """Rate-limit scope is "ALL" or a protocol name; anything else → "ALL"."""
    text = str(getattr(value, "value", value)).strip().upper()
    if text == SCOPE_ALL:
        return SCOPE_ALL
    try:
        return Protocol(text).value
    except ValueError:
        logger.warning(f"Invalid rate-limit scope {value!r}, falling back to {SCOPE_ALL}")
        return SCOPE_ALL


def parse_protocol(value) -> Optional[Protocol]:
    try:
        return Protocol(str(getattr(value, "value", value)).strip().upper())
    except ValueError:
        logger.warning(f"Unknown protocol {value!r} ignored")
        return None


class Firewall:
    """
    Protocol / subnet blocklists plus a scoped per-address rate limiter.

    Rate limiting only applies while the firewall dashboard is open, the
    same way an operator has to be looking at the console to enforce it.
    """

    def __init__(
        self,
        rate_limit_threshold: int = RATE_LIMIT_DEFAULT,
        rate_limit_scope: str = SCOPE_ALL,
        rate_limit_enabled: bool = False,
        dashboard_open: bool = False,
        load_balancing_enabled: bool = False,
    ):
        self.blocked_protocols: set = set()
        self.blocked_ips: set = set()           # /24 prefixes, e.g. "45.33.12"
        self.detected_subnets: dict = {}        # prefix → first-seen order
        self.rate_limit_threshold = rate_limit_threshold
        self.rate_limit_scope = rate_limit_scope
        self.rate_limit_enabled = rate_limit_enabled
        self.dashboard_open = dashboard_open
        self.load_balancing_enabled = load_balancing_enabled
        self._counters: dict[str, dict] = {}    # "ip|scope" → {count, window_start}

    @property
    def rate_limit_scope(self) -> str:
        return self._rate_limit_scope

    @rate_limit_scope.setter
    def rate_limit_scope(self, value):
        self._rate_limit_scope = parse_scope(value)

    def is_rate_limit_active(self) -> bool:
        return self.rate_limit_enabled and self.dashboard_open

    def protocol_matches_scope(self, protocol: Protocol) -> bool:
        return self.rate_limit_scope in (SCOPE_ALL, protocol.value)

    def get_counter_key(self, ip: str, protocol: Protocol) -> str:
        if self.rate_limit_scope == SCOPE_ALL:
            return f"{ip}|{SCOPE_ALL}"
        return f"{ip}|{protocol.value}"

    def inspect(self, packet: Packet, now: Optional[float] = None) -> dict:
        """
        Decide whether a packet passes.

        Args:
            packet: the packet being inspected
            now:    clock in seconds (defaults to wall time)

        Returns:
            dict with 'allowed' (bool) and 'reason'
            ('ALLOWED', 'BLOCK_PROTOCOL', 'BLOCK_IP' or 'RATE_LIMIT')
        """
        if now is None:
            now = time.time()

        ip = packet.inspection_ip
        protocol = packet.protocol
        subnet = extract_subnet(ip)
        self.detected_subnets.setdefault(subnet, len(self.detected_subnets))

        if protocol in self.blocked_protocols:
            return {"allowed": False, "reason": "BLOCK_PROTOCOL"}

        if subnet in self.blocked_ips:
            return {"allowed": False, "reason": "BLOCK_IP"}

        if self.is_rate_limit_active() and self.protocol_matches_scope(protocol):
            key = self.get_counter_key(ip, protocol)
            counter = self._counters.setdefault(key, {"count": 0, "window_start": now})
            if now - counter["window_start"] >= RATE_LIMIT_WINDOW_SECONDS:
                counter["window_start"] = now
                counter["count"] = 0
            counter["count"] += 1
            if counter["count"] > self.rate_limit_threshold:
                return {"allowed": False, "reason": "RATE_LIMIT"}

        return {"allowed": True, "reason": "ALLOWED"}

    # ── Blocklist management ──

    def block_protocol(self, protocol):
        protocol = parse_protocol(protocol)
        if protocol is None or protocol in self.blocked_protocols:
            return
        self.blocked_protocols.add(protocol)
        logger.warning(f"[BLOCK] protocol {protocol.value}")

    def unblock_protocol(self, protocol):
        protocol = parse_protocol(protocol)
        if protocol in self.blocked_protocols:
            self.blocked_protocols.discard(protocol)
            logger.info(f"[UNBLOCK] protocol {protocol.value}")

    @staticmethod
    def _normalize_subnet(subnet: str) -> str:
        subnet = str(subnet).strip()
        if subnet.count(".") == 3:
            return extract_subnet(subnet)
        return subnet

    def block_subnet(self, subnet: str):
        """Block a /24, given either as a prefix ("45.33.12") or any address in it."""
        subnet = self._normalize_subnet(subnet)
        if subnet in self.blocked_ips:
            return
        self.blocked_ips.add(subnet)
        logger.warning(f"[BLOCK] subnet {subnet}.0/24")

    def unblock_subnet(self, subnet: str):
        subnet = self._normalize_subnet(subnet)
        if subnet in self.blocked_ips:
            self.blocked_ips.discard(subnet)
            logger.info(f"[UNBLOCK] subnet {subnet}.0/24")

    def get_detected_subnets(self) -> list:
        """Subnets seen by the firewall, in first-seen order."""
        return list(self.detected_subnets)

    def get_subnet_list(self) -> list:
        return [
            {"subnet": subnet, "blocked": subnet in self.blocked_ips}
            for subnet in self.detected_subnets
        ]

    def get_config(self) -> dict:
        return {
            "blocked_protocols": sorted(p.value for p in self.blocked_protocols),
            "blocked_ips": sorted(self.blocked_ips),
            "rate_limit_enabled": self.rate_limit_enabled,
            "rate_limit_active": self.is_rate_limit_active(),
            "rate_limit_threshold": self.rate_limit_threshold,
            "rate_limit_scope": self.rate_limit_scope,
            "dashboard_open": self.dashboard_open,
            "load_balancing_enabled": self.load_balancing_enabled,
            "detected_subnets": self.get_detected_subnets(),
        }
