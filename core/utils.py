"""
flood-lab/core/utils.py

Address & Numeric Helpers
=========================
Small helpers shared by the traffic sources, firewall and server.
Every function that draws randomness takes the caller's `random.Random`
so simulations can be replayed from a seed.
"""

import random
from ipaddress import IPv4Address
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]. Inverted bounds are a programming error."""
    if low > high:
        raise ValueError("min cannot exceed max")
    if value < low:
        return low
    if value > high:
        return high
    return value


def random_octet(rng: random.Random) -> int:
    return int(rng.random() * 256)


def random_ip(rng: random.Random, excluded_prefix: Optional[str] = None) -> str:
    """Generate a random IPv4 address outside `excluded_prefix` (a /24 prefix)."""
    while True:
        ip = str(IPv4Address(bytes(random_octet(rng) for _ in range(4))))
        if not excluded_prefix or not ip.startswith(f"{excluded_prefix}."):
            return ip


def extract_subnet(ip: str) -> str:
    """
    Return the /24 prefix of an IPv4 address: "192.168.1.42" → "192.168.1".

    Raises ValueError for anything that is not four dotted parts; callers
    only ever pass generated addresses, so a bad one is a bug upstream.
    """
    parts = str(ip).split(".")
    if len(parts) != 4:
        raise ValueError(f"Invalid IPv4 address: {ip!r}")
    return ".".join(parts[:3])


def random_choice(rng: random.Random, items: Optional[Sequence[T]]) -> Optional[T]:
    if not items:
        return None
    return items[int(rng.random() * len(items))]


def generate_sequential_ips(prefix: str, count: int, start: int = 1) -> list:
    return [f"{prefix}.{start + i}" for i in range(count)]
