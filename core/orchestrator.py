"""
flood-lab/core/orchestrator.py

Simulation Orchestrator
=======================
Owns the traffic sources, firewall, server, the live particle set and the
analyzer log, and advances them one tick at a time.

Per tick:
  1. Refill the analyzer log budget
  2. Decay the server and age its TTL state
  3. Spawn genuine and attack packets (particle set is capped)
  4. Move every particle and run it through the checkpoints:
       proxy (if enabled) → server edge → collision drop
  5. Rebuild the live set, logging one entry per terminal outcome

Single writer: nothing here is thread-safe on its own. The tick driver
serialises updates and control-surface calls through one lock.
"""

import logging
import math
import random
import time
from typing import Callable, Optional

import numpy as np

from core.packet import Packet, PacketType
from core.server import CRASHED, Server
from core.utils import clamp
from network.firewall import Firewall
from simulator.traffic import Attacker, GenuineTraffic
from config import (
    BANDWIDTH_COLLISION_THRESHOLD,
    BANDWIDTH_MULTIPLIER_MAX,
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    DEVICE_COUNT_MAX,
    MAX_ACTIVE_PARTICLES,
    MAX_CAPACITY_MULTIPLIER,
    PIPE_WIDTH,
    PROXY_EGRESS_HOST_MAX,
    PROXY_EGRESS_HOST_MIN,
    PROXY_EGRESS_PREFIX,
    PROXY_POSITION_RATIO,
    PROXY_PUBLIC_IP,
    SPAWN_CLUSTER_OFFSET,
    SPAWN_CLUSTER_RADIUS,
    SPAWN_CLUSTER_X,
    UI_ANALYZER_LOG_MAX_PER_SECOND,
    UI_LOG_MAX_ENTRIES,
)

logger = logging.getLogger("floodlab.orchestrator")

PROXY_X = (CANVAS_WIDTH - PIPE_WIDTH) / 2 + PIPE_WIDTH * PROXY_POSITION_RATIO
CENTER_Y = CANVAS_HEIGHT / 2

PROXY_BADGE_MODES = ("ip", "count", "off")

EventBus = Callable[[str, dict], None]


def _finite(value) -> float:
    """Parse a numeric control value, rejecting NaN and infinities."""
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite value {value!r}")
    return number


class Orchestrator:
    """
    Coordinates one simulation instance.

    Flow for each particle:
      spawn → [proxy checkpoint] → server edge → ALLOWED / BLOCKED / DROPPED / MISSED
      with a collision drop possible anywhere before the edge while the
      pipe is congested.
    """

    def __init__(self, rng: Optional[random.Random] = None, event_bus: Optional[EventBus] = None):
        self.rng = rng or random.Random()
        self.event_bus = event_bus  # Optional callback for dashboard updates
        self.is_simulation_running = False
        self.proxy_badge_mode = PROXY_BADGE_MODES[0]
        self._build()

    def _build(self):
        self.genuine_traffic = GenuineTraffic(rng=self.rng)
        self.attacker = Attacker(rng=self.rng)
        self.server = Server()
        self.firewall = Firewall()
        self.particles: list = []
        self.analyzer_logs: list = []
        self.analyzer_log_budget = 0.0
        self.sim_time = 0.0
        self._outcomes = {"ALLOWED": 0, "BLOCKED": 0, "DROPPED": 0, "MISSED": 0}
        self._spawned = 0

    def reset(self):
        """Rebuild every component from scratch; no state survives a reset."""
        self._build()
        self.is_simulation_running = False
        logger.info("[RESET] Simulation state rebuilt")

    # ─────────────────────────────────────────────
    #  Tick
    # ─────────────────────────────────────────────

    def update(self, dt: float):
        if not dt >= 0:
            raise ValueError(f"dt must be a non-negative number, got {dt!r}")

        self.sim_time += dt
        self.analyzer_log_budget = min(
            self.analyzer_log_budget + dt * UI_ANALYZER_LOG_MAX_PER_SECOND,
            UI_ANALYZER_LOG_MAX_PER_SECOND,
        )

        self.server.update(dt)

        if self.is_simulation_running:
            packets = self.genuine_traffic.spawn_packets(dt)
            for packet in packets:
                packet.destination_ip = self.server.public_ip
            self.add_particles(packets)

        if self.attacker.is_attacking:
            packets = self.attacker.spawn_packets(dt)["packets"]
            for packet in packets:
                packet.destination_ip = self.attacker.target_ip
            self.add_particles(packets)

        self.update_particles(dt)

    def add_particles(self, packets: list):
        for packet in packets:
            if len(self.particles) >= MAX_ACTIVE_PARTICLES:
                break
            self.initialize_particle_position(packet)
            self.particles.append(packet)
            self._spawned += 1

    def initialize_particle_position(self, packet: Packet):
        """Scatter a new particle inside its source cluster and aim it downstream."""
        offset = -SPAWN_CLUSTER_OFFSET if packet.is_malicious else SPAWN_CLUSTER_OFFSET
        angle = self.rng.random() * math.pi * 2
        distance = self.rng.random() * SPAWN_CLUSTER_RADIUS
        packet.x = SPAWN_CLUSTER_X + math.cos(angle) * distance
        packet.y = CENTER_Y + offset + math.sin(angle) * distance

        if self.server.reverse_proxy_enabled:
            self._aim(packet, PROXY_X, CENTER_Y)
        else:
            self._aim(packet, CANVAS_WIDTH, CENTER_Y)

    @staticmethod
    def _aim(packet: Packet, dest_x: float, dest_y: float):
        dx = dest_x - packet.x
        dy = dest_y - packet.y
        distance = math.hypot(dx, dy)
        if distance > 0:
            packet.vx = dx / distance * packet.speed
            packet.vy = dy / distance * packet.speed
        else:
            packet.vx = packet.speed
            packet.vy = 0.0

    def update_particles(self, dt: float):
        """Move, inspect and retire particles in a single filtering pass."""
        remaining = []
        proxy_enabled = self.server.reverse_proxy_enabled

        for particle in self.particles:
            # Collision-dropped particles get one frame on screen, then leave
            if particle.dropped_by_collision:
                continue

            particle.x += particle.vx * dt
            particle.y += particle.vy * dt

            if proxy_enabled and not particle.has_passed_proxy and particle.x >= PROXY_X:
                self.process_proxy(particle)
                if particle.is_terminal:
                    continue

            if particle.x >= CANVAS_WIDTH:
                self.process_arrival(particle)
                continue

            if self._is_congested_for(particle):
                particle.dropped_by_collision = True
                self.server.record_dropped_packet()
                self.log_packet_event(particle, "DROPPED", "COLLISION")

            remaining.append(particle)

        self.particles = remaining

    def _is_congested_for(self, particle: Packet) -> bool:
        return (
            not particle.is_malicious
            and not particle.blocked_by_firewall
            and not particle.missed_target
            and self.server.bandwidth_usage > BANDWIDTH_COLLISION_THRESHOLD
        )

    # ─────────────────────────────────────────────
    #  Checkpoints
    # ─────────────────────────────────────────────

    def run_inspection(self, particle: Packet) -> bool:
        """
        Destination match + firewall. Returns True if the packet may continue.

        Packets addressed anywhere but the currently published address are
        misses and never touch firewall or server state.
        """
        expected = PROXY_PUBLIC_IP if self.server.reverse_proxy_enabled else self.server.public_ip
        if particle.destination_ip != expected:
            particle.missed_target = True
            self.log_packet_event(particle, "MISSED", "WRONG_IP")
            return False

        verdict = self.firewall.inspect(particle, now=self.sim_time)
        if not verdict["allowed"]:
            particle.blocked_by_firewall = True
            if not particle.is_malicious:
                self.server.record_dropped_packet()
            self.log_packet_event(particle, "BLOCKED", verdict["reason"])
            return False
        return True

    def process_proxy(self, particle: Packet):
        """Reverse-proxy checkpoint: inspect once, then rewrite the source."""
        particle.has_passed_proxy = True
        if not self.run_inspection(particle):
            return

        if particle.client_ip is None:
            particle.client_ip = particle.source_ip
        host = PROXY_EGRESS_HOST_MIN + int(
            self.rng.random() * (PROXY_EGRESS_HOST_MAX - PROXY_EGRESS_HOST_MIN + 1)
        )
        particle.source_ip = f"{PROXY_EGRESS_PREFIX}.{host}"
        particle.is_forwarded = True
        self._aim(particle, CANVAS_WIDTH, CENTER_Y)

    def process_arrival(self, particle: Packet):
        """Server-edge checkpoint; runs the proxy step first if it was skipped."""
        if self.server.reverse_proxy_enabled and not particle.has_passed_proxy:
            self.process_proxy(particle)
            if particle.is_terminal:
                return
        elif not particle.is_forwarded:
            if not self.run_inspection(particle):
                return

        particle.has_arrived = True
        self.process_server_arrival(particle)

    def process_server_arrival(self, particle: Packet):
        if self.server.status == CRASHED:
            # Crashed servers drop everything without touching load counters
            if not particle.is_malicious:
                self.server.record_dropped_packet()
            self.log_packet_event(particle, "DROPPED", "SERVER_CRASHED")
            return

        result = self.server.receive(particle)
        action = "ALLOWED" if result["allowed"] else "DROPPED"
        self.log_packet_event(particle, action, result["reason"])

    # ─────────────────────────────────────────────
    #  Analyzer log
    # ─────────────────────────────────────────────

    def log_packet_event(self, particle: Packet, action: str, reason: str):
        self._outcomes[action] += 1
        self.log_analyzer_event({
            "ip": particle.inspection_ip,
            "source_ip": particle.source_ip,
            "type": particle.type.value,
            "action": action,
            "reason": reason,
        })

    def log_analyzer_event(self, event: dict) -> bool:
        """
        Admit an event if a whole budget unit is available.

        Every kind of event costs the same; during an attack blocked and
        dropped entries dominate simply by volume. Returns False when the
        event was dropped.
        """
        if self.analyzer_log_budget < 1:
            return False
        self.analyzer_log_budget -= 1

        entry = {
            **event,
            "timestamp": time.strftime("%H:%M:%S"),
            "sim_time": round(self.sim_time, 3),
        }
        self.analyzer_logs.insert(0, entry)
        del self.analyzer_logs[UI_LOG_MAX_ENTRIES:]
        self._emit_event("analyzer_log", entry)
        return True

    def _emit_event(self, event_type: str, data: dict):
        """Push an event to the dashboard event bus (if connected)."""
        if self.event_bus:
            try:
                self.event_bus(event_type, data)
            except Exception as e:
                logger.error(f"Event emit error: {e}")

    # ─────────────────────────────────────────────
    #  Control surface
    # ─────────────────────────────────────────────

    def start_simulation(self):
        self.is_simulation_running = True
        logger.info("[SIM] Genuine traffic started")

    def stop_simulation(self):
        self.is_simulation_running = False
        logger.info("[SIM] Genuine traffic stopped")

    def start_attack(self):
        self.attacker.generate_botnet_ranges()
        self.attacker.is_attacking = True
        logger.warning(
            f"[ATTACK] {self.attacker.attack_type.value} flood from "
            f"{self.attacker.device_count} devices → {self.attacker.target_ip}"
        )

    def stop_attack(self):
        self.attacker.is_attacking = False
        logger.info("[ATTACK] Attack stopped")

    def set_device_count(self, value):
        try:
            self.attacker.device_count = int(clamp(int(value), 0, DEVICE_COUNT_MAX))
        except (TypeError, ValueError, OverflowError):
            logger.warning(f"Invalid device count {value!r} ignored")

    def set_attack_type(self, value):
        self.attacker.attack_type = value

    def set_target_ip(self, value):
        self.attacker.target_ip = str(value).strip()

    def set_bandwidth_multiplier(self, value):
        try:
            self.attacker.bandwidth_multiplier = clamp(_finite(value), 0.0, BANDWIDTH_MULTIPLIER_MAX)
        except (TypeError, ValueError):
            logger.warning(f"Invalid bandwidth multiplier {value!r} ignored")

    def set_server_capacity(self, value):
        try:
            self.server.bandwidth_capacity_multiplier = min(_finite(value), MAX_CAPACITY_MULTIPLIER)
        except (TypeError, ValueError):
            logger.warning(f"Invalid server capacity {value!r} ignored")

    def set_reverse_proxy_enabled(self, enabled):
        self.server.set_reverse_proxy_enabled(enabled)

    def set_dashboard_open(self, is_open):
        self.firewall.dashboard_open = bool(is_open)

    def set_rate_limit(self, enabled=None, threshold=None, scope=None):
        if enabled is not None:
            self.firewall.rate_limit_enabled = bool(enabled)
        if threshold is not None:
            try:
                self.firewall.rate_limit_threshold = max(0, int(threshold))
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Invalid rate-limit threshold {threshold!r} ignored")
        if scope is not None:
            self.firewall.rate_limit_scope = scope
        logger.info(
            f"[RATE LIMIT] enabled={self.firewall.rate_limit_enabled} "
            f"threshold={self.firewall.rate_limit_threshold} "
            f"scope={self.firewall.rate_limit_scope}"
        )

    def set_protocol_blocked(self, protocol, blocked=True):
        if blocked:
            self.firewall.block_protocol(protocol)
        else:
            self.firewall.unblock_protocol(protocol)

    def set_subnet_blocked(self, subnet, blocked=True):
        if blocked:
            self.firewall.block_subnet(subnet)
        else:
            self.firewall.unblock_subnet(subnet)

    def set_load_balancing(self, enabled):
        self.firewall.load_balancing_enabled = bool(enabled)

    def set_proxy_badge_mode(self, mode):
        mode = str(mode).strip().lower()
        if mode not in PROXY_BADGE_MODES:
            logger.warning(f"Invalid proxy badge mode {mode!r}, falling back to {PROXY_BADGE_MODES[0]}")
            mode = PROXY_BADGE_MODES[0]
        self.proxy_badge_mode = mode

    # ─────────────────────────────────────────────
    #  Snapshots
    # ─────────────────────────────────────────────

    def get_traffic_rollups(self) -> dict:
        """Weighted totals over live (non-terminal) particles."""
        live = [p for p in self.particles if not p.is_terminal]
        weights = np.fromiter((p.traffic_weight for p in live), dtype=np.float64, count=len(live))
        malicious = np.fromiter((p.is_malicious for p in live), dtype=bool, count=len(live))
        types = np.array([p.type.value for p in live], dtype=object)

        return {
            "legitimate_weight": float(weights[~malicious].sum()),
            "malicious_weight": float(weights[malicious].sum()),
            "by_type": {
                t.value: float(weights[types == t.value].sum()) for t in PacketType
            },
            "half_open_weight": float(self.server.get_half_open_weight()),
            "live_particles": len(live),
        }

    def get_stats(self) -> dict:
        return {
            "sim_time": round(self.sim_time, 3),
            "spawned": self._spawned,
            "active_particles": len(self.particles),
            **{action.lower(): count for action, count in self._outcomes.items()},
            "detected_subnets": len(self.firewall.detected_subnets),
            "server_status": self.server.status,
            "happiness_score": self.server.happiness_score,
            "timestamp": time.strftime("%H:%M:%S"),
        }

    def get_state(self) -> dict:
        """Detached snapshot for renderers; mutating it never touches the simulation."""
        return {
            "server": self.server.get_stats(),
            "attacker": self.attacker.get_config(),
            "firewall": self.firewall.get_config(),
            "particles": [p.to_dict() for p in self.particles],
            "analyzer_logs": [dict(entry) for entry in self.analyzer_logs],
            "traffic": self.get_traffic_rollups(),
            "is_simulation_running": self.is_simulation_running,
            "proxy_badge_mode": self.proxy_badge_mode,
        }
