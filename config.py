"""
flood-lab/config.py

Central Configuration
=====================
All tunable parameters for Flood-Lab in one place.
Quantities are gameplay approximations, not traffic-engineering figures.
"""

# ─────────────────────────────────────────────
#  Canvas Geometry
# ─────────────────────────────────────────────
CANVAS_WIDTH  = 900             # Server edge: particles arrive at x >= CANVAS_WIDTH
CANVAS_HEIGHT = 400
PIPE_WIDTH    = 600
PROXY_POSITION_RATIO = 0.85     # Proxy node sits 85% down the pipe

SPAWN_CLUSTER_X      = 80
SPAWN_CLUSTER_OFFSET = 60       # Malicious cluster above centre, genuine below
SPAWN_CLUSTER_RADIUS = 15

# ─────────────────────────────────────────────
#  Packet Speeds (pixels / second)
# ─────────────────────────────────────────────
SPEED_LEGITIMATE = 200
SPEED_MALICIOUS  = 250

# ─────────────────────────────────────────────
#  Genuine Traffic
# ─────────────────────────────────────────────
GENUINE_USER_COUNT               = 50
GENUINE_IP_PREFIX                = "172.16.0"
GENUINE_PACKETS_PER_USER_PER_SEC = 1
PACKET_VISUAL_SCALE              = 1    # Real packets represented by one particle

# ─────────────────────────────────────────────
#  Attacker / Botnet
# ─────────────────────────────────────────────
DEVICE_COUNT_MIN         = 1
DEVICE_COUNT_MAX         = 1000
BANDWIDTH_MULTIPLIER_MIN = 1.0
BANDWIDTH_MULTIPLIER_MAX = 5.0
DEVICES_PER_SUBNET       = 20

ATTACK_RATE_UDP     = 10        # Packets / device / second
ATTACK_RATE_ICMP    = 8
ATTACK_RATE_TCP_SYN = 5

VISUAL_SPAWN_CAP_PER_SECOND = 300
MAX_ACTIVE_PARTICLES        = 1500

# ─────────────────────────────────────────────
#  Addressing
# ─────────────────────────────────────────────
VICTIM_ORIGIN_IP    = "203.0.113.10"
VICTIM_PUBLIC_IP    = VICTIM_ORIGIN_IP  # Direct exposure without a proxy
VICTIM_IP           = VICTIM_PUBLIC_IP  # Attacker's default target
PROXY_PUBLIC_IP     = "198.51.100.20"
PROXY_EGRESS_PREFIX = "198.51.100"
PROXY_EGRESS_HOST_MIN = 100
PROXY_EGRESS_HOST_MAX = 199

# ─────────────────────────────────────────────
#  Server Resources
# ─────────────────────────────────────────────
SERVER_DEGRADED_THRESHOLD = 90
SERVER_CRASHED_THRESHOLD  = 99
SERVER_RECOVERY_THRESHOLD = 90  # CRASHED holds until load drops below this

BANDWIDTH_DECAY_RATE = 10       # % per second
CPU_DECAY_RATE       = 2        # % per second

BANDWIDTH_COLLISION_THRESHOLD = 95

MAX_ACTIVE_CONNECTIONS     = 500
SYN_CONNECTION_TTL_SECONDS = 5

HAPPINESS_PENALTY_PER_DROP = 2
DROPPED_PACKET_TTL_SECONDS = 10

MIN_CAPACITY_MULTIPLIER = 0.1
MAX_CAPACITY_MULTIPLIER = 10.0

# ─────────────────────────────────────────────
#  Firewall
# ─────────────────────────────────────────────
RATE_LIMIT_DEFAULT        = 10  # Packets / address / second
RATE_LIMIT_WINDOW_SECONDS = 1

# ─────────────────────────────────────────────
#  Analyzer Log
# ─────────────────────────────────────────────
UI_ANALYZER_LOG_MAX_PER_SECOND = 20
UI_LOG_MAX_ENTRIES             = 50

# ─────────────────────────────────────────────
#  Tick Driver
# ─────────────────────────────────────────────
TICK_FPS         = 60
MAX_TICK_SECONDS = 0.25         # Long stalls are clamped to this step

# ─────────────────────────────────────────────
#  Dashboard Server
# ─────────────────────────────────────────────
DASHBOARD_HOST       = "0.0.0.0"
DASHBOARD_PORT       = 5000
DASHBOARD_PUSH_EVERY = 6        # Push a state snapshot every N ticks
STATUS_LOG_INTERVAL  = 5        # Seconds between headless status lines
