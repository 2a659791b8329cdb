"""
flood-lab/dashboard/app.py

Control Surface & Snapshot Feed
===============================
Serves the simulation to a browser front-end via Flask + Socket.IO.
The front-end draws the canvas; this module only hands out snapshots and
applies named configuration mutations.

Routes:
  GET  /api/state            → Full simulation snapshot
  GET  /api/stats            → Outcome counters
  GET  /api/log              → Analyzer log (newest first)
  GET  /api/subnets          → Detected subnets with blocked flag
  POST /api/control/<action> → Apply a control-surface mutation
"""

import logging
import time

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit

from config import DASHBOARD_PUSH_EVERY, UI_LOG_MAX_ENTRIES

logger = logging.getLogger("floodlab.dashboard")

# These will be set by main.py when the app is initialized
_orchestrator = None
_driver = None

app = Flask(__name__)
app.config["SECRET_KEY"] = "floodlab-secret"
socketio = SocketIO(app, cors_allowed_origins="*", async_mode="threading")


def _flag(data: dict, key: str = "enabled", default: bool = True) -> bool:
    value = data.get(key, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# Every action takes the orchestrator and the decoded JSON body
CONTROL_ACTIONS = {
    "start_simulation": lambda o, d: o.start_simulation(),
    "stop_simulation":  lambda o, d: o.stop_simulation(),
    "start_attack":     lambda o, d: o.start_attack(),
    "stop_attack":      lambda o, d: o.stop_attack(),
    "reset":            lambda o, d: o.reset(),
    "device_count":     lambda o, d: o.set_device_count(d.get("value")),
    "attack_type":      lambda o, d: o.set_attack_type(d.get("value")),
    "target_ip":        lambda o, d: o.set_target_ip(d.get("value", "")),
    "attack_bandwidth": lambda o, d: o.set_bandwidth_multiplier(d.get("value")),
    "server_capacity":  lambda o, d: o.set_server_capacity(d.get("value")),
    "reverse_proxy":    lambda o, d: o.set_reverse_proxy_enabled(_flag(d)),
    "firewall_dashboard": lambda o, d: o.set_dashboard_open(_flag(d, "open")),
    "rate_limit":       lambda o, d: o.set_rate_limit(
        enabled=_flag(d) if "enabled" in d else None,
        threshold=d.get("threshold"),
        scope=d.get("scope"),
    ),
    "block_protocol":   lambda o, d: o.set_protocol_blocked(d.get("protocol"), _flag(d, "blocked")),
    "block_subnet":     lambda o, d: o.set_subnet_blocked(d.get("subnet", ""), _flag(d, "blocked")),
    "load_balancing":   lambda o, d: o.set_load_balancing(_flag(d)),
    "proxy_badge_mode": lambda o, d: o.set_proxy_badge_mode(d.get("value", "")),
}


def init_dashboard(orchestrator, driver):
    """Connect the dashboard to the orchestrator and its tick driver."""
    global _orchestrator, _driver
    _orchestrator = orchestrator
    _driver = driver

    # Connect event bus
    orchestrator.event_bus = push_event
    driver.on_tick = on_tick


def push_event(event_type: str, data: dict):
    """Push a real-time event to all connected dashboard clients."""
    try:
        socketio.emit(event_type, data)
    except Exception as e:
        logger.error(f"SocketIO emit error: {e}")


def on_tick(tick_count: int):
    """Broadcast a state snapshot every DASHBOARD_PUSH_EVERY ticks."""
    if tick_count % DASHBOARD_PUSH_EVERY:
        return
    with _driver.lock:
        state = _orchestrator.get_state()
    push_event("state", state)


def apply_control(action: str, data: dict) -> dict:
    """Run one control action under the tick lock. Raises KeyError if unknown."""
    handler = CONTROL_ACTIONS[action]
    with _driver.lock:
        handler(_orchestrator, data)
        state = _orchestrator.get_state()
    logger.info(f"[CONTROL] {action} {data or ''}")
    return state


# ─────────────────────────────────────────────
#  REST API Routes
# ─────────────────────────────────────────────

@app.route("/api/state")
def api_state():
    if not _orchestrator:
        return jsonify({"error": "Not initialized"}), 503
    with _driver.lock:
        return jsonify(_orchestrator.get_state())


@app.route("/api/stats")
def api_stats():
    if not _orchestrator:
        return jsonify({"error": "Not initialized"}), 503
    with _driver.lock:
        stats = _orchestrator.get_stats()
    stats["ticks"] = _driver.tick_count
    stats["driver_running"] = _driver.is_running
    return jsonify(stats)


@app.route("/api/log")
def api_log():
    if not _orchestrator:
        return jsonify([])
    limit = request.args.get("limit", UI_LOG_MAX_ENTRIES, type=int)
    with _driver.lock:
        return jsonify(_orchestrator.analyzer_logs[:max(0, limit)])


@app.route("/api/subnets")
def api_subnets():
    if not _orchestrator:
        return jsonify([])
    with _driver.lock:
        return jsonify(_orchestrator.firewall.get_subnet_list())


@app.route("/api/control/<action>", methods=["POST"])
def api_control(action):
    if not _orchestrator:
        return jsonify({"error": "Not initialized"}), 503
    if action not in CONTROL_ACTIONS:
        return jsonify({"error": f"Unknown action: {action}"}), 404
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify({"error": "Control body must be a JSON object"}), 400
    state = apply_control(action, data)
    push_event("state", state)
    return jsonify({"status": "ok", "action": action, "state": state})


# ─────────────────────────────────────────────
#  WebSocket Events
# ─────────────────────────────────────────────

@socketio.on("connect")
def on_connect(auth=None):
    logger.info("Dashboard client connected")
    if _orchestrator:
        with _driver.lock:
            emit("state", _orchestrator.get_state())


@socketio.on("disconnect")
def on_disconnect(reason=None):
    logger.info("Dashboard client disconnected")


@socketio.on("control")
def on_control(message):
    if not isinstance(message, dict):
        message = {}
    action = message.get("action")
    if not isinstance(action, str):
        action = None
    data = message.get("data") or {}
    if not _orchestrator or action not in CONTROL_ACTIONS or not isinstance(data, dict):
        emit("control_error", {"action": action, "timestamp": time.strftime("%H:%M:%S")})
        return
    emit("state", apply_control(action, data))


def run_dashboard(host="0.0.0.0", port=5000, debug=False):
    """Start the Flask-SocketIO dashboard server."""
    logger.info(f"Starting dashboard at http://{host}:{port}")
    socketio.run(app, host=host, port=port, debug=debug, use_reloader=False,
                 allow_unsafe_werkzeug=True)
