"""WebSocket event names.

Learn: Every frame in either direction is {"event": <name>, "data": ...}.
Centralizing the names prevents typos between the endpoint, the
broadcaster, the CLI watcher and the tests.
"""

# ─── Client → server ─────────────────────────────────────

START_LIVE_UPDATES = "start_live_updates"
STOP_LIVE_UPDATES = "stop_live_updates"
PING = "ping"

# ─── Server → client ─────────────────────────────────────

BIOMARKER_UPDATES = "biomarker_updates"
PONG = "pong"
ERROR = "error"
