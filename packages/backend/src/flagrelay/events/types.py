"""Event kind and channel constants.

Learn: Centralizing these as constants prevents typos and keeps the
SSE `event:` names in one place. Subscribers (SDKs) switch on them.
"""

# ─── Event kinds ─────────────────────────────────────────

PUT = "put"        # full snapshot, replaces subscriber state
PATCH = "patch"    # one flag inserted or updated
DELETE = "delete"  # one flag deleted at a version

# ─── Channels ────────────────────────────────────────────

ALL_CHANNEL = "all"
FLAGS_CHANNEL = "flags"

# ─── Heartbeat ───────────────────────────────────────────

HEARTBEAT_COMMENT = "hb"
