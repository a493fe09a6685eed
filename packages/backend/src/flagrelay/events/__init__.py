"""Relay events — shaping store mutations into channel-specific events.

Learn: Both channels carry the same mutations but in different wire shapes:
1. `all`   — dataset-shaped, flags nested under /flags/, empty segments
2. `flags` — a flat flag map, paths are just /<key>

Shaping is pure (no I/O, no state), so the relay pipeline never needs to
know what a channel looks like on the wire.
"""

from flagrelay.events.shaper import ALL, CHANNELS, FLAGS, ChannelShape, Event

__all__ = ["ALL", "CHANNELS", "FLAGS", "ChannelShape", "Event"]
