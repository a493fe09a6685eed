"""Event shaper — pure functions from mutations to channel events.

Learn: One function per (channel, kind). Each returns a ready-to-send
Event whose `data` is already serialized, so a serialization problem
surfaces here, at build time, not inside the publisher's fan-out.

Wire shapes:
  all   / put     {"flags": {<key>: <flag>}, "segments": {}}
  all   / patch   {"path": "/flags/<key>", "data": <flag>}
  all   / delete  {"path": "/flags/<key>", "version": <int>}
  flags / put     {<key>: <flag>}
  flags / patch   {"path": "/<key>", "data": <flag>}
  flags / delete  {"path": "/<key>", "version": <int>}
  heartbeat       comment-only, same on both channels
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple

from flagrelay.events.types import (
    ALL_CHANNEL,
    DELETE,
    FLAGS_CHANNEL,
    HEARTBEAT_COMMENT,
    PATCH,
    PUT,
)
from flagrelay.flags.models import FeatureFlag, FlagMap


@dataclass(frozen=True)
class Event:
    """One server-sent event. Heartbeats only carry a comment."""

    event: str = ""
    data: str = ""
    comment: str = ""
    id: str = ""

    @property
    def is_heartbeat(self) -> bool:
        return not self.event and not self.data and bool(self.comment)

    def encode(self) -> str:
        """Render SSE wire framing, terminated by a blank line."""
        lines = []
        if self.comment:
            lines.append(f":{self.comment}")
        if self.id:
            lines.append(f"id: {self.id}")
        if self.event:
            lines.append(f"event: {self.event}")
        if self.data:
            lines.extend(f"data: {line}" for line in self.data.split("\n"))
        return "\n".join(lines) + "\n\n"


def dumps(payload: Any) -> str:
    """Stable JSON: sorted keys, no whitespace."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), allow_nan=False)


# ─── Payloads ────────────────────────────────────────────


def flags_payload(flags: FlagMap) -> dict[str, Any]:
    return {key: flag.to_json() for key, flag in flags.items()}


def all_payload(flags: FlagMap) -> dict[str, Any]:
    return {"flags": flags_payload(flags), "segments": {}}


# ─── all channel ─────────────────────────────────────────


def make_all_put_event(flags: FlagMap) -> Event:
    return Event(event=PUT, data=dumps(all_payload(flags)))


def make_all_patch_event(flag: FeatureFlag) -> Event:
    return Event(event=PATCH, data=dumps({"path": f"/flags/{flag.key}", "data": flag.to_json()}))


def make_all_delete_event(key: str, version: int) -> Event:
    return Event(event=DELETE, data=dumps({"path": f"/flags/{key}", "version": version}))


# ─── flags channel ───────────────────────────────────────


def make_flags_put_event(flags: FlagMap) -> Event:
    return Event(event=PUT, data=dumps(flags_payload(flags)))


def make_flags_patch_event(flag: FeatureFlag) -> Event:
    return Event(event=PATCH, data=dumps({"path": f"/{flag.key}", "data": flag.to_json()}))


def make_flags_delete_event(key: str, version: int) -> Event:
    return Event(event=DELETE, data=dumps({"path": f"/{key}", "version": version}))


# ─── heartbeat ───────────────────────────────────────────


def make_heartbeat_event() -> Event:
    return Event(comment=HEARTBEAT_COMMENT)


# ─── Channel shapes ──────────────────────────────────────


class ChannelShape(NamedTuple):
    """The three shapers of one channel. A new channel is a new instance."""

    name: str
    put: Callable[[FlagMap], Event]
    patch: Callable[[FeatureFlag], Event]
    delete: Callable[[str, int], Event]


ALL = ChannelShape(ALL_CHANNEL, make_all_put_event, make_all_patch_event, make_all_delete_event)
FLAGS = ChannelShape(FLAGS_CHANNEL, make_flags_put_event, make_flags_patch_event, make_flags_delete_event)

CHANNELS = (ALL, FLAGS)
