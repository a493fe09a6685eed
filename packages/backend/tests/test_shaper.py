"""Event shaper tests — wire shapes of both channels.

Learn: Shapers are pure, so these tests need no fixtures: build flags,
shape them, parse the JSON back and compare.
"""

import json

from flagrelay.events.shaper import (
    ALL,
    CHANNELS,
    FLAGS,
    Event,
    make_all_delete_event,
    make_all_patch_event,
    make_all_put_event,
    make_flags_delete_event,
    make_flags_patch_event,
    make_flags_put_event,
    make_heartbeat_event,
)
from flagrelay.flags.models import FeatureFlag


def _flags():
    return {
        "beta": FeatureFlag(key="beta", version=1),
        "alpha": FeatureFlag(key="alpha", version=7, on=True, variations=[True, False]),
    }


# ═══════════════════════════════════════════════════════════
# put
# ═══════════════════════════════════════════════════════════


def test_all_put_nests_flags_and_empty_segments():
    event = make_all_put_event({"beta": FeatureFlag(key="beta", version=1)})
    assert event.event == "put"
    assert json.loads(event.data) == {
        "flags": {"beta": {"key": "beta", "version": 1}},
        "segments": {},
    }


def test_all_put_of_empty_dataset_still_has_flags_map():
    event = make_all_put_event({})
    assert json.loads(event.data) == {"flags": {}, "segments": {}}


def test_flags_put_is_flat():
    event = make_flags_put_event({"beta": FeatureFlag(key="beta", version=1)})
    assert event.event == "put"
    assert json.loads(event.data) == {"beta": {"key": "beta", "version": 1}}


def test_put_views_carry_the_same_flags():
    """The all-channel `flags` sub-map equals the flags-channel map, key for key."""
    flags = _flags()
    all_view = json.loads(make_all_put_event(flags).data)
    flags_view = json.loads(make_flags_put_event(flags).data)
    assert all_view["flags"] == flags_view


# ═══════════════════════════════════════════════════════════
# patch / delete paths
# ═══════════════════════════════════════════════════════════


def test_patch_paths_per_channel():
    flag = FeatureFlag(key="k", version=2)
    all_body = json.loads(make_all_patch_event(flag).data)
    flags_body = json.loads(make_flags_patch_event(flag).data)

    assert all_body == {"path": "/flags/k", "data": {"key": "k", "version": 2}}
    assert flags_body == {"path": "/k", "data": {"key": "k", "version": 2}}
    assert make_all_patch_event(flag).event == "patch"


def test_delete_paths_per_channel():
    assert json.loads(make_all_delete_event("k", 3).data) == {"path": "/flags/k", "version": 3}
    assert json.loads(make_flags_delete_event("k", 3).data) == {"path": "/k", "version": 3}
    assert make_flags_delete_event("k", 3).event == "delete"


def test_channel_shapes_are_registered_in_order():
    assert [shape.name for shape in CHANNELS] == ["all", "flags"]
    assert ALL.patch is make_all_patch_event
    assert FLAGS.delete is make_flags_delete_event


# ═══════════════════════════════════════════════════════════
# Serialization
# ═══════════════════════════════════════════════════════════


def test_absent_fields_are_omitted_but_explicit_null_is_kept():
    flag = FeatureFlag(key="k", version=1, offVariation=None)
    body = json.loads(make_flags_patch_event(flag).data)["data"]
    assert body == {"key": "k", "version": 1, "offVariation": None}
    assert "deleted" not in body


def test_extra_fields_pass_through():
    flag = FeatureFlag(key="k", version=1, rules=[{"id": "r1", "variation": 0}], salt="abc")
    body = json.loads(make_all_patch_event(flag).data)["data"]
    assert body["rules"] == [{"id": "r1", "variation": 0}]
    assert body["salt"] == "abc"


def test_json_is_deterministic():
    first = make_flags_put_event(_flags()).data
    reordered = dict(reversed(list(_flags().items())))
    assert make_flags_put_event(reordered).data == first
    assert " " not in first
    assert first.index('"alpha"') < first.index('"beta"')


# ═══════════════════════════════════════════════════════════
# SSE framing
# ═══════════════════════════════════════════════════════════


def test_heartbeat_is_comment_only():
    event = make_heartbeat_event()
    assert event.is_heartbeat
    assert event.event == ""
    assert event.data == ""
    assert event.encode() == ":hb\n\n"


def test_data_event_encoding():
    event = make_flags_delete_event("k", 3)
    assert event.encode() == 'event: delete\ndata: {"path":"/k","version":3}\n\n'
    assert not event.is_heartbeat


def test_multiline_data_is_split_into_data_lines():
    event = Event(event="put", data="a\nb", id="7")
    assert event.encode() == "id: 7\nevent: put\ndata: a\ndata: b\n\n"
