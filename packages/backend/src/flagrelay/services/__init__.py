"""Relay services — the relay store, its heartbeat, and environment wiring.

Learn: Nothing in here knows about HTTP. The API layer looks relays up in
the RelayRegistry; whatever feeds flag data into the relay (a poller, a
stream consumer) calls the relay's init/upsert/delete exactly where it
would otherwise call a plain FeatureStore.
"""
