"""Feature flag data model.

Learn: Flags are owned by the store. The relay only observes them, so the
model is deliberately thin: identity (`key`), ordering (`version`) and a
tombstone bit, with every other field passed through untouched.
"""
