"""flagrelay — feature flag change relay.

Sits in front of a per-environment feature store and republishes every
mutation as a server-sent event on two channels (`/all` and `/flags`),
bootstrapping new subscribers from a full snapshot.
"""

__version__ = "0.1.0"
