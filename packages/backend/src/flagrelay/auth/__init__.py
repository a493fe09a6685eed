"""Authentication — SDK keys.

Learn: SDKs authenticate with the same key they would send to the
upstream flag service, in the Authorization header. The key doubles as
the tenant key: it selects the environment's relay, and through it the
dataset and the subscriber population.
"""
