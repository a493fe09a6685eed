"""Real-time infrastructure — SSE fan-out to connected SDKs.

Learn: Events flow through two steps:
1. FeatureStoreRelay → EventPublisher.publish (per channel, per SDK key)
2. EventPublisher → Subscription queue → /all or /flags stream response

Each subscriber has its own bounded buffer, so one slow client never holds
up the others or the code that wrote the flag.
"""
