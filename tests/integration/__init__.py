"""Integration tests for components working together as a system.

Coverage:
    - Streaming sessions from request to conversation update
    - Cancellation, failure and retry paths
    - Host app endpoints with real ASGI requests

Response bodies are scripted byte streams served by httpx.MockTransport.
"""
