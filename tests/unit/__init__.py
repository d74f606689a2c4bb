"""Unit tests for individual components in isolation.

Coverage:
    - streaming/: Line decoding, framing and text accumulation
    - client/: Configuration, chat, documents and auth clients

Leverages pytest-check for multiple assertions per test.
"""
