"""Test package for docchat.

Unit tests cover the decoder, accumulator, configuration and HTTP clients
in isolation. Integration tests drive the session controller and the host
app end to end.

Structure:
    - unit/: Individual function and class tests
    - integration/: End-to-end workflow tests

The completion backend is always an httpx.MockTransport; no network or
API keys are needed. Leverages pytest with pytest-check for soft assertions.
"""
