"""docchat - chat with your documents over a streaming completion API.

Combines httpx for the streaming transport, NiceGUI for the chat interface,
FastAPI as the host application, and Pydantic for data validation.

Components:
    - streaming: event decoding, text accumulation, and session lifecycle
    - client: REST and streaming clients for the backend API
    - models: Message, Document, and session schemas
    - api: host application routes
    - ui: web interface for chat interactions
"""

__version__ = "0.1.0"
