"""NiceGUI interface - thin presentation layer for chat interactions.

Responsibilities:
    - Conversation display with a live, streaming assistant bubble
    - Stop control wired to the active session
    - Document selection for grounding prompts
    - Inline, dismissible error display

Contains no protocol logic. Consumes the session update channel only.
"""
