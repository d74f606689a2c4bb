"""Protocol events decoded from the completion stream.

Each line of the stream has the form ``<event-name>:<payload>`` and maps to
exactly one of the event types below. Events are immutable and consumed
once, in arrival order.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Metadata(BaseModel):
    """Side-channel structured data (``metadata:`` lines)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["metadata"] = "metadata"
    payload: Any


class DataChunk(BaseModel):
    """A fragment of response text (``data:`` lines).

    For the delta dialect ``text`` is the serialized JSON chunk, unmodified.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["data"] = "data"
    text: str


class Done(BaseModel):
    """End-of-response marker (``done:`` lines)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["done"] = "done"


ProtocolEvent = Annotated[Metadata | DataChunk | Done, Field(discriminator="type")]
