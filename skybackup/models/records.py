"""Archive block and record models.

A decoded block carries exactly one of two payload shapes, resolved once
at decode time: a structured document recovered by the DAG-CBOR codec, or
the untouched payload bytes when the codec rejected them.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Block(BaseModel):
    """One content-addressed unit of an archive container."""

    model_config = ConfigDict(frozen=True)

    cid: str  # stringified content identifier
    data: bytes


class StructuredPayload(BaseModel):
    """A payload the structured codec understood."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["structured"] = "structured"
    document: Any


class RawPayload(BaseModel):
    """Fallback for a payload the structured codec rejected.

    ``data`` holds the original payload bytes verbatim.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["raw"] = "raw"
    data: bytes

    def byte_values(self) -> list[int]:
        return list(self.data)


Payload = Annotated[Union[StructuredPayload, RawPayload], Field(discriminator="kind")]


class DecodedRecord(BaseModel):
    """The interpretation of a single archive block.

    Every block yields exactly one DecodedRecord; decoding never drops a
    block, it only degrades the payload to :class:`RawPayload`.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    payload: Payload

    @property
    def is_structured(self) -> bool:
        return isinstance(self.payload, StructuredPayload)

    def to_document(self) -> dict[str, Any]:
        """Render the record the way it appears in a document backup."""
        if isinstance(self.payload, StructuredPayload):
            data = self.payload.document
        else:
            data = {"bytes": self.payload.byte_values()}
        return {"cid": self.identifier, "data": data}


class ListedRecord(BaseModel):
    """A record returned by a repository listing call.

    ``value`` is the record body as the service returned it; post records
    carry at least ``text`` and ``createdAt``.
    """

    model_config = ConfigDict(frozen=True)

    uri: str
    cid: str
    value: dict[str, Any] = {}

    @property
    def text(self) -> str:
        return str(self.value.get("text", ""))

    @property
    def created_at(self) -> str:
        return str(self.value.get("createdAt", ""))

    def to_document(self) -> dict[str, Any]:
        return {"uri": self.uri, "cid": self.cid, "value": dict(self.value)}
