"""Block decoder: turns an archive into a lazy sequence of DecodedRecords.

Each block payload is decoded as strict DAG-CBOR. A payload the codec
rejects, for any reason, is kept verbatim as a :class:`RawPayload`; the
failure is logged and the walk continues with the next block. Only a
container that cannot be opened at all aborts the call.
"""

from __future__ import annotations

import base64
import logging
import math
from collections.abc import Iterator
from typing import Any

import dag_cbor
from multiformats import CID

from skybackup.core.car_reader import CarReader, cid_string
from skybackup.models.records import Block, DecodedRecord, RawPayload, StructuredPayload

logger = logging.getLogger(__name__)


class PayloadDecodeError(ValueError):
    """Raised when a block payload is not a single well-formed DAG-CBOR item."""


def to_jsonable(value: Any) -> Any:
    """Convert a decoded DAG-CBOR value into plain JSON-compatible data.

    CID links become ``{"$link": ...}`` and byte strings ``{"$bytes": ...}``
    (unpadded base64), following the atproto JSON convention.

    Raises
    ------
    PayloadDecodeError
        For values JSON cannot carry: non-string map keys and non-finite
        floats.
    """
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise PayloadDecodeError(f"Map key {key!r} is not a string")
            out[key] = to_jsonable(item)
        return out
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, CID):
        return {"$link": cid_string(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        encoded = base64.b64encode(bytes(value)).decode("ascii").rstrip("=")
        return {"$bytes": encoded}
    if isinstance(value, float) and not math.isfinite(value):
        raise PayloadDecodeError(f"Float {value!r} is not allowed")
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    raise PayloadDecodeError(f"Unsupported value of type {type(value).__name__}")


def decode_payload(data: bytes) -> Any:
    """Decode one block payload as a single DAG-CBOR item.

    Raises
    ------
    PayloadDecodeError
        If the bytes are not exactly one well-formed DAG-CBOR item. Every
        codec error, including truncation and excessive nesting, is
        reported this way.
    """
    if not data:
        raise PayloadDecodeError("Empty payload")
    try:
        return to_jsonable(dag_cbor.decode(bytes(data)))
    except PayloadDecodeError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise PayloadDecodeError(f"{type(exc).__name__}: {exc}") from exc


def decode_block(block: Block) -> DecodedRecord:
    """Decode a single block, falling back to raw bytes on codec failure."""
    try:
        document = decode_payload(block.data)
    except PayloadDecodeError as exc:
        logger.warning(
            "Block %s is not DAG-CBOR (%d bytes), keeping raw bytes: %s",
            block.cid,
            len(block.data),
            exc,
        )
        return DecodedRecord(identifier=block.cid, payload=RawPayload(data=block.data))
    return DecodedRecord(
        identifier=block.cid, payload=StructuredPayload(document=document)
    )


def decode_archive(archive: bytes) -> Iterator[DecodedRecord]:
    """Decode every block of an archive, in container order.

    The container header is validated before this function returns, so a
    malformed archive raises :class:`CarFormatError` here rather than on
    first iteration.
    """
    reader = CarReader.from_bytes(archive)
    logger.info("Opened archive with %d root(s)", len(reader.roots))
    return _decode_blocks(reader)


def _decode_blocks(reader: CarReader) -> Iterator[DecodedRecord]:
    fallbacks = 0
    total = 0
    for block in reader.blocks():
        record = decode_block(block)
        total += 1
        if not record.is_structured:
            fallbacks += 1
        yield record
    logger.info("Decoded %d blocks (%d kept as raw bytes)", total, fallbacks)
