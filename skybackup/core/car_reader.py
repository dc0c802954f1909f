"""CAR (content addressable archive) container reader.

Layout of a v1 container::

    varint(header_len) | DAG-CBOR {"version": 1, "roots": [CID, ...]}
    varint(section_len) | CID bytes | block bytes
    ...

A v2 container is an 11-byte pragma, a 40-byte fixed header locating the
inner v1 payload, the payload itself and an optional index. Only the
inner payload is read.

The header is parsed when the reader is constructed, so a container that
cannot be opened fails immediately. Blocks are produced lazily in the
order they appear in the container.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

import dag_cbor
from multiformats import CID
from pydantic import BaseModel, ConfigDict

from skybackup.models.records import Block

logger = logging.getLogger(__name__)

_CARV2_PRAGMA = bytes.fromhex("0aa16776657273696f6e02")
_CARV2_HEADER_SIZE = 40
_MAX_VARINT_BYTES = 9


class CarFormatError(ValueError):
    """Raised when the container framing itself is malformed."""


class CarHeader(BaseModel):
    """Parsed container header."""

    model_config = ConfigDict(frozen=True)

    version: int
    roots: list[str] = []


# ----------------------------------------------------------------------
# Primitives
# ----------------------------------------------------------------------


def read_varint(buf: bytes, offset: int) -> tuple[int, int]:
    """Decode an unsigned LEB128 varint at *offset*.

    Returns ``(value, next_offset)``.
    """
    value = 0
    shift = 0
    pos = offset
    for _ in range(_MAX_VARINT_BYTES):
        if pos >= len(buf):
            raise CarFormatError(f"Truncated varint at offset {offset}")
        byte = buf[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos
        shift += 7
    raise CarFormatError(f"Varint at offset {offset} exceeds {_MAX_VARINT_BYTES} bytes")


def cid_string(cid: CID) -> str:
    """Canonical text form of a CID: base32 for v1, base58btc for v0."""
    if cid.version == 0:
        return str(cid)
    return cid.encode("base32")


def cid_to_str(raw: bytes) -> str:
    """Render binary CID bytes in their canonical multibase string form."""
    try:
        return cid_string(CID.decode(bytes(raw)))
    except (KeyError, ValueError) as exc:
        raise CarFormatError(f"Invalid CID bytes: {exc}") from exc


def _cid_length(buf: bytes, start: int, end: int) -> int:
    """Length in bytes of the binary CID starting at *start*."""
    # CIDv0 is a bare sha2-256 multihash
    if end - start >= 34 and buf[start] == 0x12 and buf[start + 1] == 0x20:
        return 34

    version, pos = read_varint(buf, start)
    if version != 1:
        raise CarFormatError(f"Unsupported CID version {version} at offset {start}")
    _codec, pos = read_varint(buf, pos)
    _hash_code, pos = read_varint(buf, pos)
    digest_len, pos = read_varint(buf, pos)
    pos += digest_len
    if pos > end:
        raise CarFormatError(f"CID at offset {start} overruns its section")
    return pos - start


def _unwrap_v2(data: bytes) -> bytes:
    """Return the inner v1 payload of a v2 container."""
    fixed = data[len(_CARV2_PRAGMA): len(_CARV2_PRAGMA) + _CARV2_HEADER_SIZE]
    if len(fixed) < _CARV2_HEADER_SIZE:
        raise CarFormatError("Truncated CARv2 header")
    data_offset = int.from_bytes(fixed[16:24], "little")
    data_size = int.from_bytes(fixed[24:32], "little")
    if data_offset + data_size > len(data):
        raise CarFormatError("CARv2 data payload extends past end of container")
    logger.debug("CARv2 container: payload at %d (%d bytes)", data_offset, data_size)
    return data[data_offset: data_offset + data_size]


# ----------------------------------------------------------------------
# Reader
# ----------------------------------------------------------------------


class CarReader:
    """Reads blocks out of an in-memory CAR container.

    Parameters
    ----------
    data:
        The complete container bytes.

    Raises
    ------
    CarFormatError
        If the header cannot be parsed.
    """

    def __init__(self, data: bytes) -> None:
        buf = bytes(data)
        if buf.startswith(_CARV2_PRAGMA):
            buf = _unwrap_v2(buf)
        self._buf = buf
        self.header, self._body_offset = self._read_header(buf)

    @classmethod
    def from_bytes(cls, data: bytes) -> CarReader:
        return cls(data)

    @property
    def roots(self) -> list[str]:
        return list(self.header.roots)

    @property
    def version(self) -> int:
        return self.header.version

    @staticmethod
    def _read_header(buf: bytes) -> tuple[CarHeader, int]:
        if not buf:
            raise CarFormatError("Empty archive")

        header_len, pos = read_varint(buf, 0)
        end = pos + header_len
        if header_len == 0 or end > len(buf):
            raise CarFormatError("Header length exceeds archive size")

        try:
            raw = dag_cbor.decode(buf[pos:end])
        except Exception as exc:  # noqa: BLE001
            raise CarFormatError(f"Header is not valid DAG-CBOR: {exc}") from exc

        if not isinstance(raw, dict):
            raise CarFormatError("Header is not a map")
        version = raw.get("version")
        if version != 1:
            raise CarFormatError(f"Unsupported CAR version: {version!r}")
        roots = raw.get("roots", [])
        if not isinstance(roots, list) or not all(isinstance(r, CID) for r in roots):
            raise CarFormatError("Header roots must be a list of CID links")

        return CarHeader(version=version, roots=[cid_string(r) for r in roots]), end

    def blocks(self) -> Iterator[Block]:
        """Yield every block in container order."""
        buf = self._buf
        pos = self._body_offset
        index = 0
        while pos < len(buf):
            section_len, start = read_varint(buf, pos)
            end = start + section_len
            if section_len == 0 or end > len(buf):
                raise CarFormatError(
                    f"Section {index} at offset {pos} is truncated or empty"
                )
            cid_len = _cid_length(buf, start, end)
            cid = cid_to_str(buf[start: start + cid_len])
            yield Block(cid=cid, data=buf[start + cid_len: end])
            index += 1
            pos = end
        logger.debug("Read %d blocks from archive", index)

    def __iter__(self) -> Iterator[Block]:
        return self.blocks()
