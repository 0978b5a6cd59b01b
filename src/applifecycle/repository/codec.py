"""Memento record encoding.

A record is the JSON form of a memento. Records larger than the
compression threshold are deflated and wrapped in an envelope tagged with
``_compressed`` so that readers can reverse it symmetrically.
"""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from typing import Any

from pydantic import ValidationError

from applifecycle.memento import AppStateMemento

from .exceptions import MementoCorruptedError, MementoValidationError

COMPRESSION_THRESHOLD = 1024  # bytes
COMPRESSED_MARKER = "_compressed"
COMPRESSION_ENCODING = "zlib+base64"


def is_compressed(record: dict[str, Any]) -> bool:
    """Check whether a decoded JSON record is a compressed envelope."""
    return record.get(COMPRESSED_MARKER) is True


def encode_memento(
    memento: AppStateMemento,
    compression_threshold: int = COMPRESSION_THRESHOLD,
) -> bytes:
    """Serialize a memento to its stored form.

    Args:
        memento: Memento to encode
        compression_threshold: Serialized size in bytes above which the
            payload is compressed

    Returns:
        UTF-8 encoded JSON record

    Raises:
        MementoValidationError: If the memento holds values that cannot be
            represented as JSON
    """
    try:
        serialized = json.dumps(memento.to_dict(), separators=(",", ":")).encode("utf-8")
    except (ValueError, TypeError) as e:
        raise MementoValidationError(
            f"Memento {memento.id} cannot be serialized: {e}", cause=e
        ) from e
    if len(serialized) <= compression_threshold:
        return serialized

    payload = base64.b64encode(zlib.compress(serialized, level=6)).decode("ascii")
    envelope = {
        COMPRESSED_MARKER: True,
        "encoding": COMPRESSION_ENCODING,
        "original_size": len(serialized),
        "payload": payload,
    }
    return json.dumps(envelope, separators=(",", ":")).encode("utf-8")


def decode_memento(raw: bytes | str) -> AppStateMemento:
    """Parse a stored record back into a memento.

    Args:
        raw: Stored record

    Returns:
        Decoded memento

    Raises:
        MementoCorruptedError: If the record is not valid JSON, cannot be
            decompressed, or does not describe a memento
    """
    try:
        record = json.loads(raw)
        if not isinstance(record, dict):
            raise MementoCorruptedError("Memento record is not a JSON object")

        if is_compressed(record):
            encoding = record.get("encoding", COMPRESSION_ENCODING)
            if encoding != COMPRESSION_ENCODING:
                raise MementoCorruptedError(f"Unsupported record encoding: {encoding}")
            inflated = zlib.decompress(base64.b64decode(record["payload"]))
            record = json.loads(inflated)
            if not isinstance(record, dict):
                raise MementoCorruptedError("Compressed payload is not a JSON object")

        return AppStateMemento.from_dict(record)
    except MementoCorruptedError:
        raise
    except (
        ValueError,
        KeyError,
        TypeError,
        zlib.error,
        binascii.Error,
        ValidationError,
    ) as e:
        raise MementoCorruptedError(f"Failed to decode memento record: {e}", cause=e) from e
