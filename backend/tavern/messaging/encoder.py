"""
MessagePack codec for the websocket wire format.

Every frame is a single MessagePack map. Outbound dicts come from
pydantic model_dump(by_alias=True, mode="json") so they hold only plain
JSON-compatible values.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Raised when an inbound frame cannot be decoded into a dict."""


# Size limits to keep a malicious client from exhausting memory.
MAX_BUFFER_LEN = 64 * 1024  # 64KB total payload
MAX_STR_LEN = 16 * 1024  # 16KB per string
MAX_BIN_LEN = 1024  # clients never send binary blobs
MAX_ARRAY_LEN = 256
MAX_MAP_LEN = 64
MAX_EXT_LEN = 256


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data)


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode a MessagePack frame to a dict.

    Raises DecodeError if the frame is malformed, oversized, or not a map.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            strict_map_key=True,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError, TypeError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")
    return result
