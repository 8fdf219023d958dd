"""
Payload Codec.

Serialization/deserialization for cache values (objects <-> bytes), byte
compatible with what the repo-server writes:
- Go `encoding/json` compact output (declared field order, HTML-safe escapes)
- a trailing newline from the consumer's stream encoder
- optional gzip wrapping, sync-flushed but never closed
"""

from __future__ import annotations

import json
import re
import zlib
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from forgecore.cache.compression import CompressionType
from forgecore.errors import DecodeError, EncodeError


ModelT = TypeVar("ModelT", bound=BaseModel)

# Go's gzip.Writer header: no name, mtime 0, XFL 0 (default level), OS 255
GZIP_HEADER = b"\x1f\x8b\x08\x00\x00\x00\x00\x00\x00\xff"
GZIP_LEVEL = 6

# Whitespace Go's JSON decoder skips before a value
_JSON_WHITESPACE = " \t\r\n"

# Characters Go escapes inside strings on top of what json.dumps escapes
_GO_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

# Surrogates left after parsing are unpaired `\uXXXX` escapes; Go decodes
# each one as U+FFFD
_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def _scrub_surrogates(value: Any) -> Any:
    if isinstance(value, str):
        return _LONE_SURROGATE.sub("\ufffd", value)
    if isinstance(value, list):
        return [_scrub_surrogates(item) for item in value]
    if isinstance(value, dict):
        return {_scrub_surrogates(k): _scrub_surrogates(v) for k, v in value.items()}
    return value


def _to_wire(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    return obj


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON literal {name}")


class PayloadCodec:
    """
    Codec for reading/writing cache values under one compression mode.
    """

    def __init__(self, compression: CompressionType = CompressionType.GZIP):
        self.compression = CompressionType.parse(compression)

    @staticmethod
    def encode_json(obj: Any) -> bytes:
        """
        Encode `obj` the way Go's json.Marshal does: compact, fields in
        declaration order, `<`, `>`, `&`, U+2028 and U+2029 escaped,
        everything else non-ASCII written as UTF-8. No trailing newline.
        """
        try:
            text = json.dumps(
                _to_wire(obj),
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
            # These characters can only occur inside JSON strings
            for char, escaped in _GO_HTML_ESCAPES.items():
                if char in text:
                    text = text.replace(char, escaped)
            return text.encode("utf-8")
        except (TypeError, ValueError) as e:
            # UnicodeEncodeError (lone surrogates) is a ValueError too
            raise EncodeError(f"Failed to encode payload: {e}") from e

    @staticmethod
    def decode_json(raw: bytes) -> Any:
        """
        Decode the first JSON value in `raw`, ignoring whatever follows it.
        Invalid UTF-8 and unpaired surrogate escapes are replaced with
        U+FFFD rather than rejected.
        """
        text = raw.decode("utf-8", errors="replace").lstrip(_JSON_WHITESPACE)
        decoder = json.JSONDecoder(parse_constant=_reject_constant)
        try:
            value, _ = decoder.raw_decode(text)
        except ValueError as e:
            raise DecodeError(f"failed to decode cached data: {e}") from e
        return _scrub_surrogates(value)

    def marshal(self, obj: Any) -> bytes:
        """
        Serialize `obj` for storage. Under gzip the output is a gzip member
        that has been sync-flushed; there is no final block or trailer,
        exactly as the consumer's writer leaves it.
        """
        raw = self.encode_json(obj) + b"\n"
        if self.compression is CompressionType.GZIP:
            deflater = zlib.compressobj(GZIP_LEVEL, zlib.DEFLATED, -zlib.MAX_WBITS)
            return GZIP_HEADER + deflater.compress(raw) + deflater.flush(zlib.Z_SYNC_FLUSH)
        return raw

    def unmarshal(self, data: bytes, model_type: Type[ModelT]) -> ModelT:
        """
        Decode stored bytes into `model_type`.

        Raises:
            DecodeError: decompression, JSON or schema validation failed
        """
        raw = data
        if self.compression is CompressionType.GZIP:
            # wbits 16+: gzip header required; a missing trailer is tolerated
            inflater = zlib.decompressobj(16 + zlib.MAX_WBITS)
            try:
                raw = inflater.decompress(data)
            except zlib.error as e:
                raise DecodeError(f"failed to decompress cached data: {e}") from e

        value = self.decode_json(raw)
        if value is None:
            # JSON null leaves the target at its zero value
            value = {}

        try:
            # Wire names only; Python field names are unknown keys to the consumer
            return model_type.model_validate(value, by_alias=True, by_name=False)
        except ValidationError as e:
            raise DecodeError(
                f"failed to decode cached data: {e.error_count()} validation error(s)",
                details={"errors": e.errors(include_url=False)},
            ) from e
