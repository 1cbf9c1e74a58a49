"""Decoding of compressed HTTP response bodies."""

from __future__ import annotations

import gzip
import io
import zlib
from typing import BinaryIO

from kustodata.errors import Kind, Op, new_error, new_error_string

_CHUNK = 64 * 1024


class _Inflater:
    """Reads raw deflate data from a stream and yields decompressed bytes."""

    def __init__(self, source: BinaryIO) -> None:
        self._source = source
        self._decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
        self._buffer = bytearray()
        self._eof = False

    def read(self, size: int = -1) -> bytes:
        while (size < 0 or len(self._buffer) < size) and not self._eof:
            chunk = self._source.read(_CHUNK)
            if not chunk:
                self._buffer += self._decompressor.flush()
                self._eof = True
            else:
                self._buffer += self._decompressor.decompress(chunk)
                if self._decompressor.eof:
                    self._eof = True
        if size < 0:
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def close(self) -> None:
        self._buffer.clear()


class _DecodedBody(io.RawIOBase):
    """Reads through a decoder and closes both it and the original stream."""

    def __init__(self, original: BinaryIO, wrapper) -> None:
        super().__init__()
        self._original = original
        self._wrapper = wrapper

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._wrapper.read(len(buffer))
        count = len(data)
        buffer[:count] = data
        return count

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._wrapper.close()
        finally:
            self._original.close()
            super().close()


def translate_body(body: BinaryIO, content_encoding: str | None, op: Op) -> BinaryIO:
    """Return a stream yielding the decoded body for the given Content-Encoding.

    An empty encoding returns ``body`` unchanged; gzip and deflate are decoded.
    Any other encoding raises :class:`~kustodata.errors.KustoError`.
    """
    encoding = (content_encoding or "").lower()
    if encoding == "":
        return body
    if encoding == "gzip":
        wrapper = gzip.GzipFile(fileobj=body, mode="rb")
        try:
            wrapper.peek(1)
        except (OSError, EOFError, zlib.error) as exc:
            raise new_error(
                op, Kind.INTERNAL, ValueError(f"gzip reader error: {exc}")
            ) from exc
    elif encoding == "deflate":
        wrapper = _Inflater(body)
    else:
        raise new_error_string(
            op, Kind.INTERNAL, "Content-Encoding was unrecognized: %s", encoding
        )
    return io.BufferedReader(_DecodedBody(body, wrapper))