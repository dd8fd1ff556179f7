"""NDJSON line decoder."""

from typing import Iterator


class LineDecoder:
    """Buffers byte chunks and yields complete lines, newline stripped.

    Lines are decoded only once complete, so a multi-byte character split
    across chunks decodes the same as if it arrived in one piece.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding
        self._buffer = bytearray()
        # Bytes before this offset are known to hold no newline
        self._scan_from = 0

    def feed(self, chunk: bytes) -> Iterator[str]:
        """Append ``chunk`` and return the lines it completes."""
        self._buffer += chunk
        lines = []
        start = 0
        while True:
            idx = self._buffer.find(b"\n", max(start, self._scan_from))
            if idx < 0:
                break
            lines.append(self._decode(self._buffer[start:idx]))
            start = idx + 1

        if start:
            del self._buffer[:start]
        self._scan_from = len(self._buffer)
        return iter(lines)

    def close(self) -> Iterator[str]:
        """Flush the trailing partial line at end of stream.

        The remainder is emitted only if it holds something other than
        whitespace.
        """
        remainder, self._buffer = self._buffer, bytearray()
        self._scan_from = 0
        line = self._decode(remainder)
        return iter([line] if line.strip() else [])

    def _decode(self, raw: bytearray) -> str:
        return raw.decode(self._encoding, errors="replace").rstrip("\r")
