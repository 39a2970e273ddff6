"""
Bit-level input/output over binary streams.

Bits are packed MSB first. Reads past the end of the stream return -1
instead of raising, so callers can treat exhaustion as a plain value.
"""

from typing import BinaryIO


EOF_SENTINEL = -1
CHUNK_SIZE = 4096


class BitInputStream:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.bits_read = 0
        self._chunk = b''
        self._pos = 0
        self._buffer = 0
        self._bit_count = 0

    def _next_byte(self) -> int:
        if self._pos >= len(self._chunk):
            self._chunk = self.stream.read(CHUNK_SIZE)
            self._pos = 0
            if not self._chunk:
                return EOF_SENTINEL

        byte = self._chunk[self._pos]
        self._pos += 1
        return byte

    def read_bits(self, count: int) -> int:
        while self._bit_count < count:
            byte = self._next_byte()
            if byte == EOF_SENTINEL:
                return EOF_SENTINEL
            self._buffer = (self._buffer << 8) | byte
            self._bit_count += 8

        self._bit_count -= count
        value = self._buffer >> self._bit_count
        self._buffer &= (1 << self._bit_count) - 1
        self.bits_read += count
        return value

    def reset(self):
        """Rewind to the start of the underlying stream."""
        self.stream.seek(0)
        self._chunk = b''
        self._pos = 0
        self._buffer = 0
        self._bit_count = 0


class BitOutputStream:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.bits_written = 0
        self._pending = bytearray()
        self._buffer = 0
        self._bit_count = 0

    def write_bits(self, count: int, value: int):
        if count == 0:
            return
        if value < 0 or value >> count:
            raise ValueError(f"Value {value} does not fit in {count} bits")

        self._buffer = (self._buffer << count) | value
        self._bit_count += count
        self.bits_written += count

        while self._bit_count >= 8:
            self._bit_count -= 8
            self._pending.append(self._buffer >> self._bit_count)
            self._buffer &= (1 << self._bit_count) - 1

        if len(self._pending) >= CHUNK_SIZE:
            self.flush()

    def flush(self):
        """Write completed bytes; a trailing partial byte stays buffered."""
        if self._pending:
            self.stream.write(bytes(self._pending))
            self._pending.clear()

    def close(self):
        # zero-pad the last byte; the caller still owns the stream
        if self._bit_count:
            padding = 8 - self._bit_count
            self.write_bits(padding, 0)
        self.flush()
        self.stream.flush()
