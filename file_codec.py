"""
Compresses and decompresses files on disk with HuffProcessor.

Output is written to a temporary file beside the target and moved into
place afterwards, so an existing target is only replaced by a finished
(or, on truncated input, partially decoded) result.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Optional

from bitio import BitInputStream, BitOutputStream
from format import TruncatedInputError
from huffman import HuffProcessor


COMPRESSED_SUFFIX = '.hf'
DECOMPRESSED_SUFFIX = '.uhf'


@dataclass
class CodecResult:
    input_path: str
    output_path: str
    input_size: int
    output_size: int
    bits_read: int
    bits_written: int

    @property
    def ratio(self) -> float:
        return (self.output_size / self.input_size * 100) if self.input_size > 0 else 0.0


def default_compressed_path(path: str) -> str:
    return path + COMPRESSED_SUFFIX


def default_decompressed_path(path: str) -> str:
    if path.endswith(COMPRESSED_SUFFIX):
        return path[:-len(COMPRESSED_SUFFIX)]
    return path + DECOMPRESSED_SUFFIX


class FileCodec:
    def __init__(self, debug_level: int = 0):
        self.processor = HuffProcessor(debug_level=debug_level)

    def compress_file(self, file_path: str,
                      output_path: Optional[str] = None) -> CodecResult:
        output_path = output_path or default_compressed_path(file_path)
        return self._run(self.processor.compress, file_path, output_path)

    def decompress_file(self, file_path: str,
                        output_path: Optional[str] = None) -> CodecResult:
        """
        Decompress file_path into output_path.

        A bad format marker or tree header leaves output_path untouched.
        On a truncated payload the bytes decoded so far are kept in
        output_path and the error is re-raised.
        """
        output_path = output_path or default_decompressed_path(file_path)
        return self._run(self.processor.decompress, file_path, output_path)

    @staticmethod
    def _run(action, file_path: str, output_path: str) -> CodecResult:
        if os.path.abspath(output_path) == os.path.abspath(file_path):
            raise ValueError(f"Output path must differ from input: {file_path}")

        input_size = os.path.getsize(file_path)

        parent = os.path.dirname(output_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=parent or '.', suffix='.tmp')
        try:
            with open(file_path, 'rb') as src, os.fdopen(fd, 'wb') as dst:
                bits_in = BitInputStream(src)
                bits_out = BitOutputStream(dst)
                action(bits_in, bits_out)
            os.replace(temp_path, output_path)
        except TruncatedInputError:
            os.replace(temp_path, output_path)
            raise
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

        return CodecResult(
            input_path=file_path,
            output_path=output_path,
            input_size=input_size,
            output_size=os.path.getsize(output_path),
            bits_read=bits_in.bits_read,
            bits_written=bits_out.bits_written
        )
