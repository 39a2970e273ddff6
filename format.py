"""
Compressed file layout: format constants, the magic marker and codec errors.

A compressed file is a 32-bit HUFF_TREE marker, the pre-order serialized
Huffman trie, then the payload codes terminated by the PSEUDO_EOF code.
"""

from bitio import BitInputStream, BitOutputStream, EOF_SENTINEL


BITS_PER_WORD = 8
BITS_PER_INT = 32
ALPH_SIZE = 1 << BITS_PER_WORD
PSEUDO_EOF = ALPH_SIZE
SYMBOL_BITS = BITS_PER_WORD + 1

HUFF_NUMBER = 0xface8200
HUFF_TREE = HUFF_NUMBER | 1


class HuffException(ValueError):
    """Base class for errors raised while decoding a compressed stream."""


class MalformedHeaderError(HuffException):
    pass


class TruncatedInputError(HuffException):
    """The input ran out of bits before the stream was complete.

    Bytes decoded before the failure have already been written to the
    output and are not rolled back.
    """


def write_magic(out: BitOutputStream):
    out.write_bits(BITS_PER_INT, HUFF_TREE)


def read_magic(bits_in: BitInputStream):
    magic = bits_in.read_bits(BITS_PER_INT)
    if magic == EOF_SENTINEL:
        raise MalformedHeaderError("Input too short for a format marker")
    if magic != HUFF_TREE:
        raise MalformedHeaderError(f"Invalid magic number {magic:#010x}")
