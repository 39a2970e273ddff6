"""
Huffman coding with a self-describing tree header.

Compression makes two passes over the input: one to count byte
frequencies and, after a rewind, one to emit codes. The trie itself is
written ahead of the payload so the decoder never needs the counts.
"""

import heapq
import io
import sys
from itertools import count
from typing import Dict, List, NamedTuple, Optional

from bitio import BitInputStream, BitOutputStream, EOF_SENTINEL
from format import (
    ALPH_SIZE, BITS_PER_WORD, PSEUDO_EOF, SYMBOL_BITS,
    MalformedHeaderError, TruncatedInputError,
    read_magic, write_magic,
)


DEBUG_LOW = 1
DEBUG_HIGH = 4


class HuffmanNode:
    def __init__(self, value: int = 0, weight: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None,
                 order: int = 0):
        self.value = value
        self.weight = weight
        self.left = left
        self.right = right
        self.order = order

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __lt__(self, other):
        # equal weights leave the heap in construction order
        return (self.weight, self.order) < (other.weight, other.order)

    def __repr__(self):
        if self.is_leaf:
            return f"HuffmanNode(value={self.value}, weight={self.weight})"
        return f"HuffmanNode(weight={self.weight}, internal)"


class Code(NamedTuple):
    length: int
    bits: int

    def __str__(self):
        return format(self.bits, f'0{self.length}b') if self.length else ''


def read_for_counts(bits_in: BitInputStream) -> List[int]:
    counts = [0] * (ALPH_SIZE + 1)

    while True:
        value = bits_in.read_bits(BITS_PER_WORD)
        if value == EOF_SENTINEL:
            break
        counts[value] += 1

    counts[PSEUDO_EOF] = 1
    return counts


def make_tree_from_counts(counts: List[int]) -> HuffmanNode:
    """
    Greedily merge the two lightest nodes until one root remains.

    Leaves enter the queue in symbol order and merged nodes get later
    sequence numbers, so ties resolve the same way on every run.
    """
    sequence = count()
    heap = [HuffmanNode(value=symbol, weight=freq, order=next(sequence))
            for symbol, freq in enumerate(counts) if freq > 0]
    heapq.heapify(heap)

    while len(heap) > 1:
        left = heapq.heappop(heap)
        right = heapq.heappop(heap)

        parent = HuffmanNode(value=left.value + right.value,
                             weight=left.weight + right.weight,
                             left=left, right=right,
                             order=next(sequence))
        heapq.heappush(heap, parent)

    return heap[0]


def make_codings_from_tree(root: HuffmanNode) -> Dict[int, Code]:
    codings: Dict[int, Code] = {}
    stack = [(root, 0, 0)]

    while stack:
        node, length, bits = stack.pop()

        if node.is_leaf:
            codings[node.value] = Code(length, bits)
            continue

        # right first so the left subtree is visited first
        stack.append((node.right, length + 1, (bits << 1) | 1))
        stack.append((node.left, length + 1, bits << 1))

    return codings


def write_header(root: HuffmanNode, out: BitOutputStream):
    stack = [root]

    while stack:
        node = stack.pop()

        if node.is_leaf:
            out.write_bits(1, 1)
            out.write_bits(SYMBOL_BITS, node.value)
        else:
            out.write_bits(1, 0)
            stack.append(node.right)
            stack.append(node.left)


def read_tree(bits_in: BitInputStream) -> HuffmanNode:
    """
    Rebuild a trie from its pre-order header.

    Internal nodes waiting for children sit on an explicit stack; a node
    leaves the stack once its right child has been attached.
    """
    root = None
    pending: List[HuffmanNode] = []

    while True:
        bit = bits_in.read_bits(1)
        if bit == EOF_SENTINEL:
            raise TruncatedInputError("Input ended inside the tree header")

        if bit == 0:
            node = HuffmanNode()
        else:
            value = bits_in.read_bits(SYMBOL_BITS)
            if value == EOF_SENTINEL:
                raise TruncatedInputError("Input ended inside a leaf value")
            if value > PSEUDO_EOF:
                raise MalformedHeaderError(f"Invalid leaf symbol {value}")
            node = HuffmanNode(value=value)

        if not pending:
            root = node
        else:
            parent = pending[-1]
            if parent.left is None:
                parent.left = node
            else:
                parent.right = node
                pending.pop()

        if bit == 0:
            pending.append(node)

        if not pending:
            return root


def write_compressed_bits(codings: Dict[int, Code],
                          bits_in: BitInputStream,
                          out: BitOutputStream):
    while True:
        value = bits_in.read_bits(BITS_PER_WORD)
        if value == EOF_SENTINEL:
            break
        code = codings[value]
        out.write_bits(code.length, code.bits)

    code = codings[PSEUDO_EOF]
    out.write_bits(code.length, code.bits)


def read_compressed_bits(root: HuffmanNode,
                         bits_in: BitInputStream,
                         out: BitOutputStream):
    if root.is_leaf:
        if root.value != PSEUDO_EOF:
            raise MalformedHeaderError(
                f"Single-leaf tree must hold PSEUDO_EOF, got {root.value}")
        return

    current = root
    try:
        while True:
            bit = bits_in.read_bits(1)
            if bit == EOF_SENTINEL:
                raise TruncatedInputError("Bad input, no PSEUDO_EOF")

            current = current.right if bit else current.left

            if current.is_leaf:
                if current.value == PSEUDO_EOF:
                    break
                out.write_bits(BITS_PER_WORD, current.value)
                current = root
    finally:
        out.flush()


class HuffProcessor:
    def __init__(self, debug_level: int = 0):
        self.debug_level = debug_level

    def _debug(self, level: int, message: str):
        if self.debug_level >= level:
            print(message, file=sys.stderr)

    def compress(self, bits_in: BitInputStream, out: BitOutputStream):
        counts = read_for_counts(bits_in)
        root = make_tree_from_counts(counts)
        codings = make_codings_from_tree(root)

        if self.debug_level >= DEBUG_HIGH:
            self._debug(DEBUG_HIGH, "chunk\tfreq")
            for symbol, freq in enumerate(counts):
                if freq:
                    self._debug(DEBUG_HIGH, f"{symbol}\t{freq}")
            self._debug(DEBUG_HIGH, "chunk\tencoding")
            for symbol in sorted(codings):
                self._debug(DEBUG_HIGH, f"{symbol}\t{codings[symbol]}")

        write_magic(out)
        write_header(root, out)

        bits_in.reset()
        write_compressed_bits(codings, bits_in, out)
        out.close()

        self._debug(DEBUG_LOW,
                    f"compress: read {bits_in.bits_read} bits, "
                    f"wrote {out.bits_written} bits")

    def decompress(self, bits_in: BitInputStream, out: BitOutputStream):
        read_magic(bits_in)
        root = read_tree(bits_in)
        self._debug(DEBUG_HIGH, f"tree header read in {bits_in.bits_read} bits")

        read_compressed_bits(root, bits_in, out)
        out.close()

        self._debug(DEBUG_LOW,
                    f"decompress: read {bits_in.bits_read} bits, "
                    f"wrote {out.bits_written} bits")


def compress_bytes(data: bytes, debug_level: int = 0) -> bytes:
    output = io.BytesIO()
    HuffProcessor(debug_level).compress(
        BitInputStream(io.BytesIO(data)), BitOutputStream(output))
    return output.getvalue()


def decompress_bytes(data: bytes, debug_level: int = 0) -> bytes:
    output = io.BytesIO()
    HuffProcessor(debug_level).decompress(
        BitInputStream(io.BytesIO(data)), BitOutputStream(output))
    return output.getvalue()
