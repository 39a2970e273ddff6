import unittest
import tempfile
import os
import io
import sys
import random
from contextlib import redirect_stdout, redirect_stderr
from itertools import permutations

from bitio import BitInputStream, BitOutputStream, EOF_SENTINEL
from format import (
    HUFF_TREE, PSEUDO_EOF, HuffException, MalformedHeaderError,
    TruncatedInputError, read_magic,
)
from huffman import (
    HuffProcessor, HuffmanNode, Code, read_for_counts, make_tree_from_counts,
    make_codings_from_tree, write_header, read_tree,
    compress_bytes, decompress_bytes,
)
from file_codec import FileCodec, default_decompressed_path
import main as cli


MAGIC_BYTES = HUFF_TREE.to_bytes(4, 'big')


def bits_from(data: bytes) -> BitInputStream:
    return BitInputStream(io.BytesIO(data))


def codings_for(data: bytes):
    counts = read_for_counts(bits_from(data))
    root = make_tree_from_counts(counts)
    return root, make_codings_from_tree(root)


def leaf_values(root: HuffmanNode):
    values = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            values.append(node.value)
        else:
            stack.extend([node.left, node.right])
    return sorted(values)


class TestBitIO(unittest.TestCase):
    def test_read_msb_first(self):
        bits_in = bits_from(b'\xa5')
        self.assertEqual(bits_in.read_bits(1), 1)
        self.assertEqual(bits_in.read_bits(3), 2)
        self.assertEqual(bits_in.read_bits(4), 5)
        self.assertEqual(bits_in.read_bits(1), EOF_SENTINEL)
        self.assertEqual(bits_in.bits_read, 8)

    def test_read_past_end_returns_sentinel(self):
        bits_in = bits_from(b'\xff')
        self.assertEqual(bits_in.read_bits(9), EOF_SENTINEL)

    def test_reset(self):
        bits_in = bits_from(b'\xff\x01')
        self.assertEqual(bits_in.read_bits(12), 0xff0)
        bits_in.reset()
        self.assertEqual(bits_in.read_bits(16), 0xff01)

    def test_write_pads_last_byte(self):
        output = io.BytesIO()
        bits_out = BitOutputStream(output)
        bits_out.write_bits(1, 1)
        bits_out.write_bits(3, 0)
        bits_out.write_bits(0, 0)
        bits_out.close()
        self.assertEqual(output.getvalue(), b'\x80')
        self.assertEqual(bits_out.bits_written, 8)

    def test_write_nothing(self):
        output = io.BytesIO()
        BitOutputStream(output).close()
        self.assertEqual(output.getvalue(), b'')

    def test_write_value_too_wide(self):
        bits_out = BitOutputStream(io.BytesIO())
        with self.assertRaises(ValueError):
            bits_out.write_bits(3, 8)


class TestFrequencyTable(unittest.TestCase):
    def test_counts(self):
        counts = read_for_counts(bits_from(b"aab"))
        self.assertEqual(len(counts), 257)
        self.assertEqual(counts[ord('a')], 2)
        self.assertEqual(counts[ord('b')], 1)
        self.assertEqual(counts[PSEUDO_EOF], 1)
        self.assertEqual(sum(counts), 4)

    def test_empty_input(self):
        counts = read_for_counts(bits_from(b""))
        self.assertEqual(counts[PSEUDO_EOF], 1)
        self.assertEqual(sum(counts), 1)


class TestTrieBuilder(unittest.TestCase):
    def test_only_pseudo_eof(self):
        root = make_tree_from_counts(read_for_counts(bits_from(b"")))
        self.assertTrue(root.is_leaf)
        self.assertEqual(root.value, PSEUDO_EOF)

    def test_root_weight(self):
        data = b"mississippi"
        root, _ = codings_for(data)
        self.assertEqual(root.weight, len(data) + 1)
        self.assertEqual(leaf_values(root), sorted(set(data)) + [PSEUDO_EOF])

    def test_equal_weights_resolve_in_order(self):
        root, codings = codings_for(b"abcd")
        self.assertEqual(str(codings[ord('c')]), '00')
        self.assertEqual(str(codings[ord('d')]), '01')
        self.assertEqual(str(codings[PSEUDO_EOF]), '10')
        self.assertEqual(str(codings[ord('a')]), '110')
        self.assertEqual(str(codings[ord('b')]), '111')
        self.assertEqual(root.value, sum(b"abcd") + PSEUDO_EOF)

    def test_deterministic(self):
        data = b"the rain in spain stays mainly in the plain"
        self.assertEqual(codings_for(data)[1], codings_for(data)[1])
        self.assertEqual(compress_bytes(data), compress_bytes(data))


class TestCodeTable(unittest.TestCase):
    def test_prefix_free(self):
        random.seed(7)
        data = bytes(random.choice(b"aaaaabbbccdefg\x00\xff") for _ in range(2000))
        _, codings = codings_for(data)
        codes = [str(code) for code in codings.values()]

        for a, b in permutations(codes, 2):
            self.assertFalse(b.startswith(a), f"{a} is a prefix of {b}")

    def test_only_present_symbols(self):
        _, codings = codings_for(b"xyzzy")
        self.assertEqual(set(codings), {ord('x'), ord('y'), ord('z'), PSEUDO_EOF})

    def test_leaf_root(self):
        root = make_tree_from_counts(read_for_counts(bits_from(b"")))
        codings = make_codings_from_tree(root)
        self.assertEqual(codings, {PSEUDO_EOF: Code(0, 0)})
        self.assertEqual(str(codings[PSEUDO_EOF]), '')

    def test_frequent_symbol_gets_shorter_code(self):
        _, codings = codings_for(b"e" * 100 + b"qz")
        self.assertLess(codings[ord('e')].length, codings[ord('q')].length)


class TestHeaderCodec(unittest.TestCase):
    def test_header_round_trip_keeps_codings(self):
        root, codings = codings_for(b"Lorem ipsum dolor sit amet, consectetur")
        output = io.BytesIO()
        bits_out = BitOutputStream(output)
        write_header(root, bits_out)
        bits_out.close()

        rebuilt = read_tree(bits_from(output.getvalue()))
        self.assertEqual(make_codings_from_tree(rebuilt), codings)

    def test_leaf_header(self):
        output = io.BytesIO()
        bits_out = BitOutputStream(output)
        write_header(HuffmanNode(value=PSEUDO_EOF), bits_out)
        bits_out.close()
        self.assertEqual(output.getvalue(), b'\xc0\x00')

    def test_truncated_tree(self):
        with self.assertRaises(TruncatedInputError):
            read_tree(bits_from(b'\x00'))

    def test_truncated_leaf_value(self):
        with self.assertRaises(TruncatedInputError):
            read_tree(bits_from(b'\x80'))

    def test_invalid_leaf_symbol(self):
        with self.assertRaises(MalformedHeaderError):
            read_tree(bits_from(b'\xff\xc0'))


class TestMagic(unittest.TestCase):
    def test_marker_written(self):
        self.assertTrue(compress_bytes(b"abc").startswith(MAGIC_BYTES))

    def test_wrong_marker(self):
        data = b'\x00\x00\x00\x00' + compress_bytes(b"abc")[4:]
        with self.assertRaises(MalformedHeaderError):
            decompress_bytes(data)

    def test_wrong_marker_stops_early(self):
        bits_in = bits_from(b'\xfa\xce\x82\x00' + b'\x00' * 16)
        with self.assertRaises(MalformedHeaderError):
            read_magic(bits_in)
        self.assertEqual(bits_in.bits_read, 32)

    def test_short_input(self):
        with self.assertRaises(MalformedHeaderError):
            decompress_bytes(b'\xfa')

    def test_errors_are_value_errors(self):
        self.assertTrue(issubclass(MalformedHeaderError, HuffException))
        self.assertTrue(issubclass(TruncatedInputError, ValueError))
        self.assertFalse(issubclass(TruncatedInputError, MalformedHeaderError))


class TestRoundTrip(unittest.TestCase):
    def assertRoundTrip(self, data: bytes):
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)

    def test_simple(self):
        self.assertRoundTrip(b"aaabbc")

    def test_empty(self):
        compressed = compress_bytes(b"")
        self.assertEqual(compressed, MAGIC_BYTES + b'\xc0\x00')
        self.assertEqual(decompress_bytes(compressed), b"")

    def test_single_byte(self):
        self.assertRoundTrip(b"A")

    def test_repeated_byte(self):
        data = b"A" * 1000
        compressed = compress_bytes(data)

        bits_in = bits_from(compressed)
        read_magic(bits_in)
        root = read_tree(bits_in)
        self.assertEqual(leaf_values(root), [0x41, PSEUDO_EOF])

        self.assertEqual(decompress_bytes(compressed), data)
        self.assertLess(len(compressed), 140)

    def test_all_byte_values(self):
        self.assertRoundTrip(bytes(range(256)) * 10)

    def test_random_data(self):
        random.seed(42)
        self.assertRoundTrip(bytes(random.randint(0, 255) for _ in range(5000)))

    def test_skewed_data(self):
        random.seed(3)
        data = bytes(min(int(random.expovariate(0.3)), 255) for _ in range(5000))
        self.assertRoundTrip(data)

    def test_compresses_text(self):
        data = b"Lorem ipsum dolor sit amet " * 200
        compressed = compress_bytes(data)
        self.assertLess(len(compressed), len(data))
        self.assertEqual(decompress_bytes(compressed), data)


class TestDecodeErrors(unittest.TestCase):
    def test_truncated_payload(self):
        data = b"hello world " * 10
        compressed = compress_bytes(data)

        output = io.BytesIO()
        with self.assertRaises(TruncatedInputError):
            HuffProcessor().decompress(bits_from(compressed[:-3]),
                                       BitOutputStream(output))

        partial = output.getvalue()
        self.assertGreater(len(partial), 0)
        self.assertTrue(data.startswith(partial))

    def test_header_only(self):
        compressed = compress_bytes(b"abc")
        bits_in = bits_from(compressed)
        read_magic(bits_in)
        read_tree(bits_in)
        header_bytes = (bits_in.bits_read + 7) // 8

        with self.assertRaises(HuffException):
            decompress_bytes(compressed[:header_bytes - 1])

    def test_single_leaf_without_pseudo_eof(self):
        with self.assertRaises(MalformedHeaderError):
            decompress_bytes(MAGIC_BYTES + b'\x90\x40')

    def test_wrong_marker_writes_nothing(self):
        data = b'\x00\x00\x00\x00' + compress_bytes(b"some text")[4:]

        output = io.BytesIO()
        with self.assertRaises(MalformedHeaderError):
            HuffProcessor().decompress(bits_from(data), BitOutputStream(output))
        self.assertEqual(output.getvalue(), b'')


class TestHuffProcessor(unittest.TestCase):
    def test_debug_does_not_change_output(self):
        data = b"debug output is observability only"
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            noisy = compress_bytes(data, debug_level=4)
            decompress_bytes(noisy, debug_level=4)

        self.assertEqual(noisy, compress_bytes(data))
        self.assertIn("chunk\tfreq", stderr.getvalue())
        self.assertIn("compress: read", stderr.getvalue())

    def test_quiet_by_default(self):
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            compress_bytes(b"quiet")
        self.assertEqual(stderr.getvalue(), "")


class TestFileCodec(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.codec = FileCodec()

    def tearDown(self):
        import shutil
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _write(self, name: str, data: bytes) -> str:
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_compress_decompress_file(self):
        data = b"Hello World! " * 100
        test_file = self._write("test.txt", data)

        result = self.codec.compress_file(test_file)
        self.assertEqual(result.output_path, test_file + ".hf")
        self.assertEqual(result.bits_read, len(data) * 8 * 2)
        self.assertLess(os.path.getsize(result.output_path), len(data))

        restored = os.path.join(self.temp_dir, "out", "restored.txt")
        self.codec.decompress_file(result.output_path, restored)

        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_empty_file(self):
        test_file = self._write("empty.bin", b"")
        result = self.codec.compress_file(test_file)
        back = self.codec.decompress_file(result.output_path)

        self.assertEqual(back.output_path, test_file)
        self.assertEqual(os.path.getsize(test_file), 0)

    def test_default_paths(self):
        self.assertEqual(default_decompressed_path("a/b.txt.hf"), "a/b.txt")
        self.assertEqual(default_decompressed_path("a/b.bin"), "a/b.bin.uhf")

    def test_not_compressed(self):
        bogus = self._write("bogus.hf", b"not a huffman file")
        with self.assertRaises(MalformedHeaderError):
            self.codec.decompress_file(bogus)

        self.assertFalse(os.path.exists(os.path.join(self.temp_dir, "bogus")))
        self.assertEqual(os.listdir(self.temp_dir), ["bogus.hf"])

    def test_failed_decompress_keeps_target(self):
        original = self._write("notes.txt", b"keep me safe!")
        bogus = self._write("notes.txt.hf", b"garbage!!")

        with self.assertRaises(MalformedHeaderError):
            self.codec.decompress_file(bogus)

        with open(original, 'rb') as f:
            self.assertEqual(f.read(), b"keep me safe!")

    def test_truncated_file_keeps_partial_output(self):
        data = b"hello world " * 10
        truncated = self._write("hello.hf", compress_bytes(data)[:-3])
        target = os.path.join(self.temp_dir, "hello.txt")

        with self.assertRaises(TruncatedInputError):
            self.codec.decompress_file(truncated, target)

        with open(target, 'rb') as f:
            partial = f.read()
        self.assertGreater(len(partial), 0)
        self.assertTrue(data.startswith(partial))
        self.assertEqual(sorted(os.listdir(self.temp_dir)), ["hello.hf", "hello.txt"])

    def test_same_path_rejected(self):
        data = b"do not truncate me " * 20
        test_file = self._write("same.txt", data)

        with self.assertRaises(ValueError):
            self.codec.compress_file(test_file, test_file)
        with self.assertRaises(ValueError):
            self.codec.decompress_file(test_file, os.path.join(self.temp_dir, ".", "same.txt"))

        with open(test_file, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_empty_ratio_is_float(self):
        test_file = self._write("empty.bin", b"")
        result = self.codec.compress_file(test_file)
        self.assertIsInstance(result.ratio, float)
        self.assertEqual(result.ratio, 0.0)


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        import shutil
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _run(self, *argv) -> int:
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            return cli.main(list(argv))

    def test_compress_and_decompress(self):
        source = os.path.join(self.temp_dir, "file1.txt")
        restored = os.path.join(self.temp_dir, "file1.out")
        with open(source, 'wb') as f:
            f.write(b"Content of file 1\n" * 50)

        self.assertEqual(self._run("compress", source), 0)
        self.assertTrue(os.path.isfile(source + ".hf"))
        self.assertEqual(self._run("decompress", source + ".hf", "-o", restored), 0)

        with open(source, 'rb') as f:
            original = f.read()
        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), original)

    def test_missing_file(self):
        self.assertEqual(self._run("compress", os.path.join(self.temp_dir, "nope")), 1)

    def test_bad_archive(self):
        bogus = os.path.join(self.temp_dir, "bogus.hf")
        with open(bogus, 'wb') as f:
            f.write(b"\x00" * 10)
        self.assertEqual(self._run("decompress", bogus), 1)

    def test_output_same_as_input(self):
        source = os.path.join(self.temp_dir, "file2.txt")
        with open(source, 'wb') as f:
            f.write(b"Content of file 2\n" * 50)

        self.assertEqual(self._run("compress", source, "-o", source), 1)
        self.assertEqual(os.path.getsize(source), len(b"Content of file 2\n") * 50)


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for case in (TestBitIO, TestFrequencyTable, TestTrieBuilder, TestCodeTable,
                 TestHeaderCodec, TestMagic, TestRoundTrip, TestDecodeErrors,
                 TestHuffProcessor, TestFileCodec, TestCommandLine):
        suite.addTests(loader.loadTestsFromTestCase(case))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
