"""
Command line for the Huffman file codec.
"""

import argparse
import os
import sys

from file_codec import FileCodec
from format import HuffException


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Huffman tree-header file codec',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress notes.txt
  python main.py decompress notes.txt.hf -o notes.out
  python main.py --debug 4 compress notes.txt
        """
    )
    parser.add_argument('--debug', type=int, default=0, metavar='LEVEL',
                        help='Debug verbosity (1 = totals, 4 = tables)')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress files')
    compress_parser.add_argument('files', nargs='+', help='Files to compress')
    compress_parser.add_argument('-o', '--output',
                                 help='Output path (single input only)')

    decompress_parser = subparsers.add_parser('decompress', help='Decompress files')
    decompress_parser.add_argument('files', nargs='+', help='Files to decompress')
    decompress_parser.add_argument('-o', '--output',
                                   help='Output path (single input only)')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.output and len(args.files) > 1:
        parser.error('--output requires exactly one input file')

    codec = FileCodec(debug_level=args.debug)
    if args.command == 'compress':
        action = codec.compress_file
    else:
        action = codec.decompress_file

    try:
        for file_path in args.files:
            if not os.path.isfile(file_path):
                print(f"Error: {file_path} not found", file=sys.stderr)
                return 1

            print(f"{args.command.capitalize()} {file_path}...", end=" ")
            result = action(file_path, args.output)
            print(f"OK -> {result.output_path} ({result.ratio:.1f}%)")

    except HuffException as e:
        print("FAILED")
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print("FAILED")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
