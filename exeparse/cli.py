"""Command-line entry point: load an executable and start the command loop."""

from __future__ import annotations

import os
import sys

from .buffer import ByteBuffer, ByteBufferError, ParserError
from .execommander import ExeCmdContext, ExeCommander, read_number
from .factory import ExeType, build, find_matching, get_type_name
from .filebuffer import FILE_MAXSIZE, FileView

VERSION = "0.1.0"
MINBUF = 0x200


def try_loading(context: ExeCmdContext, path) -> FileView | None:
    """Load the file, asking for a smaller size while loading fails."""
    max_size = FILE_MAXSIZE
    while True:
        if not os.path.exists(path):
            print("[ERROR] The file does not exist", file=context.stderr)
            return None
        try:
            return FileView(path, max_size)
        except ByteBufferError as exc:
            print(f"[ERROR] {exc}", file=context.stderr)
            max_size = read_number(context, "Try again with size (hex): ", True)
            if max_size == 0:
                return None


def main(argv=None) -> int:
    """Run the tool on the file named by the first argument."""
    args = sys.argv[1:] if argv is None else list(argv)
    context = ExeCmdContext()
    commander = ExeCommander(context)
    out = context.stdout

    if not args:
        print(f"Version: {VERSION}", file=out)
        print("Args: <PE file>", file=out)
        commander.print_help()
        return 0

    status = 0
    try:
        file_view = try_loading(context, args[0])
        if file_view is None:
            return -1
        with file_view:
            exe_type = find_matching(file_view)
            if exe_type == ExeType.NONE:
                print("Type not supported", file=context.stderr)
                return 1
            print(f"Type: {get_type_name(exe_type)}", file=out)
            alloc = max(len(file_view), MINBUF)
            print("Buffering...", file=out)
            buf = ByteBuffer.from_buffer(file_view, 0, alloc)
        print("Parsing executable...", file=out)
        context.exe = build(buf, exe_type)
        commander.run()
        print("Bye!", file=out)
    except ParserError as exc:
        print(f"[ERROR] {exc}", file=context.stderr)
        status = -1
    return status


if __name__ == "__main__":
    sys.exit(main())