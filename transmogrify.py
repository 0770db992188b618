import sys
import re
import argparse
from io import BytesIO
from abc import ABC, abstractmethod
from typing import BinaryIO, Dict, Iterator, List, Optional

# 4x10 keyboard, row-major:
#   1234567890
#   qwertyuiop
#   asdfghjkl;
#   zxcvbnm,./
REFERENCE_LAYOUT = b"1234567890qwertyuiopasdfghjkl;zxcvbnm,./"
ROWS = 4
COLS = 10
LAYOUT_SIZE = ROWS * COLS

COMMAND_SEPARATOR = ","
CHUNK_SIZE = 1024

# Shift amounts must fit a signed 64-bit integer
SHIFT_MIN = -2 ** 63
SHIFT_MAX = 2 ** 63 - 1

# Verbose mode (disabled by default, enabled with --verbose)
VERBOSE = False

def log_info(msg: str):
    """Print info message only if verbose mode is enabled."""
    if VERBOSE:
        print(f"[INFO] {msg}", file=sys.stderr)

def log_warn(msg: str):
    """Print warning message only if verbose mode is enabled."""
    if VERBOSE:
        print(f"[WARN] {msg}", file=sys.stderr)

def log_error(msg: str):
    """Print error message regardless of verbose mode."""
    print(f"[ERROR] {msg}", file=sys.stderr)


class CommandError(ValueError):
    """Raised in strict mode when a transform token cannot be parsed."""

    def __init__(self, token: str, position: int):
        super().__init__(f"invalid transform command {token!r} at position {position}")
        self.token = token
        self.position = position

# ==========================================
#  LAYOUT ENGINE
# ==========================================

class KeyboardLayout:
    """
    A mutable permutation of the 40-key reference layout.

    Every operation rearranges ``current`` in place and then rebuilds
    ``mapping`` from scratch, so the mapping is always a pure function of
    the current arrangement:

        mapping[REFERENCE_LAYOUT[i]] == current[i]
    """

    def __init__(self):
        self.current = bytearray(REFERENCE_LAYOUT)
        self.mapping: Dict[int, int] = {}
        self.refresh_mapping()

    def refresh_mapping(self):
        self.mapping = {key: self.current[i] for i, key in enumerate(REFERENCE_LAYOUT)}

    def reset(self):
        """Restore the reference layout."""
        self.current = bytearray(REFERENCE_LAYOUT)
        self.refresh_mapping()

    def flip_horizontal(self):
        """Mirror every row left to right (1 <-> 0, 2 <-> 9, ...)."""
        for row in range(ROWS):
            self._reverse(row * COLS, row * COLS + COLS - 1)
        self.refresh_mapping()

    def flip_vertical(self):
        """Mirror every column top to bottom (1 <-> z, q <-> a, ...)."""
        cur = self.current
        for col in range(COLS):
            cur[col], cur[col + 30] = cur[col + 30], cur[col]
            cur[col + 10], cur[col + 20] = cur[col + 20], cur[col + 10]
        self.refresh_mapping()

    def shift(self, n: int):
        """
        Rotate the whole keyboard as one 40-key ring.

        Keys move ``n`` places to the right when ``n > 0`` and to the left
        when ``n < 0``, spilling from the end of one row into the start of
        the next (and from the last row back into the first).
        """
        k = ((n % LAYOUT_SIZE) + LAYOUT_SIZE) % LAYOUT_SIZE
        if k:
            # Right rotation by three reversals
            self._reverse(0, LAYOUT_SIZE - 1)
            self._reverse(0, k - 1)
            self._reverse(k, LAYOUT_SIZE - 1)
        self.refresh_mapping()

    def _reverse(self, start: int, end: int):
        cur = self.current
        while start < end:
            cur[start], cur[end] = cur[end], cur[start]
            start += 1
            end -= 1

    def inverse_mapping(self) -> Dict[int, int]:
        return {value: key for key, value in self.mapping.items()}

    def rows(self) -> List[bytes]:
        return [bytes(self.current[r * COLS:(r + 1) * COLS]) for r in range(ROWS)]


def format_layout(layout: KeyboardLayout) -> str:
    return "\n".join(" ".join(chr(c) for c in row) for row in layout.rows())

# ==========================================
#  TRANSFORMS: Abstract Base Class & Registry
# ==========================================

class Transform(ABC):
    """A single command that rearranges a KeyboardLayout."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The token that selects this transform."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description for help text."""
        pass

    @abstractmethod
    def apply(self, layout: KeyboardLayout):
        pass

    def __repr__(self):
        return self.name

TRANSFORM_REGISTRY = {}

def register_transform(cls):
    """Decorator to register a mnemonic transform under its token."""
    transform = cls()
    TRANSFORM_REGISTRY[transform.name] = transform
    return cls


@register_transform
class HorizontalFlip(Transform):
    name = "H"
    description = "Flip all rows horizontally (1 <-> 0, 2 <-> 9, ...)."

    def apply(self, layout: KeyboardLayout):
        layout.flip_horizontal()


@register_transform
class VerticalFlip(Transform):
    name = "V"
    description = "Flip all columns vertically (1 <-> z, q <-> a, ...)."

    def apply(self, layout: KeyboardLayout):
        layout.flip_vertical()


class Shift(Transform):
    name = "N"
    description = "Shift every key N places along the 40-key ring (negative shifts left)."

    def __init__(self, amount: int):
        self.amount = amount

    def apply(self, layout: KeyboardLayout):
        layout.shift(self.amount)

    def __eq__(self, other):
        return isinstance(other, Shift) and other.amount == self.amount

    def __hash__(self):
        return hash(self.amount)

    def __repr__(self):
        return f"Shift({self.amount})"


class InvalidCommand(Transform):
    """Placeholder for a token that is neither a mnemonic nor an integer."""

    name = "?"
    description = "Unrecognised token, ignored."

    def __init__(self, token: str):
        self.token = token

    def apply(self, layout: KeyboardLayout):
        layout.refresh_mapping()

    def __repr__(self):
        return f"InvalidCommand({self.token!r})"


_INTEGER_RE = re.compile(r"[+-]?[0-9]+")

def parse_command(token: str) -> Transform:
    """Turn one command token into a Transform. Never raises."""
    token = token.strip()
    mnemonic = TRANSFORM_REGISTRY.get(token.upper())
    if mnemonic is not None:
        return mnemonic
    if _INTEGER_RE.fullmatch(token):
        try:
            amount = int(token)
        except ValueError:
            # Past the interpreter's integer string length limit
            amount = None
        if amount is not None and SHIFT_MIN <= amount <= SHIFT_MAX:
            return Shift(amount)
    return InvalidCommand(token)


def split_commands(cmds: str) -> List[str]:
    return cmds.split(COMMAND_SEPARATOR)

# ==========================================
#  DISPATCHER: Transmogrifier session
# ==========================================

class Transmogrifier:
    """
    Owns one keyboard layout and applies transform commands to it.

    ``commands`` is a comma separated string such as ``"H,-3,V"``. If it is
    empty no transformation is made and the mapping is the identity.
    Commands are applied left to right and order matters: ``H,1`` and
    ``1,H`` produce different layouts.

    Invalid tokens are reported and skipped unless ``strict`` is set, in
    which case CommandError is raised at the first one.
    """

    def __init__(self, commands: str = "", strict: bool = False):
        self.layout = KeyboardLayout()
        self.strict = strict
        self.applied: List[Transform] = []
        for position, token in enumerate(split_commands(commands)):
            self.transform(token, position)

    def transform(self, token: str, position: Optional[int] = None) -> Transform:
        """Parse and apply a single command, returning the parsed Transform."""
        if position is None:
            position = len(self.applied)
        command = parse_command(token)
        if isinstance(command, InvalidCommand) and command.token:
            if self.strict:
                raise CommandError(command.token, position)
            log_error(f"ignoring invalid transform command {command.token!r} at position {position}")
        command.apply(self.layout)
        self.applied.append(command)
        log_info(f"applied {command!r}")
        return command

    @property
    def mapping(self) -> Dict[int, int]:
        return dict(self.layout.mapping)

    def encoder(self) -> "StreamEncoder":
        return StreamEncoder(self.layout.mapping)

    def decoder(self) -> "StreamEncoder":
        return StreamEncoder(self.layout.inverse_mapping())

# ==========================================
#  STREAM ENCODER
# ==========================================

def read_chunks(stream: BinaryIO, size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """
    Yield chunks of at most ``size`` bytes until the stream is exhausted.

    Uses ``read1`` when the stream offers it so interactive input is
    encoded line by line instead of waiting for a full chunk.
    """
    read = getattr(stream, "read1", stream.read)
    while True:
        chunk = read(size)
        if not chunk:
            return
        yield chunk


class StreamEncoder:
    """
    Byte substitution driven by a fixed key mapping.

    Each byte is lower-cased before lookup. Bytes whose lower-cased form is
    not a key keep their original value, case included.
    """

    def __init__(self, mapping: Dict[int, int]):
        table = bytearray(range(256))
        for byte in range(256):
            lowered = bytes([byte]).lower()[0]
            if lowered in mapping:
                table[byte] = mapping[lowered]
        self.table = bytes(table)

    def encode(self, data: bytes) -> bytes:
        return data.translate(self.table)

    def stream(self, source: BinaryIO, sink: BinaryIO, chunk_size: int = CHUNK_SIZE) -> int:
        """Encode ``source`` into ``sink`` chunk by chunk. Returns bytes written."""
        total = 0
        for chunk in read_chunks(source, chunk_size):
            sink.write(self.encode(chunk))
            sink.flush()
            total += len(chunk)
        return total

# ==========================================
#  CLI LOGIC
# ==========================================

def list_transforms() -> str:
    lines = [f"  {name:<4}: {t.description}" for name, t in TRANSFORM_REGISTRY.items()]
    lines.append(f"  {Shift.name:<4}: {Shift.description}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transmogrify",
        description="Encode text through a transformed 4x10 keyboard layout.",
        epilog=f"Transform commands (comma separated, applied in order):\n{list_transforms()}",
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument("--version", action="version", version="%(prog)s 1.0.0")

    # Transform commands
    parser.add_argument("-c", "--cmds", default="", metavar="CMDS",
                        help="Transform commands, e.g. H,V,-3. Ignored if --trans is given.")
    parser.add_argument("-f", "--trans", metavar="PATH",
                        help="File containing transform commands. Takes precedence over --cmds.")
    parser.add_argument("--strict", action="store_true",
                        help="Abort on an invalid transform command instead of skipping it")

    # Mode
    parser.add_argument("-d", "--decode", action="store_true",
                        help="Decode mode (apply the inverse mapping)")
    parser.add_argument("--show-layout", action="store_true",
                        help="Print the transformed keyboard to stderr")

    # Verbose output
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose output (info and warning messages)")

    # I/O options
    io_group = parser.add_mutually_exclusive_group()
    io_group.add_argument("-i", "--input", default="-", metavar="PATH",
                          help="Path to text to encode (default: stdin)")
    io_group.add_argument("-t", "--text", help="Direct text input")

    parser.add_argument("-o", "--output", metavar="PATH", help="Output file path (default: stdout)")
    return parser


def read_commands(path: str) -> str:
    # Undecodable bytes survive as surrogates and are rejected later as bad tokens
    with open(path, "r", encoding="utf-8", errors="surrogateescape") as f:
        return f.read()


def main(argv: Optional[List[str]] = None):
    global VERBOSE

    args = build_parser().parse_args(argv)
    VERBOSE = args.verbose

    # 1. RESOLVE COMMANDS (file wins over inline string)
    cmds = args.cmds
    if args.trans:
        if cmds:
            log_warn("--trans given; ignoring --cmds.")
        try:
            cmds = read_commands(args.trans)
        except OSError as e:
            sys.exit(f"Error: cannot read command file '{args.trans}': {e}")

    try:
        session = Transmogrifier(cmds, strict=args.strict)
    except CommandError as e:
        sys.exit(f"Error: {e}")

    if args.show_layout:
        print(format_layout(session.layout), file=sys.stderr)

    codec = session.decoder() if args.decode else session.encoder()

    # 2. OPEN INPUT
    opened = []
    if args.text is not None:
        source = BytesIO(args.text.encode("utf-8"))
        source_name = "<text>"
    elif args.input == "-":
        source = sys.stdin.buffer
        source_name = "<stdin>"
    else:
        source_name = args.input
        try:
            source = open(args.input, "rb")
        except OSError as e:
            sys.exit(f"Error: cannot open text file '{args.input}': {e}")
        opened.append(source)

    # 3. STREAM OUTPUT
    try:
        if args.output:
            try:
                sink = open(args.output, "wb")
            except OSError as e:
                sys.exit(f"Error writing output: {e}")
            opened.append(sink)
        else:
            sink = sys.stdout.buffer

        try:
            total = codec.stream(source, sink)
        except OSError as e:
            sys.exit(f"Encode Error ({source_name}): {e}")
        except KeyboardInterrupt:
            sys.exit(130)
        log_info(f"{'Decoded' if args.decode else 'Encoded'} {total} byte(s).")
    finally:
        for f in opened:
            f.close()

if __name__ == "__main__":
    main()
