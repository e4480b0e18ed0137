# tracefile.py
# Reader for valgrind "lackey" style memory traces:
#
#   I 0400d7d4,8
#    L 7ff0005c8,8
#    S 7ff0005d0,4
#    M 0421c7f0,4
#
# Instruction fetches ("I") are dropped here and never reach the cache.
import collections
import enum
import logging
import re

from cache import ADDRESS_BITS
from errors import TraceFormatError

logger = logging.getLogger(__name__)

INSTRUCTION_FETCH = "I"

ON_ERROR_ABORT = "abort"
ON_ERROR_SKIP = "skip"
ON_ERROR_POLICIES = (ON_ERROR_ABORT, ON_ERROR_SKIP)

_FIELD_SEP = re.compile(r"[\s,]+")
_HEX_ADDRESS = re.compile(r"(0[xX])?[0-9a-fA-F]+")
_DECIMAL_SIZE = re.compile(r"[0-9]+")


class Operation(enum.Enum):
    LOAD = "L"
    STORE = "S"
    MODIFY = "M"


TraceRecord = collections.namedtuple("TraceRecord", "operation address size lineno")


def classify_operation(token):
    try:
        return Operation(token)
    except ValueError:
        raise TraceFormatError(f"unrecognized operation {token!r}") from None


def parse_trace_line(line, lineno=None):
    """
    Parse one trace line into a TraceRecord.
    Returns None for blank lines and instruction fetches.
    """
    text = line.strip()
    if not text:
        return None
    fields = _FIELD_SEP.split(text)
    if fields[0] == INSTRUCTION_FETCH:
        return None
    if len(fields) != 3:
        raise TraceFormatError(
            f"expected 'OP ADDRESS,SIZE', got {len(fields)} field(s)", lineno, line)

    op_token, addr_token, size_token = fields
    try:
        operation = classify_operation(op_token)
    except TraceFormatError as e:
        raise TraceFormatError(str(e), lineno, line) from None
    if not _HEX_ADDRESS.fullmatch(addr_token):
        raise TraceFormatError(f"bad hex address {addr_token!r}", lineno, line)
    address = int(addr_token, 16)
    if not 0 <= address < (1 << ADDRESS_BITS):
        raise TraceFormatError(f"address {addr_token} does not fit in {ADDRESS_BITS} bits",
                               lineno, line)
    if not _DECIMAL_SIZE.fullmatch(size_token):
        raise TraceFormatError(f"bad access size {size_token!r}", lineno, line)
    size = int(size_token)
    if size <= 0:
        raise TraceFormatError(f"access size must be positive, got {size}", lineno, line)
    return TraceRecord(operation, address, size, lineno)


class TraceReader:
    """
    Iterates the data records of a trace in order.

    With on_error="abort" the first malformed line raises TraceFormatError.
    With on_error="skip" malformed lines are logged, counted in `skipped`
    and dropped.
    """

    def __init__(self, lines, on_error=ON_ERROR_ABORT):
        if on_error not in ON_ERROR_POLICIES:
            raise ValueError(f"on_error must be one of {ON_ERROR_POLICIES}, got {on_error!r}")
        self.lines = lines
        self.on_error = on_error
        self.skipped = 0

    def __iter__(self):
        for lineno, line in enumerate(self.lines, start=1):
            try:
                record = parse_trace_line(line, lineno)
            except TraceFormatError as e:
                if self.on_error == ON_ERROR_ABORT:
                    raise
                self.skipped += 1
                logger.warning("skipping malformed trace record: %s", e)
                continue
            if record is not None:
                yield record


def read_trace(path, on_error=ON_ERROR_ABORT):
    """Yield the data records of the trace file at `path`."""
    with open(path, "r") as f:
        yield from TraceReader(f, on_error=on_error)
