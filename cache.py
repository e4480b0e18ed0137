# cache.py
import collections
import enum
import logging

from errors import GeometryError, InternalInvariantError

logger = logging.getLogger(__name__)

ADDRESS_BITS = 64

DecodedAddress = collections.namedtuple("DecodedAddress", "tag set_index offset")


class AccessOutcome(enum.Enum):
    HIT = "hit"
    MISS = "miss"
    MISS_EVICTION = "miss eviction"

    @property
    def is_miss(self):
        return self is not AccessOutcome.HIT

    @property
    def evicted(self):
        return self is AccessOutcome.MISS_EVICTION


class Geometry(collections.namedtuple("Geometry", "set_bits lines_per_set block_bits")):
    """
    Immutable (S, E, b) cache shape.
    An address splits low to high into b offset bits, S set-index bits and
    the remaining 64 - S - b tag bits.
    """

    __slots__ = ()

    def __new__(cls, set_bits, lines_per_set, block_bits):
        for name, value in (("set_bits", set_bits),
                            ("lines_per_set", lines_per_set),
                            ("block_bits", block_bits)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise GeometryError(f"{name} must be an integer, got {value!r}")
        if set_bits < 0 or block_bits < 0:
            raise GeometryError("set_bits and block_bits must be non-negative")
        if lines_per_set < 1:
            raise GeometryError(f"lines_per_set must be at least 1, got {lines_per_set}")
        if set_bits + block_bits > ADDRESS_BITS:
            raise GeometryError(
                f"set_bits + block_bits = {set_bits + block_bits} exceeds the "
                f"{ADDRESS_BITS}-bit address width")
        return super().__new__(cls, set_bits, lines_per_set, block_bits)

    @property
    def num_sets(self):
        return 1 << self.set_bits

    @property
    def block_size(self):
        return 1 << self.block_bits

    @property
    def tag_bits(self):
        return ADDRESS_BITS - self.set_bits - self.block_bits

    @property
    def capacity_bytes(self):
        return self.num_sets * self.lines_per_set * self.block_size

    def decode(self, address):
        if not 0 <= address < (1 << ADDRESS_BITS):
            raise ValueError(f"address {address:#x} is outside the {ADDRESS_BITS}-bit range")
        offset = address & (self.block_size - 1)
        set_index = (address >> self.block_bits) & (self.num_sets - 1)
        tag = address >> (self.set_bits + self.block_bits)
        return DecodedAddress(tag, set_index, offset)

    def compose(self, tag, set_index, offset=0):
        return (tag << (self.set_bits + self.block_bits)) | (set_index << self.block_bits) | offset

    def label(self):
        return f"s={self.set_bits} E={self.lines_per_set} b={self.block_bits}"


class CacheLine:
    __slots__ = ("tag", "valid")

    def __init__(self):
        self.tag = None
        self.valid = False

    def __repr__(self):
        return f"CacheLine(tag={self.tag!r}, valid={self.valid})"


class RecencyOrder:
    """
    Recency over the line indices of one set, least recently used first.
    Only resident (valid) line indices are ever present.
    """

    def __init__(self):
        self._order = collections.OrderedDict()

    def touch(self, index):
        # move to end (most recently used), inserting if new
        if index in self._order:
            self._order.move_to_end(index)
        else:
            self._order[index] = None

    def lru(self):
        if not self._order:
            raise InternalInvariantError("eviction requested from an empty recency order")
        return next(iter(self._order))

    def __contains__(self, index):
        return index in self._order

    def __iter__(self):
        return iter(self._order)

    def __len__(self):
        return len(self._order)


class CacheSet:
    def __init__(self, lines_per_set):
        self.lines = [CacheLine() for _ in range(lines_per_set)]
        self.order = RecencyOrder()

    def find(self, tag):
        for i, line in enumerate(self.lines):
            if line.valid and line.tag == tag:
                return i
        return None

    def free_line(self):
        for i, line in enumerate(self.lines):
            if not line.valid:
                return i
        return None

    def access(self, tag):
        i = self.find(tag)
        if i is not None:
            self.order.touch(i)
            return AccessOutcome.HIT

        i = self.free_line()
        if i is not None:
            outcome = AccessOutcome.MISS
        else:
            i = self.order.lru()
            if not self.lines[i].valid:
                raise InternalInvariantError(f"LRU victim {i} is not a resident line")
            outcome = AccessOutcome.MISS_EVICTION

        line = self.lines[i]
        line.valid = True
        line.tag = tag
        self.order.touch(i)
        return outcome

    def resident_tags(self):
        """Tags in LRU to MRU order."""
        return [self.lines[i].tag for i in self.order]

    def check_invariants(self):
        valid = {i for i, line in enumerate(self.lines) if line.valid}
        ordered = list(self.order)
        if len(ordered) != len(set(ordered)) or set(ordered) != valid:
            raise InternalInvariantError(
                f"recency order {ordered} does not match valid lines {sorted(valid)}")


class Cache:
    """
    Set-associative cache with true LRU replacement.
    Holds only valid/tag state; no data bytes are modeled.
    """

    def __init__(self, geometry):
        self.geometry = geometry
        self.sets = [CacheSet(geometry.lines_per_set) for _ in range(geometry.num_sets)]
        logger.debug("built cache %s (%d bytes)", geometry.label(), geometry.capacity_bytes)

    def access(self, set_index, tag):
        if not 0 <= set_index < len(self.sets):
            raise InternalInvariantError(
                f"set index {set_index} out of range for {len(self.sets)} sets")
        return self.sets[set_index].access(tag)

    def access_address(self, address):
        decoded = self.geometry.decode(address)
        return self.access(decoded.set_index, decoded.tag)

    def check_invariants(self):
        for s in self.sets:
            s.check_invariants()

    def stats(self):
        used_lines = sum(len(s.order) for s in self.sets)
        return {
            "cache_size_bytes": self.geometry.capacity_bytes,
            "block_size": self.geometry.block_size,
            "associativity": self.geometry.lines_per_set,
            "num_sets": self.geometry.num_sets,
            "used_lines": used_lines
        }
