# simulator.py
import collections
import logging

from cache import Cache
from tracefile import Operation

logger = logging.getLogger(__name__)

StatsSnapshot = collections.namedtuple("StatsSnapshot", "hits misses evictions")


class Statistics:
    """Hit/miss/eviction counters for one run. Counters only ever go up."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def record(self, outcome):
        if not outcome.is_miss:
            self.hits += 1
            return
        self.misses += 1
        if outcome.evicted:
            self.evictions += 1

    def snapshot(self):
        return StatsSnapshot(self.hits, self.misses, self.evictions)

    @property
    def accesses(self):
        return self.hits + self.misses

    @property
    def hit_rate(self):
        return self.hits / self.accesses if self.accesses else 0.0


class AccessRecord(collections.namedtuple("AccessRecord", "operation address size outcomes")):
    __slots__ = ()

    def format(self):
        """Render like `M 20,1 miss eviction hit`."""
        results = " ".join(o.value for o in self.outcomes)
        return f"{self.operation.value} {self.address:x},{self.size} {results}"


class Simulator:
    """
    Runs data records through one exclusively owned Cache.

    A Modify is a Load followed by a Store to the same address, so it
    performs two cache accesses and records two outcomes.
    """

    def __init__(self, geometry, keep_trail=False):
        self.geometry = geometry
        self.cache = Cache(geometry)
        self.stats = Statistics()
        self.keep_trail = keep_trail
        self.trail = []

    def _access(self, set_index, tag):
        outcome = self.cache.access(set_index, tag)
        self.stats.record(outcome)
        return outcome

    def step(self, record):
        decoded = self.geometry.decode(record.address)
        outcomes = [self._access(decoded.set_index, decoded.tag)]
        if record.operation is Operation.MODIFY:
            outcomes.append(self._access(decoded.set_index, decoded.tag))

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s %#x set=%d tag=%#x -> %s", record.operation.name, record.address,
                         decoded.set_index, decoded.tag, " ".join(o.value for o in outcomes))
        access = AccessRecord(record.operation, record.address, record.size, tuple(outcomes))
        if self.keep_trail:
            self.trail.append(access)
        return access

    def run(self, records):
        logger.info("simulating %s", self.geometry.label())
        for record in records:
            self.step(record)
        snap = self.stats.snapshot()
        logger.info("done: hits=%d misses=%d evictions=%d", *snap)
        return snap


def simulate(geometry, records, verbose=False):
    """Run `records` against a fresh cache. Returns (snapshot, trail)."""
    sim = Simulator(geometry, keep_trail=verbose)
    snap = sim.run(records)
    return snap, sim.trail
