import logging

import pytest

from cache import AccessOutcome, Geometry
from simulator import Simulator, Statistics, simulate
from tracefile import Operation, TraceRecord, read_trace


def records(*ops):
    return [TraceRecord(Operation(op), addr, 1, n) for n, (op, addr) in enumerate(ops, start=1)]


def test_statistics_record():
    stats = Statistics()
    for outcome in (AccessOutcome.HIT, AccessOutcome.MISS, AccessOutcome.MISS_EVICTION,
                    AccessOutcome.HIT):
        stats.record(outcome)
    assert stats.snapshot() == (2, 2, 1)
    assert stats.accesses == 4
    assert stats.hit_rate == 0.5


def test_snapshot_does_not_mutate():
    stats = Statistics()
    stats.record(AccessOutcome.MISS)
    assert stats.snapshot() == stats.snapshot() == (0, 1, 0)


def test_three_loads_two_sets(tiny_geometry):
    snap, _ = simulate(tiny_geometry, records(("L", 0x0), ("L", 0x2), ("L", 0x4)))
    assert snap == (0, 3, 1)


def test_repeated_load(tiny_geometry):
    snap, _ = simulate(tiny_geometry, records(("L", 0x0), ("L", 0x0)))
    assert snap == (1, 1, 0)


def test_modify_on_cold_address(tiny_geometry):
    snap, _ = simulate(tiny_geometry, records(("M", 0x40)))
    assert snap == (1, 1, 0)


def test_modify_after_conflict_evicts_then_hits(tiny_geometry):
    snap, trail = simulate(tiny_geometry, records(("L", 0x0), ("M", 0x4)), verbose=True)
    assert snap == (1, 2, 1)
    assert trail[1].outcomes == (AccessOutcome.MISS_EVICTION, AccessOutcome.HIT)


@pytest.mark.parametrize("ops", [
    [("M", 0x0)],
    [("L", 0x0), ("M", 0x0)],
    [("L", 0x0), ("L", 0x4), ("M", 0x0), ("M", 0x8), ("M", 0x8)],
    [("S", 0x10), ("M", 0x30), ("M", 0x50), ("L", 0x10), ("M", 0x10)],
])
def test_modify_never_misses_twice(ops):
    _, trail = simulate(Geometry(1, 1, 2), records(*ops), verbose=True)
    for access in trail:
        if access.operation is Operation.MODIFY:
            assert len(access.outcomes) == 2
            assert access.outcomes[1] is AccessOutcome.HIT


def test_counts_match_accesses():
    ops = [("L", 0x0), ("S", 0x100), ("M", 0x200), ("L", 0x300), ("M", 0x0), ("S", 0x400)]
    snap, _ = simulate(Geometry(2, 2, 3), records(*ops))
    modifies = sum(1 for op, _ in ops if op == "M")
    assert snap.hits + snap.misses == len(ops) + modifies
    assert snap.evictions <= snap.misses


def test_trail_only_kept_when_verbose(tiny_geometry):
    _, trail = simulate(tiny_geometry, records(("L", 0x0)))
    assert trail == []


def test_trail_format(tiny_geometry):
    _, trail = simulate(tiny_geometry, records(("L", 0x0), ("M", 0x4), ("S", 0x5)), verbose=True)
    assert [a.format() for a in trail] == [
        "L 0,1 miss",
        "M 4,1 miss eviction hit",
        "S 5,1 hit",
    ]


def test_step_leaves_cache_consistent():
    sim = Simulator(Geometry(1, 2, 1))
    for record in records(("L", 0x0), ("L", 0x4), ("L", 0x8), ("M", 0x0), ("S", 0xc)):
        sim.step(record)
        sim.cache.check_invariants()


@pytest.mark.parametrize("s, E, b, expected", [
    (4, 1, 4, (4, 5, 3)),
    (4, 2, 4, (4, 5, 2)),
])
def test_yi_trace(yi_trace, s, E, b, expected):
    snap, _ = simulate(Geometry(s, E, b), read_trace(str(yi_trace)))
    assert snap == expected


def test_step_logs_outcomes_at_debug(tiny_geometry, caplog):
    with caplog.at_level(logging.DEBUG, logger="simulator"):
        simulate(tiny_geometry, records(("M", 0x4)))
    assert "MODIFY 0x4 set=0 tag=0x1 -> miss hit" in caplog.text


def test_step_skips_debug_formatting_when_disabled(tiny_geometry, caplog):
    with caplog.at_level(logging.INFO, logger="simulator"):
        simulate(tiny_geometry, records(("L", 0x0)))
    assert "->" not in caplog.text
