import numpy as np
import pytest

from muontracks.filters.buckets import Bucket
from muontracks.imaging.hough import (
    HoughAccumulator,
    HoughParams,
    _unvote_claimed,
    corridor_error,
    find_lines,
    format_lines,
)

# t = t0 + round(cot(11 deg) * (u - u0)) lies on a single (rho, 169 deg) cell
SLOPE_169 = 5.1446


def _line(u0=100, t0=200, n=600, first_index=0):
    return [(u, t0 + int(round(SLOPE_169 * (u - u0))), first_index + k)
            for k, u in enumerate(range(u0, u0 + n))]


def test_empty_bucket_gives_nothing():
    b = Bucket.from_points(2, 0, [])
    lines, members = find_lines(b, HoughParams(), rng=np.random.default_rng(1))
    assert lines == [] and members == []


def test_single_long_line_recovered():
    b = Bucket.from_points(2, 1, _line())
    lines, members = find_lines(b, HoughParams(), rng=np.random.default_rng(7))

    assert len(lines) == 1
    s = lines[0]
    assert s.theta == 169
    assert s.time_span >= 2500
    assert (s.a.u, s.a.t) != (s.b.u, s.b.t)
    assert s.plane == 2 and s.tpc == 1
    # every point is consumed, each claimed at most once
    assert b.n_live == 0
    assert len(members) == 1
    assert len(members[0]) == len(set(members[0])) >= 550
    assert set(members[0]) <= set(range(600))


def test_line_survives_interleaved_noise():
    pts = _line()
    noise_idx = []
    for k, pos in enumerate((100, 200, 300, 400, 500)):
        u, t, _ = pts[pos + k]
        src = 1000 + k
        noise_idx.append(src)
        pts.insert(pos + k + 1, (u, t + 400, src))
    b = Bucket.from_points(2, 0, pts)

    lines, members = find_lines(b, HoughParams(), rng=np.random.default_rng(3))

    assert len(lines) == 1
    assert lines[0].time_span >= 2500
    assert not set(noise_idx) & set(members[0])


def test_below_threshold_no_candidate():
    b = Bucket.from_points(2, 0, _line(n=9))
    lines, _ = find_lines(b, HoughParams(threshold=10, min_span=0, min_length=0),
                          rng=np.random.default_rng(0))
    assert lines == []
    assert b.n_live == 0


def test_short_line_filtered_by_span_or_length():
    lines, _ = find_lines(Bucket.from_points(2, 0, _line(n=100)), HoughParams(),
                          rng=np.random.default_rng(5))
    assert lines == []

    lines, _ = find_lines(Bucket.from_points(2, 0, _line(n=100)),
                          HoughParams(min_span=0, min_length=300),
                          rng=np.random.default_rng(5))
    assert len(lines) == 1
    assert lines[0].length > 300


def test_members_skipped_when_not_collected():
    b = Bucket.from_points(0, 1, _line())
    lines, members = find_lines(b, HoughParams(), collect_members=False,
                                rng=np.random.default_rng(11))
    assert len(lines) == 1
    assert members == []
    assert lines[0].members == ()


def test_accumulator_vote_unvote():
    acc = HoughAccumulator(2000, 3500, 180)
    counts = acc.vote(100, 200)
    assert counts.shape == (180,)
    assert np.all(counts == 1)
    acc.vote(100, 200)
    assert int(acc.counts.sum()) == 360
    acc.unvote(np.array([100, 100]), np.array([200, 200]))
    assert int(acc.counts.sum()) == 0
    assert acc.theta_deg(169) == 169
    assert acc.bin_angle(169) == 169.0
    assert HoughAccumulator(2000, 3500, 360).bin_angle(337) == 168.5


def test_accumulator_out_of_range_raises():
    acc = HoughAccumulator(10, 10, 180)
    with pytest.raises(IndexError):
        acc.vote(500, 500)


def test_corridor_error_vertical_line():
    # theta == 0: constant-u line, distance measured along u
    err = corridor_error(np.array([1005, 1010]), np.array([0, 3000]), 5, 0, 1000, 1750)
    assert list(err) == [0, 5]


def test_format_lines():
    assert format_lines([], 2) == "no lines found for this plane"
    b = Bucket.from_points(2, 0, _line())
    lines, _ = find_lines(b, HoughParams(), rng=np.random.default_rng(2))
    text = format_lines(lines, 2)
    assert text.startswith("plane = 2")
    assert "wire0, peakT0:" in text and "wire1, peakT1:" in text


def test_gap_within_max_gap_is_bridged():
    # two collinear runs separated by 5 missing wires
    pts = [p for p in _line() if not (300 <= p[0] < 305)]
    b = Bucket.from_points(2, 0, pts)
    lines, members = find_lines(b, HoughParams(max_gap=30), rng=np.random.default_rng(9))
    assert len(lines) == 1
    assert lines[0].time_span >= 2500


def test_crossing_lines_claim_disjoint_members():
    # second line falls at 11 deg and crosses the first near (401, 1750)
    other = [(u, 3300 - int(round(SLOPE_169 * (u - 100))), 600 + k)
             for k, u in enumerate(range(100, 700))]
    pts = sorted(_line() + other)
    b = Bucket.from_points(2, 0, pts)

    lines, members = find_lines(b, HoughParams(), rng=np.random.default_rng(13))

    assert len(lines) == 2
    assert sorted(s.theta for s in lines) == [11, 169]
    assert all(s.time_span >= 2500 for s in lines)
    assert set(members[0]).isdisjoint(members[1])
    known = set(b.source_index.tolist())
    for s in lines:
        assert s.a.source_index != s.b.source_index
        assert {s.a.source_index, s.b.source_index} <= known
    assert b.n_live == 0


def test_unvote_claimed_keeps_points_off_the_line():
    b = Bucket.from_points(2, 0, [(200, 714, 0), (300, 1229, 1), (200, 1500, 2)])
    acc = HoughAccumulator(2000, 3500, 180)
    for u, t in zip(b.u, b.t):
        acc.vote(int(u), int(t))

    rest = _unvote_claimed(acc, b, [0, 1, 2], rho=588, theta=169.0, corridor=100)

    assert rest == [2]
    assert int(acc.counts.sum()) == 180
    rows = acc.rho(200, 1500) + acc.rho_max
    assert np.all(acc.counts[rows, np.arange(180)] == 1)


def test_half_degree_bins_walk_the_exact_angle():
    # t = t0 + round(cot(11.5 deg) * (u - u0)) sits in the 168.5 deg bin of a 360-bin accumulator
    pts = [(u, 200 + int(round(4.91516 * (u - 100))), k) for k, u in enumerate(range(100, 700))]
    b = Bucket.from_points(2, 0, pts)

    lines, members = find_lines(b, HoughParams(theta_bins=360), rng=np.random.default_rng(7))

    assert len(lines) == 1
    assert lines[0].theta == 168
    assert lines[0].time_span >= 2500
    assert len(members[0]) >= 550


def test_supplied_accumulator_is_reset():
    acc = HoughAccumulator(2000, 3500, 180)
    acc.counts.fill(50)
    reused, _ = find_lines(Bucket.from_points(2, 0, _line()), HoughParams(),
                           rng=np.random.default_rng(7), accumulator=acc)
    fresh, _ = find_lines(Bucket.from_points(2, 0, _line()), HoughParams(),
                          rng=np.random.default_rng(7))
    assert reused == fresh
    assert len(reused) == 1 and reused[0].theta == 169
