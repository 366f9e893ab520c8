from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Iterable, List, NamedTuple, Sequence, Tuple

import numpy as np

from ..filters.buckets import Bucket

# ----------------- public datatypes -----------------

class Endpoint(NamedTuple):
    u: int             # wire
    t: int             # tick
    source_index: int  # raw hit index
    bucket_index: int  # position inside the bucket


@dataclass(frozen=True)
class LineSegment:
    a: Endpoint
    b: Endpoint
    rho: int
    theta: int  # whole degrees, floored from the bin angle
    members: Tuple[int, ...] = ()
    plane: int = -1
    tpc: int = -1

    @property
    def length(self) -> float:
        return float(np.hypot(self.b.u - self.a.u, self.b.t - self.a.t))

    @property
    def time_span(self) -> int:
        return abs(self.a.t - self.b.t)

    def endpoint(self, k: int) -> Endpoint:
        return self.a if k == 0 else self.b

    def time_ordered(self) -> Tuple[Endpoint, Endpoint]:
        """(earlier, later) endpoints by tick; ties keep (a, b)."""
        if self.b.t < self.a.t:
            return self.b, self.a
        return self.a, self.b


@dataclass(frozen=True)
class MergeTolerances:
    pos: int = 100        # endpoint u and t proximity
    rho: int = 30
    theta: int = 20       # degrees
    min_conditions: int = 3


@dataclass(frozen=True)
class HoughParams:
    threshold: int = 10
    max_gap: int = 30
    corridor: int = 100
    min_length: int = 500
    min_span: int = 2500      # nonzero selects the time-span filter over min_length
    max_axis_jump: int = 30
    wires: int = 2000
    time_ticks: int = 3500
    theta_bins: int = 180
    merge: MergeTolerances = field(default_factory=MergeTolerances)


# ----------------- accumulator -----------------

_SIN_EPS = 1e-12


def _round_half_away(x):
    x = np.asarray(x, dtype=np.float64)
    return np.sign(x) * np.floor(np.abs(x) + 0.5)


class HoughAccumulator:
    """
    Vote counts over (rho, theta). Rows cover rho in [-(W+H), W+H] through an
    explicit offset; rho is measured from the domain centre (W/2, H/2).
    """

    def __init__(self, wires: int, time_ticks: int, theta_bins: int = 180):
        if theta_bins <= 0:
            raise ValueError("theta_bins must be positive")
        self.theta_bins = int(theta_bins)
        self.rho_max = int(wires) + int(time_ticks)
        self.u_c = int(wires) // 2
        self.t_c = int(time_ticks) // 2
        self.counts = np.zeros((2 * self.rho_max + 1, self.theta_bins), dtype=np.int32)
        angles = np.arange(self.theta_bins) * np.pi / self.theta_bins
        self._cos = np.cos(angles)
        self._sin = np.sin(angles)
        self._cols = np.arange(self.theta_bins)

    def reset(self) -> None:
        self.counts.fill(0)

    def theta_deg(self, j: int) -> int:
        return int(j) * 180 // self.theta_bins

    def bin_angle(self, j: int) -> float:
        """Exact angle of bin j in degrees, the one the votes were cast with."""
        return int(j) * 180.0 / self.theta_bins

    def rho(self, u: float, t: float) -> np.ndarray:
        """Rounded rho of (u, t) for every theta bin, shape (theta_bins,)."""
        r = (u - self.u_c) * self._cos + (t - self.t_c) * self._sin
        return _round_half_away(r).astype(np.int64)

    def _rows(self, rho: np.ndarray) -> np.ndarray:
        rows = rho + self.rho_max
        if rows.size and (rows.min() < 0 or rows.max() >= self.counts.shape[0]):
            raise IndexError(
                f"rho out of accumulator range [-{self.rho_max}, {self.rho_max}]: "
                f"min={int(rho.min())}, max={int(rho.max())}"
            )
        return rows

    def vote(self, u: int, t: int) -> np.ndarray:
        """Add one vote per theta bin and return the updated counts along them."""
        rows = self._rows(self.rho(u, t))
        self.counts[rows, self._cols] += 1
        return self.counts[rows, self._cols]

    def unvote(self, u: np.ndarray, t: np.ndarray) -> None:
        """Retract the votes of every (u, t) pair."""
        u = np.atleast_1d(np.asarray(u, dtype=np.float64))
        t = np.atleast_1d(np.asarray(t, dtype=np.float64))
        if u.size == 0:
            return
        r = (u[:, None] - self.u_c) * self._cos[None, :] + (t[:, None] - self.t_c) * self._sin[None, :]
        rows = self._rows(_round_half_away(r).astype(np.int64))
        cols = np.broadcast_to(self._cols, rows.shape)
        np.subtract.at(self.counts, (rows, cols), 1)


def corridor_error(u, t, rho: int, theta: float, u_c: int, t_c: int) -> np.ndarray:
    """
    Distance of (u, t) from the line (rho, theta), measured along t.

    For theta == 0 the line has constant u and the distance is taken along u.
    """
    u = np.asarray(u, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64)
    th = np.deg2rad(theta)
    s, c = np.sin(th), np.cos(th)
    if abs(s) < _SIN_EPS:
        return np.abs((u - u_c) - rho)
    t_pred = _round_half_away((rho - (u - u_c) * c) / s + t_c)
    return np.abs(t_pred - t)


# ----------------- line finding -----------------

def _walk_corridor(
    bucket: Bucket,
    start: int,
    step: int,
    rho: int,
    theta: float,
    acc: HoughAccumulator,
    params: HoughParams,
    seed: Endpoint,
) -> Tuple[Endpoint, List[int]]:
    end = seed
    taken: List[int] = []
    n = len(bucket)
    i = start
    gap = 0
    while gap < params.max_gap:
        i += step
        if i < 0 or i >= n:
            break
        if not bucket.live[i]:
            continue
        u1, t1 = int(bucket.u[i]), int(bucket.t[i])
        if abs(u1 - end.u) > params.max_axis_jump:
            break
        if corridor_error(u1, t1, rho, theta, acc.u_c, acc.t_c) <= params.corridor:
            gap = 0
            end = Endpoint(u1, t1, int(bucket.source_index[i]), i)
            bucket.consume(i)
            taken.append(i)
        else:
            gap += 1
    return end, taken


def _unvote_claimed(
    acc: HoughAccumulator,
    bucket: Bucket,
    deaccu: List[int],
    rho: int,
    theta: float,
    corridor: int,
) -> List[int]:
    """Retract votes of de-accumulator points lying on the new line; return the rest."""
    if not deaccu:
        return deaccu
    idx = np.asarray(deaccu, dtype=np.int64)
    err = corridor_error(bucket.u[idx], bucket.t[idx], rho, theta, acc.u_c, acc.t_c)
    near = err <= corridor
    if np.any(near):
        acc.unvote(bucket.u[idx[near]], bucket.t[idx[near]])
    return [int(i) for i in idx[~near]]


def _passes_length(seg: LineSegment, params: HoughParams) -> bool:
    if params.min_span != 0:
        return seg.time_span > params.min_span
    return seg.length > params.min_length


def find_lines(
    bucket: Bucket,
    params: HoughParams | None = None,
    collect_members: bool = True,
    rng: np.random.Generator | None = None,
    accumulator: HoughAccumulator | None = None,
) -> Tuple[List[LineSegment], List[List[int]]]:
    """
    Randomized Hough transform over one bucket.

    Consumes the bucket: every point is either claimed by exactly one line or
    discarded after voting. Returns the filtered segments and, when
    `collect_members` is set, their member source indices (parallel list);
    otherwise the second element is empty.

    An `accumulator` may be supplied to reuse its allocation; it is reset first.
    """
    if params is None:
        params = HoughParams()
    rng = rng or np.random.default_rng()
    if len(bucket) == 0:
        return [], []

    if accumulator is not None:
        acc = accumulator
        acc.reset()
    else:
        acc = HoughAccumulator(params.wires, params.time_ticks, params.theta_bins)
    deaccu: List[int] = []
    segments: List[LineSegment] = []

    while True:
        live_idx = np.flatnonzero(bucket.live)
        if live_idx.size == 0:
            break
        idx = int(live_idx[rng.integers(live_idx.size)])
        u, t = int(bucket.u[idx]), int(bucket.t[idx])
        deaccu.append(idx)
        bucket.consume(idx)

        counts = acc.vote(u, t)
        j = int(np.argmax(counts))  # first maximum in increasing theta
        if counts[j] < params.threshold:
            continue
        rho = int(acc.rho(u, t)[j])
        theta = acc.theta_deg(j)
        angle = acc.bin_angle(j)

        seed = Endpoint(u, t, int(bucket.source_index[idx]), idx)
        fwd_end, fwd = _walk_corridor(bucket, idx, +1, rho, angle, acc, params, seed)
        bwd_end, bwd = _walk_corridor(bucket, idx, -1, rho, angle, acc, params, seed)

        deaccu = _unvote_claimed(acc, bucket, deaccu, rho, angle, params.corridor)

        if not fwd and not bwd:
            continue
        members: Tuple[int, ...] = ()
        if collect_members:
            members = (seed.source_index,) + tuple(int(bucket.source_index[i]) for i in fwd + bwd)
        segments.append(
            LineSegment(a=fwd_end, b=bwd_end, rho=rho, theta=theta,
                        members=members, plane=bucket.plane, tpc=bucket.tpc)
        )

    merged = merge_segments(segments, params.merge, collect_members)
    lines = [s for s in merged if _passes_length(s, params)]
    member_lists = [list(s.members) for s in lines] if collect_members else []
    return lines, member_lists


# ----------------- merging -----------------

def _merge_combination(si: LineSegment, sj: LineSegment, tol: MergeTolerances) -> Tuple[int, int] | None:
    """First (k, l) endpoint pairing of si/sj satisfying enough proximity tests."""
    close_rho = abs(si.rho - sj.rho) < tol.rho
    close_theta = abs(si.theta - sj.theta) < tol.theta
    for k in (0, 1):
        ei = si.endpoint(k)
        for l in (0, 1):
            ej = sj.endpoint(l)
            votes = (
                int(abs(ei.u - ej.u) < tol.pos)
                + int(abs(ei.t - ej.t) < tol.pos)
                + int(close_rho)
                + int(close_theta)
            )
            if votes >= tol.min_conditions:
                return k, l
    return None


def merge_segments(
    segments: Sequence[LineSegment],
    tol: MergeTolerances | None = None,
    collect_members: bool = True,
) -> List[LineSegment]:
    """
    Greedy fusion of segments split by gaps or noise.

    For each i, the first j > i with a qualifying endpoint pairing absorbs i:
    j's matched endpoint is replaced by i's other endpoint and i is voided.
    No backtracking.
    """
    if tol is None:
        tol = MergeTolerances()
    out: List[LineSegment | None] = list(segments)
    for i in range(len(out)):
        si = out[i]
        if si is None:
            continue
        for j in range(i + 1, len(out)):
            sj = out[j]
            match = _merge_combination(si, sj, tol)
            if match is None:
                continue
            k, l = match
            far = si.endpoint(1 - k)
            members = sj.members + si.members if collect_members else sj.members
            out[j] = replace(sj, members=members, **({"a": far} if l == 0 else {"b": far}))
            out[i] = None
            break
    return [s for s in out if s is not None]


# ----------------- diagnostics -----------------

def format_lines(lines: Iterable[LineSegment], plane: int) -> str:
    lines = list(lines)
    if not lines:
        return "no lines found for this plane"
    rows = [f"plane = {plane}"]
    for s in lines:
        rows.append(f"wire0, peakT0: ({s.a.u}, {s.a.t})")
        rows.append(f"wire1, peakT1: ({s.b.u}, {s.b.t})")
    return "\n".join(rows)
