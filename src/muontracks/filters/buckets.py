# src/muontracks/filters/buckets.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from muontracks.physics.hits import Hit

BucketKey = Tuple[int, int]  # (plane, tpc)


@dataclass(frozen=True)
class HitDomain:
    """Coordinate domain of a bucket: wires in [0, wires), ticks in (0, time_ticks)."""
    wires: int = 2000
    time_ticks: int = 3500

    def accepts(self, wire: int, peak_t: int) -> bool:
        return (0 <= wire < self.wires) and (0 < peak_t < self.time_ticks)


@dataclass
class Bucket:
    """
    Working point set for one (plane, tpc) pair.

    Points are stored as parallel arrays in raw hit order. Consumption flips
    the `live` flag; points are never removed, so indices stay stable for the
    whole Hough pass.
    """
    plane: int
    tpc: int
    u: np.ndarray             # (N,) int64 wire number
    t: np.ndarray             # (N,) int64 peak time [ticks]
    source_index: np.ndarray  # (N,) int64 raw hit index
    live: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        self.u = np.asarray(self.u, dtype=np.int64).reshape(-1)
        self.t = np.asarray(self.t, dtype=np.int64).reshape(-1)
        self.source_index = np.asarray(self.source_index, dtype=np.int64).reshape(-1)
        if not (self.u.shape == self.t.shape == self.source_index.shape):
            raise ValueError("Bucket arrays must have identical length")
        self.live = np.ones(self.u.shape[0], dtype=bool)

    @classmethod
    def from_points(cls, plane: int, tpc: int, points: Iterable[Sequence[int]]) -> "Bucket":
        """Build from (u, t, source_index) triples."""
        pts = np.asarray(list(points), dtype=np.int64).reshape(-1, 3)
        return cls(plane=plane, tpc=tpc, u=pts[:, 0], t=pts[:, 1], source_index=pts[:, 2])

    @property
    def key(self) -> BucketKey:
        return (self.plane, self.tpc)

    def __len__(self) -> int:
        return int(self.u.shape[0])

    @property
    def n_live(self) -> int:
        return int(np.count_nonzero(self.live))

    def consume(self, idx: int) -> None:
        if not (0 <= idx < len(self)):
            raise IndexError(f"bucket index {idx} out of range [0, {len(self)})")
        self.live[idx] = False


def build_buckets(
    hits: Iterable[Hit],
    planes: Sequence[int],
    tpcs: Sequence[int],
    domain: HitDomain | None = None,
) -> Dict[BucketKey, Bucket]:
    """
    Sort hits into one bucket per requested (plane, tpc), keeping raw order.

    Hits outside the domain (non-positive or too-late ticks, out-of-range
    wires) are dropped. Every requested key gets a bucket, possibly empty.
    """
    if domain is None:
        domain = HitDomain()
    wanted = {(p, v) for p in planes for v in tpcs}
    rows: Dict[BucketKey, List[Tuple[int, int, int]]] = {k: [] for k in sorted(wanted)}
    for h in hits:
        key = (h.plane, h.tpc)
        if key not in wanted:
            continue
        if not domain.accepts(h.wire, h.peak_t):
            continue
        rows[key].append((h.wire, h.peak_t, h.index))
    return {k: Bucket.from_points(k[0], k[1], pts) for k, pts in rows.items()}


def build_primary_buckets(
    hits: Sequence[Hit],
    primary_plane: int,
    tpcs: Sequence[int],
    domain: HitDomain | None = None,
) -> Dict[int, Bucket]:
    """Primary-plane buckets for every TPC, keyed by TPC."""
    buckets = build_buckets(hits, [primary_plane], tpcs, domain)
    return {tpc: b for (_, tpc), b in buckets.items()}


def build_secondary_buckets(
    hits: Sequence[Hit],
    secondary_planes: Sequence[int],
    tpcs_with_lines: Iterable[int],
    domain: HitDomain | None = None,
) -> Dict[BucketKey, Bucket]:
    """
    Secondary-plane buckets, only for TPCs where the primary plane already
    produced a line. No TPCs → no buckets.
    """
    tpcs = sorted(set(tpcs_with_lines))
    if not tpcs:
        return {}
    return build_buckets(hits, secondary_planes, tpcs, domain)
