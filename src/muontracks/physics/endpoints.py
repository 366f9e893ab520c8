# src/muontracks/physics/endpoints.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np

from ..geometry.wires import GeometryLookup
from ..imaging.hough import LineSegment
from .hits import WireID


@dataclass(frozen=True)
class FallbackCfg:
    """Correction for wire pairs that cross just outside the active area."""
    boundary_y: float = 198.0   # |y| beyond which a secondary wire end counts as top/bottom
    z_tolerance: float = 8.0    # max |z_primary - z_secondary_end| [cm]


@dataclass(slots=True)
class EndpointPair:
    """
    Two resolved 3D endpoints of one matched line pair.

    start is the earlier endpoint in time, end the later one; t_early/t_late
    are the primary line's endpoint ticks.
    """
    start: np.ndarray  # (3,) [cm]
    end: np.ndarray    # (3,) [cm]
    t_early: int
    t_late: int
    members: List[int] = field(default_factory=list)
    tpc: int = -1

    @property
    def dt(self) -> int:
        return self.t_late - self.t_early


def _nonzero(p: Optional[np.ndarray]) -> bool:
    return p is not None and float(np.dot(p, p)) != 0.0


def fix_endpoint(
    geometry: GeometryLookup,
    primary: WireID,
    secondary: WireID,
    fallback: FallbackCfg | None = None,
) -> Optional[np.ndarray]:
    """
    Synthesize an endpoint when the two wires miss each other near the top or
    bottom of the active area.

    Succeeds only when one end of the secondary wire lies beyond
    ±boundary_y and the primary wire sits within z_tolerance of that end;
    the point takes x from the primary wire and (y, z) from the secondary
    wire's boundary end. A wire the geometry does not know has no ends to
    fall back on and gives None.
    """
    if fallback is None:
        fallback = FallbackCfg()
    try:
        p_end, _ = geometry.wire_endpoints(primary)
        s1, s2 = geometry.wire_endpoints(secondary)
    except ValueError:
        return None
    if abs(s1[1]) <= fallback.boundary_y and abs(s2[1]) <= fallback.boundary_y:
        return None
    edge = s1 if abs(s1[1]) >= abs(s2[1]) else s2
    if abs(p_end[2] - edge[2]) < fallback.z_tolerance:
        return np.array([p_end[0], edge[1], edge[2]], dtype=np.float64)
    return None


def resolve_point(
    geometry: GeometryLookup,
    primary: WireID,
    secondary: WireID,
    fallback: FallbackCfg | None = None,
) -> Optional[np.ndarray]:
    """Direct wire crossing, else the boundary fallback, else None."""
    p = geometry.intersect(primary, secondary)
    if p is not None:
        return p
    return fix_endpoint(geometry, primary, secondary, fallback)


def _wire_ids(seg: LineSegment) -> Tuple[Tuple[int, WireID], Tuple[int, WireID]]:
    early, late = seg.time_ordered()
    return (
        (early.t, WireID(seg.tpc, seg.plane, early.u)),
        (late.t, WireID(seg.tpc, seg.plane, late.u)),
    )


def match_endpoints(
    primary: Sequence[LineSegment],
    secondary: Sequence[LineSegment],
    geometry: GeometryLookup,
    members: Sequence[Sequence[int]] | None = None,
    time_tolerance: int = 30,
    fallback: FallbackCfg | None = None,
    consumed: Set[int] | None = None,
) -> List[EndpointPair]:
    """
    Pair primary-plane lines with secondary-plane lines of the same TPC.

    A secondary line matches when both its time-ordered endpoint ticks lie
    strictly within `time_tolerance` of the primary's; the first such line
    wins. Both endpoint pairs are resolved through the geometry (with the
    boundary fallback) and the pair is kept only if both points are non-zero
    and distinct.

    `members` overrides the per-line member lists (parallel to `primary`).
    `consumed` holds indices into `primary` that already produced a pair. It
    is updated in place so successive secondary planes can share it.
    """
    if consumed is None:
        consumed = set()
    pairs: List[EndpointPair] = []
    if not secondary:
        return pairs

    sec_ids = [_wire_ids(s) for s in secondary]
    for i, pl in enumerate(primary):
        if i in consumed:
            continue
        (t0_p, w0_p), (t1_p, w1_p) = _wire_ids(pl)
        for (t0_s, w0_s), (t1_s, w1_s) in sec_ids:
            if abs(t0_p - t0_s) >= time_tolerance or abs(t1_p - t1_s) >= time_tolerance:
                continue
            start = resolve_point(geometry, w0_p, w0_s, fallback)
            end = resolve_point(geometry, w1_p, w1_s, fallback)
            if not (_nonzero(start) and _nonzero(end)):
                continue
            if np.allclose(start, end, atol=1e-6):
                continue
            pairs.append(EndpointPair(
                start=start, end=end, t_early=t0_p, t_late=t1_p,
                members=list(members[i] if members is not None else pl.members), tpc=pl.tpc,
            ))
            consumed.add(i)
            break
    return pairs
