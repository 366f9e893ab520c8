from __future__ import annotations
import numpy as np
from dataclasses import dataclass
from typing import Iterable, List, Sequence
from ..physics.hits import Hit
from ..physics.kinematics import ClassifyCfg
from ..geometry.wires import WirePlaneGeometry


@dataclass
class MuonSegment:
    start: np.ndarray  # (3,) [cm]
    end: np.ndarray    # (3,) [cm]
    t0_us: float = 0.0

    @property
    def tpc(self) -> int:
        mid_x = 0.5 * (float(self.start[0]) + float(self.end[0]))
        return 0 if mid_x < 0 else 1


def tick_for_x(x: float, t0_us: float, geometry: WirePlaneGeometry, cfg: ClassifyCfg) -> float:
    """Peak tick of charge deposited at drift coordinate x by a track at t0."""
    drift_us = (geometry.anode_x - abs(x)) / cfg.drift_cm_per_us
    return cfg.early_t0_offset_ticks + (t0_us + drift_us) / cfg.tick_us


def segment_hits(
    seg: MuonSegment,
    geometry: WirePlaneGeometry,
    cfg: ClassifyCfg | None = None,
    planes: Sequence[int] = (0, 1, 2),
) -> List[Hit]:
    """
    One hit per wire crossed, per plane. Indices are left at -1; synth_event
    orders the full event and numbers the hits.
    """
    cfg = cfg or ClassifyCfg()
    start = np.asarray(seg.start, dtype=float)
    end = np.asarray(seg.end, dtype=float)
    hits: List[Hit] = []
    for plane in planes:
        pitch = geometry.planes[plane].pitch_cm
        s0 = geometry.wire_coordinate(plane, start[1], start[2])
        s1 = geometry.wire_coordinate(plane, end[1], end[2])
        if abs(s1 - s0) < 1e-9:
            # track runs along a single wire of this plane
            continue
        s_lo, _ = geometry.s_range(plane)
        k_lo = int(np.ceil((min(s0, s1) - s_lo) / pitch - 0.5))
        k_hi = int(np.floor((max(s0, s1) - s_lo) / pitch - 0.5))
        k_lo = max(k_lo, 0)
        k_hi = min(k_hi, geometry.n_wires(plane) - 1)
        for k in range(k_lo, k_hi + 1):
            lam = (geometry.wire_s(plane, k) - s0) / (s1 - s0)
            x = start[0] + lam * (end[0] - start[0])
            tick = tick_for_x(x, seg.t0_us, geometry, cfg)
            hits.append(Hit(index=-1, wire=k, peak_t=int(round(tick)), tpc=seg.tpc, plane=plane))
    return hits


def synth_event(
    segments: Iterable[MuonSegment],
    geometry: WirePlaneGeometry,
    cfg: ClassifyCfg | None = None,
    planes: Sequence[int] = (0, 1, 2),
    tpcs: Sequence[int] = (0, 1),
    noise_hits: int = 0,
    time_ticks: int = 3500,
    rng: np.random.Generator | None = None,
) -> List[Hit]:
    """
    Hits for all segments plus uniform noise, ordered by (tpc, plane, wire,
    tick) like a channel-ordered hit list, then numbered.
    """
    rng = rng or np.random.default_rng()
    hits: List[Hit] = []
    for seg in segments:
        hits.extend(segment_hits(seg, geometry, cfg, planes))
    for _ in range(noise_hits):
        plane = int(rng.choice(planes))
        hits.append(Hit(
            index=-1,
            wire=int(rng.integers(geometry.n_wires(plane))),
            peak_t=int(rng.integers(1, time_ticks)),
            tpc=int(rng.choice(tpcs)),
            plane=plane,
        ))
    hits.sort(key=lambda h: (h.tpc, h.plane, h.wire, h.peak_t))
    for i, h in enumerate(hits):
        h.index = i
    return hits


def random_crossing_segments(
    n_tracks: int,
    geometry: WirePlaneGeometry,
    rng: np.random.Generator | None = None,
    max_t0_us: float = 200.0,
) -> List[MuonSegment]:
    """
    Anode-to-cathode crossers in random TPCs, running the full drift from
    x = ±anode_x to the cathode at x = 0.

    Tracks are long in z and lean in y against their z direction, so the
    collection plane and plane 0 both see several hundred wires.
    """
    rng = rng or np.random.default_rng()
    segments: List[MuonSegment] = []
    for _ in range(n_tracks):
        side = 1.0 if rng.uniform() < 0.5 else -1.0
        sign = 1.0 if rng.uniform() < 0.5 else -1.0
        z_room = geometry.z_max - geometry.z_min - 40.0
        length_z = rng.uniform(0.55, 0.85) * z_room
        z0 = geometry.z_min + 20.0 + rng.uniform(0.0, z_room - length_z)
        z1 = z0 + length_z
        if sign < 0:
            z0, z1 = z1, z0
        y_room = geometry.y_max - geometry.y_min
        y0 = rng.uniform(geometry.y_min + 0.275 * y_room, geometry.y_max - 0.275 * y_room)
        y1 = y0 - sign * rng.uniform(0.1, 0.25) * y_room
        start = np.array([side * geometry.anode_x, y0, z0])
        end = np.array([0.0, y1, z1])
        segments.append(MuonSegment(start=start, end=end, t0_us=float(rng.uniform(0.0, max_t0_us))))
    return segments
