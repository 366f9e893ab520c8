# src/muontracks/physics/kinematics.py
from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

import numpy as np

from .endpoints import EndpointPair


class TrackType(IntEnum):
    """Topology of a reconstructed track; values are the stored output codes."""
    DUAL_BOUNDARY = 0          # anode and cathode crosser
    SINGLE_EARLY_BOUNDARY = 1  # enters through the anode
    SINGLE_LATE_BOUNDARY = 2   # exits through the cathode
    ORTHOGONAL_BOUNDARY = 3    # top-bottom crosser
    AXIAL_BOUNDARY = 4         # upstream-downstream crosser
    UNCLASSIFIED = 5

    @classmethod
    def parse(cls, value: "int | str | TrackType") -> "TrackType":
        if isinstance(value, str):
            key = value.strip().upper()
            if key.isdigit():
                return cls(int(key))
            try:
                return cls[key]
            except KeyError:
                raise ValueError(f"Unknown track type {value!r}") from None
        return cls(int(value))


@dataclass(frozen=True)
class ClassifyCfg:
    long_crossing_ticks: int = 2400
    y_edge: float = 198.0
    z_low: float = 6.0
    z_high: float = 503.0
    anode_x: float = 202.05         # |x| of the anode planes [cm]
    tick_us: float = 0.5            # sampling period [us]
    drift_cm_per_us: float = 0.16
    early_t0_offset_ticks: int = 500
    late_t0_offset_ticks: int = 3000
    t0_sentinel_us: float = -500.0


@dataclass(slots=True)
class ClassifiedPair:
    type: TrackType
    start: np.ndarray
    end: np.ndarray


def drift_distance(dt_ticks: float, cfg: ClassifyCfg) -> float:
    """Distance [cm] drifted during dt_ticks."""
    return dt_ticks * cfg.tick_us * cfg.drift_cm_per_us


def on_edge(p: np.ndarray, cfg: ClassifyCfg) -> bool:
    y, z = float(p[1]), float(p[2])
    return y > cfg.y_edge or y < -cfg.y_edge or z > cfg.z_high or z < cfg.z_low


def _depth_from_anode(side_x: float, dx: float, cfg: ClassifyCfg) -> float:
    return (cfg.anode_x - dx) if side_x > 0 else (-cfg.anode_x + dx)


def classify_pair(pair: EndpointPair, cfg: ClassifyCfg | None = None) -> ClassifiedPair:
    """
    Assign a TrackType from where the two endpoints sit, correcting the drift
    coordinate (x) where the type fixes it. The input pair is not modified.
    """
    if cfg is None:
        cfg = ClassifyCfg()
    start = np.array(pair.start, dtype=np.float64, copy=True)
    end = np.array(pair.end, dtype=np.float64, copy=True)
    dt = pair.dt

    if abs(dt) > cfg.long_crossing_ticks:
        end[0] = 0.0  # later end sits on the cathode
        return ClassifiedPair(TrackType.DUAL_BOUNDARY, start, end)

    start_edge = on_edge(start, cfg)
    end_edge = on_edge(end, cfg)
    dx = drift_distance(dt, cfg)

    if not start_edge and end_edge:
        start[0] = _depth_from_anode(end[0], dx, cfg)
        return ClassifiedPair(TrackType.SINGLE_EARLY_BOUNDARY, start, end)
    if start_edge and not end_edge:
        start[0] = _depth_from_anode(start[0], dx, cfg)
        end[0] = 0.0
        return ClassifiedPair(TrackType.SINGLE_LATE_BOUNDARY, start, end)

    y1, z1, y2, z2 = start[1], start[2], end[1], end[2]
    if (y1 > cfg.y_edge and y2 < -cfg.y_edge) or (y1 < -cfg.y_edge and y2 > cfg.y_edge):
        return ClassifiedPair(TrackType.ORTHOGONAL_BOUNDARY, start, end)
    if (z1 > cfg.z_high and z2 < cfg.z_low) or (z1 < cfg.z_low and z2 > cfg.z_high):
        return ClassifiedPair(TrackType.AXIAL_BOUNDARY, start, end)
    return ClassifiedPair(TrackType.UNCLASSIFIED, start, end)


def reference_t0(kind: TrackType, t_early: int, t_late: int, cfg: ClassifyCfg | None = None) -> float:
    """Track time origin [us] for the given type."""
    if cfg is None:
        cfg = ClassifyCfg()
    if kind in (TrackType.DUAL_BOUNDARY, TrackType.SINGLE_EARLY_BOUNDARY):
        return (t_early - cfg.early_t0_offset_ticks) * cfg.tick_us
    if kind == TrackType.SINGLE_LATE_BOUNDARY:
        return (t_late - cfg.late_t0_offset_ticks) * cfg.tick_us
    return cfg.t0_sentinel_us


def trajectory_angles(pair: EndpointPair, cfg: ClassifyCfg | None = None) -> Tuple[float, float]:
    """
    (theta_xz, theta_yz) in degrees. The x extent comes from the drift time,
    y and z extents from the resolved endpoints.
    """
    if cfg is None:
        cfg = ClassifyCfg()
    dx = drift_distance(pair.dt, cfg)
    dy = float(pair.end[1]) - float(pair.start[1])
    dz = float(pair.end[2]) - float(pair.start[2])
    return float(np.degrees(np.arctan2(dx, dz))), float(np.degrees(np.arctan2(dy, dz)))
