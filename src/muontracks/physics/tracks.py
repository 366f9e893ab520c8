# src/muontracks/physics/tracks.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List

import numpy as np

from .endpoints import EndpointPair
from .kinematics import (
    ClassifyCfg,
    TrackType,
    classify_pair,
    reference_t0,
    trajectory_angles,
)

ALL_TRACK_TYPES: FrozenSet[TrackType] = frozenset(TrackType)


@dataclass(slots=True)
class Track:
    """
    Reconstructed straight track.

    start/end: 3D endpoints [cm], earlier then later in time
    t0_us:     time origin implied by the track type [us]
    hit_indices: raw hit indices of the primary-plane line (for associations)
    """
    start: np.ndarray
    end: np.ndarray
    t0_us: float
    theta_xz_deg: float
    theta_yz_deg: float
    tpc: int
    type: TrackType
    hit_indices: List[int] = field(default_factory=list)


def parse_keep_types(values: Iterable[int | str | TrackType]) -> FrozenSet[TrackType]:
    return frozenset(TrackType.parse(v) for v in values)


def assemble_tracks(
    pairs: Iterable[EndpointPair],
    keep_types: Iterable[TrackType] = ALL_TRACK_TYPES,
    cfg: ClassifyCfg | None = None,
) -> List[Track]:
    """
    Classify each endpoint pair, attach t0 and angles, and keep the ones whose
    type is whitelisted. An empty whitelist keeps nothing.
    """
    if cfg is None:
        cfg = ClassifyCfg()
    keep = frozenset(keep_types)
    tracks: List[Track] = []
    for pair in pairs:
        cls = classify_pair(pair, cfg)
        if cls.type not in keep:
            continue
        theta_xz, theta_yz = trajectory_angles(pair, cfg)
        tracks.append(Track(
            start=cls.start,
            end=cls.end,
            t0_us=reference_t0(cls.type, pair.t_early, pair.t_late, cfg),
            theta_xz_deg=theta_xz,
            theta_yz_deg=theta_yz,
            tpc=pair.tpc,
            type=cls.type,
            hit_indices=list(pair.members),
        ))
    return tracks
