from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Tuple

import numpy as np

from ..physics.hits import WireID


class GeometryLookup(Protocol):
    """Detector geometry queries consumed by the endpoint matcher."""

    def intersect(self, a: WireID, b: WireID) -> Optional[np.ndarray]:
        """3D crossing point of two wires, or None when they do not cross."""

    def wire_endpoints(self, w: WireID) -> Tuple[np.ndarray, np.ndarray]:
        """The two physical ends of a wire, each (3,) [cm]; ValueError for a wire not in its plane."""


@dataclass(frozen=True)
class WirePlane:
    """
    One wire plane. Wires run along (cos a, sin a) in the (y, z) plane, with a
    measured from +y towards +z; the wire coordinate is s = -y sin a + z cos a.
    """
    angle_deg: float
    pitch_cm: float

    @property
    def normal(self) -> np.ndarray:
        a = np.deg2rad(self.angle_deg)
        return np.array([-np.sin(a), np.cos(a)])

    @property
    def direction(self) -> np.ndarray:
        a = np.deg2rad(self.angle_deg)
        return np.array([np.cos(a), np.sin(a)])


@dataclass
class WirePlaneGeometry:
    """
    Analytic two-TPC wire chamber.

    TPC 0 drifts towards x = -anode_x and TPC 1 towards x = +anode_x; both
    share the cathode at x = 0. Every plane covers the same active (y, z)
    rectangle; wire k of a plane sits at s = s_min + (k + 0.5) * pitch.
    """
    anode_x: float = 202.05
    y_min: float = -200.0
    y_max: float = 200.0
    z_min: float = 0.0
    z_max: float = 500.0
    planes: Dict[int, WirePlane] = field(default_factory=lambda: {
        0: WirePlane(60.0, 0.3),
        1: WirePlane(-60.0, 0.3),
        2: WirePlane(0.0, 0.3),
    })

    @classmethod
    def from_cfg(cls, cfg) -> "WirePlaneGeometry":
        planes = {int(k): WirePlane(float(p.angle_deg), float(p.pitch_cm)) for k, p in cfg.planes.items()}
        return cls(
            anode_x=cfg.anode_x,
            y_min=cfg.y_min, y_max=cfg.y_max,
            z_min=cfg.z_min, z_max=cfg.z_max,
            planes=planes,
        )

    # ---- wire coordinates ----

    def _corners(self) -> np.ndarray:
        return np.array([
            [self.y_min, self.z_min], [self.y_min, self.z_max],
            [self.y_max, self.z_min], [self.y_max, self.z_max],
        ])

    def s_range(self, plane: int) -> Tuple[float, float]:
        s = self._corners() @ self.planes[plane].normal
        return float(s.min()), float(s.max())

    def n_wires(self, plane: int) -> int:
        s_lo, s_hi = self.s_range(plane)
        return int(np.floor((s_hi - s_lo) / self.planes[plane].pitch_cm + 1e-9))

    def anode_for(self, tpc: int) -> float:
        return -self.anode_x if tpc == 0 else self.anode_x

    def wire_coordinate(self, plane: int, y: float, z: float) -> float:
        return float(np.array([y, z]) @ self.planes[plane].normal)

    def wire_s(self, plane: int, wire: int) -> float:
        s_lo, _ = self.s_range(plane)
        return s_lo + (wire + 0.5) * self.planes[plane].pitch_cm

    def wire_number(self, plane: int, y: float, z: float) -> int:
        """Nearest wire to (y, z), clipped to the plane."""
        s_lo, _ = self.s_range(plane)
        k = int(np.floor((self.wire_coordinate(plane, y, z) - s_lo) / self.planes[plane].pitch_cm))
        return int(np.clip(k, 0, self.n_wires(plane) - 1))

    def has_wire(self, w: WireID) -> bool:
        return w.plane in self.planes and 0 <= w.wire < self.n_wires(w.plane)

    def contains(self, y: float, z: float, tol: float = 1e-9) -> bool:
        return (self.y_min - tol <= y <= self.y_max + tol) and (self.z_min - tol <= z <= self.z_max + tol)

    # ---- GeometryLookup ----

    def intersect(self, a: WireID, b: WireID) -> Optional[np.ndarray]:
        if a.tpc != b.tpc or a.plane == b.plane:
            return None
        if not (self.has_wire(a) and self.has_wire(b)):
            return None
        M = np.vstack([self.planes[a.plane].normal, self.planes[b.plane].normal])
        if abs(np.linalg.det(M)) < 1e-12:
            return None
        rhs = np.array([self.wire_s(a.plane, a.wire), self.wire_s(b.plane, b.wire)])
        y, z = np.linalg.solve(M, rhs)
        if not self.contains(y, z):
            return None
        return np.array([self.anode_for(a.tpc), y, z], dtype=np.float64)

    def wire_endpoints(self, w: WireID) -> Tuple[np.ndarray, np.ndarray]:
        """Clip the infinite wire line against the active rectangle (Liang-Barsky)."""
        if not self.has_wire(w):
            raise ValueError(f"wire {w} is not part of plane {w.plane}")
        wp = self.planes[w.plane]
        p0 = self.wire_s(w.plane, w.wire) * wp.normal
        d = wp.direction
        lo, hi = -np.inf, np.inf
        for axis, (vmin, vmax) in enumerate(((self.y_min, self.y_max), (self.z_min, self.z_max))):
            if abs(d[axis]) < 1e-12:
                if not (vmin <= p0[axis] <= vmax):
                    raise ValueError(f"wire {w} lies outside the active area")
                continue
            l1 = (vmin - p0[axis]) / d[axis]
            l2 = (vmax - p0[axis]) / d[axis]
            lo = max(lo, min(l1, l2))
            hi = min(hi, max(l1, l2))
        if lo > hi:
            raise ValueError(f"wire {w} lies outside the active area")
        x = self.anode_for(w.tpc)
        e1 = p0 + lo * d
        e2 = p0 + hi * d
        return (np.array([x, e1[0], e1[1]], dtype=np.float64),
                np.array([x, e2[0], e2[1]], dtype=np.float64))

