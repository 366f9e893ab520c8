from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple


class WireID(NamedTuple):
    """Address of one sense wire: (TPC, plane, wire number)."""
    tpc: int
    plane: int
    wire: int


@dataclass(slots=True)
class Hit:
    """
    Canonical reconstructed wire hit.

    index:  position in the event's raw hit list (back-reference for associations)
    wire:   wire number within its plane
    peak_t: peak time [ticks]
    tpc:    drift volume id
    plane:  wire plane (projection) id
    extras: arbitrary per-hit fields preserved from input (integral, rms, ...)
    """
    index: int
    wire: int
    peak_t: int
    tpc: int
    plane: int

    # Preserve raw/source-specific fields without polluting the core schema
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def wire_id(self) -> WireID:
        return WireID(self.tpc, self.plane, self.wire)
