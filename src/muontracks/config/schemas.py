from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, List, Union, Any

from muontracks.physics.kinematics import TrackType

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=summary, 2=verbose (Hough line dumps)

    # Reproducibility: each event uses default_rng(seed + event_id); None = fresh entropy
    seed: Optional[int] = 12345

    progress: bool = True

    # Limits
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

class IOCfg(BaseModel):
    """
    I/O paths.

    TOML:

    [io]
    input_path  = "hits.h5"
    output_path = "tracks.h5"

    [io.adapter]
    type = "hdf5"            # "hdf5" | "csv"
    """

    input_path: str
    output_path: str

    # Adapter-specific sub-config, e.g. [io.adapter]
    adapter: Dict[str, Any] = Field(default_factory=dict)

class PlanesCfg(BaseModel):
    """
    Which wire planes play the primary / secondary roles, and which TPCs exist.
    """

    primary: int = 2
    secondary: List[int] = [0, 1]
    tpcs: List[int] = [0, 1]

    @field_validator("secondary")
    def _secondary_distinct(cls, v: List[int]) -> List[int]:
        if len(set(v)) != len(v):
            raise ValueError("secondary planes must be distinct")
        return v

class MergeCfg(BaseModel):
    pos: int = 100
    rho: int = 30
    theta: int = 20
    min_conditions: int = Field(default=3, ge=1, le=4)

class HoughCfg(BaseModel):
    """
    Randomized Hough transform parameters. min_span != 0 selects the
    time-span filter; min_span == 0 falls back to Euclidean min_length.
    """

    threshold: int = 10
    max_gap: int = 30
    corridor: int = 100
    min_length: int = 500
    min_span: int = 2500
    max_axis_jump: int = 30

    # Accumulator domain
    wires: int = Field(default=2000, gt=0)
    time_ticks: int = Field(default=3500, gt=0)
    theta_bins: int = Field(default=180, gt=0)

    merge: MergeCfg = Field(default_factory=MergeCfg)

class MatchingCfg(BaseModel):
    endpoint_range: int = 30      # tick tolerance between plane endpoints
    boundary_y: float = 198.0
    z_tolerance: float = 8.0

class ClassifyCfgModel(BaseModel):
    long_crossing_ticks: int = 2400
    y_edge: float = 198.0
    z_low: float = 6.0
    z_high: float = 503.0
    anode_x: float = 202.05
    tick_us: float = 0.5
    drift_cm_per_us: float = 0.16
    early_t0_offset_ticks: int = 500
    late_t0_offset_ticks: int = 3000
    t0_sentinel_us: float = -500.0

class WirePlaneCfg(BaseModel):
    angle_deg: float
    pitch_cm: float = 0.3

class GeometryCfg(BaseModel):
    """
    Analytic wire-chamber geometry.

    [geometry.planes.0]
    angle_deg = 60.0
    pitch_cm  = 0.3
    """

    anode_x: float = 202.05
    y_min: float = -200.0
    y_max: float = 200.0
    z_min: float = 0.0
    z_max: float = 500.0
    planes: Dict[int, WirePlaneCfg] = Field(default_factory=lambda: {
        0: WirePlaneCfg(angle_deg=60.0),
        1: WirePlaneCfg(angle_deg=-60.0),
        2: WirePlaneCfg(angle_deg=0.0),
    })

class TracksCfg(BaseModel):
    # ints (0..5) or TrackType names, e.g. "DUAL_BOUNDARY"
    keep_types: List[Union[int, str]] = [0, 1, 2, 3, 4, 5]

    @field_validator("keep_types")
    def _known_types(cls, v: List[Union[int, str]]) -> List[Union[int, str]]:
        for item in v:
            TrackType.parse(item)
        return v

class VisCfg(BaseModel):
    export_png_on_write: bool = False


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    planes: PlanesCfg = Field(default_factory=PlanesCfg)
    hough: HoughCfg = Field(default_factory=HoughCfg)
    matching: MatchingCfg = Field(default_factory=MatchingCfg)
    classify: ClassifyCfgModel = Field(default_factory=ClassifyCfgModel)
    geometry: GeometryCfg = Field(default_factory=GeometryCfg)
    tracks: TracksCfg = Field(default_factory=TracksCfg)
    vis: VisCfg = Field(default_factory=VisCfg)
