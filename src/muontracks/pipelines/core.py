from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

import numpy as np
import typer

try:
    from tqdm import tqdm  # optional, for progress bars
except Exception:
    tqdm = None  # noqa

from muontracks.config.load import apply_overrides, load_config
from muontracks.config.schemas import Config
from muontracks.filters.buckets import (
    BucketKey,
    HitDomain,
    build_primary_buckets,
    build_secondary_buckets,
)
from muontracks.geometry.wires import GeometryLookup, WirePlaneGeometry
from muontracks.imaging.hough import (
    HoughAccumulator,
    HoughParams,
    LineSegment,
    MergeTolerances,
    find_lines,
    format_lines,
)
from muontracks.io.adapters import make_adapter
from muontracks.io.track_store import write_init, write_tracks
from muontracks.physics.endpoints import EndpointPair, FallbackCfg, match_endpoints
from muontracks.physics.hits import Hit
from muontracks.physics.kinematics import ClassifyCfg
from muontracks.physics.tracks import Track, assemble_tracks, parse_keep_types
from muontracks.vis.display import save_tracks_png


@dataclass
class EventResult:
    """Outcome of one event: kept tracks plus counters for diagnostics."""
    event_id: int
    tracks: List[Track] = field(default_factory=list)
    line_counts: Dict[BucketKey, int] = field(default_factory=dict)
    n_pairs: int = 0
    lines: Dict[BucketKey, List[LineSegment]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Config -> stage parameters
# ---------------------------------------------------------------------------

def hough_params(cfg: Config) -> HoughParams:
    h = cfg.hough
    return HoughParams(
        threshold=h.threshold,
        max_gap=h.max_gap,
        corridor=h.corridor,
        min_length=h.min_length,
        min_span=h.min_span,
        max_axis_jump=h.max_axis_jump,
        wires=h.wires,
        time_ticks=h.time_ticks,
        theta_bins=h.theta_bins,
        merge=MergeTolerances(
            pos=h.merge.pos,
            rho=h.merge.rho,
            theta=h.merge.theta,
            min_conditions=h.merge.min_conditions,
        ),
    )


def fallback_cfg(cfg: Config) -> FallbackCfg:
    return FallbackCfg(boundary_y=cfg.matching.boundary_y, z_tolerance=cfg.matching.z_tolerance)


def classify_cfg(cfg: Config) -> ClassifyCfg:
    return ClassifyCfg(**cfg.classify.model_dump())


# ---------------------------------------------------------------------------
# Per-event processing
# ---------------------------------------------------------------------------

def process_event(
    hits: Sequence[Hit],
    cfg: Config,
    geometry: GeometryLookup,
    rng: np.random.Generator,
    *,
    event_id: int = 0,
    accumulator: HoughAccumulator | None = None,
) -> EventResult:
    """
    Hits of one event -> classified tracks.

    Primary-plane lines are searched in every TPC; secondary planes are only
    bucketed for TPCs where the primary plane found something. Secondary
    planes are matched in configured order against the same primary lines,
    sharing one consumed set per TPC so a primary line yields at most one
    track.
    """
    params = hough_params(cfg)
    domain = HitDomain(wires=params.wires, time_ticks=params.time_ticks)
    acc = accumulator or HoughAccumulator(params.wires, params.time_ticks, params.theta_bins)
    res = EventResult(event_id=event_id)

    primary_lines: Dict[int, List[LineSegment]] = {}
    for tpc, bucket in build_primary_buckets(hits, cfg.planes.primary, cfg.planes.tpcs, domain).items():
        lines, _ = find_lines(bucket, params, collect_members=True, rng=rng, accumulator=acc)
        res.line_counts[bucket.key] = len(lines)
        res.lines[bucket.key] = lines
        if lines:
            primary_lines[tpc] = lines

    secondary = build_secondary_buckets(hits, cfg.planes.secondary, primary_lines.keys(), domain)
    for key, bucket in secondary.items():
        lines, _ = find_lines(bucket, params, collect_members=False, rng=rng, accumulator=acc)
        res.line_counts[key] = len(lines)
        res.lines[key] = lines

    fallback = fallback_cfg(cfg)
    pairs: List[EndpointPair] = []
    for tpc, plines in primary_lines.items():
        consumed: Set[int] = set()
        for plane in cfg.planes.secondary:
            pairs.extend(match_endpoints(
                plines,
                res.lines.get((plane, tpc), []),
                geometry,
                time_tolerance=cfg.matching.endpoint_range,
                fallback=fallback,
                consumed=consumed,
            ))
    res.n_pairs = len(pairs)

    keep = parse_keep_types(cfg.tracks.keep_types)
    res.tracks = assemble_tracks(pairs, keep, classify_cfg(cfg))
    return res


def _print_event(res: EventResult, diag_level: int) -> None:
    if diag_level >= 2:
        for (plane, tpc), lines in sorted(res.lines.items()):
            print(f"[hough] event {res.event_id} tpc {tpc}")
            print(format_lines(lines, plane))
    if diag_level >= 1:
        counts = " ".join(f"p{p}t{v}={n}" for (p, v), n in sorted(res.line_counts.items()))
        print(f"[event] {res.event_id}: lines {counts or '-'}")
        print(f"[match] {res.event_id}: {res.n_pairs} pairs -> {len(res.tracks)} tracks")


def _event_rng(seed: Optional[int], event_id: int) -> np.random.Generator:
    if seed is None:
        return np.random.default_rng()
    return np.random.default_rng(seed + event_id)


def run_pipeline(
    cfg_path: str,
    *,
    seed: Optional[int] = None,
    keep_types: Optional[Iterable[int | str]] = None,
    png: Optional[bool] = None,
) -> Path:
    """
    Orchestrate the full run from a TOML config file.

    CLI flags (--seed/--keep-types/--png/--no-png) override the
    corresponding TOML fields when not None.

    Returns
    -------
    Path to written HDF5 file.
    """
    cfg = apply_overrides(load_config(cfg_path), seed=seed, keep_types=keep_types, png=png)

    diag_level = cfg.run.diagnostics_level
    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] input={cfg.io.input_path} -> output={cfg.io.output_path}")
        print(f"[run] primary plane={cfg.planes.primary} secondary={cfg.planes.secondary} "
              f"tpcs={cfg.planes.tpcs} seed={cfg.run.seed}")

    geometry = WirePlaneGeometry.from_cfg(cfg.geometry)
    params = hough_params(cfg)
    acc = HoughAccumulator(params.wires, params.time_ticks, params.theta_bins)

    out_path = Path(cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    adapter = make_adapter(cfg.io.adapter, cfg.io.input_path)
    events = adapter.iter_events(str(cfg.io.input_path))
    if cfg.run.progress and tqdm:
        events = tqdm(events, desc="events", unit="evt")

    track_event_ids: List[int] = []
    tracks: List[Track] = []
    n_events = 0
    f = write_init(str(out_path), cfg_path, cfg, geometry)
    try:
        for event_id, hits in events:
            if cfg.run.max_events is not None and n_events >= cfg.run.max_events:
                if diag_level >= 1:
                    print(f"[run] Reached max_events={cfg.run.max_events}, stopping.")
                break
            res = process_event(
                hits, cfg, geometry, _event_rng(cfg.run.seed, event_id),
                event_id=event_id, accumulator=acc,
            )
            _print_event(res, diag_level)
            track_event_ids.extend([event_id] * len(res.tracks))
            tracks.extend(res.tracks)
            n_events += 1

        write_tracks(f, track_event_ids, tracks)
    finally:
        f.close()

    if diag_level >= 1:
        print(f"[run] {n_events} events, {len(tracks)} tracks written to {out_path}")

    # Optional PNG export
    if cfg.vis.export_png_on_write:
        try:
            out_png = save_tracks_png(str(out_path))
            if diag_level >= 1:
                print(f"[run] Wrote PNG {out_png}")
        except Exception as e:
            if diag_level >= 1:
                print(f"[run] PNG export failed: {e!r}")

    return out_path


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Muon track finder for wire-chamber hits (muontracks.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Override [run].seed (per-event generators use seed + event id)",
    ),
    keep_types: Optional[List[str]] = typer.Option(
        None,
        "--keep-types",
        "-k",
        help="Track types to keep (code or name); repeatable. Overrides [tracks].keep_types",
    ),
    png: Optional[bool] = typer.Option(
        None,
        "--png / --no-png",
        help="Render a PNG of the tracks after writing; overrides [vis].export_png_on_write when set",
    ),
):
    """
    Find tracks in every event of the configured input and write them to HDF5.
    """
    out_path = run_pipeline(
        cfg_path,
        seed=seed,
        keep_types=keep_types or None,
        png=png,
    )
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
