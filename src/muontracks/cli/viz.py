from __future__ import annotations

import typer
import numpy as np
from typing import Optional

from muontracks.config.load import load_config
from muontracks.filters.buckets import HitDomain, build_buckets
from muontracks.geometry.wires import WirePlaneGeometry
from muontracks.io.adapters import make_adapter
from muontracks.pipelines.core import process_event
from muontracks.vis.display import save_bucket_png, save_tracks_png

app = typer.Typer(help="Muon track visualization tools")


@app.command("h5-to-png")
def h5_to_png(
    h5_path: str = typer.Argument(..., help="Path to a track file written by muon-tracks"),
    event: Optional[int] = typer.Option(None, "--event", "-e", help="Only draw tracks of this event id"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output PNG path (defaults to file.png)"),
):
    """Render the stored tracks (z-y and z-x views) to a PNG."""
    out_png = save_tracks_png(h5_path, out_png=out, event_id=event)
    typer.echo(f"Wrote {out_png}")


@app.command("event-png")
def event_png(
    cfg_path: str = typer.Argument(..., help="Path to TOML config file"),
    event: int = typer.Option(..., "--event", "-e", help="Event id to display"),
    out: str = typer.Option("event.png", "--out", "-o", help="Output PNG path"),
):
    """Run one event and draw its hits per (plane, tpc) with the found lines."""
    cfg = load_config(cfg_path)
    geometry = WirePlaneGeometry.from_cfg(cfg.geometry)
    adapter = make_adapter(cfg.io.adapter, cfg.io.input_path)
    for event_id, hits in adapter.iter_events(str(cfg.io.input_path)):
        if event_id != event:
            continue
        seed = cfg.run.seed
        rng = np.random.default_rng(None if seed is None else seed + event_id)
        res = process_event(hits, cfg, geometry, rng, event_id=event_id)
        domain = HitDomain(wires=cfg.hough.wires, time_ticks=cfg.hough.time_ticks)
        planes = [cfg.planes.primary, *cfg.planes.secondary]
        buckets = build_buckets(hits, planes, cfg.planes.tpcs, domain)
        out_png = save_bucket_png(buckets.values(), res.lines, out)
        typer.echo(f"Wrote {out_png} ({len(res.tracks)} tracks)")
        return
    raise typer.BadParameter(f"event {event} not found in {cfg.io.input_path}")


if __name__ == "__main__":
    app()
