from __future__ import annotations

import h5py
import numpy as np
import typer
from pathlib import Path

from muontracks.geometry.wires import WirePlaneGeometry
from muontracks.io.track_store import write_hits_ragged
from muontracks.sim.synth import random_crossing_segments, synth_event

app = typer.Typer(help="Synthetic hit generator for exercising the track finder")


@app.command()
def main(
    out: str = typer.Argument(..., help="Output HDF5 path (ragged /hits layout)"),
    n_events: int = typer.Option(10, "--events", "-n", help="Number of events"),
    tracks_per_event: int = typer.Option(2, "--tracks", "-t", help="Anode-cathode crossers per event"),
    noise: int = typer.Option(0, "--noise", help="Uniform noise hits per event"),
    seed: int = typer.Option(12345, "--seed", help="Generator seed"),
):
    """Write events of straight anode-to-cathode muons (plus noise) as hits."""
    rng = np.random.default_rng(seed)
    geometry = WirePlaneGeometry()
    events = []
    for event_id in range(n_events):
        segments = random_crossing_segments(tracks_per_event, geometry, rng)
        events.append((event_id, synth_event(segments, geometry, noise_hits=noise, rng=rng)))

    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(str(out_path), "w") as f:
        write_hits_ragged(f, events)
    n_hits = sum(len(h) for _, h in events)
    typer.echo(f"Wrote {n_events} events ({n_hits} hits) to {out_path}")


if __name__ == "__main__":
    app()
