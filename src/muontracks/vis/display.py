from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np
from pathlib import Path
from typing import Dict, Iterable, Sequence

from muontracks.filters.buckets import Bucket
from muontracks.imaging.hough import LineSegment
from muontracks.io.track_store import read_tracks
from muontracks.physics.kinematics import TrackType


def save_tracks_png(h5_path: str, out_png: str | None = None, event_id: int | None = None):
    """
    Two views of the stored tracks: z-y (looking down the drift) and z-x
    (side view), one segment per track coloured by type.
    """
    h5_path = str(h5_path)
    store = read_tracks(h5_path)
    sel = np.ones(store["event_id"].shape[0], dtype=bool)
    if event_id is not None:
        sel = store["event_id"] == event_id

    if out_png is None:
        out_png = str(Path(h5_path).with_suffix(".png"))

    start = store["start_xyz_cm"][sel]
    end = store["end_xyz_cm"][sel]
    kind = store["type"][sel]
    cmap = plt.get_cmap("tab10")

    fig, (ax_zy, ax_zx) = plt.subplots(2, 1, figsize=(8, 7), sharex=True)
    seen = set()
    for a, b, k in zip(start, end, kind):
        color = cmap(int(k))
        label = TrackType(int(k)).name if int(k) not in seen else None
        seen.add(int(k))
        ax_zy.plot([a[2], b[2]], [a[1], b[1]], color=color, label=label)
        ax_zx.plot([a[2], b[2]], [a[0], b[0]], color=color)
    ax_zy.set_ylabel("y [cm]")
    ax_zx.set_ylabel("x [cm]")
    ax_zx.set_xlabel("z [cm]")
    if seen:
        ax_zy.legend(fontsize="small")
    title = Path(h5_path).name
    if event_id is not None:
        title += f" : event {event_id}"
    ax_zy.set_title(title + f" ({int(sel.sum())} tracks)")
    fig.tight_layout()
    fig.savefig(out_png, dpi=150)
    plt.close(fig)
    return out_png


def save_bucket_png(
    buckets: Iterable[Bucket],
    lines: Dict[tuple, Sequence[LineSegment]],
    out_png: str,
):
    """Wire vs tick scatter per bucket with the found line segments overlaid."""
    buckets = list(buckets)
    n = max(len(buckets), 1)
    fig, axes = plt.subplots(1, n, figsize=(5 * n, 4), squeeze=False)
    for ax, b in zip(axes[0], buckets):
        ax.scatter(b.u, b.t, s=2, color="0.5")
        for s in lines.get(b.key, ()):
            ax.plot([s.a.u, s.b.u], [s.a.t, s.b.t], color="tab:red")
        ax.set_title(f"plane {b.plane} tpc {b.tpc}")
        ax.set_xlabel("wire")
        ax.set_ylabel("tick")
    fig.tight_layout()
    fig.savefig(out_png, dpi=150)
    plt.close(fig)
    return out_png
