"""
muontracks.io.adapters

Readers that turn external hit sources into per-event lists of
muontracks.physics.hits.Hit for the track finder.

Design goals
------------
- Keep I/O concerns isolated from the reconstruction.
- Be tolerant to schema variants by using small, explicit column maps.
- Remain side-effect free: yield Python objects; HDF5 output is handled downstream.

Entry points
------------
- class CSVHitAdapter:  flat table, one row per hit, with an event column.
- class HDF5HitAdapter: ragged (CSR) layout written by io.track_store.write_hits_ragged.
- function make_adapter(cfg): factory from the [io.adapter] TOML section.

Config (example)
----------------
[io]
input_path = "data/run42_hits.csv"

[io.adapter]
type = "csv"                  # "csv" | "hdf5"
columns = { peak_t = "PeakTime" }   # optional renames, canonical -> source
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from muontracks.physics.hits import Hit
from muontracks.io.track_store import read_hits_ragged

EventHits = Tuple[int, List[Hit]]

# canonical column -> accepted source spellings
_CANON_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "event": ("event", "event_id", "evt"),
    "wire": ("wire", "Wire", "channel_wire"),
    "peak_t": ("peak_t", "peak_time", "PeakTime", "tick"),
    "tpc": ("tpc", "TPC", "volume"),
    "plane": ("plane", "Plane", "view"),
}


def _resolve_columns(df_columns, overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    cols = set(df_columns)
    out: Dict[str, str] = {}
    for canon, candidates in _CANON_COLUMNS.items():
        if overrides and canon in overrides:
            out[canon] = overrides[canon]
            continue
        for c in candidates:
            if c in cols:
                out[canon] = c
                break
    missing = [k for k in _CANON_COLUMNS if k not in out or out[k] not in cols]
    if missing:
        raise KeyError(f"Hit table is missing required columns: {missing}")
    return out


def hits_from_arrays(wire, peak_t, tpc, plane, extras: Optional[Mapping[str, np.ndarray]] = None) -> List[Hit]:
    """
    Build Hits from parallel arrays; the index is the position within the event.
    `extras` columns (same length) are kept per hit under their own names.
    """
    wire = np.asarray(wire)
    # peak times are truncated towards zero, matching integer tick bookkeeping
    peak_t = np.trunc(np.asarray(peak_t, dtype=np.float64)).astype(np.int64)
    hits = [
        Hit(index=i, wire=int(w), peak_t=int(t), tpc=int(v), plane=int(p))
        for i, (w, t, v, p) in enumerate(zip(wire, peak_t, np.asarray(tpc), np.asarray(plane)))
    ]
    for name, col in (extras or {}).items():
        for h, value in zip(hits, np.asarray(col).tolist()):
            h.extras[name] = value
    return hits


# ---------------------------------------------------------------------------
# Base adapter API
# ---------------------------------------------------------------------------

class BaseAdapter:
    """
    Abstract adapter interface.

    Yields (event_id, hits) with hits in their original order.
    """

    def iter_events(self, path: str) -> Iterator[EventHits]:
        raise NotImplementedError


class CSVHitAdapter(BaseAdapter):
    """Flat CSV table, one row per hit. Row order within an event is kept."""

    def __init__(self, columns: Optional[Mapping[str, str]] = None, sep: str = ","):
        self.columns = dict(columns or {})
        self.sep = sep

    def iter_events(self, path: str) -> Iterator[EventHits]:
        df = pd.read_csv(path, sep=self.sep)
        cols = _resolve_columns(df.columns, self.columns)
        used = set(cols.values())
        extra_cols = [c for c in df.columns if c not in used]
        for event_id, grp in df.groupby(cols["event"], sort=True):
            yield int(event_id), hits_from_arrays(
                grp[cols["wire"]].to_numpy(),
                grp[cols["peak_t"]].to_numpy(),
                grp[cols["tpc"]].to_numpy(),
                grp[cols["plane"]].to_numpy(),
                extras={c: grp[c].to_numpy() for c in extra_cols},
            )


class HDF5HitAdapter(BaseAdapter):
    """Ragged hit layout (/hits/event_ptr + flat columns)."""

    def __init__(self, group: str = "/hits"):
        self.group = group

    def iter_events(self, path: str) -> Iterator[EventHits]:
        event_ids, ptr, cols = read_hits_ragged(path, group=self.group)
        for i, event_id in enumerate(event_ids):
            a, b = int(ptr[i]), int(ptr[i + 1])
            yield int(event_id), hits_from_arrays(
                cols["wire"][a:b], cols["peak_t"][a:b], cols["tpc"][a:b], cols["plane"][a:b],
            )


def make_adapter(cfg: Dict, input_path: str | Path | None = None) -> BaseAdapter:
    """
    Create an adapter from a config dict (from TOML/CLI).

    Expected keys under [io.adapter]:
      type: "csv" | "hdf5"   (default: inferred from the input suffix, else "hdf5")
      columns: {canonical: source}   (CSV-only)
      sep: str                       (CSV-only)
      group: str                     (HDF5-only)
    """
    typ = cfg.get("type")
    if typ is None and input_path is not None:
        typ = "csv" if Path(input_path).suffix.lower() in (".csv", ".txt") else "hdf5"
    typ = (typ or "hdf5").lower()

    if typ == "csv":
        return CSVHitAdapter(columns=cfg.get("columns"), sep=cfg.get("sep", ","))
    if typ in ("hdf5", "h5"):
        return HDF5HitAdapter(group=cfg.get("group", "/hits"))

    raise ValueError(f"Unknown adapter type: {typ}")
