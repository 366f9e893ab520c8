from __future__ import annotations
from typing import Dict, List, Sequence, Tuple
import h5py
import numpy as np
from datetime import datetime, timezone
from muontracks.config.schemas import Config
from muontracks.config.load import snapshot_config_toml, json_dumps
from muontracks.geometry.wires import WirePlaneGeometry
from muontracks.physics.hits import Hit
from muontracks.physics.tracks import Track

FORMAT_VERSION = "1.0"


def write_init(path: str, cfg_path: str, cfg: Config, geometry: WirePlaneGeometry) -> h5py.File:
    f = h5py.File(path, "w")
    # Root attrs
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = "muon-tracks 0.1.0"
    f.attrs["config_text"] = snapshot_config_toml(cfg_path)
    f.attrs["config_resolved"] = json_dumps(cfg.model_dump(mode="json"))

    # /meta
    meta = f.create_group("meta")
    meta.attrs["geometry.anode_x"] = geometry.anode_x
    meta.attrs["geometry.y_range"] = np.array([geometry.y_min, geometry.y_max])
    meta.attrs["geometry.z_range"] = np.array([geometry.z_min, geometry.z_max])
    for plane, wp in sorted(geometry.planes.items()):
        meta.attrs[f"plane{plane}.angle_deg"] = wp.angle_deg
        meta.attrs[f"plane{plane}.pitch_cm"] = wp.pitch_cm
    meta.attrs["planes.primary"] = cfg.planes.primary
    meta.attrs["planes.secondary"] = np.asarray(cfg.planes.secondary, dtype=np.int32)
    return f


def _replace_or_create(grp: h5py.Group, name: str, data: np.ndarray) -> None:
    if name in grp:
        del grp[name]
    # zero-size datasets cannot be chunked
    if data.size:
        grp.create_dataset(name, data=data, compression="gzip")
    else:
        grp.create_dataset(name, data=data)


def write_tracks(
    f: h5py.File,
    event_ids: Sequence[int],
    tracks: Sequence[Track],
) -> None:
    """
    Store tracks and their hit associations.

    Layout:

    /tracks/event_id      (N,)   int64
    /tracks/start_xyz_cm  (N, 3) float32   earlier endpoint
    /tracks/end_xyz_cm    (N, 3) float32   later endpoint
    /tracks/t0_us         (N,)   float32
    /tracks/theta_xz_deg  (N,)   float32
    /tracks/theta_yz_deg  (N,)   float32
    /tracks/tpc           (N,)   int16
    /tracks/type          (N,)   uint8     TrackType code

    /assns/track_ptr      (N+1,) int64     CSR pointer into hit_index
    /assns/hit_index      (M,)   int64     raw hit index within the event
    """
    if len(event_ids) != len(tracks):
        raise ValueError("event_ids and tracks must have the same length")
    N = len(tracks)

    start = np.zeros((N, 3), dtype=np.float32)
    end = np.zeros((N, 3), dtype=np.float32)
    t0 = np.zeros(N, dtype=np.float32)
    txz = np.zeros(N, dtype=np.float32)
    tyz = np.zeros(N, dtype=np.float32)
    tpc = np.zeros(N, dtype=np.int16)
    kind = np.zeros(N, dtype=np.uint8)
    ptr = np.zeros(N + 1, dtype=np.int64)
    hit_rows: List[np.ndarray] = []

    for i, tr in enumerate(tracks):
        start[i] = np.asarray(tr.start, dtype=np.float32).reshape(3)
        end[i] = np.asarray(tr.end, dtype=np.float32).reshape(3)
        t0[i] = tr.t0_us
        txz[i] = tr.theta_xz_deg
        tyz[i] = tr.theta_yz_deg
        tpc[i] = tr.tpc
        kind[i] = int(tr.type)
        idx = np.asarray(tr.hit_indices, dtype=np.int64)
        hit_rows.append(idx)
        ptr[i + 1] = ptr[i] + idx.size

    hit_index = np.concatenate(hit_rows) if hit_rows else np.zeros(0, dtype=np.int64)

    grp = f.require_group("tracks")
    _replace_or_create(grp, "event_id", np.asarray(event_ids, dtype=np.int64))
    _replace_or_create(grp, "start_xyz_cm", start)
    _replace_or_create(grp, "end_xyz_cm", end)
    _replace_or_create(grp, "t0_us", t0)
    _replace_or_create(grp, "theta_xz_deg", txz)
    _replace_or_create(grp, "theta_yz_deg", tyz)
    _replace_or_create(grp, "tpc", tpc)
    _replace_or_create(grp, "type", kind)

    assns = f.require_group("assns")
    _replace_or_create(assns, "track_ptr", ptr)
    _replace_or_create(assns, "hit_index", hit_index)


def read_tracks(path: str) -> Dict[str, np.ndarray]:
    path = str(path)
    out: Dict[str, np.ndarray] = {}
    with h5py.File(path, "r") as f:
        if "tracks" not in f:
            raise KeyError(f"/tracks not found in {path}")
        for name, dset in f["tracks"].items():
            out[name] = np.array(dset)
        out["track_ptr"] = np.array(f["assns"]["track_ptr"])
        out["hit_index"] = np.array(f["assns"]["hit_index"])
    return out


def track_hits(store: Dict[str, np.ndarray], i: int) -> np.ndarray:
    """Hit indices associated with track i of a read_tracks() result."""
    ptr = store["track_ptr"]
    return store["hit_index"][int(ptr[i]):int(ptr[i + 1])]


# ---------------------------------------------------------------------------
# Ragged hit store (input side)
# ---------------------------------------------------------------------------

_HIT_COLUMNS = ("wire", "peak_t", "tpc", "plane")


def write_hits_ragged(
    h5: h5py.File,
    events: Sequence[Tuple[int, Sequence[Hit]]],
    *,
    group: str = "/hits",
) -> None:
    """
    Write events of variable hit multiplicity as CSR:

    {group}/event_id   (N,)   int64
    {group}/event_ptr  (N+1,) int64
    {group}/wire, peak_t, tpc, plane  (M,) int32, flat in event order
    """
    if group.endswith("/"):
        group = group[:-1]
    g = h5.require_group(group)

    n_events = len(events)
    ptr = np.zeros(n_events + 1, dtype=np.int64)
    for i, (_, hits) in enumerate(events):
        ptr[i + 1] = ptr[i] + len(hits)
    M = int(ptr[-1])

    cols = {k: np.empty(M, dtype=np.int32) for k in _HIT_COLUMNS}
    w = 0
    for _, hits in events:
        for h in hits:
            cols["wire"][w] = h.wire
            cols["peak_t"][w] = h.peak_t
            cols["tpc"][w] = h.tpc
            cols["plane"][w] = h.plane
            w += 1

    for key, data in (("event_id", np.asarray([e for e, _ in events], dtype=np.int64)),
                      ("event_ptr", ptr), *cols.items()):
        if key in g:
            del g[key]
        g.create_dataset(key, data=data)


def read_hits_ragged(path: str, group: str = "/hits") -> Tuple[np.ndarray, np.ndarray, Dict[str, np.ndarray]]:
    """Return (event_ids, event_ptr, {column: flat array})."""
    with h5py.File(str(path), "r") as f:
        if group not in f:
            raise KeyError(f"{group} not found in {path}")
        g = f[group]
        ptr = np.array(g["event_ptr"], dtype=np.int64)
        if "event_id" in g:
            event_ids = np.array(g["event_id"], dtype=np.int64)
        else:
            event_ids = np.arange(len(ptr) - 1, dtype=np.int64)
        cols = {k: np.array(g[k]) for k in _HIT_COLUMNS}
    return event_ids, ptr, cols
