import numpy as np

from muontracks.physics.endpoints import EndpointPair
from muontracks.physics.kinematics import TrackType
from muontracks.physics.tracks import ALL_TRACK_TYPES, assemble_tracks, parse_keep_types


def _pairs():
    dual = EndpointPair(start=np.array([202.05, 20.0, 100.0]), end=np.array([202.05, 20.0, 400.0]),
                        t_early=513, t_late=3013, members=[1, 2, 3], tpc=1)
    inner = EndpointPair(start=np.array([-202.05, 0.0, 100.0]), end=np.array([-202.05, 10.0, 300.0]),
                         t_early=1000, t_late=2000, members=[4, 5], tpc=0)
    return [dual, inner]


def test_all_types_kept_by_default():
    tracks = assemble_tracks(_pairs())
    assert [t.type for t in tracks] == [TrackType.DUAL_BOUNDARY, TrackType.UNCLASSIFIED]
    dual = tracks[0]
    assert dual.tpc == 1
    assert dual.hit_indices == [1, 2, 3]
    assert dual.end[0] == 0.0
    assert dual.t0_us == (513 - 500) * 0.5
    assert tracks[1].t0_us == -500.0


def test_whitelist_filters():
    tracks = assemble_tracks(_pairs(), parse_keep_types(["DUAL_BOUNDARY"]))
    assert len(tracks) == 1 and tracks[0].type == TrackType.DUAL_BOUNDARY


def test_empty_whitelist_keeps_nothing():
    assert assemble_tracks(_pairs(), keep_types=[]) == []
    assert assemble_tracks([], ALL_TRACK_TYPES) == []


def test_tracks_never_degenerate():
    for t in assemble_tracks(_pairs()):
        assert not np.allclose(t.start, t.end)


def test_parse_keep_types_mixed():
    assert parse_keep_types([0, "5", "axial_boundary"]) == {
        TrackType.DUAL_BOUNDARY, TrackType.UNCLASSIFIED, TrackType.AXIAL_BOUNDARY,
    }
