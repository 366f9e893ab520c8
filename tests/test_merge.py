from muontracks.imaging.hough import Endpoint, LineSegment, MergeTolerances, merge_segments


def _seg(a, b, rho=588, theta=169, members=()):
    return LineSegment(a=Endpoint(*a, -1, -1), b=Endpoint(*b, -1, -1), rho=rho, theta=theta,
                       members=tuple(members), plane=2, tpc=0)


def test_adjacent_collinear_segments_fuse():
    si = _seg((100, 200), (300, 1200), members=[1, 2])
    sj = _seg((310, 1250), (600, 2700), members=[3, 4])
    out = merge_segments([si, sj])
    assert len(out) == 1
    m = out[0]
    # j keeps its far end; its near end is replaced by i's far end
    assert (m.a.u, m.a.t) == (100, 200)
    assert (m.b.u, m.b.t) == (600, 2700)
    assert m.members == (3, 4, 1, 2)


def test_distant_segments_stay_apart():
    si = _seg((100, 200), (300, 1200), rho=588, theta=169)
    sj = _seg((900, 300), (1200, 900), rho=-400, theta=120)
    out = merge_segments([si, sj])
    assert out == [si, sj]


def test_merge_is_idempotent_at_fixed_point():
    segs = [
        _seg((100, 200), (300, 1200), members=[1]),
        _seg((310, 1250), (600, 2700), members=[2]),
        _seg((1500, 100), (1700, 400), rho=-900, theta=60, members=[3]),
    ]
    once = merge_segments(segs)
    assert len(once) == 2
    assert merge_segments(once) == once


def test_min_conditions_controls_fusion():
    # same rho/theta, endpoints far apart: only two of four tests hold
    si = _seg((100, 200), (300, 1200))
    sj = _seg((700, 3000), (800, 3400))
    assert len(merge_segments([si, sj])) == 2
    assert len(merge_segments([si, sj], MergeTolerances(min_conditions=2))) == 1


def test_members_not_collected():
    si = _seg((100, 200), (300, 1200), members=[1])
    sj = _seg((310, 1250), (600, 2700), members=[2])
    out = merge_segments([si, sj], collect_members=False)
    assert out[0].members == (2,)
