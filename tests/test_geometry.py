import numpy as np
import pytest

from muontracks.config.schemas import GeometryCfg
from muontracks.geometry.wires import WirePlaneGeometry
from muontracks.physics.hits import WireID


def test_wire_counts_and_coordinates():
    g = WirePlaneGeometry()
    assert g.n_wires(2) == 1666          # 500 cm of z at 0.3 cm
    assert g.n_wires(0) == g.n_wires(1)  # +-60 deg planes are mirror images
    assert g.n_wires(0) < 2000
    assert g.wire_s(2, 0) == pytest.approx(0.15)
    assert g.wire_number(2, 0.0, 100.0) == 333
    assert g.anode_for(0) == pytest.approx(-202.05)
    assert g.anode_for(1) == pytest.approx(202.05)


def test_intersect_recovers_point():
    g = WirePlaneGeometry()
    y, z = 20.0, 250.0
    a = WireID(1, 2, g.wire_number(2, y, z))
    b = WireID(1, 0, g.wire_number(0, y, z))
    p = g.intersect(a, b)
    assert p is not None
    assert p[0] == pytest.approx(202.05)
    # within one pitch of the true crossing
    assert abs(p[1] - y) < 1.0 and abs(p[2] - z) < 0.3


def test_intersect_rejects():
    g = WirePlaneGeometry()
    assert g.intersect(WireID(0, 2, 500), WireID(1, 0, 500)) is None   # different TPC
    assert g.intersect(WireID(0, 2, 500), WireID(0, 2, 600)) is None   # same plane
    # plane-0 wire 500 never reaches z = 400
    assert g.intersect(WireID(0, 2, 1333), WireID(0, 0, 500)) is None


def test_wire_endpoints_clipped_to_active_area():
    g = WirePlaneGeometry()
    e1, e2 = g.wire_endpoints(WireID(1, 0, 500))
    assert e1[0] == e2[0] == pytest.approx(202.05)
    assert e1[1:] == pytest.approx(np.array([26.62, 0.0]), abs=0.05)
    assert e2[1:] == pytest.approx(np.array([200.0, 300.3]), abs=0.05)

    c1, c2 = g.wire_endpoints(WireID(0, 2, 10))
    assert c1[1] == pytest.approx(-200.0) and c2[1] == pytest.approx(200.0)
    assert c1[2] == pytest.approx(3.15)
    assert c2[2] == pytest.approx(3.15)


def test_wire_outside_area_raises():
    g = WirePlaneGeometry()
    with pytest.raises(ValueError):
        g.wire_endpoints(WireID(0, 2, 5000))


def test_wire_range_per_plane():
    g = WirePlaneGeometry()
    assert g.has_wire(WireID(1, 0, 1987))
    assert not g.has_wire(WireID(1, 0, 1988))
    assert not g.has_wire(WireID(1, 2, -1))
    assert not g.has_wire(WireID(1, 5, 10))
    with pytest.raises(ValueError):
        g.wire_endpoints(WireID(1, 0, 1995))
    assert g.intersect(WireID(1, 2, 100), WireID(1, 0, 1995)) is None
    assert g.intersect(WireID(1, 5, 100), WireID(1, 0, 500)) is None


def test_from_cfg():
    cfg = GeometryCfg(anode_x=100.0, planes={2: {"angle_deg": 0.0, "pitch_cm": 0.5}})
    g = WirePlaneGeometry.from_cfg(cfg)
    assert g.anode_x == 100.0
    assert list(g.planes) == [2]
    assert g.planes[2].pitch_cm == 0.5
    assert g.n_wires(2) == 1000
