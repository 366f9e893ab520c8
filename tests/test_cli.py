from typer.testing import CliRunner

from muontracks.cli.synth import app as synth_app
from muontracks.cli.viz import app as viz_app
from muontracks.io.adapters import HDF5HitAdapter
from muontracks.io.track_store import read_tracks
from muontracks.pipelines.core import run_pipeline


def test_synth_then_find_then_draw(tmp_path):
    runner = CliRunner()
    hits = tmp_path / "hits.h5"
    res = runner.invoke(synth_app, [str(hits), "--events", "3", "--tracks", "1", "--noise", "20", "--seed", "4"])
    assert res.exit_code == 0, res.output
    events = list(HDF5HitAdapter().iter_events(str(hits)))
    assert [e for e, _ in events] == [0, 1, 2]
    assert all(len(h) > 20 for _, h in events)

    cfg_path = tmp_path / "run.toml"
    cfg_path.write_text(
        "[run]\ndiagnostics_level = 0\nprogress = false\n\n"
        f'[io]\ninput_path = "{hits.as_posix()}"\n'
        f'output_path = "{(tmp_path / "tracks.h5").as_posix()}"\n'
    )
    out = run_pipeline(str(cfg_path))
    # default config, including the 2500-tick span filter, keeps synthetic crossers
    assert len(read_tracks(str(out))["event_id"]) > 0

    png = tmp_path / "tracks.png"
    res = runner.invoke(viz_app, ["h5-to-png", str(out), "--out", str(png)])
    assert res.exit_code == 0, res.output
    assert png.exists()

    ev_png = tmp_path / "event.png"
    res = runner.invoke(viz_app, ["event-png", str(cfg_path), "--event", "1", "--out", str(ev_png)])
    assert res.exit_code == 0, res.output
    assert ev_png.exists()

    res = runner.invoke(viz_app, ["event-png", str(cfg_path), "--event", "99", "--out", str(ev_png)])
    assert res.exit_code != 0
