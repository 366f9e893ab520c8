from __future__ import annotations
from .schemas import Config
from pathlib import Path
from typing import Iterable, Optional
import json

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310


def load_config(path: str | Path) -> Config:
    """Parse a TOML run card into a validated Config."""
    p = Path(path)
    with p.open("rb") as fh:
        data = tomllib.load(fh)
    return Config(**data)


def apply_overrides(
    cfg: Config,
    *,
    seed: Optional[int] = None,
    keep_types: Optional[Iterable[int | str]] = None,
    png: Optional[bool] = None,
) -> Config:
    """
    CLI flags on top of TOML. None leaves the TOML value alone; the result is
    re-validated so a bad override fails the same way a bad TOML value would.
    """
    data = cfg.model_dump()
    if seed is not None:
        data["run"]["seed"] = seed
    if keep_types is not None:
        data["tracks"]["keep_types"] = list(keep_types)
    if png is not None:
        data["vis"]["export_png_on_write"] = png
    return Config.model_validate(data)


def snapshot_config_toml(path: str | Path) -> str:
    """Raw TOML text, stored verbatim in the output file."""
    return Path(path).read_text()


def json_dumps(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
