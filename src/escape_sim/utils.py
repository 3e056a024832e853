# src/escape_sim/utils.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


@dataclass(frozen=True)
class SimulationResult:
    """Escape statistics for one candidate radius."""

    radius: float
    average_distance: float
    percent_escaped: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "radius": self.radius,
            "averageDistance": self.average_distance,
            "percentEscaped": self.percent_escaped,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationResult":
        return cls(
            radius=float(data["radius"]),
            average_distance=float(data["averageDistance"]),
            percent_escaped=float(data["percentEscaped"]),
        )


@dataclass
class SweepRecord:
    """Everything persisted about one radius sweep, enough to repeat it."""

    date: datetime
    steps: int
    sample_size: int
    significant_figures: int
    seed: Optional[int] = None
    engine: str = "numba"
    chunk_size: int = 1_000_000
    consume_all_steps: bool = False
    common_random_numbers: bool = False
    results: List[SimulationResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "steps": self.steps,
            "sampleSize": self.sample_size,
            "significantFigures": self.significant_figures,
            "seed": self.seed,
            "engine": self.engine,
            "chunkSize": self.chunk_size,
            "consumeAllSteps": self.consume_all_steps,
            "commonRandomNumbers": self.common_random_numbers,
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SweepRecord":
        return cls(
            date=datetime.fromisoformat(data["date"]),
            steps=int(data["steps"]),
            sample_size=int(data["sampleSize"]),
            significant_figures=int(data["significantFigures"]),
            seed=data.get("seed"),
            engine=data.get("engine", "numba"),
            chunk_size=int(data.get("chunkSize", 1_000_000)),
            consume_all_steps=bool(data.get("consumeAllSteps", False)),
            common_random_numbers=bool(data.get("commonRandomNumbers", False)),
            results=[SimulationResult.from_dict(r) for r in data.get("results", [])],
        )


def now_str() -> str:
    return utc_now().strftime("%Y%m%dT%H%M%SZ")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def record_filename(date: Optional[datetime] = None) -> str:
    """
    File name for a sweep record, e.g. ``data-20261018T101500Z.json``.

    The timestamp uses the ISO-8601 basic format so the name carries no colons.
    """
    if date is None:
        return f"data-{now_str()}.json"
    return f"data-{date.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}.json"


def save_sweep_record(
    path: str | os.PathLike[str], record: SweepRecord, *, overwrite: bool = True
) -> Path:
    """Serialize a SweepRecord to JSON and return the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not overwrite and path.exists():
        raise FileExistsError(f"{path} already exists")
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(record.to_dict(), fh, indent=2)
    return path


def load_sweep_record(path: str | os.PathLike[str]) -> SweepRecord:
    with open(path, "r", encoding="utf-8") as fh:
        return SweepRecord.from_dict(json.load(fh))


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load sweep parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        if tomllib is None:
            raise RuntimeError("tomllib is unavailable; cannot parse TOML files")
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")
