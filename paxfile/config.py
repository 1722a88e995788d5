"""Configuration for the PAX codec.

Tunables that the on-disk format leaves to the implementation (string
truncation, preview chunk size, array row layout on write) are read from
a small YAML file.  The defaults ship with the package in
``configs/defaults.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path

import yaml


@dataclass
class PaxConfig:
    """Settings consulted by the parser, writer and file helpers."""

    max_string_length: int = 256
    min_file_length: int = 128
    chunk_length: int = 16384
    format_version: float = 1.0
    max_values_per_row: int = 16
    max_subrow_values: int = 8
    verbosity: int = 0

    def __post_init__(self) -> None:
        if self.max_string_length < 2:
            raise ValueError("max_string_length must be at least 2")
        if self.chunk_length < 1:
            raise ValueError("chunk_length must be positive")
        if self.max_values_per_row < 1 or self.max_subrow_values < 1:
            raise ValueError("row layout limits must be positive")


def _parse_config(data: dict) -> PaxConfig:
    """Build a :class:`PaxConfig` from a dictionary, rejecting unknown keys."""
    known = {f.name for f in fields(PaxConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    return PaxConfig(**data)


def load_config(path: str | Path | None = None) -> PaxConfig:
    """Load codec settings from a YAML file.

    Parameters
    ----------
    path : str or Path, optional
        Path to a YAML configuration file.  When *None* the built-in
        ``defaults.yaml`` shipped with the package is used.  Keys missing
        from the file keep their dataclass defaults.

    Returns
    -------
    PaxConfig
        Parsed settings.
    """
    if path is None:
        path = Path(__file__).parent / "configs" / "defaults.yaml"
    else:
        path = Path(path)

    with open(path, "r") as fh:
        data = yaml.safe_load(fh)

    return _parse_config(data or {})


@lru_cache(maxsize=1)
def default_config() -> PaxConfig:
    """Return the packaged defaults, loaded once."""
    return load_config()
