from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from trislip.core.weights import DEFAULT_CONSTRAINT_WEIGHT


class InversionConfig(BaseModel):
    """Settings of one inversion call.

    Passed explicitly through the pipeline; nothing reads shared state.
    """

    # Forbid extra fields when reading from JSON
    model_config = ConfigDict(extra="forbid")

    file_name: Path | None = None
    """Location of the config file itself, when read from disk."""

    beta: float | list[float] = 0.0
    """Regularization strength, a scalar or one value per sub-region."""

    lock: list[float] | None = None
    """Edge lock flags, N (up-dip) or 2N (up-dip, down-dip pairs) entries."""

    bounds: tuple[float, float, float, float] | None = None
    """(strike_low, dip_low, strike_high, dip_high); selects the bounded solve."""

    noise: float = 0.0
    """Synthetic noise as a fraction of the station uncertainty statistics."""

    seed: int | None = None
    """Seed of the random generator used for synthetic noise."""

    kernel_file: Path | None = None
    """HDF5 file the elastic kernel is loaded from or saved to."""

    constraint_weight: float = DEFAULT_CONSTRAINT_WEIGHT
    """Weight of every edge lock row."""

    scale_bounded_regularization: bool = True
    """Multiply regularization rows by beta before a bounded solve."""

    smoothing_type: str = "umbrella"
    """Smoothing operator, 'umbrella' or 'simple'."""

    poisson_ratio: float = 0.25

    # Inputs and outputs used by the command line
    station_file_name: Path | None = None
    mesh_file_name: Path | None = None
    n_elements: list[int] | None = None
    origin_lon: float = 0.0
    origin_lat: float = 0.0
    output_path: Path | None = None

    @field_validator("noise")
    @classmethod
    def _noise_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("noise must be non-negative")
        return value

    @field_validator("beta")
    @classmethod
    def _beta_non_negative(cls, value: float | list[float]) -> float | list[float]:
        values = value if isinstance(value, list) else [value]
        if any(beta < 0 for beta in values):
            raise ValueError("beta must be non-negative")
        return value

    @field_validator("constraint_weight")
    @classmethod
    def _weight_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("constraint_weight must be positive")
        return value

    @field_validator("smoothing_type")
    @classmethod
    def _known_smoothing(cls, value: str) -> str:
        if value not in ("umbrella", "simple"):
            raise ValueError(f"Unknown smoothing_type '{value}'")
        return value

    @classmethod
    def from_file(cls, file_name: Path | str) -> InversionConfig:
        """Read config from a JSON file and return an InversionConfig instance.

        Relative paths in the file are resolved against the directory holding it.
        """
        file_name = Path(file_name)
        with file_name.open() as config_file:
            config_data = json.load(config_file)
        config_data["file_name"] = file_name

        for key in ("kernel_file", "station_file_name", "mesh_file_name", "output_path"):
            value = config_data.get(key)
            if value is not None and not Path(value).is_absolute():
                config_data[key] = file_name.parent / value

        return cls(**config_data)
