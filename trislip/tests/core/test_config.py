import json

import pydantic
import pytest
from trislip.core.config import InversionConfig
from trislip.core.weights import DEFAULT_CONSTRAINT_WEIGHT


def test_defaults():
    config = InversionConfig()
    assert config.beta == 0.0
    assert config.lock is None
    assert config.bounds is None
    assert config.noise == 0.0
    assert config.constraint_weight == DEFAULT_CONSTRAINT_WEIGHT
    assert config.scale_bounded_regularization is True
    assert config.smoothing_type == "umbrella"


def test_per_region_beta():
    assert InversionConfig(beta=[1.0, 2.0]).beta == [1.0, 2.0]


def test_extra_fields_forbidden():
    with pytest.raises(pydantic.ValidationError):
        InversionConfig(lambda_spatial=1.0)


@pytest.mark.parametrize(
    "options",
    [
        {"noise": -0.1},
        {"constraint_weight": 0.0},
        {"smoothing_type": "gradient"},
        {"bounds": (0.0, 1.0)},
        {"beta": -1.0},
        {"beta": [0.5, -0.1]},
    ],
)
def test_invalid_values(options):
    with pytest.raises(pydantic.ValidationError):
        InversionConfig(**options)


def test_from_file_resolves_relative_paths(tmp_path):
    config_file = tmp_path / "run_config.json"
    config_file.write_text(json.dumps({
        "beta": [0.1, 0.2],
        "lock": [1, 0],
        "bounds": [-1, -1, 1, 1],
        "kernel_file": "kernels/kernel.h5",
        "station_file_name": "/data/stations.csv",
        "output_path": "out",
    }))
    config = InversionConfig.from_file(config_file)

    assert config.file_name == config_file
    assert config.bounds == (-1.0, -1.0, 1.0, 1.0)
    assert config.kernel_file == tmp_path / "kernels" / "kernel.h5"
    assert config.output_path == tmp_path / "out"
    assert str(config.station_file_name) == "/data/stations.csv"
    assert config.mesh_file_name is None
