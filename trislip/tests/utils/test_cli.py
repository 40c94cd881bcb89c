import json

import numpy as np
import pandas as pd
import pytest
from scipy.io import savemat
from trislip.cli import main, parse_args, process_args
from trislip.core.config import InversionConfig
from trislip.core.kernel import save_kernel

N_STATIONS = 10


@pytest.fixture
def run_directory(tmp_path, dipping_mesh):
    """A config, station table, .mat mesh and cached kernel in one directory."""
    vertices, faces = dipping_mesh.get_mesh_geometry()
    savemat(str(tmp_path / "mesh.mat"), {"c": vertices, "v": faces + 1, "nEl": np.array([[4]])})

    rng = np.random.default_rng(21)
    pd.DataFrame({
        'Station': [f"S{i:02d}" for i in range(N_STATIONS)],
        'Lat': 35.0 + rng.uniform(-0.2, 0.2, N_STATIONS),
        'Lon': 135.0 + rng.uniform(-0.2, 0.2, N_STATIONS),
        'E': rng.normal(size=N_STATIONS),
        'N': rng.normal(size=N_STATIONS),
        'SigE': np.ones(N_STATIONS),
        'SigN': np.ones(N_STATIONS),
    }).to_csv(tmp_path / "stations.csv", index=False)

    save_kernel(tmp_path / "kernel.h5", rng.normal(size=(3 * N_STATIONS, 12)), N_STATIONS, 4)

    config_file = tmp_path / "run_config.json"
    config_file.write_text(json.dumps({
        "beta": 0.5,
        "lock": [1],
        "station_file_name": "stations.csv",
        "mesh_file_name": "mesh.mat",
        "kernel_file": "kernel.h5",
        "origin_lon": 135.0,
        "origin_lat": 35.0,
        "output_path": "output",
    }))
    return tmp_path


def test_process_args_overrides(tmp_path):
    config = InversionConfig(beta=1.0, noise=0.1)
    args = parse_args(["config.json", "--beta", "0.2", "0.3", "--seed", "4", "--output_path", "out"])
    updated = process_args(config, args)
    assert updated.beta == [0.2, 0.3]
    assert updated.seed == 4
    assert updated.noise == 0.1
    assert str(updated.output_path) == "out"


def test_process_args_single_beta():
    args = parse_args(["config.json", "--beta", "2.0"])
    assert process_args(InversionConfig(), args).beta == 2.0


def test_main_writes_results(run_directory):
    assert main([str(run_directory / "run_config.json")]) == 0

    slip = pd.read_csv(run_directory / "output" / "slip.csv")
    assert len(slip) == 4
    # lock=[1] pins the up-dip elements
    np.testing.assert_allclose(slip.loc[[0, 2], ["strike_slip", "dip_slip"]], 0.0, atol=1e-3)

    predicted = pd.read_csv(run_directory / "output" / "predicted_stations.csv")
    assert len(predicted) == N_STATIONS


def test_main_requires_inputs(tmp_path):
    config_file = tmp_path / "run_config.json"
    config_file.write_text(json.dumps({"beta": 0.5}))
    assert main([str(config_file)]) == 1
