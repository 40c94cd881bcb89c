"""
This module contains the InversionOrchestrator, which is the main
user-facing API for setting up and running a slip inversion, together with
the assembler that stacks the kernel, smoothing and constraint blocks into
one weighted linear system.
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union
from abc import ABC, abstractmethod
import numpy as np
import pandas as pd
from loguru import logger
from scipy.sparse import issparse

from trislip.core.config import InversionConfig
from trislip.core.constraints import EdgeLockConstraints
from trislip.core.data import ObservationMode, StationSet
from trislip.core.dof import select_dofs
from trislip.core.errors import DimensionMismatchError, NoiseInjectionError
from trislip.core.fault import TriangularFaultMesh
from trislip.core.forward import predict_stations
from trislip.core.kernel import CachedKernel, InlineKernel, KernelSource, resolve_kernel
from trislip.core.physics import GreenFunctionBuilder
from trislip.core.regularization import (
    DistanceWeightedSmoothing,
    RegularizationManager,
    normalize_beta,
)
from trislip.core.solvers import (
    BoundedLsqSolver,
    SolverStrategy,
    WeightedNormalEquationsSolver,
    expand_bounds,
)
from trislip.core.weights import (
    assemble_weights,
    constraint_weights,
    observation_weights,
)


@dataclass
class LinearSystem:
    """
    The assembled inversion system.

    Rows are ordered [observations, regularization, constraints] in the
    design matrix, the data vector and the weights alike.
    """
    design: np.ndarray
    data: np.ndarray
    weights: np.ndarray
    n_observations: int
    n_regularization: int
    n_constraints: int
    regularization_beta: np.ndarray

    @property
    def regularization_rows(self) -> slice:
        return slice(self.n_observations, self.n_observations + self.n_regularization)


def synthetic_noise(
    stations: StationSet, fraction: float, rng: Optional[np.random.Generator] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Random-sign noise for the east and north components of every station.

    Each value is ``sign(z1) * fraction * (mean(sigma) + std(sigma) * z2)``
    with z1, z2 standard normal draws and the statistics taken over all
    stations for that component.

    Args:
        stations: The station set whose uncertainties scale the noise.
        fraction: Noise level; 0 gives zeros without drawing from ``rng``.
        rng: Caller-supplied random generator.

    Returns:
        (east_noise, north_noise), each of shape (N,).
    """
    n_stations = len(stations)
    if fraction == 0:
        return np.zeros(n_stations), np.zeros(n_stations)
    if rng is None:
        raise NoiseInjectionError("A random generator is required for nonzero noise.")
    if n_stations < 2:
        raise NoiseInjectionError(
            "At least two stations are needed to compute uncertainty statistics."
        )

    components = []
    for sigma in (stations.east_sigma, stations.north_sigma):
        mean, spread = np.mean(sigma), np.std(sigma, ddof=1)
        if not (np.isfinite(mean) and np.isfinite(spread)):
            raise NoiseInjectionError("Station uncertainty statistics are not finite.")
        sign = np.sign(rng.standard_normal(n_stations))
        components.append(sign * fraction * (mean + spread * rng.standard_normal(n_stations)))
    return components[0], components[1]


def data_vector(
    stations: StationSet,
    mode: ObservationMode,
    noise: Optional[Tuple[np.ndarray, np.ndarray]] = None,
) -> np.ndarray:
    """Observations interleaved per station as (east, north[, -up])."""
    n_comp = mode.n_components
    east_noise, north_noise = noise if noise is not None else (0.0, 0.0)
    d = np.zeros(n_comp * len(stations))
    d[0::n_comp] = stations.east + east_noise
    d[1::n_comp] = stations.north + north_noise
    if mode is ObservationMode.THREE_D:
        d[2::3] = -stations.up
    return d


def scale_regularization_rows(system: LinearSystem) -> LinearSystem:
    """
    Multiplies each regularization row of the design matrix by its region's beta.

    Applied only before a bounded solve, when enabled in the configuration.
    """
    design = system.design.copy()
    design[system.regularization_rows] *= system.regularization_beta[:, np.newaxis]
    return replace(system, design=design)


class AbstractAssembler(ABC):
    """
    Abstract base class for strategies that assemble the linear system.
    """

    @abstractmethod
    def assemble(
        self,
        kernel: np.ndarray,
        stations: StationSet,
        mode: ObservationMode,
        mesh: TriangularFaultMesh,
        regularization_manager: RegularizationManager,
        constraint_builder: EdgeLockConstraints,
        config: InversionConfig,
        noise: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> LinearSystem:
        """
        Assembles the weighted linear system.

        Args:
            kernel: The trimmed kernel.
            stations: The observed stations.
            mode: Observation mode the kernel was trimmed for.
            mesh: The triangular mesh.
            regularization_manager: Builds the smoothing operator and weights.
            constraint_builder: Builds the edge lock rows.
            config: Inversion settings (beta, lock, constraint weight).
            noise: Optional (east, north) noise added to the observations.

        Returns:
            The LinearSystem.
        """
        pass


class TriinvAssembler(AbstractAssembler):
    """
    Stacks [-kernel; smoothing; constraints] with matching data and weights.
    """

    def assemble(
        self,
        kernel: np.ndarray,
        stations: StationSet,
        mode: ObservationMode,
        mesh: TriangularFaultMesh,
        regularization_manager: RegularizationManager,
        constraint_builder: EdgeLockConstraints,
        config: InversionConfig,
        noise: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> LinearSystem:
        beta = normalize_beta(config.beta, mesh.num_regions())
        constraints = constraint_builder.build(mesh, config.lock)
        smoothing, reg_weights = regularization_manager.build(mesh, beta)
        if issparse(smoothing):
            smoothing = smoothing.toarray()

        obs_weights = observation_weights(stations, mode)
        weights = assemble_weights(
            obs_weights,
            reg_weights,
            constraint_weights(constraints.shape[0], config.constraint_weight),
        )

        logger.info("Assembling the Jacobian and data vector")
        design = np.vstack([-kernel, smoothing, constraints])
        data = np.concatenate([
            data_vector(stations, mode, noise),
            np.zeros(smoothing.shape[0]),
            np.zeros(constraints.shape[0]),
        ])

        if not (design.shape[0] == data.size == weights.size):
            raise DimensionMismatchError(
                f"Assembled rows disagree: design {design.shape[0]}, "
                f"data {data.size}, weights {weights.size}."
            )

        return LinearSystem(
            design=design,
            data=data,
            weights=weights,
            n_observations=kernel.shape[0],
            n_regularization=smoothing.shape[0],
            n_constraints=constraints.shape[0],
            regularization_beta=np.repeat(beta[mesh.region_index()], 2),
        )


class SlipDistribution:
    """
    The results of a slip inversion.

    Holds the estimated slip vector, ordered (strike, dip) per element, with
    the predicted station displacements, the trimmed kernel and the
    assembled system it was estimated from.

    In 3-D mode the vertical signs differ: ``data_vector`` holds the
    observed vertical negated (positive down, matching ``-kernel @ slip``),
    while ``predicted.up`` is positive up like the observed ``up``. Compare
    ``predicted.up`` with ``stations.up``, or ``-predicted.up`` with
    ``data_vector[2::3]``.
    """

    def __init__(
        self,
        slip_vector: np.ndarray,
        mesh: TriangularFaultMesh,
        predicted: StationSet,
        kernel: np.ndarray,
        system: LinearSystem,
        mode: ObservationMode,
    ):
        self.slip_vector = slip_vector
        self.mesh = mesh
        self.predicted = predicted
        self.kernel = kernel
        self.system = system
        self.mode = mode

    @property
    def data_vector(self) -> np.ndarray:
        return self.system.data

    @property
    def strike_slip(self) -> np.ndarray:
        return self.slip_vector[0::2]

    @property
    def dip_slip(self) -> np.ndarray:
        return self.slip_vector[1::2]

    def region_slip(self, region: int) -> np.ndarray:
        """(n_elements, 2) strike and dip slip of one sub-region."""
        elements = self.mesh.region_slices()[region]
        return np.column_stack((self.strike_slip[elements], self.dip_slip[elements]))

    def to_dataframe(self) -> pd.DataFrame:
        regions = self.mesh.region_index()
        return pd.DataFrame({
            "element": np.arange(self.mesh.num_patches()),
            "region": [self.mesh.region_names[i] for i in regions],
            "strike_slip": self.strike_slip,
            "dip_slip": self.dip_slip,
        })


class InversionOrchestrator:
    """
    The user-facing API that orchestrates the slip inversion process.

    This class ties together stations, the mesh, the kernel source and the
    solvers to construct and solve the linear inverse problem. Every call
    to `run_inversion` resolves the kernel, assembles and solves afresh;
    no state is carried between calls.
    """

    def __init__(self):
        self.stations: Optional[StationSet] = None
        self.mesh: Optional[TriangularFaultMesh] = None
        self.engine: Optional[GreenFunctionBuilder] = None
        self.kernel_source: Optional[KernelSource] = None
        self.solver: SolverStrategy = WeightedNormalEquationsSolver()
        self.bounded_solver: SolverStrategy = BoundedLsqSolver()
        self.assembler: AbstractAssembler = TriinvAssembler()
        self.constraint_builder = EdgeLockConstraints()

    def set_mesh(self, mesh: TriangularFaultMesh):
        """Sets the triangular mesh."""
        self.mesh = mesh

    def set_stations(self, stations: StationSet):
        """Sets the observed station set."""
        self.stations = stations

    def set_engine(self, engine: GreenFunctionBuilder):
        """Sets the Green's function engine."""
        self.engine = engine

    def set_kernel_source(self, source: KernelSource):
        """Sets an inline kernel or a kernel cache file."""
        self.kernel_source = source

    def set_solver(self, solver: SolverStrategy):
        """Sets the solver used when no bounds are given."""
        self.solver = solver

    def set_bounded_solver(self, solver: SolverStrategy):
        """Sets the solver used when bounds are given."""
        self.bounded_solver = solver

    def set_assembler(self, assembler: AbstractAssembler):
        """
        Sets the assembly strategy for constructing the linear system.

        Args:
            assembler: An instance of a class implementing AbstractAssembler.
        """
        self.assembler = assembler

    def _check_ready(self):
        if self.mesh is None:
            raise ValueError("No fault mesh has been set.")
        if self.stations is None:
            raise ValueError("No station set has been set.")

    def _resolve_kernel(self, config: InversionConfig) -> np.ndarray:
        source = self.kernel_source
        if source is None and config.kernel_file is not None:
            source = CachedKernel(config.kernel_file)
        if source is not None:
            return resolve_kernel(source, self.stations, self.mesh, self.engine)
        if self.engine is None:
            raise ValueError("No kernel source or GreenFunctionBuilder engine has been set.")
        logger.info("Calculating elastic partials")
        return resolve_kernel(
            InlineKernel(self.engine.build_kernel(self.mesh, self.stations)),
            self.stations,
            self.mesh,
        )

    def _solve(
        self,
        kernel: np.ndarray,
        mode: ObservationMode,
        config: InversionConfig,
        noise: Tuple[np.ndarray, np.ndarray],
    ) -> Tuple[np.ndarray, LinearSystem]:
        regularization = DistanceWeightedSmoothing(type=config.smoothing_type)
        system = self.assembler.assemble(
            kernel,
            self.stations,
            mode,
            self.mesh,
            regularization,
            self.constraint_builder,
            config,
            noise,
        )

        logger.info("Doing the inversion")
        if config.bounds is not None:
            bounds = expand_bounds(config.bounds, self.mesh.num_patches())
            solved_system = system
            if config.scale_bounded_regularization:
                solved_system = scale_regularization_rows(system)
            slip = self.bounded_solver.solve(
                solved_system.design, solved_system.data, solved_system.weights, bounds
            )
        else:
            slip = self.solver.solve(system.design, system.data, system.weights)
        logger.success("Finished the inversion")
        return slip, system

    def run_inversion(
        self,
        config: Optional[InversionConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> SlipDistribution:
        """
        Executes the slip inversion.

        Args:
            config: Inversion settings; defaults to InversionConfig().
            rng: Random generator for synthetic noise. Defaults to one seeded
                 with ``config.seed``.

        Returns:
            A SlipDistribution with the estimated slip and the predicted stations.
        """
        if config is None:
            config = InversionConfig()
        self._check_ready()

        kernel = self._resolve_kernel(config)
        selection = select_dofs(kernel, self.stations, self.mesh)

        if rng is None:
            rng = np.random.default_rng(config.seed)
        noise = synthetic_noise(self.stations, config.noise, rng)

        slip, system = self._solve(selection.kernel, selection.mode, config, noise)
        predicted = predict_stations(selection.kernel, slip, self.stations, selection.mode)
        return SlipDistribution(
            slip_vector=slip,
            mesh=self.mesh,
            predicted=predicted,
            kernel=selection.kernel,
            system=system,
            mode=selection.mode,
        )

    def run_l_curve(
        self,
        betas: Sequence[float],
        config: Optional[InversionConfig] = None,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Runs the inversion for a range of beta values to generate an L-curve.

        The kernel is resolved once and reused for every beta. Noise is not
        injected.

        Args:
            betas: Regularization strengths to test, applied to every sub-region.
            config: Remaining inversion settings; its beta and noise are ignored.

        Returns:
            A tuple containing:
            - The array of betas used.
            - The weighted data misfit of each solution.
            - The roughness ||S m|| of each solution, S the unscaled smoothing operator.
        """
        if config is None:
            config = InversionConfig()
        self._check_ready()

        kernel = self._resolve_kernel(config)
        selection = select_dofs(kernel, self.stations, self.mesh)
        smoothing, _ = DistanceWeightedSmoothing(type=config.smoothing_type).build(self.mesh, 1.0)
        no_noise = synthetic_noise(self.stations, 0.0)

        misfits = []
        roughnesses = []
        for beta in betas:
            run_config = config.model_copy(update={"beta": float(beta), "noise": 0.0})
            m, system = self._solve(selection.kernel, selection.mode, run_config, no_noise)

            n_obs = system.n_observations
            residual = system.design[:n_obs] @ m - system.data[:n_obs]
            misfits.append(np.linalg.norm(np.sqrt(system.weights[:n_obs]) * residual))
            roughnesses.append(np.linalg.norm(smoothing @ m))

        return np.asarray(betas, dtype=float), np.array(misfits), np.array(roughnesses)


def triinv(
    stations: StationSet,
    mesh: TriangularFaultMesh,
    beta: Union[float, Sequence[float]],
    kernel: Union[np.ndarray, str, Path, InlineKernel, CachedKernel],
    noise: float = 0.0,
    lock: Optional[Sequence[float]] = None,
    lims: Optional[Sequence[float]] = None,
    rng: Optional[np.random.Generator] = None,
    engine: Optional[GreenFunctionBuilder] = None,
    **config_options,
) -> Tuple[np.ndarray, StationSet, np.ndarray, np.ndarray]:
    """
    Inverts station displacements for slip on a triangular mesh.

    Args:
        stations: Observed displacements or velocities.
        mesh: The triangular mesh, optionally split into sub-regions.
        beta: Smoothing strength, scalar or one value per sub-region.
        kernel: A (3N, 3M) kernel array, or the path of an HDF5 file to load
                the kernel from (or compute and save it to, using ``engine``).
        noise: Synthetic noise fraction of the station uncertainties.
        lock: Optional edge lock vector of N or 2N entries.
        lims: Optional (strike_low, dip_low, strike_high, dip_high); selects
              the bounded solve.
        rng: Random generator for the noise.
        engine: Green's function engine for computing a missing cached kernel.
        **config_options: Any other InversionConfig field.

    Returns:
        (slip, predicted stations, trimmed kernel, data vector).
    """
    if isinstance(kernel, (str, Path)):
        source = CachedKernel(Path(kernel))
    elif isinstance(kernel, (InlineKernel, CachedKernel)):
        source = kernel
    else:
        source = InlineKernel(np.asarray(kernel, dtype=float))

    config = InversionConfig(
        beta=np.asarray(beta, dtype=float).tolist(),
        noise=float(noise),
        lock=None if lock is None else np.atleast_1d(lock).astype(float).tolist(),
        bounds=None if lims is None else tuple(float(v) for v in lims),
        **config_options,
    )

    orchestrator = InversionOrchestrator()
    orchestrator.set_stations(stations)
    orchestrator.set_mesh(mesh)
    orchestrator.set_kernel_source(source)
    if engine is not None:
        orchestrator.set_engine(engine)

    result = orchestrator.run_inversion(config, rng=rng)
    return result.slip_vector, result.predicted, result.kernel, result.data_vector
