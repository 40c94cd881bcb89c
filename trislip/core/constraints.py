from typing import Optional, Sequence
import numpy as np
from loguru import logger

from trislip.core.errors import InvalidLockSpecError
from trislip.core.fault import TriangularFaultMesh


def parse_lock_flags(lock: Optional[Sequence[float]], n_regions: int) -> np.ndarray:
    """
    Returns an (N, 2) boolean array of (up-dip, down-dip) lock flags.

    A lock vector of length N locks the up-dip edge of every region with a
    nonzero entry. A vector of length 2N holds (up-dip, down-dip) pairs per
    region: ``[up_0, down_0, up_1, down_1, ...]``.
    """
    flags = np.zeros((n_regions, 2), dtype=bool)
    if lock is None:
        return flags

    lock = np.atleast_1d(np.asarray(lock, dtype=float))
    if not np.all(np.isfinite(lock)):
        raise InvalidLockSpecError("Lock vector entries must be finite.")
    if lock.size == 1 and n_regions > 1 and lock[0] == 0:
        return flags
    if lock.size == n_regions:
        flags[:, 0] = lock != 0
    elif lock.size == 2 * n_regions:
        flags[:] = lock.reshape(n_regions, 2) != 0
    else:
        raise InvalidLockSpecError(
            f"Lock vector has {lock.size} entries; expected {n_regions} or "
            f"{2 * n_regions} for {n_regions} sub-regions."
        )
    return flags


class EdgeLockConstraints:
    """
    Builds rows pinning the slip of up-dip and down-dip edge elements to zero.
    """

    def locked_elements(self, mesh: TriangularFaultMesh, lock: Optional[Sequence[float]]) -> np.ndarray:
        """Returns the sorted indices of the elements selected by ``lock``."""
        flags = parse_lock_flags(lock, mesh.num_regions())
        if not flags.any():
            return np.zeros(0, dtype=int)

        top, bottom = mesh.get_edge_elements()
        selected = []
        for i, region in enumerate(mesh.region_slices()):
            in_region = np.zeros(mesh.num_patches(), dtype=bool)
            in_region[region] = True
            chosen = np.zeros(mesh.num_patches(), dtype=bool)
            for flag, edge, label in ((flags[i, 0], top, "up-dip"), (flags[i, 1], bottom, "down-dip")):
                if not flag:
                    continue
                if not np.any(edge & in_region):
                    logger.warning(
                        f"Sub-region '{mesh.region_names[i]}' is locked at its {label} edge "
                        "but has no elements there; no constraint rows added."
                    )
                chosen |= edge & in_region
            selected.append(np.flatnonzero(chosen))
        return np.concatenate(selected)

    def build(self, mesh: TriangularFaultMesh, lock: Optional[Sequence[float]]) -> np.ndarray:
        """
        Constructs the constraint matrix over trimmed slip components.

        Each locked element contributes a strike-slip and a dip-slip row,
        each a unit vector on that component with a target value of zero.

        Returns:
            A (K, 2M) array; (0, 2M) when nothing is locked.
        """
        n_cols = 2 * mesh.num_patches()
        elements = self.locked_elements(mesh, lock)
        if elements.size == 0:
            return np.zeros((0, n_cols))

        logger.info(f"Applying edge constraints to {elements.size} elements")
        components = np.column_stack((2 * elements, 2 * elements + 1)).ravel()
        constraints = np.zeros((components.size, n_cols))
        constraints[np.arange(components.size), components] = 1.0
        return constraints
