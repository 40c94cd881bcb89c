import numpy as np
from trislip.core.config import InversionConfig
from trislip.core.data import StationSet
from trislip.core.fault import TriangularFaultMesh
from trislip.core.forward import predict_displacements
from trislip.core.physics import CutdeCpuEngine
from trislip.core.inversion import InversionOrchestrator
from trislip.core.kernel import InlineKernel
from trislip.core.dof import select_dofs

def create_dipping_fault():
    """
    Creates a dipping rectangular fault made of eight triangles in two
    sub-regions. Coordinates are in kilometres, z negative down.
    """
    xs = np.array([-10., -5., 0., 5., 10.])
    top = np.column_stack((xs, np.full(5, -5.), np.full(5, -1.)))
    bottom = np.column_stack((xs, np.full(5, 5.), np.full(5, -9.)))
    vertices = np.vstack((top, bottom))

    faces = []
    for i in range(4):
        faces.append([i, i + 1, 5 + i])
        faces.append([i + 1, 6 + i, 5 + i])
    return TriangularFaultMesh(
        mesh_input=(vertices, np.array(faces)),
        n_elements=[4, 4],
        region_names=["west", "east"],
    )

def main():
    """
    Runs a full example of a smoothed, up-dip locked slip inversion.
    """
    # 1. Create the fault model
    fault = create_dipping_fault()
    n_patches = fault.num_patches()

    # 2. Define a grid of observation points on the surface (z=0)
    x_coords = np.arange(-20., 21., 5.)
    y_coords = np.arange(-20., 21., 5.)
    xv, yv = np.meshgrid(x_coords, y_coords)
    obs_pts = np.vstack([xv.flatten(), yv.flatten(), np.zeros_like(xv.flatten())]).T
    n_obs = obs_pts.shape[0]

    # 3. Create a synthetic "true" slip distribution, ordered (strike, dip) per element
    true_slip = np.zeros(2 * n_patches)
    true_slip[0::2] = 1.0  # strike slip
    true_slip[1::2] = 0.5  # dip slip

    # 4. Generate synthetic horizontal displacements (forward model)
    dummy = StationSet(
        coords=obs_pts,
        east=np.zeros(n_obs),
        north=np.zeros(n_obs),
        east_sigma=np.ones(n_obs),
        north_sigma=np.ones(n_obs),
    )
    engine = CutdeCpuEngine(poisson_ratio=0.25)
    kernel = engine.build_kernel(fault, dummy)
    trimmed = select_dofs(kernel, dummy, fault).kernel
    true_disp = predict_displacements(trimmed, true_slip)

    sigma = 0.01
    stations = StationSet(
        name="synthetic_data",
        coords=obs_pts,
        east=true_disp[0::2],
        north=true_disp[1::2],
        east_sigma=np.full(n_obs, sigma),
        north_sigma=np.full(n_obs, sigma),
    )

    # 5. Set up the inversion, reusing the kernel computed above
    inversion = InversionOrchestrator()
    inversion.set_mesh(fault)
    inversion.set_stations(stations)
    inversion.set_kernel_source(InlineKernel(kernel))

    # 6. Run the inversion with noise, smoothing and non-negative bounded slip
    config = InversionConfig(
        beta=[0.05, 0.05],
        noise=1.0,
        seed=0,
        bounds=(0.0, 0.0, 2.0, 2.0),
    )
    result = inversion.run_inversion(config)

    # 7. Report the results
    print("--- Slip Inversion Example ---")
    print(f"Number of elements: {n_patches} in {fault.num_regions()} sub-regions")
    print(f"Number of stations: {n_obs}")
    print(f"Regularization beta: {config.beta}\n")
    print(result.to_dataframe().round(3))

    misfit = np.linalg.norm(result.slip_vector - true_slip)
    print(f"\nL2 misfit between true and inverted slip: {misfit:.4f}")

    # 8. Trade-off between fit and roughness
    betas, misfits, roughnesses = inversion.run_l_curve([0.01, 0.1, 1.0, 10.0], config)
    for beta, fit, rough in zip(betas, misfits, roughnesses):
        print(f"beta={beta:6.2f}  misfit={fit:10.3f}  roughness={rough:10.4f}")

if __name__ == "__main__":
    main()
