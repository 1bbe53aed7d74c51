# cli_normals.py
from __future__ import annotations
import argparse, logging, sys, time
from pathlib import Path

import numpy as np

from shapes import create_bell_shape, create_plane_grid, create_sphere
from pcnormals import (
    JetParams,
    NormalEstimationError,
    NormalEstimationParams,
    NormalEstimator,
    OrientationParams,
    OrientationPropagator,
    PointSmoother,
    SmoothingParams,
    build_neighbor_query,
    get_kernel,
    read_xyz,
    write_xyz,
)
from pcnormals._utils import UNIT_TOL


# Optional Open3D (import only if requested)
def _maybe_import_open3d():
    try:
        import open3d as o3d
        return o3d
    except Exception as e:
        print(f"[warn] Open3D not available: {e}", file=sys.stderr)
        return None


def _log(level: str, msg: str) -> None:
    print(f"[{level}] {msg}", file=sys.stderr)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="For each input point set, estimate, orient and check its normals",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("files", nargs="*", help=".xyz files; a synthetic --shape is used when none is given")

    # Synthetic input
    syn = p.add_argument_group("synthetic input")
    syn.add_argument("--shape", choices=["sphere", "bell", "plane"], default="sphere", help="synthetic shape")
    syn.add_argument("--N", type=int, default=5_000, help="number of points")
    syn.add_argument("--noise", type=float, default=0.0, help="noise stddev")
    syn.add_argument("--seed", type=int, default=123, help="random seed")

    # Normal estimation
    est = p.add_argument_group("normals")
    est.add_argument("--k", type=int, default=10, help="neighbors for kNN")
    est.add_argument("--estimator", choices=["pca", "jet", "both"], default="both",
                     help="local estimator; 'both' runs PCA then jet and orients the jet normals")
    est.add_argument("--degree", type=int, choices=[1, 2], default=2, help="jet polynomial degree")
    est.add_argument("--h", type=float, default=1.5, help="jet h_multiplier (Gaussian bandwidth scale)")
    est.add_argument("--on-degenerate", choices=["raise", "default", "skip"], default="default",
                     help="policy for degenerate neighborhoods")

    # Smoothing
    sm = p.add_argument_group("smoothing")
    sm.add_argument("--smooth", action="store_true", help="also run PCA smoothing")
    sm.add_argument("--smooth-k", type=int, default=None, help="neighbors for smoothing (default: --k)")
    sm.add_argument("--smooth-iters", type=int, default=1, help="smoothing passes")

    # Backend
    back = p.add_argument_group("backend")
    back.add_argument("--kernel", choices=["numpy", "torch"], default="numpy", help="geometric kernel")
    back.add_argument("--index", choices=["kdtree", "brute"], default="kdtree", help="neighbor index")

    # I/O and viz
    io = p.add_argument_group("IO")
    io.add_argument("--output-dir", type=str, default=None,
                    help="write <name>_normals.xyz (and <name>_smoothed.xyz) here")
    io.add_argument("--show-open3d", action="store_true", help="visualize with Open3D")
    io.add_argument("--verbose", action="store_true", help="debug logging")
    return p.parse_args(argv)


def _synthetic(args) -> np.ndarray:
    if args.shape == "sphere":
        X, _ = create_sphere(N=args.N, noise_scale=args.noise, random_seed=args.seed)
    elif args.shape == "bell":
        X, _ = create_bell_shape(N=args.N, noise_z_scale=args.noise, noise_xy_scale=args.noise, random_seed=args.seed)
    else:
        n = max(2, int(round(np.sqrt(args.N))))
        X = create_plane_grid(n=n, spacing=1.0 / n)
    return X


def process(name: str, points: np.ndarray, args, kernel) -> bool:
    """Estimate, orient, check and optionally smooth one point set. Returns True on success."""
    if len(points) == 0:
        _log("error", f"{name}: empty file")
        return False

    t0 = time.time()
    query = build_neighbor_query(points, args.index)
    kinds = ["pca", "jet"] if args.estimator == "both" else [args.estimator]
    normals = None
    for kind in kinds:
        params = NormalEstimationParams(
            k=args.k,
            estimator=kind,
            on_degenerate=args.on_degenerate,
            jet=JetParams(degree=args.degree, h_multiplier=args.h),
        )
        t = time.time()
        normals = NormalEstimator(params, kernel=kernel).estimate(points, query=query)
        _log("info", f"{name}: {kind} normals (k={args.k}) in {time.time() - t:.3f} s, "
                     f"{len(normals.failed)} degenerate")

    t = time.time()
    result = OrientationPropagator(OrientationParams(k=args.k), kernel=kernel).orient(points, normals, query=query)
    _log("info", f"{name}: oriented in {time.time() - t:.3f} s, {result.n_components} component(s)")

    ok = True
    if not result.normals.check_unit(UNIT_TOL):
        _log("error", f"{name}: normal(s) are not unit length")
        ok = False
    if result.n_unoriented > 0:
        _log("error", f"{name}: {result.n_unoriented} normal(s) are unoriented")
        ok = False

    smoothed = None
    if args.smooth:
        sp = SmoothingParams(k=args.smooth_k or args.k, iterations=args.smooth_iters, neighbor_backend=args.index)
        sres = PointSmoother(sp, kernel=kernel).smooth(points)
        smoothed = sres.points
        _log("info", f"{name}: smoothed, max displacement {sres.max_displacement:.4g}")

    if args.output_dir:
        out = Path(args.output_dir)
        out.mkdir(parents=True, exist_ok=True)
        stem = Path(name).stem
        write_xyz(out / f"{stem}_normals.xyz", points, result.normals.vectors)
        if smoothed is not None:
            write_xyz(out / f"{stem}_smoothed.xyz", smoothed)

    if args.show_open3d:
        o3d = _maybe_import_open3d()
        if o3d is None:
            _log("warn", "Skipping Open3D visualization.")
        else:
            pcd = o3d.geometry.PointCloud()
            pcd.points = o3d.utility.Vector3dVector(points if smoothed is None else smoothed)
            pcd.normals = o3d.utility.Vector3dVector(result.normals.vectors)
            pcd.paint_uniform_color([0, 1, 0])  # green
            o3d.visualization.draw_geometries([pcd], point_show_normal=True)

    _log("info", f"{name}: {len(points)} points done in {time.time() - t0:.3f} s")
    return ok


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    np.random.seed(args.seed)
    kernel = get_kernel(args.kernel)

    inputs = args.files or [f"synthetic_{args.shape}.xyz"]
    accumulated_err = 0
    for name in inputs:
        try:
            if args.files:
                t = time.time()
                points, _ = read_xyz(name)
                _log("info", f"Read file {name}: {len(points)} points, {time.time() - t:.3f} s")
            else:
                points = _synthetic(args)
            if not process(name, points, args, kernel):
                accumulated_err = 1
        except NormalEstimationError as e:
            _log("error", f"{name}: {e}")
            accumulated_err = 1

    _log("info", f"Tool returned {accumulated_err}")
    return accumulated_err


if __name__ == "__main__":
    sys.exit(main())
