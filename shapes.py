from typing import Tuple
import numpy as np


def create_bell_shape(N=1000, A=1.0, sigma=0.6, noise_z_scale=0.03, noise_xy_scale=0.01, random_seed=123) -> Tuple[np.ndarray, np.ndarray]:
    """
    Create a bell-shaped surface (Gaussian bump) with noise.

    Parameters:
    - N: Number of points to sample.
    - A: Amplitude of the Gaussian bump.
    - sigma: Standard deviation of the Gaussian (controls width).
    - noise_z_scale: Standard deviation of the noise added to the z-values.
    - noise_xy_scale: Standard deviation of the noise added to the x and y-values.
    - random_seed: Seed for the random number generator.

    Returns:
    - X_noisy: Noisy 3D points sampled from the bell shape.
    - N_true: Upward unit normals of the clean surface at the same (x, y).
    """
    rng = np.random.default_rng(random_seed)
    r = sigma * np.sqrt(rng.uniform(0, 1, N)) * 1.6
    theta = rng.uniform(0, 2*np.pi, N)
    x = r * np.cos(theta)
    y = r * np.sin(theta)
    z_true = A * np.exp(-(x**2 + y**2) / (2*sigma**2))

    # Gradient of z = A exp(-(x^2+y^2)/(2 sigma^2)) gives the normal (-zx, -zy, 1)
    zx = -x / sigma**2 * z_true
    zy = -y / sigma**2 * z_true
    N_true = np.column_stack([-zx, -zy, np.ones(N)])
    N_true /= np.linalg.norm(N_true, axis=1, keepdims=True)

    noise_z = rng.normal(scale=noise_z_scale, size=N)
    noise_xy = rng.normal(scale=noise_xy_scale, size=(N,2))
    X_noisy = np.column_stack([x, y, z_true]) + np.column_stack([noise_xy, noise_z])

    return X_noisy, N_true


def create_sphere(N=2000, radius=1.0, center=(0.0, 0.0, 0.0), noise_scale=0.0, random_seed=123) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample a sphere on a Fibonacci spiral (near-uniform spacing).

    Returns:
    - X: (N, 3) points, optionally with radial noise.
    - N_true: (N, 3) outward unit normals.
    """
    rng = np.random.default_rng(random_seed)
    i = np.arange(N) + 0.5
    phi = np.arccos(1 - 2*i/N)
    theta = np.pi * (1 + 5**0.5) * i
    N_true = np.column_stack([np.cos(theta)*np.sin(phi), np.sin(theta)*np.sin(phi), np.cos(phi)])
    r = radius + rng.normal(scale=noise_scale, size=N) if noise_scale > 0 else np.full(N, radius)
    X = np.asarray(center, dtype=np.float64) + r[:, None] * N_true
    return X, N_true


def create_plane_grid(n=5, spacing=1.0, z=0.0) -> np.ndarray:
    """Regular n x n grid in the plane z = const, row-major (y outer, x inner)."""
    xs = np.arange(n) * spacing
    gx, gy = np.meshgrid(xs, xs)
    return np.column_stack([gx.ravel(), gy.ravel(), np.full(n*n, z)])
