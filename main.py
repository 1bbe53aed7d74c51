# --------------------- Estimate, orient and smooth a noisy sphere ---------------------
import time

import numpy as np

from shapes import create_sphere
from visualization import visualize
from pcnormals import (
    NormalEstimationParams,
    NormalEstimator,
    OrientationParams,
    OrientationPropagator,
    PointSmoother,
    SmoothingParams,
    TorchKernel,
)


X, N_true = create_sphere(N=20000, radius=1.0, noise_scale=0.01, random_seed=123)

# --------------------- Normals (NumPy kernel) ---------------------
start = time.time()
normals = NormalEstimator(NormalEstimationParams(k=12)).estimate(X)
result = OrientationPropagator(OrientationParams(k=12)).orient(X, normals)
end = time.time()
print(f"Normals + orientation time: {end - start:.4f} seconds")

agreement = np.mean(np.sum(result.normals.vectors * N_true, axis=1) > 0)
print(f"Outward-facing normals: {agreement * 100:.2f}% | components: {result.n_components}")

# --------------------- Same estimate on the torch kernel ---------------------
start = time.time()
normals_t = NormalEstimator(NormalEstimationParams(k=12), kernel=TorchKernel()).estimate(X)
end = time.time()
same_line = np.abs(np.sum(normals_t.vectors * normals.vectors, axis=1)).min()
print(f"Torch kernel time: {end - start:.4f} seconds | min |cos| vs NumPy: {same_line:.6f}")

# --------------------- Smoothing ---------------------
start = time.time()
X_smooth = PointSmoother(SmoothingParams(k=24)).smooth(X).points
end = time.time()
print(f"PCA smoothing time: {end - start:.4f} seconds")

visualize(X, result.normals.vectors, X_smooth, oriented=result.normals.oriented, step=40)
