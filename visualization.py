import matplotlib.pyplot as plt
import numpy as np


def visualize(X: np.ndarray, normals: np.ndarray, X_smooth: np.ndarray = None, oriented: np.ndarray = None, step: int = 10):

    # --------------------- Visualizations ---------------------
    # 1) Input cloud (3D scatter)
    fig1 = plt.figure(figsize=(6,6))
    ax1 = fig1.add_subplot(111, projection='3d')
    ax1.scatter(X[:,0], X[:,1], X[:,2], s=2)
    ax1.set_title("Input Point Cloud (scatter)")
    ax1.set_xlabel("X"); ax1.set_ylabel("Y"); ax1.set_zlabel("Z")
    plt.show()

    # 2) Normals quiver on a subsample; unoriented points in red
    Qp = X[::step]
    Qn = normals[::step]
    colors = "tab:blue"
    if oriented is not None:
        colors = np.where(oriented[::step], "tab:blue", "tab:red")
    fig2 = plt.figure(figsize=(6,6))
    ax2 = fig2.add_subplot(111, projection='3d')
    ax2.scatter(Qp[:,0], Qp[:,1], Qp[:,2], s=6, c=colors)
    ax2.quiver(Qp[:,0], Qp[:,1], Qp[:,2], Qn[:,0], Qn[:,1], Qn[:,2], length=0.1, normalize=True)
    ax2.set_title("Oriented Normals")
    ax2.set_xlabel("X"); ax2.set_ylabel("Y"); ax2.set_zlabel("Z")
    plt.show()

    if X_smooth is None:
        return

    # 3) PCA-smoothed cloud
    fig3 = plt.figure(figsize=(6,6))
    ax3 = fig3.add_subplot(111, projection='3d')
    ax3.scatter(X_smooth[:,0], X_smooth[:,1], X_smooth[:,2], s=2)
    ax3.set_title("PCA-Smoothed Point Cloud (scatter)")
    ax3.set_xlabel("X"); ax3.set_ylabel("Y"); ax3.set_zlabel("Z")
    plt.show()

    # Smoothing magnitude
    rms_disp = np.sqrt(np.mean(np.sum((X - X_smooth)**2, axis=1)))

    print(f"RMS displacement between input and smoothed points: {rms_disp:.5f}")
