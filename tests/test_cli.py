import numpy as np

from cli_normals import main
from pcnormals import read_xyz, write_xyz
from shapes import create_sphere


def test_synthetic_sphere_succeeds(capsys):
    assert main(["--shape", "sphere", "--N", "500", "--estimator", "pca"]) == 0
    err = capsys.readouterr().err
    assert "[info] Tool returned 0" in err


def test_file_roundtrip_with_smoothing(tmp_path):
    X, N_true = create_sphere(N=500, noise_scale=0.002)
    src = tmp_path / "ball.xyz"
    write_xyz(src, X)
    out = tmp_path / "out"

    assert main([str(src), "--smooth", "--output-dir", str(out)]) == 0

    P, n = read_xyz(out / "ball_normals.xyz")
    np.testing.assert_allclose(P, X, rtol=1e-8)
    assert np.all(np.sum(n * N_true, axis=1) > 0)
    smoothed, none = read_xyz(out / "ball_smoothed.xyz")
    assert smoothed.shape == X.shape
    assert none is None


def test_bad_file_does_not_stop_the_run(tmp_path, capsys):
    X, _ = create_sphere(N=300)
    good = tmp_path / "good.xyz"
    write_xyz(good, X)
    missing = tmp_path / "missing.xyz"
    out = tmp_path / "out"

    assert main([str(missing), str(good), "--estimator", "pca", "--output-dir", str(out)]) == 1
    assert (out / "good_normals.xyz").exists()
    err = capsys.readouterr().err
    assert "[error]" in err
    assert "Tool returned 1" in err


def test_empty_file_fails(tmp_path):
    empty = tmp_path / "empty.xyz"
    empty.write_text("")
    assert main([str(empty)]) == 1


def test_degenerate_input_under_raise_policy(tmp_path):
    line = tmp_path / "line.xyz"
    write_xyz(line, np.column_stack([np.arange(20.0), np.zeros(20), np.zeros(20)]))
    assert main([str(line), "--on-degenerate", "raise"]) == 1


def test_non_finite_file_is_reported_and_skipped(tmp_path, capsys):
    bad = tmp_path / "bad.xyz"
    bad.write_text("0 0 0\n1 0 0\nnan nan nan\n0 1 0\n")
    X, _ = create_sphere(N=300)
    good = tmp_path / "good.xyz"
    write_xyz(good, X)
    out = tmp_path / "out"

    assert main([str(bad), str(good), "--estimator", "pca", "--output-dir", str(out)]) == 1
    assert (out / "good_normals.xyz").exists()
    assert not (out / "bad_normals.xyz").exists()
    err = capsys.readouterr().err
    assert "non-finite" in err
    assert "Tool returned 1" in err
