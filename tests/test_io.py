import numpy as np
import pytest

from pcnormals import PointCloudIOError, read_xyz, write_xyz


def test_roundtrip_with_normals(tmp_path, sphere):
    X, N = sphere
    path = tmp_path / "sphere.xyz"
    write_xyz(path, X, N)
    P, n = read_xyz(path)
    np.testing.assert_allclose(P, X, rtol=1e-8)
    np.testing.assert_allclose(n, N, rtol=1e-8, atol=1e-9)


def test_points_only_with_comments(tmp_path):
    path = tmp_path / "pts.XYZ"
    path.write_text("# header\n0 0 0\n1 2 3\n")
    P, n = read_xyz(path)
    assert n is None
    np.testing.assert_array_equal(P, [[0, 0, 0], [1, 2, 3]])


def test_single_row_and_empty_file(tmp_path):
    one = tmp_path / "one.xyz"
    one.write_text("1 2 3\n")
    assert read_xyz(one)[0].shape == (1, 3)

    empty = tmp_path / "empty.xyz"
    empty.write_text("")
    P, n = read_xyz(empty)
    assert P.shape == (0, 3)
    assert n is None


@pytest.mark.parametrize(
    "name, content",
    [
        ("cloud.ply", "0 0 0\n"),
        ("two.xyz", "0 0\n1 1\n"),
        ("bad.xyz", "0 0 zero\n"),
        ("nan.xyz", "0 0 0\nnan nan nan\n1 1 1\n"),
        ("inf.xyz", "0 0 0 0 0 1\n1 1 1 0 inf 1\n"),
    ],
)
def test_unreadable_files(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content)
    with pytest.raises(PointCloudIOError):
        read_xyz(path)


def test_missing_file(tmp_path):
    with pytest.raises(PointCloudIOError):
        read_xyz(tmp_path / "nope.xyz")
    with pytest.raises(OSError):
        read_xyz(tmp_path / "nope.xyz")


def test_write_rejects_mismatched_normals(tmp_path):
    with pytest.raises(ValueError):
        write_xyz(tmp_path / "x.xyz", np.zeros((3, 3)), np.zeros((2, 3)))
    with pytest.raises(PointCloudIOError):
        write_xyz(tmp_path / "x.txt", np.zeros((3, 3)))
