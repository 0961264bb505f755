import numpy as np
import pytest

from robocup_vision.intrinsics import DistortionModel, Intrinsics

COEFFS = [0.1, 0.01, 0.001, 0.0001, 0.00001]


def _check_reference(intrinsics):
    assert intrinsics.fx == pytest.approx(500.0)
    assert intrinsics.fy == pytest.approx(500.0)
    assert intrinsics.cx == pytest.approx(320.0)
    assert intrinsics.cy == pytest.approx(240.0)
    assert len(intrinsics.distortion_coeffs) == 5
    assert intrinsics.model is DistortionModel.BROWN_CONRADY


def test_constructor_from_yaml_node():
    node = {
        "fx": 500.0,
        "fy": 500.0,
        "cx": 320.0,
        "cy": 240.0,
        "distortion_coeffs": COEFFS,
        "distortion_model": 1,
    }
    _check_reference(Intrinsics.from_yaml(node))


def test_constructor_from_matrix_and_distortion_coeffs():
    matrix = np.array([[500.0, 0, 320.0], [0, 500.0, 240.0], [0, 0, 1]], dtype=np.float32)
    _check_reference(Intrinsics.from_matrix(matrix, COEFFS, DistortionModel.BROWN_CONRADY))


def test_constructor_from_float_values():
    _check_reference(Intrinsics(500.0, 500.0, 320.0, 240.0, COEFFS, DistortionModel.BROWN_CONRADY))


def test_project():
    intrinsics = Intrinsics(500.0, 500.0, 320.0, 240.0)
    u, v = intrinsics.project((1.0, 1.0, 1.0))
    assert u == pytest.approx(820.0)
    assert v == pytest.approx(740.0)


def test_back_project():
    intrinsics = Intrinsics(500.0, 500.0, 320.0, 240.0)
    assert intrinsics.back_project((820.0, 740.0), 1.0) == pytest.approx((1.0, 1.0, 1.0))


def test_undistort():
    intrinsics = Intrinsics(500.0, 500.0, 320.0, 240.0)
    assert intrinsics.undistort((820.0, 740.0)) == pytest.approx((820.0, 740.0))


def test_from_matrix_rejects_wrong_shape():
    with pytest.raises(ValueError):
        Intrinsics.from_matrix(np.eye(4))


def test_from_yaml_rejects_empty_node():
    with pytest.raises(ValueError):
        Intrinsics.from_yaml(None)


def test_from_yaml_rejects_missing_key():
    with pytest.raises(ValueError):
        Intrinsics.from_yaml({"fx": 1.0, "fy": 1.0})


def test_yaml_round_trip():
    original = Intrinsics(500.0, 510.0, 320.0, 240.0, COEFFS, DistortionModel.BROWN_CONRADY)
    assert Intrinsics.from_yaml(original.to_yaml()) == original


def test_matrix_layout():
    intrinsics = Intrinsics(500.0, 510.0, 320.0, 240.0)
    np.testing.assert_allclose(
        intrinsics.matrix(), [[500.0, 0, 320.0], [0, 510.0, 240.0], [0, 0, 1]]
    )


def test_project_back_project_round_trip():
    intrinsics = Intrinsics(500.0, 510.0, 320.0, 240.0)
    point = intrinsics.back_project((100.0, 400.0), 2.5)
    assert point[2] == pytest.approx(2.5)
    assert intrinsics.project(point) == pytest.approx((100.0, 400.0))


@pytest.mark.parametrize(
    "model", [DistortionModel.BROWN_CONRADY, DistortionModel.INVERSE_BROWN_CONRADY]
)
def test_zero_distortion_matches_pinhole(model):
    plain = Intrinsics(500.0, 510.0, 320.0, 240.0)
    distorted = Intrinsics(500.0, 510.0, 320.0, 240.0, [0.0] * 5, model)
    assert distorted.back_project((50.0, 70.0), 3.0) == pytest.approx(
        plain.back_project((50.0, 70.0), 3.0)
    )


@pytest.mark.parametrize(
    "model", [DistortionModel.BROWN_CONRADY, DistortionModel.INVERSE_BROWN_CONRADY]
)
def test_principal_point_is_fixed_under_distortion(model):
    intrinsics = Intrinsics(500.0, 500.0, 320.0, 240.0, COEFFS, model)
    assert intrinsics.undistort((320.0, 240.0)) == pytest.approx((320.0, 240.0))


def test_brown_conrady_moves_off_centre_points():
    plain = Intrinsics(500.0, 500.0, 320.0, 240.0)
    distorted = Intrinsics(500.0, 500.0, 320.0, 240.0, COEFFS, DistortionModel.BROWN_CONRADY)
    px, py, _ = plain.back_project((820.0, 740.0))
    dx, dy, _ = distorted.back_project((820.0, 740.0))
    # positive radial distortion pulls the undistorted ray towards the centre
    assert abs(dx) < abs(px)
    assert abs(dy) < abs(py)


def test_inverse_model_needs_five_coefficients():
    intrinsics = Intrinsics(500.0, 500.0, 320.0, 240.0, [0.1, 0.2], DistortionModel.INVERSE_BROWN_CONRADY)
    with pytest.raises(ValueError):
        intrinsics.back_project((10.0, 10.0))


def test_str_without_distortion():
    text = str(Intrinsics(500.0, 500.0, 320.0, 240.0))
    assert "fx: 500\n" in text
    assert "distortion_coeffs: none" in text


def test_str_with_brown_conrady():
    text = str(Intrinsics(500.0, 500.0, 320.0, 240.0, COEFFS, DistortionModel.BROWN_CONRADY))
    assert "distortion_model: 1" in text
    assert "distortion_coeffs: 0.1 0.01 0.001 0.0001 1e-05 " in text