"""Tests for the CPU and torch color transforms."""

import numpy as np
import pytest
import torch

from filmlook.color import TorchColorTransform, TrilinearColorTransform, select_color_transform
from filmlook.errors import RenderError
from filmlook.lut import identity_cube_text, parse_cube


@pytest.fixture
def curved_lut(make_cube):
    return parse_cube(make_cube(9, lambda r, g, b: (r ** 0.5, g * g, 0.2 + 0.6 * b)))


def test_out_of_range_input_is_clamped():
    lut = parse_cube(identity_cube_text(5))
    image = np.array([[[-0.5, 1.5, 0.5]]], dtype=np.float32)

    out = TrilinearColorTransform().apply(image, lut)

    np.testing.assert_allclose(out[0, 0], [0.0, 1.0, 0.5], atol=1e-6)


def test_lattice_axes_follow_red_fastest_order(make_cube):
    swap = parse_cube(make_cube(3, lambda r, g, b: (b, g, r)))
    image = np.array([[[0.1, 0.5, 0.9]]], dtype=np.float32)

    out = TrilinearColorTransform().apply(image, swap)

    np.testing.assert_allclose(out[0, 0], [0.9, 0.5, 0.1], atol=1e-6)


def test_linear_lut_is_reproduced_exactly(make_cube, rng):
    invert = parse_cube(make_cube(4, lambda r, g, b: (1 - r, 1 - g, 1 - b)))
    image = rng.uniform(0.0, 1.0, (16, 16, 3)).astype(np.float32)

    out = TrilinearColorTransform().apply(image, invert)

    np.testing.assert_allclose(out, 1.0 - image, atol=1e-5)


def test_transform_is_continuous(curved_lut):
    values = np.linspace(0.0, 1.0, 1001, dtype=np.float32)
    image = np.stack([values, values, values], axis=-1)[None]

    out = TrilinearColorTransform().apply(image, curved_lut)

    assert np.max(np.abs(np.diff(out[0], axis=0))) < 0.05


def test_alpha_is_passed_through(curved_lut, rng):
    image = rng.uniform(0.0, 1.0, (8, 8, 4)).astype(np.float32)

    out = TrilinearColorTransform().apply(image, curved_lut)

    assert out.shape == (8, 8, 4)
    np.testing.assert_array_equal(out[..., 3], image[..., 3])


def test_input_is_not_modified(curved_lut, rng):
    image = rng.uniform(0.0, 1.0, (8, 8, 3)).astype(np.float32)
    before = image.copy()
    TrilinearColorTransform().apply(image, curved_lut)
    np.testing.assert_array_equal(image, before)


@pytest.mark.parametrize("shape", [(8, 8), (8, 8, 2), (8, 8, 5)])
def test_bad_shapes_raise(shape, curved_lut):
    with pytest.raises(RenderError):
        TrilinearColorTransform().apply(np.zeros(shape, dtype=np.float32), curved_lut)


def test_small_blocks_match_single_block(curved_lut, rng):
    image = rng.uniform(0.0, 1.0, (37, 11, 3)).astype(np.float32)
    expected = TrilinearColorTransform(rows_per_block=512).apply(image, curved_lut)
    out = TrilinearColorTransform(rows_per_block=5).apply(image, curved_lut)
    np.testing.assert_array_equal(out, expected)


def test_torch_cpu_matches_reference(curved_lut, rng):
    image = rng.uniform(-0.1, 1.1, (24, 40, 3)).astype(np.float32)

    reference = TrilinearColorTransform().apply(image, curved_lut)
    out = TorchColorTransform('cpu', rows_per_block=7).apply(image, curved_lut)

    np.testing.assert_allclose(out, reference, atol=1e-4)


@pytest.mark.skipif(torch.cuda.is_available(), reason="CUDA is available")
def test_torch_cuda_request_without_cuda_raises():
    with pytest.raises(RenderError):
        TorchColorTransform('cuda')


def test_select_without_gpu_uses_reference():
    assert isinstance(select_color_transform(prefer_gpu=False), TrilinearColorTransform)
