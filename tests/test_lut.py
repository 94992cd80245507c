"""Tests for .cube parsing and the LUT cache."""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from filmlook.color import TrilinearColorTransform
from filmlook.enums import FilmPreset
from filmlook.errors import ParseError
from filmlook.lut import LUTCache, identity_cube_text, parse_cube


@pytest.mark.parametrize("dimension", [2, 4, 17, 33])
def test_identity_cube_round_trip(dimension, rng):
    lut = parse_cube(identity_cube_text(dimension))
    image = rng.uniform(0.0, 1.0, (32, 48, 3)).astype(np.float32)

    out = TrilinearColorTransform().apply(image, lut)

    assert lut.dimension == dimension
    np.testing.assert_allclose(out, image, atol=1e-5)


def test_parse_expands_to_rgba_with_opaque_alpha():
    lut = parse_cube(identity_cube_text(3))
    assert lut.table.dtype == np.float32
    assert lut.table.size == 3 ** 3 * 4
    np.testing.assert_array_equal(lut.lattice()[..., 3], 1.0)


def test_parse_table_is_read_only():
    lut = parse_cube(identity_cube_text(2))
    assert not lut.table.flags.writeable
    with pytest.raises(ValueError):
        lut.table[0] = 0.5


def test_parse_skips_comments_headers_and_malformed_lines():
    text = "\n".join([
        "# comment",
        'TITLE "Example"',
        "DOMAIN_MIN 0.0 0.0 0.0",
        "DOMAIN_MAX 1.0 1.0 1.0",
        "lut_3d_size 2",
        "",
        "0 0 0",
        "1 0 0",
        "0.5 0.5",
        "a b c",
        "0 1 0",
        "1 1 0",
        "0.1 0.2 0.3 0.4",
        "0 0 1",
        "nan 0 0",
        "1 0 1",
        "0 1 1",
        "1 1 1",
    ])
    lut = parse_cube(text)

    assert lut.dimension == 2
    np.testing.assert_array_equal(lut.lattice()[1, 1, 1, :3], [1.0, 1.0, 1.0])
    np.testing.assert_array_equal(lut.lattice()[0, 0, 1, :3], [1.0, 0.0, 0.0])


@pytest.mark.parametrize("count", [26, 28])
def test_parse_triple_count_mismatch(count):
    lines = ["LUT_3D_SIZE 3"] + ["0.5 0.5 0.5"] * count
    with pytest.raises(ParseError):
        parse_cube("\n".join(lines))


@pytest.mark.parametrize("text", [
    "0 0 0\n1 1 1\n",
    "LUT_3D_SIZE 0\n",
    "LUT_3D_SIZE -2\n0 0 0\n",
    "LUT_3D_SIZE two\n0 0 0\n",
])
def test_parse_rejects_bad_size_declarations(text):
    with pytest.raises(ParseError):
        parse_cube(text)


def test_identity_cube_requires_two_points():
    with pytest.raises(ValueError):
        identity_cube_text(1)


def test_cache_returns_same_table(lut_dir):
    cache = LUTCache(lut_dir)

    first = cache.load_preset(FilmPreset.KODAK_PORTRA_400)
    second = cache.load_preset(FilmPreset.KODAK_PORTRA_400)

    assert first is second
    assert FilmPreset.KODAK_PORTRA_400.lut_resource_name in cache
    assert len(cache) == 1


def test_cache_concurrent_loads_share_one_table(lut_dir):
    cache = LUTCache(lut_dir)
    with ThreadPoolExecutor(max_workers=8) as pool:
        tables = list(pool.map(lambda _: cache.load("FujiC200"), range(16)))

    assert all(table is tables[0] for table in tables)
    assert len(cache) == 1


def test_cache_missing_resource_raises(tmp_path):
    cache = LUTCache(tmp_path)
    with pytest.raises(ParseError):
        cache.load_preset(FilmPreset.HARMAN_PHOENIX_200)
    assert len(cache) == 0


def test_cache_does_not_remember_failed_loads(tmp_path):
    cache = LUTCache(tmp_path)
    path = cache.resource_path("KodakPortra400")
    path.write_text("LUT_3D_SIZE 2\n0 0 0\n")

    with pytest.raises(ParseError):
        cache.load("KodakPortra400")

    path.write_text(identity_cube_text(2))
    assert cache.load("KodakPortra400").dimension == 2


def test_preload_absorbs_failures(tmp_path):
    cache = LUTCache(tmp_path)
    cache.resource_path("FujiC200").write_text(identity_cube_text(2))

    assert cache.preload(FilmPreset.FUJI_C200)
    assert not cache.preload(FilmPreset.FUJI_PRO_400H)
    assert cache.preload_all() == 1


def test_clear_empties_cache(lut_dir):
    cache = LUTCache(lut_dir)
    assert cache.preload_all() == len(FilmPreset)
    cache.clear()
    assert len(cache) == 0


def test_preset_resource_names():
    assert len(FilmPreset) == 8
    assert FilmPreset.FUJI_C200.lut_resource_name == "FujiC200"
    assert FilmPreset.KODAK_5207.lut_resource_name == "Kodak5207"
    assert FilmPreset.KODAK_VISION_5219.lut_resource_name == "KodakVision5219"
    assert FilmPreset.from_name("Kodak Portra 400") is FilmPreset.KODAK_PORTRA_400
    assert FilmPreset.from_name("harmanPhoenix200") is FilmPreset.HARMAN_PHOENIX_200
    with pytest.raises(ValueError):
        FilmPreset.from_name("Velvia 50")
