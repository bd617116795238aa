"""
Tests for svelte_image.derivatives

Test Coverage:
- effective_widths(): natural-width clamp
- plan_derivatives(): retina/alternate ordering and filtering
- generate_derivatives(): writing, cache-avoidance, partial failure
- optimize_image(): inline vs. written copy
"""
import asyncio

import pytest
from PIL import Image

from svelte_image import derivatives as derivatives_module
from svelte_image.derivatives import (
    effective_widths,
    generate_derivatives,
    image_paths,
    optimize_image,
    plan_derivatives,
    read_metadata,
)
from svelte_image.errors import DerivativeError
from svelte_image.models import ImageMetadata, OutputFormat


def test_effective_widths_clamps_to_natural_width():
    assert effective_widths([2000], 1000) == [1000]


def test_effective_widths_keeps_request_when_smallest_fits():
    assert effective_widths([400, 2000], 1000) == [400, 2000]


def test_image_paths(config, public_dir):
    paths = image_paths("photos/a.jpg", config)

    assert paths.in_path == (public_dir / "photos" / "a.jpg").resolve()
    assert paths.out_dir == (public_dir / "g" / "photos").resolve()
    assert paths.out_url == "g/photos/a.jpg"
    assert paths.sized(400) == (paths.out_dir / "a-400.jpg", "g/photos/a-400.jpg")
    assert paths.sized(400, ".webp")[1] == "g/photos/a-400.webp"


def test_plan_orders_retina_after_1x_and_alternate_after_primary(config):
    # Arrange
    paths = image_paths("a.jpg", config)
    metadata = ImageMetadata(width=1600, height=900)

    # Act
    planned = plan_derivatives(paths, [400, 800], metadata, config)

    # Assert
    assert [(d.width, d.is_retina, d.format) for d in planned] == [
        (400, False, OutputFormat.PRIMARY),
        (400, False, OutputFormat.ALTERNATE),
        (800, True, OutputFormat.PRIMARY),
        (800, True, OutputFormat.ALTERNATE),
        (800, False, OutputFormat.PRIMARY),
        (800, False, OutputFormat.ALTERNATE),
        (1600, True, OutputFormat.PRIMARY),
        (1600, True, OutputFormat.ALTERNATE),
    ]
    assert planned[0].height == 225


def test_plan_drops_widths_above_natural(config):
    paths = image_paths("a.jpg", config.replace(webp=False))
    metadata = ImageMetadata(width=1000, height=500)

    planned = plan_derivatives(paths, [400, 1200], metadata, config.replace(webp=False))

    assert [(d.width, d.is_retina) for d in planned] == [(400, False), (800, True)]


def test_natural_width_clamp_yields_single_derivative(config, make_image):
    """Requesting 2000px from a 1000px image gives exactly one 1000px rendition."""
    # Arrange
    make_image("wide.jpg", size=(1000, 500), image_format="JPEG")
    settings = config.replace(webp=False)
    paths = image_paths("wide.jpg", settings)

    # Act
    result = asyncio.run(generate_derivatives(paths, [2000], settings))

    # Assert
    assert [d.width for d in result.derivatives] == [1000]
    assert result.metadata == ImageMetadata(width=1000, height=500, format="JPEG")


def test_generate_writes_resized_files(config, make_image):
    # Arrange
    make_image("photo.jpg", size=(1600, 900), image_format="JPEG")
    settings = config.replace(retina=False)
    paths = image_paths("photo.jpg", settings)

    # Act
    result = asyncio.run(generate_derivatives(paths, [400, 800], settings))

    # Assert
    assert len(result.derivatives) == 4
    for derivative in result.derivatives:
        assert not derivative.skipped_because_cached
        with Image.open(derivative.output_path) as image:
            assert image.width == derivative.width
            expected = "WEBP" if derivative.format is OutputFormat.ALTERNATE else "JPEG"
            assert image.format == expected


def test_second_run_reuses_existing_files(config, make_image, monkeypatch):
    """Generation is idempotent: unchanged sources are never re-encoded."""
    # Arrange
    make_image("photo.png", size=(800, 600), image_format="PNG")
    paths = image_paths("photo.png", config)
    first = asyncio.run(generate_derivatives(paths, [400], config))
    mtimes = {d.output_path: d.output_path.stat().st_mtime_ns for d in first.derivatives}

    def fail(*args, **kwargs):
        raise AssertionError("derivative was re-encoded")

    monkeypatch.setattr(derivatives_module, "encode_derivative", fail)

    # Act
    second = asyncio.run(generate_derivatives(paths, [400], config))

    # Assert
    assert [d.output_path for d in second.derivatives] == list(mtimes)
    assert all(d.skipped_because_cached for d in second.derivatives)
    assert {d.output_path: d.output_path.stat().st_mtime_ns for d in second.derivatives} == mtimes


def test_failed_alternate_does_not_block_primary(config, make_image, monkeypatch):
    # Arrange
    make_image("photo.jpg", size=(800, 450), image_format="JPEG")
    settings = config.replace(retina=False)
    paths = image_paths("photo.jpg", settings)
    real_encode = derivatives_module.encode_derivative

    def flaky(source, derivative, config):
        if derivative.format is OutputFormat.ALTERNATE:
            raise OSError("encoder unavailable")
        return real_encode(source, derivative, config)

    monkeypatch.setattr(derivatives_module, "encode_derivative", flaky)

    # Act
    result = asyncio.run(generate_derivatives(paths, [400], settings))

    # Assert
    assert [(d.width, d.format) for d in result.derivatives] == [(400, OutputFormat.PRIMARY)]
    assert result.derivatives[0].output_path.exists()


def test_all_primary_failures_raise(config, make_image, monkeypatch):
    make_image("photo.jpg", size=(800, 450), image_format="JPEG")
    paths = image_paths("photo.jpg", config)

    def broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(derivatives_module, "encode_derivative", broken)

    with pytest.raises(DerivativeError):
        asyncio.run(generate_derivatives(paths, [400], config))


def test_read_metadata(make_image):
    path = make_image("photo.png", size=(30, 20), image_format="PNG")

    assert read_metadata(path) == ImageMetadata(width=30, height=20, format="PNG")


def test_optimize_image_inlines_small_files(config, make_image):
    make_image("icon.png", size=(8, 8), image_format="PNG")
    paths = image_paths("icon.png", config)

    uri = optimize_image(paths, config)

    assert uri.startswith("data:image/png;base64,")
    assert not paths.out_path.exists()


def test_optimize_image_writes_copy_above_threshold(config, make_image):
    # Arrange
    make_image("photo.jpg", size=(300, 200), image_format="JPEG")
    settings = config.replace(inline_below=0)
    paths = image_paths("photo.jpg", settings)

    # Act
    first = optimize_image(paths, settings)
    mtime = paths.out_path.stat().st_mtime_ns
    second = optimize_image(paths, settings)

    # Assert
    assert first == second == "g/photo.jpg"
    assert paths.out_path.stat().st_mtime_ns == mtime
    with Image.open(paths.out_path) as image:
        assert image.size == (300, 200)
