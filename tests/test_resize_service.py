import os

import pytest
from PIL import Image, features

from conftest import make_image
from image_optimizer.core.errors import ProcessingFailure, ValidationFailure
from image_optimizer.core.models import DEFAULT_SIZES, ProcessingOptions, SizeSpec
from image_optimizer.core.resize_service import (calc_target_box, optimize_original,
                                                 process_image, process_upload,
                                                 resize_and_optimize, sanitize_image)


def test_calc_target_box_keeps_box_when_source_is_big_enough():
    assert calc_target_box(1200, 900, 800, 450) == (800, 450)
    assert calc_target_box(800, 450, 800, 450) == (800, 450)


def test_calc_target_box_clamps_to_source():
    w, h = calc_target_box(100, 50, 800, 450)
    assert w <= 100 and h <= 50
    assert (w, h) == (89, 50)
    assert calc_target_box(120, 80, 150, 150) == (80, 80)


def test_default_run_writes_nine_outputs(large_jpeg, tmp_path):
    result = process_image(large_jpeg)

    assert len(result.processed) == 8
    assert result.optimized is not None
    assert len(result.paths) == 9
    assert {(d.size, d.format) for d in result.processed} == {
        (s, f) for s in DEFAULT_SIZES for f in ("webp", "jpeg")
    }
    assert result.optimized.filename == "course_optimized.jpeg"
    for path in result.paths:
        assert os.path.isabs(path)
        assert os.path.exists(path)
    assert result.metadata.width == 1200
    assert result.metadata.height == 900
    assert result.metadata.format == "jpeg"
    assert result.metadata.size == os.path.getsize(large_jpeg)


def test_derivatives_match_their_size_spec(large_jpeg):
    result = process_image(large_jpeg)
    for d in result.processed:
        assert d.filename == f"course_{d.size}.{d.format}"
        assert d.dimensions == DEFAULT_SIZES[d.size]
        with Image.open(d.path) as im:
            assert im.size == d.dimensions.box == d.output_size
            assert im.format == {"webp": "WEBP", "jpeg": "JPEG"}[d.format]


def test_small_source_is_never_upscaled(tiny_png, tmp_path):
    result = process_image(tiny_png, ProcessingOptions(output_dir=str(tmp_path / "out")))
    for d in result.processed:
        with Image.open(d.path) as im:
            assert im.width <= 120
            assert im.height <= 80
            assert im.size == d.output_size


def test_options_control_names_and_matrix(large_jpeg, tmp_path):
    opts = ProcessingOptions(
        output_dir=str(tmp_path / "derived"),
        basename="hero",
        sizes={"banner": {"width": 300, "height": 100}, "square": (64, 64)},
        formats=("png",),
        preserve_original=False,
    )
    result = process_image(large_jpeg, opts)

    assert result.optimized is None
    assert sorted(d.filename for d in result.processed) == ["hero_banner.png", "hero_square.png"]
    assert sorted(os.listdir(tmp_path / "derived")) == ["hero_banner.png", "hero_square.png"]
    banner = next(d for d in result.processed if d.size == "banner")
    assert banner.dimensions == SizeSpec(300, 100)


def test_repeat_runs_give_same_files_and_sizes(large_jpeg, tmp_path):
    opts = ProcessingOptions(output_dir=str(tmp_path / "a"))
    first = process_image(large_jpeg, opts)
    second = process_image(large_jpeg, opts)

    assert [d.filename for d in first.processed] == [d.filename for d in second.processed]
    for a, b in zip(first.processed, second.processed):
        with Image.open(a.path) as ia, Image.open(b.path) as ib:
            assert ia.size == ib.size


def test_progress_reports_every_unit(large_jpeg):
    calls = []
    process_image(large_jpeg, ProcessingOptions(max_workers=2), progress=lambda i, n: calls.append((i, n)))
    assert calls == [(i, 9) for i in range(1, 10)]


def test_transparent_png_can_become_jpeg(tmp_path):
    src = make_image(tmp_path / "logo.png", size=(400, 400), mode="RGBA")
    result = process_image(src, ProcessingOptions(formats=("jpeg",)))
    with Image.open(result.processed[0].path) as im:
        assert im.mode == "RGB"
    assert result.optimized.format == "png"


@pytest.mark.skipif(not features.check("avif"), reason="Pillow built without AVIF")
def test_avif_output(large_jpeg, tmp_path):
    result = process_image(large_jpeg, ProcessingOptions(
        output_dir=str(tmp_path), sizes={"small": (200, 113)}, formats=("avif",), preserve_original=False))
    with Image.open(result.processed[0].path) as im:
        assert im.size == (200, 113)


def test_unreadable_source_raises_processing_failure(tmp_path):
    bogus = tmp_path / "broken.jpg"
    bogus.write_bytes(b"not an image at all")

    with pytest.raises(ProcessingFailure) as exc:
        process_image(str(bogus))

    assert exc.value.path == str(bogus)
    assert str(bogus) in str(exc.value)
    assert exc.value.cause is not None


def test_write_failures_are_aggregated(large_jpeg, tmp_path):
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    # a directory squatting on an output name makes that one unit fail
    (out_dir / "course_small.webp").mkdir()

    with pytest.raises(ProcessingFailure) as exc:
        process_image(large_jpeg, ProcessingOptions(output_dir=str(out_dir)))

    failed = [path for path, _ in exc.value.failures]
    assert failed == [str(out_dir / "course_small.webp")]
    assert len(exc.value.written) == 8
    assert all(os.path.isfile(p) for p in exc.value.written)


def test_resize_and_optimize_propagates_raw_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        resize_and_optimize(str(tmp_path / "missing.jpg"), str(tmp_path / "x.webp"), 100, 100, "webp")


def test_resize_and_optimize_rejects_unknown_format(large_jpeg, tmp_path):
    with pytest.raises(ValueError):
        resize_and_optimize(large_jpeg, str(tmp_path / "x.xyz"), 100, 100, "xyz")


def test_optimize_original_keeps_dimensions(large_jpeg, tmp_path):
    dst = str(tmp_path / "same.jpeg")
    optimize_original(large_jpeg, dst, "jpg")
    with Image.open(dst) as im:
        assert im.size == (1200, 900)
        assert im.format == "JPEG"


def test_optimize_original_keeps_gif_animation(tmp_path):
    frames = [Image.new("L", (40, 40), v) for v in (0, 128, 255)]
    src = str(tmp_path / "spin.gif")
    frames[0].save(src, save_all=True, append_images=frames[1:], duration=100)
    dst = str(tmp_path / "spin_optimized.gif")

    optimize_original(src, dst, "gif")

    with Image.open(dst) as im:
        assert im.n_frames == 3


def test_process_upload_validates_before_processing(tmp_path):
    src = make_image(tmp_path / "scan.bmp", size=(300, 200), fmt="BMP")

    with pytest.raises(ValidationFailure) as exc:
        process_upload(src)

    assert exc.value.errors == ["Unsupported format: bmp"]
    assert sorted(os.listdir(tmp_path)) == ["scan.bmp"]


def test_process_upload_passes_valid_images_through(large_jpeg):
    result = process_upload(large_jpeg, ProcessingOptions(preserve_original=False))
    assert len(result.processed) == 8


def test_sanitize_image_flattens_and_strips(tmp_path):
    src = make_image(tmp_path / "avatar.png", size=(64, 32), mode="RGBA")
    dst = str(tmp_path / "avatar_clean.jpg")

    sanitize_image(src, dst)

    with Image.open(dst) as im:
        assert im.format == "JPEG"
        assert im.mode == "RGB"
        assert im.size == (64, 32)
        assert "exif" not in im.info


def test_sanitize_image_wraps_errors(tmp_path):
    with pytest.raises(ProcessingFailure):
        sanitize_image(str(tmp_path / "nope.png"), str(tmp_path / "out.jpg"))


def test_size_spec_rejects_empty_boxes():
    with pytest.raises(ValueError):
        SizeSpec(0, 100)
    with pytest.raises(ValueError):
        SizeSpec.coerce({"width": 100, "height": -5})
    with pytest.raises(ValueError):
        calc_target_box(1200, 900, 0, 100)


def test_bad_size_table_raises_processing_failure(large_jpeg, tmp_path):
    out_dir = tmp_path / "never"
    with pytest.raises(ProcessingFailure) as exc:
        process_image(large_jpeg, ProcessingOptions(output_dir=str(out_dir), sizes={"bad": (0, 100)}))

    assert isinstance(exc.value.cause, ValueError)
    assert exc.value.path == large_jpeg
    assert not out_dir.exists()
