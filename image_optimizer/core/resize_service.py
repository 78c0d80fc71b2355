import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from loguru import logger
from PIL import Image, ImageOps

from .config import settings
from .errors import ProcessingFailure
from .models import (DEFAULT_QUALITY, FALLBACK_QUALITY, Derivative, OptimizedOriginal,
                     ProcessingOptions, ProcessingResult, SourceMetadata,
                     normalize_format)
from .validation import ensure_valid

EXT_TO_PIL = {"jpeg":"JPEG","png":"PNG","webp":"WEBP","avif":"AVIF","gif":"GIF","tiff":"TIFF","bmp":"BMP"}
ProgressCb = Callable[[int, int], None]

def calc_target_box(sw:int, sh:int, tw:int, th:int) -> Tuple[int, int]:
    """Target box shrunk (aspect kept) until it fits inside the source."""
    if tw < 1 or th < 1: raise ValueError(f"Size must be at least 1x1, got {tw}x{th}")
    s = min(1.0, sw/tw, sh/th)
    return max(1, round(tw*s)), max(1, round(th*s))

def _pil_format(fmt:str) -> str:
    pil_fmt = EXT_TO_PIL.get(normalize_format(fmt))
    if not pil_fmt: raise ValueError(f"Unknown output format .{fmt}")
    return pil_fmt

def _has_alpha(im:Image.Image) -> bool:
    return im.mode in ("RGBA", "LA", "PA") or (im.mode == "P" and "transparency" in im.info)

def _flatten(im:Image.Image) -> Image.Image:
    """Composite any transparency onto white and return an RGB image."""
    if not _has_alpha(im):
        return im if im.mode == "RGB" else im.convert("RGB")
    im = im.convert("RGBA")
    background = Image.new("RGB", im.size, (255, 255, 255))
    background.paste(im, mask=im.split()[-1])
    return background

def _prepare(im:Image.Image, pil_fmt:str) -> Image.Image:
    if pil_fmt == "JPEG":
        return im if im.mode in ("RGB", "L") else _flatten(im)
    if pil_fmt in ("WEBP", "AVIF") and im.mode not in ("RGB", "RGBA"):
        return im.convert("RGBA" if _has_alpha(im) else "RGB")
    if pil_fmt == "PNG" and im.mode == "CMYK":
        return im.convert("RGB")
    return im

def _encoder_params(pil_fmt:str, quality:int) -> dict:
    q = int(quality)
    if pil_fmt == "JPEG": return {"quality": q, "progressive": True, "optimize": True}
    if pil_fmt == "PNG": return {"optimize": True, "compress_level": 9}
    if pil_fmt == "WEBP": return {"quality": q, "method": 6}
    if pil_fmt == "AVIF": return {"quality": q, "speed": 4}
    if pil_fmt == "GIF": return {"optimize": True}
    return {}

def _save(im:Image.Image, dst:str, pil_fmt:str, quality:int, **extra):
    _prepare(im, pil_fmt).save(dst, format=pil_fmt, **_encoder_params(pil_fmt, quality), **extra)

def read_metadata(path:str) -> SourceMetadata:
    with Image.open(path) as im:
        return SourceMetadata(im.width, im.height, normalize_format(im.format), os.path.getsize(path))

def resize_and_optimize(input_path:str, output_path:str, width:int, height:int,
                        format:str, quality:int=FALLBACK_QUALITY) -> None:
    """Cover-fit ``input_path`` into ``width`` x ``height`` (never enlarging) and encode it."""
    pil_fmt = _pil_format(format)
    with Image.open(input_path) as im:
        box = calc_target_box(im.width, im.height, width, height)
        src = im if im.mode in ("RGB", "RGBA", "L", "LA") else im.convert("RGBA" if _has_alpha(im) else "RGB")
        out = ImageOps.fit(src, box, method=Image.LANCZOS, centering=(0.5, 0.5))
        _save(out, output_path, pil_fmt, quality)

def optimize_original(input_path:str, output_path:str, format:str,
                      quality:Optional[Mapping[str, int]]=None) -> None:
    """Re-encode at native resolution with the quality table for ``format``."""
    fmt = normalize_format(format)
    pil_fmt = _pil_format(fmt)
    q = (quality or DEFAULT_QUALITY).get(fmt, FALLBACK_QUALITY)
    with Image.open(input_path) as im:
        if pil_fmt == "GIF" and getattr(im, "is_animated", False):
            im.save(output_path, format="GIF", save_all=True, optimize=True)
            return
        _save(im, output_path, pil_fmt, q)

def process_image(input_path:str, options:Optional[ProcessingOptions]=None,
                  progress:Optional[ProgressCb]=None) -> ProcessingResult:
    """
    Write every (size x format) derivative of ``input_path`` plus, when
    ``preserve_original`` is set, one optimized copy at native size.

    The units run on a bounded thread pool and are all joined before
    returning. Any failure raises ProcessingFailure once every unit is done.
    """
    opts = options or ProcessingOptions()
    out_dir = os.path.abspath(opts.output_dir or os.path.dirname(input_path) or ".")
    base = opts.basename or os.path.splitext(os.path.basename(input_path))[0]

    try:
        sizes = opts.size_table()
        metadata = read_metadata(input_path)
        os.makedirs(out_dir, exist_ok=True)
    except Exception as e:
        logger.error(f"Image processing error for {input_path}: {e}")
        raise ProcessingFailure(input_path, e) from e

    result = ProcessingResult(original=input_path, metadata=metadata)
    jobs: List[Tuple[str, Callable[[], None]]] = []

    for size_name, spec in sizes.items():
        for fmt in opts.formats:
            fmt = fmt.lower()
            filename = f"{base}_{size_name}.{fmt}"
            dst = os.path.join(out_dir, filename)
            q = opts.quality_for(fmt)
            jobs.append((dst, lambda dst=dst, spec=spec, fmt=fmt, q=q:
                         resize_and_optimize(input_path, dst, spec.width, spec.height, fmt, q)))
            result.processed.append(Derivative(
                size=size_name, format=fmt, path=dst, filename=filename, dimensions=spec,
                output_size=calc_target_box(metadata.width, metadata.height, spec.width, spec.height),
            ))

    if opts.preserve_original:
        filename = f"{base}_optimized.{metadata.format}"
        dst = os.path.join(out_dir, filename)
        jobs.append((dst, lambda dst=dst: optimize_original(input_path, dst, metadata.format, opts.quality)))
        result.optimized = OptimizedOriginal(path=dst, filename=filename, format=metadata.format)

    written, failures = _run_all(jobs, opts.max_workers or settings.MAX_WORKERS, progress)
    if failures:
        dst, cause = failures[0]
        logger.error(f"Image processing error for {input_path}: {len(failures)} of {len(jobs)} outputs failed, first {dst}: {cause}")
        raise ProcessingFailure(input_path, cause, failures=failures, written=written) from cause

    logger.debug(f"Processed {input_path} into {len(jobs)} files under {out_dir}")
    return result

def _run_all(jobs:List[Tuple[str, Callable[[], None]]], max_workers:int,
             progress:Optional[ProgressCb]) -> Tuple[List[str], List[Tuple[str, BaseException]]]:
    written: List[str] = []
    failures: List[Tuple[str, BaseException]] = []
    total = len(jobs)
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, total or 1))) as pool:
        futures: Dict = {pool.submit(fn): dst for dst, fn in jobs}
        for i, fut in enumerate(as_completed(futures), 1):
            dst = futures[fut]
            try:
                fut.result()
                written.append(dst)
            except Exception as e:
                failures.append((dst, e))
            finally:
                if progress: progress(i, total)
    order = {dst: n for n, (dst, _) in enumerate(jobs)}
    written.sort(key=order.__getitem__)
    failures.sort(key=lambda f: order[f[0]])
    return written, failures

def process_upload(input_path:str, options:Optional[ProcessingOptions]=None,
                   progress:Optional[ProgressCb]=None) -> ProcessingResult:
    """Validate first, then process; raises ValidationFailure before any work is done."""
    ensure_valid(input_path)
    return process_image(input_path, options, progress)

def sanitize_image(input_path:str, output_path:str, quality:int=85) -> None:
    """Auto-rotate, drop alpha and metadata, recompress as progressive JPEG."""
    try:
        with Image.open(input_path) as im:
            out = _flatten(ImageOps.exif_transpose(im))
            out.save(output_path, format="JPEG", **_encoder_params("JPEG", quality))
    except Exception as e:
        logger.error(f"Image sanitize error for {input_path}: {e}")
        raise ProcessingFailure(input_path, e) from e
