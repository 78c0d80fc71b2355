import os

import pytest
from PIL import Image


def make_image(path, size=(1200, 900), mode="RGB", fmt=None, color=(200, 80, 40)):
    if mode in ("L", "1"):
        color = 128 if mode == "L" else 1
    elif mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    Image.new(mode, size, color).save(path, format=fmt)
    return str(path)


def pad_file(path, total_bytes):
    with open(path, "ab") as f:
        f.write(b"\0" * (total_bytes - os.path.getsize(path)))
    return str(path)


@pytest.fixture
def large_jpeg(tmp_path):
    return make_image(tmp_path / "course.jpg", size=(1200, 900))


@pytest.fixture
def tiny_png(tmp_path):
    return make_image(tmp_path / "tiny.png", size=(120, 80))


@pytest.fixture
def caplog_loguru():
    from loguru import logger

    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
