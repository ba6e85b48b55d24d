"""Unit tests for ai/image_utils.py."""

import cv2
import numpy as np
import pytest


def _decode(data):
    return cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)


class TestMimeAndDataUrls:
    """Tests for sniff_mime, to_data_url and parse_data_url."""

    def test_sniff_mime(self, make_png):
        """Magic bytes identify the common image formats."""
        from vitrine.ai.image_utils import sniff_mime

        assert sniff_mime(make_png()) == "image/png"
        assert sniff_mime(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
        assert sniff_mime(b"RIFF\x00\x00\x00\x00WEBPVP8") == "image/webp"
        assert sniff_mime(b"plain text") == "application/octet-stream"

    def test_parse_data_url(self):
        """A data URL yields its bytes and MIME type."""
        from vitrine.ai.image_utils import parse_data_url, to_data_url

        data, mime = parse_data_url(to_data_url(b"abc", "image/jpeg"))

        assert (data, mime) == (b"abc", "image/jpeg")

    def test_parse_invalid_data_url(self):
        """Anything that is not a base64 data URL is rejected."""
        from vitrine.ai.image_utils import parse_data_url

        with pytest.raises(ValueError):
            parse_data_url("https://example.com/a.png")


class TestDecodeImage:
    """Tests for decode_image."""

    def test_transparency_is_flattened_on_white(self):
        """Fully transparent pixels decode as white BGR."""
        from vitrine.ai.image_utils import decode_image

        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        ok, buf = cv2.imencode(".png", rgba)
        assert ok

        img = decode_image(buf.tobytes())

        assert img.shape == (4, 4, 3)
        assert (img == 255).all()

    def test_garbage(self):
        """Undecodable bytes raise ValueError."""
        from vitrine.ai.image_utils import decode_image

        with pytest.raises(ValueError):
            decode_image(b"not an image")


class TestResizeAndPad:
    """Tests for resize_and_pad."""

    def test_crop_fills_target(self, make_png, dims):
        """crop mode always returns exactly the target size."""
        from vitrine.ai.image_utils import resize_and_pad

        out = resize_and_pad(make_png(200, 100), 60, 90, mode="crop")

        assert dims(out) == (60, 90)
        assert not (_decode(out) == 255).all()

    def test_pad_letterboxes_on_white(self, make_png, dims):
        """pad mode keeps the whole image and fills the rest with white."""
        from vitrine.ai.image_utils import resize_and_pad

        out = resize_and_pad(make_png(200, 100), 100, 100, mode="pad")
        img = _decode(out)

        assert dims(out) == (100, 100)
        assert tuple(img[0, 50]) == (255, 255, 255)
        assert tuple(img[50, 50]) == (40, 120, 200)

    def test_invalid_arguments(self, make_png):
        """Non-positive sizes and unknown modes are rejected."""
        from vitrine.ai.image_utils import resize_and_pad

        with pytest.raises(ValueError):
            resize_and_pad(make_png(), 0, 10)
        with pytest.raises(ValueError):
            resize_and_pad(make_png(), 10, 10, mode="stretch")


class TestOutpaintCanvas:
    """Tests for build_outpaint_canvas."""

    def test_mask_covers_only_padding(self, make_png, dims):
        """The mask is opaque red over the padding and transparent over the image."""
        from vitrine.ai.image_utils import MASK_RED_BGRA, build_outpaint_canvas

        canvas, mask = build_outpaint_canvas(make_png(64, 48), 100, 100)
        m = _decode(mask)
        c = _decode(canvas)

        assert dims(canvas) == (100, 100)
        assert m.shape == (100, 100, 4)
        assert tuple(m[0, 50]) == MASK_RED_BGRA
        assert m[50, 50, 3] == 0
        assert tuple(c[0, 50]) == (255, 255, 255)
        assert tuple(c[50, 50]) == (40, 120, 200)


class TestCropRegion:
    """Tests for crop_region."""

    def test_clamps_to_bounds(self, make_png, dims):
        """A rectangle running past the edge is clipped."""
        from vitrine.ai.image_utils import crop_region

        assert dims(crop_region(make_png(64, 48), 40, 30, 100, 100)) == (24, 18)

    def test_empty_region(self, make_png):
        """A rectangle outside the image is an error."""
        from vitrine.ai.image_utils import crop_region

        with pytest.raises(ValueError):
            crop_region(make_png(64, 48), 100, 100, 10, 10)
