import base64
import io
import unittest

from PIL import Image

from palmcosmic.images import (
    ImageTooLargeError,
    InvalidImageError,
    build_object_path,
    normalize_image,
    strip_data_url,
)


def _png_bytes(size, mode="RGBA"):
    out = io.BytesIO()
    Image.new(mode, size).save(out, format="PNG")
    return out.getvalue()


class ImageTests(unittest.TestCase):
    def test_strip_data_url(self):
        payload = base64.b64encode(b"hello").decode()
        self.assertEqual(strip_data_url(f"data:image/png;base64,{payload}"), b"hello")
        self.assertEqual(strip_data_url(payload), b"hello")
        with self.assertRaises(InvalidImageError):
            strip_data_url("data:image/png;base64,not base64!")

    def test_normalize_converts_to_jpeg_and_downscales(self):
        result = normalize_image(_png_bytes((4096, 1024)), max_bytes=10 * 1024 * 1024)
        self.assertEqual((result.width, result.height), (2048, 512))
        self.assertEqual(result.mime_type, "image/jpeg")
        self.assertTrue(result.data.startswith(b"\xff\xd8"))

    def test_rejects_large_and_broken_input(self):
        with self.assertRaises(ImageTooLargeError):
            normalize_image(b"x" * 11, max_bytes=10)
        with self.assertRaises(InvalidImageError):
            normalize_image(b"definitely not an image", max_bytes=1024)
        with self.assertRaises(InvalidImageError):
            normalize_image(b"", max_bytes=1024)

    def test_object_path(self):
        path = build_object_path("palm-images", "u1", "left-palm")
        prefix, user, name = path.split("/")
        self.assertEqual((prefix, user), ("palm-images", "u1"))
        self.assertTrue(name.endswith("-left-palm.jpg"))
        self.assertTrue(build_object_path("illustrations", "u1", "x", "png").endswith(".png"))


if __name__ == "__main__":
    unittest.main()
