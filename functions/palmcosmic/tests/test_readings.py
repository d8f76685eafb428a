import io
import unittest
from unittest.mock import MagicMock, patch

from PIL import Image

from palmcosmic import readings
from palmcosmic.images import ImageTooLargeError, InvalidImageError
from palmcosmic.readings import (
    AgePrediction,
    FALLBACK_READING,
    MountReading,
    PalmInsights,
    ReadingUnavailableError,
)

ANALYSIS = """PALM READING

1. LIFE LINE
The line is faint near the wrist.

2. HEART LINE
A deep, well-defined curve.

3. HEAD LINE
Long and straight."""

MB = 1024 * 1024


class LineStrengthTests(unittest.TestCase):
    def test_sections_are_classified_independently(self):
        self.assertEqual(readings.parse_line_strength(ANALYSIS, "life"), "Weak")
        self.assertEqual(readings.parse_line_strength(ANALYSIS, "heart"), "Strong")
        self.assertEqual(readings.parse_line_strength(ANALYSIS, "head"), "Moderate")

    def test_missing_line_is_moderate(self):
        self.assertEqual(readings.parse_line_strength(ANALYSIS, "fate"), "Moderate")
        self.assertEqual(readings.parse_line_strength("", "life"), "Moderate")

    def test_fallback_reading_is_strong(self):
        reading = readings.build_palm_reading(FALLBACK_READING)
        self.assertEqual(reading.life_line_strength, "Strong")
        self.assertEqual(reading.heart_line_strength, "Strong")


class GeneratePalmReadingTests(unittest.TestCase):
    def test_requires_an_image(self):
        with self.assertRaises(ReadingUnavailableError):
            readings.generate_palm_reading([])

    @patch("models.gemini.call_predict_with_schema")
    @patch("models.gemini.call_predict_with_images", return_value=ANALYSIS)
    def test_insights_are_attached(self, mock_predict, mock_schema):
        mock_schema.return_value = PalmInsights(
            age_predictions=[AgePrediction(age_range="25-30", prediction="New job")],
            mount_analysis=[MountReading(mount="Venus", development="High", meaning="Warm")],
            wealth_analysis="Steady growth",
        )
        reading = readings.generate_palm_reading([(b"img", "image/jpeg")])

        self.assertFalse(reading.used_fallback)
        self.assertEqual(reading.age_predictions[0]["prediction"], "New job")
        self.assertEqual(reading.mount_analysis[0]["mount"], "Venus")
        self.assertEqual(reading.wealth_analysis, "Steady growth")
        self.assertIsNone(reading.partnership_predictions)
        self.assertIs(mock_schema.call_args.args[1], PalmInsights)

    @patch("models.gemini.call_predict_with_schema")
    @patch("models.gemini.call_predict_with_images", side_effect=RuntimeError("boom"))
    def test_provider_failure_uses_fallback_without_insights(
        self, mock_predict, mock_schema
    ):
        reading = readings.generate_palm_reading([(b"img", "image/jpeg")])
        self.assertTrue(reading.used_fallback)
        self.assertEqual(reading.traits, readings.DEFAULT_TRAITS)
        mock_schema.assert_not_called()


def _png_bytes() -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (40, 30), (10, 20, 30)).save(out, format="PNG")
    return out.getvalue()


def _streamed(body: bytes, headers=None, chunk=16):
    response = MagicMock()
    response.headers = headers or {}
    response.iter_content.return_value = [
        body[i : i + chunk] for i in range(0, len(body), chunk)
    ]
    response.__enter__.return_value = response
    return response


class FetchImageTests(unittest.TestCase):
    @patch("palmcosmic.readings.requests.get")
    def test_download_is_normalised_to_jpeg(self, mock_get):
        mock_get.return_value = _streamed(_png_bytes(), {"Content-Type": "image/png"})

        data, mime_type = readings.fetch_image("https://example.test/p.png", max_bytes=MB)

        self.assertEqual(mime_type, "image/jpeg")
        self.assertTrue(data.startswith(b"\xff\xd8"))
        self.assertTrue(mock_get.call_args.kwargs["stream"])
        mock_get.return_value.raise_for_status.assert_called_once()

    @patch("palmcosmic.readings.requests.get")
    def test_only_web_urls_are_fetched(self, mock_get):
        for url in ("file:///etc/passwd", "ftp://example.test/p.png", "example.test/p.png"):
            with self.assertRaises(InvalidImageError):
                readings.fetch_image(url, max_bytes=MB)
        mock_get.assert_not_called()

    @patch("palmcosmic.readings.requests.get")
    def test_internal_hosts_are_refused(self, mock_get):
        for url in (
            "http://127.0.0.1/p.png",
            "http://169.254.169.254/latest/meta-data/",
            "http://10.0.0.5/p.png",
            "http://[::1]/p.png",
            "http://localhost:8000/p.png",
            "http://metadata.google.internal/p.png",
        ):
            with self.assertRaises(InvalidImageError):
                readings.fetch_image(url, max_bytes=MB)
        mock_get.assert_not_called()

    @patch("palmcosmic.readings.requests.get")
    def test_download_stops_past_the_size_limit(self, mock_get):
        response = _streamed(b"x" * 100, chunk=10)
        mock_get.return_value = response

        with self.assertRaises(ImageTooLargeError):
            readings.fetch_image("https://example.test/big.jpg", max_bytes=25)

    @patch("palmcosmic.readings.requests.get")
    def test_declared_length_over_limit(self, mock_get):
        response = _streamed(b"x" * 10, {"Content-Length": "5000"})
        mock_get.return_value = response

        with self.assertRaises(ImageTooLargeError):
            readings.fetch_image("https://example.test/big.jpg", max_bytes=1000)
        response.iter_content.assert_not_called()

    @patch("palmcosmic.readings.requests.get")
    def test_non_image_content_is_rejected(self, mock_get):
        mock_get.return_value = _streamed(b"<html>not a palm</html>")
        with self.assertRaises(InvalidImageError):
            readings.fetch_image("https://example.test/page", max_bytes=MB)


if __name__ == "__main__":
    unittest.main()
