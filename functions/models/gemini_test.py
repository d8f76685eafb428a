# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import unittest
from unittest.mock import MagicMock, patch

from models import api_config, gemini


class GeminiTest(unittest.TestCase):
    def setUp(self):
        patcher = patch("models.gemini.genai.Client")
        self.mock_client_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.models = self.mock_client_cls.return_value.models

    def test_call_predict_uses_default_model(self):
        """Tests that the configured text model is used when none is passed."""
        self.models.generate_content.return_value = MagicMock(text="hello")

        self.assertEqual(gemini.call_predict("hi"), "hello")
        kwargs = self.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], api_config.DEFAULT_TEXT_MODEL)
        self.assertEqual(kwargs["contents"], "hi")

    def test_call_predict_empty_response(self):
        """Tests that an empty response raises."""
        self.models.generate_content.return_value = MagicMock(text="")
        with self.assertRaises(gemini.GeminiInvalidResponseException):
            gemini.call_predict("hi")

    def test_user_api_key_is_forwarded(self):
        self.models.generate_content.return_value = MagicMock(text="ok")
        gemini.call_predict("hi", api_key="user-key")
        self.mock_client_cls.assert_called_once_with(api_key="user-key")

    def test_call_predict_with_images_appends_parts(self):
        """Tests that each image becomes an inline part after the prompt."""
        self.models.generate_content.return_value = MagicMock(text="palm")

        result = gemini.call_predict_with_images(
            "read", [(b"a", "image/jpeg"), (b"b", "image/png")]
        )

        self.assertEqual(result, "palm")
        contents = self.models.generate_content.call_args.kwargs["contents"]
        self.assertEqual(contents[0], "read")
        self.assertEqual(len(contents), 3)

    def test_call_predict_with_schema_swallows_errors(self):
        """Tests that structured calls return None on failure."""
        self.models.generate_content.side_effect = RuntimeError("quota")
        self.assertIsNone(gemini.call_predict_with_schema("q", dict))

    def test_generate_image(self):
        image = MagicMock(image_bytes=b"\x89PNG")
        self.models.generate_images.return_value = MagicMock(
            generated_images=[MagicMock(image=image)]
        )
        self.assertEqual(gemini.generate_image("a palm"), b"\x89PNG")
        self.assertEqual(
            self.models.generate_images.call_args.kwargs["model"],
            api_config.DEFAULT_IMAGE_MODEL,
        )

    def test_generate_image_without_result(self):
        self.models.generate_images.return_value = MagicMock(generated_images=[])
        with self.assertRaises(gemini.GeminiInvalidResponseException):
            gemini.generate_image("a palm")


if __name__ == "__main__":
    unittest.main()
