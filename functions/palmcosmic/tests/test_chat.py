import unittest
from unittest.mock import patch

from models import prompts
from palmcosmic import chat
from palmcosmic.chat import HistoryEntry
from shared.types import ChatSender


class ChatContextTests(unittest.TestCase):
    def test_context_keeps_last_window_and_skips_typing(self):
        history = [
            HistoryEntry(ChatSender.USER, "one"),
            HistoryEntry(ChatSender.ASTROBOT, "two"),
            HistoryEntry(ChatSender.USER, "three"),
            HistoryEntry(ChatSender.ASTROBOT, "...", is_typing=True),
        ]
        self.assertEqual(
            chat.build_context(history, window=3), "Astrobot: two\nUser: three"
        )
        self.assertEqual(chat.build_context(history, window=0), "")

    def test_prompt_without_context_is_just_the_message(self):
        system, user_turn = chat.build_prompt("Hi", has_image=False, context="")
        self.assertEqual(user_turn, "Hi")
        self.assertTrue(system.endswith(prompts.ASTROBOT_WITHOUT_IMAGE_ADDENDUM))

    def test_image_without_text_gets_default_message(self):
        system, user_turn = chat.build_prompt("", has_image=True, context="User: hi")
        self.assertIn(prompts.ASTROBOT_DEFAULT_IMAGE_MESSAGE, user_turn)
        self.assertIn("User: hi", user_turn)
        self.assertTrue(system.endswith(prompts.ASTROBOT_WITH_IMAGE_ADDENDUM))


class ReplySuffixTests(unittest.TestCase):
    def test_suffix_by_topic(self):
        self.assertEqual(chat.reply_suffix("My marriage?", False), chat.LOVE_PHOTO_HINT)
        self.assertEqual(chat.reply_suffix("Will I be rich", False), chat.CAREER_PHOTO_HINT)
        self.assertEqual(chat.reply_suffix("Hello", False), chat.GENERIC_PHOTO_HINT)
        self.assertEqual(chat.reply_suffix("My marriage?", True), chat.IMAGE_FOLLOW_UP)


class GenerateReplyTests(unittest.TestCase):
    @patch("models.gemini.call_predict_with_images", return_value="A strong heart line.")
    def test_image_reply_uses_vision_call(self, mock_predict):
        reply = chat.generate_reply("Look", image=(b"img", "image/jpeg"))
        self.assertEqual(reply.content, "A strong heart line." + chat.IMAGE_FOLLOW_UP)
        self.assertEqual(mock_predict.call_args.args[1], [(b"img", "image/jpeg")])

    @patch("models.gemini.call_predict", side_effect=ValueError("empty"))
    def test_failure_returns_fallback(self, mock_predict):
        reply = chat.generate_reply("Hello")
        self.assertTrue(reply.used_fallback)
        self.assertEqual(reply.content, chat.FALLBACK_REPLY)


if __name__ == "__main__":
    unittest.main()
