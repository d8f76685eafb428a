import unittest
from unittest.mock import MagicMock, patch

import requests

from palmcosmic.notifications import (
    ACCOUNT_DELETION_SUBJECT,
    RESEND_API_URL,
    EmailDeliveryError,
    InMemoryEmailSender,
    ResendEmailSender,
    render_account_deletion_email,
    send_account_deletion_email,
)


class AccountDeletionEmailTests(unittest.TestCase):
    def test_name_falls_back_to_mailbox(self):
        self.assertIn("Hello jo.doe,", render_account_deletion_email("jo.doe@example.com"))

    def test_name_is_escaped(self):
        body = render_account_deletion_email("x@example.com", "<b>Eve</b>")
        self.assertIn("Hello &lt;b&gt;Eve&lt;/b&gt;,", body)

    def test_send(self):
        sender = InMemoryEmailSender()
        self.assertTrue(send_account_deletion_email(sender, "a@example.com", "Ann"))
        self.assertEqual(sender.sent[0]["subject"], ACCOUNT_DELETION_SUBJECT)

    def test_missing_address_is_skipped(self):
        sender = InMemoryEmailSender()
        self.assertFalse(send_account_deletion_email(sender, "", "Ann"))
        self.assertEqual(sender.sent, [])

    def test_delivery_failure_is_reported(self):
        sender = MagicMock()
        sender.send.side_effect = EmailDeliveryError("down")
        self.assertFalse(send_account_deletion_email(sender, "a@example.com"))


class ResendEmailSenderTests(unittest.TestCase):
    @patch("palmcosmic.notifications.requests.post")
    def test_posts_to_resend(self, mock_post):
        """Tests that the message is sent with the API key as bearer token."""
        sender = ResendEmailSender(api_key="key", sender="PalmCosmic <hi@example.com>")
        sender.send("a@example.com", "Subject", "<p>x</p>")

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], RESEND_API_URL)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer key")
        self.assertEqual(kwargs["json"]["to"], ["a@example.com"])
        mock_post.return_value.raise_for_status.assert_called_once()

    @patch("palmcosmic.notifications.requests.post")
    def test_http_error_is_wrapped(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        sender = ResendEmailSender(api_key="key", sender="hi@example.com")
        with self.assertRaises(EmailDeliveryError):
            sender.send("a@example.com", "Subject", "<p>x</p>")


if __name__ == "__main__":
    unittest.main()
