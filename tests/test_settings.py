# -*- coding: utf-8 -*-
"""
Tests for settings.py - server address, credentials and template loading.
"""

import unittest
from unittest.mock import patch

import config_data
from settings import get_credential, load_template, split_server


class TestSplitServer(unittest.TestCase):
    def test_host_and_port(self):
        self.assertEqual(split_server("imap.example.com:1993"), ("imap.example.com", 1993))

    def test_default_tls_port(self):
        self.assertEqual(split_server("imap.example.com"), ("imap.example.com", 993))

    def test_default_plain_port(self):
        self.assertEqual(
            split_server("imap.example.com", no_tls=True), ("imap.example.com", 143)
        )

    def test_bracketed_ipv6(self):
        self.assertEqual(split_server("[::1]:143"), ("::1", 143))


class TestGetCredential(unittest.TestCase):
    """Tests for password resolution"""

    def test_given_value_is_used(self):
        with patch("getpass.getpass") as prompt:
            self.assertEqual(get_credential("secret", "user"), "secret")
        prompt.assert_not_called()

    def test_prompts_when_username_without_password(self):
        with patch("getpass.getpass", return_value="typed") as prompt:
            self.assertEqual(get_credential("", "user"), "typed")
        prompt.assert_called_once_with("Password: ")

    def test_no_prompt_without_username(self):
        with patch("getpass.getpass") as prompt:
            self.assertEqual(get_credential("", ""), "")
        prompt.assert_not_called()


class TestLoadTemplate(unittest.TestCase):
    def test_default_template(self):
        self.assertEqual(load_template(), config_data.default_template)

    def test_reads_file(self):
        import tempfile
        from pathlib import Path

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "message.tmpl"
            path.write_text("{{ Header.Subject }}\n", encoding="utf-8")

            self.assertEqual(load_template(path), "{{ Header.Subject }}\n")


if __name__ == "__main__":
    unittest.main(verbosity=2)
