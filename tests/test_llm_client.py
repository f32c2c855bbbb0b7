from __future__ import annotations

import io
import json
import unittest
import urllib.error
from unittest.mock import MagicMock, patch

from infrastructure.llm.llm_client import LLMClient
from infrastructure.settings import Settings


def _response(payload) -> MagicMock:
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    resp.__enter__.return_value = resp
    return resp


class LLMClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = LLMClient(base_url="http://ollama:11434/", model="tiny", timeout_seconds=5, temperature=0.0)

    def test_json_mode_request_and_trimmed_response(self) -> None:
        with patch("infrastructure.llm.llm_client.urllib.request.urlopen", return_value=_response({"response": '  {"transactions": []}\n'})) as urlopen:
            text = self.client.complete("extract", json_mode=True)

        self.assertEqual(text, '{"transactions": []}')
        req = urlopen.call_args.args[0]
        self.assertEqual(req.full_url, "http://ollama:11434/api/generate")
        sent = json.loads(req.data)
        self.assertEqual(sent["format"], "json")
        self.assertEqual(sent["model"], "tiny")
        self.assertEqual(sent["options"], {"temperature": 0.0})
        self.assertEqual(urlopen.call_args.kwargs["timeout"], 5)

    def test_plain_mode_omits_format(self) -> None:
        with patch("infrastructure.llm.llm_client.urllib.request.urlopen", return_value=_response({"response": "hi"})) as urlopen:
            self.client.complete("hello")

        self.assertNotIn("format", json.loads(urlopen.call_args.args[0].data))

    def test_disabled_client_never_calls_out(self) -> None:
        with patch("infrastructure.llm.llm_client.urllib.request.urlopen") as urlopen:
            self.assertEqual(LLMClient(enabled=False).complete("extract"), "")
        urlopen.assert_not_called()

    def test_failures_come_back_empty(self) -> None:
        missing_model = urllib.error.HTTPError(
            "http://ollama:11434/api/generate", 404, "Not Found", {}, io.BytesIO(b'{"error": "model \\"tiny\\" not found"}')
        )
        cases = [
            {"side_effect": urllib.error.URLError("refused")},
            {"side_effect": TimeoutError("timed out")},
            {"side_effect": missing_model},
            {"return_value": _response({"error": "out of memory"})},
            {"return_value": _response({"done": True})},
        ]
        for kwargs in cases:
            with self.subTest(kwargs=kwargs):
                with patch("infrastructure.llm.llm_client.urllib.request.urlopen", **kwargs):
                    self.assertEqual(self.client.complete("extract"), "")

    def test_from_settings(self) -> None:
        settings = Settings(ollama_base_url="http://gpu:11434", ollama_model="qwen", ollama_timeout_seconds=9, llm_enabled=False)

        client = LLMClient.from_settings(settings)

        self.assertEqual((client.base_url, client.model, client.timeout_seconds, client.enabled), ("http://gpu:11434", "qwen", 9, False))


if __name__ == "__main__":
    unittest.main()
