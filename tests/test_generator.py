# -*- coding: utf-8 -*-

from __future__ import annotations

import json
import unittest

import httpx

from eunoia.errors import GenerationFailed
from eunoia.nuggets.generator import NuggetGenerator, build_messages, parse_nuggets
from eunoia.nuggets.memory import InMemoryNuggetRepository
from eunoia.nuggets.models import Category, LLMProvider
from eunoia.nuggets.providers import ProviderSettings, call_chat_completion, resolve_provider_settings

from tests.fakes import FakeProvider, make_settings


class TestParseNuggets(unittest.TestCase):
    def test_json_array_inside_prose(self) -> None:
        text = 'Sure!\n[{"title": "T1", "content": "C1"}, {"title": "T2", "content": "C2"}]\nEnjoy.'
        self.assertEqual(
            parse_nuggets(text),
            [{"title": "T1", "content": "C1"}, {"title": "T2", "content": "C2"}],
        )

    def test_object_with_nuggets_key(self) -> None:
        text = json.dumps({"nuggets": [{"title": " T ", "content": " C "}]})
        self.assertEqual(parse_nuggets(text), [{"title": "T", "content": "C"}])

    def test_title_content_lines(self) -> None:
        text = "1. Title: Sleep debt\nContent: Lost sleep adds up.\n\n2. **Title**: Naps\n**Content**: Keep them short."
        self.assertEqual(
            parse_nuggets(text),
            [
                {"title": "Sleep debt", "content": "Lost sleep adds up."},
                {"title": "Naps", "content": "Keep them short."},
            ],
        )

    def test_invalid_items_are_dropped(self) -> None:
        text = json.dumps(
            [
                {"title": "Ok", "content": "Fine."},
                {"title": "", "content": "No title."},
                {"title": "No content"},
                {"title": 3, "content": "Not a string."},
                "just a string",
            ]
        )
        self.assertEqual(parse_nuggets(text), [{"title": "Ok", "content": "Fine."}])

    def test_garbage_yields_nothing(self) -> None:
        self.assertEqual(parse_nuggets("I am unable to comply."), [])

    def test_prompt_names_category_and_count(self) -> None:
        messages = build_messages(Category.finances, 7)
        self.assertEqual(messages[0]["role"], "system")
        self.assertIn("Generate 7", messages[-1]["content"])
        self.assertIn('"Finances"', messages[-1]["content"])


class TestGenerateBatch(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = InMemoryNuggetRepository()
        self.provider = FakeProvider()
        self.generator = NuggetGenerator(self.repo, settings=make_settings(), complete=self.provider)

    def test_stores_batch_with_shared_timestamp(self) -> None:
        stored = self.generator.generate_batch(Category.career, 4, LLMProvider.openai)

        self.assertEqual(len(stored), 4)
        self.assertEqual(self.repo.count(Category.career), 4)
        self.assertEqual(len({n.created_at for n in stored}), 1)
        self.assertEqual(self.provider.calls, [(4, "openai")])

    def test_defaults_to_configured_batch_and_provider(self) -> None:
        self.generator.generate_batch("Health")
        self.assertEqual(self.provider.calls, [(25, "deepseek")])

    def test_truncates_oversized_reply(self) -> None:
        items = [{"title": f"T{i}", "content": f"C{i}"} for i in range(6)]
        generator = NuggetGenerator(
            self.repo, settings=make_settings(), complete=FakeProvider(reply=json.dumps(items))
        )
        self.assertEqual(len(generator.generate_batch(Category.focus, 3)), 3)

    def test_known_content_is_not_stored_twice(self) -> None:
        reply = json.dumps([{"title": "Same", "content": "Same text."}])
        generator = NuggetGenerator(self.repo, settings=make_settings(), complete=FakeProvider(reply=reply))
        self.assertEqual(len(generator.generate_batch(Category.focus, 1)), 1)
        self.assertEqual(generator.generate_batch(Category.focus, 1), [])
        self.assertEqual(self.repo.count(Category.focus), 1)

    def test_provider_exception_is_wrapped(self) -> None:
        generator = NuggetGenerator(self.repo, settings=make_settings(), complete=FakeProvider(fail=True))
        with self.assertRaises(GenerationFailed) as ctx:
            generator.generate_batch(Category.focus, 2)
        self.assertIsInstance(ctx.exception.cause, RuntimeError)
        self.assertIs(ctx.exception.__cause__, ctx.exception.cause)
        self.assertEqual(self.repo.count(Category.focus), 0)

    def test_malformed_reply_fails(self) -> None:
        generator = NuggetGenerator(
            self.repo, settings=make_settings(), complete=FakeProvider(reply="not a list")
        )
        with self.assertRaises(GenerationFailed):
            generator.generate_batch(Category.focus, 2)

    def test_rejects_bad_arguments(self) -> None:
        with self.assertRaises(ValueError):
            self.generator.generate_batch(Category.focus, 0)
        with self.assertRaises(GenerationFailed):
            self.generator.generate_batch(Category.focus, 1, "gemini")
        self.assertEqual(self.provider.calls, [])


class TestChatCompletion(unittest.TestCase):
    def setUp(self) -> None:
        self.cfg = ProviderSettings(
            provider=LLMProvider.deepseek,
            base_url="https://llm.example/v1",
            model="deepseek-chat",
            api_key="sk-test",
            timeout=5.0,
            temperature=0.7,
            max_tokens=4000,
        )
        self.messages = build_messages(Category.growth, 2)

    def _call(self, handler):
        return call_chat_completion(self.cfg, self.messages, transport=httpx.MockTransport(handler))

    def test_returns_message_content(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "  [] "}}]})

        self.assertEqual(self._call(handler), "[]")
        self.assertEqual(seen["url"], "https://llm.example/v1/chat/completions")
        self.assertEqual(seen["auth"], "Bearer sk-test")
        self.assertEqual(seen["body"]["model"], "deepseek-chat")
        self.assertEqual(seen["body"]["max_tokens"], 4000)

    def test_http_error_status(self) -> None:
        with self.assertRaises(GenerationFailed) as ctx:
            self._call(lambda request: httpx.Response(401, text="bad key"))
        self.assertIn("401", ctx.exception.message)
        self.assertIsInstance(ctx.exception.cause, httpx.HTTPStatusError)

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with self.assertRaises(GenerationFailed) as ctx:
            self._call(handler)
        self.assertIn("timed out", ctx.exception.message)

    def test_missing_content(self) -> None:
        with self.assertRaises(GenerationFailed):
            self._call(lambda request: httpx.Response(200, json={"choices": []}))
        with self.assertRaises(GenerationFailed):
            self._call(lambda request: httpx.Response(200, json={"choices": [{"message": {"content": ""}}]}))

    def test_non_json_body(self) -> None:
        with self.assertRaises(GenerationFailed):
            self._call(lambda request: httpx.Response(200, text="<html>"))


class TestProviderSettings(unittest.TestCase):
    def test_missing_api_key(self) -> None:
        cfg = make_settings(openai_api_key=None)
        with self.assertRaises(GenerationFailed) as ctx:
            resolve_provider_settings("openai", cfg)
        self.assertIn("API key", ctx.exception.message)

    def test_resolves_selected_provider(self) -> None:
        cfg = make_settings(
            deepseek_api_key="sk-ds",
            deepseek_base_url="https://api.deepseek.com/v1/",
            llm_timeout=12,
        )
        resolved = resolve_provider_settings(None, cfg)
        self.assertIs(resolved.provider, LLMProvider.deepseek)
        self.assertEqual(resolved.base_url, "https://api.deepseek.com/v1")
        self.assertEqual(resolved.api_key, "sk-ds")
        self.assertEqual(resolved.timeout, 12.0)


if __name__ == "__main__":
    unittest.main()
