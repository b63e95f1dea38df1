"""Provider clients and AgentLLM role wiring (no network: httpx.MockTransport)."""
import json
import unittest

import httpx

from backend.app.core.agents.base import AgentLLM
from backend.app.core.llm_provider import (
    AnthropicProvider,
    LLMProviderError,
    OllamaProvider,
    OpenAICompatProvider,
    create_provider,
)


def _mock(provider, handler):
    provider.client = httpx.Client(transport=httpx.MockTransport(handler))
    return provider


class _Recorder:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    @property
    def payload(self):
        return json.loads(self.requests[-1].content)


class TestProviders(unittest.TestCase):
    def test_ollama_generate_json_mode(self):
        rec = _Recorder({"response": '{"beats": []}'})
        p = _mock(OllamaProvider(model="qwen3:8b", base_url="http://ollama:11434/"), rec)
        out = p.complete("outline please", system_prompt="sys", json_mode=True)
        self.assertEqual(out, '{"beats": []}')
        self.assertEqual(str(rec.requests[0].url), "http://ollama:11434/api/generate")
        self.assertEqual(rec.payload["format"], "json")
        self.assertEqual(rec.payload["system"], "sys")
        self.assertFalse(rec.payload["stream"])

    def test_ollama_autodetects_model(self):
        def handler(request):
            if request.url.path == "/api/tags":
                return httpx.Response(200, json={"models": [{"name": "mistral-nemo:latest"}]})
            return httpx.Response(200, json={"response": "ok"})

        p = _mock(OllamaProvider(model=""), handler)
        self.assertEqual(p.complete("hi"), "ok")
        self.assertEqual(p.model, "mistral-nemo:latest")

    def test_http_error_maps_to_provider_error(self):
        p = _mock(OllamaProvider(model="m"), _Recorder({"error": "boom"}, status=500))
        with self.assertRaises(LLMProviderError) as ctx:
            p.complete("hi")
        self.assertIn("HTTP error 500", str(ctx.exception))

    def test_connect_error_maps_to_provider_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        p = _mock(OllamaProvider(model="m", base_url="http://nowhere:1"), handler)
        with self.assertRaises(LLMProviderError) as ctx:
            p.complete("hi")
        self.assertIn("Cannot connect to Ollama", str(ctx.exception))

    def test_anthropic_joins_text_blocks(self):
        rec = _Recorder({"content": [{"type": "text", "text": "a"}, {"type": "tool_use"}, {"type": "text", "text": "b"}]})
        p = _mock(AnthropicProvider(model="m", api_key="k"), rec)
        self.assertEqual(p.complete("hi", system_prompt="sys"), "ab")
        self.assertEqual(rec.requests[0].headers["x-api-key"], "k")
        self.assertEqual(rec.payload["system"], "sys")

    def test_anthropic_requires_key(self):
        rec = _Recorder({})
        p = _mock(AnthropicProvider(model="m", api_key=""), rec)
        with self.assertRaises(LLMProviderError):
            p.complete("hi")
        self.assertEqual(rec.requests, [])

    def test_openai_compat_response_format_and_auth(self):
        rec = _Recorder({"choices": [{"message": {"content": "{}"}}]})
        p = _mock(OpenAICompatProvider(model="m", api_key="k", base_url="http://vllm:8000"), rec)
        self.assertEqual(p.complete("hi", system_prompt="sys", json_mode=True), "{}")
        self.assertEqual(rec.payload["response_format"], {"type": "json_object"})
        self.assertEqual(rec.payload["messages"][0], {"role": "system", "content": "sys"})
        self.assertEqual(rec.requests[0].headers["authorization"], "Bearer k")

    def test_openai_compat_empty_choices(self):
        p = _mock(OpenAICompatProvider(model="m"), _Recorder({"choices": []}))
        self.assertEqual(p.complete("hi"), "")

    def test_unknown_provider(self):
        with self.assertRaises(NotImplementedError):
            create_provider("carrier_pigeon", "m")


class _Stub:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def complete(self, prompt, system_prompt=None, json_mode=False):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


class TestAgentLLM(unittest.TestCase):
    def test_unknown_role_raises(self):
        with self.assertRaises(ValueError):
            AgentLLM("dungeon_master")

    def test_default_provider_is_ollama(self):
        llm = AgentLLM("canon_checker")
        self.assertEqual(llm._config["provider"], "ollama")
        self.assertIsInstance(llm._primary(), OllamaProvider)

    def test_cloud_providers_build_clients(self):
        for provider, cls in (("anthropic", AnthropicProvider), ("openai_compat", OpenAICompatProvider)):
            llm = AgentLLM("outline")
            llm._config["provider"] = provider
            self.assertIsInstance(llm._primary(), cls)

    def test_primary_failure_uses_fallback(self):
        llm = AgentLLM("summarizer")
        llm._config["fallback_provider"] = "openai_compat"
        llm._client = _Stub(error=LLMProviderError("down"))
        llm._fallback = _Stub(result="from fallback")
        self.assertEqual(llm.complete("sys", "user"), "from fallback")
        self.assertEqual(llm._fallback.calls, 1)

    def test_failure_without_fallback_propagates(self):
        llm = AgentLLM("summarizer")
        llm._config.pop("fallback_provider", None)
        llm._client = _Stub(error=LLMProviderError("down"))
        with self.assertRaises(LLMProviderError):
            llm.complete("sys", "user")
