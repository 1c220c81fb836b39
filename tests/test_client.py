"""
Tests for the OpenAI text generation client
"""

import json

import httpx
import pytest

from sprintreport.ai.client import OpenAIGenerator
from sprintreport.ai.prompts import build_overview_prompt
from sprintreport.exceptions import ConfigurationError, TransportError


def _completion(content, finish_reason="stop"):
    return {
        "model": "gpt-4o",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5},
    }


class TestOpenAIGenerator:
    """Tests for OpenAIGenerator."""

    def test_requires_api_key(self, make_settings):
        with pytest.raises(ConfigurationError) as exc_info:
            OpenAIGenerator(make_settings())

        assert exc_info.value.missing == ["OPENAI_API_KEY"]

    @pytest.mark.asyncio
    async def test_generate_sends_json_mode_request(self, make_settings, openai_settings, make_context):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=_completion('{"overview": "Done."}'))

        generator = OpenAIGenerator(make_settings(**openai_settings), transport=httpx.MockTransport(handler))
        prompt = build_overview_prompt(make_context())

        text = await generator.generate(prompt)
        await generator.close()

        assert text == '{"overview": "Done."}'
        request = requests[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["response_format"] == {"type": "json_object"}
        assert body["model"] == "gpt-4o"
        assert body["messages"][0] == {"role": "system", "content": prompt.system_prompt}
        assert body["messages"][1] == {"role": "user", "content": prompt.text}

    @pytest.mark.asyncio
    async def test_complete_result(self, make_settings, openai_settings):
        def handler(request):
            return httpx.Response(200, json=_completion("{}", finish_reason="length"))

        generator = OpenAIGenerator(make_settings(**openai_settings), transport=httpx.MockTransport(handler))

        result = await generator.complete("system", "user")

        assert result.finish_reason == "length"
        assert result.usage["completion_tokens"] == 5

    @pytest.mark.asyncio
    async def test_http_error(self, make_settings, openai_settings):
        generator = OpenAIGenerator(
            make_settings(**openai_settings),
            transport=httpx.MockTransport(lambda request: httpx.Response(429, json={"error": "rate limit"})),
        )

        with pytest.raises(TransportError) as exc_info:
            await generator.complete("system", "user")

        assert exc_info.value.service == "generator"
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_malformed_envelope(self, make_settings, openai_settings):
        generator = OpenAIGenerator(
            make_settings(**openai_settings),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []})),
        )

        with pytest.raises(TransportError):
            await generator.complete("system", "user")
