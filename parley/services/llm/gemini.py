"""Google Gemini generator."""

import json
import logging
import time
import uuid
from typing import AsyncIterator

import httpx
from google import genai
from google.genai import errors, types

from parley.core.config import ModelPrice, settings
from parley.models.chat import Message, ToolCall
from parley.services.llm.base import (
    INPUT_CACHE_READ_TOKEN,
    INPUT_TOKEN,
    OUTPUT_REASONING_TOKEN,
    OUTPUT_TOKEN,
    BaseGenerator,
    ContentChunk,
    GenerateConfig,
    GenerationMetrics,
    GeneratorError,
    ModelUsage,
    ReasoningChunk,
    ReasoningEffort,
    StopReason,
    StreamEvent,
    ToolCallEvent,
    Usage,
    UsageEntry,
)
from parley.services.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

THINKING_BUDGETS = {
    ReasoningEffort.LOW: 1024,
    ReasoningEffort.MEDIUM: 8192,
    ReasoningEffort.HIGH: 24576,
}


def _load_args(raw: str) -> dict:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {}
    return args if isinstance(args, dict) else {}


def to_contents(messages: list[Message]) -> tuple[str, list[types.Content]]:
    """Split messages into a system instruction and Gemini contents.

    Function calls that never received a response (a rejected tool call)
    are dropped, since the API rejects unanswered calls.
    """
    answered = {m.tool_call_id for m in messages if m.role == "tool"}
    call_names = {
        tc.id: tc.name for m in messages if m.role == "assistant" for tc in m.tool_calls
    }

    system_parts: list[str] = []
    contents: list[types.Content] = []
    for m in messages:
        if m.role == "system":
            system_parts.append(m.content)
        elif m.role == "user":
            contents.append(types.Content(role="user", parts=[types.Part(text=m.content)]))
        elif m.role == "assistant":
            parts = []
            if m.content:
                parts.append(types.Part(text=m.content))
            for tc in m.tool_calls:
                if tc.id not in answered:
                    continue
                parts.append(types.Part(function_call=types.FunctionCall(
                    name=tc.name,
                    args=_load_args(tc.arguments),
                )))
            if parts:
                contents.append(types.Content(role="model", parts=parts))
        elif m.role == "tool":
            contents.append(types.Content(role="user", parts=[
                types.Part(function_response=types.FunctionResponse(
                    name=call_names.get(m.tool_call_id, ""),
                    response={"result": m.content},
                ))
            ]))
    return "\n\n".join(system_parts), contents


def _entry(quantity: int, per_million: float) -> UsageEntry:
    return UsageEntry(quantity=quantity, price=quantity * per_million / 1_000_000)


def to_usage(
    metadata: types.GenerateContentResponseUsageMetadata,
    price: ModelPrice | None = None,
) -> Usage:
    """Map Gemini token counts to usage entries, priced when the model has a known price.

    Reasoning tokens are billed at the output rate.
    """
    price = price or ModelPrice()
    cached = metadata.cached_content_token_count or 0
    return Usage(entries={
        INPUT_TOKEN: _entry((metadata.prompt_token_count or 0) - cached, price.input),
        INPUT_CACHE_READ_TOKEN: _entry(cached, price.cached_input),
        OUTPUT_TOKEN: _entry(metadata.candidates_token_count or 0, price.output),
        OUTPUT_REASONING_TOKEN: _entry(metadata.thoughts_token_count or 0, price.output),
    })


class GeminiGenerator(BaseGenerator):
    def __init__(self, api_key: str | None = None):
        self.client = genai.Client(api_key=api_key or settings.gemini_api_key)

    def _build_config(
        self,
        system: str,
        config: GenerateConfig,
        tools: list[ToolDefinition] | None = None,
    ) -> types.GenerateContentConfig:
        kwargs: dict = {
            "max_output_tokens": config.max_tokens,
            "temperature": config.temperature,
        }
        if system:
            kwargs["system_instruction"] = system
        if tools:
            declarations = [defn.to_gemini_schema() for defn in tools]
            kwargs["tools"] = [types.Tool(function_declarations=declarations)]
        budget = THINKING_BUDGETS.get(config.reasoning_effort)
        if budget:
            kwargs["thinking_config"] = types.ThinkingConfig(include_thoughts=True, thinking_budget=budget)
        return types.GenerateContentConfig(**kwargs)

    async def generate(self, messages: list[Message], config: GenerateConfig) -> Message:
        system, contents = to_contents(messages)
        try:
            response = await self.client.aio.models.generate_content(
                model=config.model,
                contents=contents,
                config=self._build_config(system, config),
            )
        except (errors.APIError, httpx.HTTPError) as e:
            raise GeneratorError(str(e)) from e
        return Message(role="assistant", content=response.text or "")

    async def stream(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        config: GenerateConfig,
    ) -> AsyncIterator[StreamEvent]:
        system, contents = to_contents(messages)
        logger.info(
            f"Generator stream: model={config.model} messages={len(contents)} "
            f"tools={len(tools)} effort={config.reasoning_effort.value}"
        )

        started = time.monotonic()
        first_chunk_at: float | None = None
        usage_metadata = None
        finish_reason = None
        try:
            response = await self.client.aio.models.generate_content_stream(
                model=config.model,
                contents=contents,
                config=self._build_config(system, config, tools),
            )
            async for chunk in response:
                # Gemini reports running totals; only the last snapshot counts.
                if chunk.usage_metadata:
                    usage_metadata = chunk.usage_metadata
                if not chunk.candidates:
                    continue
                candidate = chunk.candidates[0]
                if candidate.finish_reason:
                    finish_reason = candidate.finish_reason
                if not candidate.content or not candidate.content.parts:
                    continue
                if first_chunk_at is None:
                    first_chunk_at = time.monotonic()
                for part in candidate.content.parts:
                    if part.thought and part.text:
                        yield ReasoningChunk(part.text)
                    elif part.text:
                        yield ContentChunk(part.text)
                    elif part.function_call:
                        fc = part.function_call
                        yield ToolCallEvent(ToolCall(
                            id=fc.id or f"call_{uuid.uuid4().hex[:8]}",
                            name=fc.name or "",
                            arguments=json.dumps(dict(fc.args) if fc.args else {}),
                        ))
        except (errors.APIError, httpx.HTTPError) as e:
            raise GeneratorError(str(e)) from e

        if finish_reason is not None:
            yield StopReason(getattr(finish_reason, "value", str(finish_reason)))
        if usage_metadata is not None:
            usage = to_usage(usage_metadata, settings.model_prices.get(config.model))
            logger.info(f"Generator usage: in={usage.input_tokens} out={usage.output_tokens}")
            yield ModelUsage(usage)
        metrics = {"duration": time.monotonic() - started}
        if first_chunk_at is not None:
            metrics["time_to_first_chunk"] = first_chunk_at - started
        yield GenerationMetrics(metrics)
