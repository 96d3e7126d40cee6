"""
OpenAI LLM Provider (LangChain-based)

Implements LLMProvider interface using LangChain's ChatOpenAI.

Supports:
    - Text generation (generate)
    - Structured output with Pydantic schemas (generate_structured)
    - Provider-side tools (web search, file search over storage areas)

Models:
    - gpt-4o-mini: Default for most stages
    - gpt-4.1: IT strategy generation
    - gpt-5-mini: Assessments (reasoning model, no temperature)

Example:
    >>> provider = OpenAILLMProvider(model="gpt-4o-mini")
    >>> data = await provider.generate_structured(
    ...     "Master data for acme.com", MasterData, tools=[web_search_tool()]
    ... )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from customer_intel.errors import GenerationFailure
from customer_intel.providers.base import LLMProvider, Tool

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage
    from langchain_openai import ChatOpenAI
    from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseModel")

_REASONING_PREFIXES = ("gpt-5", "o1", "o3", "o4")

_STRICT_JSON_INSTRUCTION = (
    "Return exactly one valid JSON object that matches the requested schema. "
    "Do not wrap it in markdown, do not truncate strings, and escape all quotes and newlines."
)


def _get_chat_openai(
    api_key: str | None = None,
    model: str = "gpt-4o-mini",
    temperature: float | None = 0.0,
) -> "ChatOpenAI":
    """
    Get a ChatOpenAI instance.

    Uses lazy import to avoid requiring langchain-openai unless actually used.
    Reasoning models only accept their default temperature, so none is sent.

    Raises:
        ImportError: If langchain-openai package is not installed
    """
    try:
        from langchain_openai import ChatOpenAI
    except ImportError:
        raise ImportError(
            "OpenAI provider requires the 'langchain-openai' package. "
            "Install with: pip install langchain-openai"
        )

    kwargs: dict[str, Any] = {"model": model}
    if temperature is not None and not model.startswith(_REASONING_PREFIXES):
        kwargs["temperature"] = temperature
    if api_key:
        kwargs["api_key"] = api_key

    return ChatOpenAI(**kwargs)


def _build_messages(prompt: str, system: str | None) -> list["BaseMessage"]:
    from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

    messages: list[BaseMessage] = []
    if system:
        messages.append(SystemMessage(content=system))
    messages.append(HumanMessage(content=prompt))
    return messages


class OpenAILLMProvider(LLMProvider):
    """
    OpenAI LLM provider implementation using LangChain.

    Any exception raised by the client is re-raised as GenerationFailure.
    Structured output that fails to parse is retried once with a stricter
    JSON instruction before giving up.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "gpt-4o-mini")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
    ) -> None:
        self._api_key = api_key
        self._model = model

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        tools: list[Tool] | None = None,
    ) -> str:
        """
        Generate a text completion.

        Args:
            prompt: User prompt/question
            system: Optional system message for context
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens in response
            tools: Provider-side tools the model may call

        Returns:
            Generated text response
        """
        base_client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=temperature,
        )
        client: Any = base_client.bind_tools(tools) if tools else base_client
        client = client.bind(max_tokens=max_tokens)

        try:
            response = await client.ainvoke(_build_messages(prompt, system))
        except Exception as e:
            raise GenerationFailure(f"{self._model} text generation failed: {e}") from e

        text = getattr(response, "text", None)
        output = text() if callable(text) else text
        return str(output if output is not None else response.content)

    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
    ) -> T:
        """
        Generate a structured response matching a Pydantic schema.

        Uses LangChain's with_structured_output with include_raw=True so a
        parsing error is reported instead of raised.

        Raises:
            GenerationFailure: If the call fails or both attempts return unparseable output
        """
        schema_name = getattr(schema, "__name__", str(schema))

        result = await self._invoke_structured(_build_messages(prompt, system), schema, tools)
        if result is None:
            logger.warning(f"{self._model} returned unparseable {schema_name}, retrying once")
            strict_prompt = f"{prompt}\n\n{_STRICT_JSON_INSTRUCTION}"
            result = await self._invoke_structured(
                _build_messages(strict_prompt, system), schema, tools
            )

        if result is None:
            raise GenerationFailure(f"{self._model} produced no valid {schema_name} after retry")
        return result

    async def _invoke_structured(
        self,
        messages: list["BaseMessage"],
        schema: type[T],
        tools: list[Tool] | None,
    ) -> T | None:
        """One structured call. Returns None when the output does not parse."""
        from langchain_core.exceptions import OutputParserException

        client = _get_chat_openai(api_key=self._api_key, model=self._model, temperature=0.0)
        kwargs: dict[str, Any] = {"include_raw": True}
        if tools:
            kwargs.update(method="json_schema", strict=True, tools=tools)

        try:
            structured_client = client.with_structured_output(schema, **kwargs)
            result_obj = await structured_client.ainvoke(messages)
        except (OutputParserException, ValidationError) as e:
            logger.warning(f"Structured output parse error: {e}")
            return None
        except Exception as e:
            raise GenerationFailure(f"{self._model} structured generation failed: {e}") from e

        if isinstance(result_obj, dict) and "parsed" in result_obj:
            if result_obj.get("parsing_error") is not None:
                logger.warning(f"Structured output parse error: {result_obj['parsing_error']}")
                return None
            parsed = result_obj["parsed"]
        else:
            parsed = result_obj

        if parsed is None:
            return None
        if isinstance(parsed, schema):
            return parsed
        try:
            return schema.model_validate(parsed)
        except ValidationError as e:
            logger.warning(f"Structured output failed validation: {e}")
            return None

    def with_model(self, model: str) -> "OpenAILLMProvider":
        """
        Return a new provider instance with a different model.

        Args:
            model: New model name to use

        Returns:
            New OpenAILLMProvider with the specified model
        """
        return OpenAILLMProvider(api_key=self._api_key, model=model)
