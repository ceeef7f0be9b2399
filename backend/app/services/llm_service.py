import json
import logging
from typing import Any, List, NamedTuple, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

# LangChain Imports
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage

# Langfuse SDK - @observe decorator for LLM tracing
from langfuse import observe, get_client

# Configuration
from config import (
    LLM_PROVIDER,
    LLM_API_KEY,
    LLM_MODEL as OVERRIDE_MODEL,
    OLLAMA_URL,
    LLM_TIMEOUT,
    LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY,
)
from app.exceptions import GenerationFailure

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class Instruction(NamedTuple):
    """System + user prompt pair handed to a generative boundary."""
    system: str
    user: str


LANGFUSE_ENABLED = bool(LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY)

# Determine Model Name based on Provider
# If LLM_MODEL is set in env, it overrides everything.
DEFAULT_MODELS = {
    "ollama": "gpt-oss:120b-cloud",
    "openrouter": "google/gemini-2.0-flash-001",
    "openai": "gpt-4o",
}

MODEL_NAME = OVERRIDE_MODEL if OVERRIDE_MODEL else DEFAULT_MODELS.get(LLM_PROVIDER, "gpt-4o")

# Base URLs for paid providers
PROVIDER_URLS = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": None  # Uses default OpenAI URL
}


def get_llm(temperature: float = 0.7, max_tokens: int = 2000, json_mode: bool = False):
    """
    Factory function to get a configured LangChain Chat Model instance.
    Supports: Ollama (Local), OpenRouter, OpenAI
    """

    # 1. OpenAI Compatible (OpenRouter, OpenAI)
    if LLM_PROVIDER in ["openrouter", "openai"]:
        if not LLM_API_KEY:
            logger.error(f"[LLM Service] Missing API Key for provider {LLM_PROVIDER}")

        model_kwargs = {}
        if json_mode:
            model_kwargs["response_format"] = {"type": "json_object"}

        return ChatOpenAI(
            model=MODEL_NAME,
            api_key=LLM_API_KEY,
            base_url=PROVIDER_URLS.get(LLM_PROVIDER),
            temperature=temperature,
            max_tokens=max_tokens,
            model_kwargs=model_kwargs,
            timeout=LLM_TIMEOUT
        )

    # 2. Ollama (Local), also the fallback for unknown providers
    if LLM_PROVIDER != "ollama":
        logger.warning(f"[LLM Service] Unknown provider '{LLM_PROVIDER}'. Defaulting to Ollama.")

    return ChatOllama(
        base_url=OLLAMA_URL,
        model=MODEL_NAME,
        temperature=temperature,
        num_predict=max_tokens,
        format="json" if json_mode else "",
        client_kwargs={"timeout": LLM_TIMEOUT}
    )


def _report_usage(response, temperature: float, max_tokens: int, mode: str) -> None:
    """Logs token usage and forwards it to Langfuse when tracing is on."""
    metadata = response.response_metadata
    if not metadata:
        return

    # Ollama returns tokens directly in metadata, not in nested 'usage'
    input_tokens = metadata.get('prompt_eval_count') or 0
    output_tokens = metadata.get('eval_count') or 0

    # Fallback to nested usage dict (OpenAI-compatible providers)
    if input_tokens == 0 and output_tokens == 0:
        usage = metadata.get('token_usage') or metadata.get('usage') or {}
        input_tokens = usage.get('prompt_tokens') or usage.get('input_tokens') or 0
        output_tokens = usage.get('completion_tokens') or usage.get('output_tokens') or 0

    total_tokens = input_tokens + output_tokens
    logger.info(f"[LLM Stats] Input: {input_tokens}, Output: {output_tokens}, Total: {total_tokens}")

    if LANGFUSE_ENABLED:
        try:
            get_client().update_current_generation(
                model=MODEL_NAME,
                usage_details={
                    "input": input_tokens,
                    "output": output_tokens,
                    "total": total_tokens
                },
                model_parameters={
                    "temperature": temperature,
                    "max_tokens": max_tokens
                },
                metadata={"mode": mode}
            )
        except Exception as e:
            logger.warning(f"[Langfuse] Failed to update generation: {e}")


@observe(name="call_llm", as_type="generation")
def call_llm(
    system_prompt: str,
    user_prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 2000,
    json_mode: bool = True
) -> str:
    """
    Executes a chat request using LangChain and tracks it with Langfuse.
    Any client error, timeout or empty answer raises GenerationFailure.
    """
    logger.info(f"[LLM Service] Calling Model ({'JSON' if json_mode else 'Text'}): {MODEL_NAME}")

    llm = get_llm(temperature=temperature, max_tokens=max_tokens, json_mode=json_mode)
    messages = [
        SystemMessage(content=system_prompt),
        HumanMessage(content=user_prompt)
    ]

    try:
        response = llm.invoke(messages)
    except Exception as e:
        logger.error(f"[LLM Service] Call Error: {e}")
        raise GenerationFailure(f"Generative boundary call failed: {e}", stage="invoke") from e

    content = response.content
    if isinstance(content, list):
        content = "".join(part if isinstance(part, str) else part.get("text", "") for part in content)

    if not content or not content.strip():
        logger.error("[LLM Service] Empty content received.")
        raise GenerationFailure("Generative boundary returned an empty response", stage="invoke")

    _report_usage(response, temperature, max_tokens, "json" if json_mode else "text")
    return content


def _strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if "```json" in cleaned:
        cleaned = cleaned.split("```json", 1)[1].split("```")[0]
    elif cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
    return cleaned.strip()


def decode_json(payload: Any) -> Any:
    """
    First decode stage: structured payloads pass through, text must be a
    JSON document on its own (a surrounding markdown fence is tolerated).
    Raises ValueError when the text is not valid JSON.
    """
    if not isinstance(payload, str):
        return payload
    return json.loads(_strip_code_fence(payload))


def extract_first_object(text: str) -> Optional[dict]:
    """
    Repair stage for text payloads: the first substring that parses as a
    complete JSON object, scanning left to right from every '{'.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        except RecursionError:
            # Later braces are nested inside this one; rescanning each is quadratic
            logger.warning(f"[LLM Service] Object at offset {start} nests too deeply to decode")
            return None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


def nested_objects(payload: Any) -> List[dict]:
    """Object values one level down, in order."""
    values = payload.values() if isinstance(payload, dict) else payload if isinstance(payload, list) else []
    return [value for value in values if isinstance(value, dict)]


def decode_with_repair(payload: Any, model: Type[T], label: str) -> T:
    """
    Two-stage decode of a generative boundary answer into `model`.

    1. Strict: the payload as-is (or parsed as JSON text) must validate.
    2. One repair pass: for text, the first well-formed object substring;
       for structured payloads, the first nested object that validates.

    A second failure raises GenerationFailure; nothing is fabricated.
    """
    try:
        return model.model_validate(decode_json(payload))
    except (ValueError, RecursionError) as e:
        logger.warning(f"[LLM Service] {label}: strict decode failed ({type(e).__name__}), attempting repair")

    if isinstance(payload, str):
        extracted = extract_first_object(payload)
        candidates = [extracted] + nested_objects(extracted) if extracted is not None else []
    else:
        candidates = nested_objects(payload)

    for candidate in candidates:
        try:
            result = model.model_validate(candidate)
        except (ValidationError, RecursionError):
            continue
        logger.info(f"[LLM Service] {label}: repaired payload validated")
        return result

    raw = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False, default=str)
    raise GenerationFailure(f"{label}: response could not be decoded after repair", stage="decode", raw=raw)
