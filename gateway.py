import logging
from enum import Enum
from typing import Any, Callable, Dict, Tuple

import anyio
import requests

import config

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """The upstream completion call failed or returned nothing usable."""


class ModelId(str, Enum):
    GEMINI = "gemini"
    QWEN = "qwen"
    MISTRAL = "mistral"


def _safe_json(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {"text": resp.text}


def _post(url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Any:
    try:
        r = requests.post(url, headers=headers, json=payload, timeout=config.REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise ProviderError(f"Request failed: {e}") from e
    if r.status_code >= 400:
        body = _safe_json(r)
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            body = body["error"].get("message") or body["error"]
        raise ProviderError(f"Provider returned HTTP {r.status_code}: {body}")
    data = _safe_json(r)
    if not isinstance(data, dict):
        raise ProviderError("Provider returned a non-object response")
    return data


def gemini_generate(model_name: str, prompt: str) -> str:
    if not config.GEMINI_API_KEY:
        raise ProviderError("GEMINI_API_KEY is not set. Put it in .env and restart.")
    data = _post(
        f"{config.GEMINI_BASE_URL}/v1beta/models/{model_name}:generateContent",
        {"x-goog-api-key": config.GEMINI_API_KEY, "Content-Type": "application/json"},
        {"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
    )
    try:
        candidate = (data.get("candidates") or [{}])[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        return "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))
    except (AttributeError, KeyError, IndexError, TypeError) as e:
        raise ProviderError(f"Malformed response from {model_name}: {e!r}") from e


def openrouter_chat(model_name: str, prompt: str) -> str:
    if not config.OPENROUTER_API_KEY:
        raise ProviderError("OPENROUTER_API_KEY is not set. Put it in .env and restart.")
    data = _post(
        f"{config.OPENROUTER_BASE_URL}/chat/completions",
        {
            "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        },
        {"model": model_name, "messages": [{"role": "user", "content": prompt}]},
    )
    try:
        msg = ((data.get("choices") or [{}])[0].get("message") or {})
        return str(msg.get("content") or "")
    except (AttributeError, KeyError, IndexError, TypeError) as e:
        raise ProviderError(f"Malformed response from {model_name}: {e!r}") from e


Backend = Callable[[str, str], str]


def _model_table() -> Dict[ModelId, Tuple[Backend, str]]:
    return {
        ModelId.GEMINI: (gemini_generate, config.GEMINI_MODEL),
        ModelId.QWEN: (openrouter_chat, config.QWEN_MODEL),
        ModelId.MISTRAL: (openrouter_chat, config.MISTRAL_MODEL),
    }


class CompletionGateway:
    """Sends one prompt to the backend behind a model id and returns the reply text.

    The HTTP call is blocking, so it runs in a worker thread; the event loop keeps
    serving other connections while a completion is in flight.
    """

    async def complete(self, prompt: str, model: ModelId) -> str:
        backend, model_name = _model_table()[ModelId(model)]
        logger.debug("Completion request: model=%s (%s), %d chars", model, model_name, len(prompt))
        text = await anyio.to_thread.run_sync(backend, model_name, prompt)
        if not text or not text.strip():
            raise ProviderError(f"Empty response from {model_name}")
        return text
