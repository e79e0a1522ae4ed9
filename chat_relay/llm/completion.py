from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import openai
from fastapi import Depends
from openai import AsyncOpenAI

from chat_relay.core.settings import Settings, get_settings
from chat_relay.errors import (
    EmptyCompletionError,
    UpstreamError,
    UpstreamNetworkError,
)

PROMPT_PATH = Path(__file__).parent / "prompt.md"

GENERATION_PARAMS: Dict[str, Any] = {
    "max_tokens": 1500,
    "temperature": 0.7,
    "top_p": 1,
    "frequency_penalty": 0,
    "presence_penalty": 0,
}


def load_prompt() -> str:
    return PROMPT_PATH.read_text(encoding="utf-8").strip()


SYSTEM_PROMPT = load_prompt()


def build_conversation(message: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": message},
    ]


def extract_reply(resp: Dict[str, Any]) -> str:
    """Text of the first choice; an empty or missing one is a failure."""
    choice = (resp.get("choices") or [{}])[0] or {}
    msg = choice.get("message") or {}
    content = msg.get("content")
    if not content:
        raise EmptyCompletionError()
    return content


def _upstream_message(body: object) -> Optional[str]:
    # el SDK deja en `body` el objeto `error` del payload
    if isinstance(body, dict):
        nested = body.get("error")
        if isinstance(nested, dict):
            body = nested
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return None


class OpenAICompletionService:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # se crea al primer uso: sin API key el constructor del SDK falla
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    async def create(self, messages: List[Dict[str, str]], model: Any, **params: Any) -> Dict[str, Any]:
        try:
            resp = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                **params,
            )
        except openai.APIStatusError as e:
            raise UpstreamError(e.status_code, _upstream_message(e.body), str(e)) from e
        except openai.APIConnectionError as e:
            raise UpstreamNetworkError(str(e)) from e
        return resp.model_dump()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


# Un servicio (y un pool httpx) por par api_key/base_url, reutilizado entre requests
_services: Dict[Tuple[Optional[str], Optional[str]], OpenAICompletionService] = {}


def get_completion_service(settings: Settings = Depends(get_settings)) -> OpenAICompletionService:
    key = (settings.openai_api_key, settings.openai_base_url)
    service = _services.get(key)
    if service is None:
        service = OpenAICompletionService(api_key=key[0], base_url=key[1])
        _services[key] = service
    return service


async def close_completion_services() -> None:
    services = list(_services.values())
    _services.clear()
    for service in services:
        await service.aclose()
