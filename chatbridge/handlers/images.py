"""Image generation: DALL·E (``!dalle``) and Stable Diffusion (``!sd``)."""
from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from chatbridge.core.settings import AiSettings
from chatbridge.core.transport import ChatEvent, Media

logger = logging.getLogger(__name__)

_SD_TIMEOUT = 300.0
NO_IMAGE_REPLY = "Sorry, no image could be generated for that prompt."


def _openai_client(api_key: str = "", base_url: str = "") -> Any:
    from openai import AsyncOpenAI

    return AsyncOpenAI(api_key=api_key or None, base_url=base_url or None)


class DalleHandler:
    def __init__(
        self,
        settings: AiSettings,
        *,
        model: str = "dall-e-3",
        client_factory: Callable[[], Any] = _openai_client,
    ) -> None:
        self._settings = settings
        self._model = model
        self._client_factory = client_factory

    async def handle_message(self, event: ChatEvent, prompt: str) -> None:
        size = self._settings.get("dalle", "size")
        logger.info("[DALL-E] Generating %s image for %s: %s", size, event.from_, prompt)

        client = self._client_factory()
        result = await client.images.generate(
            model=self._model,
            prompt=prompt,
            size=size,
            n=1,
            response_format="b64_json",
        )
        if not result.data or not result.data[0].b64_json:
            await event.reply(NO_IMAGE_REPLY)
            return
        await event.reply_media(Media("image/png", result.data[0].b64_json, "dalle.png"), caption=prompt)


class StableDiffusionHandler:
    """Client for an AUTOMATIC1111-compatible ``/sdapi/v1/txt2img`` endpoint."""

    def __init__(self, settings: AiSettings, base_url: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    async def generate(self, event: ChatEvent, prompt: str) -> None:
        steps = self._settings.get("sd", "steps")
        logger.info("[SD] Generating image (%d steps) for %s: %s", steps, event.from_, prompt)

        async with httpx.AsyncClient(timeout=_SD_TIMEOUT, transport=self._transport) as client:
            resp = await client.post(
                f"{self._base_url}/sdapi/v1/txt2img",
                json={"prompt": prompt, "steps": steps},
            )
            resp.raise_for_status()
            images = resp.json().get("images") or []

        if not images:
            await event.reply(NO_IMAGE_REPLY)
            return
        await event.reply_media(Media("image/png", images[0], "sd.png"), caption=prompt)
