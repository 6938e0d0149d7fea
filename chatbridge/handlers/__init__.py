"""Capability handlers wired into the dispatcher."""
from __future__ import annotations

from chatbridge.core.config import BotConfig
from chatbridge.core.dispatcher import CommandHandlers
from chatbridge.core.settings import AiSettings
from chatbridge.handlers.ai_config import AiConfigHandler, CommandRegistry
from chatbridge.handlers.assistant import AssistantHandler
from chatbridge.handlers.gpt import ConversationStore, GptHandler
from chatbridge.handlers.images import DalleHandler, StableDiffusionHandler


def build_handlers(config: BotConfig, settings: AiSettings) -> CommandHandlers:
    """Wire the default handlers using credentials from ``chatbridge.config``."""
    from chatbridge.config import (
        DALLE_MODEL,
        OPENAI_API_BASE,
        OPENAI_API_KEY,
        STABLE_DIFFUSION_URL,
    )
    from chatbridge.handlers.images import _openai_client
    from chatbridge.models import make_model

    gpt = GptHandler(
        lambda: make_model(tier="default"),
        ConversationStore(config.max_history),
        pre_prompt=config.pre_prompt,
    )
    assistant = AssistantHandler(lambda: make_model(tier="high"))
    dalle = DalleHandler(
        settings,
        model=DALLE_MODEL,
        client_factory=lambda: _openai_client(OPENAI_API_KEY, OPENAI_API_BASE),
    )
    sd = StableDiffusionHandler(settings, STABLE_DIFFUSION_URL)
    ai_config = AiConfigHandler(settings, prefix=config.ai_config_prefix)

    registry = CommandRegistry()
    registry.register("sd", "generate", sd.generate)

    return CommandHandlers(
        reset=gpt.handle_reset,
        configure=ai_config.handle_message,
        converse=gpt.handle_message,
        alt_converse=assistant.handle_message,
        generate_image=dalle.handle_message,
        execute_command=registry.execute,
    )


__all__ = [
    "AiConfigHandler",
    "AssistantHandler",
    "CommandRegistry",
    "ConversationStore",
    "DalleHandler",
    "GptHandler",
    "StableDiffusionHandler",
    "build_handlers",
]
