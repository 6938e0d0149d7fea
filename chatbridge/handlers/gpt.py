"""Conversational handler (``!gpt`` and the prefix-less fallback)."""
from __future__ import annotations

import logging
from typing import Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from chatbridge.core.transport import ChatEvent

logger = logging.getLogger(__name__)

RESET_REPLY = "Conversation context was reset!"


class ConversationStore:
    """Per-chat message history, trimmed to the last *max_history* turns."""

    def __init__(self, max_history: int = 20) -> None:
        self._max_history = max_history
        self._history: dict[str, list[BaseMessage]] = {}

    def history(self, chat: str) -> list[BaseMessage]:
        return list(self._history.get(chat, []))

    def append(self, chat: str, *messages: BaseMessage) -> None:
        turns = self._history.setdefault(chat, [])
        turns.extend(messages)
        if self._max_history and len(turns) > self._max_history:
            del turns[: len(turns) - self._max_history]

    def clear(self, chat: str) -> bool:
        return self._history.pop(chat, None) is not None

    def __len__(self) -> int:
        return len(self._history)


class GptHandler:
    def __init__(
        self,
        model_factory: Callable[[], BaseChatModel],
        conversations: ConversationStore,
        pre_prompt: str = "",
    ) -> None:
        self._model_factory = model_factory
        self._model: BaseChatModel | None = None
        self._conversations = conversations
        self._pre_prompt = pre_prompt

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            self._model = self._model_factory()
        return self._model

    async def handle_message(self, event: ChatEvent, prompt: str) -> None:
        """Answer *prompt* in the context of the sender's conversation."""
        chat = event.from_
        logger.info("[GPT] Received prompt from %s: %s", chat, prompt)

        messages: list[BaseMessage] = []
        if self._pre_prompt:
            messages.append(SystemMessage(content=self._pre_prompt))
        messages.extend(self._conversations.history(chat))
        messages.append(HumanMessage(content=prompt))

        response = await self.model.ainvoke(messages)
        answer = response.content if isinstance(response.content, str) else str(response.content)

        self._conversations.append(chat, HumanMessage(content=prompt), AIMessage(content=answer))
        logger.info("[GPT] Answer to %s: %s", chat, answer)
        await event.reply(answer)

    async def handle_reset(self, event: ChatEvent) -> None:
        self._conversations.clear(event.from_)
        logger.info("[GPT] Conversation context for %s was reset", event.from_)
        await event.reply(RESET_REPLY)
