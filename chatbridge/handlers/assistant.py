"""Stateless assistant (``!lang``) built as an LCEL chain."""
from __future__ import annotations

import logging
from typing import Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable

from chatbridge.core.transport import ChatEvent

logger = logging.getLogger(__name__)

_SYSTEM = "You are a helpful assistant answering chat messages. Reply concisely in the user's language."


def build_chain(model: BaseChatModel, system_prompt: str = "") -> Runnable:
    prompt = ChatPromptTemplate.from_messages([
        ("system", system_prompt or _SYSTEM),
        ("human", "{question}"),
    ])
    return prompt | model | StrOutputParser()


class AssistantHandler:
    def __init__(self, model_factory: Callable[[], BaseChatModel], system_prompt: str = "") -> None:
        self._model_factory = model_factory
        self._system_prompt = system_prompt
        self._chain: Runnable | None = None

    @property
    def chain(self) -> Runnable:
        if self._chain is None:
            self._chain = build_chain(self._model_factory(), self._system_prompt)
        return self._chain

    async def handle_message(self, event: ChatEvent, prompt: str) -> None:
        logger.info("[LangChain] Received prompt from %s: %s", event.from_, prompt)
        answer = await self.chain.ainvoke({"question": prompt})
        await event.reply(answer)
