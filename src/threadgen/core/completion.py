"""Completion capability used for every text the engine asks for.

The engine never talks to a chat model directly. It asks a ``CompletionClient``
for a structured response of a given pydantic type and treats ``None`` and
raised errors as recoverable failures at the call site.

Classes:
    CompletionClient: Protocol for structured completion requests.
    LangChainCompletionClient: Adapter over a LangChain chat model.
    CompletionError: Raised by the adapter when the model call fails.

Example:
    >>> llm = LLMFactory.from_generation_config(config)
    >>> client = LangChainCompletionClient(llm)
    >>> response = await client.complete(
    ...     system_prompt, user_prompt, SingleEmailResponse, "email-body"
    ... )
"""

from __future__ import annotations

import logging
from typing import Protocol, TypeVar

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class CompletionError(Exception):
    """Raised when a completion request fails.

    Attributes:
        operation: Short label of the request (e.g. ``"email-body"``).
    """

    def __init__(self, message: str, operation: str) -> None:
        super().__init__(message)
        self.operation = operation


class CompletionClient(Protocol):
    """Structured completion requests.

    Implementations may return None or raise. They must not retry; the
    caller owns the retry budget.
    """

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: type[ResponseT],
        operation: str,
    ) -> ResponseT | None: ...


class LangChainCompletionClient:
    """CompletionClient backed by a LangChain chat model.

    Uses ``with_structured_output`` so the provider returns an instance of
    the requested pydantic model.

    Attributes:
        llm: The chat model requests are sent to.
    """

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: type[ResponseT],
        operation: str,
    ) -> ResponseT | None:
        """Send one structured request.

        Raises:
            CompletionError: If the model call fails.
        """
        try:
            structured_llm = self.llm.with_structured_output(response_model)
            result = await structured_llm.ainvoke(
                [
                    SystemMessage(content=system_prompt),
                    HumanMessage(content=user_prompt),
                ]
            )
        except Exception as e:
            raise CompletionError(
                f"Completion request '{operation}' failed: {e}",
                operation=operation,
            ) from e

        if result is None:
            logger.debug(f"Completion request '{operation}' returned no result")
            return None
        if isinstance(result, response_model):
            return result
        # Some providers hand back a dict when the schema is loosely enforced
        return response_model.model_validate(result)
