"""Abstract interfaces for the orchestrator's external collaborators.

These ABCs define the contract that concrete implementations must fulfil.
The SDK ships one implementation of each (``survey_engine.llm`` and
``survey_engine.notifier``); tests substitute in-memory fakes.

Typical integration flow::

    generator: TextGenerator = OpenRouterGenerator(api_key=...)
    notifier: Notifier = SmtpNotifier.from_env()
    orchestrator = SurveyOrchestrator(generator, notifier=notifier)

    text = await generator.generate(
        [{"role": "user", "content": prompt}],
        temperature=0.7,
        max_tokens=4000,
    )
"""

from abc import ABC, abstractmethod
from typing import Literal, Optional, TypedDict

ReasoningEffort = Literal["low", "medium", "high"]


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class TextGenerator(ABC):
    """Interface for the text-generation model.

    Implementations must raise :class:`~survey_engine.errors.ModelCallError`
    on transport failures and non-2xx responses; they never parse the text.
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        reasoning_effort: Optional[ReasoningEffort] = None,
    ) -> str:
        """Return the model's reply text for ``messages``."""
        ...


class Notifier(ABC):
    """Interface for out-of-band notifications.

    Called after the primary write has been made; callers log and swallow
    any exception raised here.
    """

    @abstractmethod
    async def notify_completion(
        self,
        *,
        to: str,
        preset_title: str,
        preset_slug: str,
        completed_count: int,
    ) -> None:
        """Tell a preset owner that another respondent finished."""
        ...
