from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from openai import AsyncOpenAI

if TYPE_CHECKING:
    from voicerecap.context import Context

from voicerecap.config import DEFAULT_SUMMARY_MODEL
from voicerecap.services.manager import BaseSummarizationService

# Transcripts shorter than this many words are not worth a model call
MIN_SUMMARY_WORDS = 30

SUMMARY_SYSTEM_PROMPT = "Please summarize the following text concisely:"

TOO_SHORT_TEXT = "Text too short to summarize meaningfully."
FAILED_TEXT = "Failed to generate summary."


class SummaryStatus(Enum):
    OK = "ok"
    TOO_SHORT = "too_short"
    FAILED = "failed"


@dataclass
class SummaryResult:
    """Outcome of a summarization request. text is always safe to show to users."""

    status: SummaryStatus
    text: str


def count_words(text: str) -> int:
    return len(text.split(" "))


# -------------------------------------------------------------- #
# Summarization Service
# -------------------------------------------------------------- #


class SummarizationService(BaseSummarizationService):
    """Summarizes call transcripts with an OpenAI chat model."""

    def __init__(
        self,
        context: Context,
        client: AsyncOpenAI,
        model: str = DEFAULT_SUMMARY_MODEL,
        min_words: int = MIN_SUMMARY_WORDS,
    ):
        super().__init__(context)
        self._client = client
        self.model = model
        self.min_words = min_words

    async def on_start(self, services) -> None:
        await super().on_start(services)
        await self.services.logging_service.info(
            f"SummarizationService initialized (model={self.model})"
        )

    async def on_close(self) -> None:
        # The client is shared with transcription; close it once, here
        await self._client.close()

    async def summarize(self, text: str) -> SummaryResult:
        """Summarize a transcript.

        Returns:
            SummaryResult; TOO_SHORT without calling the model when the transcript
            has fewer than min_words words, FAILED on any API error or empty reply
        """
        words = count_words(text)
        if words < self.min_words:
            await self.services.logging_service.info(
                f"Transcript has {words} words (< {self.min_words}), skipping summary"
            )
            return SummaryResult(status=SummaryStatus.TOO_SHORT, text=TOO_SHORT_TEXT)

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
            )
        except Exception as e:
            await self.services.logging_service.error(f"Error summarizing text: {e}")
            return SummaryResult(status=SummaryStatus.FAILED, text=FAILED_TEXT)

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            await self.services.logging_service.warning("Summary model returned no content")
            return SummaryResult(status=SummaryStatus.FAILED, text=FAILED_TEXT)

        return SummaryResult(status=SummaryStatus.OK, text=content.strip())
