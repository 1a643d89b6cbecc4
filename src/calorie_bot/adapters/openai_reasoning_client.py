"""OpenAI Responses API client for meal reasoning."""

from dataclasses import dataclass

from openai import AsyncOpenAI

from calorie_bot.services.reasoning import ReasoningClient


@dataclass
class OpenAIReasoningClient(ReasoningClient):
    """Reasoning client backed by the OpenAI Responses API."""

    client: AsyncOpenAI
    max_output_tokens: int = 1500

    @classmethod
    def create(cls, api_key: str, timeout_seconds: float) -> "OpenAIReasoningClient":
        """Create a client with a bounded request timeout and no SDK retries."""
        return cls(
            client=AsyncOpenAI(
                api_key=api_key, timeout=timeout_seconds, max_retries=0
            )
        )

    async def complete(
        self, *, model: str, prompt: str, image_data_url: str | None = None
    ) -> str:
        """Send the prompt, optionally with an image, and return the reply text."""
        content: list[dict[str, object]] = [{"type": "input_text", "text": prompt}]
        if image_data_url is not None:
            content.append({"type": "input_image", "image_url": image_data_url})

        response = await self.client.responses.create(
            model=model,
            input=[{"role": "user", "content": content}],
            max_output_tokens=self.max_output_tokens,
            store=False,
        )
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
