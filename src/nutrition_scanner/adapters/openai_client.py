"""OpenAI Responses API client for menu analysis and chat."""

from dataclasses import dataclass

from openai import AsyncOpenAI

from nutrition_scanner.services.analysis import LanguageModelClient


@dataclass
class OpenAILanguageModelClient(LanguageModelClient):
    """Language model client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAILanguageModelClient":
        """Create an OpenAI language model client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        prompt: str,
        image_data_url: str | None = None,
        schema: dict[str, object] | None = None,
        schema_name: str | None = None,
    ) -> str:
        """Call OpenAI Responses API, with structured outputs when a schema is set."""
        content: list[dict[str, object]] = [{"type": "input_text", "text": prompt}]
        if image_data_url:
            content.append({"type": "input_image", "image_url": image_data_url})
        request_payload: dict[str, object] = {
            "model": model,
            "input": [{"role": "user", "content": content}],
            "store": store,
        }
        if schema is not None:
            request_payload["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": schema_name or "structured_output",
                    "strict": True,
                    "schema": schema,
                }
            }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
