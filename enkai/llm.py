"""Async generation capability via litellm."""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass

import litellm

from .errors import ProviderError

litellm.suppress_debug_info = True


@dataclass
class LLMResponse:
    content: Optional[str] = None
    usage: Optional[Dict] = None


class LLMAdapter:
    """Unified LLM interface. Passes api_key/api_base directly to litellm,
    avoiding env-var pollution when switching between providers.

    Instances are callable as ``await adapter(prompt)`` so they can be handed to
    the dispatcher as the generation capability.
    """

    def __init__(self, model: str, temperature: float = 0.0,
                 max_tokens: int = 8192, api_base: Optional[str] = None,
                 api_key: Optional[str] = None, system_prompt: Optional[str] = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_base = api_base
        self.api_key = api_key
        self.system_prompt = system_prompt
        self.total_tokens = 0

    async def __call__(self, prompt: str) -> str:
        return await self.generate(prompt)

    async def generate(self, prompt: str) -> str:
        """Return the model's text for ``prompt``; raises ProviderError."""
        messages: List[Dict[str, Any]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = await self.chat(messages)
        if not response.content or not response.content.strip():
            raise ProviderError("empty response", model=self.model)
        return response.content

    async def chat(self, messages: List[Dict[str, Any]]) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": self.model, "messages": messages,
            "temperature": self.temperature, "max_tokens": self.max_tokens,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = await litellm.acompletion(**kwargs)
        except litellm.exceptions.AuthenticationError as e:
            raise ProviderError(f"Auth failed. Check API key.\n{e}", model=self.model) from e
        except litellm.exceptions.APIConnectionError as e:
            raise ProviderError(
                f"Cannot connect: base={self.api_base or 'default'}\n{e}", model=self.model
            ) from e
        except Exception as e:
            raise ProviderError(f"LLM error: {type(e).__name__}: {e}", model=self.model) from e

        if not response.choices:
            raise ProviderError("response has no choices", model=self.model)
        msg = response.choices[0].message

        usage = None
        if getattr(response, "usage", None):
            usage = {"prompt_tokens": response.usage.prompt_tokens,
                     "completion_tokens": response.usage.completion_tokens,
                     "total_tokens": response.usage.total_tokens}
            self.total_tokens += usage["total_tokens"] or 0

        return LLMResponse(content=msg.content, usage=usage)
