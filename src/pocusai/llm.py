"""Concrete implementations for the model boundary."""

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .config import get_settings
from .models import MODEL_ROLE, ModelRequest, Turn

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base class for failures at the model boundary."""


class ModelRequestFailed(LLMError):
    """The provider raised, or answered without any text."""


class MissingConfiguration(LLMError):
    """The provider cannot be called because a credential is missing."""


class LLM(ABC):
    """Abstract Base Class for all model providers.

    Callers only use :meth:`generate`. Providers implement the two steps it
    is made of, mirroring their SDK: a native call and text extraction.
    """

    @abstractmethod
    def generate_response(self, request: ModelRequest) -> Any:
        """Sends the request and returns the provider's native response object.

        Parameters
        ----------
        request : ModelRequest
            System instruction, prior turns, the new turn and temperature.

        Returns
        -------
        Any
            The provider's native response object.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> Optional[str]:
        """Extracts the text content from the provider's native response object."""
        pass

    def generate(self, request: ModelRequest) -> str:
        """Returns the generated text or raises an ``LLMError``."""
        try:
            response = self.generate_response(request)
        except LLMError:
            raise
        except Exception as e:
            logger.error("%s request failed: %s", type(self).__name__, e)
            raise ModelRequestFailed(str(e) or "Error generating response.") from e

        text = self.extract_content(response)
        if not text:
            raise ModelRequestFailed("No response generated.")
        return text


class Gemini(LLM):
    """Google Gemini through the ``google-genai`` SDK."""

    def __init__(
        self,
        default_model: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        settings = get_settings()
        self.model = default_model or settings.gemini_model
        self.api_key = api_key or settings.gemini_api_key
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise MissingConfiguration(
                    "Gemini API key is not configured. Set GEMINI_API_KEY."
                )
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def to_content(turn: Turn):
        from google.genai import types

        parts = []
        for part in turn.parts:
            if part.inline_data is not None:
                parts.append(
                    types.Part.from_bytes(
                        data=base64.b64decode(part.inline_data.data),
                        mime_type=part.inline_data.mime_type,
                    )
                )
            elif part.text is not None:
                parts.append(types.Part.from_text(text=part.text))
        return types.Content(role=turn.role, parts=parts)

    def generate_response(self, request: ModelRequest) -> Any:
        from google.genai import types

        chat = self.client.chats.create(
            model=self.model,
            config=types.GenerateContentConfig(
                system_instruction=request.system_instruction,
                temperature=request.temperature,
            ),
            history=[self.to_content(turn) for turn in request.history],
        )
        return chat.send_message(self.to_content(request.turn).parts)

    def extract_content(self, response: Any) -> Optional[str]:
        return response.text


class OpenAI(LLM):
    """OpenAI chat completions; images travel as data URI ``image_url`` parts."""

    def __init__(self, default_model: Optional[str] = None):
        from openai import OpenAI

        self.client = OpenAI()
        self.model = default_model or get_settings().openai_model

    @staticmethod
    def to_message(turn: Turn) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = []
        for part in turn.parts:
            if part.inline_data is not None:
                url = f"data:{part.inline_data.mime_type};base64,{part.inline_data.data}"
                content.append({"type": "image_url", "image_url": {"url": url}})
            elif part.text is not None:
                content.append({"type": "text", "text": part.text})
        role = "assistant" if turn.role == MODEL_ROLE else "user"
        return {"role": role, "content": content}

    def build_messages(self, request: ModelRequest) -> List[Dict[str, Any]]:
        messages = [{"role": "system", "content": request.system_instruction}]
        messages.extend(self.to_message(turn) for turn in request.history)
        messages.append(self.to_message(request.turn))
        return messages

    def generate_response(self, request: ModelRequest) -> Any:
        return self.client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(request),
            temperature=request.temperature,
        )

    def extract_content(self, response: Any) -> Optional[str]:
        return response.choices[0].message.content


class Echo(LLM):
    """Returns the prompt back. Useful for running the UI without a key."""

    def __init__(self, default_model: str = "echo-v1"):
        self.model = default_model

    def generate_response(self, request: ModelRequest) -> Any:
        prompt = " ".join(p.text for p in request.turn.parts if p.text)
        images = sum(1 for p in request.turn.parts if p.inline_data is not None)
        content = f"**Echo LLM - static response for testing**\n\n_Your prompt:_\n\n{prompt}"
        if images:
            content += f"\n\n_Images attached: {images}_"
        return {"content": content, "history_turns": len(request.history)}

    def extract_content(self, response: Any) -> Optional[str]:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        return str(response)
