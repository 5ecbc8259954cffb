"""Turns an in-memory message list into the payload sent to the model."""

import re
from typing import List, Optional

from .constants import (
    DUAL_LAYER_DIRECTIVE,
    MODE_LABELS,
    SYSTEM_INSTRUCTION_TEMPLATE,
    get_language,
)
from .models import USER_ROLE, InlineData, Message, ModelRequest, Part, Turn

DATA_URI_PATTERN = re.compile(r"data:(.+);base64,(.+)")


def parse_data_uri(uri: str) -> Optional[InlineData]:
    """Splits ``data:<mime>;base64,<payload>`` into mime type and payload.

    Returns None when the string does not follow that shape.
    """
    match = DATA_URI_PATTERN.fullmatch(uri)
    if not match:
        return None
    return InlineData(mime_type=match.group(1), data=match.group(2))


def build_instruction(mode: str, language_code: str) -> str:
    mode_label = MODE_LABELS[mode]
    return (
        SYSTEM_INSTRUCTION_TEMPLATE.replace("{LANGUAGE}", get_language(language_code).ai_param)
        .replace("{MODE_LOWER}", mode_label.lower())
        .replace("{MODE}", mode_label)
    )


def message_to_turn(message: Message) -> Turn:
    parts = []
    if message.image:
        media = parse_data_uri(message.image)
        if media:
            parts.append(Part(inline_data=media))
    if message.text:
        parts.append(Part(text=message.text))
    return Turn(role=message.role, parts=parts)


def build_request(
    history: List[Message],
    text: str,
    image: Optional[str],
    mode: str,
    language_code: str,
    temperature: float = 0.2,
) -> ModelRequest:
    """Builds the model request for a new user turn.

    Parameters
    ----------
    history : List[Message]
        The conversation before the new turn. The message being sent must not
        be included, it becomes ``turn``.
    text : str
        The new user text.
    image : str, optional
        A data URI attached to the new turn.
    mode : str
        ``"adult"`` or ``"pediatric"``.
    language_code : str
        Response language; unknown codes fall back to the default language.
    temperature : float
        Sampling temperature passed through to the model.

    Returns
    -------
    ModelRequest
        Instruction text, prior turns without error messages, and the new turn.
    """
    prior_turns = [message_to_turn(m) for m in history if not m.is_error]

    prompt = text
    parts = []
    if image:
        prompt += DUAL_LAYER_DIRECTIVE
        media = parse_data_uri(image)
        if media:
            parts.append(Part(inline_data=media))
    parts.append(Part(text=prompt))

    return ModelRequest(
        system_instruction=build_instruction(mode, language_code),
        history=prior_turns,
        turn=Turn(role=USER_ROLE, parts=parts),
        temperature=temperature,
    )
