#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Prompt compiler - flattens OpenAI chat messages into a single Replicate prompt
"""

from typing import Iterable

from ..schemas import Message


ROLE_PREFIXES = {
    "system": "System",
    "user": "Human",
    "assistant": "Assistant",
}

GENERATION_CUE = "Assistant: "


def compile_prompt(messages: Iterable[Message]) -> str:
    """
    Build the backend prompt from role-tagged messages

    Each known role becomes ``"<Prefix>: <content>\\n\\n"`` in order; unknown
    roles (tool, function, ...) are dropped. The prompt always ends with the
    ``"Assistant: "`` cue.

    Args:
        messages: ordered chat messages

    Returns:
        str: prompt text
    """
    parts = []
    for message in messages:
        prefix = ROLE_PREFIXES.get(message.role)
        if prefix is None:
            continue
        parts.append(f"{prefix}: {message.text}\n\n")

    parts.append(GENERATION_CUE)
    return "".join(parts)
