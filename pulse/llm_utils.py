from __future__ import annotations

from typing import cast

from pulse.constants import LLM_SYSTEM_PROMPT, LLM_TEMPERATURE, LLM_TOP_P


def build_messages(
    contents: object | None, system: str | None = LLM_SYSTEM_PROMPT
) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    if isinstance(contents, str):
        messages.append({"role": "user", "content": contents})
        return messages
    if isinstance(contents, list):
        for item in contents:
            if isinstance(item, str):
                messages.append({"role": "user", "content": item})
                continue
            if not isinstance(item, dict):
                continue
            item_dict = cast(dict[str, object], item)
            role = item_dict.get("role")
            content = item_dict.get("content")
            if isinstance(role, str) and isinstance(content, str):
                messages.append({"role": role, "content": content})
    return messages


def build_payload(
    model: str,
    contents: object | None,
    config: dict[str, object] | None = None,
) -> dict[str, object]:
    config = config or {}
    system = config.get("system", LLM_SYSTEM_PROMPT)
    payload: dict[str, object] = {
        "model": model,
        "messages": build_messages(
            contents, system if isinstance(system, str) else None
        ),
        "temperature": config.get("temperature", LLM_TEMPERATURE),
        "top_p": config.get("top_p", LLM_TOP_P),
    }

    max_tokens = config.get("max_tokens")
    if isinstance(max_tokens, (int, float)) and max_tokens > 0:
        payload["max_tokens"] = int(max_tokens)

    return payload


def extract_message_content(data: object) -> str | None:
    """Pull ``choices[0].message.content`` out of a chat-completions envelope."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None
