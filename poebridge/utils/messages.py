"""Conversion of host conversation turns to OpenAI chat-completion messages.

Host messages use the Anthropic shape: ``{"role": ..., "content": str | [blocks]}``
with ``text``, ``image``, ``tool_use`` and ``tool_result`` blocks.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from poebridge.utils.log import get_logger

logger = get_logger()


def _block_type(block: Any) -> Optional[str]:
    if isinstance(block, Mapping):
        value = block.get("type")
    else:
        value = getattr(block, "type", None)
    return value if isinstance(value, str) else None


def _block_get(block: Any, key: str, default: Any = None) -> Any:
    if isinstance(block, Mapping):
        return block.get(key, default)
    return getattr(block, key, default)


def _image_part(block: Any) -> Optional[Dict[str, Any]]:
    source = _block_get(block, "source") or {}
    source_type = _block_get(source, "type")
    if source_type == "base64":
        media_type = _block_get(source, "media_type") or "image/png"
        data = _block_get(source, "data") or ""
        return {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{data}"}}
    if source_type == "url" and _block_get(source, "url"):
        return {"type": "image_url", "image_url": {"url": _block_get(source, "url")}}
    logger.debug("[messages] Dropping image block with unsupported source", extra={"type": source_type})
    return None


def _tool_result_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            _block_get(part, "text") or ""
            for part in content
            if _block_type(part) == "text"
        ]
        return "\n".join(text for text in texts if text)
    return "" if content is None else str(content)


def _tool_call(block: Any) -> Dict[str, Any]:
    args = _block_get(block, "input") or {}
    try:
        arguments = json.dumps(args)
    except (TypeError, ValueError) as exc:
        logger.warning(
            "[messages] Failed to serialize tool arguments: %s: %s",
            type(exc).__name__,
            exc,
        )
        arguments = "{}"
    return {
        "id": _block_get(block, "id") or _block_get(block, "tool_use_id") or str(uuid4()),
        "type": "function",
        "function": {"name": _block_get(block, "name") or "", "arguments": arguments},
    }


def _convert_user_blocks(blocks: List[Any]) -> List[Dict[str, Any]]:
    converted: List[Dict[str, Any]] = []
    parts: List[Dict[str, Any]] = []
    for block in blocks:
        block_type = _block_type(block)
        if block_type == "tool_result":
            tool_call_id = _block_get(block, "tool_use_id") or _block_get(block, "id")
            if not tool_call_id:
                logger.debug("[messages] Skipping tool_result without tool_use_id")
                continue
            # Tool messages must directly follow the assistant tool call they answer.
            converted.append(
                {
                    "role": "tool",
                    "tool_call_id": tool_call_id,
                    "content": _tool_result_text(_block_get(block, "content")),
                }
            )
        elif block_type == "image":
            image = _image_part(block)
            if image:
                parts.append(image)
        elif block_type == "text":
            parts.append({"type": "text", "text": _block_get(block, "text") or ""})
    if parts:
        converted.append({"role": "user", "content": parts})
    return converted


def _convert_assistant_blocks(blocks: List[Any]) -> Dict[str, Any]:
    texts: List[str] = []
    tool_calls: List[Dict[str, Any]] = []
    for block in blocks:
        block_type = _block_type(block)
        if block_type == "text":
            texts.append(_block_get(block, "text") or "")
        elif block_type == "tool_use":
            tool_calls.append(_tool_call(block))
    message: Dict[str, Any] = {
        "role": "assistant",
        "content": "\n".join(texts) if texts else None,
    }
    if tool_calls:
        message["tool_calls"] = tool_calls
    return message


def convert_to_openai_messages(messages: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Translate host messages into OpenAI chat-completion messages."""
    converted: List[Dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        content = message.get("content")
        if isinstance(content, str):
            converted.append({"role": role, "content": content})
        elif isinstance(content, list):
            if role == "assistant":
                converted.append(_convert_assistant_blocks(content))
            else:
                converted.extend(_convert_user_blocks(content))
        else:
            converted.append({"role": role, "content": "" if content is None else str(content)})
    return converted


__all__ = ["convert_to_openai_messages"]
