"""
Conector con el endpoint conversacional.
serialize_history: transcript → turnos {role, parts}; converse: {history, prompt} → {message}.
"""
from typing import Any, Iterable

import httpx

from ..errors import ConversationFailed
from ..state import Message, Sender
from ..utils.logging import log_llm

ROLE_BY_SENDER = {
    Sender.USER: "user",
    Sender.ASSISTANT: "model",
}


def serialize_history(messages: Iterable[Message]) -> list[dict[str, Any]]:
    """
    Turnos con rol, del más antiguo al más nuevo.
    Mensajes seguidos del mismo emisor se agrupan en un turno con varias parts
    para que los roles siempre alternen.
    """
    turns: list[dict[str, Any]] = []
    for msg in messages:
        role = ROLE_BY_SENDER[msg.sender]
        if turns and turns[-1]["role"] == role:
            turns[-1]["parts"].append({"text": msg.text})
        else:
            turns.append({"role": role, "parts": [{"text": msg.text}]})
    return turns


async def converse(
    client: httpx.AsyncClient,
    history: Iterable[Message],
    prompt: str,
    path: str,
) -> str:
    payload = {"history": serialize_history(history), "prompt": prompt}
    log_llm("HUMAN", prompt)
    try:
        resp = await client.post(path, json=payload)
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise ConversationFailed(str(e), status_code=e.response.status_code) from e
    except (httpx.HTTPError, ValueError) as e:
        raise ConversationFailed(str(e)) from e

    message = data.get("message") if isinstance(data, dict) else None
    if not isinstance(message, str):
        raise ConversationFailed("Respuesta sin 'message'")
    log_llm("AI", message)
    return message
