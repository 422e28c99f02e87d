from typing import Any, Dict, List, Tuple

from agent_gateway.messages.base_message import BaseClientMessage
from agent_gateway.messages.client_messages import (
    AssistantMessage,
    SystemMessage,
    ToolExecutionResultMessage,
    UserMessage,
)


def messages_to_openai(messages: List[BaseClientMessage]) -> Tuple[str, List[Dict[str, Any]]]:
    """Split a thread's history into Responses API ``instructions`` and ``input``.

    System messages are joined into ``instructions``; everything else keeps
    its order as input items.
    """
    instructions: List[str] = []
    items: List[Dict[str, Any]] = []
    for msg in messages:
        if isinstance(msg, SystemMessage):
            instructions.append(msg.content)
        elif isinstance(msg, AssistantMessage):
            items.extend(msg.to_openai_items())
        elif isinstance(msg, (UserMessage, ToolExecutionResultMessage)):
            items.append(msg.to_openai_format())
        else:
            raise ValueError(f"Unsupported message type: {type(msg).__name__}")
    return "\n".join(instructions), items
