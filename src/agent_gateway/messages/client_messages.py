from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import Field, field_validator, model_validator

from .base_message import BaseClientMessage, CLIENT_ROLES, UsageStats
from agent_gateway.tools.base_tool import ToolResult


class SystemMessage(BaseClientMessage):
    """Instructions seeded once at the start of every thread."""
    role: CLIENT_ROLES = "system"
    content: str
    type: Literal["SystemMessage"] = "SystemMessage"

    @property
    def text(self) -> str:
        return self.content


class UserMessage(BaseClientMessage):
    """What the chat client sent for one turn."""
    role: CLIENT_ROLES = "user"
    content: List[str]
    name: Optional[str] = None
    type: Literal["UserMessage"] = "UserMessage"

    @field_validator("content", mode="before")
    def _wrap_text(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            return [v]
        return v

    @property
    def text(self) -> str:
        return "\n".join(self.content)

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to a Responses API input message."""
        return {
            "type": "message",
            "role": self.role,
            "content": [{"type": "input_text", "text": item} for item in self.content],
        }


class ToolCallMessage(BaseClientMessage):
    """A single tool invocation requested by the model (MCP-compatible)."""
    role: CLIENT_ROLES = "tool_call"
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    content: Any = None
    arguments: Dict[str, Any] = Field(default_factory=dict)
    raw_arguments: Optional[str] = Field(default=None, description="Arguments as sent, when they could not be parsed")
    argument_error: Optional[str] = None
    type: Literal["ToolCallMessage"] = "ToolCallMessage"

    @model_validator(mode="before")
    @classmethod
    def _parse_arguments(cls, data: Any) -> Any:
        # the Responses API sends arguments as a JSON string; one that does not
        # parse to an object is kept and reported back as this call's error
        if not isinstance(data, dict):
            return data
        raw = data.get("arguments")
        if raw is None or raw == "":
            return {**data, "arguments": {}}
        value = raw
        if isinstance(raw, str):
            try:
                value = json.loads(raw)
            except json.JSONDecodeError as e:
                return {
                    **data,
                    "arguments": {},
                    "raw_arguments": raw,
                    "argument_error": f"arguments are not valid JSON: {e.msg}",
                }
        if not isinstance(value, dict):
            return {
                **data,
                "arguments": {},
                "raw_arguments": raw if isinstance(raw, str) else json.dumps(raw, default=str),
                "argument_error": "arguments must be a JSON object",
            }
        return {**data, "arguments": value}

    def _arguments_json(self) -> str:
        return self.raw_arguments if self.raw_arguments is not None else json.dumps(self.arguments)

    @property
    def text(self) -> str:
        return f"{self.name}({self._arguments_json()})"

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to a Responses API ``function_call`` input item."""
        return {
            "type": "function_call",
            "call_id": self.id,
            "name": self.name,
            "arguments": self._arguments_json(),
        }


class AssistantMessage(BaseClientMessage):
    """One completed model step: its text and any tool calls it requested."""
    type: Literal["AssistantMessage"] = "AssistantMessage"
    role: CLIENT_ROLES = "assistant"
    content: Optional[List[str]] = None
    tool_calls: Optional[List[ToolCallMessage]] = None
    finish_reason: Literal["stop", "tool_calls"] = "stop"
    usage: Optional[UsageStats] = None

    @property
    def text(self) -> str:
        if not self.content:
            return ""
        return "".join(c for c in self.content if c)

    def to_openai_items(self) -> List[Dict[str, Any]]:
        """Convert to Responses API input items, text before tool calls."""
        items: List[Dict[str, Any]] = []
        if self.text:
            items.append({
                "type": "message",
                "role": self.role,
                "content": [{"type": "output_text", "text": self.text}],
            })
        items.extend(tc.to_openai_format() for tc in self.tool_calls or [])
        return items


class ToolExecutionResultMessage(BaseClientMessage):
    """Outcome of one tool call, linked back to it by ``tool_call_id``."""
    role: CLIENT_ROLES = "tool_response"
    tool_call_id: str
    name: Optional[str] = None
    content: List[Dict[str, Any]]  # MCP content blocks
    isError: bool = False
    type: Literal["ToolExecutionResultMessage"] = "ToolExecutionResultMessage"

    @field_validator("content", mode="before")
    def _as_blocks(cls, v: Any) -> List[Dict[str, Any]]:
        if isinstance(v, dict):
            return [v]
        if isinstance(v, list):
            return [item if isinstance(item, dict) else {"type": "text", "text": str(item)} for item in v]
        return [{"type": "text", "text": str(v)}]

    @classmethod
    def from_tool_result(
        cls,
        tool_result: ToolResult,
        tool_call_id: str,
        tool_name: Optional[str] = None,
    ) -> "ToolExecutionResultMessage":
        return cls(
            tool_call_id=tool_call_id,
            name=tool_name,
            content=tool_result.content,
            isError=tool_result.isError,
        )

    @property
    def text(self) -> str:
        parts = []
        for block in self.content:
            if block.get("type") == "text":
                parts.append(block.get("text", ""))
            elif block.get("type") == "resource":
                parts.append(f"[Resource: {block.get('resource', {}).get('uri', '')}]")
            else:
                parts.append(json.dumps(block))
        return "\n".join(parts)

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to a Responses API ``function_call_output`` input item."""
        return {
            "type": "function_call_output",
            "call_id": self.tool_call_id,
            "output": self.text,
        }
