from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _empty_object_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}, "required": []}


class Tool(BaseModel):
    """Tool descriptor as advertised by ``tools/list``."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    inputSchema: Dict[str, Any] = Field(
        default_factory=_empty_object_schema,
        description="JSON Schema of the tool's arguments",
    )
    title: Optional[str] = None
    annotations: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Behaviour hints such as readOnlyHint or destructiveHint",
    )

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to a Responses API function tool.

        Protocol schemas rarely satisfy strict mode (every property required,
        no additional keys), so strict is off.
        """
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.inputSchema,
            "strict": False,
        }

    def to_mcp_format(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ToolResult(BaseModel):
    """Content blocks returned by a tool, plus whether they describe a failure."""
    model_config = ConfigDict(populate_by_name=True)

    content: List[Dict[str, Any]] = Field(default_factory=list)
    isError: bool = Field(default=False, alias="is_error")

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "ToolResult":
        return cls(content=[{"type": "text", "text": text}], isError=is_error)

    def to_mcp_format(self) -> Dict[str, Any]:
        return {"content": self.content, "isError": self.isError}


class BaseTool(ABC):
    """A callable tool that the engine's agent and the protocol endpoint share."""

    def __init__(
        self,
        name: str,
        description: str,
        input_schema: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
        annotations: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.description = description
        self.input_schema = input_schema or _empty_object_schema()
        self.title = title
        self.annotations = annotations

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Run the tool with arguments matching ``input_schema``.

        Expected failures (bad input, unknown ids) should come back as a
        ``ToolResult`` with ``isError`` set rather than as an exception.
        """

    def get_schema(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
            title=self.title,
            annotations=self.annotations,
        )

    def get_openai_schema(self) -> Dict[str, Any]:
        return self.get_schema().to_openai_format()

    def get_mcp_schema(self) -> Dict[str, Any]:
        return self.get_schema().to_mcp_format()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
