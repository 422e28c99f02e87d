"""Built-in tools served by the protocol endpoint."""
import ast
import json
import operator
from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .base_tool import BaseTool, ToolResult


_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _evaluate(node: ast.AST):
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


class CalculatorTool(BaseTool):
    """Simple calculator tool for basic math operations."""

    def __init__(self):
        super().__init__(
            name="calculator",
            description="Performs basic mathematical calculations. Supports +, -, *, /, //, ** (power), and % (modulo).",
            input_schema={
                "type": "object",
                "properties": {
                    "expression": {
                        "type": "string",
                        "description": "The mathematical expression to evaluate (e.g., '2 + 2', '10 * 5')"
                    }
                },
                "required": ["expression"]
            },
            annotations={"readOnlyHint": True},
        )

    async def execute(self, expression: str) -> ToolResult:
        """Evaluate an arithmetic expression without touching ``eval``."""
        try:
            result = _evaluate(ast.parse(expression, mode="eval"))
        except (SyntaxError, ValueError, ZeroDivisionError, OverflowError) as e:
            return ToolResult.text(
                json.dumps({"error": str(e), "expression": expression}),
                is_error=True,
            )
        return ToolResult.text(json.dumps({"result": result, "expression": expression}))


class GetCurrentTimeTool(BaseTool):
    """Tool to get the current time."""

    def __init__(self):
        super().__init__(
            name="get_current_time",
            description="Returns the current date and time in ISO format.",
            input_schema={
                "type": "object",
                "properties": {
                    "timezone": {
                        "type": "string",
                        "description": "Timezone name (e.g., 'UTC', 'America/New_York')",
                        "default": "UTC"
                    }
                },
                "required": []
            },
            annotations={"readOnlyHint": True},
        )

    async def execute(self, timezone: str = "UTC") -> ToolResult:
        try:
            tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return ToolResult.text(json.dumps({"error": f"Unknown timezone: {timezone}"}), is_error=True)
        now = datetime.now(tz)
        return ToolResult.text(json.dumps({
            "datetime": now.isoformat(),
            "timezone": timezone,
            "timestamp": now.astimezone(dt_timezone.utc).timestamp(),
        }))

