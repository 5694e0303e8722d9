"""Decorators for tracing MCP components."""

import functools
from collections.abc import Callable
from datetime import datetime
from typing import Any

import logfire


def trace_tool(tool_name: str):
    """Decorator to trace MCP tool execution."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"tool.execution.{tool_name}",
                tool_name=tool_name,
                tool_category=_categorize_tool(tool_name),
            ) as span:
                start_time = datetime.now()

                # Tool handlers take (engine, arguments)
                arguments = kwargs.get("arguments", args[-1] if args else {})
                if isinstance(arguments, dict):
                    _add_attributes(span, "input", arguments)

                try:
                    result = await func(*args, **kwargs)

                    span.set_attribute("tool.success", not _is_error(result))
                    span.set_attribute(
                        "tool.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                    )
                    _add_tool_result_metrics(span, result)

                    return result

                except Exception as e:
                    span.set_attribute("tool.success", False)
                    span.set_attribute("tool.error", str(e))
                    raise

        return wrapper

    return decorator


def trace_resource(resource_type: str):
    """Lightweight decorator for resource reads."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"resource.read.{resource_type}",
                resource_type=resource_type,
            ) as span:
                _add_attributes(span, "input", kwargs)
                result = await func(*args, **kwargs)

                if isinstance(result, dict):
                    span.set_attribute("result.total", result.get("total", 0))

                return result

        return wrapper

    return decorator


def _categorize_tool(tool_name: str) -> str:
    if "reserve" in tool_name:
        return "reservations"
    if "issue" in tool_name or "return" in tool_name:
        return "circulation"
    return "general"


def _is_error(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("isError"))


def _add_attributes(span, prefix: str, data: dict):
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)


def _add_tool_result_metrics(span, result: Any):
    if not isinstance(result, dict) or _is_error(result):
        return
    # data holds one record keyed by kind ("transaction", "return", "reservation")
    for record in (result.get("data") or {}).values():
        if not isinstance(record, dict):
            continue
        for key in ("txn_id", "fine_amount", "res_id"):
            if record.get(key) is not None:
                span.set_attribute(f"result.{key}", record[key])
