"""
Tool execution seam between nodes and the suspend primitive.

Nodes and services never call ``ctx.suspend`` directly; they go through a
ToolExecutor so tests can substitute canned results for the external actor.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from mcp_workflow.errors import WorkflowValidationError
from mcp_workflow.graph.interrupt import NodeContext
from mcp_workflow.schemas.metadata import InterruptData

ResultT = TypeVar("ResultT", bound=BaseModel)

ResultValidator = Callable[[Any, type[ResultT]], ResultT]


@runtime_checkable
class ToolExecutor(Protocol):
    """Hands interrupt data to the external actor and returns its raw result."""

    def execute(
        self,
        ctx: NodeContext,
        data: InterruptData,
        result_schema: type[BaseModel] | None = None,
    ) -> Any: ...


class InterruptToolExecutor:
    """Default executor: suspends the workflow via the node context."""

    def execute(
        self,
        ctx: NodeContext,
        data: InterruptData,
        result_schema: type[BaseModel] | None = None,
    ) -> Any:
        expected_schema = (
            result_schema.model_json_schema(by_alias=True) if result_schema is not None else None
        )
        return ctx.suspend(data, expected_schema=expected_schema)


def execute_tool_with_logging(
    executor: ToolExecutor,
    logger: logging.Logger,
    ctx: NodeContext,
    data: InterruptData,
    result_schema: type[ResultT],
    validator: ResultValidator | None = None,
) -> ResultT:
    """
    Run a tool through the executor and validate what comes back.

    Args:
        executor: Executor that obtains the raw result (suspends by default)
        logger: Logger of the calling node or service
        ctx: Context of the running node
        data: Interrupt data describing the requested work
        result_schema: Pydantic model the result must satisfy
        validator: Optional replacement for plain schema validation; may
            coerce, repair or reject the raw result

    Returns:
        The validated result model

    Raises:
        WorkflowValidationError: The result does not satisfy the schema
    """
    logger.debug(
        f"Interrupt data (pre-execution) for '{data.target_name}'",
        extra={"tool_name": data.target_name},
    )

    raw_result = executor.execute(ctx, data, result_schema)

    logger.debug(
        f"Tool execution result (post-execution): {raw_result!r}",
        extra={"tool_name": data.target_name},
    )

    subject = f"result from '{data.target_name}'"
    try:
        if validator is not None:
            return validator(raw_result, result_schema)
        validated = result_schema.model_validate(raw_result)
    except ValidationError as e:
        raise WorkflowValidationError.from_pydantic(e, subject=subject) from e
    except ValueError as e:
        raise WorkflowValidationError(f"Invalid {subject}: {e}") from e

    logger.debug(f"Validated tool result: {validated!r}")
    return validated
