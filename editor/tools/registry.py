"""
Tool Registry

Static catalog of the tools the chat agent may invoke. Confirmation policy,
UI labels and input schemas are data on each ToolSpec; the engine only reads
them.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError

from shared.services.web_search import WebSearchService
from shared.utils.exceptions import SearchUnavailableException
from editor.exceptions import ToolExecutionError, ToolValidationError
from editor.models.conversation import ToolInvocation
from editor.services.document_store import DocumentStore
from editor.services.mutation_applier import MutationApplier
from editor.tools.schemas import (
    AddStepParams,
    ReadSyllabindParams,
    RemoveStepParams,
    UpdateBasicsParams,
    UpdateWeekParams,
    WebSearchParams,
    to_input_schema,
)

logger = logging.getLogger("editor.tools")


@dataclass
class ToolContext:
    """Collaborators a tool handler may use, bound to one syllabus."""

    syllabus_id: int
    store: DocumentStore
    applier: MutationApplier
    search: Optional[WebSearchService] = None


ToolHandler = Callable[[ToolContext, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    params_model: Type[BaseModel]
    handler: ToolHandler
    label: str
    requires_confirmation: bool = False
    confirmation_message: str = ""

    def input_schema(self) -> Dict[str, Any]:
        return to_input_schema(self.params_model)

    def to_model_tool(self) -> Dict[str, Any]:
        """Tool definition in the Anthropic Messages API shape."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }


class ToolRegistry:
    """Name -> ToolSpec mapping."""

    def __init__(self, specs: Iterable[ToolSpec] = ()):
        self._specs: Dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f"Tool {spec.name} already registered")
        self._specs[spec.name] = spec

    def get(self, name: str) -> ToolSpec:
        spec = self._specs.get(name)
        if spec is None:
            raise ToolValidationError(name, f"unknown tool (available: {', '.join(self.names())})")
        return spec

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def names(self) -> List[str]:
        return list(self._specs.keys())

    def labels(self) -> Dict[str, str]:
        return {name: spec.label for name, spec in self._specs.items()}

    def schemas(self) -> List[Dict[str, Any]]:
        return [spec.to_model_tool() for spec in self._specs.values()]

    def requires_confirmation(self, name: str) -> bool:
        return self.get(name).requires_confirmation

    def validate(self, name: str, raw_params: Dict[str, Any]) -> BaseModel:
        """
        Parse raw model-supplied parameters into the tool's parameter model.

        Raises:
            ToolValidationError: Unknown tool or invalid parameters
        """
        spec = self.get(name)
        try:
            return spec.params_model.model_validate(raw_params or {})
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ToolValidationError(name, "; ".join(errors), errors) from e

    async def execute(self, invocation: ToolInvocation, context: ToolContext) -> Any:
        """Validate the invocation's parameters and run its handler."""
        spec = self.get(invocation.tool_name)
        params = self.validate(invocation.tool_name, invocation.params)
        logger.info(json.dumps({
            "step": "TOOL_EXECUTE",
            "status": "starting",
            "tool": spec.name,
            "tool_id": invocation.tool_id,
            "syllabus_id": context.syllabus_id,
        }))
        return await spec.handler(context, params)


# Handlers

async def _read_current_syllabind(context: ToolContext, params: ReadSyllabindParams) -> Dict[str, Any]:
    snapshot = await context.store.read_syllabus(context.syllabus_id)
    return snapshot.model_dump(mode="json")


async def _web_search(context: ToolContext, params: WebSearchParams) -> List[Dict[str, Any]]:
    if context.search is None:
        raise ToolExecutionError("web_search", "web search is not available")
    try:
        results = await context.search.search(params.query, include_recent=params.include_recent)
    except SearchUnavailableException as e:
        raise ToolExecutionError("web_search", str(e)) from e
    return [result.model_dump() for result in results]


def _mutation_handler(tool_name: str) -> ToolHandler:
    async def handler(context: ToolContext, params: BaseModel) -> Dict[str, Any]:
        return await context.applier.apply(context.syllabus_id, tool_name, params)

    return handler


DEFAULT_TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        name="read_current_syllabind",
        description=(
            "Read the full current Syllabind: basics, every week and every step with ids and positions. "
            "Call this before editing if you are unsure of the current structure."
        ),
        params_model=ReadSyllabindParams,
        handler=_read_current_syllabind,
        label="Reading the Syllabind",
    ),
    ToolSpec(
        name="web_search",
        description=(
            "Search the web for high-quality educational resources. Returns the top results with quality "
            "scores. Requires user approval because it uses API credits."
        ),
        params_model=WebSearchParams,
        handler=_web_search,
        label="Searching the web",
        requires_confirmation=True,
        confirmation_message="Search the web for resources? (This uses API credits)",
    ),
    ToolSpec(
        name="add_step",
        description=(
            "Add a reading or exercise to a week. Inserts at `position` (shifting later steps down) "
            "or appends when position is omitted."
        ),
        params_model=AddStepParams,
        handler=_mutation_handler("add_step"),
        label="Adding a step",
    ),
    ToolSpec(
        name="remove_step",
        description="Remove a step from a week by its position or id. Remaining steps are renumbered.",
        params_model=RemoveStepParams,
        handler=_mutation_handler("remove_step"),
        label="Removing a step",
    ),
    ToolSpec(
        name="update_week",
        description="Update a week's title and/or description. Omitted fields are left unchanged.",
        params_model=UpdateWeekParams,
        handler=_mutation_handler("update_week"),
        label="Updating the week",
    ),
    ToolSpec(
        name="update_basics",
        description=(
            "Update the Syllabind's title, description, audience level or duration in weeks. "
            "Omitted fields are left unchanged. EXPLAIN changes to the user first."
        ),
        params_model=UpdateBasicsParams,
        handler=_mutation_handler("update_basics"),
        label="Updating the basics",
    ),
]


def build_default_registry(confirmation_overrides: Optional[Dict[str, bool]] = None) -> ToolRegistry:
    """
    Build the standard tool catalog.

    Args:
        confirmation_overrides: Tool name -> requires_confirmation, applied on top
            of the defaults (e.g. to gate update_basics behind approval)
    """
    overrides = confirmation_overrides or {}
    unknown = set(overrides) - {spec.name for spec in DEFAULT_TOOL_SPECS}
    if unknown:
        raise ValueError(f"Unknown tools in confirmation overrides: {sorted(unknown)}")

    specs = []
    for spec in DEFAULT_TOOL_SPECS:
        if spec.name in overrides:
            requires = overrides[spec.name]
            spec = ToolSpec(
                name=spec.name,
                description=spec.description,
                params_model=spec.params_model,
                handler=spec.handler,
                label=spec.label,
                requires_confirmation=requires,
                confirmation_message=spec.confirmation_message or f"Allow the assistant to run {spec.name}?",
            )
        specs.append(spec)
    return ToolRegistry(specs)
