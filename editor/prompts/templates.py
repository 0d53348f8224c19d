"""
Prompt Template System

Reusable prompt templates with variable interpolation and validation.
"""

from typing import Any, Optional
from string import Formatter

from editor.exceptions import PromptTemplateError


class PromptTemplate:
    """Reusable template for generating prompts with {variable} placeholders."""

    def __init__(
        self,
        template: str,
        name: Optional[str] = None,
        defaults: Optional[dict[str, Any]] = None,
    ):
        self.template = template.strip()
        self.name = name or "unnamed"
        self.defaults = defaults or {}
        self.required_vars = self._extract_variables()

    def _extract_variables(self) -> set[str]:
        formatter = Formatter()
        variables = set()
        for _, field_name, _, _ in formatter.parse(self.template):
            if field_name is not None:
                base_name = field_name.split(".")[0].split("[")[0]
                if base_name:
                    variables.add(base_name)
        return variables

    def render(self, **kwargs: Any) -> str:
        values = {**self.defaults, **kwargs}
        missing = self.required_vars - set(values.keys())
        if missing:
            raise PromptTemplateError(template_name=self.name, missing_vars=sorted(missing))
        return self.template.format(**values)

    def __repr__(self) -> str:
        return f"PromptTemplate(name='{self.name}', vars={self.required_vars})"


# Chat Editor System Prompt

SYLLABIND_SYSTEM_TEMPLATE = PromptTemplate(
    """You are a helpful Syllabind assistant.

Current Syllabind: "{title}" ({audience_level}, {duration_weeks} weeks, {week_count} weeks written)

You can:
{capabilities}

Rules:
- Weeks and step positions are 1-based.
- Call read_current_syllabind before editing if you are unsure of the current structure.
- Make one tool call at a time and wait for its result.
- If the user declines a tool, continue without it and say so.

When searching, prioritize: .edu domains, Coursera, YouTube, Khan Academy.
Be conversational and helpful. Always cite your sources.""",
    name="syllabind_system",
)


TOOL_CAPABILITY_LINES = {
    "read_current_syllabind": "- Use read_current_syllabind to see the full Syllabind structure",
    "web_search": "- Search the web for additional high-quality educational resources (requires user approval)",
    "add_step": "- Add readings or exercises to a week",
    "remove_step": "- Remove steps from a week",
    "update_week": "- Update week titles and descriptions",
    "update_basics": "- Update the Syllabind's title, description, audience level and duration",
}


def build_system_prompt(
    title: str,
    audience_level: Optional[str],
    duration_weeks: int,
    week_count: int,
    tool_names: list[str],
) -> str:
    """Render the system prompt for one syllabus and the tools on offer."""
    capabilities = "\n".join(
        TOOL_CAPABILITY_LINES.get(name, f"- Use {name}") for name in tool_names
    )
    return SYLLABIND_SYSTEM_TEMPLATE.render(
        title=title,
        audience_level=audience_level or "Unspecified audience",
        duration_weeks=duration_weeks,
        week_count=week_count,
        capabilities=capabilities,
    )
