"""Prompt registrations from externally authored YAML definitions."""

from __future__ import annotations

from typing import Any, Dict, Iterable

from ...prompt_loader import PromptDefinition
from ...registry import OperationDescriptor, OperationKind, OperationRegistry, ParameterSpec


def _prompt_handler(definition: PromptDefinition):
    async def render(arguments: Dict[str, Any]) -> Dict[str, Any]:
        return definition.render(arguments)

    return render


def register_prompts(registry: OperationRegistry, definitions: Iterable[PromptDefinition]) -> None:
    """Register every loaded prompt definition on the given registry."""
    for definition in definitions:
        registry.register(
            OperationDescriptor(
                name=definition.name,
                description=definition.description,
                handler=_prompt_handler(definition),
                parameters=tuple(
                    ParameterSpec(
                        name=argument.name,
                        description=argument.description,
                        required=argument.required,
                    )
                    for argument in definition.arguments
                ),
                kind=OperationKind.PROMPT,
            )
        )
