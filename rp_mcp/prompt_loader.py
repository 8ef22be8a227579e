"""Loading of externally authored prompt definitions.

Every ``*.yaml`` / ``*.yml`` file in the prompts directory holds a list of
prompts::

    prompts:
      - name: reportportal_analyze_launch
        description: "Analyze ReportPortal launch"
        arguments:
          - name: launch_id
            description: "ID of the launch"
            required: true
        messages:
          - role: user
            content:
              type: text
              text: "Analyze launch {launch_id}"

Message texts are ``str.format`` templates; every placeholder must name a
declared argument and literal braces are written as ``{{`` and ``}}``.
Any problem fails startup with an error naming the offending file.
"""

from __future__ import annotations

import logging
import string
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Set, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import PromptDefinitionError
from .schemas.base import validation_failure

logger = logging.getLogger(__name__)

PROMPT_SUFFIXES = (".yaml", ".yml")


class PromptArgument(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    description: str = ""
    required: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"argument name {value!r} must be a valid identifier")
        return value


class PromptContent(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["text"] = "text"
    text: str


class PromptMessage(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    role: Literal["user", "assistant"]
    content: PromptContent


class PromptDefinition(BaseModel):
    """One prompt: a named template plus the arguments it accepts."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    arguments: List[PromptArgument] = Field(default_factory=list)
    messages: List[PromptMessage] = Field(min_length=1)

    def placeholders(self) -> Set[str]:
        names = set()
        for message in self.messages:
            for _, field_name, _, _ in string.Formatter().parse(message.content.text):
                if field_name is not None:
                    names.add(field_name)
        return names

    def render(self, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        values = _BlankDefaults({key: "" if value is None else str(value) for key, value in arguments.items()})
        return {
            "description": self.description,
            "messages": [
                {
                    "role": message.role,
                    "content": {
                        "type": message.content.type,
                        "text": message.content.text.format_map(values),
                    },
                }
                for message in self.messages
            ],
        }


class PromptFile(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    prompts: List[PromptDefinition] = Field(min_length=1)


class _BlankDefaults(dict):
    """Optional arguments that were not supplied render as empty text."""

    def __missing__(self, key: str) -> str:
        return ""


def load_prompt_file(path: Path) -> List[PromptDefinition]:
    """Parse and validate a single prompt definition file."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise PromptDefinitionError(path, f"cannot read file: {exc}") from exc
    except yaml.YAMLError as exc:
        raise PromptDefinitionError(path, f"invalid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise PromptDefinitionError(path, "expected a mapping with a 'prompts' list")

    try:
        parsed = PromptFile.model_validate(raw)
    except ValidationError as exc:
        raise PromptDefinitionError(path, validation_failure(exc).message) from exc

    seen: Set[str] = set()
    for prompt in parsed.prompts:
        if prompt.name in seen:
            raise PromptDefinitionError(path, f"prompt {prompt.name!r} is defined twice")
        seen.add(prompt.name)

        declared = {argument.name for argument in prompt.arguments}
        if len(declared) != len(prompt.arguments):
            raise PromptDefinitionError(path, f"prompt {prompt.name!r} declares an argument twice")
        try:
            placeholders = prompt.placeholders()
        except ValueError as exc:
            raise PromptDefinitionError(path, f"prompt {prompt.name!r} has a malformed template: {exc}") from exc
        undeclared = sorted(placeholders - declared)
        if undeclared:
            raise PromptDefinitionError(
                path,
                f"prompt {prompt.name!r} uses undeclared arguments: {', '.join(undeclared) or '{}'}",
            )
    return list(parsed.prompts)


def load_prompts(directory: Union[str, Path]) -> List[PromptDefinition]:
    """Load every prompt file in ``directory`` in a deterministic order.

    Files are read in file-name order and the prompts of each file in
    prompt-name order. A prompt name may appear only once across all files.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise PromptDefinitionError(directory, "prompts directory does not exist")

    files = sorted(
        (path for path in directory.iterdir() if path.is_file() and path.suffix in PROMPT_SUFFIXES),
        key=lambda path: path.name,
    )

    definitions: List[PromptDefinition] = []
    owners: Dict[str, Path] = {}
    for path in files:
        for prompt in sorted(load_prompt_file(path), key=lambda item: item.name):
            if prompt.name in owners:
                raise PromptDefinitionError(
                    path, f"prompt {prompt.name!r} is already defined in {owners[prompt.name].name}"
                )
            owners[prompt.name] = path
            definitions.append(prompt)
        logger.debug("Loaded prompt file %s", path.name)

    logger.info("Loaded %d prompts from %s", len(definitions), directory)
    return definitions
