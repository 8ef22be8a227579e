"""Operation registry: name -> parameter schema + handler.

The registry is filled once at startup with the built-in tools and the
prompts loaded from YAML, then frozen. After ``freeze()`` it is a read-only
lookup table that many in-flight calls may read without locking.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from .errors import NotFound, RegistryError, ValidationFailed
from .schemas.base import validation_failure

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Any]]


class OperationKind(str, Enum):
    TOOL = "tool"
    PROMPT = "prompt"


@dataclass(frozen=True)
class ParameterSpec:
    """One named, typed argument of an operation."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    default: Any = None
    enum: Tuple[str, ...] = ()
    items: Optional[Mapping[str, Any]] = None

    @classmethod
    def from_schema(cls, name: str, schema: Mapping[str, Any], required: bool) -> "ParameterSpec":
        """Build from one JSON-schema property as produced by pydantic."""
        variants = schema.get("anyOf") or [schema]
        chosen = next((v for v in variants if v.get("type") != "null"), variants[0])
        return cls(
            name=name,
            type=chosen.get("type", "string"),
            description=schema.get("description", ""),
            required=required,
            default=schema.get("default"),
            enum=tuple(chosen.get("enum", ())),
            items=chosen.get("items"),
        )

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.items is not None:
            schema["items"] = dict(self.items)
        if self.default is not None:
            schema["default"] = self.default
        return schema


def parameters_from_model(model: Type[BaseModel]) -> Tuple[ParameterSpec, ...]:
    """Derive ordered parameter specs from a pydantic argument model."""
    schema = model.model_json_schema()
    required = set(schema.get("required", ()))
    return tuple(
        ParameterSpec.from_schema(name, prop, name in required)
        for name, prop in schema.get("properties", {}).items()
    )


@dataclass(frozen=True)
class OperationDescriptor:
    """Immutable description of a callable operation."""

    name: str
    description: str
    handler: Handler
    parameters: Tuple[ParameterSpec, ...] = ()
    kind: OperationKind = OperationKind.TOOL
    params_model: Optional[Type[BaseModel]] = field(default=None, compare=False)

    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {param.name: param.to_schema() for param in self.parameters},
            "required": [param.name for param in self.parameters if param.required],
        }

    def validate(self, arguments: Optional[Mapping[str, Any]]) -> Any:
        """Validate raw arguments, returning what the handler accepts."""
        arguments = dict(arguments or {})
        if self.params_model is not None:
            try:
                return self.params_model.model_validate(arguments)
            except ValidationError as exc:
                raise validation_failure(exc) from exc

        missing = [
            (param.name, "field required")
            for param in self.parameters
            if param.required and arguments.get(param.name) in (None, "")
        ]
        if missing:
            raise ValidationFailed.from_problems(missing)
        known = {param.name for param in self.parameters}
        return {key: value for key, value in arguments.items() if key in known}

    def to_tool(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }

    def to_prompt(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [
                {
                    "name": param.name,
                    "description": param.description,
                    "required": param.required,
                }
                for param in self.parameters
            ],
        }


class OperationRegistry:
    """Registry of tools and prompts keyed by unique name."""

    def __init__(self) -> None:
        self._operations: Dict[str, OperationDescriptor] = {}
        self._frozen = False

    def register(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        if self._frozen:
            raise RegistryError(f"registry is frozen, cannot register {descriptor.name!r}")
        if descriptor.name in self._operations:
            raise RegistryError(f"operation {descriptor.name!r} is already registered")
        self._operations[descriptor.name] = descriptor
        logger.debug("Registered %s %s", descriptor.kind.value, descriptor.name)
        return descriptor

    def tool(
        self,
        params_model: Type[BaseModel],
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        """Decorator registering an async handler as a tool."""

        def decorator(handler: Handler) -> Handler:
            self.register(
                OperationDescriptor(
                    name=name or handler.__name__,
                    description=description or inspect.cleandoc(handler.__doc__ or ""),
                    handler=handler,
                    parameters=parameters_from_model(params_model),
                    kind=OperationKind.TOOL,
                    params_model=params_model,
                )
            )
            return handler

        return decorator

    def freeze(self) -> "OperationRegistry":
        if not self._frozen:
            self._operations = MappingProxyType(dict(self._operations))  # type: ignore[assignment]
            self._frozen = True
            logger.info(
                "Operation registry ready: %d tools, %d prompts",
                len(self.tools()),
                len(self.prompts()),
            )
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, name: str, kind: Optional[OperationKind] = None) -> OperationDescriptor:
        descriptor = self._operations.get(name)
        if descriptor is None or (kind is not None and descriptor.kind != kind):
            label = kind.value if kind is not None else "operation"
            raise NotFound(f"Unknown {label}: {name}")
        return descriptor

    def tools(self) -> List[OperationDescriptor]:
        return [op for op in self._operations.values() if op.kind == OperationKind.TOOL]

    def prompts(self) -> List[OperationDescriptor]:
        return [op for op in self._operations.values() if op.kind == OperationKind.PROMPT]

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)
