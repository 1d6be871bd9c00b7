"""
Element Registry
================

Immutable catalog of DSL elements and modifiers, loaded from a YAML file and
validated with Cerberus. The registry is built once per catalog path and then
shared by reference with the completion, signature help and sandbox components.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import threading

import yaml  # type: ignore[import-untyped]
from cerberus import Validator  # type: ignore[import-untyped]

from dsl_playground.config.logging import get_logger
from dsl_playground.models.schemas import (
    ElementDefinition,
    ElementKind,
    ModifierDefinition,
    ParameterSpec,
)

logger = get_logger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "elements.yaml"

IDENTIFIER_REGEX = r"^[a-z_][a-z0-9_]*[?!]?$"


class RegistryError(Exception):
    """Exception raised when the element catalog is invalid."""

    pass


PARAMETER_SCHEMA: Dict[str, Any] = {
    "name": {"type": "string", "required": True, "regex": IDENTIFIER_REGEX},
    "type_hint": {"type": "string", "default": "Any"},
    "required": {"type": "boolean", "default": False},
    "default": {"type": "string", "nullable": True},
    "description": {"type": "string", "default": ""},
    "keyword": {"type": "boolean", "default": False},
}

MODIFIER_SCHEMA: Dict[str, Any] = {
    "name": {"type": "string", "required": True, "regex": IDENTIFIER_REGEX},
    "description": {"type": "string", "default": ""},
    "aliases": {"type": "list", "schema": {"type": "string", "regex": IDENTIFIER_REGEX}, "default": []},
    "values": {"type": "list", "schema": {"type": "string"}, "default": []},
    "examples": {"type": "list", "schema": {"type": "string"}, "default": []},
    "parameters": {
        "type": "list",
        "schema": {"type": "dict", "schema": PARAMETER_SCHEMA},
        "default": [],
    },
}

ELEMENT_SCHEMA: Dict[str, Any] = {
    "name": {"type": "string", "required": True, "regex": IDENTIFIER_REGEX},
    "description": {"type": "string", "default": ""},
    "category": {"type": "string", "default": "general"},
    "tag": {"type": "string", "required": True, "regex": r"^[a-z][a-z0-9]*$"},
    "kind": {"type": "string", "allowed": [k.value for k in ElementKind], "default": "container"},
    "modifier_groups": {"type": "list", "schema": {"type": "string"}, "default": []},
    "modifiers": {"type": "list", "schema": {"type": "string"}, "default": []},
    "examples": {"type": "list", "schema": {"type": "string"}, "default": []},
    "parameters": {
        "type": "list",
        "schema": {"type": "dict", "schema": PARAMETER_SCHEMA},
        "default": [],
    },
}

CATALOG_SCHEMA: Dict[str, Any] = {
    "modifier_groups": {
        "type": "dict",
        "keysrules": {"type": "string"},
        "valuesrules": {"type": "list", "schema": {"type": "string"}},
        "default": {},
    },
    "value_sets": {"type": "dict", "nullable": True},
    "modifiers": {
        "type": "list",
        "required": True,
        "schema": {"type": "dict", "schema": MODIFIER_SCHEMA},
    },
    "elements": {
        "type": "list",
        "required": True,
        "empty": False,
        "schema": {"type": "dict", "schema": ELEMENT_SCHEMA},
    },
}


class ElementRegistry:
    """Read-only catalog of element and modifier definitions."""

    def __init__(
        self,
        elements: List[ElementDefinition],
        modifiers: List[ModifierDefinition],
        source: Optional[Path] = None,
    ) -> None:
        element_map: Dict[str, ElementDefinition] = {}
        for element in elements:
            if element.name in element_map:
                raise RegistryError(f"Duplicate element name: {element.name}")
            element_map[element.name] = element

        modifier_map: Dict[str, ModifierDefinition] = {}
        for modifier in modifiers:
            if modifier.name in modifier_map:
                raise RegistryError(f"Duplicate modifier name: {modifier.name}")
            modifier_map[modifier.name] = modifier

        alias_map: Dict[str, ModifierDefinition] = {}
        for modifier in modifiers:
            for alias in modifier.aliases:
                if alias in modifier_map or alias in alias_map:
                    raise RegistryError(f"Modifier alias '{alias}' of '{modifier.name}' is already defined")
                alias_map[alias] = modifier

        for element in elements:
            undefined = [m for m in element.modifiers if m not in modifier_map]
            if undefined:
                raise RegistryError(
                    f"Element '{element.name}' references undefined modifiers: {', '.join(undefined)}"
                )

        self._elements: Tuple[ElementDefinition, ...] = tuple(elements)
        self._element_map: Mapping[str, ElementDefinition] = MappingProxyType(element_map)
        self._modifiers: Tuple[ModifierDefinition, ...] = tuple(modifiers)
        self._modifier_map: Mapping[str, ModifierDefinition] = MappingProxyType(modifier_map)
        self._alias_map: Mapping[str, ModifierDefinition] = MappingProxyType(alias_map)
        self._all_modifier_names: Tuple[str, ...] = tuple(
            sorted({name for element in elements for name in element.modifiers})
        )
        self.source = source

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ElementRegistry":
        """
        Build a registry from a YAML catalog file.

        Args:
            path: Catalog file path

        Returns:
            Constructed registry

        Raises:
            RegistryError: If the file cannot be read or fails validation
        """
        path = Path(path)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise RegistryError(f"Cannot load element catalog {path}: {e}") from e

        return cls.from_mapping(raw, source=path)

    @classmethod
    def from_mapping(cls, raw: Any, source: Optional[Path] = None) -> "ElementRegistry":
        """Build a registry from already-parsed catalog data."""
        if not isinstance(raw, dict):
            raise RegistryError("Element catalog must be a mapping")

        validator = Validator(CATALOG_SCHEMA)  # type: ignore[misc]
        if not validator.validate(raw):  # type: ignore[misc]
            errors = _format_validation_errors(validator.errors)  # type: ignore[attr-defined]
            raise RegistryError("Invalid element catalog: " + "; ".join(errors))

        data = validator.document  # type: ignore[attr-defined]
        groups: Dict[str, List[str]] = data.get("modifier_groups") or {}
        canonical = {alias: m["name"] for m in data["modifiers"] for alias in m["aliases"]}

        modifiers = [
            ModifierDefinition(
                name=m["name"],
                description=m["description"],
                aliases=tuple(m["aliases"]),
                values=tuple(m["values"]),
                examples=tuple(m["examples"]),
                parameters=tuple(ParameterSpec(**p) for p in m["parameters"]),
            )
            for m in data["modifiers"]
        ]

        elements: List[ElementDefinition] = []
        for e in data["elements"]:
            modifier_names: List[str] = []
            for group in e["modifier_groups"]:
                if group not in groups:
                    raise RegistryError(f"Element '{e['name']}' references unknown group '{group}'")
                modifier_names.extend(groups[group])
            modifier_names.extend(e["modifiers"])
            modifier_names = [canonical.get(name, name) for name in modifier_names]

            elements.append(
                ElementDefinition(
                    name=e["name"],
                    description=e["description"],
                    category=e["category"],
                    tag=e["tag"],
                    kind=ElementKind(e["kind"]),
                    modifiers=tuple(dict.fromkeys(modifier_names)),
                    examples=tuple(e["examples"]),
                    parameters=tuple(ParameterSpec(**p) for p in e["parameters"]),
                )
            )

        registry = cls(elements, modifiers, source=source)
        logger.info(
            "Element registry built",
            elements=len(elements),
            modifiers=len(modifiers),
            source=str(source) if source else None,
        )
        return registry

    def lookup(self, name: str) -> Optional[ElementDefinition]:
        """Return the element definition for ``name`` or None."""
        return self._element_map.get(name)

    def all(self) -> Tuple[ElementDefinition, ...]:
        """Return all element definitions in catalog order."""
        return self._elements

    def names(self) -> Tuple[str, ...]:
        return tuple(self._element_map)

    def lookup_modifier(self, name: str) -> Optional[ModifierDefinition]:
        """Return the modifier definition for ``name`` or one of its aliases, or None."""
        return self._modifier_map.get(name) or self._alias_map.get(name)

    def modifiers(self) -> Tuple[ModifierDefinition, ...]:
        return self._modifiers

    def modifiers_for(self, element_name: str) -> Tuple[ModifierDefinition, ...]:
        """Return the modifiers declared for an element, in declaration order."""
        element = self.lookup(element_name)
        if element is None:
            return ()
        return tuple(self._modifier_map[name] for name in element.modifiers)

    def all_modifier_names(self) -> Tuple[str, ...]:
        """Return the union of modifiers declared across all elements, sorted."""
        return self._all_modifier_names

    def __contains__(self, name: object) -> bool:
        return name in self._element_map

    def __len__(self) -> int:
        return len(self._elements)


def _format_validation_errors(errors: Any, path: str = "") -> List[str]:
    """Format Cerberus validation errors into readable messages."""
    formatted_errors: List[str] = []

    for field, error_info in errors.items():
        current_path = f"{path}.{field}" if path else str(field)

        if isinstance(error_info, list):
            for error in error_info:
                if isinstance(error, dict):
                    formatted_errors.extend(_format_validation_errors(error, current_path))
                else:
                    formatted_errors.append(f"{current_path}: {error}")
        elif isinstance(error_info, dict):
            formatted_errors.extend(_format_validation_errors(error_info, current_path))

    return formatted_errors


_registries: Dict[Path, ElementRegistry] = {}
_registry_lock = threading.Lock()


def load_registry(path: Optional[Union[str, Path]] = None) -> ElementRegistry:
    """
    Return the registry for a catalog path, building it on first use.

    Concurrent first calls for the same path build the registry exactly once.

    Args:
        path: Catalog path, defaults to the bundled catalog

    Returns:
        Shared immutable registry
    """
    key = Path(path or DEFAULT_CATALOG_PATH).resolve()
    registry = _registries.get(key)
    if registry is not None:
        return registry

    with _registry_lock:
        registry = _registries.get(key)
        if registry is None:
            registry = ElementRegistry.from_yaml(key)
            _registries[key] = registry
    return registry
