"""
Signature Help Engine
=====================

Parameter list and active parameter for the call enclosing the cursor.
"""

from typing import Any, Optional

from dsl_playground.config.logging import get_logger
from dsl_playground.core.dsl.registry import ElementRegistry
from dsl_playground.models.schemas import ContextDescriptor, ParameterInfo, SignatureHelp

logger = get_logger(__name__)


class SignatureHelpEngine:
    """Registry-driven signature help for elements and modifiers."""

    def __init__(self, registry: ElementRegistry) -> None:
        self.registry = registry
        self.logger: Any = logger.bind(component="signature_engine")

    def signature_help(self, descriptor: ContextDescriptor) -> Optional[SignatureHelp]:
        """
        Build signature help for the descriptor's active call.

        Args:
            descriptor: Context at the cursor

        Returns:
            SignatureHelp, or None when no known element or modifier encloses the cursor
        """
        name = descriptor.active_call
        if not name:
            return None

        try:
            definition = self.registry.lookup(name) or self.registry.lookup_modifier(name)
            if definition is None:
                self.logger.debug("RegistryMiss for signature help", name=name)
                return None

            parameters = [
                ParameterInfo(
                    name=param.name,
                    required=param.required,
                    description=param.description,
                    type_hint=param.type_hint,
                    default=param.default,
                    label=param.label,
                )
                for param in definition.parameters
            ]

            index = descriptor.argument_index
            if descriptor.active_keyword:
                for position, param in enumerate(definition.parameters):
                    if param.name == descriptor.active_keyword:
                        index = position
                        break
            index = max(0, min(index, len(parameters) - 1)) if parameters else 0

            return SignatureHelp(
                element_name=definition.name,
                label=definition.signature_label,
                documentation=definition.description,
                parameters=parameters,
                active_parameter_index=index,
            )
        except Exception as e:
            self.logger.error("Signature help failed", error=str(e), name=name)
            return None
