"""
Sandbox Evaluator
=================

Runs one complete DSL submission through the sandbox pipeline: strict lexing,
forbidden-token screening, parsing, capability resolution and interpretation.
Every failure is classified into a ``Fault``; no exception crosses the
``evaluate`` boundary.
"""

import time
import traceback
from typing import Any, Optional

from dsl_playground.config.logging import get_logger
from dsl_playground.config.settings import Settings, get_settings
from dsl_playground.core.dsl.errors import DSLError, DSLRuntimeError
from dsl_playground.core.dsl.interpreter import ExecutionBudget, Interpreter
from dsl_playground.core.dsl.nodes import NodeTree
from dsl_playground.core.dsl.parser import parse_program
from dsl_playground.core.dsl.registry import ElementRegistry
from dsl_playground.core.dsl.resolver import check_capabilities
from dsl_playground.models.schemas import EvaluationResult, Fault, FaultKind, SourceLocation

logger = get_logger(__name__)


def document_span(source: str) -> SourceLocation:
    """Location covering the whole source buffer."""
    lines = source.split("\n")
    return SourceLocation(
        line=1,
        column=1,
        end_line=len(lines),
        end_column=len(lines[-1]) + 1,
    )


class SandboxEvaluator:
    """Evaluates untrusted DSL source into a NodeTree or a Fault."""

    def __init__(self, registry: ElementRegistry, settings: Optional[Settings] = None) -> None:
        self.registry = registry
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="sandbox_evaluator")

    def evaluate(self, source: str) -> EvaluationResult:
        """
        Evaluate a complete source submission.

        Args:
            source: DSL source text

        Returns:
            EvaluationResult with a NodeTree on success or a Fault on failure
        """
        start_time = time.time()
        fallback = document_span(source)
        budget = ExecutionBudget(self.settings.evaluation_timeout)

        try:
            if len(source) > self.settings.max_source_length:
                raise DSLRuntimeError(
                    f"Source exceeds the maximum length of {self.settings.max_source_length} characters"
                )

            program = parse_program(source, max_depth=self.settings.max_nesting_depth)
            check_capabilities(program)

            interpreter = Interpreter(
                self.registry,
                budget,
                max_string_length=self.settings.max_string_length,
            )
            roots, warnings = interpreter.run(program)
            tree = NodeTree.from_roots(roots, fallback)

            processing_time = time.time() - start_time
            self.logger.info(
                "Evaluation completed",
                nodes=tree.node_count,
                warnings=len(warnings),
                processing_time=processing_time,
            )
            return EvaluationResult(
                success=True,
                tree=tree,
                warnings=warnings,
                processing_time=processing_time,
            )

        except DSLError as e:
            fault = e.to_fault(fallback=fallback)
            self.logger.info(
                "Evaluation faulted",
                kind=fault.kind.value,
                message=fault.message,
                line=fault.location.line if fault.location else None,
            )
            return self._failure(fault, start_time)

        except Exception as e:
            self.logger.error("Unexpected evaluation failure", error=str(e), exc_info=True)
            trace = traceback.format_exc() if self.settings.include_python_trace else None
            fault = Fault(
                kind=FaultKind.RUNTIME_ERROR,
                message=f"Internal evaluation error: {type(e).__name__}",
                location=fallback,
                cause=str(e) or None,
                trace=trace,
            )
            return self._failure(fault, start_time)

    def _failure(self, fault: Fault, start_time: float) -> EvaluationResult:
        return EvaluationResult(
            success=False,
            fault=fault,
            processing_time=time.time() - start_time,
        )
