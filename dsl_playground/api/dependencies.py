"""
API Dependencies
================

Service container built once per application lifespan and the FastAPI
dependencies that hand its parts to route handlers.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from dsl_playground.config.logging import get_logger
from dsl_playground.config.settings import Settings, get_settings
from dsl_playground.core.dsl.registry import ElementRegistry, load_registry
from dsl_playground.core.intellisense.completion import CompletionEngine
from dsl_playground.core.intellisense.context import ContextAnalyzer
from dsl_playground.core.intellisense.signature import SignatureHelpEngine
from dsl_playground.core.rendering.diagnostics import DiagnosticFormatter
from dsl_playground.core.rendering.html_generator import Renderer
from dsl_playground.core.sandbox.evaluator import SandboxEvaluator
from dsl_playground.core.sandbox.pool import EvaluationPool

logger = get_logger(__name__)


@dataclass
class PlaygroundServices:
    """Components shared by every request."""

    settings: Settings
    registry: ElementRegistry
    analyzer: ContextAnalyzer
    completion: CompletionEngine
    signatures: SignatureHelpEngine
    evaluator: SandboxEvaluator
    pool: EvaluationPool
    renderer: Renderer
    formatter: DiagnosticFormatter


def build_services(
    settings: Optional[Settings] = None, registry: Optional[ElementRegistry] = None
) -> PlaygroundServices:
    """
    Construct the playground components.

    The pool is created but not started; call ``pool.initialize()`` from
    the application lifespan.

    Args:
        settings: Settings to use, defaults to the global settings
        registry: Pre-loaded registry, defaults to the configured catalog
    """
    settings = settings or get_settings()
    if registry is None:
        registry = load_registry(settings.registry_path)
    evaluator = SandboxEvaluator(registry, settings)

    logger.info("Building playground services", elements=len(registry))
    return PlaygroundServices(
        settings=settings,
        registry=registry,
        analyzer=ContextAnalyzer(),
        completion=CompletionEngine(registry),
        signatures=SignatureHelpEngine(registry),
        evaluator=evaluator,
        pool=EvaluationPool(
            evaluator,
            workers=settings.evaluation_workers,
            queue_size=settings.evaluation_queue_size,
            timeout=settings.evaluation_timeout,
        ),
        renderer=Renderer(settings),
        formatter=DiagnosticFormatter(registry),
    )


def get_services(request: Request) -> PlaygroundServices:
    """Dependency returning the services of the running application."""
    return request.app.state.services
