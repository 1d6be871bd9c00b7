"""
Run Routes
==========

Sandboxed evaluation of complete submissions, plus the single playground
endpoint that dispatches editor requests by trigger.
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends

from dsl_playground.api.dependencies import PlaygroundServices, get_services
from dsl_playground.api.routes.intellisense import build_completions, build_signature_help
from dsl_playground.config.logging import get_logger
from dsl_playground.models.schemas import (
    CompletionRequest,
    Fault,
    FaultKind,
    PlaygroundRequest,
    PlaygroundResponse,
    RunRequest,
    RunResponse,
    SignatureHelpRequest,
    TriggerKind,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Run"])


def _reported_fault(fault: Optional[Fault], stage: str) -> Fault:
    """Fault of a failed result; a failure that carries none is reported as an internal error."""
    if fault is not None:
        return fault
    return Fault(kind=FaultKind.RUNTIME_ERROR, message=f"{stage} failed without a reported fault", cause="internal")


def _faulted(
    services: PlaygroundServices, fault: Fault, source: str, warnings: list, start_time: float
) -> RunResponse:
    return RunResponse(
        success=False,
        warnings=warnings,
        fault=fault,
        diagnostic=services.formatter.format(fault, source),
        processing_time=time.time() - start_time,
    )


async def execute_run(services: PlaygroundServices, source: str, document: bool = False) -> RunResponse:
    """
    Evaluate and render a submission.
    Used by the run route and the playground dispatcher.

    Args:
        services: Playground services
        source: Complete DSL submission
        document: Wrap the markup in the preview document

    Returns:
        RunResponse with markup and warnings, or a fault and its diagnostic

    Raises:
        EvaluationRejected: If the evaluation pool is saturated
    """
    start_time = time.time()

    evaluation = await services.pool.evaluate(source)
    if not evaluation.success or evaluation.tree is None:
        fault = _reported_fault(evaluation.fault, "Evaluation")
        logger.info("Run faulted", kind=fault.kind.value)
        return _faulted(services, fault, source, evaluation.warnings, start_time)

    if document:
        rendered = await services.renderer.render_document(evaluation.tree)
    else:
        rendered = services.renderer.render(evaluation.tree)

    warnings = evaluation.warnings + rendered.warnings
    if not rendered.success:
        fault = _reported_fault(rendered.fault, "Rendering")
        logger.info("Render faulted", kind=fault.kind.value)
        return _faulted(services, fault, source, warnings, start_time)

    logger.info("Run completed", warnings=len(warnings), markup_length=len(rendered.markup or ""))
    return RunResponse(
        success=True,
        markup=rendered.markup,
        warnings=warnings,
        processing_time=time.time() - start_time,
    )


@router.post("/run", response_model=RunResponse, response_model_by_alias=True)
async def run(request: RunRequest, services: PlaygroundServices = Depends(get_services)) -> RunResponse:
    """
    Evaluate a submission in the sandbox and render it.

    Faults are reported in the response body with status 200.
    """
    return await execute_run(services, request.source, request.document)


@router.post("/playground", response_model=PlaygroundResponse, response_model_by_alias=True)
async def playground(
    request: PlaygroundRequest, services: PlaygroundServices = Depends(get_services)
) -> PlaygroundResponse:
    """Dispatch an editor request to completion, signature help or run."""
    response = PlaygroundResponse(trigger=request.trigger)

    if request.trigger == TriggerKind.COMPLETION:
        response.completions = build_completions(
            services,
            CompletionRequest(
                source=request.source, line=request.line, column=request.column, prefix=request.prefix
            ),
        )
    elif request.trigger == TriggerKind.SIGNATURE_HELP:
        response.signature = build_signature_help(
            services,
            SignatureHelpRequest(source=request.source, line=request.line, column=request.column),
        )
    else:
        response.run = await execute_run(services, request.source, request.document)

    return response
