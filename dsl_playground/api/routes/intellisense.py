"""
Intellisense Routes
===================

Completion and signature help for the playground editor. These handlers are
synchronous and only read the immutable registry, so FastAPI runs them on its
request threads without touching the evaluation pool.
"""

from fastapi import APIRouter, Depends

from dsl_playground.api.dependencies import PlaygroundServices, get_services
from dsl_playground.config.logging import get_logger
from dsl_playground.models.schemas import (
    CompletionRequest,
    CompletionResponse,
    SignatureHelpRequest,
    SignatureHelpResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Intellisense"])


def build_completions(services: PlaygroundServices, request: CompletionRequest) -> CompletionResponse:
    """
    Completion candidates at a cursor.
    Used by the completion route and the playground dispatcher.
    """
    context = services.analyzer.analyze(request.source, request.line, request.column)
    items = services.completion.complete(context, request.prefix)

    logger.debug(
        "Completions computed",
        context=context.kind.value,
        prefix=request.prefix if request.prefix is not None else context.prefix,
        count=len(items),
    )
    return CompletionResponse(completions=items, context=context)


def build_signature_help(services: PlaygroundServices, request: SignatureHelpRequest) -> SignatureHelpResponse:
    """
    Signature help at a cursor; empty when the cursor is not inside a known call.
    Used by the signature route and the playground dispatcher.
    """
    context = services.analyzer.analyze(request.source, request.line, request.column)
    signature = services.signatures.signature_help(context)
    if signature is None:
        return SignatureHelpResponse()

    return SignatureHelpResponse(
        element_name=signature.element_name,
        label=signature.label,
        documentation=signature.documentation,
        parameters=signature.parameters,
        active_parameter_index=signature.active_parameter_index,
    )


@router.post("/completions", response_model=CompletionResponse, response_model_by_alias=True)
def completions(
    request: CompletionRequest, services: PlaygroundServices = Depends(get_services)
) -> CompletionResponse:
    """Completion candidates for the cursor position."""
    return build_completions(services, request)


@router.post("/signatures", response_model=SignatureHelpResponse, response_model_by_alias=True)
def signatures(
    request: SignatureHelpRequest, services: PlaygroundServices = Depends(get_services)
) -> SignatureHelpResponse:
    """Signature help for the call enclosing the cursor."""
    return build_signature_help(services, request)
