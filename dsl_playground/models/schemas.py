"""
Pydantic Models and Schemas
===========================

Core data models for the element registry, editor intelligence results,
sandbox faults, and API requests/responses.
Wire-facing models serialize with camelCase aliases.
"""

from typing import Optional, List, Dict, Any, Tuple, Literal
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Enums
class ElementKind(str, Enum):
    """How an element holds content."""
    CONTAINER = "container"
    LEAF = "leaf"
    VOID = "void"


class ContextKind(str, Enum):
    """Syntactic context at the cursor."""
    NEW_CALL = "NewCall"
    MODIFIER_CHAIN = "ModifierChain"
    ARGUMENT_LIST = "ArgumentList"
    UNKNOWN = "Unknown"


class CompletionKind(str, Enum):
    """Completion candidate kinds."""
    FUNCTION = "function"
    METHOD = "method"
    PROPERTY = "property"
    KEYWORD = "keyword"


class FaultKind(str, Enum):
    """Closed set of evaluation and rendering failures."""
    SYNTAX_ERROR = "SyntaxError"
    RUNTIME_ERROR = "RuntimeError"
    SECURITY_VIOLATION = "SecurityViolation"
    TIMEOUT = "Timeout"


class TriggerKind(str, Enum):
    """Editor request triggers."""
    COMPLETION = "completion"
    SIGNATURE_HELP = "signature-help"
    RUN = "run"


# Base Models
class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceLocation(CamelModel):
    """1-based line/column span inside a DSL source buffer."""
    line: int = Field(..., ge=1, description="Start line")
    column: int = Field(..., ge=1, description="Start column")
    end_line: Optional[int] = Field(None, ge=1, description="End line")
    end_column: Optional[int] = Field(None, ge=1, description="End column (exclusive)")


# Registry Models
class ParameterSpec(BaseModel):
    """Declared parameter of an element or modifier."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Parameter name")
    type_hint: str = Field("Any", description="Type hint shown to users")
    required: bool = Field(False, description="Whether the argument must be supplied")
    default: Optional[str] = Field(None, description="Default value as DSL source")
    description: str = Field("", description="Parameter documentation")
    keyword: bool = Field(False, description="Passed as `name: value`")

    @property
    def label(self) -> str:
        """Parameter label as shown in a signature."""
        label = f"{self.name}: {self.type_hint}"
        if self.default is not None:
            label += f" = {self.default}"
        return label


class ElementDefinition(BaseModel):
    """Immutable catalog entry for a DSL element."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Element name")
    description: str = Field("", description="Element documentation")
    category: str = Field("general", description="Catalog category")
    tag: str = Field("div", description="Rendered HTML tag")
    kind: ElementKind = Field(ElementKind.CONTAINER, description="Content model")
    modifiers: Tuple[str, ...] = Field(default_factory=tuple, description="Declared modifiers")
    examples: Tuple[str, ...] = Field(default_factory=tuple, description="Example snippets")
    parameters: Tuple[ParameterSpec, ...] = Field(
        default_factory=tuple, description="Ordered parameter signature"
    )

    @property
    def required_parameters(self) -> Tuple[ParameterSpec, ...]:
        return tuple(p for p in self.parameters if p.required)

    @property
    def signature_label(self) -> str:
        return f"{self.name}({', '.join(p.label for p in self.parameters)})"


class ModifierDefinition(BaseModel):
    """Immutable catalog entry for a chainable modifier."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Modifier name")
    description: str = Field("", description="Modifier documentation")
    aliases: Tuple[str, ...] = Field(default_factory=tuple, description="Alternative names for this modifier")
    parameters: Tuple[ParameterSpec, ...] = Field(default_factory=tuple)
    values: Tuple[str, ...] = Field(default_factory=tuple, description="Suggested argument values")
    examples: Tuple[str, ...] = Field(default_factory=tuple)

    @property
    def required_parameters(self) -> Tuple[ParameterSpec, ...]:
        return tuple(p for p in self.parameters if p.required)

    @property
    def signature_label(self) -> str:
        return f".{self.name}({', '.join(p.label for p in self.parameters)})"


# Intelligence Models
class CompletionItem(CamelModel):
    """One completion candidate."""
    label: str = Field(..., description="Displayed label")
    kind: CompletionKind = Field(..., description="Candidate kind")
    insert_text: str = Field(..., description="Text inserted on accept, may hold ${n:x} placeholders")
    documentation: str = Field("", description="Markdown documentation")
    detail: Optional[str] = Field(None, description="Short signature detail")
    is_snippet: bool = Field(False, description="Whether insert_text uses snippet placeholders")


class ContextDescriptor(CamelModel):
    """Result of context analysis at a cursor position."""
    line: int = Field(..., description="Cursor line (1-based)")
    column: int = Field(..., description="Cursor column (1-based)")
    kind: ContextKind = Field(ContextKind.UNKNOWN, description="Context classification")
    call_stack: List[str] = Field(
        default_factory=list, description="Enclosing calls, outermost first"
    )
    last_token: Optional[str] = Field(None, description="Last significant token before the prefix")
    prefix: str = Field("", description="Identifier fragment typed before the cursor")
    receiver: Optional[str] = Field(None, description="Element heading a modifier chain")
    active_call: Optional[str] = Field(None, description="Innermost call whose arguments hold the cursor")
    argument_index: int = Field(0, ge=0, description="Zero-based argument index in active_call")
    active_keyword: Optional[str] = Field(None, description="Keyword label of the current argument")
    depth: int = Field(0, ge=0, description="Nesting depth at the cursor")


class ParameterInfo(CamelModel):
    """Parameter descriptor in a signature help response."""
    name: str
    required: bool = False
    description: str = ""
    type_hint: str = "Any"
    default: Optional[str] = None
    label: str = ""


class SignatureHelp(CamelModel):
    """Parameter list for the call enclosing the cursor."""
    element_name: str = Field(..., description="Element or modifier name")
    label: str = Field("", description="Full signature label")
    documentation: str = Field("", description="Element documentation")
    parameters: List[ParameterInfo] = Field(default_factory=list)
    active_parameter_index: int = Field(0, ge=0)


# Evaluation Models
class Fault(CamelModel):
    """Classified evaluation or rendering failure."""
    kind: FaultKind = Field(..., description="Fault classification")
    message: str = Field(..., min_length=1, description="Human-readable message")
    location: Optional[SourceLocation] = Field(None, description="Source span")
    cause: Optional[str] = Field(None, description="Underlying cause")
    trace: Optional[str] = Field(None, description="Developer trace")


class EvaluationResult(BaseModel):
    """Result of sandbox evaluation."""
    success: bool = Field(..., description="Whether evaluation produced a node tree")
    tree: Optional[Any] = Field(None, description="Evaluated NodeTree")
    warnings: List[str] = Field(default_factory=list, description="Non-fatal warnings")
    fault: Optional[Fault] = Field(None, description="Fault on failure")
    processing_time: Optional[float] = Field(None, description="Evaluation time in seconds")


class RenderResult(BaseModel):
    """Result of rendering a node tree."""
    success: bool = Field(..., description="Whether markup was produced")
    markup: Optional[str] = Field(None, description="Rendered markup")
    warnings: List[str] = Field(default_factory=list, description="Sanitizer warnings")
    fault: Optional[Fault] = Field(None, description="Fault on failure")
    processing_time: Optional[float] = Field(None, description="Render time in seconds")


class DiagnosticPayload(CamelModel):
    """Displayable form of a fault."""
    kind: FaultKind
    message: str
    summary: str = Field(..., description="One-line end-user summary")
    location: Optional[SourceLocation] = None
    excerpt: Optional[str] = Field(None, description="Source lines around the location")
    hints: List[str] = Field(default_factory=list)
    trace: Optional[str] = Field(None, description="Developer trace, collapsed by default")
    collapsed: bool = Field(True, description="Whether the trace starts collapsed")
    html: str = Field("", description="HTML rendering of the diagnostic")


# API Request Models
class CursorRequest(CamelModel):
    """Source buffer and cursor position."""
    source: str = Field(..., description="Full source buffer")
    line: int = Field(..., ge=1, description="Cursor line (1-based)")
    column: int = Field(..., ge=1, description="Cursor column (1-based)")


class CompletionRequest(CursorRequest):
    """Completion request."""
    prefix: Optional[str] = Field(None, description="Override for the typed prefix")


class SignatureHelpRequest(CursorRequest):
    """Signature help request."""
    pass


class RunRequest(CamelModel):
    """Evaluation request."""
    source: str = Field(..., description="Complete DSL submission")
    document: bool = Field(False, description="Wrap markup in a preview document")


class PlaygroundRequest(CamelModel):
    """Trigger-dispatched editor request."""
    source: str = Field(..., description="Source buffer")
    trigger: TriggerKind = Field(..., description="Request trigger")
    line: int = Field(1, ge=1)
    column: int = Field(1, ge=1)
    prefix: Optional[str] = None
    document: bool = False


# API Response Models
class CompletionResponse(CamelModel):
    """Completion response."""
    completions: List[CompletionItem] = Field(default_factory=list)
    context: Optional[ContextDescriptor] = None


class SignatureHelpResponse(CamelModel):
    """Signature help response; empty when no element encloses the cursor."""
    element_name: Optional[str] = None
    label: str = ""
    documentation: str = ""
    parameters: List[ParameterInfo] = Field(default_factory=list)
    active_parameter_index: int = 0


class RunResponse(CamelModel):
    """Evaluation response."""
    success: bool
    markup: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    fault: Optional[Fault] = None
    diagnostic: Optional[DiagnosticPayload] = None
    processing_time: Optional[float] = None


class PlaygroundResponse(CamelModel):
    """Trigger-dispatched response."""
    trigger: TriggerKind
    completions: Optional[CompletionResponse] = None
    signature: Optional[SignatureHelpResponse] = None
    run: Optional[RunResponse] = None


class ElementCatalogResponse(BaseModel):
    """Registry catalog listing."""
    elements: List[ElementDefinition]
    modifiers: List[ModifierDefinition]


# System Models
class HealthStatus(BaseModel):
    """Health check status."""
    status: Literal["healthy", "unhealthy", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Check timestamp"
    )
    version: str = Field(..., description="Application version")
    registry_elements: int = Field(0, ge=0, description="Elements in the loaded registry")
    active_evaluations: int = Field(0, ge=0, description="Evaluations currently admitted")
    pool_capacity: int = Field(0, ge=0, description="Maximum admitted evaluations")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Error timestamp"
    )
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
