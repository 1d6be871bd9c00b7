"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, the shared registry, core components and an API client.
"""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DSL_PLAYGROUND_ENVIRONMENT", "testing")
os.environ.setdefault("DSL_PLAYGROUND_LOG_LEVEL", "WARNING")

from dsl_playground.config.settings import Settings, reload_settings  # noqa: E402
from dsl_playground.core.dsl.registry import ElementRegistry, load_registry  # noqa: E402
from dsl_playground.core.intellisense.completion import CompletionEngine  # noqa: E402
from dsl_playground.core.intellisense.context import ContextAnalyzer  # noqa: E402
from dsl_playground.core.intellisense.signature import SignatureHelpEngine  # noqa: E402
from dsl_playground.core.rendering.diagnostics import DiagnosticFormatter  # noqa: E402
from dsl_playground.core.rendering.html_generator import Renderer  # noqa: E402
from dsl_playground.core.sandbox.evaluator import SandboxEvaluator  # noqa: E402


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    __test__ = False

    environment: str = "testing"
    debug: bool = True
    evaluation_timeout: float = 1.0
    evaluation_workers: int = 2
    evaluation_queue_size: int = 2
    log_level: str = "WARNING"


@pytest.fixture(scope="session")
def test_settings() -> TestSettings:
    """Test settings fixture."""
    reload_settings()
    return TestSettings()


@pytest.fixture(scope="session")
def registry() -> ElementRegistry:
    """Registry built from the bundled catalog."""
    return load_registry()


@pytest.fixture
def evaluator(registry: ElementRegistry, test_settings: TestSettings) -> SandboxEvaluator:
    return SandboxEvaluator(registry, test_settings)


@pytest.fixture
def renderer(test_settings: TestSettings) -> Renderer:
    return Renderer(test_settings)


@pytest.fixture
def strict_renderer(test_settings: TestSettings) -> Renderer:
    """Renderer whose sanitizer faults instead of dropping values."""
    return Renderer(test_settings.model_copy(update={"sanitizer_mode": "strict"}))


@pytest.fixture
def formatter(registry: ElementRegistry) -> DiagnosticFormatter:
    return DiagnosticFormatter(registry)


@pytest.fixture
def analyzer() -> ContextAnalyzer:
    return ContextAnalyzer()


@pytest.fixture
def completion_engine(registry: ElementRegistry) -> CompletionEngine:
    return CompletionEngine(registry)


@pytest.fixture
def signature_engine(registry: ElementRegistry) -> SignatureHelpEngine:
    return SignatureHelpEngine(registry)


@pytest.fixture
def evaluate(evaluator: SandboxEvaluator):
    """Shortcut returning the evaluation result for a source string."""
    return evaluator.evaluate


@pytest.fixture
def fastapi_client(test_settings: TestSettings) -> Generator[TestClient, None, None]:
    """FastAPI test client running the application lifespan."""
    from dsl_playground.api.main import create_app

    with TestClient(create_app(test_settings)) as client:
        yield client


@pytest.fixture
def sample_source() -> str:
    """Small document exercising containers, modifiers and a loop."""
    return (
        "vstack(spacing: 4) {\n"
        "  text(\"Title\").font_size(\"2xl\").bold\n"
        "  hstack(justify: :between) {\n"
        "    3.times do |i|\n"
        "      button(\"Item #{i + 1}\").bg(\"blue-500\")\n"
        "    end\n"
        "  }\n"
        "}\n"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file paths."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "security" in path:
            item.add_marker(pytest.mark.security)
