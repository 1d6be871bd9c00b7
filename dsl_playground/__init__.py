"""
DSL Playground
==============

Intelligence and sandboxed rendering core for an interactive UI DSL playground.

This package provides:
- An immutable element registry loaded from a YAML catalog
- Context analysis, code completion and signature help for partial source
- A sandboxed interpreter that turns DSL source into a UI node tree or a fault
- Sanitized markup rendering and diagnostic formatting
- FastAPI REST endpoints for editor integration
"""

__version__ = "1.0.0"
__author__ = "DSL Playground Team"
