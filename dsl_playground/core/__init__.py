"""
Core Business Logic
==================

Core business logic modules for the DSL playground.

Modules:
- dsl: Registry, lexer, parser and interpreter for the playground DSL
- intellisense: Context analysis, completion and signature help
- sandbox: Bounded, time-limited evaluation of untrusted source
- rendering: Sanitized markup rendering and diagnostic formatting
"""
