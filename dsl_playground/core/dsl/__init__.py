"""
DSL Processing Module
====================

Registry, parsing and sandboxed interpretation of the playground DSL.

Components:
- registry: Element and modifier catalog loaded from YAML
- lexer: Strict and tolerant tokenization
- parser: Closed-grammar parsing into a syntax tree
- resolver: Host capability screening
- interpreter: Tree-walking evaluation into UI nodes
- elements / modifiers: Explicit builder and handler tables
- nodes: UI node tree produced by evaluation
"""
