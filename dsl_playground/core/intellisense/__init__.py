"""
IntelliSense Module
===================

Editor intelligence over partial, possibly invalid DSL source.

Components:
- context: Cursor context classification
- completion: Ranked completion candidates
- signature: Parameter hints for the enclosing call
"""
