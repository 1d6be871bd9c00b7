"""
Sandbox Module
==============

Isolated evaluation of untrusted DSL source.

Components:
- evaluator: Source to NodeTree or Fault, never raising
- pool: Bounded worker pool that runs evaluations off the event loop
"""
