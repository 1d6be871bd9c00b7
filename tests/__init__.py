"""
Test Suite
==========

Test suite for the DSL playground.

Test Categories:
- unit: Unit tests for individual components
- integration: HTTP API tests against the FastAPI app
- security: Sandbox escape and sanitizer tests
"""
