"""
Data Models
===========

Pydantic data models for request/response validation and internal data structures.

Models:
- schemas: Registry definitions, completion and signature results, faults,
  evaluation results and API request/response schemas
"""
