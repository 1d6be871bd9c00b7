"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Application, sandbox and sanitizer settings
- logging: Structured logging configuration
"""
