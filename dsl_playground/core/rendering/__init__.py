"""
Rendering Module
===============

Sanitized HTML output and end-user diagnostics.

Components:
- html_generator: Serialize node trees to markup and preview documents
- sanitizer: Allow-list checks for classes, attributes and inline styles
- diagnostics: Format faults with excerpts, hints and collapsible traces
- templates: Jinja2 templates for the preview document and diagnostics
"""
