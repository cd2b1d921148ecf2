"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Document persistence for programs, categories and templates

These wrappers translate between external formats and engine documents.
"""
