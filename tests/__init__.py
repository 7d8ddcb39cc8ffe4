"""Test suite for the FormEngine form runtime.

This package contains tests for:
- Dotted-path mapping between flat values and nested documents
- Mode-aware field behavior and conditional logic
- The formula engine and computed field ordering
- Validation rules and messages
- Lifecycle policy resolution
- Question type attribute schemas
- State creation, updates and document preparation
"""
