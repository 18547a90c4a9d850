"""
Core language-neutral components for morphgen.

This package contains the declaration schema, the registry and field
resolver, the patch algebra, operation synthesis and the generation engine.
Source-language specifics live in the dart adapter package.
"""

__all__ = []
