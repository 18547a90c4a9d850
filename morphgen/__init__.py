"""
morphgen: companion code generation for morphy-style type declarations.

Reads annotated, sigil-prefixed abstract class declarations and synthesizes
their implementation classes: structural copy, patch-based update, cross-type
conversion and JSON hooks, plus rewritten hand-written factory constructors.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
