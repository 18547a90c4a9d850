"""Dart adapter for morphgen.

This package provides the source-language side of generation:
- Declaration parsing: scanner, annotations, declaration parser
- ConstructorBodyExtractor and IdentifierRewriter for factory bodies
- EmissionAssembler: rendering of the companion class text
"""
