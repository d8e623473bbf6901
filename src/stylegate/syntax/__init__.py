"""Syntax domain — uniform node model and the tree-sitter adapter."""

from stylegate.syntax.adapter import MalformedInputError, adapt_tree, parse_unit
from stylegate.syntax.languages import (
    LanguageSpec,
    get_language,
    language_for_extension,
    supported_extensions,
)
from stylegate.syntax.nodes import Node, NodeKind, SourceUnit, Span

__all__ = [
    "LanguageSpec",
    "MalformedInputError",
    "Node",
    "NodeKind",
    "SourceUnit",
    "Span",
    "adapt_tree",
    "get_language",
    "language_for_extension",
    "parse_unit",
    "supported_extensions",
]
