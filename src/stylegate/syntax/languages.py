"""Tree-sitter front ends: per-language grammar loading and kind tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_sitter import Language

from stylegate.syntax.nodes import NodeKind

if TYPE_CHECKING:
    from collections.abc import Callable

_K = NodeKind


@dataclass(frozen=True)
class LanguageSpec:
    """How one tree-sitter grammar maps onto the uniform node model."""

    name: str
    language: Language
    kinds: dict[str, NodeKind]  # native node type -> kind
    comment_markers: tuple[str, ...]
    name_field: str = "name"

    def kind_of(self, native_type: str) -> NodeKind:
        """Resolve a native node type, falling back on naming conventions."""
        kind = self.kinds.get(native_type)
        if kind is not None:
            return kind
        if native_type.endswith("_statement"):
            return NodeKind.STATEMENT
        if native_type.endswith("_expression"):
            return NodeKind.EXPRESSION
        return NodeKind.OTHER


# ---- Language loaders (lazy, handle ImportError) ----


def _load_python() -> LanguageSpec:
    import tree_sitter_python as tspython

    return LanguageSpec(
        name="python",
        language=Language(tspython.language()),
        kinds={
            "module": _K.MODULE,
            "class_definition": _K.CLASS,
            "function_definition": _K.FUNCTION,
            "lambda": _K.LAMBDA,
            "block": _K.BLOCK,
            "if_statement": _K.CONDITIONAL,
            "for_statement": _K.LOOP,
            "while_statement": _K.LOOP,
            "try_statement": _K.TRY,
            "import_statement": _K.IMPORT,
            "import_from_statement": _K.IMPORT,
            "future_import_statement": _K.IMPORT,
            "assignment": _K.ASSIGNMENT,
            "augmented_assignment": _K.ASSIGNMENT,
            "call": _K.CALL,
            "identifier": _K.IDENTIFIER,
            "string": _K.STRING,
            "integer": _K.NUMBER,
            "float": _K.NUMBER,
            "comment": _K.COMMENT,
        },
        comment_markers=("#",),
    )


_TS_KINDS: dict[str, NodeKind] = {
    "program": _K.MODULE,
    "class_declaration": _K.CLASS,
    "interface_declaration": _K.CLASS,
    "function_declaration": _K.FUNCTION,
    "generator_function_declaration": _K.FUNCTION,
    "method_definition": _K.FUNCTION,
    "function_expression": _K.FUNCTION,
    "arrow_function": _K.LAMBDA,
    "statement_block": _K.BLOCK,
    "if_statement": _K.CONDITIONAL,
    "for_statement": _K.LOOP,
    "for_in_statement": _K.LOOP,
    "while_statement": _K.LOOP,
    "do_statement": _K.LOOP,
    "try_statement": _K.TRY,
    "import_statement": _K.IMPORT,
    "assignment_expression": _K.ASSIGNMENT,
    "variable_declarator": _K.ASSIGNMENT,
    "call_expression": _K.CALL,
    "identifier": _K.IDENTIFIER,
    "property_identifier": _K.IDENTIFIER,
    "string": _K.STRING,
    "template_string": _K.STRING,
    "number": _K.NUMBER,
    "comment": _K.COMMENT,
}


def _load_typescript() -> LanguageSpec:
    import tree_sitter_typescript as tstypescript

    return LanguageSpec(
        name="typescript",
        language=Language(tstypescript.language_typescript()),
        kinds=_TS_KINDS,
        comment_markers=("//",),
    )


def _load_tsx() -> LanguageSpec:
    import tree_sitter_typescript as tstypescript

    return LanguageSpec(
        name="tsx",
        language=Language(tstypescript.language_tsx()),
        kinds=_TS_KINDS,
        comment_markers=("//",),
    )


def _load_go() -> LanguageSpec:
    import tree_sitter_go as tsgo

    return LanguageSpec(
        name="go",
        language=Language(tsgo.language()),
        kinds={
            "source_file": _K.MODULE,
            "type_declaration": _K.CLASS,
            "function_declaration": _K.FUNCTION,
            "method_declaration": _K.FUNCTION,
            "func_literal": _K.LAMBDA,
            "block": _K.BLOCK,
            "if_statement": _K.CONDITIONAL,
            "expression_switch_statement": _K.CONDITIONAL,
            "for_statement": _K.LOOP,
            "import_declaration": _K.IMPORT,
            "assignment_statement": _K.ASSIGNMENT,
            "short_var_declaration": _K.ASSIGNMENT,
            "call_expression": _K.CALL,
            "identifier": _K.IDENTIFIER,
            "field_identifier": _K.IDENTIFIER,
            "interpreted_string_literal": _K.STRING,
            "raw_string_literal": _K.STRING,
            "int_literal": _K.NUMBER,
            "float_literal": _K.NUMBER,
            "comment": _K.COMMENT,
        },
        comment_markers=("//",),
    )


def _load_rust() -> LanguageSpec:
    import tree_sitter_rust as tsrust

    return LanguageSpec(
        name="rust",
        language=Language(tsrust.language()),
        kinds={
            "source_file": _K.MODULE,
            "struct_item": _K.CLASS,
            "enum_item": _K.CLASS,
            "trait_item": _K.CLASS,
            "impl_item": _K.CLASS,
            "function_item": _K.FUNCTION,
            "closure_expression": _K.LAMBDA,
            "block": _K.BLOCK,
            "if_expression": _K.CONDITIONAL,
            "match_expression": _K.CONDITIONAL,
            "for_expression": _K.LOOP,
            "while_expression": _K.LOOP,
            "loop_expression": _K.LOOP,
            "use_declaration": _K.IMPORT,
            "let_declaration": _K.ASSIGNMENT,
            "assignment_expression": _K.ASSIGNMENT,
            "call_expression": _K.CALL,
            "identifier": _K.IDENTIFIER,
            "string_literal": _K.STRING,
            "raw_string_literal": _K.STRING,
            "integer_literal": _K.NUMBER,
            "float_literal": _K.NUMBER,
            "line_comment": _K.COMMENT,
            "block_comment": _K.COMMENT,
        },
        comment_markers=("//",),
    )


# Extension -> loader function mapping.
_EXTENSION_LOADERS: dict[str, Callable[[], LanguageSpec]] = {
    ".py": _load_python,
    ".pyi": _load_python,
    ".ts": _load_typescript,
    ".tsx": _load_tsx,
    ".js": _load_typescript,
    ".jsx": _load_tsx,
    ".go": _load_go,
    ".rs": _load_rust,
}

_NAME_LOADERS: dict[str, Callable[[], LanguageSpec]] = {
    "python": _load_python,
    "typescript": _load_typescript,
    "tsx": _load_tsx,
    "go": _load_go,
    "rust": _load_rust,
}

# Cache for loaded languages (None means "tried and failed / unsupported").
_LANG_CACHE: dict[str, LanguageSpec | None] = {}


def get_language(name: str) -> LanguageSpec | None:
    """Get a language spec by name, or ``None`` if unknown or not installed."""
    if name in _LANG_CACHE:
        return _LANG_CACHE[name]

    loader = _NAME_LOADERS.get(name)
    if loader is None:
        _LANG_CACHE[name] = None
        return None

    try:
        spec = loader()
    except ImportError:
        _LANG_CACHE[name] = None
        return None

    _LANG_CACHE[name] = spec
    return spec


def language_for_extension(extension: str) -> str | None:
    """Return the language name for a file extension when its grammar is available."""
    loader = _EXTENSION_LOADERS.get(extension)
    if loader is None:
        return None
    for name, candidate in _NAME_LOADERS.items():
        if candidate is loader:
            return name if get_language(name) is not None else None
    return None


def supported_extensions() -> frozenset[str]:
    """Return the set of file extensions with available grammars."""
    return frozenset(ext for ext in _EXTENSION_LOADERS if language_for_extension(ext) is not None)
