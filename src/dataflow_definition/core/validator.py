import re

from dataflow_definition.core.scanner import count_outside_literals
from dataflow_definition.models import DocumentValidationResult

_SECTION_KEYWORD_RE = re.compile(r"\bsection\s", re.IGNORECASE)
_SECTION_DECLARATION_RE = re.compile(r"\bsection\s+\w+\s*;", re.IGNORECASE)
_SHARED_RE = re.compile(r"\bshared\s+", re.IGNORECASE)
_LET_RE = re.compile(r"\blet\b", re.IGNORECASE)
_IN_RE = re.compile(r"\bin\b", re.IGNORECASE)

_BRACKET_PAIRS = (("(", ")", "parentheses"), ("{", "}", "braces"), ("[", "]", "square brackets"))


def validate_document(document: str) -> DocumentValidationResult:
    """Structural checks on a mashup section document. Semantics are not checked."""
    errors: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    is_gen2 = "[StagingDefinition" in document and "FastCopy" in document

    if not _SECTION_KEYWORD_RE.search(document):
        errors.append("Document must contain a section declaration (e.g., 'section Section1;')")
        suggestions.append("Start the document with 'section Section1;'")
    elif not _SECTION_DECLARATION_RE.search(document):
        errors.append("Section declaration must end with semicolon (e.g., 'section Section1;')")

    if not _SHARED_RE.search(document):
        errors.append("Document must contain at least one 'shared' query declaration")
        suggestions.append("Declare queries with 'shared QueryName = let ... in ...;'")

    counts = count_outside_literals(document, "(){}[]")
    for opening, closing, label in _BRACKET_PAIRS:
        if counts[opening] != counts[closing]:
            errors.append(f"Unbalanced {label}: {counts[opening]} opening, {counts[closing]} closing")

    let_count = len(_LET_RE.findall(document))
    in_count = len(_IN_RE.findall(document))
    if let_count != in_count:
        warnings.append(
            f"Mismatched let/in keywords: {let_count} 'let', {in_count} 'in'. "
            "This may be intentional for simple expressions."
        )

    return DocumentValidationResult(
        is_valid=not errors,
        is_gen2=is_gen2,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
    )
