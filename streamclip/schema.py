"""
streamclip Schema Validation.

Responsibilities:
- Load the bundled JSON schemas (streamclip/schemas/)
- Validate metadata sidecars and batch summaries before they are written

Forbidden:
- No I/O besides reading schema files
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema


SCHEMA_DIR = Path(__file__).parent / "schemas"

SCHEMA_FILES = {
    "metadata": "metadata.schema.json",
    "summary": "summary.schema.json",
}


class DocumentValidationError(ValueError):
    """
    Raised when a document does not satisfy its schema.

    Attributes:
        schema_name: Schema the document was checked against
        errors: Human-readable "path: message" entries
    """

    def __init__(self, schema_name: str, errors: list[str]):
        self.schema_name = schema_name
        self.errors = errors
        super().__init__(f"Document failed '{schema_name}' schema: {'; '.join(errors)}")


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> dict:
    """Load a schema by name."""
    if schema_name not in SCHEMA_FILES:
        raise ValueError(f"Unknown schema: {schema_name}. Valid: {list(SCHEMA_FILES.keys())}")
    with open(SCHEMA_DIR / SCHEMA_FILES[schema_name]) as f:
        return json.load(f)


def validate_document(document: Any, schema_name: str) -> list[str]:
    """
    Validate a document against a named schema.

    Returns:
        List of error messages (empty if valid).
    """
    validator = jsonschema.Draft7Validator(load_schema(schema_name))
    errors = []
    for error in sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.absolute_path]):
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        errors.append(f"{path}: {error.message}")
    return errors


def ensure_valid(document: Any, schema_name: str) -> None:
    """
    Raises:
        DocumentValidationError: If the document is invalid.
    """
    errors = validate_document(document, schema_name)
    if errors:
        raise DocumentValidationError(schema_name, errors)
