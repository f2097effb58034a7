#!/usr/bin/env python3
"""
streamclip Schema Validation Tool

Standalone utility for validating streamclip JSON documents from the
command line (metadata sidecars and pairs.json batch summaries).

Usage:
    python tools/validate_schema.py <schema_name> <json_file>

Where schema_name is one of: metadata, summary

Example:
    python tools/validate_schema.py summary output/clips/orcasound_lab/2025/09/18/pairs.json
"""

import argparse
import json
import sys
from pathlib import Path

from streamclip.schema import SCHEMA_FILES, validate_document


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a streamclip JSON document.")
    parser.add_argument("schema", choices=sorted(SCHEMA_FILES), help="Schema to validate against")
    parser.add_argument("document", type=Path, help="JSON file to validate")
    args = parser.parse_args()

    try:
        document = json.loads(args.document.read_text())
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: cannot load {args.document}: {e}", file=sys.stderr)
        return 1

    errors = validate_document(document, args.schema)
    if errors:
        print(f"INVALID: {args.document}")
        for error in errors:
            print(f"  - {error}")
        return 1

    print(f"VALID: {args.document}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
