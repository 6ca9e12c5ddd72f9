"""Validate OpenAPI spec files and print the tools each one would produce."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import List

from openapi_adapter.errors import AdapterError
from openapi_adapter.openapi import OpenAPILoader, summarize
from openapi_adapter.tool_registry import build_catalog


def _collect(loader: OpenAPILoader, target: Path) -> List[Path]:
    if target.is_dir():
        return loader.discover_files(target)
    return [target]


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate OpenAPI specification files")
    parser.add_argument(
        "target",
        nargs="?",
        default=os.getenv("ADAPTER_SPEC_DIRECTORY", ""),
        help="Spec file or directory (default: ADAPTER_SPEC_DIRECTORY)",
    )
    parser.add_argument(
        "--list-tools",
        action="store_true",
        help="Print the tool names derived from each valid spec.",
    )

    args = parser.parse_args()
    if not args.target:
        raise SystemExit("Target missing. Pass a path or set ADAPTER_SPEC_DIRECTORY.")

    target = Path(args.target).expanduser().resolve()
    if not target.exists():
        raise SystemExit(f"Path not found: {target}")

    loader = OpenAPILoader()
    valid = 0
    invalid = 0
    for path in _collect(loader, target):
        try:
            document = loader.load_file(path)
        except AdapterError as exc:
            invalid += 1
            print(f"x {path.name} - {exc}")
            continue
        valid += 1
        info = summarize(document)
        print(
            f"ok {path.name} - {info['title']} {info['version']} "
            f"({info['operationCount']} operations)"
        )
        if args.list_tools:
            for tool in build_catalog(document):
                print(f"    {tool.tool_name}: {tool.method} {tool.path_template}")

    print(f"Validated specs: {valid} valid, {invalid} invalid")
    if invalid:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
