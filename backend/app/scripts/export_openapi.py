from __future__ import annotations

import argparse
import json
from pathlib import Path

from backend.app.main import create_app


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Write the Video Info Cache OpenAPI schema to disk.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("openapi"),
        help="Directory receiving openapi.json.",
    )
    return parser.parse_args()


def write_openapi_schema(output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    schema_path = output_dir / "openapi.json"
    schema_path.write_text(json.dumps(create_app().openapi(), indent=2), encoding="utf-8")
    return schema_path


def main() -> None:
    args = _parse_args()
    schema_path = write_openapi_schema(args.output_dir)
    print(f"Wrote OpenAPI schema to {schema_path}")


if __name__ == "__main__":
    main()
