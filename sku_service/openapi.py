"""
Выгрузка OpenAPI-документа сервиса в файл.

    python -m sku_service.openapi                      # из таблицы маршрутов приложения
    python -m sku_service.openapi --url http://localhost:8080
    sku-openapi --output build/openapi.json
"""
import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from sku_service.core.config import settings


def generate_spec() -> Dict[str, Any]:
    """Документ строится из маршрутов приложения, без запуска сервера"""
    from sku_service.main import app

    return app.openapi()


def fetch_spec(base_url: str, timeout: float = 20.0) -> Dict[str, Any]:
    """Документ скачивается с работающего экземпляра"""
    url = base_url.rstrip("/") + "/openapi.json"
    resp = httpx.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def write_spec(spec: Dict[str, Any], output: Path) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(spec, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return output


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Write the SKU Management API OpenAPI document to a file"
    )
    parser.add_argument(
        '--output', '-o',
        type=Path,
        default=Path(settings.openapi_output_path),
        help=f'Output file (default: {settings.openapi_output_path})'
    )
    parser.add_argument(
        '--url',
        type=str,
        default=None,
        help='Download /openapi.json from a running instance instead (e.g. http://localhost:8080)'
    )

    args = parser.parse_args(argv)

    try:
        spec = fetch_spec(args.url) if args.url else generate_spec()
    except httpx.HTTPError as e:
        print(f"Failed to download OpenAPI document: {e}", file=sys.stderr)
        return 1

    path = write_spec(spec, args.output)
    print(f"OpenAPI document written to {path} ({len(spec.get('paths', {}))} paths)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
