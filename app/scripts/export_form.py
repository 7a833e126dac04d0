from __future__ import annotations

import argparse
from pathlib import Path

from app.core.config import settings
from app.core.logging_setup import configure_logging
from app.services.editor_state import FormEditor
from app.services.forms_gateway import FormsGateway


def export_form(gateway: FormsGateway, form_id: str, output_dir: Path, output: Path | None = None) -> Path:
    editor = FormEditor()
    editor.load(gateway, form_id)
    filename, payload = editor.export_json()
    target = output or (output_dir / filename)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(payload + "\n", encoding="utf-8")
    return target


def main() -> None:
    parser = argparse.ArgumentParser(description="Download a stored form as a JSON document")
    parser.add_argument("form_id", help="Identifier of the form to export")
    parser.add_argument("--api-url", default=settings.FORMS_API_URL, help="Base URL of the forms API")
    parser.add_argument("--output", type=Path, default=None, help="Target file (defaults to <title>.json)")
    parser.add_argument("--output-dir", type=Path, default=Path("."), help="Directory for the default file name")
    args = parser.parse_args()

    configure_logging()
    with FormsGateway(args.api_url) as gateway:
        target = export_form(gateway, args.form_id, args.output_dir, args.output)
    print(f"form exported: {target}")


if __name__ == "__main__":
    main()
