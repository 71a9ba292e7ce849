import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import jinja2
from pydantic import ValidationError

from .config import Settings
from .template import TemplateService

logger = logging.getLogger(__name__)

USAGE_EXAMPLES = """examples:
  readmegen README.md.tpl
  readmegen README.md.tpl --write README.md"""


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(
        prog="readmegen",
        description="Render a README template from GitHub, book and feed activity",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("template", help="Path to the template file")
    p.add_argument(
        "--write",
        "-write",
        dest="write",
        default="",
        help="Write output to this file instead of stdout",
    )
    return p.parse_args(argv)


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def generate(service: TemplateService, template: jinja2.Template) -> str:
    """Render ``template`` against live provider data."""
    async with service:
        return await template.render_async()


def run(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point; returns the process exit code.

    Output is written only after the whole template rendered successfully.
    """
    args = parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level)

    try:
        source = Path(args.template).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Can't read file: {e}", file=sys.stderr)
        return 1

    service = TemplateService.from_settings(settings)
    try:
        template = service.compile(source)
    except jinja2.TemplateSyntaxError as e:
        print(f"Can't parse template: {e.message} (line {e.lineno})", file=sys.stderr)
        return 1

    try:
        output = asyncio.run(generate(service, template))
    except Exception as e:
        logger.error(f"❌ Rendering failed: {e}")
        print(f"Can't render template: {e}", file=sys.stderr)
        return 1

    if not args.write:
        sys.stdout.write(output)
        return 0

    try:
        Path(args.write).write_text(output, encoding="utf-8")
    except OSError as e:
        print(f"Can't create: {e}", file=sys.stderr)
        return 1
    logger.info(f"📝 Wrote {args.write}")
    return 0


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
