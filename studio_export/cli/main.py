"""studio-export command line entrypoint.

    studio-export payload captured_response.txt
    studio-export page https://aistudio.google.com/prompts/<id> --cdp http://localhost:9222
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from studio_export.browser import PayloadCapture, PlaywrightDocument, open_page
from studio_export.config import ExportConfig, load_config
from studio_export.core.errors import ExtractionCancelledError, ExtractionError, MalformedPayloadError
from studio_export.core.exporter import ExportResult, Exporter, export_payload
from studio_export.core.models import RenderOptions
from studio_export.core.wire import decode_envelope, payload_title, prompt_root
from studio_export.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="studio-export",
        description="Export a chat conversation to markdown from a captured payload or a live page.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Config YAML (default: STUDIO_EXPORT_CONFIG)")
    parser.add_argument("--output", "-o", type=Path, default=Path.cwd(), help="Directory for the .md file")
    parser.add_argument("--stdout", action="store_true", help="Print markdown instead of writing a file")
    parser.add_argument("--no-user", action="store_true", help="Leave out user turns")
    parser.add_argument("--no-model", action="store_true", help="Leave out model turns (and thinking)")
    parser.add_argument("--no-thinking", action="store_true", help="Leave out thinking blocks")
    parser.add_argument("--plain-thinking", action="store_true", help="Quote thinking instead of <details>")
    parser.add_argument("--log-level", default=None, help="Override STUDIO_EXPORT_LOG_LEVEL")
    parser.add_argument("--log-json", action="store_true", help="Log JSON lines to stderr")

    sub = parser.add_subparsers(dest="command", required=True)

    payload = sub.add_parser("payload", help="Decode a captured response body")
    payload.add_argument("file", type=Path, help="Response body, with or without the )]}' prefix")
    payload.add_argument("--title", default=None, help="Title override")

    page = sub.add_parser("page", help="Scroll a live page and collect its turns")
    page.add_argument("url", help="Conversation URL")
    page.add_argument("--profile", type=Path, default=None, help="Persistent browser profile directory")
    page.add_argument("--headless", action="store_true", help="Run Chromium headless")
    page.add_argument("--cdp", default=None, help="Attach to a running browser at this CDP endpoint")
    page.add_argument("--title", default=None, help="Title override")
    page.add_argument(
        "--mode", choices=["xhr", "dom"], default=None, help="Capture the network payload or scroll (default: config)"
    )

    return parser.parse_args(argv)


def render_options_from_args(config: ExportConfig, args: argparse.Namespace) -> RenderOptions:
    """Command-line switches can only turn things off relative to the config."""
    options = config.render_options()
    return RenderOptions(
        include_user=options.include_user and not args.no_user,
        include_model=options.include_model and not args.no_model,
        include_thinking=options.include_thinking and not args.no_thinking,
        collapsible_thinking=options.collapsible_thinking and not args.plain_thinking,
    ).normalized()


def _emit(result: ExportResult, args: argparse.Namespace) -> None:
    if args.stdout:
        sys.stdout.write(result.markdown)
        return
    args.output.mkdir(parents=True, exist_ok=True)
    target = args.output / result.filename
    target.write_text(result.markdown, encoding="utf-8")
    logger.info("Wrote %d turns to %s", result.turn_count, target)


def _run_payload(args: argparse.Namespace, options: RenderOptions) -> ExportResult:
    try:
        raw = args.file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayloadError(f"{args.file} is not UTF-8 text: {e}") from e
    payload = decode_envelope(raw)
    logger.info("Loaded payload from %s", args.file)
    title = args.title or payload_title(payload)
    return export_payload(prompt_root(payload), options, title=title)


def extraction_mode(config: ExportConfig, args: argparse.Namespace) -> str:
    """--mode wins over the persisted extraction_mode."""
    return args.mode or config.extraction_mode


async def _run_page(args: argparse.Namespace, config: ExportConfig, options: RenderOptions) -> ExportResult:
    capture = PayloadCapture() if extraction_mode(config, args) == "xhr" else None
    async with open_page(
        args.url,
        profile_dir=args.profile,
        headless=args.headless,
        cdp_endpoint=args.cdp,
        before_navigate=capture.attach if capture else None,
    ) as page:
        document = PlaywrightDocument(page)
        await document.wait_for_turns()

        if capture is not None:
            payload = await capture.wait()
            if payload is not None:
                title = args.title or payload_title(payload)
                return export_payload(prompt_root(payload), options, title=title)
            logger.warning("Falling back to scrolling the page")

        exporter = Exporter(document, options=options, tuning=config.scroll)

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, exporter.cancel)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable; Ctrl-C will not cancel cooperatively")

        try:
            async with document.raw_mode():
                title = args.title or await document.title()
                return await exporter.export_document(title=title)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                pass


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging(args.log_level, json_format=args.log_json)

    config = load_config(args.config)
    options = render_options_from_args(config, args)

    try:
        if args.command == "payload":
            result = _run_payload(args, options)
        else:
            result = asyncio.run(_run_page(args, config, options))
        _emit(result, args)
    except ExtractionCancelledError:
        logger.warning("Extraction cancelled; nothing written")
        return EXIT_CANCELLED
    except ExtractionError as e:
        logger.error("Extraction failed: %s", e)
        return EXIT_FAILED
    except OSError as e:
        logger.error("I/O error: %s", e)
        return EXIT_FAILED
    except PlaywrightError as e:
        logger.error("Browser error: %s", e)
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
