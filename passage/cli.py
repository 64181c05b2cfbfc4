"""Command line interface for the Passage translator."""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from typing import TYPE_CHECKING, Iterable, List, Optional

from .configuration import check_limits, get_settings
from .errors import (
    InvalidInput,
    PassageError,
    TranslationProviderConfigurationError,
    UpstreamCallFailure,
)
from .providers import build_provider
from .translator import DEFAULT_MAX_CALL_CHARS, TranslationOutcome, TranslationPipeline

if TYPE_CHECKING:  # pragma: no cover
    from .configuration import PassageConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="passage",
        description=(
            "Translate a list of texts through a size-limited translation service, "
            "keeping one output per input."
        ),
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        default="-",
        help="JSON array of strings to translate (default: read stdin).",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        required=True,
        help="Destination language code, e.g. DE or en-GB.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Write the translations to this file instead of stdout.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (deepl, openai, echo).",
    )
    parser.add_argument(
        "-b",
        "--max-chars",
        type=int,
        help="Maximum characters per upstream call (default: RATE_MAX_CHARS).",
    )
    parser.add_argument(
        "--delay-ms",
        type=int,
        help="Pause between batch calls in milliseconds (default: BATCH_INTER_DELAY_MS).",
    )
    parser.add_argument(
        "--lines",
        action="store_true",
        help="Treat input and output as one text per line instead of JSON.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and a summary on stderr.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def read_texts(source: str, *, lines: bool) -> List[str]:
    """Load input texts from a file path or ``-`` for stdin."""

    if source == "-":
        raw = sys.stdin.read()
    else:
        raw = pathlib.Path(source).expanduser().read_text(encoding="utf-8")

    if lines:
        if raw.endswith("\n"):
            raw = raw[:-1]
        return raw.split("\n")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidInput(f"Input is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise InvalidInput("Input JSON must be an array of strings.")
    return data


def write_translations(
    translations: List[str],
    destination: Optional[str],
    *,
    lines: bool,
) -> None:
    if lines:
        rendered = "\n".join(translations) + "\n"
    else:
        rendered = json.dumps(translations, ensure_ascii=False, indent=2) + "\n"

    if destination:
        path = pathlib.Path(destination).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rendered, encoding="utf-8")
    else:
        sys.stdout.write(rendered)


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str,
    provider: str | None,
    max_chars: int | None,
    delay_ms: int | None,
    lines: bool,
    provider_debug: bool,
    settings: "PassageConfig | None" = None,
) -> tuple[int, TranslationOutcome | None, str | None]:
    """Execute a translation run and return the exit code, outcome, and message."""

    provider_name = provider or (settings.PASSAGE_PROVIDER if settings else "deepl")
    if max_chars is None:
        max_chars = settings.RATE_MAX_CHARS if settings else DEFAULT_MAX_CALL_CHARS
    if delay_ms is None:
        delay_ms = settings.BATCH_INTER_DELAY_MS if settings else 0
    max_total_chars = settings.RATE_MAX_TOTAL_CHARS if settings else 0

    try:
        check_limits({"RATE_MAX_CHARS": max_chars, "BATCH_INTER_DELAY_MS": delay_ms})
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)

    try:
        texts = read_texts(input_file, lines=lines)
    except (FileNotFoundError, IsADirectoryError) as exc:
        return 1, None, f"Input file not found: {exc.filename}"
    except UnicodeDecodeError as exc:
        return 1, None, f"Input is not valid UTF-8: {exc}"
    except InvalidInput as exc:
        return 1, None, str(exc)

    try:
        backend = build_provider(provider_name, settings=settings, debug=provider_debug)
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)

    pipeline = TranslationPipeline(
        backend,
        max_call_chars=max_chars,
        inter_batch_delay=delay_ms / 1000.0,
        max_total_chars=max_total_chars,
    )

    try:
        outcome = pipeline.run(texts, target_language)
    except InvalidInput as exc:
        return 1, None, f"Invalid input: {exc}"
    except UpstreamCallFailure as exc:
        message = f"Translation failed: {exc}"
        if exc.retry_after:
            message += f" (retry after {exc.retry_after}s)"
        return 1, None, message
    except PassageError as exc:
        return 1, None, f"Translation failed: {exc}"
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."
    finally:
        backend.close()

    write_translations(outcome.translations, output_file, lines=lines)
    return 0, outcome, None


def print_summary(outcome: TranslationOutcome) -> None:
    """Output a friendly report on stderr once processing completes."""

    summary = outcome.summary
    out = sys.stderr
    print("\nTranslation complete.", file=out)
    print(f"  Texts:           {summary.total_texts} ({summary.total_chars} chars)", file=out)
    print(
        f"  Pieces:          {summary.total_items} "
        f"in {summary.total_batches} batches",
        file=out,
    )
    print(f"  Upstream calls:  {summary.upstream_calls}", file=out)
    print(f"  Provider:        {summary.provider_name}", file=out)
    print(f"  Target language: {summary.target_language}", file=out)
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds", file=out)


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = get_settings()
    except TranslationProviderConfigurationError as exc:
        print(exc, file=sys.stderr)
        return 1

    provider_debug = bool(args.debug_provider or settings.PASSAGE_PROVIDER_DEBUG)
    if provider_debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    exit_code, outcome, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_language=args.target_language,
        provider=args.provider,
        max_chars=args.max_chars,
        delay_ms=args.delay_ms,
        lines=args.lines,
        provider_debug=provider_debug,
        settings=settings,
    )

    if message:
        print(message, file=sys.stderr)
    if outcome and args.verbose:
        print_summary(outcome)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
