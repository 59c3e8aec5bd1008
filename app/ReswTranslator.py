#!/usr/bin/env python3
"""
Resw Resource Translator

This script translates the string values of a .resw/.resx resource file with
Azure AI Translator and writes a new resource file with the same record names,
in the same order, ready for the resource compiler.
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from errors import InvalidInputError, ReswTranslatorError, WriteError
from language_utils import get_language_name
from resw_document import (
    RENDERERS,
    ResxDocument,
    ResxRenderer,
    TemplateResxRenderer,
    build_renderer,
    extract_entries,
    validate_resx_version,
)
from string_utils import find_missing_placeholders, sanitize_translation
from translator_service import (
    DEFAULT_ENDPOINT,
    DEFAULT_POOL_MAXSIZE,
    DEFAULT_TIMEOUT,
    LanguageCatalog,
    TranslatorClient,
    TranslatorConfig,
)

DEFAULT_SOURCE_LANGUAGE = "en"

# ------------------------------------------------------------------------------
# Logger Setup
# ------------------------------------------------------------------------------

logger = logging.getLogger(__name__)


def configure_logging(trace: bool) -> None:
    """Configure logging to console."""
    log_level = logging.DEBUG if trace else logging.INFO
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

    # Configure the root logger so every module shares the same handlers/level.
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            existing_handler.setFormatter(formatter)

    logger.setLevel(log_level)

    # Suppress noisy debug logs from the HTTP stack unless they escalate.
    for name in ("urllib3", "urllib3.connectionpool", "requests"):
        logging.getLogger(name).setLevel(logging.WARNING)


# ------------------------------------------------------------------------------
# Translation Pipeline
# ------------------------------------------------------------------------------


@dataclass
class TranslationOutcome:
    """Result of one translation run."""

    output: bytes
    source_language: str
    target_language: str
    renderer: str
    entries: List[Dict[str, str]] = field(default_factory=list)

    @property
    def translated_count(self) -> int:
        return len(self.entries)


def derive_output_path(input_path: Path, target_language: str) -> Path:
    """Resources.resw + 'fr' -> Resources.fr.resw next to the source file."""
    suffix = input_path.suffix or ".resw"
    return input_path.with_name(f"{input_path.stem}.{target_language}{suffix}")


def validate_translation_request(
    input_path: Path,
    source_language: Optional[str],
    target_language: Optional[str],
    config: TranslatorConfig,
    output_path: Optional[Path] = None,
    force: bool = False,
) -> None:
    """
    Check every caller supplied input before anything touches the network.

    Raises:
        InvalidInputError: With a message describing the first problem found
    """
    if input_path is None or not str(input_path).strip():
        raise InvalidInputError("Source file is empty")
    input_path = Path(input_path)
    if not input_path.exists():
        raise InvalidInputError(f"Source file path is invalid: {input_path}")
    if not input_path.is_file():
        raise InvalidInputError(f"Source path is not a file: {input_path}")

    config.require_credentials()

    if not source_language or not source_language.strip():
        raise InvalidInputError("Source language is required")
    if not target_language or not target_language.strip():
        raise InvalidInputError("Target language is required")
    if source_language.strip().lower() == target_language.strip().lower():
        raise InvalidInputError(
            f"Source and target languages are equal ('{source_language}')"
        )

    if output_path is not None:
        output_path = Path(output_path)
        if output_path.resolve() == input_path.resolve():
            raise InvalidInputError(
                "The output path matches the source file. Refusing to overwrite the source file."
            )
        if output_path.exists() and not force:
            raise InvalidInputError(
                f"Output file {output_path} already exists; use --force to replace it"
            )


def translate_resw(
    source_bytes: bytes,
    *,
    source_language: str,
    target_language: str,
    client: TranslatorClient,
    renderer: Optional[ResxRenderer] = None,
    source: str = "<memory>",
) -> TranslationOutcome:
    """
    Translate the content of a resource file and return the new file content.

    The steps run strictly in order: parse, check the schema version, extract
    entries, translate them in one batch, render. Any failure raises and no
    output is produced.
    """
    renderer = renderer or TemplateResxRenderer()

    document = ResxDocument.from_bytes(source_bytes, source=source)
    validate_resx_version(document)

    entries = extract_entries(document)
    logger.info(f"Found {len(entries)} translatable entries in {source}")

    translated = client.translate(entries, source_language, target_language)

    records = document.translatable_records()
    log: List[Dict[str, str]] = []
    cleaned: List[str] = []
    for record, text in zip(records, translated):
        value = sanitize_translation(text, reference_text=record.value)
        missing = find_missing_placeholders(record.value, value)
        if missing:
            logger.warning(
                f"Translation of '{record.name}' lost placeholder(s): {', '.join(missing)}"
            )
        logger.debug(
            f"Translated '{record.name}' to {target_language}: '{record.value}' -> '{value}'"
        )
        cleaned.append(value)
        log.append({"key": record.name, "source": record.value, "translation": value})

    output = renderer.render(document, cleaned)

    return TranslationOutcome(
        output=output,
        source_language=source_language,
        target_language=target_language,
        renderer=renderer.name,
        entries=log,
    )


def read_source(input_path: Path) -> bytes:
    try:
        return Path(input_path).read_bytes()
    except OSError as e:
        raise InvalidInputError(f"Could not read source file {input_path}: {e}") from e


def write_output(output_path: Path, data: bytes) -> None:
    """
    Write the translated file through a temporary sibling and rename it into place.

    Raises:
        WriteError: If the destination cannot be written
    """
    output_path = Path(output_path)
    temp_path = output_path.with_name(output_path.name + ".tmp")
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "wb") as f:
            f.write(data)
        os.replace(temp_path, output_path)
    except OSError as e:
        logger.error(f"Error writing output file {output_path}: {e}")
        if temp_path.exists():
            temp_path.unlink()
        raise WriteError(f"Could not write {output_path}: {e}") from e
    logger.info(f"Wrote translated resource file: {output_path}")


def translate_resw_file(
    input_path: Path,
    output_path: Optional[Path],
    *,
    source_language: str,
    target_language: str,
    client: TranslatorClient,
    renderer: Optional[ResxRenderer] = None,
    force: bool = False,
) -> TranslationOutcome:
    """
    Validate inputs, translate input_path and write the result to output_path.

    The output file is only written after translation and rendering succeed;
    the source file is never modified.
    """
    input_path = Path(input_path)
    if output_path:
        output_path = Path(output_path)
    elif target_language and target_language.strip():
        output_path = derive_output_path(input_path, target_language.strip())

    validate_translation_request(
        input_path,
        source_language,
        target_language,
        client.config,
        output_path=output_path,
        force=force,
    )

    source_bytes = read_source(input_path)
    outcome = translate_resw(
        source_bytes,
        source_language=source_language.strip(),
        target_language=target_language.strip(),
        client=client,
        renderer=renderer,
        source=str(input_path),
    )
    write_output(output_path, outcome.output)
    return outcome


def preview_entries(input_path: Path) -> List[Dict[str, str]]:
    """Parse and validate a file, returning the entries a run would translate."""
    input_path = Path(input_path)
    if not input_path.is_file():
        raise InvalidInputError(f"Source file path is invalid: {input_path}")
    document = ResxDocument.from_bytes(read_source(input_path), source=str(input_path))
    validate_resx_version(document)
    entries = extract_entries(document)
    return [
        {"key": record.name, "source": entry.text}
        for record, entry in zip(document.translatable_records(), entries)
    ]


# ------------------------------------------------------------------------------
# Reporting
# ------------------------------------------------------------------------------


def create_translation_report(translation_log):
    """
    Generate a Markdown formatted translation report as a string.

    translation_log maps file name -> language code -> {"strings": [...]}.
    """
    report = "# Translation Report\n\n"
    has_translations = False

    for file_name, languages in translation_log.items():
        file_has_translations = False
        file_report = f"## File: {file_name}\n\n"
        languages_report = ""

        for lang, details in languages.items():
            if not details.get("strings"):
                continue

            file_has_translations = True
            has_translations = True
            lang_name = get_language_name(lang)
            languages_report += f"### Language: {lang_name}\n\n"
            languages_report += "| Key | Source Text | Translated Text |\n"
            languages_report += "| --- | ----------- | --------------- |\n"
            for entry in details["strings"]:
                key = entry["key"]
                source = entry["source"].replace("\n", " ").replace("|", "\\|")
                translation = entry["translation"].replace("\n", " ").replace("|", "\\|")
                languages_report += f"| {key} | {source} | {translation} |\n"
            languages_report += "\n"

        if file_has_translations:
            report += file_report + languages_report

    if not has_translations:
        report += "No translations were performed."

    return report


# ------------------------------------------------------------------------------
# Main Entry Point
# ------------------------------------------------------------------------------


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        print(f"Invalid {name} value ('{raw}'); falling back to {default}")
        return default


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resw Resource Translator")
    parser.add_argument(
        "source_file",
        nargs="?",
        help="Path to the .resw/.resx file to translate",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output file path (default: <name>.<target language>.resw next to the source)",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        default=DEFAULT_SOURCE_LANGUAGE,
        help=f"Language code of the source values (default: {DEFAULT_SOURCE_LANGUAGE})",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        default=None,
        help="Language code to translate into (e.g. fr, de, zh-Hans)",
    )
    parser.add_argument(
        "--azure-key",
        default=None,
        help="Translator subscription key (default: AZURE_TRANSLATOR_KEY)",
    )
    parser.add_argument(
        "--azure-region",
        default=None,
        help="Translator subscription region (default: AZURE_TRANSLATOR_REGION)",
    )
    parser.add_argument(
        "--endpoint",
        default=None,
        help=f"Translator endpoint (default: AZURE_TRANSLATOR_ENDPOINT or {DEFAULT_ENDPOINT})",
    )
    parser.add_argument(
        "--renderer",
        choices=sorted(RENDERERS),
        default=TemplateResxRenderer.name,
        help="How the output file is produced (default: template)",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Replace the output file if it already exists",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Only list the entries that would be translated",
    )
    parser.add_argument(
        "--list-languages",
        action="store_true",
        help="Print the languages supported by the translator and exit",
    )
    parser.add_argument(
        "-l",
        "--log-trace",
        action="store_true",
        help="Log detailed trace information",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point for the Resw Resource Translator script.
    Reads options from the command line, or from INPUT_* environment variables
    when running as a GitHub Action, then translates one resource file.
    """
    is_github = os.environ.get("GITHUB_ACTIONS", "false").lower() == "true"
    if is_github:
        source_file = os.environ.get("INPUT_SOURCE_FILE")
        output_file = os.environ.get("INPUT_OUTPUT_FILE") or None
        source_language = os.environ.get("INPUT_SOURCE_LANGUAGE", DEFAULT_SOURCE_LANGUAGE)
        target_language = os.environ.get("INPUT_TARGET_LANGUAGE")
        renderer_name = os.environ.get("INPUT_RENDERER", TemplateResxRenderer.name)
        dry_run = os.environ.get("INPUT_DRY_RUN", "false").lower() == "true"
        log_trace = os.environ.get("INPUT_LOG_TRACE", "false").lower() == "true"
        force = os.environ.get("INPUT_FORCE", "false").lower() == "true"
        list_languages = False
        azure_key = azure_region = endpoint = None
        startup_message_prefix = "Running with parameters from environment variables."
    else:
        parser = build_parser()
        args = parser.parse_args(argv)
        source_file = args.source_file
        output_file = args.output
        source_language = args.source_language
        target_language = args.target_language
        renderer_name = args.renderer
        dry_run = args.dry_run
        log_trace = args.log_trace
        force = args.force
        list_languages = args.list_languages
        azure_key = args.azure_key
        azure_region = args.azure_region
        endpoint = args.endpoint
        startup_message_prefix = "Running with command-line parameters."

    azure_key = azure_key or os.environ.get("AZURE_TRANSLATOR_KEY")
    azure_region = azure_region or os.environ.get("AZURE_TRANSLATOR_REGION")
    endpoint = endpoint or os.environ.get("AZURE_TRANSLATOR_ENDPOINT", DEFAULT_ENDPOINT)
    timeout = _env_number("AZURE_TRANSLATOR_HTTP_TIMEOUT", DEFAULT_TIMEOUT, float)
    pool_maxsize = _env_number("AZURE_TRANSLATOR_HTTP_POOL_MAXSIZE", DEFAULT_POOL_MAXSIZE, int)

    # Don't print the key
    print(
        f"{startup_message_prefix} Source File: {source_file}, Output: {output_file}, "
        f"From: {source_language}, To: {target_language}, Renderer: {renderer_name}, "
        f"Dry Run: {dry_run}, Endpoint: {endpoint}, Region: {azure_region}"
    )

    configure_logging(log_trace)

    try:
        config = TranslatorConfig(
            endpoint=endpoint,
            subscription_key=azure_key,
            subscription_region=azure_region,
            timeout=timeout,
            pool_maxsize=pool_maxsize,
        )
        renderer = build_renderer(renderer_name)
    except (InvalidInputError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    with TranslatorClient(config) as client:
        if list_languages:
            catalog = LanguageCatalog(client)
            for descriptor in sorted(catalog.languages().values(), key=lambda d: d.code):
                print(descriptor)
            return

        if not source_file:
            print("Error: source file not provided.")
            sys.exit(1)

        if dry_run:
            try:
                entries = preview_entries(Path(source_file))
            except ReswTranslatorError as e:
                logger.error(str(e))
                sys.exit(1)
            logger.info(f"Dry run: {len(entries)} entries would be translated")
            for entry in entries:
                print(f"{entry['key']}: {entry['source']}")
            return

        try:
            outcome = translate_resw_file(
                Path(source_file),
                Path(output_file) if output_file else None,
                source_language=source_language,
                target_language=target_language,
                client=client,
                renderer=renderer,
                force=force,
            )
        except ReswTranslatorError as e:
            logger.error(str(e))
            sys.exit(1)

    translation_log = {
        Path(source_file).name: {
            outcome.target_language: {"strings": outcome.entries}
        }
    }
    report_output = create_translation_report(translation_log)

    if "GITHUB_OUTPUT" in os.environ:
        with open(os.environ["GITHUB_OUTPUT"], "a", encoding="utf-8") as f:
            # Use a unique delimiter to prevent collision if translations contain "EOF"
            delimiter = "EOF_TRANSLATION_REPORT_5c1b9e2d"
            print(f"translation_report<<{delimiter}", file=f)
            print(report_output, file=f)
            print(delimiter, file=f)
    else:
        print("\nTranslation Report:")
        print(report_output)


if __name__ == "__main__":
    main()
