#!/usr/bin/env python3
"""
Integration tests for ReswTranslator.

This module tests how the parser, translator client and renderers work
together when translating a resource file end to end. The HTTP session is
replaced with a mock; nothing leaves the machine.
"""
import io
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add parent directory to path for module import
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import (
    InvalidInputError,
    InvalidSchemaError,
    TranslationCountMismatchError,
    TranslationServiceError,
    WriteError,
)
from resw_document import ResxDocument, TreeResxRenderer, validate_resx_version
from translator_service import TranslatorClient, TranslatorConfig
from ReswTranslator import (
    derive_output_path,
    main,
    preview_entries,
    translate_resw,
    translate_resw_file,
    validate_translation_request,
    write_output,
)

SOURCE_RESW = """<?xml version="1.0" encoding="utf-8"?>
<root>
  <resheader name="resmimetype">
    <value>text/microsoft-resx</value>
  </resheader>
  <resheader name="version">
    <value>2.0</value>
  </resheader>
  <data name="Greeting" xml:space="preserve">
    <value>Hello</value>
    <comment>Shown on the start page</comment>
  </data>
  <data name="Farewell" xml:space="preserve">
    <value>Goodbye</value>
  </data>
</root>
"""


def make_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload
    return response


FRENCH_RESPONSE = [
    {"translations": [{"text": "Bonjour", "to": "fr"}]},
    {"translations": [{"text": "Au revoir", "to": "fr"}]},
]


class TestIntegration(unittest.TestCase):
    """Base class for integration tests."""

    def setUp(self):
        """Set up a temporary project with one resource file."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)

        self.strings_dir = Path(self.temp_dir.name) / "Strings" / "en-US"
        self.strings_dir.mkdir(parents=True)
        self.source_path = self.strings_dir / "Resources.resw"
        self.source_path.write_text(SOURCE_RESW, encoding="utf-8")
        self.output_path = Path(self.temp_dir.name) / "Strings" / "fr-FR" / "Resources.resw"

        self.session = MagicMock()
        self.session.post.return_value = make_response(payload=FRENCH_RESPONSE)
        self.config = TranslatorConfig(
            subscription_key="secret-key", subscription_region="westeurope"
        )
        self.client = TranslatorClient(self.config, session=self.session)


class TestTranslateFile(TestIntegration):
    """End-to-end translation of a resource file."""

    def test_translate_greeting_and_farewell(self):
        outcome = translate_resw_file(
            self.source_path,
            self.output_path,
            source_language="en",
            target_language="fr",
            client=self.client,
        )

        self.assertTrue(self.output_path.exists())
        output = ResxDocument.from_file(self.output_path)
        self.assertTrue(validate_resx_version(output))
        self.assertEqual(
            [(r.name, r.value) for r in output.records],
            [("Greeting", "Bonjour"), ("Farewell", "Au revoir")],
        )
        self.assertEqual(outcome.translated_count, 2)
        self.assertEqual(outcome.renderer, "template")
        self.assertEqual(
            outcome.entries[0],
            {"key": "Greeting", "source": "Hello", "translation": "Bonjour"},
        )
        self.assertEqual(self.source_path.read_text(encoding="utf-8"), SOURCE_RESW)

    def test_round_trip_keeps_names_and_order(self):
        """Output re-parses with the same record names in the same order."""
        for renderer in (None, TreeResxRenderer()):
            with self.subTest(renderer=renderer):
                outcome = translate_resw(
                    self.source_path.read_bytes(),
                    source_language="en",
                    target_language="fr",
                    client=self.client,
                    renderer=renderer,
                )
                source = ResxDocument.from_file(self.source_path)
                output = ResxDocument.from_bytes(outcome.output)
                self.assertTrue(validate_resx_version(output))
                self.assertEqual(
                    [r.name for r in output.records], [r.name for r in source.records]
                )

    def test_default_output_path(self):
        translate_resw_file(
            self.source_path,
            None,
            source_language="en",
            target_language="fr",
            client=self.client,
        )
        self.assertTrue((self.strings_dir / "Resources.fr.resw").exists())

    def test_same_language_fails_before_network(self):
        with self.assertRaises(InvalidInputError):
            translate_resw_file(
                self.source_path,
                self.output_path,
                source_language="en",
                target_language="EN",
                client=self.client,
            )
        self.session.post.assert_not_called()
        self.assertFalse(self.output_path.exists())

    def test_http_401_produces_no_output(self):
        self.session.post.return_value = make_response(status_code=401)

        with self.assertRaises(TranslationServiceError) as ctx:
            translate_resw_file(
                self.source_path,
                self.output_path,
                source_language="en",
                target_language="fr",
                client=self.client,
            )

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertFalse(self.output_path.exists())
        self.assertEqual(self.source_path.read_text(encoding="utf-8"), SOURCE_RESW)

    def test_count_mismatch_produces_no_output(self):
        self.session.post.return_value = make_response(payload=FRENCH_RESPONSE[:1])

        with self.assertRaises(TranslationCountMismatchError):
            translate_resw_file(
                self.source_path,
                self.output_path,
                source_language="en",
                target_language="fr",
                client=self.client,
            )
        self.assertFalse(self.output_path.exists())

    def test_invalid_schema_fails_before_network(self):
        self.source_path.write_text(
            SOURCE_RESW.replace("<value>2.0</value>", "<value>1.3</value>"),
            encoding="utf-8",
        )
        with self.assertRaises(InvalidSchemaError):
            translate_resw_file(
                self.source_path,
                self.output_path,
                source_language="en",
                target_language="fr",
                client=self.client,
            )
        self.session.post.assert_not_called()

    def test_empty_document_makes_no_call(self):
        self.source_path.write_text(
            SOURCE_RESW.split("  <data")[0] + "</root>\n", encoding="utf-8"
        )
        outcome = translate_resw_file(
            self.source_path,
            self.output_path,
            source_language="en",
            target_language="fr",
            client=self.client,
        )
        self.session.post.assert_not_called()
        self.assertEqual(outcome.entries, [])
        self.assertEqual(ResxDocument.from_file(self.output_path).records, [])

    def test_existing_output_requires_force(self):
        self.output_path.parent.mkdir(parents=True)
        self.output_path.write_text("old", encoding="utf-8")

        with self.assertRaises(InvalidInputError):
            translate_resw_file(
                self.source_path,
                self.output_path,
                source_language="en",
                target_language="fr",
                client=self.client,
            )
        self.assertEqual(self.output_path.read_text(encoding="utf-8"), "old")

        translate_resw_file(
            self.source_path,
            self.output_path,
            source_language="en",
            target_language="fr",
            client=self.client,
            force=True,
        )
        self.assertIn("Bonjour", self.output_path.read_text(encoding="utf-8"))


class TestValidation(TestIntegration):
    """Input checks that run before any network call."""

    def validate(self, **overrides):
        params = dict(
            input_path=self.source_path,
            source_language="en",
            target_language="fr",
            config=self.config,
            output_path=self.output_path,
        )
        params.update(overrides)
        validate_translation_request(**params)

    def test_valid_request(self):
        self.validate()

    def test_invalid_requests(self):
        cases = {
            "missing file": dict(input_path=self.source_path.with_name("Missing.resw")),
            "directory": dict(input_path=self.strings_dir),
            "empty path": dict(input_path=""),
            "no key": dict(config=TranslatorConfig(subscription_region="westeurope")),
            "no region": dict(config=TranslatorConfig(subscription_key="k")),
            "no source language": dict(source_language=" "),
            "no target language": dict(target_language=None),
            "same language": dict(target_language="en"),
            "output is source": dict(output_path=self.source_path),
        }
        for label, overrides in cases.items():
            with self.subTest(case=label):
                with self.assertRaises(InvalidInputError):
                    self.validate(**overrides)

    def test_derive_output_path(self):
        self.assertEqual(
            derive_output_path(Path("Strings/Resources.resw"), "de"),
            Path("Strings/Resources.de.resw"),
        )
        self.assertEqual(
            derive_output_path(Path("Messages"), "de"), Path("Messages.de.resw")
        )

    def test_write_error(self):
        blocker = Path(self.temp_dir.name) / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        with self.assertRaises(WriteError):
            write_output(blocker / "Resources.resw", b"<root/>")

    def test_preview_entries(self):
        self.assertEqual(
            preview_entries(self.source_path),
            [
                {"key": "Greeting", "source": "Hello"},
                {"key": "Farewell", "source": "Goodbye"},
            ],
        )


class TestMain(TestIntegration):
    """Tests for the command line entry point."""

    def test_dry_run_lists_entries(self):
        with patch.dict(os.environ, {"GITHUB_ACTIONS": "false"}, clear=True), patch(
            "sys.stdout", new_callable=io.StringIO
        ) as stdout:
            main([str(self.source_path), "--dry-run"])

        self.assertIn("Greeting: Hello", stdout.getvalue())
        self.assertIn("Farewell: Goodbye", stdout.getvalue())

    def test_invalid_input_exits_with_error(self):
        argv = [
            str(self.source_path),
            "-s", "en",
            "-t", "en",
            "--azure-key", "k",
            "--azure-region", "westeurope",
        ]
        with patch.dict(os.environ, {"GITHUB_ACTIONS": "false"}, clear=True), patch(
            "sys.stdout", new_callable=io.StringIO
        ):
            with self.assertRaises(SystemExit) as ctx:
                main(argv)
        self.assertEqual(ctx.exception.code, 1)

    def test_invalid_endpoint_exits_with_error(self):
        argv = [str(self.source_path), "-t", "fr", "--endpoint", "http://insecure.example.com"]
        with patch.dict(os.environ, {"GITHUB_ACTIONS": "false"}, clear=True), patch(
            "sys.stdout", new_callable=io.StringIO
        ):
            with self.assertRaises(SystemExit) as ctx:
                main(argv)
        self.assertEqual(ctx.exception.code, 1)

    @patch("ReswTranslator.TranslatorClient")
    def test_github_action_mode(self, mock_client_cls):
        mock_client_cls.return_value.__enter__.return_value = self.client
        mock_client_cls.return_value.__exit__.return_value = False
        github_output = Path(self.temp_dir.name) / "github_output.txt"

        env = {
            "GITHUB_ACTIONS": "true",
            "INPUT_SOURCE_FILE": str(self.source_path),
            "INPUT_TARGET_LANGUAGE": "fr",
            "AZURE_TRANSLATOR_KEY": "secret-key",
            "AZURE_TRANSLATOR_REGION": "westeurope",
            "GITHUB_OUTPUT": str(github_output),
        }
        with patch.dict(os.environ, env, clear=True), patch(
            "sys.stdout", new_callable=io.StringIO
        ) as stdout:
            main([])

        self.assertNotIn("secret-key", stdout.getvalue())
        config = mock_client_cls.call_args.args[0]
        self.assertEqual(config.subscription_key, "secret-key")

        output = ResxDocument.from_file(self.strings_dir / "Resources.fr.resw")
        self.assertEqual([r.value for r in output.records], ["Bonjour", "Au revoir"])

        report = github_output.read_text(encoding="utf-8")
        self.assertIn("translation_report<<", report)
        self.assertIn("| Greeting | Hello | Bonjour |", report)


if __name__ == "__main__":
    unittest.main()
