#!/usr/bin/env python3
"""
Tests for the AutoI18n orchestration.

This module tests:
- Cache lookup / translation / insert sequencing
- The ordered translation queue
- Full pipeline runs (idempotence, dedup, fallback, id stability)
- Command-line validation
"""
import os
import sys
import threading
import time
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch, MagicMock

# Add parent directory to path for module import
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from AutoI18n import (
    I18nConfig,
    TranslationQueue,
    build_source_map,
    load_literals,
    main,
    resolve_api_key,
    run_pipeline,
)
from literal_extractor import FALLBACK_LITERAL
from translation_cache import TranslationCache


def fake_translate(literal):
    """Deterministic stand-in for the LLM call."""
    return {"en": literal, "es": f"{literal} (es)", "ja": f"{literal} (ja)"}


class TempDirTestCase(unittest.TestCase):
    """Base class providing a temporary project and output directory."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)
        self.source_root = self.root / "project"
        self.source_root.mkdir()
        self.output_dir = self.root / "project" / "i18n"

    def write_source(self, relative_path, content):
        path = self.source_root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def make_config(self, **overrides):
        settings = {
            "output_dir": str(self.output_dir),
            "languages": ["en", "es", "ja"],
            "source_root": str(self.source_root),
            "format_output": False,
        }
        settings.update(overrides)
        return I18nConfig(**settings)


class TestBuildSourceMap(TempDirTestCase):
    """Tests for resolving records through the cache and the translator."""

    def setUp(self):
        super().setUp()
        self.cache = TranslationCache(str(self.root / "i18n.sqlite"))
        self.addCleanup(self.cache.close)

    def test_miss_translates_and_inserts(self):
        translate = MagicMock(side_effect=fake_translate)

        self.assertIsNone(self.cache.lookup("Save"))
        source_map = build_source_map(["Save"], self.cache, translate)

        translate.assert_called_once_with("Save")
        self.assertEqual(source_map, {"Save": fake_translate("Save")})
        self.assertEqual(self.cache.lookup("Save"), fake_translate("Save"))

    def test_hit_skips_translation(self):
        self.cache.insert("Save", {"en": "Save", "es": "Guardar"})
        translate = MagicMock(side_effect=fake_translate)

        source_map = build_source_map(["Save"], self.cache, translate)

        translate.assert_not_called()
        self.assertEqual(source_map, {"Save": {"en": "Save", "es": "Guardar"}})

    def test_soft_failure_is_skipped_and_retried_later(self):
        translate = MagicMock(return_value=None)
        with self.assertLogs("AutoI18n", level="WARNING"):
            source_map = build_source_map(["Save", "Open"], self.cache, translate)

        self.assertEqual(source_map, {})
        self.assertEqual(len(self.cache), 0)

        retry = MagicMock(side_effect=fake_translate)
        source_map = build_source_map(["Save", "Open"], self.cache, retry)
        self.assertEqual(retry.call_count, 2)
        self.assertEqual(list(source_map), ["Save", "Open"])

    def test_order_follows_literals_not_cache_state(self):
        self.cache.insert("B", fake_translate("B"))
        source_map = build_source_map(["A", "B", "C"], self.cache, fake_translate)
        self.assertEqual(list(source_map), ["A", "B", "C"])

    def test_transport_error_keeps_earlier_rows(self):
        def translate(literal):
            if literal == "Second":
                raise ConnectionError("network down")
            return fake_translate(literal)

        with self.assertRaises(ConnectionError):
            build_source_map(["First", "Second", "Third"], self.cache, translate)

        self.assertEqual(self.cache.lookup("First"), fake_translate("First"))
        self.assertIsNone(self.cache.lookup("Third"))


class TestTranslationQueue(unittest.TestCase):
    """Tests for the ordered worker queue."""

    def test_results_in_submission_order(self):
        delays = {"a": 0.03, "b": 0.0, "c": 0.01}

        def translate(literal):
            time.sleep(delays[literal])
            return {"en": literal}

        queue = TranslationQueue(translate, max_workers=3)
        results = list(queue.run(["a", "b", "c"]))
        self.assertEqual([literal for literal, _ in results], ["a", "b", "c"])

    def test_single_worker_has_one_request_in_flight(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def translate(literal):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return {"en": literal}

        list(TranslationQueue(translate).run(["a", "b", "c", "d"]))
        self.assertEqual(state["peak"], 1)

    def test_empty_queue(self):
        translate = MagicMock()
        self.assertEqual(list(TranslationQueue(translate).run([])), [])
        translate.assert_not_called()

    def test_logs_new_literals(self):
        with self.assertLogs("AutoI18n", level="INFO") as logs:
            list(TranslationQueue(fake_translate).run(["Save"]))
        self.assertIn("translate new: Save", "\n".join(logs.output))

    def test_error_propagates_to_caller(self):
        calls = []

        def translate(literal):
            calls.append(literal)
            if literal == "a":
                raise RuntimeError("boom")
            return {"en": literal}

        with self.assertRaises(RuntimeError):
            list(TranslationQueue(translate).run(["a", "b", "c"]))
        self.assertEqual(calls[0], "a")


class TestLoadLiterals(TempDirTestCase):
    """Tests for literal loading with the fallback."""

    def test_fallback_when_nothing_found(self):
        self.write_source("src/app.ts", "export const x = 1;")
        self.assertEqual(load_literals(str(self.source_root)), [FALLBACK_LITERAL])

    def test_found_literals(self):
        self.write_source("src/app.ts", 'i18n("Save")')
        self.assertEqual(load_literals(str(self.source_root)), ["Save"])


class TestRunPipeline(TempDirTestCase):
    """End-to-end pipeline runs with an injected translator."""

    def read_output(self, name):
        return (self.output_dir / name).read_text(encoding="utf-8")

    def test_second_run_is_served_from_cache(self):
        self.write_source("src/app.tsx", 'i18n("Save"); i18n`Cancel`;')
        self.write_source("src/lib/util.ts", 'i18nKey("Untitled")')
        translate = MagicMock(side_effect=fake_translate)

        run_pipeline(self.make_config(), translate_fn=translate)
        first = self.read_output("i18n-source.ts")
        self.assertEqual(translate.call_count, 3)

        run_pipeline(self.make_config(), translate_fn=translate)
        second = self.read_output("i18n-source.ts")

        self.assertEqual(translate.call_count, 3)
        self.assertEqual(first, second)

    def test_duplicate_literal_across_syntaxes_and_files(self):
        self.write_source("a.ts", 'i18n("x")')
        self.write_source("b.tsx", "i18n`x`")
        translate = MagicMock(side_effect=fake_translate)

        source_map = run_pipeline(self.make_config(), translate_fn=translate)

        translate.assert_called_once_with("x")
        self.assertEqual(list(source_map), ["x"])
        with TranslationCache(self.make_config().cache_path) as cache:
            self.assertEqual(len(cache), 1)

    def test_empty_project_uses_fallback(self):
        self.write_source("src/app.ts", "export const x = 1;")

        source_map = run_pipeline(self.make_config(), translate_fn=fake_translate)

        self.assertEqual(list(source_map), [FALLBACK_LITERAL])
        self.assertIn('"hello"', self.read_output("i18n-source.ts"))

    def test_ids_are_stable_across_runs(self):
        self.write_source("src/app.ts", 'i18n("One"); i18n("Two"); i18n("Three")')

        run_pipeline(self.make_config(), translate_fn=fake_translate)
        first_index = self.read_output("index.ts")
        run_pipeline(self.make_config(), translate_fn=fake_translate)
        second_index = self.read_output("index.ts")

        self.assertEqual(first_index, second_index)
        source = self.read_output("i18n-source.ts")
        for position, literal in enumerate(["One", "Two", "Three"]):
            with self.subTest(literal=literal):
                self.assertIn(f'\t"{literal}": {position},', first_index)
                self.assertIn(f'"{literal}"', source)

    def test_generated_output_inside_tree_adds_no_literals(self):
        """Test that modules generated inside the scanned tree add no literals."""
        self.write_source("src/app.ts", 'i18n("Save")')
        run_pipeline(self.make_config(), translate_fn=fake_translate)

        translate = MagicMock(side_effect=fake_translate)
        source_map = run_pipeline(self.make_config(), translate_fn=translate)

        translate.assert_not_called()
        self.assertEqual(list(source_map), ["Save"])

    def test_summary_is_logged(self):
        self.write_source("src/app.ts", 'i18n("Save")')
        with self.assertLogs("AutoI18n", level="INFO") as logs:
            run_pipeline(self.make_config(), translate_fn=fake_translate)
        self.assertIn("Auto i18n sentences: 1", "\n".join(logs.output))

    @patch("AutoI18n.run_formatter")
    def test_formatter_runs_when_enabled(self, mock_formatter):
        self.write_source("src/app.ts", 'i18n("Save")')
        run_pipeline(self.make_config(format_output=True), translate_fn=fake_translate)
        mock_formatter.assert_called_once_with(str(self.output_dir))

    def test_requires_llm_config_without_translator(self):
        with self.assertRaises(ValueError):
            run_pipeline(self.make_config())


class TestConfig(unittest.TestCase):
    """Tests for I18nConfig validation."""

    def test_defaults(self):
        config = I18nConfig()
        self.assertEqual(config.output_dir, "./i18n")
        self.assertEqual(config.languages, ["en", "zh", "ja", "es", "fr", "hi"])
        self.assertEqual(config.max_workers, 1)
        self.assertEqual(config.cache_path, os.path.join("./i18n", "i18n.sqlite"))

    def test_empty_output_dir(self):
        with self.assertRaises(ValueError):
            I18nConfig(output_dir="")

    def test_unknown_language(self):
        with self.assertRaises(ValueError):
            I18nConfig(languages=["en", "xx"])

    def test_invalid_worker_count(self):
        with self.assertRaises(ValueError):
            I18nConfig(max_workers=0)


class TestMain(TempDirTestCase):
    """Tests for command-line validation and wiring."""

    def run_main(self, argv, env):
        with patch.dict(os.environ, env, clear=True):
            with patch("AutoI18n.run_pipeline") as mock_pipeline:
                main(argv)
        return mock_pipeline

    @patch("AutoI18n.run_pipeline")
    def test_unknown_language_aborts_before_io(self, mock_pipeline):
        with patch.dict(os.environ, {"OPENAI_CLIENT": "key"}, clear=True):
            with self.assertRaises(SystemExit) as ctx:
                main(["-o", str(self.output_dir), "-l", "en,xx"])
        self.assertEqual(ctx.exception.code, 1)
        mock_pipeline.assert_not_called()
        self.assertFalse(self.output_dir.exists())

    @patch("AutoI18n.run_pipeline")
    def test_missing_credential_aborts(self, mock_pipeline):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(SystemExit) as ctx:
                main(["-o", str(self.output_dir)])
        self.assertEqual(ctx.exception.code, 1)
        mock_pipeline.assert_not_called()
        self.assertFalse(self.output_dir.exists())

    @patch("AutoI18n.run_pipeline")
    def test_empty_output_dir_aborts(self, mock_pipeline):
        with patch.dict(os.environ, {"OPENAI_CLIENT": "key"}, clear=True):
            with self.assertRaises(SystemExit) as ctx:
                main(["-o", ""])
        self.assertEqual(ctx.exception.code, 1)
        mock_pipeline.assert_not_called()

    def test_valid_arguments(self):
        mock_pipeline = self.run_main(
            [
                "-o",
                str(self.output_dir),
                "-l",
                "en, de",
                "-s",
                str(self.source_root),
                "-p",
                "Keep it short.",
                "--no-format",
            ],
            {"OPENAI_CLIENT": "key"},
        )
        config = mock_pipeline.call_args.args[0]
        self.assertEqual(config.output_dir, str(self.output_dir))
        self.assertEqual(config.languages, ["en", "de"])
        self.assertEqual(config.source_root, str(self.source_root))
        self.assertEqual(config.style_directive, "Keep it short.")
        self.assertFalse(config.format_output)
        self.assertEqual(config.llm_config.api_key, "key")
        self.assertEqual(config.llm_config.model, "gpt-4o-mini")

    def test_style_directive_from_environment(self):
        mock_pipeline = self.run_main(
            ["-o", str(self.output_dir)],
            {"OPENAI_API_KEY": "key", "I18N_AI_PROMPT": "Use a playful tone."},
        )
        config = mock_pipeline.call_args.args[0]
        self.assertEqual(config.style_directive, "Use a playful tone.")

    def test_flag_overrides_environment_directive(self):
        mock_pipeline = self.run_main(
            ["-o", str(self.output_dir), "-p", "Formal."],
            {"OPENAI_CLIENT": "key", "I18N_AI_PROMPT": "Playful."},
        )
        self.assertEqual(mock_pipeline.call_args.args[0].style_directive, "Formal.")

    def test_openrouter_credential(self):
        mock_pipeline = self.run_main(
            ["-o", str(self.output_dir), "--llm-provider", "openrouter"],
            {"OPENROUTER_API_KEY": "router-key"},
        )
        llm_config = mock_pipeline.call_args.args[0].llm_config
        self.assertEqual(llm_config.api_key, "router-key")
        self.assertEqual(llm_config.provider.value, "openrouter")


class TestResolveApiKey(unittest.TestCase):
    """Tests for credential lookup."""

    def test_openai_client_variable_takes_precedence(self):
        env = {"OPENAI_CLIENT": "first", "OPENAI_API_KEY": "second"}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(resolve_api_key("openai"), "first")

    def test_fallback_variable(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "second"}, clear=True):
            self.assertEqual(resolve_api_key("openai"), "second")

    def test_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(resolve_api_key("openrouter"))


if __name__ == "__main__":
    unittest.main()
