#!/usr/bin/env python3
"""
Source Auto-i18n

This script scans a TypeScript source tree for text passed to the i18n marker
functions, translates every new literal with an LLM, caches the translations
in a local SQLite file, and generates the i18n-source.ts / index.ts modules the
application uses to look translations up at runtime.
"""

import argparse
import concurrent.futures
import functools
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from language_utils import (
    DEFAULT_LANGUAGE_CODES,
    get_language_name,
    parse_language_codes,
    validate_language_codes,
)
from literal_extractor import FALLBACK_LITERAL, extract_literals
from llm_provider import (
    DEFAULT_MODEL,
    LLMClient,
    LLMConfig,
    LLMProvider,
    translate_literal_with_llm,
)
from module_emitter import emit_modules, run_formatter
from translation_cache import (
    CACHE_FILENAME,
    TranslationCache,
    TranslationRecord,
    open_cache,
)

DEFAULT_OUTPUT_DIR = "./i18n"
DEFAULT_SOURCE_ROOT = "./"
STYLE_DIRECTIVE_ENV = "I18N_AI_PROMPT"

# Credential variables checked per provider, in order
API_KEY_ENV_VARS = {
    "openai": ("OPENAI_CLIENT", "OPENAI_API_KEY"),
    "openrouter": ("OPENROUTER_API_KEY",),
}

TranslateFn = Callable[[str], Optional[TranslationRecord]]

# ------------------------------------------------------------------------------
# Logger Setup
# ------------------------------------------------------------------------------

logger = logging.getLogger(__name__)


def configure_logging(trace: bool) -> None:
    """Configure logging to the console."""
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

    # Suppress noisy debug logs from HTTP client/SDK libraries unless they escalate.
    for name in ["openai", "openai._base_client", "httpx", "httpcore"]:
        logging.getLogger(name).setLevel(logging.WARNING)


# ------------------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------------------


@dataclass
class I18nConfig:
    """
    Validated settings for one run.

    Attributes:
        output_dir: Directory receiving the generated modules and the cache file
        languages: Language codes the generated runtime can resolve to
        style_directive: Extra instruction appended to every translation prompt
        source_root: Directory scanned for marker calls
        llm_config: Provider settings; may be None when a translate function
            is injected directly into run_pipeline
        format_output: Whether to run the source formatter after writing
        max_workers: Translation requests allowed in flight at once
    """

    output_dir: str = DEFAULT_OUTPUT_DIR
    languages: List[str] = field(
        default_factory=lambda: parse_language_codes(DEFAULT_LANGUAGE_CODES)
    )
    style_directive: str = ""
    source_root: str = DEFAULT_SOURCE_ROOT
    llm_config: Optional[LLMConfig] = None
    format_output: bool = True
    max_workers: int = 1

    def __post_init__(self):
        if not self.output_dir:
            raise ValueError(
                "Please provide a output directory for the i18n, like: -o ./i18n"
            )
        validate_language_codes(self.languages)
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @property
    def cache_path(self) -> str:
        return os.path.join(self.output_dir, CACHE_FILENAME)


def resolve_api_key(provider: str) -> Optional[str]:
    """Return the first credential set in the environment for the provider."""
    for env_var in API_KEY_ENV_VARS[provider]:
        value = os.environ.get(env_var)
        if value:
            return value
    return None


# ------------------------------------------------------------------------------
# Translation Pipeline
# ------------------------------------------------------------------------------


class TranslationQueue:
    """
    Ordered task queue feeding literals to a worker pool.

    Results are yielded strictly in submission order. With the default single
    worker only one request is ever in flight; a larger pool bounds the number
    of concurrent requests to max_workers.
    """

    def __init__(self, translate_fn: TranslateFn, max_workers: int = 1) -> None:
        self.translate_fn = translate_fn
        self.max_workers = max_workers

    def _translate(self, literal: str) -> Optional[TranslationRecord]:
        logger.info(f"translate new: {literal}")
        return self.translate_fn(literal)

    def run(
        self, literals: List[str]
    ) -> Iterator[Tuple[str, Optional[TranslationRecord]]]:
        """
        Translate literals and yield (literal, record) pairs in order.

        A failing translate call propagates out of the iteration; tasks that
        have not started yet are cancelled.
        """
        if not literals:
            return
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            futures = [
                (literal, executor.submit(self._translate, literal))
                for literal in literals
            ]
            for literal, future in futures:
                yield literal, future.result()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)


def load_literals(source_root: str) -> List[str]:
    """Extract literals from the source tree, falling back to FALLBACK_LITERAL."""
    literals = extract_literals(source_root)
    if not literals:
        logger.info(f"No marker calls found; using fallback literal '{FALLBACK_LITERAL}'")
        literals = [FALLBACK_LITERAL]
    return literals


def build_source_map(
    literals: List[str],
    cache: TranslationCache,
    translate_fn: TranslateFn,
    max_workers: int = 1,
) -> Dict[str, TranslationRecord]:
    """
    Resolve a translation record for every literal.

    Cached literals are reused silently. The rest go through the translation
    queue; each successful result is inserted into the cache as soon as it
    arrives. Literals whose translation soft-failed are left out and will be
    retried on the next run.

    Args:
        literals: Unique literals in discovery order
        cache: Open translation cache
        translate_fn: Callable returning a record or None for one literal
        max_workers: Translation requests allowed in flight at once

    Returns:
        Literal -> record, in the order of `literals`
    """
    records: Dict[str, TranslationRecord] = {}
    pending: List[str] = []

    for literal in literals:
        cached = cache.lookup(literal)
        if cached is None:
            pending.append(literal)
        else:
            records[literal] = cached

    translated = 0
    queue = TranslationQueue(translate_fn, max_workers=max_workers)
    for literal, record in queue.run(pending):
        if record is None:
            continue
        cache.insert(literal, record)
        records[literal] = record
        translated += 1

    skipped = len(pending) - translated
    if skipped:
        logger.warning(f"{skipped} literals could not be translated in this run")

    return {literal: records[literal] for literal in literals if literal in records}


def run_pipeline(
    config: I18nConfig, translate_fn: Optional[TranslateFn] = None
) -> Dict[str, TranslationRecord]:
    """
    Run extraction, translation and module generation once.

    Args:
        config: Validated run configuration
        translate_fn: Override for the LLM translation call (used by tests)

    Returns:
        The literal -> record map written to the data module
    """
    if translate_fn is None:
        if config.llm_config is None:
            raise ValueError("An LLM configuration is required to translate literals")
        client = LLMClient(config.llm_config)
        translate_fn = functools.partial(
            translate_literal_with_llm,
            style_directive=config.style_directive,
            llm_config=config.llm_config,
            client=client,
        )

    os.makedirs(config.output_dir, exist_ok=True)
    literals = load_literals(config.source_root)

    with open_cache(config.cache_path) as cache:
        source_map = build_source_map(
            literals, cache, translate_fn, max_workers=config.max_workers
        )

    emit_modules(config.output_dir, source_map, config.languages)
    logger.info(f"Auto i18n sentences: {len(source_map)}")

    if config.format_output:
        run_formatter(config.output_dir)

    return source_map


# ------------------------------------------------------------------------------
# Main Entry Point
# ------------------------------------------------------------------------------


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Source Auto-i18n")
    parser.add_argument(
        "-o",
        "--outdir",
        default=DEFAULT_OUTPUT_DIR,
        help=f"Output directory for the generated modules and cache (default: {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "-l",
        "--lang",
        default=DEFAULT_LANGUAGE_CODES,
        help=f"Comma separated language codes for the runtime (default: {DEFAULT_LANGUAGE_CODES})",
    )
    parser.add_argument(
        "-p",
        "--prompt",
        default="",
        help=f"Extra style instruction for the translator (default: ${STYLE_DIRECTIVE_ENV})",
    )
    parser.add_argument(
        "-s",
        "--source",
        default=DEFAULT_SOURCE_ROOT,
        help="Directory to scan for i18n marker calls (default: current directory)",
    )
    parser.add_argument(
        "-t",
        "--log-trace",
        action="store_true",
        help="Log detailed trace information",
    )
    parser.add_argument(
        "--no-format",
        dest="format_output",
        action="store_false",
        help="Don't run prettier on the output directory",
    )

    # LLM Provider arguments
    parser.add_argument(
        "--llm-provider",
        choices=["openai", "openrouter"],
        default="openai",
        help="LLM provider to use (default: openai)",
    )
    parser.add_argument(
        "--model",
        default=DEFAULT_MODEL,
        help=f"Model to use for translation (default: {DEFAULT_MODEL})",
    )
    parser.add_argument(
        "--openrouter-site-url",
        default=None,
        help="Your site URL for OpenRouter rankings",
    )
    parser.add_argument(
        "--openrouter-site-name",
        default=None,
        help="Your site name for OpenRouter rankings",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point.

    Validates the credential, output directory and language codes before
    touching the filesystem, then runs the pipeline.
    """
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.log_trace)

    api_key = resolve_api_key(args.llm_provider)
    if not api_key:
        env_vars = " or ".join(API_KEY_ENV_VARS[args.llm_provider])
        logger.error(f"API key not found! Set {env_vars} in the environment.")
        sys.exit(1)

    try:
        llm_config = LLMConfig(
            provider=LLMProvider(args.llm_provider),
            api_key=api_key,
            model=args.model,
            site_url=args.openrouter_site_url,
            site_name=args.openrouter_site_name,
        )
        config = I18nConfig(
            output_dir=args.outdir,
            languages=parse_language_codes(args.lang),
            style_directive=args.prompt or os.environ.get(STYLE_DIRECTIVE_ENV, ""),
            source_root=args.source,
            llm_config=llm_config,
            format_output=args.format_output,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    # Don't log the llm config because it carries the API key
    logger.info(
        f"Output Dir: {config.output_dir}, Source: {config.source_root}, "
        f"LLM Provider: {llm_config.provider.value}, Model: {llm_config.model}, "
        f"Style Directive: {config.style_directive!r}"
    )
    logger.info(
        "will auto translate langs code to: "
        + ", ".join(f"{code} ({get_language_name(code)})" for code in config.languages)
    )

    run_pipeline(config)


if __name__ == "__main__":
    main()
