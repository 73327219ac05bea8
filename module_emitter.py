#!/usr/bin/env python3
"""
Generated module emitter

Writes the two TypeScript modules consumed by the host application:

  - i18n-source.ts: the literal -> {language: translation} map as a static
    object literal
  - index.ts: the runtime (locale detection, lookup functions, language
    setter and placeholder replacement)

and then runs the source formatter over the output directory.
"""
import json
import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Tuple

from language_utils import get_native_language_name

logger = logging.getLogger(__name__)

SOURCE_MODULE_FILENAME = "i18n-source.ts"
INDEX_MODULE_FILENAME = "index.ts"
DEFAULT_LANGUAGE = "en"
FORMATTER_COMMAND = ["npx", "prettier"]

# Runtime part of index.ts. Everything that depends on the run (configured
# languages, id table) is generated in front of it by build_index_module().
INDEX_RUNTIME_TEMPLATE = r"""
type I18nMap = Record<string, Record<string, string>>;
type TemplateInput = TemplateStringsArray | string;

const source = i18nSource as I18nMap;

export const defaultLanguage = "__DEFAULT_LANGUAGE__";

/**
 * Where locale information comes from and where the user's choice is stored.
 * Pass a custom context to createI18n() to resolve languages outside a browser
 * or to exercise several locales side by side.
 */
export interface LocaleContext {
	getStoredLanguage(): string | null;
	getEnvironmentLocale(): string | null;
	persistLanguage(lng: string): void;
	reload(): void;
}

const isBrowser = () => typeof window !== "undefined";

export const browserLocaleContext: LocaleContext = {
	getStoredLanguage: () => (isBrowser() ? localStorage.getItem("lang") : null),
	getEnvironmentLocale: () => (isBrowser() ? navigator.language : null),
	persistLanguage: (lng: string) => {
		if (isBrowser()) {
			localStorage.setItem("lang", lng);
		}
	},
	reload: () => {
		if (isBrowser()) {
			location.reload();
		}
	},
};

export function detectLanguage(
	context: LocaleContext = browserLocaleContext,
): string {
	let lng = context.getStoredLanguage();
	if (!lng) {
		const locale = context.getEnvironmentLocale();
		if (!locale) {
			return defaultLanguage;
		}
		lng = locale.slice(0, 2).toLowerCase();
	}
	return langs[lng] || defaultLanguage;
}

function template(strings: TemplateInput, values: (string | number)[]): string {
	if (typeof strings === "string") {
		return strings;
	}
	let result = "";
	for (let i = 0; i < strings.length; i++) {
		result += strings[i];
		if (i < values.length) {
			result += values[i];
		}
	}
	return result;
}

export function i18nKey(text: string): string {
	return text;
}

export function i18nObj(
	strings: TemplateInput,
	...values: (string | number)[]
): Record<string, string> {
	const result = template(strings, values);
	return source[result] || nofound;
}

export function i18nId(
	strings: TemplateInput,
	...values: (string | number)[]
): number {
	const result = template(strings, values);
	return i18nSourceIdMap[result] || 0;
}

export function createI18n(context: LocaleContext = browserLocaleContext) {
	let lastLang = "";

	const getLanguage = (): string => {
		if (!lastLang) {
			lastLang = detectLanguage(context);
		}
		return lastLang;
	};

	const setLanguage = (lng: string): void => {
		lastLang = lng;
		context.persistLanguage(lng);
		context.reload();
	};

	const i18n = (
		strings: TemplateInput,
		...values: (string | number)[]
	): string => {
		const result = template(strings, values);
		const entry = source[result];
		if (!entry) {
			return result;
		}
		return entry[getLanguage()];
	};

	const i18nFromKey = (key: string): string => {
		const entry = source[key];
		if (!entry) {
			return key;
		}
		return entry[getLanguage()];
	};

	return { getLanguage, setLanguage, i18n, i18nFromKey };
}

export const { getLanguage, setLanguage, i18n, i18nFromKey } = createI18n();

export function replaceI18n(str: string, obj: Record<string, unknown>) {
	if (str === void 0) {
		return "[replace-i18n string is undefined]";
	}
	if (typeof obj !== "object") {
		return "[replace-i18n data is not object]";
	}
	return str.replace(/{(\w*)}/g, (_, p1 = "") => {
		return Object.prototype.hasOwnProperty.call(obj, p1)
			? (obj[p1] as string)
			: `[Not found: ${p1}]`;
	});
}
"""


def assign_literal_ids(source_map: Dict[str, Dict[str, str]]) -> Dict[str, int]:
    """Give each literal its zero-based position in the source map's key order."""
    return {key: index for index, key in enumerate(source_map)}


def _ts_object(entries: List[Tuple[str, str]]) -> str:
    """Render (key, value-expression) pairs as a tab indented object literal."""
    if not entries:
        return "{}"
    body = "\n".join(f"\t{json.dumps(k, ensure_ascii=False)}: {v}," for k, v in entries)
    return "{\n" + body + "\n}"


def build_source_module(source_map: Dict[str, Dict[str, str]]) -> str:
    """Render the data module. Identical maps always render identical text."""
    payload = json.dumps(source_map, ensure_ascii=False, indent="\t")
    return f"export const i18nSource = {payload};\n"


def build_index_module(
    source_map: Dict[str, Dict[str, str]], languages: List[str]
) -> str:
    """
    Render the runtime module for the configured languages.

    Args:
        source_map: Literal -> translation record, in emission order
        languages: Language codes the runtime may resolve to

    Returns:
        The TypeScript source of index.ts
    """
    langs_code = "const langs: Record<string, string> = " + _ts_object(
        [(code, json.dumps(code)) for code in languages]
    ) + ";"

    language_list_code = (
        "export const languageList = [\n"
        + "\n".join(
            f"\t{{ value: {json.dumps(code)}, label: "
            f"{json.dumps(get_native_language_name(code), ensure_ascii=False)} }},"
            for code in languages
        )
        + "\n];"
    )

    nofound_code = "const nofound: Record<string, string> = " + _ts_object(
        [(code, '" "') for code in languages]
    ) + ";"

    literal_ids = assign_literal_ids(source_map)
    id_map_code = "export const i18nSourceIdMap: Record<string, number> = " + _ts_object(
        [(key, str(index)) for key, index in literal_ids.items()]
    ) + ";"

    # Written out in id order; Object.keys() would move integer-like keys first
    id_list_code = "export const i18nSourceIdList: Record<string, string>[] = " + (
        "[\n"
        + "\n".join(
            f"\ti18nSource[{json.dumps(key, ensure_ascii=False)}],"
            for key in literal_ids
        )
        + "\n];"
        if literal_ids
        else "[];"
    )

    header = "\n\n".join(
        [
            'import { i18nSource } from "./i18n-source";',
            langs_code,
            language_list_code,
            nofound_code,
            id_map_code,
            id_list_code,
        ]
    )
    runtime = INDEX_RUNTIME_TEMPLATE.replace("__DEFAULT_LANGUAGE__", DEFAULT_LANGUAGE)
    return header + "\n" + runtime


def emit_modules(
    output_dir: str,
    source_map: Dict[str, Dict[str, str]],
    languages: List[str],
) -> Tuple[Path, Path]:
    """
    Write i18n-source.ts and index.ts into output_dir.

    Both files are fully regenerated from source_map; nothing from a previous
    run is merged.

    Args:
        output_dir: Target directory (created if missing)
        source_map: Literal -> translation record for this run
        languages: Configured language codes for the runtime module

    Returns:
        Paths of the data module and the index module

    Raises:
        Exception: If a file can't be written
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    source_path = out / SOURCE_MODULE_FILENAME
    index_path = out / INDEX_MODULE_FILENAME

    try:
        source_path.write_text(build_source_module(source_map), encoding="utf-8")
        index_path.write_text(
            build_index_module(source_map, languages), encoding="utf-8"
        )
    except Exception as e:
        logger.error(f"Error writing generated modules to {out}: {e}")
        raise

    logger.debug(f"Wrote {source_path} and {index_path}")
    return source_path, index_path


def run_formatter(output_dir: str) -> None:
    """
    Run prettier over the output directory, best effort.

    A missing executable or a failing run is only logged; the generated files
    are valid either way.
    """
    command = FORMATTER_COMMAND + [str(output_dir), "--write"]
    try:
        result = subprocess.run(command, check=False, capture_output=True, text=True)
    except OSError as e:
        logger.debug(f"Formatter {' '.join(command)} could not be started: {e}")
        return
    if result.returncode != 0:
        logger.debug(
            f"Formatter exited with status {result.returncode}: {result.stderr.strip()}"
        )
