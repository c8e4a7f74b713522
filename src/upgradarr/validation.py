from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from jsonschema import Draft7Validator

from .config import FEED_KINDS
from .parsers.release_title import RESOLUTIONS
from .utils import validate_url


@dataclass(slots=True)
class ValidationIssue:
    """Represents a single validation problem."""

    severity: str
    path: str
    message: str
    code: str
    fix_suggestion: Optional[str] = None


@dataclass(slots=True)
class ValidationReport:
    """Aggregates validation warnings and errors."""

    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


_NUMBER = {"type": ["number", "integer"]}
_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_WEIGHT_TABLE = {"type": "object", "additionalProperties": _NUMBER}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "settings": {
            "type": "object",
            "properties": {
                "database_path": {"type": "string"},
                "log_buffer_size": {"type": "integer", "minimum": 1},
                "log_retention_days": {"type": "integer", "minimum": 0},
                "providers": {
                    "type": "object",
                    "properties": {
                        "tmdb_api_key": {"type": ["string", "null"]},
                        "omdb_api_key": {"type": ["string", "null"]},
                        "tvdb_api_key": {"type": ["string", "null"]},
                        "tvdb_user_pin": {"type": ["string", "null"]},
                        "brave_api_key": {"type": ["string", "null"]},
                        "language": {"type": "string"},
                        "timeout": {"type": ["number", "integer"], "exclusiveMinimum": 0},
                        "web_search_enabled": {"type": "boolean"},
                    },
                    "additionalProperties": True,
                },
                "library": {
                    "type": "object",
                    "properties": {
                        "radarr_url": {"type": ["string", "null"]},
                        "radarr_api_key": {"type": ["string", "null"]},
                        "sonarr_url": {"type": ["string", "null"]},
                        "sonarr_api_key": {"type": ["string", "null"]},
                        "timeout": {"type": ["number", "integer"], "exclusiveMinimum": 0},
                    },
                    "additionalProperties": True,
                },
                "quality": {
                    "type": "object",
                    "properties": {
                        "resolutions": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "resolution": {"type": "string"},
                                    "allowed": {"type": "boolean"},
                                    "preferred_codecs": _STRING_LIST,
                                    "discouraged_codecs": _STRING_LIST,
                                },
                                "required": ["resolution"],
                                "additionalProperties": True,
                            },
                        },
                        "resolution_weights": _WEIGHT_TABLE,
                        "source_tag_weights": _WEIGHT_TABLE,
                        "codec_weights": _WEIGHT_TABLE,
                        "audio_weights": _WEIGHT_TABLE,
                        "preferred_audio_languages": _STRING_LIST,
                        "dubbed_penalty": _NUMBER,
                        "preferred_language_bonus": _NUMBER,
                        "size_bonus_enabled": {"type": "boolean"},
                        "min_size_increase_percent_for_upgrade": _NUMBER,
                        "upgrade_threshold": _NUMBER,
                    },
                    "additionalProperties": True,
                },
            },
            "additionalProperties": True,
        },
        "feeds": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "url": {"type": "string"},
                    "kind": {"type": "string", "enum": list(FEED_KINDS)},
                    "enabled": {"type": "boolean"},
                    "source_site": {"type": "string"},
                    "strip_year_from_show_name": {"type": "boolean"},
                },
                "required": ["name", "url"],
                "additionalProperties": True,
            },
        },
    },
    "additionalProperties": True,
}


FixSuggestionGenerator = Callable[[str, str], Optional[str]]


def _suggest_schema_fix(path: str, message: str) -> Optional[str]:
    if "is a required property" in message:
        return "Add the required field to your configuration"
    if "is not of type" in message:
        for token, label in (
            ("'string'", "string"),
            ("'object'", "object/mapping"),
            ("'array'", "array/list"),
            ("'boolean'", "boolean"),
            ("'number'", "number"),
            ("'integer'", "number"),
        ):
            if token in message:
                return f"Change this field to a {label} value"
    if "is not one of" in message:
        return "Check the allowed values for this field"
    return "Review the configuration schema requirements for this field"


def _suggest_feed_url_fix(path: str, message: str) -> Optional[str]:
    return "Use an absolute http:// or https:// URL for the feed (e.g. 'https://example.com/rss')"


def _suggest_duplicate_feed_fix(path: str, message: str) -> Optional[str]:
    return "Give every feed a unique 'name'; stored items and statistics are keyed by it"


def _suggest_resolution_fix(path: str, message: str) -> Optional[str]:
    return f"Use one of: {', '.join(RESOLUTIONS)}"


def _suggest_library_url_fix(path: str, message: str) -> Optional[str]:
    return "Use the base URL of the instance including scheme and port (e.g. 'http://radarr:7878')"


FIX_SUGGESTION_REGISTRY: Dict[str, FixSuggestionGenerator] = {
    "schema": _suggest_schema_fix,
    "feed-url": _suggest_feed_url_fix,
    "duplicate-feed": _suggest_duplicate_feed_fix,
    "unknown-resolution": _suggest_resolution_fix,
    "library-url": _suggest_library_url_fix,
}


def _issue(severity: str, path: str, message: str, code: str) -> ValidationIssue:
    generator = FIX_SUGGESTION_REGISTRY.get(code)
    return ValidationIssue(
        severity=severity,
        path=path,
        message=message,
        code=code,
        fix_suggestion=generator(path, message) if generator else None,
    )


def _format_jsonschema_path(path: Sequence[Any]) -> str:
    if not path:
        return "<root>"
    tokens: List[str] = []
    for part in path:
        if isinstance(part, int):
            if tokens:
                tokens[-1] = f"{tokens[-1]}[{part}]"
            else:
                tokens.append(f"[{part}]")
        else:
            tokens.append(str(part))
    return ".".join(tokens)


def validate_config_data(data: Dict[str, Any]) -> ValidationReport:
    """Validate configuration data against schema and semantic rules.

    Args:
        data: The decoded YAML document

    Returns:
        ValidationReport containing any errors or warnings found
    """
    report = ValidationReport()
    if not isinstance(data, dict):
        report.errors.append(_issue("error", "<root>", "Configuration must be a mapping", "schema"))
        return report

    validator = Draft7Validator(CONFIG_SCHEMA)
    for error in sorted(validator.iter_errors(data), key=lambda exc: _format_jsonschema_path(exc.absolute_path)):
        report.errors.append(_issue("error", _format_jsonschema_path(error.absolute_path), error.message, "schema"))

    _validate_semantics(data, report)
    return report


def _validate_semantics(data: Dict[str, Any], report: ValidationReport) -> None:
    settings = data.get("settings") or {}
    if not isinstance(settings, dict):
        return

    library = settings.get("library") or {}
    if isinstance(library, dict):
        for app in ("radarr", "sonarr"):
            url = library.get(f"{app}_url")
            key = library.get(f"{app}_api_key")
            if isinstance(url, str) and url.strip() and not validate_url(url.strip()):
                report.errors.append(
                    _issue("error", f"settings.library.{app}_url", f"Invalid URL '{url}'", "library-url")
                )
            if bool(url) != bool(key):
                report.warnings.append(
                    _issue(
                        "warning",
                        f"settings.library.{app}_api_key" if url else f"settings.library.{app}_url",
                        f"{app.title()} needs both a URL and an API key; it will be skipped",
                        "library-incomplete",
                    )
                )

    providers = settings.get("providers") or {}
    if isinstance(providers, dict):
        if not providers.get("tmdb_api_key"):
            report.warnings.append(
                _issue(
                    "warning",
                    "settings.providers.tmdb_api_key",
                    "No TMDB API key configured; releases without a feed TMDB id cannot be resolved by search",
                    "provider-missing",
                )
            )
        if providers.get("tvdb_user_pin") and not providers.get("tvdb_api_key"):
            report.warnings.append(
                _issue(
                    "warning",
                    "settings.providers.tvdb_user_pin",
                    "TVDB user PIN has no effect without a TVDB API key",
                    "provider-missing",
                )
            )

    quality = settings.get("quality") or {}
    resolutions = quality.get("resolutions") if isinstance(quality, dict) else None
    if isinstance(resolutions, list):
        known = {label.lower() for label in RESOLUTIONS}
        seen: Dict[str, int] = {}
        for index, rule in enumerate(resolutions):
            if not isinstance(rule, dict) or not isinstance(rule.get("resolution"), str):
                continue
            label = rule["resolution"].strip().lower()
            path = f"settings.quality.resolutions[{index}].resolution"
            if label not in known:
                report.errors.append(
                    _issue("error", path, f"Unknown resolution '{rule['resolution']}'", "unknown-resolution")
                )
            elif label in seen:
                report.errors.append(
                    _issue(
                        "error",
                        path,
                        f"Resolution '{rule['resolution']}' already configured at index {seen[label]}",
                        "duplicate-resolution",
                    )
                )
            else:
                seen[label] = index

    feeds = data.get("feeds") or []
    if not isinstance(feeds, list):
        return
    seen_names: Dict[str, int] = {}
    for index, feed in enumerate(feeds):
        if not isinstance(feed, dict):
            continue
        name = feed.get("name")
        url = feed.get("url")
        if isinstance(url, str) and not validate_url(url.strip()):
            report.errors.append(_issue("error", f"feeds[{index}].url", f"Invalid feed URL '{url}'", "feed-url"))
        if isinstance(name, str):
            if name in seen_names:
                report.errors.append(
                    _issue(
                        "error",
                        f"feeds[{index}].name",
                        f"Duplicate feed name '{name}' also defined at index {seen_names[name]}",
                        "duplicate-feed",
                    )
                )
            else:
                seen_names[name] = index
    if feeds and not any(isinstance(feed, dict) and feed.get("enabled", True) is not False for feed in feeds):
        report.warnings.append(_issue("warning", "feeds", "All feeds are disabled", "no-feeds"))


__all__ = [
    "CONFIG_SCHEMA",
    "FIX_SUGGESTION_REGISTRY",
    "ValidationIssue",
    "ValidationReport",
    "validate_config_data",
]
