from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .parsers.release_title import RESOLUTIONS
from .utils import clean_str, load_yaml_file, parse_bool, validate_url

FEED_KINDS = ("movie", "tv")


@dataclass
class ResolutionRule:
    resolution: str
    allowed: bool = True
    preferred_codecs: list[str] = field(default_factory=list)
    discouraged_codecs: list[str] = field(default_factory=list)


def _default_resolution_rules() -> list[ResolutionRule]:
    return [
        ResolutionRule("2160p", allowed=False, preferred_codecs=["x265", "HEVC"], discouraged_codecs=["x264"]),
        ResolutionRule("1080p", allowed=True, preferred_codecs=["x264"], discouraged_codecs=["x265", "HEVC"]),
        ResolutionRule("720p", allowed=True, preferred_codecs=["x264"]),
        ResolutionRule("480p", allowed=True),
        ResolutionRule("UNKNOWN", allowed=True),
    ]


@dataclass
class QualitySettings:
    """Scoring weights, admission rules and upgrade thresholds.

    Attributes:
        resolutions: Per-resolution admission flag and advisory codec lists
        resolution_weights: Resolution label -> weight ("UNKNOWN" is the fallback)
        source_tag_weights: Source tag -> weight ("OTHER" is the fallback)
        codec_weights: Codec -> weight ("UNKNOWN" is the fallback)
        audio_weights: Audio label -> weight ("Unknown" is the fallback)
        preferred_audio_languages: ISO-639-1 codes earning the language bonus
        dubbed_penalty: Added to the score of dubbed releases (usually negative)
        preferred_language_bonus: Added when a preferred language is present
        size_bonus_enabled: Operators' switch for size-aware comparisons
        min_size_increase_percent_for_upgrade: Minimum size growth for an upgrade
        upgrade_threshold: Minimum score delta for an upgrade
    """

    resolutions: list[ResolutionRule] = field(default_factory=_default_resolution_rules)
    resolution_weights: dict[str, float] = field(
        default_factory=lambda: {
            "2160p": 100,
            "1080p": 80,
            "720p": 50,
            "480p": 20,
            "UNKNOWN": 10,
        }
    )
    source_tag_weights: dict[str, float] = field(
        default_factory=lambda: {
            "AMZN": 90,
            "NF": 90,
            "JC": 85,
            "ZEE5": 80,
            "DSNP": 85,
            "HS": 75,
            "SS": 85,
            "OTHER": 50,
        }
    )
    codec_weights: dict[str, float] = field(
        default_factory=lambda: {
            "x265": 70,
            "HEVC": 70,
            "x264": 80,
            "AVC": 80,
            "UNKNOWN": 30,
        }
    )
    audio_weights: dict[str, float] = field(
        default_factory=lambda: {
            "Atmos": 100,
            "TrueHD": 90,
            "DDP5.1": 85,
            "DD5.1": 70,
            "2.0": 40,
        }
    )
    preferred_audio_languages: list[str] = field(default_factory=lambda: ["hi", "en"])
    dubbed_penalty: float = -20
    preferred_language_bonus: float = 15
    size_bonus_enabled: bool = True
    min_size_increase_percent_for_upgrade: float = 10
    upgrade_threshold: float = 20

    def rule_for(self, resolution: str) -> ResolutionRule | None:
        for rule in self.resolutions:
            if rule.resolution.lower() == resolution.lower():
                return rule
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolutions": [
                {
                    "resolution": rule.resolution,
                    "allowed": rule.allowed,
                    "preferred_codecs": list(rule.preferred_codecs),
                    "discouraged_codecs": list(rule.discouraged_codecs),
                }
                for rule in self.resolutions
            ],
            "resolution_weights": dict(self.resolution_weights),
            "source_tag_weights": dict(self.source_tag_weights),
            "codec_weights": dict(self.codec_weights),
            "audio_weights": dict(self.audio_weights),
            "preferred_audio_languages": list(self.preferred_audio_languages),
            "dubbed_penalty": self.dubbed_penalty,
            "preferred_language_bonus": self.preferred_language_bonus,
            "size_bonus_enabled": self.size_bonus_enabled,
            "min_size_increase_percent_for_upgrade": self.min_size_increase_percent_for_upgrade,
            "upgrade_threshold": self.upgrade_threshold,
        }


@dataclass
class ProviderSettings:
    tmdb_api_key: str | None = None
    omdb_api_key: str | None = None
    tvdb_api_key: str | None = None
    tvdb_user_pin: str | None = None
    brave_api_key: str | None = None
    language: str = "en-US"
    timeout: float = 15.0
    web_search_enabled: bool = True


@dataclass
class LibrarySettings:
    radarr_url: str | None = None
    radarr_api_key: str | None = None
    sonarr_url: str | None = None
    sonarr_api_key: str | None = None
    timeout: float = 30.0

    @property
    def radarr_enabled(self) -> bool:
        return bool(self.radarr_url and self.radarr_api_key)

    @property
    def sonarr_enabled(self) -> bool:
        return bool(self.sonarr_url and self.sonarr_api_key)


@dataclass
class FeedConfig:
    name: str
    url: str
    kind: str = "movie"  # movie | tv
    enabled: bool = True
    source_site: str | None = None
    strip_year_from_show_name: bool = False

    @property
    def site(self) -> str:
        return self.source_site or urlparse(self.url).netloc or self.name


@dataclass
class Settings:
    database_path: Path = field(default_factory=lambda: Path("/data/upgradarr.db"))
    log_buffer_size: int = 1000
    log_retention_days: int = 14
    providers: ProviderSettings = field(default_factory=ProviderSettings)
    library: LibrarySettings = field(default_factory=LibrarySettings)
    quality: QualitySettings = field(default_factory=QualitySettings)


@dataclass
class AppConfig:
    settings: Settings
    feeds: list[FeedConfig] = field(default_factory=list)


# camelCase keys written by the settings UI map onto the dataclass fields
_QUALITY_KEY_ALIASES = {
    "resolutionWeights": "resolution_weights",
    "sourceTagWeights": "source_tag_weights",
    "codecWeights": "codec_weights",
    "audioWeights": "audio_weights",
    "preferredAudioLanguages": "preferred_audio_languages",
    "dubbedPenalty": "dubbed_penalty",
    "preferredLanguageBonus": "preferred_language_bonus",
    "sizeBonusEnabled": "size_bonus_enabled",
    "minSizeIncreasePercentForUpgrade": "min_size_increase_percent_for_upgrade",
    "upgradeThreshold": "upgrade_threshold",
    "preferredCodecs": "preferred_codecs",
    "discouragedCodecs": "discouraged_codecs",
}


def _canonical_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {_QUALITY_KEY_ALIASES.get(str(key), str(key)): value for key, value in data.items()}


def _parse_number(value: Any, *, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be a number") from exc


def _parse_int(value: Any, *, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be an integer") from exc


def _ensure_string_list(value: Any, *, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{field_name}' must be provided as a list of strings")
    result: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise ValueError(f"'{field_name}[{index}]' must be a string")
        if item.strip():
            result.append(item.strip())
    return result


def _build_weight_table(value: Any, *, field_name: str, default: dict[str, float]) -> dict[str, float]:
    if value is None:
        return dict(default)
    if not isinstance(value, Mapping):
        raise ValueError(f"'{field_name}' must be a mapping")
    table: dict[str, float] = {}
    for key, weight in value.items():
        table[str(key)] = _parse_number(weight, field_name=f"{field_name}.{key}")
    return table or dict(default)


def _build_resolution_rules(value: Any, *, field_name: str) -> list[ResolutionRule]:
    if value is None:
        return _default_resolution_rules()
    if not isinstance(value, list):
        raise ValueError(f"'{field_name}' must be provided as a list")

    known = {label.lower(): label for label in RESOLUTIONS}
    rules: list[ResolutionRule] = []
    seen: set[str] = set()
    for index, entry in enumerate(value):
        prefix = f"{field_name}[{index}]"
        if not isinstance(entry, Mapping):
            raise ValueError(f"'{prefix}' must be a mapping")
        entry = _canonical_keys(entry)
        raw = clean_str(entry.get("resolution"))
        if raw is None:
            raise ValueError(f"'{prefix}.resolution' is required")
        resolution = known.get(raw.lower())
        if resolution is None:
            raise ValueError(f"'{prefix}.resolution' must be one of {', '.join(RESOLUTIONS)}, got '{raw}'")
        if resolution in seen:
            raise ValueError(f"'{prefix}.resolution' duplicates '{resolution}'")
        seen.add(resolution)
        rules.append(
            ResolutionRule(
                resolution=resolution,
                allowed=parse_bool(entry.get("allowed"), default=True),
                preferred_codecs=_ensure_string_list(
                    entry.get("preferred_codecs"), field_name=f"{prefix}.preferred_codecs"
                ),
                discouraged_codecs=_ensure_string_list(
                    entry.get("discouraged_codecs"), field_name=f"{prefix}.discouraged_codecs"
                ),
            )
        )
    return rules


def build_quality_settings(data: Any, field_prefix: str = "settings.quality") -> QualitySettings:
    """Build quality settings from YAML data or a decoded settings-store value.

    Both snake_case and camelCase keys are accepted. Missing keys keep their
    defaults.

    Raises:
        ValueError: When a value has the wrong type; the message names the field.
    """
    if not data:
        return QualitySettings()
    if not isinstance(data, Mapping):
        raise ValueError(f"'{field_prefix}' must be provided as a mapping when specified")

    data = _canonical_keys(data)
    defaults = QualitySettings()

    def number(key: str) -> float:
        if data.get(key) is None:
            return getattr(defaults, key)
        return _parse_number(data[key], field_name=f"{field_prefix}.{key}")

    languages_raw = data.get("preferred_audio_languages")
    languages = (
        [code.lower() for code in _ensure_string_list(languages_raw, field_name=f"{field_prefix}.preferred_audio_languages")]
        if languages_raw is not None
        else list(defaults.preferred_audio_languages)
    )

    return QualitySettings(
        resolutions=_build_resolution_rules(data.get("resolutions"), field_name=f"{field_prefix}.resolutions"),
        resolution_weights=_build_weight_table(
            data.get("resolution_weights"),
            field_name=f"{field_prefix}.resolution_weights",
            default=defaults.resolution_weights,
        ),
        source_tag_weights=_build_weight_table(
            data.get("source_tag_weights"),
            field_name=f"{field_prefix}.source_tag_weights",
            default=defaults.source_tag_weights,
        ),
        codec_weights=_build_weight_table(
            data.get("codec_weights"),
            field_name=f"{field_prefix}.codec_weights",
            default=defaults.codec_weights,
        ),
        audio_weights=_build_weight_table(
            data.get("audio_weights"),
            field_name=f"{field_prefix}.audio_weights",
            default=defaults.audio_weights,
        ),
        preferred_audio_languages=languages,
        dubbed_penalty=number("dubbed_penalty"),
        preferred_language_bonus=number("preferred_language_bonus"),
        size_bonus_enabled=parse_bool(data.get("size_bonus_enabled"), default=defaults.size_bonus_enabled),
        min_size_increase_percent_for_upgrade=number("min_size_increase_percent_for_upgrade"),
        upgrade_threshold=number("upgrade_threshold"),
    )


def _build_provider_settings(data: Any) -> ProviderSettings:
    if not data:
        return ProviderSettings()
    if not isinstance(data, Mapping):
        raise ValueError("'settings.providers' must be provided as a mapping when specified")

    timeout = _parse_number(data.get("timeout", 15.0), field_name="settings.providers.timeout")
    if timeout <= 0:
        raise ValueError("'settings.providers.timeout' must be greater than 0")

    return ProviderSettings(
        tmdb_api_key=clean_str(data.get("tmdb_api_key")),
        omdb_api_key=clean_str(data.get("omdb_api_key")),
        tvdb_api_key=clean_str(data.get("tvdb_api_key")),
        tvdb_user_pin=clean_str(data.get("tvdb_user_pin")),
        brave_api_key=clean_str(data.get("brave_api_key")),
        language=clean_str(data.get("language")) or "en-US",
        timeout=timeout,
        web_search_enabled=parse_bool(data.get("web_search_enabled"), default=True),
    )


def _build_library_settings(data: Any) -> LibrarySettings:
    if not data:
        return LibrarySettings()
    if not isinstance(data, Mapping):
        raise ValueError("'settings.library' must be provided as a mapping when specified")

    radarr_url = clean_str(data.get("radarr_url"))
    sonarr_url = clean_str(data.get("sonarr_url"))
    if radarr_url and not validate_url(radarr_url):
        raise ValueError(f"'settings.library.radarr_url' must be a valid http/https URL, got: {radarr_url}")
    if sonarr_url and not validate_url(sonarr_url):
        raise ValueError(f"'settings.library.sonarr_url' must be a valid http/https URL, got: {sonarr_url}")

    return LibrarySettings(
        radarr_url=radarr_url,
        radarr_api_key=clean_str(data.get("radarr_api_key")),
        sonarr_url=sonarr_url,
        sonarr_api_key=clean_str(data.get("sonarr_api_key")),
        timeout=_parse_number(data.get("timeout", 30.0), field_name="settings.library.timeout"),
    )


def _build_feed_config(data: Any, index: int) -> FeedConfig:
    prefix = f"feeds[{index}]"
    if not isinstance(data, Mapping):
        raise ValueError(f"'{prefix}' must be a mapping")
    name = clean_str(data.get("name"))
    url = clean_str(data.get("url"))
    if not name:
        raise ValueError(f"'{prefix}.name' is required")
    if not url or not validate_url(url):
        raise ValueError(f"Feed '{name}' must declare a valid http/https 'url'")
    kind = str(data.get("kind", "movie")).strip().lower()
    if kind not in FEED_KINDS:
        raise ValueError(f"Feed '{name}' kind must be one of {', '.join(FEED_KINDS)}, got '{kind}'")
    return FeedConfig(
        name=name,
        url=url,
        kind=kind,
        enabled=parse_bool(data.get("enabled"), default=True),
        source_site=clean_str(data.get("source_site")),
        strip_year_from_show_name=parse_bool(data.get("strip_year_from_show_name"), default=False),
    )


def _build_settings(data: Any) -> Settings:
    if not data:
        return Settings()
    if not isinstance(data, Mapping):
        raise ValueError("'settings' must be provided as a mapping")

    log_buffer_size = _parse_int(data.get("log_buffer_size", 1000), field_name="settings.log_buffer_size")
    if log_buffer_size <= 0:
        raise ValueError("'settings.log_buffer_size' must be greater than 0")
    retention = _parse_int(data.get("log_retention_days", 14), field_name="settings.log_retention_days")
    if retention < 0:
        raise ValueError("'settings.log_retention_days' must be greater than or equal to 0")

    return Settings(
        database_path=Path(data.get("database_path", "/data/upgradarr.db")).expanduser(),
        log_buffer_size=log_buffer_size,
        log_retention_days=retention,
        providers=_build_provider_settings(data.get("providers")),
        library=_build_library_settings(data.get("library")),
        quality=build_quality_settings(data.get("quality")),
    )


def build_app_config(data: Mapping[str, Any]) -> AppConfig:
    settings = _build_settings(data.get("settings"))

    feeds_raw = data.get("feeds", []) or []
    if not isinstance(feeds_raw, list):
        raise ValueError("'feeds' must be provided as a list")
    feeds: list[FeedConfig] = []
    names: set[str] = set()
    for index, entry in enumerate(feeds_raw):
        feed = _build_feed_config(entry, index)
        if feed.name in names:
            raise ValueError(f"Duplicate feed name '{feed.name}'")
        names.add(feed.name)
        feeds.append(feed)
    return AppConfig(settings=settings, feeds=feeds)


def load_config(path: Path) -> AppConfig:
    return build_app_config(load_yaml_file(path))


_PROVIDER_KEYS = ("tmdb_api_key", "omdb_api_key", "tvdb_api_key", "tvdb_user_pin", "brave_api_key")
_LIBRARY_KEYS = {
    "radarr_api_url": "radarr_url",
    "radarr_api_key": "radarr_api_key",
    "sonarr_api_url": "sonarr_url",
    "sonarr_api_key": "sonarr_api_key",
}
SETTINGS_STORE_KEYS = frozenset({*_PROVIDER_KEYS, *_LIBRARY_KEYS, "quality_settings", "qualitySettings"})


def apply_settings_mapping(settings: Settings, mapping: Mapping[str, Any]) -> Settings:
    """Overlay a flat key -> value settings mapping onto ``settings``.

    Blank values leave the file configuration untouched. The quality settings
    value may be a JSON string or an already decoded mapping.

    Returns:
        A new Settings instance; the input is not modified.
    """
    provider_updates = {key: clean_str(mapping.get(key)) for key in _PROVIDER_KEYS if clean_str(mapping.get(key))}
    library_updates = {
        target: clean_str(mapping.get(source)) for source, target in _LIBRARY_KEYS.items() if clean_str(mapping.get(source))
    }
    for key in ("radarr_url", "sonarr_url"):
        url = library_updates.get(key)
        if url and not validate_url(url):
            raise ValueError(f"'{key}' must be a valid http/https URL, got: {url}")

    quality = settings.quality
    raw_quality = mapping.get("quality_settings", mapping.get("qualitySettings"))
    if isinstance(raw_quality, str) and raw_quality.strip():
        try:
            raw_quality = json.loads(raw_quality)
        except json.JSONDecodeError as exc:
            raise ValueError("'quality_settings' must be valid JSON") from exc
    if raw_quality:
        quality = build_quality_settings(raw_quality, field_prefix="quality_settings")

    return replace(
        settings,
        providers=replace(settings.providers, **provider_updates),
        library=replace(settings.library, **library_updates),
        quality=quality,
    )
