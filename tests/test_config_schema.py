"""Tests for schema and semantic configuration validation."""

from __future__ import annotations

from upgradarr.validation import validate_config_data


def _codes(issues) -> set[str]:
    return {issue.code for issue in issues}


class TestValidateConfigData:
    def test_valid_config(self) -> None:
        data = {
            "settings": {
                "providers": {"tmdb_api_key": "key"},
                "library": {"radarr_url": "http://radarr:7878", "radarr_api_key": "abc"},
            },
            "feeds": [{"name": "movies", "url": "https://example.com/rss"}],
        }

        report = validate_config_data(data)

        assert report.is_valid
        assert report.warnings == []

    def test_schema_errors_have_dotted_paths(self) -> None:
        data = {"settings": {"log_buffer_size": "big"}, "feeds": [{"url": "https://example.com"}]}

        report = validate_config_data(data)

        paths = {issue.path for issue in report.errors}
        assert "settings.log_buffer_size" in paths
        assert "feeds[0]" in paths
        assert all(issue.fix_suggestion for issue in report.errors if issue.code == "schema")

    def test_duplicate_feed_names(self) -> None:
        data = {
            "feeds": [
                {"name": "a", "url": "https://example.com/1"},
                {"name": "a", "url": "https://example.com/2"},
            ]
        }

        report = validate_config_data(data)

        duplicate = [issue for issue in report.errors if issue.code == "duplicate-feed"]
        assert len(duplicate) == 1
        assert duplicate[0].path == "feeds[1].name"

    def test_invalid_urls(self) -> None:
        data = {
            "settings": {"library": {"sonarr_url": "sonarr:8989", "sonarr_api_key": "x"}},
            "feeds": [{"name": "a", "url": "example.com/rss"}],
        }

        report = validate_config_data(data)

        assert {"feed-url", "library-url"} <= _codes(report.errors)

    def test_unknown_and_duplicate_resolutions(self) -> None:
        data = {
            "settings": {
                "quality": {
                    "resolutions": [
                        {"resolution": "8k"},
                        {"resolution": "1080p"},
                        {"resolution": "1080P"},
                    ]
                }
            }
        }

        report = validate_config_data(data)

        assert {"unknown-resolution", "duplicate-resolution"} <= _codes(report.errors)

    def test_warnings_do_not_invalidate(self) -> None:
        data = {
            "settings": {"library": {"radarr_url": "http://radarr:7878"}},
            "feeds": [{"name": "a", "url": "https://example.com", "enabled": False}],
        }

        report = validate_config_data(data)

        assert report.is_valid
        assert {"library-incomplete", "provider-missing", "no-feeds"} <= _codes(report.warnings)

    def test_non_mapping_document(self) -> None:
        report = validate_config_data(["not", "a", "mapping"])  # type: ignore[arg-type]

        assert not report.is_valid
