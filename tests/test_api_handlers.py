"""
Tests for the public data.json and shield.json endpoints and their documents.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from cache.cache import write_cache
from cache.get_dependents import GetDependentsResult
from cache.types import CacheEntry, to_iso
from ecosystems.npm import NpmStrategy
from pipeline.types import ScoredRepo

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def event(platform, name):
    return {
        "pathParameters": {"platform": platform, "name": name},
        "requestContext": {"requestId": "req-123"},
    }


def body(response):
    return json.loads(response["body"])


def scored(name, stars, version=None):
    return ScoredRepo(
        owner="org", name=name, full_name=f"org/{name}", stars=stars,
        last_push="2025-05-01T00:00:00Z", avatar_url=f"https://avatars.example/{name}",
        score=float(stars), version=version,
    )


def recent_entry(**kwargs):
    iso = to_iso(datetime.now(timezone.utc) - timedelta(hours=1))
    return CacheEntry(
        repos=kwargs.pop("repos", [scored("app", 100, "^18.0.0")]),
        fetched_at=iso,
        last_accessed_at=iso,
        **kwargs,
    )


# =============================================================================
# DOCUMENTS
# =============================================================================


class TestFormatBadgeCount:
    @pytest.mark.parametrize("count,expected", [
        (0, "0"),
        (999, "999"),
        (1_000, "1K+"),
        (1_234, "1.2K+"),
        (1_999, "1.9K+"),
        (9_999, "9.9K+"),
        (10_000, "10K+"),
        (123_456, "123K+"),
        (999_999, "999K+"),
        (1_000_000, "1M+"),
        (2_500_000, "2.5M+"),
        (12_000_000, "12M+"),
    ])
    def test_format(self, count, expected):
        from api.documents import format_badge_count

        assert format_badge_count(count) == expected


class TestShieldDocuments:
    def test_success(self):
        from api.documents import build_shield_success

        assert build_shield_success(1_234) == {
            "schemaVersion": 1,
            "label": "used by",
            "message": "1.2K+ projects",
            "color": "brightgreen",
        }

    def test_singular(self):
        from api.documents import build_shield_success

        assert build_shield_success(1)["message"] == "1 project"

    def test_zero_is_grey(self):
        from api.documents import build_shield_success

        assert build_shield_success(0)["color"] == "lightgrey"

    def test_unavailable(self):
        from api.documents import build_shield_unavailable

        assert build_shield_unavailable()["message"] == "unavailable"

    def test_error(self):
        from api.documents import build_shield_error

        doc = build_shield_error()
        assert doc["color"] == "red"
        assert doc["isError"] is True


class TestDataDocument:
    def test_document(self):
        from api.documents import build_data_document

        result = GetDependentsResult(
            repos=[scored("a", 100, "^18.0.0"), scored("b", 50, "^18.0.0"), scored("c", 10)],
            from_cache=True,
            refreshing=False,
            dependent_count=4_000,
        )

        doc = build_data_document(NpmStrategy(), "react", result, NOW)

        assert doc["package"] == "react"
        assert doc["platform"] == "npm"
        assert doc["dependentCount"] == 4_000
        assert doc["fetchedAt"] == "2025-06-01T12:00:00.000Z"
        assert doc["versionDistribution"] == {"^18.0.0": 2}
        assert doc["repos"][0] == {
            "fullName": "org/a",
            "owner": "org",
            "name": "a",
            "stars": 100,
            "lastPush": "2025-05-01T00:00:00Z",
            "avatarUrl": "https://avatars.example/a",
            "score": 100.0,
            "version": "^18.0.0",
        }
        assert "version" not in doc["repos"][2]

    def test_count_falls_back_to_repo_count(self):
        from api.documents import build_data_document

        result = GetDependentsResult(repos=[scored("a", 1)], from_cache=False, refreshing=False)

        assert build_data_document(NpmStrategy(), "react", result, NOW)["dependentCount"] == 1


# =============================================================================
# DATA ENDPOINT
# =============================================================================


class TestDataHandler:
    def test_cache_hit(self, store):
        from api.dependents_data import handler

        write_cache(store, "npm:react", recent_entry(dependent_count=12))

        response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 200
        assert response["headers"]["Cache-Control"] == "public, max-age=86400, s-maxage=86400"
        assert response["headers"]["Access-Control-Allow-Origin"] == "*"
        data = body(response)
        assert data["dependentCount"] == 12
        assert [r["fullName"] for r in data["repos"]] == ["org/app"]

    def test_stale_hit_does_not_wait_for_refresh(self, store, sqs_queue):
        from api.dependents_data import handler

        stale = to_iso(datetime.now(timezone.utc) - timedelta(hours=30))
        write_cache(
            store,
            "npm:react",
            CacheEntry(repos=[scored("app", 100)], fetched_at=stale, last_accessed_at=stale),
        )
        refresh = AsyncMock()

        with patch("cache.get_dependents.refresh_dependents", new=refresh), \
                patch("workers.queue_dispatch.PIPELINE_QUEUE_URL", sqs_queue):
            response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 200
        assert [r["name"] for r in body(response)["repos"]] == ["app"]
        refresh.assert_not_awaited()
        assert store.exists("lock:npm:react") is True

    def test_scoped_name_is_unquoted(self, store):
        from api.dependents_data import handler

        write_cache(store, "npm:@algolia/client-search", recent_entry())

        response = handler(event("npm", "%40algolia%2Fclient-search"), None)

        assert response["statusCode"] == 200
        assert body(response)["package"] == "@algolia/client-search"

    def test_unknown_platform(self, store):
        from api.dependents_data import handler

        response = handler(event("maven", "junit"), None)

        assert response["statusCode"] == 404
        assert body(response)["error"]["code"] == "invalid_platform"

    def test_invalid_name(self, store):
        from api.dependents_data import handler

        response = handler(event("npm", "not a package"), None)

        assert response["statusCode"] == 404
        assert body(response)["error"]["code"] == "package_not_found"

    def test_package_missing_from_registry(self, store):
        from api.dependents_data import handler

        with patch("api.dependents_data.check_package_exists", new=AsyncMock(return_value=False)):
            response = handler(event("npm", "no-such-pkg"), None)

        assert response["statusCode"] == 404
        assert response["headers"]["Cache-Control"] == "no-store"

    def test_cold_miss_runs_inline(self, store):
        from api.dependents_data import handler

        fresh = recent_entry(repos=[scored("fresh", 500)], dependent_count=3)
        with patch("api.dependents_data.check_package_exists", new=AsyncMock(return_value=True)), \
                patch("cache.get_dependents.refresh_dependents", new=AsyncMock(return_value=fresh)):
            response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 200
        assert [r["name"] for r in body(response)["repos"]] == ["fresh"]
        assert store.get("npm:react") is not None

    def test_queued_miss_is_pending(self, store, sqs_queue):
        from api.dependents_data import handler

        with patch("api.dependents_data.check_package_exists", new=AsyncMock(return_value=True)), \
                patch("workers.queue_dispatch.PIPELINE_QUEUE_URL", sqs_queue):
            response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 202
        assert response["headers"]["Cache-Control"] == "no-store"
        assert response["headers"]["Retry-After"] == "30"
        assert body(response) == {"package": "react", "platform": "npm", "status": "pending"}

    def test_pipeline_failure_is_500(self, store):
        from api.dependents_data import handler

        with patch("api.dependents_data.check_package_exists", new=AsyncMock(return_value=True)), \
                patch(
                    "cache.get_dependents.refresh_dependents",
                    new=AsyncMock(side_effect=RuntimeError("ghp_" + "a" * 36)),
                ):
            response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 500
        assert body(response)["error"] == {
            "code": "internal_error",
            "message": "Something went wrong",
        }
        assert "ghp_" not in response["body"]


# =============================================================================
# SHIELD ENDPOINT
# =============================================================================


class TestShieldHandler:
    def test_cached_count(self, store):
        from api.shield import handler

        write_cache(store, "npm:react", recent_entry(dependent_count=2_500_000))

        response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 200
        assert response["headers"]["Cache-Control"] == "public, max-age=86400, s-maxage=86400"
        assert body(response)["message"] == "2.5M+ projects"

    def test_stale_count_served_while_worker_refreshes(self, store, sqs_queue):
        from api.shield import handler

        stale = to_iso(datetime.now(timezone.utc) - timedelta(hours=30))
        write_cache(
            store,
            "npm:react",
            CacheEntry(repos=[], fetched_at=stale, last_accessed_at=stale,
                       partial=True, count_only=True, dependent_count=42),
        )
        refresh = AsyncMock()

        with patch("cache.get_dependents.refresh_count_only", new=refresh), \
                patch("workers.queue_dispatch.PIPELINE_QUEUE_URL", sqs_queue):
            response = handler(event("npm", "react"), None)

        assert body(response)["message"] == "42 projects"
        refresh.assert_not_awaited()

    def test_unknown_count(self, store):
        from api.shield import handler

        with patch(
            "cache.get_dependents.refresh_count_only",
            new=AsyncMock(return_value=recent_entry(repos=[], partial=True, count_only=True)),
        ):
            response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 200
        assert body(response)["message"] == "unavailable"

    def test_failure_renders_error_badge(self, store):
        from api.shield import handler

        with patch(
            "cache.get_dependents.refresh_count_only",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            response = handler(event("npm", "react"), None)

        assert response["statusCode"] == 200
        assert response["headers"]["Cache-Control"] == "no-store"
        assert body(response)["isError"] is True

    def test_unknown_platform(self, store):
        from api.shield import handler

        assert handler(event("maven", "junit"), None)["statusCode"] == 404
