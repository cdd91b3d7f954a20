from __future__ import annotations

from datetime import date

import httpx
import pytest

from adoption_stats.config.settings import Settings
from adoption_stats.crawlers.stats.contracts import FetchState
from adoption_stats.crawlers.stats.jsdelivr_client import JsDelivrStatsClient
from adoption_stats.crawlers.stats.npm_client import NpmStatsClient
from adoption_stats.services.stats.range_planner import ExactMonth, Quarter

CONFIG = Settings(STATS_PACKAGE="@highcharts/grid-lite", STATS_HTTP_MAX_RETRIES=1)


def jsdelivr_client(handler) -> JsDelivrStatsClient:
    return JsDelivrStatsClient(config=CONFIG, transport=httpx.MockTransport(handler))


def npm_client(handler, **kwargs) -> NpmStatsClient:
    return NpmStatsClient(config=CONFIG, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_jsdelivr_halves_hits_and_sends_period() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"hits": {"total": 31, "dates": {"2024-07-01": 10, "2024-07-02": 21}}})

    async with jsdelivr_client(handler) as client:
        result = await client.fetch_cdn(Quarter(2024, 3))

    assert requests[0].url.params["period"] == "2024-Q3"
    assert requests[0].url.path.endswith("/@highcharts/grid-lite")
    assert result.state == FetchState.OK
    assert result.is_ok
    assert result.token == Quarter(2024, 3)
    assert [(point.date, point.count) for point in result.data] == [(date(2024, 7, 1), 5), (date(2024, 7, 2), 11)]


@pytest.mark.asyncio
async def test_jsdelivr_missing_dates_is_malformed_not_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"hits": {"total": 0}})

    async with jsdelivr_client(handler) as client:
        result = await client.fetch_cdn(ExactMonth(2024, 6))

    assert result.state == FetchState.MALFORMED
    assert result.data == []
    assert result.is_failed is False
    assert result.is_ok is False


@pytest.mark.asyncio
async def test_jsdelivr_transport_failures_become_failed_results() -> None:
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "unavailable"})

    def network_error(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with jsdelivr_client(server_error) as client:
        unavailable = await client.fetch_cdn(ExactMonth(2024, 6))
    async with jsdelivr_client(network_error) as client:
        unreachable = await client.fetch_cdn(ExactMonth(2024, 6))

    assert unavailable.is_failed
    assert unavailable.status_code == 503
    assert unreachable.is_failed
    assert "connection refused" in (unreachable.error or "")


@pytest.mark.asyncio
async def test_npm_registry_fetch_splits_window_by_span_limit() -> None:
    spans: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        span = request.url.path.split("/")[-3]
        spans.append(span)
        start = span.split(":")[0]
        return httpx.Response(200, json={"downloads": [{"day": start, "downloads": 3}], "package": "x"})

    async with npm_client(handler) as client:
        results = await client.fetch_registry(date(2023, 1, 1), date(2024, 6, 30))

    assert spans == ["2023-01-01:2023-12-26", "2023-12-27:2024-06-30"]
    assert [result.state for result in results] == [FetchState.OK, FetchState.OK]
    assert results[1].data[0].date == date(2023, 12, 27)


@pytest.mark.asyncio
async def test_npm_registry_keeps_going_after_failed_range() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "2023-01-01:" in request.url.path:
            return httpx.Response(500)
        return httpx.Response(200, json={"downloads": [{"day": "2024-01-02", "downloads": 9}, {"day": None}]})

    async with npm_client(handler, max_days_per_request=360) as client:
        results = await client.fetch_registry(date(2023, 1, 1), date(2024, 6, 30))

    assert results[0].is_failed
    assert results[1].state == FetchState.OK
    assert [(point.date, point.count) for point in results[1].data] == [(date(2024, 1, 2), 9)]


@pytest.mark.asyncio
async def test_npm_registry_skips_infinite_downloads_without_losing_other_ranges() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "2024-01-01:" in request.url.path:
            return httpx.Response(200, json={"downloads": [{"day": "2024-01-01", "downloads": 4}]})
        body = b'{"downloads": [{"day": "2024-01-03", "downloads": Infinity}, {"day": "2024-01-04", "downloads": 2}]}'
        return httpx.Response(200, content=body, headers={"Content-Type": "application/json"})

    async with npm_client(handler, max_days_per_request=2) as client:
        results = await client.fetch_registry(date(2024, 1, 1), date(2024, 1, 4))

    assert [(point.date, point.count) for point in results[0].data] == [(date(2024, 1, 1), 4)]
    assert [(point.date, point.count) for point in results[1].data] == [(date(2024, 1, 4), 2)]


@pytest.mark.asyncio
async def test_npm_registry_unexpected_error_fails_only_its_range() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "2024-01-03:" in request.url.path:
            raise RuntimeError("decoder exploded")
        return httpx.Response(200, json={"downloads": [{"day": "2024-01-01", "downloads": 4}]})

    async with npm_client(handler, max_days_per_request=2) as client:
        results = await client.fetch_registry(date(2024, 1, 1), date(2024, 1, 4))

    assert [result.state for result in results] == [FetchState.OK, FetchState.FAILED]
    assert results[1].token.start == date(2024, 1, 3)
    assert "decoder exploded" in (results[1].error or "")

@pytest.mark.asyncio
async def test_npm_registry_missing_downloads_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "package not found"})

    async with npm_client(handler) as client:
        results = await client.fetch_registry(date(2024, 7, 1), date(2024, 7, 2))

    assert len(results) == 1
    assert results[0].state == FetchState.MALFORMED
    assert results[0].data == []


@pytest.mark.asyncio
async def test_npm_publish_dates_from_registry_metadata() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "registry.npmjs.org"
        return httpx.Response(
            200,
            json={
                "name": "@highcharts/grid-lite",
                "time": {
                    "created": "2024-01-01T00:00:00.000Z",
                    "modified": "2024-08-01T00:00:00.000Z",
                    "1.0.0": "2024-03-01T10:00:00.000Z",
                    "1.1.0": "2024-05-02T08:30:00.000Z",
                },
            },
        )

    async with npm_client(handler) as client:
        result = await client.fetch_publish_dates()

    assert result.state == FetchState.OK
    assert result.data == {"1.0.0": date(2024, 3, 1), "1.1.0": date(2024, 5, 2)}


@pytest.mark.asyncio
async def test_jsdelivr_skips_non_finite_hit_counts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = b'{"hits": {"dates": {"2024-07-01": NaN, "2024-07-02": Infinity, "2024-07-03": 8}}}'
        return httpx.Response(200, content=body, headers={"Content-Type": "application/json"})

    async with jsdelivr_client(handler) as client:
        result = await client.fetch_cdn(ExactMonth(2024, 7))

    assert result.state == FetchState.OK
    assert [(point.date, point.count) for point in result.data] == [(date(2024, 7, 3), 4)]


def test_explicit_zero_http_settings_are_not_replaced_by_config() -> None:
    config = Settings(STATS_HTTP_MAX_RETRIES=3, STATS_HTTP_BACKOFF_BASE_SECONDS=1.0, STATS_HTTP_BACKOFF_MAX_SECONDS=8.0)

    client = JsDelivrStatsClient(config=config, max_retries=0, backoff_base_seconds=0, backoff_max_seconds=0)
    defaults = JsDelivrStatsClient(config=config)

    assert (client._max_retries, client._backoff_base_seconds, client._backoff_max_seconds) == (0, 0, 0)
    assert (defaults._max_retries, defaults._backoff_base_seconds, defaults._backoff_max_seconds) == (3, 1.0, 8.0)
