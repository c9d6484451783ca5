"""
Unit tests for the Typed Request Client.
"""

import json

import httpx
import pytest

from market_gateway.app.adapters.request_client import ServiceClientConfig, TypedRequestClient
from market_gateway.app.domain.descriptor import RequestDescriptor
from shared.errors import DecodeFailureError, RequestFailedError, TransportFailureError, ValidationError


def _client(handler, api_key="secret-key", cache=None, **config_kwargs):
    config = ServiceClientConfig(
        base_url=config_kwargs.pop("base_url", "/api/proxy"),
        api_key=api_key,
        origin=config_kwargs.pop("origin", "http://localhost:3000"),
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TypedRequestClient(config, http_client=http_client, cache=cache)


def _unused(request):  # pragma: no cover - build_url never dispatches
    raise AssertionError("no request expected")


class TestBuildUrl:
    """URL construction."""

    def test_routing_parameter_comes_first(self):
        client = _client(_unused)
        url = httpx.URL(client.build_url("token/mcap", {"unit": "abc123"}))

        assert (url.host, url.port, url.path) == ("localhost", 3000, "/api/proxy")
        assert url.params.multi_items() == [("endpoint", "token/mcap"), ("unit", "abc123")]

    def test_leading_separator_does_not_change_routing_value(self):
        client = _client(_unused)
        params = {"unit": "x", "page": 2}

        with_slash = httpx.URL(client.build_url("/token/holders", params))
        without_slash = httpx.URL(client.build_url("token/holders", params))

        assert with_slash.params["endpoint"] == without_slash.params["endpoint"] == "token/holders"
        assert with_slash == without_slash

    def test_none_values_are_omitted(self):
        client = _client(_unused)
        url = httpx.URL(client.build_url("p", {"a": None, "b": None, "c": 1}))

        assert url.params.multi_items() == [("endpoint", "p"), ("c", "1")]

    def test_values_are_stringified_in_insertion_order(self):
        client = _client(_unused)
        url = httpx.URL(client.build_url("p", {"z": 1.5, "a": True, "m": False}))

        assert url.params.multi_items() == [("endpoint", "p"), ("z", "1.5"), ("a", "true"), ("m", "false")]

    def test_absolute_base_url_ignores_origin(self):
        client = _client(_unused, base_url="https://gateway.example.com/api/proxy")
        url = httpx.URL(client.build_url("token/mcap"))

        assert url.host == "gateway.example.com"
        assert url.path == "/api/proxy"

    def test_without_origin_url_is_relative(self):
        client = _client(_unused, origin=None)
        assert client.build_url("metrics") == "/api/proxy?endpoint=metrics"

    def test_reserved_routing_name_rejected_in_query(self):
        client = _client(_unused)

        with pytest.raises(ValidationError):
            client.build_url("token/mcap", {"endpoint": "wallet/x", "unit": "a"})

    @pytest.mark.asyncio
    async def test_request_with_reserved_name_never_dispatches(self):
        client = _client(_unused)

        with pytest.raises(ValidationError):
            await client.request("token/mcap", query_params={"endpoint": "wallet/x"})


class TestRequest:
    """Request execution and error mapping."""

    @pytest.mark.asyncio
    async def test_success_returns_decoded_json_with_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"mcap": 42})

        client = _client(handler)
        result = await client.request("token/mcap", query_params={"unit": "abc"})

        assert result == {"mcap": 42}
        request = seen["request"]
        assert request.method == "GET"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["x-api-key"] == "secret-key"
        assert request.url.params["endpoint"] == "token/mcap"

    @pytest.mark.asyncio
    async def test_no_credential_header_without_api_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["headers"] = request.headers
            return httpx.Response(200, json=[])

        client = _client(handler, api_key=None)
        await client.request("metrics")

        assert "x-api-key" not in seen["headers"]

    @pytest.mark.asyncio
    async def test_body_is_serialized(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        client = _client(handler)
        await client.request("token/prices", method="post", body=["unit1", "unit2"])

        assert seen == {"method": "POST", "body": ["unit1", "unit2"]}

    @pytest.mark.asyncio
    async def test_non_success_raises_request_failed_with_status(self):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(429, json={"error": "slow down"})

        client = _client(handler)
        with pytest.raises(RequestFailedError) as exc_info:
            await client.request("token/mcap")

        assert exc_info.value.status_code == 429
        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_transport_failure_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(TransportFailureError):
            await client.request("token/mcap")

    @pytest.mark.asyncio
    async def test_undecodable_body_raises_decode_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        client = _client(handler)
        with pytest.raises(DecodeFailureError):
            await client.request("token/mcap")


class TestFetch:
    """Descriptor execution with and without a cache."""

    @pytest.mark.asyncio
    async def test_fetch_without_cache_calls_upstream(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"holders": 10})

        client = _client(handler)
        result = await client.fetch(RequestDescriptor("token/holders", {"unit": "abc"}))

        assert result == {"holders": 10}

    @pytest.mark.asyncio
    async def test_fetch_uses_cache_key_and_ttl(self):
        class RecordingCache:
            def __init__(self):
                self.calls = []

            async def get(self, key, compute, ttl_millis=None):
                self.calls.append((key, ttl_millis))
                return await compute()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"holders": 10})

        cache = RecordingCache()
        client = _client(handler, cache=cache)
        descriptor = RequestDescriptor("token/holders", {"unit": "abc"})

        await client.fetch(descriptor, ttl_millis=5_000)

        assert cache.calls == [(descriptor.cache_key(), 5_000)]
