"""Tests for the client data layer: response cache, debouncing and retries."""
import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from inventory.client.api import ApiError, InventoryApiClient, summarize_transactions
from inventory.client.cache import ResponseCache
from inventory.client.debounce import Debouncer


def envelope(data=None, success=True, message=""):
    return {"success": success, "message": message, "data": data, "errors": []}


def make_client(handler, **kwargs):
    """API client whose requests are answered by handler."""
    options = {"backoff": 0, "debounce": 0.01, "max_retries": 3}
    options.update(kwargs)
    return InventoryApiClient(
        products_url="http://products",
        transactions_url="http://transactions",
        transport=httpx.MockTransport(handler),
        **options,
    )


class TestResponseCache:
    """Test the in-memory response cache."""

    def test_entry_expires_lazily(self):
        now = [0.0]
        cache = ResponseCache(ttl=10, clock=lambda: now[0])
        cache.set("products_page=1", {"data": []})

        now[0] = 10.0
        assert cache.get("products_page=1") == {"data": []}

        now[0] = 10.5
        assert "products_page=1" in cache
        assert cache.get("products_page=1") is None
        assert "products_page=1" not in cache

    def test_per_entry_ttl(self):
        now = [0.0]
        cache = ResponseCache(ttl=10, clock=lambda: now[0])
        cache.set("categories", ["Tools"], ttl=60)

        now[0] = 30.0
        assert cache.get("categories") == ["Tools"]

    def test_delete_pattern_and_clear(self):
        cache = ResponseCache(ttl=10)
        cache.set("products_", 1)
        cache.set("products_page=2", 2)
        cache.set("product_1", 3)
        cache.set("categories", 4)

        assert cache.delete_pattern("products_*") == 2
        assert cache.get("product_1") == 3
        assert len(cache) == 2

        cache.delete("product_1")
        assert cache.get("product_1") is None

        cache.clear()
        assert len(cache) == 0


class TestDebouncer:
    """Test collapsing bursts of calls."""

    @pytest.mark.asyncio
    async def test_burst_makes_one_call(self):
        calls = []

        async def fetch(value):
            calls.append(value)
            return value * 2

        debounced = Debouncer(fetch, 0.01)
        results = await asyncio.gather(debounced(3), debounced(3), debounced(3))

        assert calls == [3]
        assert results == [6, 6, 6]
        assert not debounced.pending

    @pytest.mark.asyncio
    async def test_burst_shares_the_failure(self):
        calls = []

        async def fetch():
            calls.append(1)
            raise ValueError("boom")

        debounced = Debouncer(fetch, 0.01)
        results = await asyncio.gather(debounced(), debounced(), return_exceptions=True)

        assert len(calls) == 1
        assert all(isinstance(result, ValueError) for result in results)

    @pytest.mark.asyncio
    async def test_calls_after_quiet_period_run_again(self):
        calls = []

        async def fetch(value):
            calls.append(value)
            return value

        debounced = Debouncer(fetch, 0.01)
        assert await debounced("a") == "a"
        assert await debounced("b") == "b"
        assert calls == ["a", "b"]


class TestInventoryApiClient:
    """Test the API client against canned responses."""

    @pytest.mark.asyncio
    async def test_list_products_is_debounced_and_cached(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=envelope({"data": [], "totalRecords": 0}))

        client = make_client(handler)
        results = await asyncio.gather(
            client.list_products(page=1, page_size=10),
            client.list_products(page=1, page_size=10),
            client.list_products(page=1, page_size=10),
        )

        assert len(requests) == 1
        assert requests[0].url.params["pageSize"] == "10"
        assert all(result == {"data": [], "totalRecords": 0} for result in results)

        # Served from cache from now on
        await client.list_products(page=1, page_size=10)
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_different_queries_are_not_merged(self):
        requests = []

        def handler(request):
            requests.append(request)
            page = int(request.url.params["page"])
            return httpx.Response(200, json=envelope({"data": [], "page": page}))

        client = make_client(handler)
        first, second, again = await asyncio.gather(
            client.list_products(page=1),
            client.list_products(page=2),
            client.list_products(page=1),
        )

        assert first == {"data": [], "page": 1}
        assert second == {"data": [], "page": 2}
        assert again == first
        assert sorted(r.url.params["page"] for r in requests) == ["1", "2"]
        assert client._debouncers == {}

    @pytest.mark.asyncio
    async def test_empty_filters_are_dropped(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=envelope({"data": []}))

        client = make_client(handler)
        await client.list_transactions(search="", transaction_type="Sale", product_id=None)

        assert dict(requests[0].url.params) == {"transactionType": "Sale"}

    @pytest.mark.asyncio
    async def test_transport_failures_are_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json=envelope({"id": 1}))

        client = make_client(handler)

        assert await client.get_product(1) == {"id": 1}
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(handler, max_retries=2)

        with pytest.raises(ApiError, match="Network error"):
            await client.get_product(1)
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_failure_envelope_is_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(400, json={
                "success": False,
                "message": "Insufficient stock. Available: 1, Requested: 5",
                "data": None,
                "errors": [],
            })

        client = make_client(handler)

        with pytest.raises(ApiError) as exc_info:
            await client.create_transaction(
                {"transactionType": "Sale", "productId": 1, "quantity": 5, "unitPrice": 1.0}
            )
        assert exc_info.value.message == "Insufficient stock. Available: 1, Requested: 5"
        assert exc_info.value.status_code == 400
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_unreadable_body_is_unknown_error(self):
        client = make_client(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(ApiError, match="Unknown error"):
            await client.get_categories()

    @pytest.mark.asyncio
    async def test_product_write_drops_product_entries(self):
        def handler(request):
            return httpx.Response(200, json=envelope(json.loads(request.content)))

        client = make_client(handler)
        client.cache.set("products_page=1", {"data": []})
        client.cache.set("products_all", [])
        client.cache.set("product_5", {"id": 5})
        client.cache.set("product_6", {"id": 6})
        client.cache.set("categories", ["Tools"])
        client.cache.set("transactions_", {"data": []})

        await client.update_product(5, {"name": "Widget"})

        assert client.cache.get("products_page=1") is None
        assert client.cache.get("products_all") is None
        assert client.cache.get("product_5") is None
        assert client.cache.get("categories") is None
        assert client.cache.get("product_6") == {"id": 6}
        assert client.cache.get("transactions_") == {"data": []}

    @pytest.mark.asyncio
    async def test_transaction_write_drops_everything(self):
        client = make_client(lambda request: httpx.Response(200, json=envelope(True)))
        client.cache.set("product_6", {"id": 6})
        client.cache.set("transactions_", {"data": []})

        assert await client.delete_transaction(3) is True
        assert len(client.cache) == 0


def test_summarize_transactions():
    stats = summarize_transactions([
        {"transactionType": "Purchase", "totalPrice": 10.5},
        {"transactionType": "Purchase", "totalPrice": 4.5},
        {"transactionType": "Sale", "totalPrice": 18.0},
    ])

    assert stats.total == 3
    assert stats.purchases == 2
    assert stats.sales == 1
    assert stats.purchase_amount == Decimal("15.0")
    assert stats.sale_amount == Decimal("18.0")
