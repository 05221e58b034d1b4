import httpx
import pytest

from client import ApiError, RetryPolicy, StoreClient


def make_client(handler, attempts=3):
    sleeps = []
    client = StoreClient(
        "http://store.test",
        policy=RetryPolicy(attempts=attempts, backoff=0.5, max_backoff=1.0),
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )
    return client, sleeps


def test_delay_is_exponential_and_capped():
    policy = RetryPolicy(backoff=0.5, max_backoff=1.5)
    assert [policy.delay(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 1.5, 1.5]


def test_policy_needs_at_least_one_attempt():
    with pytest.raises(ValueError):
        RetryPolicy(attempts=0)


def test_custom_retry_statuses():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, json={"detail": "Slow down"})
        return httpx.Response(200, json=[])

    policy = RetryPolicy(backoff=0.1, retry_statuses=(429,))
    client = StoreClient("http://store.test", policy=policy, transport=httpx.MockTransport(handler), sleep=lambda s: None)
    assert client.list_categories() == []
    assert len(calls) == 2
    assert policy.retryable(ApiError(429, "Slow down"))
    assert not policy.retryable(ApiError(503, "Database unavailable"))


def test_get_retries_on_503_then_succeeds():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, json={"detail": "Database unavailable"})
        return httpx.Response(200, json={"items": [], "total": 0})

    client, sleeps = make_client(handler)
    assert client.list_products(page=1, featured=None) == {"items": [], "total": 0}
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]
    assert calls[0].url.params.get("page") == "1"
    assert "featured" not in calls[0].url.params


def test_get_gives_up_after_attempts():
    client, sleeps = make_client(lambda request: httpx.Response(503, json={"detail": "Database unavailable"}))
    with pytest.raises(ApiError) as info:
        client.get_product("abc")
    assert info.value.status_code == 503
    assert info.value.detail == "Database unavailable"
    assert RetryPolicy().retryable(info.value)
    assert len(sleeps) == 2


def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, json={"detail": "Product not found"})

    client, sleeps = make_client(handler)
    with pytest.raises(ApiError) as info:
        client.get_product("abc")
    assert info.value.status_code == 404
    assert not RetryPolicy().retryable(info.value)
    assert len(calls) == 1
    assert sleeps == []


def test_post_is_sent_once():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"detail": "Database unavailable"})

    client, _ = make_client(handler)
    with pytest.raises(ApiError):
        client.create_order([{"product_id": "p1", "quantity": 1}], {"name": "x"})
    assert len(calls) == 1


def test_transport_errors_are_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=[{"id": "c1"}])

    client, sleeps = make_client(handler)
    assert client.list_categories() == [{"id": "c1"}]
    assert sleeps == [0.5]


def test_transport_error_after_last_attempt():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = make_client(handler, attempts=2)
    with pytest.raises(ApiError) as info:
        client.me()
    assert info.value.status_code is None
    assert "ConnectError" in info.value.detail


def test_login_stores_token_for_later_requests():
    seen = []

    def handler(request):
        seen.append(request.headers.get("authorization"))
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"token": "tok_abc", "user_id": "u1"})
        return httpx.Response(200, json={"id": "u1"})

    client, _ = make_client(handler)
    client.login("jane@example.com", "secret1")
    client.me()
    assert seen == [None, "Bearer tok_abc"]


def test_against_the_real_app(client, user, product):
    http = StoreClient(
        "http://testserver",
        token=user["Authorization"].split()[1],
        transport=client._transport,
    )
    page = http.list_products(search="sofa")
    assert page["total"] == 1
    with pytest.raises(ApiError) as info:
        http.delete_product(product["id"])
    assert info.value.status_code == 403
