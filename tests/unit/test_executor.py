r"""Unit tests for the synchronous RequestExecutor.

The transport is an ``httpx.MockTransport`` driven by a scripted
handler, so every test runs the real dispatch loop end to end.
"""

from __future__ import annotations

import base64
import io
import threading
from unittest.mock import Mock

import httpx
import pytest

from restexec import (
    ApiKey,
    BasicRequestAuthenticator,
    ExecutorConfig,
    LogicalRequest,
    NonReplayableBodyError,
    RedirectLimitError,
    RequestBody,
    RequestCancelledError,
    RequestExecutionError,
    RequestExecutor,
    ThrottlingError,
)
from restexec.backoff import ConstantBackoff, ExponentialBackoff
from restexec.outcome import FailureKind
from tests.helpers import (
    ACCOUNTS_URL,
    ScriptedHandler,
    StreamTracker,
    UnseekableStream,
    make_client,
)

CREDENTIAL = ApiKey(id="4YHE1CBAZ", secret="s3cr3t")


def _executor(handler: ScriptedHandler, **kwargs: object) -> RequestExecutor:
    return RequestExecutor(client=make_client(handler), **kwargs)


######################################
#     Tests for successful calls     #
######################################


def test_execute_returns_buffered_response(get_request: LogicalRequest) -> None:
    handler = ScriptedHandler(
        [httpx.Response(200, headers={"Content-Type": "application/json"}, content=b'{"id": 1}')]
    )
    response = _executor(handler).execute(get_request)
    assert response.status_code == 200
    assert response.content == b'{"id": 1}'
    assert response.media_type == "application/json"
    assert response.json() == {"id": 1}
    assert handler.calls == 1


def test_execute_sends_params_and_headers(get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.Response(200)])
    _executor(handler).execute(get_request)
    sent = handler.requests[0]
    assert sent.method == "GET"
    assert sent.url == httpx.URL(ACCOUNTS_URL, params={"limit": "25"})
    assert sent.headers["Accept"] == "application/json"


def test_execute_signs_request() -> None:
    handler = ScriptedHandler([httpx.Response(200)])
    executor = _executor(handler, authenticator=BasicRequestAuthenticator(), credential=CREDENTIAL)
    executor.execute(LogicalRequest("GET", ACCOUNTS_URL))
    token = base64.b64encode(b"4YHE1CBAZ:s3cr3t").decode()
    assert handler.requests[0].headers["Authorization"] == f"Basic {token}"
    assert "X-Request-Date" in handler.requests[0].headers


def test_execute_without_credential_sends_unsigned() -> None:
    handler = ScriptedHandler([httpx.Response(200)])
    executor = _executor(handler, authenticator=BasicRequestAuthenticator())
    executor.execute(LogicalRequest("GET", ACCOUNTS_URL))
    assert "Authorization" not in handler.requests[0].headers


def test_execute_sends_body_with_content_length() -> None:
    handler = ScriptedHandler([httpx.Response(201)])
    response = _executor(handler).execute(
        LogicalRequest("POST", ACCOUNTS_URL, body=b'{"email": "jane@example.com"}')
    )
    assert response.status_code == 201
    assert handler.bodies == [b'{"email": "jane@example.com"}']
    assert handler.requests[0].headers["Content-Length"] == "29"


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 409])
def test_execute_returns_client_error_without_retry(
    mock_sleep: Mock, get_request: LogicalRequest, status_code: int
) -> None:
    handler = ScriptedHandler([httpx.Response(status_code, content=b'{"message": "nope"}')])
    response = _executor(handler).execute(get_request)
    assert response.status_code == status_code
    assert response.is_client_error
    assert handler.calls == 1
    mock_sleep.assert_not_called()


@pytest.mark.parametrize("status_code", [303, 304, 308])
def test_execute_returns_redirect_not_followed(get_request: LogicalRequest, status_code: int) -> None:
    handler = ScriptedHandler(
        [httpx.Response(status_code, headers={"Location": "https://api.example.com/v2/res"})]
    )
    response = _executor(handler).execute(get_request)
    assert response.status_code == status_code
    assert handler.calls == 1


def test_execute_returns_redirect_without_location(get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.Response(302)])
    response = _executor(handler).execute(get_request)
    assert response.status_code == 302
    assert handler.calls == 1


def test_execute_none_request() -> None:
    with pytest.raises(ValueError, match=r"request argument cannot be None"):
        _executor(ScriptedHandler([httpx.Response(200)])).execute(None)


####################################
#     Tests for transport retry    #
####################################


def test_execute_retries_timeouts_then_succeeds(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    handler = ScriptedHandler(
        [httpx.ConnectTimeout, httpx.ReadTimeout, httpx.ConnectError, httpx.Response(200)]
    )
    response = _executor(handler).execute(get_request)
    assert response.status_code == 200
    assert handler.calls == 4
    assert [call.args[0] for call in mock_sleep.call_args_list] == [0.6, 1.2, 2.4]


def test_execute_transport_failure_exhausts_budget(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    handler = ScriptedHandler([httpx.ConnectError])
    with pytest.raises(RequestExecutionError, match=r"Unable to execute HTTP request") as exc_info:
        _executor(handler).execute(get_request)
    assert handler.calls == 5
    assert mock_sleep.call_count == 4
    assert exc_info.value.attempts == 5
    assert exc_info.value.failure_kind is FailureKind.TRANSPORT
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_execute_timeout_message(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.ReadTimeout])
    with pytest.raises(RequestExecutionError, match=r"timed out"):
        _executor(handler, config=ExecutorConfig(max_retries=1)).execute(get_request)
    assert handler.calls == 2
    assert mock_sleep.call_count == 1


def test_execute_max_retries_zero(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.ReadTimeout])
    with pytest.raises(RequestExecutionError):
        _executor(handler, config=ExecutorConfig(max_retries=0)).execute(get_request)
    assert handler.calls == 1
    mock_sleep.assert_not_called()


def test_execute_request_error_not_retried(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.UnsupportedProtocol])
    with pytest.raises(RequestExecutionError) as exc_info:
        _executor(handler).execute(get_request)
    assert handler.calls == 1
    assert exc_info.value.failure_kind is FailureKind.REQUEST
    mock_sleep.assert_not_called()


def test_execute_resigns_and_restores_headers_on_retry(mock_sleep: Mock) -> None:
    stamps = iter(["20240102T030405Z", "20240102T030406Z"])
    authenticator = Mock()

    def authenticate(request: LogicalRequest, credential: ApiKey) -> None:
        request.headers.setdefault("X-Request-Date", next(stamps))
        request.headers["Authorization"] = f"Basic {credential.id}"

    authenticator.authenticate.side_effect = authenticate
    handler = ScriptedHandler([httpx.ReadTimeout, httpx.Response(200)])
    request = LogicalRequest("GET", ACCOUNTS_URL, headers={"Accept": "application/json"})
    _executor(handler, authenticator=authenticator, credential=CREDENTIAL).execute(request)
    assert authenticator.authenticate.call_count == 2
    # the date header of the first attempt must not leak into the second
    assert [r.headers["X-Request-Date"] for r in handler.requests] == [
        "20240102T030405Z",
        "20240102T030406Z",
    ]
    assert all(r.headers["Accept"] == "application/json" for r in handler.requests)
    mock_sleep.assert_called_once()


def test_execute_replays_seekable_stream(mock_sleep: Mock) -> None:
    stream = io.BytesIO(b"prefix:payload")
    stream.seek(7)
    handler = ScriptedHandler([httpx.ReadTimeout, httpx.Response(200)])
    request = LogicalRequest("PUT", ACCOUNTS_URL, body=RequestBody(stream, content_length=7))
    response = _executor(handler).execute(request)
    assert response.status_code == 200
    assert handler.bodies == [b"payload", b"payload"]
    mock_sleep.assert_called_once()


######################################
#     Tests for throttling (429)     #
######################################


def test_execute_throttling_uses_amplified_scale(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    rng = Mock(uniform=Mock(return_value=0.05))
    handler = ScriptedHandler([httpx.Response(429), httpx.Response(200)])
    executor = _executor(handler, config=ExecutorConfig(backoff_policy=ExponentialBackoff(rng=rng)))
    response = executor.execute(get_request)
    assert response.status_code == 200
    assert handler.calls == 2
    rng.uniform.assert_called_once_with(0, 0.1)
    assert mock_sleep.call_args.args[0] == pytest.approx(1.1)


def test_execute_throttling_exhausts_budget(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.Response(429, content=b"slow down")])
    with pytest.raises(ThrottlingError, match=r"HTTP 429") as exc_info:
        _executor(handler).execute(get_request)
    assert handler.calls == 5
    assert mock_sleep.call_count == 4
    assert exc_info.value.status_code == 429
    assert exc_info.value.failure_kind is FailureKind.THROTTLING
    assert exc_info.value.response.content == b"slow down"


#########################################
#     Tests for server errors (5xx)     #
#########################################


def test_execute_server_error_retried_then_returned(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    handler = ScriptedHandler([httpx.Response(500, content=b"boom")])
    response = _executor(handler).execute(get_request)
    assert response.status_code == 500
    assert response.content == b"boom"
    assert handler.calls == 5
    assert mock_sleep.call_count == 4


def test_execute_server_error_then_success(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.Response(503), httpx.Response(502), httpx.Response(200)])
    response = _executor(handler).execute(get_request)
    assert response.status_code == 200
    assert handler.calls == 3
    assert mock_sleep.call_count == 2


def test_execute_custom_backoff_policy(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.Response(500), httpx.Response(200)])
    executor = _executor(handler, config=ExecutorConfig(backoff_policy=ConstantBackoff(2.5)))
    executor.execute(get_request)
    mock_sleep.assert_called_once_with(2.5)


def test_execute_backoff_capped_by_max_wait_time(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    handler = ScriptedHandler([httpx.Response(500), httpx.Response(200)])
    executor = _executor(
        handler,
        config=ExecutorConfig(backoff_policy=ConstantBackoff(60.0), max_wait_time=5.0),
    )
    executor.execute(get_request)
    mock_sleep.assert_called_once_with(5.0)


#################################
#     Tests for redirects       #
#################################


def _redirecting(status_code: int, location: str) -> object:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/accounts":
            return httpx.Response(status_code, headers={"Location": location})
        return httpx.Response(200, content=b"moved")

    return respond


@pytest.mark.parametrize("status_code", [301, 302, 307])
def test_execute_follows_redirect(mock_sleep: Mock, status_code: int) -> None:
    handler = ScriptedHandler([_redirecting(status_code, "https://api.example.com/v2/res")])
    executor = _executor(handler, authenticator=BasicRequestAuthenticator(), credential=CREDENTIAL)
    request = LogicalRequest(
        "GET", ACCOUNTS_URL, params={"limit": "25"}, headers={"Accept": "application/json"}
    )
    response = executor.execute(request)
    assert response.status_code == 200
    assert response.content == b"moved"
    assert handler.calls == 2
    follow = handler.requests[1]
    assert follow.url == httpx.URL("https://api.example.com/v2/res", params={"limit": "25"})
    assert follow.headers["Accept"] == "application/json"
    assert follow.headers["Authorization"].startswith("Basic ")
    assert request.url == httpx.URL("https://api.example.com/v2/res")
    mock_sleep.assert_not_called()


def test_execute_follows_relative_redirect() -> None:
    handler = ScriptedHandler([_redirecting(302, "/v2/res")])
    _executor(handler).execute(LogicalRequest("GET", ACCOUNTS_URL))
    assert handler.requests[1].url == httpx.URL("https://api.example.com/v2/res")


def test_execute_redirect_resends_method_and_body() -> None:
    handler = ScriptedHandler([_redirecting(307, "https://api.example.com/v2/res")])
    _executor(handler).execute(LogicalRequest("POST", ACCOUNTS_URL, body=b"payload"))
    assert [r.method for r in handler.requests] == ["POST", "POST"]
    assert handler.bodies == [b"payload", b"payload"]


def test_execute_redirect_does_not_consume_budget(mock_sleep: Mock) -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/accounts":
            return httpx.Response(302, headers={"Location": "https://api.example.com/v2/res"})
        return httpx.Response(500)

    handler = ScriptedHandler([respond])
    executor = _executor(handler, config=ExecutorConfig(max_retries=1))
    response = executor.execute(LogicalRequest("GET", ACCOUNTS_URL))
    # 1 redirect hop, then the initial attempt and 1 retry on the new target
    assert response.status_code == 500
    assert handler.calls == 3
    assert mock_sleep.call_count == 1


def test_execute_redirect_limit() -> None:
    handler = ScriptedHandler(
        [httpx.Response(302, headers={"Location": "https://api.example.com/v1/loop"})]
    )
    executor = _executor(handler, config=ExecutorConfig(max_redirects=3))
    with pytest.raises(RedirectLimitError, match=r"exceeded the limit of 3 redirects"):
        executor.execute(LogicalRequest("GET", ACCOUNTS_URL))
    assert handler.calls == 4


############################################
#     Tests for non-replayable bodies      #
############################################


def test_execute_non_replayable_body_transport_failure(mock_sleep: Mock) -> None:
    handler = ScriptedHandler([httpx.ReadTimeout, httpx.Response(200)])
    request = LogicalRequest("PUT", ACCOUNTS_URL, body=RequestBody(UnseekableStream(b"data")))
    with pytest.raises(NonReplayableBodyError, match=r"does not support repositioning") as exc_info:
        _executor(handler).execute(request)
    assert handler.calls == 1
    assert exc_info.value.failure_kind is FailureKind.NON_REPLAYABLE_BODY
    assert isinstance(exc_info.value.cause, httpx.ReadTimeout)
    mock_sleep.assert_not_called()


def test_execute_non_replayable_body_server_error(mock_sleep: Mock) -> None:
    handler = ScriptedHandler([httpx.Response(503), httpx.Response(200)])
    request = LogicalRequest("PUT", ACCOUNTS_URL, body=RequestBody(UnseekableStream(b"data")))
    response = _executor(handler).execute(request)
    assert response.status_code == 503
    assert handler.calls == 1
    mock_sleep.assert_not_called()


def test_execute_non_replayable_body_redirect() -> None:
    handler = ScriptedHandler([_redirecting(307, "https://api.example.com/v2/res")])
    request = LogicalRequest("PUT", ACCOUNTS_URL, body=RequestBody(UnseekableStream(b"data")))
    with pytest.raises(NonReplayableBodyError):
        _executor(handler).execute(request)
    assert handler.calls == 1


def test_execute_non_replayable_body_success() -> None:
    handler = ScriptedHandler([httpx.Response(200)])
    request = LogicalRequest("PUT", ACCOUNTS_URL, body=RequestBody(UnseekableStream(b"data")))
    assert _executor(handler).execute(request).status_code == 200
    assert handler.bodies == [b"data"]


####################################
#     Tests for stream release     #
####################################


def test_execute_closes_every_response_stream(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    tracker = StreamTracker()
    handler = ScriptedHandler(
        [
            tracker.respond(500),
            tracker.respond(302, headers={"Location": "https://api.example.com/v2/accounts"}),
            tracker.respond(429),
            tracker.respond(200, content=b"part", error=httpx.ReadError("connection reset")),
            tracker.respond(200, content=b"done"),
        ]
    )
    response = _executor(handler).execute(get_request)
    assert response.status_code == 200
    assert response.content == b"done"
    assert handler.calls == 5
    assert mock_sleep.call_count == 3
    assert len(tracker.streams) == 5
    assert tracker.all_closed


def test_execute_closes_stream_on_read_error(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    tracker = StreamTracker()
    handler = ScriptedHandler(
        [tracker.respond(200, content=b"part", error=httpx.ReadError("connection reset"))]
    )
    with pytest.raises(RequestExecutionError) as exc_info:
        _executor(handler, config=ExecutorConfig(max_retries=0)).execute(get_request)
    assert isinstance(exc_info.value.cause, httpx.ReadError)
    assert len(tracker.streams) == 1
    assert tracker.all_closed
    mock_sleep.assert_not_called()


def test_execute_closes_stream_on_throttling_exhausted(
    mock_sleep: Mock, get_request: LogicalRequest
) -> None:
    tracker = StreamTracker()
    handler = ScriptedHandler([tracker.respond(429)])
    with pytest.raises(ThrottlingError):
        _executor(handler, config=ExecutorConfig(max_retries=1)).execute(get_request)
    assert len(tracker.streams) == 2
    assert tracker.all_closed


##################################
#     Tests for cancellation     #
##################################


def test_execute_cancelled_during_backoff(get_request: LogicalRequest) -> None:
    cancel_event = threading.Event()
    cancel_event.set()
    handler = ScriptedHandler([httpx.ReadTimeout, httpx.Response(200)])
    with pytest.raises(RequestCancelledError, match=r"was cancelled") as exc_info:
        _executor(handler).execute(get_request, cancel_event=cancel_event)
    assert handler.calls == 1
    assert exc_info.value.failure_kind is FailureKind.TRANSPORT


def test_execute_cancel_event_not_set(get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.ReadTimeout, httpx.Response(200)])
    executor = _executor(handler, config=ExecutorConfig(backoff_policy=ConstantBackoff(0.0)))
    response = executor.execute(get_request, cancel_event=threading.Event())
    assert response.status_code == 200
    assert handler.calls == 2


###############################
#     Tests for lifecycle     #
###############################


def test_executor_owns_default_client() -> None:
    executor = RequestExecutor()
    assert isinstance(executor.client, httpx.Client)
    assert not executor.client.follow_redirects
    executor.close()
    assert executor.client.is_closed


def test_executor_does_not_close_injected_client() -> None:
    client = make_client(ScriptedHandler([httpx.Response(200)]))
    with RequestExecutor(client=client) as executor:
        assert executor.client is client
    assert not client.is_closed
    client.close()


def test_executor_context_manager_closes_owned_client() -> None:
    with RequestExecutor() as executor:
        pass
    assert executor.client.is_closed


def test_executor_max_retries_setter(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.Response(500)])
    executor = _executor(handler)
    executor.max_retries = 2
    assert executor.config.max_retries == 2
    executor.execute(get_request)
    assert handler.calls == 3
    assert mock_sleep.call_count == 2


def test_executor_backoff_policy_setter(mock_sleep: Mock, get_request: LogicalRequest) -> None:
    handler = ScriptedHandler([httpx.Response(500), httpx.Response(200)])
    executor = _executor(handler)
    executor.backoff_policy = ConstantBackoff(0.25)
    executor.execute(get_request)
    mock_sleep.assert_called_once_with(0.25)


def test_executor_repr_hides_secret() -> None:
    executor = _executor(ScriptedHandler([httpx.Response(200)]), credential=CREDENTIAL)
    assert repr(executor).startswith("RequestExecutor(max_retries=4")
    assert "s3cr3t" not in repr(executor)


def test_executor_concurrent_calls_are_independent(mock_sleep: Mock) -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=request.url.params["n"].encode())

    handler = ScriptedHandler([respond])
    executor = _executor(handler)
    results: dict[int, bytes] = {}

    def worker(n: int) -> None:
        request = LogicalRequest("GET", ACCOUNTS_URL, params={"n": str(n)})
        results[n] = executor.execute(request).content

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert results == {n: str(n).encode() for n in range(8)}
    mock_sleep.assert_not_called()
