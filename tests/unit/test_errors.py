import asyncio

from chat_agent.errors import ErrorClass, NonRetryableError, UpstreamError, classify_error, is_overload


class _Response:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


class _HttpError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.response = _Response(status_code)


def test_status_codes_map_to_error_classes() -> None:
    assert classify_error(UpstreamError("busy", status_code=529)) is ErrorClass.OVERLOADED
    assert classify_error(UpstreamError("slow down", status_code=429)) is ErrorClass.RATE_LIMITED
    assert classify_error(UpstreamError("oops", status_code=503)) is ErrorClass.TRANSIENT_SERVER
    assert classify_error(_HttpError("bad gateway", 502)) is ErrorClass.TRANSIENT_SERVER
    assert classify_error(UpstreamError("invalid", status_code=400)) is ErrorClass.NON_RETRYABLE


def test_message_heuristics_apply_without_status() -> None:
    assert classify_error(RuntimeError("Overloaded")) is ErrorClass.OVERLOADED
    assert classify_error(RuntimeError("Rate limit reached")) is ErrorClass.RATE_LIMITED
    assert classify_error(RuntimeError("read ECONNRESET")) is ErrorClass.NETWORK_TIMEOUT
    assert classify_error(asyncio.TimeoutError()) is ErrorClass.NETWORK_TIMEOUT
    assert classify_error(ConnectionError("refused")) is ErrorClass.NETWORK_TIMEOUT
    assert classify_error(KeyError("missing")) is ErrorClass.NON_RETRYABLE


def test_wrapped_non_retryable_is_not_an_overload() -> None:
    wrapped = NonRetryableError(UpstreamError("Overloaded", status_code=529))

    assert classify_error(wrapped) is ErrorClass.NON_RETRYABLE
    assert not is_overload(wrapped)
    assert is_overload(UpstreamError("x", status_code=529))
