"""HTTP client with retries and per-request timeouts."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, TypeVar

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from mobile_checker.common.constants import USER_AGENT
from mobile_checker.common.errors import TransportError
from mobile_checker.common.fs import ensure_dir

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
DOWNLOAD_CHUNK_SIZE = 1024 * 128

T = TypeVar("T")


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 10.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 0.5
    max_wait: float = 10.0


class HttpRequestError(TransportError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryableHttpError(HttpRequestError):
    pass


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None, accept: str) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": accept}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response, url: str) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status {status} from {url}", status_code=status)
        if status >= 400:
            raise HttpRequestError(f"HTTP status {status} from {url}", status_code=status)

    def _with_retry(self, func: Callable[[], T]) -> T:
        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> T:
            return func()

        return _wrapped()

    def _get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        timeout: TimeoutConfig | None,
    ) -> Any:
        req_timeout = timeout or self.timeout
        try:
            response = self.session.request(
                method="GET",
                url=url,
                params=params,
                headers=self._headers(headers, "application/json"),
                timeout=(req_timeout.connect, req_timeout.read),
            )
        except requests.RequestException as exc:
            raise HttpRequestError(f"Request to {url} failed: {exc}") from exc
        self._raise_for_status_or_retry(response, url)

        try:
            return response.json()
        except ValueError as exc:
            raise HttpRequestError(f"Invalid JSON payload from {url}") from exc

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        return self._with_retry(
            lambda: self._get_json(url, params=params, headers=headers, timeout=timeout)
        )

    def _download(self, url: str, target_path: Path, timeout: TimeoutConfig | None) -> int:
        req_timeout = timeout or self.timeout
        ensure_dir(target_path.parent)
        written = 0
        try:
            with self.session.get(
                url,
                headers=self._headers(None, "*/*"),
                timeout=(req_timeout.connect, req_timeout.read),
                stream=True,
            ) as response:
                self._raise_for_status_or_retry(response, url)
                with target_path.open("wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)
        except requests.RequestException as exc:
            raise HttpRequestError(f"Download from {url} failed: {exc}") from exc
        return written

    def download(self, url: str, target_path: Path, *, timeout: TimeoutConfig | None = None) -> int:
        """Stream ``url`` to ``target_path`` and return the number of bytes written."""
        return self._with_retry(lambda: self._download(url, target_path, timeout))
