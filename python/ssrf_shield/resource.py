"""``urlopen``-style access to SSRF-safe fetches.

For code written against ``urllib.request.urlopen`` that expects a readable
file-like response. All safety decisions are made by :func:`fetch_sync`; this
module only repackages the result.

Usage:
    from ssrf_shield.resource import urlopen

    with urlopen(user_url, headers={"Accept": "text/html"}) as resource:
        print(resource.status, resource.url)
        html = resource.read()
"""

import io
from typing import Any, Mapping, Optional, Union

import httpx

from .engine import FetchResult
from .errors import HTTPStatusError
from .options import FetchOptions
from .redirects import fetch_sync


class Resource(io.BytesIO):
    """In-memory response body with the response metadata attached.

    Attributes:
        status: HTTP status code of the final response.
        reason: HTTP reason phrase.
        headers: Response headers.
        url: Final URL after redirects.
    """

    def __init__(self, result: FetchResult):
        super().__init__(result.content or b"")
        self.status = result.status_code
        self.reason = result.reason_phrase
        self.headers = result.headers
        self.url = str(result.url)
        self.result = result

    def geturl(self) -> str:
        return self.url

    def getcode(self) -> int:
        return self.status

    def info(self) -> httpx.Headers:
        return self.headers


def urlopen(
    url: Union[str, httpx.URL],
    data: Optional[Union[bytes, str]] = None,
    *,
    method: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
    options: Optional[FetchOptions] = None,
    **overrides: Any,
) -> Resource:
    """Open ``url`` and return its body as a :class:`Resource`.

    Like ``urllib.request.urlopen``, the method defaults to POST when ``data``
    is given and GET otherwise.

    Raises:
        HTTPStatusError: If the final response is not 2xx. The resource is
            attached as ``error.resource``.
        SsrfShieldError: Any error raised by fetch_sync().
    """
    if method is None:
        method = "POST" if data is not None else "GET"
    if data is not None:
        overrides["body"] = data
    if headers is not None:
        overrides["headers"] = headers
    options = FetchOptions.merge(options, **overrides)
    if options.on_chunk is not None:
        raise TypeError("urlopen buffers the body and does not support on_chunk")

    result = fetch_sync(method, url, options)
    resource = Resource(result)
    if not result.is_success:
        raise HTTPStatusError(f"{result.status_code} {result.reason_phrase}", resource=resource)
    return resource
