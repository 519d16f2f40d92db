"""GitHub REST API backend for the remote store capability set.

Small files go through the contents API (one conditional PUT per path);
large files through the git data API (blobs, trees, commits, refs).

Compare-and-swap on the branch
------------------------------
The refs API has no "expected old value" parameter.  ``update_ref`` sends
a non-forced update instead: GitHub accepts it only as a fast-forward.
Every commit this package creates has the expected tip as its single
parent, so the update is a fast-forward exactly when the branch still
points at that tip.  Otherwise GitHub answers 422 and ``ConflictError``
is raised.

Request bodies carrying artifact bytes are base64-encoded into a spooled
temporary file and streamed, so a 100 MiB upload is not held three times
in memory and the buffer is released when the request finishes or fails.
"""

from __future__ import annotations

import base64
import io
import json
import logging
import tempfile
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import IO, Any, TypeVar
from urllib.parse import quote

import httpx

from cachepush.core.errors import ConflictError, NotFoundError, TransportError
from cachepush.core.retry import RetryPolicy, retry_transport
from cachepush.models.objects import BlobRef, Commit, Destination, PathVersion, Tree

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_API_VERSION = "2022-11-28"

FILE_MODE = "100644"

_CHUNK = 3 * 64 * 1024  # multiple of 3: base64 chunks concatenate cleanly
_SPOOL_MAX = 8 * 1024 * 1024


class GitHubStore:
    """Remote store backed by one GitHub repository.

    Parameters
    ----------
    destination:
        Repository owner and name.  The branch is passed per call.
    token:
        Token with contents write access.
    api_url:
        API root; override for GitHub Enterprise.
    timeout:
        Per-request timeout in seconds.
    policy:
        Retry budget for retryable transport failures.
    transport:
        Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        destination: Destination,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 60.0,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._destination = destination
        self._policy = policy or RetryPolicy(max_attempts=3)
        self._sleep = sleep
        self._repo = f"/repos/{quote(destination.owner)}/{quote(destination.repo)}"
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": api_version,
            },
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Path content (contents API)
    # ------------------------------------------------------------------

    def read_path(self, path: str, ref: str) -> PathVersion | None:
        try:
            response = self._request(
                "GET", self._contents_url(path), params={"ref": ref}
            )
        except NotFoundError:
            return None
        return _decode(response, lambda d: _path_version(path, d))

    def write_path(
        self,
        path: str,
        content: bytes,
        *,
        message: str,
        branch: str,
        expected_sha: str | None,
    ) -> str:
        fields: dict[str, Any] = {"message": message, "branch": branch}
        if expected_sha is not None:
            fields["sha"] = expected_sha
        # 409: sha mismatch.  422: the file appeared and no sha was sent.
        with _content_body(fields, content) as body:
            response = self._request(
                "PUT", self._contents_url(path), body=body, conflict_statuses=(409, 422)
            )
        return _decode(response, lambda d: _sha(d["commit"]))

    # ------------------------------------------------------------------
    # Git data API
    # ------------------------------------------------------------------

    def create_blob(self, content: bytes) -> BlobRef:
        with _content_body({"encoding": "base64"}, content) as body:
            response = self._request("POST", f"{self._repo}/git/blobs", body=body)
        return _decode(response, lambda d: BlobRef(sha=_sha(d), size_bytes=len(content)))

    def read_ref(self, branch: str) -> str:
        response = self._request("GET", f"{self._repo}/git/ref/heads/{quote(branch)}")
        return _decode(response, lambda d: _sha(d["object"]))

    def read_commit(self, sha: str) -> Commit:
        response = self._request("GET", f"{self._repo}/git/commits/{sha}")
        return _decode(response, _commit_from)

    def read_tree(self, sha: str) -> Tree:
        response = self._request(
            "GET", f"{self._repo}/git/trees/{sha}", params={"recursive": "1"}
        )
        return _decode(response, _tree_from)

    def create_tree(self, base_tree: str, entries: dict[str, str]) -> str:
        payload = {
            "base_tree": base_tree,
            "tree": [
                {"path": path, "mode": FILE_MODE, "type": "blob", "sha": sha}
                for path, sha in sorted(entries.items())
            ],
        }
        response = self._request("POST", f"{self._repo}/git/trees", json=payload)
        return _decode(response, _sha)

    def create_commit(self, *, message: str, tree: str, parent: str) -> Commit:
        payload = {"message": message, "tree": tree, "parents": [parent]}
        response = self._request("POST", f"{self._repo}/git/commits", json=payload)
        return _decode(response, _commit_from)

    def update_ref(self, branch: str, *, expected: str, new: str) -> None:
        # A 422 is a lost race only when GitHub says "not a fast forward";
        # other 422s (unknown sha, bad object) are content errors.
        try:
            self._request(
                "PATCH",
                f"{self._repo}/git/refs/heads/{quote(branch)}",
                json={"sha": new, "force": False},
            )
        except ConflictError as exc:
            raise ConflictError(
                f"{branch} is no longer at {expected[:12]}: {exc}"
            ) from exc
        except TransportError as exc:
            if exc.status_code == 422 and "fast forward" in str(exc).lower():
                raise ConflictError(
                    f"{branch} is no longer at {expected[:12]}: {exc}"
                ) from exc
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._client.close()

    def __enter__(self) -> GitHubStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"GitHubStore(repo={self._destination.slug!r})"

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _contents_url(self, path: str) -> str:
        return f"{self._repo}/contents/{quote(path, safe='/')}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        body: IO[bytes] | None = None,
        conflict_statuses: tuple[int, ...] = (409,),
    ) -> httpx.Response:
        label = f"{method} {url}"

        def send() -> httpx.Response:
            extra: dict[str, Any] = {}
            if body is not None:
                body.seek(0, io.SEEK_END)
                extra["headers"] = {
                    "Content-Type": "application/json",
                    "Content-Length": str(body.tell()),
                }
                extra["content"] = _iter_body(body)
            try:
                response = self._client.request(
                    method, url, params=params, json=json, **extra
                )
            except httpx.TransportError as exc:
                raise TransportError(f"{label}: {exc}", retryable=True) from exc
            logger.debug("%s -> %d", label, response.status_code)
            _check(response, label, conflict_statuses)
            return response

        return retry_transport(send, self._policy, sleep=self._sleep, label=label)


@contextmanager
def _content_body(fields: dict[str, Any], content: bytes) -> Iterator[IO[bytes]]:
    """Build ``{**fields, "content": base64(content)}`` in a spooled temp file."""
    with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX, mode="w+b") as body:
        head = json.dumps(fields)[:-1]
        body.write(head.encode("utf-8"))
        body.write(b', "content": "' if fields else b'"content": "')
        view = memoryview(content)
        for start in range(0, len(view), _CHUNK):
            body.write(base64.b64encode(view[start : start + _CHUNK]))
        body.write(b'"}')
        body.flush()
        yield body


def _iter_body(body: IO[bytes]) -> Iterator[bytes]:
    body.seek(0)
    yield from iter(lambda: body.read(_CHUNK), b"")


def _decode(response: httpx.Response, parse: Callable[[Any], T]) -> T:
    """Parse a successful response body, mapping malformed payloads.

    A body that is not JSON or lacks an expected field (a proxy error
    page, an API change) raises a non-retryable ``TransportError`` so
    the publisher records it against the one artifact being written.
    """
    try:
        return parse(response.json())
    except (ValueError, KeyError, TypeError) as exc:
        request = response.request
        raise TransportError(
            f"{request.method} {request.url.path}: unexpected response body "
            f"({type(exc).__name__}: {exc})",
            status_code=response.status_code,
        ) from exc


def _sha(data: dict[str, Any]) -> str:
    sha = data["sha"]
    if not isinstance(sha, str):
        raise TypeError(f"sha is {type(sha).__name__}, not str")
    return sha


def _path_version(path: str, data: Any) -> PathVersion:
    if isinstance(data, list):
        raise TransportError(f"{path} is a directory, not a file")
    return PathVersion(path=path, sha=_sha(data), size_bytes=data.get("size", 0))


def _tree_from(data: dict[str, Any]) -> Tree:
    if data.get("truncated"):
        logger.warning("Tree %s is truncated; listing is incomplete", data["sha"][:12])
    entries = {
        item["path"]: item["sha"]
        for item in data.get("tree", [])
        if item.get("type") == "blob"
    }
    return Tree(sha=_sha(data), entries=entries)


def _commit_from(data: dict[str, Any]) -> Commit:
    return Commit(
        sha=_sha(data),
        tree=_sha(data["tree"]),
        parents=[p["sha"] for p in data.get("parents", [])],
        message=data.get("message", ""),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase


def _check(
    response: httpx.Response, label: str, conflict_statuses: tuple[int, ...]
) -> None:
    """Map an unsuccessful response onto the publish error taxonomy."""
    if response.is_success:
        return
    status = response.status_code
    message = f"{label}: {status} {_error_message(response)}"

    if status == 404:
        raise NotFoundError(message)
    if status in conflict_statuses:
        raise ConflictError(message)
    rate_limited = status == 429 or (
        status == 403
        and (
            response.headers.get("x-ratelimit-remaining") == "0"
            or "rate limit" in message.lower()
        )
    )
    if rate_limited or status >= 500:
        raise TransportError(message, retryable=True, status_code=status)
    raise TransportError(message, retryable=False, status_code=status)
