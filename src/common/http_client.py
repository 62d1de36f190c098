"""Shared HTTP helpers used by the feed clients.

Encapsulates common request/timeout error handling so feed modules avoid
duplicating try/except blocks. Transport failures surface as
``RepositoryUnavailableError``; HTTP status handling is left to callers.
Requests are never retried.
"""
from __future__ import annotations

import logging
import json
import os
from typing import Any, Optional, Dict, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from install.errors import OperationCancelledError, RepositoryUnavailableError

logger = logging.getLogger(__name__)


def safe_get(url: str, *, context: str, **kwargs: Any) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Args:
        url: Target URL.
        context: Human-readable source tag for logs (e.g., repository name).
        **kwargs: Passed through to requests.get.

    Returns:
        requests.Response: The HTTP response object.

    Raises:
        RepositoryUnavailableError: On timeouts and connection failures.
    """
    safe_target = safe_url(url)
    kwargs.setdefault("timeout", Constants.REQUEST_TIMEOUT)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context
                )
            )
        try:
            res = requests.get(url, **kwargs)
        except requests.Timeout as exc:
            logger.error(
                "%s request timed out after %s seconds",
                context,
                kwargs["timeout"],
            )
            raise RepositoryUnavailableError(
                f"Request to {safe_target} timed out", repository=context
            ) from exc
        except requests.RequestException as exc:  # includes ConnectionError
            logger.error("%s connection error: %s", context, exc)
            raise RepositoryUnavailableError(
                f"Could not reach {safe_target}: {exc}", repository=context
            ) from exc
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response ok",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context
                )
            )
        return res


def get_json(
    url: str,
    *,
    context: str,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET request and parse JSON response with DEBUG traces.

    Args:
        url: Target URL
        context: Source tag for logs and errors
        headers: Optional request headers
        **kwargs: Additional requests.get parameters

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none)
    """
    response = safe_get(url, context=context, headers=headers or Constants.HEADERS_JSON, **kwargs)
    status_code = response.status_code
    response_headers = dict(response.headers)

    if status_code == 200 and response.text:
        try:
            parsed = json.loads(response.text)
        except json.JSONDecodeError:
            if is_debug_enabled(logger):
                logger.debug(
                    "JSON decode error",
                    extra=extra_context(
                        event="parse",
                        component="http_client",
                        action="get_json",
                        outcome="json_decode_error",
                        status_code=status_code,
                        target=safe_url(url)
                    )
                )
            return status_code, response_headers, None
        if is_debug_enabled(logger):
            logger.debug(
                "Parsed JSON response",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="get_json",
                    outcome="success",
                    status_code=status_code,
                    target=safe_url(url)
                )
            )
        return status_code, response_headers, parsed

    return status_code, response_headers, None


def get_text(
    url: str,
    *,
    context: str,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, str]:
    """GET a textual document (e.g. an OData Atom feed).

    Returns:
        Tuple of (status_code, body_text)
    """
    response = safe_get(url, context=context, headers=headers or Constants.HEADERS_ATOM, **kwargs)
    return response.status_code, response.text


def download_file(
    url: str,
    dest: str,
    *,
    context: str,
    auth: Optional[Tuple[str, str]] = None,
    cancel_token: Optional[Any] = None,
) -> str:
    """Stream ``url`` into ``dest`` in chunks.

    The cancellation token is checked between chunks; a cancelled or failed
    download removes the partial file.

    Returns:
        str: The destination path.

    Raises:
        RepositoryUnavailableError: On transport errors or non-200 responses.
        OperationCancelledError: When the token fires mid-download.
    """
    safe_target = safe_url(url)
    response = safe_get(url, context=context, auth=auth, stream=True)
    with response:
        if response.status_code != 200:
            raise RepositoryUnavailableError(
                f"Download of {safe_target} failed with HTTP {response.status_code}",
                repository=context,
            )
        completed = False
        try:
            with open(dest, "wb") as handle:
                for chunk in response.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                    if cancel_token is not None and cancel_token.is_cancelled:
                        raise OperationCancelledError("Download cancelled", repository=context)
                    if chunk:
                        handle.write(chunk)
            completed = True
        except requests.RequestException as exc:
            raise RepositoryUnavailableError(
                f"Download of {safe_target} interrupted: {exc}", repository=context
            ) from exc
        finally:
            if not completed and os.path.exists(dest):
                os.remove(dest)

    if is_debug_enabled(logger):
        logger.debug(
            "Downloaded file",
            extra=extra_context(
                event="download",
                component="http_client",
                action="GET",
                outcome="success",
                target=safe_target,
                context=context
            )
        )
    return dest
