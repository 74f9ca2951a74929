# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_rp

"""
HTTP transport helpers: SSRF-safe transport and bounded response reading.
"""

import ipaddress
import json
import socket
from dataclasses import dataclass
from typing import Any

import anyio
import httpx

from coreason_rp.exceptions import OversizedResponseError, SecurityError
from coreason_rp.utils.logger import logger

MAX_RESPONSE_BYTES = 1_000_000

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


@dataclass(frozen=True)
class RawResponse:
    """A fully read, size-bounded HTTP response."""

    status_code: int
    reason: str
    content: bytes

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.content)


def _is_prohibited(ip_obj: IPAddress) -> bool:
    return (
        ip_obj.is_private
        or ip_obj.is_loopback
        or ip_obj.is_link_local
        or ip_obj.is_reserved
        or ip_obj.is_multicast
    )


class SafeHTTPTransport(httpx.AsyncHTTPTransport):
    """
    An HTTP transport that pins connections to a validated public IP address.

    The hostname is resolved, prohibited ranges (private, loopback, link-local,
    reserved, multicast) are refused, and the request is sent to the chosen IP
    while keeping the original Host header and SNI for TLS verification.
    """

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        hostname = request.url.host

        try:
            literal = ipaddress.ip_address(hostname)
        except ValueError:
            literal = None

        if literal is not None:
            self._validate_ip(literal, hostname)
            return await super().handle_async_request(request)

        try:
            addr_infos = await anyio.to_thread.run_sync(socket.getaddrinfo, hostname, None, 0, socket.SOCK_STREAM)
        except socket.gaierror as e:
            logger.error(f"DNS resolution failed for {hostname}: {e}")
            raise SecurityError(f"DNS resolution failed for {hostname}") from e

        target_ip: str | None = None
        for _, _, _, _, sockaddr in addr_infos:
            ip_str = str(sockaddr[0])
            try:
                self._validate_ip(ipaddress.ip_address(ip_str), hostname)
            except (SecurityError, ValueError):
                continue
            target_ip = ip_str
            break

        if not target_ip:
            logger.error(f"Security violation: No valid public IP found for {hostname}")
            raise SecurityError(f"Security violation: No valid public IP found for {hostname}")

        request.extensions["sni_hostname"] = hostname
        if "Host" not in request.headers:
            request.headers["Host"] = request.url.netloc.decode("ascii")
        request.url = request.url.copy_with(host=target_ip)

        logger.debug(f"DNS Pinned: {hostname} -> {target_ip}")
        return await super().handle_async_request(request)

    def _validate_ip(self, ip_obj: IPAddress, hostname: str) -> None:
        if _is_prohibited(ip_obj):
            logger.warning(f"Security violation: Blocked access to {hostname} ({ip_obj})")
            raise SecurityError(f"Security violation: Access to {hostname} ({ip_obj}) is blocked")


def create_http_client(timeout: float | None, unsafe_local_dev: bool = False) -> httpx.AsyncClient:
    """
    Builds the default client for Provider requests.

    Args:
        timeout: Request timeout in seconds, or None for no timeout.
        unsafe_local_dev: Use a plain transport that can reach private and loopback hosts.
    """
    transport = httpx.AsyncHTTPTransport() if unsafe_local_dev else SafeHTTPTransport()
    return httpx.AsyncClient(transport=transport, timeout=timeout)


async def bounded_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_bytes: int = MAX_RESPONSE_BYTES,
    **kwargs: Any,
) -> RawResponse:
    """
    Sends a request and reads at most `max_bytes` of the response body.

    Non-success statuses are returned, not raised, so callers can map them to
    their own error types.

    Raises:
        OversizedResponseError: If the body exceeds `max_bytes`.
        httpx.HTTPError: On connection-level failures.
    """
    async with client.stream(method, url, **kwargs) as response:
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > max_bytes:
            raise OversizedResponseError(f"Response from {url} too large")

        content = bytearray()
        async for chunk in response.aiter_bytes():
            content.extend(chunk)
            if len(content) > max_bytes:
                raise OversizedResponseError(f"Response from {url} too large")

        return RawResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            content=bytes(content),
        )
