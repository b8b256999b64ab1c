"""Credentials and endpoint of the API server that renders are traced against."""

from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass(frozen=True)
class ClusterConnection:
    """Where proxied render calls go and which credentials they carry.

    ``headers`` holds the process' own auth header (bearer token); the
    caller's headers are never trusted for that.
    """

    host: str
    headers: dict[str, str] = field(default_factory=dict)
    verify: ssl.SSLContext | bool = True
    timeout_seconds: float = 30.0

    def transport(self) -> httpx.AsyncHTTPTransport:
        """A fresh connection-pooled transport to the API server."""
        return httpx.AsyncHTTPTransport(verify=self.verify)

    @classmethod
    def from_configuration(cls, configuration: Any, timeout_seconds: float = 30.0) -> ClusterConnection:
        """Build a connection from a ``kubernetes_asyncio`` ``Configuration``."""
        headers: dict[str, str] = {}
        for setting in configuration.auth_settings().values():
            if setting.get("in") == "header" and setting.get("value"):
                headers[setting["key"]] = setting["value"]

        context = ssl.create_default_context(cafile=configuration.ssl_ca_cert or None)
        if not configuration.verify_ssl:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if configuration.cert_file:
            context.load_cert_chain(configuration.cert_file, configuration.key_file or None)

        return cls(
            host=configuration.host,
            headers=headers,
            verify=context,
            timeout_seconds=timeout_seconds,
        )
