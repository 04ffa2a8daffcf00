"""
Virtual host descriptor — one logical vhost rendered for every backend engine.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from devstack.core.models.certificate import CertificateBundle


class WebServer(StrEnum):
    """Web-server engines a vhost can be rendered for."""

    APACHE = "apache"
    NGINX = "nginx"


class VhostDescriptor(BaseModel):
    """Engine-agnostic description of a site.

    Attributes:
        domain:           ServerName / server_name.
        document_root:    Absolute path served for static requests.
        tls:              Whether to add a TLS listener and redirect :80 to it.
        certificate:      Required when ``tls`` is set.
        backend:          Socket or address dynamic requests go to
                          (``/run/php/php8.2-fpm.sock`` or ``http://127.0.0.1:3000``).
        backend_protocol: ``fastcgi`` for PHP-FPM, ``http`` for app servers.
        listen_port:      Plaintext listener port.
        tls_port:         TLS listener port.
    """

    model_config = ConfigDict(frozen=True)

    domain: str
    document_root: Path
    tls: bool = False
    certificate: CertificateBundle | None = None
    backend: str | None = None
    backend_protocol: Literal["fastcgi", "http"] | None = None
    listen_port: int = 80
    tls_port: int = 443

    @model_validator(mode="after")
    def _check(self) -> VhostDescriptor:
        if not self.document_root.is_absolute():
            raise ValueError(f"Document root must be absolute: {self.document_root}")
        if self.tls and self.certificate is None:
            raise ValueError("TLS vhost requires a certificate bundle")
        if self.backend and self.backend_protocol is None:
            raise ValueError("Backend given without a backend protocol")
        return self
