"""
Virtual host writer — render one VhostDescriptor for each active engine.

Vhost files are always overwritten (explicit update), unlike hosts
entries and certificates which are create-if-absent. After writing,
each engine's config test and reload run best-effort: the file is
already in place, so a failure there is logged as a warning.
"""

from __future__ import annotations

import logging
from pathlib import Path

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import ValidationError
from devstack.core.models.certificate import CertificateBundle
from devstack.core.models.vhost import VhostDescriptor, WebServer
from devstack.core.services.capabilities import WebServerControl

logger = logging.getLogger(__name__)

DIRECTORY_INDEX = "index.php index.html"


def _certificate(vhost: VhostDescriptor) -> CertificateBundle:
    if vhost.certificate is None:
        raise ValidationError(f"TLS vhost for {vhost.domain} has no certificate", resource_key=vhost.domain)
    return vhost.certificate


# ── Apache ──────────────────────────────────────────────────────


def _apache_backend(vhost: VhostDescriptor) -> list[str]:
    if vhost.backend_protocol == "fastcgi":
        return [
            "    <FilesMatch \\.php$>",
            f'        SetHandler "proxy:unix:{vhost.backend}|fcgi://localhost"',
            "    </FilesMatch>",
        ]
    if vhost.backend_protocol == "http":
        upstream = vhost.backend.rstrip("/")
        return [
            "    ProxyPreserveHost On",
            f"    ProxyPass / {upstream}/",
            f"    ProxyPassReverse / {upstream}/",
        ]
    return []


def _apache_site(vhost: VhostDescriptor, port: int, tls: bool) -> list[str]:
    root = vhost.document_root
    lines = [
        f"<VirtualHost *:{port}>",
        f"    ServerName {vhost.domain}",
        f"    DocumentRoot {root}",
        f"    DirectoryIndex {DIRECTORY_INDEX}",
        "",
        f"    <Directory {root}>",
        "        Options -Indexes +FollowSymLinks",
        "        AllowOverride All",
        "        Require all granted",
        "    </Directory>",
    ]
    backend = _apache_backend(vhost)
    if backend:
        lines += ["", *backend]
    if tls:
        bundle = _certificate(vhost)
        lines += [
            "",
            "    SSLEngine on",
            f"    SSLCertificateFile {bundle.cert_path}",
            f"    SSLCertificateKeyFile {bundle.key_path}",
        ]
    lines += [
        "",
        f"    ErrorLog ${{APACHE_LOG_DIR}}/{vhost.domain}-error.log",
        f"    CustomLog ${{APACHE_LOG_DIR}}/{vhost.domain}-access.log combined",
        "</VirtualHost>",
    ]
    return lines


def apache_modules(vhost: VhostDescriptor) -> list[str]:
    """Modules the rendered Apache site needs beyond the stock set."""
    modules = ["rewrite"]
    if vhost.backend_protocol == "fastcgi":
        modules += ["proxy", "proxy_fcgi", "setenvif"]
    elif vhost.backend_protocol == "http":
        modules += ["proxy", "proxy_http", "headers"]
    if vhost.tls:
        modules.append("ssl")
    return modules


def render_apache(vhost: VhostDescriptor) -> str:
    if not vhost.tls:
        return "\n".join(_apache_site(vhost, vhost.listen_port, tls=False)) + "\n"

    redirect = [
        f"<VirtualHost *:{vhost.listen_port}>",
        f"    ServerName {vhost.domain}",
        f"    Redirect permanent / https://{vhost.domain}/",
        "</VirtualHost>",
    ]
    return "\n".join([*redirect, "", *_apache_site(vhost, vhost.tls_port, tls=True)]) + "\n"


# ── Nginx ───────────────────────────────────────────────────────


def _nginx_locations(vhost: VhostDescriptor) -> list[str]:
    if vhost.backend_protocol == "fastcgi":
        return [
            "    location / {",
            "        try_files $uri $uri/ /index.php?$query_string;",
            "    }",
            "",
            "    location ~ \\.php$ {",
            "        include snippets/fastcgi-php.conf;",
            f"        fastcgi_pass unix:{vhost.backend};",
            "    }",
        ]
    if vhost.backend_protocol == "http":
        return [
            "    location / {",
            f"        proxy_pass {vhost.backend};",
            "        proxy_http_version 1.1;",
            "        proxy_set_header Host $host;",
            "        proxy_set_header X-Real-IP $remote_addr;",
            "        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;",
            "        proxy_set_header Upgrade $http_upgrade;",
            '        proxy_set_header Connection "upgrade";',
            "    }",
        ]
    return [
        "    location / {",
        "        try_files $uri $uri/ =404;",
        "    }",
    ]


def _nginx_server(vhost: VhostDescriptor, port: int, tls: bool) -> list[str]:
    suffix = " ssl" if tls else ""
    lines = [
        "server {",
        f"    listen {port}{suffix};",
        f"    listen [::]:{port}{suffix};",
        f"    server_name {vhost.domain};",
        f"    root {vhost.document_root};",
        f"    index {DIRECTORY_INDEX};",
    ]
    if tls:
        bundle = _certificate(vhost)
        lines += [
            "",
            f"    ssl_certificate {bundle.cert_path};",
            f"    ssl_certificate_key {bundle.key_path};",
        ]
    lines += [
        "",
        *_nginx_locations(vhost),
        "",
        f"    access_log /var/log/nginx/{vhost.domain}.access.log;",
        f"    error_log /var/log/nginx/{vhost.domain}.error.log;",
        "}",
    ]
    return lines


def render_nginx(vhost: VhostDescriptor) -> str:
    if not vhost.tls:
        return "\n".join(_nginx_server(vhost, vhost.listen_port, tls=False)) + "\n"

    redirect = [
        "server {",
        f"    listen {vhost.listen_port};",
        f"    listen [::]:{vhost.listen_port};",
        f"    server_name {vhost.domain};",
        "    return 301 https://$host$request_uri;",
        "}",
    ]
    return "\n".join([*redirect, "", *_nginx_server(vhost, vhost.tls_port, tls=True)]) + "\n"


RENDERERS = {
    WebServer.APACHE: render_apache,
    WebServer.NGINX: render_nginx,
}

MODULES = {
    WebServer.APACHE: apache_modules,
}


# ── Writer ──────────────────────────────────────────────────────


class VhostWriter:
    """Install and uninstall vhost files through per-engine controls."""

    def __init__(self, executor: ActionExecutor, controls: dict[WebServer, WebServerControl]):
        self._executor = executor
        self._controls = controls

    @property
    def engines(self) -> list[WebServer]:
        return list(self._controls)

    def install(self, vhost: VhostDescriptor, backends: list[WebServer] | None = None) -> list[Path]:
        """Write, enable, test and reload. Returns the vhost file paths.

        Raises:
            ExternalToolError: Writing or enabling a site failed.
        """
        installed = []
        for engine in backends if backends is not None else self.engines:
            control = self._controls[engine]
            path = control.config_path(vhost.domain)
            receipt = self._executor.fs(
                f"vhost.{engine.value}.write",
                f"Write {engine.value} vhost {path}",
                "write",
                path,
                content=RENDERERS[engine](vhost),
            )
            self._executor.require(receipt, tool="filesystem", resource_key=vhost.domain)
            if engine in MODULES:
                control.ensure_modules(MODULES[engine](vhost))
            control.enable(vhost.domain)
            self._apply(control)
            installed.append(path)
        return installed

    def uninstall(self, domain: str, backends: list[WebServer] | None = None) -> list[Path]:
        removed = []
        for engine in backends if backends is not None else self.engines:
            control = self._controls[engine]
            path = control.config_path(domain)
            if not path.exists() and not control.enabled_path(domain).is_symlink():
                continue
            control.disable(domain)
            receipt = self._executor.fs(
                f"vhost.{engine.value}.remove", f"Remove {engine.value} vhost {path}", "remove", path
            )
            self._executor.require(receipt, tool="filesystem", resource_key=domain)
            self._apply(control)
            removed.append(path)
        return removed

    @staticmethod
    def _apply(control: WebServerControl) -> None:
        if not control.config_test():
            logger.warning("%s config test failed; fix the vhost and reload manually", control.engine.value)
            return
        if not control.reload():
            logger.warning("%s reload failed; changes take effect on next reload", control.engine.value)
