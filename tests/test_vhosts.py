"""
Tests for vhost rendering and the per-engine writer.
"""

from pathlib import Path

import pytest
from helpers import FakeWhich

from devstack.adapters.mock import MockAdapter
from devstack.core.config.loader import Settings
from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import ExternalToolError, ValidationError
from devstack.core.models.certificate import CertificateBundle
from devstack.core.models.vhost import VhostDescriptor, WebServer
from devstack.core.services.capabilities import (
    SystemdServiceManager,
    build_web_server_controls,
    detect_web_servers,
)
from devstack.core.services.vhosts import VhostWriter, apache_modules, render_apache, render_nginx

SOCKET = "/run/php/php8.2-fpm.sock"


def _vhost(root: Path, **overrides) -> VhostDescriptor:
    fields = {"domain": "blog.local", "document_root": root}
    fields.update(overrides)
    return VhostDescriptor(**fields)


def _tls_vhost(root: Path, ssl_dir: Path, **overrides) -> VhostDescriptor:
    bundle = CertificateBundle.for_domain(ssl_dir, "blog.local")
    return _vhost(root, tls=True, certificate=bundle, **overrides)


class TestRenderApache:
    def test_static(self, tmp_path: Path):
        text = render_apache(_vhost(tmp_path / "blog"))
        assert "<VirtualHost *:80>" in text
        assert "ServerName blog.local" in text
        assert f"DocumentRoot {tmp_path / 'blog'}" in text
        assert "SSLEngine" not in text
        assert "ProxyPass" not in text

    def test_php_fpm(self, tmp_path: Path):
        text = render_apache(_vhost(tmp_path, backend=SOCKET, backend_protocol="fastcgi"))
        assert f'SetHandler "proxy:unix:{SOCKET}|fcgi://localhost"' in text

    def test_reverse_proxy(self, tmp_path: Path):
        text = render_apache(_vhost(tmp_path, backend="http://127.0.0.1:3000", backend_protocol="http"))
        assert "ProxyPass / http://127.0.0.1:3000/" in text
        assert "ProxyPassReverse / http://127.0.0.1:3000/" in text

    def test_tls(self, tmp_path: Path):
        ssl_dir = tmp_path / "ssl"
        text = render_apache(_tls_vhost(tmp_path, ssl_dir))
        assert "<VirtualHost *:443>" in text
        assert "Redirect permanent / https://blog.local/" in text
        assert f"SSLCertificateFile {ssl_dir / 'blog.local.crt'}" in text
        assert f"SSLCertificateKeyFile {ssl_dir / 'blog.local.key'}" in text


class TestRenderNginx:
    def test_static(self, tmp_path: Path):
        text = render_nginx(_vhost(tmp_path))
        assert "listen 80;" in text
        assert "server_name blog.local;" in text
        assert "try_files $uri $uri/ =404;" in text
        assert "ssl_certificate" not in text

    def test_php_fpm(self, tmp_path: Path):
        text = render_nginx(_vhost(tmp_path, backend=SOCKET, backend_protocol="fastcgi"))
        assert f"fastcgi_pass unix:{SOCKET};" in text

    def test_reverse_proxy(self, tmp_path: Path):
        text = render_nginx(_vhost(tmp_path, backend="http://127.0.0.1:5173", backend_protocol="http"))
        assert "proxy_pass http://127.0.0.1:5173;" in text

    def test_tls(self, tmp_path: Path):
        ssl_dir = tmp_path / "ssl"
        text = render_nginx(_tls_vhost(tmp_path, ssl_dir))
        assert "listen 443 ssl;" in text
        assert "return 301 https://$host$request_uri;" in text
        assert f"ssl_certificate {ssl_dir / 'blog.local.crt'};" in text
        assert f"ssl_certificate_key {ssl_dir / 'blog.local.key'};" in text


class TestVhostWriter:
    """Tests for VhostWriter.install / uninstall against tmp dirs."""

    @pytest.fixture
    def writer(self, executor: ActionExecutor, settings: Settings) -> VhostWriter:
        controls = build_web_server_controls(
            executor,
            settings,
            SystemdServiceManager(executor),
            [WebServer.APACHE, WebServer.NGINX],
            which=FakeWhich(),
        )
        return VhostWriter(executor, controls)

    def test_install_every_engine(self, writer: VhostWriter, settings: Settings, shell: MockAdapter, tmp_path: Path):
        paths = writer.install(_vhost(tmp_path / "blog"))

        apache = settings.apache_sites_dir / "blog.local.conf"
        nginx = settings.nginx_sites_dir / "blog.local"
        assert paths == [apache, nginx]
        assert (settings.apache_enabled_dir / "blog.local.conf").readlink() == apache
        assert (settings.nginx_enabled_dir / "blog.local").readlink() == nginx
        assert shell.action_ids == [
            "vhost.apache.configtest",
            "svc.reload.apache2",
            "vhost.nginx.configtest",
            "svc.reload.nginx",
        ]

    def test_install_overwrites(self, writer: VhostWriter, settings: Settings, tmp_path: Path):
        writer.install(_vhost(tmp_path / "old"))
        writer.install(_vhost(tmp_path / "new"))
        text = (settings.nginx_sites_dir / "blog.local").read_text()
        assert f"root {tmp_path / 'new'};" in text
        assert str(tmp_path / "old") not in text
        assert len(list(settings.nginx_sites_dir.iterdir())) == 1

    def test_config_test_failure_skips_reload(self, writer: VhostWriter, shell: MockAdapter, tmp_path: Path):
        shell.set_failure("vhost.nginx.configtest")
        paths = writer.install(_vhost(tmp_path), backends=[WebServer.NGINX])
        assert paths[0].is_file()
        assert "svc.reload.nginx" not in shell.action_ids

    def test_apache_uses_a2ensite_when_present(self, executor: ActionExecutor, settings: Settings, shell: MockAdapter, tmp_path: Path):
        controls = build_web_server_controls(
            executor, settings, SystemdServiceManager(executor), [WebServer.APACHE], which=FakeWhich("a2ensite")
        )
        VhostWriter(executor, controls).install(_vhost(tmp_path))
        enable = shell.call_log[0].action
        assert enable.id == "vhost.apache.enable"
        assert enable.params["argv"] == ["a2ensite", "blog.local.conf"]

    def test_apache_modules_enabled_before_site(self, executor: ActionExecutor, settings: Settings, shell: MockAdapter, tmp_path: Path):
        controls = build_web_server_controls(
            executor,
            settings,
            SystemdServiceManager(executor),
            [WebServer.APACHE],
            which=FakeWhich("a2ensite", "a2enmod"),
        )
        vhost = _tls_vhost(tmp_path, settings.ssl_dir, backend=SOCKET, backend_protocol="fastcgi")
        VhostWriter(executor, controls).install(vhost)

        assert shell.action_ids[:2] == ["vhost.apache.modules", "vhost.apache.enable"]
        argv = shell.call_log[0].action.params["argv"]
        assert argv[:2] == ["a2enmod", "-q"]
        assert {"proxy", "proxy_fcgi", "ssl", "rewrite"} <= set(argv[2:])

    def test_apache_modules_failure_stops_install(self, executor: ActionExecutor, settings: Settings, shell: MockAdapter, tmp_path: Path):
        controls = build_web_server_controls(
            executor, settings, SystemdServiceManager(executor), [WebServer.APACHE], which=FakeWhich("a2ensite", "a2enmod")
        )
        shell.set_failure("vhost.apache.modules", error="ERROR: Module proxy_fcgi does not exist!")
        with pytest.raises(ExternalToolError):
            VhostWriter(executor, controls).install(_vhost(tmp_path, backend=SOCKET, backend_protocol="fastcgi"))
        assert "vhost.apache.enable" not in shell.action_ids

    def test_apache_modules_skipped_without_a2enmod(self, executor: ActionExecutor, settings: Settings, shell: MockAdapter, tmp_path: Path, caplog):
        controls = build_web_server_controls(
            executor, settings, SystemdServiceManager(executor), [WebServer.APACHE], which=FakeWhich("a2ensite")
        )
        VhostWriter(executor, controls).install(_vhost(tmp_path))
        assert "vhost.apache.modules" not in shell.action_ids
        assert "a2enmod not found" in caplog.text

    def test_nginx_needs_no_modules(self, writer: VhostWriter, shell: MockAdapter, tmp_path: Path):
        writer.install(_vhost(tmp_path), backends=[WebServer.NGINX])
        assert not any(a.endswith(".modules") for a in shell.action_ids)

    def test_uninstall(self, writer: VhostWriter, settings: Settings, tmp_path: Path):
        writer.install(_vhost(tmp_path))
        removed = writer.uninstall("blog.local")
        assert len(removed) == 2
        assert not (settings.apache_sites_dir / "blog.local.conf").exists()
        assert not (settings.nginx_enabled_dir / "blog.local").is_symlink()
        assert writer.uninstall("blog.local") == []

    def test_dry_run_writes_nothing(self, dry_executor: ActionExecutor, settings: Settings, tmp_path: Path):
        controls = build_web_server_controls(
            dry_executor, settings, SystemdServiceManager(dry_executor), [WebServer.NGINX], which=FakeWhich()
        )
        paths = VhostWriter(dry_executor, controls).install(_vhost(tmp_path))
        assert paths == [settings.nginx_sites_dir / "blog.local"]
        assert not settings.nginx_sites_dir.exists()


class TestDetectWebServers:
    def test_configured_list(self, settings: Settings):
        assert detect_web_servers(settings, which=FakeWhich()) == [WebServer.APACHE, WebServer.NGINX]

    def test_auto_detects_binaries(self):
        settings = Settings(web_servers="auto")
        assert detect_web_servers(settings, which=FakeWhich("nginx")) == [WebServer.NGINX]
        assert detect_web_servers(settings, which=FakeWhich()) == []


class TestApacheModules:
    def test_static(self, tmp_path: Path):
        assert apache_modules(_vhost(tmp_path)) == ["rewrite"]

    def test_reverse_proxy(self, tmp_path: Path):
        modules = apache_modules(_vhost(tmp_path, backend="http://127.0.0.1:3000", backend_protocol="http"))
        assert {"proxy", "proxy_http"} <= set(modules)
        assert "ssl" not in modules

    def test_tls_php(self, tmp_path: Path):
        vhost = _tls_vhost(tmp_path, tmp_path / "ssl", backend=SOCKET, backend_protocol="fastcgi")
        assert {"proxy", "proxy_fcgi", "ssl"} <= set(apache_modules(vhost))


class TestMissingCertificate:
    """Renderers refuse a TLS descriptor without a bundle even when validation was bypassed."""

    @pytest.mark.parametrize("render", [render_apache, render_nginx])
    def test_raises_validation_error(self, render, tmp_path: Path):
        vhost = VhostDescriptor.model_construct(
            domain="blog.local",
            document_root=tmp_path,
            tls=True,
            certificate=None,
            backend=None,
            backend_protocol=None,
            listen_port=80,
            tls_port=443,
        )
        with pytest.raises(ValidationError, match="no certificate"):
            render(vhost)
