"""
Tests for certificate provisioning — reuse, mkcert, self-signed fallback.
"""

import stat
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.x509.oid import NameOID
from helpers import FakeWhich

from devstack.adapters.base import ExecutionContext
from devstack.adapters.mock import MockAdapter
from devstack.adapters.registry import AdapterRegistry
from devstack.adapters.shell.filesystem import FilesystemAdapter
from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import CertificateError, ResourceConflictError
from devstack.core.models.action import Receipt
from devstack.core.models.mode import ExecutionMode
from devstack.core.services.certificates import (
    VALID_DAYS,
    CertificateProvisioner,
    generate_self_signed,
)


class FakeMkcert(MockAdapter):
    """Shell mock that writes key/cert files the way mkcert would."""

    def execute(self, context: ExecutionContext) -> Receipt:
        argv = context.action.params.get("argv", [])
        if context.action.id == "cert.mkcert":
            key = argv[argv.index("-key-file") + 1]
            cert = argv[argv.index("-cert-file") + 1]
            Path(key).write_text("mkcert key")
            Path(cert).write_text("mkcert cert")
        return super().execute(context)


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


class TestGenerateSelfSigned:
    def test_subject_and_validity(self):
        key_pem, cert_pem = generate_self_signed("blog.local")
        assert "PRIVATE KEY" in key_pem
        cert = x509.load_pem_x509_certificate(cert_pem.encode())
        assert cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "blog.local"
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        assert san.get_values_for_type(x509.DNSName) == ["blog.local"]
        lifetime = cert.not_valid_after_utc - cert.not_valid_before_utc
        assert lifetime.days >= VALID_DAYS


class TestObtain:
    """Tests for CertificateProvisioner.obtain."""

    def test_self_signed_fallback(self, executor: ActionExecutor, tmp_path: Path):
        provisioner = CertificateProvisioner(executor, tmp_path / "ssl", which=FakeWhich())
        bundle, created = provisioner.obtain("blog.local")

        assert created
        assert bundle.issuer == "self-signed"
        assert bundle.key_path == tmp_path / "ssl" / "blog.local.key"
        assert _mode(bundle.key_path) == 0o600
        assert _mode(bundle.cert_path) == 0o644
        x509.load_pem_x509_certificate(bundle.cert_path.read_bytes())

    def test_key_never_in_audit(self, executor: ActionExecutor, tmp_path: Path):
        provisioner = CertificateProvisioner(executor, tmp_path / "ssl", which=FakeWhich())
        bundle, _ = provisioner.obtain("blog.local")
        key_body = bundle.key_path.read_text().splitlines()[1]
        assert not any(key_body in e.model_dump_json() for e in executor.audit.read_all())

    def test_second_obtain_reuses(self, executor: ActionExecutor, tmp_path: Path):
        provisioner = CertificateProvisioner(executor, tmp_path / "ssl", which=FakeWhich())
        first, _ = provisioner.obtain("blog.local")
        before = first.cert_path.read_bytes()
        entries = len(executor.audit.read_all())

        second, created = provisioner.obtain("blog.local")
        assert not created
        assert second.cert_path == first.cert_path
        assert second.cert_path.read_bytes() == before
        assert len(executor.audit.read_all()) == entries

    def test_partial_pair_conflicts(self, executor: ActionExecutor, tmp_path: Path):
        ssl_dir = tmp_path / "ssl"
        ssl_dir.mkdir()
        (ssl_dir / "blog.local.key").write_text("orphan")
        provisioner = CertificateProvisioner(executor, ssl_dir, which=FakeWhich())
        with pytest.raises(ResourceConflictError):
            provisioner.obtain("blog.local")
        assert not (ssl_dir / "blog.local.crt").exists()

    def test_mkcert_used_when_available(self, tmp_path: Path):
        shell = FakeMkcert(adapter_name="shell")
        registry = AdapterRegistry()
        registry.register(shell)
        registry.register(FilesystemAdapter())
        executor = ActionExecutor(registry, mode=ExecutionMode(assume_yes=True))
        provisioner = CertificateProvisioner(executor, tmp_path / "ssl", which=FakeWhich("mkcert"))

        bundle, created = provisioner.obtain("blog.local")
        assert created
        assert bundle.issuer == "local-ca"
        assert shell.action_ids == ["cert.ca-install", "cert.mkcert"]
        assert bundle.key_path.read_text() == "mkcert key"
        assert _mode(bundle.key_path) == 0o600

    def test_mkcert_failure_falls_back(self, executor: ActionExecutor, shell: MockAdapter, tmp_path: Path):
        shell.set_failure("cert.mkcert", error="mkcert: boom")
        provisioner = CertificateProvisioner(executor, tmp_path / "ssl", which=FakeWhich("mkcert"))
        bundle, created = provisioner.obtain("blog.local")
        assert created
        assert bundle.issuer == "self-signed"
        assert bundle.on_disk()

    def test_unwritable_ssl_dir(self, executor: ActionExecutor, tmp_path: Path):
        blocker = tmp_path / "ssl"
        blocker.write_text("not a directory")
        provisioner = CertificateProvisioner(executor, blocker, which=FakeWhich())
        with pytest.raises(CertificateError):
            provisioner.obtain("blog.local")

    def test_dry_run_writes_nothing(self, dry_executor: ActionExecutor, tmp_path: Path):
        provisioner = CertificateProvisioner(dry_executor, tmp_path / "ssl", which=FakeWhich())
        bundle, created = provisioner.obtain("blog.local")
        assert created
        assert not (tmp_path / "ssl").exists()


class TestRemove:
    def test_remove(self, executor: ActionExecutor, tmp_path: Path):
        provisioner = CertificateProvisioner(executor, tmp_path / "ssl", which=FakeWhich())
        bundle, _ = provisioner.obtain("blog.local")
        removed = provisioner.remove("blog.local")
        assert removed == [bundle.key_path, bundle.cert_path]
        assert not bundle.key_path.exists()
        assert provisioner.remove("blog.local") == []
