"""
Certificate provisioner — TLS key/certificate pairs for local domains.

Order of preference:
    1. An existing pair in ``ssl_dir`` (returned unchanged)
    2. mkcert, which issues leaf certificates from a trusted local CA
    3. A self-signed RSA-2048 certificate generated in-process

The private key is always written owner-only (0600), the certificate
world-readable (0644).
"""

from __future__ import annotations

import logging
import shutil
from datetime import UTC, datetime, timedelta
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import CertificateError, ExternalToolError, ResourceConflictError
from devstack.core.models.certificate import CertificateBundle
from devstack.core.services.capabilities import Which

logger = logging.getLogger(__name__)

KEY_SIZE = 2048
VALID_DAYS = 825
KEY_MODE = 0o600
CERT_MODE = 0o644


def generate_self_signed(domain: str, days: int = VALID_DAYS) -> tuple[str, str]:
    """Return (key_pem, cert_pem) for a self-signed certificate with CN=domain."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain)])
    now = datetime.now(UTC)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=days))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(domain)]), critical=False)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
    return key_pem, cert_pem


class CertificateProvisioner:
    """Create-if-absent certificate bundles under ``ssl_dir``."""

    def __init__(self, executor: ActionExecutor, ssl_dir: Path, which: Which = shutil.which):
        self._executor = executor
        self._ssl_dir = ssl_dir
        self._which = which
        self._ca_installed = False

    def existing(self, domain: str) -> CertificateBundle | None:
        """The bundle on disk for ``domain``, if both files are there.

        Raises:
            ResourceConflictError: Only one of the two files exists.
        """
        bundle = CertificateBundle.for_domain(self._ssl_dir, domain)
        if bundle.partial():
            raise ResourceConflictError(
                f"Incomplete certificate pair for {domain} in {self._ssl_dir}; "
                "remove the stray file and re-run",
                resource_key=domain,
            )
        return bundle if bundle.on_disk() else None

    def obtain(self, domain: str) -> tuple[CertificateBundle, bool]:
        """Return ``(bundle, created)`` for ``domain``.

        Raises:
            CertificateError: Neither mkcert nor the self-signed path produced a pair.
        """
        bundle = self.existing(domain)
        if bundle is not None:
            logger.info("Reusing certificate for %s", domain)
            return bundle, False

        receipt = self._executor.fs(
            "cert.mkdir", f"Create {self._ssl_dir}", "mkdir", self._ssl_dir, mode=0o755
        )
        try:
            self._executor.require(receipt, tool="filesystem")
        except ExternalToolError as e:
            raise CertificateError(str(e), resource_key=domain) from e

        if self._which("mkcert"):
            bundle = self._issue_with_mkcert(domain)
            if bundle is not None:
                return bundle, True
            logger.warning("mkcert failed for %s — falling back to self-signed", domain)

        return self._issue_self_signed(domain), True

    def remove(self, domain: str) -> list[Path]:
        bundle = CertificateBundle.for_domain(self._ssl_dir, domain)
        removed = []
        for path in (bundle.key_path, bundle.cert_path):
            receipt = self._executor.fs(
                "cert.remove", f"Remove {path}", "remove", path
            )
            self._executor.require(receipt, tool="filesystem", resource_key=domain)
            if receipt.metadata.get("removed") or receipt.simulated:
                removed.append(path)
        return removed

    def _issue_with_mkcert(self, domain: str) -> CertificateBundle | None:
        if not self._ca_installed:
            receipt = self._executor.run("cert.ca-install", "Install local CA (mkcert -install)", ["mkcert", "-install"])
            if receipt.failed:
                logger.warning("mkcert -install failed: %s", receipt.error)
            self._ca_installed = True

        bundle = CertificateBundle.for_domain(self._ssl_dir, domain, issuer="local-ca")
        receipt = self._executor.run(
            "cert.mkcert",
            f"Issue certificate for {domain} with mkcert",
            ["mkcert", "-key-file", str(bundle.key_path), "-cert-file", str(bundle.cert_path), domain],
        )
        if receipt.failed:
            return None

        try:
            self._set_modes(bundle)
        except ExternalToolError as e:
            logger.warning("Cannot set modes on mkcert output: %s", e)
            return None
        return bundle

    def _issue_self_signed(self, domain: str) -> CertificateBundle:
        bundle = CertificateBundle.for_domain(self._ssl_dir, domain, issuer="self-signed")
        try:
            key_pem, cert_pem = generate_self_signed(domain)
        except ValueError as e:
            raise CertificateError(f"Self-signed generation failed for {domain}: {e}", resource_key=domain) from e

        try:
            receipt = self._executor.fs(
                "cert.write-key",
                f"Write private key {bundle.key_path}",
                "write",
                bundle.key_path,
                content=key_pem,
                mode=KEY_MODE,
                secret=True,
            )
            self._executor.require(receipt, tool="filesystem", resource_key=domain)
            receipt = self._executor.fs(
                "cert.write-cert",
                f"Write certificate {bundle.cert_path}",
                "write",
                bundle.cert_path,
                content=cert_pem,
                mode=CERT_MODE,
            )
            self._executor.require(receipt, tool="filesystem", resource_key=domain)
        except ExternalToolError as e:
            # Never leave a lone private key behind
            self._executor.fs("cert.cleanup", f"Remove partial key {bundle.key_path}", "remove", bundle.key_path)
            raise CertificateError(f"Cannot write certificate for {domain}: {e}", resource_key=domain) from e

        logger.info("Created self-signed certificate for %s", domain)
        return bundle

    def _set_modes(self, bundle: CertificateBundle) -> None:
        for path, mode in ((bundle.key_path, KEY_MODE), (bundle.cert_path, CERT_MODE)):
            receipt = self._executor.fs("cert.chmod", f"Set mode {oct(mode)} on {path}", "chmod", path, mode=mode)
            self._executor.require(receipt, tool="filesystem", resource_key=bundle.domain)
