"""
Certificate bundle — a TLS key/certificate pair for one domain.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict


class CertificateBundle(BaseModel):
    """Key and certificate paths for a domain.

    Both files exist together or neither does; a lone key is a conflict.
    """

    model_config = ConfigDict(frozen=True)

    domain: str
    key_path: Path
    cert_path: Path
    issuer: Literal["existing", "local-ca", "self-signed"] = "existing"

    @classmethod
    def for_domain(cls, ssl_dir: Path, domain: str, issuer: str = "existing") -> CertificateBundle:
        return cls(
            domain=domain,
            key_path=ssl_dir / f"{domain}.key",
            cert_path=ssl_dir / f"{domain}.crt",
            issuer=issuer,
        )

    def on_disk(self) -> bool:
        """True when both files are present."""
        return self.key_path.is_file() and self.cert_path.is_file()

    def partial(self) -> bool:
        """True when exactly one of the two files is present."""
        return self.key_path.is_file() != self.cert_path.is_file()
