from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


@pytest.fixture
def make_certificate(tmp_path):
    """Write a self-signed TPP transport certificate and key, return their paths."""

    def _make(valid_days: int = 30, name: str = "transport"):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "tpp.sandbox.test")])
        now = datetime.now(timezone.utc)
        if valid_days > 0:
            not_before, not_after = now - timedelta(days=1), now + timedelta(days=valid_days)
        else:
            not_before, not_after = now - timedelta(days=10), now - timedelta(days=1)

        certificate = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .sign(key, hashes.SHA256())
        )

        cert_path = tmp_path / f"{name}.crt"
        key_path = tmp_path / f"{name}.key"
        cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
        key_path.write_bytes(
            key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
        return str(cert_path), str(key_path)

    return _make
