"""TLS handshake, fingerprint and certificate models."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.x509.oid import ExtensionOID, NameOID, SignatureAlgorithmOID

TLS_EXT_SERVER_NAME = 0
TLS_EXT_SUPPORTED_VERSIONS = 43
TLS_EXT_SIGNATURE_ALGORITHMS = 13
TLS_EXT_SUPPORTED_GROUPS = 10
TLS_EXT_EC_POINT_FORMATS = 11
TLS_EXT_ALPN = 16


class _OpenIntEnum(IntEnum):
    """Integer enum that also accepts values it has no member for."""

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value}"
            member._value_ = value
            return member
        return None

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


class TLSVersion(_OpenIntEnum):
    """TLS and SSL protocol versions."""

    SSL_3_0 = 0x0300
    TLS_1_0 = 0x0301
    TLS_1_1 = 0x0302
    TLS_1_2 = 0x0303
    TLS_1_3 = 0x0304

    def __str__(self) -> str:
        name = _VERSION_NAMES.get(int(self))
        return name if name is not None else f"Unknown (0x{int(self):04x})"


_VERSION_NAMES = {
    0x0300: "SSL 3.0",
    0x0301: "TLS 1.0",
    0x0302: "TLS 1.1",
    0x0303: "TLS 1.2",
    0x0304: "TLS 1.3",
}


class TLSContentType(_OpenIntEnum):
    """TLS record content types."""

    CHANGE_CIPHER_SPEC = 20
    ALERT = 21
    HANDSHAKE = 22
    APPLICATION_DATA = 23

    def __str__(self) -> str:
        name = _CONTENT_TYPE_NAMES.get(int(self))
        return name if name is not None else f"Unknown({int(self)})"


_CONTENT_TYPE_NAMES = {
    20: "ChangeCipherSpec",
    21: "Alert",
    22: "Handshake",
    23: "ApplicationData",
}


class TLSHandshakeType(_OpenIntEnum):
    """TLS handshake message types."""

    CLIENT_HELLO = 1
    SERVER_HELLO = 2
    CERTIFICATE = 11
    SERVER_KEY_EXCHANGE = 12
    CERTIFICATE_REQUEST = 13
    SERVER_HELLO_DONE = 14
    CERTIFICATE_VERIFY = 15
    CLIENT_KEY_EXCHANGE = 16
    FINISHED = 20

    def __str__(self) -> str:
        name = _HANDSHAKE_NAMES.get(int(self))
        return name if name is not None else f"Unknown({int(self)})"


_HANDSHAKE_NAMES = {
    1: "ClientHello",
    2: "ServerHello",
    11: "Certificate",
    12: "ServerKeyExchange",
    13: "CertificateRequest",
    14: "ServerHelloDone",
    15: "CertificateVerify",
    16: "ClientKeyExchange",
    20: "Finished",
}


class TLSCipherSuite(_OpenIntEnum):
    """Commonly seen TLS cipher suites."""

    TLS_RSA_WITH_AES_128_CBC_SHA = 0x002F
    TLS_RSA_WITH_AES_256_CBC_SHA = 0x0035
    TLS_RSA_WITH_AES_128_GCM_SHA256 = 0x009C
    TLS_RSA_WITH_AES_256_GCM_SHA384 = 0x009D
    TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA = 0xC013
    TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA = 0xC014
    TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256 = 0xC02F
    TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384 = 0xC030
    TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256 = 0xC02B
    TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384 = 0xC02C
    TLS_AES_128_GCM_SHA256 = 0x1301
    TLS_AES_256_GCM_SHA384 = 0x1302
    TLS_CHACHA20_POLY1305_SHA256 = 0x1303

    def __str__(self) -> str:
        if int(self) in _KNOWN_SUITES:
            return self.name
        return f"0x{int(self):04x}"


_KNOWN_SUITES = frozenset(
    int(member) for member in TLSCipherSuite.__members__.values()
)


@dataclass
class TLSClientHello:
    """Details of a ClientHello message."""

    version: TLSVersion = TLSVersion(0)
    random: bytes = bytes(32)
    session_id: bytes = b""
    cipher_suites: List[TLSCipherSuite] = field(default_factory=list)
    compression_methods: List[int] = field(default_factory=list)
    sni: str = ""
    supported_versions: List[TLSVersion] = field(default_factory=list)
    signature_algorithms: List[int] = field(default_factory=list)
    elliptic_curves: List[int] = field(default_factory=list)
    supported_groups: List[int] = field(default_factory=list)
    ec_point_formats: List[int] = field(default_factory=list)
    alpn: List[str] = field(default_factory=list)
    alpn_protocols: List[str] = field(default_factory=list)
    extensions: List[int] = field(default_factory=list)
    ja3: str = ""
    ja3_hash: str = ""


@dataclass
class TLSServerHello:
    """Details of a ServerHello message."""

    version: TLSVersion = TLSVersion(0)
    random: bytes = bytes(32)
    session_id: bytes = b""
    cipher_suite: TLSCipherSuite = TLSCipherSuite(0)
    compression_method: int = 0
    alpn: str = ""
    extensions: List[int] = field(default_factory=list)
    ja3s: str = ""
    ja3s_hash: str = ""


@dataclass
class TLSExtension:
    """A raw TLS extension."""

    type: int = 0
    data: bytes = b""


@dataclass
class TLSCertificateInfo:
    """Fields of interest from an X.509 certificate."""

    common_name: str = ""
    subject: str = ""
    organization: str = ""
    sans: List[str] = field(default_factory=list)
    dns_names: List[str] = field(default_factory=list)
    ip_addresses: List[str] = field(default_factory=list)
    issuer_cn: str = ""
    issuer: str = ""
    issuer_org: str = ""
    not_before: Optional[datetime] = None
    not_after: Optional[datetime] = None
    public_key_algorithm: str = ""
    signature_algorithm: str = ""
    sha1_fingerprint: str = ""
    sha256_fingerprint: str = ""
    is_ca: bool = False
    serial_number: str = ""
    is_expired: bool = False
    is_not_yet_valid: bool = False
    is_self_signed: bool = False


@dataclass
class TLSInfo:
    """What was learned about a TLS connection."""

    version: TLSVersion = TLSVersion(0)
    record_version: TLSVersion = TLSVersion(0)
    client_hello: Optional[TLSClientHello] = None
    server_hello: Optional[TLSServerHello] = None
    certificates: List[TLSCertificateInfo] = field(default_factory=list)
    ja3: str = ""
    ja3_digest: str = ""
    ja3s: str = ""
    ja3s_digest: str = ""
    encrypted: bool = False
    alpn: str = ""
    timestamp: Optional[datetime] = None
    is_client_hello: bool = False
    is_server_hello: bool = False
    has_application_data: bool = False
    alert_level: int = 0
    alert_description: int = 0

    def sni(self) -> str:
        """The Server Name Indication, or an empty string."""
        return self.client_hello.sni if self.client_hello is not None else ""


_SIGNATURE_NAMES = {
    SignatureAlgorithmOID.RSA_WITH_MD5: "MD5-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA1: "SHA1-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "SHA256-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "SHA384-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "SHA512-RSA",
    SignatureAlgorithmOID.RSASSA_PSS: "RSASSA-PSS",
    SignatureAlgorithmOID.DSA_WITH_SHA1: "DSA-SHA1",
    SignatureAlgorithmOID.DSA_WITH_SHA256: "DSA-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: "ECDSA-SHA1",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ECDSA-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ECDSA-SHA384",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "ECDSA-SHA512",
    SignatureAlgorithmOID.ED25519: "Ed25519",
    SignatureAlgorithmOID.ED448: "Ed448",
}


def _first_attribute(name: x509.Name, oid: x509.ObjectIdentifier) -> str:
    attributes = name.get_attributes_for_oid(oid)
    if not attributes:
        return ""
    value = attributes[0].value
    return value if isinstance(value, str) else bytes(value).decode("utf-8", "replace")


def _public_key_algorithm(cert: x509.Certificate) -> str:
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return "RSA"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return "ECDSA"
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "Ed25519"
    if isinstance(key, ed448.Ed448PublicKey):
        return "Ed448"
    if isinstance(key, dsa.DSAPublicKey):
        return "DSA"
    return "Unknown"


def _validity(cert: x509.Certificate, attr: str) -> datetime:
    aware = getattr(cert, f"{attr}_utc", None)
    if aware is not None:
        return aware
    return getattr(cert, attr).replace(tzinfo=timezone.utc)


def _extension_value(cert: x509.Certificate, oid: x509.ObjectIdentifier):
    try:
        return cert.extensions.get_extension_for_oid(oid).value
    except x509.ExtensionNotFound:
        return None


def tls_certificate_info(cert: Optional[x509.Certificate]) -> Optional[TLSCertificateInfo]:
    """Summarise a certificate; ``None`` gives ``None``."""
    if cert is None:
        return None

    dns_names: List[str] = []
    ip_addresses: List[str] = []
    san = _extension_value(cert, ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
    if san is not None:
        dns_names = list(san.get_values_for_type(x509.DNSName))
        ip_addresses = [
            str(ip)
            for ip in san.get_values_for_type(x509.IPAddress)
            if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address))
        ]

    constraints = _extension_value(cert, ExtensionOID.BASIC_CONSTRAINTS)
    is_ca = bool(constraints.ca) if constraints is not None else False

    subject = cert.subject.rfc4514_string()
    issuer = cert.issuer.rfc4514_string()
    not_before = _validity(cert, "not_valid_before")
    not_after = _validity(cert, "not_valid_after")
    now = datetime.now(timezone.utc)
    sig_oid = cert.signature_algorithm_oid

    return TLSCertificateInfo(
        common_name=_first_attribute(cert.subject, NameOID.COMMON_NAME),
        subject=subject,
        organization=_first_attribute(cert.subject, NameOID.ORGANIZATION_NAME),
        sans=dns_names + ip_addresses,
        dns_names=dns_names,
        ip_addresses=ip_addresses,
        issuer_cn=_first_attribute(cert.issuer, NameOID.COMMON_NAME),
        issuer=issuer,
        issuer_org=_first_attribute(cert.issuer, NameOID.ORGANIZATION_NAME),
        not_before=not_before,
        not_after=not_after,
        public_key_algorithm=_public_key_algorithm(cert),
        signature_algorithm=_SIGNATURE_NAMES.get(sig_oid, sig_oid.dotted_string),
        sha1_fingerprint=cert.fingerprint(hashes.SHA1()).hex().upper(),
        sha256_fingerprint=cert.fingerprint(hashes.SHA256()).hex().upper(),
        is_ca=is_ca,
        serial_number=str(cert.serial_number),
        is_expired=now > not_after,
        is_not_yet_valid=now < not_before,
        is_self_signed=subject == issuer,
    )