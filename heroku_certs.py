#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# heroku_certs.py: manage SNI and SSL Endpoint certificates attached to Heroku apps.
#
# Features:
#  - YAML config (-C/--config) merging with CLI arguments and HEROKU_API_KEY
#  - certs, certs:info, certs:add, certs:update, certs:rollback, certs:remove
#  - Automatic SNI vs. SSL Endpoint selection when adding a certificate
#  - Endpoint resolution by --name or --endpoint with strict ambiguity checks
#  - Trust chain repair through SSL Doctor (skip with --bypass)
#  - certs:chain / certs:key helpers backed by SSL Doctor
#  - certs:generate: local RSA key + CSR or self-signed certificate
#  - Confirmation for destructive actions (--confirm APP)
#  - Plain log file with --log FILE and --log-level {standard,debug}
#  - Operation correlation IDs and secret scrubbing in logs
#
# Version: 1.0.0
#
# MIT License
# Copyright (c) 2025 heroku-certs contributors

import argparse
import datetime
import json
import os
import re
import sys
import urllib.parse
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Dict, Any, List, Union

# Dependency checking with better error messages
missing_msgs = []

try:
    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import rsa
    from cryptography.x509.oid import NameOID
except ImportError as e:
    missing_msgs.append(("[cryptography]", "pip3 install cryptography", "sudo apt-get install python3-cryptography", str(e)))

try:
    import yaml as yml
except ImportError:
    yml = None

try:
    import requests
    from requests.adapters import HTTPAdapter
    from urllib3.util.retry import Retry
except ImportError as e:
    missing_msgs.append(("[requests]", "pip3 install requests", "sudo apt-get install python3-requests", str(e)))

if missing_msgs:
    for pkg, pip_hint, apt_hint, error in missing_msgs:
        print(f"[!] Missing required Python module: {pkg}")
        print(f"    pip:   {pip_hint}")
        print(f"    apt:   {apt_hint}")
        print(f"    error: {error}")
    sys.exit(1)

VERSION = "1.0.0"
PROG = "heroku-certs"

DEFAULT_API_URL = "https://api.heroku.com"
DEFAULT_SSL_DOCTOR_URL = "https://ssl-doctor.herokuapp.com"
DEFAULT_ACCEPT = "application/vnd.heroku+json; version=3"
ADDON_REQUIRED_ID = "ssl_endpoint_addon_required"

# Prefix used by the Heroku CLI for errors and warnings on stderr
MARKER = " ▸    "

SNI_ROLLBACK_MESSAGE = "SNI Endpoints cannot be rolled back, please update with a new cert."

# ---------------------------
# Configuration & Validation
# ---------------------------

class LogLevel(Enum):
    """Supported log levels."""
    STANDARD = "standard"
    DEBUG = "debug"

@dataclass
class Config:
    """Configuration container with validation."""
    api_url: str = DEFAULT_API_URL
    ssl_doctor_url: str = DEFAULT_SSL_DOCTOR_URL
    token: Optional[str] = None
    timeout_connect: int = 5
    timeout_read: int = 30
    log: Optional[str] = None
    log_level: str = "standard"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        for label in ("api_url", "ssl_doctor_url"):
            url = getattr(self, label)
            if not isinstance(url, str) or not re.match(r"^https?://[^/]+", url):
                raise ValueError(f"{label} must be an http(s) URL, got: {url}")
            setattr(self, label, url.rstrip("/"))

        if not isinstance(self.timeout_connect, int) or self.timeout_connect <= 0:
            raise ValueError(f"timeout_connect must be positive, got: {self.timeout_connect}")

        if not isinstance(self.timeout_read, int) or self.timeout_read <= 0:
            raise ValueError(f"timeout_read must be positive, got: {self.timeout_read}")

        if self.log_level not in [level.value for level in LogLevel]:
            raise ValueError(f"log_level must be one of {[level.value for level in LogLevel]}, got: {self.log_level}")

        if self.log:
            self.log = str(Path(self.log).expanduser().resolve())

    @property
    def timeouts(self) -> Tuple[int, int]:
        """Return (connect, read) timeouts for requests."""
        return (self.timeout_connect, self.timeout_read)

# ---------------------------
# Custom Exceptions
# ---------------------------

class HerokuCertsError(Exception):
    """Base exception for heroku-certs errors."""
    pass

class ConfigurationError(HerokuCertsError):
    """Configuration validation error."""
    pass

class CertificateError(HerokuCertsError):
    """Local certificate or key file error."""
    pass

class APIError(HerokuCertsError):
    """Heroku Platform API or transport error."""

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body

    @property
    def error_id(self) -> Optional[str]:
        """Return the structured error id from the response body, if any."""
        if isinstance(self.body, dict):
            return self.body.get("id")
        return None

class RepairError(HerokuCertsError):
    """SSL Doctor rejected the certificate material. Message is the remote body verbatim."""
    pass

class UsageError(HerokuCertsError):
    """Invalid combination of command line flags."""
    pass

class ConflictingFlagsError(UsageError):
    pass

class MissingFlagError(UsageError):
    pass

class AddonRequiredError(UsageError):
    pass

class ResolutionError(HerokuCertsError):
    """No single endpoint could be selected for the operation."""
    pass

class RecordNotFoundError(ResolutionError):
    def __init__(self):
        super().__init__("Record not found.")

class AmbiguousNameError(ResolutionError):
    def __init__(self, name: str):
        super().__init__(f"More than one endpoint matches {name}, please file a support ticket")

class AmbiguousEndpointError(ResolutionError):
    def __init__(self):
        super().__init__("Must pass --name when more than one endpoint matches --endpoint")

class MustSpecifyError(ResolutionError):
    def __init__(self):
        super().__init__("Must pass --name or --endpoint")

class NoEndpointsError(ResolutionError):
    def __init__(self, app: Optional[str]):
        super().__init__(f"{app or 'This app'} has no SSL certificates.")

class KindMismatchError(HerokuCertsError):
    """Operation is not available for the endpoint's kind."""
    pass

class ConfirmationError(HerokuCertsError):
    """Destructive action was not confirmed."""
    pass

# ---------------------------
# Logging
# ---------------------------

class Logger:
    """File logger with operation tracking and secret scrubbing."""

    SCRUB_PATTERNS = [
        # API tokens
        (r"(Bearer\s+)[A-Za-z0-9._\-]+=*", r"\1<REDACTED>"),
        (r"([\"']token[\"']\s*:\s*[\"']).+?([\"'])", r"\1<REDACTED>\2"),
        (r"(Authorization[\"']?\s*:\s*[\"']?Bearer\s+)[^\s\"']+", r"\1<REDACTED>"),
        # Certificate material in request bodies
        (r"([\"']private_key[\"']\s*:\s*[\"']).+?([\"'])", r"\1<REDACTED>\2"),
        (r"([\"']certificate_chain[\"']\s*:\s*[\"']).+?([\"'])", r"\1<CERTIFICATE-REDACTED>\2"),
        # Raw PEM blocks
        (r"-----BEGIN ([A-Z ]*)PRIVATE KEY-----.*?-----END \1PRIVATE KEY-----", "<PRIVATE-KEY-REDACTED>"),
        (r"-----BEGIN CERTIFICATE-----[^-]*-----END CERTIFICATE-----", "<CERTIFICATE-REDACTED>"),
    ]

    def __init__(self, path: Optional[str], level: LogLevel):
        self.path = path
        self.level = level
        self.fp = None
        self.operation_id: Optional[str] = None

        if self.path:
            self._open_log_file()

    def _open_log_file(self):
        """Open log file; a log that cannot be opened never blocks the command."""
        try:
            log_path = Path(self.path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self.fp = open(log_path, "a", encoding="utf-8")
        except OSError as e:
            print(f"[!] Could not open log file '{self.path}': {e}", file=sys.stderr)
            self.fp = None

    def set_operation_id(self, operation_id: str):
        """Set operation ID for correlation."""
        self.operation_id = operation_id

    def _ts(self) -> str:
        return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def _scrub(self, s: Union[str, Dict, Any]) -> str:
        """Scrub sensitive information from log messages."""
        if not isinstance(s, str):
            try:
                s = json.dumps(s, default=str)
            except (TypeError, ValueError):
                s = str(s)

        for pattern, replacement in self.SCRUB_PATTERNS:
            s = re.sub(pattern, replacement, s, flags=re.IGNORECASE | re.DOTALL)

        return s

    def _format_message(self, level: str, msg: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Format log message with operation correlation."""
        op_prefix = f"[{self.operation_id[:8]}] " if self.operation_id else ""

        if self.level == LogLevel.DEBUG and context:
            formatted_msg = f"{op_prefix}{msg} | context={json.dumps(context, default=str)}"
        else:
            formatted_msg = f"{op_prefix}{msg}"

        return f"{self._ts()} {level.upper()} {self._scrub(formatted_msg)}"

    def _write(self, level: str, msg: str, context: Optional[Dict[str, Any]] = None):
        if not self.fp:
            return

        try:
            self.fp.write(self._format_message(level, msg, context) + "\n")
            self.fp.flush()
        except OSError:
            # Fail silently for logging errors
            pass

    def info(self, msg: str, context: Optional[Dict[str, Any]] = None):
        self._write("info", msg, context)

    def warn(self, msg: str, context: Optional[Dict[str, Any]] = None):
        self._write("warn", msg, context)

    def error(self, msg: str, context: Optional[Dict[str, Any]] = None):
        self._write("error", msg, context)

    def debug(self, msg: str, context: Optional[Dict[str, Any]] = None):
        if self.level == LogLevel.DEBUG:
            self._write("debug", msg, context)

    def close(self):
        """Close log file."""
        if self.fp:
            self.fp.close()
            self.fp = None

# ---------------------------
# Console Output
# ---------------------------

class Console:
    """Terminal output in the Heroku CLI conventions.

    Progress and diagnostics go to stderr, results go to stdout.
    """

    @staticmethod
    @contextmanager
    def action(message: str):
        """Print "<message>... " and finish the line with "done" or "!!!"."""
        sys.stderr.write(f"{message}... ")
        sys.stderr.flush()
        try:
            yield
        except BaseException:
            sys.stderr.write("!!!\n")
            sys.stderr.flush()
            raise
        sys.stderr.write("done\n")
        sys.stderr.flush()

    @staticmethod
    def warn(msg: str):
        for line in msg.splitlines() or [""]:
            print(f"{MARKER}{line}", file=sys.stderr)

    @staticmethod
    def error(msg: str):
        for line in msg.splitlines() or [""]:
            print(f"{MARKER}{line}", file=sys.stderr)

    @staticmethod
    def confirm_app(app: str, confirm: Optional[str], message: str) -> None:
        """Require the operator to confirm a destructive action by typing the app name."""
        if confirm is not None:
            if confirm == app:
                return
            raise ConfirmationError(f"Confirmation {confirm} did not match {app}. Aborted.")

        Console.warn(f"WARNING: {message}")
        Console.warn(f"To proceed, type {app} or re-run this command with --confirm {app}")
        try:
            answer = input("\n> ").strip()
        except EOFError:
            raise ConfirmationError(f"No confirmation received for {app}. Aborted.")
        if answer != app:
            raise ConfirmationError(f"Confirmation {answer} did not match {app}. Aborted.")

# ---------------------------
# Data Model
# ---------------------------

class EndpointKind(Enum):
    """Certificate binding mechanism. Fixed when the endpoint is created."""
    SNI = "SNI"
    SSL = "SSL"

    @property
    def collection(self) -> str:
        return "sni-endpoints" if self is EndpointKind.SNI else "ssl-endpoints"

    @property
    def variant(self) -> str:
        return "sni_ssl_cert" if self is EndpointKind.SNI else "ssl_cert"

    @property
    def accept(self) -> str:
        return f"{DEFAULT_ACCEPT}.{self.variant}"

def _as_tuple(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)

@dataclass(frozen=True)
class Certificate:
    """Certificate installed on an endpoint, as reported by the platform."""
    expires_at: Optional[str] = None
    ca_signed: Optional[bool] = None
    domains: Tuple[str, ...] = ()
    starts_at: Optional[str] = None
    issuer: Optional[str] = None
    subject: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Certificate":
        return cls(
            expires_at=data.get("expires_at"),
            ca_signed=data.get("ca_signed?"),
            domains=_as_tuple(data.get("cert_domains")),
            starts_at=data.get("starts_at"),
            issuer=data.get("issuer"),
            subject=data.get("subject"),
        )

@dataclass(frozen=True)
class Endpoint:
    """A certificate binding on an app."""
    kind: EndpointKind
    name: Optional[str] = None
    cname: Optional[str] = None
    certificate: Optional[Certificate] = None
    warnings: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_api(cls, data: Dict[str, Any], kind: EndpointKind) -> "Endpoint":
        """Build an endpoint from an API payload; ``kind`` comes from the collection it was read from."""
        cert = data.get("ssl_cert")
        return cls(
            kind=kind,
            name=data.get("name") or None,
            cname=data.get("cname") or None,
            certificate=Certificate.from_api(cert) if isinstance(cert, dict) else None,
            warnings=_parse_warnings(data.get("warnings")),
        )

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.cname

    @property
    def label(self) -> str:
        """Human readable "name (cname)" used in progress messages."""
        if self.name and self.cname:
            return f"{self.name} ({self.cname})"
        return self.display_name or "(unnamed)"

    @property
    def ref(self) -> Optional[str]:
        """Path identifier: SNI endpoints are addressed by name, SSL endpoints by cname."""
        return self.name if self.kind is EndpointKind.SNI else self.cname

def _parse_warnings(raw: Any) -> Tuple[Tuple[str, str], ...]:
    """Normalize the advisory ``warnings`` field into (field, message) pairs."""
    pairs: List[Tuple[str, str]] = []
    if isinstance(raw, dict):
        for fld, messages in raw.items():
            if messages is None:
                continue
            if not isinstance(messages, (list, tuple)):
                messages = [messages]
            for message in messages or []:
                pairs.append((str(fld), str(message)))
    elif isinstance(raw, list):
        for message in raw:
            pairs.append(("", str(message)))
    elif isinstance(raw, str) and raw:
        pairs.append(("", raw))
    return tuple(pairs)

@dataclass(frozen=True)
class CertificateMaterial:
    """Certificate chain and private key, always handled as a pair."""
    chain: str
    key: str

@dataclass(frozen=True)
class ResolutionQuery:
    """Operator supplied endpoint selector."""
    name: Optional[str] = None
    cname: Optional[str] = None

# ---------------------------
# Certificate Material
# ---------------------------

class CertificateLoader:
    """Read certificate material from disk and generate keys/CSRs locally."""

    SUBJECT_OIDS = {
        "C": NameOID.COUNTRY_NAME,
        "ST": NameOID.STATE_OR_PROVINCE_NAME,
        "L": NameOID.LOCALITY_NAME,
        "O": NameOID.ORGANIZATION_NAME,
        "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
        "CN": NameOID.COMMON_NAME,
        "emailAddress": NameOID.EMAIL_ADDRESS,
    }

    @staticmethod
    def load_file(path: str) -> str:
        """Load file content with validation."""
        file_path = Path(path).expanduser()

        if not file_path.exists():
            raise CertificateError(f"File not found: {path}")

        if not file_path.is_file():
            raise CertificateError(f"Path is not a file: {path}")

        try:
            with open(file_path, "rb") as f:
                content = f.read().decode("utf-8")
        except UnicodeDecodeError as e:
            raise CertificateError(f"File encoding error {path}: {e}")
        except OSError as e:
            raise CertificateError(f"Failed to read file {path}: {e}")

        if not content.strip():
            raise CertificateError(f"File is empty: {path}")

        return content

    @staticmethod
    def load_material(crt_path: str, key_path: str) -> CertificateMaterial:
        return CertificateMaterial(
            chain=CertificateLoader.load_file(crt_path),
            key=CertificateLoader.load_file(key_path),
        )

    @staticmethod
    def file_base(domain: str) -> str:
        """File name base for a domain: wildcard prefix dropped, unsafe characters replaced."""
        base = re.sub(r"^\*\.", "", domain.strip())
        base = re.sub(r"[^A-Za-z0-9._-]", "-", base)
        return base or "cert"

    @staticmethod
    def parse_subject(subject: str) -> "x509.Name":
        """Parse an OpenSSL style subject such as ``/C=US/O=Acme/CN=example.com``."""
        attributes = []
        for part in subject.strip().strip("/").split("/"):
            if not part:
                continue
            if "=" not in part:
                raise CertificateError(f"Invalid subject component: {part}")
            key, value = part.split("=", 1)
            oid = CertificateLoader.SUBJECT_OIDS.get(key.strip())
            if oid is None:
                raise CertificateError(f"Unsupported subject attribute: {key.strip()}")
            try:
                attributes.append(x509.NameAttribute(oid, value.strip()))
            except ValueError as e:
                raise CertificateError(f"Invalid subject attribute {key.strip()}: {e}")

        if not attributes:
            raise CertificateError("Subject is empty")

        return x509.Name(attributes)

    @staticmethod
    def build_subject(domain: str, subject: Optional[str] = None, owner: Optional[str] = None,
                      country: Optional[str] = None, area: Optional[str] = None,
                      city: Optional[str] = None) -> "x509.Name":
        """Build the certificate subject from --subject or from the individual fields."""
        if subject:
            return CertificateLoader.parse_subject(subject)

        parts = []
        for key, value in (("C", country), ("ST", area), ("L", city), ("O", owner)):
            if value:
                parts.append(f"{key}={value}")
        parts.append(f"CN={domain}")
        return CertificateLoader.parse_subject("/" + "/".join(parts))

    @staticmethod
    def generate(domain: str, subject: "x509.Name", keysize: int = 2048,
                 selfsigned: bool = False, days: int = 365) -> Tuple[str, str]:
        """Generate an RSA key and either a CSR or a self-signed certificate.

        Returns (key_pem, csr_or_certificate_pem).
        """
        try:
            key = rsa.generate_private_key(public_exponent=65537, key_size=keysize)
        except ValueError as e:
            raise CertificateError(f"Failed to generate key: {e}")

        san = x509.SubjectAlternativeName([x509.DNSName(domain)])

        if selfsigned:
            now = datetime.datetime.now(datetime.timezone.utc)
            signed = (
                x509.CertificateBuilder()
                .subject_name(subject)
                .issuer_name(subject)
                .public_key(key.public_key())
                .serial_number(x509.random_serial_number())
                .not_valid_before(now)
                .not_valid_after(now + datetime.timedelta(days=days))
                .add_extension(san, critical=False)
                .sign(key, hashes.SHA256())
            )
        else:
            signed = (
                x509.CertificateSigningRequestBuilder()
                .subject_name(subject)
                .add_extension(san, critical=False)
                .sign(key, hashes.SHA256())
            )

        key_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return key_pem.decode("ascii"), signed.public_bytes(serialization.Encoding.PEM).decode("ascii")

# ---------------------------
# Configuration Management
# ---------------------------

class ConfigManager:
    """Handle configuration loading and validation."""

    @staticmethod
    def load_yaml_config(path: Optional[str]) -> Dict[str, Any]:
        """Load YAML configuration file."""
        if not path:
            return {}

        if yml is None:
            raise ConfigurationError(
                "YAML config requested but PyYAML is not installed.\n"
                "    pip:  pip3 install pyyaml\n"
                "    apt:  sudo apt-get install python3-yaml"
            )

        config_path = Path(path).expanduser().resolve()

        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yml.safe_load(f) or {}
        except (OSError, yml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load config file {path}: {e}")

        if not isinstance(config, dict):
            raise ConfigurationError("Config file must contain a YAML dictionary")

        return config

    @staticmethod
    def merge_args_with_config(args: argparse.Namespace, cfg: Dict[str, Any]) -> Config:
        """Merge config file, environment and CLI arguments (later sources win)."""
        valid_keys = set(Config.__annotations__.keys())

        unknown_keys = set(cfg.keys()) - valid_keys
        if unknown_keys:
            Console.warn(f"Warning: Unknown config keys ignored: {', '.join(sorted(unknown_keys))}")

        env = {}
        if os.environ.get("HEROKU_API_KEY"):
            env["token"] = os.environ["HEROKU_API_KEY"]

        args_dict = {}
        for key, value in vars(args).items():
            if key not in valid_keys:
                continue
            if value is not None and value != "":
                args_dict[key] = value

        merged = {k: v for k, v in cfg.items() if k in valid_keys}
        merged.update(env)
        merged.update(args_dict)

        try:
            return Config(**merged)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(str(e))

# ---------------------------
# HTTP Clients
# ---------------------------

class BearerAuth(requests.auth.AuthBase):
    """Attach an API token as a bearer credential."""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, r):
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r

def build_session(token: Optional[str] = None) -> "requests.Session":
    """Build a requests session. Nothing is retried automatically."""
    session = requests.Session()
    session.headers.update({"User-Agent": f"{PROG}/{VERSION}"})

    # Without a token requests falls back to the ~/.netrc entry written by the Heroku CLI
    if token:
        session.auth = BearerAuth(token)

    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False), pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session

def _transport_error(exc: Exception) -> APIError:
    """Translate a requests exception into an APIError."""
    if isinstance(exc, requests.exceptions.SSLError):
        detail = "certificate verify failed" if "CERTIFICATE_VERIFY_FAILED" in str(exc) else "TLS/SSL error"
        return APIError(f"TLS verification failed: {detail}")
    if isinstance(exc, requests.exceptions.Timeout):
        return APIError(f"Request timeout: {exc}")
    if isinstance(exc, requests.exceptions.ConnectionError):
        return APIError(f"Connection error: {exc}")
    return APIError(f"Request failed: {exc}")

class HerokuAPI:
    """Heroku Platform API client."""

    def __init__(self, config: Config, logger: Logger):
        self.config = config
        self.logger = logger
        self.base_url = config.api_url
        self.session = build_session(config.token)

    def request(self, method: str, path: str, headers: Optional[Dict[str, str]] = None,
                json_body: Optional[Dict[str, Any]] = None) -> Tuple[int, Any]:
        """Make API request with logging. Returns (status, decoded body)."""
        url = f"{self.base_url}{path}"

        log_json = dict(json_body) if json_body else {}
        for secret in ("private_key", "certificate_chain"):
            if secret in log_json:
                log_json[secret] = "<REDACTED>"

        request_headers = {"Accept": DEFAULT_ACCEPT}
        request_headers.update(headers or {})

        self.logger.debug(f"HTTP {method} {path}", context={"headers": request_headers, "json": log_json})

        try:
            response = self.session.request(
                method, url,
                headers=request_headers,
                json=json_body,
                timeout=self.config.timeouts,
            )
        except requests.exceptions.RequestException as e:
            raise _transport_error(e) from e

        code = response.status_code

        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        if code >= 400:
            self.logger.debug(f"HTTP {method} {path} -> {code}", context=data)
        else:
            self.logger.debug(f"HTTP {method} {path} -> {code}")

        return code, data

    @staticmethod
    def error_for(code: int, data: Any) -> APIError:
        """Build an APIError carrying the remote status and body."""
        message = None
        if isinstance(data, dict):
            message = data.get("message") or data.get("error") or data.get("raw")
        return APIError(f"{message or 'Request failed'} (HTTP {code})", status=code, body=data)

class SSLDoctor:
    """Client for the SSL Doctor trust chain resolution service."""

    def __init__(self, config: Config, logger: Logger):
        self.config = config
        self.logger = logger
        self.base_url = config.ssl_doctor_url
        self.session = build_session()

    def _post(self, path: str, parts: List[str]) -> "requests.Response":
        body = "\n".join(parts).encode("utf-8")
        self.logger.debug(f"HTTP POST {self.base_url}{path}", context={"bytes": len(body)})

        try:
            response = self.session.request(
                "POST", f"{self.base_url}{path}",
                headers={"Content-Type": "application/octet-stream"},
                data=body,
                timeout=self.config.timeouts,
            )
        except requests.exceptions.RequestException as e:
            raise _transport_error(e) from e

        self.logger.debug(f"HTTP POST {path} -> {response.status_code}")

        if response.status_code >= 400:
            self.logger.error(f"SSL Doctor rejected input: {response.text}")
            raise RepairError(response.text)

        return response

    @staticmethod
    def _json(response: "requests.Response") -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            raise RepairError(f"Unexpected response from SSL Doctor: {response.text}")
        if not isinstance(data, dict):
            raise RepairError(f"Unexpected response from SSL Doctor: {response.text}")
        return data

    def resolve_chain_and_key(self, material: CertificateMaterial) -> CertificateMaterial:
        """Return the repaired chain and matching key for ``material``."""
        data = self._json(self._post("/resolve-chain-and-key", [material.chain, material.key]))
        if "pem" not in data or "key" not in data:
            raise RepairError(f"Unexpected response from SSL Doctor: {json.dumps(data)}")
        return CertificateMaterial(chain=data["pem"], key=data["key"])

    def resolve_chain(self, certs: List[str]) -> str:
        """Return the ordered, complete chain for the given certificates."""
        return self._post("/resolve-chain", certs).text

    def resolve_key(self, cert: str, keys: List[str]) -> str:
        """Return the key among ``keys`` that signs ``cert``."""
        data = self._json(self._post("/resolve-chain-and-key", [cert] + keys))
        if "key" not in data:
            raise RepairError(f"Unexpected response from SSL Doctor: {json.dumps(data)}")
        return data["key"]

# ---------------------------
# Request Dispatch Table
# ---------------------------

class Operation(Enum):
    LIST = "list"
    INFO = "info"
    ADD = "add"
    UPDATE = "update"
    ROLLBACK = "rollback"
    REMOVE = "remove"

@dataclass(frozen=True)
class RequestShape:
    """Verb, path template and headers for one (operation, kind) pair."""
    method: str
    path: str
    headers: Tuple[Tuple[str, str], ...]

    def build_path(self, app: str, ref: Optional[str] = None) -> str:
        return self.path.format(
            app=urllib.parse.quote(app, safe=""),
            ref=urllib.parse.quote(ref or "", safe=""),
        )

def _shapes() -> Dict[Tuple[Operation, EndpointKind], RequestShape]:
    table = {}
    for kind in EndpointKind:
        accept = (("Accept", kind.accept),)
        collection = f"/apps/{{app}}/{kind.collection}"
        table[(Operation.LIST, kind)] = RequestShape("GET", collection, accept)
        table[(Operation.ADD, kind)] = RequestShape("POST", collection, accept)
        table[(Operation.INFO, kind)] = RequestShape("GET", collection + "/{ref}", accept)
        table[(Operation.UPDATE, kind)] = RequestShape("PATCH", collection + "/{ref}", accept)
        table[(Operation.REMOVE, kind)] = RequestShape("DELETE", collection + "/{ref}", accept)

    # Only dedicated endpoints keep a certificate history
    table[(Operation.ROLLBACK, EndpointKind.SSL)] = RequestShape(
        "POST", "/apps/{app}/ssl-endpoints/{ref}/rollback",
        (("X-Heroku-API-Version", "2"), ("Accept", "application/json")),
    )
    return table

REQUEST_SHAPES = _shapes()

def shape_for(operation: Operation, kind: EndpointKind) -> RequestShape:
    """Look up the request shape, rejecting operations a kind does not support."""
    shape = REQUEST_SHAPES.get((operation, kind))
    if shape is None:
        if operation is Operation.ROLLBACK and kind is EndpointKind.SNI:
            raise KindMismatchError(SNI_ROLLBACK_MESSAGE)
        raise KindMismatchError(f"{kind.value} Endpoints do not support {operation.value}.")
    return shape

# ---------------------------
# Endpoint Directory
# ---------------------------

class EndpointDirectory:
    """Fetch the endpoints attached to an app."""

    def __init__(self, api: HerokuAPI, logger: Logger):
        self.api = api
        self.logger = logger

    def _list(self, app: str, kind: EndpointKind) -> List[Endpoint]:
        shape = shape_for(Operation.LIST, kind)
        code, data = self.api.request(shape.method, shape.build_path(app), headers=dict(shape.headers))
        if code >= 400:
            raise HerokuAPI.error_for(code, data)
        if not isinstance(data, list):
            raise APIError(f"Unexpected {kind.collection} listing for {app}", status=code, body=data)
        return [Endpoint.from_api(item, kind) for item in data if isinstance(item, dict)]

    def list_sni(self, app: str) -> List[Endpoint]:
        endpoints = self._list(app, EndpointKind.SNI)
        self.logger.debug(f"Found {len(endpoints)} SNI endpoint(s) on {app}")
        return endpoints

    def list_ssl(self, app: str) -> Tuple[List[Endpoint], bool]:
        """Return (endpoints, addon_installed).

        A missing SSL Endpoint add-on means the app has no dedicated-IP capability,
        which is reported as an empty listing instead of an error.
        """
        try:
            endpoints = self._list(app, EndpointKind.SSL)
        except APIError as e:
            if e.error_id == ADDON_REQUIRED_ID:
                self.logger.info(f"SSL Endpoint add-on not installed on {app}")
                return [], False
            raise
        self.logger.debug(f"Found {len(endpoints)} SSL endpoint(s) on {app}")
        return endpoints, True

# ---------------------------
# Endpoint Resolution
# ---------------------------

class EndpointResolver:
    """Select exactly one endpoint for an operation. Pure; no I/O."""

    @staticmethod
    def resolve(query: ResolutionQuery, sni_list: List[Endpoint], ssl_list: List[Endpoint],
                app: Optional[str] = None, require_name: bool = False) -> Endpoint:
        """Return the single endpoint selected by ``query``.

        --name wins over --endpoint. Names must be unique, so several matches point at a
        platform inconsistency rather than a user mistake. --endpoint prefers exact cname
        matches and falls back to substring matches. With neither, a lone endpoint is
        selected implicitly unless ``require_name`` is set.
        """
        everything = list(sni_list) + list(ssl_list)

        if query.name:
            matches = [e for e in everything if e.name is not None and e.name == query.name]
            if len(matches) > 1:
                raise AmbiguousNameError(query.name)
            if not matches:
                raise RecordNotFoundError()
            return matches[0]

        if query.cname:
            wanted = query.cname.lower()
            candidates = [e for e in everything if e.cname]
            matches = [e for e in candidates if e.cname.lower() == wanted]
            if not matches:
                matches = [e for e in candidates if wanted in e.cname.lower()]
            if len(matches) > 1:
                raise AmbiguousEndpointError()
            if not matches:
                raise RecordNotFoundError()
            return matches[0]

        if not everything:
            raise NoEndpointsError(app)
        if len(everything) > 1 or require_name:
            raise MustSpecifyError()
        return everything[0]

# ---------------------------
# Operation Dispatch
# ---------------------------

class OperationDispatcher:
    """Issue the single request an operation needs, shaped by the endpoint kind."""

    def __init__(self, api: HerokuAPI, logger: Logger):
        self.api = api
        self.logger = logger

    def choose_add_kind(self, app: str, sni: bool, dedicated: bool, directory: EndpointDirectory) -> EndpointKind:
        """Decide which kind of endpoint certs:add creates."""
        if sni and dedicated:
            raise ConflictingFlagsError("Must pass just one of --sni or --endpoint")

        _, addon_installed = directory.list_ssl(app)

        if not addon_installed:
            if dedicated:
                raise AddonRequiredError(
                    f"Cannot add an SSL Endpoint to {app}: the SSL Endpoint add-on is not installed. "
                    "Use --sni or install the add-on"
                )
            self.logger.info(f"Defaulting to SNI endpoint for {app}")
            return EndpointKind.SNI

        if sni:
            return EndpointKind.SNI
        if dedicated:
            return EndpointKind.SSL
        raise MissingFlagError("Must pass either --sni or --endpoint")

    def _send(self, operation: Operation, kind: EndpointKind, app: str, ref: Optional[str] = None,
              material: Optional[CertificateMaterial] = None) -> Tuple[int, Any]:
        shape = shape_for(operation, kind)
        path = shape.build_path(app, ref)
        body = None
        if material is not None:
            body = {"certificate_chain": material.chain, "private_key": material.key}

        self.logger.info(f"{operation.value} {kind.value} endpoint: {shape.method} {path}")
        code, data = self.api.request(shape.method, path, headers=dict(shape.headers), json_body=body)
        if code >= 400:
            self.logger.error(f"{operation.value} failed: HTTP {code}")
            raise HerokuAPI.error_for(code, data)
        return code, data

    def _endpoint(self, data: Any, kind: EndpointKind) -> Endpoint:
        if not isinstance(data, dict):
            raise APIError("Unexpected response body from the Heroku API", body=data)
        return Endpoint.from_api(data, kind)

    def add(self, app: str, kind: EndpointKind, material: CertificateMaterial) -> Endpoint:
        _, data = self._send(Operation.ADD, kind, app, material=material)
        return self._endpoint(data, kind)

    def update(self, app: str, endpoint: Endpoint, material: CertificateMaterial) -> Endpoint:
        _, data = self._send(Operation.UPDATE, endpoint.kind, app, endpoint.ref, material)
        return self._endpoint(data, endpoint.kind)

    def rollback(self, app: str, endpoint: Endpoint) -> Endpoint:
        _, data = self._send(Operation.ROLLBACK, endpoint.kind, app, endpoint.ref)
        return self._endpoint(data, endpoint.kind)

    def info(self, app: str, endpoint: Endpoint) -> Endpoint:
        _, data = self._send(Operation.INFO, endpoint.kind, app, endpoint.ref)
        return self._endpoint(data, endpoint.kind)

    def remove(self, app: str, endpoint: Endpoint) -> None:
        self._send(Operation.REMOVE, endpoint.kind, app, endpoint.ref)

# ---------------------------
# Presentation
# ---------------------------

class Presenter:
    """Render endpoints and certificates for the terminal."""

    @staticmethod
    def format_date(value: Optional[str]) -> str:
        if not value:
            return ""
        try:
            parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.timezone.utc)
        return parsed.astimezone(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    @staticmethod
    def certificate_details(endpoint: Endpoint, header: str) -> None:
        print(header)
        cert = endpoint.certificate
        if cert is None:
            print("No certificate installed.")
            return

        rows = [
            ("Common Name(s)", list(cert.domains)),
            ("Expires At", Presenter.format_date(cert.expires_at)),
            ("Issuer", cert.issuer or ""),
            ("Starts At", Presenter.format_date(cert.starts_at)),
            ("Subject", cert.subject or ""),
        ]
        width = max(len(label) for label, _ in rows) + 2
        for label, value in rows:
            values = value if isinstance(value, list) else [value]
            print(f"{label + ':':<{width}}{values[0] if values else ''}".rstrip())
            for extra in values[1:]:
                print(f"{'':<{width}}{extra}")

        if cert.ca_signed is True:
            print("SSL certificate is verified by a root authority.")
        elif cert.ca_signed is False:
            print("SSL certificate is self signed.")

    @staticmethod
    def display_warnings(endpoint: Endpoint) -> None:
        """Advisory warnings are printed alongside, never instead of, the result."""
        for fld, message in endpoint.warnings:
            Console.warn(f"WARNING: {' '.join(part for part in (fld, message) if part)}")

    @staticmethod
    def display_table(endpoints: List[Endpoint]) -> None:
        rows = []
        for e in endpoints:
            if e.certificate is None:
                continue
            trusted = ""
            if e.certificate.ca_signed is not None:
                trusted = "True" if e.certificate.ca_signed else "False"
            rows.append({
                "name": e.display_name or "",
                "cname": e.cname,
                "common_names": ", ".join(e.certificate.domains),
                "expires_at": Presenter.format_date(e.certificate.expires_at),
                "ca_signed": trusted,
                "type": e.kind.value,
            })

        columns = [("Name", "name")]
        if any(row["cname"] for row in rows):
            columns.append(("Endpoint", "cname"))
            for row in rows:
                row["cname"] = row["cname"] or "(Not applicable for SNI)"
        columns += [
            ("Common Name(s)", "common_names"),
            ("Expires", "expires_at"),
            ("Trusted", "ca_signed"),
            ("Type", "type"),
        ]

        widths = [max([len(label)] + [len(row[key]) for row in rows]) for label, key in columns]
        print("  ".join(label.ljust(w) for (label, _), w in zip(columns, widths)).rstrip())
        print("  ".join("─" * w for w in widths))
        for row in rows:
            print("  ".join(row[key].ljust(w) for (_, key), w in zip(columns, widths)).rstrip())

# ---------------------------
# Main Application
# ---------------------------

class CommandParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{MARKER}{message}\n")

class HerokuCerts:
    """Main application class."""

    def __init__(self):
        self.logger: Optional[Logger] = None
        self.config: Optional[Config] = None
        self.api: Optional[HerokuAPI] = None
        self.doctor: Optional[SSLDoctor] = None
        self.directory: Optional[EndpointDirectory] = None
        self.dispatcher: Optional[OperationDispatcher] = None

    def build_parser(self) -> argparse.ArgumentParser:
        """Build the command line parser."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("-C", "--config", help="YAML config file")
        common.add_argument("--log", help="Write a plain log to this file")
        common.add_argument("--log-level", dest="log_level", choices=["standard", "debug"],
                            help="Log verbosity when --log is used (default: standard)")
        common.add_argument("--timeout-connect", dest="timeout_connect", type=int)
        common.add_argument("--timeout-read", dest="timeout_read", type=int)

        app_opts = argparse.ArgumentParser(add_help=False)
        app_opts.add_argument("-a", "--app", required=True, help="app to run command against")

        select = argparse.ArgumentParser(add_help=False)
        select.add_argument("--name", help="name of the endpoint")
        select.add_argument("--endpoint", "--cname", dest="endpoint", metavar="CNAME",
                            help="cname of the endpoint")

        confirm = argparse.ArgumentParser(add_help=False)
        confirm.add_argument("--confirm", metavar="APP", help="confirm the destructive action for APP")

        material = argparse.ArgumentParser(add_help=False)
        material.add_argument("crt", metavar="CRT", help="certificate chain file (PEM)")
        material.add_argument("key", metavar="KEY", help="private key file (PEM)")
        material.add_argument("--bypass", action="store_true", help="bypass the trust chain completion step")

        parser = CommandParser(
            prog=PROG,
            description="Manage SSL certificates (SNI and SSL Endpoints) on Heroku apps.",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
        sub = parser.add_subparsers(dest="command", metavar="COMMAND")
        sub.required = True

        p = sub.add_parser("certs", parents=[common, app_opts], help="list SSL certificates for an app")
        p.set_defaults(handler=self.run_list)

        p = sub.add_parser("certs:info", parents=[common, app_opts, select],
                           help="show certificate information for an SSL certificate")
        p.set_defaults(handler=self.run_info)

        p = sub.add_parser("certs:add", parents=[common, app_opts, material],
                           help="add an SSL certificate to an app")
        p.add_argument("--sni", action="store_true", help="create an SNI endpoint")
        p.add_argument("--endpoint", action="store_true", help="create an SSL Endpoint (dedicated IP)")
        p.set_defaults(handler=self.run_add)

        p = sub.add_parser("certs:update", parents=[common, app_opts, material, select, confirm],
                           help="update an SSL certificate on an app")
        p.set_defaults(handler=self.run_update)

        p = sub.add_parser("certs:rollback", parents=[common, app_opts, select, confirm],
                           help="rollback an SSL Endpoint to its previous certificate")
        p.set_defaults(handler=self.run_rollback)

        p = sub.add_parser("certs:remove", parents=[common, app_opts, select, confirm],
                           help="remove an SSL certificate from an app")
        p.set_defaults(handler=self.run_remove)

        p = sub.add_parser("certs:chain", parents=[common],
                           help="print an ordered and complete chain for a certificate")
        p.add_argument("crts", metavar="CRT", nargs="+", help="certificate file(s)")
        p.set_defaults(handler=self.run_chain)

        p = sub.add_parser("certs:key", parents=[common],
                           help="print the correct key for the given certificate")
        p.add_argument("crt", metavar="CRT", help="certificate file")
        p.add_argument("keys", metavar="KEY", nargs="+", help="candidate key file(s)")
        p.set_defaults(handler=self.run_key)

        p = sub.add_parser("certs:generate", parents=[common],
                           help="generate a key and a CSR or self-signed certificate")
        p.add_argument("domain", metavar="DOMAIN")
        p.add_argument("--selfsigned", action="store_true",
                       help="generate a self-signed certificate instead of a CSR")
        p.add_argument("--keysize", type=int, default=2048, help="RSA key size in bits (default: 2048)")
        p.add_argument("--owner", help="organization name")
        p.add_argument("--country", help="country of owner, as a two letter ISO country code")
        p.add_argument("--area", help="sub-country area (state, province, etc.) of owner")
        p.add_argument("--city", help="city of owner")
        p.add_argument("--subject", help="specify entire certificate subject, e.g. /C=US/O=Acme/CN=example.com")
        p.add_argument("--output-dir", dest="output_dir", default=".", help="directory for generated files")
        p.set_defaults(handler=self.run_generate)

        return parser

    def parse_arguments(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse command line arguments."""
        return self.build_parser().parse_args(argv)

    def setup_logging(self, config: Config):
        log_level = LogLevel.DEBUG if config.log_level == "debug" else LogLevel.STANDARD
        self.logger = Logger(config.log, log_level)

    def setup_clients(self, config: Config):
        self.api = HerokuAPI(config, self.logger)
        self.doctor = SSLDoctor(config, self.logger)
        self.directory = EndpointDirectory(self.api, self.logger)
        self.dispatcher = OperationDispatcher(self.api, self.logger)

    # -- shared pipeline steps --

    def _resolve(self, args: argparse.Namespace) -> Endpoint:
        query = ResolutionQuery(name=args.name, cname=args.endpoint)
        sni_list = self.directory.list_sni(args.app)
        ssl_list, _ = self.directory.list_ssl(args.app)
        endpoint = EndpointResolver.resolve(query, sni_list, ssl_list, app=args.app)
        self.logger.info(f"Resolved {endpoint.kind.value} endpoint {endpoint.label}")
        return endpoint

    def _load_material(self, args: argparse.Namespace) -> CertificateMaterial:
        material = CertificateLoader.load_material(args.crt, args.key)
        if args.bypass:
            self.logger.info("Skipping trust chain resolution (--bypass)")
            return material
        with Console.action("Resolving trust chain"):
            return self.doctor.resolve_chain_and_key(material)

    # -- commands --

    def run_list(self, args: argparse.Namespace) -> None:
        sni_list = self.directory.list_sni(args.app)
        ssl_list, _ = self.directory.list_ssl(args.app)
        endpoints = sni_list + ssl_list

        if not any(e.certificate for e in endpoints):
            print(f"{args.app} has no SSL certificates.")
            print(f"Use {PROG} certs:add --app {args.app} CRT KEY to add one.")
            return

        Presenter.display_table(endpoints)

    def run_info(self, args: argparse.Namespace) -> None:
        endpoint = self._resolve(args)
        with Console.action(f"Fetching SSL Endpoint {endpoint.label} info for {args.app}"):
            current = self.dispatcher.info(args.app, endpoint)
        Presenter.certificate_details(current, "Certificate details:")

    def run_add(self, args: argparse.Namespace) -> None:
        kind = self.dispatcher.choose_add_kind(args.app, sni=args.sni, dedicated=args.endpoint,
                                               directory=self.directory)
        material = self._load_material(args)

        with Console.action(f"Adding SSL Endpoint to {args.app}"):
            endpoint = self.dispatcher.add(args.app, kind, material)

        Presenter.display_warnings(endpoint)
        if endpoint.cname:
            print(f"{args.app} now served by {endpoint.cname}")
        Presenter.certificate_details(endpoint, "Certificate details:")

    def run_update(self, args: argparse.Namespace) -> None:
        endpoint = self._resolve(args)
        Console.confirm_app(
            args.app, args.confirm,
            f"Potentially Destructive Action\n"
            f"This command will change the certificate of endpoint {endpoint.label} from {args.app}.",
        )
        material = self._load_material(args)

        with Console.action(f"Updating SSL Endpoint {endpoint.label} for {args.app}"):
            updated = self.dispatcher.update(args.app, endpoint, material)

        Presenter.display_warnings(updated)
        Presenter.certificate_details(updated, "Updated certificate details:")

    def run_rollback(self, args: argparse.Namespace) -> None:
        endpoint = self._resolve(args)
        shape_for(Operation.ROLLBACK, endpoint.kind)

        Console.confirm_app(
            args.app, args.confirm,
            f"Potentially Destructive Action\n"
            f"This command will change the certificate of endpoint {endpoint.label} from {args.app}.",
        )

        with Console.action(f"Rolling back SSL Endpoint {endpoint.label} for {args.app}"):
            restored = self.dispatcher.rollback(args.app, endpoint)

        Presenter.display_warnings(restored)
        Presenter.certificate_details(restored, "New active certificate details:")

    def run_remove(self, args: argparse.Namespace) -> None:
        endpoint = self._resolve(args)
        Console.confirm_app(
            args.app, args.confirm,
            f"Potentially Destructive Action\n"
            f"This command will remove the endpoint {endpoint.label} from {args.app}.",
        )

        with Console.action(f"Removing SSL Endpoint {endpoint.label} from {args.app}"):
            self.dispatcher.remove(args.app, endpoint)

        if endpoint.kind is EndpointKind.SSL:
            print("NOTE: Billing is still active. Remove SSL Endpoint add-on to stop billing.")

    def run_chain(self, args: argparse.Namespace) -> None:
        certs = [CertificateLoader.load_file(path) for path in args.crts]
        with Console.action("Resolving trust chain"):
            chain = self.doctor.resolve_chain(certs)
        print(chain, end="" if chain.endswith("\n") else "\n")

    def run_key(self, args: argparse.Namespace) -> None:
        cert = CertificateLoader.load_file(args.crt)
        keys = [CertificateLoader.load_file(path) for path in args.keys]
        with Console.action("Testing for signing key"):
            key = self.doctor.resolve_key(cert, keys)
        print(key, end="" if key.endswith("\n") else "\n")

    def run_generate(self, args: argparse.Namespace) -> None:
        subject = CertificateLoader.build_subject(
            args.domain, subject=args.subject, owner=args.owner,
            country=args.country, area=args.area, city=args.city,
        )
        key_pem, signed_pem = CertificateLoader.generate(
            args.domain, subject, keysize=args.keysize, selfsigned=args.selfsigned,
        )

        out_dir = Path(args.output_dir).expanduser()
        base = CertificateLoader.file_base(args.domain)
        key_path = out_dir / f"{base}.key"
        signed_path = out_dir / f"{base}.{'crt' if args.selfsigned else 'csr'}"

        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            key_path.write_text(key_pem, encoding="ascii")
            key_path.chmod(0o600)
            signed_path.write_text(signed_pem, encoding="ascii")
        except OSError as e:
            raise CertificateError(f"Failed to write generated files: {e}")

        self.logger.info(f"Generated {key_path} and {signed_path}")

        if args.selfsigned:
            print("Your key and self-signed certificate have been generated.")
            print("Next, run:")
            print(f"$ {PROG} certs:add --app APP {signed_path} {key_path}")
        else:
            print("Your key and certificate signing request have been generated.")
            print(f"Submit the CSR in '{signed_path}' to your preferred certificate authority.")
            print("When you've received your certificate, run:")
            print(f"$ {PROG} certs:add --app APP CERTFILE {key_path}")

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Main application entry point."""
        try:
            args = self.parse_arguments(argv)

            yaml_config = ConfigManager.load_yaml_config(args.config)
            self.config = ConfigManager.merge_args_with_config(args, yaml_config)

            self.setup_logging(self.config)
            self.logger.set_operation_id(str(uuid.uuid4()))
            self.logger.info(f"{args.command} app={getattr(args, 'app', None)} version={VERSION}")

            self.setup_clients(self.config)
            args.handler(args)

            self.logger.info("Certificate operation completed successfully")
            return 0

        except ConfigurationError as e:
            return self._fail(f"Configuration error: {e}")
        except CertificateError as e:
            return self._fail(f"Certificate error: {e}")
        except HerokuCertsError as e:
            return self._fail(str(e))
        except KeyboardInterrupt:
            print("\n[!] Interrupted by user", file=sys.stderr)
            return 130
        except Exception as e:
            return self._fail(f"Unexpected error: {e}")
        finally:
            if self.logger:
                self.logger.close()

    def _fail(self, message: str) -> int:
        Console.error(message)
        if self.logger:
            self.logger.error(message)
        return 1


def main():
    """Main entry point."""
    app = HerokuCerts()
    return app.run()


if __name__ == "__main__":
    sys.exit(main())
