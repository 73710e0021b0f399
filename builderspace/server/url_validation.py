"""URL validation for shared links.

A best-effort filter, not a safety guarantee.  A URL is accepted only if it:

- is at most ``MAX_URL_LENGTH`` characters and parses as an absolute URL,
- uses http or https,
- does not point at localhost, loopback, private or link-local addresses
  (literal hosts only -- no DNS resolution is performed),
- trips none of the phishing heuristics in :func:`check_security`.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from urllib.parse import SplitResult, urlsplit, urlunsplit

from pydantic import BaseModel

MAX_URL_LENGTH = 2048

ALLOWED_SCHEMES = frozenset({"http", "https"})
BLOCKED_SCHEMES = frozenset({"javascript", "data", "file", "ftp", "ftps", "telnet", "ssh", "vbscript"})

SHORTENER_DOMAINS = frozenset({"bit.ly", "tinyurl.com", "goo.gl", "ow.ly", "short.link", "t.co"})
SUSPICIOUS_TLDS = frozenset({"tk", "ml", "ga", "cf", "gq"})
MAX_HOST_DOTS = 4

_DOUBLE_ENCODING = re.compile(r"%25[0-9a-f]{2}", re.IGNORECASE)
_SECURITY_KEYWORDS = re.compile(r"login|signin|verify|account|secure|update|confirm", re.IGNORECASE)
_WHITESPACE = re.compile(r"[\s\x00-\x1f]")
_SCHEME = re.compile(r"^([a-z][a-z0-9+.-]*):", re.IGNORECASE)
_NUMERIC_HOST = re.compile(r"^(0x[0-9a-f]+|\d+)(\.(0x[0-9a-f]+|\d+)){0,3}$", re.IGNORECASE | re.ASCII)

# -- Threat labels -----------------------------------------------------------
THREAT_RAW_IP = "IP address detected (potential obfuscation)"
THREAT_SUBDOMAINS = "Excessive subdomains (potential phishing)"
THREAT_SHORTENER = "URL shortener detected"
THREAT_TLD = "Suspicious TLD"
THREAT_NON_ASCII = "Non-ASCII characters (potential homograph attack)"
THREAT_DOUBLE_ENCODING = "Double encoding detected"
THREAT_KEYWORDS = "Suspicious keywords detected"
THREAT_PROTOCOL_IN_PATH = "URL contains protocol in path (potential phishing)"
THREAT_CREDENTIALS = "Credentials in URL (potential domain hiding)"
THREAT_INVALID = "Invalid URL format"


class URLValidationResult(BaseModel):
    is_valid: bool
    sanitized_url: str | None = None
    error: str | None = None


class URLSecurityCheck(BaseModel):
    is_safe: bool
    threats: list[str]


class URLMetadata(BaseModel):
    hostname: str
    protocol: str
    title: str
    description: str
    is_secure: bool


def _parse(url: str) -> SplitResult | None:
    """Split *url*, returning ``None`` unless it is an absolute URL with a sane port."""
    if _WHITESPACE.search(url):
        return None
    try:
        parts = urlsplit(url)
        _ = parts.port  # raises on non-numeric or out-of-range ports
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts


def _host(hostname: str) -> str:
    """Lower-case *hostname* and drop IPv6 brackets and the root-label dot."""
    return hostname.lower().strip("[]").rstrip(".")


def _ip_host(hostname: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse *hostname* as an IP literal the way a browser resolves it.

    Besides dotted quads this covers the legacy IPv4 spellings that
    ``inet_aton`` accepts (``2130706433``, ``0x7f000001``, ``0177.0.0.1``,
    ``127.1``), which ``urlsplit`` leaves untouched.
    """
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        pass
    if not _NUMERIC_HOST.match(hostname):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(hostname))
    except OSError:
        return None


def is_local_or_private(hostname: str) -> bool:
    """True for localhost names and loopback, private, link-local or unspecified IPs."""
    hostname = _host(hostname)
    if hostname == "localhost" or hostname.endswith(".localhost"):
        return True
    ip = _ip_host(hostname)
    if ip is None:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_unspecified


def _threats(url: str, parts: SplitResult) -> list[str]:
    hostname = _host(parts.hostname or "")
    threats: list[str] = []

    if _ip_host(hostname) is not None:
        threats.append(THREAT_RAW_IP)
    if hostname.count(".") > MAX_HOST_DOTS:
        threats.append(THREAT_SUBDOMAINS)
    if any(hostname == domain or hostname.endswith("." + domain) for domain in SHORTENER_DOMAINS):
        threats.append(THREAT_SHORTENER)
    if hostname.rsplit(".", 1)[-1] in SUSPICIOUS_TLDS:
        threats.append(THREAT_TLD)
    if not hostname.isascii():
        threats.append(THREAT_NON_ASCII)
    if _DOUBLE_ENCODING.search(url):
        threats.append(THREAT_DOUBLE_ENCODING)
    if _SECURITY_KEYWORDS.search(f"{parts.path}?{parts.query}"):
        threats.append(THREAT_KEYWORDS)
    path = parts.path.lower()
    if "http://" in path or "https://" in path:
        threats.append(THREAT_PROTOCOL_IN_PATH)
    if parts.username is not None:
        threats.append(THREAT_CREDENTIALS)
    return threats


def check_security(url: str) -> URLSecurityCheck:
    """Run the phishing heuristics only (no protocol or private-range checks)."""
    trimmed = url.strip()
    parts = _parse(trimmed)
    if parts is None:
        return URLSecurityCheck(is_safe=False, threats=[THREAT_INVALID])
    threats = _threats(trimmed, parts)
    return URLSecurityCheck(is_safe=not threats, threats=threats)


def _normalize(parts: SplitResult) -> str:
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment))


def validate_url(url: str | None) -> URLValidationResult:
    """Validate *url* for storage as a shared link.

    On success ``sanitized_url`` holds the trimmed URL with scheme and host
    lower-cased.  On failure ``error`` is a user-facing reason.
    """
    trimmed = (url or "").strip()
    if not trimmed:
        return URLValidationResult(is_valid=False, error="URL cannot be empty")
    if len(trimmed) > MAX_URL_LENGTH:
        return URLValidationResult(is_valid=False, error=f"URL cannot exceed {MAX_URL_LENGTH} characters")

    scheme_match = _SCHEME.match(trimmed)
    scheme = scheme_match.group(1).lower() if scheme_match else ""
    if scheme in BLOCKED_SCHEMES:
        return URLValidationResult(is_valid=False, error=f"Protocol {scheme}: is not allowed for security reasons")
    if scheme and scheme not in ALLOWED_SCHEMES:
        return URLValidationResult(is_valid=False, error="URL must use http or https protocol")

    parts = _parse(trimmed)
    if parts is None:
        return URLValidationResult(is_valid=False, error="Invalid URL format")
    if not parts.hostname or not _host(parts.hostname):
        return URLValidationResult(is_valid=False, error="URL must have a valid hostname")
    if is_local_or_private(parts.hostname):
        return URLValidationResult(
            is_valid=False, error="URLs pointing to local or private networks are not allowed"
        )

    threats = _threats(trimmed, parts)
    if threats:
        return URLValidationResult(is_valid=False, error=f"URL failed security check: {', '.join(threats)}")

    return URLValidationResult(is_valid=True, sanitized_url=_normalize(parts))


def is_safe_url(url: str | None) -> bool:
    return validate_url(url).is_valid


def sanitize_url(url: str | None) -> str | None:
    """Return the normalized form of *url* if it validates, else ``None``."""
    return validate_url(url).sanitized_url


def extract_metadata(url: str) -> URLMetadata | None:
    """Derive a display title and description from the URL itself (no fetch).

    The title is the last path segment with its extension dropped and
    dashes/underscores turned into spaces, falling back to the hostname.
    """
    parts = _parse(url.strip())
    if parts is None or not parts.hostname:
        return None

    title = ""
    segments = [segment for segment in parts.path.split("/") if segment]
    if segments:
        candidate = re.sub(r"\.[^.]+$", "", segments[-1])
        candidate = re.sub(r"[-_]", " ", candidate).title().strip()
        if 0 < len(candidate) < 100:
            title = candidate

    return URLMetadata(
        hostname=parts.hostname,
        protocol=parts.scheme.lower(),
        title=title or parts.hostname,
        description=f"Link to {parts.hostname}",
        is_secure=parts.scheme.lower() == "https",
    )
