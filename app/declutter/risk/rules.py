"""Static rule tables for risk scoring.

This module defines the path prefixes, user-data locations and file
name patterns that make a path dangerous to delete. The tables are
immutable and shared by the risk auditor, the baseline scorer and the
deletion engine's safe-mode check.
"""

import fnmatch
import os
from pathlib import Path, PurePosixPath

# System locations that must never be deleted. Matched on whole path
# components, so "/usr" does not match "/usrdata".
CRITICAL_PATH_PREFIXES: tuple[str, ...] = (
    # macOS system
    "/System",
    "/System/Library",
    "/Library/Keychains",
    "/Library/Preferences",
    "/Library/LaunchDaemons",
    "/Library/LaunchAgents",
    "/private/etc",
    "/private/var/db",
    "/private/var/root",
    # Unix system
    "/bin",
    "/sbin",
    "/usr",
    "/etc",
    "/boot",
    "/lib",
    "/lib32",
    "/lib64",
    "/dev",
    "/proc",
    "/sys",
    "/var/lib",
)

# Home-relative locations that hold the user's own data and secrets.
IMPORTANT_USER_PATHS: tuple[str, ...] = (
    "Documents",
    "Desktop",
    "Pictures",
    "Movies",
    "Music",
    "Library/Mail",
    "Library/Keychains",
    ".ssh",
    ".gnupg",
    ".gpg",
    ".aws",
    ".local/share/keyrings",
)

# File name patterns of keys, certificates and credential stores.
SENSITIVE_NAME_PATTERNS: tuple[str, ...] = (
    "*.key",
    "*.pem",
    "*.p12",
    "*.pfx",
    "*.crt",
    "*.keychain",
    "*.keychain-db",
    "*.kdbx",
    "*.gpg",
    "*.asc",
    "*.ovpn",
    "id_*",
    ".env",
    ".netrc",
    "credentials",
    "credentials.json",
)

# Prefixes whose items add a batch-level penalty in advisory audits.
SYSTEM_LIBRARY_PREFIXES: tuple[str, ...] = ("/System", "/Library")


def _has_prefix(path: str, prefix: str) -> bool:
    """Component-aware prefix test."""
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def critical_prefix_for(path: str) -> str | None:
    """Return the deny-listed prefix containing ``path``, if any.

    Args:
        path: Absolute filesystem path.

    Returns:
        The matching prefix, or None if the path is not deny-listed.
    """
    normalized = os.path.normpath(path)
    for prefix in CRITICAL_PATH_PREFIXES:
        if _has_prefix(normalized, prefix):
            return prefix
    return None


def is_critical_path(path: str) -> bool:
    """Check if a path lies on the critical deny-list.

    Args:
        path: Absolute filesystem path.

    Returns:
        True if the path must never be deleted.
    """
    return critical_prefix_for(path) is not None


def important_user_path_for(path: str, home: Path | None = None) -> str | None:
    """Return the user-data location containing ``path``, if any.

    Args:
        path: Absolute filesystem path.
        home: Home directory to resolve locations against (default: current user).

    Returns:
        The home-relative location (e.g. "Documents"), or None.
    """
    home_str = str(home or Path.home())
    normalized = os.path.normpath(path)
    for location in IMPORTANT_USER_PATHS:
        if _has_prefix(normalized, f"{home_str}/{location}"):
            return location
    return None


def sensitive_name_pattern_for(path: str) -> str | None:
    """Return the sensitive name pattern matching the file name, if any.

    Args:
        path: Filesystem path; only the last component is inspected.

    Returns:
        The first matching pattern, or None.
    """
    name = PurePosixPath(path).name
    for pattern in SENSITIVE_NAME_PATTERNS:
        if fnmatch.fnmatchcase(name, pattern) or fnmatch.fnmatchcase(name.lower(), pattern):
            return pattern
    return None


def is_suspicious_link_target(target: str) -> bool:
    """Check a raw symlink target for traversal or hidden system locations.

    Args:
        target: Raw link target as returned by readlink.

    Returns:
        True if the target climbs directories or points at a hidden
        top-level system location (e.g. "/.vol", "/.Spotlight-V100").
    """
    parts = PurePosixPath(target).parts
    if ".." in parts:
        return True
    return target.startswith("/") and len(parts) > 1 and parts[1].startswith(".")


def is_system_library_path(path: str) -> bool:
    """Whether the path lives under a system-level /System or /Library tree."""
    return any(_has_prefix(path, prefix) for prefix in SYSTEM_LIBRARY_PREFIXES)
