"""
Repository signing-key acquisition.

Keys are written as binary keyrings suitable for ``signed-by=``. The fallback
order is: HTTPS download with requests, the same URL via curl, then each
configured keyserver (only when the fingerprint is known). When a fingerprint
is known, a downloaded key that does not carry it counts as a failed attempt.
"""

import logging
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

import requests

from xubuntu_toolkit.acquire import (
    AcquisitionRequest,
    AcquisitionResult,
    Strategy,
    acquire_or_raise,
)
from xubuntu_toolkit.commands import run_command

logger = logging.getLogger(__name__)

ARMOR_HEADER = b"-----BEGIN PGP PUBLIC KEY BLOCK-----"


def normalize_fingerprint(fingerprint: str) -> str:
    return "".join(fingerprint.split()).upper()


def key_fingerprints(keyring: Path) -> List[str]:
    """List the primary key fingerprints contained in a key file."""
    result = run_command(
        ["gpg", "--batch", "--with-colons", "--show-keys", str(keyring)]
    )
    if not result.ok:
        return []
    fingerprints = []
    expect_fpr = False
    for line in str(result.stdout).splitlines():
        fields = line.split(":")
        if fields[0] == "pub":
            expect_fpr = True
        elif fields[0] == "fpr" and expect_fpr:
            fingerprints.append(fields[9].upper())
            expect_fpr = False
    return fingerprints


def write_keyring(data: bytes, dest: Path) -> bool:
    """Write key material to ``dest``, dearmoring ASCII-armored input."""
    if not data:
        logger.warning("Empty key material received")
        return False

    dest.parent.mkdir(parents=True, exist_ok=True)
    if data.lstrip().startswith(ARMOR_HEADER):
        result = run_command(
            ["gpg", "--batch", "--yes", "--dearmor", "-o", str(dest)],
            text=False,
            input=data,
        )
        if not result.ok:
            logger.warning(f"gpg --dearmor failed for {dest}")
            return False
    else:
        dest.write_bytes(data)
    dest.chmod(0o644)
    return True


def _matches(dest: Path, fingerprint: Optional[str]) -> bool:
    if fingerprint is None:
        return True
    found = key_fingerprints(dest)
    if normalize_fingerprint(fingerprint) in found:
        return True
    logger.warning(f"{dest} does not contain expected key {fingerprint} (found: {found})")
    return False


def https_strategy(
    url: str, dest: Path, fingerprint: Optional[str] = None, timeout: int = 30
) -> Strategy:
    def attempt() -> bool:
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Download of {url} failed: {e}")
            return False
        return write_keyring(response.content, dest) and _matches(dest, fingerprint)

    return Strategy(f"https:{url}", attempt)


def curl_strategy(
    url: str, dest: Path, fingerprint: Optional[str] = None, timeout: int = 30
) -> Strategy:
    def attempt() -> bool:
        result = run_command(
            ["curl", "-fsSL", "--max-time", str(timeout), url], text=False
        )
        if not result.ok:
            return False
        return write_keyring(result.stdout, dest) and _matches(dest, fingerprint)

    return Strategy(f"curl:{url}", attempt)


def keyserver_strategy(
    keyserver: str, fingerprint: str, dest: Path, timeout: int = 30
) -> Strategy:
    """Receive the key into a throwaway GnuPG home and export it to ``dest``."""

    def attempt() -> bool:
        fpr = normalize_fingerprint(fingerprint)
        with tempfile.TemporaryDirectory(prefix="xubuntu_toolkit_gpg_") as home:
            base = ["gpg", "--batch", "--homedir", home]
            received = run_command(
                base + ["--keyserver", keyserver, "--recv-keys", fpr],
                timeout=timeout,
            )
            if not received.ok:
                return False
            exported = run_command(base + ["--export", fpr], text=False)
            if not exported.ok or not exported.stdout:
                return False
        return write_keyring(exported.stdout, dest) and _matches(dest, fpr)

    return Strategy(f"keyserver:{keyserver}", attempt)


def key_strategies(
    url: str,
    dest: Path,
    fingerprint: Optional[str] = None,
    keyservers: Sequence[str] = (),
    timeout: int = 30,
) -> List[Strategy]:
    strategies = [
        https_strategy(url, dest, fingerprint, timeout),
        curl_strategy(url, dest, fingerprint, timeout),
    ]
    if fingerprint:
        strategies.extend(
            keyserver_strategy(server, fingerprint, dest, timeout)
            for server in keyservers
        )
    return strategies


def install_key(
    url: str,
    dest: Path,
    fingerprint: Optional[str] = None,
    keyservers: Sequence[str] = (),
    timeout: int = 30,
) -> AcquisitionResult:
    """Acquire a signing key into ``dest``; raises AcquisitionExhausted on failure."""
    request = AcquisitionRequest(
        identifier=fingerprint or url,
        strategies=tuple(key_strategies(url, dest, fingerprint, keyservers, timeout)),
    )
    return acquire_or_raise(request)
