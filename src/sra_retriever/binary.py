"""Locate the fasterq-dump binary for the current platform.

Lookup order: an explicit path, then a bundled binaries directory laid out as
``<dir>/<macos|windows|linux>/fasterq-dump[.exe]`` (copied into a private
temp directory and marked executable), then ``PATH``. The resolved location
is cached on the resolver instance, which the service owns and cleans up.
"""

import logging
import os
import platform
import shutil
import stat
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Optional

from sra_retriever.errors import ToolUnavailable

logger = logging.getLogger(__name__)

BINARY_NAME_WINDOWS = "fasterq-dump.exe"
BINARY_NAME_UNIX = "fasterq-dump"


def platform_dir_name(system: Optional[str] = None) -> str:
    system = (system or platform.system()).lower()
    if "darwin" in system or "mac" in system:
        return "macos"
    if "windows" in system:
        return "windows"
    # other Unix systems use the Linux build
    return "linux"


def binary_name(system: Optional[str] = None) -> str:
    return BINARY_NAME_WINDOWS if platform_dir_name(system) == "windows" else BINARY_NAME_UNIX


class BinaryResolver:
    def __init__(
        self,
        explicit_path: Optional[Path] = None,
        bundled_dir: Optional[Path] = None,
        search_path: bool = True,
    ):
        self._explicit_path = Path(explicit_path) if explicit_path else None
        self._bundled_dir = Path(bundled_dir) if bundled_dir else None
        self._search_path = search_path
        self._resolved: Optional[Path] = None
        self._extract_dir: Optional[Path] = None
        self._lock = threading.Lock()

    def get_binary(self) -> Path:
        """Return the binary path, resolving it on first use."""
        with self._lock:
            if self._resolved is not None and self._resolved.exists():
                return self._resolved
            self._resolved = self._locate()
            if self._resolved is None:
                raise ToolUnavailable(
                    f"fasterq-dump binary not found for platform: {platform.system()}. "
                    "Please install the NCBI SRA Toolkit."
                )
            logger.info("Using fasterq-dump at %s", self._resolved)
            return self._resolved

    def is_binary_available(self) -> bool:
        try:
            return self.get_binary().exists()
        except ToolUnavailable:
            return False
        except OSError:
            logger.warning("Failed to prepare fasterq-dump binary", exc_info=True)
            return False

    def get_binary_version(self) -> Optional[str]:
        """Return ``fasterq-dump --version`` output, or None on any failure."""
        try:
            binary = self.get_binary()
            proc = subprocess.run(
                [str(binary), "--version"],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=30,
            )
        except Exception:
            logger.debug("Could not read fasterq-dump version", exc_info=True)
            return None
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None

    def cleanup(self) -> None:
        """Remove any binary copied out of the bundled directory."""
        with self._lock:
            if self._extract_dir is not None:
                shutil.rmtree(self._extract_dir, ignore_errors=True)
                self._extract_dir = None
            self._resolved = None

    def _locate(self) -> Optional[Path]:
        if self._explicit_path is not None:
            if self._explicit_path.is_file():
                return self._explicit_path
            logger.warning("Configured fasterq-dump path does not exist: %s", self._explicit_path)

        if self._bundled_dir is not None:
            bundled = self._bundled_dir / platform_dir_name() / binary_name()
            if bundled.is_file():
                return self._extract(bundled)

        if self._search_path:
            found = shutil.which(binary_name())
            if found:
                return Path(found)
        return None

    def _extract(self, bundled: Path) -> Path:
        if self._extract_dir is not None:
            shutil.rmtree(self._extract_dir, ignore_errors=True)
        self._extract_dir = Path(tempfile.mkdtemp(prefix="sra-retriever-binary-"))
        target = self._extract_dir / bundled.name
        shutil.copyfile(bundled, target)
        if os.name != "nt":
            mode = target.stat().st_mode
            target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        logger.debug("Extracted bundled fasterq-dump to %s", target)
        return target
