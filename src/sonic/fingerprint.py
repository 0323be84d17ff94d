"""
Chromaprint fingerprints for AcoustID lookups.

Wraps the ``fpcalc`` command-line tool, which produces the compressed
fingerprint string and duration AcoustID expects.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class FingerprintResult:
    """Result of fingerprint calculation."""

    fingerprint: str
    duration_sec: int


class FingerprintError(Exception):
    """Error during fingerprint calculation."""

    pass


def get_fpcalc_path() -> Path | None:
    """Find fpcalc executable in PATH."""
    path = shutil.which("fpcalc")
    return Path(path) if path else None


def parse_fpcalc_output(stdout: str) -> FingerprintResult:
    """Parse ``fpcalc -json`` output."""
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise FingerprintError(f"Failed to parse fpcalc output: {e}") from e

    fingerprint = data.get("fingerprint") if isinstance(data, dict) else None
    duration = data.get("duration") if isinstance(data, dict) else None

    if not fingerprint or duration is None:
        raise FingerprintError(f"Invalid fpcalc output: {stdout}")

    return FingerprintResult(fingerprint=fingerprint, duration_sec=int(duration))


def calculate_fingerprint(
    file_path: Path,
    fpcalc_path: Path | None = None,
    timeout_sec: int = 30,
) -> FingerprintResult:
    """
    Calculate Chromaprint fingerprint for audio file.

    Args:
        file_path: Path to audio file
        fpcalc_path: Optional path to fpcalc executable
        timeout_sec: Timeout for fpcalc execution

    Returns:
        FingerprintResult with fingerprint and duration

    Raises:
        FingerprintError: If fpcalc is not available or fails
    """
    if fpcalc_path is None:
        fpcalc_path = get_fpcalc_path()

    if fpcalc_path is None:
        raise FingerprintError(
            "fpcalc not found in PATH. Install chromaprint-tools or "
            "download from https://acoustid.org/chromaprint"
        )

    logger.debug("Running fpcalc on %s", file_path)
    try:
        result = subprocess.run(
            [str(fpcalc_path), "-json", str(file_path)],
            capture_output=True,
            text=True,
            timeout=timeout_sec,
        )
    except subprocess.TimeoutExpired as e:
        raise FingerprintError(f"fpcalc timed out after {timeout_sec}s") from e
    except OSError as e:
        raise FingerprintError(f"Could not run fpcalc: {e}") from e

    if result.returncode != 0:
        raise FingerprintError(f"fpcalc failed: {result.stderr.strip()}")

    return parse_fpcalc_output(result.stdout)


## Tests


def test_parse_fpcalc_output():
    result = parse_fpcalc_output('{"duration": 181.32, "fingerprint": "AQADtEmUaEkS"}')
    assert result.fingerprint == "AQADtEmUaEkS"
    assert result.duration_sec == 181


def test_parse_fpcalc_output_invalid():
    import pytest

    with pytest.raises(FingerprintError):
        parse_fpcalc_output("not json")
    with pytest.raises(FingerprintError):
        parse_fpcalc_output('{"duration": 12}')


def test_calculate_fingerprint_missing_tool(monkeypatch, tmp_path):
    import pytest

    monkeypatch.setattr(shutil, "which", lambda name: None)
    with pytest.raises(FingerprintError, match="fpcalc not found"):
        calculate_fingerprint(tmp_path / "song.mp3")
