"""Bundle rendered snippets into a single exportable script."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from xdray.formats.capture_record import CapturedRequestRecord
from xdray.generate.powershell import render

DEFAULT_SCRIPT_NAME = "XDRay-Script.ps1.txt"

DISCLAIMER = (
    "The mapping to cmdlets is based on best effort but might not reflect "
    "the actual parameters of the parameter in question."
)

SCRIPT_HEADER = (
    "# XDRay Generated Script\n"
    f"# {DISCLAIMER}\n"
    "# Do NOT run this code without verifying it yourself.\n\n"
)

CONNECTION_SNIPPET = """Import-Module XDRInternals.psd1
$SccAuth = Read-Host -Prompt "Paste the sccauth cookie value" -AsSecureString
$Xsrf = Read-Host -Prompt "Paste the XSRF-TOKEN cookie value" -AsSecureString
Set-XdrConnectionSettings -SccAuth $SccAuth -Xsrf $Xsrf -Verbose"""


def build_script(records: Iterable[CapturedRequestRecord]) -> str:
    """Concatenate rendered records under the disclaimer header."""
    script = SCRIPT_HEADER
    for record in records:
        script += render(record) + "\n\n"
    return script


def write_script(records: Iterable[CapturedRequestRecord], output_path: str | Path) -> Path:
    """Write the exported script. A directory gets the default file name."""
    output_path = Path(output_path)
    if output_path.is_dir():
        output_path = output_path / DEFAULT_SCRIPT_NAME
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(build_script(records), encoding="utf-8")
    return output_path


def connection_snippet() -> str:
    """The snippet that sets up an XDRInternals session from portal cookies."""
    return CONNECTION_SNIPPET
