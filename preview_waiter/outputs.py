import os
import sys
from typing import Mapping, Optional, TextIO

from loguru import logger


def set_output(
    name: str, value: str, environ: Optional[Mapping[str, str]] = None
) -> None:
    """Appends a step output to the file named by GITHUB_OUTPUT"""
    environ = os.environ if environ is None else environ
    output_path = environ.get("GITHUB_OUTPUT")

    if not output_path:
        logger.warning(f"GITHUB_OUTPUT is not set, not exporting {name}={value}")
        return

    with open(output_path, "a", encoding="utf-8") as f:
        f.write(f"{name}={value}\n")


def set_failed(message: str, stream: Optional[TextIO] = None) -> None:
    """Emits an error annotation for the runner"""
    stream = stream or sys.stdout
    escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    print(f"::error::{escaped}", file=stream, flush=True)
