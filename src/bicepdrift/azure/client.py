"""Thin Azure CLI wrapper for running deployment what-if analysis."""

import logging
import re
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

USING_PATTERN = re.compile(r"^using\s+'([^']+)'")


class WhatIfError(RuntimeError):
    """The Azure CLI what-if call failed."""


def resolve_template(template_file: str | Path) -> tuple[Path, Path | None]:
    """Return ``(template, parameters)`` for a template or ``.bicepparam`` file.

    A ``.bicepparam`` file names its template in a ``using '<file>'`` line,
    resolved relative to the parameters file.
    """
    path = Path(template_file)
    if path.suffix.lower() != ".bicepparam":
        return path, None

    for line in path.read_text(encoding="utf-8").splitlines():
        match = USING_PATTERN.match(line.strip())
        if match:
            return (path.parent / match.group(1)).resolve(), path

    raise WhatIfError(f"Could not find 'using' statement in {path}")


class WhatIfClient:
    """Runs ``az deployment group what-if`` and returns its raw JSON output."""

    def __init__(self, az_path: str = "az", timeout: float = 600):
        self._az_path = az_path
        self._timeout = timeout

    def build_command(self, template_file: str | Path, resource_group: str) -> list[str]:
        template, parameters = resolve_template(template_file)
        command = [
            self._az_path,
            "deployment",
            "group",
            "what-if",
            "--resource-group",
            resource_group,
            "--template-file",
            str(template),
        ]
        if parameters is not None:
            command += ["--parameters", str(parameters)]
        command += ["--no-prompt", "--no-pretty-print", "--output", "json"]
        return command

    def run_what_if(self, template_file: str | Path, resource_group: str) -> str:
        """Run what-if for ``template_file`` against ``resource_group``."""
        command = self.build_command(template_file, resource_group)
        logger.info("Running what-if analysis for %s in %s", Path(template_file).name, resource_group)

        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise WhatIfError(f"Azure CLI not found at {self._az_path!r}") from e
        except subprocess.TimeoutExpired as e:
            raise WhatIfError(
                f"What-if for {resource_group} timed out after {self._timeout}s"
            ) from e

        if completed.returncode != 0:
            raise WhatIfError(f"What-if failed for {resource_group}: {completed.stderr.strip()}")

        return completed.stdout
