"""Extraction and execution of the eval script embedded in model output."""

import logging
import os
import re
import subprocess
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

EVAL_BLOCK_PATTERN = re.compile(
    r"```(?:bash|sh)?[ \t]*\r?\n# EVAL[ \t]*\r?\n(.*?)```",
    re.DOTALL,
)

SCRIPT_HEADER = "#!/bin/bash\nset -euo pipefail\n\n"


@dataclass
class EvalResult:
    """Result of running an eval script."""

    success: bool
    output: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    skipped: bool = False


def extract_eval_script(response: str) -> str | None:
    """Extract the eval script body from a model response.

    Args:
        response: Raw model output.

    Returns:
        The stripped script body, or None if there is no eval block.
    """
    match = EVAL_BLOCK_PATTERN.search(response)
    return match.group(1).strip() if match else None


def has_eval_script(response: str) -> bool:
    """Check whether a model response contains an eval block."""
    return EVAL_BLOCK_PATTERN.search(response) is not None


def ask_user(question: str) -> bool:
    """Ask a yes/no question on the console."""
    answer = input(f"{question} (y/N): ")
    return answer.strip().lower() in ("y", "yes")


class EvalRunner:
    """Run eval scripts with optional interactive confirmation."""

    def __init__(
        self,
        timeout: int | None = None,
        safe_mode: bool = True,
        yolo: bool | None = None,
        confirm: Callable[[str], bool] | None = None,
        cwd: Path | None = None,
    ) -> None:
        """Initialize eval runner.

        Args:
            timeout: Script timeout in seconds. Defaults to EVAL_TIMEOUT env var.
            safe_mode: Ask before executing a script.
            yolo: Skip confirmation. Defaults to YOLO env var.
            confirm: Callable asked before execution in safe mode.
            cwd: Directory the script runs in.
        """
        self._timeout = timeout or int(os.environ.get("EVAL_TIMEOUT", "30"))
        self._safe_mode = safe_mode
        self._yolo = yolo if yolo is not None else os.environ.get("YOLO") == "true"
        self._confirm = confirm or ask_user
        self._cwd = cwd or Path.cwd()

    def run(self, response: str) -> EvalResult:
        """Extract and run the eval script from a model response.

        Args:
            response: Raw model output.

        Returns:
            EvalResult. A response without a script counts as success.
        """
        script = extract_eval_script(response)
        if script is None:
            logger.info("No eval script found in response")
            return EvalResult(success=True, output="No eval script")
        if not script:
            logger.info("Empty eval script")
            return EvalResult(success=True, output="Empty eval script")

        logger.info(f"Generated eval script:\n---\n{script}\n---")

        if self._safe_mode and not self._yolo:
            if not self._confirm("Execute this eval script?"):
                logger.info("Eval script execution skipped by user")
                return EvalResult(success=False, output="Skipped by user", skipped=True)

        return self.execute(script)

    def execute(self, script: str) -> EvalResult:
        """Execute a script body under bash with a timeout.

        Args:
            script: Script body without the shebang header.

        Returns:
            EvalResult with captured output.
        """
        with tempfile.NamedTemporaryFile(
            mode="w",
            suffix=".sh",
            prefix=".eval_",
            delete=False,
        ) as f:
            f.write(SCRIPT_HEADER + script + "\n")
            script_path = Path(f.name)

        try:
            logger.info("Running eval script...")
            result = subprocess.run(
                ["bash", str(script_path)],
                capture_output=True,
                text=True,
                cwd=self._cwd,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning(f"Eval script timed out after {self._timeout}s")
            return EvalResult(
                success=False,
                output=f"Eval script timed out after {self._timeout}s",
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr),
            )
        finally:
            script_path.unlink(missing_ok=True)

        stdout = result.stdout.strip()
        stderr = result.stderr.strip()
        if result.returncode == 0:
            logger.info("Eval script completed successfully")
            if stdout:
                logger.info(f"Script output:\n{stdout}")
            return EvalResult(
                success=True,
                output=stdout,
                stdout=stdout,
                stderr=stderr,
                exit_code=0,
            )

        logger.warning(f"Eval script failed with exit code {result.returncode}")
        if stdout:
            logger.info(f"Stdout:\n{stdout}")
        if stderr:
            logger.info(f"Stderr:\n{stderr}")
        output = "\n".join(part for part in (stdout, stderr) if part)
        return EvalResult(
            success=False,
            output=output or f"Exit code {result.returncode}",
            stdout=stdout,
            stderr=stderr,
            exit_code=result.returncode,
        )


def _as_text(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
