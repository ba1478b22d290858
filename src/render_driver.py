"""
Rendering of localized diagrams through the Mermaid CLI (`mmdc`).

The localized text is written to a temp `.mmd` file, `mmdc` converts it to the
output image, and the temp file is removed whatever the outcome. One failing
diagram never stops the batch; failures are collected in a `BatchSummary`.
"""
import enum
import logging
import os
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.errors import RenderError, SetupError
from src.substitution import render

logger = logging.getLogger("diagram_localizer.render_driver")

DEFAULT_TIMEOUT_SECONDS = 120


class FileState(enum.Enum):
    PENDING = "pending"
    TRANSLATED = "translated"
    RENDERED = "rendered"
    FAILED = "failed"


@dataclass
class RenderResult:
    source: str
    output_path: str
    state: FileState = FileState.PENDING
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is FileState.RENDERED


@dataclass
class BatchSummary:
    language: str
    results: List[RenderResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def failures(self) -> List[RenderResult]:
        return [result for result in self.results if result.state is FileState.FAILED]

    @property
    def rendered(self) -> int:
        return sum(1 for result in self.results if result.succeeded)


class MermaidRenderer:
    """Thin wrapper around the `mmdc` command line."""

    def __init__(
            self,
            executable: str,
            config_file: Optional[str] = None,
            puppeteer_config_file: Optional[str] = None,
            theme: str = "dark",
            background: str = "transparent",
            timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS
    ):
        self.executable = executable
        self.config_file = config_file
        self.puppeteer_config_file = puppeteer_config_file
        self.theme = theme
        self.background = background
        self.timeout = timeout

    def resolve_executable(self) -> Optional[str]:
        """Return the configured `mmdc` if executable, else the one on PATH."""
        if self.executable and os.path.isfile(self.executable) and os.access(self.executable, os.X_OK):
            return self.executable
        return shutil.which(os.path.basename(self.executable or "mmdc")) or shutil.which("mmdc")

    def ensure_available(self) -> str:
        """
        Raises:
            SetupError: If no usable `mmdc` executable can be found.
        """
        resolved = self.resolve_executable()
        if not resolved:
            raise SetupError(
                f"Mermaid CLI not found at '{self.executable}' or on PATH. "
                "Install it with 'npm install @mermaid-js/mermaid-cli'."
            )
        self.executable = resolved
        return resolved

    def build_command(self, input_path: str, output_path: str) -> List[str]:
        command = [self.executable, "-i", input_path, "-o", output_path]
        if self.config_file and os.path.isfile(self.config_file):
            command += ["-c", self.config_file]
        else:
            command += ["-t", self.theme]
        command += ["-b", self.background]
        if self.puppeteer_config_file and os.path.isfile(self.puppeteer_config_file):
            command += ["-p", self.puppeteer_config_file]
        return command

    def run(self, input_path: str, output_path: str) -> None:
        """
        Invoke `mmdc` on an existing file.

        Raises:
            RenderError: On a non-zero exit, a timeout, a launch failure or a
                missing output file. `detail` holds the renderer's stderr.
        """
        command = self.build_command(input_path, output_path)
        # An image left by an earlier run must not pass for this run's output.
        try:
            if os.path.exists(output_path):
                os.remove(output_path)
        except OSError as e:
            raise RenderError(f"Could not replace existing output '{output_path}'", detail=str(e)) from e

        logger.debug("Running: %s", ' '.join(command))
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired as e:
            raise RenderError(f"Renderer timed out after {self.timeout} seconds", detail=str(e)) from e
        except OSError as e:
            raise RenderError(f"Could not start renderer '{self.executable}'", detail=str(e)) from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise RenderError(f"Renderer exited with code {result.returncode}", detail=detail)
        if not os.path.exists(output_path):
            raise RenderError("Renderer produced no output", detail=(result.stderr or "").strip())

    def convert(self, source_text: str, output_path: str, suffix: str = ".mmd") -> RenderResult:
        """
        Render localized diagram text to `output_path`.

        The text is written to a temp file which is always removed afterwards.

        Returns:
            A RenderResult in state RENDERED or FAILED.
        """
        result = RenderResult(source="", output_path=output_path)
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(mode='w', delete=False, suffix=suffix, encoding='utf-8') as temp_f:
                temp_path = temp_f.name
                temp_f.write(source_text)
            result.state = FileState.TRANSLATED

            self.run(temp_path, output_path)
            result.state = FileState.RENDERED
        except RenderError as e:
            result.state = FileState.FAILED
            result.detail = f"{e}: {e.detail}" if e.detail else str(e)
        except OSError as e:
            result.state = FileState.FAILED
            result.detail = f"Could not write temp file: {e}"
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as _e:
                    logger.warning("Could not delete temporary diagram file '%s': %s", temp_path, _e)
        return result


def output_path_for(source_file: str, source_dir: str, dest_dir: str, language: str, output_format: str = "svg") -> str:
    """
    Mirror `source_file`'s location under `dest_dir/<language>`.

    Raises:
        ValueError: If `source_file` is not under `source_dir`.
    """
    rel_path = os.path.relpath(source_file, source_dir)
    if rel_path == os.pardir or rel_path.startswith(os.pardir + os.sep) or os.path.isabs(rel_path):
        raise ValueError(f"'{source_file}' is outside the source directory '{source_dir}'")
    stem, _ = os.path.splitext(rel_path)
    return os.path.join(dest_dir, language, f"{stem}.{output_format}")


def render_batch(
        renderer: MermaidRenderer,
        language: str,
        files: List[str],
        dictionary: Dict[str, str],
        source_dir: str,
        dest_dir: str,
        output_format: str = "svg",
        progress=None
) -> BatchSummary:
    """
    Localize and render each file in turn.

    Args:
        renderer: Configured renderer.
        language: Language code, used for the output subdirectory.
        files: Source diagrams.
        dictionary: key -> value for `language`.
        source_dir: Root the source paths are relative to.
        dest_dir: Output root.
        output_format: Image extension passed to `mmdc` through the output name.
        progress: Optional tqdm bar updated once per file.

    Returns:
        A BatchSummary with one RenderResult per file.
    """
    summary = BatchSummary(language=language)
    start = time.monotonic()

    for file_path in files:
        output_path = ""
        try:
            output_path = output_path_for(file_path, source_dir, dest_dir, language, output_format)
            with open(file_path, 'r', encoding='utf-8') as f:
                localized = render(f.read(), dictionary)
            os.makedirs(os.path.dirname(output_path), exist_ok=True)
        except (OSError, ValueError) as e:
            result = RenderResult(source=file_path, output_path=output_path, state=FileState.FAILED,
                                  detail=str(e))
        else:
            result = renderer.convert(localized, output_path, suffix=f"_{language}.mmd")
            result.source = file_path

        summary.results.append(result)
        if result.succeeded:
            logger.info("Generated: %s", output_path)
        else:
            logger.error("Failed to generate: %s (%s)", file_path, result.detail)
        if progress is not None:
            progress.update(1)

    summary.elapsed_seconds = time.monotonic() - start
    return summary
