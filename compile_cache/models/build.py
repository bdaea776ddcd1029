"""Build request and result models."""
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, field_validator

from compile_cache.models.errors import ConfigError
from compile_cache.models.manifest import CacheDecision


class BuildRequest(BaseModel):
    """What to build: one output archive from one input directory."""
    filename: str  # output archive name inside output_dir
    input_dir: Path
    output_dir: Path
    image: str  # container image reference
    script: str  # entry point, relative to input_dir

    @field_validator('filename', 'image', 'script')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty configuration values."""
        if not v.strip():
            raise ValueError('must not be empty')
        return v

    @property
    def output_path(self) -> Path:
        return self.output_dir / self.filename

    @property
    def script_path(self) -> Path:
        return self.input_dir / self.script

    def validate_paths(self) -> None:
        """
        Check the input directory and build script exist.

        Raises:
            ConfigError: input_dir is not a directory, or script is not a
                regular file inside input_dir
        """
        if not self.input_dir.exists():
            raise ConfigError(f"Input directory not found: {self.input_dir}")
        if not self.input_dir.is_dir():
            raise ConfigError(f"Input path is not a directory: {self.input_dir}")

        root = self.input_dir.resolve()
        script_path = self.script_path.resolve()
        if not script_path.is_relative_to(root):
            raise ConfigError(f"Script must live inside the input directory: {self.script}")
        if not self.script_path.is_file():
            raise ConfigError(f"Script file not found: {self.script_path}")

    def prepare_output_dir(self) -> None:
        """Create output_dir (and parents) if missing."""
        self.output_dir.mkdir(mode=0o755, parents=True, exist_ok=True)


class BuildResult(BaseModel):
    """Completion status of one container run."""
    container_id: str
    exit_code: int
    logs: bytes = b""  # opaque, not parsed

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class CompileOutcome(BaseModel):
    """What compile_if_changed did."""
    decision: CacheDecision
    result: Optional[BuildResult] = None

    @property
    def rebuilt(self) -> bool:
        return self.result is not None
