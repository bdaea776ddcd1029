"""Run a build script inside a Docker container with the input and output dirs bind-mounted."""
import logging
from pathlib import Path
from typing import Optional

import docker
from docker.errors import DockerException
from docker.types import Mount
from requests.exceptions import RequestException

from compile_cache.models.build import BuildRequest, BuildResult
from compile_cache.models.errors import (
    ConfigError,
    ContainerCreateError,
    ContainerStartError,
    ContainerWaitError,
    ImagePullError,
    LogRetrievalError,
)

logger = logging.getLogger(__name__)

INPUT_MOUNT = "/input"
OUTPUT_MOUNT = "/output"

# Errors a docker-py call can surface: API/daemon errors and transport timeouts
_CLIENT_ERRORS = (DockerException, RequestException)


def get_docker_client():
    """Create a Docker client from the environment (DOCKER_HOST etc.)."""
    try:
        return docker.from_env()
    except DockerException as exc:
        raise ConfigError(f"Docker is not available: {exc}") from exc


def build_mounts(input_dir: Path, output_dir: Path) -> list[Mount]:
    """Read/write bind mounts: input -> /input, output -> /output."""
    return [
        Mount(target=INPUT_MOUNT, source=str(Path(input_dir).resolve()), type="bind", read_only=False),
        Mount(target=OUTPUT_MOUNT, source=str(Path(output_dir).resolve()), type="bind", read_only=False),
    ]


def build_command(shell: str, script: str) -> list[str]:
    """Command that runs the script from the /input mount."""
    script = Path(script).as_posix().lstrip("/")
    return [shell, f"{INPUT_MOUNT}/{script}"]


class ContainerBuilder:
    """Pull, create, start, wait and fetch logs for one build container.

    The Docker client is injected so callers (and tests) decide how it is
    created. There is no retry: the first failing stage raises.
    """

    def __init__(
        self,
        client,
        *,
        shell: str = "/bin/sh",
        wait_timeout: Optional[float] = None,
        include_stderr: bool = False,
        remove_container: bool = True
    ) -> None:
        self.client = client
        self.shell = shell
        self.wait_timeout = wait_timeout
        self.include_stderr = include_stderr
        self.remove_container = remove_container

    def run(self, request: BuildRequest) -> BuildResult:
        """
        Run request.script in a fresh container from request.image.

        The artifact is written by the script itself into /output; this only
        reports the exit status and logs.

        Raises:
            ImagePullError, ContainerCreateError, ContainerStartError,
            ContainerWaitError, LogRetrievalError
        """
        logger.info(
            f"Compilation start, image: {request.image}, input: {request.input_dir}, "
            f"output: {request.output_dir}, script: {request.script}, filename: {request.filename}"
        )

        self._pull(request.image)
        container = self._create(request)
        try:
            return self._execute(container)
        finally:
            if self.remove_container:
                self._remove(container)

    def _pull(self, image: str) -> None:
        logger.info(f"Pulling image {image}")
        try:
            pulled = self.client.images.pull(image)
        except _CLIENT_ERRORS as exc:
            raise ImagePullError(f"Failed to pull image {image}: {exc}") from exc
        logger.debug(f"Pulled image {image}: {getattr(pulled, 'id', pulled)}")

    def _create(self, request: BuildRequest):
        command = build_command(self.shell, request.script)
        mounts = build_mounts(request.input_dir, request.output_dir)
        logger.debug(f"Creating container, command: {command}")
        try:
            container = self.client.containers.create(
                request.image,
                command=command,
                mounts=mounts,
            )
        except _CLIENT_ERRORS as exc:
            raise ContainerCreateError(f"Failed to create container from {request.image}: {exc}") from exc
        logger.debug(f"Created container {container.id}")
        return container

    def _execute(self, container) -> BuildResult:
        logger.debug(f"Starting container {container.id}")
        try:
            container.start()
        except _CLIENT_ERRORS as exc:
            raise ContainerStartError(f"Failed to start container {container.id}: {exc}") from exc

        logger.info(f"Waiting for container {container.id} to finish")
        try:
            status = container.wait(timeout=self.wait_timeout)
        except _CLIENT_ERRORS as exc:
            raise ContainerWaitError(f"Failed waiting for container {container.id}: {exc}") from exc
        exit_code = int(status.get("StatusCode", -1))
        if status.get("Error"):
            logger.warning(f"Container {container.id} reported: {status['Error']}")

        logger.debug(f"Retrieving logs for container {container.id}")
        try:
            logs = container.logs(stdout=True, stderr=self.include_stderr)
        except _CLIENT_ERRORS as exc:
            raise LogRetrievalError(f"Failed to fetch logs for container {container.id}: {exc}") from exc
        if logs:
            logger.debug(logs.decode("utf-8", errors="replace"))

        logger.info(f"Container {container.id} exited with status {exit_code}")
        return BuildResult(container_id=container.id, exit_code=exit_code, logs=logs or b"")

    def _remove(self, container) -> None:
        try:
            container.remove(force=True)
            logger.debug(f"Removed container {container.id}")
        except _CLIENT_ERRORS as exc:
            logger.warning(f"Failed to remove container {container.id}: {exc}")
