"""Cache check and build: fingerprint, decide, stage listing, run container, unstage."""
import logging
from typing import Callable, Optional

from compile_cache.models.build import BuildRequest, CompileOutcome
from compile_cache.models.errors import BuildFailedError
from compile_cache.models.settings import CacheSettings
from compile_cache.tools.cache_decision import decide
from compile_cache.tools.container_build import ContainerBuilder, get_docker_client
from compile_cache.tools.staging import staged_listing

logger = logging.getLogger(__name__)


def compile_if_changed(
    request: BuildRequest,
    client=None,
    settings: Optional[CacheSettings] = None,
    builder: Optional[ContainerBuilder] = None,
    progress_callback: Optional[Callable[[str], None]] = None
) -> CompileOutcome:
    """
    Rebuild request.output_path only when the input tree changed since the last build.

    Steps:
    1. Validate input dir and script, create the output dir
    2. Compare input fingerprints with the listing inside the existing archive
    3. If fresh, return without touching anything
    4. Otherwise write the listing into the input dir, run the container,
       and remove the listing again (also when the build fails)

    Args:
        request: What to build
        client: Docker client; created from the environment if a build is
            needed and neither client nor builder was given
        settings: Runtime settings (defaults to CacheSettings())
        builder: Pre-configured ContainerBuilder, overrides client
        progress_callback: Optional callback(path) per fingerprinted file

    Returns:
        CompileOutcome with the decision and, if a build ran, its result

    Raises:
        ConfigError, OSError, FormatError, ArchiveError, ContainerError
    """
    settings = settings or CacheSettings()

    request.validate_paths()
    request.prepare_output_dir()

    decision = decide(
        request.input_dir,
        request.output_path,
        settings.listing_name,
        algorithm=settings.hash_algorithm,
        max_workers=settings.hash_workers,
        rebuild_on_unusable_archive=settings.rebuild_on_unusable_archive,
        progress_callback=progress_callback
    )
    if not decision.needs_build:
        logger.debug("Equal, no need to continue")
        return CompileOutcome(decision=decision)

    if builder is None:
        builder = ContainerBuilder(
            client if client is not None else get_docker_client(),
            shell=settings.shell,
            wait_timeout=settings.wait_timeout,
            include_stderr=settings.include_stderr,
            remove_container=settings.remove_container
        )

    with staged_listing(decision.current, request.input_dir, settings.listing_name):
        result = builder.run(request)

    if not result.succeeded and settings.fail_on_nonzero_exit:
        raise BuildFailedError(
            f"Build script {request.script} exited with status {result.exit_code}",
            exit_code=result.exit_code,
            logs=result.logs
        )

    return CompileOutcome(decision=decision, result=result)
