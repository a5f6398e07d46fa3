# step_workflows/docker.py
from __future__ import annotations

import re

from ..model import Capability, Command, CommandChain, ProjectProfile, noop

DEFAULT_IMAGE_TAG = "adaptci-local:test"


def image_tag(project: str, run_id: str) -> str:
    """Build a docker-safe `<name>:<run>` tag for the image a run builds."""
    name = re.sub(r"[^a-z0-9._-]+", "-", project.lower()).strip("-._") or "project"
    tag = re.sub(r"[^A-Za-z0-9._-]+", "-", run_id).strip("-.") or "test"
    return f"adaptci/{name}:{tag[:128]}"


# ---------------------------------------------------------------------
# Image build chain
# ---------------------------------------------------------------------

def image_chain(profile: ProjectProfile, tag: str = DEFAULT_IMAGE_TAG) -> CommandChain:
    """
    Build the container image. A Dockerfile wins over a compose file.

    The chain carries the release command that removes what it built; the
    engine registers it with the finalizer once a candidate succeeds.
    """
    if "dockerfile" in profile.tools:
        return CommandChain(
            step="image",
            candidates=(
                Command(run=f"docker build -t {tag} ."),
                Command(run=f"docker buildx build --load -t {tag} ."),
                noop("No container definition"),
            ),
            mandatory=True,
            release=f"docker rmi -f {tag}",
        )

    if profile.has(Capability.HAS_DOCKER):
        return CommandChain(
            step="image",
            candidates=(
                Command(run="docker compose build"),
                Command(run="docker-compose build"),
                noop("No container definition"),
            ),
            mandatory=True,
            release="docker compose down --rmi local --volumes",
        )

    return CommandChain(step="image", candidates=(noop("No container definition"),))


def container_name(tag: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "-", tag).strip("-.") or "adaptci-smoke"


def smoke_chain(profile: ProjectProfile, tag: str = DEFAULT_IMAGE_TAG) -> CommandChain:
    """
    Start the built image detached as a smoke test. Optional; the container
    is removed by the finalizer through the chain's release command.
    """
    if "dockerfile" not in profile.tools:
        return CommandChain(step="smoke", candidates=(noop("No image to smoke test"),))
    name = container_name(tag)
    return CommandChain(
        step="smoke",
        candidates=(
            Command(run=f"docker run -d --name {name} {tag}"),
            noop("Container smoke test failed"),
        ),
        release=f"docker rm -f {name}",
    )
