"""Kernel spec models.

``KernelDescriptor`` is the ``kernel.json`` the Jupyter front end reads.
The fields it understands (``argv``, ``display_name``, ``language``,
``interrupt_mode``, ``metadata``) follow the Jupyter kernel spec format;
jkrollout keeps its own bookkeeping under ``metadata.jkrollout`` so
``jkrollout list`` and the overlay-sharing check can read it back.

``argv`` layout::

    [<kernel dir>/launch.sh, "-m", "ipykernel_launcher", "-f", "{connection_file}"]

The front end substitutes ``{connection_file}`` when it starts the kernel;
the launcher forwards everything after its own path unchanged to
``python`` inside the container.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from jkrollout.kernels.naming import KernelName, ResourceHint

KERNEL_FILE = "kernel.json"
LAUNCHER_FILE = "launch.sh"
CONNECTION_FILE_PLACEHOLDER = "{connection_file}"
METADATA_KEY = "jkrollout"


class RolloutMetadata(BaseModel):
    """Provisioning record stored in ``kernel.json`` under ``metadata.jkrollout``."""

    slug: str
    image: str
    overlay: str
    resource: ResourceHint
    launcher: str
    version: str


class KernelDescriptor(BaseModel):
    """``kernel.json`` contents."""

    argv: list[str]
    display_name: str
    language: str = "python"
    interrupt_mode: Literal["signal", "message"] = "signal"
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def rollout(self) -> RolloutMetadata | None:
        data = self.metadata.get(METADATA_KEY)
        if data is None:
            return None
        return RolloutMetadata.model_validate(data)

    def to_json(self) -> str:
        """Deterministic JSON text (sorted keys, trailing newline)."""
        return json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"

    @classmethod
    def from_file(cls, path: Path) -> KernelDescriptor:
        return cls.model_validate_json(path.read_text(encoding="utf-8"))


@dataclass(frozen=True)
class KernelRequest:
    """Everything the kernel spec writer needs to publish one kernel."""

    name: KernelName
    image: Path
    overlay_dir: Path
    resource: ResourceHint = ResourceHint.CPU
    force: bool = False

    @property
    def slug(self) -> str:
        return self.name.slug

    @property
    def display_name(self) -> str:
        return self.name.display_name


__all__ = [
    "KERNEL_FILE",
    "LAUNCHER_FILE",
    "CONNECTION_FILE_PLACEHOLDER",
    "METADATA_KEY",
    "KernelDescriptor",
    "KernelRequest",
    "RolloutMetadata",
]
