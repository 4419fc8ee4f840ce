"""Kernel names and resource hints.

A kernel has a free-text display name (shown in the JupyterLab launcher)
and a slug derived from it that names the kernel directory and identifies
the kernel to the front end.

Slug rule: lowercase, every run of characters outside ``[a-z0-9]`` becomes a
single ``-``, leading/trailing ``-`` stripped. The rule depends only on the
display name, so re-running a provision with the same name always targets
the same directory; that is what makes conflict detection meaningful.

    >>> slugify("PyTorch 2.9.1")
    'pytorch-2-9-1'
    >>> slugify("  TensorFlow (GPU) -- 2.16 ")
    'tensorflow-gpu-2-16'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from jkrollout.core.errors import InvalidKernelNameError, InvalidOptionError
from jkrollout.core.result import Err, Ok, Result

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class ResourceHint(str, Enum):
    """What the kernel is expected to run on."""

    GPU = "gpu"
    CPU = "cpu"

    @property
    def use_gpu(self) -> bool:
        return self is ResourceHint.GPU

    @classmethod
    def parse(cls, value: str) -> Result[ResourceHint]:
        try:
            return Ok(cls(value.strip().lower()))
        except ValueError:
            choices = ", ".join(hint.value for hint in cls)
            return Err(
                InvalidOptionError(f"Invalid resource hint {value!r}: expected one of {choices}")
            )


def slugify(display_name: str) -> str:
    return _NON_ALNUM.sub("-", display_name.lower()).strip("-")


@dataclass(frozen=True)
class KernelName:
    """Display name plus its slug."""

    display_name: str
    slug: str

    @classmethod
    def parse(cls, display_name: str) -> Result[KernelName]:
        display_name = display_name.strip()
        slug = slugify(display_name)
        if not slug:
            return Err(InvalidKernelNameError(display_name))
        return Ok(cls(display_name=display_name, slug=slug))


__all__ = ["KernelName", "ResourceHint", "slugify"]
