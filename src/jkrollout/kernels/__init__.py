"""Kernel spec layer: names, ``kernel.json`` models, launcher scripts, atomic publishing.

Architecture::

    naming.py      KernelName / slugify() / ResourceHint
    models.py      KernelDescriptor (kernel.json), KernelRequest
    launcher.py    LauncherTemplate -> launch.sh
    writer.py      KernelSpecWriter.write_kernel_spec()  (staging + atomic rename)
    inventory.py   list_kernels() / overlay_users() / remove_kernel()
"""

from jkrollout.kernels.inventory import InstalledKernel, list_kernels, overlay_users, remove_kernel
from jkrollout.kernels.launcher import LauncherTemplate
from jkrollout.kernels.models import KernelDescriptor, KernelRequest, RolloutMetadata
from jkrollout.kernels.naming import KernelName, ResourceHint, slugify
from jkrollout.kernels.writer import KernelSpecWriter

__all__ = [
    "InstalledKernel",
    "KernelDescriptor",
    "KernelName",
    "KernelRequest",
    "KernelSpecWriter",
    "LauncherTemplate",
    "ResourceHint",
    "RolloutMetadata",
    "list_kernels",
    "overlay_users",
    "remove_kernel",
    "slugify",
]
