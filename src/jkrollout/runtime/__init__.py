"""Container runtime layer: invoke Apptainer, detect and install the kernel shim.

Architecture::

    invoker.py     ContainerRuntime.execute() / run()  (subprocess, hard timeout)
    detector.py    CapabilityDetector.has_shim()       present / absent / inconclusive
    installer.py   OverlayInstaller.ensure_shim()      idempotent install + verification
    puller.py      pull_image()                        ``apptainer pull`` pass-through
"""

from jkrollout.runtime.detector import CapabilityDetector
from jkrollout.runtime.installer import OverlayInstaller, ShimStatus, ensure_overlay_dir
from jkrollout.runtime.invoker import Bind, ContainerRuntime, Invocation, check_image
from jkrollout.runtime.puller import pull_image

__all__ = [
    "Bind",
    "CapabilityDetector",
    "ContainerRuntime",
    "Invocation",
    "OverlayInstaller",
    "ShimStatus",
    "check_image",
    "ensure_overlay_dir",
    "pull_image",
]
