"""
Operations layer: the steps the CLI runs, independent of terminal output.

Every operation returns a ``Result``; the CLI turns an ``Err`` into an exit
code and a one-line classification.

Usage::

    from jkrollout.core.settings import get_settings
    from jkrollout.ops import Provisioner

    result = Provisioner.from_settings(get_settings()).provision(image, "PyTorch 2.9.1")
"""

from jkrollout.ops.batch import prepare_batch, save_batch_script
from jkrollout.ops.provision import ProvisionOutcome, Provisioner, resolve_overlay

__all__ = [
    "ProvisionOutcome",
    "Provisioner",
    "prepare_batch",
    "resolve_overlay",
    "save_batch_script",
]
