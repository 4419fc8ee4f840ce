"""
jkrollout - provision container-backed Jupyter kernels on HPC clusters.

Given an Apptainer image already pulled onto the cluster, jkrollout makes
sure the image can run ``ipykernel`` (installing it into a per-image overlay
directory when it is missing) and atomically publishes a kernel spec that
launches the image through Apptainer.
"""

__version__ = "0.3.0"
