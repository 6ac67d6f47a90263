"""
sd-provision: manifest-driven provisioning of Stable Diffusion model assets.
"""

__version__ = "0.3.0"
