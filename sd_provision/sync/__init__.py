"""
Peer-sync configuration utility. Not part of the download pipeline.
"""

from .peer_config import PeerConfigWriter, render_template

__all__ = ["PeerConfigWriter", "render_template"]
