"""pvetmpl - Discover cloud image releases and derive Proxmox VE template parameters."""

__version__ = "0.3.0"
