"""Infrastructure layer: HTTP adapters for discovery, client authentication and token exchange."""

from .web_utils import ensure_path_ends_with_slash

__all__ = ["ensure_path_ends_with_slash"]
