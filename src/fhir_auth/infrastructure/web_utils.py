"""Helpers for working with web resource URLs."""

import httpx


def ensure_path_ends_with_slash(url: httpx.URL) -> httpx.URL:
    """Return the URL with a trailing slash on its path.

    Relative references resolved against the result stay below the original path
    (https://fhir.example.com/r4 + "x" -> https://fhir.example.com/r4/x).
    """
    if url.path.endswith("/"):
        return url
    return url.copy_with(path=url.path + "/")
