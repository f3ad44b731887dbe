"""Best-match selection of one APK from extract-apks output."""

from __future__ import annotations

from collections.abc import Sequence

from ...core.types import APK_SUFFIX

UNIVERSAL_TOKEN = "universal"


def _is_package(filename: str) -> bool:
    return filename.endswith(APK_SUFFIX)


def select_best_match(filenames: Sequence[str], supported_abis: Sequence[str]) -> str | None:
    """Pick the APK a device should install.

    ABIs are tried in the caller's order; the first ABI with a candidate wins
    and, for that ABI, the first matching file in listing order is returned.
    Without an ABI match the first universal APK is used. Token matching is
    case-insensitive; the ``.apk`` suffix is matched as-is.

    Returns:
        The chosen filename, or None when the device is not served by the bundle.
    """
    for abi in supported_abis:
        token = abi.lower()
        for name in filenames:
            if token in name.lower() and _is_package(name):
                return name

    for name in filenames:
        if UNIVERSAL_TOKEN in name.lower() and _is_package(name):
            return name

    return None
