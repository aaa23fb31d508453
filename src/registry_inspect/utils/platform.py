"""Local platform detection for default ``--os``/``--arch`` values."""

import platform as os_platform

from ..core.types import Platform

# platform.machine() values mapped to OCI architecture names
_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8l": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
}

_ARM_VARIANTS = {
    "armv7l": "v7",
    "armv6l": "v6",
}


def normalize_arch(machine: str) -> str:
    """Map a machine name to its OCI architecture name."""
    return _ARCH_ALIASES.get(machine.lower(), machine.lower())


def local_platform() -> Platform:
    """Return the platform of the running interpreter.

    The variant is only filled in for 32-bit ARM, where it is needed to
    tell the published images apart.
    """
    machine = os_platform.machine()
    return Platform(
        os=os_platform.system().lower(),
        architecture=normalize_arch(machine),
        variant=_ARM_VARIANTS.get(machine.lower()),
    )
