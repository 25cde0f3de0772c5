"""KLib ABI validation settings."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional, Set

from .filters import DumpFilters, SignatureVersion

logger = logging.getLogger(__name__)

# Comma-separated list of targets to treat as unsupported by the host; testing only
BANNED_TARGETS_ENV = "KLIB_ABI_BANNED_TARGETS"

_JSON_KEYS = {
    "enabled": "enabled",
    "signatureVersion": "signature_version",
    "strictValidation": "strict_validation",
    "useTargetGroupAliases": "use_target_group_aliases",
    "ignoredPackages": "ignored_packages",
    "ignoredClasses": "ignored_classes",
    "nonPublicMarkers": "non_public_markers",
    "bannedTargets": "banned_targets",
}


@dataclass
class KlibValidationSettings:
    """Settings of KLib ABI dump generation and validation."""
    enabled: bool = True
    signature_version: SignatureVersion = SignatureVersion.LATEST
    # Fail when the reference dump has targets the host cannot build
    strict_validation: bool = False
    use_target_group_aliases: bool = True
    ignored_packages: Set[str] = field(default_factory=set)
    ignored_classes: Set[str] = field(default_factory=set)
    non_public_markers: Set[str] = field(default_factory=set)
    banned_targets: Set[str] = field(default_factory=set)

    def to_filters(self) -> DumpFilters:
        return DumpFilters.build(
            ignored_packages=self.ignored_packages,
            ignored_classes=self.ignored_classes,
            non_public_markers=self.non_public_markers,
            signature_version=self.signature_version,
        )

    def supported_targets(self, declared: Iterable[str]) -> Set[str]:
        """Targets the host can build, i.e. declared ones minus banned ones."""
        return {target for target in declared if target not in self.banned_targets}

    @classmethod
    def from_json(cls, settings_file: Path) -> "KlibValidationSettings":
        """Load settings from a JSON file.

        Args:
            settings_file: Path to settings JSON

        Returns:
            KlibValidationSettings instance

        Note:
            A missing file yields default settings with a warning. The banned
            targets from the environment are merged into the loaded ones.
        """
        settings_file = Path(settings_file)
        if not settings_file.exists():
            import warnings
            warnings.warn(
                f"KLib validation settings not found: {settings_file}. Using defaults.",
                UserWarning,
                stacklevel=2
            )
            settings = cls()
        else:
            with open(settings_file, encoding="utf-8") as f:
                data = json.load(f)
            settings = cls.from_dict(data)

        settings.banned_targets |= banned_targets_from_env()
        return settings

    @classmethod
    def from_dict(cls, data: Mapping) -> "KlibValidationSettings":
        unknown = set(data) - set(_JSON_KEYS)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        kwargs = {_JSON_KEYS[key]: value for key, value in data.items()}
        for key in ("ignored_packages", "ignored_classes", "non_public_markers", "banned_targets"):
            if key in kwargs:
                kwargs[key] = set(kwargs[key])
        if "signature_version" in kwargs:
            kwargs["signature_version"] = SignatureVersion.parse(kwargs["signature_version"])
        return cls(**kwargs)


def banned_targets_from_env(environ: Optional[Mapping[str, str]] = None) -> Set[str]:
    environ = os.environ if environ is None else environ
    value = environ.get(BANNED_TARGETS_ENV)
    if not value:
        return set()
    banned = {target.strip() for target in value.split(",") if target.strip()}
    if banned:
        logger.warning(
            "Following environment variable is not empty: %s. "
            "If you don't know what it means, please make sure that its value is empty.",
            BANNED_TARGETS_ENV,
        )
    return banned
