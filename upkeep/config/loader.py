"""Load and validate plugins.yaml into profile objects.

Resolution order for the profiles file:
  1. Path passed explicitly by caller
  2. ./plugins.yaml in current working directory
  3. ``fallback`` (normally ``config.profiles_file``)
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from upkeep.config.schema import PluginProfileYAML, ProfilesConfig
from upkeep.exceptions import ProfileError


def _find_file(name: str, explicit: Optional[Path], fallback: Optional[Path] = None) -> Path:
    """Locate config file: explicit > cwd > fallback."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {p}")
        return p

    cwd_path = Path.cwd() / name
    if cwd_path.exists():
        return cwd_path

    if fallback is not None and Path(fallback).exists():
        return Path(fallback)

    raise FileNotFoundError(
        f"No {name} found. Create one in your project directory "
        f"or use load_profiles_yaml(path=...)."
    )


def load_profiles_yaml(path: Optional[Path] = None, fallback: Optional[Path] = None) -> list[PluginProfileYAML]:
    """Load plugins.yaml → list of PluginProfileYAML objects.

    Raises:
        FileNotFoundError: No profiles file could be located.
        ProfileError: The file is not valid YAML or fails schema validation.
    """
    resolved = _find_file("plugins.yaml", path, fallback)
    try:
        raw = yaml.safe_load(resolved.read_text())
        profiles = ProfilesConfig.model_validate(raw or {"plugins": []})
    except (yaml.YAMLError, ValidationError) as exc:
        raise ProfileError(f"Invalid profiles file {resolved}: {exc}", details={"path": str(resolved)})
    return profiles.plugins


def find_profile(profiles: list[PluginProfileYAML], slug: str) -> PluginProfileYAML:
    """Return the profile whose plugin directory (or file stem) is ``slug``."""
    for profile in profiles:
        if profile.slug == slug or profile.plugin_file == slug:
            return profile
    raise ProfileError(f"No plugin profile for '{slug}'", details={"slug": slug})
