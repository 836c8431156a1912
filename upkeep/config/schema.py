"""Pydantic models for plugins.yaml validation.

A profile carries everything the update server needs to identify a plugin
install (license, product) plus presentation defaults the server may omit.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class PluginProfileYAML(BaseModel):
    """Validated schema for a plugin entry in plugins.yaml."""

    plugin_file: str                                # relative to plugins_dir, e.g. "my-plugin/my-plugin.php"
    license_key: str = ""
    product_id: int = 0
    update_server_path: str = "/"
    extra_args: dict[str, Any] = Field(default_factory=dict)
    banners: dict[str, str] = Field(default_factory=dict)
    icons: dict[str, str] = Field(default_factory=dict)
    description: str = ""                           # overrides the header Description in the details view
    strings: dict[str, str] = Field(default_factory=dict)

    @field_validator("product_id", mode="before")
    @classmethod
    def coerce_product_id(cls, v):
        if v is None or v == "":
            return 0
        return abs(int(v))

    @field_validator("update_server_path")
    @classmethod
    def leading_slash(cls, v: str) -> str:
        return "/" + v.strip().lstrip("/")

    @property
    def slug(self) -> str:
        head, _, tail = self.plugin_file.replace("\\", "/").partition("/")
        return head if tail else head.rsplit(".", 1)[0]


class ProfilesConfig(BaseModel):
    """Root schema for plugins.yaml."""
    plugins: list[PluginProfileYAML] = Field(default_factory=list)
