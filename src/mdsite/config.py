"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"
_LIST_FIELDS = {"header_links"}


class Settings(BaseModel):
    site_name:        str = "mdsite"
    site_title:       str = "My Site"
    site_description: str = ""
    header_links:     list[str] = Field(default_factory=list, description="Raw HTML snippets for the site header")
    posts_dir:        str = Field(default="content/posts", description="Directory of yyyy-mm-dd-slug.md posts")
    pages_dir:        str = Field(default="content/pages", description="Directory of .md pages and .jinja templates")
    output_dir:       str = Field(default="wwwroot",       description="Web root receiving generated HTML")
    layouts_dir:      str = Field(default="layouts",       description="Optional directory of layout overrides")
    parser_config:    str = Field(default="gfm-like",      description="MarkdownIt parser preset name")
    render_timeout: float = Field(default=30.0, gt=0, description="Seconds allowed per template render")
    max_workers:      int = Field(default=8, ge=1,    description="Documents processed concurrently")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDSITE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if val := os.getenv(f"MDSITE_{name.upper()}"):
            data[name] = [v.strip() for v in val.split(",") if v.strip()] if name in _LIST_FIELDS else val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
