"""Build context shared read-only by every document in a build pass"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import Environment
from markdown_it import MarkdownIt
from markupsafe import Markup

from mdsite.config import Settings
from mdsite.core.library import ComponentRegistry, make_environment
from mdsite.core.parse import make_parser


logger = logging.getLogger(__name__)

COMPONENTS_SUBDIR = "components"


@dataclass(frozen=True)
class BuildContext:
    """Parser, template environment, and component registry for one build.

    Construct exactly once with `BuildContext.create` before any document is
    processed; after that the context is only read, so it can be shared by
    concurrent document tasks and worker threads.
    """
    settings:    Settings
    parser:      MarkdownIt
    env:         Environment
    components:  ComponentRegistry = field(default_factory=ComponentRegistry)

    @classmethod
    def create(cls, settings: Settings, components: ComponentRegistry = None) -> "BuildContext":
        layouts_dir = Path(settings.layouts_dir)
        parser = make_parser(settings.parser_config)
        parser.parse("")  # build rule caches before the parser is shared across threads
        env = make_environment(layouts_dir)
        registry = components if components is not None else ComponentRegistry()
        registry.load_templates(env, layouts_dir / COMPONENTS_SUBDIR)
        logger.debug(
            "Build context ready: parser=%s layouts=%s components=%d",
            settings.parser_config, layouts_dir, len(registry),
        )
        return cls(settings=settings, parser=parser, env=env, components=registry)

    @property
    def posts_root(self) -> Path:
        return Path(self.settings.posts_dir)

    @property
    def pages_root(self) -> Path:
        return Path(self.settings.pages_dir)

    @property
    def output_root(self) -> Path:
        return Path(self.settings.output_dir)

    def site_params(self) -> dict:
        """Site-wide render parameters; HTML-bearing values are marked safe."""
        s = self.settings
        return {
            "site_name": s.site_name,
            "site_title": s.site_title,
            "site_description": Markup(s.site_description),
            "header_links": Markup("\n".join(s.header_links)),
        }
