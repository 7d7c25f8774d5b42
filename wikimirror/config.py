"""Mirror settings and the Crawl4AI run configuration used for every page."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from urllib.parse import quote

from crawl4ai import CrawlerRunConfig
from crawl4ai.async_configs import CacheMode
from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

BASE_URL = "https://ulisses-regelwiki.de/"
ID_PREFIX = "dsa-rule-"
OUTPUT_DIRECTORY = "result"
ROOT_DOCUMENT_ID = "index"
ROOT_DOCUMENT_TITLE = "DSA Regel Wiki"
TITLE_SUFFIX = " - DSA Regel Wiki"
PAGE_EXTENSION = ".html"

# Seed pages, processed in this order before any discovered link.
ENTRY_POINTS: List[str] = [
    "index.php/regeln.html",
    "index.php/spezies.html",
    "index.php/kulturen.html",
    "index.php/professionen.html",
    "index.php/sonderfertigkeiten.html",
    "index.php/vor-und-nachteile.html",
    "index.php/magie.html",
    "index.php/goetterwirken.html",
    "index.php/ruestkammer.html",
    "index.php/bestiarium.html",
    "index.php/herbarium.html",
    "index.php/GifteundKrankheiten.html",
    "index.php/WdV18.html",
]

# Page regions converted to markdown, joined in this order.
CONTENT_SELECTORS: List[str] = ["center", "#main"]

BREADCRUMB_SELECTOR = ".mod_breadcrumb a"

DOCUMENT_TAGS: List[str] = ["dsa", "regelwiki"]

CONFIG_DIR = Path.home() / ".config" / "wikimirror"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


@dataclass
class MirrorConfig:
    """Everything the crawl needs to know about the source wiki and the output."""

    base_url: str = BASE_URL
    id_prefix: str = ID_PREFIX
    output_dir: str = OUTPUT_DIRECTORY
    entry_points: List[str] = field(default_factory=lambda: list(ENTRY_POINTS))
    root_id: str = ROOT_DOCUMENT_ID
    root_title: str = ROOT_DOCUMENT_TITLE
    title_suffix: str = TITLE_SUFFIX
    page_extension: str = PAGE_EXTENSION
    content_selectors: List[str] = field(
        default_factory=lambda: list(CONTENT_SELECTORS)
    )
    breadcrumb_selector: str = BREADCRUMB_SELECTOR
    tags: List[str] = field(default_factory=lambda: list(DOCUMENT_TAGS))
    max_pages: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.base_url.endswith("/"):
            self.base_url = self.base_url + "/"

    @property
    def host(self) -> str:
        """Bare host of the base URL, e.g. ``ulisses-regelwiki.de``."""
        _, _, rest = self.base_url.partition("://")
        return (rest or self.base_url).split("/", 1)[0]

    def host_prefixes(self) -> Tuple[str, ...]:
        """Absolute prefixes stripped from links, most specific first."""
        host = self.host
        prefixes = {
            f"https://{host}/",
            f"http://{host}/",
            f"//{host}/",
            f"{host}/",
        }
        return tuple(sorted(prefixes, key=len, reverse=True))

    def page_url(self, path: str) -> str:
        """Absolute URL for a decoded site-relative path."""
        return self.base_url + quote(path.lstrip("/"), safe="/")

    @classmethod
    def from_env(cls, **overrides) -> "MirrorConfig":
        """Build a config from ``WIKIMIRROR_*`` environment variables.

        Keyword overrides that are not ``None`` win over the environment.
        """
        values = {
            "base_url": os.getenv("WIKIMIRROR_BASE_URL") or BASE_URL,
            "id_prefix": os.getenv("WIKIMIRROR_ID_PREFIX", ID_PREFIX),
            "output_dir": os.getenv("WIKIMIRROR_OUTPUT_DIR") or OUTPUT_DIRECTORY,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def load_env_file(
    *,
    cwd: Optional[Path] = None,
    config_env_file: Path = CONFIG_ENV_FILE,
    load_env: Callable[[Path], bool] = load_dotenv,
) -> Optional[Path]:
    """Load .env configuration with fallback to the user config directory.

    Search order:
    1. .env in current working directory
    2. ~/.config/wikimirror/.env

    Returns the file that was loaded, if any.
    """
    local_env = (cwd or Path.cwd()) / ".env"
    if local_env.is_file():
        load_env(local_env)
        return local_env

    if config_env_file.is_file():
        load_env(config_env_file)
        return config_env_file

    return None


def build_page_run_config(*, verbose: bool = False) -> CrawlerRunConfig:
    """RunConfig for rendering a single wiki page; raw HTML is all we need."""
    return CrawlerRunConfig(
        verbose=verbose,
        semaphore_count=1,
        wait_until="domcontentloaded",
        delay_before_return_html=0.2,
        cache_mode=CacheMode.BYPASS,
    )
