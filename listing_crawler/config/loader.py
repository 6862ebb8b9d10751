"""Configuration loading helpers for listing-crawler."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from .models import CrawlConfig, GlobalConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
CRAWL_CONFIG_SUFFIX = ".yaml"
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    outputs_dir: Path | None = None
    crawls_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("LISTING_CRAWLER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.outputs_dir = (self.data_dir / "outputs").resolve()
        self.crawls_dir = (self.data_dir / "crawls").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.outputs_dir, self.crawls_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME

    def resolve(self, path: Path) -> Path:
        """Anchor relative config paths at the project root."""

        return path if path.is_absolute() else (self.project_root / path).resolve()


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            payload = _read_file(path)
            global_cfg = GlobalConfig.model_validate(payload)
        else:
            global_cfg = GlobalConfig()
            self.save_global_config(global_cfg)
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        payload = config.model_dump(mode="json")
        _write_file(path, payload)
        self._global_cache = config

    def outputs_dir(self) -> Path:
        return self.locator.resolve(self.load_global_config().outputs_dir)

    def crawls_dir(self) -> Path:
        directory = self.locator.resolve(self.load_global_config().crawls_dir)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    # ------------------------------------------------------------------
    # Crawl configuration helpers
    # ------------------------------------------------------------------
    def crawl_path(self, crawl_name: str) -> Path:
        slug = _slugify(crawl_name)
        return self.crawls_dir() / f"{slug}{CRAWL_CONFIG_SUFFIX}"

    def list_crawl_files(self) -> Iterable[Path]:
        for path in sorted(self.crawls_dir().glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def load_crawl(self, identifier: str | Path) -> CrawlConfig:
        path = identifier if isinstance(identifier, Path) else self.crawl_path(identifier)
        if not path.exists():
            raise FileNotFoundError(f"Crawl configuration not found: {identifier}")
        payload = _read_file(path)
        return CrawlConfig.model_validate(payload)

    def save_crawl(self, config: CrawlConfig) -> Path:
        path = self.crawl_path(config.name)
        payload = config.model_dump(mode="json", exclude_none=True)
        _write_file(path, payload)
        return path

    def delete_crawl(self, crawl_name: str) -> None:
        path = self.crawl_path(crawl_name)
        if path.exists():
            path.unlink()

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    @staticmethod
    def list_templates() -> list[str]:
        return sorted(p.stem for p in TEMPLATES_DIR.glob("*.yaml"))

    def init_from_template(self, template_name: str, crawl_name: str) -> Path:
        """Create a crawl config from a packaged template under a new name."""

        template_path = TEMPLATES_DIR / f"{template_name}.yaml"
        if not template_path.exists():
            raise FileNotFoundError(f"Template not found: {template_name}")
        payload = _read_file(template_path)
        payload["name"] = crawl_name
        config = CrawlConfig.model_validate(payload)
        return self.save_crawl(config)


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_EXTENSIONS", "TEMPLATES_DIR"]
