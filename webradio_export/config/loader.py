"""Configuration and catalogue loading helpers."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from .models import Catalogue, GlobalConfig

if TYPE_CHECKING:  # pragma: no cover
    from ..engine.vault import CredentialVault

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
SECRET_ENV_VARS = ("WEBRADIO_EXPORT_SECRET", "FTP_PASSWORD_SECRET", "APP_ENCRYPTION_KEY", "APP_SECRET")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text) if text.strip() else {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def resolve_secret() -> str | None:
    """Return the process encryption secret from the environment, if any."""

    for name in SECRET_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    history_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("WEBRADIO_EXPORT_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.history_dir = (self.data_dir / "history").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.history_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME

    def resolve(self, path: Path) -> Path:
        """Anchor a relative configured path at the project root."""

        if path.is_absolute():
            return path
        return (self.project_root / path).resolve()


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
        env_output = os.environ.get("EXPORT_OUTPUT_DIR", "").strip()
        if env_output:
            global_cfg = global_cfg.model_copy(update={"output_dir": Path(env_output)})
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        payload = config.model_dump(mode="json")
        _write_file(path, payload)
        self._global_cache = config

    def output_dir(self) -> Path:
        return self.locator.resolve(self.load_global_config().output_dir)

    def reports_db_path(self) -> Path:
        return self.locator.resolve(self.load_global_config().reports_db)

    # ------------------------------------------------------------------
    # Catalogue helpers
    # ------------------------------------------------------------------
    def catalogue_path(self) -> Path:
        return self.locator.resolve(self.load_global_config().catalogue_file)

    def load_catalogue(self) -> Catalogue:
        """Read the catalogue fresh from disk; an absent file is an empty catalogue."""

        path = self.catalogue_path()
        if not path.exists():
            return Catalogue()
        if path.suffix not in CONFIG_EXTENSIONS:
            raise ValueError(f"Unsupported catalogue format: {path.suffix}")
        return Catalogue.model_validate(_read_file(path))

    def save_catalogue(self, catalogue: Catalogue, vault: "CredentialVault") -> Path:
        """Persist the catalogue, encrypting any plaintext FTP password first."""

        for player in catalogue.player_apps:
            if player.ftp_password:
                player.ftp_password = vault.migrate(player.ftp_password)
        path = self.catalogue_path()
        _write_file(path, catalogue.model_dump(mode="json", by_alias=True))
        return path

    def migrate_credentials(self, vault: "CredentialVault") -> int:
        """Encrypt plaintext passwords left by older records; return how many changed."""

        catalogue = self.load_catalogue()
        pending = sum(
            1
            for player in catalogue.player_apps
            if player.ftp_password and not vault.is_encrypted(player.ftp_password)
        )
        if pending:
            self.save_catalogue(catalogue, vault)
        return pending


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "resolve_secret"]
