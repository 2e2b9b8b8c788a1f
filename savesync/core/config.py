from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

PROJECT_ROOT = Path.home() / ".savesync"
RUNTIME_DIR = PROJECT_ROOT / "runtime"
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"
DEFAULT_CONFIG_TEMPLATE_PATH = Path(__file__).resolve().parents[2] / "config.yaml.example"
LAST_RUN_PATH = RUNTIME_DIR / "last_run.json"
DEFAULT_ARCHIVE_ROOT = str(Path.home() / "Documents" / "SaveSyncBackups")


def _expand(value: str) -> str:
    return str(Path(value).expanduser()) if value else value


class MergeConfig(BaseModel):
    locations: list[str] = Field(default_factory=list)
    archive_root: str = DEFAULT_ARCHIVE_ROOT
    # Conflict policy: newest | largest | manual.
    # Kept as a free string: an unknown value falls back to the first record at resolve time.
    policy: str = "newest"
    dry_run: bool = False
    # SMB port used for the lightweight reachability probe of network shares.
    probe_port: int = Field(default=445, ge=1, le=65535)
    probe_timeout_sec: float = Field(default=2.0, gt=0, le=2.0)


class TransferConfig(BaseModel):
    remote_path: str
    local_path: str


class DeviceConfig(BaseModel):
    adb_path: str = "adb"
    # host:port; empty means detect the port from the emulator config file.
    address: str = ""
    host: str = "127.0.0.1"
    emulator_config: str = ""
    instance: str = "Nougat64"
    port_key_template: str = "bst.instance.{instance}.status.adb_port"
    retries: int = Field(default=3, ge=1, le=20)
    retry_delay_sec: float = Field(default=2.0, ge=0)
    timeout_sec: int = Field(default=60, ge=1)
    transfers: list[TransferConfig] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = str(RUNTIME_DIR / "savesync.log")

    @field_validator("file")
    @classmethod
    def expand_file(cls, v: str) -> str:
        return _expand(v)


class DatabaseConfig(BaseModel):
    path: str = str(RUNTIME_DIR / "savesync.db")

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: str) -> str:
        return _expand(v)


class AppConfig(BaseModel):
    merge: MergeConfig = Field(default_factory=MergeConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)


def ensure_runtime_dirs(cfg: AppConfig):
    Path(cfg.logging.file).parent.mkdir(parents=True, exist_ok=True)
    Path(cfg.database.path).parent.mkdir(parents=True, exist_ok=True)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    import yaml

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        if DEFAULT_CONFIG_TEMPLATE_PATH.exists():
            try:
                template_text = DEFAULT_CONFIG_TEMPLATE_PATH.read_text(encoding="utf-8")
                data = yaml.safe_load(template_text) or {}
                cfg = AppConfig.model_validate(data)
                path.write_text(template_text, encoding="utf-8")
            except Exception:
                cfg = AppConfig()
                path.write_text(yaml.safe_dump(cfg.model_dump(), allow_unicode=True, sort_keys=False), encoding="utf-8")
        else:
            cfg = AppConfig()
            path.write_text(yaml.safe_dump(cfg.model_dump(), allow_unicode=True, sort_keys=False), encoding="utf-8")
        ensure_runtime_dirs(cfg)
        return cfg

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    cfg = AppConfig.model_validate(data)
    ensure_runtime_dirs(cfg)
    return cfg
