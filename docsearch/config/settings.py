from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field
import yaml
import os

class ChunkingConfig(BaseModel):
    chunk_size: int = Field(default=5000, gt=0)   # characters per chunk

class IngestionConfig(BaseModel):
    async_threshold_bytes: int = 10 * 1024 * 1024  # uploads above this go async
    max_workers: int = Field(default=4, gt=0)
    drop_dir: str | None = None                    # watched directory, disabled when unset
    drop_poll_seconds: float = Field(default=5.0, gt=0)

class SearchConfig(BaseModel):
    default_max_results: int = 10
    overfetch_factor: int = 3
    fragment_size: int = 150
    number_of_fragments: int = 3
    pre_tag: str = "<mark>"
    post_tag: str = "</mark>"
    filenames_fetch_limit: int = 10000

class IndexConfig(BaseModel):
    backend: str = "local"           # "local" | "elasticsearch"
    index_name: str = "documents"
    persist_path: str | None = "./data/index"
    hosts: list[str] = ["http://localhost:9200"]
    username: str = ""
    password: str = ""
    connect_retries: int = 10
    retry_delay_seconds: float = 2.0

class AppSettings(BaseSettings):
    chunking: ChunkingConfig = ChunkingConfig()
    ingestion: IngestionConfig = IngestionConfig()
    search: SearchConfig = SearchConfig()
    index: IndexConfig = IndexConfig()
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )


CONFIG_ENV_VAR = "DOCSEARCH_CONFIG"

def load_settings(config_path: str = "docsearch/config/config.yaml") -> AppSettings:
    """
    Loads settings from the first config.yaml found.
    DOCSEARCH_CONFIG, when set, is tried before everything else. Sections
    missing from the yaml fall back to the environment / .env, then defaults.
    """
    paths_to_try = [
        os.environ.get(CONFIG_ENV_VAR),
        config_path,
        "config.yaml",
        os.path.join(os.path.dirname(__file__), "config.yaml")
    ]

    yaml_data = {}
    for path in filter(None, paths_to_try):
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
            break

    # Only sections present in the yaml are passed explicitly
    sections = {
        "chunking": ChunkingConfig,
        "ingestion": IngestionConfig,
        "search": SearchConfig,
        "index": IndexConfig,
    }
    overrides = {name: model(**yaml_data[name]) for name, model in sections.items() if yaml_data.get(name)}
    if "log_level" in yaml_data:
        overrides["log_level"] = yaml_data["log_level"]
    return AppSettings(**overrides)

# Global settings instance
settings = load_settings()
