import os
import tomllib
from pathlib import Path
from typing import Annotated

import tomlkit
from pydantic import BaseModel, Field, HttpUrl, PlainSerializer, WebsocketUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lendgraph.constants import DUST_THRESHOLD
from lendgraph.logging import logger

CONFIG_DIR = Path(
    os.environ.get("LENDGRAPH_CONFIG_DIR", Path.home() / ".config" / "lendgraph")
).expanduser()
CONFIG_FILE = CONFIG_DIR / "config.toml"
DB_PATH = CONFIG_DIR / "lendgraph.db"

ChainId = int


class DatabaseSettings(BaseModel):
    # Serialize the path as a string representation of the absolute path
    path: Annotated[
        Path,
        PlainSerializer(lambda path: str(path.absolute()), return_type=str),
    ]


class IndexerSettings(BaseModel):
    """
    Parameters for `lendgraph index update`.

    `contracts` holds the root addresses whose logs are always fetched: the pool registry,
    comptrollers, governors and the governance token. Markets and rewards distributors are
    discovered from their events and do not need to be listed.
    """

    chain_id: ChainId = 56
    start_block: int = 0
    last_update_block: int | None = None
    contracts: list[str] = Field(default_factory=list)
    dust_threshold: int = DUST_THRESHOLD
    chunk_size: int = 10_000
    max_blocks_per_request: int = 5_000

    @field_validator("dust_threshold", "chunk_size", "max_blocks_per_request", mode="after")
    def validate_positive(
        cls,  # noqa: N805
        value: int,
    ) -> int:
        if value <= 0:
            msg = "Value must be positive"
            raise ValueError(msg)
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict()

    database: DatabaseSettings
    rpc: dict[
        ChainId,
        HttpUrl | WebsocketUrl | Path,
    ]
    indexer: IndexerSettings = Field(default_factory=IndexerSettings)

    @field_validator("rpc", mode="after")
    def validate_paths(
        cls,  # noqa: N805
        rpc_dict: dict[ChainId, HttpUrl | WebsocketUrl | Path],
    ) -> dict[ChainId, HttpUrl | WebsocketUrl | Path]:
        """
        Validate the endpoints.

        This will convert all file paths to an absolute reference, leaving HTTP and WS URLs as-is.
        """

        return {
            chain_id: endpoint.expanduser().absolute() if isinstance(endpoint, Path) else endpoint
            for chain_id, endpoint in rpc_dict.items()
        }


def load_config_from_file(config_path: Path) -> Settings:
    return Settings.model_validate(
        tomllib.loads(
            config_path.read_text(),
        ),
    )


def save_config_to_file(config: Settings, config_path: Path = CONFIG_FILE) -> None:
    config_path.write_text(
        tomlkit.dumps(
            config.model_dump(mode="json", exclude_none=True),
        ),
    )


if not CONFIG_DIR.exists():
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"Created a configuration directory at {CONFIG_DIR}.")

if CONFIG_FILE.exists():
    settings = load_config_from_file(CONFIG_FILE)
else:
    settings = Settings(
        database=DatabaseSettings(
            path=DB_PATH,
        ),
        rpc={},
    )

    save_config_to_file(settings)
    logger.info(f"Created a configuration file at {CONFIG_FILE}.")
