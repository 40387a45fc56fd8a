import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, ValidationError

from spamtx.errors import ConfigError

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"

cfg = tomllib.loads(config_file.read_text())
cfg["registry"]["url"] = os.getenv("SPAMTX_REGISTRY_URL", cfg["registry"]["url"]).rstrip("/")
cfg["signer"]["binary"] = os.getenv("SPAMTX_SIGNER_BINARY", cfg["signer"]["binary"])
cfg["keyring"]["dir"] = os.getenv("SPAMTX_KEYRING_DIR", cfg["keyring"]["dir"])


def keyring_home() -> Path:
    """Keyring directory, created on first use."""
    home = Path(cfg["keyring"]["dir"]).expanduser()
    home.mkdir(parents=True, exist_ok=True)
    return home


class RunConfig(BaseModel):
    """Everything a spam run needs. Frozen once validated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    chain: str = Field(min_length=1, description="Chain name in the registry")
    account: str = Field(min_length=1, description="Account name from keyring")
    fees: str = Field(min_length=1, description="Transaction fees, also the self-transfer amount")
    memo: str = Field(min_length=1)
    tps: PositiveInt = 10
    gas_limit: NonNegativeInt | None = None
    rpc: str | None = None
    heavy: bool = False
    heavy_address_count: NonNegativeInt = 0


def validate_config(**params) -> RunConfig:
    """Build a RunConfig, turning pydantic errors into a single ConfigError."""
    try:
        return RunConfig(**params)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"invalid configuration: {problems}") from e
