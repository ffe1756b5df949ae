"""Client settings for UBNT device sessions."""

from pathlib import Path
from typing import Union

from omegaconf import OmegaConf
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = "/tmp/system.cfg"


class ClientSettings(BaseModel):
    """Tunables shared by every session, command and transfer."""

    username: str = Field(default="ubnt", description="Default SSH username")
    port: int = Field(default=22, ge=1, le=65535, description="Default SSH port")
    connect_timeout: float = Field(
        default=30.0, gt=0, description="TCP connect and handshake timeout in seconds"
    )
    timeout: float = Field(
        default=30.0, gt=0, description="Poll/read timeout for commands and transfers in seconds"
    )
    buffer_size: int = Field(
        default=8192, gt=0, description="Maximum bytes taken from the channel per read"
    )
    chunk_size: int = Field(
        default=2048, gt=0, description="Bytes requested per SCP read"
    )
    config_path: str = Field(
        default=DEFAULT_CONFIG_PATH, description="Remote path of the device configuration file"
    )


def load_settings(settings_file: Union[str, Path]) -> ClientSettings:
    """
    Load client settings from a YAML file.

    Values may reference environment variables with ``${oc.env:VAR_NAME}``.

    Args:
        settings_file: Path to the YAML settings file

    Returns:
        ClientSettings instance
    """
    settings_path = Path(settings_file)
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_file}")

    with open(settings_path, "r") as f:
        yaml_content = f.read()

    omega_conf = OmegaConf.create(yaml_content)
    data = OmegaConf.to_container(omega_conf, resolve=True)
    if data is None:
        return ClientSettings()
    if not isinstance(data, dict):
        raise ValueError("Settings file must be a YAML dictionary")

    return ClientSettings.model_validate(data)
