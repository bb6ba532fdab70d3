"""
spass configuration.

Settings are read from the environment once, when Settings() is built, and
the object is then handed to whatever needs it (Vault.from_settings,
FileStore, BreachChecker, GPG). Nothing else in spass looks at os.environ.

The variable names match pass(1), so an existing shell setup just works.
"""

from pathlib import Path
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_store_dir() -> Path:
    return Path.home() / ".password-store"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
    )

    # Password store
    store_dir: Path = Field(default_factory=_default_store_dir, validation_alias="PASSWORD_STORE_DIR")
    editor: str = Field(default="vim", validation_alias="EDITOR")

    # gpg
    gpg_binary: str = Field(default="gpg", validation_alias="SPASS_GPG")
    gpg_timeout: Optional[float] = Field(default=None, validation_alias="SPASS_GPG_TIMEOUT")

    # Breach check
    hibp_api_key: str = Field(default="", validation_alias="HAVEIBEENPWND_API_KEY")
    hibp_url: str = Field(default="https://api.pwnedpasswords.com", validation_alias="SPASS_HIBP_URL")
    hibp_timeout: Optional[float] = Field(default=None, validation_alias="SPASS_HIBP_TIMEOUT")

    # Logging
    log_level: str = Field(default="WARNING", validation_alias="SPASS_LOG_LEVEL")

    def as_env(self) -> Dict[str, str]:
        """The pass-visible variables with their effective values (API key masked)."""
        key = self.hibp_api_key
        masked = key[:4] + "*" * (len(key) - 4) if len(key) > 4 else "*" * len(key)
        return {
            "PASSWORD_STORE_DIR": str(self.store_dir),
            "EDITOR": self.editor,
            "HAVEIBEENPWND_API_KEY": masked,
        }
