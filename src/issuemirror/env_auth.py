"""Environment-based credentials for IssueMirror.

Tokens come from environment variables, optionally seeded from a ``.env``
file. GitHub and Notion each accept a few conventional variable names.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError
from .logging import get_logger

DOTENV_LOCATIONS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"
    notion_token_var: str = "NOTION_TOKEN"


class EnvironmentAuthManager:
    """Resolves API tokens from environment variables and .env files."""

    GITHUB_ALTERNATIVES = ("GH_TOKEN", "GITHUB_PAT")
    NOTION_ALTERNATIVES = ("NOTION_API_KEY",)

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        """Load the configured .env file, else the first conventional one found."""
        if self.config.dotenv_path:
            candidates: tuple[str, ...] = (self.config.dotenv_path,)
        else:
            candidates = DOTENV_LOCATIONS
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                # existing environment wins over the file
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def _lookup(self, primary: str, alternatives: tuple[str, ...]) -> str | None:
        for var in (primary, *alternatives):
            token = os.getenv(var)
            if token and token.strip():
                self.logger.debug(f"Found token in {var}")
                return token.strip()
        return None

    def get_github_token(self) -> str | None:
        return self._lookup(self.config.github_token_var, self.GITHUB_ALTERNATIVES)

    def get_notion_token(self) -> str | None:
        return self._lookup(self.config.notion_token_var, self.NOTION_ALTERNATIVES)

    def require_tokens(self) -> tuple[str, str]:
        """Return ``(github_token, notion_token)`` or raise ConfigError naming what is missing."""
        github = self.get_github_token()
        notion = self.get_notion_token()
        missing: list[str] = []
        if not github:
            names = ", ".join((self.config.github_token_var, *self.GITHUB_ALTERNATIVES))
            missing.append(f"GitHub token ({names})")
        if not notion:
            names = ", ".join((self.config.notion_token_var, *self.NOTION_ALTERNATIVES))
            missing.append(f"Notion token ({names})")
        if missing:
            raise ConfigError("Missing credentials: " + "; ".join(missing))
        assert github is not None and notion is not None
        return github, notion


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager"]
