"""Session provider backed by the ``cf`` command line interface.

The provider supplies the context a command needs: the targeted space, the API
endpoint, a fresh access token and a raw API passthrough (``cf curl``). Target
information is read from the ``cf`` CLI's ``config.json``; anything requiring
authentication is delegated to the ``cf`` binary itself.
"""
from __future__ import annotations

import json
import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

LOGGER = logging.getLogger(__name__)

CF_HOME_ENV_VAR = "CF_HOME"


class CfCliError(RuntimeError):
    """Raised when the cf CLI session cannot provide the requested context."""


@dataclass(slots=True, frozen=True)
class SpaceFields:
    """The space currently targeted by the cf CLI."""

    guid: str
    name: str = ""


@dataclass(slots=True)
class CfCliSession:
    """Read the cf CLI target and proxy authenticated API calls through ``cf``."""

    cf_bin: str = "cf"
    cf_home: Path | None = None
    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))

    @property
    def home(self) -> Path:
        """Return the directory that holds the ``.cf`` folder."""
        if self.cf_home is not None:
            return self.cf_home
        configured = self.env.get(CF_HOME_ENV_VAR)
        if configured:
            return Path(configured).expanduser()
        return Path.home()

    @property
    def config_path(self) -> Path:
        """Return the cf CLI ``config.json`` path."""
        return self.home / ".cf" / "config.json"

    def current_space(self) -> SpaceFields:
        """Return the targeted space."""
        space = self._read_config().get("SpaceFields")
        if not isinstance(space, Mapping):
            raise CfCliError("No space targeted, use 'cf target -s SPACE'.")
        guid = str(space.get("GUID") or space.get("Guid") or "").strip()
        if not guid:
            raise CfCliError("No space targeted, use 'cf target -s SPACE'.")
        return SpaceFields(guid=guid, name=str(space.get("Name") or ""))

    def api_endpoint(self) -> str:
        """Return the targeted API endpoint URL."""
        target = str(self._read_config().get("Target") or "").strip()
        if not target:
            raise CfCliError("No API endpoint set. Use 'cf login' or 'cf api' to target an endpoint.")
        return target.rstrip("/")

    def access_token(self) -> str:
        """Return a current bearer token, refreshing it through ``cf oauth-token``."""
        result = self._run(["oauth-token"])
        token = result.stdout.strip()
        if not token:
            raise CfCliError("cf oauth-token returned no token. Use 'cf login' to authenticate.")
        return token

    def curl(self, path: str) -> list[str]:
        """Issue ``cf curl`` against *path* and return the response body lines."""
        LOGGER.debug("Calling cf curl %s", path)
        result = self._run(["curl", path])
        return result.stdout.splitlines()

    # ------------------------------------------------------------------
    def _read_config(self) -> dict[str, object]:
        path = self.config_path
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise CfCliError(
                f"cf CLI config not found at {path}. Use 'cf login' first."
            ) from exc
        except OSError as exc:
            raise CfCliError(f"Unable to read cf CLI config {path}: {exc}") from exc
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CfCliError(f"cf CLI config {path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise CfCliError(f"cf CLI config {path} must contain a JSON object.")
        return data

    def _command_env(self) -> dict[str, str]:
        env = dict(self.env)
        if self.cf_home is not None:
            env[CF_HOME_ENV_VAR] = str(self.cf_home)
        return env

    def _run(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        command = [self.cf_bin, *args]
        try:
            result = subprocess.run(  # noqa: S603
                command,
                capture_output=True,
                text=True,
                check=False,
                env=self._command_env(),
            )
        except FileNotFoundError as exc:
            raise CfCliError(f"{self.cf_bin} not found: {exc}") from exc
        if result.returncode != 0:
            stdout = getattr(result, "stdout", "") or ""
            stderr = getattr(result, "stderr", "") or ""
            message = stderr.strip() or stdout.strip() or "no output"
            joined = " ".join(command)
            raise CfCliError(f"{joined} failed (exit {result.returncode}): {message}")
        return result


__all__ = ["CfCliError", "CfCliSession", "SpaceFields"]
