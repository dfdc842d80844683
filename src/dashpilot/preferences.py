"""Persisted preference record (dark mode, keep-screen-on, auto-connect, last device)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from dashpilot._constants import PREF_AUTO_CONNECT, PREF_DARK_MODE, PREF_KEEP_SCREEN_ON, PREF_LAST_DEVICE
from dashpilot._redact import redact_for_log
from dashpilot.exceptions import PreferencesError
from dashpilot.models.preferences import Preferences

_logger = logging.getLogger(__name__)

_KNOWN_KEYS = frozenset({PREF_DARK_MODE, PREF_KEEP_SCREEN_ON, PREF_AUTO_CONNECT, PREF_LAST_DEVICE})


class PreferenceStore:
    """A single JSON object on disk, rewritten whole on every change.

    Every mutation re-reads the file first and merges only the key it
    changes, so keys written by other components survive.  Concurrent
    writers are last-writer-wins.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._current = Preferences()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def current(self) -> Preferences:
        """Preferences as of the last load or write."""
        return self._current

    def _read_record(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            _logger.warning("Could not read preferences from %s: %s", self._path, exc)
            return {}
        try:
            record = json.loads(text)
        except json.JSONDecodeError:
            _logger.warning("Preferences at %s are not valid JSON; using defaults", self._path)
            return {}
        if not isinstance(record, dict):
            _logger.warning("Preferences at %s are not an object; using defaults", self._path)
            return {}
        return record

    def _write_record(self, record: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".settings-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record, fh, separators=(",", ":"))
            os.replace(tmp_name, self._path)
        except OSError as exc:
            raise PreferencesError(f"Could not write preferences to {self._path}: {exc}") from exc

    def _valid_keys(self, record: dict[str, Any]) -> dict[str, Any]:
        """*record* without the known keys whose values do not validate."""
        kept: dict[str, Any] = {}
        for key, value in record.items():
            if key in _KNOWN_KEYS:
                try:
                    Preferences.from_record({key: value})
                except ValidationError:
                    _logger.warning("Ignoring invalid preference %s=%r in %s", key, redact_for_log(value), self._path)
                    continue
            kept[key] = value
        return kept

    def _parse(self, record: dict[str, Any]) -> Preferences:
        try:
            return Preferences.from_record(record)
        except ValidationError:
            return Preferences.from_record(self._valid_keys(record))

    def load(self) -> Preferences:
        prefs = self._parse(self._read_record())
        self._current = prefs
        _logger.debug("Loaded preferences: %s", redact_for_log(prefs.to_record()))
        return prefs

    def _update(self, key: str, value: Any) -> Preferences:
        record = self._parse(self._read_record()).to_record()
        record[key] = value
        try:
            prefs = Preferences.from_record(record)
        except ValidationError as exc:
            raise PreferencesError(f"Invalid value for {key}: {value!r}") from exc
        self._write_record(prefs.to_record())
        self._current = prefs
        return prefs

    def _toggle(self, attr: str) -> bool:
        # Toggle against what is on disk, not the cached copy.
        on_disk = self._parse(self._read_record())
        alias = Preferences.model_fields[attr].alias
        assert alias is not None  # noqa: S101
        new_value = not getattr(on_disk, attr)
        return bool(getattr(self._update(alias, new_value), attr))

    def toggle_dark_mode(self) -> bool:
        return self._toggle("dark_mode")

    def toggle_keep_screen_on(self) -> bool:
        return self._toggle("keep_screen_on")

    def toggle_auto_connect(self) -> bool:
        """Flip auto-connect and persist it.  Returns the new value."""
        return self._toggle("auto_connect")

    def set_last_device(self, device_id: str | None) -> Preferences:
        alias = Preferences.model_fields["last_device_id"].alias
        assert alias is not None  # noqa: S101
        return self._update(alias, device_id)
