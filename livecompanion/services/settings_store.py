# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Synchronous namespaced key/JSON-value persistence."""

import json
import logging
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from livecompanion.errors import SettingsDecodeError
from livecompanion.models.setting import SettingModel

logger = logging.getLogger(__name__)


class SettingsStore:
    """Key/value store backed by the ``settings`` table.

    Each call uses its own short-lived session. There is no locking:
    concurrent writers to one key race and the last write wins.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for ``key`` or ``default`` if unset.

        Raises:
            SettingsDecodeError: If the stored text is not valid JSON
        """
        with self._session_factory() as db:
            row = db.get(SettingModel, key)
            if row is None:
                return default
            raw = row.value
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Malformed JSON stored under setting {key}: {e}")
            raise SettingsDecodeError(key, str(e)) from e

    def has(self, key: str) -> bool:
        with self._session_factory() as db:
            return db.get(SettingModel, key) is not None

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``.

        Raises:
            TypeError: If the value is not JSON-serializable
        """
        encoded = json.dumps(value)
        with self._session_factory() as db:
            row = db.get(SettingModel, key)
            if row is None:
                db.add(SettingModel(key=key, value=encoded))
            else:
                row.value = encoded
            db.commit()

    def delete(self, key: str) -> bool:
        with self._session_factory() as db:
            row = db.get(SettingModel, key)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with ``prefix``."""
        with self._session_factory() as db:
            query = db.query(SettingModel.key)
            if prefix:
                query = query.filter(SettingModel.key.startswith(prefix))
            return [row[0] for row in query.order_by(SettingModel.key).all()]

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; returns the count."""
        with self._session_factory() as db:
            count = (
                db.query(SettingModel)
                .filter(SettingModel.key.startswith(prefix))
                .delete(synchronize_session=False)
            )
            db.commit()
            return count
