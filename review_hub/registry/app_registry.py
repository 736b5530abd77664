"""
App registry: create, update and delete tracked app configurations.

Edits to an existing app take the pipeline's per-app lock, so a config
change never interleaves with an aggregate recompute for the same app.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from review_hub.database.db_manager import DatabaseManager
from review_hub.exceptions import AppNotFoundError
from review_hub.ingestion.pipeline import IngestionPipeline
from review_hub.models.app import App
from review_hub.models.review import now_iso
from review_hub.utils.logger import get_logger

# Fields a client may set; derived fields are owned by the aggregator
CONFIG_FIELDS = (
    "name",
    "icon",
    "appStoreId",
    "playStoreId",
    "appStoreRegions",
    "playStoreRegions",
    "appStoreFrequency",
    "playStoreFrequency",
)


class AppRegistry:
    """CRUD over App records."""

    def __init__(
        self,
        db: DatabaseManager,
        pipeline: Optional[IngestionPipeline] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.db = db
        self.pipeline = pipeline
        self.logger = logger or get_logger("registry")

    def _lock(self, app_id: str):
        if self.pipeline is None:
            # Nothing else writes this app without a pipeline
            return asyncio.Lock()
        return self.pipeline.lock_for(app_id)

    async def _new_id(self) -> str:
        # Millisecond timestamp, bumped until unused
        candidate = int(time.time() * 1000)
        while await self.db.get_app_by_id(str(candidate)) is not None:
            candidate += 1
        return str(candidate)

    async def list_apps(self) -> List[App]:
        return await self.db.get_all_apps()

    async def get_app(self, app_id: str) -> App:
        """
        Raises:
            AppNotFoundError: if no app has this id
        """
        app = await self.db.get_app_by_id(app_id)
        if app is None:
            raise AppNotFoundError(app_id)
        return app

    async def create_app(self, config: Dict[str, Any]) -> App:
        """
        Register a new app from its configuration.

        Raises:
            InvalidAppConfig: if the configuration is inconsistent
        """
        data = {key: config.get(key) for key in CONFIG_FIELDS}
        app = App.from_dict(data)
        app.validate()

        app = app.with_config(
            id=await self._new_id(),
            rating=0.0,
            review_count=0,
            last_updated=now_iso(),
        )
        await self.db.create_app(app)
        self.logger.info(f"Created app {app.id} ({app.name})")
        return app

    async def update_app(self, app_id: str, config: Dict[str, Any]) -> App:
        """
        Apply configuration changes to an existing app.

        Only keys present in config are changed; derived fields are kept.

        Raises:
            AppNotFoundError: if no app has this id
            InvalidAppConfig: if the resulting configuration is inconsistent
        """
        async with self._lock(app_id):
            current = await self.get_app(app_id)
            data = current.to_dict()
            data.update({key: config[key] for key in CONFIG_FIELDS if key in config})

            app = App.from_dict(data)
            app.validate()
            app = app.with_config(last_updated=now_iso())

            await self.db.update_app(app)
            self.logger.info(f"Updated app {app.id} ({app.name})")
            return app

    async def delete_app(self, app_id: str) -> None:
        """
        Delete an app with all its reviews and derived data.

        Raises:
            AppNotFoundError: if no app has this id
        """
        async with self._lock(app_id):
            await self.get_app(app_id)
            await self.db.delete_app(app_id)
        if self.pipeline is not None:
            self.pipeline.release_lock(app_id)
        self.logger.info(f"Deleted app {app_id}")
