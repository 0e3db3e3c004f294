"""
Data manager - JSON file storage for pet snapshots and small settings

Synchronous methods serve the engine's single-threaded hosts; the async
variants use aiofiles so an event-loop host never blocks on disk.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List, Iterable

import aiofiles

from .config_manager import get_config
from .errors import PersistenceWriteFailure
from ..pet.models import Pet

logger = logging.getLogger(__name__)

PETS_FILE = "pets.json"
SETTINGS_FILE = "settings.json"


class DataManager:
    """
    Data manager - JSON file storage

    Layout under the data root:
        pets.json      list of pet records
        settings.json  {"flags": {...}, "strings": {...}, "dates": {...}}

    Usage:
        dm = DataManager(base_path=tmp_path)
        dm.save_pets(pets)
        pets = dm.load_pets()

        # async (event-loop hosts)
        pets = await dm.async_load_pets()
        await dm.async_save_pets(pets)
    """

    def __init__(self, base_path: Optional[Path] = None):
        if base_path:
            self.root = Path(base_path)
        elif get_config().get("data_dir"):
            self.root = Path(get_config().get("data_dir"))
        else:
            self.root = Path.cwd() / "data"

        self.root.mkdir(parents=True, exist_ok=True)
        self.pets_file = self.root / PETS_FILE
        self.settings_file = self.root / SETTINGS_FILE

    # ========== Pets ==========
    def load_pets(self) -> List[Pet]:
        data = self._read_json(self.pets_file, default=[])
        return self._decode_pets(data)

    def save_pets(self, pets: Iterable[Pet]):
        content = self._encode_pets(pets)
        self._write_text(self.pets_file, content)

    # ========== Async ==========
    async def async_load_pets(self) -> List[Pet]:
        if not self.pets_file.exists():
            return []
        try:
            async with aiofiles.open(self.pets_file, 'r', encoding='utf-8') as f:
                content = await f.read()
            return self._decode_pets(json.loads(content))
        except (OSError, ValueError) as e:
            logger.warning("could not read %s: %s", self.pets_file, e)
            return []

    async def async_save_pets(self, pets: Iterable[Pet]):
        content = self._encode_pets(pets)
        try:
            async with aiofiles.open(self.pets_file, 'w', encoding='utf-8') as f:
                await f.write(content)
        except OSError as e:
            raise PersistenceWriteFailure(f"failed to save pets: {e}") from e

    # ========== Settings ==========
    def load_flag(self, key: str, default: bool = False) -> bool:
        return bool(self._settings_section("flags").get(key, default))

    def save_flag(self, key: str, value: bool):
        self._save_setting("flags", key, bool(value))

    def load_string(self, key: str) -> Optional[str]:
        return self._settings_section("strings").get(key)

    def save_string(self, key: str, value: str):
        self._save_setting("strings", key, value)

    def load_date(self, key: str) -> Optional[datetime]:
        raw = self._settings_section("dates").get(key)
        if raw is None:
            return None
        try:
            value = datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            logger.warning("ignoring malformed date %r for %s", raw, key)
            return None
        # naive values are local time
        return value if value.tzinfo is not None else value.astimezone()

    def save_date(self, key: str, value: datetime):
        self._save_setting("dates", key, value.isoformat())

    def get_data_path(self) -> Path:
        return self.root

    # ========== Internal ==========
    def _decode_pets(self, data: Any) -> List[Pet]:
        if not isinstance(data, list):
            logger.warning("pets file does not hold a list, ignoring it")
            return []
        pets = []
        for record in data:
            try:
                pets.append(Pet.from_dict(record))
            except ValueError as e:
                # pydantic.ValidationError is a ValueError
                logger.warning("skipping unreadable pet record: %s", e)
        return pets

    def _encode_pets(self, pets: Iterable[Pet]) -> str:
        return json.dumps([p.to_dict() for p in pets], ensure_ascii=False, indent=2)

    def _settings_section(self, section: str) -> Dict[str, Any]:
        settings = self._read_json(self.settings_file, default={})
        value = settings.get(section, {}) if isinstance(settings, dict) else {}
        return value if isinstance(value, dict) else {}

    def _save_setting(self, section: str, key: str, value: Any):
        settings = self._read_json(self.settings_file, default={})
        if not isinstance(settings, dict):
            settings = {}
        settings.setdefault(section, {})[key] = value
        self._write_text(self.settings_file, json.dumps(settings, ensure_ascii=False, indent=2))

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("could not read %s: %s", path, e)
            return default

    def _write_text(self, path: Path, content: str):
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise PersistenceWriteFailure(f"failed to write {path.name}: {e}") from e
