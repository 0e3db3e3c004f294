import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from ..common.clock import Clock
from ..common.config_manager import get_config
from ..common.data_manager import DataManager
from ..common.errors import NotFoundError, PersistenceWriteFailure
from .logic import PetEngine, TransientOverlay, classify
from .models import ActionOutcome, CareAction, Pet, PetKind, PetState, PetStatusView, TransientState

logger = logging.getLogger(__name__)

SOUND_FLAG = "sound_enabled"

Listener = Callable[['PetRegistry'], None]


class PetRegistry:
    """
    Multi-pet container owned by the host.

    Every successful pet mutation is followed by exactly one ``save_pets`` of
    the whole collection. A failed write is logged and reported through
    ``on_persist_error``; the in-memory change is kept.
    """

    def __init__(self, data_manager: DataManager, engine: Optional[PetEngine] = None,
                 clock: Optional[Clock] = None,
                 on_persist_error: Optional[Callable[[PersistenceWriteFailure], None]] = None):
        self.dm = data_manager
        self.engine = engine or PetEngine.from_config(profile_name="animal")
        self.clock = clock or Clock()
        self.on_persist_error = on_persist_error
        self.last_persist_error: Optional[PersistenceWriteFailure] = None

        self._pets: List[Pet] = self.dm.load_pets()
        self._selected_id: Optional[str] = self._pets[0].id if self._pets else None
        self._overlays: Dict[str, TransientOverlay] = {}
        self._listeners: List[Listener] = []
        self.sound_enabled = self.dm.load_flag(SOUND_FLAG, default=get_config().sound_enabled_default)

    # ========== Lookup ==========
    @property
    def pets(self) -> List[Pet]:
        return list(self._pets)

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected(self) -> Optional[Pet]:
        if self._selected_id is None:
            return None
        return self._pets[self._index(self._selected_id)]

    def get(self, pet_id: str) -> Pet:
        return self._pets[self._index(pet_id)]

    def _index(self, pet_id: str) -> int:
        for i, p in enumerate(self._pets):
            if p.id == pet_id:
                return i
        logger.info("unknown pet id: %s", pet_id)
        raise NotFoundError(pet_id)

    # ========== Collection ==========
    def create(self, name: str, kind: Union[PetKind, str], now: Optional[datetime] = None) -> Pet:
        pet = self.engine.create(name, kind, self._now(now))
        self._pets.append(pet)
        self._selected_id = pet.id
        self._commit()
        return pet

    def select(self, pet_id: str) -> Pet:
        pet = self.get(pet_id)
        self._selected_id = pet.id
        self._notify()
        return pet

    def delete(self, pet_id: str):
        index = self._index(pet_id)
        removed = self._pets.pop(index)
        self._overlays.pop(removed.id, None)
        if self._selected_id == removed.id:
            self._selected_id = self._pets[0].id if self._pets else None
        self._commit()

    def update_all_statuses(self, now: Optional[datetime] = None) -> List[Pet]:
        """Catch up every pet to ``now``. Safe to call as often as the host likes."""
        now = self._now(now)
        self._pets = [self.engine.refresh(p, now) for p in self._pets]
        self._commit()
        return self.pets

    # ========== Care ==========
    def apply_action(self, pet_id: str, action: Union[CareAction, str],
                     now: Optional[datetime] = None) -> ActionOutcome:
        now = self._now(now)
        index = self._index(pet_id)
        outcome = self.engine.apply(self._pets[index], action, now)
        if not outcome.changed:
            return outcome
        self._pets[index] = outcome.pet
        self._overlay(pet_id).set(outcome.signal, now)
        self._commit()
        return outcome

    def feed(self, pet_id: str, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(pet_id, CareAction.FEED, now)

    def play(self, pet_id: str, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(pet_id, CareAction.PLAY, now)

    def pet(self, pet_id: str, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(pet_id, CareAction.PET, now)

    def clean(self, pet_id: str, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(pet_id, CareAction.CLEAN, now)

    def rename(self, pet_id: str, name: str, now: Optional[datetime] = None) -> Pet:
        index = self._index(pet_id)
        self._pets[index] = self.engine.rename(self._pets[index], name, self._now(now))
        self._commit()
        return self._pets[index]

    def readopt(self, pet_id: str, now: Optional[datetime] = None) -> Pet:
        index = self._index(pet_id)
        self._pets[index] = self.engine.readopt(self._pets[index], self._now(now))
        self._overlay(pet_id).clear()
        self._commit()
        return self._pets[index]

    # ========== Display ==========
    def display_state(self, pet_id: str, now: Optional[datetime] = None) -> Union[TransientState, PetState]:
        pet = self.get(pet_id)
        transient = self._overlay(pet_id).current(self._now(now))
        return transient if transient is not None else classify(pet)

    def clear_transient(self, pet_id: str):
        self._overlay(pet_id).clear()
        self._notify()

    def status(self, pet_id: str, now: Optional[datetime] = None) -> PetStatusView:
        return self.engine.status(self.get(pet_id), self._now(now), self._overlay(pet_id))

    # ========== Settings ==========
    def toggle_sound(self) -> bool:
        self.sound_enabled = not self.sound_enabled
        try:
            self.dm.save_flag(SOUND_FLAG, self.sound_enabled)
        except PersistenceWriteFailure as e:
            self._report(e)
        return self.sound_enabled

    # ========== Notification ==========
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(registry)`` after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    # ========== Internal ==========
    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock.now()

    def _overlay(self, pet_id: str) -> TransientOverlay:
        return self._overlays.setdefault(pet_id, TransientOverlay())

    def _commit(self):
        try:
            self.dm.save_pets(self._pets)
            self.last_persist_error = None
        except PersistenceWriteFailure as e:
            self._report(e)
        self._notify()

    def _report(self, error: PersistenceWriteFailure):
        logger.warning("pet snapshot not saved, keeping in-memory state: %s", error)
        self.last_persist_error = error
        if self.on_persist_error:
            self.on_persist_error(error)

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)
