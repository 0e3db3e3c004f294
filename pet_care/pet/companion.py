import logging
from datetime import datetime
from typing import Callable, List, Optional, Union

from ..common.clock import Clock
from ..common.config_manager import get_config
from ..common.data_manager import DataManager
from ..common.errors import PersistenceWriteFailure
from .logic import PetEngine, TransientOverlay, classify, days_together, is_daytime
from .models import ActionOutcome, CareAction, Pet, PetKind, PetState, PetStatusView, TransientState

logger = logging.getLogger(__name__)

# Keys used by the older single-pet save layout
LEGACY_NAME_KEY = "pet_name"
LEGACY_ADOPTION_KEY = "adoption_date"
LEGACY_INTERACTION_KEY = "last_interaction"

Listener = Callable[['CompanionCare'], None]


class CompanionCare:
    """
    Single-pet container (the "puppy" game).

    There is always exactly one pet. It is never deleted; after it leaves the
    host offers ``readopt``, which restarts the relationship in place.
    """

    def __init__(self, data_manager: DataManager, engine: Optional[PetEngine] = None,
                 clock: Optional[Clock] = None,
                 on_persist_error: Optional[Callable[[PersistenceWriteFailure], None]] = None):
        self.dm = data_manager
        self.engine = engine or PetEngine.from_config(profile_name="puppy")
        self.clock = clock or Clock()
        self.on_persist_error = on_persist_error
        self.last_persist_error: Optional[PersistenceWriteFailure] = None
        self.overlay = TransientOverlay()
        self._listeners: List[Listener] = []
        self.pet = self._load()
        # first open saves the adoption record and checks whether the pet left
        self.refresh()

    def _load(self) -> Pet:
        pets = self.dm.load_pets()
        if pets:
            return pets[0]

        now = self.clock.now()
        name = (self.dm.load_string(LEGACY_NAME_KEY) or "").strip() or get_config().default_pet_name
        pet = self.engine.create(name, PetKind.PUPPY, now)
        adopted_at = self.dm.load_date(LEGACY_ADOPTION_KEY)
        interacted_at = self.dm.load_date(LEGACY_INTERACTION_KEY)
        if adopted_at or interacted_at:
            logger.info("importing single-pet save for %s", name)
            pet = pet.model_copy(update={
                "adopted_at": adopted_at or now,
                "last_interaction_at": interacted_at or now,
            })
        return pet

    def refresh(self, now: Optional[datetime] = None) -> Pet:
        """Catch up on app start or resume."""
        self.pet = self.engine.refresh(self.pet, self._now(now))
        self._commit()
        return self.pet

    # ========== Care ==========
    def apply_action(self, action: Union[CareAction, str], now: Optional[datetime] = None) -> ActionOutcome:
        now = self._now(now)
        outcome = self.engine.apply(self.pet, action, now)
        if outcome.changed:
            self.pet = outcome.pet
            self.overlay.set(outcome.signal, now)
            self._commit()
        return outcome

    def feed(self, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(CareAction.FEED, now)

    def play(self, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(CareAction.PLAY, now)

    def pat(self, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(CareAction.PET, now)

    def clean(self, now: Optional[datetime] = None) -> ActionOutcome:
        return self.apply_action(CareAction.CLEAN, now)

    def rename(self, name: str, now: Optional[datetime] = None) -> Pet:
        self.pet = self.engine.rename(self.pet, name, self._now(now))
        self._commit()
        return self.pet

    def readopt(self, now: Optional[datetime] = None) -> Pet:
        self.pet = self.engine.readopt(self.pet, self._now(now))
        self.overlay.clear()
        self._commit()
        return self.pet

    # ========== Display ==========
    def days_with_you(self, now: Optional[datetime] = None) -> int:
        return days_together(self.pet, self._now(now))

    def is_daytime(self, now: Optional[datetime] = None) -> bool:
        return is_daytime(self._now(now))

    def display_state(self, now: Optional[datetime] = None) -> Union[TransientState, PetState]:
        transient = self.overlay.current(self._now(now))
        return transient if transient is not None else classify(self.pet)

    def clear_transient(self):
        self.overlay.clear()
        self._notify()

    def status(self, now: Optional[datetime] = None) -> PetStatusView:
        return self.engine.status(self.pet, self._now(now), self.overlay)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    # ========== Internal ==========
    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock.now()

    def _commit(self):
        try:
            self.dm.save_pets([self.pet])
            self.last_persist_error = None
        except PersistenceWriteFailure as e:
            logger.warning("pet snapshot not saved, keeping in-memory state: %s", e)
            self.last_persist_error = e
            if self.on_persist_error:
                self.on_persist_error(e)
        self._notify()

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)
