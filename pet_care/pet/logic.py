import logging
import math
from datetime import datetime, timedelta
from typing import Optional, Union

from ..common.config_manager import ConfigManager, get_config
from ..common.errors import ValidationError
from .models import (
    ActionOutcome,
    CareAction,
    CareLevel,
    CareProfile,
    DecayRounding,
    GAUGE_MAX,
    GAUGE_MIN,
    Pet,
    PetKind,
    PetState,
    PetStatusView,
    TransientSignal,
    TransientState,
)

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600.0

HUNGRY_BELOW = 30
SAD_BELOW = 30
HAPPY_ABOVE = 80

DAYTIME_HOURS = range(6, 19)  # 06:00 - 18:59


def clamp_gauge(value: float) -> float:
    return max(GAUGE_MIN, min(GAUGE_MAX, value))


def _later(previous: datetime, now: datetime) -> datetime:
    # timestamps never move backwards
    return now if now > previous else previous


def classify(pet: Pet) -> PetState:
    """First match wins: hungry, sad, happy, normal."""
    if pet.hunger < HUNGRY_BELOW:
        return PetState.HUNGRY
    if pet.happiness < SAD_BELOW:
        return PetState.SAD
    if pet.happiness > HAPPY_ABOVE:
        return PetState.HAPPY
    return PetState.NORMAL


def care_level(value: float) -> CareLevel:
    if value > 80:
        return CareLevel.EXCELLENT
    if value > 50:
        return CareLevel.GOOD
    if value > 30:
        return CareLevel.WARNING
    return CareLevel.CRITICAL


def days_together(pet: Pet, now: datetime) -> int:
    return max((now - pet.adopted_at).days, 0)


def is_daytime(now: datetime) -> bool:
    return now.hour in DAYTIME_HOURS


class TransientOverlay:
    """
    Holds the display overlay raised by the latest care action.

    The host schedules ``clear()`` once the signal's duration has passed;
    ``current(now)`` also stops reporting an overlay whose time is up.
    """

    def __init__(self):
        self.state: Optional[TransientState] = None
        self.expires_at: Optional[datetime] = None

    def set(self, signal: TransientSignal, now: datetime):
        self.state = signal.state
        self.expires_at = now + timedelta(seconds=signal.duration)

    def clear(self):
        self.state = None
        self.expires_at = None

    def current(self, now: Optional[datetime] = None) -> Optional[TransientState]:
        if self.state is None:
            return None
        if now is not None and self.expires_at is not None and now >= self.expires_at:
            return None
        return self.state


class PetEngine:
    """
    Catch-up simulation for pets sharing one ``CareProfile``.

    Every method is a total function returning a new ``Pet``; the argument is
    never mutated. Elapsed real time is applied in one step whenever the host
    calls ``refresh`` (load, resume, before display), so calling it hourly or
    once after a long absence gives the same gauges.
    """

    def __init__(self, profile: Optional[CareProfile] = None):
        self.profile = profile or CareProfile()

    @classmethod
    def from_config(cls, config: Optional[ConfigManager] = None,
                    profile_name: Optional[str] = None) -> 'PetEngine':
        config = config or get_config()
        return cls(config.profile(profile_name))

    # ========== Creation ==========
    def create(self, name: str, kind: Union[PetKind, str], now: datetime) -> Pet:
        """
        New pet with the profile's default gauges and every timestamp at ``now``.

        Raises:
            ValidationError: empty name or unknown kind
        """
        name = self.validate_name(name)
        try:
            kind = PetKind(kind)
        except ValueError:
            raise ValidationError(f"unknown pet kind: {kind}") from None
        return Pet(
            name=name,
            kind=kind,
            hunger=clamp_gauge(self.profile.default_hunger),
            happiness=clamp_gauge(self.profile.default_happiness),
            waste_count=0,
            last_care_at=now,
            last_waste_clear_at=now,
            last_interaction_at=now,
            adopted_at=now,
        )

    @staticmethod
    def validate_name(name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("pet name must not be empty")
        return name

    # ========== Decay ==========
    def apply_decay(self, pet: Pet, now: datetime) -> Pet:
        """
        Apply hunger and happiness loss for the time since ``last_care_at``.

        Floored rounding consumes whole hours and moves the baseline to now,
        dropping the fraction. With ``carry_partial_hours`` the baseline moves
        by the whole hours only and the fraction counts toward the next call.
        Less than one hour changes nothing.
        Continuous rounding consumes everything and moves the baseline to now.
        """
        elapsed = (now - pet.last_care_at).total_seconds()
        if elapsed <= 0:
            return pet
        hours = elapsed / SECONDS_PER_HOUR
        p = self.profile

        if p.decay_rounding == DecayRounding.FLOORED:
            whole = math.floor(hours)
            if whole <= 0:
                return pet
            return pet.model_copy(update={
                "hunger": clamp_gauge(pet.hunger - whole * p.hunger_decay_per_hour),
                "happiness": clamp_gauge(pet.happiness - whole * p.happiness_decay_per_hour),
                "last_care_at": (pet.last_care_at + timedelta(hours=whole)
                                 if p.carry_partial_hours else now),
            })

        hunger_loss = min(hours * p.hunger_decay_per_hour, pet.hunger)
        happiness_loss = min(hours * p.happiness_decay_per_hour, pet.happiness)
        return pet.model_copy(update={
            "hunger": clamp_gauge(pet.hunger - hunger_loss),
            "happiness": clamp_gauge(pet.happiness - happiness_loss),
            "last_care_at": now,
        })

    def waste_interval(self, hunger: float) -> float:
        """Seconds per waste unit; a hungrier pet makes a mess faster."""
        factor = max(1.0, 2.0 - hunger / 100.0)
        return self.profile.waste_base_interval / factor

    def accrue_waste(self, pet: Pet, now: datetime) -> Pet:
        elapsed = (now - pet.last_waste_clear_at).total_seconds()
        if elapsed <= 0:
            return pet
        new_units = math.floor(elapsed / self.waste_interval(pet.hunger))
        if new_units <= 0:
            return pet
        # baseline resets even when capped, otherwise cleaning would refill at once
        return pet.model_copy(update={
            "waste_count": min(pet.waste_count + new_units, self.profile.max_waste),
            "last_waste_clear_at": now,
        })

    # ========== Presence ==========
    @property
    def departure_threshold(self) -> timedelta:
        return timedelta(days=self.profile.departure_threshold_days)

    def check_presence(self, pet: Pet, now: datetime) -> Pet:
        if pet.has_departed:
            return pet
        if now - pet.last_interaction_at > self.departure_threshold:
            logger.info("pet %s (%s) has left: no interaction since %s",
                        pet.name, pet.id, pet.last_interaction_at.isoformat())
            return pet.model_copy(update={"has_departed": True})
        return pet

    def refresh(self, pet: Pet, now: datetime) -> Pet:
        """Lazy catch-up: decay, then waste (at the decayed hunger), then presence."""
        pet = self.apply_decay(pet, now)
        pet = self.accrue_waste(pet, now)
        return self.check_presence(pet, now)

    def readopt(self, pet: Pet, now: datetime) -> Pet:
        """Full reset of the care relationship. Baselines restart at ``now``."""
        return pet.model_copy(update={
            "hunger": GAUGE_MAX,
            "happiness": GAUGE_MAX,
            "waste_count": 0,
            "adopted_at": now,
            "last_care_at": now,
            "last_waste_clear_at": now,
            "last_interaction_at": now,
            "has_departed": False,
        })

    # ========== Actions ==========
    def _touch(self, pet: Pet, now: datetime) -> dict:
        # any interaction brings a departed pet back
        return {
            "last_interaction_at": _later(pet.last_interaction_at, now),
            "has_departed": False,
        }

    def feed(self, pet: Pet, now: datetime) -> ActionOutcome:
        p = self.profile
        updated = pet.model_copy(update={
            "hunger": clamp_gauge(pet.hunger + p.feed_hunger_gain),
            "happiness": clamp_gauge(pet.happiness + p.feed_happiness_gain),
            "last_care_at": _later(pet.last_care_at, now),
            **self._touch(pet, now),
        })
        return ActionOutcome(pet=updated, signal=TransientSignal(
            state=TransientState.EATING, duration=p.feed_duration))

    def play(self, pet: Pet, now: datetime) -> ActionOutcome:
        p = self.profile
        updated = pet.model_copy(update={
            "happiness": clamp_gauge(pet.happiness + p.play_happiness_gain),
            "hunger": clamp_gauge(pet.hunger - p.play_hunger_cost),
            "last_care_at": _later(pet.last_care_at, now),
            **self._touch(pet, now),
        })
        return ActionOutcome(pet=updated, signal=TransientSignal(
            state=TransientState.PLAYING, duration=p.play_duration))

    def pet(self, pet: Pet, now: datetime) -> ActionOutcome:
        p = self.profile
        updated = pet.model_copy(update={
            "happiness": clamp_gauge(pet.happiness + p.pet_happiness_gain),
            **self._touch(pet, now),
        })
        return ActionOutcome(pet=updated, signal=TransientSignal(
            state=TransientState.PETTING, duration=p.pet_duration))

    def clean(self, pet: Pet, now: datetime) -> ActionOutcome:
        if pet.waste_count == 0:
            return ActionOutcome(pet=pet, signal=None)
        p = self.profile
        updated = pet.model_copy(update={
            "waste_count": 0,
            "happiness": clamp_gauge(pet.happiness + p.clean_happiness_gain),
            "last_waste_clear_at": _later(pet.last_waste_clear_at, now),
            **self._touch(pet, now),
        })
        return ActionOutcome(pet=updated, signal=TransientSignal(
            state=TransientState.CLEANING, duration=p.clean_duration))

    def apply(self, pet: Pet, action: Union[CareAction, str], now: datetime) -> ActionOutcome:
        try:
            action = CareAction(action)
        except ValueError:
            raise ValidationError(f"unknown care action: {action}") from None
        handler = {
            CareAction.FEED: self.feed,
            CareAction.PLAY: self.play,
            CareAction.PET: self.pet,
            CareAction.CLEAN: self.clean,
        }[action]
        return handler(pet, now)

    def rename(self, pet: Pet, name: str, now: datetime) -> Pet:
        """
        Raises:
            ValidationError: empty name
        """
        name = self.validate_name(name)
        return pet.model_copy(update={"name": name, **self._touch(pet, now)})

    # ========== Display ==========
    def status(self, pet: Pet, now: datetime,
               overlay: Optional[TransientOverlay] = None) -> PetStatusView:
        return PetStatusView(
            id=pet.id,
            name=pet.name,
            kind=pet.kind,
            hunger=pet.hunger,
            happiness=pet.happiness,
            waste_count=pet.waste_count,
            state=classify(pet),
            transient=overlay.current(now) if overlay else None,
            has_departed=pet.has_departed,
            days_with_you=days_together(pet, now),
            hunger_level=care_level(pet.hunger),
            happiness_level=care_level(pet.happiness),
            is_daytime=is_daytime(now),
        )
