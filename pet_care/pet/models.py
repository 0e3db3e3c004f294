import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field

GAUGE_MIN = 0.0
GAUGE_MAX = 100.0
MAX_WASTE = 10


class PetKind(str, Enum):
    DOG = "dog"
    CAT = "cat"
    RABBIT = "rabbit"
    HAMSTER = "hamster"
    PUPPY = "puppy"


class PetState(str, Enum):
    """Gauge-derived behaviour, see ``logic.classify``."""
    NORMAL = "normal"
    HAPPY = "happy"
    HUNGRY = "hungry"
    SAD = "sad"


class TransientState(str, Enum):
    """Display-only overlays raised by care actions."""
    EATING = "eating"
    PLAYING = "playing"
    PETTING = "petting"
    CLEANING = "cleaning"


class CareAction(str, Enum):
    FEED = "feed"
    PLAY = "play"
    PET = "pet"
    CLEAN = "clean"


class CareLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class DecayRounding(str, Enum):
    FLOORED = "floored"  # whole hours only
    CONTINUOUS = "continuous"


# ========== Pet record ==========
class Pet(BaseModel):
    """Care attributes of one pet. Also the persisted record shape."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    kind: PetKind
    hunger: float = Field(default=70.0, ge=GAUGE_MIN, le=GAUGE_MAX)
    happiness: float = Field(default=70.0, ge=GAUGE_MIN, le=GAUGE_MAX)
    waste_count: int = Field(default=0, ge=0, le=MAX_WASTE)
    last_care_at: datetime  # decay baseline
    last_waste_clear_at: datetime  # waste accrual baseline
    last_interaction_at: datetime  # presence only
    adopted_at: datetime
    has_departed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Pet':
        return cls.model_validate(data)


# ========== Care rules ==========
class CareProfile(BaseModel):
    """
    Rules shared by every pet an engine manages.

    ``animal`` and ``puppy`` presets live in ``common.config_manager.PROFILES``.
    """
    name: str = "animal"
    decay_rounding: DecayRounding = DecayRounding.FLOORED
    carry_partial_hours: bool = False  # floored only
    default_hunger: float = 70.0
    default_happiness: float = 70.0
    hunger_decay_per_hour: float = 5.0
    happiness_decay_per_hour: float = 10.0
    feed_hunger_gain: float = 20.0
    feed_happiness_gain: float = 10.0
    play_happiness_gain: float = 25.0
    play_hunger_cost: float = 5.0
    pet_happiness_gain: float = 15.0
    clean_happiness_gain: float = 5.0
    feed_duration: float = 2.0
    play_duration: float = 2.0
    pet_duration: float = 1.5
    clean_duration: float = 2.0
    waste_base_interval: float = 1800.0  # seconds
    max_waste: int = Field(default=MAX_WASTE, ge=0, le=MAX_WASTE)
    departure_threshold_days: float = 3.0


class TransientSignal(BaseModel):
    state: TransientState
    duration: float  # seconds


class ActionOutcome(BaseModel):
    pet: Pet
    signal: Optional[TransientSignal] = None

    @property
    def changed(self) -> bool:
        return self.signal is not None


class PetStatusView(BaseModel):
    """Everything the presentation layer reads for one pet."""
    id: str
    name: str
    kind: PetKind
    hunger: float
    happiness: float
    waste_count: int
    state: PetState
    transient: Optional[TransientState] = None
    has_departed: bool = False
    days_with_you: int = 0
    hunger_level: CareLevel
    happiness_level: CareLevel
    is_daytime: bool = True

    @property
    def display_state(self) -> str:
        if self.transient is not None:
            return self.transient.value
        return self.state.value
