from datetime import datetime, timedelta, timezone

import pytest

from pet_care.common.config_manager import PROFILES
from pet_care.common.errors import ValidationError
from pet_care.pet.logic import PetEngine, TransientOverlay, care_level, classify, days_together, is_daytime
from pet_care.pet.models import (
    CareAction,
    CareLevel,
    CareProfile,
    PetKind,
    PetState,
    TransientSignal,
    TransientState,
)

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    return PetEngine(CareProfile(name="animal", **PROFILES["animal"]))


@pytest.fixture
def puppy_engine():
    return PetEngine(CareProfile(name="puppy", **PROFILES["puppy"]))


@pytest.fixture
def carry_engine():
    return PetEngine(CareProfile(name="animal", carry_partial_hours=True, **PROFILES["animal"]))


@pytest.fixture
def pet(engine):
    return engine.create("Momo", PetKind.CAT, T0)


def test_create_uses_profile_defaults(engine, puppy_engine):
    p = engine.create("  Momo ", "cat", T0)
    assert p.name == "Momo"
    assert p.kind == PetKind.CAT
    assert (p.hunger, p.happiness, p.waste_count) == (70, 70, 0)
    assert p.last_care_at == p.last_waste_clear_at == p.last_interaction_at == p.adopted_at == T0
    assert p.has_departed is False

    pup = puppy_engine.create("Pochi", PetKind.PUPPY, T0)
    assert (pup.hunger, pup.happiness) == (80, 80)


def test_create_rejects_bad_input(engine):
    with pytest.raises(ValidationError):
        engine.create("   ", PetKind.DOG, T0)
    with pytest.raises(ValidationError):
        engine.create("Rex", "dragon", T0)


def test_ids_are_unique(engine):
    ids = {engine.create(f"p{i}", PetKind.DOG, T0).id for i in range(50)}
    assert len(ids) == 50


class TestDecay:
    def test_three_hours_in_one_call(self, engine, pet):
        later = engine.apply_decay(pet, T0 + timedelta(hours=3))
        assert later.hunger == 55
        assert later.happiness == 40
        # input is left alone
        assert pet.hunger == 70

    def test_catch_up_matches_hourly_calls(self, engine, pet):
        once = engine.apply_decay(pet, T0 + timedelta(hours=3))
        hourly = pet
        for h in range(1, 4):
            hourly = engine.apply_decay(hourly, T0 + timedelta(hours=h))
        assert (hourly.hunger, hourly.happiness) == (once.hunger, once.happiness)
        assert hourly.last_care_at == once.last_care_at

    def test_frequent_calls_still_decay(self, engine, pet):
        p = pet
        for minutes in range(20, 181, 20):
            p = engine.apply_decay(p, T0 + timedelta(minutes=minutes))
        # sub-hour calls leave the baseline where it was
        assert (p.hunger, p.happiness) == (55, 40)
        assert p.last_care_at == T0 + timedelta(hours=3)

    def test_baseline_moves_to_now(self, engine, pet):
        p = engine.apply_decay(pet, T0 + timedelta(hours=1, minutes=30))
        assert p.last_care_at == T0 + timedelta(hours=1, minutes=30)
        assert (p.hunger, p.happiness) == (65, 60)
        p = engine.apply_decay(p, T0 + timedelta(hours=3))
        assert (p.hunger, p.happiness) == (60, 50)
        assert p.last_care_at == T0 + timedelta(hours=3)

    def test_carrying_keeps_the_fraction(self, engine, carry_engine, pet):
        dropped = carried = pet
        for minutes in (90, 180):
            dropped = engine.apply_decay(dropped, T0 + timedelta(minutes=minutes))
            carried = carry_engine.apply_decay(carried, T0 + timedelta(minutes=minutes))
        assert (dropped.hunger, dropped.happiness) == (60, 50)
        assert (carried.hunger, carried.happiness) == (55, 40)

    def test_partial_hour_keeps_baseline(self, engine, pet):
        p = engine.apply_decay(pet, T0 + timedelta(minutes=59))
        assert p.last_care_at == T0
        assert p.hunger == 70

    def test_remainder_carries_over(self, carry_engine, pet):
        p = carry_engine.apply_decay(pet, T0 + timedelta(hours=1, minutes=30))
        assert p.last_care_at == T0 + timedelta(hours=1)
        p = carry_engine.apply_decay(p, T0 + timedelta(hours=2))
        assert (p.hunger, p.happiness) == (60, 50)

    def test_idempotent_at_same_time(self, engine, pet):
        now = T0 + timedelta(hours=5, minutes=10)
        first = engine.apply_decay(pet, now)
        second = engine.apply_decay(first, now)
        assert second == first

    def test_floors_at_zero(self, engine, pet):
        p = engine.apply_decay(pet, T0 + timedelta(hours=40))
        assert (p.hunger, p.happiness) == (0, 0)

    def test_clock_going_backwards_changes_nothing(self, engine, pet):
        p = engine.apply_decay(pet, T0 - timedelta(hours=2))
        assert p == pet

    def test_continuous_rounding(self, puppy_engine):
        pup = puppy_engine.create("Pochi", PetKind.PUPPY, T0)
        now = T0 + timedelta(hours=1, minutes=30)
        p = puppy_engine.apply_decay(pup, now)
        assert p.hunger == pytest.approx(72.5)
        assert p.happiness == pytest.approx(65.0)
        assert p.last_care_at == now
        assert puppy_engine.apply_decay(p, now) == p

    def test_continuous_never_below_zero(self, puppy_engine):
        pup = puppy_engine.create("Pochi", PetKind.PUPPY, T0)
        p = puppy_engine.apply_decay(pup, T0 + timedelta(hours=30))
        assert (p.hunger, p.happiness) == (0, 0)


class TestWaste:
    def test_full_pet_makes_one_unit_per_half_hour(self, engine, pet):
        full = pet.model_copy(update={"hunger": 100.0})
        now = T0 + timedelta(seconds=1800)
        p = engine.accrue_waste(full, now)
        assert p.waste_count == 1
        assert p.last_waste_clear_at == now

    def test_starving_pet_makes_waste_twice_as_fast(self, engine, pet):
        starving = pet.model_copy(update={"hunger": 0.0})
        p = engine.accrue_waste(starving, T0 + timedelta(seconds=1800))
        assert p.waste_count == 2

    def test_no_unit_before_interval(self, engine, pet):
        full = pet.model_copy(update={"hunger": 100.0})
        p = engine.accrue_waste(full, T0 + timedelta(seconds=1799))
        assert p.waste_count == 0
        assert p.last_waste_clear_at == T0

    def test_capped_and_baseline_reset(self, engine, pet):
        messy = pet.model_copy(update={"hunger": 0.0, "waste_count": 9})
        now = T0 + timedelta(hours=10)
        p = engine.accrue_waste(messy, now)
        assert p.waste_count == 10
        assert p.last_waste_clear_at == now

    def test_interval_shrinks_with_hunger(self, engine):
        assert engine.waste_interval(100) == 1800
        assert engine.waste_interval(50) == pytest.approx(1200)
        assert engine.waste_interval(0) == 900


class TestClassifier:
    @pytest.mark.parametrize("hunger,happiness,expected", [
        (20, 90, PetState.HUNGRY),
        (50, 20, PetState.SAD),
        (20, 20, PetState.HUNGRY),
        (50, 90, PetState.HAPPY),
        (50, 50, PetState.NORMAL),
        (30, 30, PetState.NORMAL),
        (50, 80, PetState.NORMAL),
    ])
    def test_priority(self, pet, hunger, happiness, expected):
        assert classify(pet.model_copy(update={"hunger": hunger, "happiness": happiness})) == expected

    def test_care_level(self):
        assert care_level(81) == CareLevel.EXCELLENT
        assert care_level(80) == CareLevel.GOOD
        assert care_level(51) == CareLevel.GOOD
        assert care_level(50) == CareLevel.WARNING
        assert care_level(30) == CareLevel.CRITICAL


class TestActions:
    def test_feed_is_clamped(self, engine, pet):
        p = pet.model_copy(update={"hunger": 95.0, "happiness": 95.0})
        now = T0 + timedelta(minutes=5)
        outcome = engine.feed(p, now)
        assert outcome.pet.hunger == 100
        assert outcome.pet.happiness == 100
        assert outcome.signal.state == TransientState.EATING
        assert outcome.signal.duration == 2.0
        assert outcome.pet.last_care_at == now
        assert outcome.pet.last_interaction_at == now

    def test_feed_resets_decay_baseline(self, engine, pet):
        now = T0 + timedelta(hours=2)
        fed = engine.feed(pet, now).pet
        assert engine.apply_decay(fed, now) == fed

    def test_play_costs_hunger(self, engine, pet):
        p = pet.model_copy(update={"hunger": 3.0, "happiness": 90.0})
        outcome = engine.play(p, T0)
        assert outcome.pet.hunger == 0
        assert outcome.pet.happiness == 100
        assert outcome.signal.state == TransientState.PLAYING

    def test_pet_only_touches_happiness(self, engine, pet):
        now = T0 + timedelta(hours=1)
        outcome = engine.pet(pet, now)
        assert outcome.pet.happiness == 85
        assert outcome.pet.hunger == 70
        assert outcome.pet.last_care_at == T0
        assert outcome.pet.last_interaction_at == now
        assert outcome.signal == TransientSignal(state=TransientState.PETTING, duration=1.5)

    def test_clean_without_waste_is_noop(self, engine, pet):
        outcome = engine.clean(pet, T0 + timedelta(hours=1))
        assert outcome.pet is pet
        assert outcome.signal is None
        assert not outcome.changed

    def test_clean(self, engine, pet):
        messy = pet.model_copy(update={"waste_count": 4, "happiness": 98.0})
        now = T0 + timedelta(hours=1)
        outcome = engine.clean(messy, now)
        assert outcome.pet.waste_count == 0
        assert outcome.pet.happiness == 100
        assert outcome.pet.last_waste_clear_at == now
        assert outcome.signal.state == TransientState.CLEANING

    def test_apply_dispatches_by_name(self, engine, pet):
        assert engine.apply(pet, "feed", T0).signal.state == TransientState.EATING
        assert engine.apply(pet, CareAction.PLAY, T0).signal.state == TransientState.PLAYING
        with pytest.raises(ValidationError):
            engine.apply(pet, "brush", T0)

    def test_timestamps_never_go_backwards(self, engine, pet):
        outcome = engine.feed(pet, T0 - timedelta(hours=1))
        assert outcome.pet.last_care_at == T0
        assert outcome.pet.last_interaction_at == T0

    def test_puppy_overlays_last_longer(self, puppy_engine):
        pup = puppy_engine.create("Pochi", PetKind.PUPPY, T0)
        assert puppy_engine.feed(pup, T0).signal.duration == 3.0
        assert puppy_engine.play(pup, T0).signal.duration == 3.0

    def test_rename(self, engine, pet):
        now = T0 + timedelta(hours=1)
        renamed = engine.rename(pet, " Kuro ", now)
        assert renamed.name == "Kuro"
        assert renamed.last_interaction_at == now
        with pytest.raises(ValidationError):
            engine.rename(pet, "", now)


def test_gauges_stay_in_bounds_for_any_sequence(engine, pet):
    actions = [CareAction.FEED, CareAction.PLAY, CareAction.PLAY, CareAction.PET,
               CareAction.CLEAN, CareAction.FEED, CareAction.FEED]
    p = pet
    now = T0
    for step in range(200):
        now = now + timedelta(minutes=17 * (step % 9))
        if step % 3 == 0:
            p = engine.refresh(p, now)
        else:
            p = engine.apply(p, actions[step % len(actions)], now).pet
        assert 0 <= p.hunger <= 100
        assert 0 <= p.happiness <= 100
        assert 0 <= p.waste_count <= 10


class TestPresence:
    def test_departs_after_threshold(self, engine, pet):
        p = engine.check_presence(pet, T0 + timedelta(days=4))
        assert p.has_departed is True

    def test_exact_threshold_is_still_present(self, engine, pet):
        assert engine.check_presence(pet, T0 + timedelta(days=3)).has_departed is False

    def test_any_action_brings_pet_back(self, engine, pet):
        now = T0 + timedelta(days=4)
        gone = engine.check_presence(pet, now)
        back = engine.pet(gone, now).pet
        assert back.has_departed is False
        assert back.last_interaction_at == now
        assert engine.check_presence(back, now).has_departed is False

    def test_refresh_evaluates_presence(self, engine, pet):
        p = engine.refresh(pet, T0 + timedelta(days=4))
        assert p.has_departed is True
        assert (p.hunger, p.happiness) == (0, 0)
        assert p.waste_count == 10

    def test_readopt_resets_everything(self, engine, pet):
        now = T0 + timedelta(days=5)
        gone = engine.refresh(pet, now)
        fresh = engine.readopt(gone, now)
        assert (fresh.hunger, fresh.happiness, fresh.waste_count) == (100, 100, 0)
        assert fresh.adopted_at == now
        assert fresh.has_departed is False
        assert fresh.last_interaction_at == fresh.last_care_at == fresh.last_waste_clear_at == now
        assert fresh.id == pet.id

    def test_threshold_is_configurable(self):
        quick = PetEngine(CareProfile(departure_threshold_days=1))
        p = quick.create("Hop", PetKind.RABBIT, T0)
        assert quick.check_presence(p, T0 + timedelta(hours=25)).has_departed is True


def test_days_together(pet):
    assert days_together(pet, T0 + timedelta(days=2, hours=5)) == 2
    assert days_together(pet, T0 - timedelta(days=1)) == 0


@pytest.mark.parametrize("hour,expected", [(5, False), (6, True), (12, True), (18, True), (19, False), (0, False)])
def test_is_daytime(hour, expected):
    assert is_daytime(T0.replace(hour=hour)) is expected


class TestOverlay:
    def test_expires_by_time(self):
        overlay = TransientOverlay()
        overlay.set(TransientSignal(state=TransientState.EATING, duration=2.0), T0)
        assert overlay.current(T0 + timedelta(seconds=1)) == TransientState.EATING
        assert overlay.current(T0 + timedelta(seconds=2)) is None

    def test_clear(self):
        overlay = TransientOverlay()
        overlay.set(TransientSignal(state=TransientState.PETTING, duration=1.5), T0)
        overlay.clear()
        assert overlay.current() is None

    def test_status_prefers_overlay(self, engine, pet):
        overlay = TransientOverlay()
        outcome = engine.feed(pet, T0)
        overlay.set(outcome.signal, T0)
        view = engine.status(outcome.pet, T0, overlay)
        assert view.transient == TransientState.EATING
        assert view.display_state == "eating"
        assert view.state == PetState.NORMAL
        later = engine.status(outcome.pet, T0 + timedelta(seconds=5), overlay)
        assert later.display_state == "normal"
