"""Tests for compiling schedule intents into rule scripts."""

import datetime

import pytest

from tasmota_device_manager.commands.rules import (
    auxiliary_rule_index,
    compile_rule,
)
from tasmota_device_manager.commands_model import (
    OneShotAtLocalTime,
    RelativePulse,
    SunriseSunset,
    UnknownRule,
)
from tasmota_device_manager.const import DeviceLimits
from tasmota_device_manager.exception import (
    InsufficientSlotsError,
    MissingFieldError,
    OutOfRangeError,
    UnsupportedVariantError,
)

WHEN = datetime.datetime(2025, 9, 5, 18, 30)


class TestOneShot:
    """One-shots at an absolute local time."""

    def test_primary_and_auxiliary(self):
        intent = OneShotAtLocalTime(
            when_local=WHEN, pulse=datetime.timedelta(seconds=30)
        )

        compiled = compile_rule(intent, rule_index=1)

        assert compiled.rule_index == 1
        assert compiled.primary == (
            "on StatusTIM#Local$|-09-05T18:30 do "
            "Backlog Power1 1; Delay 300; Power1 0 endon"
        )
        assert compiled.auxiliary_index == 2
        assert compiled.auxiliary == "on Time#Minute=1110 do Status 7 endon"

    def test_without_pulse(self):
        intent = OneShotAtLocalTime(
            when_local=WHEN, output=2, on_when_true=False
        )
        compiled = compile_rule(intent)
        assert compiled.primary == (
            "on StatusTIM#Local$|-09-05T18:30 do Backlog Power2 0 endon"
        )

    def test_auto_disable_uses_primary_slot(self):
        intent = OneShotAtLocalTime(when_local=WHEN, auto_disable=True)
        compiled = compile_rule(intent, rule_index=2)
        assert compiled.primary.endswith("Backlog Power1 1; Rule2 0 endon")
        assert compiled.auxiliary_index == 3

    def test_auxiliary_wraps_from_last_slot(self):
        intent = OneShotAtLocalTime(when_local=WHEN)
        compiled = compile_rule(intent, rule_index=3)
        assert compiled.auxiliary_index == 1

    def test_missing_when(self):
        with pytest.raises(MissingFieldError):
            compile_rule(OneShotAtLocalTime())

    def test_single_rule_slot_has_no_room_for_helper(self):
        """The status refresh must not overwrite the primary script."""
        limits = DeviceLimits(rule_slots=1)
        intent = OneShotAtLocalTime(when_local=WHEN)
        with pytest.raises(InsufficientSlotsError):
            compile_rule(intent, rule_index=1, limits=limits)


class TestRelativePulse:
    """Countdown driven pulses."""

    def test_script_uses_rule_timer(self):
        intent = RelativePulse(start_delay_seconds=10, pulse_seconds=10)

        compiled = compile_rule(intent, rule_index=1, timer_index=2)

        assert compiled.primary == (
            "on Rules#Timer=2 do Backlog Power1 1; Delay 100; Power1 0 endon"
        )
        assert compiled.auxiliary is None
        assert compiled.auxiliary_index is None

    @pytest.mark.parametrize(
        "intent",
        [
            RelativePulse(pulse_seconds=10),
            RelativePulse(start_delay_seconds=10),
            RelativePulse(),
        ],
    )
    def test_missing_fields(self, intent):
        with pytest.raises(MissingFieldError):
            compile_rule(intent)

    def test_negative_start_delay(self):
        intent = RelativePulse(start_delay_seconds=-5, pulse_seconds=3)
        with pytest.raises(OutOfRangeError):
            compile_rule(intent)

    def test_zero_start_delay_is_allowed(self):
        intent = RelativePulse(start_delay_seconds=0, pulse_seconds=3)
        assert compile_rule(intent).primary.startswith("on Rules#Timer=1 ")

    def test_timer_index_out_of_range(self):
        intent = RelativePulse(start_delay_seconds=1, pulse_seconds=1)
        with pytest.raises(OutOfRangeError):
            compile_rule(intent, timer_index=9)


class TestSunriseSunset:
    """Rules anchored to the device's sun events."""

    def test_sunset_with_offset_and_pulse(self):
        intent = SunriseSunset(
            use_sunset=True,
            offset_minutes=15,
            pulse=datetime.timedelta(minutes=5),
        )
        compiled = compile_rule(intent)
        assert compiled.primary == (
            "on Sunset do Backlog Delay 9000; "
            "Backlog Power1 1; Delay 3000; Power1 0 endon"
        )
        assert compiled.auxiliary is None

    def test_sunrise_without_offset(self):
        intent = SunriseSunset(use_sunset=False)
        compiled = compile_rule(intent)
        assert compiled.primary == "on Sunrise do Backlog Power1 1 endon"

    def test_negative_offset_also_delays(self):
        early = compile_rule(
            SunriseSunset(use_sunset=True, offset_minutes=-15)
        )
        late = compile_rule(SunriseSunset(use_sunset=True, offset_minutes=15))
        assert early.primary == late.primary

    def test_missing_anchor(self):
        with pytest.raises(MissingFieldError):
            compile_rule(SunriseSunset(offset_minutes=5))


class TestValidation:
    """Variant and range checks shared by all intents."""

    def test_unknown_rule_is_rejected(self):
        with pytest.raises(UnsupportedVariantError):
            compile_rule(UnknownRule(script="on x do y endon"))

    def test_foreign_object_is_rejected(self):
        with pytest.raises(UnsupportedVariantError):
            compile_rule("on Sunset do Power1 1 endon")

    @pytest.mark.parametrize("rule_index", [0, 4])
    def test_rule_index_out_of_range(self, rule_index):
        intent = OneShotAtLocalTime(when_local=WHEN)
        with pytest.raises(OutOfRangeError):
            compile_rule(intent, rule_index=rule_index)

    def test_output_out_of_range(self):
        intent = SunriseSunset(use_sunset=True, output=9)
        with pytest.raises(OutOfRangeError):
            compile_rule(intent)

    def test_custom_limits(self):
        limits = DeviceLimits(max_relay=16, rule_slots=5)
        intent = OneShotAtLocalTime(when_local=WHEN, output=12)

        compiled = compile_rule(intent, rule_index=4, limits=limits)

        assert "Power12 1" in compiled.primary
        assert compiled.auxiliary_index == 5


def test_auxiliary_rule_index():
    assert auxiliary_rule_index(1) == 2
    assert auxiliary_rule_index(2) == 3
    assert auxiliary_rule_index(3) == 1
    limits = DeviceLimits(rule_slots=5)
    assert auxiliary_rule_index(3, limits) == 4
    assert auxiliary_rule_index(5, limits) == 1
