"""Tests for multi-relay schedule allocation."""

import datetime
import json

import pytest

from tasmota_device_manager.commands.timers import (
    allocate_schedule,
    allocate_timer_slots,
    build_multi_rule_script,
)
from tasmota_device_manager.commands_model import MultiScheduleStrategy
from tasmota_device_manager.const import DeviceLimits, TimerAction, Weekday
from tasmota_device_manager.exception import (
    InsufficientSlotsError,
    InvalidFormatError,
    MissingFieldError,
    OutOfRangeError,
)

WEEKDAYS = [Weekday.monday, Weekday.wednesday, Weekday.saturday]


def _payload(command: str) -> dict:
    return json.loads(command.split(" ", 1)[1])


class TestTimerSlots:
    """ON/OFF timer pairs per output."""

    def test_pairs_are_consecutive(self):
        slots = allocate_timer_slots(
            WEEKDAYS, "09:00", "22:00", [1, 2], start_slot=5
        )

        assert [slot.index for slot in slots] == [5, 6, 7, 8]
        assert [slot.output for slot in slots] == [1, 1, 2, 2]
        assert [slot.action for slot in slots] == [
            TimerAction.ON,
            TimerAction.OFF,
            TimerAction.ON,
            TimerAction.OFF,
        ]
        assert {slot.days for slot in slots} == {"-1-1--1"}
        assert slots[0].at == datetime.time(9, 0)
        assert slots[1].at == datetime.time(22, 0)

    def test_fills_whole_pool(self):
        slots = allocate_timer_slots(
            WEEKDAYS, "09:00", "22:00", list(range(1, 9))
        )
        assert len(slots) == 16
        assert slots[-1].index == 16

    def test_one_slot_too_many(self):
        with pytest.raises(InsufficientSlotsError):
            allocate_timer_slots(
                WEEKDAYS, "09:00", "22:00", list(range(1, 9)), start_slot=2
            )

    def test_start_slot_below_one(self):
        with pytest.raises(InsufficientSlotsError):
            allocate_timer_slots(WEEKDAYS, "09:00", "22:00", [1], start_slot=0)

    def test_larger_pool_from_limits(self):
        limits = DeviceLimits(max_relay=16, timer_slots=32)
        slots = allocate_timer_slots(
            WEEKDAYS, "09:00", "22:00", list(range(1, 17)), limits=limits
        )
        assert slots[-1].index == 32


class TestTimersStrategy:
    """Command sequences produced with native timers."""

    def test_single_output_commands(self):
        commands = allocate_schedule([Weekday.monday], "09:00", "22:00", [1])

        assert commands == [
            'Timer1 {"Enable":1,"Time":"09:00","Window":0,"Days":"-1-----",'
            '"Repeat":1,"Output":1,"Action":1,"Mode":0}',
            'Timer2 {"Enable":1,"Time":"22:00","Window":0,"Days":"-1-----",'
            '"Repeat":1,"Output":1,"Action":0,"Mode":0}',
            "Timers 1",
        ]

    def test_eight_outputs_enable_timers_last(self):
        commands = allocate_schedule(
            WEEKDAYS, "09:00", "22:00", list(range(1, 9))
        )

        assert len(commands) == 17
        assert commands[-1] == "Timers 1"
        assert commands[15].startswith("Timer16 ")
        assert _payload(commands[14])["Output"] == 8
        assert _payload(commands[14])["Action"] == 1

    def test_no_days_gives_empty_mask(self):
        commands = allocate_schedule([], "09:00", "22:00", [1])
        assert _payload(commands[0])["Days"] == "-------"

    @pytest.mark.parametrize("outputs", [[0], [9], [1, 9]])
    def test_output_out_of_range(self, outputs):
        with pytest.raises(OutOfRangeError):
            allocate_schedule(WEEKDAYS, "09:00", "22:00", outputs)

    @pytest.mark.parametrize("strategy", list(MultiScheduleStrategy))
    def test_no_outputs(self, strategy):
        with pytest.raises(MissingFieldError):
            allocate_schedule(WEEKDAYS, "09:00", "22:00", [], strategy)

    @pytest.mark.parametrize("strategy", list(MultiScheduleStrategy))
    def test_bad_time(self, strategy):
        with pytest.raises(InvalidFormatError):
            allocate_schedule(WEEKDAYS, "9:00", "22:00", [1], strategy)


class TestRuleBacklogStrategy:
    """A single rule slot switching every output."""

    def test_rule_commands(self):
        commands = allocate_schedule(
            WEEKDAYS,
            "09:00",
            "22:00",
            [1, 2, 3],
            MultiScheduleStrategy.rule_backlog,
            rule_index=2,
        )

        assert commands == [
            "Rule2 on Time#Minute=540 do Backlog Power1 ON; Power2 ON; "
            "Power3 ON endon on Time#Minute=1320 do Backlog Power1 OFF; "
            "Power2 OFF; Power3 OFF endon",
            "Rule2 1",
        ]

    def test_days_are_not_applied(self):
        weekdays_only = allocate_schedule(
            WEEKDAYS, "09:00", "22:00", [1], "rule_backlog"
        )
        every_day = allocate_schedule(
            list(Weekday), "09:00", "22:00", [1], "rule_backlog"
        )
        assert weekdays_only == every_day

    def test_start_slot_is_irrelevant(self):
        commands = allocate_schedule(
            WEEKDAYS,
            "09:00",
            "22:00",
            list(range(1, 9)),
            MultiScheduleStrategy.rule_backlog,
            start_slot=16,
        )
        assert commands[-1] == "Rule1 1"

    def test_rule_index_out_of_range(self):
        with pytest.raises(OutOfRangeError):
            allocate_schedule(
                WEEKDAYS,
                "09:00",
                "22:00",
                [1],
                MultiScheduleStrategy.rule_backlog,
                rule_index=4,
            )


def test_build_multi_rule_script():
    assert build_multi_rule_script(0, 1439, [5]) == (
        "on Time#Minute=0 do Backlog Power5 ON endon "
        "on Time#Minute=1439 do Backlog Power5 OFF endon"
    )
