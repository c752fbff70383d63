"""Tests for day masks, device times and backlog builders."""

import datetime
import itertools

import pytest

from tasmota_device_manager.commands.encoder import (
    build_backlog,
    decode_day_mask,
    encode_day_mask,
    format_device_time,
    minute_of_day,
    one_shot_date_pattern,
    parse_device_time,
    rule_clear_commands,
    set_time_command,
    timer_clear_commands,
    timer_payload,
)
from tasmota_device_manager.const import (
    DAY_MASK_ORDER,
    DeviceLimits,
    TimerAction,
    Weekday,
)
from tasmota_device_manager.exception import InvalidFormatError


class TestDayMask:
    """Encoding and decoding of the 7 character Days mask."""

    def test_encode_sunday_first(self):
        mask = encode_day_mask(
            [Weekday.monday, Weekday.wednesday, Weekday.saturday]
        )
        assert mask == "-1-1--1"

    def test_encode_empty_and_full(self):
        assert encode_day_mask([]) == "-------"
        assert encode_day_mask(list(Weekday)) == "1111111"

    def test_encode_ignores_duplicates(self):
        assert encode_day_mask([Weekday.monday, Weekday.monday]) == "-1-----"

    def test_encode_accepts_weekday_names(self):
        assert encode_day_mask(["sunday"]) == "1------"

    def test_decode(self):
        assert decode_day_mask("-1-1--1") == {
            Weekday.monday,
            Weekday.wednesday,
            Weekday.saturday,
        }

    def test_decode_any_non_dash_marks_active(self):
        """Masks written by the web UI use letters instead of 1."""
        assert decode_day_mask("SMTWTFS") == set(Weekday)
        assert decode_day_mask("S-----S") == {Weekday.sunday, Weekday.saturday}

    @pytest.mark.parametrize("mask", ["", "1111", "11111111", "-------1"])
    def test_decode_rejects_wrong_length(self, mask):
        with pytest.raises(InvalidFormatError):
            decode_day_mask(mask)

    def test_every_subset_survives_encode_decode(self):
        for size in range(len(DAY_MASK_ORDER) + 1):
            for subset in itertools.combinations(DAY_MASK_ORDER, size):
                assert decode_day_mask(encode_day_mask(subset)) == set(subset)

    def test_weekday_from_date(self):
        assert Weekday.from_date(datetime.date(2025, 9, 5)) == Weekday.friday
        assert Weekday.from_date(datetime.date(2025, 9, 7)) == Weekday.sunday


class TestDeviceTime:
    """Clock time helpers."""

    def test_format_zero_pads(self):
        assert format_device_time(datetime.time(7, 5)) == "07:05"
        assert format_device_time(datetime.time(0, 0)) == "00:00"

    def test_minute_of_day(self):
        assert minute_of_day(datetime.time(0, 0)) == 0
        assert minute_of_day(datetime.time(18, 30)) == 1110
        assert minute_of_day(datetime.time(23, 59)) == 1439

    def test_parse_valid(self):
        assert parse_device_time("09:00") == datetime.time(9, 0)
        assert parse_device_time("23:59") == datetime.time(23, 59)

    @pytest.mark.parametrize("value", [930, None, 9.5, ["09:00"]])
    def test_parse_rejects_non_text(self, value):
        with pytest.raises(InvalidFormatError):
            parse_device_time(value)

    def test_parse_time_drops_seconds(self):
        assert parse_device_time(datetime.time(9, 0, 42)) == datetime.time(9)

    @pytest.mark.parametrize(
        "value", ["9:00", "24:00", "12:60", "9am", "", "09:00:00", "ab:cd"]
    )
    def test_parse_rejects_invalid(self, value):
        with pytest.raises(InvalidFormatError):
            parse_device_time(value)

    def test_one_shot_date_pattern_has_no_year(self):
        when = datetime.datetime(2025, 9, 5, 18, 30)
        assert one_shot_date_pattern(when) == "-09-05T18:30"

    def test_set_time_command(self):
        when = datetime.datetime(2025, 1, 2, 3, 4, 5)
        assert set_time_command(when) == "Time 2025-01-02 03:04:05"


class TestBacklog:
    """Action part of rule scripts."""

    def test_plain_switch(self):
        assert build_backlog(1, True) == "Backlog Power1 1"
        assert build_backlog(3, False) == "Backlog Power3 0"

    @pytest.mark.parametrize("pulse", [None, 0, -5])
    def test_non_positive_pulse_is_ignored(self, pulse):
        assert build_backlog(1, True, pulse) == "Backlog Power1 1"

    def test_pulse_reverts_in_deciseconds(self):
        assert (
            build_backlog(1, True, 5) == "Backlog Power1 1; Delay 50; Power1 0"
        )
        assert build_backlog(2, False, 3) == (
            "Backlog Power2 0; Delay 30; Power2 1"
        )

    def test_auto_disable_targets_own_rule(self):
        assert build_backlog(1, True, None, True, 2) == (
            "Backlog Power1 1; Rule2 0"
        )
        assert build_backlog(1, True, 5, True) == (
            "Backlog Power1 1; Delay 50; Power1 0; Rule1 0"
        )

    def test_delay_units_follow_limits(self):
        limits = DeviceLimits(delay_units_per_second=1)
        assert build_backlog(1, True, 5, limits=limits) == (
            "Backlog Power1 1; Delay 5; Power1 0"
        )


class TestSlotCommands:
    """Timer payloads and clearing sequences."""

    def test_timer_payload_key_order(self):
        payload = timer_payload(
            datetime.time(18, 30), "-1-1--1", 1, TimerAction.ON
        )
        assert payload == (
            '{"Enable":1,"Time":"18:30","Window":0,"Days":"-1-1--1",'
            '"Repeat":1,"Output":1,"Action":1,"Mode":0}'
        )

    def test_timer_payload_options(self):
        payload = timer_payload(
            datetime.time(6, 0),
            "1111111",
            2,
            TimerAction.OFF,
            enabled=False,
            repeat=False,
            window=5,
            mode=2,
        )
        assert '"Enable":0' in payload
        assert '"Repeat":0' in payload
        assert '"Window":5' in payload
        assert '"Mode":2' in payload
        assert '"Action":0' in payload

    def test_clear_sequences(self):
        assert rule_clear_commands(2) == ["Rule2 0", 'Rule2 ""']
        assert timer_clear_commands(4) == ["Timer4 0", "Timer4 {}"]
