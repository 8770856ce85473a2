"""Tests for the preset catalog."""

import dataclasses

import pytest

from snapedit.presets import (
    COMMON_RESOLUTIONS, CROP_RATIOS, MATTE_COLORS, SOCIAL_PRESETS,
    all_presets, get_crop_ratio, get_preset,
)


def test_all_presets_order():
    presets = all_presets()
    assert presets[: len(SOCIAL_PRESETS)] == SOCIAL_PRESETS
    assert presets[len(SOCIAL_PRESETS):] == COMMON_RESOLUTIONS


def test_preset_dimensions_positive():
    for preset in all_presets():
        assert preset.width > 0 and preset.height > 0


def test_get_preset():
    story = get_preset("Instagram Story")
    assert (story.width, story.height) == (1080, 1920)
    assert story.label == "Instagram Story (1080×1920)"


def test_get_preset_unknown():
    with pytest.raises(KeyError):
        get_preset("Myspace Banner")


def test_presets_are_read_only():
    with pytest.raises(dataclasses.FrozenInstanceError):
        get_preset("HD").width = 1


def test_crop_ratio_table():
    assert [r.name for r in CROP_RATIOS] == ["Free", "1:1", "4:3", "16:9", "3:2", "9:16"]


def test_free_ratio():
    free = get_crop_ratio("Free")
    assert free.ratio is None
    assert free.key == "free"


def test_fixed_ratio():
    wide = get_crop_ratio("16:9")
    assert wide.ratio == pytest.approx(16 / 9)
    assert wide.key == "16:9"
    assert get_crop_ratio("9:16").ratio == pytest.approx(0.5625)


def test_get_crop_ratio_unknown():
    with pytest.raises(KeyError):
        get_crop_ratio("5:4")


def test_matte_colors():
    assert MATTE_COLORS[0] == "#FFFFFF"
    assert len(set(MATTE_COLORS)) == len(MATTE_COLORS)
