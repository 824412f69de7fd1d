"""Tests for prompt templating, era extraction and validation."""

import pytest

from retrolens.models.job import GenerationStyle
from retrolens.services.image_generation.prompts import (
    ERAS,
    MAX_PROMPT_LENGTH,
    build_fallback_prompt,
    build_prompt,
    extract_era,
    validate_prompt,
)


@pytest.mark.parametrize("style", list(GenerationStyle))
@pytest.mark.parametrize("era", ERAS)
def test_every_prompt_embeds_its_era_and_is_valid(style, era):
    prompt = build_prompt(style, era)

    assert era in prompt
    assert validate_prompt(prompt) == prompt


def test_styles_produce_distinct_prompts():
    prompts = {build_prompt(style, "1970 ler") for style in GenerationStyle}

    assert len(prompts) == 3


def test_style_accepts_plain_strings():
    assert build_prompt("creative", "1980 ler") == build_prompt(
        GenerationStyle.CREATIVE, "1980 ler"
    )


def test_unknown_style_is_rejected():
    with pytest.raises(ValueError):
        build_prompt("noir", "1950 ler")


@pytest.mark.parametrize(
    "era, expected",
    [
        ("1950 ler", "1950 ler"),
        ("1970 ler", "1970 ler"),
        ("1980 ler", "1980 ler"),
        ("2000 ler", "2000 ler"),
        ("1960 lar", None),
        ("1990 lar", None),
    ],
)
def test_extract_era_from_strict_prompt(era, expected):
    assert extract_era(build_prompt(GenerationStyle.STRICT, era)) == expected


def test_extract_era_without_token():
    assert extract_era("A portrait from the fifties") is None


def test_fallback_prompt_drops_identity_constraints():
    prompt = build_fallback_prompt("1950 ler")

    assert "1950 ler" in prompt
    assert "facial features" not in prompt
    assert extract_era(prompt) == "1950 ler"


def test_validate_prompt_rejects_empty_and_oversized():
    with pytest.raises(ValueError, match="empty"):
        validate_prompt("")

    with pytest.raises(ValueError, match="maximum length"):
        validate_prompt("x" * (MAX_PROMPT_LENGTH + 1))
