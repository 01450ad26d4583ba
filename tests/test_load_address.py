from __future__ import annotations

import pytest

from matrix65.errors import ValidationError
from matrix65.load_address import LoadAddress, Platform, classify


@pytest.mark.parametrize(
    "value, platform",
    [
        (0x0401, Platform.PET),
        (0x0801, Platform.COMMODORE64),
        (0x1001, Platform.COMMODORE16),
        (0x1C01, Platform.COMMODORE128),
        (0x2001, Platform.COMMODORE65),
    ],
)
def test_classify_known_platforms(value: int, platform: Platform) -> None:
    address = classify(value)

    assert address.platform is platform
    assert address == LoadAddress.for_platform(platform)
    assert not address.is_custom


def test_classify_falls_back_to_custom() -> None:
    address = classify(0xC000)

    assert address == LoadAddress.custom(0xC000)
    assert address.is_custom
    assert str(address) == "CUSTOM(0xc000)"


def test_every_16_bit_value_round_trips() -> None:
    assert all(LoadAddress.new(value).value == value for value in range(0x10000))


@pytest.mark.parametrize("value", [-1, 0x10000])
def test_classify_rejects_values_outside_16_bits(value: int) -> None:
    with pytest.raises(ValidationError):
        classify(value)
