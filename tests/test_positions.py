import math

import pytest

from exceptions import ProviderError
from natal import (
    ChartConfig,
    RawHouses,
    RawPosition,
    derive_houses,
    house_of,
    make_position,
    resolve_positions,
    tally_elements,
)
from conftest import PLACIDUS_CUSPS


def test_resolve_positions_keeps_body_order_not_longitude_order():
    raw = [
        RawPosition('Moon', longitude=10.0, speed=13.2),
        RawPosition('Sun', longitude=217.4, speed=1.0),
        RawPosition('Mars', longitude=-20.0, speed=-0.3),
    ]
    positions = resolve_positions(['Sun', 'Moon', 'Mars'], raw)

    assert [p.name for p in positions] == ['Sun', 'Moon', 'Mars']
    sun, moon, mars = positions
    assert (sun.sign, sun.element, sun.retrograde) == ('Scorpio', 'Water', False)
    assert (moon.sign, moon.element) == ('Aries', 'Fire')
    assert mars.longitude == pytest.approx(340.0)
    assert (mars.sign, mars.retrograde) == ('Pisces', True)


def test_zero_speed_is_not_retrograde():
    assert make_position('Sun', 0.0, 0.0).retrograde is False
    assert make_position('Sun', 0.0, -1e-9).retrograde is True


def test_resolve_positions_reports_every_failed_body():
    raw = [
        RawPosition('Sun', longitude=10.0, speed=1.0),
        RawPosition('Chiron', error='seas_18.se1 not found'),
        RawPosition('Moon', longitude=math.nan, speed=13.0),
    ]
    with pytest.raises(ProviderError) as info:
        resolve_positions(['Sun', 'Moon', 'Chiron', 'Pluto'], raw)

    assert info.value.bodies == ('Moon', 'Chiron', 'Pluto')
    assert 'seas_18.se1 not found' in str(info.value)


def test_derive_houses_labels_and_angles(placidus_houses):
    houses = derive_houses(placidus_houses, 'Placidus')

    assert [c.name for c in houses.cusps] == list(ChartConfig.HOUSE_LABELS)
    assert [c.number for c in houses.cusps] == list(range(1, 13))
    assert houses.ascendant is houses.cusps[0]
    assert houses.ic is houses.cusps[3]
    assert houses.descendant is houses.cusps[6]
    assert houses.mc is houses.cusps[9]
    assert houses.ic.longitude == houses.cusps[3].longitude == PLACIDUS_CUSPS[3]
    assert houses.descendant.longitude == PLACIDUS_CUSPS[6]
    assert houses.ascendant.sign == 'Cancer'
    assert houses.mc.sign == 'Aries'


def test_derive_houses_normalizes_cusps():
    cusps = tuple(c - 360 for c in PLACIDUS_CUSPS)
    houses = derive_houses(RawHouses(ascendant=cusps[0], mc=cusps[9], cusps=cusps))
    assert houses.cusps[9].longitude == pytest.approx(3.0)
    assert houses.system == 'Placidus'


def test_derive_houses_without_provider_houses():
    assert derive_houses(None) is None


def test_mc_mismatch_is_surfaced():
    raw = RawHouses(ascendant=PLACIDUS_CUSPS[0], mc=PLACIDUS_CUSPS[9] + 0.5, cusps=PLACIDUS_CUSPS)
    with pytest.raises(ProviderError, match="MC"):
        derive_houses(raw)


def test_mc_agreement_across_zero_aries():
    cusps = PLACIDUS_CUSPS[:9] + (0.0,) + PLACIDUS_CUSPS[10:]
    houses = derive_houses(RawHouses(ascendant=cusps[0], mc=359.9999999999, cusps=cusps))
    assert houses.mc.longitude == 0.0


@pytest.mark.parametrize("cusps", [PLACIDUS_CUSPS[:11], PLACIDUS_CUSPS + (90.0,)])
def test_wrong_cusp_count_is_a_provider_error(cusps):
    with pytest.raises(ProviderError):
        derive_houses(RawHouses(ascendant=100.0, mc=3.0, cusps=cusps))


def test_non_finite_cusp_is_a_provider_error():
    cusps = (math.nan,) + PLACIDUS_CUSPS[1:]
    with pytest.raises(ProviderError):
        derive_houses(RawHouses(ascendant=100.0, mc=3.0, cusps=cusps))


@pytest.mark.parametrize("longitude, house", [
    (100.0, 1),
    (110.0, 1),
    (125.5, 2),
    (200.0, 4),
    (310.0, 8),
    (359.0, 9),
    (2.9, 9),
    (3.0, 10),
    (80.0, 12),
])
def test_house_of(placidus_houses, longitude, house):
    houses = derive_houses(placidus_houses)
    assert house_of(longitude, houses) == house


def test_element_tally_counts_all_elements():
    positions = [
        make_position('Sun', 5.0, 1.0),       # Aries
        make_position('Moon', 125.0, 13.0),   # Leo
        make_position('Mercury', 35.0, 1.2),  # Taurus
    ]
    tally = tally_elements(positions)
    assert tally == {'Fire': 2, 'Earth': 1, 'Air': 0, 'Water': 0}
    assert sum(tally.values()) == len(positions)
