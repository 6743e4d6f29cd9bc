from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

NORTH_AMERICA = 'North America'
EUROPE = 'Europe'
ASIA = 'Asia'
SOUTH_AMERICA = 'South America'
AFRICA = 'Africa'
OCEANIA = 'Oceania'


@dataclass(frozen=True)
class ShippingFeeTable:
    """Country to continent to flat sample-shipping fee, in cents."""

    country_continents: Mapping[str, str]
    continent_fees: Mapping[str, int]
    default_fee: int
    currency: str = 'usd'
    countries: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, 'country_continents', MappingProxyType(dict(self.country_continents)))
        object.__setattr__(self, 'continent_fees', MappingProxyType(dict(self.continent_fees)))
        if not self.countries:
            object.__setattr__(self, 'countries', tuple(self.country_continents))

    def continent_for(self, country: str) -> str | None:
        return self.country_continents.get(country.strip())

    def fee_for(self, country: str) -> int:
        continent = self.continent_for(country)
        if continent is None:
            return self.default_fee
        return self.continent_fees.get(continent, self.default_fee)


DEFAULT_SHIPPING_TABLE = ShippingFeeTable(
    country_continents={
        'United States': NORTH_AMERICA,
        'Canada': NORTH_AMERICA,
        'Mexico': NORTH_AMERICA,
        'United Kingdom': EUROPE,
        'Germany': EUROPE,
        'France': EUROPE,
        'Italy': EUROPE,
        'Spain': EUROPE,
        'Australia': OCEANIA,
        'Japan': ASIA,
        'China': ASIA,
        'India': ASIA,
        'South Korea': ASIA,
        'Brazil': SOUTH_AMERICA,
        'Argentina': SOUTH_AMERICA,
        'South Africa': AFRICA,
        'Nigeria': AFRICA,
        'Egypt': AFRICA,
    },
    continent_fees={
        NORTH_AMERICA: 2000,
        EUROPE: 2500,
        ASIA: 3000,
        SOUTH_AMERICA: 3500,
        AFRICA: 4000,
        OCEANIA: 3000,
    },
    default_fee=2800,
)


def compute_shipping_fee(country: str, table: ShippingFeeTable = DEFAULT_SHIPPING_TABLE) -> int:
    return table.fee_for(country or '')


def shipping_quote(country: str, table: ShippingFeeTable = DEFAULT_SHIPPING_TABLE) -> dict:
    fee = compute_shipping_fee(country, table)
    return {
        'country': country,
        'continent': table.continent_for(country or ''),
        'shipping_fee': fee,
        'amount': f'{fee / 100:.2f}',
        'currency': table.currency,
    }
