"""Alias and substitute-market resolution for city codes. Pure lookups, no I/O."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from voyage.data.markets import (
    CITY_ALIASES,
    CITY_COUNTRIES,
    COUNTRY_REGIONS,
    DEFAULT_MARKETS,
    REGION_MARKETS,
)


def normalize_city(code: str | None) -> str:
    return str(code or "").strip().upper()


def _dedupe(codes) -> tuple[str, ...]:
    return tuple(dict.fromkeys(c for c in codes if c))


@dataclass(frozen=True)
class MarketTables:
    """Immutable lookup tables injected into the resolver."""
    aliases: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    city_countries: Mapping[str, str] = field(default_factory=dict)
    country_regions: Mapping[str, str] = field(default_factory=dict)
    region_markets: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    default_markets: tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("aliases", "city_countries", "country_regions", "region_markets"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(self, "default_markets", tuple(self.default_markets))


DEFAULT_TABLES = MarketTables(
    aliases=CITY_ALIASES,
    city_countries=CITY_COUNTRIES,
    country_regions=COUNTRY_REGIONS,
    region_markets=REGION_MARKETS,
    default_markets=DEFAULT_MARKETS,
)


class MarketResolver:
    """Expands a city into aliases and, on failure, into substitute markets."""

    def __init__(self, tables: MarketTables = DEFAULT_TABLES):
        self.tables = tables

    def aliases_of(self, city_code: str) -> list[str]:
        """The code itself first, then any configured synonyms."""
        code = normalize_city(city_code)
        if not code:
            return []
        return list(_dedupe([code, *(normalize_city(a) for a in self.tables.aliases.get(code, ()))]))

    def country_of(self, city_code: str) -> str | None:
        return self.tables.city_countries.get(normalize_city(city_code))

    def region_markets(self, city_code: str) -> tuple[str, ...]:
        country = self.country_of(city_code)
        region = self.tables.country_regions.get(country) if country else None
        if region is None:
            return ()
        return tuple(self.tables.region_markets.get(region, ()))

    def fallback_markets(self, city_code: str) -> list[str]:
        """Region markets first, then the global default list, without repeats."""
        return list(_dedupe([*self.region_markets(city_code), *self.tables.default_markets]))


market_resolver = MarketResolver()
