"""Static city aliases and substitute-market tables for hotel discovery."""

# Codes the directory tags inconsistently; searching one should include the other.
CITY_ALIASES: dict[str, tuple[str, ...]] = {
    "GOI": ("GOI", "GOX"),
    "GOX": ("GOX", "GOI"),
}

# City code → country code (ISO 3166-1 alpha-2)
CITY_COUNTRIES: dict[str, str] = {
    # India
    "GOI": "IN", "GOX": "IN", "DEL": "IN", "BOM": "IN", "BLR": "IN",
    "MAA": "IN", "HYD": "IN", "CCU": "IN", "COK": "IN", "JAI": "IN",
    # Gulf
    "DXB": "AE", "AUH": "AE", "DOH": "QA",
    # Southeast Asia
    "BKK": "TH", "HKT": "TH", "SIN": "SG", "KUL": "MY", "DPS": "ID",
    # United States
    "NYC": "US", "LAX": "US", "MIA": "US", "CHI": "US", "SFO": "US", "LAS": "US",
}

# Country → fallback region
COUNTRY_REGIONS: dict[str, str] = {
    "IN": "IN",
    "AE": "GULF", "QA": "GULF",
    "TH": "SEA", "SG": "SEA", "MY": "SEA", "ID": "SEA",
    "US": "US",
}

# Region → substitute markets, most popular first
REGION_MARKETS: dict[str, tuple[str, ...]] = {
    "IN": ("BOM", "DEL", "BLR", "MAA"),
    "GULF": ("DXB", "AUH", "DOH"),
    "SEA": ("BKK", "SIN", "KUL"),
    "US": ("NYC", "LAX", "MIA"),
}

# Tried after any region list
DEFAULT_MARKETS: tuple[str, ...] = ("PAR", "MAD", "BCN", "AMS")
