from pydantic import BaseModel, field_validator


class HotelSearchRequest(BaseModel):
    check_in: str
    check_out: str
    city_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    adults: int = 1
    hotel_ids: list[str] = []
    strict_city: bool = False

    @field_validator("city_code")
    @classmethod
    def _normalize_city(cls, v: str | None) -> str | None:
        v = (v or "").strip().upper()
        return v or None

    @field_validator("hotel_ids")
    @classmethod
    def _normalize_ids(cls, v: list[str]) -> list[str]:
        ids = (s.strip().upper() for s in v)
        return list(dict.fromkeys(i for i in ids if i))

    @property
    def has_city(self) -> bool:
        return bool(self.city_code)

    @property
    def has_coords(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @classmethod
    def from_query(
        cls,
        check_in: str,
        check_out: str,
        city_code: str | None = None,
        lat: float | None = None,
        lon: float | None = None,
        adults: int = 1,
        hotel_ids: str | None = None,
        strict_city: str | None = None,
    ) -> "HotelSearchRequest":
        """Build from raw query-string values (comma-separated IDs, 0/1 flag)."""
        return cls(
            check_in=check_in,
            check_out=check_out,
            city_code=city_code,
            latitude=lat,
            longitude=lon,
            adults=adults,
            hotel_ids=(hotel_ids or "").split(","),
            strict_city=str(strict_city or "0").strip().lower() in ("1", "true", "yes"),
        )
