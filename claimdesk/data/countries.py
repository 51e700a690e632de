"""
Preset countries offered by the country form
"""
from typing import List, Optional

from pydantic import BaseModel

FLAG_CDN_URL = "https://flagcdn.com/w40/{code}.png"


def flag_url_for(code: str) -> str:
    """Flag image URL for an ISO 3166-1 alpha-2 code"""
    return FLAG_CDN_URL.format(code=code.strip().lower())


class CountryPreset(BaseModel):
    name: str
    code: str

    @property
    def flag_url(self) -> str:
        return flag_url_for(self.code)


COUNTRY_PRESETS: List[CountryPreset] = [
    CountryPreset(name=name, code=code)
    for name, code in (
        ("United States", "US"),
        ("Canada", "CA"),
        ("United Kingdom", "GB"),
        ("Germany", "DE"),
        ("France", "FR"),
        ("Japan", "JP"),
        ("Australia", "AU"),
        ("Brazil", "BR"),
        ("India", "IN"),
        ("China", "CN"),
        ("Mexico", "MX"),
        ("Spain", "ES"),
        ("Italy", "IT"),
        ("Netherlands", "NL"),
        ("Sweden", "SE"),
        ("Norway", "NO"),
        ("South Korea", "KR"),
        ("Singapore", "SG"),
        ("Switzerland", "CH"),
        ("Austria", "AT"),
    )
]


def find_preset(name_or_code: str) -> Optional[CountryPreset]:
    """Case-insensitive lookup by country name or ISO code"""
    needle = name_or_code.strip().lower()
    if not needle:
        return None
    for preset in COUNTRY_PRESETS:
        if preset.code.lower() == needle or preset.name.lower() == needle:
            return preset
    return None
