"""Static reference data"""
from claimdesk.data.countries import (COUNTRY_PRESETS, CountryPreset,
                                      find_preset, flag_url_for)

__all__ = ["COUNTRY_PRESETS", "CountryPreset", "find_preset", "flag_url_for"]
