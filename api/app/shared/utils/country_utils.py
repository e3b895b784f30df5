"""
Conversión de nombres de país a códigos ISO 3166-1 alpha-2.
"""
from typing import Optional

import pycountry
from loguru import logger


# Nombres frecuentes en archivos de clientes que pycountry no resuelve por lookup
_ALIASES = {
    "usa": "US",
    "united states of america": "US",
    "uk": "GB",
    "england": "GB",
    "great britain": "GB",
    "south korea": "KR",
    "russia": "RU",
}


def get_country_code(country: Optional[str]) -> Optional[str]:
    """
    Retorna el código alpha-2 para un nombre o código de país.

    Args:
        country: Nombre ("Mexico"), alpha-2 ("mx") o alpha-3 ("MEX")

    Returns:
        Optional[str]: Código alpha-2 en mayúsculas o None si no se reconoce
    """
    if not country:
        return None
    value = str(country).strip()
    if not value:
        return None

    alias = _ALIASES.get(value.lower())
    if alias:
        return alias

    try:
        return pycountry.countries.lookup(value).alpha_2
    except LookupError:
        pass

    try:
        matches = pycountry.countries.search_fuzzy(value)
    except LookupError:
        matches = []
    if matches:
        return matches[0].alpha_2

    logger.warning(f"[country] Pais no reconocido: {value}")
    return None
