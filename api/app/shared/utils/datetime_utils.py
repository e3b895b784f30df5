"""
Utilidades para manejo de fechas y horas en UTC.
"""
from datetime import date, datetime, timezone
from typing import Any, Optional


class DateTimeUtils:
    """Clase de utilidades para operaciones con fechas y horas."""

    @staticmethod
    def now_utc() -> datetime:
        """
        Obtiene la fecha y hora actual en UTC.

        Returns:
            datetime: Fecha y hora actual en UTC
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """Normaliza un datetime naive o con zona a UTC aware."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def to_iso_string(value: Any) -> str:
        """
        Serializa date/datetime a ISO 8601.
        Los datetime se expresan en UTC con sufijo 'Z'.

        Args:
            value: date o datetime

        Returns:
            str: Fecha en formato ISO 8601
        """
        if isinstance(value, datetime):
            dt = DateTimeUtils.ensure_utc(value)
            return dt.isoformat().replace("+00:00", "Z")
        if isinstance(value, date):
            return value.isoformat()
        raise TypeError(f"No es una fecha: {value!r}")

    @staticmethod
    def from_iso_string(iso_string: Optional[str]) -> Optional[datetime]:
        """
        Convierte un string ISO 8601 a datetime UTC.
        Acepta sufijo 'Z' y fechas sin hora (YYYY-MM-DD).

        Args:
            iso_string: String en formato ISO 8601

        Returns:
            Optional[datetime]: Objeto datetime o None si hay error
        """
        if not iso_string:
            return None
        try:
            dt = datetime.fromisoformat(str(iso_string).strip().replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return None
        return DateTimeUtils.ensure_utc(dt)
