class SentinelError(Exception):
    """Base de los errores propios del monitor."""


class RegistryError(SentinelError):
    """config.json ausente, inválido o sin sitios."""


class ProbeConfigError(SentinelError):
    """El sitio no se puede sondear (URL mal formada)."""


class HistoryError(SentinelError):
    """Fallo de lectura/escritura en el historial."""
