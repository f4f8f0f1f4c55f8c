# ==============================================================================
# NOTIFICACIONES AL USUARIO
# ==============================================================================
# Los servicios no conocen Flask: reciben un "notifier" (callable) y lo usan
# para avisar al usuario de un fallo. En la aplicación el notifier publica un
# mensaje flash que la plantilla base muestra una sola vez (notificación
# transitoria). En tests se inyecta un NotificationCollector.
# ==============================================================================

from typing import Callable, List, Tuple

from flask import flash, has_request_context

Notifier = Callable[[str, str], None]


def flash_notifier(message: str, category: str = 'danger') -> None:
    """Publica el mensaje en la cola flash de la petición actual."""
    if has_request_context():
        flash(message, category)
    else:
        print(f"[AVISO] {message}")


class NotificationCollector:
    """Notifier que acumula mensajes en memoria (tests y tareas sin request)."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def __call__(self, message: str, category: str = 'danger') -> None:
        self.messages.append((message, category))
