"""Frases de confirmación para acciones destructivas masivas."""
from dataclasses import dataclass


@dataclass(frozen=True)
class ConfirmationGate:
    phrase: str
    case_sensitive: bool = True

    def is_enabled(self, text: str) -> bool:
        """La acción solo se habilita si el texto coincide exactamente con la frase."""
        if text is None:
            return False
        if self.case_sensitive:
            return text == self.phrase
        return text.upper() == self.phrase.upper()

    def require(self, text: str) -> None:
        if not self.is_enabled(text):
            raise ValueError(f"Debes escribir la frase exacta para confirmar: {self.phrase}")


# Limpieza de pedidos pendientes (ME, Flex) y pedidos a proveedor
CLEAR_ALL = ConfirmationGate("SOY UN VAGO", case_sensitive=True)


def dispatch_gate(count: int) -> ConfirmationGate:
    """Despacho masivo: 'DESPACHAR <n>', sin distinguir mayúsculas."""
    return ConfirmationGate(f"DESPACHAR {count}", case_sensitive=False)
