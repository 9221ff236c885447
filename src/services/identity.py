import uuid
from typing import NamedTuple, Optional

from .ledger import StatsLedger

VISITOR_COOKIE = "vid"


class VisitorIdentity(NamedTuple):
    visitor_id: str
    is_new_candidate: bool


def resolve_visitor(cookie_value: Optional[str], ledger: StatsLedger) -> VisitorIdentity:
    """
    Obtiene el id del visitante a partir de la cookie "vid".
    - Sin cookie: genera un UUID nuevo y lo marca como nuevo.
    - Con cookie que el ledger no conoce (p. ej. reinicio en memoria): nuevo.
    - Con cookie conocida: visitante que vuelve.
    El valor de la cookie se trata como un string opaco, sin validar.
    """
    if not cookie_value:
        return VisitorIdentity(str(uuid.uuid4()), True)
    return VisitorIdentity(cookie_value, not ledger.knows_visitor(cookie_value))
