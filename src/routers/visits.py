import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response
from fastapi.responses import JSONResponse

from ..schemas.visit_schema import ErrorOut, HealthOut, StatsOut, VisitOut
from ..services.identity import VISITOR_COOKIE, resolve_visitor
from ..services.ledger import PersistenceError, StatsLedger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stats"])

# Cookie de un año
VISITOR_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def get_ledger(request: Request) -> StatsLedger:
    """
    Dependencia para inyectar el ledger creado al iniciar la app.
    """
    return request.app.state.ledger


@router.post(
    "/visit",
    response_model=VisitOut,
    responses={500: {"model": ErrorOut}},
)
def record_visit(
    response: Response,
    vid: Optional[str] = Cookie(default=None),
    ledger: StatsLedger = Depends(get_ledger),
):
    """
    Registra una visita.
    Si el navegador no trae la cookie "vid" se le asigna un UUID nuevo.
    Suma 1 a las visitas totales y 1 a los visitantes únicos solo si el
    visitante no estaba registrado.
    """
    try:
        identity = resolve_visitor(vid, ledger)
        result = ledger.record_visit(identity.visitor_id)
    except PersistenceError as e:
        logger.error(f"Error al registrar visita: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "stats_update_failed"},
        )

    if result.is_new:
        logger.info(f"Nueva visita única registrada: {identity.visitor_id[:8]}...")
    elif identity.is_new_candidate:
        logger.info(f"Visitante {identity.visitor_id[:8]}... registrado por otro request concurrente")

    response.set_cookie(
        key=VISITOR_COOKIE,
        value=identity.visitor_id,
        max_age=VISITOR_COOKIE_MAX_AGE,
        expires=VISITOR_COOKIE_MAX_AGE,
        path="/",
        samesite="Lax",
        httponly=False,
    )
    return VisitOut(
        total_visits=result.total_visits,
        unique_visitors=result.unique_visitors,
        new_visitor=result.is_new,
    )


@router.get(
    "/stats",
    response_model=StatsOut,
    responses={500: {"model": ErrorOut}},
)
def get_stats(ledger: StatsLedger = Depends(get_ledger)):
    """Devuelve los contadores actuales."""
    try:
        snapshot = ledger.read_stats()
    except PersistenceError as e:
        logger.error(f"Error al leer estadísticas de visitas: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "stats_read_failed"},
        )
    return StatsOut(
        total_visits=snapshot.total_visits,
        unique_visitors=snapshot.unique_visitors,
    )


@router.get("/health", response_model=HealthOut, tags=["health"])
def health(ledger: StatsLedger = Depends(get_ledger)):
    # No toca la base de datos, solo confirma que el proceso responde
    return HealthOut(status="ok", backend=ledger.backend_name)
