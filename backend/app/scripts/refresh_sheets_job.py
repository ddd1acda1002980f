"""Command line entry-point to refresh spreadsheet data on demand."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..database import session_scope
from ..periods import Period
from ..services.sheet_refresh import IngestionError, SheetRefreshService

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Importa os dados da planilha de tickets e recalcula as métricas."
    )
    parser.add_argument(
        "--periodo",
        default=os.getenv("SHEETS_REFRESH_PERIOD", Period.default().value),
        help="Período a atualizar: 7d, 30d, 1m, 3m, 6m ou 1y (default: 30d).",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Atualiza todos os períodos, um após o outro.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Imprime informação adicional para depuração.",
    )
    return parser.parse_args(argv)


def main(
    argv: Optional[list[str]] = None,
    *,
    service_factory: Callable[[Session], SheetRefreshService] = SheetRefreshService,
) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    periods = list(Period) if args.all else [Period.parse(args.periodo)]
    failures = 0
    for period in periods:
        try:
            with session_scope() as session:
                result = service_factory(session).refresh(period)
        except IngestionError as exc:
            LOGGER.error("Falha ao atualizar o período %s: %s", period.value, exc)
            failures += 1
            continue
        LOGGER.info("Resumo da atualização: %s", result.to_dict())

    return 1 if failures else 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
