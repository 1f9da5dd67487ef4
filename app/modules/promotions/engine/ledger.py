# app/modules/promotions/engine/ledger.py
"""
Registro de usos al cerrar una venta.

El contador de cada regla se incrementa con un UPDATE condicional y se revisa
el número de filas afectadas (compare-and-swap optimista). No hay locks de
aplicación: la primera transacción confirmada se queda con la capacidad.
La transacción la abre y la confirma quien llama (la escritura de la venta).
"""
import logging
from datetime import datetime
from typing import List, NamedTuple, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.shared.database.models import PriceRule as PriceRuleRow
from app.shared.database.models import PriceRuleUsage, SaleBundle
from .catalog import RuleCatalog
from .types import DiscountApplication, DiscountReducedAtCommit, DiscountResult, SourceKind

logger = logging.getLogger(__name__)


class CommitOutcome(NamedTuple):
    result: DiscountResult
    dropped: List[DiscountApplication]
    signal: Optional[DiscountReducedAtCommit]


class UsageLedger:

    def __init__(self, db: Session):
        self.db = db

    def _increment_rule(self, rule_id: int, capped: bool) -> bool:
        stmt = (
            update(PriceRuleRow)
            .where(PriceRuleRow.id == rule_id)
            .values(used_count=PriceRuleRow.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if capped:
            stmt = stmt.where(PriceRuleRow.used_count < PriceRuleRow.max_uses)
        return self.db.execute(stmt).rowcount == 1

    def commit(
        self,
        result: DiscountResult,
        catalog: RuleCatalog,
        now: datetime,
        sale_id: Optional[int] = None,
    ) -> CommitOutcome:
        """
        Confirmar los usos de un resultado. Las aplicaciones cuya regla perdió
        la carrera por el tope de usos se eliminan del resultado confirmado.
        """
        dropped: List[DiscountApplication] = []

        for application in result.applications:
            if application.source_kind != SourceKind.rule:
                continue
            rule = catalog.rule(application.source_id)
            capped = rule is not None and rule.max_uses is not None
            if not self._increment_rule(application.source_id, capped):
                logger.warning(
                    "Regla %s agotada al confirmar la venta %s; se retira el descuento de %s",
                    application.source_id, sale_id, application.discount_amount,
                )
                dropped.append(application)

        committed = result.without(dropped) if dropped else result

        if sale_id is not None:
            self._record_usage(committed, catalog, now, sale_id)
        self.db.flush()

        signal = None
        if dropped:
            signal = DiscountReducedAtCommit(
                preview_total=result.total_discount,
                committed_total=committed.total_discount,
                dropped_source_ids=tuple(a.source_id for a in dropped),
            )
        logger.info(
            "Venta %s: %s promociones confirmadas, descuento total %s",
            sale_id, len(committed.applications), committed.total_discount,
        )
        return CommitOutcome(result=committed, dropped=dropped, signal=signal)

    def _record_usage(self, result: DiscountResult, catalog: RuleCatalog, now: datetime, sale_id: int) -> None:
        for application in result.applications:
            if application.source_kind == SourceKind.rule:
                self.db.add(PriceRuleUsage(
                    rule_id=application.source_id,
                    sale_id=sale_id,
                    discount_applied=application.discount_amount,
                    applied_at=now,
                ))
            else:
                self.db.add(SaleBundle(
                    sale_id=sale_id,
                    bundle_id=application.source_id,
                    times_applied=self._bundle_sets(application, catalog),
                    discount_applied=application.discount_amount,
                    applied_at=now,
                ))

    @staticmethod
    def _bundle_sets(application: DiscountApplication, catalog: RuleCatalog) -> int:
        bundle = catalog.bundle(application.source_id)
        if bundle is None:
            return 1
        units_per_set = sum(c.quantity for c in bundle.components)
        units = sum(line.quantity_affected for line in application.affected_lines)
        return max(1, units // units_per_set)
