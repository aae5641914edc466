"""
Central Module (CM) gateway — simulated CM / FICA / SOM landscape.

All downstream calls made by the approval workflows go through this class.
No network traffic happens: the gateway mints request ids, answers invoice
status queries and reports per-system health the way the real CM would.

Invoice status:
    - invoice numbers listed in CM_CLEARED_INVOICES are always CLEARED
    - otherwise an invoice is CLEARED with probability CM_INVOICE_CLEARED_RATE
    - everything else is PENDING (not yet cleared)

Testability: pass an explicit ``rng`` (random.Random) to CMGateway() for
deterministic invoice answers.
"""

from __future__ import annotations

import logging
import random
import time

from flask import current_app

logger = logging.getLogger(__name__)

DOWNSTREAM_SYSTEMS = ("CM", "FICA", "SOM", "NAGRA", "CC", "CI")


class GatewayResult:
    """Structured return value from CMGateway calls.

    Attributes:
        ok:          True if the downstream system accepted the request.
        request_id:  CM correlation id.
        status:      Downstream status string (PROCESSING, COMPLETED ...).
        message:     Human-readable status message.
    """

    def __init__(self, ok: bool, request_id: str | None, status: str, message: str) -> None:
        self.ok = ok
        self.request_id = request_id
        self.status = status
        self.message = message

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "request_id": self.request_id,
            "status": self.status,
            "message": self.message,
        }

    def __repr__(self):
        return f"<GatewayResult {self.request_id} {self.status}>"


def _now_ms() -> int:
    return int(time.time() * 1000)


class CMGateway:
    """Simulated Central Module client."""

    def __init__(
        self,
        cleared_invoices: list[str] | None = None,
        cleared_rate: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self.cleared_invoices = set(cleared_invoices or [])
        self.cleared_rate = cleared_rate
        self.rng = rng or random.Random()

    @classmethod
    def from_app(cls) -> "CMGateway":
        cfg = current_app.config
        return cls(
            cleared_invoices=cfg.get("CM_CLEARED_INVOICES", []),
            cleared_rate=cfg.get("CM_INVOICE_CLEARED_RATE", 0.0),
        )

    # ── Invoices ─────────────────────────────────────────────────────────

    def check_invoice_status(self, invoice_number: str) -> str:
        """Return CLEARED or PENDING for an invoice."""
        if invoice_number in self.cleared_invoices:
            status = "CLEARED"
        elif self.cleared_rate and self.rng.random() < self.cleared_rate:
            status = "CLEARED"
        else:
            status = "PENDING"
        logger.debug("CM invoice %s status=%s", invoice_number, status)
        return status

    # ── Submissions ──────────────────────────────────────────────────────

    def post_adjustment(self, adjustment_id: int) -> GatewayResult:
        request_id = f"CM_ADJ_{adjustment_id}_{_now_ms()}"
        logger.info("CM adjustment posting accepted", extra={"entity_id": adjustment_id})
        return GatewayResult(True, request_id, "PROCESSING", "Adjustment approved and being processed")

    def submit_transfer(self, transfer_id: int) -> GatewayResult:
        request_id = f"CM-{_now_ms()}"
        logger.info("CM transfer submission accepted", extra={"entity_id": transfer_id})
        return GatewayResult(True, request_id, "PROCESSING", "Transfer submitted to Central Module")

    def submit_cancellation(self, pay_id: str) -> GatewayResult:
        request_id = f"CM_CANCEL_{pay_id}_{_now_ms()}"
        logger.info("CM cancellation submission accepted", extra={"entity_id": pay_id})
        return GatewayResult(True, request_id, "PROCESSING", "Cancellation request submitted to CM")

    # ── Health ───────────────────────────────────────────────────────────

    def system_status(self, degraded: set[str] | None = None) -> list[dict]:
        """Per-system availability; systems named in ``degraded`` report DEGRADED."""
        degraded = degraded or set()
        return [
            {"system": name, "status": "DEGRADED" if name in degraded else "ONLINE"}
            for name in DOWNSTREAM_SYSTEMS
        ]
