"""
Geyser API Blueprint

Read and write endpoints over a single TokenGeyser. Caller identity
(`address`, `caller`) is taken from the request body; authenticating it is
left to the hosting service.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Tuple

from flask import Blueprint

from geyser.api.base import (
    get_geyser,
    handle_geyser_error,
    success_response,
    validate_body,
)
from geyser.api.schemas import AccountingInput, LockInput, StakeInput, UnstakeInput
from geyser.core.geyser_exceptions import GeyserError

logger = logging.getLogger(__name__)

geyser_bp = Blueprint("geyser", __name__, url_prefix="/geyser")


@geyser_bp.errorhandler(GeyserError)
def geyser_error(error: GeyserError) -> Tuple[Any, int]:
    return handle_geyser_error(error)


@geyser_bp.route("/totals", methods=["GET"])
def totals() -> Tuple[Any, int]:
    """Pool balances and schedule count."""
    geyser = get_geyser()
    return success_response(
        {
            "total_staked": geyser.total_staked(),
            "total_locked": geyser.total_locked(),
            "total_unlocked": geyser.total_unlocked(),
            "unlock_schedule_count": geyser.unlock_schedule_count(),
            "staking_token": geyser.get_staking_token(),
            "distribution_token": geyser.get_distribution_token(),
        }
    )


@geyser_bp.route("/stakes/<address>", methods=["GET"])
def stakes(address: str) -> Tuple[Any, int]:
    """A participant's stake queue, oldest first, and live staked amount."""
    geyser = get_geyser()
    return success_response(
        {
            "address": address.lower(),
            "total_staked": geyser.total_staked_for(address),
            "stakes": [asdict(s) for s in geyser.stakes_for(address)],
        }
    )


@geyser_bp.route("/stake", methods=["POST"])
@validate_body(StakeInput)
def stake(body: StakeInput) -> Tuple[Any, int]:
    geyser = get_geyser()
    recorded = geyser.stake(body.address, body.amount)
    return success_response(
        {"stake": asdict(recorded), "total_staked": geyser.total_staked_for(body.address)}
    )


@geyser_bp.route("/unstake", methods=["POST"])
@validate_body(UnstakeInput)
def unstake(body: UnstakeInput) -> Tuple[Any, int]:
    result = get_geyser().unstake(body.address, body.amount)
    return success_response(
        {
            "amount": result.amount,
            "total_reward": result.total_reward,
            "user_reward": result.user_reward,
            "founder_reward": result.founder_reward,
            "remaining_staked": result.remaining_staked,
        }
    )


@geyser_bp.route("/unstake/query", methods=["POST"])
@validate_body(UnstakeInput)
def unstake_query(body: UnstakeInput) -> Tuple[Any, int]:
    return success_response(get_geyser().unstake_query(body.address, body.amount))


@geyser_bp.route("/accounting", methods=["POST"])
@validate_body(AccountingInput)
def accounting(body: AccountingInput) -> Tuple[Any, int]:
    """Current entitlement of `address`; `commit: false` previews without committing."""
    geyser = get_geyser()
    if body.commit:
        snapshot = geyser.update_accounting(body.address)
    else:
        snapshot = geyser.accounting_query(body.address)
    return success_response({"accounting": snapshot.to_dict()})


@geyser_bp.route("/lock", methods=["POST"])
@validate_body(LockInput)
def lock(body: LockInput) -> Tuple[Any, int]:
    schedule_id = get_geyser().lock_tokens(
        body.caller, body.amount, body.duration_seconds, start_time=body.start_time
    )
    logger.info(
        "Reward tokens locked via API",
        extra={"event": "geyser.api_lock", "schedule_id": schedule_id, "amount": body.amount},
    )
    return success_response({"schedule_id": schedule_id}, status=201)
