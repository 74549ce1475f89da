"""Request bodies accepted by the geyser API."""

from __future__ import annotations

from pydantic import BaseModel, conint, constr


class StakeInput(BaseModel):
    address: constr(min_length=1)
    amount: conint(gt=0)


class UnstakeInput(BaseModel):
    address: constr(min_length=1)
    amount: conint(gt=0)


class AccountingInput(BaseModel):
    address: constr(min_length=1)
    commit: bool = True


class LockInput(BaseModel):
    caller: constr(min_length=1)
    amount: conint(gt=0)
    duration_seconds: conint(gt=0)
    start_time: conint(ge=0) | None = None
