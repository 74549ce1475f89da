import pytest
from prometheus_client import CollectorRegistry

from geyser.core.config import ONE_YEAR_SECONDS
from geyser.core.contracts.elastic_erc20 import ZERO_ADDRESS, ElasticToken
from geyser.core.defi.access_control import GeyserAccessControl, Role
from geyser.core.distribution.events import (
    STAKED,
    STAKING_TOKEN_SET,
    TOKENS_LOCKED,
    TOKENS_UNLOCKED,
)
from geyser.core.distribution.token_geyser import TokenGeyser
from geyser.core.geyser_exceptions import (
    AuthorizationError,
    CapacityError,
    ConfigurationError,
    InputValidationError,
    StateError,
    TokenError,
)
from geyser.core.metrics import GeyserMetrics
from geyser_testkit import ALICE, BOB, FOUNDER, ONE, OWNER, START, GeyserHarness, make_config


class TestStakingTokenSetup:
    @pytest.fixture
    def future(self, make_harness):
        return make_harness(staking_token_set=False)

    def test_unset_staking_token_reports_zero_address(self, future):
        assert future.geyser.is_staking_token_set() is False
        assert future.geyser.get_staking_token() == ZERO_ADDRESS

    def test_non_owner_cannot_set_staking_token(self, future):
        with pytest.raises(AuthorizationError, match="Ownable: caller is not the owner"):
            future.geyser.set_staking_token(ALICE, future.token)

    def test_lock_and_stake_blocked_until_set(self, future):
        future.token.approve(OWNER, future.geyser.address, 100 * ONE)
        with pytest.raises(StateError, match="Staking token not set"):
            future.geyser.lock_tokens(OWNER, 100 * ONE, ONE_YEAR_SECONDS)
        with pytest.raises(StateError, match="Staking token not set"):
            future.geyser.stake(ALICE, 10 * ONE)
        with pytest.raises(StateError, match="Staking token not set"):
            future.geyser.unstake(ALICE, 10 * ONE)

    def test_non_owner_lock_fails_on_authorization_first(self, future):
        with pytest.raises(AuthorizationError):
            future.geyser.lock_tokens(ALICE, 100 * ONE, ONE_YEAR_SECONDS)

    def test_owner_sets_staking_token_once(self, future):
        future.geyser.set_staking_token(OWNER, future.token)

        assert future.geyser.is_staking_token_set() is True
        assert future.geyser.get_staking_token() == future.token.address
        assert future.geyser.events[-1].event_type == STAKING_TOKEN_SET
        with pytest.raises(StateError, match="Staking token already set"):
            future.geyser.set_staking_token(OWNER, future.token)

    def test_normal_operation_after_set(self, future):
        future.geyser.set_staking_token(OWNER, future.token)
        future.lock(100 * ONE)
        future.stake(ALICE, 10 * ONE)
        future.clock.advance(ONE_YEAR_SECONDS)

        result = future.geyser.unstake(ALICE, 10 * ONE)

        assert result.total_reward == 100 * ONE


class TestLockTokens:
    def test_lock_pulls_tokens_and_emits_event(self, harness):
        before = harness.token.balance_of(OWNER)

        schedule_id = harness.lock(100 * ONE, ONE_YEAR_SECONDS)

        assert schedule_id == 1
        assert harness.token.balance_of(OWNER) == before - 100 * ONE
        assert harness.geyser.total_locked() == 100 * ONE
        assert harness.geyser.unlock_schedule_count() == 1
        event = harness.geyser.events[-1]
        assert event.event_type == TOKENS_LOCKED
        assert event.args["amount"] == 100 * ONE
        assert event.args["total"] == 100 * ONE

    def test_granted_locker_may_lock(self, harness):
        harness.geyser.access_control.grant_role(OWNER, Role.LOCKER.value, BOB)
        harness.fund(BOB, 10 * ONE)

        assert harness.geyser.lock_tokens(BOB, 10 * ONE, 100) == 1

    def test_non_locker_rejected(self, harness):
        harness.fund(ALICE, 10 * ONE)

        with pytest.raises(AuthorizationError, match="Ownable: caller is not the owner"):
            harness.geyser.lock_tokens(ALICE, 10 * ONE, 100)

    def test_capacity_counts_only_active_schedules(self, make_harness):
        harness = make_harness(max_unlock_schedules=1)
        harness.lock(10 * ONE, 100)

        with pytest.raises(CapacityError, match="reached maximum unlock schedules"):
            harness.lock(10 * ONE, 100)

        harness.clock.advance(100)
        assert harness.lock(10 * ONE, 100) == 2

    def test_schedule_before_global_start_rejected(self, make_harness, clock):
        harness = make_harness(global_start_time=clock.now() + 1000)

        with pytest.raises(StateError, match="schedule cannot start before global start time"):
            harness.lock(100 * ONE, ONE_YEAR_SECONDS, start_time=clock.now() + 999)
        # A start in the past that is also before the global start reports the global bound
        with pytest.raises(StateError, match="schedule cannot start before global start time"):
            harness.lock(100 * ONE, ONE_YEAR_SECONDS, start_time=clock.now() - 1000)

    def test_schedule_at_global_start_accepted(self, make_harness, clock):
        harness = make_harness(global_start_time=clock.now() + 1000)

        assert harness.lock(100 * ONE, ONE_YEAR_SECONDS, start_time=clock.now() + 1000) == 1

    def test_missing_allowance_rolls_back(self, harness):
        with pytest.raises(TokenError, match="exceeds allowance"):
            harness.geyser.lock_tokens(OWNER, 100 * ONE, ONE_YEAR_SECONDS)

        assert harness.geyser.unlock_schedule_count() == 0
        assert harness.geyser.accounting().total_locked_shares == 0
        assert harness.geyser.events == []


class TestGlobalStartTime:
    @pytest.fixture
    def delayed(self, make_harness, clock):
        harness = make_harness(global_start_time=clock.now() + 1000, founder_percentage=0)
        harness.lock(1000 * ONE, 1000, start_time=clock.now() + 1000)
        return harness

    def test_staking_before_start_fails(self, delayed):
        with pytest.raises(StateError, match="Distribution not started."):
            delayed.stake(ALICE, 500 * ONE)
        with pytest.raises(StateError, match="Distribution not started."):
            delayed.stake(OWNER, 500 * ONE)

    def test_single_staker_collects_everything(self, delayed):
        delayed.clock.advance(1000)
        delayed.stake(ALICE, 500 * ONE)
        delayed.clock.advance(1000)

        result = delayed.geyser.unstake(ALICE, 500 * ONE)

        assert result.total_reward == 1000 * ONE
        assert delayed.token.balance_of(ALICE) == 1500 * ONE

    @pytest.mark.parametrize("extra_delay", [0, 100_000])
    def test_first_stake_after_schedule_end_withdraws_everything(self, delayed, extra_delay):
        delayed.clock.advance(2000 + extra_delay)
        delayed.stake(ALICE, 500 * ONE)
        delayed.clock.advance(1)

        result = delayed.geyser.unstake(ALICE, 500 * ONE)

        assert result.total_reward == 1000 * ONE

    def test_stake_allowed_after_vested_schedule_retires(self, harness, clock):
        harness.lock(100 * ONE, 3600)
        harness.stake(ALICE, 10 * ONE)
        clock.advance(7200)
        harness.lock(100 * ONE, 3600, start_time=clock.now() + 86400)

        assert harness.geyser.total_unlocked() > 0
        assert harness.geyser.unlock_schedule_count() == 1

        harness.stake(BOB, 10 * ONE)

        assert harness.geyser.total_staked_for(BOB) == 10 * ONE


class TestStake:
    def test_stake_records_queue_entry_and_event(self, harness):
        stake = harness.stake(ALICE, 50 * ONE)

        assert stake.staking_shares == 50 * ONE * 10**6
        assert harness.geyser.total_staked_for(ALICE) == 50 * ONE
        assert harness.token.balance_of(ALICE) == 0
        event = harness.geyser.events[-1]
        assert event.event_type == STAKED
        assert event.args == {"user": ALICE, "amount": 50 * ONE, "total": 50 * ONE}
        assert event.timestamp == START

    def test_zero_stake_rejected(self, harness):
        with pytest.raises(InputValidationError, match="stake amount is zero"):
            harness.geyser.stake(ALICE, 0)

    def test_stake_without_funds_leaves_no_trace(self, harness):
        harness.token.approve(ALICE, harness.geyser.address, 50 * ONE)

        with pytest.raises(TokenError, match="exceeds balance"):
            harness.geyser.stake(ALICE, 50 * ONE)

        assert harness.geyser.stakes_for(ALICE) == []
        assert harness.geyser.accounting().total_staking_shares == 0

    def test_clock_moving_backwards_rejected(self, harness):
        harness.stake(ALICE, 10 * ONE)

        with pytest.raises(StateError, match="clock moved backwards"):
            harness.geyser.stake(ALICE, 10 * ONE, current_time=START - 1)


class TestUnstakeValidation:
    def test_zero_unstake_rejected(self, harness):
        harness.stake(ALICE, 50 * ONE)

        with pytest.raises(InputValidationError, match="TokenGeyser: unstake amount is zero"):
            harness.geyser.unstake(ALICE, 0)

    def test_unstake_more_than_staked_rejected(self, harness):
        harness.stake(ALICE, 50 * ONE)

        with pytest.raises(InputValidationError, match="greater than total user stakes"):
            harness.geyser.unstake(ALICE, 50 * ONE + 1)

    def test_unstake_by_stranger_rejected(self, harness):
        harness.stake(ALICE, 50 * ONE)

        with pytest.raises(InputValidationError, match="greater than total user stakes"):
            harness.geyser.unstake(BOB, 1)


class TestQueries:
    @pytest.fixture
    def setup(self, harness):
        harness.lock(100 * ONE, ONE_YEAR_SECONDS)
        harness.stake(ALICE, 50 * ONE)
        harness.clock.advance(ONE_YEAR_SECONDS // 2)
        return harness

    def test_unstake_query_matches_unstake_and_changes_nothing(self, setup):
        before = setup.geyser.to_dict()
        balance = setup.token.balance_of(ALICE)

        preview = setup.geyser.unstake_query(ALICE, 25 * ONE)
        again = setup.geyser.unstake_query(ALICE, 25 * ONE)

        assert preview == again
        assert setup.geyser.to_dict() == before
        assert setup.token.balance_of(ALICE) == balance

        result = setup.geyser.unstake(ALICE, 25 * ONE)
        assert preview == {
            "total_reward": result.total_reward,
            "user_reward": result.user_reward,
            "founder_reward": result.founder_reward,
        }
        assert result.total_reward == 25 * ONE

    def test_unstake_query_raises_like_unstake(self, setup):
        with pytest.raises(InputValidationError, match="unstake amount is zero"):
            setup.geyser.unstake_query(ALICE, 0)

    def test_accounting_query_does_not_commit(self, setup):
        snapshot = setup.geyser.accounting_query(ALICE)

        assert snapshot.total_unlocked == 50 * ONE
        assert snapshot.user_rewards == 45 * ONE
        assert snapshot.founder_rewards == 5 * ONE
        assert setup.geyser.total_unlocked() == 0
        assert setup.geyser.accounting().last_accounting_timestamp == START

    def test_update_accounting_commits_unlock(self, setup):
        snapshot = setup.geyser.update_accounting(ALICE)

        assert snapshot.timestamp == START + ONE_YEAR_SECONDS // 2
        assert snapshot.total_locked == 50 * ONE
        assert snapshot.total_staked == 50 * ONE
        assert snapshot.user_share_seconds == snapshot.total_share_seconds
        assert setup.geyser.total_unlocked() == 50 * ONE
        assert setup.geyser.total_locked() == 50 * ONE
        assert setup.geyser.events[-1].event_type == TOKENS_UNLOCKED

    def test_snapshot_for_non_staker_is_zero(self, setup):
        snapshot = setup.geyser.accounting_query(BOB)

        assert snapshot.user_share_seconds == 0
        assert snapshot.total_user_rewards == 0


class TestConservation:
    def test_pool_plus_paid_equals_vested(self, harness):
        harness.lock(1000 * ONE, 1000)
        harness.stake(ALICE, 10 * ONE)
        harness.clock.advance(300)
        harness.stake(BOB, 30 * ONE)
        harness.clock.advance(300)
        harness.geyser.unstake(ALICE, 7 * ONE)
        harness.clock.advance(700)
        harness.geyser.unstake(BOB, 30 * ONE)

        accounting = harness.geyser.accounting()
        assert accounting.total_vested_collected == 1000 * ONE
        assert (
            accounting.total_unlocked_reward_pool + accounting.total_rewards_paid
            == accounting.total_vested_collected
        )
        assert harness.geyser.total_unlocked() == accounting.total_unlocked_reward_pool


class TestSerialization:
    def test_round_trip_preserves_ledger(self, harness, clock):
        harness.lock(100 * ONE, ONE_YEAR_SECONDS)
        harness.stake(ALICE, 50 * ONE)
        clock.advance(1000)
        harness.geyser.update_accounting(ALICE)

        data = harness.geyser.to_dict()
        restored = TokenGeyser.from_dict(
            data, distribution_token=harness.token, staking_token=harness.token, time_provider=clock.now
        )

        assert restored.to_dict() == data
        assert restored.total_staked_for(ALICE) == 50 * ONE
        clock.advance(ONE_YEAR_SECONDS)
        assert restored.unstake(ALICE, 50 * ONE).total_reward == 100 * ONE

    def test_from_dict_rejects_wrong_token(self, harness):
        data = harness.geyser.to_dict()
        other = ElasticToken(owner=OWNER, symbol="OTHER")

        with pytest.raises(ConfigurationError, match="distribution token address mismatch"):
            TokenGeyser.from_dict(data, distribution_token=other, staking_token=harness.token)

    def test_round_trip_keeps_delegated_lockers(self, harness, clock):
        harness.geyser.access_control.grant_role(OWNER, Role.LOCKER.value, BOB)

        restored = TokenGeyser.from_dict(
            harness.geyser.to_dict(),
            distribution_token=harness.token,
            staking_token=harness.token,
            time_provider=clock.now,
        )
        harness.fund(BOB, 10 * ONE)

        assert restored.access_control.get_role_members(Role.LOCKER.value) == {BOB.lower()}
        assert restored.lock_tokens(BOB, 10 * ONE, 100) == 1

    def test_passed_access_control_wins_over_serialized_grants(self, harness):
        harness.geyser.access_control.grant_role(OWNER, Role.LOCKER.value, BOB)

        restored = TokenGeyser.from_dict(
            harness.geyser.to_dict(),
            distribution_token=harness.token,
            staking_token=harness.token,
            access_control=GeyserAccessControl(owner=OWNER),
        )

        assert not restored.access_control.has_role(Role.LOCKER.value, BOB)


class TestMetrics:
    def test_metrics_recorded_on_commit_only(self, clock):
        registry = CollectorRegistry()
        token = ElasticToken(owner=OWNER)
        geyser = TokenGeyser(
            owner=OWNER,
            distribution_token=token,
            staking_token=token,
            config=make_config(),
            founder=FOUNDER,
            time_provider=clock.now,
            metrics=GeyserMetrics(registry=registry),
        )
        harness = GeyserHarness(clock, token, geyser)

        harness.lock(100 * ONE, 100)
        harness.stake(ALICE, 10 * ONE)
        clock.advance(100)
        harness.geyser.unstake(ALICE, 10 * ONE)
        with pytest.raises(InputValidationError):
            harness.geyser.unstake(ALICE, 1)
        with pytest.raises(InputValidationError):
            harness.geyser.unstake_query(ALICE, 0)

        assert registry.get_sample_value("geyser_stakes_total") == 1
        assert registry.get_sample_value("geyser_unstakes_total") == 1
        assert registry.get_sample_value("geyser_tokens_locked_total") == 100 * ONE
        assert registry.get_sample_value("geyser_tokens_unlocked_total") == 100 * ONE
        assert registry.get_sample_value(
            "geyser_rewards_paid_total", {"recipient": "user"}
        ) == 90 * ONE
        assert registry.get_sample_value(
            "geyser_rewards_paid_total", {"recipient": "founder"}
        ) == 10 * ONE
        assert registry.get_sample_value(
            "geyser_rejected_operations_total",
            {"operation": "unstake", "error": "InputValidationError"},
        ) == 1
        assert registry.get_sample_value("geyser_total_staked") == 0
        assert registry.get_sample_value("geyser_active_unlock_schedules") == 0


def test_invalid_config_rejected_at_construction(ampl):
    with pytest.raises(ConfigurationError, match="start bonus too high"):
        TokenGeyser(owner=OWNER, distribution_token=ampl, config=make_config(start_bonus=101))


class _AllowListAccess:
    def __init__(self, owner, lockers):
        self.owner = owner
        self.lockers = set(lockers)

    def has_role(self, role, address):
        return address == self.owner or (role == Role.LOCKER.value and address in self.lockers)

    def require_role(self, role, caller):
        if not self.has_role(role, caller):
            raise AuthorizationError("not allowed")

    def require_owner(self, caller):
        self.require_role(Role.OWNER.value, caller)


class TestCustomAccessControl:
    def test_structural_access_controller_gates_lock(self, ampl, clock):
        geyser = TokenGeyser(
            owner=OWNER,
            distribution_token=ampl,
            staking_token=ampl,
            config=make_config(),
            access_control=_AllowListAccess(OWNER, [BOB]),
            time_provider=clock.now,
        )
        harness = GeyserHarness(clock, ampl, geyser)
        harness.fund(BOB, 10 * ONE)
        harness.fund(ALICE, 10 * ONE)

        assert geyser.lock_tokens(BOB, 10 * ONE, 100) == 1
        with pytest.raises(AuthorizationError, match="not allowed"):
            geyser.lock_tokens(ALICE, 10 * ONE, 100)
        assert geyser.to_dict()["access_control"] is None

    def test_non_conforming_access_control_rejected(self, ampl):
        with pytest.raises(ConfigurationError, match="does not implement AccessController"):
            TokenGeyser(owner=OWNER, distribution_token=ampl, config=make_config(), access_control=object())
