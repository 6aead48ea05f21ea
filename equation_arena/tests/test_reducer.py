"""
Tests for the reducer (state transitions).

Tests:
- Game start, mode and grade selection
- Answer entry and casting (solver and crafter)
- Enemy attacks, shields and freezes
- Feedback pauses and their idempotent expiry
- Level completion, progression and resets
"""

import pytest

from ..config_schema.loader import bind_predicates
from ..config_schema.models import BonusConfig, GameMode
from ..core.settings import EngineSettings, IceEffect
from ..engine_core.command import Command, CommandType
from ..engine_core.reducer import Reducer, apply_command
from ..engine_core.state import (
    CrafterSubMode,
    GameStatus,
    SpellType,
    TimerKey,
    DEFEAT_MESSAGE,
    DUPLICATE_EQUATION_MESSAGE,
    TIME_OUT_MESSAGE,
    VICTORY_MESSAGE,
)
from .conftest import ScriptedRandom, answer, apply_all, craft, crafter_state_at


class TestStartGame:
    """Starting a game from PRE_GAME."""

    def test_requires_mode(self, reducer):
        """Without a grade or mode the command is ignored."""
        result = reducer.apply(reducer.initial_state(), Command.start_game())
        assert not result.success
        assert result.error_code == "IGNORED"

    def test_solver_start(self, solver_state):
        """Solver start generates an equation and defaults the spell to FIRE."""
        assert solver_state.game_mode == GameMode.SOLVER
        assert solver_state.current_equation == "3 + 4 = ?"
        assert solver_state.expected_answer == 7
        assert solver_state.selected_spell == SpellType.FIRE
        assert solver_state.current_enemy_config.level == 1
        assert solver_state.enemy_health == solver_state.max_enemy_health

    def test_start_arms_attack_timer(self, reducer):
        """Starting cancels stale timers and schedules the attack ticker."""
        result = reducer.apply(reducer.initial_state(), Command.start_game(GameMode.SOLVER))
        assert [r.key for r in result.timer_requests] == [TimerKey.ATTACK]
        assert set(result.timer_cancellations) == set(TimerKey)

    def test_cannot_start_twice(self, reducer, solver_state):
        result = reducer.apply(solver_state, Command.start_game())
        assert not result.success

    def test_crafter_first_run_enters_tutorial(self, reducer):
        """Crafter mode starts with the tutorial until normal mode is completed."""
        result = reducer.apply(reducer.initial_state(), Command.start_game(GameMode.CRAFTER))
        state = result.new_state
        assert state.game_status == GameStatus.TUTORIAL
        assert state.tutorial_step == 1
        assert state.crafter_sub_mode == CrafterSubMode.NORMAL
        assert state.is_crafting_phase

    def test_challenge_locked_until_normal_completed(self, reducer):
        """Challenge mode stays in PRE_GAME with an explanation."""
        result = reducer.apply(
            reducer.initial_state(),
            Command.start_game(GameMode.CRAFTER, CrafterSubMode.CHALLENGE),
        )
        assert result.new_state.game_status == GameStatus.PRE_GAME
        assert "unlock" in result.new_state.result_message

    def test_missing_level_one_enemy(self, arena_config, settings):
        """Missing enemy config falls back to PRE_GAME with a message."""
        config = arena_config.model_copy(
            update={"enemies": tuple(e for e in arena_config.enemies if e.mode == GameMode.CRAFTER)}
        )
        reducer = Reducer(config=config, settings=settings)
        result = reducer.apply(reducer.initial_state(), Command.start_game(GameMode.SOLVER))
        assert result.success
        assert result.new_state.game_status == GameStatus.PRE_GAME
        assert result.new_state.result_message

    def test_unknown_grade_ignored(self, reducer):
        result = reducer.apply(reducer.initial_state(), Command.set_grade(42))
        assert not result.success

    def test_grade_sets_mode(self, reducer):
        state = apply_all(reducer, reducer.initial_state(), Command.set_grade(5))
        assert state.selected_grade == 5
        assert state.game_mode == GameMode.CRAFTER


class TestTutorial:
    def test_three_steps_then_solving(self, reducer):
        """Advancing past step 3 starts play and clears the tutorial flag."""
        state = apply_all(reducer, reducer.initial_state(), Command.start_game(GameMode.CRAFTER))
        state = apply_all(reducer, state, Command.advance_tutorial(), Command.advance_tutorial())
        assert state.tutorial_step == 3
        state = apply_all(reducer, state, Command.advance_tutorial())
        assert state.game_status == GameStatus.SOLVING
        assert state.tutorial_step == 0
        assert not state.needs_crafter_tutorial

    def test_skip(self, reducer):
        state = apply_all(reducer, reducer.initial_state(), Command.start_game(GameMode.CRAFTER))
        state = apply_all(reducer, state, Command.skip_tutorial_and_start())
        assert state.game_status == GameStatus.SOLVING
        assert not state.needs_crafter_tutorial

    def test_tutorial_blocks_input(self, reducer):
        """Crafting is not possible during the tutorial."""
        state = apply_all(reducer, reducer.initial_state(), Command.start_game(GameMode.CRAFTER))
        result = reducer.apply(state, Command.append_to_crafted_equation("1"))
        assert not result.success


class TestAnswerInput:
    """Answer entry guards."""

    def test_digits_append(self, reducer, solver_state):
        state = answer(reducer, solver_state, "12")
        assert state.player_input == "12"

    def test_guards(self, reducer, solver_state):
        """One decimal point, minus only first, no fraction bar in solver mode."""
        state = answer(reducer, solver_state, "-1.5")
        assert not reducer.apply(state, Command.handle_input(".")).success
        assert not reducer.apply(state, Command.handle_input("-")).success
        assert not reducer.apply(state, Command.handle_input("/")).success
        assert not reducer.apply(state, Command.handle_input("x")).success

    def test_max_length(self, reducer, solver_state):
        state = answer(reducer, solver_state, "12345")
        assert not reducer.apply(state, Command.handle_input("6")).success

    def test_backspace_and_clear(self, reducer, solver_state):
        state = answer(reducer, solver_state, "12")
        state = apply_all(reducer, state, Command.handle_backspace())
        assert state.player_input == "1"
        state = apply_all(reducer, state, Command.clear_input())
        assert state.player_input == ""

    def test_no_input_outside_solving(self, reducer):
        assert not reducer.apply(reducer.initial_state(), Command.handle_input("1")).success

    def test_crafter_answer_waits_for_finalize(self, reducer):
        """In crafter mode answers are only typed after finalizing."""
        state = crafter_state_at(reducer, 1)
        assert not reducer.apply(state, Command.handle_input("1")).success


class TestSolverCast:
    """Casting spells in solver mode."""

    def test_end_to_end_correct_fire(self, reducer, solver_state):
        """3 + 4 = 7 with FIRE deals base damage."""
        state = answer(reducer, solver_state, "7")
        result = reducer.apply(state, Command.cast_spell())
        new = result.new_state
        assert new.last_answer_correct is True
        assert new.enemy_health == state.enemy_health - 25
        assert new.equations_solved_correctly == 1
        assert new.game_status == GameStatus.RESULT
        assert new.last_full_equation == "3 + 4 = 7"
        assert new.current_level_score == 10
        assert new.player_input == ""

    def test_result_schedules_next_round(self, reducer, solver_state):
        state = answer(reducer, solver_state, "7")
        result = reducer.apply(state, Command.cast_spell())
        timers = {r.key: r for r in result.timer_requests}
        assert timers[TimerKey.RESULT].command.command_type == CommandType.PREPARE_NEXT_ROUND
        assert timers[TimerKey.RESULT].delay_ms == 1500

    def test_cast_overrides(self, reducer, solver_state):
        """castSpell parameters override engine settings."""
        state = answer(reducer, solver_state, "7")
        result = reducer.apply(state, Command.cast_spell(fire_damage=40))
        assert result.new_state.last_damage_dealt == 40

    def test_cast_requires_answer(self, reducer, solver_state):
        assert not reducer.apply(solver_state, Command.cast_spell()).success

    def test_wrong_answer_counts(self, reducer, solver_state):
        """Wrong answers within tolerance cost no health."""
        state = answer(reducer, solver_state, "8")
        new = reducer.apply(state, Command.cast_spell()).new_state
        assert new.last_answer_correct is False
        assert new.consecutive_wrong_answers == 1
        assert new.player_health == state.player_health
        assert new.game_status == GameStatus.RESULT

    def test_penalty_after_tolerance(self, reducer, solver_state):
        """Exceeding the tolerance costs the penalty and resets the counter."""
        state = answer(reducer, solver_state._copy_with(consecutive_wrong_answers=2), "8")
        new = reducer.apply(state, Command.cast_spell(tolerance=2, penalty=10)).new_state
        assert new.player_health == state.player_health - 10
        assert new.consecutive_wrong_answers == 0

    def test_penalty_can_defeat(self, reducer, solver_state):
        state = answer(
            reducer,
            solver_state._copy_with(consecutive_wrong_answers=2, player_health=5),
            "8",
        )
        result = reducer.apply(state, Command.cast_spell())
        assert result.new_state.game_status == GameStatus.GAME_OVER
        assert result.new_state.result_message == DEFEAT_MESSAGE
        assert result.new_state.player_health == 0
        assert set(result.timer_cancellations) == set(TimerKey)

    def test_defeating_enemy(self, reducer, solver_state):
        """Reducing enemy health to 0 flags the defeat and schedules finalizeVictory."""
        state = answer(reducer, solver_state._copy_with(enemy_health=20), "7")
        result = reducer.apply(state, Command.cast_spell())
        assert result.new_state.enemy_health == 0
        assert result.new_state.enemy_just_defeated
        result_timer = [r for r in result.timer_requests if r.key == TimerKey.RESULT][0]
        assert result_timer.command.command_type == CommandType.FINALIZE_VICTORY

    def test_ice_freezes(self, reducer, solver_state):
        """ICE arms a timed freeze and its ticker."""
        state = apply_all(reducer, answer(reducer, solver_state, "7"), Command.select_spell(SpellType.ICE))
        result = reducer.apply(state, Command.cast_spell())
        assert result.new_state.is_timer_frozen
        assert result.new_state.timer_freeze_duration_remaining_ms == 5000
        assert result.new_state.enemy_health == state.enemy_health
        assert TimerKey.FREEZE in [r.key for r in result.timer_requests]

    def test_ice_shield_setting(self, arena_config, solver_state):
        """With the shield effect ICE raises a shield instead."""
        reducer = Reducer(
            config=arena_config,
            settings=EngineSettings(ice_effect=IceEffect.SHIELD),
            rng=ScriptedRandom(),
        )
        state = answer(reducer, solver_state._copy_with(selected_spell=SpellType.ICE), "7")
        new = reducer.apply(state, Command.cast_spell()).new_state
        assert new.is_shield_active
        assert not new.is_timer_frozen


class TestPlayerDamage:
    """receivePlayerDamage."""

    def test_damage_reduces_health(self, reducer, solver_state):
        new = reducer.apply(solver_state, Command.receive_player_damage(15)).new_state
        assert new.player_health == 85

    def test_shield_absorbs(self, reducer, solver_state):
        """A shield leaves health unchanged and is consumed."""
        state = solver_state._copy_with(is_shield_active=True)
        new = reducer.apply(state, Command.receive_player_damage(15)).new_state
        assert new.player_health == state.player_health
        assert not new.is_shield_active

    def test_freeze_absorbs_and_cancels_timer(self, reducer, solver_state):
        state = solver_state._copy_with(is_timer_frozen=True, timer_freeze_duration_remaining_ms=3000)
        result = reducer.apply(state, Command.receive_player_damage(15))
        assert result.new_state.player_health == state.player_health
        assert not result.new_state.is_timer_frozen
        assert result.new_state.timer_freeze_duration_remaining_ms is None
        assert TimerKey.FREEZE in result.timer_cancellations

    def test_health_floors_at_zero(self, reducer, solver_state):
        state = solver_state._copy_with(player_health=10)
        new = reducer.apply(state, Command.receive_player_damage(15)).new_state
        assert new.player_health == 0
        assert new.game_status == GameStatus.GAME_OVER
        assert new.result_message == DEFEAT_MESSAGE


class TestTicks:
    """Attack timer and freeze ticks."""

    def test_tick_decrements(self, reducer, solver_state):
        result = reducer.apply(solver_state, Command.tick_attack_timer())
        new = result.new_state
        assert new.attack_time_remaining_ms == solver_state.attack_time_remaining_ms - 100
        assert new.level_time_remaining_ms == solver_state.level_time_remaining_ms - 100
        assert [r.key for r in result.timer_requests] == [TimerKey.ATTACK]

    def test_tick_paused_while_frozen(self, reducer, solver_state):
        """Frozen timers do not count down but keep ticking."""
        state = solver_state._copy_with(is_timer_frozen=True, timer_freeze_duration_remaining_ms=5000)
        result = reducer.apply(state, Command.tick_attack_timer())
        assert result.new_state.attack_time_remaining_ms == state.attack_time_remaining_ms
        assert result.timer_requests

    def test_tick_paused_during_feedback(self, reducer, solver_state):
        state = solver_state._copy_with(is_feedback_active=True)
        result = reducer.apply(state, Command.tick_attack_timer())
        assert result.new_state.attack_time_remaining_ms == state.attack_time_remaining_ms

    def test_attack_at_zero(self, reducer, solver_state):
        """Reaching zero attacks the player and restarts the countdown."""
        state = solver_state._copy_with(attack_time_remaining_ms=100)
        new = reducer.apply(state, Command.tick_attack_timer()).new_state
        damage = solver_state.current_enemy_config.damage
        assert new.player_health == state.player_health - damage
        assert new.attack_time_remaining_ms == state.max_attack_time_ms

    def test_attack_consumes_shield(self, reducer, solver_state):
        state = solver_state._copy_with(attack_time_remaining_ms=100, is_shield_active=True)
        new = reducer.apply(state, Command.tick_attack_timer()).new_state
        assert new.player_health == state.player_health
        assert not new.is_shield_active

    def test_time_out(self, reducer, solver_state):
        state = solver_state._copy_with(level_time_remaining_ms=100)
        result = reducer.apply(state, Command.tick_attack_timer())
        assert result.new_state.game_status == GameStatus.GAME_OVER
        assert result.new_state.result_message == TIME_OUT_MESSAGE
        assert not result.timer_requests

    def test_ticker_stops_after_game_over(self, reducer, solver_state):
        state = solver_state._copy_with(game_status=GameStatus.GAME_OVER)
        assert not reducer.apply(state, Command.tick_attack_timer()).success

    def test_freeze_expires(self, reducer, solver_state):
        state = solver_state._copy_with(is_timer_frozen=True, timer_freeze_duration_remaining_ms=150)
        ticking = reducer.apply(state, Command.tick_timer_freeze(100))
        assert ticking.new_state.timer_freeze_duration_remaining_ms == 50
        assert ticking.timer_requests[0].key == TimerKey.FREEZE
        expired = reducer.apply(ticking.new_state, Command.tick_timer_freeze(100)).new_state
        assert not expired.is_timer_frozen
        assert expired.timer_freeze_duration_remaining_ms is None

    def test_freeze_tick_without_freeze_ignored(self, reducer, solver_state):
        assert not reducer.apply(solver_state, Command.tick_timer_freeze(100)).success


class TestCrafting:
    """Crafting and finalizing equations."""

    def test_append_tracks_validity(self, reducer):
        state = crafter_state_at(reducer, 1)
        state = craft(reducer, state, "(2+3")
        assert not state.is_crafted_equation_valid_for_level
        state = craft(reducer, state, ")×4")
        assert state.crafted_equation_string == "(2+3)×4"
        assert state.is_crafted_equation_valid_for_level

    def test_disallowed_character(self, reducer):
        state = crafter_state_at(reducer, 1)
        assert not reducer.apply(state, Command.append_to_crafted_equation("/")).success

    def test_backspace_and_clear(self, reducer):
        state = craft(reducer, crafter_state_at(reducer, 1), "(2+3")
        state = apply_all(reducer, state, Command.backspace_crafted_equation())
        assert state.crafted_equation_string == "(2+"
        state = apply_all(reducer, state, Command.clear_crafted_equation())
        assert state.crafted_equation_string == ""

    def test_finalize_rejection_sets_error(self, reducer):
        state = craft(reducer, crafter_state_at(reducer, 1), "2+3")
        new = reducer.apply(state, Command.finalize_crafting()).new_state
        assert new.is_crafting_phase
        assert new.evaluation_error.startswith("Equation does not meet level requirement")

    def test_finalize_accepts(self, reducer):
        state = craft(reducer, crafter_state_at(reducer, 1), "(2+3)×4")
        new = reducer.apply(state, Command.finalize_crafting()).new_state
        assert not new.is_crafting_phase
        assert "(2+3)×4" in new.used_crafted_equations

    def test_duplicate_enters_feedback(self, reducer):
        """A reused equation shows a timed message and expires back to crafting."""
        state = craft(reducer, crafter_state_at(reducer, 1), "(2+3)×4")
        state = state._copy_with(used_crafted_equations=frozenset({"(2+3)×4"}))
        result = reducer.apply(state, Command.finalize_crafting())
        new = result.new_state
        assert new.evaluation_error == DUPLICATE_EQUATION_MESSAGE
        assert new.is_feedback_active
        request = result.timer_requests[0]
        assert request.key == TimerKey.FEEDBACK
        assert request.delay_ms == 1500

        expired = reducer.apply(new, request.command).new_state
        assert not expired.is_feedback_active
        assert expired.evaluation_error is None
        assert expired.crafted_equation_string == ""
        assert expired.is_crafting_phase

    def test_reused_equation_rejected_every_time(self, reducer):
        """Resubmitting an equation from an earlier round is rejected identically each time."""
        state = craft(reducer, crafter_state_at(reducer, 1), "(2+3)×4")
        state = apply_all(reducer, state, Command.finalize_crafting())
        state = answer(reducer, state, "20")
        state = apply_all(reducer, state, Command.cast_spell(), Command.prepare_next_round())
        assert state.game_status == GameStatus.SOLVING
        assert state.is_crafting_phase

        rejections = []
        for _ in range(2):
            state = craft(reducer, state, "(2+3)×4")
            result = reducer.apply(state, Command.finalize_crafting())
            state = result.new_state
            rejections.append(
                (state.evaluation_error, state.is_crafting_phase, state.is_feedback_active)
            )
            state = apply_all(reducer, state, result.timer_requests[0].command)
            assert state.crafted_equation_string == ""
            assert not state.is_feedback_active

        assert rejections == [(DUPLICATE_EQUATION_MESSAGE, True, True)] * 2
        assert state.used_crafted_equations == frozenset({"(2+3)×4"})

    def test_reset_crafter_state(self, reducer):
        state = craft(reducer, crafter_state_at(reducer, 1), "(2+3)×4")
        state = apply_all(reducer, state, Command.finalize_crafting(), Command.handle_input("2"))
        result = reducer.apply(state, Command.reset_crafter_state())
        assert result.new_state.crafted_equation_string == ""
        assert result.new_state.is_crafting_phase
        assert result.new_state.player_input == ""
        assert TimerKey.FEEDBACK in result.timer_cancellations


class TestCrafterCast:
    """Casting against a crafted equation."""

    def test_level_2_fraction_without_benchmark(self, reducer):
        """1/2+1/3 answered 5/6 is correct and scores base points only."""
        state = craft(reducer, crafter_state_at(reducer, 2), "1/2+1/3")
        state = apply_all(reducer, state, Command.finalize_crafting())
        state = answer(reducer, state, "5/6")
        new = reducer.apply(state, Command.cast_spell()).new_state
        assert new.last_answer_correct is True
        assert new.active_bonuses == ()
        assert new.current_level_score == 10
        assert new.last_damage_dealt == 25
        assert new.last_full_equation == "1/2+1/3 = 5/6"

    def test_distributive_bonus_doubles_damage(self, reducer):
        """A distributive equation at level 1 doubles FIRE and scores the first-use bonus."""
        state = craft(reducer, crafter_state_at(reducer, 1), "3×(2+4)")
        state = apply_all(reducer, state, Command.finalize_crafting())
        state = answer(reducer, state, "18")
        new = reducer.apply(state, Command.cast_spell()).new_state
        assert [b.id for b in new.active_bonuses] == ["distributive"]
        assert new.last_damage_dealt == 50
        assert new.current_level_score == 35
        assert new.level_bonuses_used_this_level == frozenset({"distributive"})

    def test_two_bonuses_compound_fire_damage(self, arena_config, settings):
        """Bonuses of x2 and x1.5 on one cast turn 25 base damage into 75."""
        bonuses = (
            BonusConfig(id="distributive", description="Distributive", power_multiplier=2.0, level=1),
            BonusConfig(
                id="any_group",
                description="Any grouped equation",
                power_multiplier=1.5,
                level=1,
                check=lambda equation, answer, result: "(" in equation,
            ),
        )
        reducer = Reducer(
            config=bind_predicates(arena_config.model_copy(update={"bonuses": bonuses})),
            settings=settings,
            rng=ScriptedRandom(),
        )
        state = craft(reducer, crafter_state_at(reducer, 1), "3×(2+4)")
        state = apply_all(reducer, state, Command.finalize_crafting())
        state = answer(reducer, state, "18")
        new = reducer.apply(state, Command.cast_spell(fire_damage=25)).new_state
        assert [b.id for b in new.active_bonuses] == ["distributive", "any_group"]
        assert new.last_damage_dealt == 75
        assert new.enemy_health == state.enemy_health - 75
        assert new.current_level_score == 60

    def test_wrong_answer_enters_feedback(self, reducer):
        """A valid but wrongly answered equation pauses with the correct value."""
        state = craft(reducer, crafter_state_at(reducer, 1), "(2+3)×4")
        state = apply_all(reducer, state, Command.finalize_crafting())
        state = answer(reducer, state, "21")
        result = reducer.apply(state, Command.cast_spell(feedback_duration_ms=2000))
        new = result.new_state
        assert new.game_status == GameStatus.SOLVING
        assert new.is_feedback_active
        assert new.consecutive_wrong_answers == 1
        assert new.player_health == state.player_health
        assert new.crafter_feedback.correct_value == 20
        assert new.crafter_feedback.steps == ("(2+3)×4", "5×4", "20")
        assert result.timer_requests[0].delay_ms == 2000

    def test_repeated_wrong_crafted_answers_cost_penalty(self, reducer):
        """The third wrong crafted answer in a row costs the penalty and still shows feedback."""
        state = crafter_state_at(reducer, 1)
        for equation in ("(2+3)×4", "(1+2)×3", "(4+1)×2"):
            state = craft(reducer, state, equation)
            state = apply_all(reducer, state, Command.finalize_crafting())
            state = answer(reducer, state, "99")
            result = reducer.apply(state, Command.cast_spell(tolerance=2, penalty=10))
            state = result.new_state
            assert state.is_feedback_active
            state = apply_all(reducer, state, result.timer_requests[0].command)
            assert state.is_crafting_phase

        assert state.player_health == 90
        assert state.consecutive_wrong_answers == 0

    def test_wrong_crafted_answer_penalty_can_defeat(self, reducer):
        state = craft(reducer, crafter_state_at(reducer, 1), "(2+3)×4")
        state = apply_all(reducer, state, Command.finalize_crafting())
        state = answer(
            reducer, state._copy_with(consecutive_wrong_answers=2, player_health=10), "21"
        )
        result = reducer.apply(state, Command.cast_spell(tolerance=2, penalty=10))
        assert result.new_state.game_status == GameStatus.GAME_OVER
        assert result.new_state.result_message == DEFEAT_MESSAGE
        assert not result.new_state.is_feedback_active
        assert result.timer_requests == []
        assert set(result.timer_cancellations) == set(TimerKey)

    def test_feedback_blocks_input_and_cast(self, reducer):
        state = crafter_state_at(reducer, 1)._copy_with(is_feedback_active=True, player_input="1")
        assert not reducer.apply(state, Command.cast_spell()).success
        assert not reducer.apply(state, Command.append_to_crafted_equation("1")).success

    def test_stale_feedback_expiry_is_noop(self, reducer):
        """An expiry for an older feedback window does nothing."""
        state = crafter_state_at(reducer, 1)._copy_with(is_feedback_active=True, feedback_id=3)
        assert not reducer.apply(state, Command.expire_feedback(2)).success
        assert reducer.apply(state, Command.expire_feedback(3)).success


class TestRoundsAndLevels:
    """Next round, victory and level advancement."""

    def test_prepare_next_round_solver(self, reducer, solver_state):
        reducer.rng.ints = [5, 6]
        state = answer(reducer, solver_state, "8")
        state = apply_all(reducer, state, Command.cast_spell(), Command.prepare_next_round())
        assert state.game_status == GameStatus.SOLVING
        assert state.current_equation == "5 + 6 = ?"
        assert state.last_answer_correct is None
        assert state.player_input == ""

    def test_prepare_next_round_refused_after_defeat(self, reducer, solver_state):
        state = solver_state._copy_with(game_status=GameStatus.RESULT, enemy_just_defeated=True)
        assert not reducer.apply(state, Command.prepare_next_round()).success

    def test_finalize_victory(self, reducer, solver_state):
        """Victory adds the completion bonus and records the level."""
        state = solver_state._copy_with(
            game_status=GameStatus.RESULT,
            enemy_health=0,
            enemy_just_defeated=True,
            current_level_score=40,
        )
        result = reducer.apply(state, Command.finalize_victory())
        new = result.new_state
        assert new.game_status == GameStatus.GAME_OVER
        assert new.result_message == VICTORY_MESSAGE
        assert new.total_game_score == 90
        assert new.completed_levels_data[-1].score == 90
        assert new.is_victory

    def test_advance_level(self, reducer, solver_state):
        state = solver_state._copy_with(
            game_status=GameStatus.GAME_OVER,
            result_message=VICTORY_MESSAGE,
            total_game_score=90,
            used_crafted_equations=frozenset({"x"}),
        )
        reducer.rng.ints = [9, 4]
        result = reducer.apply(state, Command.advance_level_and_start())
        new = result.new_state
        assert new.current_level_number == 2
        assert new.current_equation == "9 - 4 = ?"
        assert new.total_game_score == 90
        assert new.used_crafted_equations == frozenset()
        assert new.game_status == GameStatus.SOLVING

    def test_advance_requires_victory(self, reducer, solver_state):
        state = solver_state._copy_with(game_status=GameStatus.GAME_OVER, result_message=DEFEAT_MESSAGE)
        assert not reducer.apply(state, Command.advance_level_and_start()).success

    def test_last_level_goes_to_final_summary(self, reducer, solver_state, arena_config):
        """Winning the last solver level ends in FINAL_SUMMARY with a message."""
        last = arena_config.max_level(GameMode.SOLVER)
        state = solver_state._copy_with(
            current_level_number=last,
            game_status=GameStatus.RESULT,
            enemy_health=0,
            enemy_just_defeated=True,
        )
        new = reducer.apply(state, Command.finalize_victory()).new_state
        assert new.game_status == GameStatus.FINAL_SUMMARY
        assert new.result_message == "All levels completed for solver!"

    def test_crafter_completion_unlocks_challenge(self, reducer, arena_config):
        state = crafter_state_at(reducer, 1, completed=False)
        state = state._copy_with(
            current_level_number=arena_config.max_level(GameMode.CRAFTER),
            game_status=GameStatus.RESULT,
            enemy_health=0,
            enemy_just_defeated=True,
        )
        new = reducer.apply(state, Command.finalize_victory()).new_state
        assert new.game_status == GameStatus.FINAL_SUMMARY
        assert new.crafter_normal_completed

    def test_challenge_encounters(self, arena_config, settings):
        """Challenge mode picks a different enemy each time and scales it."""
        reducer = Reducer(config=arena_config, settings=settings, rng=ScriptedRandom(choices=[0, 0]))
        state = apply_all(
            reducer,
            reducer.initial_state(crafter_normal_completed=True),
            Command.start_game(GameMode.CRAFTER, CrafterSubMode.CHALLENGE),
        )
        first = state.current_enemy_id
        assert state.challenge_encounters == 1
        assert state.current_level_number == state.current_enemy_config.level
        state = state._copy_with(game_status=GameStatus.GAME_OVER, result_message=VICTORY_MESSAGE)
        state = apply_all(reducer, state, Command.advance_level_and_start())
        assert state.current_enemy_id != first
        assert state.challenge_encounters == 2
        assert first in state.challenge_enemy_scaling

    def test_challenge_victory_never_final(self, arena_config, settings):
        reducer = Reducer(config=arena_config, settings=settings, rng=ScriptedRandom())
        state = apply_all(
            reducer,
            reducer.initial_state(crafter_normal_completed=True),
            Command.start_game(GameMode.CRAFTER, CrafterSubMode.CHALLENGE),
        )
        state = state._copy_with(
            game_status=GameStatus.RESULT, enemy_health=0, enemy_just_defeated=True
        )
        new = reducer.apply(state, Command.finalize_victory()).new_state
        assert new.game_status == GameStatus.GAME_OVER
        assert new.result_message == VICTORY_MESSAGE


class TestReset:
    def test_reset_preserves_selection(self, reducer, solver_state):
        result = reducer.apply(solver_state, Command.reset())
        new = result.new_state
        assert new.game_status == GameStatus.PRE_GAME
        assert new.selected_grade == 1
        assert new.game_mode == GameMode.SOLVER
        assert set(result.timer_cancellations) == set(TimerKey)

    def test_full_reset_keeps_only_progress(self, reducer, solver_state):
        state = solver_state._copy_with(crafter_normal_completed=True)
        new = reducer.apply(state, Command.full_reset()).new_state
        assert new.selected_grade is None
        assert new.game_mode is None
        assert new.crafter_normal_completed
        assert not new.needs_crafter_tutorial


class TestApplyCommand:
    def test_convenience_function(self, arena_config):
        """apply_command builds a throwaway reducer."""
        reducer = Reducer(config=arena_config)
        result = apply_command(arena_config, reducer.initial_state(), Command.set_grade(2))
        assert result.success
        assert result.new_state.selected_grade == 2

    def test_handler_error_is_contained(self, reducer, solver_state, monkeypatch):
        """Unexpected handler exceptions become HANDLER_ERROR results."""
        def boom(state, command):
            raise RuntimeError("boom")

        monkeypatch.setattr(reducer, "_handle_select_spell", boom)
        result = reducer.apply(solver_state, Command.select_spell(SpellType.ICE))
        assert not result.success
        assert result.error_code == "HANDLER_ERROR"
