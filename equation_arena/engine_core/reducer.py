"""
Reducer - Applies commands to arena state.

The reducer is the single point of state transition.
All state changes go through Reducer.apply().

Design principles:
- (state, command) -> CommandResult with a new immutable snapshot
- Preconditions are checked first; unmet ones leave state untouched
- Every derived value (damage, score, bonuses, next equation) is computed
  from the incoming snapshot and applied in one step
- Delayed effects are requested as TimerRequests; any transition that ends
  a timed window also cancels its timer key
"""

from __future__ import annotations
from dataclasses import dataclass, field
import math
import random

from .state import (
    ArenaState,
    CompletedLevel,
    CrafterFeedback,
    CrafterSubMode,
    GameStatus,
    SpellType,
    TimerKey,
    DEFEAT_MESSAGE,
    DUPLICATE_EQUATION_MESSAGE,
    TIME_OUT_MESSAGE,
    VICTORY_MESSAGE,
)
from .command import Command, CommandType, CommandResult, TimerRequest
from .crafting import can_append, check_submission, is_valid_for_level
from .expression import evaluate_equation, try_evaluate
from .generator import generate_solver_equation
from .bonus import damage_multiplier, get_active_bonuses
from .progression import (
    LEVEL_COMPLETION_POINTS,
    EncounterStats,
    base_stats,
    plan_challenge_encounter,
    score_correct_answer,
)
from ..config_schema.models import ArenaConfig, CrafterLevelConfig, EnemyConfig, GameMode
from ..core.settings import EngineSettings, IceEffect
from ..core.logging import get_logger

logger = get_logger(__name__)


ACTIVE_STATUSES = {GameStatus.TUTORIAL, GameStatus.SOLVING, GameStatus.RESULT}
ALL_TIMERS = list(TimerKey)
TUTORIAL_STEPS = 3
ANSWER_SYMBOLS = {".", "-", "/"}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class Reducer:
    """
    Reducer applies commands to arena state.

    Stateless apart from the random generator - all game state is in
    ArenaState. Config provides enemies, bonuses and crafter levels.
    """
    config: ArenaConfig
    settings: EngineSettings = field(default_factory=EngineSettings)
    rng: random.Random | None = None

    def __post_init__(self):
        if self.rng is None:
            self.rng = random.Random(self.settings.seed)

    def initial_state(self, crafter_normal_completed: bool = False) -> ArenaState:
        """The PRE_GAME snapshot an engine starts from."""
        return ArenaState(
            player_health=self.settings.player_max_health,
            max_player_health=self.settings.player_max_health,
            crafter_normal_completed=crafter_normal_completed,
            needs_crafter_tutorial=not crafter_normal_completed,
        )

    def apply(self, state: ArenaState, command: Command) -> CommandResult:
        """
        Apply a command to the arena state.

        Returns CommandResult with the new state, or the reason it was ignored.
        """
        handler = self._get_handler(command.command_type)
        if not handler:
            return CommandResult.failure(
                f"No handler for command type: {command.command_type}",
                error_code="NO_HANDLER",
            )

        try:
            result = handler(state, command)
        except Exception as e:
            logger.exception("command_handler_failed", command=command.command_type.value)
            return CommandResult.failure(str(e), error_code="HANDLER_ERROR")

        if not result.success:
            logger.debug(
                "command_ignored",
                command=command.command_type.value,
                status=state.game_status.value,
                reason=result.error,
            )
        return result

    def _get_handler(self, command_type: CommandType):
        handlers = {
            CommandType.SET_GRADE: self._handle_set_grade,
            CommandType.SET_GAME_MODE: self._handle_set_game_mode,
            CommandType.SET_PROGRESS: self._handle_set_progress,
            CommandType.START_GAME: self._handle_start_game,
            CommandType.HANDLE_INPUT: self._handle_input,
            CommandType.CLEAR_INPUT: self._handle_clear_input,
            CommandType.HANDLE_BACKSPACE: self._handle_backspace,
            CommandType.APPEND_TO_CRAFTED_EQUATION: self._handle_append_crafted,
            CommandType.BACKSPACE_CRAFTED_EQUATION: self._handle_backspace_crafted,
            CommandType.CLEAR_CRAFTED_EQUATION: self._handle_clear_crafted,
            CommandType.FINALIZE_CRAFTING: self._handle_finalize_crafting,
            CommandType.RESET_CRAFTER_STATE: self._handle_reset_crafter_state,
            CommandType.SELECT_SPELL: self._handle_select_spell,
            CommandType.CAST_SPELL: self._handle_cast_spell,
            CommandType.RECEIVE_PLAYER_DAMAGE: self._handle_receive_player_damage,
            CommandType.TICK_ATTACK_TIMER: self._handle_tick_attack_timer,
            CommandType.TICK_TIMER_FREEZE: self._handle_tick_timer_freeze,
            CommandType.EXPIRE_FEEDBACK: self._handle_expire_feedback,
            CommandType.ADVANCE_TUTORIAL: self._handle_advance_tutorial,
            CommandType.SKIP_TUTORIAL_AND_START: self._handle_skip_tutorial,
            CommandType.PREPARE_NEXT_ROUND: self._handle_prepare_next_round,
            CommandType.FINALIZE_VICTORY: self._handle_finalize_victory,
            CommandType.ADVANCE_LEVEL_AND_START: self._handle_advance_level,
            CommandType.RESET: self._handle_reset,
            CommandType.FULL_RESET: self._handle_full_reset,
        }
        return handlers.get(command_type)

    # =========================================================================
    # Shared helpers
    # =========================================================================

    def _crafter_level_config(self, state: ArenaState) -> CrafterLevelConfig | None:
        level_config = self.config.get_crafter_level(state.current_level_number)
        if level_config is None:
            logger.warning("crafter_level_config_missing", level=state.current_level_number)
        return level_config

    def _attack_tick(self) -> TimerRequest:
        return TimerRequest(
            TimerKey.ATTACK, self.settings.tick_interval_ms, Command.tick_attack_timer()
        )

    def _freeze_tick(self) -> TimerRequest:
        tick = self.settings.tick_interval_ms
        return TimerRequest(TimerKey.FREEZE, tick, Command.tick_timer_freeze(tick))

    def _game_over(self, state: ArenaState, message: str) -> ArenaState:
        logger.info(
            "game_over",
            message=message,
            mode=state.game_mode.value if state.game_mode else None,
            level=state.current_level_number,
        )
        return state._copy_with(
            game_status=GameStatus.GAME_OVER,
            result_message=message,
            active_bonuses=(),
            is_shield_active=False,
            is_timer_frozen=False,
            timer_freeze_duration_remaining_ms=None,
            is_feedback_active=False,
        )

    def _fresh_state(self, state: ArenaState, keep_playthrough: bool = False) -> ArenaState:
        """
        Initial values, preserving grade, mode and tutorial progress.

        keep_playthrough also carries scores, level history and challenge
        scaling (used between levels of one playthrough).
        """
        fresh = self.initial_state(state.crafter_normal_completed)._copy_with(
            selected_grade=state.selected_grade,
            game_mode=state.game_mode,
            crafter_sub_mode=state.crafter_sub_mode,
            needs_crafter_tutorial=state.needs_crafter_tutorial,
            selected_spell=state.selected_spell,
        )
        if keep_playthrough:
            fresh = fresh._copy_with(
                total_game_score=state.total_game_score,
                completed_levels_data=state.completed_levels_data,
                challenge_enemy_scaling=state.challenge_enemy_scaling,
                challenge_encounters=state.challenge_encounters,
                previous_enemy_id=state.current_enemy_id,
            )
        return fresh

    def _enter_level(
        self,
        state: ArenaState,
        enemy: EnemyConfig,
        stats: EncounterStats,
        level_number: int,
        allow_tutorial: bool,
    ) -> CommandResult:
        """Set up an encounter on a fresh state and arm the attack timer."""
        base = state._copy_with(
            current_level_number=level_number,
            current_enemy_id=enemy.id,
            current_enemy_config=enemy,
            enemy_health=stats.health,
            max_enemy_health=stats.health,
            attack_time_remaining_ms=stats.attack_interval_ms,
            max_attack_time_ms=stats.attack_interval_ms,
            level_time_remaining_ms=stats.solve_time_ms,
            max_level_time_ms=stats.solve_time_ms,
            player_health=state.max_player_health,
            selected_spell=state.selected_spell or SpellType.FIRE,
            tutorial_step=0,
            enemy_just_defeated=False,
        )
        timers = [self._attack_tick()]

        if base.game_mode == GameMode.SOLVER:
            problem = generate_solver_equation(level_number, self.rng)
            new_state = base._copy_with(
                game_status=GameStatus.SOLVING,
                current_equation=problem.equation,
                expected_answer=problem.expected_answer,
                current_operation_type=problem.operation_type,
            )
            logger.info("level_started", mode="solver", level=level_number, enemy=enemy.id)
            return CommandResult.success_with_state(
                new_state,
                changes=[f"Level {level_number} started against {enemy.name}"],
                timers=timers,
                cancel=ALL_TIMERS,
            )

        level_config = self.config.get_crafter_level(level_number)
        if level_config is None:
            logger.error("crafter_level_config_missing", level=level_number)
            new_state = state._copy_with(
                game_status=GameStatus.PRE_GAME,
                result_message=f"Error: Level {level_number} config missing.",
            )
            return CommandResult.success_with_state(new_state, cancel=ALL_TIMERS)

        start_tutorial = allow_tutorial and base.needs_crafter_tutorial
        new_state = base._copy_with(
            game_status=GameStatus.TUTORIAL if start_tutorial else GameStatus.SOLVING,
            tutorial_step=1 if start_tutorial else 0,
            is_crafting_phase=True,
            crafted_equation_string="",
            allowed_crafter_chars=level_config.allowed_chars,
            is_crafted_equation_valid_for_level=False,
        )
        logger.info(
            "level_started",
            mode="crafter",
            sub_mode=base.crafter_sub_mode.value if base.crafter_sub_mode else None,
            level=level_number,
            enemy=enemy.id,
            tutorial=start_tutorial,
        )
        return CommandResult.success_with_state(
            new_state,
            changes=[f"Level {level_number} started against {enemy.name}"],
            timers=timers,
            cancel=ALL_TIMERS,
        )

    def _reset_crafter_round(self, state: ArenaState) -> ArenaState:
        return state._copy_with(
            crafted_equation_string="",
            is_crafting_phase=True,
            is_crafted_equation_valid_for_level=False,
            player_input="",
            evaluation_error=None,
            is_feedback_active=False,
            crafter_feedback=None,
        )

    def _resolve_enemy_attack(
        self, state: ArenaState, amount: int
    ) -> tuple[ArenaState, list[TimerKey], str]:
        """Apply one enemy attack: a shield or freeze absorbs it, else health drops."""
        if state.is_shield_active or state.is_timer_frozen:
            absorbed = state._copy_with(
                is_shield_active=False,
                is_timer_frozen=False,
                timer_freeze_duration_remaining_ms=None,
            )
            return absorbed, [TimerKey.FREEZE], "Attack absorbed"

        new_health = max(0, state.player_health - amount)
        damaged = state._copy_with(player_health=new_health)
        if new_health <= 0:
            return self._game_over(damaged, DEFEAT_MESSAGE), ALL_TIMERS, "Player defeated"
        return damaged, [], f"Player took {amount} damage"

    def _accepts_answer_input(self, state: ArenaState) -> bool:
        if state.game_status != GameStatus.SOLVING or state.is_feedback_active:
            return False
        if state.game_mode == GameMode.SOLVER:
            return True
        return state.game_mode == GameMode.CRAFTER and not state.is_crafting_phase

    def _accepts_crafting(self, state: ArenaState) -> bool:
        return (
            state.game_status == GameStatus.SOLVING
            and state.game_mode == GameMode.CRAFTER
            and state.is_crafting_phase
            and not state.is_feedback_active
        )

    # =========================================================================
    # Setup
    # =========================================================================

    def _handle_set_grade(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status in ACTIVE_STATUSES:
            return CommandResult.ignored("Cannot change grade during play")
        grade = command.payload.grade
        grade_config = self.config.get_grade(grade) if grade is not None else None
        if grade_config is None:
            logger.error("grade_config_missing", grade=grade)
            return CommandResult.ignored(f"Configuration for grade {grade} not found")
        new_state = state._copy_with(
            selected_grade=grade_config.grade,
            game_mode=grade_config.mode,
            crafter_sub_mode=None if grade_config.mode == GameMode.SOLVER else state.crafter_sub_mode,
        )
        return CommandResult.success_with_state(new_state, changes=[f"Grade {grade} selected"])

    def _handle_set_game_mode(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status in ACTIVE_STATUSES:
            return CommandResult.ignored("Cannot change mode during play")
        mode = command.payload.mode
        if mode is None:
            return CommandResult.ignored("No mode given")
        new_state = state._copy_with(
            game_mode=mode,
            crafter_sub_mode=None if mode == GameMode.SOLVER else state.crafter_sub_mode,
        )
        return CommandResult.success_with_state(new_state, changes=[f"Mode set to {mode.value}"])

    def _handle_set_progress(self, state: ArenaState, command: Command) -> CommandResult:
        completed = bool(command.payload.completed)
        new_state = state._copy_with(
            crafter_normal_completed=completed,
            needs_crafter_tutorial=False if completed else state.needs_crafter_tutorial,
        )
        return CommandResult.success_with_state(new_state)

    def _handle_start_game(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status in ACTIVE_STATUSES:
            return CommandResult.ignored("Game already in progress")

        mode = command.payload.mode or state.game_mode
        if mode is None:
            logger.error("start_game_without_mode")
            return CommandResult.ignored("Cannot start game: mode not selected")

        sub_mode = None
        if mode == GameMode.CRAFTER:
            sub_mode = command.payload.sub_mode or state.crafter_sub_mode or CrafterSubMode.NORMAL

        if sub_mode == CrafterSubMode.CHALLENGE and not state.crafter_normal_completed:
            new_state = state._copy_with(
                game_status=GameStatus.PRE_GAME,
                game_mode=mode,
                result_message="Complete normal mode to unlock challenge mode.",
            )
            return CommandResult.success_with_state(new_state)

        fresh = self._fresh_state(state._copy_with(game_mode=mode, crafter_sub_mode=sub_mode))

        if sub_mode == CrafterSubMode.CHALLENGE:
            encounter = plan_challenge_encounter(
                self.config, None, fresh.challenge_enemy_scaling, self.settings, self.rng
            )
            if encounter is None:
                new_state = fresh._copy_with(result_message="No challenge enemies configured.")
                return CommandResult.success_with_state(new_state, cancel=ALL_TIMERS)
            fresh = fresh._copy_with(
                challenge_enemy_scaling=encounter.scaling_table,
                challenge_encounters=1,
            )
            return self._enter_level(
                fresh, encounter.enemy, encounter.stats, encounter.enemy.level, allow_tutorial=False
            )

        first_enemy = self.config.get_enemy(mode, 1)
        if first_enemy is None:
            logger.error("enemy_config_missing", mode=mode.value, level=1)
            new_state = fresh._copy_with(
                result_message=f"Cannot find level 1 enemy for mode {mode.value}."
            )
            return CommandResult.success_with_state(new_state, cancel=ALL_TIMERS)

        return self._enter_level(
            fresh,
            first_enemy,
            base_stats(first_enemy),
            1,
            allow_tutorial=mode == GameMode.CRAFTER,
        )

    # =========================================================================
    # Answer entry
    # =========================================================================

    def _handle_input(self, state: ArenaState, command: Command) -> CommandResult:
        if not self._accepts_answer_input(state):
            return CommandResult.ignored("Answer input not accepted now")
        char = command.payload.char or ""
        current = state.player_input

        if len(char) != 1 or not (char.isdigit() or char in ANSWER_SYMBOLS):
            return CommandResult.ignored(f"Invalid answer character {char!r}")
        if len(current) >= self.settings.max_answer_length:
            return CommandResult.ignored("Answer too long")
        if char == "." and "." in current:
            return CommandResult.ignored("Only one decimal point")
        if char == "-" and current != "":
            return CommandResult.ignored("Minus only at the start")
        if char == "/":
            fractions_allowed = (
                state.game_mode == GameMode.CRAFTER and state.current_level_number == 2
            )
            if not fractions_allowed or "/" in current or current in {"", "-"}:
                return CommandResult.ignored("Fraction bar not allowed here")

        return CommandResult.success_with_state(state._copy_with(player_input=current + char))

    def _handle_clear_input(self, state: ArenaState, command: Command) -> CommandResult:
        if not self._accepts_answer_input(state) or state.player_input == "":
            return CommandResult.ignored("Nothing to clear")
        return CommandResult.success_with_state(state._copy_with(player_input=""))

    def _handle_backspace(self, state: ArenaState, command: Command) -> CommandResult:
        if not self._accepts_answer_input(state) or state.player_input == "":
            return CommandResult.ignored("Nothing to delete")
        return CommandResult.success_with_state(
            state._copy_with(player_input=state.player_input[:-1])
        )

    # =========================================================================
    # Crafting
    # =========================================================================

    def _handle_append_crafted(self, state: ArenaState, command: Command) -> CommandResult:
        if not self._accepts_crafting(state):
            return CommandResult.ignored("Not in crafting phase")
        char = command.payload.char or ""
        allowed = state.allowed_crafter_chars if state.allowed_crafter_chars is not None else ()
        if not can_append(state.crafted_equation_string, char, allowed):
            return CommandResult.ignored(
                f"Character {char!r} not allowed for level {state.current_level_number}"
            )
        equation = state.crafted_equation_string + char
        new_state = state._copy_with(
            crafted_equation_string=equation,
            is_crafted_equation_valid_for_level=is_valid_for_level(
                equation, self._crafter_level_config(state)
            ),
            evaluation_error=None,
        )
        return CommandResult.success_with_state(new_state)

    def _handle_backspace_crafted(self, state: ArenaState, command: Command) -> CommandResult:
        if not self._accepts_crafting(state) or state.crafted_equation_string == "":
            return CommandResult.ignored("Nothing to delete")
        equation = state.crafted_equation_string[:-1]
        new_state = state._copy_with(
            crafted_equation_string=equation,
            is_crafted_equation_valid_for_level=is_valid_for_level(
                equation, self._crafter_level_config(state)
            ),
            evaluation_error=None,
        )
        return CommandResult.success_with_state(new_state)

    def _handle_clear_crafted(self, state: ArenaState, command: Command) -> CommandResult:
        if not self._accepts_crafting(state):
            return CommandResult.ignored("Not in crafting phase")
        new_state = state._copy_with(
            crafted_equation_string="",
            is_crafted_equation_valid_for_level=False,
            evaluation_error=None,
        )
        return CommandResult.success_with_state(new_state)

    def _handle_finalize_crafting(self, state: ArenaState, command: Command) -> CommandResult:
        if not self._accepts_crafting(state):
            return CommandResult.ignored("Not in crafting phase")

        check = check_submission(
            state.crafted_equation_string,
            self._crafter_level_config(state),
            state.used_crafted_equations,
        )

        if check.is_duplicate:
            feedback_id = state.feedback_id + 1
            new_state = state._copy_with(
                evaluation_error=DUPLICATE_EQUATION_MESSAGE,
                is_feedback_active=True,
                feedback_id=feedback_id,
            )
            return CommandResult.success_with_state(
                new_state,
                changes=["Duplicate equation rejected"],
                timers=[
                    TimerRequest(
                        TimerKey.FEEDBACK,
                        self.settings.duplicate_feedback_ms,
                        Command.expire_feedback(feedback_id),
                    )
                ],
            )

        if not check.ok:
            return CommandResult.success_with_state(
                state._copy_with(evaluation_error=check.error),
                changes=[f"Submission rejected: {check.error}"],
            )

        new_state = state._copy_with(
            crafted_equation_string=check.equation,
            is_crafting_phase=False,
            player_input="",
            evaluation_error=None,
            used_crafted_equations=state.used_crafted_equations | {check.equation},
        )
        return CommandResult.success_with_state(
            new_state, changes=[f"Equation {check.equation} accepted"]
        )

    def _handle_reset_crafter_state(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_mode != GameMode.CRAFTER or state.game_status != GameStatus.SOLVING:
            return CommandResult.ignored("No crafting round to reset")
        return CommandResult.success_with_state(
            self._reset_crafter_round(state), cancel=[TimerKey.FEEDBACK]
        )

    def _handle_expire_feedback(self, state: ArenaState, command: Command) -> CommandResult:
        if not state.is_feedback_active or state.feedback_id != command.payload.feedback_id:
            return CommandResult.ignored("Stale feedback callback")
        if state.game_status != GameStatus.SOLVING:
            return CommandResult.ignored("Feedback expired outside of play")
        return CommandResult.success_with_state(
            self._reset_crafter_round(state),
            changes=["Feedback cleared"],
            cancel=[TimerKey.FEEDBACK],
        )

    # =========================================================================
    # Combat
    # =========================================================================

    def _handle_select_spell(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status != GameStatus.SOLVING:
            return CommandResult.ignored("Spells can only be selected while solving")
        if command.payload.spell is None:
            return CommandResult.ignored("No spell given")
        return CommandResult.success_with_state(
            state._copy_with(selected_spell=command.payload.spell)
        )

    def _handle_cast_spell(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status != GameStatus.SOLVING:
            return CommandResult.ignored("Can only cast while solving")
        if state.is_feedback_active:
            return CommandResult.ignored("Feedback is showing")
        if state.selected_spell is None:
            return CommandResult.ignored("No spell selected")
        if state.player_input == "":
            return CommandResult.ignored("No answer entered")
        if state.game_mode == GameMode.CRAFTER and state.is_crafting_phase:
            return CommandResult.ignored("Equation not finalized")
        if state.game_mode is None:
            return CommandResult.ignored("No game mode")

        payload = command.payload
        tolerance = (
            payload.tolerance if payload.tolerance is not None
            else self.settings.wrong_answer_tolerance
        )
        penalty = payload.penalty if payload.penalty is not None else self.settings.wrong_answer_penalty
        fire_damage = (
            payload.fire_damage if payload.fire_damage is not None else self.settings.fire_damage
        )
        feedback_ms = (
            payload.feedback_duration_ms if payload.feedback_duration_ms is not None
            else self.settings.feedback_duration_ms
        )

        answer_text = state.player_input
        answer = try_evaluate(answer_text)
        evaluation = None
        evaluation_error = None

        if state.game_mode == GameMode.SOLVER:
            expected: float | None = float(state.expected_answer)
            full_equation = state.current_equation.replace("?", answer_text)
        else:
            evaluation = evaluate_equation(state.crafted_equation_string, state.current_level_number)
            expected = evaluation.value
            evaluation_error = evaluation.error
            full_equation = f"{state.crafted_equation_string} = {answer_text}"

        correct = (
            expected is not None
            and answer is not None
            and abs(answer - expected) < self.settings.float_tolerance
        )
        spell = state.selected_spell
        cast_fields = dict(
            last_answer_correct=correct,
            last_spell_cast=spell,
            last_player_input=answer_text,
            last_full_equation=full_equation,
            evaluation_error=evaluation_error,
        )

        if correct:
            return self._resolve_correct_cast(
                state, spell, answer_text, expected, fire_damage, cast_fields
            )

        wrong_count = state.consecutive_wrong_answers + 1
        player_health = state.player_health
        changes = ["Incorrect answer"]
        if wrong_count > tolerance:
            player_health = max(0, player_health - penalty)
            wrong_count = 0
            changes.append(f"Penalty: player lost {penalty} health")

        new_state = state._copy_with(
            **cast_fields,
            consecutive_wrong_answers=wrong_count,
            player_health=player_health,
            active_bonuses=(),
            last_damage_dealt=0,
        )
        if player_health <= 0:
            return CommandResult.success_with_state(
                self._game_over(new_state._copy_with(player_input=""), DEFEAT_MESSAGE),
                changes=changes,
                cancel=ALL_TIMERS,
            )

        if state.game_mode == GameMode.CRAFTER and evaluation is not None and evaluation.ok:
            feedback_id = state.feedback_id + 1
            feedback = CrafterFeedback(
                incorrect_equation=state.crafted_equation_string,
                incorrect_value=answer_text,
                correct_value=expected,
                steps=tuple(evaluation.steps),
                message=f"{state.crafted_equation_string} = {evaluation.steps[-1]}",
            )
            new_state = new_state._copy_with(
                is_feedback_active=True,
                feedback_id=feedback_id,
                crafter_feedback=feedback,
            )
            changes.append("Showing the correct value")
            return CommandResult.success_with_state(
                new_state,
                changes=changes,
                timers=[
                    TimerRequest(TimerKey.FEEDBACK, feedback_ms, Command.expire_feedback(feedback_id))
                ],
            )

        new_state = new_state._copy_with(game_status=GameStatus.RESULT, player_input="")
        return CommandResult.success_with_state(
            new_state, changes=changes, timers=self._result_timers(new_state)
        )

    def _resolve_correct_cast(
        self,
        state: ArenaState,
        spell: SpellType,
        answer_text: str,
        expected: float,
        fire_damage: int,
        cast_fields: dict,
    ) -> CommandResult:
        bonuses = []
        if state.game_mode == GameMode.CRAFTER:
            bonuses = get_active_bonuses(
                state.crafted_equation_string,
                answer_text,
                expected,
                state.current_level_number,
                state.game_mode,
                self.config.bonuses,
            )
        award = score_correct_answer(bonuses, state.level_bonuses_used_this_level)

        enemy_health = state.enemy_health
        just_defeated = False
        damage = 0
        effect_fields: dict = {}
        timers: list[TimerRequest] = []
        changes = ["Correct answer"]

        if spell == SpellType.FIRE:
            damage = _round_half_up(fire_damage * damage_multiplier(bonuses))
            enemy_health = max(0, enemy_health - damage)
            just_defeated = enemy_health <= 0
            changes.append(f"FIRE dealt {damage} damage")
        elif self.settings.ice_effect == IceEffect.SHIELD:
            effect_fields["is_shield_active"] = True
            changes.append("ICE shield raised")
        else:
            effect_fields["is_timer_frozen"] = True
            effect_fields["timer_freeze_duration_remaining_ms"] = self.settings.freeze_duration_ms
            timers.append(self._freeze_tick())
            changes.append("ICE froze the attack timer")

        new_state = state._copy_with(
            **cast_fields,
            **effect_fields,
            game_status=GameStatus.RESULT,
            equations_solved_correctly=state.equations_solved_correctly + 1,
            consecutive_wrong_answers=0,
            active_bonuses=tuple(bonuses),
            current_level_bonuses=state.current_level_bonuses + tuple(bonuses),
            level_bonuses_used_this_level=award.bonus_ids_used,
            current_level_score=state.current_level_score + award.points,
            enemy_health=enemy_health,
            enemy_just_defeated=just_defeated,
            last_damage_dealt=damage,
            player_input=state.player_input if just_defeated else "",
        )
        timers.extend(self._result_timers(new_state))
        return CommandResult.success_with_state(new_state, changes=changes, timers=timers)

    def _result_timers(self, state: ArenaState) -> list[TimerRequest]:
        if not self.settings.auto_advance_results:
            return []
        follow_up = (
            Command.finalize_victory() if state.enemy_just_defeated
            else Command.prepare_next_round()
        )
        return [TimerRequest(TimerKey.RESULT, self.settings.result_display_delay_ms, follow_up)]

    def _handle_receive_player_damage(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status != GameStatus.SOLVING:
            return CommandResult.ignored("Attacks only land while solving")
        amount = max(0, command.payload.amount or 0)
        new_state, cancel, change = self._resolve_enemy_attack(state, amount)
        return CommandResult.success_with_state(new_state, changes=[change], cancel=cancel)

    # =========================================================================
    # Timers
    # =========================================================================

    def _handle_tick_attack_timer(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status not in ACTIVE_STATUSES:
            return CommandResult.ignored("Attack timer stopped")

        rearm = [self._attack_tick()]
        if (
            state.game_status != GameStatus.SOLVING
            or state.is_timer_frozen
            or state.is_feedback_active
        ):
            return CommandResult.success_with_state(state, timers=rearm)

        quantum = self.settings.tick_interval_ms
        attack_remaining = state.attack_time_remaining_ms - quantum
        level_remaining = max(0, state.level_time_remaining_ms - quantum)
        new_state = state._copy_with(level_time_remaining_ms=level_remaining)
        changes: list[str] = []
        cancel: list[TimerKey] = []

        if attack_remaining <= 0:
            damage = state.current_enemy_config.damage if state.current_enemy_config else 0
            new_state, cancel, change = self._resolve_enemy_attack(new_state, damage)
            changes.append(f"Enemy attacked: {change}")
            if new_state.is_terminal:
                return CommandResult.success_with_state(new_state, changes=changes, cancel=cancel)
            attack_remaining = new_state.max_attack_time_ms

        new_state = new_state._copy_with(attack_time_remaining_ms=attack_remaining)

        if level_remaining <= 0:
            return CommandResult.success_with_state(
                self._game_over(new_state, TIME_OUT_MESSAGE),
                changes=changes + ["Time ran out"],
                cancel=ALL_TIMERS,
            )
        return CommandResult.success_with_state(
            new_state, changes=changes, timers=rearm, cancel=cancel
        )

    def _handle_tick_timer_freeze(self, state: ArenaState, command: Command) -> CommandResult:
        if not state.is_timer_frozen or state.game_status not in ACTIVE_STATUSES:
            return CommandResult.ignored("Timer not frozen")
        elapsed = command.payload.elapsed_ms
        if elapsed is None:
            elapsed = self.settings.tick_interval_ms
        remaining = (state.timer_freeze_duration_remaining_ms or 0) - elapsed
        if remaining <= 0:
            new_state = state._copy_with(
                is_timer_frozen=False,
                timer_freeze_duration_remaining_ms=None,
            )
            return CommandResult.success_with_state(
                new_state, changes=["Freeze expired"], cancel=[TimerKey.FREEZE]
            )
        return CommandResult.success_with_state(
            state._copy_with(timer_freeze_duration_remaining_ms=remaining),
            timers=[self._freeze_tick()],
        )

    # =========================================================================
    # Tutorial
    # =========================================================================

    def _handle_advance_tutorial(self, state: ArenaState, command: Command) -> CommandResult:
        if (
            state.game_mode != GameMode.CRAFTER
            or state.game_status != GameStatus.TUTORIAL
            or not 1 <= state.tutorial_step <= TUTORIAL_STEPS
        ):
            return CommandResult.ignored("No tutorial in progress")
        next_step = state.tutorial_step + 1
        if next_step > TUTORIAL_STEPS:
            new_state = state._copy_with(
                tutorial_step=0,
                needs_crafter_tutorial=False,
                game_status=GameStatus.SOLVING,
            )
            return CommandResult.success_with_state(new_state, changes=["Tutorial completed"])
        return CommandResult.success_with_state(state._copy_with(tutorial_step=next_step))

    def _handle_skip_tutorial(self, state: ArenaState, command: Command) -> CommandResult:
        if (
            state.game_mode != GameMode.CRAFTER
            or state.game_status != GameStatus.TUTORIAL
            or state.tutorial_step <= 0
        ):
            return CommandResult.ignored("No tutorial to skip")
        new_state = state._copy_with(
            tutorial_step=0,
            needs_crafter_tutorial=False,
            game_status=GameStatus.SOLVING,
        )
        return CommandResult.success_with_state(new_state, changes=["Tutorial skipped"])

    # =========================================================================
    # Round / level lifecycle
    # =========================================================================

    def _handle_prepare_next_round(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status not in {GameStatus.RESULT, GameStatus.SOLVING}:
            return CommandResult.ignored("No round to prepare")
        if state.enemy_just_defeated:
            return CommandResult.ignored("Enemy defeated - finalize the victory instead")

        base = state._copy_with(
            player_input="",
            selected_spell=state.selected_spell or SpellType.FIRE,
            last_answer_correct=None,
            last_spell_cast=None,
            last_player_input="",
            last_full_equation="",
            result_message="",
            active_bonuses=(),
            evaluation_error=None,
            game_status=GameStatus.SOLVING,
        )
        cancel = [TimerKey.RESULT]

        if state.game_mode == GameMode.SOLVER:
            problem = generate_solver_equation(state.current_level_number, self.rng)
            new_state = base._copy_with(
                current_equation=problem.equation,
                expected_answer=problem.expected_answer,
                current_operation_type=problem.operation_type,
            )
        elif state.game_mode == GameMode.CRAFTER:
            new_state = self._reset_crafter_round(base)
            cancel.append(TimerKey.FEEDBACK)
        else:
            logger.error("unknown_game_mode", mode=state.game_mode)
            return CommandResult.ignored("Unknown game mode")

        return CommandResult.success_with_state(new_state, changes=["Next round"], cancel=cancel)

    def _handle_finalize_victory(self, state: ArenaState, command: Command) -> CommandResult:
        if not state.enemy_just_defeated or state.game_status not in {
            GameStatus.RESULT,
            GameStatus.SOLVING,
        }:
            return CommandResult.ignored("No defeated enemy to finalize")

        level_score = state.current_level_score + LEVEL_COMPLETION_POINTS
        completed = CompletedLevel(
            level_number=state.current_level_number,
            score=level_score,
            bonus_ids=tuple(b.id for b in state.current_level_bonuses),
            enemy_id=state.current_enemy_id,
        )
        finished = state._copy_with(
            current_level_score=level_score,
            total_game_score=state.total_game_score + level_score,
            completed_levels_data=state.completed_levels_data + (completed,),
        )

        is_last_level = (
            not state.is_challenge
            and state.game_mode is not None
            and self.config.get_enemy(state.game_mode, state.current_level_number + 1) is None
        )
        if not is_last_level:
            return CommandResult.success_with_state(
                self._game_over(finished, VICTORY_MESSAGE),
                changes=[f"Level {state.current_level_number} won"],
                cancel=ALL_TIMERS,
            )
        return CommandResult.success_with_state(
            self._final_summary(finished),
            changes=["All levels completed"],
            cancel=ALL_TIMERS,
        )

    def _final_summary(self, state: ArenaState) -> ArenaState:
        mode_name = state.game_mode.value if state.game_mode else "game"
        new_state = self._game_over(state, f"All levels completed for {mode_name}!")._copy_with(
            game_status=GameStatus.FINAL_SUMMARY
        )
        if state.game_mode == GameMode.CRAFTER and not state.is_challenge:
            new_state = new_state._copy_with(
                crafter_normal_completed=True,
                needs_crafter_tutorial=False,
            )
        logger.info("final_summary", mode=mode_name, total_score=new_state.total_game_score)
        return new_state

    def _handle_advance_level(self, state: ArenaState, command: Command) -> CommandResult:
        if state.game_status != GameStatus.GAME_OVER or state.result_message != VICTORY_MESSAGE:
            return CommandResult.ignored("Cannot advance level unless the previous level was won")
        if state.game_mode is None:
            logger.error("advance_without_mode")
            return CommandResult.ignored("Game mode not set")

        fresh = self._fresh_state(state, keep_playthrough=True)

        if state.is_challenge:
            encounter = plan_challenge_encounter(
                self.config,
                state.current_enemy_id,
                state.challenge_enemy_scaling,
                self.settings,
                self.rng,
            )
            if encounter is None:
                return CommandResult.success_with_state(
                    self._final_summary(state), cancel=ALL_TIMERS
                )
            fresh = fresh._copy_with(
                challenge_enemy_scaling=encounter.scaling_table,
                challenge_encounters=state.challenge_encounters + 1,
            )
            return self._enter_level(
                fresh, encounter.enemy, encounter.stats, encounter.enemy.level, allow_tutorial=False
            )

        next_level = state.current_level_number + 1
        next_enemy = self.config.get_enemy(state.game_mode, next_level)
        if next_enemy is None:
            logger.info("all_levels_completed", mode=state.game_mode.value)
            return CommandResult.success_with_state(self._final_summary(state), cancel=ALL_TIMERS)

        return self._enter_level(
            fresh, next_enemy, base_stats(next_enemy), next_level, allow_tutorial=False
        )

    def _handle_reset(self, state: ArenaState, command: Command) -> CommandResult:
        fresh = self._fresh_state(state)._copy_with(selected_spell=None)
        return CommandResult.success_with_state(fresh, changes=["Reset"], cancel=ALL_TIMERS)

    def _handle_full_reset(self, state: ArenaState, command: Command) -> CommandResult:
        fresh = self.initial_state(state.crafter_normal_completed)
        return CommandResult.success_with_state(fresh, changes=["Full reset"], cancel=ALL_TIMERS)


def apply_command(
    config: ArenaConfig,
    state: ArenaState,
    command: Command,
    settings: EngineSettings | None = None,
) -> CommandResult:
    """Convenience function to apply a command with a throwaway reducer."""
    reducer = Reducer(config=config, settings=settings or EngineSettings())
    return reducer.apply(state, command)
