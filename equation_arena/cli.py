"""
Equation Arena CLI - Command-line interface for the engine.

Usage:
    equation-arena validate <config_file>    Validate a JSON content file
    equation-arena show-config [--file F]    Print grades, enemies and bonuses
    equation-arena play [--grade N]          Play in the terminal

Settings come from ARENA_* environment variables (see core/settings.py).
"""

import argparse
import random
import sys
import time

from .config_schema import ArenaConfig, ConfigValidationError, GameMode, validate_config
from .config_schema.loader import load_config_file
from .content import create_default_config
from .core.exceptions import ConfigurationError
from .core.logging import configure_logging
from .core.settings import EngineSettings
from .engine_core.command import Command
from .engine_core.state import ArenaState, CrafterSubMode, GameStatus, SpellType


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Equation Arena - Arithmetic battle engine",
        prog="equation-arena",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a content file")
    validate_parser.add_argument("config_file", help="Path to JSON content file")

    # Show config command
    show_parser = subparsers.add_parser("show-config", help="Print the arena content")
    show_parser.add_argument("--file", help="JSON content file (default: bundled content)")

    # Play command
    play_parser = subparsers.add_parser("play", help="Play in the terminal")
    play_parser.add_argument("--grade", type=int, help="Grade to play")
    play_parser.add_argument("--mode", choices=[m.value for m in GameMode], help="Game mode")
    play_parser.add_argument(
        "--challenge", action="store_true", help="Crafter challenge sub-mode"
    )
    play_parser.add_argument("--file", help="JSON content file (default: bundled content)")
    play_parser.add_argument("--seed", type=int, help="Random seed")

    args = parser.parse_args(argv)

    try:
        settings = EngineSettings.from_env()
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1
    configure_logging(level=settings.log_level, json_format=args.json_logs)

    if args.command == "validate":
        return cmd_validate(args)
    if args.command == "show-config":
        return cmd_show_config(args)
    if args.command == "play":
        return cmd_play(args, settings)
    parser.print_help()
    return 1


def _load(path) -> ArenaConfig:
    if path:
        return load_config_file(path)
    return create_default_config()


def cmd_validate(args):
    """Validate a JSON content file."""
    print(f"Validating: {args.config_file}")
    try:
        config = load_config_file(args.config_file)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    result = validate_config(config)
    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w}")
    if result.errors:
        print("\nErrors:")
        for e in result.errors:
            print(f"  - {e}")
        return 1

    print(
        f"OK: {len(config.grades)} grades, {len(config.enemies)} enemies, "
        f"{len(config.bonuses)} bonuses, {len(config.crafter_levels)} crafter levels"
    )
    return 0


def cmd_show_config(args):
    """Print the arena content."""
    try:
        config = _load(args.file)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    print("Grades:")
    for grade in config.grades:
        print(f"  {grade.grade}: {grade.label} ({grade.mode.value})")
    for mode in GameMode:
        print(f"\n{mode.value.capitalize()} enemies:")
        for enemy in sorted(config.enemies_for_mode(mode), key=lambda e: e.level):
            print(
                f"  L{enemy.level} {enemy.name}: {enemy.health} HP, "
                f"attacks every {enemy.attack_interval_ms / 1000:g}s for {enemy.damage}, "
                f"{enemy.solve_time_seconds}s budget"
            )
    print("\nBonuses:")
    for bonus in config.bonuses:
        level = f"level {bonus.level}" if bonus.level else "all levels"
        print(f"  {bonus.id} (x{bonus.power_multiplier:g}, {level}): {bonus.description}")
    print("\nCrafter levels:")
    for level_config in config.crafter_levels:
        print(
            f"  {level_config.level}: {level_config.description} "
            f"[{' '.join(level_config.allowed_chars)}]"
        )
    return 0


PLAY_HELP = """Commands:
  <digits>        type an answer (solver) or answer a finalized equation (crafter)
  craft <eq>      type a crafted equation, e.g. craft (2+3)×4
  done            finalize the crafted equation
  fire | ice      select a spell
  cast            cast the selected spell
  back | clear    edit the current input
  next            continue (tutorial, next level)
  skip            skip the tutorial
  quit            leave"""


def cmd_play(args, settings):
    """Play in the terminal, advancing timers by wall-clock time between lines."""
    from .session import ArenaSession

    try:
        config = _load(args.file)
        session = ArenaSession(
            config=config,
            settings=settings,
            rng=random.Random(args.seed if args.seed is not None else settings.seed),
        )
    except ConfigValidationError as e:
        print(f"Error: {e}")
        for error in e.errors:
            print(f"  - {error}")
        return 1
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    if args.grade is not None:
        session.dispatch(Command.set_grade(args.grade))
    mode = GameMode(args.mode) if args.mode else None
    sub_mode = CrafterSubMode.CHALLENGE if args.challenge else None
    session.dispatch(Command.start_game(mode, sub_mode))
    if session.state.game_status == GameStatus.PRE_GAME:
        print(session.state.result_message or "Select a grade (--grade) or mode (--mode).")
        return 1

    print(PLAY_HELP)
    last = time.monotonic()
    try:
        while True:
            print(render(session.state))
            try:
                line = input("> ").strip()
            except EOFError:
                break
            now = time.monotonic()
            session.advance(int((now - last) * 1000))
            last = now
            if line == "quit":
                break
            _play_line(session, line)
    finally:
        session.close()
    return 0


def _play_line(session, line):
    state = session.state
    if line in {"fire", "ice"}:
        session.dispatch(Command.select_spell(SpellType(line.upper())))
    elif line == "cast":
        session.dispatch(Command.cast_spell())
    elif line == "back":
        if state.is_crafting_phase:
            session.dispatch(Command.backspace_crafted_equation())
        else:
            session.dispatch(Command.handle_backspace())
    elif line == "clear":
        if state.is_crafting_phase:
            session.dispatch(Command.clear_crafted_equation())
        else:
            session.dispatch(Command.clear_input())
    elif line.startswith("craft "):
        for char in line[len("craft "):].replace("*", "×").replace(" ", ""):
            session.dispatch(Command.append_to_crafted_equation(char))
    elif line == "done":
        session.dispatch(Command.finalize_crafting())
    elif line == "skip":
        session.dispatch(Command.skip_tutorial_and_start())
    elif line == "next":
        if state.game_status == GameStatus.TUTORIAL:
            session.dispatch(Command.advance_tutorial())
        elif state.game_status == GameStatus.RESULT:
            session.advance(session.settings.result_display_delay_ms)
        elif state.game_status == GameStatus.GAME_OVER and state.result_message == "Victory!":
            session.dispatch(Command.advance_level_and_start())
        elif state.is_terminal:
            session.dispatch(Command.reset())
            session.dispatch(Command.start_game())
    else:
        for char in line:
            session.dispatch(Command.handle_input(char))


def render(state: ArenaState) -> str:
    """One status block for the terminal."""
    lines = [
        f"[{state.game_status.value}] Level {state.current_level_number} "
        f"- You {state.player_health}/{state.max_player_health} HP "
        f"vs {state.current_enemy_config.name if state.current_enemy_config else '?'} "
        f"{state.enemy_health}/{state.max_enemy_health} HP",
        f"Next attack in {state.attack_time_remaining:.1f}s"
        + (" (frozen)" if state.is_timer_frozen else "")
        + (" (shielded)" if state.is_shield_active else ""),
    ]
    if state.game_status == GameStatus.TUTORIAL:
        lines.append(f"Tutorial step {state.tutorial_step}/3 - 'next' or 'skip'")
    elif state.game_mode == GameMode.SOLVER:
        lines.append(f"{state.current_equation}   answer: {state.player_input}")
    elif state.is_crafting_phase:
        lines.append(f"Craft: {state.crafted_equation_string}")
    else:
        lines.append(f"{state.crafted_equation_string} = {state.player_input}")
    if state.evaluation_error:
        lines.append(f"! {state.evaluation_error}")
    if state.crafter_feedback:
        lines.append("Steps: " + " -> ".join(state.crafter_feedback.steps))
    if state.result_message:
        lines.append(state.result_message)
    lines.append(
        f"Spell: {state.selected_spell.value if state.selected_spell else '-'}  "
        f"Score: {state.current_level_score} (total {state.total_game_score})"
    )
    return "\n".join(lines)


if __name__ == "__main__":
    sys.exit(main())
