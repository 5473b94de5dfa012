import logging
import select
import shutil
import sys
import textwrap
import urllib.error
import urllib.request
from collections.abc import Callable
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .config import ASCII_PALETTE, MAX_TERMINAL_WIDTH
from .round import GuessEvaluator, RoundState
from .scoring import GameSession

try:
    import termios
    import tty
except ImportError:
    termios = None
    tty = None

logger = logging.getLogger(__name__)

COMMANDS = {
    "/play": "play",
    "/p": "play",
    "/stop": "stop",
    "/s": "stop",
    "/give": "give_up",
    "/giveup": "give_up",
    "/quit": "quit",
    "/q": "quit",
    "/reset": "reset",
}
COMMAND_HELP = "Type a title + Enter | /play  /stop  /give  /reset  /quit"

ASCII_ART_CACHE: dict[str, list[str]] = {}


def get_terminal_width() -> int:
    return min(MAX_TERMINAL_WIDTH, shutil.get_terminal_size(fallback=(MAX_TERMINAL_WIDTH, 24)).columns)


def clear_terminal() -> None:
    if not sys.stdout.isatty():
        return

    sys.stdout.write("\033[2J\033[3J\033[H")
    sys.stdout.flush()


def enter_alternate_screen() -> bool:
    if not sys.stdout.isatty():
        return False

    sys.stdout.write("\033[?1049h\033[H")
    sys.stdout.flush()
    return True


def leave_alternate_screen() -> None:
    if not sys.stdout.isatty():
        return

    sys.stdout.write("\033[?1049l")
    sys.stdout.flush()


def build_countdown_bar(remaining: int, total: int, width: int = 20) -> str:
    total = max(1, total)
    filled = round(width * max(0, min(remaining, total)) / total)
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def build_round_lines(session: GameSession, state: RoundState, status: str = "", width: int | None = None) -> list[str]:
    width = width or get_terminal_width()
    divider = "=" * width
    config = state.config
    if state.is_playing:
        clock = f"Time left: {state.time_remaining_seconds:02d}s " + build_countdown_bar(
            state.time_remaining_seconds, config.playback_window_seconds
        )
    else:
        clock = f"Stopped ({config.playback_window_seconds}s window, /play to listen)"

    lines = [
        divider,
        f"Round {session.round_number}  |  {config.difficulty.value.capitalize()} mode  |  "
        f"Score: {session.session_score}  |  Streak: {session.current_streak}",
        divider,
        clock,
        f"Guesses left: {state.attempts_remaining}/{config.max_attempts}",
        "",
    ]
    if status:
        lines.extend(textwrap.wrap(status, width=width) or [status])
        lines.append("")
    lines.append(COMMAND_HELP)
    lines.append(divider)
    return lines


def render_round_screen(lines: list[str], answer_buffer: str = "") -> None:
    clear_terminal()
    print("\n".join(lines))
    sys.stdout.write(f"Guess -> {answer_buffer}")
    sys.stdout.flush()


def render_ascii_art(image_url: str | None, width: int = 24) -> list[str]:
    """Small grayscale rendering of album art; empty when the image is unavailable."""
    if not image_url:
        return []

    if image_url in ASCII_ART_CACHE:
        return ASCII_ART_CACHE[image_url]

    try:
        with urllib.request.urlopen(image_url, timeout=6) as response:
            image_bytes = response.read()

        with Image.open(BytesIO(image_bytes)) as img:
            grayscale = img.convert("L")
            height = max(6, int((grayscale.height / max(1, grayscale.width)) * width * 0.55))
            resized = grayscale.resize((width, height))
            pixels = list(resized.tobytes())
    except (urllib.error.URLError, OSError, UnidentifiedImageError) as exc:
        logger.debug("Cover art unavailable for %s: %s", image_url, exc)
        return []

    palette_size = len(ASCII_PALETTE) - 1
    lines = [
        "".join(ASCII_PALETTE[(pixel * palette_size) // 255] for pixel in pixels[row * width : (row + 1) * width])
        for row in range(height)
    ]
    ASCII_ART_CACHE[image_url] = lines
    return lines


def build_reveal_lines(
    title: str,
    artist: str,
    source: str,
    headline: str,
    session: GameSession,
    preview_url: str | None = None,
    cover_lines: list[str] | None = None,
    width: int | None = None,
) -> list[str]:
    width = width or get_terminal_width()
    divider = "=" * width
    lines = [divider, headline, divider, "The answer was:"]
    lines.extend(f"  {line}" for line in cover_lines or [])
    lines.extend([f"  {title}", f"  by {artist}", f"  Source: {source}"])
    if preview_url:
        lines.append(f"  Preview: {preview_url}")
    lines.extend(
        [
            "",
            f"Session score: {session.session_score}  |  Streak: {session.current_streak}  |  "
            f"Best streak: {session.best_streak}",
            f"Correct: {session.correct_answers}/{session.questions_answered}  |  Misses: {session.misses}",
            divider,
        ]
    )
    return lines


def parse_command(raw_value: str) -> tuple[str, str]:
    """Split typed input into a command name and its text."""
    text = raw_value.strip()
    command = COMMANDS.get(text.lower())
    if command:
        return command, ""
    return "guess", text


def _read_line_fallback(evaluator: GuessEvaluator) -> tuple[str, str]:
    try:
        raw_value = input("\nGuess -> ")
    except EOFError:
        return "quit", ""
    # Blocking input cannot tick; apply whatever seconds passed while waiting.
    evaluator.poll()
    return parse_command(raw_value)


def read_command(
    evaluator: GuessEvaluator,
    render_callback: Callable[[str], None],
) -> tuple[str, str]:
    """Collect one line of input while keeping the round's countdown ticking.

    Returns ``(command, text)`` where command is one of ``guess``, ``play``,
    ``stop``, ``give_up``, ``reset`` or ``quit``. The screen is redrawn whenever a tick
    fires or the typed buffer changes.
    """
    render_callback("")
    if not sys.stdin.isatty() or termios is None or tty is None:
        return _read_line_fallback(evaluator)

    fd = sys.stdin.fileno()
    old_attrs = termios.tcgetattr(fd)
    typed = ""

    try:
        tty.setcbreak(fd)

        while True:
            if evaluator.poll():
                render_callback(typed)

            until_tick = evaluator.seconds_until_tick()
            wait_seconds = 0.1 if until_tick is None else min(0.1, until_tick)
            try:
                ready, _, _ = select.select([sys.stdin], [], [], wait_seconds)
            except (OSError, ValueError):
                return _read_line_fallback(evaluator)

            if not ready:
                continue

            char = sys.stdin.read(1)
            if not char:
                return "quit", ""

            if char in ("\n", "\r"):
                print()
                return parse_command(typed)

            if char in ("\x7f", "\b"):
                typed = typed[:-1]
                render_callback(typed)
                continue

            if char == "\x1b":
                # Swallow the rest of an escape sequence (arrow keys and friends).
                while True:
                    try:
                        ready_more, _, _ = select.select([sys.stdin], [], [], 0.001)
                    except (OSError, ValueError):
                        break
                    if not ready_more:
                        break
                    _ = sys.stdin.read(1)
                continue

            if char.isprintable():
                typed += char
                render_callback(typed)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_attrs)


def prompt_play_again() -> bool:
    try:
        answer = input("\nPlay again? [Y/n] -> ").strip().lower()
    except EOFError:
        return False
    return answer in {"", "y", "yes"}
