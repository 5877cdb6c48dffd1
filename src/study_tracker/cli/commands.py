# src/study_tracker/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

from ..api.dispatch import Request, Response
from ..api.routes import dispatch
from ..core.state import AppState
from ..tracker.users import find_user

CommandEmitter = Callable[[str], None]


@dataclass(slots=True)
class ConsoleSession:
    """Who is typing. Stands in for the cookie session of a web front end."""

    user_id: int | None = None
    username: str | None = None


CommandHandler3 = Callable[[AppState, list[str], ConsoleSession], str]
CommandHandler4 = Callable[[AppState, list[str], ConsoleSession, CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /plan, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        session: ConsoleSession,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 4

        if nparams >= 4:
            h4 = cast(CommandHandler4, handler)
            return h4(state, args, session, emit)

        h3 = cast(CommandHandler3, handler)
        return h3(state, args, session)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _call(
    state: AppState,
    session: ConsoleSession,
    method: str,
    path: str,
    payload: dict[str, Any] | None = None,
) -> Response:
    return dispatch(state, Request(method, path, user_id=session.user_id, payload=payload or {}))


def _error(resp: Response) -> str:
    return f"Error ({resp.status}): {resp.body.get('error', 'unknown error')}"


def _hhmm(ts: float | None) -> str:
    if ts is None:
        return "--:--"
    return datetime.fromtimestamp(ts).astimezone().strftime("%H:%M")


def _task_line(t: dict[str, Any]) -> str:
    line = f"  #{t['id']} [{t['status']}] {t['subject']}: {t['task_name']} (est {t['estimated_minutes']}m"
    if t.get("actual_minutes") is not None:
        line += f", took {t['actual_minutes']}m"
    return line + ")"


def cmd_help(state: AppState, args: list[str], session: ConsoleSession) -> str:
    return registry.build_help()


def cmd_register(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/register <username> <display name...>"""
    if len(args) < 2:
        return "Usage: /register <username> <display name>"
    resp = _call(state, session, "POST", "/register", {"username": args[0], "name": " ".join(args[1:])})
    if not resp.ok:
        return _error(resp)
    user = resp.body["user"]
    session.user_id = int(user["id"])
    session.username = str(user["username"])
    return f"Registered and logged in as {user['name']} (@{user['username']}, id={user['id']})."


def cmd_login(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if len(args) != 1:
        return "Usage: /login <username>"
    user = find_user(state, args[0])
    if user is None:
        return f"No such user: {args[0]}"
    session.user_id = user.id
    session.username = user.username
    logger.debug("Console login user=%s", user.id)
    return f"Logged in as {user.name} (@{user.username})."


def cmd_whoami(state: AppState, args: list[str], session: ConsoleSession) -> str:
    resp = _call(state, session, "GET", "/current-user")
    if not resp.ok:
        return _error(resp)
    u = resp.body["user"]
    return f"{u['name']} (@{u['username']}, id={u['id']})"


def cmd_users(state: AppState, args: list[str], session: ConsoleSession) -> str:
    resp = _call(state, session, "GET", "/users")
    if not resp.ok:
        return _error(resp)
    lines = ["Users:"]
    for u in resp.body["users"]:
        lines.append(f"  {u['id']}: {u['name']} (@{u['username']})")
    return "\n".join(lines)


def cmd_plan(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """
    /plan <subject> <minutes> <task name...>
    Several tasks at once: separate them with ';'.
    """
    entries = [chunk.split() for chunk in " ".join(args).split(";") if chunk.strip()]
    if not entries or any(len(e) < 3 for e in entries):
        return "Usage: /plan <subject> <minutes> <task name> [; <subject> <minutes> <task name> ...]"
    tasks = [
        {"subject": e[0].capitalize(), "estimated_minutes": e[1], "task_name": " ".join(e[2:])}
        for e in entries
    ]
    resp = _call(state, session, "POST", "/tasks/batch-add", {"tasks": tasks})
    if not resp.ok:
        return _error(resp)
    return f"Planned {resp.body['count']} task(s) for today."


def cmd_tasks(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/tasks [user_id]"""
    if args:
        resp = _call(state, session, "GET", f"/tasks/user/{args[0]}")
        if not resp.ok:
            return _error(resp)
        title = f"Today for {resp.body['user_name']}:"
    else:
        resp = _call(state, session, "GET", "/tasks/today")
        if not resp.ok:
            return _error(resp)
        title = "Your tasks today:"
    lines = [title]
    tasks = resp.body["tasks"]
    if not tasks:
        lines.append("  (nothing planned)")
    lines.extend(_task_line(t) for t in tasks)
    if resp.body["day_ended"]:
        lines.append("  Day ended.")
    return "\n".join(lines)


def _transition(
    state: AppState, args: list[str], session: ConsoleSession, op: str, command: str
) -> Response | str:
    if len(args) != 1:
        return f"Usage: /{command} <task id>"
    return _call(state, session, "POST", f"/tasks/{args[0]}/{op}")


def cmd_start(state: AppState, args: list[str], session: ConsoleSession) -> str:
    resp = _transition(state, args, session, "start", "start")
    if isinstance(resp, str):
        return resp
    if not resp.ok:
        return _error(resp)
    task = resp.body["task"]
    return f"Started task #{task['id']} at {_hhmm(task['started_at'])}."


def cmd_done(state: AppState, args: list[str], session: ConsoleSession) -> str:
    resp = _transition(state, args, session, "complete", "done")
    if isinstance(resp, str):
        return resp
    if not resp.ok:
        return _error(resp)
    task = resp.body["task"]
    verdict = "on time" if task["status"] == "completed_ontime" else "late"
    return f"Task #{task['id']} done in {task['actual_minutes']}m ({verdict})."


def cmd_skip(state: AppState, args: list[str], session: ConsoleSession) -> str:
    resp = _transition(state, args, session, "skip", "skip")
    if isinstance(resp, str):
        return resp
    if not resp.ok:
        return _error(resp)
    return f"Task #{args[0]} skipped."


def cmd_feed(state: AppState, args: list[str], session: ConsoleSession) -> str:
    resp = _call(state, session, "GET", "/feed/active")
    if not resp.ok:
        return _error(resp)
    lines = ["Feed:"]
    for u in resp.body["users"]:
        st = u["today_stats"]
        line = f"  {u['name']}: {st['ontime']}+{st['delayed']} done, {st['skipped']} skipped of {st['total']}"
        active = u["active_task"]
        if active:
            line += f" | now: {active['task_name']} ({active['elapsed_seconds'] // 60}/{active['estimated_minutes']}m)"
        if u["day_ended"]:
            line += " | day ended"
        lines.append(line)
    if len(lines) == 1:
        lines.append("  (nobody else yet)")
    return "\n".join(lines)


def cmd_profile(state: AppState, args: list[str], session: ConsoleSession) -> str:
    target = args[0] if args else session.user_id
    if target is None:
        return "Not logged in. Use /login <username> or /profile <user id>."
    resp = _call(state, session, "GET", f"/users/{target}/profile")
    if not resp.ok:
        return _error(resp)
    u, st, wk = resp.body["user"], resp.body["stats"], resp.body["week_stats"]
    lines = [
        f"{u['name']} (@{u['username']})",
        f"  Streak: {u['current_streak']} (best {u['best_streak']})",
        f"  All time: {st['total_tasks']} tasks, {st['completed_ontime']} on time, "
        f"{st['completed_delayed']} late, {st['skipped']} skipped, "
        f"{st['success_rate']}% success, {st['total_study_hours']}h",
        f"  This week: {wk['tasks']} tasks, {wk['ontime']} on time, {wk['delayed']} late, "
        f"{wk['success_rate']}% success, {wk['study_hours']}h",
    ]
    for s in resp.body["recent_summaries"]:
        lines.append(
            f"  {s['summary_date']}: {s['tasks_completed']}/{s['tasks_total']} "
            f"({s['success_rate']}%), {s['total_study_hours']}h, rated {s['self_rating']}/5"
        )
    return "\n".join(lines)


def cmd_history(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/history [subject]"""
    if session.user_id is None:
        return "Not logged in."
    payload = {"subject": args[0].capitalize()} if args else {}
    resp = _call(state, session, "GET", f"/users/{session.user_id}/history", payload)
    if not resp.ok:
        return _error(resp)
    lines = ["History:"]
    current = None
    for t in resp.body["tasks"]:
        if t["task_date"] != current:
            current = t["task_date"]
            lines.append(f" {current}")
        lines.append(_task_line(t))
    return "\n".join(lines)


def cmd_endday(
    state: AppState,
    args: list[str],
    session: ConsoleSession,
    emit: CommandEmitter | None = None,
) -> str:
    """/endday <rating 1-5> [maths] [physics] [chemistry]"""
    if not args:
        return "Usage: /endday <rating 1-5> [maths problems] [physics problems] [chemistry problems]"

    counts = (args[1:] + ["0", "0", "0"])[:3]
    if emit:
        with contextlib.suppress(Exception):
            emit("Closing your day: unfinished tasks will be skipped.")

    resp = _call(
        state,
        session,
        "POST",
        "/summary/end-day",
        {
            "self_rating": args[0],
            "maths_problems": counts[0],
            "physics_problems": counts[1],
            "chemistry_problems": counts[2],
        },
    )
    if not resp.ok:
        return _error(resp)
    s = resp.body["summary"]
    return (
        f"Day closed: {s['tasks_completed']}/{s['tasks_total']} tasks completed "
        f"({s['success_rate']}%), {s['total_study_hours']}h. Streak: {s['current_streak']}."
    )


def cmd_leaderboard(state: AppState, args: list[str], session: ConsoleSession) -> str:
    payload = {"period": args[0]} if args else {}
    resp = _call(state, session, "GET", "/leaderboard", payload)
    if not resp.ok:
        return _error(resp)
    lines = [f"Leaderboard ({resp.body['period']}, since {resp.body['start_date']}):"]
    for r in resp.body["rankings"]:
        lines.append(
            f"  {r['rank']}. {r['name']}: {r['ontime']} on time / {r['total']} "
            f"({r['success_rate']}%), {r['study_hours']}h"
        )
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("register", cmd_register, help_text="Create a user: /register <username> <name>.")
registry.register("login", cmd_login, help_text="Act as an existing user: /login <username>.")
registry.register("whoami", cmd_whoami, help_text="Show the current user.")
registry.register("users", cmd_users, help_text="List users.")
registry.register("plan", cmd_plan, help_text="Plan tasks: /plan Maths 45 Integration drills ; Physics 30 ...")
registry.register("tasks", cmd_tasks, help_text="Today's tasks: /tasks [user id].", aliases=["today"])
registry.register("start", cmd_start, help_text="Start a task: /start <id>.")
registry.register("done", cmd_done, help_text="Complete the running task: /done <id>.", aliases=["complete"])
registry.register("skip", cmd_skip, help_text="Skip a task: /skip <id>.")
registry.register("feed", cmd_feed, help_text="What everyone else is doing.")
registry.register("profile", cmd_profile, help_text="Profile: /profile [user id].")
registry.register("history", cmd_history, help_text="Your task history: /history [subject].")
registry.register("endday", cmd_endday, help_text="End your day: /endday <rating> [maths] [physics] [chemistry].")
registry.register(
    "leaderboard", cmd_leaderboard, help_text="Rankings: /leaderboard [weekly|monthly|all-time].", aliases=["lb"]
)
