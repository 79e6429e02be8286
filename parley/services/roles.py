"""Role lookup and system prompt construction."""

import getpass
import os
import platform
from pathlib import Path

from parley.core.config import Role

SYSTEM_PROMPT_TEMPLATE = """You are a helpful assistant talking to {username} in a terminal.
Environment: {os}/{arch}, shell {shell}, terminal {term}.
Home directory: {home}
Working directory: {cwd}
Format answers as markdown and put code in fenced blocks tagged with their language."""


class RoleError(ValueError):
    pass


def index_roles(roles: list[Role]) -> dict[str, Role]:
    by_name: dict[str, Role] = {}
    for role in roles:
        for key in filter(None, (role.name, role.alias)):
            if key in by_name:
                raise RoleError(f"duplicate role name or alias: {key}")
            by_name[key] = role
    return by_name


def resolve_role(name: str, roles: list[Role]) -> Role | None:
    if not name:
        return None
    role = index_roles(roles).get(name)
    if role is None:
        raise RoleError(f"unknown role: {name}")
    return role


def _username() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return "user"


def template_data() -> dict[str, str]:
    return {
        "username": _username(),
        "os": platform.system().lower(),
        "arch": platform.machine(),
        "shell": os.environ.get("SHELL", ""),
        "term": os.environ.get("TERM", ""),
        "home": str(Path.home()),
        "cwd": os.getcwd(),
    }


def build_system_prompt(role: Role | None, data: dict[str, str] | None = None) -> str:
    prompt = SYSTEM_PROMPT_TEMPLATE.format(**(data or template_data()))
    if role and role.prompt:
        prompt += f"\n\n{role.prompt}"
    return prompt
