"""Static catalog of the tool server's tools.

Only required-argument presence is checked locally; type and value
validation belong to the server.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ToolName(StrEnum):
    search = "search_businesses"
    sign_in = "sign_in"
    verify_otp = "verify_otp"
    resend_otp = "resend_otp"
    create_whistle = "create_whistle"
    list_whistles = "list_whistles"
    toggle_visibility = "toggle_visibility"
    get_user_profile = "get_user_profile"


@dataclass(frozen=True)
class ToolSpec:
    name: str
    required: tuple[str, ...] = ()


TOOL_CATALOG: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(ToolName.search, required=("latitude", "longitude")),
        ToolSpec(ToolName.sign_in, required=("phone",)),
        ToolSpec(ToolName.verify_otp, required=("phone", "otp")),
        ToolSpec(ToolName.resend_otp, required=("phone",)),
        ToolSpec(ToolName.create_whistle, required=("description",)),
        ToolSpec(ToolName.list_whistles),
        ToolSpec(ToolName.toggle_visibility),
        ToolSpec(ToolName.get_user_profile),
    )
}


def missing_arguments(tool_name: str, arguments: dict) -> list[str]:
    """Required arguments absent (or None) for a known tool. Unknown tools pass."""
    spec = TOOL_CATALOG.get(tool_name)
    if spec is None:
        return []
    return [name for name in spec.required if arguments.get(name) is None]
