"""Human-readable consent prompts and denial messages, per category."""

from toolgate.permission.interaction import ConsentPrompt
from toolgate.permission.models import (
    CallInfo,
    ItemOperation,
    PlayModeOperation,
    ResourceRef,
)
from toolgate.permission.paths import is_file_path


def _type_name(asset_type: type | str) -> str:
    return asset_type if isinstance(asset_type, str) else asset_type.__name__


def file_system_prompt(operation: ItemOperation, path: str) -> ConsentPrompt:
    if is_file_path(path):
        action = {
            ItemOperation.READ: "Read file from disk",
            ItemOperation.CREATE: "Create file",
            ItemOperation.DELETE: "Delete file",
            ItemOperation.MODIFY: "Save file",
        }[operation]
    else:
        action = {
            ItemOperation.READ: "Read from disk",
            ItemOperation.CREATE: "Create directory",
            ItemOperation.DELETE: "Delete directory",
            ItemOperation.MODIFY: "Change directory",
        }[operation]

    question = {
        ItemOperation.READ: f"Read from {path}?",
        ItemOperation.CREATE: f"Write to {path}?",
        ItemOperation.DELETE: f"Delete {path}?",
        ItemOperation.MODIFY: f"Write to {path}?",
    }[operation]
    return ConsentPrompt(action=action, question=question)


def resource_prompt(
    operation: ItemOperation,
    resource_type: type | None,
    target: ResourceRef | None,
) -> ConsentPrompt:
    action = {
        ItemOperation.READ: "Read Object Data",
        ItemOperation.CREATE: "Create New Object",
        ItemOperation.DELETE: "Delete Object",
        ItemOperation.MODIFY: "Modify Object",
    }[operation]

    if target is not None:
        object_name = target.display_name
    else:
        object_name = resource_type.__name__ if resource_type else "object"

    question = {
        ItemOperation.READ: f"Read from {object_name}?",
        ItemOperation.CREATE: f"Create {object_name}?",
        ItemOperation.DELETE: f"Delete {object_name}?",
        ItemOperation.MODIFY: f"Modify {object_name}?",
    }[operation]
    return ConsentPrompt(action=action, question=question)


def code_execution_prompt(code: str) -> ConsentPrompt:
    return ConsentPrompt(action="Execute code", code=code)


def tool_execution_prompt(call: CallInfo) -> ConsentPrompt:
    return ConsentPrompt(action="Execute tool", question=f"Execute {call.function_id}?")


def screen_capture_prompt() -> ConsentPrompt:
    return ConsentPrompt(action="Allow screen capture")


def play_mode_prompt(operation: PlayModeOperation) -> ConsentPrompt:
    action = {
        PlayModeOperation.ENTER: "Enter Play Mode",
        PlayModeOperation.EXIT: "Exit Play Mode",
    }[operation]
    return ConsentPrompt(action=action, question=f"{action}?")


def asset_generation_prompt(path: str, asset_type: type | str, cost: int) -> ConsentPrompt:
    return ConsentPrompt(
        action=f"Generate {_type_name(asset_type)} asset",
        question=f"Save to {path}?",
        cost=cost,
    )


# Denial messages

def file_system_denied(operation: ItemOperation, path: str) -> str:
    return {
        ItemOperation.READ: f"The user denied the request to read path: {path}",
        ItemOperation.CREATE: f"The user denied the request to create path: {path}",
        ItemOperation.DELETE: f"The user denied the request to delete path: {path}",
        ItemOperation.MODIFY: f"The user denied the request to write at path: {path}",
    }[operation]


def resource_denied(operation: ItemOperation) -> str:
    return {
        ItemOperation.READ: "The user denied the request to read instances",
        ItemOperation.CREATE: "The user denied the request to create new instances",
        ItemOperation.DELETE: "The user denied the request to delete instances",
        ItemOperation.MODIFY: "The user denied the request to modify instances",
    }[operation]


def code_execution_denied() -> str:
    return "The user denied the request to execute this code."


def tool_execution_denied(call: CallInfo) -> str:
    return f"The user denied the request to execute the tool {call.function_id}."


def screen_capture_denied() -> str:
    return "The user denied the request to capture the screen."


def play_mode_denied(operation: PlayModeOperation) -> str:
    return {
        PlayModeOperation.ENTER: "The user denied the request to enter play mode",
        PlayModeOperation.EXIT: "The user denied the request to exit play mode",
    }[operation]


def asset_generation_denied(path: str, asset_type: type | str) -> str:
    return (
        f"The user denied the request to generate a {_type_name(asset_type)} "
        f"asset at path: {path}"
    )
