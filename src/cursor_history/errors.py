"""cursor-history error hierarchy.

Per-workspace reconciliation never raises; these errors belong to the layers
around it (configuration and export aggregation) and are turned into CLI
messages at the top level.

    CursorHistoryError
    ├── ConfigError
    └── NoConversationsFoundError
"""


class CursorHistoryError(Exception):
    """Base class for all cursor-history errors."""


class ConfigError(CursorHistoryError):
    """Configuration could not be resolved into usable paths."""


class NoConversationsFoundError(CursorHistoryError):
    """Every requested workspace produced zero conversations."""

    def __init__(self, workspace_ids: list[str] | None = None) -> None:
        self.workspace_ids = workspace_ids
        if workspace_ids is None:
            message = "No conversations found in any workspace."
        elif len(workspace_ids) == 1:
            message = f"No conversations found for workspace {workspace_ids[0]}"
        else:
            message = "No conversations found for the selected workspaces."
        super().__init__(message)
