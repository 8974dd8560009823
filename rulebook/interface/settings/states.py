from enum import Enum


class SettingsState(Enum):
    # Shared
    MAIN_MENU = "MainMenu"
    COMPLETE = "Complete"

    # Navigation hubs
    REPOSITORY_ACTIONS = "RepositoryActions"
    ADD_REPOSITORY_TYPE = "AddRepositoryType"

    # Add local
    ADD_LOCAL_NAME = "AddLocalName"
    ADD_LOCAL_PATH = "AddLocalPath"
    ADD_LOCAL_ERROR = "AddLocalError"

    # Add remote
    ADD_REMOTE_NAME = "AddRemoteName"
    ADD_REMOTE_URL = "AddRemoteURL"
    ADD_REMOTE_BRANCH = "AddRemoteBranch"
    ADD_REMOTE_PATH = "AddRemotePath"
    ADD_REMOTE_TOKEN = "AddRemoteToken"
    ADD_REMOTE_ERROR = "AddRemoteError"

    # Rename
    UPDATE_REPO_NAME = "UpdateRepoName"
    EDIT_NAME_CONFIRM = "EditNameConfirm"
    EDIT_NAME_ERROR = "EditNameError"

    # Edit branch
    UPDATE_GITHUB_BRANCH = "UpdateGitHubBranch"
    EDIT_BRANCH_CONFIRM = "EditBranchConfirm"
    EDIT_BRANCH_ERROR = "EditBranchError"

    # Edit clone path
    UPDATE_GITHUB_PATH = "UpdateGitHubPath"
    EDIT_CLONE_PATH_CONFIRM = "EditClonePathConfirm"
    EDIT_CLONE_PATH_ERROR = "EditClonePathError"

    # Manual refresh
    MANUAL_REFRESH = "ManualRefresh"
    REFRESH_IN_PROGRESS = "RefreshInProgress"
    REFRESH_ERROR = "RefreshError"

    # Delete
    CONFIRM_DELETE = "ConfirmDelete"
    DELETE_ERROR = "DeleteError"

    # Update token
    UPDATE_GITHUB_PAT = "UpdateGitHubPAT"
    UPDATE_PAT_CONFIRM = "UpdatePATConfirm"
    UPDATE_PAT_ERROR = "UpdatePATError"

    def __str__(self) -> str:
        return self.value


class ChangeOption(Enum):
    MANUAL_REFRESH = "manual_refresh"
    GITHUB_BRANCH = "github_branch"
    GITHUB_PATH = "github_path"
    CHANGE_REPO_NAME = "change_repo_name"
    DELETE = "delete"
    ADD_NEW_REPOSITORY = "add_new_repository"
    GITHUB_PAT = "github_pat"
    BACK = "back"


S = SettingsState

SHARED_STATES: frozenset[SettingsState] = frozenset({S.MAIN_MENU, S.COMPLETE})

# Every state belongs to exactly one flow.
FLOW_STATES: dict[str, frozenset[SettingsState]] = {
    "shared": SHARED_STATES,
    "repository_actions": frozenset({S.REPOSITORY_ACTIONS}),
    "add_repository_type": frozenset({S.ADD_REPOSITORY_TYPE}),
    "add_local": frozenset({S.ADD_LOCAL_NAME, S.ADD_LOCAL_PATH, S.ADD_LOCAL_ERROR}),
    "add_remote": frozenset(
        {
            S.ADD_REMOTE_NAME,
            S.ADD_REMOTE_URL,
            S.ADD_REMOTE_BRANCH,
            S.ADD_REMOTE_PATH,
            S.ADD_REMOTE_TOKEN,
            S.ADD_REMOTE_ERROR,
        }
    ),
    "rename": frozenset({S.UPDATE_REPO_NAME, S.EDIT_NAME_CONFIRM, S.EDIT_NAME_ERROR}),
    "edit_branch": frozenset({S.UPDATE_GITHUB_BRANCH, S.EDIT_BRANCH_CONFIRM, S.EDIT_BRANCH_ERROR}),
    "edit_clone_path": frozenset(
        {S.UPDATE_GITHUB_PATH, S.EDIT_CLONE_PATH_CONFIRM, S.EDIT_CLONE_PATH_ERROR}
    ),
    "manual_refresh": frozenset({S.MANUAL_REFRESH, S.REFRESH_IN_PROGRESS, S.REFRESH_ERROR}),
    "delete": frozenset({S.CONFIRM_DELETE, S.DELETE_ERROR}),
    "update_token": frozenset({S.UPDATE_GITHUB_PAT, S.UPDATE_PAT_CONFIRM, S.UPDATE_PAT_ERROR}),
}

# Where a flow returns to on cancel or error dismissal.
FLOW_ORIGIN: dict[str, SettingsState] = {
    "repository_actions": S.MAIN_MENU,
    "add_repository_type": S.MAIN_MENU,
    "add_local": S.ADD_REPOSITORY_TYPE,
    "add_remote": S.ADD_REPOSITORY_TYPE,
    "rename": S.REPOSITORY_ACTIONS,
    "edit_branch": S.REPOSITORY_ACTIONS,
    "edit_clone_path": S.REPOSITORY_ACTIONS,
    "manual_refresh": S.REPOSITORY_ACTIONS,
    "delete": S.REPOSITORY_ACTIONS,
    "update_token": S.MAIN_MENU,
}

# Flows a hub can start.
HUB_TARGETS: dict[SettingsState, frozenset[str]] = {
    S.MAIN_MENU: frozenset({"repository_actions", "add_repository_type", "update_token"}),
    S.REPOSITORY_ACTIONS: frozenset(
        {"rename", "edit_branch", "edit_clone_path", "manual_refresh", "delete"}
    ),
    S.ADD_REPOSITORY_TYPE: frozenset({"add_local", "add_remote"}),
}

ERROR_STATES: dict[str, SettingsState] = {
    "add_local": S.ADD_LOCAL_ERROR,
    "add_remote": S.ADD_REMOTE_ERROR,
    "rename": S.EDIT_NAME_ERROR,
    "edit_branch": S.EDIT_BRANCH_ERROR,
    "edit_clone_path": S.EDIT_CLONE_PATH_ERROR,
    "manual_refresh": S.REFRESH_ERROR,
    "delete": S.DELETE_ERROR,
    "update_token": S.UPDATE_PAT_ERROR,
}

INPUT_STATES: frozenset[SettingsState] = frozenset(
    {
        S.ADD_LOCAL_NAME,
        S.ADD_LOCAL_PATH,
        S.ADD_REMOTE_NAME,
        S.ADD_REMOTE_URL,
        S.ADD_REMOTE_BRANCH,
        S.ADD_REMOTE_PATH,
        S.ADD_REMOTE_TOKEN,
        S.UPDATE_REPO_NAME,
        S.UPDATE_GITHUB_BRANCH,
        S.UPDATE_GITHUB_PATH,
        S.UPDATE_GITHUB_PAT,
    }
)


def flow_of(state: SettingsState) -> str:
    for flow, states in FLOW_STATES.items():
        if state in states:
            return flow
    raise KeyError(state)


def allowed_targets(state: SettingsState) -> frozenset[SettingsState]:
    """States a key press in ``state`` may move to."""
    flow = flow_of(state)
    targets = set(FLOW_STATES[flow]) | set(SHARED_STATES)
    if flow in FLOW_ORIGIN:
        targets.add(FLOW_ORIGIN[flow])
    if flow in ERROR_STATES:
        targets.add(ERROR_STATES[flow])
    for hub_flow in HUB_TARGETS.get(state, ()):
        targets |= FLOW_STATES[hub_flow]
    return frozenset(targets)
