pytest_plugins = ["git_workspace.testing.conftest"]
