"""
gittidy - Local branch hygiene for git repositories.

Tools included:
- cleanup: Delete local branches whose pull requests have merged
- cleanup-all: Run cleanup across every repository in a directory
- update-main: Fast-forward local main branches to match origin
- config: View/edit gittidy configuration
"""

__version__ = "0.1.0"
__author__ = "gittidy contributors"
__all__ = ["cleanup", "review", "gitops", "update", "config", "log"]
