"""grr - opinionated hand-holding of Gerrit code review mechanics.

One invocation reconciles the current git branch with its Gerrit change
request (CR): the branch is bound to an issue (Jira or GitHub), local commits
are squashed into a single commit whose message is derived from the issue
title(s) and the CR's approvals, and the result is pushed as a new CR or a
new patch set.

    from grr.cli import main
    main(["TOOLS-123"])
"""

from __future__ import annotations

__version__ = "1.4.0"

__all__ = ["__version__"]
