"""Helpers for building commits, trees and providers in tests."""

import hashlib
from datetime import datetime, timedelta, timezone

from cherryplan.commit import CommitRecord
from cherryplan.tree import InMemoryTreeProvider, TreeSnapshot

BASE_TIME = datetime(2025, 8, 18, 12, 0, tzinfo=timezone.utc)


def sha_of(label):
    """Stable 40-character sha for a readable label."""
    return hashlib.sha1(label.encode("utf-8")).hexdigest()


def make_commit(label, parents=(), message=None, author="alice", minutes=0, files=()):
    """CommitRecord whose sha and parent shas derive from labels."""
    return CommitRecord(
        sha=sha_of(label),
        parent_shas=[sha_of(parent) for parent in parents],
        author=author,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        message=message if message is not None else f"HSAMED-1 change {label} with details",
        modified_files=list(files),
    )


def make_tree(entries, sha=""):
    """TreeSnapshot from ``{path: blob_sha | {sha, mode, binary}}``."""
    return TreeSnapshot.from_dict(entries, sha=sha)


class ProviderBuilder:
    """Collects commit trees and blobs, then hands out providers."""

    def __init__(self):
        self.trees = {}
        self.blobs = {}

    def tree(self, commit, entries):
        self.trees[commit.sha] = make_tree(entries, sha=commit.sha)
        return self

    def blob(self, blob_sha, content):
        self.blobs[blob_sha] = content
        return self

    def factory(self):
        return InMemoryTreeProvider(trees=self.trees, blobs=self.blobs)


def scenario_snapshot_data():
    """
    A(root) -> B -> C(merge of B and D2), with D -> D2 branched off A.

    The target branch holds A and B. D references HSAMED-5, D2 has no ticket
    and touches the same service file.
    """

    def commit(label, parents, message, minutes, files, tree):
        return {
            "sha": sha_of(label),
            "parents": [sha_of(parent) for parent in parents],
            "author": "alice",
            "date": (BASE_TIME + timedelta(minutes=minutes)).strftime("%Y-%m-%d %H:%M:%S %z"),
            "message": message,
            "files": files,
            "tree": tree,
        }

    service = "src/services/payment.py"
    return {
        "source_branch": "deploy/dev",
        "target_branch": "deploy/uat",
        "commits": [
            commit("A", [], "HSAMED-1 initial application", 0, ["app.py"], {"app.py": "a1"}),
            commit("B", ["A"], "HSAMED-2 bump app version", 10, ["app.py"], {"app.py": "a2"}),
            commit(
                "D",
                ["A"],
                "HSAMED-5 payment fix for clinic invoices",
                20,
                [service],
                {"app.py": "a1", service: "p1"},
            ),
            commit(
                "D2",
                ["D"],
                "Adjust rounding in the payment flow for clinics",
                30,
                [service],
                {"app.py": "a1", service: "p2"},
            ),
            commit(
                "C",
                ["B", "D2"],
                "Merge branch 'feature/payments' into deploy/dev",
                40,
                [service],
                {"app.py": "a2", service: "p2"},
            ),
        ],
        "target_commits": [sha_of("A"), sha_of("B")],
        "target_tree": {"app.py": "a2"},
        "blobs": {
            "a1": "print('v1')\n",
            "a2": "print('v2')\n",
            "p1": "total = round(amount, 2)\n",
            "p2": "total = round(amount, 4)\n",
        },
    }
