"""
Editor and database tool installation from third-party apt repositories.

Each repository is described by a ThirdPartyRepo entry. Installing one means
acquiring its signing key, writing a ``signed-by`` source entry and installing
its packages, all inside a procedure that snapshots ``/etc/apt`` first.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from xubuntu_toolkit.commands import Apt
from xubuntu_toolkit.config import Config
from xubuntu_toolkit.keys import install_key
from xubuntu_toolkit.preflight import run_preflight
from xubuntu_toolkit.procedure import ProcedureReport, Step, run_procedure
from xubuntu_toolkit.snapshot import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThirdPartyRepo:
    """A vendor apt repository and the packages installed from it."""

    name: str
    description: str
    key_url: str
    repo_url: str
    suite: str
    components: List[str] = field(default_factory=list)
    packages: List[str] = field(default_factory=list)
    fingerprint: Optional[str] = None
    architecture: str = "amd64"

    def keyring_path(self, config: Config) -> Path:
        return config.KEYRING_DIR / f"{self.name}.gpg"

    def source_path(self, config: Config) -> Path:
        return config.sources_dir / f"{self.name}.list"

    def source_line(self, config: Config) -> str:
        url = self.repo_url.format(codename=config.CODENAME)
        options = f"arch={self.architecture} signed-by={self.keyring_path(config)}"
        parts = ["deb", f"[{options}]", url, self.suite, *self.components]
        return " ".join(parts)


VSCODE = ThirdPartyRepo(
    name="vscode",
    description="Visual Studio Code",
    key_url="https://packages.microsoft.com/keys/microsoft.asc",
    fingerprint="BC528686B50D79E339D3721CEB3E94ADBE1229CF",
    repo_url="https://packages.microsoft.com/repos/code",
    suite="stable",
    components=["main"],
    packages=["code"],
)

PGADMIN = ThirdPartyRepo(
    name="pgadmin4",
    description="pgAdmin 4",
    key_url="https://www.pgadmin.org/static/packages_pgadmin_org.pub",
    repo_url="https://ftp.postgresql.org/pub/pgadmin/pgadmin4/apt/{codename}",
    suite="pgadmin4",
    components=["main"],
    packages=["pgadmin4-desktop"],
)

DBEAVER = ThirdPartyRepo(
    name="dbeaver",
    description="DBeaver Community",
    key_url="https://dbeaver.io/debs/dbeaver.gpg.key",
    repo_url="https://dbeaver.io/debs/dbeaver-ce",
    suite="/",
    packages=["dbeaver-ce"],
)

EDITOR_REPOS = [VSCODE]
DATABASE_REPOS = [PGADMIN, DBEAVER]


def add_repository(config: Config, repo: ThirdPartyRepo) -> None:
    """Acquire the signing key and write the source entry for ``repo``."""
    keyring = repo.keyring_path(config)
    result = install_key(
        repo.key_url,
        keyring,
        fingerprint=repo.fingerprint,
        keyservers=config.KEYSERVERS,
        timeout=config.DOWNLOAD_TIMEOUT,
    )
    logger.info(f"{repo.description} key installed to {keyring} via {result.strategy}")

    source = repo.source_path(config)
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_text(repo.source_line(config) + "\n")
    logger.info(f"Wrote {source}")


def repository_steps(
    config: Config,
    apt: Apt,
    repos: Sequence[ThirdPartyRepo],
    extra_packages: Sequence[str] = (),
) -> List[Step]:
    steps: List[Step] = [
        (f"Add {repo.description} repository", lambda repo=repo: add_repository(config, repo))
        for repo in repos
    ]
    steps.append(("Update package lists", lambda: apt.update().require("apt update")))

    packages = [p for repo in repos for p in repo.packages] + list(extra_packages)
    steps.append(
        (
            f"Install {', '.join(packages)}",
            lambda: apt.install(packages).require(f"Installing {', '.join(packages)}"),
        )
    )
    return steps


def install_editor(
    config: Config, store: SnapshotStore, apt: Optional[Apt] = None
) -> ProcedureReport:
    run_preflight(config)
    apt = apt or Apt()
    return run_procedure(
        "Editor Installation",
        config,
        store,
        [str(config.APT_DIR)],
        repository_steps(config, apt, EDITOR_REPOS),
    )


def install_database_tools(
    config: Config, store: SnapshotStore, apt: Optional[Apt] = None
) -> ProcedureReport:
    run_preflight(config)
    apt = apt or Apt()
    return run_procedure(
        "Database Tools",
        config,
        store,
        [str(config.APT_DIR)],
        repository_steps(config, apt, DATABASE_REPOS, config.DATABASE_PACKAGES),
    )
