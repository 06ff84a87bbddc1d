from __future__ import annotations

from typing import TYPE_CHECKING

from datalad_core.config import (
    ConfigManager,
    DataladBranchConfig,
    GitEnvironment,
    GlobalGitConfig,
    ImplementationDefaults,
    LocalGitConfig,
    UnsetValue,
    get_manager,
)

from datalad_locate import (
    jobs_config_key,
    lenient_config_key,
    roots_config_key,
)

if TYPE_CHECKING:
    from pathlib import Path


def get_dataset_config_manager(dataset_dir: Path) -> ConfigManager:
    """Get a config manager that reads the configuration of a dataset

    Sources are consulted in this order: git environment, local git-config,
    global git-config, and the `.datalad/config`-file of the dataset.
    """
    return ConfigManager(
        defaults=ImplementationDefaults(),
        sources={
            'git-command': GitEnvironment(),
            'git': LocalGitConfig(dataset_dir),
            'git-global': GlobalGitConfig(),
            'datalad-branch': DataladBranchConfig(dataset_dir),
        },
    )


def get_search_roots(config_manager: ConfigManager | None = None) -> list[str]:
    """Get the configured search roots, in search order"""
    value = get_config(roots_config_key, config_manager)
    if value is None:
        return []
    return [root.strip() for root in value.split(',') if root.strip()]


def get_lenient(config_manager: ConfigManager | None = None) -> bool:
    value = get_config(lenient_config_key, config_manager)
    return value is not None and value.strip().lower() in ('true', 'yes', 'on', '1')


def get_jobs(config_manager: ConfigManager | None = None) -> int:
    value = get_config(jobs_config_key, config_manager)
    if value is None:
        return 1
    try:
        jobs = int(value)
    except ValueError as e:
        msg = f'{jobs_config_key} must be an integer, got {value!r}'
        raise ValueError(msg) from e
    if jobs < 1:
        msg = f'{jobs_config_key} must be at least 1, got {jobs}'
        raise ValueError(msg)
    return jobs


def get_config(
    config_key: str,
    config_manager: ConfigManager | None = None,
) -> str | None:
    if config_manager is None:
        config_manager = get_manager()
    value = config_manager.get(config_key).value
    if value is None or value is UnsetValue:
        return None
    return str(value)
