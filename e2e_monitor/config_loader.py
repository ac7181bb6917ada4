"""
Monitor Configuration Loader

This module provides the Pydantic model describing one monitor deployment
(which plugin to build, where the E2E harness lives, where to report) and
the YAML/.env loading logic.

Example:
    from e2e_monitor.config_loader import load_config

    config = load_config("monitor.yaml", env_file=".env")
    print(config.e2e_dir, config.loop_interval)
"""

import os
import shlex
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator, model_validator

from e2e_monitor.common.logger import get_logger, resolve_level

logger = get_logger(__name__)

ENV_PREFIX = "E2E_MONITOR_"
LEGACY_ENV_KEYS = {
    "SLACK_WEBHOOK_URL": "slack_webhook_url",
    "ANALYTICS_URL": "analytics_url",
    "ANALYTICS_TOKEN": "analytics_token",
}


class MonitorConfig(BaseModel):
    """
    Complete monitor configuration.

    Path fields left unset are derived from work_dir / e2e_dir once the
    model is validated, so a minimal config only needs the repository URL.

    Attributes:
        work_dir: Base directory holding the clone, compile script and licence file.
        plugin_repo_url: Git URL of the plugin source repository.
        plugin_branch: Branch the plugin clone is reset to.
        plugin_clone_dir: Where the plugin is cloned.
        e2e_dir: Checkout of the E2E test harness.
        e2e_branch: Branch the harness is reset to.
        plugin_stage_dir: Directory the harness installs the plugin archive from.
        licence_source: Pre-filled licence file copied into the clone before compiling.
        licence_target_name: File name of the licence file inside the clone.
        compile_script: Script producing the plugin archive.
        archive_name: File name of the archive produced by the compile script.
        test_command: Command running the E2E suite inside e2e_dir.
        report_path: Cucumber JSON report, relative to e2e_dir.
        results_dir: Results directory archived after each run, relative to e2e_dir.
        archive_root: Where timestamped result archives are kept.
        retention_days: Archives older than this are pruned (0 disables pruning).
        slack_webhook_url: Incoming webhook for pass/fail messages.
        analytics_url: Endpoint receiving the run summary.
        analytics_token: Optional bearer token for the analytics endpoint.
        request_timeout: Timeout in seconds for webhook/analytics calls.
        plugin_id: Plugin identifier reported to analytics.
        test_suite: Test-suite identifier reported to analytics.
        loop_interval: Seconds between cycles.
        log_file: Optional log file path.
        log_level: Logging level name.
    """
    work_dir: Path = Field(default=Path("/home/ubuntu"), description="Base working directory")

    plugin_repo_url: str = Field(
        default="https://github.com/wp-media/wp-rocket.git",
        description="Plugin repository URL",
    )
    plugin_branch: str = Field(default="develop", description="Plugin branch to build")
    plugin_clone_dir: Optional[Path] = Field(default=None, description="Plugin clone directory")

    e2e_dir: Optional[Path] = Field(default=None, description="E2E harness checkout")
    e2e_branch: str = Field(default="develop", description="E2E harness branch")
    plugin_stage_dir: Optional[Path] = Field(default=None, description="Archive staging directory")

    licence_source: Optional[Path] = Field(default=None, description="Pre-filled licence file")
    licence_target_name: str = Field(default="licence-data.php", description="Licence file name in clone")

    compile_script: Optional[Path] = Field(default=None, description="Compile script path")
    archive_name: str = Field(default="wp-rocket.zip", description="Archive produced by the compile script")

    test_command: List[str] = Field(
        default_factory=lambda: ["npm", "run", "healthcheck"],
        description="Command running the E2E suite",
    )
    report_path: Path = Field(
        default=Path("test-results/cucumber-report.json"),
        description="Cucumber JSON report (relative to e2e_dir)",
    )
    results_dir: Path = Field(default=Path("test-results"), description="Results directory (relative to e2e_dir)")
    archive_root: Optional[Path] = Field(default=None, description="Result archive root")
    retention_days: int = Field(default=7, ge=0, description="Archive retention in days")

    slack_webhook_url: Optional[str] = Field(default=None, description="Slack incoming webhook URL")
    analytics_url: Optional[str] = Field(default=None, description="Analytics endpoint URL")
    analytics_token: Optional[str] = Field(default=None, description="Analytics bearer token")
    request_timeout: float = Field(default=10.0, gt=0, description="HTTP timeout in seconds")

    plugin_id: str = Field(default="wp-rocket", description="Plugin identifier")
    test_suite: str = Field(default="healthcheck", description="Test-suite identifier")

    loop_interval: float = Field(default=300.0, gt=0, description="Seconds between cycles")
    log_file: Optional[Path] = Field(default=None, description="Log file path")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("test_command", mode="before")
    @classmethod
    def split_test_command(cls, v: Any) -> Any:
        """Accept a shell-style string as well as a list."""
        if isinstance(v, str):
            v = shlex.split(v)
        return v

    @field_validator("test_command")
    @classmethod
    def validate_test_command(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("test_command cannot be empty")
        return v

    @field_validator("slack_webhook_url", "analytics_url", "analytics_token", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        resolve_level(v)
        return v.upper()

    @model_validator(mode="after")
    def derive_paths(self) -> "MonitorConfig":
        """Fill unset paths from work_dir and e2e_dir."""
        if self.plugin_clone_dir is None:
            self.plugin_clone_dir = self.work_dir / "wp-rocket"
        if self.e2e_dir is None:
            self.e2e_dir = self.work_dir / "wp-rocket-e2e"
        if self.plugin_stage_dir is None:
            self.plugin_stage_dir = self.e2e_dir / "plugin"
        if self.compile_script is None:
            self.compile_script = self.work_dir / "compile-wp-rocket.sh"
        if self.archive_root is None:
            self.archive_root = self.work_dir / "e2e-results"
        return self

    @property
    def archive_path(self) -> Path:
        """Where the compile script leaves the archive."""
        return self.work_dir / self.archive_name

    @property
    def report_file(self) -> Path:
        return self.e2e_dir / self.report_path

    @property
    def results_path(self) -> Path:
        return self.e2e_dir / self.results_dir


def load_env_file(path: Optional[str]) -> Dict[str, str]:
    """
    Read KEY=VALUE pairs from a .env file.

    Parsing is delegated to python-dotenv, so comments, quoting and the
    `export` prefix follow its rules. Keys without a value are dropped.

    Args:
        path: Path to the .env file.

    Returns:
        Mapping of keys to values (empty if the file does not exist).
    """
    if not path:
        return {}
    env_path = Path(path)
    if not env_path.exists():
        logger.debug(f".env file not found: {env_path}")
        return {}

    values = dotenv_values(dotenv_path=env_path)
    return {key: value for key, value in values.items() if value is not None}


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key, field_name in LEGACY_ENV_KEYS.items():
        if env.get(key):
            overrides[field_name] = env[key]

    fields = MonitorConfig.model_fields
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX):].lower()
        if field_name in fields:
            overrides[field_name] = value
        else:
            logger.warning(f"Ignoring unknown setting '{key}'")
    return overrides


def load_config(
    config_path: Optional[str] = None,
    env_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    """
    Load the monitor configuration.

    Values are layered: YAML file, then the .env file, then the process
    environment (E2E_MONITOR_<FIELD> and the legacy SLACK_WEBHOOK_URL).

    Args:
        config_path: Optional path to a YAML configuration file.
        env_file: Optional path to a .env file.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Validated MonitorConfig.

    Raises:
        FileNotFoundError: If config_path is given but doesn't exist.
        yaml.YAMLError: If the YAML file is invalid.
        ValidationError: If the configuration doesn't match the model.
    """
    data: Dict[str, Any] = {}

    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML file {config_path}: {e}")
            raise

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        data.update(loaded)

    data.update(_env_overrides(load_env_file(env_file)))
    data.update(_env_overrides(os.environ if environ is None else environ))

    config = MonitorConfig(**data)
    logger.info(
        f"Loaded monitor configuration: plugin={config.plugin_id}, "
        f"e2e_dir={config.e2e_dir}, interval={config.loop_interval:g}s"
    )
    return config


def save_config(config: MonitorConfig, config_path: str = "monitor.yaml") -> None:
    """
    Save monitor configuration to a YAML file.

    Args:
        config: MonitorConfig instance to save.
        config_path: Path where to save the configuration file.

    Raises:
        IOError: If the file cannot be written.
    """
    config_file = Path(config_path)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")
    try:
        with open(config_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except Exception as e:
        logger.error(f"Failed to save configuration to {config_path}: {e}")
        raise

    logger.info(f"Saved configuration to {config_path}")


def generate_template() -> str:
    """Generate a template monitor.yaml."""
    return """# E2E monitor configuration ({date})
work_dir: "/home/ubuntu"

plugin_repo_url: "https://github.com/wp-media/wp-rocket.git"
plugin_branch: "develop"
# plugin_clone_dir: "/home/ubuntu/wp-rocket"

# e2e_dir: "/home/ubuntu/wp-rocket-e2e"
e2e_branch: "develop"

licence_source: "/home/ubuntu/licence-data.php.bak"
compile_script: "/home/ubuntu/compile-wp-rocket.sh"
archive_name: "wp-rocket.zip"

test_command: "npm run healthcheck"
report_path: "test-results/cucumber-report.json"
results_dir: "test-results"
retention_days: 7

# Secrets are better kept in .env (SLACK_WEBHOOK_URL, E2E_MONITOR_ANALYTICS_TOKEN)
slack_webhook_url: ""
analytics_url: ""

plugin_id: "wp-rocket"
test_suite: "healthcheck"
loop_interval: 300
log_file: "/home/ubuntu/wp-rocket-monitor.log"
log_level: "INFO"
""".format(date=datetime.now().strftime("%Y-%m-%d"))
