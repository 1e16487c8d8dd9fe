import tomllib
from pathlib import Path

import progressengine


def _project_version() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    with pyproject.open("rb") as handle:
        data = tomllib.load(handle)
    version = data.get("project", {}).get("version")
    if not isinstance(version, str):
        raise AssertionError("Could not find [project].version in pyproject.toml")
    return version


def test_package_version_matches_pyproject() -> None:
    assert progressengine.__version__ == _project_version()
