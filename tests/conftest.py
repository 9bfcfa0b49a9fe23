"""Shared fixtures for nativebuild tests."""

import pytest

from tests._fixtures.builders import FakeRunner, make_config, make_nativelib


@pytest.fixture
def nativelib(tmp_path):
    return make_nativelib(tmp_path / "ivy")


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def config(workdir, nativelib):
    return make_config(workdir, nativelib)


@pytest.fixture
def runner():
    return FakeRunner()
